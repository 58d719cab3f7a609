"""
Canonical records shared by every component.

Quotes and knowledge documents are frozen: cached lists and the knowledge
store hand out the same instances to concurrent requests.
"""
from enum import Enum
from typing import Any, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Labels providers use when they do not actually know the place
_UNKNOWN_LABELS = {"", "unknown", "n/a", "na", "none", "null", "-"}

_LABEL_DEFAULTS = {
    "market": "Local Mandi",
    "district": "Local Area",
    "state": "India",
}


class Trend(str, Enum):
    UP = "up"
    DOWN = "down"
    STABLE = "stable"

    @classmethod
    def parse(cls, value: Any) -> "Trend":
        """Accepts enum values, arrows/signs and the words providers use."""
        if isinstance(value, Trend):
            return value
        v = str(value or "").strip().lower()
        if v in {"up", "+", "rising", "increase", "increasing", "high"}:
            return cls.UP
        if v in {"down", "-", "falling", "decrease", "decreasing", "low"}:
            return cls.DOWN
        return cls.STABLE


class MarketQuote(BaseModel):
    model_config = ConfigDict(frozen=True)

    commodity: str = Field(..., min_length=1, description="Canonical commodity key, e.g. 'tomato'")
    price: float = Field(..., gt=0, description="Modal price in INR per unit")
    unit: str = "quintal"
    market: str = _LABEL_DEFAULTS["market"]
    district: str = _LABEL_DEFAULTS["district"]
    state: str = _LABEL_DEFAULTS["state"]
    trend: Trend = Trend.STABLE
    change_percent: float = Field(0.0, ge=0)
    date: str = Field(..., description="ISO calendar date of the observation")
    source: str
    synthetic: bool = False

    @field_validator("market", "district", "state", mode="before")
    @classmethod
    def _clean_label(cls, v: Any, info):
        s = str(v).strip() if v is not None else ""
        if s.lower() in _UNKNOWN_LABELS:
            return _LABEL_DEFAULTS[info.field_name]
        return s

    @field_validator("trend", mode="before")
    @classmethod
    def _parse_trend(cls, v: Any):
        return Trend.parse(v)

    def dedup_key(self) -> Tuple[str, str, str, str]:
        return (self.commodity, self.market.lower(), self.district.lower(), self.date)


class DocumentMetadata(BaseModel):
    model_config = ConfigDict(frozen=True)

    source: str
    reliability: float = Field(0.8, ge=0.0, le=1.0)
    region: Optional[str] = None
    season: Optional[str] = None


class KnowledgeDocument(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    content: str = Field(..., min_length=1)
    category: str                       # dotted path, e.g. "crops.rice.planting"
    language: str                       # e.g. "hi-IN", "en-IN", "hi-Latn"
    embedding: Optional[List[float]] = None
    metadata: DocumentMetadata


class Location(BaseModel):
    city: Optional[str] = None
    state: Optional[str] = None

    @field_validator("city", "state", mode="before")
    @classmethod
    def _blank_to_none(cls, v: Any):
        if v is None:
            return None
        s = str(v).strip()
        return None if s.lower() in _UNKNOWN_LABELS else s

    @property
    def key(self) -> str:
        if not self.city and not self.state:
            return "anywhere"
        return f"{(self.state or '').lower()}|{(self.city or '').lower()}"

    @property
    def label(self) -> str:
        parts = [p for p in (self.city, self.state) if p]
        return ", ".join(parts) if parts else "India"

    def matches(self, quote: MarketQuote) -> bool:
        """True if the quote was observed in (or names) this location."""
        for want in (self.city, self.state):
            if not want:
                continue
            w = want.lower()
            if w == quote.state.lower() or w == quote.district.lower() or w in quote.market.lower():
                return True
        return False


class WeatherSnapshot(BaseModel):
    temperature: float                  # °C
    humidity: float                     # %
    description: str = ""
    wind_speed: float = 0.0             # km/h
    precipitation: float = 0.0          # mm, current hour
    source: str = "open-meteo"
