from typing import Optional, List, Dict, Any
from pydantic import BaseModel, Field, field_validator

from farmbot.models.domain import MarketQuote


# ---------- Request models ----------

class AskRequest(BaseModel):
    # User message
    text: str = Field(..., min_length=1, description="Farmer's question, typed or transcribed")
    lang: Optional[str] = Field(None, description="Language hint (e.g. 'hi-IN', 'en-IN'). If omitted, auto-detected.")

    # Where the farmer is; opaque strings, no geocoding required by the caller
    city: Optional[str] = None
    state: Optional[str] = None

    # Crops from the farmer's profile; merged with crops named in the text
    crops: List[str] = Field(default_factory=list)

    @field_validator("text")
    @classmethod
    def _not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("text must not be blank")
        return v.strip()


# ---------- Response models ----------

class Source(BaseModel):
    id: str
    category: str
    source: Optional[str] = None
    reliability: Optional[float] = None

class AskResponse(BaseModel):
    answer: str
    lang: str
    confidence: float = Field(..., ge=0.0, le=1.0)
    season: Optional[str] = None
    quotes: List[MarketQuote] = Field(default_factory=list)
    sources: List[Source] = Field(default_factory=list)   # knowledge snippets used
    used_fallback: bool = False
    timings_ms: Dict[str, Any] = Field(default_factory=dict)
