# backend/farmbot/services/context.py
"""
Everything the completion model sees, assembled from situational facts
(season, location, weather), market quotes and retrieved knowledge. Also the
rule-based answers used when the model cannot be reached.
"""
import datetime as dt
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from farmbot.config import settings
from farmbot.market.aggregator import market_insights
from farmbot.models.domain import KnowledgeDocument, Location, MarketQuote, WeatherSnapshot
from farmbot.tools.lang import language_name, primary_subtag
from farmbot.utils.cache import today_ist


@dataclass(frozen=True)
class Season:
    key: str
    name: str
    period: str
    months: Tuple[int, ...]
    crops: Tuple[str, ...]


SEASONS = (
    Season("kharif", "Kharif (Monsoon Season)", "June - October", (6, 7, 8, 9, 10),
           ("rice", "cotton", "sugarcane", "maize", "jowar", "bajra")),
    Season("rabi", "Rabi (Winter Season)", "November - February", (11, 12, 1, 2),
           ("wheat", "barley", "gram", "peas", "mustard", "potato")),
    Season("zaid", "Zaid (Summer Season)", "March - May", (3, 4, 5),
           ("cucumber", "watermelon", "muskmelon", "green leafy vegetables")),
)


def current_season(month: int) -> Season:
    for s in SEASONS:
        if month in s.months:
            return s
    raise ValueError(f"month out of range: {month}")


# -----------------------------
# Prompt
# -----------------------------

def _fmt_price(p: float) -> str:
    return f"{p:,.0f}" if float(p).is_integer() else f"{p:,.2f}"

def render_quote(q: MarketQuote) -> str:
    return f"{q.commodity}: ₹{_fmt_price(q.price)}/{q.unit} at {q.market} ({q.trend.value})"

def weather_advisories(wx: WeatherSnapshot) -> List[str]:
    notes: List[str] = []
    if wx.temperature > 40:
        notes.append("Heatwave: irrigate early morning or evening, use shade nets and mulch.")
    elif wx.temperature > 35:
        notes.append("High heat: water more often and avoid midday field work.")
    elif wx.temperature < 10:
        notes.append("Cold: protect nurseries and young plants from frost.")
    if wx.humidity > 80:
        notes.append("High humidity: watch for fungal disease and avoid overhead irrigation.")
    if wx.precipitation > 0 or "rain" in wx.description.lower() or "drizzle" in wx.description.lower():
        notes.append("Rain: postpone spraying and irrigation, keep field drainage open.")
    if wx.wind_speed > 25:
        notes.append("Strong wind: avoid spraying pesticides today.")
    return notes


def build_context(query: str, location: Location, weather: Optional[WeatherSnapshot],
                  docs: Sequence[KnowledgeDocument], quotes: Sequence[MarketQuote],
                  language: str, today: Optional[dt.date] = None,
                  max_quotes: Optional[int] = None) -> str:
    """
    The user prompt, always in this order: question, location/language,
    season, weather, market, knowledge.
    """
    today = today or today_ist()
    season = current_season(today.month)
    max_quotes = settings.CONTEXT_MAX_QUOTES if max_quotes is None else max_quotes

    parts: List[str] = [f'FARMER\'S QUESTION: "{query}"']

    parts.append(
        f"LOCATION: {location.label}\n"
        f"LANGUAGE: {language_name(language)} ({language})"
    )

    parts.append(
        f"SEASON: {season.name}, {season.period}\n"
        f"Typical crops now: {', '.join(season.crops)}"
    )

    if weather is None:
        parts.append("WEATHER: not available")
    else:
        lines = [
            f"WEATHER: {weather.temperature:.0f}°C, humidity {weather.humidity:.0f}%, "
            f"{weather.description or 'no description'}, wind {weather.wind_speed:.0f} km/h, "
            f"rain {weather.precipitation:.1f} mm"
        ]
        lines += [f"- {n}" for n in weather_advisories(weather)]
        parts.append("\n".join(lines))

    shown = list(quotes)[:max_quotes]
    if not shown:
        parts.append("MARKET PRICES: not available")
    else:
        lines = ["MARKET PRICES:"] + [f"- {render_quote(q)}" for q in shown]
        insights = market_insights(shown, language)
        lines.append(f"Market trend: {insights['summary']}")
        if insights["synthetic"]:
            lines.append("(These are regional estimates, not live mandi rates. Say so if you quote them.)")
        parts.append("\n".join(lines))

    if docs:
        parts.append("RELEVANT AGRICULTURAL KNOWLEDGE:\n" + "\n".join(d.content for d in docs))
    else:
        parts.append("RELEVANT AGRICULTURAL KNOWLEDGE: none found")

    parts.append(
        "Answer the question directly, explain it using the weather and season, "
        "mention prices only if the farmer asked about selling or rates, and give clear next steps."
    )
    return "\n\n".join(parts)


def build_system_prompt(language: str, location: Location) -> str:
    return (
        "You are FarmBot, an agricultural advisor for smallholder farmers in India.\n"
        f"Always reply in {language_name(language)} ({language}).\n"
        "Give practical, low-cost advice in simple words. Consider the Indian crop seasons "
        "(Kharif, Rabi, Zaid) and the current weather. Use only the facts in the context "
        "for prices and weather; never invent numbers.\n"
        "Keep it short: a direct answer, the reason, then next steps or warnings.\n"
        f"Farmer location: {location.label}"
    )


# -----------------------------
# Confidence + fallback
# -----------------------------

_APOLOGIES = ("sorry", "apologi", "माफ", "क्षमा", "দুঃখিত", "மன்னிக்கவும்")

def estimate_confidence(text: str) -> float:
    """Coarse UI signal from answer length and hedging; not a probability."""
    body = (text or "").strip()
    low = body.lower()
    if len(body) > 100 and not any(a in low for a in _APOLOGIES):
        return 0.85
    if len(body) > 50:
        return 0.7
    return 0.5


@dataclass(frozen=True)
class FallbackAnswer:
    text: str
    language: str
    confidence: float
    intent: str


WATER_WORDS = ("water", "irrigat", "pani", "paani", "sinchai", "पानी", "सिंचाई", "পানি", "সেচ", "தண்ணீர்", "நீர்ப்பாசன")
PLANT_WORDS = ("plant", "sow", "buai", "bowai", "बुआई", "बोना", "रोपाई", "রোপণ", "நடவு")
PRICE_WORDS = ("price", "rate", "market", "mandi", "bhav", "daam", "भाव", "दाम", "मंडी", "দাম", "বাজার", "விலை", "சந்தை")


def _watering(lang: str, wx: Optional[WeatherSnapshot]) -> str:
    if wx is None:
        return {
            "en": "Check soil moisture by hand. If the top 5 cm is dry, water in the morning or evening.",
            "hi": "मिट्टी की नमी हाथ से जांचें। ऊपर की 5 सेमी मिट्टी सूखी हो तो सुबह या शाम पानी दें।",
            "bn": "হাত দিয়ে মাটির আর্দ্রতা দেখুন। উপরের মাটি শুকনো হলে সকাল বা সন্ধ্যায় পানি দিন।",
            "ta": "மண்ணின் ஈரப்பதத்தை கையால் சோதிக்கவும். மேல் மண் உலர்ந்திருந்தால் காலை அல்லது மாலை தண்ணீர் விடுங்கள்.",
        }[lang]
    h, temp = f"{wx.humidity:.0f}", f"{wx.temperature:.0f}"
    if wx.humidity > 70:
        return {
            "en": f"Soil has good moisture ({h}% humidity). Skip watering for now. Temperature is {temp}°C.",
            "hi": f"मिट्टी में अच्छी नमी है ({h}% नमी)। अभी पानी न दें। तापमान {temp}°C है।",
            "bn": f"মাটিতে ভাল আর্দ্রতা আছে ({h}% আর্দ্রতা)। এখন পানি দেবেন না।",
            "ta": f"மண்ணில் நல்ல ஈரப்பதம் உள்ளது ({h}% ஈரப்பதம்). இப்போது தண்ணீர் விட வேண்டாம்.",
        }[lang]
    return {
        "en": f"Soil appears dry. Water in the morning or evening. Temperature is {temp}°C.",
        "hi": f"मिट्टी सूखी लगती है। सुबह या शाम को पानी दें। तापमान {temp}°C है।",
        "bn": "মাটি শুকনো মনে হচ্ছে। সকাল বা সন্ধ্যায় পানি দিন।",
        "ta": "மண் உலர்ந்திருக்கிறது. காலை அல்லது மாலை தண்ணீர் விடுங்கள்.",
    }[lang]


def _market(lang: str, quotes: Sequence[MarketQuote]) -> str:
    if not quotes:
        return {
            "en": "Market information is not available right now. Please check with your local mandi.",
            "hi": "बाजार की जानकारी अभी उपलब्ध नहीं है। स्थानीय मंडी से पूछें।",
            "bn": "বাজারের তথ্য এখন পাওয়া যাচ্ছে না। স্থানীয় বাজারে জিজ্ঞাসা করুন।",
            "ta": "சந்தை தகவல் இப்போது கிடைக்கவில்லை. உள்ளூர் சந்தையில் விசாரிக்கவும்.",
        }[lang]
    listed = ", ".join(f"{q.commodity} ₹{_fmt_price(q.price)}/{q.unit}" for q in list(quotes)[:3])
    prefix = {
        "en": "Today's prices",
        "hi": "आज के भाव",
        "bn": "আজকের দাম",
        "ta": "இன்றைய விலை",
    }[lang]
    return f"{prefix}: {listed}"


_PLANTING = {
    "en": "Check the weather and soil before planting. Consult your local agriculture department.",
    "hi": "बुआई से पहले मौसम और मिट्टी की जांच करें। स्थानीय कृषि विभाग से सलाह लें।",
    "bn": "রোপণের আগে আবহাওয়া ও মাটি পরীক্ষা করুন।",
    "ta": "நடவுக்கு முன் வானிலை மற்றும் மண்ணை பரிசோதிக்கவும்.",
}

_GENERAL = {
    "en": "I am here to help with farming advice. Please ask a specific question about crops, watering, weather or markets.",
    "hi": "मैं आपकी मदद करने की कोशिश कर रहा हूं। कृपया फसल, पानी, मौसम, या बाजार के बारे में स्पष्ट सवाल पूछें।",
    "bn": "আমি আপনার কৃষি সমস্যার সমাধানে সাহায্য করতে এসেছি। ফসল, সেচ, আবহাওয়া বা বাজার সম্পর্কে প্রশ্ন করুন।",
    "ta": "நான் உங்கள் விவசாய பிரச்சனைகளுக்கு தீர்வு காண உதவ வந்துள்ளேன். பயிர், நீர்ப்பாசனம், வானிலை அல்லது சந்தை பற்றி கேட்கவும்.",
}


def fallback_answer(query: str, language: str, weather: Optional[WeatherSnapshot] = None,
                    quotes: Sequence[MarketQuote] = ()) -> FallbackAnswer:
    """Rule-based answer for when the completion service is unavailable."""
    lang = primary_subtag(language)
    if lang not in _GENERAL:
        lang = "hi"
    q = (query or "").lower()

    if any(w in q for w in WATER_WORDS):
        return FallbackAnswer(_watering(lang, weather), language, 0.7, "watering")
    if any(w in q for w in PLANT_WORDS):
        return FallbackAnswer(_PLANTING[lang], language, 0.7, "planting")
    if any(w in q for w in PRICE_WORDS):
        return FallbackAnswer(_market(lang, quotes), language, 0.6, "market")
    return FallbackAnswer(_GENERAL[lang], language, 0.4, "general")
