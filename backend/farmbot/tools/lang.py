from typing import Optional

from farmbot.config import settings

# --- Script ranges we care about (Unicode blocks) ---
# NOTE: one "primary" language per script. Devanagari is treated as Hindi
# (Marathi users pick mr-IN explicitly in the app).
SCRIPT_LANG_MAP = {
    "devanagari": ("hi-IN", "ऀ", "ॿ"),
    "gurmukhi":   ("pa-IN", "਀", "੿"),
    "gujarati":   ("gu-IN", "઀", "૿"),
    "bengali":    ("bn-IN", "ঀ", "৿"),
    "oriya":      ("or-IN", "଀", "୿"),
    "tamil":      ("ta-IN", "஀", "௿"),
    "telugu":     ("te-IN", "ఀ", "౿"),
    "kannada":    ("kn-IN", "ಀ", "೿"),
    "malayalam":  ("ml-IN", "ഀ", "ൿ"),
}

HINGLISH_HINT_WORDS = {
    "kya", "kaise", "nahi", "nahiin", "nhi", "haan", "bilkul", "kab", "dein",
    "pani", "paani", "beej", "khad", "daam", "bhav", "mandi", "fasal", "bima",
    "sarkari", "yojana", "krishi", "kharif", "rabi", "bigha", "mausam", "barish",
}

LANGUAGE_NAMES = {
    "en": "English",
    "hi": "Hindi",
    "mr": "Marathi",
    "pa": "Punjabi",
    "gu": "Gujarati",
    "bn": "Bengali",
    "or": "Odia",
    "ta": "Tamil",
    "te": "Telugu",
    "kn": "Kannada",
    "ml": "Malayalam",
}

def _dominant_script(text: str) -> Optional[str]:
    counts = {}
    for name, (_code, start, end) in SCRIPT_LANG_MAP.items():
        lo, hi = ord(start), ord(end)
        counts[name] = sum(1 for ch in text if lo <= ord(ch) <= hi)
    # Latin letters count separately to decide en vs Hinglish
    latin_count = sum(1 for ch in text if ("A" <= ch <= "Z") or ("a" <= ch <= "z"))
    best_script = max(counts, key=lambda k: counts[k]) if counts else None
    if best_script and counts[best_script] >= max(2, int(0.2 * len(text))):
        return best_script
    if latin_count >= max(2, int(0.2 * len(text))):
        return "latin"
    return None

def detect_lang(text: str) -> str:
    """
    Returns a tag like 'hi-IN', 'ta-IN', 'en-IN', or 'hi-Latn' for Hinglish.
    Very lightweight heuristic; the app usually sends an explicit hint anyway.
    """
    if not text or text.strip() == "":
        return settings.DEFAULT_LANGUAGE
    script = _dominant_script(text)
    if script and script != "latin":
        return SCRIPT_LANG_MAP[script][0]
    tokens = {t.strip(".,!?;:()[]{}'\"").lower() for t in text.split()}
    if tokens & HINGLISH_HINT_WORDS:
        return "hi-Latn"
    return settings.DEFAULT_LANGUAGE

def primary_subtag(tag: Optional[str]) -> str:
    """'hi-IN' -> 'hi', 'hi-Latn' -> 'hi', 'EN' -> 'en'."""
    return (tag or "").replace("_", "-").split("-")[0].strip().lower()

def same_language(a: Optional[str], b: Optional[str]) -> bool:
    pa, pb = primary_subtag(a), primary_subtag(b)
    return bool(pa) and pa == pb

def language_name(tag: Optional[str]) -> str:
    name = LANGUAGE_NAMES.get(primary_subtag(tag), "English")
    if tag and tag.endswith("Latn") and name != "English":
        return f"{name} (romanized)"
    return name
