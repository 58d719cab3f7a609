# backend/farmbot/tools/commodity.py
"""
Commodity name resolver.

Farmers type (or speak) crop names in English, Hindi, Hinglish and a fair
amount of creative spelling: "gehu", "gehun", "गेहूं" and "wheat" must all land
on the same canonical key before anything can be looked up in a mandi feed.

    resolve("tamatar aur pyaz ka bhav")  -> ["tomato", "onion"]
    resolve("xyzxyz")                    -> ["xyzxyz"]
"""
import re
from typing import Dict, List, Optional, Tuple

# canonical key -> (English label, Hindi label, spellings)
COMMODITIES: Dict[str, Tuple[str, str, Tuple[str, ...]]] = {
    "wheat":     ("Wheat", "गेहूं", ("gehu", "gehun", "gehuu", "geyhu", "gahu", "गेहूँ", "गेहूं", "गेहू")),
    "rice":      ("Rice", "धान", ("chawal", "chaawal", "chaval", "dhan", "dhaan", "paddy", "धान", "चावल")),
    "tomato":    ("Tomato", "टमाटर", ("tamatar", "tamaatar", "tamater", "tomatoes", "टमाटर")),
    "onion":     ("Onion", "प्याज", ("pyaz", "pyaaz", "pyaj", "kanda", "onions", "प्याज", "प्याज़")),
    "potato":    ("Potato", "आलू", ("aloo", "aaloo", "alu", "potatoes", "आलू")),
    "maize":     ("Maize", "मक्का", ("makka", "maaka", "makki", "corn", "मक्का")),
    "cotton":    ("Cotton", "कपास", ("kapas", "kapaas", "कपास")),
    "sugarcane": ("Sugarcane", "गन्ना", ("ganna", "gana", "गन्ना")),
    "gram":      ("Gram", "चना", ("chana", "chanaa", "chickpea", "bengal_gram", "चना")),
    "arhar":     ("Arhar (Tur)", "अरहर", ("arhar", "toor", "tur", "pigeon_pea", "अरहर", "तुअर")),
    "moong":     ("Green Gram (Moong)", "मूंग", ("moong", "mung", "green_gram", "मूंग")),
    "urad":      ("Black Gram (Urad)", "उड़द", ("urad", "udad", "black_gram", "उड़द", "उड़द")),
    "mustard":   ("Mustard", "सरसों", ("sarson", "sarso", "rai", "सरसों", "सरसो")),
    "sesame":    ("Sesamum (Sesame, Gingelly, Til)", "तिल", ("til", "gingelly", "sesamum", "तिल")),
    "soybean":   ("Soyabean", "सोयाबीन", ("soya", "soyabean", "soy", "सोयाबीन")),
    "groundnut": ("Groundnut", "मूंगफली", ("moongfali", "mungfali", "peanut", "peanuts", "मूंगफली")),
    "turmeric":  ("Turmeric", "हल्दी", ("haldi", "haladi", "हल्दी")),
    "garlic":    ("Garlic", "लहसुन", ("lahsun", "lasun", "lehsun", "लहसुन")),
    "ginger":    ("Ginger(Green)", "अदरक", ("adrak", "adarak", "अदरक")),
    "chilli":    ("Green Chilli", "मिर्च", ("mirch", "mirchi", "chili", "chilly", "green_chilli",
                                            "hari_mirch", "मिर्च", "मिर्ची")),
    "bajra":     ("Bajra(Pearl Millet/Cumbu)", "बाजरा", ("bajara", "pearl_millet", "बाजरा")),
    "jowar":     ("Jowar(Sorghum)", "ज्वार", ("jwar", "juar", "sorghum", "ज्वार")),
    "coriander": ("Coriander(Leaves)", "धनिया", ("dhania", "dhaniya", "धनिया")),
    "fenugreek": ("Methi(Leaves)", "मेथी", ("methi", "मेथी")),
}

# Multi-word phrases collapsed to a single token before splitting
PHRASES: Dict[str, str] = {
    "green chilli": "green_chilli",
    "green chili": "green_chilli",
    "hari mirch": "hari_mirch",
    "bengal gram": "bengal_gram",
    "green gram": "green_gram",
    "black gram": "black_gram",
    "pigeon pea": "pigeon_pea",
    "pearl millet": "pearl_millet",
}

# Filler phrases that carry no commodity information
STOP_PHRASES = ("ke bhao", "ka bhao", "ke bhav", "ka bhav", "ki keemat", "ki kimat", "ka rate", "ke rate")

STOPWORDS = {
    # connectors
    "और", "aur", "ki", "ka", "ke", "with", "or", "and", "also", "plus", "the", "a", "an",
    "is", "are", "what", "how", "much", "tell", "me", "about", "show", "of", "for", "in",
    "to", "my", "i", "do", "does", "can", "should", "when", "where", "which", "why", "will",
    "today", "now", "please", "best", "good", "time", "give",
    # price words
    "price", "prices", "pricing", "rate", "rates", "bhav", "bhao", "daam", "dam", "keemat",
    "kimat", "market", "mandi", "भाव", "दाम", "कीमत", "मंडी", "रेट",
    # Hindi / Hinglish question fillers
    "kya", "hai", "kab", "kaise", "kitna", "kitne", "mein", "me", "ko", "se", "dein", "de",
    "batao", "bataiye", "dekhiye", "aaj", "abhi", "kare", "karein", "karna",
    "क्या", "है", "का", "की", "के", "में", "आज", "कब", "कैसे", "बताओ", "बताइए",
    # farming vocabulary that is not a commodity
    "pani", "paani", "water", "पानी", "khad", "beej", "seed", "seeds", "fasal", "crop", "crops",
    "mitti", "soil", "rain", "barish", "mausam", "weather", "kheti", "dal", "daal",
    # English advice vocabulary
    "on", "at", "from", "it", "this", "that", "get", "use", "need", "any", "after", "before",
    "grow", "growing", "grown", "buy", "buying", "sell", "selling", "sold", "plant", "plants",
    "planting", "sow", "sowing", "harvest", "harvesting", "field", "fields", "farm", "farming",
    "farmer", "land", "dry", "wet", "hot", "cold", "tip", "tips", "advice", "help", "leaf",
    "leaves", "yellow", "brown", "spots", "disease", "diseases", "pest", "pests", "insect",
    "insects", "spray", "spraying", "fertilizer", "fertiliser", "manure", "compost", "urea",
    "dap", "npk", "pesticide", "irrigate", "irrigation", "yield", "acre", "hectare", "week",
    "month", "season", "storage", "store", "loan", "scheme", "insurance", "subsidy",
    # Hinglish advice vocabulary
    "ugana", "ugaye", "ugayein", "ugate", "bechna", "bechein", "beche", "kharidna", "khareedna",
    "kharide", "lagana", "lagayein", "lagaye", "bona", "boye", "bowai", "buai", "katai", "kataai",
    "kaatna", "khet", "patte", "patta", "peele", "peela", "keet", "keede", "rog", "bimari",
    "dawai", "dawa", "chhidkav", "khaad", "urvarak", "sukha", "sookha", "garmi", "sardi", "thand",
    "daalein", "daalna", "dalna", "daale", "dalein", "kitni", "chahiye", "hota", "hoti", "karo",
    "liye", "wala", "wali", "tak", "par", "ya",
    "उगाना", "बेचना", "खेत", "पत्ते", "पीले", "खाद", "यूरिया", "कीट", "रोग", "दवा", "बुआई",
    "कटाई", "डालें", "करें", "चाहिए",
}

_PUNCT_RE = re.compile(r"[.,;:!?\"'`~()\[\]{}<>/\\|@#$%^&*+=_\-।॥]")
_SPACE_RE = re.compile(r"\s+")

# spelling/label -> canonical key
SYNONYMS: Dict[str, str] = {}
for _key, (_en, _hi, _spellings) in COMMODITIES.items():
    SYNONYMS[_key] = _key
    SYNONYMS[_hi] = _key
    for _s in _spellings:
        SYNONYMS[_s.lower()] = _key

_MIN_CONTAINMENT = 4


def levenshtein(a: str, b: str) -> int:
    if a == b:
        return 0
    if not a:
        return len(b)
    if not b:
        return len(a)
    prev = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        cur = [i]
        for j, cb in enumerate(b, start=1):
            cur.append(min(
                prev[j] + 1,                # deletion
                cur[j - 1] + 1,             # insertion
                prev[j - 1] + (ca != cb),   # substitution
            ))
        prev = cur
    return prev[-1]


def _normalize(text: str) -> str:
    s = (text or "").lower()
    # phrases first: the punctuation pass would eat the underscores we join them with
    s = _SPACE_RE.sub(" ", _PUNCT_RE.sub(" ", s)).strip()
    for phrase in STOP_PHRASES:
        s = s.replace(phrase, " ")
    for phrase, joined in PHRASES.items():
        s = s.replace(phrase, joined)
    return _SPACE_RE.sub(" ", s).strip()


def _tokens(text: str) -> List[str]:
    return [tok for tok in _normalize(text).split(" ")
            if len(tok) > 1 and tok not in STOPWORDS]


def _match_token(token: str, fuzzy: bool = True) -> Optional[str]:
    # (a) exact
    hit = SYNONYMS.get(token)
    if hit:
        return hit

    # (b) containment, either direction; very short keys only match exactly
    for syn, key in SYNONYMS.items():
        shorter = min(len(syn), len(token))
        if shorter >= _MIN_CONTAINMENT and (syn in token or token in syn):
            return key

    if not fuzzy:
        return None

    # (c) closest key within edit distance max(2, len(key) // 3)
    best_key, best_syn, best_dist = None, "", None
    for syn, key in SYNONYMS.items():
        d = levenshtein(token, syn)
        if best_dist is None or d < best_dist:
            best_key, best_syn, best_dist = key, syn, d
    if best_key is not None and best_dist <= max(2, len(best_syn) // 3):
        return best_key
    return None


def resolve(text: str) -> List[str]:
    """
    Free text -> ordered, de-duplicated commodity keys.
    Tokens that resolve to nothing are passed through unchanged.
    """
    out: List[str] = []
    seen = set()
    for tok in _tokens(text):
        key = _match_token(tok) or tok
        if key not in seen:
            seen.add(key)
            out.append(key)
    return out


def is_known(key: Optional[str]) -> bool:
    return bool(key) and key in COMMODITIES


def known_commodities(text: str) -> List[str]:
    """Only the tokens that resolved to a commodity we know."""
    return [k for k in resolve(text) if is_known(k)]


def query_commodities(text: str) -> List[str]:
    """
    Commodity filter for a price lookup. Known keys when any resolve;
    otherwise the unresolved tokens as typed, so an unknown crop filters
    the quotes down to nothing instead of lifting the filter.
    """
    return known_commodities(text) or resolve(text)


def canonicalize(name: Optional[str]) -> str:
    """
    Provider label -> canonical key, e.g. 'Paddy(Dhan)(Common)' -> 'rice'.
    Falls back to the cleaned lower-case label when nothing matches.
    """
    cleaned = _normalize(name or "")
    if not cleaned:
        return ""
    whole = SYNONYMS.get(cleaned)
    if whole:
        return whole
    for tok in cleaned.split(" "):
        if len(tok) <= 1:
            continue
        key = _match_token(tok, fuzzy=False)
        if key:
            return key
    return cleaned


def display_name(key: str, language: str = "en") -> str:
    entry = COMMODITIES.get(key)
    if not entry:
        return key
    en, hi, _ = entry
    return hi if language.lower().startswith("hi") and not language.endswith("Latn") else en.split("(")[0].strip()


def api_name(key: str) -> str:
    """Commodity label as data.gov.in spells it (used in query filters)."""
    entry = COMMODITIES.get(key)
    return entry[0] if entry else key.title()
