# backend/farmbot/config.py
import os
from dotenv import load_dotenv
from pathlib import Path

dotenv_path = Path(__file__).parents[2] / '.env'
load_dotenv(dotenv_path)


class Settings:
    # --- OpenAI-compatible completion + embeddings (OpenRouter works too) ---
    OPENAI_API_KEY: str = os.getenv("OPENAI_API_KEY", "")
    OPENAI_BASE_URL: str = os.getenv("OPENAI_BASE_URL", "")
    OPENAI_MODEL: str   = os.getenv("OPENAI_MODEL", "gpt-4o-mini")
    OPENAI_EMBED_MODEL: str = os.getenv("OPENAI_EMBED_MODEL", "text-embedding-3-small")

    COMPLETION_TIMEOUT_SEC: float = float(os.getenv("COMPLETION_TIMEOUT_SEC", "15"))
    COMPLETION_MAX_TOKENS: int    = int(os.getenv("COMPLETION_MAX_TOKENS", "600"))
    COMPLETION_TEMPERATURE: float = float(os.getenv("COMPLETION_TEMPERATURE", "0.7"))

    # --- Market providers ---
    DATA_GOV_IN_API_KEY: str = os.getenv("DATA_GOV_IN_API_KEY", "")
    # optional self-hosted relay, e.g. http://localhost:3001/api
    MARKET_RELAY_URL: str = os.getenv("MARKET_RELAY_URL", "")

    # --- Pipeline knobs ---
    RAG_TOPK: int = int(os.getenv("RAG_TOPK", "3"))
    DEFAULT_LANGUAGE: str = os.getenv("DEFAULT_LANGUAGE", "en-IN")
    MARKET_QUOTE_LIMIT: int = int(os.getenv("MARKET_QUOTE_LIMIT", "15"))
    CONTEXT_MAX_QUOTES: int = int(os.getenv("CONTEXT_MAX_QUOTES", "5"))

    # Cache
    MARKET_CACHE_TTL_SEC: int  = int(os.getenv("MARKET_CACHE_TTL_SEC", "3600"))
    WEATHER_CACHE_TTL_SEC: int = int(os.getenv("WEATHER_CACHE_TTL_SEC", str(6 * 3600)))
    CACHE_SWEEP_SEC: int = 3600

    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

settings = Settings()
