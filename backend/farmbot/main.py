import asyncio
import logging
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import FastAPI, Query
from fastapi.middleware.cors import CORSMiddleware

from farmbot import di
from farmbot.config import settings
from farmbot.http import init_http, close_http
from farmbot.models.domain import Location, MarketQuote
from farmbot.schemas import AskRequest, AskResponse
from farmbot.services.pipeline import answer
from farmbot.tools.commodity import query_commodities
from farmbot.utils.cache import cache, close_cache, init_cache

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
log = logging.getLogger("farmbot")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Cache sweeper, shared HTTP client, and knowledge embeddings in the background."""
    await init_cache()
    await init_http()
    di.get_knowledge_store()
    warm = asyncio.create_task(di.warm_up())
    yield
    warm.cancel()
    await close_http()
    await close_cache()


# Single FastAPI instance
app = FastAPI(title="FarmBot Advisory Engine", version="1.0.0", lifespan=lifespan)

# CORS middleware (the web app is served from another origin)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# API endpoints
@app.get("/")
async def root():
    return {"ok": True, "service": "FarmBot Advisory Engine", "version": app.version}

@app.get("/health")
async def health():
    return {
        "ok": True,
        "rag_topk": settings.RAG_TOPK,
        "default_language": settings.DEFAULT_LANGUAGE,
        "completion_timeout_sec": settings.COMPLETION_TIMEOUT_SEC,
        "knowledge": di.get_knowledge_store().stats(),
        "market_sources": [
            {"name": s.name, "priority": s.priority, "enabled": s.enabled}
            for s in di.get_aggregator().sources
        ],
        "cache": cache.stats(),
    }

@app.post("/ask", response_model=AskResponse)
async def ask(req: AskRequest):
    """
    Fan-out: knowledge retrieval + market quotes + weather in parallel,
    then one completion (or the rule-based fallback).
    """
    return await answer(req)

@app.get("/market-prices", response_model=List[MarketQuote])
async def market_prices(
    state: Optional[str] = None,
    city: Optional[str] = None,
    crop: str = Query("", description="Free text, any language: 'tamatar', 'गेहूं', 'onion'"),
    limit: int = Query(settings.MARKET_QUOTE_LIMIT, ge=1, le=100),
):
    return await di.get_aggregator().fetch_quotes(
        Location(city=city, state=state), query_commodities(crop), limit=limit,
    )
