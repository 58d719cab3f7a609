import asyncio
import time
import logging
from typing import List, Optional
import datetime as dt

from farmbot import di
from farmbot.config import settings
from farmbot.schemas import AskRequest, AskResponse, Source
from farmbot.models.domain import KnowledgeDocument, Location, MarketQuote, WeatherSnapshot
from farmbot.tools.commodity import canonicalize, is_known, resolve
from farmbot.tools.lang import detect_lang
from farmbot.tools.weather_cached import weather_for
from farmbot.rag.generate import CompletionError, complete
from farmbot.services.context import (
    build_context, build_system_prompt, current_season, estimate_confidence, fallback_answer,
)
from farmbot.utils.cache import today_ist

log = logging.getLogger("farmbot.pipeline")

def t(): return time.perf_counter()


def commodities_for(req: AskRequest) -> List[str]:
    """
    Crops named in the question first, then the farmer's profile crops.
    A crop we cannot resolve stays as typed so the price lookup finds
    nothing for it rather than pricing something else.
    """
    resolved = resolve(req.text)
    keys = [k for k in resolved if is_known(k)]
    for crop in req.crops:
        key = canonicalize(crop)
        if is_known(key) and key not in keys:
            keys.append(key)
    return keys or resolved


# ---------- stage runners ----------
async def _run_rag(retriever, text: str, lang: str) -> List[KnowledgeDocument]:
    t0 = t()
    docs = await retriever.retrieve(text, lang, settings.RAG_TOPK)
    log.info("⏱️  Knowledge lookup: %dms", round((t() - t0) * 1000))
    return docs

async def _run_market(aggregator, location: Location, keys: List[str], day: dt.date) -> List[MarketQuote]:
    t0 = t()
    quotes = await aggregator.fetch_quotes(location, keys, settings.MARKET_QUOTE_LIMIT, day=day)
    log.info("⏱️  Price lookup: %dms", round((t() - t0) * 1000))
    return quotes

async def _run_weather(location: Location) -> Optional[WeatherSnapshot]:
    t0 = t()
    wx = await weather_for(location)
    log.info("⏱️  Weather lookup: %dms", round((t() - t0) * 1000))
    return wx


async def answer(req: AskRequest, retriever=None, aggregator=None,
                 today: Optional[dt.date] = None) -> AskResponse:
    """
    One farmer question in, one answer out.
    Retrieval, market and weather run concurrently; the completion call is
    the only serial step and has a rule-based fallback.
    """
    if not req.text or not req.text.strip():
        raise ValueError("empty question")

    t_start = t()
    timings = {}
    retriever = retriever or di.get_retriever()
    aggregator = aggregator or di.get_aggregator()
    today = today or today_ist()

    text = req.text.strip()
    lang = req.lang or detect_lang(text)
    location = Location(city=req.city, state=req.state)
    keys = commodities_for(req)

    # ----- fan-out -----
    t_fan = t()
    tasks = {
        "rag": asyncio.create_task(_run_rag(retriever, text, lang)),
        "market": asyncio.create_task(_run_market(aggregator, location, keys, today)),
        "weather": asyncio.create_task(_run_weather(location)),
    }

    docs: List[KnowledgeDocument] = []
    quotes: List[MarketQuote] = []
    weather: Optional[WeatherSnapshot] = None
    try:
        docs = await tasks["rag"]
    except Exception as e:
        log.error("Knowledge lookup failed: %s", e, exc_info=True)
    try:
        quotes = await tasks["market"]
    except Exception as e:
        log.error("Price lookup failed: %s", e, exc_info=True)
    try:
        weather = await tasks["weather"]
    except Exception as e:
        log.error("Weather lookup failed: %s", e, exc_info=True)
    timings["fan_out"] = round((t() - t_fan) * 1000)

    # ----- context + completion -----
    user_prompt = build_context(text, location, weather, docs, quotes, lang, today=today)
    system_prompt = build_system_prompt(lang, location)

    t_llm = t()
    used_fallback = False
    try:
        answer_text = await complete(system_prompt, user_prompt)
        confidence = estimate_confidence(answer_text)
    except CompletionError as e:
        log.warning("Completion unavailable (%s); using rule-based answer", e)
        fb = fallback_answer(text, lang, weather, quotes)
        answer_text, confidence, used_fallback = fb.text, fb.confidence, True
    timings["completion"] = round((t() - t_llm) * 1000)
    timings["total"] = round((t() - t_start) * 1000)
    log.info("⏱️  Total /ask: %dms (fallback=%s)", timings["total"], used_fallback)

    return AskResponse(
        answer=answer_text,
        lang=lang,
        confidence=confidence,
        season=current_season(today.month).name,
        quotes=quotes,
        sources=[
            Source(id=d.id, category=d.category, source=d.metadata.source, reliability=d.metadata.reliability)
            for d in docs
        ],
        used_fallback=used_fallback,
        timings_ms=timings,
    )
