# backend/farmbot/rag/generate.py
import time
import asyncio
import logging
from typing import Optional

from langchain_openai import ChatOpenAI
from langchain_core.messages import SystemMessage, HumanMessage

from farmbot.config import settings

log = logging.getLogger("farmbot.rag")

def t() -> float:
    return time.perf_counter()


class CompletionError(RuntimeError):
    """The completion service timed out, failed or returned nothing usable."""


def _llm(max_tokens: int, temperature: float, timeout: float) -> ChatOpenAI:
    return ChatOpenAI(
        model=settings.OPENAI_MODEL,
        api_key=settings.OPENAI_API_KEY,
        base_url=settings.OPENAI_BASE_URL or None,
        temperature=temperature,
        max_tokens=max_tokens,
        timeout=timeout,
        max_retries=0,
    )


async def complete(system_prompt: str, user_prompt: str,
                   max_tokens: Optional[int] = None,
                   temperature: Optional[float] = None,
                   timeout: Optional[float] = None) -> str:
    """One chat completion, bounded by `timeout` seconds end to end."""
    if not settings.OPENAI_API_KEY:
        raise CompletionError("OPENAI_API_KEY not set")
    start = t()
    timeout = timeout if timeout is not None else settings.COMPLETION_TIMEOUT_SEC
    llm = _llm(
        max_tokens or settings.COMPLETION_MAX_TOKENS,
        settings.COMPLETION_TEMPERATURE if temperature is None else temperature,
        timeout,
    )
    messages = [SystemMessage(content=system_prompt), HumanMessage(content=user_prompt)]
    try:
        resp = await asyncio.wait_for(llm.ainvoke(messages), timeout=timeout)
    except asyncio.TimeoutError as e:
        raise CompletionError(f"completion timed out after {timeout:.0f}s") from e
    except Exception as e:
        raise CompletionError(f"completion failed: {e}") from e

    content = getattr(resp, "content", "")
    text = content.strip() if isinstance(content, str) else ""
    if not text:
        raise CompletionError("completion returned no text")

    approx_tokens = (len(system_prompt) + len(user_prompt)) // 4
    log.info("⏱️  LLM completion: %dms (~%d prompt tokens)", round((t() - start) * 1000), approx_tokens)
    return text
