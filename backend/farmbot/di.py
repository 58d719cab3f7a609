"""
Dependency container: builds the long-lived objects once and hands them to
routes and the pipeline.
"""
import logging
from typing import Optional

from farmbot.config import settings
from farmbot.market.aggregator import SourceAggregator
from farmbot.market.sources import default_sources
from farmbot.rag.index import KnowledgeStore, OpenAIEmbedder
from farmbot.rag.retrieve import KnowledgeRetriever

log = logging.getLogger("farmbot.di")

# Singletons - created once and reused
_store: Optional[KnowledgeStore] = None
_embedder: Optional[OpenAIEmbedder] = None
_retriever: Optional[KnowledgeRetriever] = None
_aggregator: Optional[SourceAggregator] = None

def get_knowledge_store() -> KnowledgeStore:
    global _store
    if _store is None:
        _store = KnowledgeStore.from_file()
    return _store

def get_embedder() -> Optional[OpenAIEmbedder]:
    """None when no API key is configured; retrieval then runs on keywords."""
    global _embedder
    if _embedder is None and settings.OPENAI_API_KEY:
        _embedder = OpenAIEmbedder()
    return _embedder

def get_retriever() -> KnowledgeRetriever:
    global _retriever
    if _retriever is None:
        _retriever = KnowledgeRetriever(get_knowledge_store(), get_embedder())
    return _retriever

def get_aggregator() -> SourceAggregator:
    global _aggregator
    if _aggregator is None:
        _aggregator = SourceAggregator(default_sources())
        enabled = [s.name for s in _aggregator.sources if s.enabled]
        log.info("Market sources enabled: %s", ", ".join(enabled) or "none (synthetic only)")
    return _aggregator

async def warm_up() -> None:
    """Embed the knowledge store once; failures leave keyword retrieval in place."""
    embedder = get_embedder()
    if embedder is None:
        log.info("No embedding provider configured; keyword retrieval only")
        return
    await get_knowledge_store().embed(embedder)
