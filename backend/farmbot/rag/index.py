# backend/farmbot/rag/index.py
import json
import time
import asyncio
import logging
from functools import lru_cache
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple

from langchain_openai import OpenAIEmbeddings

from farmbot.config import settings
from farmbot.models.domain import DocumentMetadata, KnowledgeDocument
from farmbot.utils.cache import SimpleTTLCache

log = logging.getLogger("farmbot.rag")

def t() -> float:
    return time.perf_counter()

HERE = Path(__file__).resolve()
KNOWLEDGE_PATH = HERE.parent / "knowledge_base.json"


def _freeze(obj: Any) -> Any:
    if isinstance(obj, dict):
        return MappingProxyType({k: _freeze(v) for k, v in obj.items()})
    return obj


@lru_cache(maxsize=None)
def load_knowledge_base(path: Path = KNOWLEDGE_PATH) -> Mapping[str, Any]:
    """Read-only view of the knowledge table; read from disk once per process."""
    with open(path, encoding="utf-8") as f:
        return _freeze(json.load(f))


def _walk(node: Mapping[str, Any], path: Tuple[str, ...]) -> Iterator[Tuple[Tuple[str, ...], str, str]]:
    """Yield (path, language, text) for every leaf; a leaf maps language -> str."""
    for k, v in node.items():
        if isinstance(v, str):
            yield path, k, v
        else:
            yield from _walk(v, path + (k,))


def chunk_knowledge_base(table: Mapping[str, Any]) -> List[KnowledgeDocument]:
    """
    One KnowledgeDocument per (topic, aspect, language).
    Pure: same table in, same documents (and ids) out.
    """
    sources = table.get("sources", {})
    docs: List[KnowledgeDocument] = []
    for topic, aspects in table.get("topics", {}).items():
        src = sources.get(topic, {})
        meta = DocumentMetadata(
            source=src.get("source", topic),
            reliability=src.get("reliability", 0.8),
            region=src.get("region"),
        )
        for path, language, text in _walk(aspects, (topic,)):
            text = text.strip()
            if not text:
                continue
            category = ".".join(path)
            docs.append(KnowledgeDocument(
                id=f"{category}.{language}",
                content=text,
                category=category,
                language=language,
                metadata=meta,
            ))
    return docs


# -----------------------------
# Embeddings
# -----------------------------
class OpenAIEmbedder:
    """Memoized text -> vector via langchain's OpenAIEmbeddings."""

    def __init__(self, model: Optional[str] = None, api_key: Optional[str] = None,
                 base_url: Optional[str] = None):
        self._emb = OpenAIEmbeddings(
            model=model or settings.OPENAI_EMBED_MODEL,
            api_key=api_key or settings.OPENAI_API_KEY,
            base_url=(base_url or settings.OPENAI_BASE_URL) or None,
        )
        # query/doc text -> vector; vectors for a fixed model never go stale
        self._cache = SimpleTTLCache(default_ttl=None)

    async def embed(self, text: str) -> List[float]:
        hit = self._cache.get(text)
        if hit is not None:
            return hit
        vec = await self._emb.aembed_query(text)
        self._cache.set(text, vec)
        return vec


class KnowledgeStore:
    """
    Immutable document set. Embedding happens once at start-up and swaps in
    a new tuple; readers never see a half-embedded document.
    """

    def __init__(self, documents: Sequence[KnowledgeDocument]):
        self._docs: Tuple[KnowledgeDocument, ...] = tuple(documents)

    @classmethod
    def from_file(cls, path: Path = KNOWLEDGE_PATH) -> "KnowledgeStore":
        return cls(chunk_knowledge_base(load_knowledge_base(path)))

    @property
    def documents(self) -> Tuple[KnowledgeDocument, ...]:
        return self._docs

    @property
    def is_embedded(self) -> bool:
        return any(d.embedding for d in self._docs)

    async def embed(self, embedder, concurrency: int = 8) -> int:
        """Attach embeddings; documents whose call fails simply stay without one."""
        start = t()
        sem = asyncio.Semaphore(concurrency)

        async def _one(doc: KnowledgeDocument) -> KnowledgeDocument:
            if doc.embedding:
                return doc
            async with sem:
                try:
                    vec = await embedder.embed(doc.content)
                except Exception as e:
                    log.warning("Embedding failed for %s: %s", doc.id, e)
                    return doc
            return doc.model_copy(update={"embedding": list(vec)})

        self._docs = tuple(await asyncio.gather(*(_one(d) for d in self._docs)))
        n = sum(1 for d in self._docs if d.embedding)
        log.info("⏱️  Embedded %d/%d knowledge docs in %dms", n, len(self._docs), round((t() - start) * 1000))
        return n

    def stats(self) -> Dict[str, Any]:
        by_cat: Dict[str, int] = {}
        by_lang: Dict[str, int] = {}
        for d in self._docs:
            topic = d.category.split(".", 1)[0]
            by_cat[topic] = by_cat.get(topic, 0) + 1
            by_lang[d.language] = by_lang.get(d.language, 0) + 1
        return {
            "total_documents": len(self._docs),
            "embedded": sum(1 for d in self._docs if d.embedding),
            "categories": by_cat,
            "languages": by_lang,
        }


if __name__ == "__main__":
    import argparse
    from farmbot.rag.retrieve import KnowledgeRetriever

    ap = argparse.ArgumentParser(description="Inspect / query the knowledge store")
    ap.add_argument("--ask", default=None, help="Run a retrieval for this question")
    ap.add_argument("--lang", default=settings.DEFAULT_LANGUAGE)
    ap.add_argument("--embed", action="store_true", help="Embed documents first (needs OPENAI_API_KEY)")
    args = ap.parse_args()

    logging.basicConfig(level=settings.LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    async def _run():
        store = KnowledgeStore.from_file()
        embedder = OpenAIEmbedder() if args.embed else None
        if embedder is not None:
            await store.embed(embedder)
        print(json.dumps(store.stats(), indent=2, ensure_ascii=False))
        if args.ask:
            docs = await KnowledgeRetriever(store, embedder).retrieve(args.ask, args.lang, settings.RAG_TOPK)
            for d in docs:
                print(f"- [{d.category} / {d.language}] {d.content}")

    asyncio.run(_run())
