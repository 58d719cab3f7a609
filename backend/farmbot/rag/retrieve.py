# backend/farmbot/rag/retrieve.py
import time
import logging
from typing import List, Optional, Sequence, Tuple

import numpy as np

from farmbot.config import settings
from farmbot.models.domain import KnowledgeDocument
from farmbot.tools.lang import same_language
from .index import KnowledgeStore

log = logging.getLogger("farmbot.rag")

def t() -> float:
    return time.perf_counter()


def cosine(a: Sequence[float], b: Sequence[float]) -> float:
    va = np.asarray(a, dtype=float)
    vb = np.asarray(b, dtype=float)
    if va.shape != vb.shape:
        return 0.0
    denom = float(np.linalg.norm(va) * np.linalg.norm(vb))
    if denom == 0.0:
        return 0.0
    return float(np.dot(va, vb) / denom)


def keyword_tokens(query: str) -> List[str]:
    return [tok for tok in (query or "").lower().split() if len(tok) > 2]


class KnowledgeRetriever:
    """
    Top-k documents for a question. Uses embedding similarity when the store
    has been embedded and the embedder answers, keyword overlap otherwise.
    Never mutates the store.
    """

    def __init__(self, store: KnowledgeStore, embedder=None, default_language: Optional[str] = None):
        self.store = store
        self.embedder = embedder
        self.default_language = default_language or settings.DEFAULT_LANGUAGE

    def _eligible(self, language: str) -> List[KnowledgeDocument]:
        return [d for d in self.store.documents
                if same_language(d.language, language) or same_language(d.language, self.default_language)]

    async def retrieve(self, query: str, language: str, k: int = 3) -> List[KnowledgeDocument]:
        start = t()
        k = max(1, int(k))
        docs = self._eligible(language)
        mode = "keyword"
        out: List[KnowledgeDocument] = []

        if self.embedder is not None and self.store.is_embedded:
            try:
                out = await self._by_similarity(query, docs, k)
                mode = "similarity"
            except Exception as e:
                log.warning("Embedding lookup failed (%s); falling back to keyword match", e)
                out = []
        if not out:
            mode = "keyword"
            out = self._by_keywords(query, docs, k)

        log.info("⏱️  RAG retrieve: %dms (%d results, %s)", round((t() - start) * 1000), len(out), mode)
        return out

    async def _by_similarity(self, query: str, docs: Sequence[KnowledgeDocument], k: int) -> List[KnowledgeDocument]:
        qvec = await self.embedder.embed(query)
        scored: List[Tuple[float, KnowledgeDocument]] = [
            (cosine(qvec, d.embedding), d) for d in docs if d.embedding
        ]
        scored.sort(key=lambda p: p[0], reverse=True)
        return [d for _, d in scored[:k]]

    @staticmethod
    def _by_keywords(query: str, docs: Sequence[KnowledgeDocument], k: int) -> List[KnowledgeDocument]:
        tokens = keyword_tokens(query)
        if not tokens:
            return []
        scored: List[Tuple[float, KnowledgeDocument]] = []
        for d in docs:
            content = d.content.lower()
            hits = sum(1 for tok in tokens if tok in content)
            if hits:
                scored.append((hits / len(tokens), d))
        scored.sort(key=lambda p: p[0], reverse=True)
        return [d for _, d in scored[:k]]
