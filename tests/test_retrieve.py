import pytest

from farmbot.models.domain import DocumentMetadata, KnowledgeDocument
from farmbot.rag.index import KnowledgeStore
from farmbot.rag.retrieve import KnowledgeRetriever, cosine, keyword_tokens

VOCAB = ("water", "irrigat", "wheat", "rice", "cotton", "pest", "neem", "soil", "price")


class BagOfWordsEmbedder:
    """Deterministic stand-in for the embedding service."""

    def __init__(self):
        self.calls = 0

    async def embed(self, text):
        self.calls += 1
        low = text.lower()
        return [float(low.count(w)) for w in VOCAB]


class FailingEmbedder:
    async def embed(self, text):
        raise ConnectionError("embedding service unreachable")


def _doc(id_, content, language="en-IN", embedding=None):
    return KnowledgeDocument(
        id=id_, content=content, category="test." + id_, language=language, embedding=embedding,
        metadata=DocumentMetadata(source="test", reliability=0.9),
    )


class TestKeywordFallback:
    @pytest.mark.asyncio
    async def test_hinglish_query_when_embeddings_fail(self, store):
        await store.embed(BagOfWordsEmbedder())
        assert store.is_embedded
        retriever = KnowledgeRetriever(store, FailingEmbedder())
        docs = await retriever.retrieve("pani kab dein", "hi", k=3)
        assert docs
        assert any("pani" in d.content.lower() or "dein" in d.content.lower() for d in docs)
        assert all(d.language.startswith(("hi", "en")) for d in docs)

    @pytest.mark.asyncio
    async def test_without_embedder(self, store):
        docs = await KnowledgeRetriever(store).retrieve("neem oil for aphids", "en-IN", k=2)
        assert len(docs) == 2
        assert "aphids" in docs[0].content.lower()

    @pytest.mark.asyncio
    async def test_no_usable_tokens(self, store):
        assert await KnowledgeRetriever(store).retrieve("is it ok", "en-IN") == []

    @pytest.mark.asyncio
    async def test_no_overlap(self, store):
        assert await KnowledgeRetriever(store).retrieve("blockchain quantum", "en-IN") == []

    @pytest.mark.asyncio
    async def test_language_eligibility(self, store):
        docs = await KnowledgeRetriever(store).retrieve("neem oil spray", "ta-IN", k=10)
        assert docs
        assert {d.language for d in docs} == {"en-IN"}

    def test_tokens(self):
        assert keyword_tokens("Pani kab dein?") == ["pani", "kab", "dein?"]
        assert keyword_tokens("is it ok") == []


class TestSimilarity:
    @pytest.mark.asyncio
    async def test_ranks_by_cosine(self, store):
        emb = BagOfWordsEmbedder()
        await store.embed(emb)
        docs = await KnowledgeRetriever(store, emb).retrieve("when to irrigate wheat", "en-IN", k=3)
        assert docs[0].id == "crops.wheat.irrigation.en-IN"
        assert len(docs) == 3

    @pytest.mark.asyncio
    async def test_docs_without_embedding_are_skipped(self):
        store = KnowledgeStore([
            _doc("a", "neem oil against pests", embedding=[0.0, 0.0, 0.0, 0.0, 0.0, 1.0, 1.0, 0.0, 0.0]),
            _doc("b", "neem cake for pests"),
        ])
        docs = await KnowledgeRetriever(store, BagOfWordsEmbedder()).retrieve("neem pest", "en-IN", k=5)
        assert [d.id for d in docs] == ["a"]

    @pytest.mark.asyncio
    async def test_retrieval_does_not_mutate_store(self, store):
        emb = BagOfWordsEmbedder()
        await store.embed(emb)
        before = store.documents
        await KnowledgeRetriever(store, emb).retrieve("rice pest", "hi-IN")
        await KnowledgeRetriever(store, FailingEmbedder()).retrieve("rice pest", "hi-IN")
        assert store.documents is before


def test_cosine():
    assert cosine([1, 0], [1, 0]) == pytest.approx(1.0)
    assert cosine([1, 0], [0, 1]) == pytest.approx(0.0)
    assert cosine([0, 0], [1, 1]) == 0.0
    assert cosine([1, 2, 3], [1, 2]) == 0.0
