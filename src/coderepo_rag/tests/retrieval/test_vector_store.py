import logging
from types import SimpleNamespace

import pytest

from coderepo_rag.common.errors import IndexBackendError
from coderepo_rag.common.schemas import CodeChunk, ScoredChunk
from coderepo_rag.retrieval.lexical_store import LexicalIndexStore
from coderepo_rag.retrieval.vector_store import (
    FallbackVectorStore,
    QdrantIndexStore,
    create_vector_store,
)

REPO = "https://github.com/acme/shop"


def _chunk(content: str, idx: int = 0, path: str = "src/Login.java", **metadata) -> CodeChunk:
    return CodeChunk(content=content, file_path=path, repository_url=REPO, chunk_index=idx, metadata=metadata)


class RecordingSemanticStore:
    """Semantic store stub that records calls and returns canned hits."""

    def __init__(self, hits=None):
        self.hits = hits or []
        self.added = []
        self.deleted = []
        self.searches = []

    def add(self, chunks):
        self.added.extend(chunks)

    def search(self, query, repository_url=None, max_results=5):
        self.searches.append((query, repository_url, max_results))
        return list(self.hits)[:max_results]

    def delete_by_repository(self, repository_url):
        self.deleted.append(repository_url)


class FailingSemanticStore:
    """Semantic store stub whose every operation fails like an unreachable backend."""

    def add(self, chunks):
        raise IndexBackendError("connection refused")

    def search(self, query, repository_url=None, max_results=5):
        raise IndexBackendError("connection refused")

    def delete_by_repository(self, repository_url):
        raise IndexBackendError("connection refused")


def test_lexical_only_mode_answers_from_keyword_index():
    """
    Without a semantic store every search is answered lexically.
    """
    store = FallbackVectorStore()
    store.add([_chunk("class Foo { login() {} }"), _chunk("unrelated", idx=1)])

    hits = store.search("login")

    assert store.semantic_enabled is False
    assert [h.chunk.content for h in hits] == ["class Foo { login() {} }"]


def test_semantic_search_preprocesses_query_and_widens_candidates():
    """
    Semantic searches use the preprocessed query and fetch
    max_results * candidate_multiplier candidates.
    """
    semantic = RecordingSemanticStore(hits=[ScoredChunk(_chunk("a"), 0.9)])
    store = FallbackVectorStore(semantic=semantic)
    store.add([_chunk("a")])

    hits = store.search("where is the auth ctrl", repository_url=REPO, max_results=3)

    assert semantic.searches == [("authentication controller", REPO, 6)]
    assert [h.score for h in hits] == [0.9]


def test_semantic_search_applies_smart_filter_and_caps():
    """
    Hits tagged with the query intent are preferred, then capped.
    """
    hits = [
        ScoredChunk(_chunk("plain", idx=0, is_service=False), 0.9),
        ScoredChunk(_chunk("svc one", idx=1, is_service=True), 0.8),
        ScoredChunk(_chunk("svc two", idx=2, is_service=True), 0.7),
        ScoredChunk(_chunk("svc three", idx=3, is_service=True), 0.6),
    ]
    store = FallbackVectorStore(semantic=RecordingSemanticStore(hits=hits))
    store.add([hit.chunk for hit in hits])

    out = store.search("payment service", max_results=2)

    assert [h.chunk.content for h in out] == ["svc one", "svc two"]


def test_semantic_search_failure_falls_back_to_lexical(caplog):
    """
    A failing semantic search is logged and answered by the lexical index.
    """
    store = FallbackVectorStore(semantic=FailingSemanticStore())
    store.add([_chunk("login handler"), _chunk("logout", idx=1)])

    with caplog.at_level(logging.WARNING, logger="coderepo_rag.retrieval.vector_store"):
        hits = store.search("login")

    assert [h.chunk.content for h in hits] == ["login handler"]
    assert any("lexical" in r.getMessage() for r in caplog.records)


def test_semantic_add_failure_still_populates_lexical_index():
    """
    Writes always reach the lexical index even when the semantic add fails.
    """
    store = FallbackVectorStore(semantic=FailingSemanticStore())

    store.add([_chunk("alpha"), _chunk("beta", idx=1)])

    assert store.count(REPO) == 2
    assert store.repositories() == [REPO]


class DeleteFailingSemanticStore(RecordingSemanticStore):
    """Semantic store stub that indexes and searches but cannot delete."""

    def add(self, chunks):
        super().add(chunks)
        self.hits.extend(ScoredChunk(chunk, 0.5) for chunk in chunks)

    def delete_by_repository(self, repository_url):
        raise IndexBackendError("delete timed out")


def test_semantic_hits_for_deleted_chunks_are_not_returned():
    """
    When the semantic delete fails, its stale hits are dropped because the
    lexical index no longer holds those chunks.
    """
    semantic = DeleteFailingSemanticStore()
    store = FallbackVectorStore(semantic=semantic)
    store.add([_chunk("void login() {}")])

    assert [h.chunk.content for h in store.search("login", repository_url=REPO)] == ["void login() {}"]

    store.delete_by_repository(REPO)

    assert store.count(REPO) == 0
    assert store.search("login", repository_url=REPO) == []


def test_stale_hits_are_dropped_before_capping():
    """
    Stale hits do not take slots from live ones.
    """
    stale = ScoredChunk(_chunk("old", idx=9), 0.99)
    live = [ScoredChunk(_chunk("new one", idx=0), 0.8), ScoredChunk(_chunk("new two", idx=1), 0.7)]
    store = FallbackVectorStore(semantic=RecordingSemanticStore(hits=[stale, *live]))
    store.add([hit.chunk for hit in live])

    out = store.search("anything", max_results=2)

    assert [h.chunk.content for h in out] == ["new one", "new two"]


def test_smart_filter_sees_expanded_abbreviations():
    """
    An abbreviation such as ctl selects the controller intent.
    """
    hits = [
        ScoredChunk(_chunk("helper", idx=0, is_controller=False), 0.9),
        ScoredChunk(_chunk("login endpoint", idx=1, is_controller=True), 0.5),
    ]
    store = FallbackVectorStore(semantic=RecordingSemanticStore(hits=hits))
    store.add([hit.chunk for hit in hits])

    out = store.search("login ctl", max_results=1)

    assert [h.chunk.content for h in out] == ["login endpoint"]


def test_add_and_delete_are_mirrored_to_both_indexes():
    """
    Adds and deletes are applied to the semantic and lexical indexes.
    """
    semantic = RecordingSemanticStore()
    lexical = LexicalIndexStore()
    store = FallbackVectorStore(lexical=lexical, semantic=semantic)

    store.add([_chunk("alpha")])
    store.delete_by_repository(REPO)

    assert [c.content for c in semantic.added] == ["alpha"]
    assert semantic.deleted == [REPO]
    assert lexical.count() == 0


def test_semantic_delete_failure_still_clears_lexical_index():
    """
    A failing semantic delete does not prevent the lexical delete.
    """
    store = FallbackVectorStore(semantic=FailingSemanticStore())
    store.add([_chunk("alpha")])

    store.delete_by_repository(REPO)

    assert store.count() == 0


def test_non_positive_limit_returns_empty():
    """
    max_results <= 0 never reaches either index.
    """
    semantic = RecordingSemanticStore(hits=[ScoredChunk(_chunk("a"), 1.0)])
    store = FallbackVectorStore(semantic=semantic)

    assert store.search("a", max_results=0) == []
    assert semantic.searches == []


def test_qdrant_store_raises_when_server_unreachable():
    """
    Construction probes the server and reports failure as IndexBackendError.
    """
    def get_collections():
        raise ConnectionError("refused")

    client = SimpleNamespace(get_collections=get_collections)
    embedder = SimpleNamespace(get_embedder=lambda: None)

    with pytest.raises(IndexBackendError):
        QdrantIndexStore(embedder=embedder, client=client)


def test_qdrant_store_requires_embedder():
    """
    An embedder is mandatory.
    """
    with pytest.raises(ValueError):
        QdrantIndexStore(client=SimpleNamespace(get_collections=lambda: []))


def test_qdrant_delete_skips_missing_collection_and_filters_by_repository():
    """
    Deletion is a no-op for a missing collection and otherwise deletes by a
    repository_url payload filter.
    """
    calls = []
    client = SimpleNamespace(
        collection_exists=lambda name: name == "code_chunks",
        delete=lambda **kwargs: calls.append(kwargs),
    )
    store = object.__new__(QdrantIndexStore)
    store.client = client

    store.collection_name = "missing"
    store.delete_by_repository(REPO)
    assert calls == []

    store.collection_name = "code_chunks"
    store.delete_by_repository(REPO)
    condition = calls[0]["points_selector"].filter.must[0]
    assert calls[0]["collection_name"] == "code_chunks"
    assert condition.key == "repository_url"
    assert condition.match.value == REPO


def test_qdrant_search_wraps_backend_errors():
    """
    Query failures surface as IndexBackendError.
    """
    def as_retriever(**kwargs):
        raise RuntimeError("timeout")

    store = object.__new__(QdrantIndexStore)
    store._index = SimpleNamespace(as_retriever=as_retriever)

    with pytest.raises(IndexBackendError):
        store.search("login", repository_url=REPO)


def test_qdrant_node_to_chunk_restores_chunk_and_tags():
    """
    Node payloads are turned back into chunks with list-valued class names.
    """
    node = SimpleNamespace(metadata={
        "content": "class Foo {}",
        "file_path": "Foo.java",
        "repository_url": REPO,
        "chunk_index": 2,
        "is_service": True,
        "class_names": "Foo,Bar",
    })

    chunk = QdrantIndexStore._node_to_chunk(node)

    assert chunk == CodeChunk("class Foo {}", "Foo.java", REPO, 2)
    assert chunk.metadata == {"is_service": True, "class_names": ["Foo", "Bar"]}


def test_create_vector_store_rejects_unknown_kind():
    """
    Unknown backend kinds raise ValueError.
    """
    with pytest.raises(ValueError):
        create_vector_store({"type": "pinecone"}, embedder=SimpleNamespace())
