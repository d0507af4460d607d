"""coderepo_rag.retrieval.vector_store

Semantic index backends and the dual-mode store used by the pipeline.

This module provides:
- a small interface for semantic (embedding-backed) chunk indexes
- a Qdrant implementation driven through a LlamaIndex ``VectorStoreIndex``
- :class:`FallbackVectorStore`, which fronts an optional semantic index with
  the in-process :class:`~coderepo_rag.retrieval.lexical_store.LexicalIndexStore`
  and degrades to it on any semantic failure

Chunks are enriched before embedding: a header naming the file, any role
annotations and any declared types is prepended to the content, and the
derived tags are stored as (non-embedded) node metadata.

Classes
-------
BaseVectorStore
    Abstract interface for semantic chunk indexes.
QdrantIndexStore
    Qdrant-backed semantic index.
FallbackVectorStore
    Dual-mode store with silent degradation to the lexical index.

Functions
---------
create_vector_store
    Create a semantic index from a configuration mapping.
"""

import logging
import uuid
from abc import ABC, abstractmethod
from typing import Any, Optional, Sequence

from qdrant_client import QdrantClient, models
from llama_index.vector_stores.qdrant import QdrantVectorStore
from llama_index.core import VectorStoreIndex
from llama_index.core.schema import TextNode, BaseNode
from llama_index.core.vector_stores.types import ExactMatchFilter, MetadataFilters

from coderepo_rag.common.errors import IndexBackendError
from coderepo_rag.common.schemas import CodeChunk, ScoredChunk
from coderepo_rag.retrieval.code_analysis import build_chunk_header, structural_tags
from coderepo_rag.retrieval.embedder import BaseEmbedder
from coderepo_rag.retrieval.lexical_store import LexicalIndexStore
from coderepo_rag.retrieval.query_preprocessor import preprocess_query, smart_filter

logger = logging.getLogger("coderepo_rag.retrieval.vector_store")

# Fields rebuilt into CodeChunk attributes rather than chunk metadata.
_CHUNK_FIELDS = ("content", "file_path", "repository_url", "chunk_index")


class BaseVectorStore(ABC):
    """Abstract interface for semantic chunk indexes.

    Implementations raise :class:`~coderepo_rag.common.errors.IndexBackendError`
    when the backend fails.
    """

    @classmethod
    @abstractmethod
    def from_config_dict(
            cls,
            config: dict,
            embedder: BaseEmbedder,
        ) -> "BaseVectorStore":
        """Create an index from a configuration mapping.

        Raises
        ------
        IndexBackendError
            If the backend cannot be reached.
        """

    @abstractmethod
    def add(self, chunks: Sequence[CodeChunk]) -> None:
        """Embed and index ``chunks``."""

    @abstractmethod
    def search(
            self,
            query: str,
            repository_url: Optional[str] = None,
            max_results: int = 5,
        ) -> list[ScoredChunk]:
        """Return up to ``max_results`` chunks by decreasing similarity."""

    @abstractmethod
    def delete_by_repository(self, repository_url: str) -> None:
        """Remove every indexed chunk of ``repository_url``."""


class QdrantIndexStore(BaseVectorStore):
    """Qdrant-backed semantic chunk index.

    Reachability is checked once at construction, so a missing backend is
    detected before any chunk is indexed.

    Parameters
    ----------
    embedder : BaseEmbedder
        Embedder used for documents and queries.
    host : str, optional
        Qdrant host. Defaults to ``"localhost"``. Ignored when ``url`` is set.
    port : int, optional
        Qdrant port. Defaults to ``6333``.
    url : str or None, optional
        Full Qdrant URL, for hosted deployments.
    api_key : str or None, optional
        Qdrant API key.
    collection_name : str, optional
        Collection holding the chunks. Defaults to ``"code_chunks"``.
    timeout : int, optional
        Client request timeout in seconds. Defaults to ``10``.
    insert_batch_size : int, optional
        Nodes per insert call. Defaults to ``64``.
    client : QdrantClient or None, optional
        Preconstructed client; connection parameters are ignored when given.

    Raises
    ------
    ValueError
        If ``embedder`` is not provided.
    IndexBackendError
        If the Qdrant server cannot be reached.
    """

    @classmethod
    def from_config_dict(
            cls,
            config: dict,
            embedder: BaseEmbedder,
        ) -> "QdrantIndexStore":
        """Create a QdrantIndexStore from the ``vector_store`` configuration section.

        Parameters
        ----------
        config : dict
            Keys ``host``, ``port``, ``url``, ``api_key``, ``collection_name``,
            ``timeout`` and ``insert_batch_size``, all optional.
        embedder : BaseEmbedder
            Embedder used for documents and queries.

        Returns
        -------
        QdrantIndexStore
            Initialised store.
        """
        return cls(
            embedder=embedder,
            host=config.get("host", "localhost"),
            port=int(config.get("port", 6333)),
            url=config.get("url"),
            api_key=config.get("api_key"),
            collection_name=config.get("collection_name", "code_chunks"),
            timeout=int(config.get("timeout", 10)),
            insert_batch_size=int(config.get("insert_batch_size", 64)),
        )

    def __init__(
        self,
        *,
        embedder: BaseEmbedder = None,
        host: str = "localhost",
        port: int = 6333,
        url: Optional[str] = None,
        api_key: Optional[str] = None,
        collection_name: str = "code_chunks",
        timeout: int = 10,
        insert_batch_size: int = 64,
        client: Optional[QdrantClient] = None,
    ):
        if embedder is None:
            raise ValueError("QdrantIndexStore requires an embedder instance. Provide it via the container.")

        self.embedder = embedder
        self.collection_name = collection_name
        self.insert_batch_size = insert_batch_size

        if client is not None:
            self.client = client
        elif url:
            self.client = QdrantClient(url=url, api_key=api_key, timeout=timeout)
        else:
            self.client = QdrantClient(host=host, port=port, api_key=api_key, timeout=timeout)

        self.check_available()

        self._embed_model = self.embedder.get_embedder()
        self.vector_store = QdrantVectorStore(
            client=self.client,
            collection_name=collection_name,
        )
        self._index = VectorStoreIndex.from_vector_store(
            self.vector_store,
            embed_model=self._embed_model,
        )

    def check_available(self) -> None:
        """Probe the Qdrant server.

        Raises
        ------
        IndexBackendError
            If the server does not answer.
        """
        try:
            self.client.get_collections()
        except Exception as e:
            raise IndexBackendError(f"Qdrant is not reachable: {e}") from e

    def add(self, chunks: Sequence[CodeChunk]) -> None:
        if not chunks:
            return

        nodes = self._build_nodes(chunks)
        try:
            for start in range(0, len(nodes), self.insert_batch_size):
                self._index.insert_nodes(nodes[start:start + self.insert_batch_size])
        except Exception as e:
            raise IndexBackendError(f"Failed to index {len(nodes)} chunks: {e}") from e

    def search(
            self,
            query: str,
            repository_url: Optional[str] = None,
            max_results: int = 5,
        ) -> list[ScoredChunk]:
        """Run a similarity search.

        Parameters
        ----------
        query : str
            Query text, embedded with the configured embedder.
        repository_url : str or None, optional
            Restrict results to this repository via a metadata filter.
        max_results : int, optional
            Number of nearest chunks to return. Defaults to ``5``.

        Returns
        -------
        list[ScoredChunk]
            Hits ordered by decreasing similarity.

        Raises
        ------
        IndexBackendError
            If the query fails.
        """
        filters = None
        if repository_url is not None:
            filters = MetadataFilters(filters=[ExactMatchFilter(key="repository_url", value=repository_url)])

        try:
            retriever = self._index.as_retriever(similarity_top_k=max_results, filters=filters)
            results = retriever.retrieve(query)
        except Exception as e:
            raise IndexBackendError(f"Semantic search failed: {e}") from e

        return [
            ScoredChunk(chunk=self._node_to_chunk(result.node), score=float(result.score or 0.0))
            for result in results
        ]

    def delete_by_repository(self, repository_url: str) -> None:
        """Delete every point whose payload carries ``repository_url``."""
        try:
            if not self.client.collection_exists(self.collection_name):
                return
            self.client.delete(
                collection_name=self.collection_name,
                points_selector=models.FilterSelector(
                    filter=models.Filter(
                        must=[
                            models.FieldCondition(
                                key="repository_url",
                                match=models.MatchValue(value=repository_url),
                            )
                        ]
                    )
                ),
            )
        except Exception as e:
            raise IndexBackendError(f"Failed to delete chunks of {repository_url}: {e}") from e

    def _build_nodes(self, chunks: Sequence[CodeChunk]) -> list[TextNode]:
        nodes: list[TextNode] = []

        for chunk in chunks:
            tags = structural_tags(chunk.file_path, chunk.content)
            metadata: dict[str, Any] = dict(chunk.metadata or {})
            metadata.update({
                "content": chunk.content,
                "file_path": chunk.file_path,
                "repository_url": chunk.repository_url,
                "chunk_index": chunk.chunk_index,
                "language": tags["language"],
                "is_controller": tags["is_controller"],
                "is_service": tags["is_service"],
                "is_repository": tags["is_repository"],
                "is_test": tags["is_test"],
                "class_names": ",".join(tags["class_names"]),
            })

            keys = list(metadata.keys())
            node = TextNode(
                text=build_chunk_header(chunk, tags) + chunk.content,
                id_=str(uuid.uuid5(uuid.NAMESPACE_URL, chunk.chunk_id)),
                metadata=metadata,
                excluded_embed_metadata_keys=keys,
                excluded_llm_metadata_keys=keys,
            )
            nodes.append(node)

        return nodes

    @staticmethod
    def _node_to_chunk(node: BaseNode) -> CodeChunk:
        metadata = dict(node.metadata or {})
        class_names = metadata.get("class_names")
        if isinstance(class_names, str):
            metadata["class_names"] = [name for name in class_names.split(",") if name]

        return CodeChunk(
            content=str(metadata.get("content", "")),
            file_path=str(metadata.get("file_path", "")),
            repository_url=str(metadata.get("repository_url", "")),
            chunk_index=int(metadata.get("chunk_index", 0)),
            metadata={k: v for k, v in metadata.items() if k not in _CHUNK_FIELDS},
        )


class FallbackVectorStore:
    """Chunk index that prefers a semantic backend and falls back to keywords.

    Every add and delete is applied to the lexical index, which is therefore
    always complete and authoritative for removal. When a semantic index is
    configured, it receives the same writes and answers searches; any
    exception it raises is logged and the call is answered by the lexical
    index instead. Callers cannot tell which mode served a call.

    Parameters
    ----------
    lexical : LexicalIndexStore or None, optional
        Keyword index. A new one is created when omitted.
    semantic : BaseVectorStore or None, optional
        Semantic index, or ``None`` for lexical-only mode.
    candidate_multiplier : int, optional
        Semantic searches fetch ``max_results * candidate_multiplier``
        candidates before smart filtering. Defaults to ``2``.
    """

    def __init__(
        self,
        lexical: Optional[LexicalIndexStore] = None,
        semantic: Optional[BaseVectorStore] = None,
        *,
        candidate_multiplier: int = 2,
    ):
        self.lexical = lexical if lexical is not None else LexicalIndexStore()
        self.semantic = semantic
        self.candidate_multiplier = max(1, int(candidate_multiplier))

    @property
    def semantic_enabled(self) -> bool:
        return self.semantic is not None

    def add(self, chunks: Optional[Sequence[CodeChunk]]) -> None:
        """Index ``chunks``. No-op for an empty or absent batch."""
        if not chunks:
            return

        if self.semantic is not None:
            try:
                self.semantic.add(chunks)
            except Exception:
                logger.warning("Semantic add failed for %d chunks; lexical index only", len(chunks), exc_info=True)

        self.lexical.add(chunks)

    def search(
            self,
            query: str,
            repository_url: Optional[str] = None,
            max_results: int = 5,
        ) -> list[ScoredChunk]:
        """Return up to ``max_results`` chunks ranked by relevance to ``query``.

        In semantic mode the query is preprocessed, ``max_results *
        candidate_multiplier`` candidates are fetched, hits no longer present
        in the lexical index are dropped, the smart filter is applied to the
        preprocessed query, and the result is capped at ``max_results``.
        """
        if max_results <= 0:
            return []

        if self.semantic is None:
            return self.lexical.search(query, repository_url=repository_url, max_results=max_results)

        prepared = preprocess_query(query)
        try:
            candidates = self.semantic.search(
                prepared,
                repository_url=repository_url,
                max_results=max_results * self.candidate_multiplier,
            )
        except Exception:
            logger.warning("Semantic search failed; answering from lexical index", exc_info=True)
            return self.lexical.search(query, repository_url=repository_url, max_results=max_results)

        live = self._live_hits(candidates)
        return smart_filter(prepared, live, lambda hit: hit.chunk.metadata)[:max_results]

    def _live_hits(self, candidates: Sequence[ScoredChunk]) -> list[ScoredChunk]:
        """Drop semantic hits whose chunk is not in the lexical index."""
        live_ids: dict[str, set[str]] = {}
        kept = []
        for hit in candidates:
            repo = hit.chunk.repository_url
            if repo not in live_ids:
                live_ids[repo] = {chunk.chunk_id for chunk in self.lexical.get_chunks(repo)}
            if hit.chunk.chunk_id in live_ids[repo]:
                kept.append(hit)
        if len(kept) < len(candidates):
            logger.debug("Dropped %d stale semantic hits", len(candidates) - len(kept))
        return kept

    def delete_by_repository(self, repository_url: str) -> None:
        """Remove every chunk of ``repository_url``. Idempotent."""
        if self.semantic is not None:
            try:
                self.semantic.delete_by_repository(repository_url)
            except Exception:
                logger.warning("Semantic delete failed for %s", repository_url, exc_info=True)

        self.lexical.delete_by_repository(repository_url)

    def repositories(self) -> list[str]:
        return self.lexical.repositories()

    def count(self, repository_url: Optional[str] = None) -> int:
        return self.lexical.count(repository_url)


def _get_vector_store_kind(cfg):
    """Return the kind/type/provider/backend/impl discriminator, or ``None``."""
    for key in ("kind", "type", "provider", "backend", "impl"):
        val = cfg.get(key)
        if val is not None:
            return val
    return None


def _normalize_vector_store_kind(kind):
    if not kind:
        return "qdrant"
    k = str(kind).lower()
    if k in {"qdrant", "qdrantindexstore", "qdrant_index_store"}:
        return "qdrant"
    return k


def create_vector_store(config: dict, embedder: BaseEmbedder) -> BaseVectorStore:
    """Create a semantic index from a configuration mapping.

    Parameters
    ----------
    config : dict
        The ``vector_store`` configuration section.
    embedder : BaseEmbedder
        Embedder used for documents and queries.

    Returns
    -------
    BaseVectorStore
        Initialised semantic index.

    Raises
    ------
    ValueError
        If the requested backend kind is not supported.
    IndexBackendError
        If the backend cannot be reached.
    """
    kind = _normalize_vector_store_kind(_get_vector_store_kind(config))
    if kind == "qdrant":
        return QdrantIndexStore.from_config_dict(config, embedder=embedder)
    raise ValueError(f"Unknown vector store kind: {kind!r}")


__all__ = [
    "BaseVectorStore",
    "QdrantIndexStore",
    "FallbackVectorStore",
    "create_vector_store",
]
