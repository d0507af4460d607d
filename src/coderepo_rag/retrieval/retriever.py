"""coderepo_rag.retrieval.retriever

Query-time retrieval over the chunk index.

Classes
-------
CodeRetriever
    Retrieve ranked code chunks for a free-text query.

Functions
---------
build_context
    Render retrieved chunks into one text block for downstream consumers.
"""

from typing import Optional, Sequence

from coderepo_rag.common.schemas import CodeChunk, ScoredChunk
from coderepo_rag.retrieval.types import ChunkIndex

NO_RESULTS_CONTEXT = "No relevant code found for your query."
CONTEXT_PREAMBLE = "Here are the relevant code snippets:\n\n"


class CodeRetriever:
    """Retrieve the chunks most relevant to a query.

    Scoped queries are answered from an unscoped search for twice as many
    results, which is then filtered to the requested repository and capped.
    The index is only ever read.

    Parameters
    ----------
    index : ChunkIndex
        Chunk index to search (normally a
        :class:`~coderepo_rag.retrieval.vector_store.FallbackVectorStore`).
    max_results : int, optional
        Default number of results. Defaults to ``5``.
    """

    def __init__(
            self,
            *,
            index: ChunkIndex,
            max_results: int = 5,
        ):
        self.index = index
        self.max_results = max_results

    def retrieve_scored(
            self,
            query: str,
            repository_url: Optional[str] = None,
            max_results: Optional[int] = None,
        ) -> list[ScoredChunk]:
        """Retrieve ranked hits with their scores.

        Parameters
        ----------
        query : str
            Free-text query. A blank query yields no results.
        repository_url : str or None, optional
            Restrict results to this repository.
        max_results : int or None, optional
            Maximum number of results. Defaults to the instance setting.

        Returns
        -------
        list[ScoredChunk]
            At most ``max_results`` hits, best first. Empty when nothing matches.
        """
        if not query or not query.strip():
            return []

        limit = self.max_results if max_results is None else int(max_results)
        if limit <= 0:
            return []

        if repository_url is None:
            return self.index.search(query, max_results=limit)

        hits = self.index.search(query, max_results=limit * 2)
        scoped = [hit for hit in hits if hit.chunk.repository_url == repository_url]
        return scoped[:limit]

    def retrieve(
            self,
            query: str,
            repository_url: Optional[str] = None,
            max_results: Optional[int] = None,
        ) -> list[CodeChunk]:
        """Retrieve ranked chunks for ``query``.

        See :meth:`retrieve_scored` for parameters; scores are dropped.
        """
        return [hit.chunk for hit in self.retrieve_scored(query, repository_url, max_results)]


def build_context(chunks: Sequence[CodeChunk]) -> str:
    """Render chunks as a numbered list of snippets.

    Parameters
    ----------
    chunks : Sequence[CodeChunk]
        Retrieved chunks, best first.

    Returns
    -------
    str
        A preamble followed by one block per chunk giving its file path,
        repository and full content, or a fixed "no relevant code" sentence
        when ``chunks`` is empty.
    """
    if not chunks:
        return NO_RESULTS_CONTEXT

    parts = [CONTEXT_PREAMBLE]
    for i, chunk in enumerate(chunks, start=1):
        parts.append(
            f"--- Code Snippet {i} ---\n"
            f"File: {chunk.file_path}\n"
            f"Repository: {chunk.repository_url}\n"
            f"Content:\n{chunk.content}\n\n"
        )
    return "".join(parts)


__all__ = ["CodeRetriever", "build_context", "NO_RESULTS_CONTEXT"]
