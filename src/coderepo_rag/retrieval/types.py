"""coderepo_rag.retrieval.types

Shared type definitions for the retrieval layer.

This module defines lightweight protocols used to decouple orchestrators from
concrete index and repository-source classes.

Classes
-------
ChunkIndex
    Protocol for the dual-mode chunk index contract.
RepositorySource
    Protocol for the file-fetch collaborator.
"""

from typing import Mapping, Optional, Protocol, Sequence, runtime_checkable

from coderepo_rag.common.schemas import CodeChunk, ScoredChunk


@runtime_checkable
class ChunkIndex(Protocol):
    """Protocol for an index of code chunks keyed by repository.

    Methods
    -------
    add
        Index a batch of chunks.
    search
        Return chunks ranked by decreasing relevance to a query.
    delete_by_repository
        Remove every chunk of one repository.
    """

    def add(self, chunks: Sequence[CodeChunk]) -> None:
        ...

    def search(
            self,
            query: str,
            repository_url: Optional[str] = None,
            max_results: int = 5,
        ) -> list[ScoredChunk]:
        """Search the index.

        Parameters
        ----------
        query : str
            Free-text query.
        repository_url : str or None, optional
            If given, only chunks of this repository are eligible.
        max_results : int, optional
            Maximum number of results.

        Returns
        -------
        list[ScoredChunk]
            At most ``max_results`` hits ordered by decreasing score.
        """
        ...

    def delete_by_repository(self, repository_url: str) -> None:
        ...

    def repositories(self) -> list[str]:
        ...

    def count(self, repository_url: Optional[str] = None) -> int:
        ...


@runtime_checkable
class RepositorySource(Protocol):
    """Protocol for the collaborator that supplies a repository's files."""

    def fetch_files(self, repository_url: str) -> Mapping[str, str]:
        """Return a mapping of file path to raw text.

        Raises
        ------
        FetchError
            If the files cannot be fetched.
        """
        ...


__all__ = ["ChunkIndex", "RepositorySource"]
