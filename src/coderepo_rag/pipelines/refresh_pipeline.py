"""coderepo_rag.pipelines.refresh_pipeline

Repository ingestion orchestration.

This module defines :class:`RefreshPipeline`, the only writer of index state.
A refresh removes a repository's existing chunks, normalises and chunks its
files, and indexes the result. Refreshes of the same repository are
serialised; refreshes of different repositories proceed independently.

Classes
-------
RefreshResult
    Summary of one completed refresh.
RefreshPipeline
    Drives repository source -> normaliser -> chunker -> index.
"""

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from contextlib import contextmanager
from dataclasses import dataclass, field
from functools import partial
from typing import Iterator, Mapping, Optional

from coderepo_rag.retrieval.file_preprocessor import preprocess_files
from coderepo_rag.retrieval.text_splitter import CodeChunker, get_chunks_from_files
from coderepo_rag.retrieval.types import ChunkIndex, RepositorySource

logger = logging.getLogger("coderepo_rag.pipelines.refresh")


@dataclass(frozen=True)
class RefreshResult:
    """Outcome of a successful refresh.

    Attributes
    ----------
    repository_url : str
        Refreshed repository.
    files_received : int
        Raw files supplied by the repository source.
    files_processed : int
        Files with content left after normalisation.
    chunks_indexed : int
        Chunks added to the index.
    """
    repository_url: str
    files_received: int
    files_processed: int
    chunks_indexed: int


@dataclass
class _RepositoryLock:
    lock: threading.Lock = field(default_factory=threading.Lock)
    holders: int = 0


class RefreshPipeline:
    """Re-ingest repositories into the chunk index.

    Parameters
    ----------
    index : ChunkIndex
        Index to write to.
    chunker : CodeChunker or None, optional
        Chunker for normalised files. Defaults to a chunker with default sizes.
    repository_source : RepositorySource or None, optional
        Collaborator used by :meth:`refresh_from_source` and
        :meth:`refresh_async`.
    max_workers : int, optional
        Worker threads for background refreshes. Defaults to ``2``.
    """

    def __init__(
            self,
            *,
            index: ChunkIndex,
            chunker: Optional[CodeChunker] = None,
            repository_source: Optional[RepositorySource] = None,
            max_workers: int = 2,
        ):
        self.index = index
        self.chunker = chunker or CodeChunker()
        self.repository_source = repository_source
        self.max_workers = max_workers

        self._locks: dict[str, _RepositoryLock] = {}
        self._locks_guard = threading.Lock()
        self._executor: Optional[ThreadPoolExecutor] = None

    @contextmanager
    def _repository_lock(self, repository_url: str) -> Iterator[None]:
        """Hold the lock of one repository.

        Entries are dropped once no thread holds or waits for them.
        """
        with self._locks_guard:
            entry = self._locks.get(repository_url)
            if entry is None:
                entry = self._locks[repository_url] = _RepositoryLock()
            entry.holders += 1
        try:
            with entry.lock:
                yield
        finally:
            with self._locks_guard:
                entry.holders -= 1
                if entry.holders == 0:
                    del self._locks[repository_url]

    def refresh(self, repository_url: str, files: Mapping[str, str]) -> RefreshResult:
        """Replace the indexed content of a repository.

        The steps are: delete existing chunks, normalise every file, chunk
        every normalised file, and insert all chunks in one batch.

        Parameters
        ----------
        repository_url : str
            Repository identifier.
        files : Mapping[str, str]
            Mapping of file path to raw text.

        Returns
        -------
        RefreshResult
            Counts for the refresh. A repository with no processable files is a
            successful refresh with zero chunks.

        Raises
        ------
        ParseError
            If any file fails to normalise. The repository's previous chunks
            have already been removed and nothing new is indexed.
        """
        with self._repository_lock(repository_url):
            logger.info("Refreshing %s with %d files", repository_url, len(files))
            self.index.delete_by_repository(repository_url)

            processed = preprocess_files(files)
            if not processed:
                logger.warning("No processable files found for %s", repository_url)
                return RefreshResult(repository_url, len(files), 0, 0)

            chunks = get_chunks_from_files(repository_url, processed, chunker=self.chunker)
            self.index.add(chunks)

            logger.info(
                "Refreshed %s: %d files processed, %d chunks indexed",
                repository_url, len(processed), len(chunks),
            )
            return RefreshResult(repository_url, len(files), len(processed), len(chunks))

    def refresh_from_source(self, repository_url: str) -> RefreshResult:
        """Fetch a repository's files from the repository source and refresh it.

        Raises
        ------
        RuntimeError
            If no repository source is configured.
        FetchError
            Propagated unchanged from the repository source.
        ParseError
            See :meth:`refresh`.
        """
        if self.repository_source is None:
            raise RuntimeError("RefreshPipeline has no repository source configured.")

        files = self.repository_source.fetch_files(repository_url)
        return self.refresh(repository_url, files)

    def refresh_async(self, repository_url: str) -> Future:
        """Submit :meth:`refresh_from_source` to the background worker pool.

        The returned future may be ignored. Its outcome is logged when it
        completes.
        """
        with self._locks_guard:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=self.max_workers,
                    thread_name_prefix="coderepo-refresh",
                )
            future = self._executor.submit(self.refresh_from_source, repository_url)

        future.add_done_callback(partial(self._log_background_result, repository_url))
        return future

    @staticmethod
    def _log_background_result(repository_url: str, future: Future) -> None:
        if future.cancelled():
            logger.warning("Background refresh of %s was cancelled", repository_url)
            return

        error = future.exception()
        if error is not None:
            logger.error("Background refresh of %s failed", repository_url, exc_info=error)
            return

        result = future.result()
        logger.info("Background refresh of %s completed: %d chunks", repository_url, result.chunks_indexed)

    def delete_repository(self, repository_url: str) -> None:
        """Remove a repository from the index. Idempotent."""
        with self._repository_lock(repository_url):
            self.index.delete_by_repository(repository_url)
            logger.info("Deleted %s from the index", repository_url)

    def status(self) -> dict[str, int]:
        """Return chunk counts per indexed repository."""
        return {url: self.index.count(url) for url in self.index.repositories()}

    def shutdown(self, wait: bool = True) -> None:
        """Stop the background worker pool, if one was started."""
        with self._locks_guard:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=wait)


__all__ = ["RefreshPipeline", "RefreshResult"]
