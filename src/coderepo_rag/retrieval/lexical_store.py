"""coderepo_rag.retrieval.lexical_store

In-process keyword index used when no semantic backend is available.

The index maps each repository identifier to an immutable tuple of chunks.
Writers build a new tuple and swap it in under a lock, and readers take a
snapshot of the mapping under the same lock, so a search always observes a
repository's complete chunk set from either before or after a write.

Classes
-------
LexicalIndexStore
    Thread-safe keyword-overlap index keyed by repository.

Functions
---------
keyword_score
    Score a chunk's content against a query.
"""

import re
import threading
from typing import Optional, Sequence

from coderepo_rag.common.schemas import CodeChunk, ScoredChunk

_NON_WORD = re.compile(r"\W+")


def _query_words(query: str) -> set[str]:
    return {word for word in _NON_WORD.split((query or "").lower()) if word}


def keyword_score(query_words: set[str], content: str) -> float:
    """Score ``content`` against a set of lowercase query words.

    Parameters
    ----------
    query_words : set[str]
        Distinct lowercase query words.
    content : str
        Chunk content.

    Returns
    -------
    float
        Total number of occurrences of the query words as substrings of the
        lowercased content, divided by the number of query words. ``0.0`` when
        ``query_words`` is empty.
    """
    if not query_words:
        return 0.0

    lowered = content.lower()
    hits = sum(lowered.count(word) for word in query_words)
    return hits / len(query_words)


class LexicalIndexStore:
    """Keyword-overlap chunk index, safe for concurrent use.

    Chunks of each repository are kept in insertion order. Ties in score are
    broken by that order.
    """

    def __init__(self) -> None:
        self._entries: dict[str, tuple[CodeChunk, ...]] = {}
        self._lock = threading.RLock()

    def add(self, chunks: Optional[Sequence[CodeChunk]]) -> None:
        """Append chunks to their repositories. No-op for an empty batch."""
        if not chunks:
            return

        grouped: dict[str, list[CodeChunk]] = {}
        for chunk in chunks:
            grouped.setdefault(chunk.repository_url, []).append(chunk)

        with self._lock:
            for repository_url, new_chunks in grouped.items():
                existing = self._entries.get(repository_url, ())
                self._entries[repository_url] = existing + tuple(new_chunks)

    def delete_by_repository(self, repository_url: str) -> None:
        """Remove every chunk of ``repository_url``. Idempotent."""
        with self._lock:
            self._entries.pop(repository_url, None)

    def search(
            self,
            query: str,
            repository_url: Optional[str] = None,
            max_results: int = 5,
        ) -> list[ScoredChunk]:
        """Rank chunks by keyword overlap with ``query``.

        Parameters
        ----------
        query : str
            Free-text query, split on non-word characters.
        repository_url : str or None, optional
            Restrict candidates to this repository.
        max_results : int, optional
            Maximum number of hits. Defaults to ``5``.

        Returns
        -------
        list[ScoredChunk]
            Hits with a strictly positive score, best first.
        """
        words = _query_words(query)
        if not words or max_results <= 0:
            return []

        with self._lock:
            if repository_url is not None:
                snapshot = [self._entries.get(repository_url, ())]
            else:
                snapshot = list(self._entries.values())

        scored: list[ScoredChunk] = []
        for entry in snapshot:
            for chunk in entry:
                score = keyword_score(words, chunk.content)
                if score > 0:
                    scored.append(ScoredChunk(chunk=chunk, score=score))

        # sorted() is stable, so equal scores keep insertion order.
        scored = sorted(scored, key=lambda hit: hit.score, reverse=True)
        return scored[:max_results]

    def get_chunks(self, repository_url: str) -> tuple[CodeChunk, ...]:
        """Return the current chunk tuple of a repository (empty if unknown)."""
        with self._lock:
            return self._entries.get(repository_url, ())

    def repositories(self) -> list[str]:
        """Return indexed repository identifiers in first-insertion order."""
        with self._lock:
            return list(self._entries.keys())

    def count(self, repository_url: Optional[str] = None) -> int:
        """Return the number of chunks, overall or for one repository."""
        with self._lock:
            if repository_url is not None:
                return len(self._entries.get(repository_url, ()))
            return sum(len(entry) for entry in self._entries.values())


__all__ = ["LexicalIndexStore", "keyword_score"]
