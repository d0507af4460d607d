"""coderepo_rag.retrieval.query_preprocessor

Query-side text transforms for semantic search.

Functions
---------
preprocess_query
    Normalise whitespace, drop stop words and expand code abbreviations.
detect_query_intent
    Return the structural tag a query asks for, if any.
smart_filter
    Narrow candidates to those matching the query's structural intent.
"""

import re
from typing import Any, Callable, Sequence, TypeVar

T = TypeVar("T")

STOP_WORDS = frozenset({
    "a", "an", "the", "is", "are", "was", "were", "be", "been",
    "how", "what", "where", "when", "which", "who", "why",
    "do", "does", "did", "to", "of", "in", "on", "for", "with",
    "and", "or", "it", "this", "that", "me", "show", "find",
})

ABBREVIATIONS = {
    "ctrl": "controller",
    "ctl": "controller",
    "svc": "service",
    "repo": "repository",
    "impl": "implementation",
    "cfg": "configuration",
    "config": "configuration",
    "auth": "authentication",
    "db": "database",
}

# Checked in order; the first keyword found in the query wins.
INTENT_KEYWORDS: tuple[tuple[str, str], ...] = (
    ("controller", "is_controller"),
    ("service", "is_service"),
    ("repository", "is_repository"),
    ("dao", "is_repository"),
    ("test", "is_test"),
)

_WORD_SPLIT = re.compile(r"\s+")


def preprocess_query(query: str) -> str:
    """Normalise a free-text query before embedding.

    Parameters
    ----------
    query : str
        Raw user query.

    Returns
    -------
    str
        Whitespace-collapsed query with stop words removed and known
        abbreviations expanded. When every word is a stop word, the
        whitespace-collapsed query is returned unchanged.
    """
    collapsed = _WORD_SPLIT.sub(" ", (query or "").strip())
    if not collapsed:
        return ""

    kept: list[str] = []
    for word in collapsed.split(" "):
        lowered = word.lower()
        if lowered in STOP_WORDS:
            continue
        kept.append(ABBREVIATIONS.get(lowered, word))

    return " ".join(kept) if kept else collapsed


def detect_query_intent(query: str) -> str | None:
    """Return the metadata tag implied by ``query``, or ``None``.

    Examples
    --------
    >>> detect_query_intent("where is the login controller")
    'is_controller'
    >>> detect_query_intent("parse a date") is None
    True
    """
    lowered = (query or "").lower()
    for keyword, tag in INTENT_KEYWORDS:
        if keyword in lowered:
            return tag
    return None


def smart_filter(
        query: str,
        candidates: Sequence[T],
        get_tags: Callable[[T], dict[str, Any]],
    ) -> list[T]:
    """Keep candidates whose tags match the query's structural intent.

    Parameters
    ----------
    query : str
        Query text, raw or preprocessed.
    candidates : Sequence[T]
        Ranked candidates.
    get_tags : Callable[[T], dict[str, Any]]
        Returns the tag mapping of a candidate.

    Returns
    -------
    list[T]
        The matching candidates in their original order. If the query names
        no intent, or no candidate matches, all candidates are returned.
    """
    tag = detect_query_intent(query)
    if tag is None:
        return list(candidates)

    filtered = [c for c in candidates if get_tags(c).get(tag)]
    return filtered if filtered else list(candidates)


__all__ = [
    "preprocess_query",
    "detect_query_intent",
    "smart_filter",
    "STOP_WORDS",
    "ABBREVIATIONS",
]
