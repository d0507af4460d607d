"""
Common building blocks shared across the ingestion and retrieval stack.

This package provides small, widely-used primitives (chunk schemas, error
types and ID aliases) intended to be imported by multiple layers of the
system.

Classes
-------
CodeChunk
    Bounded slice of a source file with associated metadata.
ScoredChunk
    Chunk paired with a per-query relevance score.
FetchError, ParseError, IndexBackendError
    Error taxonomy of the pipeline.

Attributes
----------
RepositoryId : TypeAlias
    Type alias for repository identifiers.
ChunkId : TypeAlias
    Type alias for chunk identifiers.

See Also
--------
coderepo_rag.common.schemas
    Defines :class:`~coderepo_rag.common.schemas.CodeChunk` and
    :class:`~coderepo_rag.common.schemas.ScoredChunk`.
coderepo_rag.common.errors
    Defines the exception types.
"""
from __future__ import annotations
from typing import TypeAlias

from .schemas import (
    CodeChunk,
    ScoredChunk,
)
from .errors import (
    FetchError,
    ParseError,
    IndexBackendError,
)

RepositoryId: TypeAlias = str
ChunkId: TypeAlias = str

__all__ = [
    "CodeChunk",
    "ScoredChunk",
    "FetchError",
    "ParseError",
    "IndexBackendError",
    "RepositoryId",
    "ChunkId",
]
