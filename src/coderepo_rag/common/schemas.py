"""coderepo_rag.common.schemas

Core data schemas shared across the ingestion and retrieval pipeline.

These lightweight dataclasses describe the canonical shape of a retrievable
code chunk and of a transient search hit. They are passed between chunking,
indexing, retrieval, and generation components.

Classes
-------
CodeChunk
    A bounded slice of one source file, the unit of indexing and retrieval.
ScoredChunk
    A :class:`~coderepo_rag.common.schemas.CodeChunk` paired with a relevance
    score for the duration of one query.

Notes
-----
``metadata`` is intentionally untyped (``dict[str, Any]``) to allow arbitrary
key-value annotations (e.g., file extension, detected language). Downstream
code should treat missing keys defensively.
"""

from dataclasses import dataclass, field
from typing import Any, Dict


@dataclass(frozen=True)
class CodeChunk:
    """A contiguous slice of normalised source text from one repository file.

    Attributes
    ----------
    content : str
        Normalised chunk text. Never empty.
    file_path : str
        Path of the source file within its repository.
    repository_url : str
        Identifier of the owning repository.
    chunk_index : int
        Zero-based position among the chunks produced from the same file.
    metadata : Dict[str, Any]
        Annotations attached at creation time (e.g.,
        ``{"file_extension": "java", "chunk_size": 812, "total_chunks": 3}``).
    """
    content: str
    file_path: str
    repository_url: str
    chunk_index: int = 0
    metadata: Dict[str, Any] = field(default_factory=dict, compare=False, hash=False)

    @property
    def chunk_id(self) -> str:
        """Stable identifier unique within the whole index."""
        return f"{self.repository_url}::{self.file_path}::{self.chunk_index}"


@dataclass(frozen=True)
class ScoredChunk:
    """A search hit: a chunk plus its relevance score for one query.

    Attributes
    ----------
    chunk : CodeChunk
        The matched chunk.
    score : float
        Relevance score. Higher is more relevant; the scale depends on the
        index that produced it.
    """
    chunk: CodeChunk
    score: float
