"""coderepo_rag.retrieval.text_splitter

Code chunking utilities for the retrieval layer.

This module converts normalised source files into
:class:`~coderepo_rag.common.schemas.CodeChunk` objects suitable for indexing
and retrieval. Chunk boundaries follow logical code units where a cheap
language heuristic can find them:

- brace-delimited languages (Java, C-family, Go, Rust, ...) are split when a
  method-like block closes
- function-keyword languages (JavaScript, TypeScript) are split at
  ``function`` declarations
- indentation languages (Python) are split at ``def``/``class`` lines

Files in any other language, and files where the language pass degenerates to
a single chunk, are split into overlapping fixed-size windows.

Classes
-------
CodeChunker
    Language-aware chunker with a fixed-window fallback.

Functions
---------
get_file_extension
    Return the extension of a file path without the leading dot.
get_chunks_from_files
    Chunk a mapping of normalised files belonging to one repository.
"""

import logging
import re
from typing import Mapping, Optional

from coderepo_rag.common.schemas import CodeChunk

DEFAULT_CHUNK_SIZE = 1000
DEFAULT_OVERLAP = 100

METHOD_PATTERN = re.compile(r"(public|private|protected)?\s+(static\s+)?\w+\s+\w+\s*\([^\)]*\)\s*\{")
FUNCTION_PATTERN = re.compile(r"function\s+\w+\s*\([^\)]*\)")
PYTHON_DEF_PATTERN = re.compile(r"def\s+\w+\s*\([^\)]*\):")

BRACE_EXTENSIONS = frozenset({
    "java", "c", "cpp", "h", "hpp", "cs", "go", "rs", "kt", "scala", "swift", "php",
})
FUNCTION_KEYWORD_EXTENSIONS = frozenset({"js", "jsx", "ts", "tsx"})
INDENTATION_EXTENSIONS = frozenset({"py"})

logger = logging.getLogger("coderepo_rag.retrieval.text_splitter")


def get_file_extension(file_path: str) -> str:
    """Return the extension of ``file_path`` without the dot.

    Returns an empty string for names without an extension, dotfiles such as
    ``.gitignore``, and names ending in a dot.
    """
    name = file_path.rsplit("/", 1)[-1]
    dot = name.rfind(".")
    if 0 < dot < len(name) - 1:
        return name[dot + 1:]
    return ""


def _iter_lines(text: str) -> list[str]:
    lines = text.split("\n")
    # A trailing newline terminates the last line rather than opening a new one.
    if lines and lines[-1] == "":
        lines.pop()
    return lines


class CodeChunker:
    """Split normalised source text into bounded, logically aligned chunks.

    Parameters
    ----------
    chunk_size : int, optional
        Target chunk length in characters. Language-aware chunks may grow to
        twice this before a split is forced. Defaults to ``1000``.
    overlap : int, optional
        Characters shared by consecutive fixed-size windows. Must be smaller
        than ``chunk_size``. Defaults to ``100``.

    Raises
    ------
    ValueError
        If ``chunk_size`` is not positive or ``overlap`` is out of range.
    """

    def __init__(
        self,
        *,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        overlap: int = DEFAULT_OVERLAP,
    ) -> None:
        if chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")
        if overlap < 0 or overlap >= chunk_size:
            raise ValueError(f"overlap must be in [0, chunk_size), got {overlap}")

        self.chunk_size = int(chunk_size)
        self.overlap = int(overlap)

    @property
    def max_chunk_size(self) -> int:
        """Hard ceiling on chunk length."""
        return self.chunk_size * 2

    @classmethod
    def from_config_dict(cls, config: Mapping) -> "CodeChunker":
        """Create a chunker from a ``chunking`` configuration mapping."""
        return cls(
            chunk_size=int(config.get("chunk_size", DEFAULT_CHUNK_SIZE)),
            overlap=int(config.get("overlap", DEFAULT_OVERLAP)),
        )

    def split_text(self, text: str, file_path: str) -> list[str]:
        """Split one file's text into chunk contents.

        Parameters
        ----------
        text : str
            Normalised file text.
        file_path : str
            File path; its extension selects the splitting strategy.

        Returns
        -------
        list[str]
            Chunk contents in file order. Blank pieces are dropped.
        """
        if not text:
            return []

        extension = get_file_extension(file_path).lower()

        if extension in BRACE_EXTENSIONS:
            pieces = self._split_brace_blocks(text)
        elif extension in FUNCTION_KEYWORD_EXTENSIONS:
            pieces = self._split_at_boundaries(text, self._is_function_boundary)
        elif extension in INDENTATION_EXTENSIONS:
            pieces = self._split_at_boundaries(text, self._is_python_boundary)
        else:
            pieces = self.split_fixed_size(text)

        pieces = [piece for piece in pieces if piece.strip()]
        if len(pieces) <= 1:
            pieces = self.split_fixed_size(text)

        return [piece for piece in self._enforce_ceiling(pieces) if piece.strip()]

    def split_fixed_size(self, text: str) -> list[str]:
        """Split text into overlapping windows of ``chunk_size`` characters.

        Consecutive windows start ``chunk_size - overlap`` characters apart.
        The last window ends at the end of the text.
        """
        windows: list[str] = []
        step = self.chunk_size - self.overlap

        for start in range(0, len(text), step):
            end = min(start + self.chunk_size, len(text))
            windows.append(text[start:end])
            if end >= len(text):
                break

        return windows

    def chunk_file(
        self,
        text: str,
        file_path: str,
        repository_url: str,
    ) -> list[CodeChunk]:
        """Chunk one normalised file into :class:`CodeChunk` objects.

        Parameters
        ----------
        text : str
            Normalised file text.
        file_path : str
            Path of the file within the repository.
        repository_url : str
            Owning repository identifier.

        Returns
        -------
        list[CodeChunk]
            Chunks with ``file_extension``, ``chunk_size`` and ``total_chunks``
            metadata. Empty if ``text`` is empty.
        """
        contents = self.split_text(text, file_path)
        extension = get_file_extension(file_path)

        return [
            CodeChunk(
                content=content,
                file_path=file_path,
                repository_url=repository_url,
                chunk_index=i,
                metadata={
                    "file_extension": extension,
                    "chunk_size": len(content),
                    "total_chunks": len(contents),
                },
            )
            for i, content in enumerate(contents)
        ]

    def _split_brace_blocks(self, text: str) -> list[str]:
        """Emit a chunk whenever a method-like block closes at depth zero."""
        pieces: list[str] = []
        current: list[str] = []
        current_len = 0
        depth = 0
        in_method = False

        for line in _iter_lines(text):
            piece = line + "\n"

            if current and current_len + len(piece) > self.max_chunk_size:
                pieces.append("".join(current))
                current, current_len = [], 0
                depth, in_method = 0, False

            current.append(piece)
            current_len += len(piece)

            method_closed = False
            for ch in line:
                if ch == "{":
                    depth += 1
                    if METHOD_PATTERN.search(line):
                        in_method = True
                elif ch == "}":
                    depth = max(depth - 1, 0)
                    if depth == 0 and in_method:
                        method_closed = True
                        in_method = False

            if method_closed:
                pieces.append("".join(current))
                current, current_len = [], 0

        if current:
            pieces.append("".join(current))

        return pieces

    def _split_at_boundaries(self, text: str, is_boundary) -> list[str]:
        """Start a new chunk at a boundary line once the current one is full."""
        pieces: list[str] = []
        current: list[str] = []
        current_len = 0

        for line in _iter_lines(text):
            piece = line + "\n"

            boundary_split = is_boundary(line) and current_len > self.chunk_size
            if current and (boundary_split or current_len + len(piece) > self.max_chunk_size):
                pieces.append("".join(current))
                current, current_len = [], 0

            current.append(piece)
            current_len += len(piece)

        if current:
            pieces.append("".join(current))

        return pieces

    def _enforce_ceiling(self, pieces: list[str]) -> list[str]:
        # A single line longer than the ceiling is sliced.
        bounded: list[str] = []
        limit = self.max_chunk_size
        for piece in pieces:
            if len(piece) <= limit:
                bounded.append(piece)
                continue
            bounded.extend(piece[i:i + limit] for i in range(0, len(piece), limit))
        return bounded

    @staticmethod
    def _is_function_boundary(line: str) -> bool:
        return FUNCTION_PATTERN.search(line) is not None

    @staticmethod
    def _is_python_boundary(line: str) -> bool:
        return PYTHON_DEF_PATTERN.search(line) is not None or line.strip().startswith("class ")


def get_chunks_from_files(
        repository_url: str,
        files: Mapping[str, str],
        *,
        chunker: Optional[CodeChunker] = None,
    ) -> list[CodeChunk]:
    """Chunk every normalised file of one repository.

    Parameters
    ----------
    repository_url : str
        Owning repository identifier.
    files : Mapping[str, str]
        Mapping of file path to normalised text.
    chunker : CodeChunker or None, optional
        Chunker to use. Defaults to a chunker with default sizes.

    Returns
    -------
    list[CodeChunk]
        All chunks, grouped by file in input order.
    """
    chunker = chunker or CodeChunker()

    chunks: list[CodeChunk] = []
    for file_path, text in files.items():
        chunks.extend(chunker.chunk_file(text, file_path, repository_url))

    logger.info("Created %d chunks from %d files for %s", len(chunks), len(files), repository_url)
    return chunks


__all__ = [
    "CodeChunker",
    "get_file_extension",
    "get_chunks_from_files",
    "DEFAULT_CHUNK_SIZE",
    "DEFAULT_OVERLAP",
]
