"""coderepo_rag.retrieval.code_analysis

Stateless structural classification of source chunks.

These heuristics look at a file path and chunk content and derive the
annotations used to enrich documents for semantic indexing: language, role
tags (request handler, service layer, data access, test) and declared type
names. Every function is pure over ``(path, content)``.

Functions
---------
detect_language
    Best-effort language name from a file extension.
is_controller
    Whether a chunk looks like part of a request-handling file.
is_service
    Whether a chunk looks like part of a service-layer file.
is_repository
    Whether a chunk looks like part of a data-access file.
is_test
    Whether a chunk looks like part of a test file.
extract_class_names
    Names of classes, interfaces and enums declared in a chunk.
structural_tags
    All of the above as a metadata mapping.
build_chunk_header
    Synthetic header prepended to a chunk before embedding.
"""

import re
from typing import Any

from coderepo_rag.common.schemas import CodeChunk
from coderepo_rag.retrieval.text_splitter import get_file_extension

CLASS_NAME_PATTERN = re.compile(r"\b(?:class|interface|enum)\s+([A-Za-z_]\w*)")

LANGUAGE_BY_EXTENSION = {
    "java": "java",
    "kt": "kotlin",
    "scala": "scala",
    "js": "javascript",
    "jsx": "javascript",
    "ts": "typescript",
    "tsx": "typescript",
    "py": "python",
    "c": "c",
    "h": "c",
    "cpp": "cpp",
    "hpp": "cpp",
    "cs": "csharp",
    "go": "go",
    "rs": "rust",
    "php": "php",
    "rb": "ruby",
    "swift": "swift",
    "clj": "clojure",
    "hs": "haskell",
    "ml": "ocaml",
    "r": "r",
    "sql": "sql",
    "sh": "shell",
    "bash": "shell",
    "md": "markdown",
    "json": "json",
    "yml": "yaml",
    "yaml": "yaml",
    "xml": "xml",
    "html": "html",
    "css": "css",
    "proto": "protobuf",
    "gradle": "gradle",
    "properties": "properties",
}

_CONTROLLER_MARKERS = ("@RestController", "@Controller", "@RequestMapping", "@GetMapping", "@PostMapping")
_SERVICE_MARKERS = ("@Service",)
_REPOSITORY_MARKERS = ("@Repository",)
_TEST_MARKERS = ("@Test", "def test_")


def detect_language(file_path: str) -> str:
    """Return a language name for ``file_path``, or ``"unknown"``."""
    return LANGUAGE_BY_EXTENSION.get(get_file_extension(file_path).lower(), "unknown")


def is_controller(file_path: str, content: str) -> bool:
    if "controller" in file_path.lower():
        return True
    return any(marker in content for marker in _CONTROLLER_MARKERS)


def is_service(file_path: str, content: str) -> bool:
    if "service" in file_path.lower():
        return True
    return any(marker in content for marker in _SERVICE_MARKERS)


def is_repository(file_path: str, content: str) -> bool:
    path = file_path.lower()
    if "repository" in path or "dao" in path:
        return True
    return any(marker in content for marker in _REPOSITORY_MARKERS)


def is_test(file_path: str, content: str) -> bool:
    if "test" in file_path.lower():
        return True
    return any(marker in content for marker in _TEST_MARKERS)


def extract_class_names(content: str) -> list[str]:
    """Return declared class/interface/enum names in order, without duplicates."""
    names: list[str] = []
    for name in CLASS_NAME_PATTERN.findall(content):
        if name not in names:
            names.append(name)
    return names


def structural_tags(file_path: str, content: str) -> dict[str, Any]:
    """Derive enrichment metadata for a chunk.

    Parameters
    ----------
    file_path : str
        Path of the source file.
    content : str
        Chunk content.

    Returns
    -------
    dict[str, Any]
        Mapping with keys ``language``, ``is_controller``, ``is_service``,
        ``is_repository``, ``is_test`` and ``class_names``.
    """
    return {
        "language": detect_language(file_path),
        "is_controller": is_controller(file_path, content),
        "is_service": is_service(file_path, content),
        "is_repository": is_repository(file_path, content),
        "is_test": is_test(file_path, content),
        "class_names": extract_class_names(content),
    }


def build_chunk_header(chunk: CodeChunk, tags: dict[str, Any] | None = None) -> str:
    """Render the synthetic header prepended to a chunk before embedding.

    Parameters
    ----------
    chunk : CodeChunk
        Chunk to describe.
    tags : dict[str, Any] or None, optional
        Precomputed :func:`structural_tags`. Computed when omitted.

    Returns
    -------
    str
        Header lines naming the file, any role annotations and any declared
        types, terminated by a blank line.
    """
    tags = tags if tags is not None else structural_tags(chunk.file_path, chunk.content)

    lines = [f"File: {chunk.file_path}"]

    roles = [
        label
        for key, label in (
            ("is_controller", "controller"),
            ("is_service", "service"),
            ("is_repository", "repository"),
            ("is_test", "test"),
        )
        if tags.get(key)
    ]
    if roles:
        lines.append(f"Annotations: {', '.join(roles)}")

    if tags.get("class_names"):
        lines.append(f"Types: {', '.join(tags['class_names'])}")

    return "\n".join(lines) + "\n\n"


__all__ = [
    "detect_language",
    "is_controller",
    "is_service",
    "is_repository",
    "is_test",
    "extract_class_names",
    "structural_tags",
    "build_chunk_header",
]
