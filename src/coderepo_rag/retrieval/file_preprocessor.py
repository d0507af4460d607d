"""coderepo_rag.retrieval.file_preprocessor

Source file normalisation prior to chunking.

This module strips low-information noise from raw repository files before
they are chunked: binary payloads are discarded, blank lines and comments are
dropped, block comments are elided, and import-style statements are kept but
marked so downstream components can recognise them.

Functions
---------
is_binary_content
    Return ``True`` when text looks like a binary payload.
clean_content
    Remove comments and blank lines and mark import statements.
preprocess_file
    Normalise one file, prefixing a ``// File:`` header.
preprocess_files
    Normalise a ``{path: text}`` mapping, skipping files with no content.
"""

import re
from typing import Mapping

from coderepo_rag.common.errors import ParseError

COMMENT_PATTERN = re.compile(r"^\s*[#/\*].*")
IMPORT_PATTERN = re.compile(r"^\s*(import|include|require|using)\s+")
FILE_HEADER_PREFIX = "// File: "
IMPORT_PREFIX = "// Import: "
CONTROL_CHAR_THRESHOLD = 0.10

_ALLOWED_CONTROL_CHARS = {"\t", "\n", "\r"}


def is_binary_content(text: str) -> bool:
    """Detect whether decoded file text is actually a binary payload.

    Parameters
    ----------
    text : str
        Decoded file content.

    Returns
    -------
    bool
        ``True`` if ``text`` contains a null character, or if more than 10% of
        its characters are control characters other than tab, line feed and
        carriage return.
    """
    if not text:
        return False

    if "\x00" in text:
        return True

    control = sum(1 for ch in text if ord(ch) < 32 and ch not in _ALLOWED_CONTROL_CHARS)
    return control > len(text) * CONTROL_CHAR_THRESHOLD


def clean_content(text: str) -> str:
    """Remove comments and blank lines from source text.

    Parameters
    ----------
    text : str
        Raw source text.

    Returns
    -------
    str
        Cleaned text, one kept line per output line, each terminated by
        ``"\\n"``. Import/include/require/using lines are rewritten as
        ``"// Import: <statement>"``.

    Notes
    -----
    A line containing ``/*`` opens a block comment. Every line up to and
    including the first one containing ``*/`` is dropped.
    """
    cleaned: list[str] = []
    in_block_comment = False

    for line in text.split("\n"):
        stripped = line.strip()

        if "/*" in stripped:
            in_block_comment = True
        if in_block_comment and "*/" in stripped:
            in_block_comment = False
            continue
        if in_block_comment:
            continue

        if not stripped or COMMENT_PATTERN.match(stripped):
            continue

        if IMPORT_PATTERN.match(stripped):
            cleaned.append(f"{IMPORT_PREFIX}{stripped}\n")
            continue

        cleaned.append(line.rstrip("\r") + "\n")

    return "".join(cleaned)


def preprocess_file(text: str, file_path: str) -> str:
    """Normalise a single repository file.

    Parameters
    ----------
    text : str
        Raw file text.
    file_path : str
        Path of the file within its repository; used for the header and for
        error reporting.

    Returns
    -------
    str
        ``"// File: <file_path>\\n"`` followed by the cleaned content, or an
        empty string when the file is binary or nothing survives cleaning.

    Raises
    ------
    ParseError
        If normalisation fails unexpectedly.
    """
    try:
        if text is None or is_binary_content(text):
            return ""

        cleaned = clean_content(text)
        if not cleaned.strip():
            return ""

        return f"{FILE_HEADER_PREFIX}{file_path}\n{cleaned}"
    except Exception as e:
        raise ParseError(file_path, f"Failed to parse file {file_path}: {e}") from e


def preprocess_files(files: Mapping[str, str]) -> dict[str, str]:
    """Normalise a mapping of repository files.

    Parameters
    ----------
    files : Mapping[str, str]
        Mapping of file path to raw text.

    Returns
    -------
    dict[str, str]
        Mapping of file path to normalised text, in input order, containing
        only files whose normalised text is non-empty.

    Raises
    ------
    ParseError
        If any file fails to normalise. No partial result is returned.
    """
    processed: dict[str, str] = {}

    for file_path, text in files.items():
        normalised = preprocess_file(text, file_path)
        if normalised:
            processed[file_path] = normalised

    return processed


__all__ = [
    "is_binary_content",
    "clean_content",
    "preprocess_file",
    "preprocess_files",
]
