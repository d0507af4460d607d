"""coderepo_rag.common.errors

Exception types raised by the ingestion and retrieval pipeline.

Classes
-------
FetchError
    The repository source could not supply the file set for a repository.
ParseError
    A single file could not be normalised. Fatal to the current refresh.
IndexBackendError
    The semantic index backend failed or is unreachable.
"""


class FetchError(Exception):
    """Raised when repository files cannot be fetched.

    Parameters
    ----------
    message : str
        Human-readable description of the failure.
    repository_url : str or None, optional
        Repository the fetch was attempted for.
    """

    def __init__(self, message: str, repository_url: str | None = None):
        super().__init__(message)
        self.repository_url = repository_url


class ParseError(Exception):
    """Raised when a file cannot be normalised.

    Parameters
    ----------
    file_path : str
        Path of the offending file.
    message : str or None, optional
        Optional detail. Defaults to a generic message naming the file.
    """

    def __init__(self, file_path: str, message: str | None = None):
        super().__init__(message or f"Failed to parse file: {file_path}")
        self.file_path = file_path


class IndexBackendError(Exception):
    """Raised when the semantic index backend fails or cannot be reached."""


__all__ = ["FetchError", "ParseError", "IndexBackendError"]
