"""coderepo_rag.retrieval.repository_fetcher

Repository sources that supply raw file text for ingestion.

Classes
-------
GitHubRepositoryFetcher
    Fetch a repository's files through the GitHub contents API.
LocalRepositorySource
    Read a repository's files from a local checkout.

Functions
---------
should_process_file
    Whether a file name looks like source or documentation worth indexing.
extract_repo_path
    Convert a GitHub repository URL to ``owner/name``.
create_repository_source
    Create a repository source from configuration.
"""

import logging
import os
from pathlib import Path
from typing import Any, Mapping, Optional

import requests

from coderepo_rag.common.errors import FetchError

SUPPORTED_EXTENSIONS = (
    ".java", ".js", ".ts", ".py", ".cpp", ".c", ".h", ".hpp",
    ".cs", ".go", ".rs", ".php", ".rb", ".swift", ".kt",
    ".scala", ".clj", ".hs", ".ml", ".r", ".sql", ".md",
    ".txt", ".json", ".yml", ".yaml", ".xml", ".gradle",
    ".properties", ".proto", ".sh", ".bash", ".css", ".html",
)

COMMON_FILE_PREFIXES = (
    "readme", "license", "dockerfile", "makefile", "rakefile",
    "gemfile", "requirements", "package", "composer", "gulpfile",
)

SKIP_DIRECTORIES = frozenset({
    ".git", ".svn", ".hg", "__pycache__", "node_modules", "venv", ".venv",
    "dist", "build", "target", ".tox", ".pytest_cache", ".mypy_cache", ".idea",
})

GITHUB_URL_PREFIX = "https://github.com/"
DEFAULT_API_BASE = "https://api.github.com"

logger = logging.getLogger("coderepo_rag.retrieval.repository_fetcher")


def should_process_file(filename: str) -> bool:
    """Return ``True`` for file names with a supported extension or a well-known name.

    Examples
    --------
    >>> should_process_file("UserController.java")
    True
    >>> should_process_file("Dockerfile")
    True
    >>> should_process_file("logo.png")
    False
    """
    if not filename:
        return False

    lowered = filename.lower()
    if lowered.endswith(SUPPORTED_EXTENSIONS):
        return True
    return lowered.startswith(COMMON_FILE_PREFIXES)


def extract_repo_path(repository_url: str) -> str:
    """Return ``owner/name`` for a GitHub repository URL.

    Parameters
    ----------
    repository_url : str
        URL such as ``https://github.com/owner/repo`` or
        ``https://github.com/owner/repo.git``.

    Returns
    -------
    str
        The ``owner/repo`` path.

    Raises
    ------
    ValueError
        If the URL does not name an owner and a repository.
    """
    path = repository_url.strip().replace(GITHUB_URL_PREFIX, "")
    if path.endswith(".git"):
        path = path[:-len(".git")]
    path = path.strip("/")

    if "/" not in path:
        raise ValueError(f"Invalid GitHub repository URL: {repository_url}")
    return path


class GitHubRepositoryFetcher:
    """Fetch repository files through the GitHub REST contents API.

    Directories are walked recursively. Files whose name is not accepted by
    :func:`should_process_file` are skipped, and a file whose content cannot be
    downloaded is logged and skipped.

    Parameters
    ----------
    token : str or None, optional
        GitHub token. Falls back to the ``GITHUB_TOKEN`` environment variable;
        without either, requests are anonymous.
    api_base : str, optional
        API root. Defaults to ``"https://api.github.com"``.
    ref : str or None, optional
        Branch, tag or commit to read. Defaults to the repository default branch.
    timeout : float, optional
        Per-request timeout in seconds. Defaults to ``30``.
    session : requests.Session or None, optional
        Session to use; a new one is created when omitted.
    """

    def __init__(
            self,
            *,
            token: Optional[str] = None,
            api_base: str = DEFAULT_API_BASE,
            ref: Optional[str] = None,
            timeout: float = 30.0,
            session: Optional[requests.Session] = None,
        ):
        self.api_base = api_base.rstrip("/")
        self.ref = ref
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({"Accept": "application/vnd.github+json"})

        token = token or os.environ.get("GITHUB_TOKEN")
        if token and token.strip():
            self.session.headers["Authorization"] = f"Bearer {token.strip()}"
        else:
            logger.warning("No GitHub token configured; anonymous requests have stricter rate limits")

    @classmethod
    def from_config_dict(cls, config: Mapping[str, Any]) -> "GitHubRepositoryFetcher":
        return cls(
            token=config.get("github_token") or config.get("token"),
            api_base=config.get("api_base", DEFAULT_API_BASE),
            ref=config.get("ref"),
            timeout=float(config.get("timeout", 30.0)),
        )

    def fetch_files(self, repository_url: str) -> dict[str, str]:
        """Return ``{path: text}`` for every supported file in the repository.

        Raises
        ------
        ValueError
            If ``repository_url`` is not a GitHub repository URL.
        FetchError
            If a directory listing cannot be retrieved.
        """
        repo_path = extract_repo_path(repository_url)

        files: dict[str, str] = {}
        try:
            self._fetch_directory(repo_path, "", files)
        except (requests.RequestException, ValueError) as e:
            raise FetchError(f"Failed to fetch repository: {repository_url}: {e}", repository_url) from e

        logger.info("Fetched %d files from %s", len(files), repository_url)
        return files

    def _fetch_directory(self, repo_path: str, path: str, files: dict[str, str]) -> None:
        url = f"{self.api_base}/repos/{repo_path}/contents/{path}".rstrip("/")
        params = {"ref": self.ref} if self.ref else None

        response = self.session.get(url, params=params, timeout=self.timeout)
        response.raise_for_status()

        entries = response.json()
        if isinstance(entries, dict):
            entries = [entries]

        for entry in entries:
            entry_type = entry.get("type")
            if entry_type == "dir":
                self._fetch_directory(repo_path, entry["path"], files)
            elif entry_type == "file" and should_process_file(entry.get("name", "")):
                text = self._download(entry)
                if text is not None:
                    files[entry["path"]] = text

    def _download(self, entry: dict) -> Optional[str]:
        download_url = entry.get("download_url")
        if not download_url:
            return None
        try:
            response = self.session.get(download_url, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            logger.warning("Failed to fetch content for file %s: %s", entry.get("path"), e)
            return None
        return response.text


class LocalRepositorySource:
    """Read repository files from a directory on disk.

    Repository identifiers are resolved as paths, relative to ``root`` when one
    is given. Hidden entries and common build/VCS directories are skipped.

    Parameters
    ----------
    root : str or Path or None, optional
        Base directory for relative repository identifiers.
    """

    def __init__(self, root: str | Path | None = None):
        self.root = Path(root).expanduser() if root else None

    @classmethod
    def from_config_dict(cls, config: Mapping[str, Any]) -> "LocalRepositorySource":
        return cls(root=config.get("root"))

    def _resolve(self, repository_url: str) -> Path:
        path = Path(repository_url).expanduser()
        if not path.is_absolute() and self.root is not None:
            path = self.root / path
        return path

    def fetch_files(self, repository_url: str) -> dict[str, str]:
        """Return ``{relative_path: text}`` for supported files under the checkout.

        Raises
        ------
        FetchError
            If the checkout directory does not exist or cannot be listed.
        """
        base = self._resolve(repository_url)
        if not base.is_dir():
            raise FetchError(f"Repository directory not found: {base}", repository_url)

        files: dict[str, str] = {}

        def _raise(err: OSError) -> None:
            raise err

        try:
            for dirpath, dirnames, filenames in os.walk(base, onerror=_raise):
                dirnames[:] = sorted(
                    d for d in dirnames if d not in SKIP_DIRECTORIES and not d.startswith(".")
                )
                for filename in sorted(filenames):
                    if filename.startswith(".") or not should_process_file(filename):
                        continue
                    full_path = Path(dirpath) / filename
                    rel_path = full_path.relative_to(base).as_posix()
                    try:
                        files[rel_path] = full_path.read_text(encoding="utf-8", errors="replace")
                    except OSError as e:
                        logger.warning("Failed to read %s: %s", full_path, e)
        except OSError as e:
            raise FetchError(f"Failed to read repository directory {base}: {e}", repository_url) from e

        return files


def create_repository_source(config: Mapping[str, Any]):
    """Create a repository source from the ``repository_source`` section.

    Parameters
    ----------
    config : Mapping[str, Any]
        Section with a ``type`` of ``"github"`` (default) or ``"local"``.

    Returns
    -------
    GitHubRepositoryFetcher or LocalRepositorySource
        Initialised repository source.

    Raises
    ------
    ValueError
        If the type is not supported.
    """
    kind = str(config.get("type") or config.get("kind") or "github").lower()
    if kind == "github":
        return GitHubRepositoryFetcher.from_config_dict(config)
    if kind in {"local", "filesystem", "folder"}:
        return LocalRepositorySource.from_config_dict(config)
    raise ValueError(f"Unknown repository source type: {kind!r}")


__all__ = [
    "GitHubRepositoryFetcher",
    "LocalRepositorySource",
    "should_process_file",
    "extract_repo_path",
    "create_repository_source",
]
