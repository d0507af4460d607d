from types import SimpleNamespace

import pytest
import requests

from coderepo_rag.common.errors import FetchError
from coderepo_rag.retrieval.repository_fetcher import (
    GitHubRepositoryFetcher,
    LocalRepositorySource,
    create_repository_source,
    extract_repo_path,
    should_process_file,
)

API = "https://api.github.com"


class FakeResponse:
    """Minimal stand-in for requests.Response."""

    def __init__(self, payload=None, text="", status_code=200):
        self._payload = payload
        self.text = text
        self.status_code = status_code

    def json(self):
        return self._payload

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")


class FakeSession:
    """Session stub serving canned responses keyed by URL."""

    def __init__(self, routes):
        self.routes = routes
        self.headers = {}
        self.requested = []

    def get(self, url, params=None, timeout=None):
        self.requested.append(url)
        response = self.routes.get(url)
        if response is None:
            return FakeResponse(status_code=404)
        return response


def test_extract_repo_path():
    """
    The GitHub prefix and .git suffix are removed; bare names are rejected.
    """
    assert extract_repo_path("https://github.com/acme/shop") == "acme/shop"
    assert extract_repo_path("https://github.com/acme/shop.git") == "acme/shop"
    with pytest.raises(ValueError):
        extract_repo_path("https://github.com/shop")


def test_should_process_file():
    """
    Supported extensions and well-known extensionless names are accepted.
    """
    assert should_process_file("Main.java")
    assert should_process_file("README")
    assert should_process_file("Dockerfile")
    assert not should_process_file("logo.png")
    assert not should_process_file("archive.tar.gz")


def test_github_fetcher_walks_directories_and_filters_files():
    """
    Directories are walked recursively and only supported files downloaded.
    """
    base = f"{API}/repos/acme/shop/contents"
    session = FakeSession({
        base: FakeResponse([
            {"type": "file", "name": "README.md", "path": "README.md", "download_url": "raw/README.md"},
            {"type": "file", "name": "logo.png", "path": "logo.png", "download_url": "raw/logo.png"},
            {"type": "dir", "name": "src", "path": "src"},
        ]),
        f"{base}/src": FakeResponse([
            {"type": "file", "name": "App.java", "path": "src/App.java", "download_url": "raw/App.java"},
        ]),
        "raw/README.md": FakeResponse(text="# Shop"),
        "raw/App.java": FakeResponse(text="class App {}"),
    })
    fetcher = GitHubRepositoryFetcher(token="t", session=session)

    files = fetcher.fetch_files("https://github.com/acme/shop")

    assert files == {"README.md": "# Shop", "src/App.java": "class App {}"}
    assert "raw/logo.png" not in session.requested
    assert session.headers["Authorization"] == "Bearer t"


def test_github_fetcher_skips_files_that_fail_to_download():
    """
    A failed file download is logged and skipped.
    """
    base = f"{API}/repos/acme/shop/contents"
    session = FakeSession({
        base: FakeResponse([
            {"type": "file", "name": "A.java", "path": "A.java", "download_url": "raw/A.java"},
            {"type": "file", "name": "B.java", "path": "B.java", "download_url": "raw/B.java"},
        ]),
        "raw/B.java": FakeResponse(text="class B {}"),
    })
    fetcher = GitHubRepositoryFetcher(token="t", session=session)

    assert fetcher.fetch_files("https://github.com/acme/shop") == {"B.java": "class B {}"}


def test_github_fetcher_listing_failure_raises_fetch_error():
    """
    A failed directory listing aborts the fetch with FetchError.
    """
    fetcher = GitHubRepositoryFetcher(token="t", session=FakeSession({}))

    with pytest.raises(FetchError) as excinfo:
        fetcher.fetch_files("https://github.com/acme/missing")

    assert excinfo.value.repository_url == "https://github.com/acme/missing"


def test_github_fetcher_reads_token_from_environment(monkeypatch):
    """
    Without a configured token the GITHUB_TOKEN variable is used.
    """
    monkeypatch.setenv("GITHUB_TOKEN", "env-token")
    session = FakeSession({})

    fetcher = GitHubRepositoryFetcher(session=session)

    assert fetcher.session.headers["Authorization"] == "Bearer env-token"


def test_local_source_reads_supported_files(tmp_path):
    """
    Local checkouts are walked, skipping hidden and build directories.
    """
    (tmp_path / "src").mkdir()
    (tmp_path / "src" / "app.py").write_text("print('hi')\n")
    (tmp_path / "image.png").write_bytes(b"\x89PNG")
    (tmp_path / ".git").mkdir()
    (tmp_path / ".git" / "config.yml").write_text("x: 1\n")
    (tmp_path / "node_modules").mkdir()
    (tmp_path / "node_modules" / "dep.js").write_text("var x;\n")
    (tmp_path / "README.md").write_text("# Demo\n")

    files = LocalRepositorySource().fetch_files(str(tmp_path))

    assert files == {"README.md": "# Demo\n", "src/app.py": "print('hi')\n"}


def test_local_source_missing_directory_raises_fetch_error(tmp_path):
    """
    A repository path that is not a directory raises FetchError.
    """
    source = LocalRepositorySource(root=tmp_path)

    with pytest.raises(FetchError):
        source.fetch_files("does-not-exist")


def test_create_repository_source_by_type(tmp_path):
    """
    The factory selects the implementation from the type key.
    """
    assert isinstance(create_repository_source({"type": "local", "root": str(tmp_path)}), LocalRepositorySource)
    assert isinstance(create_repository_source({"github_token": "t"}), GitHubRepositoryFetcher)
    with pytest.raises(ValueError):
        create_repository_source({"type": "svn"})
