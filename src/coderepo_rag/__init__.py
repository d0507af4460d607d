"""coderepo_rag

Code repository ingestion and retrieval package.

This package turns the files of source repositories into searchable chunks
and answers questions about them: content normalisation, language-aware
chunking, a dual-mode (semantic with lexical fallback) index, retrieval with
context rendering, and repository refresh orchestration.

Attributes
----------
__version__ : str
    Package version string. Defaults to ``"0.0.0-dev"`` when package metadata is
    unavailable.

Modules
-------
config
    Global configuration loader and cached accessors.
app
    Application container and HTTP API.
pipelines
    Refresh and question-answering orchestration.
retrieval
    Repository sources, normalisation, chunking, indexes and retrieval.
generation
    LLM and prompt-building interfaces and factories.
common
    Shared schemas and error types.

Exports
-------
GlobalConfig
    Global configuration loader and accessor.
CodeRepoContainer
    Cached runtime component container for applications.
build_container
    Factory function to construct a configured :class:`~coderepo_rag.app.container.CodeRepoContainer`.
RefreshPipeline
    Repository refresh orchestrator.
CodeChatPipeline
    Question answering over retrieved code.
CodeChunk
    Chunk schema.
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("coderepo-rag")
except PackageNotFoundError:
    __version__ = "0.0.0-dev"

from .config import GlobalConfig
from .app.container import CodeRepoContainer, build_container
from .pipelines.refresh_pipeline import RefreshPipeline
from .pipelines.rag_pipeline import CodeChatPipeline
from .common import CodeChunk

__all__ = [
    "__version__",
    "GlobalConfig",
    "CodeRepoContainer",
    "build_container",
    "RefreshPipeline",
    "CodeChatPipeline",
    "CodeChunk",
]
