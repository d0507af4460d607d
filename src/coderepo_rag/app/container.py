"""coderepo_rag.app.container

Composition root for the code repository RAG system.

This module is the single place where concrete implementations are wired
together from configuration (chunker, embedder, indexes, repository source,
retriever, refresh pipeline and chat pipeline). Components are constructed
lazily and cached on first access.

Notes
-----
Importing this module touches neither the network nor the filesystem;
implementation modules are imported inside the properties that need them.

The semantic index is optional. When ``vector_store`` is not configured, or
the backend cannot be reached when it is first built, the container runs in
lexical-only mode for the lifetime of the process.

Examples
--------
>>> from coderepo_rag.config import GlobalConfig
>>> from coderepo_rag.app.container import build_container
>>> cfg = GlobalConfig.load("config.yaml")
>>> c = build_container(cfg)
>>> c.refresh_pipeline.refresh_from_source("https://github.com/owner/repo")
>>> answer = c.chat_pipeline.run("Where is login handled?")
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import cached_property
from pathlib import Path
from typing import Any, Mapping

from coderepo_rag.common.errors import IndexBackendError

logger = logging.getLogger("coderepo_rag.app.container")


@dataclass(frozen=True)
class CodeRepoContainer:
    """Holds the configured, cached runtime components for the application.

    Parameters
    ----------
    config : Any
        Loaded global configuration object (typically :class:`coderepo_rag.config.GlobalConfig`).
    """

    config: Any

    @cached_property
    def chunker(self) -> Any:
        """Return the code chunker configured from ``config.chunking``."""
        from coderepo_rag.retrieval.text_splitter import CodeChunker

        return CodeChunker.from_config_dict(_as_mapping(self.config.chunking))

    @cached_property
    def embedder(self) -> Any:
        """Return the embedding model wrapper.

        Returns
        -------
        Any
            Configured embedder instance used to embed chunks and queries.
        """
        from coderepo_rag.retrieval.embedder import create_embedder

        section = _as_mapping(self.config.embedder)
        return create_embedder(section)

    @cached_property
    def semantic_store(self) -> Any:
        """Return the semantic index, or ``None`` for lexical-only mode.

        Returns
        -------
        Any or None
            A :class:`coderepo_rag.retrieval.vector_store.BaseVectorStore`, or
            ``None`` if no vector store is configured or it is unreachable.
        """
        section = self.config.vector_store
        if section is None:
            logger.info("No vector store configured; using the lexical index only")
            return None

        from coderepo_rag.retrieval.vector_store import create_vector_store

        try:
            return create_vector_store(dict(_as_mapping(section)), self.embedder)
        except IndexBackendError:
            logger.warning("Vector store unavailable; using the lexical index only", exc_info=True)
            return None

    @cached_property
    def index(self) -> Any:
        """Return the dual-mode chunk index shared by refresh and retrieval."""
        from coderepo_rag.retrieval.vector_store import FallbackVectorStore

        return FallbackVectorStore(semantic=self.semantic_store)

    @cached_property
    def repository_source(self) -> Any:
        """Return the collaborator that fetches repository files."""
        from coderepo_rag.retrieval.repository_fetcher import create_repository_source

        return create_repository_source(_as_mapping(self.config.repository_source))

    @cached_property
    def retriever(self) -> Any:
        """Return the query-time retriever over :attr:`index`."""
        from coderepo_rag.retrieval.retriever import CodeRetriever

        section = _as_mapping(self.config.retriever)
        return CodeRetriever(index=self.index, max_results=section["max_results"])

    @cached_property
    def refresh_pipeline(self) -> Any:
        """Return the refresh pipeline, the only writer of :attr:`index`."""
        from coderepo_rag.pipelines.refresh_pipeline import RefreshPipeline

        section = _as_mapping(self.config.refresh)
        return RefreshPipeline(
            index=self.index,
            chunker=self.chunker,
            repository_source=self.repository_source,
            max_workers=section["max_workers"],
        )

    @cached_property
    def generator_llm(self) -> Any:
        """Return the LLM used to generate answers, or ``None`` if not configured."""
        section = self.config.generator_llm
        if section is None:
            return None

        from coderepo_rag.generation.llm_interface import create_llm

        return create_llm(dict(_as_mapping(section)))

    @cached_property
    def prompt_builder(self) -> Any:
        """Return the prompt builder.

        Built-in templates are always registered. Additional sources from
        ``config.prompts`` are resolved relative to the loaded config file
        directory (when available), not the current working directory.
        """
        from coderepo_rag.generation.prompt_builder import PromptBuilder

        builder = PromptBuilder()
        prompts = getattr(self.config, "prompts", None)
        if prompts is None:
            return builder
        if isinstance(prompts, str):
            prompts = [prompts]
        if not isinstance(prompts, (list, tuple)):
            raise TypeError(f"config.prompts must be a str or list[str], got {type(prompts)!r}")

        config_path = getattr(self.config, "config_path", None)
        base_dir = Path(config_path).expanduser().resolve().parent if config_path else None
        for source in prompts:
            names = builder.register_from_source(str(source), base_dir=base_dir)
            logger.info("Loaded prompt templates %s from %s", names, source)
        return builder

    @cached_property
    def prompt_name(self) -> str:
        """Return the configured prompt name.

        Raises
        ------
        ValueError
            If the configured prompt name is not registered.
        """
        prompt_name = str(getattr(self.config, "prompt_name", None) or "code_qa")
        if not self.prompt_builder.has_prompt(prompt_name):
            available = ", ".join(self.prompt_builder.list_prompts())
            raise ValueError(
                f"Configured prompt_name {prompt_name!r} was not found in loaded prompts. "
                f"Available: [{available}]"
            )
        return prompt_name

    @cached_property
    def chat_pipeline(self) -> Any:
        """Return the fully wired question-answering pipeline."""
        from coderepo_rag.pipelines.rag_pipeline import CodeChatPipeline

        return CodeChatPipeline(
            retriever=self.retriever,
            llm=self.generator_llm,
            prompt_builder=self.prompt_builder,
            prompt_name=self.prompt_name,
        )


def build_container(config: Any) -> CodeRepoContainer:
    """Create a :class:`~coderepo_rag.app.container.CodeRepoContainer`.

    Single entry point for the FastAPI startup hook, CLI scripts and tests.
    """
    return CodeRepoContainer(config=config)


def _as_mapping(obj: Any) -> Mapping[str, Any]:
    """Coerce an object into a mapping.

    Raises
    ------
    TypeError
        If ``obj`` cannot be interpreted as a mapping.
    """
    if isinstance(obj, Mapping):
        return obj

    if hasattr(obj, "__dict__"):
        return dict(vars(obj))

    raise TypeError(f"Expected mapping type but got {type(obj)}")


__all__ = ["CodeRepoContainer", "build_container"]
