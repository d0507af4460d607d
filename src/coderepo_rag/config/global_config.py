"""coderepo_rag.config.global_config

Global configuration loader and accessors.

This module defines a lightweight wrapper around a raw YAML configuration
dictionary, providing validated, cached access to the configuration sections
used by the ingestion and retrieval pipeline.

Environment variables of the form ``${VAR}`` or ``${VAR:-default}`` are
expanded in every string value at load time.

Classes
-------
GlobalConfig
    Loader and accessor for global project configuration.
"""

import os
import re
import yaml
from pathlib import Path
from functools import cached_property

DEFAULT_CHUNK_SIZE = 1000
DEFAULT_CHUNK_OVERLAP = 100
DEFAULT_MAX_RESULTS = 5


_ENV_REF = re.compile(r"\$\{(?P<name>[A-Za-z_][A-Za-z0-9_]*)(?::-(?P<default>[^}]*))?\}")


def _substitute_env(text: str) -> str:
    """Replace ``${VAR}`` and ``${VAR:-default}`` in ``text``.

    Unset variables without a default are left as written.
    """
    def repl(match: re.Match) -> str:
        value = os.environ.get(match.group("name"))
        if value is not None:
            return value
        default = match.group("default")
        return default if default is not None else match.group(0)

    return _ENV_REF.sub(repl, text)


def _expand_env(obj):
    """Apply :func:`_substitute_env` to every string in a parsed YAML tree."""
    if isinstance(obj, dict):
        return {k: _expand_env(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_expand_env(v) for v in obj]
    if isinstance(obj, str):
        return _substitute_env(obj)
    return obj


def _section(raw: dict, name: str) -> dict:
    """Return an optional mapping section, validating its type."""
    value = raw.get(name)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise TypeError(f"'{name}' must be a mapping, got {type(value)}.")
    return value


def _positive_int(section: dict, key: str, default: int, *, context: str) -> int:
    value = section.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"'{context}.{key}' must be an integer, got {type(value)}.")
    if value <= 0:
        raise ValueError(f"'{context}.{key}' must be positive, got {value}.")
    return value


class GlobalConfig:
    """Loader and accessor for global project configuration.

    Parameters
    ----------
    raw : dict
        Raw configuration data as loaded from a YAML file.
    config_path : Path or None, optional
        Absolute path of the loaded file, used to resolve relative paths.
    """

    def __init__(
            self,
            raw: dict | None = None,
            config_path: Path | None = None,
        ):
        self.raw = raw or {}
        self.config_path = config_path

    @classmethod
    def load(
            cls,
            path: str | Path,
        ) -> "GlobalConfig":
        """Load configuration from a YAML file.

        Parameters
        ----------
        path : str or Path
            Path to the YAML configuration file.

        Returns
        -------
        GlobalConfig
            An instance initialised with the loaded and environment-expanded data.

        Raises
        ------
        TypeError
            If the top level of the file is not a mapping.
        """
        cfg_path = Path(path).expanduser().resolve()
        with cfg_path.open("r") as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise TypeError(f"Configuration root must be a mapping, got {type(data)}.")
        data = _expand_env(data)
        return cls(data, config_path=cfg_path)

    @cached_property
    def chunking(self) -> dict:
        """Return chunking parameters with defaults applied.

        Returns
        -------
        dict
            Mapping with integer ``chunk_size`` and ``overlap`` keys.

        Raises
        ------
        TypeError
            If the section or either value has the wrong type.
        ValueError
            If a value is not positive, or ``overlap >= chunk_size``.
        """
        section = _section(self.raw, "chunking")
        chunk_size = _positive_int(section, "chunk_size", DEFAULT_CHUNK_SIZE, context="chunking")
        overlap = section.get("overlap", DEFAULT_CHUNK_OVERLAP)
        if isinstance(overlap, bool) or not isinstance(overlap, int) or overlap < 0:
            raise TypeError("'chunking.overlap' must be a non-negative integer.")
        if overlap >= chunk_size:
            raise ValueError(
                f"'chunking.overlap' ({overlap}) must be smaller than 'chunking.chunk_size' ({chunk_size})."
            )
        return {"chunk_size": chunk_size, "overlap": overlap}

    @cached_property
    def embedder(self) -> dict:
        """Return the embedder configuration section.

        Raises
        ------
        KeyError
            If ``embedder`` is missing while a vector store is enabled.
        """
        section = self.raw.get("embedder")
        if section is None:
            raise KeyError("Missing 'embedder' in configuration.")
        return section

    @cached_property
    def vector_store(self) -> dict | None:
        """Return the semantic vector-store configuration.

        Returns
        -------
        dict or None
            The ``vector_store`` section, or ``None`` when the section is absent
            or carries ``enabled: false``. ``None`` selects lexical-only mode.
        """
        section = self.raw.get("vector_store")
        if section is None:
            return None
        if not isinstance(section, dict):
            raise TypeError(f"'vector_store' must be a mapping, got {type(section)}.")
        if section.get("enabled", True) is False:
            return None
        return section

    @cached_property
    def retriever(self) -> dict:
        """Return retriever settings with defaults applied.

        Returns
        -------
        dict
            Mapping with an integer ``max_results`` key.
        """
        section = _section(self.raw, "retriever")
        return {
            **section,
            "max_results": _positive_int(section, "max_results", DEFAULT_MAX_RESULTS, context="retriever"),
        }

    @cached_property
    def generator_llm(self) -> dict | None:
        """Return the generator LLM configuration section, or ``None`` if unset."""
        section = self.raw.get("generator_llm")
        if section is not None and not isinstance(section, dict):
            raise TypeError(f"'generator_llm' must be a mapping, got {type(section)}.")
        return section

    @cached_property
    def prompts(self):
        """Return the prompts configuration entry.

        Returns
        -------
        str or list[str] or None
            A single prompt source, a list of sources, or ``None``.
        """
        return self.raw.get("prompts")

    @cached_property
    def prompt_name(self) -> str:
        """Return the configured prompt name (default ``"code_qa"``)."""
        return str(self.raw.get("prompt_name", "code_qa"))

    @cached_property
    def repository_source(self) -> dict:
        """Return the repository source section.

        Returns
        -------
        dict
            The ``repository_source`` section, or an empty dict (GitHub with the
            ``GITHUB_TOKEN`` environment token).
        """
        return _section(self.raw, "repository_source")

    @cached_property
    def refresh(self) -> dict:
        """Return refresh settings with defaults applied.

        Returns
        -------
        dict
            Mapping with an integer ``max_workers`` key for background refreshes.
        """
        section = _section(self.raw, "refresh")
        return {"max_workers": _positive_int(section, "max_workers", 2, context="refresh")}

    @cached_property
    def logging(self) -> dict:
        """Return logging settings.

        Returns
        -------
        dict
            Mapping with a ``level`` key (default ``"INFO"``).
        """
        section = _section(self.raw, "logging")
        level = section.get("level", "INFO")
        if not isinstance(level, str):
            raise TypeError("'logging.level' must be a string.")
        return {"level": level.upper()}


__all__ = ["GlobalConfig"]
