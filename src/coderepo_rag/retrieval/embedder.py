"""coderepo_rag.retrieval.embedder

Embedding models for semantic code search.

Each embedder owns a LlamaIndex embedding instance, which the Qdrant-backed
index uses for both chunk text and queries. Code embedding models are often
trained with separate query and passage instructions, so both can be set from
configuration.

Classes
-------
BaseEmbedder
    Abstract interface used by the semantic index.
HuggingFaceEmbedder
    Local SentenceTransformer model.
OpenAILikeEmbedder
    Remote OpenAI-compatible ``/embeddings`` endpoint.

Functions
---------
create_embedder
    Create an embedder from the ``embedder`` configuration section.
"""

from abc import ABC, abstractmethod
from typing import Any, Mapping, Optional

from llama_index.core.base.embeddings.base import BaseEmbedding as LlamaIndexBaseEmbedding


def _flag(value: Any, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return bool(value)


class BaseEmbedder(ABC):
    """Abstract interface for the embedding model of the semantic index."""

    model_name: str

    @abstractmethod
    def get_embedder(self) -> LlamaIndexBaseEmbedding:
        """Return the LlamaIndex embedding handed to the vector index."""

    @classmethod
    @abstractmethod
    def from_config_dict(cls, config: Mapping[str, Any]) -> "BaseEmbedder":
        """Build the embedder from its configuration section.

        Raises
        ------
        KeyError
            If ``model_name`` (or another required key) is missing.
        """


class HuggingFaceEmbedder(BaseEmbedder):
    """Local SentenceTransformer embedding model.

    Parameters
    ----------
    model_name : str
        Hub id or local path of the model.
    device : str, optional
        ``"cpu"``, ``"cuda"`` or ``"mps"``. Defaults to ``"cpu"``.
    query_instruction : str or None, optional
        Prefix prepended to queries before embedding.
    text_instruction : str or None, optional
        Prefix prepended to chunk texts before embedding.
    max_length : int or None, optional
        Token limit per text. Longer chunks are truncated by the model.
    trust_remote_code : bool, optional
        Allow custom modelling code from the Hub. Several code models need it.
    """

    def __init__(
            self,
            model_name: str,
            *,
            device: str = "cpu",
            query_instruction: Optional[str] = None,
            text_instruction: Optional[str] = None,
            max_length: Optional[int] = None,
            trust_remote_code: bool = False,
        ):
        from llama_index.embeddings.huggingface import HuggingFaceEmbedding

        kwargs: dict[str, Any] = {}
        if max_length is not None:
            kwargs["max_length"] = int(max_length)

        self.model_name = model_name
        self.embedder = HuggingFaceEmbedding(
            model_name=model_name,
            device=device,
            query_instruction=query_instruction,
            text_instruction=text_instruction,
            trust_remote_code=trust_remote_code,
            **kwargs,
        )

    def get_embedder(self) -> LlamaIndexBaseEmbedding:
        return self.embedder

    @classmethod
    def from_config_dict(cls, config: Mapping[str, Any]) -> "HuggingFaceEmbedder":
        return cls(
            config["model_name"],
            device=config.get("device", "cpu"),
            query_instruction=config.get("query_instruction"),
            text_instruction=config.get("text_instruction"),
            max_length=config.get("max_length"),
            trust_remote_code=_flag(config.get("trust_remote_code"), False),
        )


class OpenAILikeEmbedder(BaseEmbedder):
    """Embedding model served behind an OpenAI-compatible API.

    Parameters
    ----------
    model_name : str
        Model id understood by the server.
    api_base : str
        Base URL, e.g. ``http://embeddings:8080/v1``.
    api_key : str or None, optional
        Bearer key. Local servers usually accept any value.
    timeout : float, optional
        Per-request timeout in seconds.
    max_retries : int, optional
        Retries per request.
    embed_batch_size : int, optional
        Chunk texts sent per request.
    """

    def __init__(
            self,
            model_name: str,
            *,
            api_base: str,
            api_key: Optional[str] = None,
            timeout: float = 60.0,
            max_retries: int = 3,
            embed_batch_size: int = 16,
        ):
        from llama_index.embeddings.openai_like import OpenAILikeEmbedding

        self.model_name = model_name
        self.embedder = OpenAILikeEmbedding(
            model_name=model_name,
            api_base=api_base,
            api_key=api_key or "fake",
            timeout=timeout,
            max_retries=max_retries,
            embed_batch_size=embed_batch_size,
        )

    def get_embedder(self) -> LlamaIndexBaseEmbedding:
        return self.embedder

    @classmethod
    def from_config_dict(cls, config: Mapping[str, Any]) -> "OpenAILikeEmbedder":
        return cls(
            config["model_name"],
            api_base=config["api_base"],
            api_key=config.get("api_key"),
            timeout=float(config.get("timeout", 60.0)),
            max_retries=int(config.get("max_retries", 3)),
            embed_batch_size=int(config.get("embed_batch_size", 16)),
        )


_EMBEDDER_ALIASES = {
    "openailike": "openai_like",
    "open_ai_like": "openai_like",
    "huggingfaceembedding": "huggingface",
    "sentence_transformers": "huggingface",
    "sentencetransformers": "huggingface",
}


def _get_embedder_kind(cfg: Mapping[str, Any]) -> str:
    for key in ("kind", "type", "provider", "backend", "impl"):
        val = cfg.get(key)
        if isinstance(val, str) and val.strip():
            return val.strip()
    return ""


def _normalize_embedder_kind(kind: str) -> str:
    """Lower-case ``kind`` with ``-`` and spaces as ``_``, then resolve aliases."""
    k = kind.strip().lower().replace("-", "_").replace(" ", "_")
    return _EMBEDDER_ALIASES.get(k, k)


def create_embedder(config: Mapping[str, Any]) -> BaseEmbedder:
    """Create an embedder from the ``embedder`` configuration section.

    The implementation is picked by one of ``kind``, ``type``, ``provider``,
    ``backend`` or ``impl``. Without a discriminator a local Hugging Face
    model is used.

    Raises
    ------
    TypeError
        If ``config`` is not a mapping.
    ValueError
        If the discriminator names an unsupported implementation.
    """
    if not isinstance(config, Mapping):
        raise TypeError(f"create_embedder expected a mapping/dict, got {type(config)}")

    kind_raw = _get_embedder_kind(config)
    kind = _normalize_embedder_kind(kind_raw)

    registry: dict[str, type[BaseEmbedder]] = {
        "huggingface": HuggingFaceEmbedder,
        "hugging_face": HuggingFaceEmbedder,
        "hf": HuggingFaceEmbedder,
        "openai_like": OpenAILikeEmbedder,
        "openai": OpenAILikeEmbedder,
    }

    cls = registry.get(kind) if kind else HuggingFaceEmbedder
    if cls is None:
        raise ValueError(
            f"Unknown embedder kind '{kind_raw}' (normalized to '{kind}'). "
            f"Supported kinds: {sorted(registry.keys())}."
        )
    return cls.from_config_dict(config)


__all__ = [
    "BaseEmbedder",
    "HuggingFaceEmbedder",
    "OpenAILikeEmbedder",
    "create_embedder",
]
