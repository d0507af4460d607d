"""coderepo_rag.generation.llm_interface

Optional generative-text backend for code chat.

The chat pipeline only needs ``generate(prompt, **kwargs) -> str``. Both
implementations talk to an OpenAI-compatible server (OpenAI itself, vLLM,
llama.cpp, Ollama's ``/v1`` endpoint and so on) through LangChain's OpenAI
wrappers, differing only in whether the completions or the chat completions
API is used.

Classes
-------
BaseLLM
    Interface the chat pipeline depends on.
OpenAILikeLLM
    Text completions API.
OpenAIChatLikeLLM
    Chat completions API.

Functions
---------
create_llm
    Build the configured backend from the ``generator_llm`` section.
"""

from abc import ABC, abstractmethod
from typing import Any, ClassVar, Mapping

from langchain_core.language_models import BaseLanguageModel
from langchain_openai import OpenAI, ChatOpenAI


class BaseLLM(ABC):
    """Interface for text generation."""

    @classmethod
    @abstractmethod
    def from_config_dict(cls, config: Mapping[str, Any]) -> "BaseLLM":
        """Build the backend from its configuration section.

        Raises
        ------
        ValueError
            If a required key is missing or empty.
        """

    @abstractmethod
    def get_llm(self) -> BaseLanguageModel:
        """Return the wrapped LangChain model."""

    @abstractmethod
    def generate(self, prompt: str, **kwargs) -> str:
        """Return the model's answer to ``prompt``.

        Keyword arguments (``temperature``, ``max_tokens`` ...) are bound to
        the model for this call only.
        """


def _coerce_top_p(top_p: Any) -> float | None:
    """Return ``top_p`` as a float in ``(0, 1)``, or ``None`` if unusable."""
    if top_p is None:
        return None
    try:
        value = float(top_p)
    except (TypeError, ValueError):
        return None
    return value if 0.0 < value < 1.0 else None


def _required(config: Mapping[str, Any], key: str) -> Any:
    value = config.get(key)
    if not value:
        raise ValueError(f"generator_llm config is missing required key '{key}'.")
    return value


class _OpenAICompatibleLLM(BaseLLM):
    """Shared construction for LangChain's OpenAI client classes.

    Parameters
    ----------
    model_name : str
        Model id served at ``api_base``.
    api_base : str
        Base URL of the OpenAI-compatible API.
    api_key : str or None, optional
        Key sent to the server. Local servers without auth get ``"fake"``.
    **model_kwargs : Any
        Client options such as ``temperature``, ``max_tokens`` or
        ``timeout``. An out-of-range ``top_p`` is dropped.
    """

    client_cls: ClassVar[type]

    def __init__(self, model_name: str, api_base: str, api_key: str | None = None, **model_kwargs: Any):
        self.model_name = model_name
        self.api_base = api_base

        options = dict(model_kwargs)
        top_p = _coerce_top_p(options.pop("top_p", None))
        if top_p is not None:
            options["top_p"] = top_p

        self.llm = self.client_cls(
            model=model_name,
            base_url=api_base,
            api_key=api_key or "fake",
            **options,
        )

    @classmethod
    def from_config_dict(cls, config: Mapping[str, Any]) -> "_OpenAICompatibleLLM":
        return cls(
            _required(config, "model_name"),
            _required(config, "api_base"),
            api_key=config.get("api_key"),
            **(config.get("model_kwargs") or {}),
        )

    def get_llm(self) -> BaseLanguageModel:
        return self.llm

    def _invoke(self, prompt: str, **kwargs: Any) -> Any:
        model = self.llm.bind(**kwargs) if kwargs else self.llm
        return model.invoke(prompt)


class OpenAILikeLLM(_OpenAICompatibleLLM):
    """Completion model behind an OpenAI-compatible ``/completions`` API."""

    client_cls = OpenAI

    def generate(self, prompt: str, **kwargs) -> str:
        return str(self._invoke(prompt, **kwargs))


class OpenAIChatLikeLLM(_OpenAICompatibleLLM):
    """Chat model behind an OpenAI-compatible ``/chat/completions`` API.

    The rendered prompt is sent as a single user message.
    """

    client_cls = ChatOpenAI

    def generate(self, prompt: str, **kwargs) -> str:
        message = self._invoke(prompt, **kwargs)
        return message.content if hasattr(message, "content") else str(message)


_LLM_ALIASES = {
    "openailike": "openai_like",
    "open_ai_like": "openai_like",
    "openai": "openai_like",
    "openaichatlike": "openai_chat",
    "openai_chat_like": "openai_chat",
    "chatopenai": "openai_chat",
    "chat_openai": "openai_chat",
}

_LLM_REGISTRY: dict[str, type[BaseLLM]] = {
    "openai_like": OpenAILikeLLM,
    "openai_chat": OpenAIChatLikeLLM,
}


def _get_llm_kind(cfg: Mapping[str, Any]) -> str:
    for key in ("kind", "type", "provider", "backend", "impl"):
        val = cfg.get(key)
        if isinstance(val, str) and val.strip():
            return val.strip()
    return ""


def _normalize_llm_kind(kind: str) -> str:
    k = kind.strip().lower().replace("-", "_").replace(" ", "_")
    return _LLM_ALIASES.get(k, k)


def create_llm(config: Mapping[str, Any]) -> BaseLLM:
    """Build the configured generative backend.

    Parameters
    ----------
    config : Mapping[str, Any]
        The ``generator_llm`` section. One of ``kind``, ``type``,
        ``provider``, ``backend`` or ``impl`` selects the implementation.

    Returns
    -------
    BaseLLM
        The constructed backend. No request is made to the server.

    Raises
    ------
    TypeError
        If ``config`` is not a mapping.
    ValueError
        If the discriminator is missing or unknown, or a required key is empty.
    """
    if not isinstance(config, Mapping):
        raise TypeError(f"create_llm expected a mapping/dict, got {type(config)}")

    kind_raw = _get_llm_kind(config)
    if not kind_raw:
        raise ValueError(
            "generator_llm config is missing a discriminator field (type/kind/provider/etc.). "
            "Add e.g. type: OpenAIChatLike."
        )

    kind = _normalize_llm_kind(kind_raw)
    cls = _LLM_REGISTRY.get(kind)
    if cls is None:
        raise ValueError(
            f"Unknown LLM kind '{kind_raw}' (normalized to '{kind}'). "
            f"Supported kinds: {sorted(_LLM_REGISTRY)} (aliases: {sorted(_LLM_ALIASES)})."
        )
    return cls.from_config_dict(config)


__all__ = [
    "BaseLLM",
    "OpenAILikeLLM",
    "OpenAIChatLikeLLM",
    "create_llm",
]
