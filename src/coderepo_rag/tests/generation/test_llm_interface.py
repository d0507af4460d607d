from types import SimpleNamespace

import pytest

from coderepo_rag.generation.llm_interface import OpenAIChatLikeLLM, OpenAILikeLLM, create_llm


def test_create_llm_requires_discriminator():
    """
    A config without a type/kind key is rejected.
    """
    with pytest.raises(ValueError):
        create_llm({"model_name": "m", "api_base": "http://localhost:8000/v1"})


def test_create_llm_rejects_unknown_kind():
    """
    Unsupported kinds raise ValueError naming the supported ones.
    """
    with pytest.raises(ValueError, match="Supported kinds"):
        create_llm({"type": "tgi", "model_name": "m", "api_base": "http://x"})


def test_create_llm_requires_model_and_base():
    """
    model_name and api_base are mandatory.
    """
    with pytest.raises(ValueError, match="api_base"):
        create_llm({"type": "OpenAIChatLike", "model_name": "m"})


def test_create_llm_builds_chat_model():
    """
    Chat-like kinds are built on ChatOpenAI without contacting the server.
    """
    llm = create_llm({
        "type": "OpenAIChatLike",
        "model_name": "local-model",
        "api_base": "http://localhost:8000/v1",
        "model_kwargs": {"temperature": 0.1, "top_p": 5},
    })

    assert isinstance(llm, OpenAIChatLikeLLM)
    assert llm.get_llm().model_name == "local-model"
    assert llm.api_base == "http://localhost:8000/v1"


class FakeChatModel:
    """Stands in for ChatOpenAI, recording bound kwargs."""

    def __init__(self, bound=None):
        self.bound = bound or {}

    def bind(self, **kwargs):
        return FakeChatModel({**self.bound, **kwargs})

    def invoke(self, prompt):
        return SimpleNamespace(content=f"{prompt}|{sorted(self.bound.items())}")


def test_chat_generate_binds_call_kwargs():
    """
    Generation kwargs apply to one call and the message content is returned.
    """
    llm = create_llm({"type": "openai_chat", "model_name": "m", "api_base": "http://localhost:8000/v1"})
    llm.llm = FakeChatModel()

    assert llm.generate("hi", temperature=0.2) == "hi|[('temperature', 0.2)]"
    assert llm.generate("hi") == "hi|[]"


def test_openai_alias_selects_completion_model():
    """
    The plain 'openai' kind maps to the completions backend.
    """
    llm = create_llm({"type": "OpenAI", "model_name": "m", "api_base": "http://localhost:8000/v1"})

    assert isinstance(llm, OpenAILikeLLM)
