import pytest

from coderepo_rag.retrieval.embedder import (
    HuggingFaceEmbedder,
    _normalize_embedder_kind,
    create_embedder,
)


def test_normalize_embedder_kind():
    """
    CamelCase and dashed kinds map onto registry keys.
    """
    assert _normalize_embedder_kind("OpenAILike") == "openai_like"
    assert _normalize_embedder_kind("hugging-face") == "hugging_face"
    assert _normalize_embedder_kind("") == ""


def test_create_embedder_rejects_unknown_kind():
    """
    Unsupported kinds raise ValueError.
    """
    with pytest.raises(ValueError):
        create_embedder({"type": "word2vec", "model_name": "m"})


def test_create_embedder_requires_mapping():
    """
    Non-mapping configs raise TypeError.
    """
    with pytest.raises(TypeError):
        create_embedder(["huggingface"])


def test_create_embedder_defaults_to_hugging_face(monkeypatch):
    """
    Without a discriminator the local Hugging Face model is built.
    """
    seen = {}

    def fake_from_config(cls, config):
        seen["config"] = dict(config)
        return "hf-embedder"

    monkeypatch.setattr(HuggingFaceEmbedder, "from_config_dict", classmethod(fake_from_config))

    assert create_embedder({"model_name": "BAAI/bge-small-en-v1.5"}) == "hf-embedder"
    assert seen["config"] == {"model_name": "BAAI/bge-small-en-v1.5"}


def test_sentence_transformers_alias_resolves_to_hugging_face():
    """
    Common SentenceTransformers spellings are accepted.
    """
    assert _normalize_embedder_kind("sentence-transformers") == "huggingface"

