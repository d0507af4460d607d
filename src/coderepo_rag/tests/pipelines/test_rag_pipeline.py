import logging

from coderepo_rag.common.schemas import CodeChunk, ScoredChunk
from coderepo_rag.generation.prompt_builder import PromptBuilder
from coderepo_rag.pipelines.rag_pipeline import CodeChatPipeline
from coderepo_rag.retrieval.retriever import CodeRetriever

REPO = "https://github.com/acme/shop"


class StaticIndex:
    """Index stub returning the same hits for every query."""

    def __init__(self, hits):
        self.hits = hits

    def search(self, query, repository_url=None, max_results=5):
        return self.hits[:max_results]


class EchoLLM:
    """LLM stub recording prompts and generation kwargs."""

    def __init__(self):
        self.calls = []

    def generate(self, prompt, **kwargs):
        self.calls.append((prompt, kwargs))
        return "The login flow starts in LoginController."


class BrokenLLM:
    """LLM stub that always fails."""

    def generate(self, prompt, **kwargs):
        raise ConnectionError("model server down")


def _hits(n: int, size: int = 10):
    return [
        ScoredChunk(
            chunk=CodeChunk(content=f"{i}" * size, file_path=f"src/F{i}.java", repository_url=REPO, chunk_index=i),
            score=1.0 - i / 10,
        )
        for i in range(n)
    ]


def _pipeline(hits, llm=None):
    return CodeChatPipeline(retriever=CodeRetriever(index=StaticIndex(hits)), llm=llm)


def test_run_without_results_asks_to_refresh_first():
    """
    An empty retrieval produces the fixed guidance message.
    """
    result = _pipeline([], llm=EchoLLM()).run("where is login?")

    assert result["source_chunks"] == []
    assert result["prompt"] is None
    assert 'question: "where is login?"' in result["response"]
    assert "/api/refresh" in result["response"]


def test_run_with_llm_renders_code_prompt():
    """
    With an LLM the code_qa prompt carries the question and rendered context.
    """
    llm = EchoLLM()
    hits = _hits(2)

    result = _pipeline(hits, llm=llm).run("how does login work?")

    prompt, kwargs = llm.calls[0]
    assert result["response"] == "The login flow starts in LoginController."
    assert result["prompt"] == prompt
    assert "User question: how does login work?" in prompt
    assert "--- Code Snippet 2 ---\nFile: src/F1.java" in prompt
    assert kwargs["temperature"] == 0.2
    assert result["source_chunks"] == hits


def test_run_generation_overrides_apply_per_call():
    """
    llm_generate overrides the defaults for one call only.
    """
    llm = EchoLLM()
    pipeline = _pipeline(_hits(1), llm=llm)

    pipeline("q", llm_generate={"temperature": 0.0})
    pipeline("q")

    assert llm.calls[0][1]["temperature"] == 0.0
    assert llm.calls[1][1]["temperature"] == 0.2


def test_run_without_llm_lists_top_three_truncated_snippets():
    """
    Without an LLM the answer lists at most three snippets of 500 characters.
    """
    result = _pipeline(_hits(4, size=600)).run("explain")

    response = result["response"]
    assert response.startswith('Based on your question "explain", I found 4 relevant code snippets:')
    assert response.count("**File: ") == 3
    assert "src/F3.java" not in response
    assert "0" * 500 + "...\n```" in response
    assert "0" * 501 not in response


def test_run_falls_back_to_listing_when_llm_fails(caplog):
    """
    LLM failures are logged and answered with the snippet listing.
    """
    pipeline = _pipeline(_hits(1), llm=BrokenLLM())

    with caplog.at_level(logging.WARNING, logger="coderepo_rag.pipelines.rag"):
        result = pipeline.run("explain")

    assert result["response"].startswith('Based on your question "explain", I found 1 relevant code snippets:')
    assert "LLM generation failed" in caplog.text


def test_custom_prompt_template_is_used():
    """
    A registered template can replace the built-in one.
    """
    builder = PromptBuilder()
    builder.register_from_dict({"name": "short", "user": "Q={{ question }}"})
    llm = EchoLLM()
    pipeline = CodeChatPipeline(
        retriever=CodeRetriever(index=StaticIndex(_hits(1))),
        llm=llm,
        prompt_builder=builder,
        prompt_name="short",
    )

    pipeline.run("why?")

    assert llm.calls[0][0] == "Q=why?"
