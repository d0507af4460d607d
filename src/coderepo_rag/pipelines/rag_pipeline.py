"""coderepo_rag.pipelines.rag_pipeline

Question answering over indexed repositories.

This module defines :class:`CodeChatPipeline`, which retrieves code chunks
for a question, renders them into a prompt and asks an LLM for an answer.
When no LLM is configured, or the LLM call fails, a plain listing of the
best matching snippets is returned instead.

Classes
-------
CodeChatPipeline
    Orchestrates retrieval -> context building -> prompt -> generation.
"""

import logging
from typing import Any, Optional, Sequence

from coderepo_rag.common.schemas import CodeChunk
from coderepo_rag.generation.llm_interface import BaseLLM
from coderepo_rag.generation.prompt_builder import DEFAULT_PROMPT_NAME, PromptBuilder
from coderepo_rag.retrieval.retriever import CodeRetriever, build_context

logger = logging.getLogger("coderepo_rag.pipelines.rag")

SNIPPET_PREVIEW_CHARS = 500
SNIPPET_PREVIEW_COUNT = 3


def no_results_response(query: str) -> str:
    return (
        f'I couldn\'t find any relevant code for your question: "{query}". '
        "Please make sure the repository has been processed first using the /api/refresh endpoint."
    )


def simple_response(query: str, chunks: Sequence[CodeChunk]) -> str:
    """Summarise retrieved chunks without an LLM.

    Lists the first few chunks with their file path and a truncated preview
    of their content.
    """
    parts = [f'Based on your question "{query}", I found {len(chunks)} relevant code snippets:\n\n']
    for chunk in chunks[:SNIPPET_PREVIEW_COUNT]:
        preview = chunk.content[:SNIPPET_PREVIEW_CHARS]
        if len(chunk.content) > SNIPPET_PREVIEW_CHARS:
            preview += "..."
        parts.append(f"**File: {chunk.file_path}**\n```\n{preview}\n```\n\n")
    parts.append(
        "Configure a generator LLM to get a detailed analysis of this code "
        "instead of the raw snippets."
    )
    return "".join(parts)


class CodeChatPipeline:
    """Retrieval-augmented question answering over code.

    Parameters
    ----------
    retriever : CodeRetriever
        Retrieves ranked chunks for a question.
    llm : BaseLLM or None, optional
        Language model for answers. ``None`` returns snippet listings only.
    prompt_builder : PromptBuilder or None, optional
        Renders prompts. Defaults to a builder with the built-in templates.
    prompt_name : str, optional
        Template to render. Defaults to ``"code_qa"``.
    llm_generate_defaults : dict or None, optional
        Default keyword arguments forwarded to ``llm.generate``.
    """

    def __init__(self,
                 retriever: CodeRetriever,
                 llm: Optional[BaseLLM] = None,
                 prompt_builder: Optional[PromptBuilder] = None,
                 prompt_name: str = DEFAULT_PROMPT_NAME,
                 llm_generate_defaults: dict | None = None,
        ):
        self.retriever = retriever
        self.llm = llm
        self.prompt_builder = prompt_builder or PromptBuilder()
        self.prompt_name = prompt_name
        self.llm_generate_defaults = llm_generate_defaults or {
            'temperature': 0.2,
            'max_tokens': 1024,
        }

    def run(self,
            query: str,
            repository_url: Optional[str] = None,
            max_results: Optional[int] = None,
            **kwargs) -> dict[str, Any]:
        """Answer a single question.

        Parameters
        ----------
        query : str
            User's natural language question.
        repository_url : str or None, optional
            Restrict retrieval to this repository.
        max_results : int or None, optional
            Number of chunks to retrieve. Defaults to the retriever setting.
        **kwargs : Any
            The key ``llm_generate`` may override generation parameters for
            this call only.

        Returns
        -------
        dict
            ``"response"`` (answer text), ``"prompt"`` (rendered prompt, or
            ``None`` when no LLM was called) and ``"source_chunks"`` (ranked
            :class:`~coderepo_rag.common.schemas.ScoredChunk` hits).
        """
        hits = self.retriever.retrieve_scored(query, repository_url=repository_url, max_results=max_results)
        chunks = [hit.chunk for hit in hits]

        if not chunks:
            return {'response': no_results_response(query), 'prompt': None, 'source_chunks': []}

        if self.llm is None:
            return {'response': simple_response(query, chunks), 'prompt': None, 'source_chunks': hits}

        prompt = self.prompt_builder.build(
            self.prompt_name,
            question=query,
            context=build_context(chunks),
            repository_url=repository_url,
        )

        call_overrides = kwargs.pop('llm_generate', None) or {}
        gen_kwargs = {**self.llm_generate_defaults, **call_overrides}

        try:
            response = self.llm.generate(prompt, **gen_kwargs)
        except Exception:
            logger.warning("LLM generation failed; returning snippet listing", exc_info=True)
            response = simple_response(query, chunks)

        return {'response': response, 'prompt': prompt, 'source_chunks': hits}

    def __call__(self, query: str, **kwargs) -> dict[str, Any]:
        """Convenience wrapper around :meth:`run`."""
        return self.run(query, **kwargs)


__all__ = ['CodeChatPipeline', 'simple_response', 'no_results_response']
