# coderepo_rag/app/api.py
from __future__ import annotations

import logging
import os

from fastapi import FastAPI, HTTPException, Query, Response, status
from pydantic import BaseModel, Field

from coderepo_rag.common.errors import FetchError, ParseError
from coderepo_rag.common.schemas import ScoredChunk
from coderepo_rag.config import GlobalConfig
from coderepo_rag.app.container import build_container

app = FastAPI(title="Code Repository RAG API", version="0.1.0")
logger = logging.getLogger("coderepo_rag.api")

DEFAULT_CONFIG_PATH = "/app/config/config.yaml"


class RefreshRequest(BaseModel):
    repository_url: str = Field(min_length=1)


class RefreshResponse(BaseModel):
    repository_url: str
    files_received: int
    files_processed: int
    chunks_indexed: int


class AcceptedResponse(BaseModel):
    repository_url: str
    message: str


class RepositoryStatus(BaseModel):
    repository_url: str
    chunks: int


class StatusResponse(BaseModel):
    repositories: list[RepositoryStatus] = Field(default_factory=list)
    total_chunks: int = 0


class ChatRequest(BaseModel):
    query: str
    repository_url: str | None = None
    max_results: int | None = Field(default=None, ge=1)


class RetrievedCodeChunk(BaseModel):
    rank: int
    chunk_id: str
    file_path: str
    repository_url: str
    content: str
    score: float | None = None


class ChatResponse(BaseModel):
    answer: str
    context: list[RetrievedCodeChunk] = Field(default_factory=list)


class SearchResponse(BaseModel):
    results: list[RetrievedCodeChunk] = Field(default_factory=list)


def _serialize_context(hits: list[ScoredChunk]) -> list[RetrievedCodeChunk]:
    return [
        RetrievedCodeChunk(
            rank=idx,
            chunk_id=hit.chunk.chunk_id,
            file_path=hit.chunk.file_path,
            repository_url=hit.chunk.repository_url,
            content=hit.chunk.content,
            score=float(hit.score),
        )
        for idx, hit in enumerate(hits, start=1)
    ]


def _internal_error(endpoint: str, e: Exception) -> HTTPException:
    logger.exception("Error while handling %s", endpoint)
    return HTTPException(status_code=500, detail={"error": f"{type(e).__name__}: {e}"})


@app.on_event("startup")
def startup():
    # Env var so Docker can pass the config location
    cfg_path = os.environ.get("CODEREPO_RAG_CONFIG", DEFAULT_CONFIG_PATH)
    cfg = GlobalConfig.load(cfg_path)
    logging.basicConfig(level=cfg.logging["level"])

    container = build_container(cfg)
    # Build shared components before requests arrive so every handler sees one index
    container.refresh_pipeline
    container.chat_pipeline
    app.state.container = container


@app.on_event("shutdown")
def shutdown():
    container = getattr(app.state, "container", None)
    if container is not None:
        container.refresh_pipeline.shutdown(wait=False)


@app.get("/health")
def health():
    return {"status": "ok"}


@app.post("/api/refresh", response_model=RefreshResponse)
def refresh(req: RefreshRequest):
    try:
        result = app.state.container.refresh_pipeline.refresh_from_source(req.repository_url)
    except FetchError as e:
        logger.warning("Fetch failed for %s: %s", req.repository_url, e)
        raise HTTPException(status_code=502, detail=str(e))
    except ParseError as e:
        logger.warning("Parse failed for %s: %s", req.repository_url, e)
        raise HTTPException(status_code=422, detail={"error": str(e), "file_path": e.file_path})
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        raise _internal_error("/api/refresh", e)

    return RefreshResponse(
        repository_url=result.repository_url,
        files_received=result.files_received,
        files_processed=result.files_processed,
        chunks_indexed=result.chunks_indexed,
    )


@app.post("/api/refresh/async", response_model=AcceptedResponse, status_code=status.HTTP_202_ACCEPTED)
def refresh_async(req: RefreshRequest):
    try:
        app.state.container.refresh_pipeline.refresh_async(req.repository_url)
    except Exception as e:
        raise _internal_error("/api/refresh/async", e)

    return AcceptedResponse(
        repository_url=req.repository_url,
        message=f"Refresh started for {req.repository_url}",
    )


@app.get("/api/refresh/status", response_model=StatusResponse)
def refresh_status():
    try:
        counts = app.state.container.refresh_pipeline.status()
    except Exception as e:
        raise _internal_error("/api/refresh/status", e)

    return StatusResponse(
        repositories=[RepositoryStatus(repository_url=url, chunks=n) for url, n in sorted(counts.items())],
        total_chunks=sum(counts.values()),
    )


@app.delete("/api/repositories", status_code=status.HTTP_204_NO_CONTENT)
def delete_repository(repository_url: str = Query(..., min_length=1)):
    try:
        app.state.container.refresh_pipeline.delete_repository(repository_url)
    except Exception as e:
        raise _internal_error("/api/repositories", e)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@app.post("/api/chat", response_model=ChatResponse)
def chat(req: ChatRequest):
    try:
        result = app.state.container.chat_pipeline.run(
            req.query,
            repository_url=req.repository_url,
            max_results=req.max_results,
        )
    except Exception as e:
        raise _internal_error("/api/chat", e)

    return ChatResponse(
        answer=str(result.get("response", "")),
        context=_serialize_context(result.get("source_chunks", [])),
    )


@app.get("/api/chat/simple")
def chat_simple(query: str = Query(..., min_length=1)):
    try:
        result = app.state.container.chat_pipeline.run(query)
    except Exception as e:
        raise _internal_error("/api/chat/simple", e)
    return {"answer": str(result.get("response", ""))}


@app.post("/api/search", response_model=SearchResponse)
def search(req: ChatRequest):
    try:
        hits = app.state.container.retriever.retrieve_scored(
            req.query,
            repository_url=req.repository_url,
            max_results=req.max_results,
        )
    except Exception as e:
        raise _internal_error("/api/search", e)
    return SearchResponse(results=_serialize_context(hits))
