"""coderepo_rag.pipelines

Pipeline orchestration components for the code repository RAG system.

Pipelines coordinate the lower-level retrieval and generation components.
They hold no state beyond their configured collaborators (and, for refresh,
per-repository locks), so a single instance can be shared across requests.

Modules
-------
refresh_pipeline
    Repository ingestion: fetch, normalise, chunk and index.
rag_pipeline
    Question answering over retrieved code chunks.
"""
