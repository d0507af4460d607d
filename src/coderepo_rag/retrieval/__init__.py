"""
Retrieval layer of the code repository RAG pipeline.

This package covers everything needed to turn raw repository files into
searchable chunks and to fetch the most relevant chunks for a query.

Submodules
----------
repository_fetcher
    Repository sources (GitHub contents API, local checkouts).
file_preprocessor
    Binary detection and comment/blank-line stripping of raw files.
text_splitter
    Language-aware code chunking with a fixed-window fallback.
code_analysis
    Structural tags (language, role, declared types) for chunks.
query_preprocessor
    Query normalisation and the structural smart filter.
lexical_store
    In-process keyword index keyed by repository.
embedder
    Embedding model wrappers.
vector_store
    Semantic index backends and the dual-mode fallback store.
retriever
    Query-time retrieval and context rendering.
types
    Protocols for indexes and repository sources.
"""
