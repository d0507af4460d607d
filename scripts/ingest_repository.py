"""Repository ingestion entrypoint.

This script fetches the files of a repository (from GitHub or a local
checkout), normalises and chunks them, and writes the chunks to the
configured index. An optional query is answered afterwards against the
freshly indexed content.
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = REPO_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from coderepo_rag.app.container import build_container
from coderepo_rag.config import GlobalConfig


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Ingest a code repository into the RAG index")

    parser.add_argument(
        "--repository-url",
        "-r",
        required=True,
        type=str,
        help="Repository URL (GitHub) or checkout path (local source).",
    )

    parser.add_argument(
        "--config-file",
        "-c",
        required=True,
        type=str,
        help="Path to the YAML configuration file.",
    )

    parser.add_argument(
        "--local",
        "-l",
        action="store_true",
        help="Read the repository from a local checkout instead of the configured source.",
    )

    parser.add_argument(
        "--qdrant-collection-name",
        "--collection-name",
        required=False,
        type=str,
        default=None,
        help="Override Qdrant collection name from config (optional).",
    )

    parser.add_argument(
        "--query",
        "-q",
        required=False,
        type=str,
        default=None,
        help="Question to answer once ingestion completes (optional).",
    )

    parser.add_argument(
        "--max-results",
        "-k",
        required=False,
        type=int,
        default=None,
        help="Number of chunks to retrieve for --query (default: from config).",
    )

    return parser.parse_args()


def _override_qdrant_collection_name(cfg: GlobalConfig, cli_value: str | None) -> None:
    if not cli_value:
        return

    vector_store = cfg.raw.get("vector_store")
    if vector_store is None:
        cfg.raw["vector_store"] = {
            "type": "qdrant",
            "collection_name": cli_value,
        }
        return

    if isinstance(vector_store, dict):
        vector_store["collection_name"] = cli_value
        return

    raise TypeError("'vector_store' config must be a mapping to override collection_name.")


def main() -> None:
    args = parse_args()

    cfg = GlobalConfig.load(args.config_file)
    if args.local:
        cfg.raw["repository_source"] = {"type": "local"}
    _override_qdrant_collection_name(cfg, args.qdrant_collection_name)

    container = build_container(cfg)
    mode = "semantic + lexical" if container.index.semantic_enabled else "lexical only"
    print(f"Index mode: {mode}")

    print(f"Refreshing {args.repository_url}...")
    result = container.refresh_pipeline.refresh_from_source(args.repository_url)
    print(
        f"Files received: {result.files_received}, "
        f"processed: {result.files_processed}, "
        f"chunks indexed: {result.chunks_indexed}"
    )

    if args.query:
        print(f"Answering: {args.query}")
        answer = container.chat_pipeline.run(
            args.query,
            repository_url=args.repository_url,
            max_results=args.max_results,
        )
        print(answer["response"])

    print("Ingestion complete!")


if __name__ == "__main__":
    main()
