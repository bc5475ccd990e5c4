#!/usr/bin/env python
"""Search a document for the passages most relevant to a question.

Usage:
    docsearch                                  # Prompt for a query
    docsearch --document manual.pdf --top-k 3  # Override configuration
    docsearch --backend hash --query "testing" # Offline, no Ollama needed
"""
import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import List, Optional

import structlog

from docsearch import config
from docsearch.console import prompt_query
from docsearch.errors import DocSearchError, EmbeddingFailure
from docsearch.rag.embedder import create_embedder
from docsearch.rag.pipeline import SearchPipeline

logger = structlog.get_logger()


def configure_logging(level: str = None) -> None:
    """Configure structured logging on stderr so stdout only carries results."""
    level = (level or config.LOG_LEVEL).upper()

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=getattr(logging, level, logging.WARNING),
        force=True,
    )

    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="docsearch",
        description="Semantic search over a single document",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  docsearch                                  # Prompt for a query
  docsearch --document manual.pdf --top-k 3  # Override configuration
  docsearch --backend hash --query "testing" # Offline, no Ollama needed
        """,
    )

    parser.add_argument(
        "--document",
        type=Path,
        default=None,
        help=f"Document to search (default: {config.DOCUMENT_PATH})",
    )

    parser.add_argument(
        "--chunk-size",
        type=int,
        default=None,
        help=f"Passage length threshold in characters (default: {config.CHUNK_SIZE})",
    )

    parser.add_argument(
        "--top-k",
        type=int,
        default=None,
        help=f"Number of passages to show (default: {config.RETRIEVAL_TOP_K})",
    )

    parser.add_argument(
        "--backend",
        choices=["ollama", "hash"],
        default=None,
        help=f"Embedding backend (default: {config.EMBEDDING_BACKEND})",
    )

    parser.add_argument(
        "--model",
        default=None,
        help=f"Ollama embedding model (default: {config.EMBEDDING_MODEL})",
    )

    parser.add_argument(
        "--query",
        "-q",
        default=None,
        help="Query text (prompted for when omitted)",
    )

    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Log pipeline progress to stderr",
    )

    return parser


def _positive(parser: argparse.ArgumentParser, name: str, value: Optional[int]) -> None:
    if value is not None and value <= 0:
        parser.error(f"{name} must be a positive integer")


def describe_error(error: DocSearchError) -> str:
    """Single-line diagnostic naming the failing stage."""
    message = f"Error during {error.stage}: {error}"
    if isinstance(error, EmbeddingFailure) and error.target not in str(error):
        message += f" [{error.target}]"
    return message


async def run(args: argparse.Namespace) -> int:
    """Run one search and return the process exit status."""
    query = args.query if args.query is not None else prompt_query()
    query = query.strip()

    if not query:
        print("Error: no query provided.", file=sys.stderr)
        return 1

    try:
        embedder = create_embedder(backend=args.backend, model=args.model)
        pipeline = SearchPipeline(
            embedder=embedder,
            document_path=args.document,
            chunk_size=args.chunk_size,
            top_k=args.top_k,
        )
    except ValueError as e:
        # Environment configuration is not checked by the argument parser
        print(f"Error: invalid configuration: {e}", file=sys.stderr)
        return 1

    try:
        await pipeline.run(query)
    except DocSearchError as e:
        print(describe_error(e), file=sys.stderr)
        return 1

    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the docsearch command."""
    parser = build_parser()
    args = parser.parse_args(argv)

    _positive(parser, "--chunk-size", args.chunk_size)
    _positive(parser, "--top-k", args.top_k)

    configure_logging("INFO" if args.verbose else None)

    try:
        return asyncio.run(run(args))
    except KeyboardInterrupt:
        print("\nSearch cancelled by user.", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
