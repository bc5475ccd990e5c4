"""Search pipeline for answering one query against one document.

Orchestrates:
- Embedding backend loading
- Document text extraction
- Text chunking
- Passage and query embedding
- Similarity ranking
- Result presentation
"""
import asyncio
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional, Sequence
import structlog

from docsearch import config
from docsearch.console import render_results
from docsearch.errors import (
    ConsistencyFault,
    DocSearchError,
    EmbeddingFailure,
    ExtractionFailure,
    ModelLoadFailure,
)
from docsearch.rag.chunker import Passage, TextChunker
from docsearch.rag.embedder import Embedder, Embedding, embed_passages, embed_query
from docsearch.rag.pdf_parser import extract_text
from docsearch.rag.ranker import ScoredResult, rank

logger = structlog.get_logger()

Renderer = Callable[[str, Sequence[ScoredResult], Sequence[Passage]], None]


class PipelineState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    EXTRACTING = "extracting"
    CHUNKING = "chunking"
    EMBEDDING = "embedding"
    RANKING = "ranking"
    PRESENTING = "presenting"
    DONE = "done"
    FAILED = "failed"


# Error kind for unexpected exceptions raised inside each stage
_STAGE_ERRORS = {
    PipelineState.LOADING: ModelLoadFailure,
    PipelineState.EXTRACTING: ExtractionFailure,
    PipelineState.EMBEDDING: EmbeddingFailure,
}


class SearchPipeline:
    """Single-use pipeline: one document, one query, one ranking."""

    def __init__(
        self,
        embedder: Embedder,
        document_path: Path = None,
        chunk_size: int = None,
        top_k: int = None,
        extractor: Callable[[Path], str] = extract_text,
        renderer: Optional[Renderer] = render_results,
        embed_concurrency: int = None,
    ):
        """Initialize the search pipeline.

        Args:
            embedder: Embedding provider (loaded by the pipeline)
            document_path: Document to search (default from config)
            chunk_size: Passage length threshold in characters (default from config)
            top_k: Number of results to return (default from config)
            extractor: Function turning the document path into text
            renderer: Function presenting the results, None to skip output
            embed_concurrency: Maximum embedding calls in flight (default from config)
        """
        self.embedder = embedder
        self.document_path = Path(document_path or config.DOCUMENT_PATH)
        self.top_k = config.RETRIEVAL_TOP_K if top_k is None else top_k
        self.extractor = extractor
        self.renderer = renderer
        self.embed_concurrency = embed_concurrency or config.EMBEDDING_CONCURRENCY

        if self.top_k <= 0:
            raise ValueError(f"top_k must be positive, got {self.top_k}")

        self.chunker = TextChunker(chunk_size=chunk_size)

        self.state = PipelineState.IDLE
        self.passages: List[Passage] = []
        self.embeddings: List[Embedding] = []
        self.results: List[ScoredResult] = []

        logger.info(
            "search_pipeline_initialized",
            document_path=str(self.document_path),
            embedder=embedder.name,
            chunk_size=self.chunker.chunk_size,
            top_k=self.top_k,
        )

    def _transition(self, state: PipelineState) -> None:
        logger.debug("pipeline_transition", from_state=self.state.value, to_state=state.value)
        self.state = state

    def _fail(self, error: DocSearchError) -> None:
        logger.error(
            "search_failed",
            stage=self.state.value,
            error=str(error),
            error_type=type(error).__name__,
        )
        self._transition(PipelineState.FAILED)

    def _check_consistency(self) -> None:
        """Verify every passage has exactly one embedding, matched by index."""
        if len(self.passages) != len(self.embeddings):
            raise ConsistencyFault(
                f"Passage/embedding count mismatch: {len(self.passages)} passages, "
                f"{len(self.embeddings)} embeddings"
            )

        for passage, embedding in zip(self.passages, self.embeddings):
            if passage.index != embedding.owner_index:
                raise ConsistencyFault(
                    f"Embedding for passage {passage.index} is owned by "
                    f"index {embedding.owner_index}"
                )

    async def _run_stages(self, query: str) -> List[ScoredResult]:
        self._transition(PipelineState.LOADING)
        async with self.embedder:
            self._transition(PipelineState.EXTRACTING)
            # pdfplumber parsing is synchronous; keep it off the event loop
            text = await asyncio.to_thread(self.extractor, self.document_path)

            self._transition(PipelineState.CHUNKING)
            self.passages = self.chunker.chunk_text(text)
            logger.info("document_chunked", **self.chunker.get_chunk_stats(self.passages))

            self._transition(PipelineState.EMBEDDING)
            self.embeddings = await embed_passages(
                self.embedder, self.passages, concurrency=self.embed_concurrency
            )
            query_embedding = await embed_query(self.embedder, query)

        self._check_consistency()

        self._transition(PipelineState.RANKING)
        try:
            results = rank(query_embedding.vector, self.embeddings, k=self.top_k)
        except ValueError as e:
            raise ConsistencyFault(f"Ranking failed: {e}") from e

        self._transition(PipelineState.PRESENTING)
        if self.renderer is not None:
            self.renderer(query, results, self.passages)

        return results

    async def run(self, query: str) -> List[ScoredResult]:
        """Answer a query against the document.

        Args:
            query: User query text

        Returns:
            Ranked results, best first

        Raises:
            DocSearchError: If any stage fails (the pipeline ends in FAILED)
            RuntimeError: If the pipeline has already run
        """
        if self.state is not PipelineState.IDLE:
            raise RuntimeError(f"Pipeline already ran (state: {self.state.value})")

        logger.info("search_started", query_length=len(query))

        try:
            self.results = await self._run_stages(query)
        except DocSearchError as e:
            self._fail(e)
            raise
        except Exception as e:
            failed_stage = self.state
            error_cls = _STAGE_ERRORS.get(failed_stage, DocSearchError)
            error = error_cls(f"{failed_stage.value} failed: {e}")
            error.stage = failed_stage.value
            self._fail(error)
            raise error from e

        self._transition(PipelineState.DONE)
        logger.info("search_completed", results_returned=len(self.results))

        return self.results
