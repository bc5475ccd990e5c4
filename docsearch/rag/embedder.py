"""Embedding providers for passages and queries.

Handles:
- One-time backend loading with embedding dimension detection
- Per-text embedding with dimension and value validation
- Order-preserving batch embedding of passages
"""
import asyncio
import hashlib
import math
import re
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple
import httpx
import numpy as np
import structlog

from docsearch import config
from docsearch.errors import EmbeddingFailure, ModelLoadFailure
from docsearch.llm_client import OllamaClient
from docsearch.rag.chunker import Passage

logger = structlog.get_logger()

# owner_index used for the query's embedding
QUERY_OWNER = -1


@dataclass(frozen=True)
class Embedding:
    """Vector for one passage (or for the query, see QUERY_OWNER)."""

    owner_index: int
    vector: Tuple[float, ...]

    @property
    def dimension(self) -> int:
        return len(self.vector)


class Embedder:
    """Base class for embedding providers.

    Subclasses implement ``_load`` and ``_embed``. ``load`` must be awaited
    before ``embed``; using the embedder as an async context manager does
    both the load and the release.
    """

    name = "embedder"

    def __init__(self):
        self.dimension: Optional[int] = None

    @property
    def loaded(self) -> bool:
        return self.dimension is not None

    async def _load(self) -> int:
        raise NotImplementedError

    async def _embed(self, text: str) -> List[float]:
        raise NotImplementedError

    async def load(self) -> None:
        """Prepare the backend and fix the embedding dimension for this run.

        Raises:
            ModelLoadFailure: If the backend cannot be prepared
        """
        if self.loaded:
            return

        logger.info("embedder_loading", embedder=self.name)
        try:
            dimension = await self._load()
            if dimension <= 0:
                raise ModelLoadFailure(f"{self.name} reported an empty embedding dimension")
        except Exception as e:
            logger.error("embedder_load_failed", embedder=self.name, error=str(e))
            # __aexit__ does not run when __aenter__ raises
            await self.close()
            if isinstance(e, ModelLoadFailure):
                raise
            raise ModelLoadFailure(f"Failed to load {self.name}: {e}") from e

        self.dimension = dimension
        logger.info("embedder_loaded", embedder=self.name, dimension=dimension)

    async def embed(self, text: str, passage_index: Optional[int] = None) -> List[float]:
        """Embed a text into a single vector.

        Args:
            text: Text to embed
            passage_index: Index of the passage being embedded, None for the query

        Returns:
            Vector of length ``self.dimension``

        Raises:
            EmbeddingFailure: If the backend fails or returns an invalid vector
        """
        target = "query" if passage_index is None else f"passage {passage_index}"

        if not self.loaded:
            raise EmbeddingFailure(
                f"Cannot embed {target}: {self.name} is not loaded",
                passage_index=passage_index,
            )

        try:
            vector = await self._embed(text)
        except Exception as e:
            logger.error(
                "embedding_generation_failed",
                embedder=self.name,
                passage_index=passage_index,
                text_preview=text[:100],
                error=str(e),
            )
            raise EmbeddingFailure(
                f"Failed to embed {target}: {e}", passage_index=passage_index
            ) from e

        if not isinstance(vector, (list, tuple)):
            raise EmbeddingFailure(
                f"Embedding for {target} is not a vector: {type(vector).__name__}",
                passage_index=passage_index,
            )

        if len(vector) != self.dimension:
            raise EmbeddingFailure(
                f"Embedding dimension mismatch for {target}: "
                f"expected {self.dimension}, got {len(vector)}",
                passage_index=passage_index,
            )

        if not all(isinstance(v, (int, float)) and not isinstance(v, bool) for v in vector):
            raise EmbeddingFailure(
                f"Embedding for {target} contains non-numeric values",
                passage_index=passage_index,
            )

        if not all(math.isfinite(v) for v in vector):
            raise EmbeddingFailure(
                f"Embedding for {target} contains non-finite values",
                passage_index=passage_index,
            )

        return [float(v) for v in vector]

    async def close(self) -> None:
        """Release backend handles."""

    async def __aenter__(self) -> "Embedder":
        await self.load()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()


class OllamaEmbedder(Embedder):
    """Embedder backed by an Ollama embedding model."""

    name = "ollama"

    def __init__(self, model: str = None, client: Optional[OllamaClient] = None):
        """Initialize the Ollama embedder.

        Args:
            model: Embedding model name (default from config)
            client: Ollama client (a new one is created if not provided)
        """
        super().__init__()
        self.model = model or config.EMBEDDING_MODEL
        self.client = client or OllamaClient()

    def _model_installed(self, installed: Sequence[str]) -> bool:
        if self.model in installed:
            return True
        # "name" and "name:latest" refer to the same model
        if ":" not in self.model:
            return f"{self.model}:latest" in installed
        return False

    async def _load(self) -> int:
        await self.client.connect()

        try:
            installed = await self.client.list_models()
        except httpx.HTTPError as e:
            raise ModelLoadFailure(
                f"Embedding backend unavailable at {self.client.base_url}: {e}",
                model=self.model,
            ) from e

        if not self._model_installed(installed):
            raise ModelLoadFailure(
                f"Embedding model '{self.model}' is not installed "
                f"(available: {', '.join(installed) or 'none'})",
                model=self.model,
            )

        # Detect embedding dimension by embedding a test string
        try:
            response = await self.client.embeddings(prompt="test", model=self.model)
        except httpx.HTTPError as e:
            raise ModelLoadFailure(
                f"Embedding probe failed for model '{self.model}': {e}",
                model=self.model,
            ) from e

        probe = response.get("embedding", [])
        if not probe:
            raise ModelLoadFailure(
                f"Empty embedding returned from Ollama for model '{self.model}'",
                model=self.model,
            )

        return len(probe)

    async def _embed(self, text: str) -> List[float]:
        response = await self.client.embeddings(prompt=text, model=self.model)
        embedding = response.get("embedding", [])

        if not embedding:
            raise RuntimeError("Empty embedding returned")

        return embedding

    async def close(self) -> None:
        await self.client.aclose()


class HashEmbedder(Embedder):
    """Deterministic embedder that needs no inference backend.

    Each lowercased word is hashed with SHA-256 into a bucket and a sign,
    so texts that share words point in similar directions.
    """

    name = "hash"

    WORD_PATTERN = re.compile(r"\w+")

    def __init__(self, dimension: int = None):
        super().__init__()
        self.size = dimension or config.HASH_EMBEDDING_DIMENSION

    async def _load(self) -> int:
        return self.size

    async def _embed(self, text: str) -> List[float]:
        vector = np.zeros(self.size, dtype=np.float64)
        for word in self.WORD_PATTERN.findall(text.lower()):
            digest = hashlib.sha256(word.encode("utf-8")).digest()
            bucket = int.from_bytes(digest[:8], "big") % self.size
            sign = 1.0 if digest[8] % 2 == 0 else -1.0
            vector[bucket] += sign
        return vector.tolist()


def create_embedder(backend: str = None, model: str = None, dimension: int = None) -> Embedder:
    """Build an embedder by backend name.

    Args:
        backend: "ollama" or "hash" (default from config)
        model: Ollama model name (ollama backend only)
        dimension: Vector size (hash backend only)

    Raises:
        ValueError: If the backend name is unknown
    """
    backend = (backend or config.EMBEDDING_BACKEND).lower()

    if backend == "ollama":
        return OllamaEmbedder(model=model)
    if backend == "hash":
        return HashEmbedder(dimension=dimension)

    raise ValueError(f"Unknown embedding backend: {backend!r} (expected 'ollama' or 'hash')")


async def embed_query(embedder: Embedder, query: str) -> Embedding:
    """Embed the user query."""
    vector = await embedder.embed(query, passage_index=None)
    return Embedding(owner_index=QUERY_OWNER, vector=tuple(vector))


async def embed_passages(
    embedder: Embedder,
    passages: Sequence[Passage],
    concurrency: int = None,
) -> List[Embedding]:
    """Embed every passage, keeping passage order.

    Args:
        embedder: Loaded embedder
        passages: Passages to embed
        concurrency: Maximum embedding calls in flight (default from config,
            1 means strictly sequential)

    Returns:
        List of Embedding objects, one per passage, in passage order

    Raises:
        EmbeddingFailure: On the first passage that cannot be embedded
    """
    concurrency = concurrency or config.EMBEDDING_CONCURRENCY

    if concurrency <= 1:
        embeddings = []
        for passage in passages:
            vector = await embedder.embed(passage.text, passage_index=passage.index)
            embeddings.append(Embedding(owner_index=passage.index, vector=tuple(vector)))
    else:
        semaphore = asyncio.Semaphore(concurrency)

        async def _embed_one(passage: Passage) -> Embedding:
            async with semaphore:
                vector = await embedder.embed(passage.text, passage_index=passage.index)
            return Embedding(owner_index=passage.index, vector=tuple(vector))

        tasks = [asyncio.ensure_future(_embed_one(p)) for p in passages]
        try:
            # gather returns results in argument order
            embeddings = list(await asyncio.gather(*tasks))
        except BaseException:
            # No embedding call may outlive a failed run
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

    logger.info(
        "passages_embedded",
        embedder=embedder.name,
        count=len(embeddings),
        concurrency=concurrency,
    )

    return embeddings
