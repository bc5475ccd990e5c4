"""Similarity ranking of passages against a query.

Implements:
- Cosine similarity scoring
- Top-K selection
- Deterministic ordering with ascending passage index as tie-break
"""
from dataclasses import dataclass
from typing import List, Sequence
import numpy as np
import structlog

from docsearch import config
from docsearch.rag.embedder import Embedding

logger = structlog.get_logger()

# Similarity assigned when either vector has zero norm. Lower than any
# cosine value, so such passages rank last instead of raising.
ZERO_NORM_SIMILARITY = -2.0


@dataclass(frozen=True)
class ScoredResult:
    """A passage index with its similarity to the query."""

    passage_index: int
    similarity: float


def cosine_similarity(vec_a: Sequence[float], vec_b: Sequence[float]) -> float:
    """Compute cosine similarity between two vectors.

    Args:
        vec_a: First vector
        vec_b: Second vector

    Returns:
        Cosine similarity in [-1, 1], or ZERO_NORM_SIMILARITY if either
        vector has zero norm

    Raises:
        ValueError: If vectors are empty or have different dimensions
    """
    a = np.asarray(vec_a, dtype=np.float64)
    b = np.asarray(vec_b, dtype=np.float64)

    if a.size == 0 or b.size == 0:
        raise ValueError("Vectors cannot be empty")

    if a.shape != b.shape:
        raise ValueError(f"Vector dimensions must match: {a.size} != {b.size}")

    norm_a = float(np.linalg.norm(a))
    norm_b = float(np.linalg.norm(b))

    if norm_a == 0.0 or norm_b == 0.0:
        return ZERO_NORM_SIMILARITY

    similarity = float(np.dot(a, b)) / (norm_a * norm_b)

    # Rounding can push parallel vectors slightly past the bounds
    return min(1.0, max(-1.0, similarity))


def rank(
    query_vector: Sequence[float],
    passage_embeddings: Sequence[Embedding],
    k: int = None,
) -> List[ScoredResult]:
    """Rank passages by similarity to the query.

    Args:
        query_vector: Embedding vector of the query
        passage_embeddings: One Embedding per passage
        k: Number of results to return (default from config)

    Returns:
        Up to ``k`` ScoredResult objects, most similar first; equal
        similarities are ordered by ascending passage index

    Raises:
        ValueError: If k is not positive or a vector dimension differs
            from the query's
    """
    k = config.RETRIEVAL_TOP_K if k is None else k

    if k <= 0:
        raise ValueError(f"k must be positive, got {k}")

    scored = [
        ScoredResult(
            passage_index=embedding.owner_index,
            similarity=cosine_similarity(query_vector, embedding.vector),
        )
        for embedding in passage_embeddings
    ]

    scored.sort(key=lambda r: (-r.similarity, r.passage_index))
    results = scored[:k]

    logger.info(
        "passages_ranked",
        candidates=len(scored),
        results_returned=len(results),
        top_similarity=results[0].similarity if results else None,
    )

    return results
