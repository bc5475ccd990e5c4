"""Text chunking on word boundaries for the retrieval pipeline.

Implements character-based chunking to avoid tokenizer dependencies.
"""
from typing import Dict, List
from dataclasses import dataclass
import structlog

from docsearch import config

logger = structlog.get_logger()


@dataclass(frozen=True)
class Passage:
    """A chunk of document text and its position in the chunk sequence."""

    index: int
    text: str


class TextChunker:
    """Greedy word-accumulating text chunker."""

    def __init__(self, chunk_size: int = None):
        """Initialize the text chunker.

        Args:
            chunk_size: Length threshold of each passage in characters
                (default from config)
        """
        self.chunk_size = config.CHUNK_SIZE if chunk_size is None else chunk_size

        if self.chunk_size <= 0:
            raise ValueError(f"Chunk size must be positive, got {self.chunk_size}")

        logger.debug("chunker_initialized", chunk_size=self.chunk_size)

    def chunk_text(self, text: str) -> List[Passage]:
        """Split text into passages without breaking words.

        Words are appended to the current buffer while the buffer plus the
        next word stays shorter than ``chunk_size``. A word that is longer
        than ``chunk_size`` on its own still becomes a passage.

        Args:
            text: Text to chunk

        Returns:
            List of Passage objects, indexed 0..N-1 in source order
        """
        words = text.split() if text else []
        if not words:
            return []

        texts: List[str] = []
        buffer = ""

        for word in words:
            if len(buffer + word) < self.chunk_size:
                buffer += word + " "
                continue

            # The check only stops further words from joining, so a buffer
            # that is still empty is never emitted.
            if buffer:
                texts.append(buffer.strip())
            buffer = word + " "

        if buffer:
            texts.append(buffer.strip())

        passages = [Passage(index=i, text=t) for i, t in enumerate(texts)]

        logger.info(
            "text_chunked",
            text_length=len(text),
            word_count=len(words),
            chunk_count=len(passages),
            avg_chunk_size=sum(len(p.text) for p in passages) // len(passages),
        )

        return passages

    def get_chunk_stats(self, passages: List[Passage]) -> Dict[str, int]:
        """Get statistics about a set of passages.

        Args:
            passages: List of Passage objects

        Returns:
            Dictionary with chunk statistics
        """
        if not passages:
            return {
                "chunk_count": 0,
                "total_chars": 0,
                "avg_chunk_size": 0,
                "min_chunk_size": 0,
                "max_chunk_size": 0,
            }

        chunk_sizes = [len(p.text) for p in passages]

        return {
            "chunk_count": len(passages),
            "total_chars": sum(chunk_sizes),
            "avg_chunk_size": sum(chunk_sizes) // len(passages),
            "min_chunk_size": min(chunk_sizes),
            "max_chunk_size": max(chunk_sizes),
        }


# Convenience function
def chunk_text(text: str, chunk_size: int = None) -> List[Passage]:
    """Chunk text with a one-off chunker (convenience function).

    Args:
        text: Text to chunk
        chunk_size: Length threshold in characters (default from config)

    Returns:
        List of Passage objects
    """
    return TextChunker(chunk_size=chunk_size).chunk_text(text)
