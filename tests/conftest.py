"""Pytest configuration and shared fixtures."""
from typing import Dict, List, Optional

import pytest

from docsearch.rag.embedder import Embedder, HashEmbedder


class StubEmbedder(Embedder):
    """Embedder returning fixed vectors looked up by text."""

    name = "stub"

    def __init__(self, vectors: Dict[str, List[float]], default: List[float] = None,
                 fail_on: Optional[str] = None, fail_load: bool = False):
        super().__init__()
        self.vectors = vectors
        self.default = default or [0.0, 0.0, 1.0]
        self.fail_on = fail_on
        self.fail_load = fail_load
        self.calls: List[str] = []
        self.closed = False

    async def _load(self) -> int:
        if self.fail_load:
            raise ConnectionError("backend unavailable")
        return len(self.default)

    async def _embed(self, text: str) -> List[float]:
        self.calls.append(text)
        if text == self.fail_on:
            raise ValueError("malformed input")
        return self.vectors.get(text, self.default)

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def stub_embedder_cls():
    return StubEmbedder


@pytest.fixture
def hash_embedder():
    return HashEmbedder(dimension=64)


@pytest.fixture
def sample_text():
    return "alpha beta gamma delta"


@pytest.fixture
def text_document(tmp_path, sample_text):
    """A plain text document on disk."""
    path = tmp_path / "document.txt"
    path.write_text(sample_text, encoding="utf-8")
    return path
