"""
Exceptions raised by the search pipeline.

Every error is fatal for the current run: nothing is retried and no partial
ranking is ever presented.
"""
from typing import Optional


class DocSearchError(Exception):
    """Base exception for all pipeline errors."""

    stage = "unknown"

    def __init__(self, message: str, stage: Optional[str] = None):
        super().__init__(message)
        if stage is not None:
            self.stage = stage


class ExtractionFailure(DocSearchError):
    """
    The document could not be turned into text.

    Raised when:
    - The file does not exist or cannot be read
    - The file type is not supported
    - The PDF parser rejects the file
    """

    stage = "extracting"

    def __init__(self, message: str, path=None):
        super().__init__(message)
        self.path = path


class ModelLoadFailure(DocSearchError):
    """
    The embedding backend could not be prepared.

    Raised when:
    - The backend is unreachable
    - The configured model is not installed
    - The dimension probe returns no vector
    """

    stage = "loading"

    def __init__(self, message: str, model: Optional[str] = None):
        super().__init__(message)
        self.model = model


class EmbeddingFailure(DocSearchError):
    """A single text could not be embedded.

    ``passage_index`` is ``None`` when the failing text is the query.
    """

    stage = "embedding"

    def __init__(self, message: str, passage_index: Optional[int] = None):
        super().__init__(message)
        self.passage_index = passage_index

    @property
    def is_query(self) -> bool:
        return self.passage_index is None

    @property
    def target(self) -> str:
        """Human readable name of the text that failed."""
        if self.is_query:
            return "query"
        return f"passage {self.passage_index}"


class ConsistencyFault(DocSearchError):
    """An internal invariant was violated (e.g. passage/embedding count mismatch)."""

    stage = "ranking"
