"""Unit tests for document text extraction."""
import pytest

from docsearch.errors import ExtractionFailure
from docsearch.rag import pdf_parser
from docsearch.rag.pdf_parser import extract_text


class _FakePage:
    def __init__(self, text):
        self._text = text

    def extract_text(self):
        return self._text


class _FakePdf:
    def __init__(self, texts):
        self.pages = [_FakePage(t) for t in texts]

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False


def test_plain_text_document(text_document, sample_text):
    assert extract_text(text_document) == sample_text


def test_markdown_document(tmp_path):
    path = tmp_path / "notes.md"
    path.write_text("# Title\n\nSome notes.", encoding="utf-8")

    assert extract_text(path) == "# Title\n\nSome notes."


def test_pdf_pages_are_joined(tmp_path, monkeypatch):
    path = tmp_path / "manual.pdf"
    path.write_bytes(b"%PDF-1.4 placeholder")
    monkeypatch.setattr(
        pdf_parser.pdfplumber, "open", lambda p: _FakePdf(["Page one.", None, "Page three."])
    )

    assert extract_text(path) == "Page one.\n\nPage three."


def test_unparseable_pdf_raises_extraction_failure(tmp_path, monkeypatch):
    path = tmp_path / "broken.pdf"
    path.write_bytes(b"not a pdf")

    def _raise(p):
        raise ValueError("no /Root object")

    monkeypatch.setattr(pdf_parser.pdfplumber, "open", _raise)

    with pytest.raises(ExtractionFailure, match="no /Root object") as exc_info:
        extract_text(path)

    assert exc_info.value.path == path
    assert exc_info.value.stage == "extracting"


def test_missing_document(tmp_path):
    with pytest.raises(ExtractionFailure, match="not found"):
        extract_text(tmp_path / "missing.pdf")


def test_unsupported_document_type(tmp_path):
    path = tmp_path / "slides.pptx"
    path.write_bytes(b"binary")

    with pytest.raises(ExtractionFailure, match="Unsupported"):
        extract_text(path)
