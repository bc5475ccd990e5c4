"""Document text extraction.

Handles:
- PDF text extraction page by page with pdfplumber
- Plain text and markdown files read as UTF-8
"""
from pathlib import Path
from typing import List
import pdfplumber
import structlog

from docsearch.errors import ExtractionFailure

logger = structlog.get_logger()

PDF_SUFFIXES = {".pdf"}
TEXT_SUFFIXES = {".txt", ".md", ".text"}


def _extract_pdf(path: Path) -> str:
    page_texts: List[str] = []
    with pdfplumber.open(path) as pdf:
        for page in pdf.pages:
            # extract_text() returns None for image-only pages
            page_texts.append(page.extract_text() or "")

    logger.debug("pdf_pages_extracted", path=str(path), page_count=len(page_texts))
    return "\n".join(page_texts)


def extract_text(file_path) -> str:
    """Read a document and return its full text.

    Args:
        file_path: Path to a PDF or plain text file

    Returns:
        Extracted text (may be empty for a document without text)

    Raises:
        ExtractionFailure: If the file is missing, unsupported or unreadable
    """
    path = Path(file_path)

    if not path.is_file():
        raise ExtractionFailure(f"Document not found: {path}", path=path)

    suffix = path.suffix.lower()

    try:
        if suffix in PDF_SUFFIXES:
            text = _extract_pdf(path)
        elif suffix in TEXT_SUFFIXES:
            text = path.read_text(encoding="utf-8")
        else:
            raise ExtractionFailure(
                f"Unsupported document type '{suffix or path.name}': {path}",
                path=path,
            )
    except ExtractionFailure:
        raise
    except Exception as e:
        logger.error(
            "document_extraction_failed",
            path=str(path),
            error=str(e),
            error_type=type(e).__name__,
        )
        raise ExtractionFailure(f"Failed to extract text from {path}: {e}", path=path) from e

    logger.info("document_extracted", path=str(path), text_length=len(text))
    return text
