"""PDF loading helpers."""

from __future__ import annotations

from pathlib import Path

import fitz
import structlog

from formoverlay.model.document import PdfDocument

logger = structlog.get_logger(__name__)


class PdfLoadError(RuntimeError):
    """Raised when a PDF cannot be opened."""


def load_pdf(path: str | Path) -> PdfDocument:
    source_path = Path(path)
    if not source_path.exists():
        raise PdfLoadError(f"File not found: {source_path}")

    try:
        data = source_path.read_bytes()
        handle = fitz.open(stream=data, filetype="pdf")
    except Exception as exc:
        raise PdfLoadError(f"Failed to open PDF: {source_path}") from exc

    if handle.page_count == 0:
        handle.close()
        raise PdfLoadError(f"PDF has no pages: {source_path}")

    logger.info("pdf.loaded", path=str(source_path), pages=handle.page_count)
    return PdfDocument(path=source_path, data=data, handle=handle)
