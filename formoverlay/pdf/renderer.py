"""Page rendering helpers using PyMuPDF."""

from __future__ import annotations

import fitz
from PySide6.QtGui import QImage

from formoverlay.model.coords import clamp_scale


class PdfRenderError(RuntimeError):
    """Raised when a page cannot be rendered."""


def render_page_image(document: fitz.Document, page_number: int, scale: float = 1.0) -> QImage:
    """Render a 1-based page at *scale*; the image size is the page size times scale."""
    if page_number < 1 or page_number > document.page_count:
        raise PdfRenderError(f"Page out of range: {page_number}")

    zoom = clamp_scale(scale)
    try:
        page = document.load_page(page_number - 1)
        pix = page.get_pixmap(matrix=fitz.Matrix(zoom, zoom), alpha=False, annots=False)
    except Exception as exc:
        raise PdfRenderError(f"Failed to render page {page_number}") from exc

    image = QImage(pix.samples, pix.width, pix.height, pix.stride, QImage.Format.Format_RGB888)
    return image.copy()
