"""Text overlay writer using reportlab canvases merged with pypdf."""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from io import BytesIO
from pathlib import Path

from pypdf import PageObject, PdfReader, PdfWriter
from reportlab.lib import colors
from reportlab.pdfgen import canvas


class PdfFillError(RuntimeError):
    """Base class for fatal fill failures."""


class DocumentUnreadableError(PdfFillError):
    """Raised when the source document cannot be opened."""


class SerializationFailedError(PdfFillError):
    """Raised when the filled document cannot be written out."""


@dataclass(frozen=True, slots=True)
class TextDraw:
    text: str
    x: float
    y: float
    font_size: float


class OverlayDocument:
    """Document capability over an existing PDF.

    Page numbers passed to `page_size` are 1-based; page indexes passed to
    `draw_text` are 0-based. Sizes and draw positions describe the page as it
    is displayed: the crop box with `/Rotate` applied, origin bottom-left, `y`
    being the text baseline. The viewer measures pages the same way.
    Nothing touches the source until `serialize`, which merges one overlay
    page per drawn-on page and returns the new bytes.
    """

    def __init__(self, reader: PdfReader, font_name: str = "Helvetica") -> None:
        self._reader = reader
        self.font_name = font_name
        self._draws: dict[int, list[TextDraw]] = defaultdict(list)

    @classmethod
    def from_bytes(cls, data: bytes, font_name: str = "Helvetica") -> OverlayDocument:
        try:
            reader = PdfReader(BytesIO(data))
            if reader.is_encrypted and not reader.decrypt(""):
                raise DocumentUnreadableError("PDF is encrypted and requires a password")
            # Forces the page tree to be parsed now rather than mid-fill.
            len(reader.pages)
        except DocumentUnreadableError:
            raise
        except Exception as exc:
            raise DocumentUnreadableError("Failed to read source PDF") from exc
        return cls(reader, font_name=font_name)

    @classmethod
    def from_path(cls, path: str | Path, font_name: str = "Helvetica") -> OverlayDocument:
        source = Path(path)
        try:
            data = source.read_bytes()
        except OSError as exc:
            raise DocumentUnreadableError(f"Failed to read source PDF: {source}") from exc
        return cls.from_bytes(data, font_name=font_name)

    def page_count(self) -> int:
        return len(self._reader.pages)

    def page_size(self, page_number: int) -> tuple[float, float]:
        if page_number < 1 or page_number > self.page_count():
            raise IndexError(f"Page out of range: {page_number}")
        page = self._reader.pages[page_number - 1]
        box = page.cropbox
        width, height = float(box.width), float(box.height)
        if _rotation(page) in (90, 270):
            return height, width
        return width, height

    def draw_text(self, page_index: int, text: str, x: float, y: float, font_size: float) -> None:
        if page_index < 0 or page_index >= self.page_count():
            raise IndexError(f"Page index out of range: {page_index}")
        self._draws[page_index].append(TextDraw(text, x, y, font_size))

    def drawn(self, page_index: int) -> list[TextDraw]:
        return list(self._draws.get(page_index, []))

    def serialize(self) -> bytes:
        try:
            writer = PdfWriter()
            for page in self._reader.pages:
                writer.add_page(page)

            if self._draws:
                overlay = PdfReader(self._build_overlay_pdf())
                for page_index in sorted(self._draws):
                    writer.pages[page_index].merge_page(overlay.pages[page_index])

            output = BytesIO()
            writer.write(output)
        except Exception as exc:
            raise SerializationFailedError("Failed to write filled PDF") from exc
        return output.getvalue()

    def _build_overlay_pdf(self) -> BytesIO:
        buffer = BytesIO()
        report = canvas.Canvas(buffer)

        for page_index, page in enumerate(self._reader.pages):
            media = page.mediabox
            report.setPageSize((float(media.right), float(media.top)))
            report.setFillColor(colors.black)

            draws = self._draws.get(page_index, [])
            if draws:
                report.saveState()
                _to_display_space(report, page)
                for draw in draws:
                    report.setFont(self.font_name, draw.font_size)
                    report.drawString(draw.x, draw.y, draw.text)
                report.restoreState()

            report.showPage()

        report.save()
        buffer.seek(0)
        return buffer


def _rotation(page: PageObject) -> int:
    return page.rotation % 360


def _to_display_space(report: canvas.Canvas, page: PageObject) -> None:
    """Map displayed-page coordinates onto the page's unrotated user space.

    Viewers turn the page clockwise by `/Rotate`, so the overlay is turned
    counter-clockwise by the same angle about the crop box.
    """
    crop = page.cropbox
    width, height = float(crop.width), float(crop.height)
    report.translate(float(crop.left), float(crop.bottom))

    rotation = _rotation(page)
    if rotation == 90:
        report.translate(width, 0)
    elif rotation == 180:
        report.translate(width, height)
    elif rotation == 270:
        report.translate(0, height)
    if rotation:
        report.rotate(rotation)
