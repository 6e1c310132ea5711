"""Test configuration and shared fixtures."""

from __future__ import annotations

from io import BytesIO
from itertools import count
from typing import Callable

import pytest
from pypdf import PdfReader, PdfWriter
from pypdf.generic import RectangleObject
from reportlab.pdfgen import canvas

from formoverlay.state.session import DocumentSession


class FixedWidthMetrics:
    """Every character advances `char_width` units at font size 10, scaled linearly."""

    def __init__(self, char_width: float = 5.0) -> None:
        self.char_width = char_width

    def width_of(self, text: str, font_size: float) -> float:
        return len(text) * self.char_width * font_size / 10.0


class FakeDocument:
    """In-memory document capability recording every draw."""

    def __init__(self, pages: list[tuple[float, float]], fail_serialize: bool = False) -> None:
        self.pages = pages
        self.fail_serialize = fail_serialize
        self.draws: list[tuple[int, str, float, float, float]] = []

    def page_count(self) -> int:
        return len(self.pages)

    def page_size(self, page_number: int) -> tuple[float, float]:
        return self.pages[page_number - 1]

    def draw_text(self, page_index: int, text: str, x: float, y: float, font_size: float) -> None:
        self.draws.append((page_index, text, x, y, font_size))

    def serialize(self) -> bytes:
        if self.fail_serialize:
            raise OSError("disk full")
        return b"%PDF-fake"


def make_pdf(page_sizes: list[tuple[float, float]]) -> bytes:
    buffer = BytesIO()
    report = canvas.Canvas(buffer)
    for width, height in page_sizes:
        report.setPageSize((width, height))
        report.drawString(20, 20, f"{width:.0f}x{height:.0f}")
        report.showPage()
    report.save()
    return buffer.getvalue()


def reshape_pdf(data: bytes, cropbox: list[float] | None = None, rotate: int = 0) -> bytes:
    """Copy of *data* with every page cropped and/or given a `/Rotate`."""
    reader = PdfReader(BytesIO(data))
    writer = PdfWriter()
    for page in reader.pages:
        if cropbox is not None:
            page.cropbox = RectangleObject(cropbox)
        if rotate:
            page.rotate(rotate)
        writer.add_page(page)
    buffer = BytesIO()
    writer.write(buffer)
    return buffer.getvalue()


@pytest.fixture
def metrics() -> FixedWidthMetrics:
    return FixedWidthMetrics()


@pytest.fixture
def fake_document() -> FakeDocument:
    return FakeDocument(pages=[(600.0, 800.0), (600.0, 800.0)])


@pytest.fixture
def sequential_ids() -> Callable[[], str]:
    counter = count(1)
    return lambda: f"field_{next(counter)}"


@pytest.fixture
def session(sequential_ids) -> DocumentSession:
    return DocumentSession(id_factory=sequential_ids)


@pytest.fixture
def two_page_pdf() -> bytes:
    return make_pdf([(612.0, 792.0), (595.0, 842.0)])
