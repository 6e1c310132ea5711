"""Greedy line wrapping driven only by font metrics."""

from __future__ import annotations

from typing import Protocol

from reportlab.pdfbase import pdfmetrics


class EmptyInputError(ValueError):
    """Raised when text produces no lines at all."""


class FontMetrics(Protocol):
    def width_of(self, text: str, font_size: float) -> float: ...


class ReportlabMetrics:
    """Advance widths of one of reportlab's registered fonts."""

    def __init__(self, font_name: str = "Helvetica") -> None:
        # Fails early with KeyError if the font is not registered.
        pdfmetrics.getFont(font_name)
        self.font_name = font_name

    def width_of(self, text: str, font_size: float) -> float:
        return pdfmetrics.stringWidth(text, self.font_name, font_size)


def wrap_text(text: str, max_width: float, font_size: float, metrics: FontMetrics) -> list[str]:
    """Break *text* into lines that each fit within *max_width* at *font_size*.

    Explicit newlines always end a line. Within a paragraph words are added to
    the current line while the line still fits. A word wider than *max_width*
    on its own is split character by character into the longest fitting
    pieces; every piece holds at least one character, so a single glyph wider
    than *max_width* still becomes its own line instead of looping forever.
    Paragraphs without words produce no line.
    """
    lines: list[str] = []
    for paragraph in text.splitlines():
        current = ""
        for word in paragraph.split():
            candidate = f"{current} {word}" if current else word
            if metrics.width_of(candidate, font_size) <= max_width:
                current = candidate
                continue
            if current:
                lines.append(current)
            current = word
            if metrics.width_of(word, font_size) > max_width:
                pieces = _split_word(word, max_width, font_size, metrics)
                lines.extend(pieces[:-1])
                current = pieces[-1]
        if current:
            lines.append(current)

    if not lines:
        raise EmptyInputError("Text contains nothing to lay out")
    return lines


def _split_word(word: str, max_width: float, font_size: float, metrics: FontMetrics) -> list[str]:
    pieces: list[str] = []
    remaining = word
    while remaining:
        size = 1
        while size < len(remaining) and metrics.width_of(remaining[: size + 1], font_size) <= max_width:
            size += 1
        pieces.append(remaining[:size])
        remaining = remaining[size:]
    return pieces
