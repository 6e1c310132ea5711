"""Conversions between view (zoomed, on-screen) and document coordinates.

View and editing coordinates share a top-left origin; only the scale differs.
PDF pages put their origin in the bottom-left corner, so the fill step flips
the vertical axis once, right before drawing.
"""

from __future__ import annotations

import math

MIN_SCALE = 0.3
MAX_SCALE = 2.0


class InvalidScaleError(ValueError):
    """Raised when a scale factor is not a finite positive number."""


def _checked(scale: float) -> float:
    if not math.isfinite(scale) or scale <= 0:
        raise InvalidScaleError(f"Scale must be a finite positive number, got {scale!r}")
    return float(scale)


def clamp_scale(scale: float) -> float:
    return min(MAX_SCALE, max(MIN_SCALE, _checked(scale)))


def step_scale(scale: float, delta: float) -> float:
    # Round to avoid drift after many 0.1 steps.
    return min(MAX_SCALE, max(MIN_SCALE, round(_checked(scale) + delta, 4)))


def to_document_space(view_x: float, view_y: float, scale: float) -> tuple[float, float]:
    factor = _checked(scale)
    return view_x / factor, view_y / factor


def to_view_space(doc_x: float, doc_y: float, scale: float) -> tuple[float, float]:
    factor = _checked(scale)
    return doc_x * factor, doc_y * factor


def flip_to_document(page_height: float, x: float, y: float, height: float) -> tuple[float, float]:
    """Return the bottom-left-origin write position of a top-left-origin box."""
    return x, page_height - y - height
