"""Document model for the PDF being edited."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import fitz


@dataclass(slots=True)
class PdfDocument:
    path: Path
    data: bytes
    handle: fitz.Document

    @property
    def page_count(self) -> int:
        return self.handle.page_count

    @property
    def name(self) -> str:
        return self.path.name

    def close(self) -> None:
        if not self.handle.is_closed:
            self.handle.close()
