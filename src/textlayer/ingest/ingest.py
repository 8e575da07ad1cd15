"""Ingest stage — PDF validation, page rendering, and glyph-run reading.

Centralises PDF opening so that the pipeline never calls
``pdfplumber.open()`` or ``.to_image()`` directly.

Public API
----------
- :func:`ingest_pdf` — open + validate a PDF, return a :class:`PdfMeta`
- :func:`render_page_image` — render one page to a PIL Image at a scale
- :func:`read_text_content` — pdfplumber chars → :class:`TextContent`
- :class:`PdfPageSource` — page source over one PDF page
- :class:`PdfMeta` / :class:`PageInfo` — metadata containers
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Sequence

import numpy as np
import pdfplumber
from PIL import Image

from ..models import FontStyle, RawGlyphRun, TextContent, Viewport

log = logging.getLogger(__name__)

PDF_DPI = 72.0

# Fractions of the font size.
_BASELINE_TOL = 0.05
_MAX_CHAR_GAP = 0.15
_MAX_CHAR_OVERLAP = 0.5


# ---------------------------------------------------------------------------
# Data containers
# ---------------------------------------------------------------------------


@dataclass
class PageInfo:
    """Dimension metadata for a single PDF page."""

    index: int  # zero-based page number
    width: float  # points
    height: float  # points

    def to_dict(self) -> dict:
        """Serialize page info to a JSON-compatible dict."""
        return {
            "index": self.index,
            "width": round(self.width, 3),
            "height": round(self.height, 3),
        }


@dataclass
class PdfMeta:
    """PDF-level metadata returned by :func:`ingest_pdf`.

    This is a lightweight descriptor; it does **not** hold the
    ``pdfplumber.PDF`` handle open.
    """

    path: Path
    num_pages: int
    pages: List[PageInfo] = field(default_factory=list)
    file_size_bytes: int = 0
    pdf_metadata: dict = field(default_factory=dict)  # PDF info dict

    def page(self, index: int) -> PageInfo:
        """Return :class:`PageInfo` for *index* (zero-based)."""
        return self.pages[index]

    def to_dict(self) -> dict:
        """Serialize PDF metadata to a JSON-compatible dict."""
        d: dict = {
            "path": str(self.path),
            "num_pages": self.num_pages,
            "file_size_bytes": self.file_size_bytes,
        }
        if self.pdf_metadata:
            d["pdf_metadata"] = self.pdf_metadata
        d["pages"] = [p.to_dict() for p in self.pages]
        return d


class IngestError(Exception):
    """Raised when a PDF cannot be ingested."""


def _validate_pdf_path(pdf_path: Path) -> None:
    """Raise :class:`IngestError` for missing / empty / wrong-extension files."""
    if not pdf_path.exists():
        raise IngestError(f"File not found: {pdf_path}")
    if not pdf_path.is_file():
        raise IngestError(f"Not a file: {pdf_path}")
    if pdf_path.stat().st_size == 0:
        raise IngestError(f"Empty file: {pdf_path}")
    if pdf_path.suffix.lower() != ".pdf":
        raise IngestError(f"Not a PDF (suffix={pdf_path.suffix!r}): {pdf_path}")


# ---------------------------------------------------------------------------
# PDF-level entry points
# ---------------------------------------------------------------------------


def ingest_pdf(pdf_path: Path | str) -> PdfMeta:
    """Open and validate a PDF, returning a :class:`PdfMeta` descriptor.

    Raises
    ------
    IngestError
        When the file is missing, empty, encrypted, or cannot be opened.
    """
    pdf_path = Path(pdf_path)
    _validate_pdf_path(pdf_path)

    try:
        with pdfplumber.open(pdf_path) as pdf:
            if hasattr(pdf, "doc") and hasattr(pdf.doc, "is_extractable"):
                if not pdf.doc.is_extractable:
                    raise IngestError(
                        f"PDF is password-protected or encrypted "
                        f"(text extraction not permitted): {pdf_path}"
                    )

            num_pages = len(pdf.pages)
            pages = [
                PageInfo(index=i, width=float(pg.width), height=float(pg.height))
                for i, pg in enumerate(pdf.pages)
            ]
            pdf_metadata = {}
            for k, v in (pdf.metadata or {}).items():
                if isinstance(v, bytes):
                    v = v.decode("utf-8", errors="replace")
                pdf_metadata[str(k)] = str(v) if v is not None else ""

        file_size = pdf_path.stat().st_size
        log.info(
            "Ingested %s: %d pages, %.1f KB",
            pdf_path.name,
            num_pages,
            file_size / 1024,
        )
        return PdfMeta(
            path=pdf_path.resolve(),
            num_pages=num_pages,
            pages=pages,
            file_size_bytes=file_size,
            pdf_metadata=pdf_metadata,
        )

    except IngestError:
        raise
    except Exception as exc:
        raise IngestError(f"Cannot open PDF: {exc}") from exc


def _render(page, scale: float) -> Image.Image:
    img = page.to_image(resolution=PDF_DPI * scale).original.copy()
    if img.mode != "RGB":
        img = img.convert("RGB")
    return img


def render_page_image(pdf_path: Path | str, page_num: int, scale: float = 1.0) -> Image.Image:
    """Render one page to an RGB PIL Image at *scale* (72 dpi × scale)."""
    if scale <= 0:
        raise ValueError(f"scale={scale} must be > 0")
    with pdfplumber.open(pdf_path) as pdf:
        return _render(pdf.pages[page_num], scale)


# ---------------------------------------------------------------------------
# Glyph runs
# ---------------------------------------------------------------------------


def _continues_run(run_chars: List[dict], ch: dict) -> bool:
    prev = run_chars[-1]
    if ch.get("fontname") != prev.get("fontname"):
        return False
    if not (prev.get("upright", True) and ch.get("upright", True)):
        return False
    size = max(float(prev.get("size", 0.0)), 1e-6)
    if abs(float(ch["matrix"][5]) - float(prev["matrix"][5])) > size * _BASELINE_TOL:
        return False
    gap = float(ch["x0"]) - float(prev["x1"])
    return -size * _MAX_CHAR_OVERLAP <= gap <= size * _MAX_CHAR_GAP


def _chars_to_run(run_chars: List[dict]) -> RawGlyphRun:
    first = run_chars[0]
    declared: Optional[float] = None
    if first.get("upright", True):
        declared = float(run_chars[-1]["x1"]) - float(first["x0"])
    return RawGlyphRun(
        text="".join(c.get("text", "") for c in run_chars),
        transform=tuple(float(v) for v in first["matrix"]),
        font_id=first.get("fontname", ""),
        declared_width=declared,
    )


def chars_to_runs(chars: Sequence[dict]) -> List[RawGlyphRun]:
    """Group pdfplumber chars into glyph runs, preserving content order.

    Consecutive chars of one font on one baseline that are contiguous in
    x form one run.  Chars without a text matrix are ignored.
    """
    runs: List[RawGlyphRun] = []
    current: List[dict] = []
    for ch in chars:
        if ch.get("matrix") is None or not ch.get("text"):
            continue
        if current and _continues_run(current, ch):
            current.append(ch)
            continue
        if current:
            runs.append(_chars_to_run(current))
        current = [ch]
    if current:
        runs.append(_chars_to_run(current))
    return runs


def ascent_hints(chars: Sequence[dict], page_height: float) -> Dict[str, FontStyle]:
    """Per-font ascent estimates from upright char boxes.

    Ascent is the median of ``(baseline - top) / size`` where the baseline
    is the char matrix origin flipped into top-down page space.
    """
    ratios: Dict[str, List[float]] = defaultdict(list)
    for ch in chars:
        size = float(ch.get("size", 0.0) or 0.0)
        if size <= 0 or ch.get("matrix") is None or not ch.get("upright", True):
            continue
        baseline = page_height - float(ch["matrix"][5])
        ratios[ch.get("fontname", "")].append((baseline - float(ch["top"])) / size)

    styles: Dict[str, FontStyle] = {}
    for font_id, values in ratios.items():
        ascent = float(np.median(values))
        styles[font_id] = FontStyle(
            font_family=font_id,
            ascent=ascent if 0.0 < ascent <= 1.5 else None,
        )
    return styles


def read_text_content(page) -> TextContent:
    """Read a pdfplumber page's glyph runs and per-font hints."""
    chars = list(page.chars)
    runs = chars_to_runs(chars)
    styles = ascent_hints(chars, float(page.height))
    log.debug(
        "Read p%s: %d chars -> %d runs, %d fonts",
        getattr(page, "page_number", "?"),
        len(chars),
        len(runs),
        len(styles),
    )
    return TextContent(runs=runs, styles=styles)


# ---------------------------------------------------------------------------
# Page source
# ---------------------------------------------------------------------------


class PdfPageSource:
    """Page source backed by one page of a PDF on disk.

    Each call opens the file, so the source can be shared across threads.
    A cancellation token, when given, is checked between steps.
    """

    def __init__(self, pdf_path: Path | str, page_num: int = 0) -> None:
        self.pdf_path = Path(pdf_path)
        self.page_num = page_num
        self._size: Optional[tuple[float, float]] = None

    def _page_size(self) -> tuple[float, float]:
        if self._size is None:
            with pdfplumber.open(self.pdf_path) as pdf:
                page = pdf.pages[self.page_num]
                self._size = (float(page.width), float(page.height))
        return self._size

    def viewport(self, scale: float) -> Viewport:
        width, height = self._page_size()
        return Viewport.for_page(width, height, scale)

    def render(self, scale: float, token=None) -> Image.Image:
        if token is not None:
            token.raise_if_cancelled()
        with pdfplumber.open(self.pdf_path) as pdf:
            img = _render(pdf.pages[self.page_num], scale)
        if token is not None:
            token.raise_if_cancelled()
        return img

    def text_content(self, token=None) -> TextContent:
        if token is not None:
            token.raise_if_cancelled()
        with pdfplumber.open(self.pdf_path) as pdf:
            content = read_text_content(pdf.pages[self.page_num])
        if token is not None:
            token.raise_if_cancelled()
        return content
