"""Ingest stage — PDF validation, rendering, and glyph-run reading.

Public API
----------
- :func:`ingest_pdf` — open + validate a PDF, return :class:`PdfMeta`
- :func:`render_page_image` — render one page to PIL Image at a scale
- :func:`read_text_content` — one page's glyph runs and font hints
- :class:`PdfPageSource` — page source over one PDF page
- :class:`IngestError` — raised on validation failures
"""

from .ingest import (
    IngestError,
    PageInfo,
    PdfMeta,
    PdfPageSource,
    ascent_hints,
    chars_to_runs,
    ingest_pdf,
    read_text_content,
    render_page_image,
)

__all__ = [
    "IngestError",
    "PageInfo",
    "PdfMeta",
    "PdfPageSource",
    "ascent_hints",
    "chars_to_runs",
    "ingest_pdf",
    "read_text_content",
    "render_page_image",
]
