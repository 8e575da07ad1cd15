"""Ink (free-hand stroke) text extraction.

Public API
----------
- :func:`extract_stroke_text` — text under a stroke
- :func:`stroke_bbox` — padded stroke bounds
"""

from .extract import extract_stroke_text, item_page_bounds, overlaps, stroke_bbox

__all__ = [
    "extract_stroke_text",
    "item_page_bounds",
    "overlaps",
    "stroke_bbox",
]
