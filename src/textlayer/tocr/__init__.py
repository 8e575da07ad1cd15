"""Text-layer geometry extraction — glyph runs to normalized items.

Public API
----------
- :func:`extract_items` — normalize every glyph run of a page
- :func:`normalize_run` — normalize a single run
- :class:`ExtractResult` — extraction result container
"""

from .extract import ExtractResult, extract_items, normalize_run

__all__ = [
    "ExtractResult",
    "extract_items",
    "normalize_run",
]
