"""Layout materialization — spans to positioned, width-corrected boxes.

Public API
----------
- :class:`TextLayerMaterializer` / :class:`TextLayer`
- :func:`materialize_anchor` / :func:`correct_width` — the two pure steps
- :func:`resolve_ascent` / :func:`separator_between`
- font helpers in :mod:`textlayer.layout.fonts`
"""

from .fonts import (
    FontDescriptor,
    FontFetchCache,
    FontFetcher,
    ReportLabMeasurer,
    TextMeasurer,
    family_name,
    is_serif_family,
    resolve_font,
    strip_subset_prefix,
)
from .materialize import (
    TextLayer,
    TextLayerMaterializer,
    correct_width,
    materialize_anchor,
    resolve_ascent,
    separator_between,
)

__all__ = [
    "FontDescriptor",
    "FontFetchCache",
    "FontFetcher",
    "ReportLabMeasurer",
    "TextLayer",
    "TextLayerMaterializer",
    "TextMeasurer",
    "correct_width",
    "family_name",
    "is_serif_family",
    "materialize_anchor",
    "resolve_ascent",
    "resolve_font",
    "separator_between",
    "strip_subset_prefix",
]
