"""Reading order and span merging.

Public API
----------
- :func:`sort_reading_order` / :func:`compare_items` — reading-order sort
- :func:`merge_spans` — de-fragment ordered items into spans
"""

from .merge import can_merge, merge_spans, needs_inferred_space
from .ordering import compare_items, same_visual_line, sort_reading_order

__all__ = [
    "can_merge",
    "compare_items",
    "merge_spans",
    "needs_inferred_space",
    "same_visual_line",
    "sort_reading_order",
]
