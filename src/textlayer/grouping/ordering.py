"""Reading-order sorting of normalized items.

Items are ordered top-to-bottom, then left-to-right within a visual line.
With column detection on, every item whose centre lies on the left half
of the page precedes every item on the right half, whatever their
baselines: two facing pages (or two columns) would otherwise interleave
line by line wherever their baselines happen to align.
"""

from __future__ import annotations

from functools import cmp_to_key
from typing import List, Sequence

from ..config import TextLayerConfig
from ..models import NormalizedItem


def same_visual_line(
    a: NormalizedItem, b: NormalizedItem, tol_mult: float
) -> bool:
    """True when the baselines differ by less than *tol_mult* × the smaller font size."""
    return abs(a.y_baseline - b.y_baseline) < min(a.font_size, b.font_size) * tol_mult


def compare_items(
    a: NormalizedItem,
    b: NormalizedItem,
    *,
    page_width: float,
    cfg: TextLayerConfig,
    detect_columns: bool = False,
) -> float:
    """Three-way comparator: negative when *a* reads before *b*."""
    if detect_columns:
        mid = page_width / 2.0
        is_left_a = a.center_x < mid
        is_left_b = b.center_x < mid
        if is_left_a != is_left_b:
            return -1 if is_left_a else 1

    if same_visual_line(a, b, cfg.sort_line_tol_mult):
        return a.x - b.x
    return a.y_baseline - b.y_baseline


def sort_reading_order(
    items: Sequence[NormalizedItem],
    page_width: float,
    cfg: TextLayerConfig | None = None,
    *,
    detect_columns: bool | None = None,
) -> List[NormalizedItem]:
    """Return *items* in reading order (stable; input is not modified).

    Parameters
    ----------
    items : sequence of NormalizedItem
    page_width : float
        Viewport width at the items' scale; its midpoint splits columns.
    cfg : TextLayerConfig, optional
    detect_columns : bool, optional
        Overrides ``cfg.detect_columns`` when given.
    """
    if cfg is None:
        cfg = TextLayerConfig()
    if detect_columns is None:
        detect_columns = cfg.detect_columns

    def _cmp(a: NormalizedItem, b: NormalizedItem) -> float:
        return compare_items(
            a, b, page_width=page_width, cfg=cfg, detect_columns=detect_columns
        )

    return sorted(items, key=cmp_to_key(_cmp))
