"""Span merging (de-fragmentation) of reading-ordered items.

Page descriptions split text arbitrarily: a word may arrive as several
runs and inter-word spaces are often not encoded at all.  A single
left-to-right pass keeps one accumulator span and folds each next item
into it while the two sit on the same line, share a font, and are close
enough horizontally.  Gaps wider than a quarter of the font size receive
an inferred space so word boundaries survive copy and extraction.

A span keeps its first item's anchor (``x``, ``y_baseline``,
``font_size``, ``font_id``); merging only extends ``text`` and ``width``.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import List, Sequence

from ..config import TextLayerConfig
from ..models import MergedSpan, NormalizedItem

log = logging.getLogger(__name__)


def horizontal_gap(current: NormalizedItem, nxt: NormalizedItem) -> float:
    """Distance from the end of *current* to the start of *nxt*."""
    return nxt.x - (current.x + current.width)


def max_gap(current: NormalizedItem, cfg: TextLayerConfig, detect_columns: bool) -> float:
    """Gap ceiling for merging after *current*."""
    mult = cfg.merge_max_gap_mult_columns if detect_columns else cfg.merge_max_gap_mult
    return current.font_size * mult


def can_merge(
    current: NormalizedItem,
    nxt: NormalizedItem,
    cfg: TextLayerConfig,
    detect_columns: bool = False,
) -> bool:
    """Decide whether *nxt* continues the span accumulated in *current*."""
    same_line = abs(current.y_baseline - nxt.y_baseline) < (
        current.font_size * cfg.merge_line_tol_mult
    )
    if not same_line:
        return False

    same_font = (
        current.font_id == nxt.font_id
        and abs(current.font_size - nxt.font_size) < cfg.merge_font_size_tol
    )
    if not same_font:
        return False

    # Isolated space glyphs never break a span.
    if current.is_whitespace() or nxt.is_whitespace():
        return True

    gap = horizontal_gap(current, nxt)
    return (
        gap > -(current.font_size * cfg.merge_overlap_mult)
        and gap < max_gap(current, cfg, detect_columns)
    )


def needs_inferred_space(
    current: NormalizedItem, nxt: NormalizedItem, cfg: TextLayerConfig
) -> bool:
    """True when a space must be inserted between *current* and *nxt*."""
    gap = horizontal_gap(current, nxt)
    return (
        gap > current.font_size * cfg.space_gap_mult
        and not current.text.endswith(" ")
        and not nxt.text.startswith(" ")
    )


def merge_spans(
    items: Sequence[NormalizedItem],
    cfg: TextLayerConfig | None = None,
    *,
    detect_columns: bool | None = None,
) -> List[MergedSpan]:
    """Coalesce reading-ordered *items* into spans.

    Parameters
    ----------
    items : sequence of NormalizedItem
        Output of :func:`~textlayer.grouping.ordering.sort_reading_order`.
    cfg : TextLayerConfig, optional
    detect_columns : bool, optional
        Overrides ``cfg.detect_columns``; column mode uses the tighter
        gap ceiling.

    Returns
    -------
    list of MergedSpan
        New objects; *items* are left untouched.  Running the merger on
        its own output returns an equal sequence.
    """
    if cfg is None:
        cfg = TextLayerConfig()
    if detect_columns is None:
        detect_columns = cfg.detect_columns
    if not items:
        return []

    spans: List[MergedSpan] = []
    current = replace(items[0])
    for nxt in items[1:]:
        if can_merge(current, nxt, cfg, detect_columns):
            text = current.text
            if needs_inferred_space(current, nxt, cfg):
                text += " "
            current = replace(
                current,
                text=text + nxt.text,
                width=(nxt.x + nxt.width) - current.x,
            )
        else:
            spans.append(current)
            current = replace(nxt)
    spans.append(current)

    log.debug("Merge: %d items -> %d spans", len(items), len(spans))
    return spans
