"""Stroke-to-text extraction for free-hand (ink) annotations.

The text under a hand-drawn stroke becomes the stroke's text payload so
that ink marks are searchable and copyable.  The stroke's bounding box is
padded a few page units to forgive imprecise strokes, every item whose
bounds overlap it is kept, and the kept items are read line by line.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from ..config import TextLayerConfig
from ..layout.materialize import resolve_ascent
from ..models import FontStyle, NormalizedItem, Point

log = logging.getLogger(__name__)

BBox = Tuple[float, float, float, float]


def stroke_bbox(points: Sequence[Point], pad: float = 0.0) -> BBox:
    """Axis-aligned bounds of *points*, grown by *pad* on every side."""
    pts = np.asarray(points, dtype=float).reshape(-1, 2)
    x0, y0 = pts.min(axis=0)
    x1, y1 = pts.max(axis=0)
    return (float(x0) - pad, float(y0) - pad, float(x1) + pad, float(y1) + pad)


def item_page_bounds(
    item: NormalizedItem,
    scale: float,
    cfg: TextLayerConfig,
    styles: Optional[Dict[str, FontStyle]] = None,
) -> BBox:
    """Bounds of *item* in page space (scale = 1)."""
    style = (styles or {}).get(item.font_id)
    x0, y0, x1, y1 = item.bounds(resolve_ascent(style, cfg))
    return (x0 / scale, y0 / scale, x1 / scale, y1 / scale)


def overlaps(a: BBox, b: BBox) -> bool:
    """Strict axis-aligned overlap; touching edges do not count."""
    return a[0] < b[2] and a[2] > b[0] and a[1] < b[3] and a[3] > b[1]


def _reading_order(hits: List[Tuple[BBox, NormalizedItem]], line_tol: float) -> List[NormalizedItem]:
    hits = sorted(hits, key=lambda h: (h[0][1], h[0][0]))
    lines: List[List[Tuple[BBox, NormalizedItem]]] = []
    for hit in hits:
        if lines and abs(hit[0][1] - lines[-1][0][0][1]) <= line_tol:
            lines[-1].append(hit)
        else:
            lines.append([hit])
    ordered: List[NormalizedItem] = []
    for line in lines:
        ordered.extend(item for _, item in sorted(line, key=lambda h: h[0][0]))
    return ordered


def extract_stroke_text(
    points: Sequence[Point],
    items: Sequence[NormalizedItem],
    scale: float = 1.0,
    cfg: TextLayerConfig | None = None,
    styles: Optional[Dict[str, FontStyle]] = None,
) -> str:
    """Text of the items under a stroke.

    Parameters
    ----------
    points : sequence of (x, y)
        The stroke in page space.
    items : sequence of NormalizedItem
        The page's glyph or OCR items, at *scale*.
    scale : float
        Scale the items were produced at.
    cfg : TextLayerConfig, optional
    styles : dict, optional
        Font hints used to place glyph items' tops.

    Returns
    -------
    str
        Concatenated item text in reading order; ``""`` for fewer than
        two points, no items, or nothing under the stroke.
    """
    if cfg is None:
        cfg = TextLayerConfig()
    if len(points) < 2 or not items or scale <= 0:
        return ""

    box = stroke_bbox(points, cfg.stroke_pad)
    hits = []
    for item in items:
        bounds = item_page_bounds(item, scale, cfg, styles)
        if overlaps(box, bounds):
            hits.append((bounds, item))
    if not hits:
        return ""

    ordered = _reading_order(hits, cfg.stroke_line_tol)
    log.debug("Stroke: %d of %d items under stroke", len(ordered), len(items))
    return "".join(item.text for item in ordered)
