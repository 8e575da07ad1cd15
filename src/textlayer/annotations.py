"""Annotation records produced from selections and ink strokes.

Highlights come from :func:`~textlayer.selection.map_selection` rects and
ink marks from free-hand strokes; both are stored in page space
(scale = 1) with ``bbox`` as ``(x, y, width, height)``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

from .ink import stroke_bbox
from .models import Point, SelectionRect

log = logging.getLogger(__name__)

ANNOTATION_TYPES = ("highlight", "note", "ink")

DEFAULT_HIGHLIGHT_COLOR = "#fef9c3"
DEFAULT_INK_COLOR = "#ef4444"


@dataclass
class Annotation:
    """One annotation on one page."""

    page: int
    bbox: Tuple[float, float, float, float]  # x, y, width, height
    type: str = "highlight"
    text: str = ""
    points: List[Point] = field(default_factory=list)
    color: str = DEFAULT_HIGHLIGHT_COLOR
    opacity: float = 1.0
    stroke_width: float = 0.0

    def __post_init__(self) -> None:
        if self.type not in ANNOTATION_TYPES:
            raise ValueError(f"type must be one of {ANNOTATION_TYPES}, got {self.type!r}")

    def to_dict(self) -> dict:
        """Serialize to a JSON-compatible dict."""
        d = {
            "page": self.page,
            "bbox": [round(v, 3) for v in self.bbox],
            "type": self.type,
            "color": self.color,
            "opacity": self.opacity,
        }
        if self.text:
            d["text"] = self.text
        if self.points:
            d["points"] = [[round(x, 3), round(y, 3)] for x, y in self.points]
        if self.stroke_width:
            d["stroke_width"] = self.stroke_width
        return d

    @classmethod
    def from_dict(cls, d: dict) -> "Annotation":
        """Deserialize from a dict produced by :meth:`to_dict`."""
        return cls(
            page=d["page"],
            bbox=tuple(d["bbox"]),
            type=d.get("type", "highlight"),
            text=d.get("text", ""),
            points=[tuple(p) for p in d.get("points", [])],
            color=d.get("color", DEFAULT_HIGHLIGHT_COLOR),
            opacity=d.get("opacity", 1.0),
            stroke_width=d.get("stroke_width", 0.0),
        )


def highlight_annotations(
    page: int,
    rects: Sequence[SelectionRect],
    text: str = "",
    *,
    color: str = DEFAULT_HIGHLIGHT_COLOR,
    opacity: float = 1.0,
) -> List[Annotation]:
    """One highlight per page-space selection rect, all sharing *text*."""
    return [
        Annotation(
            page=page,
            bbox=(r.x, r.y, r.width, r.height),
            type="highlight",
            text=text,
            color=color,
            opacity=opacity,
        )
        for r in rects
    ]


def ink_annotation(
    page: int,
    points: Sequence[Point],
    text: str = "",
    *,
    color: str = DEFAULT_INK_COLOR,
    opacity: float = 1.0,
    stroke_width: float = 2.0,
) -> Optional[Annotation]:
    """Ink annotation for a page-space stroke; ``None`` for fewer than two points."""
    if len(points) < 2:
        log.debug("Ink: ignoring stroke with %d point(s)", len(points))
        return None
    x0, y0, x1, y1 = stroke_bbox(points)
    return Annotation(
        page=page,
        bbox=(x0, y0, x1 - x0, y1 - y0),
        type="ink",
        text=text,
        points=[(float(x), float(y)) for x, y in points],
        color=color,
        opacity=opacity,
        stroke_width=stroke_width,
    )
