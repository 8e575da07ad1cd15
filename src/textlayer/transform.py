"""Page space ↔ screen space conversion.

Every coordinate relationship in the package is a single multiplication
by the active rendering scale: screen = page * scale.  Persisted geometry
(selection rects, strokes, annotation boxes) is always page space.
"""

from __future__ import annotations

from typing import Iterable, List

from .models import Point, SelectionRect


def _require_scale(scale: float) -> None:
    if not scale > 0:
        raise ValueError(f"scale={scale} must be > 0")


def to_screen_space(rect: SelectionRect, scale: float) -> SelectionRect:
    """Scale a page-space rect up to the current rendering scale."""
    _require_scale(scale)
    return SelectionRect(
        x=rect.x * scale,
        y=rect.y * scale,
        width=rect.width * scale,
        height=rect.height * scale,
    )


def to_page_space(rect: SelectionRect, scale: float) -> SelectionRect:
    """Inverse of :func:`to_screen_space`."""
    _require_scale(scale)
    return SelectionRect(
        x=rect.x / scale,
        y=rect.y / scale,
        width=rect.width / scale,
        height=rect.height / scale,
    )


def points_to_page_space(points: Iterable[Point], scale: float) -> List[Point]:
    """Convert pointer positions captured at *scale* into page space."""
    _require_scale(scale)
    return [(x / scale, y / scale) for x, y in points]


def points_to_screen_space(points: Iterable[Point], scale: float) -> List[Point]:
    _require_scale(scale)
    return [(x * scale, y * scale) for x, y in points]
