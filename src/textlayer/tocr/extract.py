"""Geometry extraction — glyph runs → normalized items.

Decomposes each run's 2×3 text matrix into font height, font width and
rotation, maps its origin through the viewport to a baseline position,
and expresses everything at the viewport's scale.  The transform is pure:
no rendering side effects, no mutation of the input runs.

Runs whose matrix (or declared width) holds non-finite values are dropped
and counted; they never abort the page.
"""

from __future__ import annotations

import logging
import math
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Iterable

from ..config import TextLayerConfig
from ..models import NormalizedItem, RawGlyphRun, Viewport

log = logging.getLogger(__name__)


@dataclass
class ExtractResult:
    """Output of a single-page geometry extraction."""

    items: list[NormalizedItem]
    diagnostics: dict[str, Any] = field(default_factory=dict)


def _empty_diagnostics() -> dict[str, Any]:
    """Return a zero-valued diagnostics dict with the full schema."""
    return {
        "runs_raw": 0,
        "items_total": 0,
        "runs_non_finite_dropped": 0,
        "runs_width_estimated": 0,
        "rotated_items": 0,
        "font_ids": {},
    }


def _is_finite_matrix(m: Iterable[float]) -> bool:
    try:
        values = [float(v) for v in m]
    except (TypeError, ValueError):
        return False
    return len(values) == 6 and all(math.isfinite(v) for v in values)


def normalize_run(
    run: RawGlyphRun,
    viewport: Viewport,
    cfg: TextLayerConfig | None = None,
) -> NormalizedItem | None:
    """Convert one glyph run into a :class:`NormalizedItem`.

    Returns ``None`` when the run's geometry is not finite.
    """
    if cfg is None:
        cfg = TextLayerConfig()
    if not _is_finite_matrix(run.transform):
        return None
    a, b, c, d, e, f = (float(v) for v in run.transform)

    font_height = math.hypot(c, d)
    font_width = math.hypot(a, b)
    rotation = math.atan2(b, a)
    x, y = viewport.convert_to_viewport_point(e, f)
    font_size = font_height * viewport.scale

    if run.declared_width is not None and not math.isfinite(run.declared_width):
        return None
    # A zero width is a missing width.
    if run.declared_width:
        width = run.declared_width * viewport.scale
    else:
        width = len(run.text) * font_size * cfg.fallback_char_width_mult

    return NormalizedItem(
        text=run.text,
        x=x,
        y_baseline=y,
        width=width,
        font_size=font_size,
        font_id=run.font_id,
        horizontal_aspect=font_width / font_height if font_height > 0 else 1.0,
        rotation=rotation,
        source_kind="glyph",
    )


def extract_items(
    runs: Iterable[RawGlyphRun],
    viewport: Viewport,
    cfg: TextLayerConfig | None = None,
) -> ExtractResult:
    """Normalize every run of one page at *viewport*'s scale.

    Parameters
    ----------
    runs : iterable of RawGlyphRun
        Glyph runs in source order.
    viewport : Viewport
        Page → viewport mapping; its ``scale`` becomes the items' scale.
    cfg : TextLayerConfig, optional

    Returns
    -------
    ExtractResult
    """
    if cfg is None:
        cfg = TextLayerConfig()

    diag = _empty_diagnostics()
    font_counter: Counter = Counter()
    items: list[NormalizedItem] = []
    for run in runs:
        diag["runs_raw"] += 1
        item = normalize_run(run, viewport, cfg)
        if item is None:
            diag["runs_non_finite_dropped"] += 1
            continue
        if not run.declared_width:
            diag["runs_width_estimated"] += 1
        if item.rotation != 0:
            diag["rotated_items"] += 1
        font_counter[item.font_id] += 1
        items.append(item)

    diag["items_total"] = len(items)
    diag["font_ids"] = dict(font_counter.most_common(20))

    if diag["runs_non_finite_dropped"]:
        log.warning(
            "Extract: dropped %d run(s) with non-finite geometry",
            diag["runs_non_finite_dropped"],
        )
    if not items:
        log.debug("Extract: no items at scale %.3f", viewport.scale)

    return ExtractResult(items=items, diagnostics=diag)
