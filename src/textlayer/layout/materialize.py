"""Layout materialization — merged spans → positioned, selectable boxes.

Each span becomes one invisible text box.  Placement is computed by two
pure steps composed explicitly:

1. :func:`materialize_anchor` places the box from its span: the top hangs
   ``font_size * ascent`` above the baseline, and a hit-region padding is
   added above and below without moving the rendered baseline.  The
   persisted ``page_top`` is the unpadded top.
2. :func:`correct_width` reads the box's measured width back and stretches
   it horizontally so the substituted font spans exactly the width the
   page description predicts.

:class:`TextLayerMaterializer` runs both for a whole page, inserts the
reading-flow separators used for plain-text copy, and asks the font
fetcher for families the surface does not have.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Dict, List, Optional, Sequence

from ..config import TextLayerConfig
from ..models import FontStyle, LayoutBox, MergedSpan, NormalizedItem
from .fonts import (
    FontDescriptor,
    FontFetchCache,
    FontFetcher,
    ReportLabMeasurer,
    TextMeasurer,
    is_serif_family,
)

log = logging.getLogger(__name__)

DEFAULT_FONT_FAMILY = "sans-serif"


@dataclass
class TextLayer:
    """The materialized text layer of one page at one scale."""

    page: int
    scale: float
    boxes: List[LayoutBox] = field(default_factory=list)
    # separators[i] follows boxes[i] in the copied text.
    separators: List[str] = field(default_factory=list)
    detect_columns: bool = False
    source_kind: str = "glyph"

    def __len__(self) -> int:
        return len(self.boxes)

    def plain_text(self) -> str:
        """Text a native copy of the whole layer produces."""
        parts: List[str] = []
        for box, sep in zip(self.boxes, self.separators):
            parts.append(box.text)
            parts.append(sep)
        return "".join(parts)

    def to_dict(self) -> dict:
        """Serialize to a JSON-compatible dict."""
        return {
            "page": self.page,
            "scale": self.scale,
            "source_kind": self.source_kind,
            "detect_columns": self.detect_columns,
            "boxes": [b.to_dict() for b in self.boxes],
            "separators": list(self.separators),
        }


def resolve_ascent(style: Optional[FontStyle], cfg: TextLayerConfig) -> float:
    """Fraction of the font size above the baseline.

    A supplied ascent hint wins; serif families default to the taller
    serif ascent; everything else uses the default.
    """
    if style is not None and style.ascent:
        return style.ascent
    if style is not None and style.font_family and is_serif_family(style.font_family):
        return cfg.serif_ascent
    return cfg.default_ascent


def materialize_anchor(
    span: MergedSpan,
    style: Optional[FontStyle],
    scale: float,
    cfg: TextLayerConfig | None = None,
) -> LayoutBox:
    """Place *span* as a :class:`LayoutBox` at *scale* (pure).

    OCR spans take their top and height from the recognised box and get
    no padding.
    """
    if cfg is None:
        cfg = TextLayerConfig()
    family = style.font_family if style is not None and style.font_family else ""

    if span.box is not None:
        x0, y0, x1, y1 = span.box
        height = y1 - y0
        return LayoutBox(
            text=span.text,
            page_x=x0,
            page_top=y0,
            page_width=x1 - x0,
            page_height=height,
            font_size=height,
            scale=scale,
            font_id=span.font_id,
            font_family=family or DEFAULT_FONT_FAMILY,
            ascent=1.0,
            padding=0.0,
            horizontal_aspect=span.horizontal_aspect,
            rotation=span.rotation,
            scale_x=span.horizontal_aspect,
            source_kind=span.source_kind,
        )

    ascent = resolve_ascent(style, cfg)
    top = span.y_baseline - span.font_size * ascent
    return LayoutBox(
        text=span.text,
        page_x=span.x,
        page_top=top,
        page_width=span.width,
        page_height=span.font_size,
        font_size=span.font_size,
        scale=scale,
        font_id=span.font_id,
        font_family=family or DEFAULT_FONT_FAMILY,
        ascent=ascent,
        padding=span.font_size * cfg.box_padding_mult,
        horizontal_aspect=span.horizontal_aspect,
        rotation=span.rotation,
        scale_x=span.horizontal_aspect,
        source_kind=span.source_kind,
    )


def correct_width(box: LayoutBox, measured_width: float) -> LayoutBox:
    """Return *box* stretched so its rendered width equals ``page_width`` (pure).

    *measured_width* is the box's width as rendered with its initial
    ``scaleX(horizontal_aspect)``.  Non-positive widths leave the scale
    untouched.
    """
    scale_x = box.horizontal_aspect
    if measured_width > 0 and box.page_width > 0:
        scale_x = box.horizontal_aspect * (box.page_width / measured_width)
    return replace(box, scale_x=scale_x, measured_width=measured_width)


def separator_between(
    current: NormalizedItem,
    nxt: NormalizedItem,
    cfg: TextLayerConfig,
    detect_columns: bool = False,
) -> str:
    """Plain-text separator that reproduces reading flow between two spans."""
    vertical = nxt.y_baseline - current.y_baseline
    if vertical > current.font_size * cfg.line_break_gap_mult:
        return "\n"
    if detect_columns and nxt.y_baseline < current.y_baseline - cfg.column_jump_units:
        return "\n\n"
    right = current.x + current.width
    if nxt.x > right and nxt.x - right > current.font_size * cfg.separator_space_mult:
        return " "
    return ""


class TextLayerMaterializer:
    """Build :class:`TextLayer` objects from merged spans.

    Parameters
    ----------
    cfg : TextLayerConfig, optional
    measurer : TextMeasurer, optional
        ``measure(text, font)`` capability of the rendering surface.
        Defaults to :class:`ReportLabMeasurer`.
    font_fetcher : FontFetcher, optional
        Side channel for missing families.  When omitted and
        ``cfg.enable_font_fetch`` is set, one is created with its own
        :class:`FontFetchCache`.
    """

    def __init__(
        self,
        cfg: TextLayerConfig | None = None,
        measurer: Optional[TextMeasurer] = None,
        font_fetcher: Optional[FontFetcher] = None,
    ) -> None:
        self.cfg = cfg or TextLayerConfig()
        self.measurer = measurer or ReportLabMeasurer()
        if font_fetcher is None and self.cfg.enable_font_fetch:
            on_loaded = getattr(self.measurer, "mark_loaded", None)
            font_fetcher = FontFetcher(
                FontFetchCache(self.cfg.font_fetch_skip),
                self.cfg.font_fetch_url,
                timeout=self.cfg.font_fetch_timeout,
                on_loaded=on_loaded,
            )
        self.font_fetcher = font_fetcher

    def _ensure_font(self, family: str) -> None:
        if self.font_fetcher is None or not family:
            return
        is_available = getattr(self.measurer, "is_available", None)
        if is_available is not None and is_available(family):
            return
        self.font_fetcher.request(family)

    def measure(self, box: LayoutBox) -> float:
        """Width of *box* as rendered with its initial horizontal scale."""
        font = FontDescriptor(box.font_family, box.font_size, box.font_id)
        return self.measurer.measure(box.text, font) * box.horizontal_aspect

    def materialize(
        self,
        spans: Sequence[MergedSpan],
        *,
        page: int = 0,
        scale: float = 1.0,
        styles: Optional[Dict[str, FontStyle]] = None,
        detect_columns: Optional[bool] = None,
        source_kind: str = "glyph",
    ) -> TextLayer:
        """Materialize *spans* into a :class:`TextLayer`.

        Spans with empty text produce no box; separators are computed
        between consecutive kept spans.
        """
        if detect_columns is None:
            detect_columns = self.cfg.detect_columns
        styles = styles or {}

        kept = [s for s in spans if s.text]
        layer = TextLayer(
            page=page,
            scale=scale,
            detect_columns=detect_columns,
            source_kind=source_kind,
        )
        for index, span in enumerate(kept):
            style = styles.get(span.font_id)
            if style is not None and style.font_family:
                self._ensure_font(style.font_family)
            box = materialize_anchor(span, style, scale, self.cfg)
            box = correct_width(box, self.measure(box))
            layer.boxes.append(box)
            if index < len(kept) - 1:
                layer.separators.append(
                    separator_between(span, kept[index + 1], self.cfg, detect_columns)
                )
            else:
                layer.separators.append("")

        log.debug(
            "Materialize page %d: %d spans -> %d boxes at scale %.3f",
            page,
            len(spans),
            len(layer.boxes),
            scale,
        )
        return layer
