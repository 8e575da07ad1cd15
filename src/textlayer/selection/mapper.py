"""Selection mapping — host text selections → page-space highlight rects.

A selection is a pair of anchors into the materialized boxes.  Every box
the selection touches yields one rectangle: the whole box for boxes fully
inside, and a linear interpolation along the box width for the boxes
holding the start or end anchor.  The rects for a multi-line selection
form the usual ragged highlight; no single enclosing region is needed.

All returned geometry is divided by the layer scale, i.e. expressed in
page space (scale = 1) ready to be stored as annotation geometry.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Tuple

from ..config import TextLayerConfig
from ..layout.materialize import TextLayer
from ..models import LayoutBox, SelectionRect

log = logging.getLogger(__name__)

START_TO_START = 0
END_TO_END = 2


@dataclass(frozen=True)
class TextAnchor:
    """One end of a selection.

    ``in_text=True`` anchors sit inside the box's text at character
    ``offset``.  ``in_text=False`` anchors sit on the box element itself:
    offset 0 is before its text, anything larger is after it.
    """

    box_index: int
    offset: int
    in_text: bool = True
    page: int = 0

    def char_offset(self, text: str) -> int:
        """Character position inside *text* this anchor stands for."""
        if self.in_text:
            return max(0, min(len(text), self.offset))
        return 0 if self.offset <= 0 else len(text)

    def ratio(self, text: str) -> float:
        """Position along the box as a fraction of its text length."""
        if not self.in_text:
            return 0.0 if self.offset <= 0 else 1.0
        return self.offset / (len(text) or 1)


@dataclass(frozen=True)
class SelectionRange:
    """A selection between two anchors, in document order or not."""

    start: TextAnchor
    end: TextAnchor

    @property
    def collapsed(self) -> bool:
        return self.start == self.end


def _position(anchor: TextAnchor, layers: Mapping[int, TextLayer]) -> Tuple[int, int, int]:
    layer = layers.get(anchor.page)
    text = ""
    if layer is not None and 0 <= anchor.box_index < len(layer.boxes):
        text = layer.boxes[anchor.box_index].text
    return (anchor.page, anchor.box_index, anchor.char_offset(text))


def _box_start(page: int, index: int) -> Tuple[int, int, int]:
    return (page, index, 0)


def _box_end(page: int, index: int, box: LayoutBox) -> Tuple[int, int, int]:
    return (page, index, len(box.text))


def compare_boundary_points(
    how: int,
    rng: SelectionRange,
    page: int,
    index: int,
    box: LayoutBox,
    layers: Mapping[int, TextLayer],
) -> int:
    """Compare a range boundary with the same boundary of box *index*.

    *how* is :data:`START_TO_START` or :data:`END_TO_END`.  Returns -1, 0
    or 1 as the range boundary lies before, on or after the box's.
    """
    if how == START_TO_START:
        ours = _position(rng.start, layers)
        theirs = _box_start(page, index)
    elif how == END_TO_END:
        ours = _position(rng.end, layers)
        theirs = _box_end(page, index, box)
    else:
        raise ValueError(f"unsupported boundary comparison {how!r}")
    return (ours > theirs) - (ours < theirs)


def intersects_box(
    rng: SelectionRange,
    page: int,
    index: int,
    box: LayoutBox,
    layers: Mapping[int, TextLayer],
) -> bool:
    """True when the selection touches box *index* of *page*."""
    start = _position(rng.start, layers)
    end = _position(rng.end, layers)
    return start <= _box_end(page, index, box) and end >= _box_start(page, index)


def _ordered(rng: SelectionRange, layers: Mapping[int, TextLayer]) -> SelectionRange:
    if _position(rng.end, layers) < _position(rng.start, layers):
        return SelectionRange(start=rng.end, end=rng.start)
    return rng


def _effective_width(box: LayoutBox, cfg: TextLayerConfig) -> float:
    visual = box.visual_width
    if visual is None:
        return box.page_width
    return max(box.page_width, visual * cfg.selection_width_buffer)


def _box_ratios(
    rng: SelectionRange,
    page: int,
    index: int,
    box: LayoutBox,
    layers: Mapping[int, TextLayer],
) -> Tuple[float, float]:
    start_ratio = 0.0
    end_ratio = 1.0
    if compare_boundary_points(START_TO_START, rng, page, index, box, layers) > 0:
        if rng.start.page == page and rng.start.box_index == index:
            start_ratio = rng.start.ratio(box.text)
    if compare_boundary_points(END_TO_END, rng, page, index, box, layers) < 0:
        if rng.end.page == page and rng.end.box_index == index:
            end_ratio = rng.end.ratio(box.text)
    start_ratio = max(0.0, min(1.0, start_ratio))
    end_ratio = max(0.0, min(1.0, end_ratio))
    return start_ratio, end_ratio


def map_selection(
    layer: TextLayer,
    rng: SelectionRange,
    cfg: TextLayerConfig | None = None,
    *,
    layers: Optional[Mapping[int, TextLayer]] = None,
) -> List[SelectionRect]:
    """Page-space rects covered by *rng* on *layer*.

    Parameters
    ----------
    layer : TextLayer
    rng : SelectionRange
        Anchors may point at other pages; boxes of *layer* between them
        are then covered entirely.
    cfg : TextLayerConfig, optional
    layers : mapping of page → TextLayer, optional
        All layers the anchors may reference; defaults to *layer* alone.

    Returns
    -------
    list of SelectionRect
        Empty when the selection touches no box of *layer*.
    """
    if cfg is None:
        cfg = TextLayerConfig()
    if layers is None:
        layers = {layer.page: layer}
    if layer.scale <= 0:
        raise ValueError(f"layer scale={layer.scale} must be > 0")
    rng = _ordered(rng, layers)

    rects: List[SelectionRect] = []
    for index, box in enumerate(layer.boxes):
        if not intersects_box(rng, layer.page, index, box, layers):
            continue
        if box.page_width <= 0:
            continue
        start_ratio, end_ratio = _box_ratios(rng, layer.page, index, box, layers)
        if end_ratio <= start_ratio:
            continue
        width = _effective_width(box, cfg)
        rects.append(
            SelectionRect(
                x=(box.page_x + width * start_ratio) / layer.scale,
                y=box.page_top / layer.scale,
                width=(width * (end_ratio - start_ratio)) / layer.scale,
                height=box.page_height / layer.scale,
            )
        )
    return rects


def map_document_selection(
    layers: Mapping[int, TextLayer],
    rng: SelectionRange,
    cfg: TextLayerConfig | None = None,
) -> Dict[int, List[SelectionRect]]:
    """Rects per page for a selection that may span several pages.

    Pages the selection does not touch are omitted.
    """
    out: Dict[int, List[SelectionRect]] = {}
    for page in sorted(layers):
        rects = map_selection(layers[page], rng, cfg, layers=layers)
        if rects:
            out[page] = rects
    return out


def selected_text(
    layer: TextLayer,
    rng: SelectionRange,
    *,
    layers: Optional[Mapping[int, TextLayer]] = None,
) -> str:
    """Plain text of *rng* on *layer*, separators included, stripped."""
    if layers is None:
        layers = {layer.page: layer}
    rng = _ordered(rng, layers)
    start = _position(rng.start, layers)
    end = _position(rng.end, layers)

    parts: List[str] = []
    for index, (box, sep) in enumerate(zip(layer.boxes, layer.separators)):
        if not intersects_box(rng, layer.page, index, box, layers):
            continue
        lo = start[2] if start[:2] == (layer.page, index) else 0
        hi = end[2] if end[:2] == (layer.page, index) else len(box.text)
        parts.append(box.text[lo:hi])
        if end[:2] > (layer.page, index):
            parts.append(sep)
    return "".join(parts).strip()


# ---------------------------------------------------------------------------
# Popup placement
# ---------------------------------------------------------------------------


@dataclass
class ClientRect:
    """A rectangle in host client coordinates."""

    left: float
    top: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.left + self.width

    @property
    def bottom(self) -> float:
        return self.top + self.height


@dataclass
class ScrollContainer:
    """The scrolling element hosting the pages."""

    rect: ClientRect
    scroll_left: float = 0.0
    scroll_top: float = 0.0


@dataclass
class PopupAnchor:
    x: float
    y: float
    position: str  # "top" | "bottom"


def popup_anchor(
    selection_bounds: ClientRect,
    container: ScrollContainer,
    cfg: TextLayerConfig | None = None,
) -> PopupAnchor:
    """Where the selection popup goes, in container content coordinates.

    Above the selection when at least ``cfg.popup_min_space_px`` of the
    container is visible above it, otherwise below it.
    """
    if cfg is None:
        cfg = TextLayerConfig()
    space_above = selection_bounds.top - container.rect.top
    x = (
        selection_bounds.left
        - container.rect.left
        + container.scroll_left
        + selection_bounds.width / 2.0
    )
    if space_above < cfg.popup_min_space_px:
        y = (
            selection_bounds.bottom
            - container.rect.top
            + container.scroll_top
            + cfg.popup_bottom_offset_px
        )
        return PopupAnchor(x=x, y=y, position="bottom")
    y = space_above + container.scroll_top - cfg.popup_offset_px
    return PopupAnchor(x=x, y=y, position="top")


@dataclass
class SelectionState:
    """Everything the annotation layer needs about a live selection."""

    page: int
    text: str
    rects: List[SelectionRect] = field(default_factory=list)
    popup: Optional[PopupAnchor] = None

    def to_dict(self) -> dict:
        d = {
            "page": self.page,
            "text": self.text,
            "rects": [r.to_dict() for r in self.rects],
        }
        if self.popup is not None:
            d["popup"] = {
                "x": round(self.popup.x, 3),
                "y": round(self.popup.y, 3),
                "position": self.popup.position,
            }
        return d


def build_selection_state(
    layer: TextLayer,
    rng: Optional[SelectionRange],
    cfg: TextLayerConfig | None = None,
    *,
    selection_bounds: Optional[ClientRect] = None,
    container: Optional[ScrollContainer] = None,
) -> Optional[SelectionState]:
    """Turn a live selection into a :class:`SelectionState`.

    Returns ``None`` for a missing or collapsed range, or when the
    selected text is blank.
    """
    if cfg is None:
        cfg = TextLayerConfig()
    if rng is None or rng.collapsed:
        return None
    text = selected_text(layer, rng)
    if not text:
        return None
    popup = None
    if selection_bounds is not None and container is not None:
        popup = popup_anchor(selection_bounds, container, cfg)
    rects = map_selection(layer, rng, cfg)
    log.debug("Selection page %d: %d rect(s)", layer.page, len(rects))
    return SelectionState(page=layer.page, text=text, rects=rects, popup=popup)
