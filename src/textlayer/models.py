from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

Point = Tuple[float, float]
Matrix = Tuple[float, float, float, float, float, float]

IDENTITY: Matrix = (1.0, 0.0, 0.0, 1.0, 0.0, 0.0)


@dataclass
class RawGlyphRun:
    """A positioned string fragment as emitted by the page description.

    ``transform`` is the 2×3 text matrix ``(a, b, c, d, e, f)`` in page
    units; ``declared_width`` is the run's advance in page units when the
    source provides one.
    """

    text: str
    transform: Matrix = IDENTITY
    font_id: str = ""
    declared_width: Optional[float] = None

    def to_dict(self) -> dict:
        """Serialize to a JSON-compatible dict."""
        d = {
            "text": self.text,
            "transform": [round(v, 3) for v in self.transform],
            "font_id": self.font_id,
        }
        if self.declared_width is not None:
            d["declared_width"] = round(self.declared_width, 3)
        return d

    @classmethod
    def from_dict(cls, d: dict) -> "RawGlyphRun":
        """Deserialize from a dict produced by :meth:`to_dict`."""
        return cls(
            text=d.get("text", ""),
            transform=tuple(d.get("transform", IDENTITY)),
            font_id=d.get("font_id", ""),
            declared_width=d.get("declared_width"),
        )


@dataclass
class FontStyle:
    """Optional metric hints the page source supplies per font id."""

    font_family: str = ""
    ascent: Optional[float] = None

    def to_dict(self) -> dict:
        return {"font_family": self.font_family, "ascent": self.ascent}


@dataclass
class TextContent:
    """All glyph runs of one page plus their per-font hints."""

    runs: List[RawGlyphRun] = field(default_factory=list)
    styles: Dict[str, FontStyle] = field(default_factory=dict)

    def style_for(self, font_id: str) -> Optional[FontStyle]:
        return self.styles.get(font_id)


@dataclass
class Viewport:
    """Page → viewport mapping at one rendering scale.

    ``transform`` maps page units to viewport pixels, so the standard
    page viewport flips the y axis: y grows downward on screen.
    """

    scale: float
    width: float
    height: float
    transform: Matrix = IDENTITY

    @classmethod
    def for_page(cls, page_width: float, page_height: float, scale: float) -> "Viewport":
        """Build the upright viewport for a page of *page_width* × *page_height*."""
        return cls(
            scale=scale,
            width=page_width * scale,
            height=page_height * scale,
            transform=(scale, 0.0, 0.0, -scale, 0.0, page_height * scale),
        )

    def convert_to_viewport_point(self, x: float, y: float) -> Point:
        """Apply :attr:`transform` to a page-space point."""
        a, b, c, d, e, f = self.transform
        return (a * x + c * y + e, b * x + d * y + f)


@dataclass
class NormalizedItem:
    """One glyph run (or OCR word) in the page's current visual scale.

    ``x`` / ``y_baseline`` anchor the item at its baseline start.  OCR
    items additionally carry their recognised ``box`` ``(x0, y0, x1, y1)``
    because they have no baseline metrics of their own.
    """

    text: str
    x: float
    y_baseline: float
    width: float
    font_size: float
    font_id: str = ""
    horizontal_aspect: float = 1.0
    rotation: float = 0.0
    source_kind: str = "glyph"  # "glyph" | "ocr"
    box: Optional[Tuple[float, float, float, float]] = None

    @property
    def x1(self) -> float:
        """Right edge of the item's visual extent."""
        return self.x + self.width

    @property
    def center_x(self) -> float:
        return self.x + self.width / 2.0

    def is_whitespace(self) -> bool:
        """True for items whose text is empty or blank."""
        return not self.text.strip()

    def bounds(self, ascent: float) -> Tuple[float, float, float, float]:
        """Axis-aligned bounds ``(x0, y0, x1, y1)`` at the item's scale.

        OCR items return their stored box; glyph items hang ``font_size``
        from ``y_baseline - font_size * ascent``.
        """
        if self.box is not None:
            return self.box
        top = self.y_baseline - self.font_size * ascent
        return (self.x, top, self.x + self.width, top + self.font_size)

    def to_dict(self) -> dict:
        """Serialize to a JSON-compatible dict."""
        d = {
            "text": self.text,
            "x": round(self.x, 3),
            "y_baseline": round(self.y_baseline, 3),
            "width": round(self.width, 3),
            "font_size": round(self.font_size, 3),
            "font_id": self.font_id,
            "horizontal_aspect": round(self.horizontal_aspect, 4),
            "rotation": round(self.rotation, 4),
            "source_kind": self.source_kind,
        }
        if self.box is not None:
            d["box"] = [round(v, 3) for v in self.box]
        return d

    @classmethod
    def from_dict(cls, d: dict) -> "NormalizedItem":
        """Deserialize from a dict produced by :meth:`to_dict`."""
        box = d.get("box")
        return cls(
            text=d.get("text", ""),
            x=d["x"],
            y_baseline=d["y_baseline"],
            width=d["width"],
            font_size=d["font_size"],
            font_id=d.get("font_id", ""),
            horizontal_aspect=d.get("horizontal_aspect", 1.0),
            rotation=d.get("rotation", 0.0),
            source_kind=d.get("source_kind", "glyph"),
            box=tuple(box) if box is not None else None,
        )


# A span is an item whose text/width absorbed its successors.
MergedSpan = NormalizedItem


@dataclass(frozen=True)
class LayoutBox:
    """A materialized, selectable text box.

    ``page_*`` fields are the canonical anchor used by inverse lookups and
    are expressed at :attr:`scale`.  ``page_top`` never includes the
    hit-region :attr:`padding`.
    """

    text: str
    page_x: float
    page_top: float
    page_width: float
    page_height: float
    font_size: float
    scale: float = 1.0
    font_id: str = ""
    font_family: str = ""
    ascent: float = 0.85
    padding: float = 0.0
    horizontal_aspect: float = 1.0
    rotation: float = 0.0
    scale_x: float = 1.0
    measured_width: Optional[float] = None
    source_kind: str = "glyph"

    @property
    def visual_top(self) -> float:
        """Top of the padded hit region."""
        return self.page_top - self.padding

    @property
    def visual_height(self) -> float:
        return self.page_height + 2.0 * self.padding

    @property
    def visual_width(self) -> Optional[float]:
        """Rendered width after the horizontal scale is applied.

        ``None`` until the box has been measured.
        """
        if self.measured_width is None or self.horizontal_aspect == 0:
            return None
        natural = self.measured_width / self.horizontal_aspect
        return natural * self.scale_x

    def bbox(self) -> Tuple[float, float, float, float]:
        """Unpadded bounding box ``(x0, y0, x1, y1)`` at :attr:`scale`."""
        return (
            self.page_x,
            self.page_top,
            self.page_x + self.page_width,
            self.page_top + self.page_height,
        )

    def css_transform(self) -> str:
        """Transform string a host surface applies to the rendered box."""
        transform = f"scaleX({self.scale_x})"
        if self.rotation != 0:
            transform = f"rotate({self.rotation}rad) " + transform
        return transform

    def to_dict(self) -> dict:
        """Serialize to a JSON-compatible dict."""
        return {
            "text": self.text,
            "page_x": round(self.page_x, 3),
            "page_top": round(self.page_top, 3),
            "page_width": round(self.page_width, 3),
            "page_height": round(self.page_height, 3),
            "font_size": round(self.font_size, 3),
            "scale": self.scale,
            "font_id": self.font_id,
            "font_family": self.font_family,
            "padding": round(self.padding, 3),
            "scale_x": round(self.scale_x, 4),
            "rotation": round(self.rotation, 4),
            "source_kind": self.source_kind,
        }


@dataclass
class SelectionRect:
    """A highlighted rectangle in page space (scale = 1)."""

    x: float
    y: float
    width: float
    height: float

    def bbox(self) -> Tuple[float, float, float, float]:
        """Bounding box as ``(x0, y0, x1, y1)``."""
        return (self.x, self.y, self.x + self.width, self.y + self.height)

    def to_list(self) -> List[float]:
        """``[x, y, width, height]`` as stored on annotations."""
        return [self.x, self.y, self.width, self.height]

    def to_dict(self) -> dict:
        return {
            "x": round(self.x, 3),
            "y": round(self.y, 3),
            "width": round(self.width, 3),
            "height": round(self.height, 3),
        }

    @classmethod
    def from_dict(cls, d: dict) -> "SelectionRect":
        return cls(x=d["x"], y=d["y"], width=d["width"], height=d["height"])


@dataclass
class OCRWordBox:
    """A recognised word in raster-pixel space."""

    text: str
    x0: float
    y0: float
    x1: float
    y1: float
    confidence: float = 1.0

    def width(self) -> float:
        return self.x1 - self.x0

    def height(self) -> float:
        return self.y1 - self.y0

    def to_dict(self) -> dict:
        return {
            "text": self.text,
            "x0": round(self.x0, 3),
            "y0": round(self.y0, 3),
            "x1": round(self.x1, 3),
            "y1": round(self.y1, 3),
            "confidence": round(self.confidence, 4),
        }
