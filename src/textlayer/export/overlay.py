from __future__ import annotations

from pathlib import Path
from typing import Dict, Iterable, Optional, Tuple

from PIL import Image, ImageColor, ImageDraw

from ..annotations import Annotation
from ..layout import TextLayer
from ..models import SelectionRect

# Color keys for the element types an overlay can show
COLOR_KEYS = [
    "layout_boxes",
    "hit_regions",
    "highlights",
    "ink",
]

DEFAULT_COLORS: Dict[str, Optional[tuple]] = {
    "layout_boxes": (0, 90, 255, 200),
    "hit_regions": None,
    "highlights": (255, 220, 0, 90),
    "ink": (220, 40, 40, 255),
}


def _get_color(color_overrides: Optional[Dict[str, tuple]], key: str) -> tuple | None:
    """Color for *key*; ``None`` means the element type is not drawn."""
    if color_overrides and key in color_overrides:
        return color_overrides[key]
    return DEFAULT_COLORS.get(key)


def _scale_point(x: float, y: float, scale: float) -> Tuple[float, float]:
    """Scale (x, y) by *scale* for overlay rendering."""
    return (x * scale, y * scale)


def _hex_to_rgba(color: str, opacity: float) -> tuple:
    r, g, b = ImageColor.getrgb(color)[:3]
    return (r, g, b, int(255 * max(0.0, min(1.0, opacity))))


def _draw_layer(draw, layer: TextLayer, scale: float, color_overrides, width: int) -> None:
    # Layer boxes are in the layer's own scale.
    k = scale / layer.scale
    box_color = _get_color(color_overrides, "layout_boxes")
    hit_color = _get_color(color_overrides, "hit_regions")
    for box in layer.boxes:
        if hit_color:
            x0, y0 = box.page_x, box.visual_top
            x1, y1 = x0 + box.page_width, y0 + box.visual_height
            draw.rectangle(
                [_scale_point(x0, y0, k), _scale_point(x1, y1, k)], outline=hit_color, width=1
            )
        if box_color:
            x0, y0, x1, y1 = box.bbox()
            draw.rectangle(
                [_scale_point(x0, y0, k), _scale_point(x1, y1, k)],
                outline=box_color,
                width=width,
            )


def _draw_highlights(draw, rects: Iterable[SelectionRect], scale: float, color_overrides) -> None:
    color = _get_color(color_overrides, "highlights")
    if not color:
        return
    for r in rects:
        x0, y0, x1, y1 = r.bbox()
        draw.rectangle([_scale_point(x0, y0, scale), _scale_point(x1, y1, scale)], fill=color)


def _draw_annotations(draw, annotations: Iterable[Annotation], scale: float, color_overrides) -> None:
    for ann in annotations:
        if ann.type == "ink" and len(ann.points) > 1:
            color = _get_color(color_overrides, "ink")
            if not color:
                continue
            if not (color_overrides and "ink" in color_overrides):
                color = _hex_to_rgba(ann.color, ann.opacity)
            draw.line(
                [_scale_point(x, y, scale) for x, y in ann.points],
                fill=color,
                width=max(1, int(round(ann.stroke_width * scale))),
                joint="curve",
            )
        elif ann.type == "highlight":
            color = _get_color(color_overrides, "highlights")
            if not color:
                continue
            x, y, w, h = ann.bbox
            draw.rectangle(
                [_scale_point(x, y, scale), _scale_point(x + w, y + h, scale)], fill=color
            )


def draw_overlay(
    page_width: float,
    page_height: float,
    out_path: Path | None = None,
    *,
    layer: TextLayer | None = None,
    highlights: Iterable[SelectionRect] | None = None,
    annotations: Iterable[Annotation] | None = None,
    scale: float = 1.0,
    background: Image.Image | None = None,
    color_overrides: Optional[Dict[str, tuple]] = None,
    box_outline_width: int = 1,
) -> Image.Image:
    """Render a text layer, highlights and ink onto a page image.

    *highlights* and *annotations* are in page space; the image is
    ``page_width * scale`` by ``page_height * scale``.  If *background*
    is given it is resized to that size.  Saved as PNG when *out_path*
    is given; the composed RGBA image is returned either way.
    """
    img_w = int(page_width * scale)
    img_h = int(page_height * scale)
    if background is not None:
        img = background.convert("RGBA")
        if img.size != (img_w, img_h):
            img = img.resize((img_w, img_h))
    else:
        img = Image.new("RGBA", (img_w, img_h), (255, 255, 255, 255))

    overlay = Image.new("RGBA", img.size, (0, 0, 0, 0))
    draw = ImageDraw.Draw(overlay, "RGBA")

    if highlights:
        _draw_highlights(draw, highlights, scale, color_overrides)
    if annotations:
        _draw_annotations(draw, annotations, scale, color_overrides)
    if layer is not None:
        _draw_layer(draw, layer, scale, color_overrides, box_outline_width)

    img = Image.alpha_composite(img, overlay)
    if out_path is not None:
        img.save(out_path, format="PNG")
    return img
