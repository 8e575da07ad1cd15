"""Shared test fixtures for the text-layer engine."""

import pytest

from textlayer.config import TextLayerConfig
from textlayer.layout import TextLayer, TextLayerMaterializer
from textlayer.layout.fonts import FontDescriptor
from textlayer.models import LayoutBox, NormalizedItem, RawGlyphRun

# ── Helpers ────────────────────────────────────────────────────────────


def make_item(
    text: str,
    x: float,
    y: float = 100.0,
    width: float | None = None,
    font_size: float = 12.0,
    font_id: str = "F1",
    **kwargs,
) -> NormalizedItem:
    """Create a NormalizedItem; width defaults to half an em per char."""
    if width is None:
        width = len(text) * font_size * 0.5
    return NormalizedItem(
        text=text,
        x=x,
        y_baseline=y,
        width=width,
        font_size=font_size,
        font_id=font_id,
        **kwargs,
    )


def make_run(
    text: str,
    x: float,
    y: float,
    size: float = 12.0,
    font_id: str = "F1",
    width: float | None = None,
    h_scale: float = 1.0,
) -> RawGlyphRun:
    """Create an unrotated RawGlyphRun at PDF (bottom-up) origin *x*, *y*."""
    return RawGlyphRun(
        text=text,
        transform=(size * h_scale, 0.0, 0.0, size, x, y),
        font_id=font_id,
        declared_width=width,
    )


def make_box(
    text: str,
    page_x: float,
    page_top: float = 0.0,
    page_width: float = 50.0,
    page_height: float = 12.0,
    scale: float = 1.0,
    measured_width: float | None = None,
    **kwargs,
) -> LayoutBox:
    """Create a LayoutBox with sane defaults (unmeasured unless given)."""
    return LayoutBox(
        text=text,
        page_x=page_x,
        page_top=page_top,
        page_width=page_width,
        page_height=page_height,
        font_size=page_height,
        scale=scale,
        measured_width=measured_width,
        **kwargs,
    )


def make_layer(
    boxes: list[LayoutBox],
    page: int = 0,
    scale: float = 1.0,
    separators: list[str] | None = None,
) -> TextLayer:
    """Wrap *boxes* in a TextLayer; separators default to single spaces."""
    if separators is None:
        separators = [" "] * (len(boxes) - 1) + [""] if boxes else []
    return TextLayer(page=page, scale=scale, boxes=list(boxes), separators=separators)


class FixedWidthMeasurer:
    """Measures every char as ``char_mult`` ems; records calls."""

    def __init__(self, char_mult: float = 0.5) -> None:
        self.char_mult = char_mult
        self.calls: list[tuple[str, FontDescriptor]] = []

    def measure(self, text: str, font: FontDescriptor) -> float:
        self.calls.append((text, font))
        return len(text) * font.size * self.char_mult


# ── Fixtures ───────────────────────────────────────────────────────────


@pytest.fixture
def default_cfg() -> TextLayerConfig:
    """Return a default TextLayerConfig."""
    return TextLayerConfig()


@pytest.fixture
def offline_cfg() -> TextLayerConfig:
    """Config with font fetching and OCR off."""
    return TextLayerConfig(enable_font_fetch=False, enable_ocr=False)


@pytest.fixture
def measurer() -> FixedWidthMeasurer:
    return FixedWidthMeasurer()


@pytest.fixture
def materializer(offline_cfg, measurer) -> TextLayerMaterializer:
    """Materializer with a deterministic measurer and no font fetching."""
    return TextLayerMaterializer(offline_cfg, measurer=measurer)


@pytest.fixture
def hello_world_items() -> list[NormalizedItem]:
    """Three fragments of "Hello World" on one line, size 12.

    Layout:
        "Hel" x=0 w=20 | "lo" x=20 w=14 | gap 6 | "World" x=40 w=50
    """
    return [
        make_item("Hel", 0.0, width=20.0),
        make_item("lo", 20.0, width=14.0),
        make_item("World", 40.0, width=50.0),
    ]
