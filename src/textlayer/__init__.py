"""Text-layer reconstruction and coordinate mapping for rendered pages.

Frequently-used symbols are re-exported here for convenience.
For specialised imports (font helpers, OCR internals, overlays, etc.)
import directly from the relevant submodule — e.g.::

    from textlayer.layout.fonts import FontFetcher
    from textlayer.vocr.engine import PaddleOcrEngine
    from textlayer.export.overlay import draw_overlay
"""

# ── Core models & config ──────────────────────────────────────────────

from .annotations import Annotation, highlight_annotations, ink_annotation
from .config import ConfigValidationError, TextLayerConfig
from .grouping import merge_spans, sort_reading_order
from .ingest import IngestError, PdfPageSource, ingest_pdf, read_text_content, render_page_image
from .ink import extract_stroke_text
from .layout import TextLayer, TextLayerMaterializer, correct_width, materialize_anchor
from .models import (
    FontStyle,
    LayoutBox,
    NormalizedItem,
    OCRWordBox,
    RawGlyphRun,
    SelectionRect,
    TextContent,
    Viewport,
)
from .pipeline import (
    CancelToken,
    PageTextPipeline,
    PageTextResult,
    RenderCancelled,
    StageResult,
)
from .selection import SelectionRange, TextAnchor, map_document_selection, map_selection
from .tocr import extract_items
from .transform import to_page_space, to_screen_space
from .vocr import PageOcrTask, ocr_words_to_items

__all__ = [
    # Models & config
    "TextLayerConfig",
    "ConfigValidationError",
    "RawGlyphRun",
    "FontStyle",
    "TextContent",
    "Viewport",
    "NormalizedItem",
    "LayoutBox",
    "SelectionRect",
    "OCRWordBox",
    # Geometry & grouping
    "extract_items",
    "sort_reading_order",
    "merge_spans",
    # Layout
    "TextLayer",
    "TextLayerMaterializer",
    "materialize_anchor",
    "correct_width",
    # Selection & ink
    "SelectionRange",
    "TextAnchor",
    "map_selection",
    "map_document_selection",
    "extract_stroke_text",
    "to_page_space",
    "to_screen_space",
    # OCR
    "PageOcrTask",
    "ocr_words_to_items",
    # Pipeline
    "CancelToken",
    "PageTextPipeline",
    "PageTextResult",
    "RenderCancelled",
    "StageResult",
    # Ingest
    "IngestError",
    "PdfPageSource",
    "ingest_pdf",
    "read_text_content",
    "render_page_image",
    # Annotations
    "Annotation",
    "highlight_annotations",
    "ink_annotation",
]
