"""OCR bridge — recognised word boxes → normalized items.

Image-only pages have no glyph runs; their text comes from OCR word boxes
in raster pixels.  Dividing by the scale the raster was produced at puts
them in page space; multiplying by the target scale puts them on the
same footing as glyph items extracted at that scale.  Words are already
atomic, so OCR items skip the merge pass.
"""

from __future__ import annotations

import logging
from typing import Iterable, List

from ..models import NormalizedItem, OCRWordBox

log = logging.getLogger(__name__)

OCR_FONT_ID = "ocr"


def ocr_word_to_item(
    word: OCRWordBox, raster_scale: float, target_scale: float = 1.0
) -> NormalizedItem | None:
    """Convert one word; blank or degenerate words return ``None``."""
    if not word.text.strip():
        return None
    if word.x1 <= word.x0 or word.y1 <= word.y0:
        return None
    k = target_scale / raster_scale
    x0, y0, x1, y1 = word.x0 * k, word.y0 * k, word.x1 * k, word.y1 * k
    return NormalizedItem(
        text=word.text,
        x=x0,
        y_baseline=y1,
        width=x1 - x0,
        font_size=y1 - y0,
        font_id=OCR_FONT_ID,
        source_kind="ocr",
        box=(x0, y0, x1, y1),
    )


def ocr_words_to_items(
    words: Iterable[OCRWordBox],
    raster_scale: float,
    target_scale: float = 1.0,
) -> List[NormalizedItem]:
    """Convert OCR words to items at *target_scale*.

    Parameters
    ----------
    words : iterable of OCRWordBox
        Word boxes in raster pixels, in engine order.
    raster_scale : float
        Pixels per page unit of the raster the engine saw (rendering
        scale × device pixel ratio).
    target_scale : float
        Scale of the returned items; 1.0 yields page space.
    """
    if raster_scale <= 0:
        raise ValueError(f"raster_scale={raster_scale} must be > 0")
    items: List[NormalizedItem] = []
    skipped = 0
    for word in words:
        item = ocr_word_to_item(word, raster_scale, target_scale)
        if item is None:
            skipped += 1
            continue
        items.append(item)
    if skipped:
        log.debug("OCR bridge: skipped %d blank/degenerate words", skipped)
    return items
