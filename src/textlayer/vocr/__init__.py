"""Visual OCR for image-only pages.

Public API
----------
- :class:`PaddleOcrEngine` / :class:`OcrEngine` — word recognition
- :class:`PageOcrTask` / :class:`OcrStatus` — gated background task
- :func:`ocr_words_to_items` — word boxes → normalized items
"""

from .bridge import OCR_FONT_ID, ocr_word_to_item, ocr_words_to_items
from .engine import OcrEngine, OcrResult, PaddleOcrEngine
from .task import OcrStatus, PageOcrTask

__all__ = [
    "OCR_FONT_ID",
    "OcrEngine",
    "OcrResult",
    "OcrStatus",
    "PaddleOcrEngine",
    "PageOcrTask",
    "ocr_word_to_item",
    "ocr_words_to_items",
]
