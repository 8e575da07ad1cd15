"""OCR engine adapter — PaddleOCR word recognition for image-only pages.

The engine returns word boxes in the pixel space of the raster it was
given; :mod:`textlayer.vocr.bridge` maps them to page space.  Rasters
larger than PaddleOCR's internal size limit are tiled, and progress is
reported per tile as a fraction in ``[0, 1]``.

Engines are cached by configuration key so repeated pages reuse one
recogniser.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Protocol, Tuple

import numpy as np
from PIL import Image

from ..config import TextLayerConfig
from ..models import OCRWordBox

log = logging.getLogger(__name__)

ProgressCallback = Callable[[float], None]

# Model-name lookup by tier.
_MODEL_TIERS: dict[str, tuple[str, str]] = {
    "mobile": ("PP-OCRv5_mobile_det", "en_PP-OCRv5_mobile_rec"),
    "server": ("PP-OCRv5_server_det", "en_PP-OCRv5_server_rec"),
}

_TILE_OVERLAP_FRAC = 0.05
_TILE_DEDUP_IOU = 0.5


@dataclass
class OcrResult:
    """Words recognised on one raster."""

    words: List[OCRWordBox] = field(default_factory=list)


class OcrEngine(Protocol):
    """Asynchronous-friendly recogniser: blocking call, progress callback."""

    def recognize(
        self, raster: Image.Image, progress: Optional[ProgressCallback] = None
    ) -> OcrResult: ...


def _iou(a: OCRWordBox, b: OCRWordBox) -> float:
    """Intersection-over-union of two word boxes."""
    ix0 = max(a.x0, b.x0)
    iy0 = max(a.y0, b.y0)
    ix1 = min(a.x1, b.x1)
    iy1 = min(a.y1, b.y1)
    inter = max(0.0, ix1 - ix0) * max(0.0, iy1 - iy0)
    if inter == 0:
        return 0.0
    union = a.width() * a.height() + b.width() * b.height() - inter
    return inter / union if union > 0 else 0.0


def _dedup_tiles(words: List[OCRWordBox], dedup_iou: float = _TILE_DEDUP_IOU) -> List[OCRWordBox]:
    """Drop the lower-confidence word of pairs duplicated by tile overlap."""
    if len(words) <= 1:
        return words
    keep = [True] * len(words)
    for i in range(len(words)):
        if not keep[i]:
            continue
        for j in range(i + 1, len(words)):
            if not keep[j]:
                continue
            if _iou(words[i], words[j]) > dedup_iou:
                if words[i].confidence >= words[j].confidence:
                    keep[j] = False
                else:
                    keep[i] = False
                    break
    return [w for w, k in zip(words, keep) if k]


def tile_spans(length: int, max_tile: int, overlap_frac: float = _TILE_OVERLAP_FRAC) -> List[Tuple[int, int]]:
    """``(start, end)`` pixel ranges covering *length* in overlapping tiles."""
    if length <= max_tile:
        return [(0, length)]
    step = max(1, max_tile - int(length * overlap_frac))
    spans = []
    start = 0
    while start < length:
        end = min(start + max_tile, length)
        spans.append((start, end))
        if end >= length:
            break
        start += step
    return spans


def words_from_prediction(
    page_result, offset_x: int, offset_y: int, min_conf: float
) -> List[OCRWordBox]:
    """Read one PaddleOCR result (dict-like or attribute-style) into words."""

    def _get(key):
        if hasattr(page_result, "get"):
            return page_result.get(key)
        return getattr(page_result, key, None)

    polys = _get("dt_polys")
    texts = _get("rec_texts")
    scores = _get("rec_scores")
    if polys is None or texts is None or scores is None:
        return []

    words: List[OCRWordBox] = []
    for poly, text, conf in zip(polys, texts, scores):
        if not text or conf < min_conf:
            continue
        xs = [p[0] + offset_x for p in poly]
        ys = [p[1] + offset_y for p in poly]
        words.append(
            OCRWordBox(
                text=text,
                x0=float(min(xs)),
                y0=float(min(ys)),
                x1=float(max(xs)),
                y1=float(max(ys)),
                confidence=float(conf),
            )
        )
    return words


class PaddleOcrEngine:
    """:class:`OcrEngine` backed by PaddleOCR (optional ``ocr`` extra)."""

    _cache: dict[tuple, object] = {}
    _cache_lock = threading.Lock()

    def __init__(self, cfg: TextLayerConfig | None = None, ocr=None) -> None:
        self.cfg = cfg or TextLayerConfig()
        self._ocr = ocr

    def _engine_key(self) -> tuple:
        return (self.cfg.ocr_model_tier,)

    def _get_ocr(self):
        """Return a lazily-initialised PaddleOCR recogniser."""
        if self._ocr is not None:
            return self._ocr
        key = self._engine_key()
        with self._cache_lock:
            if key not in self._cache:
                import os

                os.environ.setdefault("PADDLE_PDX_DISABLE_MODEL_SOURCE_CHECK", "True")

                from paddleocr import PaddleOCR

                tier = key[0] if key[0] in _MODEL_TIERS else "mobile"
                det_model, rec_model = _MODEL_TIERS[tier]
                self._cache[key] = PaddleOCR(
                    text_detection_model_name=det_model,
                    text_recognition_model_name=rec_model,
                    use_doc_orientation_classify=False,
                    use_doc_unwarping=False,
                    use_textline_orientation=False,
                )
            self._ocr = self._cache[key]
        return self._ocr

    def recognize(
        self, raster: Image.Image, progress: Optional[ProgressCallback] = None
    ) -> OcrResult:
        """Recognise words on *raster*; errors propagate to the caller."""
        ocr = self._get_ocr()
        if raster.mode != "RGB":
            raster = raster.convert("RGB")
        img = np.array(raster)
        img_h, img_w = img.shape[:2]

        max_tile = self.cfg.ocr_max_tile_px
        tiles = [
            (x0, x1, y0, y1)
            for y0, y1 in tile_spans(img_h, max_tile)
            for x0, x1 in tile_spans(img_w, max_tile)
        ]
        log.info(
            "OCR: image %dx%d px, %s",
            img_w,
            img_h,
            f"{len(tiles)} tiles" if len(tiles) > 1 else "single pass",
        )

        if progress is not None:
            progress(0.0)
        words: List[OCRWordBox] = []
        for done, (x0, x1, y0, y1) in enumerate(tiles, start=1):
            tile = img[y0:y1, x0:x1].copy()
            for page_result in ocr.predict(tile):
                words.extend(
                    words_from_prediction(page_result, x0, y0, self.cfg.ocr_min_confidence)
                )
            if progress is not None:
                progress(done / len(tiles))

        if len(tiles) > 1:
            pre = len(words)
            words = _dedup_tiles(words)
            if pre != len(words):
                log.debug("OCR: tile dedup %d -> %d words", pre, len(words))
        log.info("OCR: %d words recognised", len(words))
        return OcrResult(words=words)
