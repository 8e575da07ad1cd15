"""Background OCR task for one page.

A page without an embedded text layer gets its text from OCR.  The task
is gated on the page being materialized, carrying no embedded text,
being visible and still idle; it waits a short start delay so the page
finishes painting first, then recognises the raster on a worker thread.

Status moves ``idle → loading → done | failed``.  A failure is logged
and recorded; it is never retried automatically.  Cancelling before the
start delay elapses leaves the task idle so it can start again later.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from enum import Enum
from typing import Callable, List, Optional

from PIL import Image

from ..config import TextLayerConfig
from ..models import NormalizedItem, OCRWordBox
from .bridge import ocr_words_to_items
from .engine import OcrEngine

log = logging.getLogger(__name__)


class OcrStatus(str, Enum):
    """Lifecycle of a page OCR task."""

    idle = "idle"
    loading = "loading"
    done = "done"
    failed = "failed"


class PageOcrTask:
    """Run OCR for one page at most once.

    Parameters
    ----------
    page : int
        Zero-based page index (for logging).
    engine : OcrEngine
        Recogniser; called on the worker thread.
    cfg : TextLayerConfig, optional
    executor : Executor, optional
        Where the recognition runs.  A private single-worker pool is
        created when omitted.
    on_complete : callable, optional
        Called with the task once it reaches ``done`` or ``failed``.
    """

    def __init__(
        self,
        page: int,
        engine: OcrEngine,
        cfg: TextLayerConfig | None = None,
        executor: Optional[Executor] = None,
        on_complete: Optional[Callable[["PageOcrTask"], None]] = None,
    ) -> None:
        self.page = page
        self.engine = engine
        self.cfg = cfg or TextLayerConfig()
        self._executor = executor
        self._owns_executor = executor is None
        self.on_complete = on_complete

        self.status = OcrStatus.idle
        self.progress = 0.0
        self.words: List[OCRWordBox] = []
        self.raster_scale = 1.0
        self.error: Optional[str] = None

        self._lock = threading.Lock()
        self._cancel = threading.Event()
        self._future: Optional[Future] = None

    # ── gating ─────────────────────────────────────────────────────────

    def eligible(self, *, materialized: bool, has_text: bool, visible: bool) -> bool:
        """True when the page should be OCR'd now."""
        if not self.cfg.enable_ocr:
            return False
        if not materialized or has_text or not visible:
            return False
        return self.status == OcrStatus.idle and self._future is None

    # ── lifecycle ──────────────────────────────────────────────────────

    def start(
        self,
        raster: Image.Image,
        raster_scale: float,
        *,
        materialized: bool,
        has_text: bool,
        visible: bool,
    ) -> Optional[Future]:
        """Schedule recognition of *raster*; ``None`` when gated out.

        *raster_scale* is pixels per page unit of *raster* (rendering
        scale × device pixel ratio).
        """
        with self._lock:
            if not self.eligible(materialized=materialized, has_text=has_text, visible=visible):
                return None
            if raster_scale <= 0:
                raise ValueError(f"raster_scale={raster_scale} must be > 0")
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=1, thread_name_prefix=f"ocr-p{self.page}"
                )
            self._cancel.clear()
            self.raster_scale = raster_scale
            self._future = self._executor.submit(self._run, raster)
            return self._future

    def cancel(self) -> None:
        """Abandon a task still waiting out its start delay."""
        self._cancel.set()

    def wait(self, timeout: Optional[float] = None) -> OcrStatus:
        """Block until the scheduled run finishes; returns the status."""
        fut = self._future
        if fut is not None:
            fut.result(timeout=timeout)
        return self.status

    def shutdown(self) -> None:
        """Release a private executor."""
        self.cancel()
        if self._owns_executor and self._executor is not None:
            self._executor.shutdown(wait=False)
            self._executor = None

    def _set_progress(self, fraction: float) -> None:
        self.progress = min(1.0, max(0.0, float(fraction)))

    def _run(self, raster: Image.Image) -> None:
        if self._cancel.wait(self.cfg.ocr_start_delay_s):
            log.debug("OCR p%d: cancelled before start", self.page)
            with self._lock:
                self._future = None
            return

        self.status = OcrStatus.loading
        self.progress = 0.0
        log.info("OCR p%d: started (raster scale %.2f)", self.page, self.raster_scale)
        try:
            result = self.engine.recognize(raster, progress=self._set_progress)
        except Exception as exc:  # noqa: BLE001
            self.error = f"{type(exc).__name__}: {exc}"
            self.status = OcrStatus.failed
            log.error("OCR p%d: failed: %s", self.page, exc)
        else:
            self.words = list(result.words)
            self.progress = 1.0
            self.status = OcrStatus.done
            log.info("OCR p%d: done, %d words", self.page, len(self.words))

        if self.on_complete is not None:
            self.on_complete(self)

    # ── results ────────────────────────────────────────────────────────

    def items_at(self, scale: float = 1.0) -> List[NormalizedItem]:
        """Recognised words as normalized items at *scale*."""
        if self.status != OcrStatus.done:
            return []
        return ocr_words_to_items(self.words, self.raster_scale, scale)

    def to_dict(self) -> dict:
        return {
            "page": self.page,
            "status": self.status.value,
            "progress": round(self.progress, 3),
            "words": len(self.words),
            "error": self.error,
        }
