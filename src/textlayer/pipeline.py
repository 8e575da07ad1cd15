"""Page pipeline: gating, timing, cancellation, and stage-result recording.

Provides the per-page flow that turns a page source into a selectable
text layer:

    render → extract → order → merge → materialize → ocr

Every stage produces a :class:`StageResult`.  Gating logic is centralised
in :func:`gate` so that the CLI and embedding hosts behave identically.

A :class:`PageTextPipeline` owns one page.  Runs are non-preemptible and
serialised by a per-page lock; starting a new run cancels the in-flight
one through its :class:`CancelToken`, and the cancelled run ends
silently with :class:`RenderCancelled`.
"""

from __future__ import annotations

import logging
import threading
import time
import traceback
from concurrent.futures import Executor, Future
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Generator, List, Mapping, Optional, Protocol, Sequence

from PIL import Image

from .config import TextLayerConfig
from .grouping import merge_spans, sort_reading_order
from .ink import extract_stroke_text
from .layout import TextLayer, TextLayerMaterializer
from .models import FontStyle, MergedSpan, NormalizedItem, Point, SelectionRect, TextContent, Viewport
from .selection import SelectionRange, map_selection
from .tocr import extract_items
from .vocr import OcrEngine, OcrStatus, PageOcrTask, PaddleOcrEngine

log = logging.getLogger(__name__)


# ── Cancellation ───────────────────────────────────────────────────────


class RenderCancelled(Exception):
    """A page run was superseded; expected and never retried."""


class CancelToken:
    """Cooperative cancellation flag checked between pipeline steps."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise RenderCancelled()


class PageSource(Protocol):
    """What the pipeline needs from a document page."""

    def viewport(self, scale: float) -> Viewport: ...

    def render(self, scale: float, token: Optional[CancelToken] = None) -> Image.Image: ...

    def text_content(self, token: Optional[CancelToken] = None) -> TextContent: ...


# ── Skip reasons (exhaustive enumeration) ──────────────────────────────


class SkipReason(str, Enum):
    """Why a pipeline stage was skipped."""

    disabled_by_config = "disabled_by_config"
    missing_dependency = "missing_dependency"
    no_items = "no_items"
    has_text = "has_text"
    not_visible = "not_visible"
    not_materialized = "not_materialized"
    already_attempted = "already_attempted"
    cancelled = "cancelled"
    not_applicable = "not_applicable"


# ── Stage result ───────────────────────────────────────────────────────


@dataclass
class StageResult:
    """Outcome record for a single pipeline stage."""

    stage: str
    ran: bool = False
    status: str = "skipped"  # "success" | "skipped" | "failed"
    skip_reason: Optional[str] = None
    duration_ms: int = 0
    counts: Dict[str, Any] = field(default_factory=dict)
    error: Optional[Dict[str, str]] = None

    def to_dict(self) -> Dict[str, Any]:
        """Serialize stage result to a JSON-compatible dict."""
        d: Dict[str, Any] = {
            "stage": self.stage,
            "ran": self.ran,
            "status": self.status,
        }
        if self.skip_reason is not None:
            d["skip_reason"] = self.skip_reason
        d["duration_ms"] = self.duration_ms
        if self.counts:
            d["counts"] = self.counts
        if self.error is not None:
            d["error"] = self.error
        return d


# ── Dependency probes ──────────────────────────────────────────────────


def _has_paddleocr() -> bool:
    """Return True if PaddleOCR is importable."""
    try:
        import os

        os.environ.setdefault("PADDLE_PDX_DISABLE_MODEL_SOURCE_CHECK", "True")
        import paddleocr  # noqa: F401

        return True
    except ImportError:
        return False


# ── Canonical gating function ──────────────────────────────────────────

STAGE_ORDER: List[str] = [
    "render",
    "extract",
    "order",
    "merge",
    "materialize",
    "ocr",
]


def gate(
    stage: str,
    cfg: TextLayerConfig,
    inputs: Dict[str, Any] | None = None,
) -> tuple[bool, Optional[str]]:
    """Decide whether *stage* should run.

    Parameters
    ----------
    stage : str
        One of :data:`STAGE_ORDER`.
    cfg : TextLayerConfig
    inputs : dict, optional
        Lightweight facts about upstream outputs and page state, e.g.
        ``{"items": 12, "has_text": True, "visible": True}``.

    Returns
    -------
    (should_run, skip_reason)
    """
    if inputs is None:
        inputs = {}

    if stage in ("render", "extract", "order", "materialize"):
        return True, None

    if stage == "merge":
        if inputs.get("source_kind", "glyph") == "ocr":
            return False, SkipReason.not_applicable.value
        if not inputs.get("items", 0):
            return False, SkipReason.no_items.value
        return True, None

    if stage == "ocr":
        if not cfg.enable_ocr:
            return False, SkipReason.disabled_by_config.value
        if not inputs.get("has_engine", False):
            return False, SkipReason.missing_dependency.value
        if not inputs.get("materialized", False):
            return False, SkipReason.not_materialized.value
        if inputs.get("has_text", False):
            return False, SkipReason.has_text.value
        if not inputs.get("visible", False):
            return False, SkipReason.not_visible.value
        if inputs.get("attempted", False):
            return False, SkipReason.already_attempted.value
        return True, None

    return False, SkipReason.not_applicable.value


# ── Stage context manager ──────────────────────────────────────────────


@contextmanager
def run_stage(
    stage: str,
    cfg: TextLayerConfig,
    inputs: Dict[str, Any] | None = None,
) -> Generator[StageResult, None, None]:
    """Context manager that wraps a pipeline stage with gating + timing.

    Usage::

        with run_stage("merge", cfg, {"items": len(items)}) as sr:
            if sr.ran:
                spans = merge_spans(items, cfg)
                sr.counts["spans"] = len(spans)

    A :class:`RenderCancelled` raised inside the block marks the stage
    skipped (``cancelled``) and propagates; other exceptions mark it
    failed and propagate.
    """
    should_run, skip_reason = gate(stage, cfg, inputs)
    sr = StageResult(stage=stage)

    if not should_run:
        sr.skip_reason = skip_reason
        yield sr
        return

    sr.ran = True
    t0 = time.perf_counter()
    try:
        yield sr
        if sr.status not in ("success", "failed"):
            sr.status = "success"
    except RenderCancelled:
        sr.status = "skipped"
        sr.skip_reason = SkipReason.cancelled.value
        raise
    except Exception as exc:
        sr.status = "failed"
        sr.error = {
            "type": type(exc).__name__,
            "message": str(exc),
            "stack": traceback.format_exc(),
        }
        raise
    finally:
        sr.duration_ms = int((time.perf_counter() - t0) * 1000)


# ── Page-level result container ────────────────────────────────────────


@dataclass
class PageTextResult:
    """Everything one run produced for one page at one scale."""

    page: int = 0
    scale: float = 1.0
    page_width: float = 0.0
    page_height: float = 0.0
    has_text: bool = False
    items: List[NormalizedItem] = field(default_factory=list)
    spans: List[MergedSpan] = field(default_factory=list)
    styles: Dict[str, FontStyle] = field(default_factory=dict)
    layer: Optional[TextLayer] = None
    raster: Optional[Image.Image] = None
    stages: Dict[str, StageResult] = field(default_factory=dict)
    diagnostics: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize (without the raster) to a JSON-compatible dict."""
        return {
            "page": self.page,
            "scale": self.scale,
            "page_width": round(self.page_width, 3),
            "page_height": round(self.page_height, 3),
            "has_text": self.has_text,
            "items": len(self.items),
            "spans": len(self.spans),
            "layer": self.layer.to_dict() if self.layer is not None else None,
            "stages": {k: v.to_dict() for k, v in self.stages.items()},
            "diagnostics": self.diagnostics,
        }


def build_text_layer(
    items: Sequence[NormalizedItem],
    *,
    page: int,
    scale: float,
    page_width: float,
    cfg: TextLayerConfig,
    materializer: TextLayerMaterializer,
    styles: Optional[Dict[str, FontStyle]] = None,
    source_kind: str = "glyph",
    stages: Optional[Dict[str, StageResult]] = None,
) -> tuple[List[MergedSpan], TextLayer]:
    """Order, merge and materialize *items* into a layer.

    OCR items are already word-atomic and skip the merge.
    """
    if stages is None:
        stages = {}

    with run_stage("order", cfg, {"items": len(items)}) as sr:
        ordered = sort_reading_order(items, page_width, cfg)
        sr.counts["items"] = len(ordered)
    stages["order"] = sr

    spans: List[MergedSpan] = list(ordered)
    with run_stage("merge", cfg, {"items": len(ordered), "source_kind": source_kind}) as sr:
        if sr.ran:
            spans = merge_spans(ordered, cfg)
            sr.counts["spans"] = len(spans)
    stages["merge"] = sr

    with run_stage("materialize", cfg, {"spans": len(spans)}) as sr:
        layer = materializer.materialize(
            spans, page=page, scale=scale, styles=styles, source_kind=source_kind
        )
        sr.counts["boxes"] = len(layer.boxes)
    stages["materialize"] = sr
    return spans, layer


# ── Page pipeline ──────────────────────────────────────────────────────


class PageTextPipeline:
    """Build and hold the text layer of one page.

    Parameters
    ----------
    source : PageSource
    page : int
        Zero-based page index.
    cfg : TextLayerConfig, optional
    materializer : TextLayerMaterializer, optional
        Shared across pages so the font-fetch cache is per application.
    ocr_engine : OcrEngine, optional
        Defaults to :class:`PaddleOcrEngine` when PaddleOCR is installed.
    executor : Executor, optional
        Where OCR runs; a private pool is used when omitted.
    """

    def __init__(
        self,
        source: PageSource,
        page: int = 0,
        cfg: TextLayerConfig | None = None,
        *,
        materializer: Optional[TextLayerMaterializer] = None,
        ocr_engine: Optional[OcrEngine] = None,
        executor: Optional[Executor] = None,
    ) -> None:
        self.source = source
        self.page = page
        self.cfg = cfg or TextLayerConfig()
        self.materializer = materializer or TextLayerMaterializer(self.cfg)
        if ocr_engine is None and self.cfg.enable_ocr and _has_paddleocr():
            ocr_engine = PaddleOcrEngine(self.cfg)
        self.ocr_task: Optional[PageOcrTask] = None
        if ocr_engine is not None:
            self.ocr_task = PageOcrTask(
                page, ocr_engine, self.cfg, executor=executor, on_complete=self._on_ocr_complete
            )

        self.visible = True
        self.scale = 1.0
        self.result: Optional[PageTextResult] = None

        self._run_lock = threading.Lock()
        self._token_lock = threading.Lock()
        self._token: Optional[CancelToken] = None

    # ── state ──────────────────────────────────────────────────────────

    @property
    def layer(self) -> Optional[TextLayer]:
        result = self.result
        return result.layer if result is not None else None

    def cancel(self) -> None:
        """Cancel the in-flight run, if any."""
        with self._token_lock:
            if self._token is not None:
                self._token.cancel()

    def set_visible(self, visible: bool) -> Optional[PageTextResult]:
        """Show or hide the page.

        Hiding evicts the page's items, spans and layer; showing again
        rebuilds them at the current scale.
        """
        self.visible = visible
        if not visible:
            self.cancel()
            if self.ocr_task is not None and self.ocr_task.status == OcrStatus.idle:
                self.ocr_task.cancel()
            self.result = None
            log.debug("Page %d: hidden, text layer evicted", self.page)
            return None
        if self.result is None:
            return self.run(self.scale)
        return self.result

    def set_scale(self, scale: float) -> Optional[PageTextResult]:
        """Change the rendering scale; a visible page is rebuilt."""
        if scale <= 0:
            raise ValueError(f"scale={scale} must be > 0")
        self.scale = scale
        if not self.visible:
            self.result = None
            return None
        return self.run(scale)

    # ── run ────────────────────────────────────────────────────────────

    def run(self, scale: Optional[float] = None) -> Optional[PageTextResult]:
        """Render the page and build its text layer at *scale*.

        Returns ``None`` when the run was cancelled by a newer one.
        """
        if scale is None:
            scale = self.scale
        if scale <= 0:
            raise ValueError(f"scale={scale} must be > 0")
        self.scale = scale

        with self._token_lock:
            if self._token is not None:
                self._token.cancel()
            token = CancelToken()
            self._token = token

        with self._run_lock:
            try:
                result = self._run(scale, token)
            except RenderCancelled:
                log.debug("Page %d: run at scale %.3f cancelled", self.page, scale)
                return None
            self.result = result

        self.maybe_start_ocr()
        return self.result

    def _run(self, scale: float, token: CancelToken) -> PageTextResult:
        token.raise_if_cancelled()
        cfg = self.cfg
        viewport = self.source.viewport(scale)
        result = PageTextResult(
            page=self.page,
            scale=scale,
            page_width=viewport.width / scale,
            page_height=viewport.height / scale,
        )

        with run_stage("render", cfg) as sr:
            result.raster = self.source.render(scale * cfg.device_pixel_ratio, token)
            sr.counts["pixels"] = list(result.raster.size)
        result.stages["render"] = sr

        with run_stage("extract", cfg) as sr:
            content = self.source.text_content(token)
            extracted = extract_items(content.runs, viewport, cfg)
            result.items = extracted.items
            result.styles = dict(content.styles)
            result.diagnostics.update(extracted.diagnostics)
            result.has_text = len(content.runs) > cfg.min_text_items
            sr.counts["items"] = len(result.items)
        result.stages["extract"] = sr
        if not result.has_text:
            log.warning(
                "Page %d: %d glyph run(s), treated as image-only",
                self.page,
                len(content.runs),
            )

        # An image-only page keeps an empty layer until OCR items exist.
        items, source_kind = (result.items if result.has_text else []), "glyph"
        task = self.ocr_task
        if not result.has_text and task is not None and task.status == OcrStatus.done:
            items, source_kind = task.items_at(scale), "ocr"

        token.raise_if_cancelled()
        result.spans, result.layer = build_text_layer(
            items,
            page=self.page,
            scale=scale,
            page_width=viewport.width,
            cfg=cfg,
            materializer=self.materializer,
            styles=result.styles if source_kind == "glyph" else None,
            source_kind=source_kind,
            stages=result.stages,
        )
        token.raise_if_cancelled()
        log.info(
            "Page %d: %d items -> %d boxes at scale %.3f (%s)",
            self.page,
            len(items),
            len(result.layer.boxes),
            scale,
            source_kind,
        )
        return result

    # ── OCR ────────────────────────────────────────────────────────────

    def maybe_start_ocr(self) -> Optional[Future]:
        """Start page OCR when the page is image-only, shown and not yet tried."""
        result = self.result
        task = self.ocr_task
        inputs = {
            "has_engine": task is not None,
            "materialized": result is not None and result.layer is not None,
            "has_text": bool(result and result.has_text),
            "visible": self.visible,
            "attempted": task is not None and task.status != OcrStatus.idle,
        }
        future = None
        with run_stage("ocr", self.cfg, inputs) as sr:
            if sr.ran:
                future = task.start(
                    result.raster,
                    result.scale * self.cfg.device_pixel_ratio,
                    materialized=True,
                    has_text=False,
                    visible=True,
                )
                sr.counts["scheduled"] = future is not None
        if result is not None:
            result.stages["ocr"] = sr
        return future

    def _on_ocr_complete(self, task: PageOcrTask) -> None:
        if task.status != OcrStatus.done:
            return
        with self._run_lock:
            result = self.result
            if result is None or result.has_text or not self.visible:
                return
            items = task.items_at(result.scale)
            result.spans, result.layer = build_text_layer(
                items,
                page=self.page,
                scale=result.scale,
                page_width=result.page_width * result.scale,
                cfg=self.cfg,
                materializer=self.materializer,
                source_kind="ocr",
                stages=result.stages,
            )
        log.info("Page %d: OCR text layer with %d boxes", self.page, len(result.layer.boxes))

    # ── consumers ──────────────────────────────────────────────────────

    def map_selection(
        self,
        rng: SelectionRange,
        layers: Optional[Mapping[int, TextLayer]] = None,
    ) -> List[SelectionRect]:
        """Page-space highlight rects for *rng*; empty when no layer."""
        layer = self.layer
        if layer is None:
            return []
        return map_selection(layer, rng, self.cfg, layers=layers)

    def extract_stroke_text(self, points: Sequence[Point]) -> str:
        """Text under a page-space stroke; ``""`` when nothing is built."""
        result = self.result
        if result is None or result.layer is None:
            return ""
        if result.layer.source_kind == "ocr" and self.ocr_task is not None:
            items = self.ocr_task.items_at(result.scale)
            styles = None
        else:
            items = result.items
            styles = result.styles
        return extract_stroke_text(points, items, result.scale, self.cfg, styles)

    def close(self) -> None:
        self.cancel()
        if self.ocr_task is not None:
            self.ocr_task.shutdown()
