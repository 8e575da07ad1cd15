"""Tests for textlayer.vocr.task — gated background OCR for one page."""

from __future__ import annotations

import threading

import pytest
from PIL import Image

from textlayer.config import TextLayerConfig
from textlayer.models import OCRWordBox
from textlayer.vocr.engine import OcrResult
from textlayer.vocr.task import OcrStatus, PageOcrTask

GATE_OPEN = dict(materialized=True, has_text=False, visible=True)


class FakeEngine:
    def __init__(self, words=None, exc=None):
        self.words = words or []
        self.exc = exc
        self.calls = 0

    def recognize(self, raster, progress=None):
        self.calls += 1
        if progress is not None:
            progress(0.5)
        if self.exc is not None:
            raise self.exc
        return OcrResult(words=list(self.words))


@pytest.fixture
def cfg():
    return TextLayerConfig(ocr_start_delay_s=0.0)


@pytest.fixture
def raster():
    return Image.new("RGB", (200, 100), "white")


class TestGating:
    @pytest.mark.parametrize(
        "state",
        [
            dict(materialized=False, has_text=False, visible=True),
            dict(materialized=True, has_text=True, visible=True),
            dict(materialized=True, has_text=False, visible=False),
        ],
    )
    def test_closed_gate(self, cfg, raster, state):
        task = PageOcrTask(0, FakeEngine(), cfg)
        assert task.start(raster, 2.0, **state) is None
        assert task.status == OcrStatus.idle

    def test_disabled_by_config(self, raster):
        task = PageOcrTask(0, FakeEngine(), TextLayerConfig(enable_ocr=False))
        assert not task.eligible(**GATE_OPEN)
        assert task.start(raster, 1.0, **GATE_OPEN) is None


class TestRun:
    def test_done_with_items(self, cfg, raster):
        words = [OCRWordBox("Scanned", 20, 10, 120, 40, 0.9)]
        done = []
        task = PageOcrTask(4, FakeEngine(words), cfg, on_complete=done.append)
        assert task.start(raster, 2.0, **GATE_OPEN) is not None
        assert task.wait(timeout=5) == OcrStatus.done
        assert task.progress == 1.0
        assert done == [task]
        items = task.items_at(1.0)
        assert items[0].box == (10.0, 5.0, 60.0, 20.0)
        assert task.items_at(3.0)[0].box == (30.0, 15.0, 180.0, 60.0)
        task.shutdown()

    def test_attempted_once(self, cfg, raster):
        engine = FakeEngine()
        task = PageOcrTask(0, engine, cfg)
        task.start(raster, 1.0, **GATE_OPEN)
        task.wait(timeout=5)
        assert task.start(raster, 1.0, **GATE_OPEN) is None
        assert engine.calls == 1
        task.shutdown()

    def test_failure_recorded_not_retried(self, cfg, raster, caplog):
        engine = FakeEngine(exc=RuntimeError("model missing"))
        task = PageOcrTask(2, engine, cfg)
        with caplog.at_level("ERROR"):
            task.start(raster, 1.0, **GATE_OPEN)
            assert task.wait(timeout=5) == OcrStatus.failed
        assert "model missing" in task.error
        assert "OCR p2" in caplog.text
        assert task.items_at(1.0) == []
        assert task.start(raster, 1.0, **GATE_OPEN) is None
        assert engine.calls == 1
        task.shutdown()

    def test_cancel_during_start_delay_stays_idle(self, raster):
        engine = FakeEngine()
        task = PageOcrTask(0, engine, TextLayerConfig(ocr_start_delay_s=30.0))
        task.start(raster, 1.0, **GATE_OPEN)
        task.cancel()
        assert task.wait(timeout=5) == OcrStatus.idle
        assert engine.calls == 0
        assert task.eligible(**GATE_OPEN)
        task.shutdown()

    def test_loading_while_recognising(self, cfg, raster):
        release = threading.Event()
        seen = []

        class SlowEngine:
            def recognize(self, raster, progress=None):
                seen.append(task.status)
                release.wait(5)
                return OcrResult()

        task = PageOcrTask(0, SlowEngine(), cfg)
        task.start(raster, 1.0, **GATE_OPEN)
        release.set()
        task.wait(timeout=5)
        assert seen == [OcrStatus.loading]
        assert task.status == OcrStatus.done
        task.shutdown()

    def test_to_dict(self, cfg):
        d = PageOcrTask(1, FakeEngine(), cfg).to_dict()
        assert d == {"page": 1, "status": "idle", "progress": 0.0, "words": 0, "error": None}
