"""Tests for textlayer.tocr.extract — glyph runs to normalized items.

Covers:
- normalize_run (matrix decomposition, viewport mapping, width sources)
- non-finite geometry handling
- _empty_diagnostics (schema completeness)
- extract_items (counters, order preservation)
"""

import math

import pytest
from conftest import make_run

from textlayer.config import TextLayerConfig
from textlayer.models import RawGlyphRun, Viewport
from textlayer.tocr.extract import _empty_diagnostics, extract_items, normalize_run

PAGE_W, PAGE_H = 612.0, 792.0


@pytest.fixture
def vp1():
    return Viewport.for_page(PAGE_W, PAGE_H, 1.0)


class TestNormalizeRun:
    def test_basic_geometry_at_scale(self):
        vp = Viewport.for_page(PAGE_W, PAGE_H, 2.0)
        item = normalize_run(make_run("abc", 10.0, 700.0, size=12.0, width=18.0), vp)
        assert item.x == pytest.approx(20.0)
        assert item.y_baseline == pytest.approx((PAGE_H - 700.0) * 2.0)
        assert item.font_size == pytest.approx(24.0)
        assert item.width == pytest.approx(36.0)
        assert item.horizontal_aspect == pytest.approx(1.0)
        assert item.rotation == 0.0
        assert item.source_kind == "glyph"

    def test_horizontal_aspect(self, vp1):
        item = normalize_run(make_run("a", 0, 100, size=12.0, h_scale=0.5, width=6.0), vp1)
        assert item.font_size == pytest.approx(12.0)
        assert item.horizontal_aspect == pytest.approx(0.5)

    def test_rotation(self, vp1):
        run = RawGlyphRun("up", (0.0, 12.0, -12.0, 0.0, 50.0, 50.0), "F1", 12.0)
        item = normalize_run(run, vp1)
        assert item.rotation == pytest.approx(math.pi / 2)
        assert item.font_size == pytest.approx(12.0)

    def test_fallback_width(self, vp1):
        item = normalize_run(make_run("abcd", 0, 100, size=10.0), vp1)
        assert item.width == pytest.approx(4 * 10.0 * 0.5)

    def test_zero_declared_width_estimated(self):
        vp = Viewport.for_page(600.0, 800.0, 1.0)
        item = normalize_run(make_run("Hello", 10.0, 700.0, size=12.0, width=0.0), vp)
        assert item.width == pytest.approx(5 * 12.0 * 0.5)

    def test_fallback_width_multiplier_configurable(self, vp1):
        cfg = TextLayerConfig(fallback_char_width_mult=0.6)
        item = normalize_run(make_run("ab", 0, 100, size=10.0), vp1, cfg)
        assert item.width == pytest.approx(12.0)

    def test_non_finite_matrix_dropped(self, vp1):
        run = RawGlyphRun("x", (float("nan"), 0, 0, 12, 0, 0), "F1", 5.0)
        assert normalize_run(run, vp1) is None

    def test_short_matrix_dropped(self, vp1):
        run = RawGlyphRun("x", (12, 0, 0, 12), "F1", 5.0)  # type: ignore[arg-type]
        assert normalize_run(run, vp1) is None

    def test_non_finite_width_dropped(self, vp1):
        assert normalize_run(make_run("x", 0, 0, width=float("inf")), vp1) is None

    def test_input_not_mutated(self, vp1):
        run = make_run("abc", 10.0, 700.0, width=18.0)
        before = run.to_dict()
        normalize_run(run, vp1)
        assert run.to_dict() == before


class TestEmptyDiagnostics:
    def test_schema(self):
        d = _empty_diagnostics()
        for key in (
            "runs_raw",
            "items_total",
            "runs_non_finite_dropped",
            "runs_width_estimated",
            "rotated_items",
            "font_ids",
        ):
            assert key in d


class TestExtractItems:
    def test_order_preserved_and_counts(self, vp1):
        runs = [
            make_run("one", 0, 700, width=20),
            RawGlyphRun("bad", (math.inf, 0, 0, 12, 0, 0)),
            make_run("two", 30, 700),
        ]
        result = extract_items(runs, vp1)
        assert [i.text for i in result.items] == ["one", "two"]
        assert result.diagnostics["runs_raw"] == 3
        assert result.diagnostics["runs_non_finite_dropped"] == 1
        assert result.diagnostics["runs_width_estimated"] == 1
        assert result.diagnostics["items_total"] == 2
        assert result.diagnostics["font_ids"] == {"F1": 2}

    def test_zero_width_counted_as_estimated(self, vp1):
        result = extract_items([make_run("Hello", 10, 700, width=0.0)], vp1)
        assert result.items[0].width > 0
        assert result.diagnostics["runs_width_estimated"] == 1

    def test_empty_page(self, vp1):
        result = extract_items([], vp1)
        assert result.items == []
        assert result.diagnostics["items_total"] == 0

    def test_drop_is_logged(self, vp1, caplog):
        with caplog.at_level("WARNING"):
            extract_items([RawGlyphRun("x", (math.nan,) * 6)], vp1)
        assert "non-finite" in caplog.text
