"""Tests for textlayer.selection.mapper — selections to page-space rects."""

import pytest
from conftest import make_box, make_layer

from textlayer.config import TextLayerConfig
from textlayer.selection.mapper import (
    END_TO_END,
    START_TO_START,
    ClientRect,
    ScrollContainer,
    SelectionRange,
    TextAnchor,
    build_selection_state,
    compare_boundary_points,
    map_document_selection,
    map_selection,
    popup_anchor,
    selected_text,
)


def _rng(b0, o0, b1, o1, p0=0, p1=0):
    return SelectionRange(TextAnchor(b0, o0, page=p0), TextAnchor(b1, o1, page=p1))


@pytest.fixture
def ten_char_layer():
    return make_layer([make_box("0123456789", 100.0, page_top=20.0, page_width=50.0)])


@pytest.fixture
def three_line_layer():
    return make_layer(
        [
            make_box("first line", 10.0, page_top=10.0, page_width=100.0),
            make_box("second", 10.0, page_top=30.0, page_width=60.0),
            make_box("third one", 10.0, page_top=50.0, page_width=90.0),
        ],
        separators=["\n", "\n", ""],
    )


class TestTextAnchor:
    def test_char_offset_clamped(self):
        assert TextAnchor(0, 50).char_offset("abc") == 3
        assert TextAnchor(0, -2).char_offset("abc") == 0

    def test_element_anchor_ratio(self):
        assert TextAnchor(0, 0, in_text=False).ratio("abc") == 0.0
        assert TextAnchor(0, 1, in_text=False).ratio("abc") == 1.0

    def test_empty_text_ratio(self):
        assert TextAnchor(0, 0).ratio("") == 0.0


class TestMapSelection:
    def test_partial_box(self, ten_char_layer):
        rects = map_selection(ten_char_layer, _rng(0, 2, 0, 4))
        assert len(rects) == 1
        assert rects[0].x == pytest.approx(110.0)
        assert rects[0].width == pytest.approx(10.0)
        assert rects[0].y == 20.0
        assert rects[0].height == 12.0

    def test_reversed_anchors(self, ten_char_layer):
        rects = map_selection(ten_char_layer, _rng(0, 4, 0, 2))
        assert rects[0].x == pytest.approx(110.0)
        assert rects[0].width == pytest.approx(10.0)

    def test_collapsed_selection_is_empty(self, ten_char_layer):
        assert map_selection(ten_char_layer, _rng(0, 3, 0, 3)) == []

    def test_multi_line_ragged(self, three_line_layer):
        rects = map_selection(three_line_layer, _rng(0, 6, 2, 5))
        assert len(rects) == 3
        first, middle, last = rects
        assert first.x == pytest.approx(10.0 + 100.0 * 0.6)
        assert first.width == pytest.approx(40.0)
        assert (middle.x, middle.width) == (10.0, 60.0)
        assert last.x == 10.0
        assert last.width == pytest.approx(90.0 * 5 / 9)

    def test_divides_by_scale(self):
        layer = make_layer([make_box("abcd", 200.0, page_top=40.0, page_width=80.0, scale=2.0)], scale=2.0)
        rects = map_selection(layer, _rng(0, 0, 0, 4))
        assert (rects[0].x, rects[0].y, rects[0].width) == (100.0, 20.0, 40.0)
        assert rects[0].height == 6.0

    def test_measured_box_uses_buffered_visual_width(self):
        box = make_box("abcd", 0.0, page_width=40.0, measured_width=40.0)
        rects = map_selection(make_layer([box]), _rng(0, 0, 0, 4))
        assert rects[0].width == pytest.approx(40.0 * 1.01)

    def test_element_anchors_cover_whole_box(self, ten_char_layer):
        rng = SelectionRange(TextAnchor(0, 0, in_text=False), TextAnchor(0, 1, in_text=False))
        rects = map_selection(ten_char_layer, rng)
        assert rects[0].x == 100.0
        assert rects[0].width == pytest.approx(50.0)

    def test_rects_inside_boxes(self, three_line_layer):
        rects = map_selection(three_line_layer, _rng(0, 3, 2, 7))
        for rect, box in zip(rects, three_line_layer.boxes):
            assert rect.x >= box.page_x
            assert rect.y >= box.page_top
            assert rect.y + rect.height <= box.page_top + box.page_height

    def test_zero_scale_rejected(self):
        layer = make_layer([make_box("a", 0)], scale=0.0)
        with pytest.raises(ValueError):
            map_selection(layer, _rng(0, 0, 0, 1))


class TestDocumentSelection:
    def test_cross_page(self):
        p0 = make_layer([make_box("page zero", 0.0, page_width=90.0)], page=0)
        p1 = make_layer([make_box("page one", 0.0, page_width=80.0)], page=1)
        out = map_document_selection({0: p0, 1: p1}, _rng(0, 5, 0, 4, p0=0, p1=1))
        assert set(out) == {0, 1}
        assert out[0][0].x == pytest.approx(50.0)
        assert out[0][0].width == pytest.approx(40.0)
        assert out[1][0].x == 0.0
        assert out[1][0].width == pytest.approx(40.0)

    def test_untouched_pages_omitted(self):
        p0 = make_layer([make_box("zero", 0.0)], page=0)
        p1 = make_layer([make_box("one", 0.0)], page=1)
        out = map_document_selection({0: p0, 1: p1}, _rng(0, 0, 0, 2, p0=1, p1=1))
        assert list(out) == [1]


class TestCompareBoundaryPoints:
    def test_start_and_end(self, three_line_layer):
        layers = {0: three_line_layer}
        box = three_line_layer.boxes[1]
        rng = _rng(1, 0, 1, 6)
        assert compare_boundary_points(START_TO_START, rng, 0, 1, box, layers) == 0
        assert compare_boundary_points(END_TO_END, rng, 0, 1, box, layers) == 0
        assert compare_boundary_points(START_TO_START, _rng(0, 2, 2, 1), 0, 1, box, layers) == -1

    def test_unknown_mode(self, three_line_layer):
        with pytest.raises(ValueError):
            compare_boundary_points(1, _rng(0, 0, 0, 1), 0, 0, three_line_layer.boxes[0], {0: three_line_layer})


class TestSelectedText:
    def test_within_box(self, ten_char_layer):
        assert selected_text(ten_char_layer, _rng(0, 2, 0, 5)) == "234"

    def test_across_lines(self, three_line_layer):
        assert selected_text(three_line_layer, _rng(0, 6, 2, 5)) == "line\nsecond\nthird"


class TestPopupAnchor:
    def test_above_when_space(self):
        container = ScrollContainer(ClientRect(0, 100, 800, 600), scroll_left=0, scroll_top=500)
        sel = ClientRect(200, 300, 100, 20)
        anchor = popup_anchor(sel, container)
        assert anchor.position == "top"
        assert anchor.x == 250.0
        assert anchor.y == 300 - 100 + 500 - 60

    def test_below_near_top(self):
        container = ScrollContainer(ClientRect(0, 100, 800, 600), scroll_top=40)
        sel = ClientRect(200, 130, 100, 20)
        anchor = popup_anchor(sel, container)
        assert anchor.position == "bottom"
        assert anchor.y == 150 - 100 + 40 + 10


class TestBuildSelectionState:
    def test_state(self, ten_char_layer):
        state = build_selection_state(ten_char_layer, _rng(0, 2, 0, 4))
        assert state.text == "23"
        assert len(state.rects) == 1
        assert state.popup is None
        assert state.to_dict()["rects"][0]["x"] == 110.0

    def test_none_for_collapsed_or_missing(self, ten_char_layer):
        assert build_selection_state(ten_char_layer, None) is None
        assert build_selection_state(ten_char_layer, _rng(0, 1, 0, 1)) is None

    def test_popup_included(self, ten_char_layer):
        container = ScrollContainer(ClientRect(0, 0, 800, 600))
        state = build_selection_state(
            ten_char_layer,
            _rng(0, 0, 0, 3),
            selection_bounds=ClientRect(100, 200, 30, 12),
            container=container,
        )
        assert state.popup.position == "top"
