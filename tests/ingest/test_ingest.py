"""Tests for textlayer.ingest — PDF validation, rendering, and glyph runs."""

from __future__ import annotations

import json
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest
from PIL import Image as PILImage

from textlayer.ingest import (
    IngestError,
    PageInfo,
    PdfMeta,
    PdfPageSource,
    ascent_hints,
    chars_to_runs,
    ingest_pdf,
    read_text_content,
    render_page_image,
)
from textlayer.pipeline import CancelToken, RenderCancelled

PAGE_H = 792.0


def _char(text, x0, baseline, size=10.0, font="Helvetica", upright=True, top=None):
    """A pdfplumber-shaped char dict; *baseline* is PDF y (bottom-up)."""
    width = size * 0.5
    if top is None:
        top = PAGE_H - baseline - size * 0.75
    return {
        "text": text,
        "x0": x0,
        "x1": x0 + width,
        "top": top,
        "size": size,
        "fontname": font,
        "upright": upright,
        "matrix": (size, 0.0, 0.0, size, x0, baseline),
    }


def _mock_pdf(pages, metadata=None):
    mock_pdf = MagicMock()
    mock_pdf.pages = pages
    mock_pdf.metadata = metadata
    mock_pdf.__enter__ = MagicMock(return_value=mock_pdf)
    mock_pdf.__exit__ = MagicMock(return_value=False)
    return mock_pdf


def _mock_render_page(mode="RGB"):
    mock_img_page = MagicMock()
    mock_img_page.original = PILImage.new(mode, (200, 100))
    mock_page = MagicMock(width=612.0, height=PAGE_H)
    mock_page.to_image.return_value = mock_img_page
    return mock_page


# ── containers ─────────────────────────────────────────────────────────


class TestPageInfo:
    def test_to_dict(self):
        d = PageInfo(index=2, width=612.0, height=792.0).to_dict()
        assert d == {"index": 2, "width": 612.0, "height": 792.0}


class TestPdfMeta:
    def test_page_accessor(self):
        pages = [PageInfo(0, 100, 200), PageInfo(1, 300, 400)]
        meta = PdfMeta(path=Path("test.pdf"), num_pages=2, pages=pages)
        assert meta.page(1).height == 400

    def test_page_accessor_out_of_range(self):
        meta = PdfMeta(path=Path("test.pdf"), num_pages=1, pages=[PageInfo(0, 100, 200)])
        with pytest.raises(IndexError):
            meta.page(5)

    def test_to_dict_without_metadata(self):
        d = PdfMeta(path=Path("x.pdf"), num_pages=0).to_dict()
        assert d["path"] == "x.pdf"
        assert "pdf_metadata" not in d


# ── validation ─────────────────────────────────────────────────────────


class TestValidation:
    def test_missing_file(self, tmp_path):
        with pytest.raises(IngestError, match="not found"):
            ingest_pdf(tmp_path / "nonexistent.pdf")

    def test_directory_not_file(self, tmp_path):
        d = tmp_path / "subdir.pdf"
        d.mkdir()
        with pytest.raises(IngestError, match="Not a file"):
            ingest_pdf(d)

    def test_empty_file(self, tmp_path):
        f = tmp_path / "empty.pdf"
        f.write_bytes(b"")
        with pytest.raises(IngestError, match="Empty file"):
            ingest_pdf(f)

    def test_wrong_extension(self, tmp_path):
        f = tmp_path / "data.txt"
        f.write_text("hello")
        with pytest.raises(IngestError, match="Not a PDF"):
            ingest_pdf(f)

    def test_corrupt_pdf(self, tmp_path):
        f = tmp_path / "corrupt.pdf"
        f.write_bytes(b"this is not a pdf file at all")
        with pytest.raises(IngestError, match="Cannot open PDF"):
            ingest_pdf(f)


class TestIngestPdf:
    @pytest.fixture
    def pdf_path(self, tmp_path):
        f = tmp_path / "test.pdf"
        f.write_bytes(b"%PDF-1.4\n%%EOF")
        return f

    def test_basic_ingest(self, pdf_path):
        pages = [MagicMock(width=612.0, height=792.0), MagicMock(width=300.0, height=400.0)]
        mock_pdf = _mock_pdf(pages, {"Title": "Report", "Producer": b"Writer"})
        with patch("textlayer.ingest.ingest.pdfplumber.open", return_value=mock_pdf):
            meta = ingest_pdf(str(pdf_path))
        assert meta.num_pages == 2
        assert meta.page(1).width == 300.0
        assert meta.pdf_metadata == {"Title": "Report", "Producer": "Writer"}
        assert meta.file_size_bytes > 0

    def test_ingested_meta_is_json_ready(self, pdf_path):
        pages = [MagicMock(width=612.0, height=792.0)]
        mock_pdf = _mock_pdf(pages, {"Title": b"Scan", "Pages": 1, "Author": None})
        with patch("textlayer.ingest.ingest.pdfplumber.open", return_value=mock_pdf):
            meta = ingest_pdf(pdf_path)
        d = json.loads(json.dumps(meta.to_dict()))
        assert d["pdf_metadata"] == {"Title": "Scan", "Pages": "1", "Author": ""}
        assert d["pages"] == [{"index": 0, "width": 612.0, "height": 792.0}]
        assert d["file_size_bytes"] == pdf_path.stat().st_size

    def test_encrypted_pdf_raises(self, pdf_path):
        mock_pdf = _mock_pdf([MagicMock(width=1.0, height=1.0)], {})
        mock_pdf.doc = MagicMock(is_extractable=False)
        with patch("textlayer.ingest.ingest.pdfplumber.open", return_value=mock_pdf):
            with pytest.raises(IngestError, match="password-protected"):
                ingest_pdf(pdf_path)


# ── rendering ──────────────────────────────────────────────────────────


class TestRenderPageImage:
    def test_resolution_follows_scale(self):
        page = _mock_render_page()
        with patch("textlayer.ingest.ingest.pdfplumber.open", return_value=_mock_pdf([page])):
            img = render_page_image(Path("dummy.pdf"), 0, scale=2.0)
        page.to_image.assert_called_once_with(resolution=144.0)
        assert isinstance(img, PILImage.Image)

    def test_converts_to_rgb(self):
        page = _mock_render_page(mode="RGBA")
        with patch("textlayer.ingest.ingest.pdfplumber.open", return_value=_mock_pdf([page])):
            img = render_page_image(Path("dummy.pdf"), 0)
        assert img.mode == "RGB"

    def test_bad_scale(self):
        with pytest.raises(ValueError):
            render_page_image(Path("dummy.pdf"), 0, scale=0)


# ── glyph runs ─────────────────────────────────────────────────────────


class TestCharsToRuns:
    def test_contiguous_chars_join(self):
        chars = [_char("H", 100.0, 700.0), _char("i", 105.0, 700.0)]
        runs = chars_to_runs(chars)
        assert len(runs) == 1
        assert runs[0].text == "Hi"
        assert runs[0].transform == (10.0, 0.0, 0.0, 10.0, 100.0, 700.0)
        assert runs[0].font_id == "Helvetica"
        assert runs[0].declared_width == pytest.approx(10.0)

    def test_gap_splits(self):
        chars = [_char("a", 100.0, 700.0), _char("b", 120.0, 700.0)]
        assert [r.text for r in chars_to_runs(chars)] == ["a", "b"]

    def test_font_change_splits(self):
        chars = [_char("a", 100.0, 700.0), _char("b", 105.0, 700.0, font="Times")]
        assert len(chars_to_runs(chars)) == 2

    def test_baseline_change_splits(self):
        chars = [_char("a", 100.0, 700.0), _char("b", 105.0, 688.0)]
        assert len(chars_to_runs(chars)) == 2

    def test_rotated_run_has_no_declared_width(self):
        runs = chars_to_runs([_char("r", 10.0, 10.0, upright=False)])
        assert runs[0].declared_width is None

    def test_chars_without_matrix_skipped(self):
        bad = _char("x", 0.0, 0.0)
        bad["matrix"] = None
        assert chars_to_runs([bad]) == []


class TestAscentHints:
    def test_median_ratio(self):
        chars = [_char("a", 0.0, 700.0), _char("b", 5.0, 700.0), _char("c", 10.0, 700.0)]
        styles = ascent_hints(chars, PAGE_H)
        assert styles["Helvetica"].font_family == "Helvetica"
        assert styles["Helvetica"].ascent == pytest.approx(0.75)

    def test_implausible_ascent_dropped(self):
        chars = [_char("a", 0.0, 700.0, top=PAGE_H - 700.0 - 30.0)]
        assert ascent_hints(chars, PAGE_H)["Helvetica"].ascent is None


class TestReadTextContent:
    def test_runs_and_styles(self):
        page = SimpleNamespace(
            chars=[_char("O", 50.0, 700.0), _char("K", 55.0, 700.0)],
            height=PAGE_H,
            page_number=1,
        )
        content = read_text_content(page)
        assert [r.text for r in content.runs] == ["OK"]
        assert content.style_for("Helvetica") is not None


# ── page source ────────────────────────────────────────────────────────


class TestPdfPageSource:
    def test_viewport(self):
        page = MagicMock(width=612.0, height=792.0)
        with patch("textlayer.ingest.ingest.pdfplumber.open", return_value=_mock_pdf([page])) as op:
            src = PdfPageSource("doc.pdf")
            vp = src.viewport(2.0)
            src.viewport(1.0)
        assert (vp.width, vp.height) == (1224.0, 1584.0)
        assert op.call_count == 1  # size cached

    def test_text_content(self):
        page = SimpleNamespace(chars=[_char("A", 0.0, 700.0)], height=PAGE_H, page_number=1)
        with patch("textlayer.ingest.ingest.pdfplumber.open", return_value=_mock_pdf([page])):
            content = PdfPageSource("doc.pdf").text_content(CancelToken())
        assert content.runs[0].text == "A"

    def test_cancelled_token_stops_before_open(self):
        token = CancelToken()
        token.cancel()
        with patch("textlayer.ingest.ingest.pdfplumber.open") as op:
            with pytest.raises(RenderCancelled):
                PdfPageSource("doc.pdf").render(1.0, token)
        op.assert_not_called()
