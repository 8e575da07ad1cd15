import argparse
import json
import logging
from datetime import datetime
from pathlib import Path

from textlayer import (
    PageTextPipeline,
    PdfPageSource,
    SelectionRange,
    TextAnchor,
    TextLayerConfig,
    highlight_annotations,
    ingest_pdf,
    ink_annotation,
)
from textlayer.export.overlay import draw_overlay
from textlayer.selection import selected_text


def make_run_dir(name: str | None = None) -> Path:
    stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    run_name = f"run_{stamp}" if not name else f"run_{stamp}_{name}"
    run_dir = Path("runs") / run_name
    for sub in ["artifacts", "overlays"]:
        (run_dir / sub).mkdir(parents=True, exist_ok=True)
    return run_dir


def parse_anchor(text: str, page: int) -> TextAnchor:
    """``BOX:OFFSET`` → :class:`TextAnchor` on *page*."""
    box, _, offset = text.partition(":")
    return TextAnchor(box_index=int(box), offset=int(offset or 0), page=page)


def parse_stroke(text: str) -> list[tuple[float, float]]:
    """``x,y;x,y;...`` → list of points."""
    points = []
    for pair in text.split(";"):
        if not pair.strip():
            continue
        x, y = pair.split(",")
        points.append((float(x), float(y)))
    return points


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Build a PDF page's text layer, save JSON and an overlay"
    )
    parser.add_argument("pdf", type=Path, help="Path to PDF")
    parser.add_argument("--page", type=int, default=0, help="Zero-based page index")
    parser.add_argument("--scale", type=float, default=1.5, help="Rendering scale")
    parser.add_argument("--columns", action="store_true", help="Two-column reading order")
    parser.add_argument("--no-ocr", action="store_true", help="Never OCR image-only pages")
    parser.add_argument(
        "--ocr-wait", type=float, default=120.0, help="Seconds to wait for OCR to finish"
    )
    parser.add_argument(
        "--select",
        nargs=2,
        metavar=("START", "END"),
        default=None,
        help="Selection anchors as BOX:OFFSET BOX:OFFSET",
    )
    parser.add_argument("--stroke", default=None, help="Ink stroke as x,y;x,y;... (page units)")
    parser.add_argument("--run-name", type=str, default=None, help="Suffix for the run folder")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    meta = ingest_pdf(args.pdf)
    try:
        meta.page(args.page)
    except IndexError:
        raise SystemExit(f"Page {args.page} out of range (PDF has {meta.num_pages} pages)")
    cfg = TextLayerConfig(detect_columns=args.columns, enable_ocr=not args.no_ocr)
    pipeline = PageTextPipeline(PdfPageSource(meta.path, args.page), args.page, cfg)
    try:
        result = pipeline.run(args.scale)
        if result is None:
            raise SystemExit("Run cancelled")
        ocr_stage = result.stages.get("ocr")
        if ocr_stage is not None and ocr_stage.counts.get("scheduled"):
            status = pipeline.ocr_task.wait(timeout=args.ocr_wait)
            print(f"OCR: {status.value}")
            result = pipeline.result

        annotations = []
        highlights = []
        if args.select:
            rng = SelectionRange(
                parse_anchor(args.select[0], args.page), parse_anchor(args.select[1], args.page)
            )
            highlights = pipeline.map_selection(rng)
            text = selected_text(result.layer, rng)
            annotations.extend(highlight_annotations(args.page, highlights, text))
            print(f"Selected: {text!r} ({len(highlights)} rects)")
        if args.stroke:
            points = parse_stroke(args.stroke)
            text = pipeline.extract_stroke_text(points)
            ink = ink_annotation(args.page, points, text)
            if ink is not None:
                annotations.append(ink)
            print(f"Under stroke: {text!r}")

        run_dir = make_run_dir(args.run_name)
        stem = args.pdf.stem.replace(" ", "_")
        layer_path = run_dir / "artifacts" / f"{stem}_page_{args.page}_text_layer.json"
        payload = result.to_dict()
        payload["pdf"] = meta.to_dict()
        payload["annotations"] = [a.to_dict() for a in annotations]
        payload["settings"] = {k: v for k, v in vars(cfg).items() if not k.startswith("_")}
        layer_path.write_text(json.dumps(payload, indent=2, default=list))

        overlay_path = run_dir / "overlays" / f"{stem}_page_{args.page}_overlay.png"
        draw_overlay(
            result.page_width,
            result.page_height,
            overlay_path,
            layer=result.layer,
            annotations=annotations,
            scale=args.scale,
            background=result.raster,
        )

        print(f"Run folder: {run_dir}")
        print(f"Text layer JSON: {layer_path}")
        print(f"Overlay PNG: {overlay_path}")
        print(f"Boxes: {len(result.layer.boxes)}")
        print(result.layer.plain_text())
    finally:
        pipeline.close()


if __name__ == "__main__":
    main()
