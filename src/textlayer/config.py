from dataclasses import dataclass


class ConfigValidationError(ValueError):
    """Raised when a TextLayerConfig field has an invalid value."""


def _check_range(
    name: str, value: float, lo: float, hi: float, *, inclusive: bool = True
) -> None:
    if inclusive:
        if not (lo <= value <= hi):
            raise ConfigValidationError(f"{name}={value} out of range [{lo}, {hi}]")
    else:
        if not (lo < value < hi):
            raise ConfigValidationError(f"{name}={value} out of range ({lo}, {hi})")


def _check_positive(name: str, value: float) -> None:
    if value <= 0:
        raise ConfigValidationError(f"{name}={value} must be > 0")


def _check_non_negative(name: str, value: float) -> None:
    if value < 0:
        raise ConfigValidationError(f"{name}={value} must be >= 0")


@dataclass
class TextLayerConfig:
    """Tunables for text-layer reconstruction and interaction mapping."""

    # Partition reading order by horizontal page half (double page / two columns).
    detect_columns: bool = False

    # ── Extraction ──────────────────────────────────────────────────────
    # Width estimate (per char, in font sizes) when a run declares no width.
    fallback_char_width_mult: float = 0.5

    # ── Reading order ───────────────────────────────────────────────────
    # Baselines closer than this * min(font sizes) are on the same line.
    sort_line_tol_mult: float = 0.4

    # ── Span merging ────────────────────────────────────────────────────
    merge_line_tol_mult: float = 0.5
    # Absolute font-size difference tolerated inside one span.
    merge_font_size_tol: float = 2.0
    # Backward overlap allowed before two items stop being consecutive.
    merge_overlap_mult: float = 0.5
    # Gap ceiling without column detection.  Wide enough to bridge a
    # narrow gutter; kept as a tunable default.
    merge_max_gap_mult: float = 4.0
    merge_max_gap_mult_columns: float = 1.5
    # Gaps wider than this get an inferred space.
    space_gap_mult: float = 0.25

    # ── Layout ──────────────────────────────────────────────────────────
    default_ascent: float = 0.85
    serif_ascent: float = 0.89
    # Hit-region padding above and below each box.
    box_padding_mult: float = 0.20
    # Separator thresholds between consecutive boxes.
    line_break_gap_mult: float = 0.5
    column_jump_units: float = 100.0
    separator_space_mult: float = 0.1

    # ── Fonts ───────────────────────────────────────────────────────────
    enable_font_fetch: bool = True
    font_fetch_timeout: float = 8.0
    font_fetch_url: str = (
        "https://fonts.googleapis.com/css2?family={family}"
        ":wght@300;400;500;700&display=swap"
    )
    font_fetch_skip: tuple = (
        "Arial",
        "Helvetica",
        "Times",
        "Courier",
        "Verdana",
        "Georgia",
        "sans-serif",
        "serif",
        "monospace",
    )

    # ── Selection ───────────────────────────────────────────────────────
    selection_width_buffer: float = 1.01
    selection_debounce_s: float = 0.3
    selection_release_delay_s: float = 0.01
    popup_min_space_px: float = 60.0
    popup_offset_px: float = 60.0
    popup_bottom_offset_px: float = 10.0

    # ── Ink ─────────────────────────────────────────────────────────────
    stroke_pad: float = 5.0
    stroke_line_tol: float = 10.0

    # ── OCR fallback ────────────────────────────────────────────────────
    # A page needs more than this many runs to count as having embedded text.
    min_text_items: int = 5
    enable_ocr: bool = True
    ocr_start_delay_s: float = 0.8
    ocr_min_confidence: float = 0.6
    ocr_model_tier: str = "mobile"
    ocr_max_tile_px: int = 3800
    device_pixel_ratio: float = 1.0

    def __post_init__(self) -> None:
        """Validate field ranges to catch misconfiguration early."""
        # -- Thresholds that must be in [0, 1] --
        for name in ("default_ascent", "serif_ascent", "ocr_min_confidence"):
            _check_range(name, getattr(self, name), 0.0, 1.0)

        # -- Strictly positive floats --
        _pos_floats = [
            "fallback_char_width_mult",
            "sort_line_tol_mult",
            "merge_line_tol_mult",
            "merge_max_gap_mult",
            "merge_max_gap_mult_columns",
            "line_break_gap_mult",
            "selection_width_buffer",
            "font_fetch_timeout",
            "device_pixel_ratio",
        ]
        for name in _pos_floats:
            _check_positive(name, getattr(self, name))

        # -- Non-negative floats --
        _nn_floats = [
            "merge_font_size_tol",
            "merge_overlap_mult",
            "space_gap_mult",
            "box_padding_mult",
            "column_jump_units",
            "separator_space_mult",
            "selection_debounce_s",
            "selection_release_delay_s",
            "popup_min_space_px",
            "popup_offset_px",
            "popup_bottom_offset_px",
            "stroke_pad",
            "stroke_line_tol",
            "ocr_start_delay_s",
        ]
        for name in _nn_floats:
            _check_non_negative(name, getattr(self, name))

        if self.min_text_items < 0:
            raise ConfigValidationError(
                f"min_text_items={self.min_text_items} must be >= 0"
            )
        if self.ocr_max_tile_px < 1:
            raise ConfigValidationError(
                f"ocr_max_tile_px={self.ocr_max_tile_px} must be >= 1"
            )

        if self.selection_width_buffer < 1.0:
            raise ConfigValidationError(
                f"selection_width_buffer={self.selection_width_buffer} must be >= 1"
            )

        # -- OCR model tier must be known --
        if self.ocr_model_tier not in ("mobile", "server"):
            raise ConfigValidationError(
                f"ocr_model_tier={self.ocr_model_tier!r} must be 'mobile' or 'server'"
            )
