"""Debug overlays of text layers, highlights and ink."""

from .overlay import COLOR_KEYS, draw_overlay

__all__ = ["COLOR_KEYS", "draw_overlay"]
