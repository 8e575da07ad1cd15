"""Font naming, substitution, width measurement and best-effort fetching.

The rendering surface rarely has a page's embedded fonts, so text boxes
are drawn with a substitute.  This module maps PDF-internal font names
(e.g. ``BCDFEE+ArialMT``, ``ABCDEF+Roboto-Bold``) to a family name, to a
ReportLab built-in font used for width measurement, and decides whether
an unknown family is worth fetching.

Public API
----------
* ``strip_subset_prefix(fontname)`` – remove 6-letter ``+`` prefix
* ``family_name(fontname)`` – bare family for lookups (``Roboto``)
* ``is_serif_family(family)`` – serif detection for ascent defaults
* ``resolve_font(fontname)`` – mapping to a ReportLab font name
* ``ReportLabMeasurer`` – ``measure(text, font)`` width capability
* ``FontFetchCache`` / ``FontFetcher`` – fire-and-forget family fetching
"""

from __future__ import annotations

import logging
import re
import threading
from dataclasses import dataclass
from typing import Callable, Iterable, Optional, Protocol
from urllib.parse import quote

import requests
from reportlab.pdfbase.pdfmetrics import stringWidth

log = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Name cleanup
# ---------------------------------------------------------------------------

_SUBSET_RE = re.compile(r"^[A-Z]{6}\+")


def strip_subset_prefix(fontname: str) -> str:
    """Remove a 6-uppercase-letter subset prefix (e.g. ``BCDFEE+``)."""
    return _SUBSET_RE.sub("", fontname)


def family_name(fontname: str) -> str:
    """Reduce a raw font name to its family.

    Quotes are dropped, anything up to a ``+`` subset marker is removed
    and style suffixes after the first ``-`` are cut:
    ``'"ABCDEF+Roboto-Bold"'`` → ``"Roboto"``.
    """
    clean = fontname.replace('"', "").replace("'", "").strip()
    if "+" in clean:
        clean = clean.split("+", 1)[1]
    return clean.split("-", 1)[0].strip()


def is_serif_family(family: str) -> bool:
    """True for Times-like or explicitly serif families (not sans-serif)."""
    lower = family.lower()
    if "sans" in lower:
        return False
    return "times" in lower or "serif" in lower


# ---------------------------------------------------------------------------
# PDF fontname → ReportLab base font mapping
# ---------------------------------------------------------------------------

# Checked in order; first substring match wins.
_FAMILY_MAP: list[tuple[str, str]] = [
    ("courier", "Courier"),
    ("mono", "Courier"),
    ("consolas", "Courier"),
    ("arial", "Helvetica"),
    ("helvetica", "Helvetica"),
    ("calibri", "Helvetica"),
    ("verdana", "Helvetica"),
    ("tahoma", "Helvetica"),
    ("sans", "Helvetica"),
    ("times", "Times-Roman"),
    ("georgia", "Times-Roman"),
    ("cambria", "Times-Roman"),
    ("garamond", "Times-Roman"),
    ("serif", "Times-Roman"),
]

_DEFAULT_FONT = "Helvetica"

_BOLD_ITALIC: dict[str, str] = {
    "Helvetica": "Helvetica-BoldOblique",
    "Courier": "Courier-BoldOblique",
    "Times-Roman": "Times-BoldItalic",
}
_BOLD: dict[str, str] = {
    "Helvetica": "Helvetica-Bold",
    "Courier": "Courier-Bold",
    "Times-Roman": "Times-Bold",
}
_ITALIC: dict[str, str] = {
    "Helvetica": "Helvetica-Oblique",
    "Courier": "Courier-Oblique",
    "Times-Roman": "Times-Italic",
}


def is_standard_family(fontname: str) -> bool:
    """True when *fontname* maps onto a built-in family by name."""
    lower = strip_subset_prefix(fontname).lower()
    return any(substr in lower for substr, _ in _FAMILY_MAP)


def resolve_font(fontname: str) -> str:
    """Map a PDF font name to the ReportLab font that stands in for it.

    Unknown families fall back to ``Helvetica``; bold / italic modifiers
    in the original name select the matching variant.
    """
    if not fontname:
        return _DEFAULT_FONT

    lower = strip_subset_prefix(fontname).lower()
    family = _DEFAULT_FONT
    for substr, rl_family in _FAMILY_MAP:
        if substr in lower:
            family = rl_family
            break

    is_bold = "bold" in lower
    is_italic = "italic" in lower or "oblique" in lower
    if is_bold and is_italic:
        return _BOLD_ITALIC.get(family, family)
    if is_bold:
        return _BOLD.get(family, family)
    if is_italic:
        return _ITALIC.get(family, family)
    return family


# ---------------------------------------------------------------------------
# Width measurement
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FontDescriptor:
    """What a rendering surface needs to lay out one box."""

    family: str
    size: float
    font_id: str = ""


class TextMeasurer(Protocol):
    """Host capability: natural width of *text* rendered with *font*."""

    def measure(self, text: str, font: FontDescriptor) -> float: ...


class ReportLabMeasurer:
    """Measure with the ReportLab built-in font substituted for *font*.

    Families that were fetched successfully (see :class:`FontFetcher`)
    count as available; everything else is available only through its
    standard-family substitute.
    """

    def __init__(self, loaded_families: Optional[Iterable[str]] = None) -> None:
        self._loaded = {f.lower() for f in (loaded_families or ())}
        self._lock = threading.Lock()

    def mark_loaded(self, family: str) -> None:
        with self._lock:
            self._loaded.add(family.lower())

    def is_available(self, family: str) -> bool:
        if not family or is_standard_family(family):
            return True
        with self._lock:
            return family_name(family).lower() in self._loaded

    def measure(self, text: str, font: FontDescriptor) -> float:
        return stringWidth(text, resolve_font(font.family or font.font_id), font.size)


# ---------------------------------------------------------------------------
# Best-effort fetching
# ---------------------------------------------------------------------------


class FontFetchCache:
    """Families already attempted during this application run.

    Owned by whoever creates the materializer; each family is attempted
    at most once, successful or not.
    """

    def __init__(self, skip: Iterable[str] = ()) -> None:
        self._skip = tuple(s.lower() for s in skip)
        self._attempted: set[str] = set()
        self._lock = threading.Lock()

    def __contains__(self, family: str) -> bool:
        return family in self._attempted

    def __len__(self) -> int:
        return len(self._attempted)

    def claim(self, family: str) -> bool:
        """Record *family* as attempted; False when it was skipped or seen."""
        if not family:
            return False
        lower = family.lower()
        if any(s in lower for s in self._skip):
            return False
        with self._lock:
            if family in self._attempted:
                return False
            self._attempted.add(family)
        return True


class FontFetcher:
    """Fire-and-forget download of a missing font family.

    :meth:`request` returns immediately; the download runs on a daemon
    thread and only ever reports through logging and *on_loaded*.
    """

    def __init__(
        self,
        cache: FontFetchCache,
        url_template: str,
        *,
        timeout: float = 8.0,
        on_loaded: Optional[Callable[[str], None]] = None,
    ) -> None:
        self.cache = cache
        self.url_template = url_template
        self.timeout = timeout
        self.on_loaded = on_loaded

    def request(self, raw_font_name: str) -> Optional[threading.Thread]:
        """Start fetching the family of *raw_font_name* unless already tried."""
        family = family_name(raw_font_name)
        if not self.cache.claim(family):
            return None
        log.info("Font fetch: trying missing family %s", family)
        thread = threading.Thread(
            target=self._fetch, args=(family,), name=f"font-fetch-{family}", daemon=True
        )
        thread.start()
        return thread

    def _fetch(self, family: str) -> None:
        url = self.url_template.format(family=quote(family))
        try:
            response = requests.get(url, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as exc:
            log.warning("Font fetch: %s not available (%s)", family, exc)
            return
        log.info("Font fetch: loaded %s", family)
        if self.on_loaded is not None:
            self.on_loaded(family)
