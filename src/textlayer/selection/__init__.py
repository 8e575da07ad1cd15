"""Selection mapping — host selections to page-space highlight rects.

Public API
----------
- :func:`map_selection` / :func:`map_document_selection`
- :class:`SelectionRange` / :class:`TextAnchor`
- :func:`selected_text`, :func:`popup_anchor`, :func:`build_selection_state`
- :class:`SelectionDebouncer`
"""

from .debounce import SelectionDebouncer
from .mapper import (
    ClientRect,
    PopupAnchor,
    ScrollContainer,
    SelectionRange,
    SelectionState,
    TextAnchor,
    build_selection_state,
    map_document_selection,
    map_selection,
    popup_anchor,
    selected_text,
)

__all__ = [
    "ClientRect",
    "PopupAnchor",
    "ScrollContainer",
    "SelectionDebouncer",
    "SelectionRange",
    "SelectionState",
    "TextAnchor",
    "build_selection_state",
    "map_document_selection",
    "map_selection",
    "popup_anchor",
    "selected_text",
]
