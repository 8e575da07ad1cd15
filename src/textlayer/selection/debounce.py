"""Coalescing of selection-change notifications.

Hosts fire selection changes continuously while the user drags.  The
debouncer waits for a quiet period before evaluating the selection, but
evaluates almost immediately when the pointer, touch or key is released.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

from ..config import TextLayerConfig

log = logging.getLogger(__name__)

TimerFactory = Callable[[float, Callable[[], None]], "threading.Timer"]


def _default_timer(delay: float, fn: Callable[[], None]) -> threading.Timer:
    timer = threading.Timer(delay, fn)
    timer.daemon = True
    return timer


class SelectionDebouncer:
    """Run *callback* once per burst of selection changes.

    Parameters
    ----------
    callback : callable
        Evaluates the current selection; called with no arguments.
    cfg : TextLayerConfig, optional
        Supplies ``selection_debounce_s`` and ``selection_release_delay_s``.
    timer_factory : callable, optional
        ``(delay, fn) -> timer`` with ``start()`` / ``cancel()``; defaults
        to daemon :class:`threading.Timer` objects.
    """

    def __init__(
        self,
        callback: Callable[[], None],
        cfg: TextLayerConfig | None = None,
        timer_factory: Optional[TimerFactory] = None,
    ) -> None:
        self.cfg = cfg or TextLayerConfig()
        self.callback = callback
        self._timer_factory = timer_factory or _default_timer
        self._timer = None
        self._lock = threading.Lock()

    @property
    def pending(self) -> bool:
        return self._timer is not None

    def _schedule(self, delay: float) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._timer = self._timer_factory(delay, self._fire)
            self._timer.start()

    def _fire(self) -> None:
        with self._lock:
            self._timer = None
        self.callback()

    def notify_change(self) -> None:
        """A selection-change notification arrived; restart the quiet period."""
        self._schedule(self.cfg.selection_debounce_s)

    def notify_release(self) -> None:
        """Pointer, touch or key released: evaluate right away."""
        self._schedule(self.cfg.selection_release_delay_s)

    def cancel(self) -> None:
        """Drop any pending evaluation."""
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
