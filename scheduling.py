"""Frame schedulers: the host tick that drives the simulation and chaos maps.

Both the simulation actor and the chaos map generator do their work in
short slices and then ask the host for another tick. The FrameScheduler
Protocol abstracts that request so the same code runs under the Qt event
loop (QtFrameScheduler) or under explicit control (ManualScheduler, used
by the headless CLI and the tests).
"""

from __future__ import annotations

import itertools
import logging
from collections import OrderedDict
from typing import Callable, Hashable, Protocol

logger = logging.getLogger(__name__)

# ~60 Hz, one host redraw tick
DEFAULT_FRAME_INTERVAL_MS = 16


class FrameScheduler(Protocol):
    """Protocol for requesting a single callback on a later host tick."""

    def schedule(self, callback: Callable[[], None]) -> Hashable:
        """Run callback once on a later tick. Returns a cancellation handle."""
        ...

    def cancel(self, handle: Hashable) -> None:
        """Drop a pending callback. Unknown or already-fired handles are ignored."""
        ...


class ManualScheduler:
    """Scheduler whose ticks are driven explicitly by the caller.

    Callbacks scheduled while a tick is running are deferred to the next
    tick, so run_pending() always executes exactly one frame's worth.
    """

    def __init__(self):
        self._pending: OrderedDict[int, Callable[[], None]] = OrderedDict()
        self._ids = itertools.count()
        self.ticks = 0

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def schedule(self, callback: Callable[[], None]) -> int:
        handle = next(self._ids)
        self._pending[handle] = callback
        return handle

    def cancel(self, handle: Hashable) -> None:
        self._pending.pop(handle, None)

    def run_pending(self) -> int:
        """Run one tick. Returns the number of callbacks executed."""
        batch = list(self._pending.items())
        self._pending.clear()
        self.ticks += 1
        for _handle, callback in batch:
            callback()
        return len(batch)

    def run_until_idle(self, max_ticks: int | None = None) -> int:
        """Tick until nothing is pending (or max_ticks). Returns ticks run."""
        ran = 0
        while self._pending and (max_ticks is None or ran < max_ticks):
            self.run_pending()
            ran += 1
        return ran


class QtFrameScheduler:
    """Scheduler backed by single-shot QTimers on the Qt event loop."""

    def __init__(self, interval_ms: int = DEFAULT_FRAME_INTERVAL_MS):
        self._interval_ms = interval_ms
        self._timers = {}
        self._ids = itertools.count()

    @property
    def pending_count(self) -> int:
        return len(self._timers)

    def schedule(self, callback: Callable[[], None]) -> int:
        from PyQt6.QtCore import QTimer

        handle = next(self._ids)
        timer = QTimer()
        timer.setSingleShot(True)
        timer.setInterval(self._interval_ms)

        def _fire(h=handle, cb=callback):
            # Drop the reference before running so cb can reschedule
            self._timers.pop(h, None)
            cb()

        timer.timeout.connect(_fire)
        # Keep a reference so the timer is not garbage collected
        self._timers[handle] = timer
        timer.start()
        return handle

    def cancel(self, handle: Hashable) -> None:
        timer = self._timers.pop(handle, None)
        if timer is not None:
            timer.stop()
