"""
Playback (automatic year cycling)
=================================

`PlaybackController` moves the view through `YEARS` on a timer:
1990 -> 2000 -> 2010 -> 1990 -> ...

States: stopped / running. There is at most one outstanding scheduled task
(the next tick); each tick reschedules the following one. `stop()` cancels
that task and bumps a generation counter under the state lock, so a tick
that was already waiting for the lock does nothing once `stop()` returned.

Scheduling goes through a small `Scheduler` interface so tests can drive
ticks by hand; the default uses `threading.Timer`.
"""

from __future__ import annotations
from typing import Callable, Optional, Protocol
import logging
import threading

from .state import ViewState

logger = logging.getLogger(__name__)

TICK_SECONDS = 1.2


class Cancellable(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    def call_later(self, delay: float, fn: Callable[[], None]) -> Cancellable: ...


class ThreadingScheduler:
    """Runs each callback once on a daemon `threading.Timer`."""

    def call_later(self, delay: float, fn: Callable[[], None]) -> Cancellable:
        t = threading.Timer(delay, fn)
        t.daemon = True
        t.start()
        return t


class PlaybackController:
    def __init__(self, state: ViewState, scheduler: Optional[Scheduler] = None, interval: float = TICK_SECONDS) -> None:
        self.state = state
        self.scheduler = scheduler or ThreadingScheduler()
        self.interval = interval
        self._handle: Optional[Cancellable] = None
        self._generation = 0

    @property
    def running(self) -> bool:
        return self._handle is not None

    def start(self) -> bool:
        """Start cycling years. Returns False (no-op) if already running."""
        with self.state.lock:
            if self._handle is not None:
                return False
            self._generation += 1
            self.state.set_playing(True)
            self._schedule(self._generation)
            logger.info("Playback started (every %.1fs)", self.interval)
            return True

    def stop(self) -> bool:
        """Stop cycling. Returns False (no-op) if already stopped."""
        with self.state.lock:
            if self._handle is None:
                return False
            self._generation += 1
            handle, self._handle = self._handle, None
            handle.cancel()
            self.state.set_playing(False)
            logger.info("Playback stopped")
            return True

    def toggle(self) -> bool:
        """Start if stopped, stop if running. Returns the new running flag."""
        with self.state.lock:
            if self.running:
                self.stop()
            else:
                self.start()
            return self.running

    def next_year(self) -> int:
        years = self.state.years
        year = self.state.current.year
        if year not in years:
            return years[0]
        return years[(years.index(year) + 1) % len(years)]

    def step(self) -> None:
        """Advance one year, through the same path as a manual year change."""
        self.state.set_year(self.next_year())

    def _schedule(self, generation: int) -> None:
        self._handle = self.scheduler.call_later(self.interval, lambda: self._tick(generation))

    def _tick(self, generation: int) -> None:
        with self.state.lock:
            if generation != self._generation or self._handle is None:
                return
            try:
                self.step()
            except Exception:
                logger.exception("Playback tick failed; stopping playback")
                self.stop()
                return
            self._schedule(generation)
