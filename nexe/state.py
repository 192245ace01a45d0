"""
View state (what the dashboard currently shows)
===============================================

`ViewState` holds the five interactive parameters every query is run with:
year, buffer, selected entity, plant overlay flag and playback flag.

It only changes through the transition methods below. Each successful
transition replaces the current snapshot and synchronously notifies the
listeners (the engine re-derives its view model there). Transitions take
`lock`, so a playback tick never interleaves with a user command.

The map has two render modes, derived from the year:
- Baseline: the earliest year, coloured by share of population.
- Change:   any later year, coloured by people newly exposed since the
            previous decade.
"""

from __future__ import annotations
from dataclasses import dataclass, field, replace
from typing import Callable, List, Optional, Tuple
import logging
import threading

from .models import BUFFERS, DEFAULT_BUFFER, DEFAULT_YEAR, YEARS, resolve_alias

logger = logging.getLogger(__name__)


class InvalidTransition(ValueError):
    """A transition asked for a value outside the fixed enumerations."""


# Render modes (tagged union)
@dataclass(frozen=True)
class RenderMode: ...

@dataclass(frozen=True)
class Baseline(RenderMode):
    year: int

@dataclass(frozen=True)
class Change(RenderMode):
    prev_year: int
    year: int


def render_mode(year: int, years: Tuple[int, ...] = YEARS) -> RenderMode:
    ordered = sorted(years)
    if year not in ordered or year == ordered[0]:
        return Baseline(year=year)
    return Change(prev_year=ordered[ordered.index(year) - 1], year=year)


@dataclass(frozen=True)
class ViewSnapshot:
    year: int = DEFAULT_YEAR
    buffer_km: int = DEFAULT_BUFFER
    selected: Optional[str] = None
    show_plants: bool = False
    playing: bool = False


Listener = Callable[[ViewSnapshot], None]


@dataclass
class ViewState:
    """Single source of truth for the interactive parameters."""
    years: Tuple[int, ...] = YEARS
    buffers: Tuple[int, ...] = BUFFERS
    current: ViewSnapshot = field(default_factory=ViewSnapshot)
    lock: threading.RLock = field(default_factory=threading.RLock, repr=False)
    _listeners: List[Listener] = field(default_factory=list, init=False, repr=False)

    def __post_init__(self) -> None:
        if self.current.year not in self.years or self.current.buffer_km not in self.buffers:
            raise InvalidTransition(f"Initial state {self.current} is outside years={self.years} buffers={self.buffers}")

    # ---------------- Listeners ----------------
    def subscribe(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def snapshot(self) -> ViewSnapshot:
        return self.current

    @property
    def mode(self) -> RenderMode:
        """Render mode of the current year within this state's years."""
        return render_mode(self.current.year, self.years)

    def _commit(self, **changes) -> ViewSnapshot:
        with self.lock:
            self.current = replace(self.current, **changes)
            logger.debug("View state -> %s", self.current)
            for listener in self._listeners:
                listener(self.current)
            return self.current

    # ---------------- Transitions ----------------
    def set_year(self, year: int) -> ViewSnapshot:
        y = int(year)
        if y not in self.years:
            raise InvalidTransition(f"year must be one of {list(self.years)}, got {year}")
        return self._commit(year=y)

    def set_buffer(self, buffer_km: int) -> ViewSnapshot:
        b = int(buffer_km)
        if b not in self.buffers:
            raise InvalidTransition(f"buffer must be one of {list(self.buffers)}, got {buffer_km}")
        return self._commit(buffer_km=b)

    def select(self, iso3: Optional[str]) -> ViewSnapshot:
        """Select an entity (None clears the selection)."""
        if iso3 is None:
            return self._commit(selected=None)
        code = resolve_alias(iso3) or str(iso3).strip().upper()
        return self._commit(selected=code)

    def set_show_plants(self, visible: bool) -> ViewSnapshot:
        return self._commit(show_plants=bool(visible))

    def set_playing(self, playing: bool) -> ViewSnapshot:
        """Playback flag; only the playback controller should call this."""
        return self._commit(playing=bool(playing))
