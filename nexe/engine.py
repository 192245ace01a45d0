"""
Core engine (NEXE)
==================

NEXE is the one object the presentation layer talks to:

1) Load sources -> RecordStore (immutable records)
2) Build indices + decade changes -> read-only lookup tables
3) Hold the current ViewState (year, buffer, selection, overlay, playback)
4) After every state transition, re-derive the whole view model
   (map fills + scale domain, visible plants, selected country's profile)
5) Notify render callbacks with the new view model

Everything built in steps 1-2 is owned by the engine and never changes; only
the ViewState moves, and only through its transition methods.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple
import logging

from .deltas import DeltaIndex, compute_deltas
from .indices import Indices, build_indices
from .loader import RecordStore, feature_entity, feature_name
from .models import BUFFERS, YEARS, Plant
from .playback import TICK_SECONDS, PlaybackController, Scheduler
from .query import QueryFacade
from .state import Baseline, Change, RenderMode, ViewSnapshot, ViewState, render_mode
from .summary import ProfileRow, entity_name, exposure_profile, narrative

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlantMarker:
    plant: Plant
    population: float


@dataclass(frozen=True)
class ViewModel:
    """Everything one render pass needs, derived from a state snapshot."""
    state: ViewSnapshot
    mode: RenderMode
    title: str
    # iso3 -> colour value (share % for Baseline, millions newly exposed for Change)
    fills: Dict[str, Optional[float]]
    domain_max: float
    plants: Tuple[PlantMarker, ...] = ()
    plant_domain_max: float = 1.0
    selected_name: Optional[str] = None
    profile: Tuple[ProfileRow, ...] = ()
    summary: Tuple[str, ...] = ()


def derive_view(
    q: QueryFacade,
    snap: ViewSnapshot,
    years: Sequence[int] = YEARS,
    buffers: Sequence[int] = BUFFERS,
) -> ViewModel:
    """Full re-derivation of the view-facing aggregates for one snapshot."""
    mode = render_mode(snap.year, tuple(years))
    b = snap.buffer_km
    fills: Dict[str, Optional[float]] = {}

    if isinstance(mode, Baseline):
        for iso3 in q.entities():
            r = q.exposure_at(iso3, mode.year, b)
            fills[iso3] = r.pct_near if r else None
        domain_max = q.max_share(mode.year, b)
        title = f"Baseline exposure in {mode.year}"
    elif isinstance(mode, Change):
        for iso3 in q.entities():
            d = q.delta_at(iso3, mode.year, b)
            fills[iso3] = d / 1e6 if d is not None and d > 0 else None
        domain_max = q.max_positive_delta(b) / 1e6
        title = f"Newly exposed people, {mode.prev_year}-{mode.year}"
    else:
        raise ValueError(f"Unknown render mode: {mode!r}")

    plants: Tuple[PlantMarker, ...] = ()
    plant_max = 1.0
    if snap.show_plants:
        plants = tuple(
            PlantMarker(plant=p, population=p.population(snap.year, b))
            for p in q.plants_visible_at(snap.year, b)
        )
        plant_max = q.max_plant_population(snap.year, b)

    name = profile = summary = None
    if snap.selected and q.series_for(snap.selected):
        name = entity_name(q, snap.selected)
        profile = tuple(exposure_profile(q, snap.selected, snap.year, buffers))
        summary = tuple(narrative(q, snap.selected, snap.year, b, years, buffers))

    return ViewModel(
        state=snap,
        mode=mode,
        title=title,
        fills=fills,
        domain_max=domain_max,
        plants=plants,
        plant_domain_max=plant_max,
        selected_name=name,
        profile=profile or (),
        summary=summary or (),
    )


RenderCallback = Callable[[ViewModel], None]


@dataclass
class NEXE:
    """Nuclear Exposure Explorer engine.

    The engine stores:
    - store: all records (immutable)
    - idx / deltas: precomputed indices
    - state: current ViewState
    - view: the view model for the current state

    Transitions update `state` only; `view` follows automatically.
    """
    store: RecordStore
    idx: Indices
    deltas: DeltaIndex
    features: List[Dict[str, Any]] = field(default_factory=list)
    dataset_path: Optional[str] = None
    # Stores CLI commands (for reproducibility in reports)
    command_log: List[str] = field(default_factory=list)
    state: ViewState = field(default_factory=ViewState)
    scheduler: Optional[Scheduler] = None
    interval: float = TICK_SECONDS

    query: QueryFacade = field(init=False)
    playback: PlaybackController = field(init=False)
    view: ViewModel = field(init=False)
    _renderers: List[RenderCallback] = field(default_factory=list, init=False)

    def __post_init__(self) -> None:
        self.query = QueryFacade(indices=self.idx, deltas=self.deltas, plants=self.store.plants)
        self.playback = PlaybackController(self.state, scheduler=self.scheduler, interval=self.interval)
        self.view = self._derive(self.state.snapshot())
        self.state.subscribe(self._on_change)

    @classmethod
    def from_store(cls, store: RecordStore, features: Optional[List[Dict[str, Any]]] = None, **kwargs) -> "NEXE":
        """Build indices and decade changes once, then wrap them in an engine.

        Indices and changes follow the years/buffers of `state` (if given).
        """
        state = kwargs.setdefault("state", ViewState())
        idx = build_indices(store, state.years, state.buffers)
        deltas = compute_deltas(store, state.years)
        logger.info("Indexed %d entities, %d rank tables", len(idx.by_entity), len(idx.ranks))
        return cls(store=store, idx=idx, deltas=deltas, features=list(features or []), **kwargs)

    # ---------------- Render notification ----------------
    def on_render(self, callback: RenderCallback) -> None:
        self._renderers.append(callback)

    def _derive(self, snap: ViewSnapshot) -> ViewModel:
        return derive_view(self.query, snap, self.state.years, self.state.buffers)

    def _on_change(self, snap: ViewSnapshot) -> None:
        self.view = self._derive(snap)
        for cb in self._renderers:
            cb(self.view)

    # ---------------- Transitions ----------------
    # The lock is held so the returned view belongs to this transition
    def set_year(self, year: int) -> ViewModel:
        with self.state.lock:
            self.state.set_year(year)
            return self.view

    def set_buffer(self, buffer_km: int) -> ViewModel:
        with self.state.lock:
            self.state.set_buffer(buffer_km)
            return self.view

    def select(self, iso3: Optional[str]) -> ViewModel:
        with self.state.lock:
            self.state.select(iso3)
            return self.view

    def set_show_plants(self, visible: bool) -> ViewModel:
        with self.state.lock:
            self.state.set_show_plants(visible)
            return self.view

    def play(self) -> bool:
        return self.playback.start()

    def stop(self) -> bool:
        return self.playback.stop()

    # ---------------- Boundaries ----------------
    def feature_fills(self) -> List[Tuple[str, Optional[str], Optional[float]]]:
        """(name, iso3, fill) for every boundary feature.

        Features without an entity code get (name, None, None) and are drawn
        with the neutral colour.
        """
        out = []
        for f in self.features:
            iso3 = feature_entity(f)
            fill = self.view.fills.get(iso3) if iso3 else None
            out.append((feature_name(f), iso3, fill))
        return out

    def select_feature(self, feature: Dict[str, Any]) -> Optional[ViewModel]:
        """Select the entity of a clicked feature; features without one are ignored."""
        iso3 = feature_entity(feature)
        if iso3 is None:
            return None
        return self.select(iso3)

    # ---------------- Convenience ----------------
    @property
    def years(self) -> Tuple[int, ...]:
        return self.state.years

    @property
    def buffers(self) -> Tuple[int, ...]:
        return self.state.buffers

    def selected_label(self) -> str:
        sel = self.state.current.selected
        if not sel:
            return "none"
        return entity_name(self.query, sel) or sel
