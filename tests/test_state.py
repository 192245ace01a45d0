from __future__ import annotations

import pytest

from nexe.state import (
    Baseline,
    Change,
    InvalidTransition,
    ViewSnapshot,
    ViewState,
    render_mode,
)


def test_defaults():
    snap = ViewState().snapshot()
    assert snap == ViewSnapshot(year=2010, buffer_km=30, selected=None, show_plants=False, playing=False)


def test_transitions_update_one_field():
    state = ViewState()
    state.set_year(1990)
    state.set_buffer(300)
    state.select("fra")
    state.set_show_plants(True)
    assert state.snapshot() == ViewSnapshot(year=1990, buffer_km=300, selected="FRA", show_plants=True)
    state.select(None)
    assert state.snapshot().selected is None


def test_select_resolves_aliases():
    state = ViewState()
    state.select("KOS")
    assert state.snapshot().selected == "XKX"


@pytest.mark.parametrize("call, value", [("set_year", 1995), ("set_year", 2020), ("set_buffer", 50)])
def test_invalid_values_are_rejected(call, value):
    state = ViewState()
    before = state.snapshot()
    with pytest.raises(InvalidTransition):
        getattr(state, call)(value)
    assert state.snapshot() == before


def test_invalid_initial_state():
    with pytest.raises(InvalidTransition):
        ViewState(current=ViewSnapshot(year=1980))


def test_listeners_see_every_transition():
    state = ViewState()
    seen = []
    state.subscribe(seen.append)
    state.set_year(2000)
    state.set_buffer(75)
    with pytest.raises(InvalidTransition):
        state.set_buffer(1)
    assert [(s.year, s.buffer_km) for s in seen] == [(2000, 30), (2000, 75)]


def test_snapshots_are_immutable():
    state = ViewState()
    snap = state.snapshot()
    state.set_year(1990)
    assert snap.year == 2010
    with pytest.raises(Exception):
        snap.year = 2000


def test_render_mode():
    assert render_mode(1990) == Baseline(year=1990)
    assert render_mode(2000) == Change(prev_year=1990, year=2000)
    assert render_mode(2010) == Change(prev_year=2000, year=2010)
    assert render_mode(2010, (2000, 2010)) == Change(prev_year=2000, year=2010)
    assert render_mode(2000, (2000, 2010)) == Baseline(year=2000)


def test_mode_follows_the_state_years():
    state = ViewState(years=(2000, 2010), current=ViewSnapshot(year=2000))
    assert state.mode == Baseline(year=2000)
    state.set_year(2010)
    assert state.mode == Change(prev_year=2000, year=2010)
    assert ViewState().mode == Change(prev_year=2000, year=2010)
