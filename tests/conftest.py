from __future__ import annotations

from typing import Callable, List

import pytest

from nexe.engine import NEXE
from nexe.loader import load_store


COUNTRY_ROWS = [
    {"iso3": "FRA", "country": "France", "year": 1990, "buffer_km": 30, "pct_near": 15.0, "pop_near": 9_000_000, "num_plants": 3},
    {"iso3": "FRA", "country": "France", "year": 2000, "buffer_km": 30, "pct_near": 16.0, "pop_near": 10_000_000, "num_plants": 4},
    {"iso3": "FRA", "country": "France", "year": 2010, "buffer_km": 30, "pct_near": 18.0, "pop_near": 12_000_000, "num_plants": 4},
    {"iso3": "FRA", "country": "France", "year": 2010, "buffer_km": 75, "pct_near": 30.0, "pop_near": 20_000_000, "num_plants": 9},
    {"iso3": "FRA", "country": "France", "year": 1990, "buffer_km": 300, "pct_near": 70.0, "pop_near": 40_000_000, "num_plants": 19},
    {"iso3": "FRA", "country": "France", "year": 2000, "buffer_km": 300, "pct_near": 71.0, "pop_near": 42_000_000, "num_plants": 19},
    {"iso3": "FRA", "country": "France", "year": 2010, "buffer_km": 300, "pct_near": 72.0, "pop_near": 45_000_000, "num_plants": 19},
    {"iso3": "BEL", "country": "Belgium", "year": 2000, "buffer_km": 30, "pct_near": 17.5, "pop_near": 1_900_000, "num_plants": 2},
    {"iso3": "BEL", "country": "Belgium", "year": 2010, "buffer_km": 30, "pct_near": 18.0, "pop_near": 2_000_000, "num_plants": 2},
    {"iso3": "DEU", "country": "Germany", "year": 1990, "buffer_km": 30, "pct_near": 4.0, "pop_near": 3_000_000, "num_plants": 12},
    {"iso3": "DEU", "country": "Germany", "year": 2010, "buffer_km": 30, "pct_near": 6.0, "pop_near": 5_000_000, "num_plants": 9},
    {"iso3": "XYZ", "country": "Xyzland", "year": 2000, "buffer_km": 75, "pct_near": 10.0, "pop_near": 5_000_000, "num_plants": 1},
    {"iso3": "XYZ", "country": "Xyzland", "year": 2010, "buffer_km": 75, "pct_near": 8.0, "pop_near": 4_000_000, "num_plants": 1},
    {"iso3": "ZZZ", "country": "Zedland", "year": 2010, "buffer_km": 30, "pct_near": None, "pop_near": 100, "num_plants": 0},
    # outside the configured buffers: dropped on load
    {"iso3": "FRA", "country": "France", "year": 2010, "buffer_km": 50, "pct_near": 25.0, "pop_near": 16_000_000, "num_plants": 6},
    # lowercase code, uppercased on load
    {"iso3": "nld", "country": "Netherlands", "year": 2010, "buffer_km": 30, "pct_near": 0.5, "pop_near": 80_000, "num_plants": 1},
]

PLANT_ROWS = [
    {"plant": "Gravelines", "country": "France", "lon": 2.13, "lat": 51.01, "num_reactors": 6,
     "pop30_2000": 450_000, "pop30_2010": 500_000, "pop75_2010": None},
    {"plant": "Doel", "country": "Belgium", "lon": 4.26, "lat": 51.32, "num_reactors": 4,
     "pop30_2000": None, "pop30_2010": 1_200_000, "pop75_2010": 3_000_000},
]


class _Handle:
    def __init__(self, fn: Callable[[], None]) -> None:
        self.fn = fn
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Scheduler fake: callbacks run only when the test calls `fire()`."""

    def __init__(self) -> None:
        self.scheduled: List[_Handle] = []

    def call_later(self, delay, fn):
        h = _Handle(fn)
        self.scheduled.append(h)
        return h

    @property
    def active(self) -> List[_Handle]:
        return [h for h in self.scheduled if not h.cancelled]

    def fire(self) -> None:
        due, self.scheduled = self.active, []
        for h in due:
            h.fn()


@pytest.fixture
def country_rows():
    return [dict(r) for r in COUNTRY_ROWS]


@pytest.fixture
def plant_rows():
    return [dict(r) for r in PLANT_ROWS]


@pytest.fixture
def store(country_rows, plant_rows):
    return load_store(country_rows, plant_rows)


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def engine(store, scheduler):
    return NEXE.from_store(store, scheduler=scheduler)
