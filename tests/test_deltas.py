from __future__ import annotations

import math

from nexe.deltas import compute_deltas
from nexe.loader import load_store
from nexe.models import YEARS


def test_first_year_has_no_value(store):
    deltas = compute_deltas(store)
    for key, value in deltas.values.items():
        if key.year == YEARS[0]:
            assert value is None


def test_decade_increase(store):
    deltas = compute_deltas(store)
    assert deltas.get("FRA", 2000, 30) == 1_000_000
    assert deltas.get("FRA", 2010, 30) == 2_000_000


def test_decrease_is_clipped_to_zero(store):
    assert compute_deltas(store).get("XYZ", 2010, 75) == 0


def test_missing_previous_year_has_no_value(store):
    deltas = compute_deltas(store)
    # DEU has 1990 and 2010 but no 2000 record
    assert deltas.get("DEU", 2010, 30) is None
    # BEL's series starts in 2000
    assert deltas.get("BEL", 2000, 30) is None
    assert deltas.get("BEL", 2010, 30) == 100_000


def test_never_negative(store):
    for value in compute_deltas(store).values.values():
        assert value is None or value >= 0


def test_one_entry_per_record(store):
    deltas = compute_deltas(store)
    assert set(deltas.values) == {r.key for r in store.exposures}


def test_max_by_buffer(store):
    deltas = compute_deltas(store)
    assert deltas.max_by_buffer[30] == 2_000_000
    assert deltas.max_by_buffer[300] == 3_000_000
    # only a clipped decrease at 75 km
    assert 75 not in deltas.max_by_buffer


def test_max_matches_values(store):
    deltas = compute_deltas(store)
    for buffer_km, m in deltas.max_by_buffer.items():
        observed = [v for k, v in deltas.values.items() if k.buffer_km == buffer_km and v is not None]
        assert m == max(observed)


def test_missing_or_non_finite_population_has_no_value():
    rows = [
        {"iso3": "AAA", "year": 1990, "buffer_km": 30, "pct_near": 1.0, "pop_near": None, "num_plants": 1},
        {"iso3": "AAA", "year": 2000, "buffer_km": 30, "pct_near": 1.0, "pop_near": 10.0, "num_plants": 1},
        {"iso3": "AAA", "year": 2010, "buffer_km": 30, "pct_near": 1.0, "pop_near": math.inf, "num_plants": 1},
    ]
    plants = [{"plant": "P", "country": "A", "lon": 0, "lat": 0, "num_reactors": 1}]
    deltas = compute_deltas(load_store(rows, plants))
    assert deltas.get("AAA", 2000, 30) is None
    assert deltas.get("AAA", 2010, 30) is None
    assert deltas.max_by_buffer == {}


def test_recompute_is_identical(store):
    assert compute_deltas(store) == compute_deltas(store)
