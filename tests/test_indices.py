from __future__ import annotations

from nexe.indices import RankTable, build_indices, rank_table
from nexe.models import BUFFERS, YEARS, exposure_key

from .conftest import COUNTRY_ROWS


def test_point_lookup_echoes_source_rows(store):
    idx = build_indices(store)
    for row in COUNTRY_ROWS:
        if row["buffer_km"] not in BUFFERS:
            continue
        iso3 = row["iso3"].upper()
        rec = idx.point[exposure_key(iso3, row["year"], row["buffer_km"])]
        assert rec.pop_near == row["pop_near"]
        assert rec.pct_near == row["pct_near"]
        assert rec.num_plants == row["num_plants"]
        assert rec.country == row["country"]
    assert len(idx.point) == len(store.exposures)


def test_point_lookup_miss(store):
    idx = build_indices(store)
    assert exposure_key("FRA", 2010, 50) not in idx.point
    assert exposure_key("QQQ", 2010, 30) not in idx.point


def test_group_index_keeps_load_order(store):
    idx = build_indices(store)
    fra = idx.by_entity["FRA"]
    assert [(r.year, r.buffer_km) for r in fra] == [
        (1990, 30), (2000, 30), (2010, 30), (2010, 75), (1990, 300), (2000, 300), (2010, 300),
    ]


def test_rank_tables_cover_every_pair(store):
    idx = build_indices(store)
    assert set(idx.ranks) == {(y, b) for y in YEARS for b in BUFFERS}


def test_ranks_are_a_gapless_partition(store):
    idx = build_indices(store)
    for (year, buffer_km), table in idx.ranks.items():
        with_share = {
            r.iso3 for r in store.exposures
            if r.year == year and r.buffer_km == buffer_km and r.pct_near is not None
        }
        assert set(table.ranks) == with_share
        assert sorted(table.ranks.values()) == list(range(1, len(with_share) + 1))
        assert table.total == len(with_share)


def test_ties_keep_input_order(store):
    table = build_indices(store).ranks[(2010, 30)]
    # FRA and BEL both have 18.0; FRA comes first in the input
    assert table.ranks == {"FRA": 1, "BEL": 2, "DEU": 3, "NLD": 4}


def test_entity_without_share_has_no_rank(store):
    table = build_indices(store).ranks[(2010, 30)]
    assert table.get("ZZZ") is None
    assert table.percentile("ZZZ") is None


def test_empty_rank_table_has_no_percentile():
    table = rank_table([], 1990, 75)
    assert table == RankTable()
    assert table.total == 0
    assert table.percentile("FRA") is None


def test_rank_info_percentile(store):
    info = build_indices(store).ranks[(2010, 30)].get("BEL")
    assert (info.rank, info.total) == (2, 4)
    assert info.percentile == 50.0


def test_top_k(store):
    idx = build_indices(store)
    assert [r.iso3 for r in idx.top(2010, 30, 3)] == ["FRA", "BEL", "DEU"]
    assert [r.iso3 for r in idx.top(2010, 30, 10)] == ["FRA", "BEL", "DEU", "NLD"]
    assert idx.top(1990, 75, 5) == []
    assert idx.top(2010, 30, 0) == []


def test_rebuild_is_identical(store):
    assert build_indices(store) == build_indices(store)
