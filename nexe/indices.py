"""
Indices (precomputed lookup tables)
===================================

NEXE builds its indices once, right after loading, and never changes them.

- `point[exposure_key("FRA", 2010, 30)]` gives the one record for that key.
- `by_entity["FRA"]` gives every FRA record, in load order.
- `ranks[(2010, 30)]` gives the rank table for that (year, buffer) pair.

Ranks are computed by a stable descending sort on `pct_near`, so ties keep
the order of the input rows.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple
import heapq

from .loader import RecordStore
from .models import BUFFERS, YEARS, CountryExposure, ExposureKey, exposure_key


@dataclass(frozen=True)
class RankInfo:
    rank: int
    total: int

    @property
    def percentile(self) -> float:
        return self.rank / self.total * 100


@dataclass(frozen=True)
class RankTable:
    """Ranks of all entities with a share at one (year, buffer) pair."""
    ranks: Dict[str, int] = field(default_factory=dict)

    @property
    def total(self) -> int:
        return len(self.ranks)

    def get(self, iso3: str) -> Optional[RankInfo]:
        r = self.ranks.get(iso3)
        if r is None:
            return None
        return RankInfo(rank=r, total=self.total)

    def percentile(self, iso3: str) -> Optional[float]:
        """Percentile position of `iso3`, or None if unranked or the table is empty."""
        info = self.get(iso3)
        if info is None or not info.total:
            return None
        return info.percentile


@dataclass
class Indices:
    """Container of precomputed indices."""
    point: Dict[ExposureKey, CountryExposure]
    by_entity: Dict[str, List[CountryExposure]]
    ranks: Dict[Tuple[int, int], RankTable]

    def top(self, year: int, buffer_km: int, k: int) -> List[CountryExposure]:
        """Top-k records by share at (year, buffer), highest first."""
        table = self.ranks.get((year, buffer_km))
        if table is None or k <= 0:
            return []
        # ranks are unique, so the heap never compares records
        pairs = [(r, iso3) for iso3, r in table.ranks.items()]
        best = heapq.nsmallest(k, pairs)
        return [self.point[exposure_key(iso3, year, buffer_km)] for _, iso3 in best]


def rank_table(rows: List[CountryExposure], year: int, buffer_km: int) -> RankTable:
    subset = [r for r in rows if r.year == year and r.buffer_km == buffer_km and r.pct_near is not None]
    # sorted() is stable, reverse=True keeps input order for ties
    subset = sorted(subset, key=lambda r: r.pct_near, reverse=True)
    ranks: Dict[str, int] = {}
    for i, r in enumerate(subset):
        ranks[r.iso3] = i + 1
    return RankTable(ranks=ranks)


def build_indices(
    store: RecordStore,
    years: Sequence[int] = YEARS,
    buffers: Sequence[int] = BUFFERS,
) -> Indices:
    """Build indices from the loaded store.

    One rank table is built per (year, buffer) in `years` x `buffers`.

    Returns:
        Indices object with the point, by_entity and ranks maps.
    """
    point: Dict[ExposureKey, CountryExposure] = {}
    by_entity: Dict[str, List[CountryExposure]] = {}

    rows = list(store.exposures)
    for r in rows:
        point[r.key] = r
        by_entity.setdefault(r.iso3, []).append(r)

    ranks: Dict[Tuple[int, int], RankTable] = {}
    for year in years:
        for buffer_km in buffers:
            ranks[(year, buffer_km)] = rank_table(rows, year, buffer_km)

    return Indices(point=point, by_entity=by_entity, ranks=ranks)
