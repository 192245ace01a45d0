"""
Query facade
============

The read-only API the presentation layer (CLI, report) calls to get exactly
the values one render needs. Every method is a pure lookup against the
precomputed indices: no state changes, no I/O, and a miss returns None or an
empty tuple instead of raising.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import List, Optional, Tuple

from .deltas import DeltaIndex
from .indices import Indices, RankInfo
from .models import CountryExposure, Plant, exposure_key


@dataclass(frozen=True)
class QueryFacade:
    indices: Indices
    deltas: DeltaIndex
    plants: Tuple[Plant, ...] = ()

    def exposure_at(self, iso3: str, year: int, buffer_km: int) -> Optional[CountryExposure]:
        return self.indices.point.get(exposure_key(iso3, year, buffer_km))

    def delta_at(self, iso3: str, year: int, buffer_km: int) -> Optional[float]:
        """Newly exposed people since the previous decade (None for no comparison)."""
        return self.deltas.get(iso3, year, buffer_km)

    def rank_at(self, iso3: str, year: int, buffer_km: int) -> Optional[RankInfo]:
        table = self.indices.ranks.get((int(year), int(buffer_km)))
        if table is None:
            return None
        return table.get(iso3)

    def series_for(self, iso3: str) -> Tuple[CountryExposure, ...]:
        return tuple(self.indices.by_entity.get(iso3, ()))

    def max_positive_delta(self, buffer_km: int) -> float:
        m = self.deltas.max_by_buffer.get(int(buffer_km), 0.0)
        return m if m > 0 else 1.0

    def plants_visible_at(self, year: int, buffer_km: int) -> Tuple[Plant, ...]:
        return tuple(p for p in self.plants if p.population(year, buffer_km) is not None)

    # ---------------- Scale domains ----------------
    def max_share(self, year: int, buffer_km: int) -> float:
        """Largest share at (year, buffer); 1 when there is none."""
        shares = [
            r.pct_near for r in self.indices.point.values()
            if r.year == year and r.buffer_km == buffer_km and r.pct_near is not None
        ]
        m = max(shares, default=0.0)
        return m if m > 0 else 1.0

    def max_plant_population(self, year: int, buffer_km: int) -> float:
        pops = [p.population(year, buffer_km) for p in self.plants_visible_at(year, buffer_km)]
        m = max(pops, default=0.0)
        return m if m > 0 else 1.0

    # ---------------- Listings ----------------
    def entities(self) -> List[str]:
        return sorted(self.indices.by_entity)

    def top_exposed(self, year: int, buffer_km: int, k: int) -> List[CountryExposure]:
        return self.indices.top(int(year), int(buffer_km), k)
