"""
Decade change (newly exposed people)
====================================

For every entity and buffer, walk its records in year order and compare each
record with the record of the previous year in `YEARS`:

    delta = max(0, pop_near(year) - pop_near(previous year))

The earliest year has no previous decade and always gets None. A missing
previous-year record, a missing population or a non-finite result also give
None, which consumers treat as "leave this year out", never as zero.
Decreases are clipped to 0: only newly exposed people are counted.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence
import math

from .loader import RecordStore
from .models import YEARS, CountryExposure, ExposureKey, exposure_key


@dataclass(frozen=True)
class DeltaIndex:
    values: Dict[ExposureKey, Optional[float]]
    max_by_buffer: Dict[int, float]

    def get(self, iso3: str, year: int, buffer_km: int) -> Optional[float]:
        return self.values.get(exposure_key(iso3, year, buffer_km))


def _previous_year(year: int, years: Sequence[int]) -> Optional[int]:
    if year not in years:
        return None
    i = years.index(year)
    return years[i - 1] if i > 0 else None


def _change(now: CountryExposure, prev: Optional[CountryExposure]) -> Optional[float]:
    if prev is None or now.pop_near is None or prev.pop_near is None:
        return None
    delta = now.pop_near - prev.pop_near
    if not math.isfinite(delta):
        return None
    return max(0.0, delta)


def compute_deltas(store: RecordStore, years: Sequence[int] = YEARS) -> DeltaIndex:
    """Compute the clipped decade change for every record in the store.

    Also tracks the largest change per buffer, the normalization bound for
    the change map.
    """
    years = tuple(sorted(years))
    grouped: Dict[str, Dict[int, List[CountryExposure]]] = {}
    for r in store.exposures:
        grouped.setdefault(r.iso3, {}).setdefault(r.buffer_km, []).append(r)

    values: Dict[ExposureKey, Optional[float]] = {}
    max_by_buffer: Dict[int, float] = {}
    for iso3, by_buffer in grouped.items():
        for buffer_km, rows in by_buffer.items():
            by_year = {r.year: r for r in rows}
            for r in sorted(rows, key=lambda x: x.year):
                prev_year = _previous_year(r.year, years)
                prev = by_year.get(prev_year) if prev_year is not None else None
                delta = _change(r, prev)
                values[exposure_key(iso3, r.year, buffer_km)] = delta
                if delta is not None and delta > max_by_buffer.get(buffer_km, 0.0):
                    max_by_buffer[buffer_km] = delta

    return DeltaIndex(values=values, max_by_buffer=max_by_buffer)
