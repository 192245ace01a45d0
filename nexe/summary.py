"""
Exposure profile + narrative summary for one country.

The profile has one row per buffer for the selected year (missing buffers
are shown as zeros). The narrative turns the profile, the previous decade
and the global rank into a few plain sentences.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import List, Optional, Sequence

from .models import BUFFERS, YEARS
from .query import QueryFacade

# near/far share ratio thresholds
CONCENTRATED = 0.7
SPREAD_OUT = 0.3


@dataclass(frozen=True)
class ProfileRow:
    buffer_km: int
    pct_near: float
    pop_near: float
    num_plants: int


def exposure_profile(q: QueryFacade, iso3: str, year: int, buffers: Sequence[int] = BUFFERS) -> List[ProfileRow]:
    out: List[ProfileRow] = []
    for b in buffers:
        r = q.exposure_at(iso3, year, b)
        out.append(ProfileRow(
            buffer_km=b,
            pct_near=(r.pct_near or 0.0) if r else 0.0,
            pop_near=(r.pop_near or 0.0) if r else 0.0,
            num_plants=(r.num_plants or 0) if r else 0,
        ))
    return out


def entity_name(q: QueryFacade, iso3: str) -> Optional[str]:
    series = q.series_for(iso3)
    return series[0].label if series else None


def narrative(
    q: QueryFacade,
    iso3: str,
    year: int,
    buffer_km: int,
    years: Sequence[int] = YEARS,
    buffers: Sequence[int] = BUFFERS,
) -> List[str]:
    """Sentences describing `iso3` at (year, buffer). Empty for unknown entities."""
    name = entity_name(q, iso3)
    if name is None:
        return []

    profile = {row.buffer_km: row for row in exposure_profile(q, iso3, year, buffers)}
    current = profile.get(buffer_km)
    pieces: List[str] = []

    if current:
        pieces.append(
            f"{name}: in {year}, about {current.pct_near:.1f}% of people live "
            f"within {buffer_km} km of a nuclear plant."
        )

    ordered = sorted(years)
    if current and year in ordered and year != ordered[0]:
        prev_year = ordered[ordered.index(year) - 1]
        prev = q.exposure_at(iso3, prev_year, buffer_km)
        if prev is not None:
            delta_people = current.pop_near - (prev.pop_near or 0.0)
            delta_pct = current.pct_near - (prev.pct_near or 0.0)
            if delta_people > 0:
                pieces.append(
                    f"Compared with {prev_year}, this is an increase of {delta_people / 1e6:.2f}M people "
                    f"({delta_pct:+.1f} percentage points) living near plants."
                )
            elif delta_pct != 0:
                pieces.append(
                    f"Compared with {prev_year}, no additional people live near plants "
                    f"({delta_pct:+.1f} percentage points)."
                )

    info = q.rank_at(iso3, year, buffer_km)
    if info is not None and info.total:
        pieces.append(
            f"This places {name} around the top {info.percentile:.0f}% most exposed countries "
            f"at {buffer_km} km (rank {info.rank} of {info.total})."
        )

    near = profile.get(min(buffers))
    far = profile.get(max(buffers))
    if near and far and far.pct_near > 0:
        concentration = near.pct_near / far.pct_near
        if concentration > CONCENTRATED:
            pieces.append(
                f"Exposure is highly concentrated close to plants: most people living near "
                f"nuclear plants are within {near.buffer_km} km."
            )
        elif concentration < SPREAD_OUT:
            pieces.append(
                f"Exposure is mostly from people further away: only a small share of exposed "
                f"people are within {near.buffer_km} km."
            )
        else:
            pieces.append(
                "Exposure is fairly evenly spread between people very close to plants and those further out."
            )
    return pieces
