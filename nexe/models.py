"""
Data model (exposure + plant records)
=====================================

Each row of the country exposure table becomes a `CountryExposure` and each
row of the plant table becomes a `Plant`. Both are immutable (`frozen=True`):
the dataset is loaded once per session and never edited afterwards, every
index and query works by looking records up, not by changing them.

Composite keys are structured (`ExposureKey`) and always built through
`exposure_key()` so every index uses the same key shape.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, NamedTuple, Optional, Tuple
import re

# Fixed enumerations shared by every module
YEARS: Tuple[int, ...] = (1990, 2000, 2010)
BUFFERS: Tuple[int, ...] = (30, 75, 300)

DEFAULT_YEAR = 2010
DEFAULT_BUFFER = 30

# Legacy / ambiguous codes seen in boundary files -> canonical code
ALIASES: Dict[str, str] = {"ANT": "NLD", "KOS": "XKX"}

_ISO3_RE = re.compile(r"^[A-Za-z]{3}$")


def normalize_code(code: Optional[str]) -> Optional[str]:
    """Uppercase a 3-letter entity code; None when it is not one."""
    if code is None:
        return None
    s = str(code).strip()
    if not _ISO3_RE.match(s):
        return None
    return s.upper()


def resolve_alias(code: Optional[str]) -> Optional[str]:
    """Normalize a 3-letter entity code (uppercase + alias table).

    Used for boundary features and user input. Exposure table codes are
    only normalized, never aliased.
    """
    up = normalize_code(code)
    if up is None:
        return None
    return ALIASES.get(up, up)


class ExposureKey(NamedTuple):
    iso3: str
    year: int
    buffer_km: int


def exposure_key(iso3: str, year: int, buffer_km: int) -> ExposureKey:
    """The one place composite keys are built."""
    return ExposureKey(iso3, int(year), int(buffer_km))


@dataclass(frozen=True)
class CountryExposure:
    """Exposure of one country, for one year, within one buffer."""
    iso3: str
    year: int
    buffer_km: int
    pop_near: Optional[float]
    pct_near: Optional[float]
    num_plants: Optional[int]
    country: str = ""

    @property
    def key(self) -> ExposureKey:
        return exposure_key(self.iso3, self.year, self.buffer_km)

    @property
    def label(self) -> str:
        return self.country or self.iso3


@dataclass(frozen=True)
class Plant:
    """One nuclear power plant.

    `populations` maps (buffer_km, year) -> people living within the buffer.
    Combinations without a value are simply absent.
    """
    name: str
    country: str
    lon: float
    lat: float
    num_reactors: Optional[int]
    populations: Dict[Tuple[int, int], float] = field(default_factory=dict, compare=False, hash=False)

    def population(self, year: int, buffer_km: int) -> Optional[float]:
        return self.populations.get((int(buffer_km), int(year)))


def plant_population_column(buffer_km: int, year: int) -> str:
    """Column naming convention of the plant table, e.g. `pop30_2010`."""
    return f"pop{buffer_km}_{year}"
