"""
Dataset loader (tables + boundaries -> RecordStore)
===================================================

This module reads the three raw sources of the dashboard and converts them
into immutable records:

- country exposure table (CSV or Excel) -> `CountryExposure` records
- plant table (CSV or Excel)            -> `Plant` records
- boundary file (GeoJSON)               -> list of features

Key ideas:
- We try multiple possible column names because exports may vary.
- Conversion helpers (_to_int/_to_float/_to_str) safely handle blanks.
- The three sources are read concurrently, but a store is only returned
  once all of them loaded; any failure raises a single `LoadError`.
"""

from __future__ import annotations
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set, Tuple, Union
import json
import logging
import re

import pandas as pd

from .models import BUFFERS, CountryExposure, ExposureKey, Plant, exposure_key, normalize_code, resolve_alias

logger = logging.getLogger(__name__)

Rows = Union[pd.DataFrame, Iterable[Dict[str, Any]]]

_POP_COL_RE = re.compile(r"^pop(\d+)_(\d{4})$", re.IGNORECASE)

# Candidate fields for a feature's entity code, in priority order
FEATURE_CODE_FIELDS = ("iso_a3", "ISO_A3", "adm0_a3", "ADM0_A3", "iso3", "ISO3")
FEATURE_NAME_FIELDS = ("name", "ADMIN", "NAME")


class LoadError(RuntimeError):
    """Raised when a raw source cannot be read or parsed."""


@dataclass(frozen=True)
class RecordStore:
    """Cleaned, immutable collections of records."""
    exposures: Tuple[CountryExposure, ...]
    plants: Tuple[Plant, ...]
    allowed_buffers: Tuple[int, ...] = BUFFERS

    def filtered(self, allowed_buffers: Sequence[int]) -> "RecordStore":
        """Keep only exposures whose buffer is in `allowed_buffers`."""
        allowed = tuple(int(b) for b in allowed_buffers)
        kept = tuple(e for e in self.exposures if e.buffer_km in allowed)
        return RecordStore(exposures=kept, plants=self.plants, allowed_buffers=allowed)


# ---------------- Cell conversion ----------------
def _to_int(x) -> Optional[int]:
    """Convert a cell to int, returning None if missing/invalid."""
    if x is None or pd.isna(x): return None
    try: return int(float(x))
    except (TypeError, ValueError): return None

def _to_float(x) -> Optional[float]:
    """Convert a cell to float, returning None if missing/invalid."""
    if x is None or pd.isna(x): return None
    try: return float(x)
    except (TypeError, ValueError): return None

def _to_str(x) -> str:
    if x is None or pd.isna(x): return ""
    return str(x).strip()

def _norm(s: str) -> str:
    return re.sub(r"[^a-z0-9]+", "", str(s).lower())

def _find_col(df: pd.DataFrame, *names: str) -> Optional[str]:
    cols = list(df.columns)
    for n in names:
        if n in cols:
            return n
    norm_map = {_norm(c): c for c in cols}
    for n in names:
        nn = _norm(n)
        if nn in norm_map:
            return norm_map[nn]
    return None

def _col(df: pd.DataFrame, *names: str) -> str:
    c = _find_col(df, *names)
    if c is None:
        raise LoadError(f"Missing required column. Tried={names}. Available={list(df.columns)}")
    return c

def _as_frame(rows: Rows) -> pd.DataFrame:
    if isinstance(rows, pd.DataFrame):
        df = rows
    else:
        df = pd.DataFrame(list(rows))
    return df.rename(columns={c: str(c).strip() for c in df.columns})


# ---------------- Records ----------------
def exposures_from_rows(rows: Rows, allowed_buffers: Sequence[int] = BUFFERS) -> List[CountryExposure]:
    """Convert raw exposure rows, dropping rows outside `allowed_buffers`."""
    df = _as_frame(rows)
    if df.empty:
        return []

    iso_col = _col(df, "iso3", "ISO3", "iso_a3", "entity", "code")
    year_col = _col(df, "year", "Year")
    buf_col = _col(df, "buffer_km", "buffer", "buffer km")
    pct_col = _col(df, "pct_near", "pct")
    pop_col = _col(df, "pop_near", "population near")
    plants_col = _col(df, "num_plants", "plants")
    name_col = _find_col(df, "country", "name", "country_name")

    allowed = {int(b) for b in allowed_buffers}
    out: List[CountryExposure] = []
    seen: Set[ExposureKey] = set()
    dropped_buffer = dropped_code = dropped_dup = 0
    for _, row in df.iterrows():
        buffer_km = _to_int(row[buf_col])
        if buffer_km not in allowed:
            dropped_buffer += 1
            continue
        iso3 = normalize_code(_to_str(row[iso_col]))
        year = _to_int(row[year_col])
        if iso3 is None or year is None:
            dropped_code += 1
            continue
        # (iso3, year, buffer) is the primary key; the first row wins
        key = exposure_key(iso3, year, buffer_km)
        if key in seen:
            dropped_dup += 1
            continue
        seen.add(key)
        out.append(CountryExposure(
            iso3=iso3,
            year=year,
            buffer_km=buffer_km,
            pop_near=_to_float(row[pop_col]),
            pct_near=_to_float(row[pct_col]),
            num_plants=_to_int(row[plants_col]),
            country=_to_str(row[name_col]) if name_col else "",
        ))

    if dropped_buffer:
        logger.info("Dropped %d exposure rows outside buffers %s", dropped_buffer, sorted(allowed))
    if dropped_code:
        logger.warning("Dropped %d exposure rows without a valid entity code or year", dropped_code)
    if dropped_dup:
        logger.warning("Dropped %d exposure rows repeating an (iso3, year, buffer) key", dropped_dup)
    return out


def plants_from_rows(rows: Rows) -> List[Plant]:
    df = _as_frame(rows)
    if df.empty:
        return []

    name_col = _col(df, "plant", "name", "plant_name")
    country_col = _col(df, "country")
    lon_col = _col(df, "lon", "longitude")
    lat_col = _col(df, "lat", "latitude")
    reactors_col = _col(df, "num_reactors", "reactors")

    pop_cols: List[Tuple[str, Tuple[int, int]]] = []
    for c in df.columns:
        m = _POP_COL_RE.match(str(c))
        if m:
            pop_cols.append((c, (int(m.group(1)), int(m.group(2)))))

    out: List[Plant] = []
    dropped_coords = 0
    for _, row in df.iterrows():
        lon = _to_float(row[lon_col])
        lat = _to_float(row[lat_col])
        if lon is None or lat is None:
            dropped_coords += 1
            continue
        pops: Dict[Tuple[int, int], float] = {}
        for c, combo in pop_cols:
            v = _to_float(row[c])
            if v is not None:
                pops[combo] = v
        out.append(Plant(
            name=_to_str(row[name_col]),
            country=_to_str(row[country_col]),
            lon=lon,
            lat=lat,
            num_reactors=_to_int(row[reactors_col]),
            populations=pops,
        ))
    if dropped_coords:
        logger.warning("Dropped %d plant rows without coordinates", dropped_coords)
    return out


def load_store(country_rows: Rows, plant_rows: Rows, allowed_buffers: Sequence[int] = BUFFERS) -> RecordStore:
    """Build a RecordStore from raw rows.

    Country rows whose buffer is not in `allowed_buffers` are dropped, as are
    rows repeating an (iso3, year, buffer) key (the first one is kept) and
    plants without coordinates. Exposure codes are uppercased but not
    aliased, so distinct codes stay distinct records.
    """
    exposures = exposures_from_rows(country_rows, allowed_buffers)
    plants = plants_from_rows(plant_rows)
    logger.info("Loaded %d exposure records and %d plants", len(exposures), len(plants))
    return RecordStore(
        exposures=tuple(exposures),
        plants=tuple(plants),
        allowed_buffers=tuple(int(b) for b in allowed_buffers),
    )


# ---------------- Boundaries ----------------
def feature_entity(feature: Dict[str, Any]) -> Optional[str]:
    """Resolve a GeoJSON feature to a canonical 3-letter entity code.

    Candidates are tried in priority order: the feature id, then the
    property fields in FEATURE_CODE_FIELDS. Returns None ("no entity")
    when nothing looks like a 3-letter code.
    """
    props = feature.get("properties") or {}
    candidates = [feature.get("id")] + [props.get(f) for f in FEATURE_CODE_FIELDS]
    for c in candidates:
        if not c:
            continue
        code = resolve_alias(str(c))
        if code is not None:
            return code
    return None


def feature_name(feature: Dict[str, Any]) -> str:
    props = feature.get("properties") or {}
    for f in FEATURE_NAME_FIELDS:
        if props.get(f):
            return str(props[f])
    return "Unknown"


# ---------------- File reading ----------------
def read_table(path: Union[str, Path]) -> pd.DataFrame:
    """Read a CSV or Excel table into a DataFrame."""
    p = Path(path)
    if p.suffix.lower() in (".xlsx", ".xlsm", ".xls"):
        return pd.read_excel(p, engine="openpyxl")
    return pd.read_csv(p)


def read_boundaries(path: Union[str, Path]) -> List[Dict[str, Any]]:
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    if isinstance(data, dict) and "features" in data:
        return list(data["features"])
    raise ValueError(f"{path} is not a GeoJSON FeatureCollection")


def load_sources(
    exposure_path: Union[str, Path],
    plants_path: Union[str, Path],
    boundaries_path: Optional[Union[str, Path]] = None,
    allowed_buffers: Sequence[int] = BUFFERS,
) -> Tuple[RecordStore, List[Dict[str, Any]]]:
    """Read all raw sources concurrently and build the store.

    Returns (store, boundary features). Raises LoadError if any source fails;
    nothing is returned until every source has loaded.
    """
    with ThreadPoolExecutor(max_workers=3) as pool:
        f_exp = pool.submit(read_table, exposure_path)
        f_plants = pool.submit(read_table, plants_path)
        f_geo = pool.submit(read_boundaries, boundaries_path) if boundaries_path else None
        try:
            exposure_df = f_exp.result()
            plants_df = f_plants.result()
            features = f_geo.result() if f_geo else []
        except LoadError:
            raise
        except Exception as e:
            raise LoadError(f"Failed to read data sources: {e}") from e

    store = load_store(exposure_df, plants_df, allowed_buffers)
    unresolved = sum(1 for f in features if feature_entity(f) is None)
    if unresolved:
        logger.info("%d boundary features have no entity code", unresolved)
    return store, features
