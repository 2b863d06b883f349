"""Load the cleaned earthquake catalogue and slice it by calendar year."""
from __future__ import annotations

import logging
import math
from pathlib import Path
from typing import Iterable, List, Union

import pandas as pd

from quakemap.errors import LoadError
from quakemap.models import EarthquakeRecord
from quakemap.settings import REQUIRED_COLUMNS

logger = logging.getLogger(__name__)


def _read_csv(path: Path) -> pd.DataFrame:
    if not path.exists():
        raise LoadError(f"Missing earthquake file: {path}")
    try:
        df = pd.read_csv(path)
    except (pd.errors.EmptyDataError, pd.errors.ParserError, UnicodeDecodeError, OSError) as exc:
        raise LoadError(f"Could not parse {path}: {exc}") from exc
    df = df.rename(columns={c: str(c).strip() for c in df.columns})
    missing = set(REQUIRED_COLUMNS) - set(df.columns)
    if missing:
        raise LoadError(f"Earthquake CSV missing columns: {sorted(missing)}")
    return df


def _bad_rows(mask: pd.Series) -> List[int]:
    return [int(idx) for idx in mask[mask].index[:5]]


def load_earthquakes(path: Union[str, Path]) -> List[EarthquakeRecord]:
    """Read ``path`` into immutable earthquake records, in file order.

    Dates must parse and coordinates must be numeric; anything else is a
    `LoadError`. Blank magnitudes or depths are kept as NaN.
    """
    path = Path(path)
    df = _read_csv(path)

    dates = pd.to_datetime(df['date'], errors='coerce', format='ISO8601')
    if dates.isna().any():
        raise LoadError(f"Unparsable dates in {path.name} at rows {_bad_rows(dates.isna())}")
    coords = {col: pd.to_numeric(df[col], errors='coerce') for col in ('latitude', 'longitude')}
    for col, values in coords.items():
        bad = values.isna() | values.isin([math.inf, -math.inf])
        if bad.any():
            raise LoadError(f"Non-numeric or infinite {col} in {path.name} at rows {_bad_rows(bad)}")
    magnitude = pd.to_numeric(df['magnitude'], errors='coerce')
    depth = pd.to_numeric(df['depth'], errors='coerce')
    magnitude_type = df['magnitude.type'].fillna('').astype(str).str.strip()

    records = [
        EarthquakeRecord(
            date=when.date(),
            magnitude=float(mag),
            magnitude_type=mtype,
            depth=float(dep),
            latitude=float(lat),
            longitude=float(lon),
        )
        for when, mag, mtype, dep, lat, lon in zip(
            dates, magnitude, magnitude_type, depth, coords['latitude'], coords['longitude']
        )
    ]
    logger.info("Loaded %d earthquake records from %s", len(records), path)
    return records


def filter_by_year(records: Iterable[EarthquakeRecord], year: int) -> List[EarthquakeRecord]:
    """Return the records dated in ``year``, keeping their relative order."""
    source = list(records)
    kept = [record for record in source if record.date.year == year]
    logger.info("Kept %d of %d earthquakes recorded in %d", len(kept), len(source), year)
    return kept


def records_to_frame(records: Iterable[EarthquakeRecord]) -> pd.DataFrame:
    rows = [
        {
            'date': record.date,
            'magnitude': record.magnitude,
            'magnitude.type': record.magnitude_type,
            'depth': record.depth,
            'latitude': record.latitude,
            'longitude': record.longitude,
        }
        for record in records
    ]
    return pd.DataFrame(rows, columns=list(REQUIRED_COLUMNS))


def magnitude_range(records: Iterable[EarthquakeRecord]) -> tuple:
    values = [record.magnitude for record in records if not math.isnan(record.magnitude)]
    if not values:
        return (math.nan, math.nan)
    return (min(values), max(values))
