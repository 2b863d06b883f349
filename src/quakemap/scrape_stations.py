"""Scrape the seismograph station table from the Earthquakes Canada waveform page."""
from __future__ import annotations

import logging
import math
import time
from typing import Iterable, List, Optional, Sequence, Tuple

import requests
from bs4 import BeautifulSoup

from quakemap.errors import FetchError, ParseError
from quakemap.models import StationRecord
from quakemap.settings import FETCH_RETRIES, REQUEST_TIMEOUT, STATION_COLUMNS, STATION_URL

logger = logging.getLogger(__name__)

HEADERS = {
    'User-Agent': 'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36',
    'Accept': 'text/html,application/xhtml+xml',
}
# Placeholder cells used by the page's pagination and lazy loading.
PLACEHOLDER_MARKERS = ('\n', 'Loading')
BACKOFF_SECONDS = 1.0


def fetch_station_page(
    url: str = STATION_URL,
    timeout: float = REQUEST_TIMEOUT,
    retries: int = FETCH_RETRIES,
    session: Optional[requests.Session] = None,
) -> str:
    """GET ``url`` and return the HTML body.

    Connection failures and timeouts are retried ``retries`` times with
    exponential backoff. HTTP error statuses fail immediately.
    """
    getter = session.get if session is not None else requests.get
    for attempt in range(retries + 1):
        try:
            response = getter(url, headers=HEADERS, timeout=timeout)
            response.raise_for_status()
        except (requests.ConnectionError, requests.Timeout) as exc:
            if attempt >= retries:
                raise FetchError(f"Could not reach {url} after {attempt + 1} attempts: {exc}") from exc
            delay = BACKOFF_SECONDS * (2 ** attempt)
            logger.warning("Fetch of %s failed (attempt %d/%d): %s; retrying in %.0fs",
                           url, attempt + 1, retries + 1, exc, delay)
            time.sleep(delay)
            continue
        except requests.RequestException as exc:
            raise FetchError(f"Failed to fetch {url}: {exc}") from exc
        logger.info("Fetched %s (status %s)", url, response.status_code)
        return response.text
    raise FetchError(f"Could not fetch {url}")


def _is_placeholder(text: str) -> bool:
    return any(marker in text for marker in PLACEHOLDER_MARKERS)


def check_table_shape(html: str, width: int = len(STATION_COLUMNS)) -> None:
    """Fail if a table's header row does not have exactly ``width`` columns."""
    soup = BeautifulSoup(html, 'html.parser')
    for idx, table in enumerate(soup.find_all('table')):
        header_row = next((row for row in table.find_all('tr') if row.find('th')), None)
        if header_row is None:
            continue
        headers = [th.get_text(strip=True) for th in header_row.find_all('th')]
        if len(headers) != width:
            raise ParseError(f"Table {idx} has {len(headers)} columns {headers}, expected {width}")


def extract_cells(html: str) -> List[str]:
    """Return the trimmed text of every non-placeholder ``<td>`` in document order."""
    soup = BeautifulSoup(html, 'html.parser')
    cells = []
    # A td inside nested tables is still matched only once.
    for td in soup.select('table td'):
        text = td.get_text()
        if _is_placeholder(text):
            continue
        cells.append(text.strip())
    return cells


def group_cells(cells: Sequence[str], width: int = len(STATION_COLUMNS)) -> List[Tuple[str, ...]]:
    if not cells:
        raise ParseError('No station cells found in the page')
    if len(cells) % width:
        raise ParseError(
            f"Found {len(cells)} station cells, which is not a multiple of {width}; "
            "the station table layout has changed"
        )
    return [tuple(cells[i:i + width]) for i in range(0, len(cells), width)]


def parse_station(row: Sequence[str]) -> StationRecord:
    station_id, location, lat_text, lon_text = row
    try:
        latitude = float(lat_text)
        longitude = float(lon_text)
    except ValueError as exc:
        raise ParseError(
            f"Station {station_id!r} has non-numeric coordinates ({lat_text!r}, {lon_text!r})"
        ) from exc
    if not (math.isfinite(latitude) and math.isfinite(longitude)):
        raise ParseError(f"Station {station_id!r} has non-finite coordinates ({lat_text!r}, {lon_text!r})")
    if not (-90 <= latitude <= 90 and -180 <= longitude <= 180):
        raise ParseError(f"Station {station_id!r} coordinates out of range ({latitude}, {longitude})")
    return StationRecord(station_id=station_id, location=location, latitude=latitude, longitude=longitude)


def parse_stations(rows: Iterable[Sequence[str]], skip_invalid: bool = False) -> List[StationRecord]:
    """Convert grouped rows to stations; bad rows abort unless ``skip_invalid`` is set."""
    stations = []
    for row in rows:
        try:
            stations.append(parse_station(row))
        except ParseError as exc:
            if not skip_invalid:
                raise
            logger.warning("Skipping station row: %s", exc)
    return stations


def scrape_stations(
    url: str = STATION_URL,
    timeout: float = REQUEST_TIMEOUT,
    retries: int = FETCH_RETRIES,
    skip_invalid: bool = False,
    session: Optional[requests.Session] = None,
) -> List[StationRecord]:
    html = fetch_station_page(url, timeout=timeout, retries=retries, session=session)
    check_table_shape(html)
    cells = extract_cells(html)
    stations = parse_stations(group_cells(cells), skip_invalid=skip_invalid)
    logger.info("Scraped %d stations from %d table cells", len(stations), len(cells))
    return stations
