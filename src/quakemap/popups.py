"""HTML popup fragments for earthquake and station markers.

Field values are escaped before they are interpolated, so a location name or
station id can never break the surrounding markup.
"""
from __future__ import annotations

import html
from typing import Callable, Iterable, List, Union
from urllib.parse import quote

from quakemap.models import DisplayRecord, EarthquakeRecord, StationRecord
from quakemap.settings import STATION_URL


def _fmt(value: Union[float, object]) -> str:
    if isinstance(value, float):
        return f"{value:g}"
    return str(value)


def earthquake_popup(record: EarthquakeRecord) -> str:
    return (
        f"<b>Date: </b>{html.escape(record.date.isoformat())}<br>"
        f"<b>Magnitude: </b>{html.escape(_fmt(record.magnitude))} {html.escape(record.magnitude_type)}<br>"
        f"<b>Depth: </b>{html.escape(_fmt(record.depth))}"
    )


def station_link(station_id: str, base_url: str = STATION_URL) -> str:
    """Live seismogram URL for a station: the listing page with ``channel=<id>``."""
    separator = '&' if '?' in base_url else '?'
    return f"{base_url}{separator}channel={quote(station_id, safe='')}"


def station_popup(record: StationRecord, base_url: str = STATION_URL) -> str:
    link = station_link(record.station_id, base_url)
    return (
        f"<b>Station ID: </b>{html.escape(record.station_id)}<br>"
        f"<a href=\"{html.escape(link, quote=True)}\">See the shaking!</a>"
    )


def with_popups(
    records: Iterable[Union[EarthquakeRecord, StationRecord]],
    formatter: Callable[[Union[EarthquakeRecord, StationRecord]], str],
) -> List[DisplayRecord]:
    return [DisplayRecord(record=record, popup=formatter(record)) for record in records]
