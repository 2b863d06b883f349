"""
Data model
==========

Every stage hands the next one frozen records. Filters and popup derivation
build new collections; nothing is edited after it has been created.

- `EarthquakeRecord` is one row of the cleaned earthquake CSV.
- `StationRecord` is one row of the scraped seismograph station table.
- `DisplayRecord` pairs either record with its HTML popup right before rendering.
- `PointStyle`, `PointMarker`, `MapLayer`, `Legend` and `MapState` describe the
  map while it is being composed (see `build_quake_map`).
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import TYPE_CHECKING, Any, Optional, Tuple, Union

if TYPE_CHECKING:
    from quakemap.color_scale import ColorScale


@dataclass(frozen=True)
class EarthquakeRecord:
    """One earthquake; ``magnitude`` and ``depth`` are NaN when the CSV leaves them blank."""
    date: date
    magnitude: float
    magnitude_type: str
    depth: float
    latitude: float
    longitude: float


@dataclass(frozen=True)
class StationRecord:
    station_id: str
    location: str
    latitude: float
    longitude: float


@dataclass(frozen=True)
class DisplayRecord:
    """A record plus its popup HTML. Unknown attributes are read from ``record``."""
    record: Union[EarthquakeRecord, StationRecord]
    popup: str

    @property
    def latitude(self) -> float:
        return self.record.latitude

    @property
    def longitude(self) -> float:
        return self.record.longitude

    def value(self, name: str) -> Any:
        if name in ('record', 'popup'):
            return getattr(self, name)
        return getattr(self.record, name)


@dataclass(frozen=True)
class PointStyle:
    """Marker style shared by a layer.

    ``fill_color`` is either a constant CSS color or a `ColorScale`, in which
    case every point is colored by the scale's field.
    """
    fill_color: Union[str, 'ColorScale'] = '#3388ff'
    fill_opacity: float = 0.8
    stroke: bool = True
    stroke_color: str = 'black'
    stroke_weight: float = 1
    radius: float = 5


@dataclass(frozen=True)
class PointMarker:
    latitude: float
    longitude: float
    fill_color: str
    popup: Optional[str] = None
    label: Optional[str] = None


@dataclass(frozen=True)
class MapLayer:
    name: str
    markers: Tuple[PointMarker, ...]
    style: PointStyle


@dataclass(frozen=True)
class Legend:
    scale: 'ColorScale'
    field: str
    title: str


@dataclass(frozen=True)
class MapState:
    """A map under construction. Builder functions return copies, never edit in place."""
    tiles: Optional[str] = None
    layers: Tuple[MapLayer, ...] = field(default_factory=tuple)
    legends: Tuple[Legend, ...] = field(default_factory=tuple)
    scale_bar: Optional[str] = None


def field_value(item: Any, name: str) -> Any:
    """Read ``name`` from a record or a `DisplayRecord`, raising ``AttributeError`` if absent."""
    if isinstance(item, DisplayRecord):
        return item.value(name)
    return getattr(item, name)
