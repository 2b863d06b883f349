#!/usr/bin/env python3
"""Compose earthquake and seismograph station layers into interactive Leaflet maps.

A map is built as a chain of pure calls over an immutable `MapState`:

    state = new_map()
    state = add_base_tiles(state)
    state = add_point_layer(state, quakes, PointStyle(fill_color=scale), popup_field='popup')
    state = add_color_legend(state, scale, 'magnitude', 'Magnitude')
    state = add_scale_bar(state, 'bottomleft')

`render_map` turns the finished state into a ``folium.Map`` and `save_map`
writes it out as a standalone HTML page.
"""
from __future__ import annotations

import argparse
import dataclasses
import html
import logging
import math
from functools import partial
from pathlib import Path
from typing import Any, Iterable, List, Optional, Sequence, Union

import folium
from branca.element import MacroElement
from jinja2 import Template

from quakemap.color_scale import ColorScale, Palette
from quakemap.errors import QuakeMapError, RenderError
from quakemap.load_earthquakes import filter_by_year, load_earthquakes, magnitude_range, records_to_frame
from quakemap.models import (
    EarthquakeRecord,
    Legend,
    MapLayer,
    MapState,
    PointMarker,
    PointStyle,
    StationRecord,
    field_value,
)
from quakemap.popups import earthquake_popup, station_popup, with_popups
from quakemap.scrape_stations import scrape_stations
from quakemap.settings import (
    DATA_FILE,
    FETCH_RETRIES,
    LOG_LEVEL,
    OUTPUT_DIR,
    PALETTE,
    REQUEST_TIMEOUT,
    STATION_URL,
    TARGET_YEAR,
)

logger = logging.getLogger(__name__)

CORNERS = ('topleft', 'topright', 'bottomleft', 'bottomright')
POPUP_MAX_WIDTH = 300

STATION_STYLE = PointStyle(fill_color='black', fill_opacity=1.0, stroke=False, radius=3)


def _earthquake_style(scale: ColorScale) -> PointStyle:
    return PointStyle(fill_color=scale, fill_opacity=0.8, stroke_color='black', stroke_weight=1, radius=5)


class _ScaleBar(MacroElement):
    _template = Template(
        """
        {% macro script(this, kwargs) %}
        L.control.scale({position: {{ this.position|tojson }}}).addTo({{ this._parent.get_name() }});
        {% endmacro %}
        """
    )

    def __init__(self, position: str = 'bottomleft'):
        super().__init__()
        self._name = 'ScaleBar'
        self.position = position


# -----------------------------------------------------------------------------------------------
# Builder


def new_map() -> MapState:
    return MapState()


def add_base_tiles(state: MapState, tiles: str = 'OpenStreetMap') -> MapState:
    return dataclasses.replace(state, tiles=tiles)


def _check_style(style: PointStyle) -> None:
    if not 0 <= style.fill_opacity <= 1:
        raise RenderError(f"fill_opacity must be between 0 and 1, got {style.fill_opacity}")
    if style.radius < 0:
        raise RenderError(f"radius must not be negative, got {style.radius}")
    if style.stroke_weight < 0:
        raise RenderError(f"stroke_weight must not be negative, got {style.stroke_weight}")
    if not isinstance(style.fill_color, (str, ColorScale)):
        raise RenderError(f"fill_color must be a color or a ColorScale, got {type(style.fill_color).__name__}")


def _read(record: Any, name: str, role: str) -> Any:
    try:
        return field_value(record, name)
    except AttributeError as exc:
        raise RenderError(f"Unknown {role} field {name!r} on {type(record).__name__}") from exc


def _label_text(value: Any) -> str:
    if isinstance(value, float):
        value = f"{value:g}"
    return html.escape(str(value))


def _marker(
    record: Any,
    style: PointStyle,
    popup_field: Optional[str],
    label_field: Optional[str],
) -> PointMarker:
    if isinstance(style.fill_color, ColorScale):
        fill_color = style.fill_color.color_for(record)
    else:
        fill_color = style.fill_color
    popup = str(_read(record, popup_field, 'popup')) if popup_field else None
    label = _label_text(_read(record, label_field, 'label')) if label_field else None
    return PointMarker(
        latitude=float(_read(record, 'latitude', 'coordinate')),
        longitude=float(_read(record, 'longitude', 'coordinate')),
        fill_color=fill_color,
        popup=popup,
        label=label,
    )


def add_point_layer(
    state: MapState,
    records: Iterable[Any],
    style: PointStyle,
    popup_field: Optional[str] = None,
    label_field: Optional[str] = None,
    name: Optional[str] = None,
) -> MapState:
    """Add one circle-marker layer drawn at each record's latitude/longitude.

    ``popup_field`` names the field holding click-popup HTML and
    ``label_field`` the field shown as plain text on hover.
    """
    _check_style(style)
    markers = tuple(_marker(record, style, popup_field, label_field) for record in records)
    layer = MapLayer(name=name or f"Layer {len(state.layers) + 1}", markers=markers, style=style)
    return dataclasses.replace(state, layers=state.layers + (layer,))


def add_color_legend(state: MapState, color_scale: ColorScale, field: str, title: str) -> MapState:
    if field != color_scale.field:
        raise RenderError(f"Legend field {field!r} does not match the scale field {color_scale.field!r}")
    legend = Legend(scale=color_scale, field=field, title=title)
    return dataclasses.replace(state, legends=state.legends + (legend,))


def add_scale_bar(state: MapState, position: str = 'bottomleft') -> MapState:
    if position not in CORNERS:
        raise RenderError(f"Scale bar position must be one of {CORNERS}, got {position!r}")
    return dataclasses.replace(state, scale_bar=position)


# -----------------------------------------------------------------------------------------------
# Rendering


def _bounds(state: MapState) -> Optional[List[List[float]]]:
    points = [
        (m.latitude, m.longitude)
        for layer in state.layers
        for m in layer.markers
        if not (math.isnan(m.latitude) or math.isnan(m.longitude))
    ]
    if not points:
        return None
    lats = [lat for lat, _ in points]
    lngs = [lng for _, lng in points]
    return [[min(lats), min(lngs)], [max(lats), max(lngs)]]


def _circle_marker(marker: PointMarker, style: PointStyle) -> folium.CircleMarker:
    kwargs = {
        'location': [marker.latitude, marker.longitude],
        'radius': style.radius,
        'stroke': style.stroke,
        'color': style.stroke_color,
        'weight': style.stroke_weight,
        'fill': True,
        'fill_color': marker.fill_color,
        'fill_opacity': style.fill_opacity,
    }
    if marker.popup is not None:
        kwargs['popup'] = folium.Popup(marker.popup, max_width=POPUP_MAX_WIDTH)
    if marker.label is not None:
        kwargs['tooltip'] = folium.Tooltip(marker.label)
    return folium.CircleMarker(**kwargs)


def render_map(state: MapState) -> folium.Map:
    """Materialise ``state`` as a folium map; layers stack in the order they were added."""
    bounds = _bounds(state)
    if bounds:
        center = [(bounds[0][0] + bounds[1][0]) / 2, (bounds[0][1] + bounds[1][1]) / 2]
    else:
        center = [0.0, 0.0]
    fmap = folium.Map(location=center, zoom_start=2, tiles=None)
    if state.tiles:
        folium.TileLayer(state.tiles).add_to(fmap)
    for layer in state.layers:
        group = folium.FeatureGroup(name=layer.name)
        for marker in layer.markers:
            _circle_marker(marker, layer.style).add_to(group)
        group.add_to(fmap)
    for legend in state.legends:
        legend.scale.legend(legend.title).add_to(fmap)
    if state.scale_bar:
        _ScaleBar(state.scale_bar).add_to(fmap)
    if len(state.layers) > 1:
        folium.LayerControl(collapsed=False).add_to(fmap)
    if bounds:
        fmap.fit_bounds(bounds)
    return fmap


def save_map(state: MapState, path: Union[str, Path]) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    render_map(state).save(str(path))
    logger.info("✔️  Wrote %s", path)
    return path


# -----------------------------------------------------------------------------------------------
# Composite maps


def build_earthquake_map(quakes: Sequence[EarthquakeRecord], scale: ColorScale) -> MapState:
    state = add_base_tiles(new_map())
    state = overlay_earthquakes(state, quakes, scale)
    return add_scale_bar(state, 'bottomleft')


def build_station_map(stations: Sequence[StationRecord], base_url: str = STATION_URL) -> MapState:
    display = with_popups(stations, partial(station_popup, base_url=base_url))
    state = add_base_tiles(new_map())
    state = add_point_layer(state, display, STATION_STYLE, popup_field='popup', name='Seismograph stations')
    return add_scale_bar(state, 'bottomleft')


def overlay_earthquakes(state: MapState, quakes: Sequence[EarthquakeRecord], scale: ColorScale) -> MapState:
    display = with_popups(quakes, earthquake_popup)
    state = add_point_layer(
        state,
        display,
        _earthquake_style(scale),
        popup_field='popup',
        label_field='magnitude_type',
        name='Earthquakes',
    )
    return add_color_legend(state, scale, 'magnitude', 'Magnitude')


def build_maps(
    data_file: Path,
    year: int,
    url: str,
    output_dir: Path,
    palette: Palette = PALETTE,
    skip_bad_stations: bool = False,
    timeout: float = REQUEST_TIMEOUT,
    retries: int = FETCH_RETRIES,
) -> List[Path]:
    """Run the whole pipeline; maps are written only once loading, scraping and composition succeed.

    A year without earthquakes still produces the station map.
    """
    quakes = filter_by_year(load_earthquakes(data_file), year)
    scale = None
    if quakes:
        low, high = magnitude_range(quakes)
        logger.info("Magnitudes in %d range from %g to %g", year, low, high)
        logger.debug("First earthquakes of %d:\n%s", year, records_to_frame(quakes).head())
        scale = ColorScale.from_records(quakes, 'magnitude', palette)
    else:
        logger.warning("No earthquakes recorded in %d; only the station map will be written", year)
    stations = scrape_stations(url, timeout=timeout, retries=retries, skip_invalid=skip_bad_stations)

    station_map = build_station_map(stations, url)
    if scale is None:
        return [save_map(station_map, output_dir / 'stations.html')]
    quake_map = build_earthquake_map(quakes, scale)
    overlay = overlay_earthquakes(station_map, quakes, scale)

    return [
        save_map(quake_map, output_dir / f"earthquakes_{year}.html"),
        save_map(station_map, output_dir / 'stations.html'),
        save_map(overlay, output_dir / f"stations_and_earthquakes_{year}.html"),
    ]


def main(argv: Optional[Sequence[str]] = None) -> None:
    parser = argparse.ArgumentParser(description='Map earthquakes and Canadian seismograph stations.')
    parser.add_argument('--data', type=Path, default=DATA_FILE, help='Cleaned earthquake CSV')
    parser.add_argument('--year', type=int, default=TARGET_YEAR, help='Calendar year to map')
    parser.add_argument('--url', default=STATION_URL, help='Station listing page')
    parser.add_argument('--output', type=Path, default=OUTPUT_DIR, help='Directory for the HTML maps')
    parser.add_argument('--palette', default=PALETTE, help='ColorBrewer palette for magnitudes')
    parser.add_argument('--skip-bad-stations', action='store_true',
                        help='Skip station rows with unreadable coordinates instead of aborting')
    args = parser.parse_args(argv)

    logging.basicConfig(level=LOG_LEVEL, format='%(asctime)s %(levelname)s %(name)s: %(message)s')
    try:
        build_maps(
            args.data,
            args.year,
            args.url,
            args.output,
            palette=args.palette,
            skip_bad_stations=args.skip_bad_stations,
        )
    except QuakeMapError as exc:
        logger.error("%s: %s", type(exc).__name__, exc)
        raise SystemExit(1) from exc


if __name__ == '__main__':
    main()
