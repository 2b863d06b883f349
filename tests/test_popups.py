from datetime import date

import pytest

from quakemap import popups
from quakemap.models import DisplayRecord, EarthquakeRecord, StationRecord

QUAKE = EarthquakeRecord(date(2019, 1, 5), 4.1, 'MN', 10.0, 45.1, -75.2)
STATION = StationRecord('ACTO', 'Actonvale, QC', 45.6513, -72.5655)
BASE_URL = 'https://earthquakescanada.nrcan.gc.ca/stndon/wf-fo/index-en.php'


def test_earthquake_popup_layout():
    assert popups.earthquake_popup(QUAKE) == (
        '<b>Date: </b>2019-01-05<br>'
        '<b>Magnitude: </b>4.1 MN<br>'
        '<b>Depth: </b>10'
    )


def test_earthquake_popup_is_deterministic():
    assert popups.earthquake_popup(QUAKE) == popups.earthquake_popup(QUAKE)


def test_earthquake_popup_escapes_markup():
    record = EarthquakeRecord(date(2019, 1, 5), 4.1, '<script>', 10.0, 45.1, -75.2)
    html = popups.earthquake_popup(record)
    assert '<script>' not in html
    assert '&lt;script&gt;' in html


def test_station_link_appends_channel():
    assert popups.station_link('ACTO', BASE_URL) == f"{BASE_URL}?channel=ACTO"


def test_station_link_extends_existing_query():
    assert popups.station_link('ACTO', 'https://example.test/wf?lang=en') == (
        'https://example.test/wf?lang=en&channel=ACTO'
    )


def test_station_popup_layout():
    assert popups.station_popup(STATION, BASE_URL) == (
        '<b>Station ID: </b>ACTO<br>'
        f'<a href="{BASE_URL}?channel=ACTO">See the shaking!</a>'
    )


@pytest.mark.parametrize('station_id', ['ACTO', 'ALGO', 'BBB', 'YKW3'])
def test_station_popup_contains_channel_once(station_id):
    station = StationRecord(station_id, 'Somewhere', 50.0, -100.0)
    html = popups.station_popup(station, BASE_URL)
    assert html.count(f"channel={station_id}") == 1
    assert html == popups.station_popup(station, BASE_URL)


def test_station_popup_escapes_id_in_text_and_link():
    station = StationRecord('A"B<C', 'Somewhere', 50.0, -100.0)
    html = popups.station_popup(station, BASE_URL)
    assert '<C' not in html
    assert 'channel=A%22B%3CC' in html


def test_with_popups_wraps_each_record_in_order():
    second = StationRecord('ALGO', 'Algonquin Park, ON', 45.9541, -78.0509)
    display = popups.with_popups([STATION, second], popups.station_popup)
    assert [d.record for d in display] == [STATION, second]
    assert all(isinstance(d, DisplayRecord) for d in display)
    assert display[1].value('location') == 'Algonquin Park, ON'
    assert display[0].latitude == pytest.approx(45.6513)
