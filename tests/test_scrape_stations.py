import pytest
import requests

from quakemap import scrape_stations as scraper
from quakemap.errors import FetchError, ParseError
from quakemap.models import StationRecord

TWO_STATIONS = """
<html><body>
<table>
  <tr><td>ACTO</td><td>Actonvale, QC</td><td>45.6513</td><td>-72.5655</td></tr>
  <tr><td>ALGO</td><td>Algonquin Park, ON</td><td>45.9541</td><td>-78.0509</td></tr>
</table>
</body></html>
"""

WITH_PLACEHOLDERS = """
<table>
  <tr><td>ACTO</td><td>Actonvale, QC</td><td>45.6513</td><td>-72.5655</td></tr>
  <tr><td>Loading...</td></tr>
  <tr><td>
      1 2 3 Next
  </td></tr>
  <tr><td>ALGO</td><td>Algonquin Park, ON</td><td>45.9541</td><td>-78.0509</td></tr>
</table>
"""


class FakeResponse:
    def __init__(self, text='', status_code=200):
        self.text = text
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Server Error")


def test_extract_cells_reads_all_td_in_order():
    cells = scraper.extract_cells(TWO_STATIONS)
    assert cells == [
        'ACTO', 'Actonvale, QC', '45.6513', '-72.5655',
        'ALGO', 'Algonquin Park, ON', '45.9541', '-78.0509',
    ]


def test_extract_cells_drops_loading_and_multiline_cells():
    cells = scraper.extract_cells(WITH_PLACEHOLDERS)
    assert len(cells) == 8
    assert not any('Loading' in cell or 'Next' in cell for cell in cells)


def test_extract_cells_ignores_td_outside_tables():
    html = '<div><td>stray</td></div>' + TWO_STATIONS
    assert 'stray' not in scraper.extract_cells(html)


@pytest.mark.parametrize('count', [4, 8, 12, 40])
def test_group_cells_produces_one_row_per_four_cells(count):
    cells = [str(i) for i in range(count)]
    rows = scraper.group_cells(cells)
    assert len(rows) == count // 4
    assert rows[0] == ('0', '1', '2', '3')


@pytest.mark.parametrize('count', [1, 3, 5, 9, 10])
def test_group_cells_rejects_partial_rows(count):
    with pytest.raises(ParseError, match='not a multiple of 4'):
        scraper.group_cells(['x'] * count)


def test_group_cells_rejects_empty_table():
    with pytest.raises(ParseError, match='No station cells'):
        scraper.group_cells([])


def test_parse_station_converts_coordinates():
    station = scraper.parse_station(('ACTO', 'Actonvale, QC', '45.6513', '-72.5655'))
    assert station == StationRecord('ACTO', 'Actonvale, QC', 45.6513, -72.5655)


def test_parse_station_reports_bad_coordinates():
    with pytest.raises(ParseError, match="'BAD'"):
        scraper.parse_station(('BAD', 'Nowhere', 'n/a', '-72.0'))


def test_parse_stations_aborts_by_default():
    rows = [('ACTO', 'Actonvale, QC', '45.6513', '-72.5655'), ('BAD', 'Nowhere', 'n/a', '-72.0')]
    with pytest.raises(ParseError):
        scraper.parse_stations(rows)


def test_parse_stations_can_skip_with_warning(caplog):
    rows = [('ACTO', 'Actonvale, QC', '45.6513', '-72.5655'), ('BAD', 'Nowhere', 'n/a', '-72.0')]
    with caplog.at_level('WARNING', logger='quakemap.scrape_stations'):
        stations = scraper.parse_stations(rows, skip_invalid=True)
    assert [s.station_id for s in stations] == ['ACTO']
    assert 'BAD' in caplog.text


def test_check_table_shape_accepts_four_header_columns():
    html = '<table><tr><th>Station</th><th>Location</th><th>Lat</th><th>Lon</th></tr></table>'
    scraper.check_table_shape(html)


def test_check_table_shape_rejects_changed_layout():
    html = (
        '<table><tr><th>Station</th><th>Location</th><th>Lat</th><th>Lon</th><th>Elev</th></tr>'
        '<tr><td>ACTO</td><td>Actonvale</td><td>45.6</td><td>-72.5</td><td>100</td></tr></table>'
    )
    with pytest.raises(ParseError, match='5 columns'):
        scraper.check_table_shape(html)


def test_scrape_stations_end_to_end(monkeypatch):
    calls = []

    def fake_get(url, headers=None, timeout=None):
        calls.append((url, timeout))
        return FakeResponse(TWO_STATIONS)

    monkeypatch.setattr(scraper.requests, 'get', fake_get)

    stations = scraper.scrape_stations('https://example.test/stations', timeout=5)

    assert calls == [('https://example.test/stations', 5)]
    assert [s.station_id for s in stations] == ['ACTO', 'ALGO']
    assert all(isinstance(s.latitude, float) and isinstance(s.longitude, float) for s in stations)
    assert stations[1].location == 'Algonquin Park, ON'


def test_fetch_uses_session_when_given():
    class FakeSession:
        def __init__(self):
            self.urls = []

        def get(self, url, headers=None, timeout=None):
            self.urls.append(url)
            return FakeResponse('<html></html>')

    session = FakeSession()
    assert scraper.fetch_station_page('https://example.test', session=session) == '<html></html>'
    assert session.urls == ['https://example.test']


def test_fetch_http_error_is_not_retried(monkeypatch):
    calls = []

    def fake_get(url, headers=None, timeout=None):
        calls.append(url)
        return FakeResponse(status_code=503)

    monkeypatch.setattr(scraper.requests, 'get', fake_get)
    with pytest.raises(FetchError, match='503'):
        scraper.fetch_station_page('https://example.test', retries=3)
    assert len(calls) == 1


def test_fetch_retries_connection_errors_then_succeeds(monkeypatch):
    attempts = []
    sleeps = []

    def fake_get(url, headers=None, timeout=None):
        attempts.append(url)
        if len(attempts) < 3:
            raise requests.ConnectionError('connection refused')
        return FakeResponse(TWO_STATIONS)

    monkeypatch.setattr(scraper.requests, 'get', fake_get)
    monkeypatch.setattr(scraper.time, 'sleep', sleeps.append)

    html = scraper.fetch_station_page('https://example.test', retries=2)

    assert 'ACTO' in html
    assert len(attempts) == 3
    assert sleeps == [1.0, 2.0]


def test_fetch_gives_up_after_retries(monkeypatch):
    def fake_get(url, headers=None, timeout=None):
        raise requests.Timeout('read timed out')

    monkeypatch.setattr(scraper.requests, 'get', fake_get)
    monkeypatch.setattr(scraper.time, 'sleep', lambda _: None)

    with pytest.raises(FetchError, match='after 2 attempts'):
        scraper.fetch_station_page('https://example.test', retries=1)


def test_extract_cells_reads_nested_table_cells_once():
    html = (
        '<table><tr><td>'
        '<table><tr><td>ACTO</td><td>Acton</td><td>45.6</td><td>-72.5</td></tr></table>'
        '</td></tr></table>'
    )
    cells = scraper.extract_cells(html)
    assert cells.count('ACTO') == 1
    assert cells[-4:] == ['ACTO', 'Acton', '45.6', '-72.5']


@pytest.mark.parametrize('lat_text, lon_text', [('NaN', '-72.0'), ('45.0', 'inf'), ('-inf', '10.0')])
def test_parse_station_rejects_non_finite_coordinates(lat_text, lon_text):
    with pytest.raises(ParseError, match='non-finite'):
        scraper.parse_station(('NANS', 'Nowhere', lat_text, lon_text))


@pytest.mark.parametrize('lat_text, lon_text', [('91.0', '-72.0'), ('45.0', '-181.5')])
def test_parse_station_rejects_out_of_range_coordinates(lat_text, lon_text):
    with pytest.raises(ParseError, match='out of range'):
        scraper.parse_station(('FAR', 'Nowhere', lat_text, lon_text))
