"""Runtime defaults, overridable through ``QUAKEMAP_*`` environment variables."""
from __future__ import annotations

import os
from pathlib import Path

DATA_FILE = Path(os.environ.get('QUAKEMAP_DATA_FILE', Path.cwd() / 'clean_earthquake.csv'))
OUTPUT_DIR = Path(os.environ.get('QUAKEMAP_OUTPUT_DIR', Path.cwd() / 'quake_map'))
STATION_URL = os.environ.get(
    'QUAKEMAP_STATION_URL',
    'https://earthquakescanada.nrcan.gc.ca/stndon/wf-fo/index-en.php',
)
TARGET_YEAR = int(os.environ.get('QUAKEMAP_YEAR', 2019))
PALETTE = os.environ.get('QUAKEMAP_PALETTE', 'OrRd')
REQUEST_TIMEOUT = float(os.environ.get('QUAKEMAP_TIMEOUT', 30))
FETCH_RETRIES = int(os.environ.get('QUAKEMAP_FETCH_RETRIES', 2))
LOG_LEVEL = os.environ.get('QUAKEMAP_LOG_LEVEL', 'INFO')

REQUIRED_COLUMNS = ('date', 'magnitude', 'magnitude.type', 'depth', 'latitude', 'longitude')
STATION_COLUMNS = ('station_id', 'location', 'latitude', 'longitude')
NA_COLOR = '#808080'
