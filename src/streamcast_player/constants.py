import os

APP_DATA_DIR = os.path.join(
    os.path.expanduser('~'), ".streamcast", "app_data"
)

# Flag file touched whenever an instance on this device persists a new bundle
CROSS_INSTANCE_SIGNAL_FILENAME = "bundle_updated.txt"
CROSS_INSTANCE_SIGNAL_FILE = os.path.join(APP_DATA_DIR, CROSS_INSTANCE_SIGNAL_FILENAME)

# Local cache keys
BUNDLE_CACHE_KEY = "streamcast-bundle"
ORIGIN_ID_CACHE_KEY = "streamcast-origin-id"

# Remote record holding the bundle
DEFAULT_BUNDLE_PATH = "streamcast"
