"""
Streamcast - Shared Path Constants

File and directory paths used by the Streamcast services.

Directory structure:
  /etc/streamcast/
    └── config/
        └── settings.json    # Optional: overrides of the built-in settings

  ~/.streamcast/app_data/    # Per-user data (see streamcast_player.constants)
    ├── cache/               # Key/value store, holds the last known bundle
    ├── blobs/               # Uploaded media stored on this device
    ├── status/              # Rendered status screens
    └── bundle_updated.txt   # Cross-instance update flag
"""

from pathlib import Path

from streamcast_player import constants

# Base directories
STREAMCAST_ETC_DIR = Path('/etc/streamcast')
CONFIG_DIR = STREAMCAST_ETC_DIR / 'config'

# Configuration files
# Settings file can be moved with STREAMCAST_CONFIG_FILE
SETTINGS_FILE = CONFIG_DIR / 'settings.json'

# Status screen images shown while nothing plays
STATUS_SCREEN_DIR = Path(constants.APP_DATA_DIR) / 'status'
