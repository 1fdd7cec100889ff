"""
Streamcast - Settings

Settings come from, in increasing precedence:

  1. Built-in defaults (below)
  2. JSON file at /etc/streamcast/config/settings.json
     (path overridable with STREAMCAST_CONFIG_FILE)
  3. STREAMCAST_<FIELD> environment variables, e.g. STREAMCAST_DATABASE_URL
"""

import json
import logging
import os
import typing as tp
from dataclasses import dataclass, fields, replace
from pathlib import Path

from streamcast_player import constants
from streamcast_player.services.common.paths import SETTINGS_FILE

logger = logging.getLogger(__name__)

CONFIG_FILE_ENV_VAR = "STREAMCAST_CONFIG_FILE"
ENV_VAR_PREFIX = "STREAMCAST_"

RENDERERS = ("mpv", "log")


@dataclass(frozen=True)
class StreamcastSettings:
    # Firebase Realtime Database, e.g. https://my-project-default-rtdb.firebaseio.com
    database_url: str = ""
    database_auth: tp.Optional[str] = None
    bundle_path: str = constants.DEFAULT_BUNDLE_PATH
    data_dir: str = constants.APP_DATA_DIR
    tick_interval_seconds: float = 30
    poll_interval_seconds: float = 60
    signal_check_interval_seconds: float = 1
    tmdb_api_key: tp.Optional[str] = None
    dangling_schedule_fallback: bool = False
    renderer: str = "mpv"
    mpv_socket_path: str = "/tmp/streamcast-mpv-socket"
    browser_command: str = "chromium-browser --kiosk --noerrdialogs --disable-infobars --autoplay-policy=no-user-gesture-required"
    origin_id: tp.Optional[str] = None

    @property
    def has_remote(self) -> bool:
        return bool(self.database_url)


def _coerce(raw, current_default):
    """Convert a file/env value to the type of the field's default."""
    if isinstance(current_default, bool):
        if isinstance(raw, bool):
            return raw
        return str(raw).strip().lower() in ("1", "true", "yes", "on")
    if isinstance(current_default, (int, float)) and not isinstance(current_default, bool):
        return float(raw)
    if raw is None or raw == "":
        return None if current_default is None else current_default
    return str(raw)


def _apply(settings: StreamcastSettings, values: tp.Dict[str, tp.Any], source: str) -> StreamcastSettings:
    defaults = StreamcastSettings()
    changes = {}
    for f in fields(StreamcastSettings):
        if f.name not in values:
            continue
        try:
            changes[f.name] = _coerce(values[f.name], getattr(defaults, f.name))
        except (TypeError, ValueError) as e:
            logger.warning(f"Ignoring invalid setting {f.name}={values[f.name]!r} from {source}: {e}")
    return replace(settings, **changes)


def _read_settings_file(path: Path) -> tp.Dict[str, tp.Any]:
    if not path.exists():
        return {}
    try:
        data = json.loads(path.read_text())
    except (OSError, ValueError) as e:
        logger.warning(f"Error reading settings file {path}: {e}")
        return {}
    if not isinstance(data, dict):
        logger.warning(f"Settings file {path} does not hold a JSON object, ignoring it")
        return {}
    return data


def load_settings(
        environ: tp.Optional[tp.Mapping[str, str]] = None,
        settings_file: tp.Optional[Path] = None
) -> StreamcastSettings:
    """
    Load settings from defaults, the settings file and the environment.

    Args:
        environ: Environment mapping (os.environ if omitted)
        settings_file: Settings file path (STREAMCAST_CONFIG_FILE or the default if omitted)

    Returns:
        StreamcastSettings
    """
    environ = os.environ if environ is None else environ
    if settings_file is None:
        settings_file = Path(environ.get(CONFIG_FILE_ENV_VAR) or SETTINGS_FILE)

    settings = _apply(StreamcastSettings(), _read_settings_file(settings_file), str(settings_file))

    env_values = {}
    for f in fields(StreamcastSettings):
        key = f"{ENV_VAR_PREFIX}{f.name.upper()}"
        if key in environ:
            env_values[f.name] = environ[key]
    settings = _apply(settings, env_values, "environment")

    if settings.renderer not in RENDERERS:
        logger.warning(f"Unknown renderer '{settings.renderer}', using 'mpv'")
        settings = replace(settings, renderer="mpv")

    return settings
