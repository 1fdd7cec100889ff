import logging
import time
import typing as tp
import uuid
from pathlib import Path

from streamcast_player import constants

logger = logging.getLogger(__name__)


class CrossInstanceSignal:
    """
    Same-device broadcast between player instances.

    Any instance that persists a new bundle calls fire(), which rewrites the
    flag file with a fresh token. Other instances poll has_changed() and use it
    as a hint to reconcile immediately instead of waiting for the next tick.
    Missing a signal is harmless: the periodic tick catches up anyway.
    """

    def __init__(self, flag_file: tp.Union[str, Path] = constants.CROSS_INSTANCE_SIGNAL_FILE):
        self.flag_file = Path(flag_file)
        self.instance_id = uuid.uuid4().hex[:12]
        self._last_seen = self._read_token()

    def _read_token(self) -> tp.Optional[str]:
        try:
            if self.flag_file.exists():
                return self.flag_file.read_text().strip() or None
        except OSError as e:
            logger.warning(f"Error reading update flag {self.flag_file}: {e}")
        return None

    def fire(self) -> None:
        token = f"{self.instance_id}:{time.time_ns()}"
        try:
            self.flag_file.parent.mkdir(parents=True, exist_ok=True)
            self.flag_file.write_text(token)
            self._last_seen = token
        except OSError as e:
            logger.warning(f"Error writing update flag {self.flag_file}: {e}")

    def has_changed(self) -> bool:
        """True once per token written by another instance since the last check."""
        token = self._read_token()
        if token is None or token == self._last_seen:
            return False
        self._last_seen = token
        return not token.startswith(f"{self.instance_id}:")
