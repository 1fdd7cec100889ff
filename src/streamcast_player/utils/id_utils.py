import itertools
import logging
import threading
import time
import typing as tp

import uuid6

from streamcast_player import constants

logger = logging.getLogger(__name__)


def get_origin_id(local_cache, configured: tp.Optional[str] = None) -> str:
    """
    Short token identifying this authoring device.

    Uses the configured value if there is one, otherwise the token saved in the
    local cache, creating and saving one on first use.
    """
    if configured:
        return configured

    origin = local_cache.get(constants.ORIGIN_ID_CACHE_KEY)
    if origin and origin.strip():
        return origin.strip()

    # UUIDv7 starts with the timestamp; the tail is random
    origin = uuid6.uuid7().hex[-8:]
    if not local_cache.set(constants.ORIGIN_ID_CACHE_KEY, origin):
        logger.warning("Could not save origin id, ids from this run use a temporary one")
    return origin


class ItemIdGenerator:
    """Ids of the form <origin>-<epoch ms>-<counter>, unique across authoring devices."""

    def __init__(self, origin: str, time_ms: tp.Callable[[], int] = lambda: int(time.time() * 1000)):
        self.origin = origin
        self.time_ms = time_ms
        self._counter = itertools.count()
        self._lock = threading.Lock()

    def next_id(self) -> str:
        with self._lock:
            return f"{self.origin}-{self.time_ms()}-{next(self._counter)}"
