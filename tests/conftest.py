import pytest

from streamcast_player.local_cache import LocalCache
from streamcast_player.sync_engine import SyncEngine
from tests.helpers import TUESDAY_10AM, MutableClock, RecordingRenderer, run_now


@pytest.fixture
def local_cache(tmp_path):
    return LocalCache(tmp_path / "app_data")


@pytest.fixture
def renderer():
    return RecordingRenderer()


@pytest.fixture
def clock():
    return MutableClock(TUESDAY_10AM)


@pytest.fixture
def make_engine(local_cache, renderer, clock):
    def _make(remote_store=None, run_async=run_now, time_ms=lambda: 1000, **kwargs):
        return SyncEngine(
            local_cache=local_cache,
            renderer=renderer,
            remote_store=remote_store,
            clock=clock,
            time_ms=time_ms,
            run_async=run_async,
            **kwargs
        )
    return _make
