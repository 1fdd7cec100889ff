#!/usr/bin/env python3
"""
Streamcast Player Display Service

Shows the right content on this screen at the right time:

1. STARTUP
   - Loads settings, reads the cached bundle and (in the background) the remote one
   - Shows the idle screen until a bundle is known

2. SYNCING
   - Subscribes to the remote bundle; every change is merged last-writer-wins
   - Re-derives the active item every tick so schedules take effect on time
   - Re-polls the remote store, and picks up bundles saved by other instances
     on this device through the update flag file

3. PLAYING
   - The renderer is only told about a change of the active item
   - When a non-looping item finishes, the playlist advances to the next item

Works offline from the cached bundle when the remote store is unreachable.
"""

import os
import sys
import threading

from streamcast_player.services.common.logging_config import setup_service_logging, log_service_start, log_service_ready
from streamcast_player.services.common.settings import StreamcastSettings, load_settings
from streamcast_player.services.common.system import (
    WatchdogPinger,
    notify_ready,
    notify_stopping,
    setup_signal_handlers,
)
from streamcast_player.services.player_renderer import create_renderer
from streamcast_player.clients.remote_store_client import FirebaseBundleStore
from streamcast_player import constants
from streamcast_player.local_cache import LocalCache
from streamcast_player.sync_engine import SyncEngine
from streamcast_player.utils.update_flag_utils import CrossInstanceSignal

logger = setup_service_logging('streamcast-player')

WATCHDOG_INTERVAL = 30  # seconds


class StreamcastPlayerDisplay:

    def __init__(self, settings: StreamcastSettings):
        self.settings = settings
        self.stop_event = threading.Event()
        self.unsubscribe = None

        self.local_cache = LocalCache(settings.data_dir)
        self.remote_store = None
        if settings.has_remote:
            self.remote_store = FirebaseBundleStore(settings.database_url, settings.bundle_path, settings.database_auth)
        else:
            logger.warning("No database_url configured, running from the local cache only")

        self.renderer = create_renderer(settings)
        self.engine = SyncEngine(
            local_cache=self.local_cache,
            renderer=self.renderer,
            remote_store=self.remote_store,
            signal=CrossInstanceSignal(os.path.join(settings.data_dir, constants.CROSS_INSTANCE_SIGNAL_FILENAME)),
            dangling_schedule_fallback=settings.dangling_schedule_fallback,
            process_inline=False,
        )
        self.watchdog = WatchdogPinger(interval_seconds=WATCHDOG_INTERVAL)

    def request_stop(self):
        self.stop_event.set()

    def _on_wake(self):
        self.watchdog.ping_if_due()
        if self.renderer.is_finished():
            logger.info(f"Item {self.engine.active_item_id} finished")
            self.engine.advance_playlist()

    def run(self) -> int:
        if not self.renderer.start():
            return 1

        self.engine.start()
        if self.remote_store is not None:
            self.unsubscribe = self.remote_store.subscribe(self.engine.notify_remote)

        notify_ready("Playing")
        log_service_ready(logger, "Streamcast Player", f"remote={'on' if self.remote_store else 'off'}")

        self.engine.run_forever(
            self.stop_event,
            tick_interval=self.settings.tick_interval_seconds,
            poll_interval=self.settings.poll_interval_seconds,
            wake_interval=self.settings.signal_check_interval_seconds,
            on_wake=self._on_wake,
        )
        return 0

    def cleanup(self):
        logger.info("Shutting down Streamcast Player")
        notify_stopping()
        if self.unsubscribe is not None:
            self.unsubscribe()
        self.engine.flush_replication(timeout=5)
        self.renderer.stop()


def main():
    log_service_start(logger, 'Streamcast Player Display Service')

    settings = load_settings()
    logger.info(f"Data directory: {settings.data_dir}")
    logger.info(f"Renderer: {settings.renderer}")

    display = StreamcastPlayerDisplay(settings)
    setup_signal_handlers(display.request_stop, logger)

    exit_code = 1
    try:
        exit_code = display.run()
    except Exception as e:
        logger.error(f"Fatal error in player loop: {e}", exc_info=True)
    finally:
        display.cleanup()

    sys.exit(exit_code)


if __name__ == '__main__':
    main()
