"""
Streamcast - Service Infrastructure

What a long-running Streamcast service needs from systemd: readiness and
watchdog notifications, plus a clean stop on SIGTERM/SIGINT.
"""

import logging
import signal
import time
from typing import Callable, Optional

import sdnotify

logger = logging.getLogger(__name__)

SHUTDOWN_SIGNALS = {
    signal.SIGTERM: 'SIGTERM',
    signal.SIGINT: 'SIGINT',
}

_notifier: Optional[sdnotify.SystemdNotifier] = None


def get_systemd_notifier() -> sdnotify.SystemdNotifier:
    """Process-wide notifier. Outside systemd every notify() is a no-op."""
    global _notifier
    if _notifier is None:
        _notifier = sdnotify.SystemdNotifier()
    return _notifier


def notify_ready(status: Optional[str] = None) -> None:
    message = "READY=1"
    if status:
        message += f"\nSTATUS={status}"
    get_systemd_notifier().notify(message)


def notify_stopping() -> None:
    get_systemd_notifier().notify("STOPPING=1")


def setup_signal_handlers(on_shutdown: Callable[[], None], service_logger: Optional[logging.Logger] = None) -> None:
    """
    Call on_shutdown when the service is asked to stop.

    on_shutdown runs inside the signal handler, so it should only flag the main
    loop (e.g. set a threading.Event) and let the loop do the cleanup.
    """
    log = service_logger or logger

    def _handle(signum, frame):
        log.info(f"{SHUTDOWN_SIGNALS.get(signum, signum)} received, stopping")
        on_shutdown()

    for signum in SHUTDOWN_SIGNALS:
        signal.signal(signum, _handle)


class WatchdogPinger:
    """
    Rate-limited WATCHDOG=1 for services whose loop wakes up more often than
    the watchdog needs to hear from them.

    Call ping_if_due() on every wake-up; a ping goes out at most once per
    interval_seconds.
    """

    def __init__(self, interval_seconds: float = 30, clock: Callable[[], float] = time.monotonic):
        self.interval_seconds = interval_seconds
        self._clock = clock
        self._last_ping = clock()

    def ping_if_due(self) -> bool:
        if self._clock() - self._last_ping < self.interval_seconds:
            return False
        self.ping()
        return True

    def ping(self) -> None:
        get_systemd_notifier().notify("WATCHDOG=1")
        self._last_ping = self._clock()
