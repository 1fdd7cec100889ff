import json
import logging
import threading
import typing as tp

import certifi
import requests

from streamcast_player import constants
from streamcast_player.models import Bundle, parse_bundle_or_none

# Only the connect phase is bounded. A read that stalls keeps the caller on
# its cached bundle until the next poll.
CONNECT_TIMEOUT = 10  # seconds

INITIAL_RECONNECT_DELAY = 5  # seconds
MAX_RECONNECT_DELAY = 300  # 5 minutes max
RECONNECT_BACKOFF_MULTIPLIER = 2

# Server-sent events that carry data changes
CHANGE_EVENTS = ("put", "patch")
# Events after which the stream has to be reopened
RESTART_EVENTS = ("cancel", "auth_revoked")

BundleCallback = tp.Callable[[tp.Optional[Bundle]], None]


class FirebaseBundleStore:
    """
    The shared bundle as a single record of a Firebase Realtime Database,
    accessed over its REST API.

        write(bundle)        PUT  {database_url}/{path}.json
        read_once()          GET  {database_url}/{path}.json
        subscribe(callback)  GET  with Accept: text/event-stream, in a background thread

    Nothing here raises on network trouble: failures are logged and reported
    as False / None, and the subscription reconnects with exponential backoff.
    """

    def __init__(
            self,
            database_url: str,
            path: str = constants.DEFAULT_BUNDLE_PATH,
            auth: tp.Optional[str] = None,
            session: tp.Optional[requests.Session] = None
    ):
        self.logger = logging.getLogger(__name__)
        self.database_url = database_url.rstrip('/')
        self.path = path.strip('/')
        self.auth = auth
        self.session = session or requests.Session()

    @property
    def record_url(self) -> str:
        return f"{self.database_url}/{self.path}.json"

    def _params(self) -> tp.Optional[tp.Dict[str, str]]:
        return {"auth": self.auth} if self.auth else None

    def write(self, bundle: Bundle) -> bool:
        """Replace the whole remote record with bundle."""
        try:
            response = self.session.put(
                self.record_url,
                params=self._params(),
                data=bundle.to_json(),
                headers={"Content-Type": "application/json"},
                timeout=(CONNECT_TIMEOUT, None),
                verify=certifi.where()
            )
            response.raise_for_status()
            return True
        except requests.RequestException as e:
            self.logger.error(f"Error writing bundle to {self.path}: {e}")
            return False

    def read_once(self) -> tp.Optional[Bundle]:
        """Current remote bundle, or None if unreachable, missing or malformed."""
        try:
            response = self.session.get(
                self.record_url,
                params=self._params(),
                timeout=(CONNECT_TIMEOUT, None),
                verify=certifi.where()
            )
            response.raise_for_status()
            data = response.json()
        except requests.RequestException as e:
            self.logger.warning(f"Error reading bundle from {self.path}: {e}")
            return None
        except ValueError as e:
            self.logger.warning(f"Remote bundle at {self.path} is not JSON: {e}")
            return None

        return parse_bundle_or_none(data, "remote store", self.logger)

    def subscribe(self, callback: BundleCallback) -> tp.Callable[[], None]:
        """
        Call callback with the full bundle every time the remote record changes.

        Returns:
            A function that stops the subscription.
        """
        stop_event = threading.Event()
        thread = threading.Thread(target=self._run_subscription, args=(callback, stop_event), daemon=True)
        thread.start()

        def unsubscribe():
            stop_event.set()

        return unsubscribe

    def _run_subscription(self, callback: BundleCallback, stop_event: threading.Event) -> None:
        reconnect_delay = INITIAL_RECONNECT_DELAY

        while not stop_event.is_set():
            try:
                self.logger.info(f"Opening change stream on {self.path}")
                with self.session.get(
                        self.record_url,
                        params=self._params(),
                        headers={"Accept": "text/event-stream"},
                        stream=True,
                        timeout=(CONNECT_TIMEOUT, None),
                        verify=certifi.where()
                ) as response:
                    response.raise_for_status()
                    # Reset reconnect delay on successful connection
                    reconnect_delay = INITIAL_RECONNECT_DELAY
                    self._consume_events(response.iter_lines(decode_unicode=True), callback, stop_event)
            except requests.RequestException as e:
                self.logger.warning(f"Change stream on {self.path} failed: {e}")
            except Exception as e:
                self.logger.error(f"Unexpected error in change stream: {e}", exc_info=True)

            if stop_event.is_set():
                break
            self.logger.info(f"Change stream closed, reconnecting in {reconnect_delay}s...")
            stop_event.wait(reconnect_delay)
            reconnect_delay = min(reconnect_delay * RECONNECT_BACKOFF_MULTIPLIER, MAX_RECONNECT_DELAY)

        self.logger.info(f"Change stream on {self.path} stopped")

    def _consume_events(self, lines: tp.Iterable[str], callback: BundleCallback, stop_event: threading.Event) -> None:
        event_name = None
        data_lines: tp.List[str] = []

        for line in lines:
            if stop_event.is_set():
                return
            if line is None:
                continue
            if line.startswith("event:"):
                event_name = line[len("event:"):].strip()
            elif line.startswith("data:"):
                data_lines.append(line[len("data:"):].strip())
            elif line == "":
                if event_name is not None:
                    if not self._handle_event(event_name, "\n".join(data_lines), callback):
                        return
                event_name, data_lines = None, []

    def _handle_event(self, event_name: str, raw_data: str, callback: BundleCallback) -> bool:
        """Dispatch one server-sent event. False means the stream must be reopened."""
        if event_name in RESTART_EVENTS:
            self.logger.warning(f"Change stream on {self.path} ended by server: {event_name} {raw_data}")
            return False
        if event_name not in CHANGE_EVENTS:
            # keep-alive
            return True

        try:
            payload = json.loads(raw_data)
        except ValueError as e:
            self.logger.warning(f"Ignoring malformed {event_name} event: {e}")
            return True

        if isinstance(payload, dict) and event_name == "put" and payload.get("path") == "/":
            bundle = parse_bundle_or_none(payload.get("data"), "change stream", self.logger)
        else:
            # Partial update somewhere inside the record: fetch the whole bundle
            bundle = self.read_once()

        if bundle is not None:
            callback(bundle)
        return True
