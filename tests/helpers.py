"""
Builders and fakes shared by the Streamcast tests.

The fakes stand in for the external collaborators of the sync engine and the
HTTP clients: the remote bundle store, the renderer, the background runner,
the clock and requests sessions.
"""

import json
from datetime import datetime

import requests

from streamcast_player.models import Bundle, ContentItem, PlayerConfig, ScheduleRule
from streamcast_player.streamcast_enums import ContentKind

# 2024-06-04 was a Tuesday (schedule weekday 2)
TUESDAY_10AM = datetime(2024, 6, 4, 10, 0)
SATURDAY_10AM = datetime(2024, 6, 8, 10, 0)
SUNDAY_NOON = datetime(2024, 6, 9, 12, 0)


# =============================================================================
# Builders
# =============================================================================


def make_item(item_id, kind=ContentKind.DIRECT, **kwargs):
    kwargs.setdefault("title", f"Item {item_id}")
    if kind == ContentKind.DIRECT:
        kwargs.setdefault("url", f"https://cdn.example.com/{item_id}.mp4")
    return ContentItem(id=item_id, kind=kind, **kwargs)


def make_bundle(item_ids=(), last_update=0, schedules=(), **config):
    return Bundle(
        config=PlayerConfig(**config),
        playlist=tuple(make_item(i) for i in item_ids),
        schedules=tuple(schedules),
        last_update=last_update,
    )


def weekday_rule(target, start="09:00", end="18:00", days=(1, 2, 3, 4, 5), rule_id=None, active=True):
    return ScheduleRule(
        id=rule_id or f"rule-{target}",
        target_item_id=target,
        days_of_week=frozenset(days),
        start_time=start,
        end_time=end,
        active=active,
    )


# =============================================================================
# Sync engine collaborators
# =============================================================================


class FakeRemoteStore:
    def __init__(self, bundle=None, write_ok=True, write_error=None):
        self.stored = bundle
        self.write_ok = write_ok
        self.write_error = write_error
        self.writes = []
        self.reads = 0
        self.callback = None

    def write(self, bundle):
        self.writes.append(bundle)
        if self.write_error is not None:
            raise self.write_error
        if self.write_ok:
            self.stored = bundle
        return self.write_ok

    def read_once(self):
        self.reads += 1
        return self.stored

    def subscribe(self, callback):
        self.callback = callback

        def unsubscribe():
            self.callback = None

        return unsubscribe


class RecordingRenderer:
    def __init__(self):
        self.presented = []
        self.unavailable = []

    def present(self, instruction):
        self.presented.append(instruction)

    def show_unavailable(self, instruction, error):
        self.unavailable.append((instruction, error))

    def is_finished(self):
        return False

    @property
    def presented_ids(self):
        return [i.item_id if i is not None else None for i in self.presented]


class ManualRunner:
    """Collects background work so a test decides when it runs."""

    def __init__(self):
        self.queued = []

    def __call__(self, fn):
        self.queued.append(fn)

    def run_all(self):
        while self.queued:
            self.queued.pop(0)()


class MutableClock:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now


def run_now(fn):
    fn()


# =============================================================================
# HTTP
# =============================================================================


class FakeResponse:
    def __init__(self, payload=None, status_code=200, text=None, lines=()):
        self.payload = payload
        self.status_code = status_code
        self.text = text if text is not None else json.dumps(payload)
        self.lines = list(lines)

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self):
        return json.loads(self.text)

    def iter_lines(self, decode_unicode=False):
        return iter(self.lines)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False


class FakeSession:
    """
    Stands in for requests.Session against one database record.

    A successful PUT stores its body and later plain GETs serve it back, the
    way the real record behaves. Streaming GETs always get get_response.
    """

    def __init__(self, get_response=None, put_response=None, error=None):
        self.get_response = get_response or FakeResponse(None)
        self.put_response = put_response or FakeResponse({})
        self.error = error
        self.stored = None
        self.calls = []

    def get(self, url, **kwargs):
        self.calls.append(("GET", url, kwargs))
        if self.error is not None:
            raise self.error
        if self.stored is not None and not kwargs.get("stream"):
            return FakeResponse(text=self.stored)
        return self.get_response

    def put(self, url, **kwargs):
        self.calls.append(("PUT", url, kwargs))
        if self.error is not None:
            raise self.error
        if self.put_response.status_code < 400:
            self.stored = kwargs.get("data")
        return self.put_response
