"""
Streamcast - Sync Engine

Owns the single in-memory bundle of a player and keeps the renderer showing
the right thing.

State machine:

    UNINITIALIZED --start()--> LOADING --first bundle / both sources empty--> READY
    READY --trigger--> RECONCILING --> READY

Every input is a trigger put on one queue:

    STARTUP_LOCAL / STARTUP_REMOTE   initial cache and remote reads
    REMOTE_CHANGE                    subscription push or periodic re-poll
    AUTHOR_WRITE                     local edit from the authoring client
    POLL_TICK                        coarse clock tick (schedules move with time)
    CROSS_INSTANCE                   another instance on this device saved a bundle
    ITEM_OVERRIDE                    external currentItemId override

Triggers are coalesced: whatever is queued when a pass starts is applied in
arrival order and followed by one persist and one render decision. Passes never
overlap. The renderer only hears about a change of the active item id.

Last-writer-wins: an incoming bundle replaces the held one only if its
lastUpdate is strictly greater. Authoring writes are stamped with
max(now_ms, held + 1) so they always win locally, then replicated once in the
background. Bundles that came from the remote store are never written back.
"""

import logging
import threading
import time
import typing as tp
from dataclasses import dataclass, replace
from datetime import datetime

from streamcast_player import active_content_resolver, source_resolver
from streamcast_player.models import Bundle
from streamcast_player.streamcast_enums import ResolutionReason, SyncState, TriggerKind

logger = logging.getLogger(__name__)

# Triggers whose bundle was read from this device's cache; winning with one of
# them (or with the empty startup bundle) is not persisted again
_FROM_LOCAL_CACHE = (TriggerKind.STARTUP_LOCAL, TriggerKind.CROSS_INSTANCE)

_NOTHING_EMITTED = object()


def _current_time_ms() -> int:
    return int(time.time() * 1000)


def _run_in_thread(fn: tp.Callable[[], None]) -> threading.Thread:
    thread = threading.Thread(target=fn, daemon=True)
    thread.start()
    return thread


@dataclass(frozen=True)
class Trigger:
    kind: TriggerKind
    bundle: tp.Optional[Bundle] = None
    item_id: tp.Optional[str] = None


class SyncEngine:
    """
    Args:
        local_cache: LocalCache (load_bundle/save_bundle/get_blob_url)
        renderer: Object with present(instruction | None) and
            show_unavailable(instruction, error)
        remote_store: Remote bundle store (write/read_once), or None to run offline
        clock: Returns the local wall-clock datetime used for schedules
        time_ms: Returns epoch milliseconds used to stamp authoring writes
        run_async: Runs a callable off the reconciliation path
        signal: CrossInstanceSignal fired after each persisted change
        dangling_schedule_fallback: When a matched rule targets a missing item,
            fall back to the playlist instead of showing nothing
        process_inline: Reconcile on the calling thread as soon as a trigger is
            queued. Long-running services pass False and drive run_forever().
    """

    def __init__(
            self,
            local_cache,
            renderer,
            remote_store=None,
            clock: tp.Callable[[], datetime] = datetime.now,
            time_ms: tp.Callable[[], int] = _current_time_ms,
            run_async: tp.Callable[[tp.Callable[[], None]], tp.Any] = _run_in_thread,
            signal=None,
            dangling_schedule_fallback: bool = False,
            process_inline: bool = True
    ):
        self.local_cache = local_cache
        self.renderer = renderer
        self.remote_store = remote_store
        self.clock = clock
        self.time_ms = time_ms
        self.run_async = run_async
        self.signal = signal
        self.dangling_schedule_fallback = dangling_schedule_fallback
        self.process_inline = process_inline

        self._state = SyncState.UNINITIALIZED
        self._bundle: tp.Optional[Bundle] = None
        self._bundle_source: tp.Optional[TriggerKind] = None
        self._awaiting_startup: tp.Set[TriggerKind] = set()

        self._pending: tp.List[Trigger] = []
        self._pending_lock = threading.Lock()
        self._wakeup = threading.Event()
        self._reconcile_lock = threading.Lock()

        self._active_id = _NOTHING_EMITTED
        self._emit_generation = 0
        self._render_lock = threading.Lock()

        self._replications_in_flight = 0
        self._replication_done = threading.Condition()
        self._replication_order = threading.Lock()

    # =========================================================================
    # Read-only views
    # =========================================================================

    @property
    def state(self) -> SyncState:
        return self._state

    @property
    def bundle(self) -> Bundle:
        """The held bundle (empty until the engine has loaded one)."""
        return self._bundle or Bundle.empty()

    @property
    def active_item_id(self) -> tp.Optional[str]:
        return None if self._active_id is _NOTHING_EMITTED else self._active_id

    # =========================================================================
    # Triggers
    # =========================================================================

    def start(self) -> None:
        """Kick off the remote read in the background and read the local cache."""
        if self._state != SyncState.UNINITIALIZED:
            logger.warning(f"start() called in state {self._state.value}, ignoring")
            return

        self._state = SyncState.LOADING
        self._awaiting_startup = {TriggerKind.STARTUP_LOCAL}
        if self.remote_store is not None:
            self._awaiting_startup.add(TriggerKind.STARTUP_REMOTE)

        self._enqueue(Trigger(TriggerKind.STARTUP_LOCAL, self.local_cache.load_bundle()))
        if self.remote_store is not None:
            self.run_async(self._read_remote_at_startup)

    def _read_remote_at_startup(self) -> None:
        bundle = None
        try:
            bundle = self.remote_store.read_once()
        except Exception as e:
            logger.error(f"Unexpected error reading remote bundle: {e}", exc_info=True)
        self._enqueue(Trigger(TriggerKind.STARTUP_REMOTE, bundle))

    def notify_remote(self, bundle: tp.Optional[Bundle]) -> None:
        """Subscription callback: the remote record changed."""
        if bundle is None:
            return
        self._enqueue(Trigger(TriggerKind.REMOTE_CHANGE, bundle))

    def refresh_remote(self) -> None:
        """Re-poll the remote store in the background."""
        if self.remote_store is None:
            return

        def _poll():
            try:
                self.notify_remote(self.remote_store.read_once())
            except Exception as e:
                logger.error(f"Unexpected error polling remote bundle: {e}", exc_info=True)

        self.run_async(_poll)

    def notify_tick(self) -> None:
        self._enqueue(Trigger(TriggerKind.POLL_TICK))

    def notify_cross_instance(self) -> None:
        """Another instance on this device saved a bundle; pick it up from the cache."""
        self._enqueue(Trigger(TriggerKind.CROSS_INSTANCE, self.local_cache.load_bundle()))

    def author_write(self, bundle: Bundle) -> None:
        """
        Save an edited bundle as the new truth.

        The lastUpdate of the given bundle is ignored; the engine stamps it
        when the write is applied.
        """
        self._enqueue(Trigger(TriggerKind.AUTHOR_WRITE, bundle))

    def edit(self, **changes) -> None:
        """author_write() of the held bundle with some top-level fields replaced."""
        self.author_write(replace(self.bundle, **changes))

    def set_current_item(self, item_id: tp.Optional[str]) -> None:
        """Override config.currentItemId locally. Not replicated, lastUpdate unchanged."""
        self._enqueue(Trigger(TriggerKind.ITEM_OVERRIDE, item_id=item_id))

    def advance_playlist(self) -> tp.Optional[str]:
        """
        Move currentItemId to the item after the active one, wrapping.

        Returns:
            The id of the new current item, or None for an empty playlist.
        """
        playlist = self.bundle.playlist
        if not playlist:
            return None

        active_id = self.active_item_id
        next_item = playlist[0]
        for index, item in enumerate(playlist):
            if item.id == active_id:
                next_item = playlist[(index + 1) % len(playlist)]
                break

        logger.info(f"Advancing playlist from {active_id} to {next_item.id}")
        self.set_current_item(next_item.id)
        return next_item.id

    def _enqueue(self, trigger: Trigger) -> None:
        with self._pending_lock:
            self._pending.append(trigger)
        self._wakeup.set()
        if self.process_inline:
            self.process_pending()

    # =========================================================================
    # Reconciliation
    # =========================================================================

    def _has_pending(self) -> bool:
        with self._pending_lock:
            return bool(self._pending)

    def _take_pending(self) -> tp.List[Trigger]:
        with self._pending_lock:
            batch, self._pending = self._pending, []
            self._wakeup.clear()
            return batch

    def process_pending(self) -> int:
        """
        Drain the trigger queue.

        Returns:
            Number of reconciliation passes run. 0 when the queue was empty or
            another thread is already reconciling (that thread drains it).
        """
        passes = 0
        while self._has_pending():
            if not self._reconcile_lock.acquire(blocking=False):
                break
            try:
                batch = self._take_pending()
                if batch:
                    self._reconcile(batch)
                    passes += 1
            finally:
                self._reconcile_lock.release()
        return passes

    def _reconcile(self, batch: tp.List[Trigger]) -> None:
        if self._state == SyncState.UNINITIALIZED:
            logger.warning(f"Dropping {len(batch)} trigger(s) received before start()")
            return
        if self._state == SyncState.READY:
            self._state = SyncState.RECONCILING

        held, held_source = self._bundle, self._bundle_source
        winner, winner_source = held, held_source
        authored: tp.List[Bundle] = []
        overridden = False

        for trigger in batch:
            self._awaiting_startup.discard(trigger.kind)

            if trigger.kind == TriggerKind.AUTHOR_WRITE:
                floor = winner.last_update + 1 if winner is not None else 0
                stamped = replace(trigger.bundle, last_update=max(self.time_ms(), floor))
                winner, winner_source = stamped, trigger.kind
                authored.append(stamped)
            elif trigger.kind == TriggerKind.ITEM_OVERRIDE:
                if winner is None:
                    logger.warning(f"Ignoring current item override {trigger.item_id}: no bundle loaded yet")
                    continue
                winner = winner.with_current_item(trigger.item_id)
                overridden = True
            elif trigger.bundle is not None and self._wins(trigger, winner, winner_source):
                winner, winner_source = trigger.bundle, trigger.kind
            elif trigger.bundle is not None:
                logger.debug(
                    f"Discarding {trigger.kind.value} bundle with lastUpdate "
                    f"{trigger.bundle.last_update} (held {winner.last_update})"
                )

        if self._state == SyncState.LOADING:
            if winner is None:
                if self._awaiting_startup:
                    return
                logger.info("No bundle in local cache or remote store, starting empty")
                winner, winner_source = Bundle.empty(), None
            self._state = SyncState.READY
            logger.info(f"Sync engine ready (lastUpdate {winner.last_update})")

        if winner is not held:
            self._bundle, self._bundle_source = winner, winner_source
            if (winner_source is not None and winner_source not in _FROM_LOCAL_CACHE) or overridden:
                self._persist(winner)

        self._state = SyncState.READY
        if authored:
            # Once per authoring write, superseded in this batch or not
            self._replicate(authored)
        self._emit_if_changed(self._bundle)

    @staticmethod
    def _wins(trigger: Trigger, winner: tp.Optional[Bundle], winner_source: tp.Optional[TriggerKind]) -> bool:
        if winner is None:
            return True
        incoming = trigger.bundle.last_update
        if incoming > winner.last_update:
            return True
        # At startup the remote copy is preferred over an equally fresh cache copy
        return (
            trigger.kind == TriggerKind.STARTUP_REMOTE
            and winner_source == TriggerKind.STARTUP_LOCAL
            and incoming == winner.last_update
        )

    def _persist(self, bundle: Bundle) -> None:
        if not self.local_cache.save_bundle(bundle):
            logger.warning("Could not persist bundle to local cache")
            return
        if self.signal is not None:
            self.signal.fire()

    # =========================================================================
    # Replication
    # =========================================================================

    def _replicate(self, bundles: tp.List[Bundle]) -> None:
        """Write bundles to the remote store in order, one background job per pass."""
        if self.remote_store is None:
            logger.info(f"No remote store configured, keeping {len(bundles)} authoring write(s) local")
            return

        with self._replication_done:
            self._replications_in_flight += 1

        def _write():
            try:
                with self._replication_order:
                    for bundle in bundles:
                        self._write_one(bundle)
            finally:
                with self._replication_done:
                    self._replications_in_flight -= 1
                    self._replication_done.notify_all()

        self.run_async(_write)

    def _write_one(self, bundle: Bundle) -> None:
        try:
            if self.remote_store.write(bundle):
                logger.info(f"Replicated bundle (lastUpdate {bundle.last_update})")
            else:
                logger.warning(f"Replication of bundle {bundle.last_update} failed, continuing locally")
        except Exception as e:
            logger.error(f"Unexpected error replicating bundle: {e}", exc_info=True)

    def flush_replication(self, timeout: tp.Optional[float] = None) -> bool:
        """Wait for background replication writes. False on timeout."""
        with self._replication_done:
            return self._replication_done.wait_for(lambda: self._replications_in_flight == 0, timeout)

    # =========================================================================
    # Rendering
    # =========================================================================

    def resolve_active(self, bundle: tp.Optional[Bundle] = None) -> active_content_resolver.ActiveResolution:
        """Active item of bundle (default: the held one) now, with the dangling policy applied."""
        bundle = bundle or self.bundle
        resolution = active_content_resolver.resolve_for_bundle(self.clock(), bundle)
        if resolution.reason == ResolutionReason.DANGLING_SCHEDULE:
            logger.warning(
                f"Schedule {resolution.rule.id} targets missing item {resolution.rule.target_item_id}"
            )
            if self.dangling_schedule_fallback:
                return active_content_resolver.playlist_fallback(bundle.playlist, bundle.config)
        return resolution

    def _emit_if_changed(self, bundle: Bundle) -> None:
        resolution = self.resolve_active(bundle)
        item = resolution.item
        item_id = item.id if item is not None else None
        if item_id == self._active_id:
            return

        with self._render_lock:
            self._active_id = item_id
            self._emit_generation += 1
            generation = self._emit_generation

        if item is None:
            logger.info(f"Nothing to play ({resolution.reason.value})")
            self._present(None)
            return

        instruction = source_resolver.resolve(item, bundle.config)
        logger.info(f"Now playing {item.id} '{item.title}' as {instruction.kind.value} ({resolution.reason.value})")
        if instruction.needs_blob:
            self.run_async(lambda: self._load_blob(instruction, generation))
        else:
            self._present(instruction)

    def _load_blob(self, instruction: source_resolver.RenderInstruction, generation: int) -> None:
        url, error = source_resolver.resolve_blob_url(instruction, self.local_cache)
        with self._render_lock:
            if generation != self._emit_generation:
                logger.info(f"Discarding blob load for {instruction.item_id}, no longer active")
                return
            if error is not None:
                self.renderer.show_unavailable(instruction, error)
            else:
                self.renderer.present(instruction.with_url(url))

    def _present(self, instruction) -> None:
        with self._render_lock:
            self.renderer.present(instruction)

    # =========================================================================
    # Service loop
    # =========================================================================

    def run_forever(
            self,
            stop_event: threading.Event,
            tick_interval: float = 30,
            poll_interval: float = 60,
            wake_interval: float = 1.0,
            on_wake: tp.Optional[tp.Callable[[], None]] = None
    ) -> None:
        """
        Drive the engine until stop_event is set.

        Wakes on every queued trigger and at least every wake_interval seconds
        to check the cross-instance signal, queue clock ticks and re-poll the
        remote store. on_wake runs on every wake-up (watchdog pings, renderer
        finished checks).
        """
        next_tick = time.monotonic() + tick_interval
        next_poll = time.monotonic() + poll_interval

        while not stop_event.is_set():
            self._wakeup.wait(wake_interval)
            now = time.monotonic()

            if self.signal is not None and self.signal.has_changed():
                logger.info("Bundle updated by another instance on this device")
                self.notify_cross_instance()
            if now >= next_tick:
                self.notify_tick()
                next_tick = now + tick_interval
            if now >= next_poll:
                self.refresh_remote()
                next_poll = now + poll_interval

            try:
                self.process_pending()
            except Exception as e:
                logger.error(f"Error during reconciliation: {e}", exc_info=True)

            if on_wake is not None:
                on_wake()
