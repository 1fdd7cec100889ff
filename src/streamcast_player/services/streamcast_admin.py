#!/usr/bin/env python3
"""
Streamcast Admin

Command-line authoring client. Every command loads the freshest bundle (remote
if reachable, else the local cache), applies one edit and saves it through the
sync engine, which stamps lastUpdate, persists it locally and replicates it.

Examples:
    streamcast-admin show
    streamcast-admin add-url https://www.youtube.com/watch?v=dQw4w9WgXcQ --title "Intro"
    streamcast-admin search "The Office" --tv
    streamcast-admin search "The Office" --tv --add 1 --season 2 --episode 3
    streamcast-admin upload /media/promo.mp4
    streamcast-admin schedule-add <item-id> --days 1,2,3,4,5 --start 09:00 --end 18:00
    streamcast-admin config --use-schedule off --language en-US
"""

import argparse
import os
import sys
from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path

from streamcast_player import constants
from streamcast_player.active_content_resolver import DAY_NAMES, parse_minutes
from streamcast_player.clients.catalog_client import CatalogClient, content_item_from_result
from streamcast_player.clients.remote_store_client import FirebaseBundleStore
from streamcast_player.local_cache import LocalCache
from streamcast_player.models import Bundle, ContentItem, ScheduleRule
from streamcast_player.services.common.logging_config import setup_service_logging
from streamcast_player.services.common.settings import StreamcastSettings, load_settings
from streamcast_player.services.player_renderer import LoggingRenderer
from streamcast_player.source_resolver import describe_source
from streamcast_player.streamcast_enums import ContentKind, PlayerMode
from streamcast_player.sync_engine import SyncEngine
from streamcast_player.utils.id_utils import ItemIdGenerator, get_origin_id
from streamcast_player.utils.update_flag_utils import CrossInstanceSignal

logger = setup_service_logging('streamcast-admin')

REPLICATION_TIMEOUT = 30  # seconds


def _run_now(fn):
    fn()


def _on_off(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in ("on", "true", "yes", "1"):
        return True
    if lowered in ("off", "false", "no", "0"):
        return False
    raise argparse.ArgumentTypeError(f"expected on/off, got '{value}'")


def _days(value: str) -> frozenset:
    """'1,2,3' or 'mon,tue' (0/SUN = Sunday)."""
    days = set()
    for part in value.split(','):
        part = part.strip().upper()
        if not part:
            continue
        if part.isdigit() and 0 <= int(part) <= 6:
            days.add(int(part))
            continue
        matches = [i for i, name in enumerate(DAY_NAMES) if name.startswith(part) and len(part) >= 3]
        if len(matches) != 1:
            raise argparse.ArgumentTypeError(f"unknown day '{part}'")
        days.add(matches[0])
    if not days:
        raise argparse.ArgumentTypeError("at least one day is required")
    return frozenset(days)


def _hhmm(value: str) -> str:
    if parse_minutes(value) is None:
        raise argparse.ArgumentTypeError(f"expected HH:MM, got '{value}'")
    return value.strip()


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class StreamcastAdmin:

    def __init__(self, settings: StreamcastSettings):
        self.settings = settings
        self.local_cache = LocalCache(settings.data_dir)
        remote_store = None
        if settings.has_remote:
            remote_store = FirebaseBundleStore(settings.database_url, settings.bundle_path, settings.database_auth)
        else:
            logger.warning("No database_url configured, edits stay on this device")

        self.engine = SyncEngine(
            local_cache=self.local_cache,
            renderer=LoggingRenderer(),
            remote_store=remote_store,
            run_async=_run_now,
            signal=CrossInstanceSignal(os.path.join(settings.data_dir, constants.CROSS_INSTANCE_SIGNAL_FILENAME)),
            dangling_schedule_fallback=settings.dangling_schedule_fallback,
        )
        self.ids = ItemIdGenerator(get_origin_id(self.local_cache, settings.origin_id))
        self._catalog = None

    @property
    def bundle(self) -> Bundle:
        return self.engine.bundle

    @property
    def catalog(self) -> CatalogClient:
        if self._catalog is None:
            if not self.settings.tmdb_api_key:
                raise SystemExit("tmdb_api_key is not configured (set STREAMCAST_TMDB_API_KEY)")
            self._catalog = CatalogClient(self.settings.tmdb_api_key, self.bundle.config.language_tag)
        return self._catalog

    def load(self) -> None:
        self.engine.start()

    def save(self, bundle: Bundle) -> None:
        self.engine.author_write(bundle)
        self.engine.flush_replication(timeout=REPLICATION_TIMEOUT)
        print(f"Saved (lastUpdate {self.engine.bundle.last_update})")

    def add_item(self, item: ContentItem) -> None:
        self.save(replace(self.bundle, playlist=self.bundle.playlist + (item,)))
        print(f"Added {item.kind.value} '{item.title}' as {item.id}")

    # =========================================================================
    # Commands
    # =========================================================================

    def cmd_show(self, args) -> int:
        bundle = self.bundle
        config = bundle.config
        print(f"lastUpdate: {bundle.last_update}")
        print(
            f"config: autoplay={config.autoplay} muted={config.muted} loop={config.loop} "
            f"useSchedule={config.use_schedule} language={config.language_tag} "
            f"playerMode={config.player_mode.value} current={config.current_item_id}"
        )
        print(f"playlist ({len(bundle.playlist)}):")
        for index, item in enumerate(bundle.playlist, start=1):
            print(f"  {index:>2}. {item.id}  [{item.kind.value}]  {item.title}")
        print(f"schedules ({len(bundle.schedules)}):")
        for rule in bundle.schedules:
            days = ",".join(DAY_NAMES[d][:3] for d in sorted(rule.days_of_week))
            target = bundle.find_item(rule.target_item_id)
            target_label = target.title if target else "MISSING ITEM"
            state = "" if rule.active else "  (inactive)"
            print(f"  {rule.id}  {days} {rule.start_time}-{rule.end_time} -> {rule.target_item_id} ({target_label}){state}")

        resolution = self.engine.resolve_active()
        active = resolution.item
        print(f"now playing: {active.id + ' ' + active.title if active else 'nothing'} ({resolution.reason.value})")
        return 0

    def cmd_add_url(self, args) -> int:
        detection = describe_source(args.url)
        print(f"Detected: {detection.label}")
        item = ContentItem(
            id=self.ids.next_id(),
            title=args.title or f"Video {datetime.now():%Y-%m-%d %H:%M}",
            kind=ContentKind.DIRECT,
            url=args.url.strip(),
            added_at=_now_iso(),
        )
        self.add_item(item)
        return 0

    def _catalog_item(self, kind: ContentKind, args, season=None, episode=None) -> ContentItem:
        imdb_id = args.imdb
        if imdb_id is None and args.tmdb and self.settings.tmdb_api_key:
            imdb_id = self.catalog.get_external_ids(args.tmdb, kind)
        title = args.title or args.imdb or args.tmdb
        if kind == ContentKind.CATALOG_EPISODE and not args.title:
            title = f"{title} - S{season:02d}E{episode:02d}"
        return ContentItem(
            id=self.ids.next_id(),
            title=title,
            kind=kind,
            imdb_id=imdb_id,
            tmdb_id=args.tmdb,
            season=season,
            episode=episode,
            added_at=_now_iso(),
        )

    def cmd_add_movie(self, args) -> int:
        self.add_item(self._catalog_item(ContentKind.CATALOG_MOVIE, args))
        return 0

    def cmd_add_show(self, args) -> int:
        self.add_item(self._catalog_item(ContentKind.CATALOG_SHOW, args))
        return 0

    def cmd_add_episode(self, args) -> int:
        self.add_item(self._catalog_item(ContentKind.CATALOG_EPISODE, args, args.season, args.episode))
        return 0

    def cmd_search(self, args) -> int:
        kind = ContentKind.CATALOG_SHOW if args.tv else ContentKind.CATALOG_MOVIE
        results = self.catalog.search_by_title(args.query, kind)
        if not results:
            print("No results")
            return 1

        if args.add is None:
            for index, result in enumerate(results, start=1):
                year = result.release_date[:4] if result.release_date else "----"
                print(f"  {index:>2}. {result.title} ({year})  tmdb={result.catalog_id}")
            return 0

        if not 1 <= args.add <= len(results):
            print(f"--add must be between 1 and {len(results)}")
            return 2
        result = results[args.add - 1]
        imdb_id = self.catalog.get_external_ids(result.catalog_id, kind)
        self.add_item(content_item_from_result(result, self.ids.next_id(), imdb_id, args.season, args.episode))
        return 0

    def cmd_upload(self, args) -> int:
        path = Path(args.path)
        if not path.is_file():
            print(f"File not found: {path}")
            return 1

        item_id = self.ids.next_id()

        def progress(percent):
            print(f"\rUploading {path.name}: {percent}%", end="", flush=True)

        if not self.local_cache.put_blob(item_id, path, on_progress=progress):
            print(f"\nCould not store {path.name}")
            return 1
        print()

        self.add_item(ContentItem(
            id=item_id,
            title=args.title or path.stem,
            kind=ContentKind.LOCAL_UPLOAD,
            blob_key=item_id,
            file_name=path.name,
            file_size=path.stat().st_size,
            added_at=_now_iso(),
        ))
        return 0

    def cmd_remove(self, args) -> int:
        item = self.bundle.find_item(args.item_id)
        if item is None:
            print(f"No item {args.item_id}")
            return 1
        playlist = tuple(i for i in self.bundle.playlist if i.id != args.item_id)
        self.save(replace(self.bundle, playlist=playlist))
        if item.kind == ContentKind.LOCAL_UPLOAD and args.delete_blob:
            self.local_cache.delete_blob(item.effective_blob_key)
        dangling = [r.id for r in self.bundle.schedules if r.target_item_id == args.item_id]
        if dangling:
            print(f"Warning: schedules still point at {args.item_id}: {', '.join(dangling)}")
        return 0

    def cmd_schedule_add(self, args) -> int:
        if self.bundle.find_item(args.item_id) is None:
            print(f"Warning: {args.item_id} is not in the playlist")
        if parse_minutes(args.start) > parse_minutes(args.end):
            print("Warning: start is after end, this rule will never match")
        rule = ScheduleRule(
            id=self.ids.next_id(),
            name=args.name or "",
            target_item_id=args.item_id,
            days_of_week=args.days,
            start_time=args.start,
            end_time=args.end,
            active=not args.inactive,
        )
        self.save(replace(self.bundle, schedules=self.bundle.schedules + (rule,)))
        print(f"Added schedule {rule.id}")
        return 0

    def cmd_schedule_remove(self, args) -> int:
        schedules = tuple(r for r in self.bundle.schedules if r.id != args.rule_id)
        if len(schedules) == len(self.bundle.schedules):
            print(f"No schedule {args.rule_id}")
            return 1
        self.save(replace(self.bundle, schedules=schedules))
        return 0

    def cmd_config(self, args) -> int:
        changes = {}
        for name in ("autoplay", "muted", "loop", "use_schedule"):
            value = getattr(args, name)
            if value is not None:
                changes[name] = value
        if args.language:
            changes["language_tag"] = args.language
        if args.player_mode:
            changes["player_mode"] = PlayerMode(args.player_mode)
        if args.current:
            changes["current_item_id"] = None if args.current == "none" else args.current

        if not changes:
            return self.cmd_show(args)
        self.save(replace(self.bundle, config=replace(self.bundle.config, **changes)))
        return 0

    def cmd_blobs(self, args) -> int:
        for meta in self.local_cache.list_blobs():
            size_mb = (meta.get("fileSize") or 0) / 1024 / 1024
            print(f"  {meta.get('key')}  {meta.get('fileName')}  {size_mb:.1f}MB")
        usage = self.local_cache.get_storage_usage()
        print(f"used {usage['used'] / 1024 / 1024:.1f}MB, free {usage['free'] / 1024 / 1024 / 1024:.1f}GB")
        return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog='streamcast-admin', description='Edit the Streamcast playlist, schedules and player config')
    sub = parser.add_subparsers(dest='command', required=True)

    sub.add_parser('show', help='Show the current bundle and what plays now')

    p = sub.add_parser('add-url', help='Add a video URL (YouTube, direct file, ...)')
    p.add_argument('url')
    p.add_argument('--title')

    for name, help_text in (('add-movie', 'Add a catalog movie'), ('add-show', 'Add a catalog show'), ('add-episode', 'Add one episode of a catalog show')):
        p = sub.add_parser(name, help=help_text)
        p.add_argument('--imdb', help='IMDb id, e.g. tt0111161')
        p.add_argument('--tmdb', help='TMDB id, e.g. 278')
        p.add_argument('--title')
        if name == 'add-episode':
            p.add_argument('--season', type=int, default=1)
            p.add_argument('--episode', type=int, default=1)

    p = sub.add_parser('search', help='Search the catalog by title')
    p.add_argument('query')
    p.add_argument('--tv', action='store_true', help='Search shows instead of movies')
    p.add_argument('--add', type=int, help='Add result number N to the playlist')
    p.add_argument('--season', type=int, help='With --tv --add: add this season...')
    p.add_argument('--episode', type=int, help='...and episode instead of the whole show')

    p = sub.add_parser('upload', help='Store a local media file on this device and add it')
    p.add_argument('path')
    p.add_argument('--title')

    p = sub.add_parser('remove', help='Remove an item from the playlist')
    p.add_argument('item_id')
    p.add_argument('--delete-blob', action='store_true', help='Also delete stored upload bytes')

    p = sub.add_parser('schedule-add', help='Play an item during a weekly time window')
    p.add_argument('item_id')
    p.add_argument('--days', type=_days, required=True, help='0-6 (0 = Sunday) or names, comma separated')
    p.add_argument('--start', type=_hhmm, default='00:00')
    p.add_argument('--end', type=_hhmm, default='23:59')
    p.add_argument('--name')
    p.add_argument('--inactive', action='store_true')

    p = sub.add_parser('schedule-remove', help='Remove a schedule rule')
    p.add_argument('rule_id')

    p = sub.add_parser('config', help='Change player settings')
    p.add_argument('--autoplay', type=_on_off)
    p.add_argument('--muted', type=_on_off)
    p.add_argument('--loop', type=_on_off)
    p.add_argument('--use-schedule', dest='use_schedule', type=_on_off)
    p.add_argument('--language', help='Language tag, e.g. pt-BR')
    p.add_argument('--player-mode', dest='player_mode', choices=[m.value for m in PlayerMode])
    p.add_argument('--current', help="Item id to play when no schedule matches ('none' to clear)")

    sub.add_parser('blobs', help='List uploads stored on this device')

    return parser


COMMANDS = {
    'show': StreamcastAdmin.cmd_show,
    'add-url': StreamcastAdmin.cmd_add_url,
    'add-movie': StreamcastAdmin.cmd_add_movie,
    'add-show': StreamcastAdmin.cmd_add_show,
    'add-episode': StreamcastAdmin.cmd_add_episode,
    'search': StreamcastAdmin.cmd_search,
    'upload': StreamcastAdmin.cmd_upload,
    'remove': StreamcastAdmin.cmd_remove,
    'schedule-add': StreamcastAdmin.cmd_schedule_add,
    'schedule-remove': StreamcastAdmin.cmd_schedule_remove,
    'config': StreamcastAdmin.cmd_config,
    'blobs': StreamcastAdmin.cmd_blobs,
}


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command in ('add-movie', 'add-show', 'add-episode') and not (args.imdb or args.tmdb):
        parser.error(f"{args.command} needs --imdb or --tmdb")

    admin = StreamcastAdmin(load_settings())
    admin.load()
    sys.exit(COMMANDS[args.command](admin, args))


if __name__ == '__main__':
    main()
