"""
Streamcast - Bundle Data Model

The bundle is the unit of replication: player config, playlist and schedule
table plus the lastUpdate timestamp used for last-writer-wins.

All values are immutable. A new bundle is built with dataclasses.replace()
or the with_* helpers; nothing mutates a bundle in place.

Wire format (JSON, camelCase, compatible with the web admin):

    {
      "config": {"autoplay": true, "muted": true, "loop": true,
                 "currentVideoId": null, "ds_lang": "pt-BR",
                 "useSchedule": true, "playerMode": "vidsrc"},
      "playlist": [{"id": "...", "title": "...", "type": "movie",
                    "url": "", "imdb": "tt0111161", "tmdb": "278", ...}],
      "schedules": [{"id": "...", "name": "...", "videoId": "...",
                     "days": [1, 2, 3], "startTime": "09:00",
                     "endTime": "18:00", "active": true}],
      "lastUpdate": 1718000000000
    }
"""

import json
import typing as tp
from dataclasses import dataclass, field, replace

from streamcast_player.streamcast_enums import ContentKind, PlayerMode
from streamcast_player.exceptions.bundle_format_exception import BundleFormatException

DEFAULT_LANGUAGE_TAG = "pt-BR"


def _as_bool(value, default: bool) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return default
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


def _as_int(value, default: tp.Optional[int] = None) -> tp.Optional[int]:
    if value is None or isinstance(value, bool):
        return default
    try:
        return int(value)
    except (TypeError, ValueError, OverflowError):
        return default


def _as_str(value, default: tp.Optional[str] = None) -> tp.Optional[str]:
    if value is None:
        return default
    return str(value)


def _as_entries(value, field_name: str) -> tp.List[tp.Any]:
    """
    Entries of a playlist or schedule table.

    Realtime databases store arrays with holes as objects keyed by index, so a
    dict is read back in index order. Anything else that is not a list is a
    format error.
    """
    if value is None or value == "":
        return []
    if isinstance(value, dict):
        return [value[k] for k in sorted(value, key=lambda k: _as_int(k, 0))]
    if isinstance(value, (list, tuple)):
        return list(value)
    raise BundleFormatException(field_name, f"expected a list, got {type(value).__name__}")


@dataclass(frozen=True)
class PlayerConfig:
    autoplay: bool = True
    muted: bool = True
    loop: bool = True
    current_item_id: tp.Optional[str] = None
    use_schedule: bool = True
    language_tag: str = DEFAULT_LANGUAGE_TAG
    player_mode: PlayerMode = PlayerMode.VIDSRC

    def to_dict(self) -> tp.Dict[str, tp.Any]:
        return {
            "autoplay": self.autoplay,
            "muted": self.muted,
            "loop": self.loop,
            "currentVideoId": self.current_item_id,
            "useSchedule": self.use_schedule,
            "ds_lang": self.language_tag,
            "playerMode": self.player_mode.value,
        }

    @classmethod
    def from_dict(cls, data: tp.Optional[tp.Dict[str, tp.Any]]) -> "PlayerConfig":
        if not isinstance(data, dict):
            return cls()
        return cls(
            autoplay=_as_bool(data.get("autoplay"), True),
            muted=_as_bool(data.get("muted"), True),
            loop=_as_bool(data.get("loop"), True),
            current_item_id=_as_str(data.get("currentVideoId")),
            use_schedule=_as_bool(data.get("useSchedule"), True),
            language_tag=_as_str(data.get("ds_lang"), DEFAULT_LANGUAGE_TAG),
            player_mode=PlayerMode.from_wire(data.get("playerMode")),
        )


@dataclass(frozen=True)
class ContentItem:
    """
    One playable unit of the playlist.

    Which locator fields matter depends on kind:
        DIRECT           -> url
        CATALOG_MOVIE    -> imdb_id and/or tmdb_id
        CATALOG_SHOW     -> imdb_id and/or tmdb_id
        CATALOG_EPISODE  -> imdb_id and/or tmdb_id, season, episode
        LOCAL_UPLOAD     -> blob_key (falls back to id)
    """
    id: str
    title: str = ""
    kind: ContentKind = ContentKind.DIRECT
    url: str = ""
    imdb_id: tp.Optional[str] = None
    tmdb_id: tp.Optional[str] = None
    season: tp.Optional[int] = None
    episode: tp.Optional[int] = None
    blob_key: tp.Optional[str] = None
    tags: tp.Tuple[str, ...] = ()
    added_at: str = ""
    poster_path: tp.Optional[str] = None
    file_name: tp.Optional[str] = None
    file_size: tp.Optional[int] = None
    duration: tp.Optional[float] = None
    thumbnail: tp.Optional[str] = None

    @property
    def effective_blob_key(self) -> str:
        return self.blob_key or self.id

    def to_dict(self) -> tp.Dict[str, tp.Any]:
        data = {
            "id": self.id,
            "title": self.title,
            "type": self.kind.value,
            "url": self.url,
            "addedAt": self.added_at,
            "tags": list(self.tags),
        }
        optional = {
            "imdb": self.imdb_id,
            "tmdb": self.tmdb_id,
            "season": self.season,
            "episode": self.episode,
            "blobKey": self.blob_key,
            "posterPath": self.poster_path,
            "fileName": self.file_name,
            "fileSize": self.file_size,
            "duration": self.duration,
            "thumbnail": self.thumbnail,
        }
        data.update({k: v for k, v in optional.items() if v is not None})
        if self.kind == ContentKind.LOCAL_UPLOAD:
            data["isUpload"] = True
        return data

    @classmethod
    def from_dict(cls, data: tp.Dict[str, tp.Any]) -> "ContentItem":
        if not isinstance(data, dict):
            raise BundleFormatException("playlist entry", f"expected an object, got {type(data).__name__}")
        kind = ContentKind.from_wire(data.get("type"))
        if data.get("isUpload") and kind == ContentKind.DIRECT:
            kind = ContentKind.LOCAL_UPLOAD
        tags = data.get("tags") or []
        duration = data.get("duration")
        try:
            duration = float(duration) if duration is not None else None
        except (TypeError, ValueError):
            duration = None
        return cls(
            id=_as_str(data.get("id"), ""),
            title=_as_str(data.get("title"), ""),
            kind=kind,
            url=_as_str(data.get("url"), ""),
            imdb_id=_as_str(data.get("imdb")),
            tmdb_id=_as_str(data.get("tmdb")),
            season=_as_int(data.get("season")),
            episode=_as_int(data.get("episode")),
            blob_key=_as_str(data.get("blobKey")),
            tags=tuple(str(t) for t in tags) if isinstance(tags, (list, tuple)) else (),
            added_at=_as_str(data.get("addedAt"), ""),
            poster_path=_as_str(data.get("posterPath")),
            file_name=_as_str(data.get("fileName")),
            file_size=_as_int(data.get("fileSize")),
            duration=duration,
            thumbnail=_as_str(data.get("thumbnail")),
        )


@dataclass(frozen=True)
class ScheduleRule:
    """
    A same-day wall-clock window bound to a playlist item.

    days_of_week uses 0 = Sunday .. 6 = Saturday. start_time and end_time are
    "HH:MM" strings kept exactly as authored.
    """
    id: str
    target_item_id: str
    days_of_week: tp.FrozenSet[int] = frozenset()
    start_time: str = "00:00"
    end_time: str = "23:59"
    active: bool = True
    name: str = ""

    def to_dict(self) -> tp.Dict[str, tp.Any]:
        return {
            "id": self.id,
            "name": self.name,
            "videoId": self.target_item_id,
            "days": sorted(self.days_of_week),
            "startTime": self.start_time,
            "endTime": self.end_time,
            "active": self.active,
        }

    @classmethod
    def from_dict(cls, data: tp.Dict[str, tp.Any]) -> "ScheduleRule":
        if not isinstance(data, dict):
            raise BundleFormatException("schedule entry", f"expected an object, got {type(data).__name__}")
        days = data.get("days") or []
        if not isinstance(days, (list, tuple)):
            days = []
        parsed_days = {_as_int(d) for d in days}
        return cls(
            id=_as_str(data.get("id"), ""),
            name=_as_str(data.get("name"), ""),
            target_item_id=_as_str(data.get("videoId"), ""),
            days_of_week=frozenset(d for d in parsed_days if d is not None and 0 <= d <= 6),
            start_time=_as_str(data.get("startTime"), "00:00"),
            end_time=_as_str(data.get("endTime"), "23:59"),
            active=_as_bool(data.get("active"), True),
        )


def find_item(playlist: tp.Sequence[ContentItem], item_id: tp.Optional[str]) -> tp.Optional[ContentItem]:
    """Look an item up by id. Absent ids (dangling references) give None."""
    if item_id is None:
        return None
    for item in playlist:
        if item.id == item_id:
            return item
    return None


@dataclass(frozen=True)
class Bundle:
    config: PlayerConfig = field(default_factory=PlayerConfig)
    playlist: tp.Tuple[ContentItem, ...] = ()
    schedules: tp.Tuple[ScheduleRule, ...] = ()
    last_update: int = 0

    @classmethod
    def empty(cls) -> "Bundle":
        return cls()

    def find_item(self, item_id: tp.Optional[str]) -> tp.Optional[ContentItem]:
        return find_item(self.playlist, item_id)

    def with_current_item(self, item_id: tp.Optional[str]) -> "Bundle":
        return replace(self, config=replace(self.config, current_item_id=item_id))

    def to_dict(self) -> tp.Dict[str, tp.Any]:
        return {
            "config": self.config.to_dict(),
            "playlist": [item.to_dict() for item in self.playlist],
            "schedules": [rule.to_dict() for rule in self.schedules],
            "lastUpdate": self.last_update,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_dict(cls, data: tp.Dict[str, tp.Any]) -> "Bundle":
        """
        Build a bundle from its wire form.

        Raises:
            BundleFormatException: if data is not a JSON object, playlist or
                schedules is not a list, or one of their entries is not an object.
        """
        if not isinstance(data, dict):
            raise BundleFormatException("record", f"expected an object, got {type(data).__name__}")
        playlist = _as_entries(data.get("playlist"), "playlist")
        schedules = _as_entries(data.get("schedules"), "schedules")
        return cls(
            config=PlayerConfig.from_dict(data.get("config")),
            playlist=tuple(ContentItem.from_dict(p) for p in playlist if p is not None),
            schedules=tuple(ScheduleRule.from_dict(s) for s in schedules if s is not None),
            last_update=_as_int(data.get("lastUpdate"), 0),
        )

    @classmethod
    def from_json(cls, text: str) -> "Bundle":
        try:
            data = json.loads(text)
        except (TypeError, ValueError) as e:
            raise BundleFormatException("JSON text", str(e))
        return cls.from_dict(data)


def parse_bundle_or_none(data, source: str, logger=None) -> tp.Optional[Bundle]:
    """
    Lenient parse used at adapter boundaries: anything unparseable is absent.

    Args:
        data: Decoded JSON (dict) or raw JSON text
        source: Where the data came from, for the log message
        logger: Optional logger for the warning

    Returns:
        The parsed Bundle, or None if data is empty or malformed.
    """
    if data is None or data == "":
        return None
    try:
        if isinstance(data, (str, bytes)):
            return Bundle.from_json(data)
        return Bundle.from_dict(data)
    except BundleFormatException as e:
        if logger:
            logger.warning(f"Ignoring malformed bundle from {source}: {e.message}")
        return None
