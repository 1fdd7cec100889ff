from enum import Enum


class ContentKind(Enum):
    """Kind of a playlist item. Values are the names used on the wire."""
    DIRECT = "direct"
    CATALOG_MOVIE = "movie"
    CATALOG_SHOW = "tv"
    CATALOG_EPISODE = "episode"
    LOCAL_UPLOAD = "upload"

    @classmethod
    def from_wire(cls, value) -> "ContentKind":
        for kind in cls:
            if kind.value == value:
                return kind
        return cls.DIRECT


class PlayerMode(Enum):
    VIDSRC = "vidsrc"
    DIRECT = "direct"
    YOUTUBE = "youtube"

    @classmethod
    def from_wire(cls, value) -> "PlayerMode":
        for mode in cls:
            if mode.value == value:
                return mode
        return cls.VIDSRC


class InstructionKind(Enum):
    """How the renderer has to play a content item."""
    STREAM = "stream"          # raw streamable file URL
    EMBED = "embed"            # third-party player page (iframe URL)
    LOCAL_BLOB = "local_blob"  # media stored in this device's blob store


class SyncState(Enum):
    UNINITIALIZED = "uninitialized"
    LOADING = "loading"
    READY = "ready"
    RECONCILING = "reconciling"


class TriggerKind(Enum):
    STARTUP_LOCAL = "startup_local"
    STARTUP_REMOTE = "startup_remote"
    REMOTE_CHANGE = "remote_change"
    AUTHOR_WRITE = "author_write"
    POLL_TICK = "poll_tick"
    CROSS_INSTANCE = "cross_instance"
    ITEM_OVERRIDE = "item_override"


class ResolutionReason(Enum):
    SCHEDULED = "scheduled"
    DANGLING_SCHEDULE = "dangling_schedule"
    CURRENT_ITEM = "current_item"
    FIRST_ITEM = "first_item"
    EMPTY_PLAYLIST = "empty_playlist"
