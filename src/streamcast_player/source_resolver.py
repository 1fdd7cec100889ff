"""
Streamcast - Source Resolver

Turns a playlist item into a RenderInstruction the renderer can act on
without knowing anything about content kinds:

    LOCAL_BLOB  upload stored in this device's blob store (bytes resolved at playback)
    EMBED       third-party player page (YouTube embed or catalog embed)
    STREAM      raw streamable file URL

resolve() is total and never raises: every ContentItem maps to exactly one
instruction. Only the bytes of a LOCAL_BLOB can turn out to be missing, and
that is reported by resolve_blob_url() at playback time.
"""

import logging
import typing as tp
from dataclasses import dataclass, replace

from streamcast_player.models import ContentItem, PlayerConfig
from streamcast_player.streamcast_enums import ContentKind, InstructionKind
from streamcast_player.exceptions.blob_not_found_exception import BlobNotFoundException
from streamcast_player.utils import embed_urls
from streamcast_player.utils.video_detector import SOURCE_YOUTUBE, SourceDetection, build_youtube_embed_url, detect_source

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RenderInstruction:
    kind: InstructionKind
    item_id: str
    title: str = ""
    url: tp.Optional[str] = None       # STREAM/EMBED target, or file URL once a blob is resolved
    blob_key: tp.Optional[str] = None  # LOCAL_BLOB only
    autoplay: bool = True
    muted: bool = True
    loop: bool = True

    @property
    def needs_blob(self) -> bool:
        return self.kind == InstructionKind.LOCAL_BLOB and not self.url

    def with_url(self, url: str) -> "RenderInstruction":
        return replace(self, url=url)


# One pure formatter per catalog kind
CATALOG_URL_BUILDERS: tp.Dict[ContentKind, tp.Callable[[ContentItem, PlayerConfig], str]] = {
    ContentKind.CATALOG_MOVIE: lambda item, config: embed_urls.build_movie_url(
        imdb_id=item.imdb_id,
        tmdb_id=item.tmdb_id,
        language_tag=config.language_tag,
        autoplay=config.autoplay,
    ),
    ContentKind.CATALOG_SHOW: lambda item, config: embed_urls.build_tv_url(
        imdb_id=item.imdb_id,
        tmdb_id=item.tmdb_id,
        language_tag=config.language_tag,
    ),
    ContentKind.CATALOG_EPISODE: lambda item, config: embed_urls.build_episode_url(
        imdb_id=item.imdb_id,
        tmdb_id=item.tmdb_id,
        season=item.season,
        episode=item.episode,
        language_tag=config.language_tag,
        autoplay=config.autoplay,
        autonext=True,
    ),
}


def resolve(item: ContentItem, config: tp.Optional[PlayerConfig] = None) -> RenderInstruction:
    """
    Classify a content item into a render instruction.

    Args:
        item: The playlist item to play
        config: Player config supplying autoplay/muted/loop and the language tag

    Returns:
        RenderInstruction for the item.
    """
    config = config or PlayerConfig()
    base = RenderInstruction(
        kind=InstructionKind.STREAM,
        item_id=item.id,
        title=item.title,
        autoplay=config.autoplay,
        muted=config.muted,
        loop=config.loop,
    )

    if item.kind == ContentKind.LOCAL_UPLOAD:
        return replace(base, kind=InstructionKind.LOCAL_BLOB, blob_key=item.effective_blob_key)

    builder = CATALOG_URL_BUILDERS.get(item.kind)
    if builder is not None:
        return replace(base, kind=InstructionKind.EMBED, url=builder(item, config))

    # DIRECT: embeddable hosts become an embed page, everything else is streamed as-is
    detection = detect_source(item.url)
    if detection.source_type == SOURCE_YOUTUBE:
        embed_url = build_youtube_embed_url(item.url, autoplay=config.autoplay, muted=config.muted)
        return replace(base, kind=InstructionKind.EMBED, url=embed_url)

    return replace(base, url=item.url)


def resolve_blob_url(instruction: RenderInstruction, blob_store) -> tp.Tuple[tp.Optional[str], tp.Optional[BlobNotFoundException]]:
    """
    Resolve the playable URL of a LOCAL_BLOB instruction at playback time.

    Args:
        instruction: A LOCAL_BLOB instruction
        blob_store: Object with get_blob_url(key) -> url | None (the local cache)

    Returns:
        Tuple of (url, None) when the bytes are on this device, or
        (None, BlobNotFoundException) when they are not. Never raises.
    """
    key = instruction.blob_key or instruction.item_id
    try:
        url = blob_store.get_blob_url(key)
    except OSError as e:
        logger.error(f"Error reading blob store for {key}: {e}")
        url = None

    if url:
        return url, None

    logger.warning(f"Blob {key} for item {instruction.item_id} not found on this device")
    return None, BlobNotFoundException(key)


def describe_source(url: str) -> SourceDetection:
    """
    Classify an arbitrary URL for the authoring client: youtube, direct file
    (known video extension, Google Drive export=download, Dropbox dl=1) or an
    embedded third-party player.
    """
    return detect_source(url)
