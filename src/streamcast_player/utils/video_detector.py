"""
Classify raw URLs: YouTube (embeddable by video/playlist id), directly
streamable files, or anything else.
"""

import re
import typing as tp
from dataclasses import dataclass
from urllib.parse import urlencode

YOUTUBE_HOST_PATTERN = re.compile(r'(?:youtube\.com|youtu\.be)', re.IGNORECASE)
YOUTUBE_ID_PATTERN = re.compile(
    r'(?:youtube\.com/watch\?(?:.*&)?v=|youtu\.be/|youtube\.com/embed/|youtube\.com/shorts/)([a-zA-Z0-9_-]{11})'
)
YOUTUBE_PLAYLIST_PATTERN = re.compile(r'[?&]list=([a-zA-Z0-9_-]+)')
DIRECT_VIDEO_PATTERN = re.compile(r'\.(mp4|webm|ogg|mov|avi|mkv|m4v|flv|m3u8)(\?.*)?$', re.IGNORECASE)

YOUTUBE_EMBED_URL = "https://www.youtube.com/embed"

SOURCE_YOUTUBE = 'youtube'
SOURCE_DIRECT = 'direct'
SOURCE_OTHER = 'vidsrc'

SOURCE_LABELS = {
    SOURCE_YOUTUBE: 'YouTube',
    SOURCE_DIRECT: 'Direct video (MP4/WebM)',
    SOURCE_OTHER: 'Embedded player',
}


@dataclass(frozen=True)
class SourceDetection:
    source_type: str
    url: str
    video_id: tp.Optional[str] = None
    playlist_id: tp.Optional[str] = None

    @property
    def is_playlist(self) -> bool:
        return self.playlist_id is not None

    @property
    def label(self) -> str:
        return SOURCE_LABELS.get(self.source_type, 'Unknown')


def is_youtube_url(url: str) -> bool:
    return bool(url) and YOUTUBE_HOST_PATTERN.search(url) is not None


def extract_youtube_id(url: str) -> tp.Optional[str]:
    match = YOUTUBE_ID_PATTERN.search(url or '')
    return match.group(1) if match else None


def extract_youtube_playlist_id(url: str) -> tp.Optional[str]:
    match = YOUTUBE_PLAYLIST_PATTERN.search(url or '')
    return match.group(1) if match else None


def can_play_directly(url: str) -> bool:
    """Files a plain media player can stream without an embed page."""
    if not url:
        return False
    if 'drive.google.com' in url and 'export=download' in url:
        return True
    if 'dropbox.com' in url and 'dl=1' in url:
        return True
    return DIRECT_VIDEO_PATTERN.search(url) is not None


def build_youtube_embed_url(url: str, autoplay: bool = False, muted: bool = False) -> str:
    """
    Convert any YouTube link to its embed URL.

    Returns the input unchanged when it carries neither a video nor a playlist id.
    """
    video_id = extract_youtube_id(url)
    playlist_id = extract_youtube_playlist_id(url)

    params = {
        'autoplay': '1' if autoplay else '0',
        'mute': '1' if muted else '0',
        'rel': '0',
        'modestbranding': '1',
    }

    if playlist_id:
        params['list'] = playlist_id
        if video_id:
            return f"{YOUTUBE_EMBED_URL}/{video_id}?{urlencode(params)}"
        return f"{YOUTUBE_EMBED_URL}/videoseries?{urlencode(params)}"

    if not video_id:
        return url
    return f"{YOUTUBE_EMBED_URL}/{video_id}?{urlencode(params)}"


def detect_source(url: str) -> SourceDetection:
    """Classify a URL the way the player will treat it."""
    url = (url or '').strip()

    if is_youtube_url(url):
        video_id = extract_youtube_id(url)
        playlist_id = extract_youtube_playlist_id(url)
        if playlist_id:
            return SourceDetection(SOURCE_YOUTUBE, f"{YOUTUBE_EMBED_URL}/videoseries?list={playlist_id}",
                                   video_id=video_id, playlist_id=playlist_id)
        if video_id:
            return SourceDetection(SOURCE_YOUTUBE, f"{YOUTUBE_EMBED_URL}/{video_id}", video_id=video_id)

    if can_play_directly(url):
        return SourceDetection(SOURCE_DIRECT, url)

    return SourceDetection(SOURCE_OTHER, url)
