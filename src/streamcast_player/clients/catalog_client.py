import logging
import typing as tp
from dataclasses import dataclass
from datetime import datetime, timezone

import certifi
import requests

from streamcast_player.models import DEFAULT_LANGUAGE_TAG, ContentItem
from streamcast_player.streamcast_enums import ContentKind

API_BASE_URL = "https://api.themoviedb.org/3"
POSTER_BASE_URL = "https://image.tmdb.org/t/p"
DEFAULT_REQUEST_TIMEOUT = 10  # seconds

# Language tried when the configured one gives no results
FALLBACK_LANGUAGE = "en-US"

# Catalog path segment per content kind
KIND_PATHS = {
    ContentKind.CATALOG_MOVIE: "movie",
    ContentKind.CATALOG_SHOW: "tv",
    ContentKind.CATALOG_EPISODE: "tv",
}

GENRE_TAGS = {
    28: "Action",
    12: "Adventure",
    16: "Animation",
    35: "Comedy",
    80: "Crime",
    99: "Documentary",
    18: "Drama",
    10751: "Family",
    14: "Fantasy",
    36: "History",
    27: "Horror",
    10402: "Music",
    9648: "Mystery",
    10749: "Romance",
    878: "Science Fiction",
    10770: "TV Movie",
    53: "Thriller",
    10752: "War",
    37: "Western",
}


@dataclass(frozen=True)
class CatalogResult:
    catalog_id: str
    kind: ContentKind
    title: str
    poster_path: tp.Optional[str] = None
    genre_ids: tp.Tuple[int, ...] = ()
    release_date: str = ""

    @property
    def tags(self) -> tp.Tuple[str, ...]:
        return tuple(GENRE_TAGS[g] for g in self.genre_ids if g in GENRE_TAGS)

    @classmethod
    def from_api(cls, data: tp.Dict[str, tp.Any], kind: ContentKind) -> "CatalogResult":
        is_movie = kind == ContentKind.CATALOG_MOVIE
        return cls(
            catalog_id=str(data.get("id")),
            kind=ContentKind.CATALOG_MOVIE if is_movie else ContentKind.CATALOG_SHOW,
            title=data.get("title" if is_movie else "name") or "",
            poster_path=data.get("poster_path"),
            genre_ids=tuple(g for g in data.get("genre_ids") or [] if isinstance(g, int)),
            release_date=data.get("release_date" if is_movie else "first_air_date") or "",
        )


def poster_url(poster_path: tp.Optional[str], size: str = "w200") -> tp.Optional[str]:
    if not poster_path:
        return None
    return f"{POSTER_BASE_URL}/{size}{poster_path}"


def content_item_from_result(
        result: CatalogResult,
        item_id: str,
        imdb_id: tp.Optional[str] = None,
        season: tp.Optional[int] = None,
        episode: tp.Optional[int] = None,
        added_at: tp.Optional[str] = None
) -> ContentItem:
    """
    Build the playlist item for a catalog search result.

    A show becomes a CATALOG_EPISODE item when season and episode are given,
    titled like "Show Name - S01E02".
    """
    kind = result.kind
    title = result.title
    if kind == ContentKind.CATALOG_SHOW and season is not None and episode is not None:
        kind = ContentKind.CATALOG_EPISODE
        title = f"{result.title} - S{season:02d}E{episode:02d}"
    else:
        season = episode = None

    return ContentItem(
        id=item_id,
        title=title,
        kind=kind,
        url="",
        imdb_id=imdb_id,
        tmdb_id=result.catalog_id,
        season=season,
        episode=episode,
        tags=result.tags,
        added_at=added_at or datetime.now(timezone.utc).isoformat(),
        poster_path=result.poster_path,
    )


class CatalogClient:
    """TMDB lookups for the authoring client. Failures give empty results, never raise."""

    def __init__(self, api_key: str, language_tag: str = DEFAULT_LANGUAGE_TAG, session: tp.Optional[requests.Session] = None):
        self.logger = logging.getLogger(__name__)
        self.api_key = api_key
        self.language_tag = language_tag
        self.session = session or requests.Session()

    def _make_api_request(self, endpoint: str, params: tp.Optional[tp.Dict[str, tp.Any]] = None) -> tp.Optional[tp.Dict[str, tp.Any]]:
        url = f"{API_BASE_URL}/{endpoint}"
        query = {"api_key": self.api_key}
        query.update(params or {})
        try:
            response = self.session.get(url, params=query, timeout=DEFAULT_REQUEST_TIMEOUT, verify=certifi.where())
            response.raise_for_status()
            return response.json()
        except requests.RequestException as e:
            self.logger.error(f"Catalog request error for {endpoint}: {e}")
            return None
        except ValueError as e:
            self.logger.error(f"Catalog returned invalid JSON for {endpoint}: {e}")
            return None

    def _search(self, kind: ContentKind, query: str, language: str) -> tp.List[CatalogResult]:
        data = self._make_api_request(
            f"search/{KIND_PATHS[kind]}",
            params={"query": query, "language": language, "include_adult": "false"}
        )
        if not data:
            return []
        return [CatalogResult.from_api(r, kind) for r in data.get("results") or [] if isinstance(r, dict)]

    def search_by_title(self, query: str, kind: ContentKind = ContentKind.CATALOG_MOVIE) -> tp.List[CatalogResult]:
        """
        Search movies or shows by title.

        Searches in the configured language first and retries in en-US when
        that finds nothing.
        """
        if not query or not query.strip():
            return []
        if kind not in KIND_PATHS:
            self.logger.error(f"Cannot search the catalog for kind {kind.value}")
            return []

        results = self._search(kind, query.strip(), self.language_tag)
        if not results and self.language_tag != FALLBACK_LANGUAGE:
            self.logger.info(f"No results for '{query}' in {self.language_tag}, retrying in {FALLBACK_LANGUAGE}")
            results = self._search(kind, query.strip(), FALLBACK_LANGUAGE)
        return results

    def get_external_ids(self, catalog_id: str, kind: ContentKind = ContentKind.CATALOG_MOVIE) -> tp.Optional[str]:
        """IMDb id of a catalog title, or None if unknown."""
        if kind not in KIND_PATHS:
            return None
        data = self._make_api_request(f"{KIND_PATHS[kind]}/{catalog_id}/external_ids")
        if not data:
            return None
        return data.get("imdb_id") or None
