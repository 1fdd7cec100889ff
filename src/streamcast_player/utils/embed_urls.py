"""
Embed URL templates for catalog content.

One pure formatter per catalog kind:

    movie    https://embedmaster.link/movie/{id}
    show     https://embedmaster.link/tv/{id}
    episode  https://embedmaster.link/tv/{id}/{season}/{episode}

{id} prefers a well-formed IMDb id (stable across catalogs) over a TMDB id.
Formatters never raise: missing or malformed ids still produce a URL,
just without the id segment.
"""

import re
import typing as tp
from urllib.parse import urlencode

EMBED_BASE_URL = "https://embedmaster.link"
MOVIE_BASE_URL = f"{EMBED_BASE_URL}/movie"
TV_BASE_URL = f"{EMBED_BASE_URL}/tv"

IMDB_ID_PATTERN = re.compile(r'^tt\d+', re.IGNORECASE)
TMDB_ID_PATTERN = re.compile(r'^\d+$')


def pick_catalog_id(imdb_id: tp.Optional[str], tmdb_id: tp.Optional[tp.Union[str, int]]) -> tp.Optional[str]:
    """
    Choose the identifier to put in the embed URL.

    Order: well-formed IMDb id, numeric TMDB id, IMDb id normalised to tt...,
    TMDB id as-is, nothing.
    """
    imdb = str(imdb_id).strip() if imdb_id is not None else ''
    tmdb = str(tmdb_id).strip() if tmdb_id is not None else ''

    if imdb and IMDB_ID_PATTERN.match(imdb):
        return imdb
    if tmdb and TMDB_ID_PATTERN.match(tmdb):
        return tmdb
    if imdb:
        return f"tt{re.sub(r'^tt', '', imdb, flags=re.IGNORECASE)}"
    if tmdb:
        return tmdb
    return None


def _with_query(url: str, params: tp.Dict[str, str]) -> str:
    params = {k: v for k, v in params.items() if v not in (None, '')}
    if not params:
        return url
    return f"{url}?{urlencode(params)}"


def build_movie_url(imdb_id=None, tmdb_id=None, language_tag: str = None, autoplay: bool = None) -> str:
    catalog_id = pick_catalog_id(imdb_id, tmdb_id)
    url = f"{MOVIE_BASE_URL}/{catalog_id}" if catalog_id else MOVIE_BASE_URL
    return _with_query(url, {
        'ds_lang': language_tag,
        'autoplay': None if autoplay is None else ('1' if autoplay else '0'),
    })


def build_tv_url(imdb_id=None, tmdb_id=None, language_tag: str = None) -> str:
    catalog_id = pick_catalog_id(imdb_id, tmdb_id)
    url = f"{TV_BASE_URL}/{catalog_id}" if catalog_id else TV_BASE_URL
    return _with_query(url, {'ds_lang': language_tag})


def build_episode_url(
        imdb_id=None,
        tmdb_id=None,
        season: tp.Optional[int] = None,
        episode: tp.Optional[int] = None,
        language_tag: str = None,
        autoplay: bool = None,
        autonext: bool = True
) -> str:
    catalog_id = pick_catalog_id(imdb_id, tmdb_id)
    season = season or 1
    episode = episode or 1
    url = f"{TV_BASE_URL}/{catalog_id}/{season}/{episode}" if catalog_id else TV_BASE_URL
    return _with_query(url, {
        'ds_lang': language_tag,
        'autoplay': None if autoplay is None else ('1' if autoplay else '0'),
        'autonext': '1' if autonext else None,
    })
