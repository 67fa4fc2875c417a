"""
Last.FM API Client - Similarity adapter (similar artists, top tracks, similar tracks, tags)
"""
import logging
from typing import Any, Dict, List, Optional, Union

import requests

from .errors import ProviderError, ProviderErrorKind
from .provider_cache import ProviderCache
from .provider_http import JsonHttpProvider

logger = logging.getLogger(__name__)

# Last.fm API error codes
_ERROR_NOT_FOUND = 6
_ERROR_RATE_LIMIT = 29

_EXCLUDED_TAGS = {
    'seen live', 'favorite', 'favorites', 'favourites', 'albums i own',
    'love', 'loved', 'beautiful', 'awesome', 'great', 'amazing',
}


def _as_list(value: Any) -> List[Any]:
    """Last.fm returns a bare object instead of a one-element list; normalize."""
    if not value:
        return []
    if not isinstance(value, list):
        return [value]
    return value


def _to_int(value: Any, default: int = 0) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _to_float(value: Any, default: float = 0.0) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


class LastFMClient(JsonHttpProvider):
    """Client for the Last.FM similarity endpoints"""

    BASE_URL = "https://ws.audioscrobbler.com/2.0/"
    provider_name = "Last.FM"

    def __init__(
        self,
        api_key: str,
        cache: Optional[ProviderCache] = None,
        *,
        session: Optional[requests.Session] = None,
        calls_per_second: Optional[float] = 5.0,
        timeout: float = 10.0,
    ):
        """
        Initialize Last.FM client

        Args:
            api_key: Last.FM API key
            cache: Session cache shared with the other adapters (optional)
            session: requests.Session to reuse
            calls_per_second: Client-side pacing (Last.FM asks for at most 5/s)
            timeout: Request timeout in seconds
        """
        super().__init__(session=session, timeout=timeout, calls_per_second=calls_per_second)
        self.api_key = api_key
        self.cache = cache
        logger.info("Initialized Last.FM client")

    def _make_request(self, method: str, params: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """
        Call a Last.FM API method.

        Args:
            method: API method name
            params: Additional parameters

        Returns:
            JSON response, or None when Last.FM has no data for the query

        Raises:
            ProviderError: on transport failures and API errors other than "not found"
        """
        request_params = {
            'method': method,
            'api_key': self.api_key,
            'format': 'json',
            **params
        }
        data = self._get_json(self.BASE_URL, request_params)

        if 'error' in data:
            code = _to_int(data.get('error'))
            message = data.get('message', '')
            if code == _ERROR_NOT_FOUND:
                logger.debug(f"Last.FM has no data for {method} {params}: {message}")
                return None
            if code == _ERROR_RATE_LIMIT:
                logger.warning(f"Last.FM rate limit exceeded ({method})")
                raise ProviderError(ProviderErrorKind.RATE_LIMIT, message=message)
            logger.error(f"Last.FM API error {code} for {method}: {message}")
            raise ProviderError(ProviderErrorKind.NETWORK, message=f"API error {code}: {message}")

        return data

    def _cached(self, call: str, args: tuple, limit: int) -> Optional[Any]:
        if self.cache is None:
            return None
        return self.cache.get(call, args, limit)

    def _store(self, call: str, args: tuple, limit: int, value: Any) -> None:
        if self.cache is not None:
            self.cache.set(call, args, limit, value)

    def get_similar_artists(self, artist_name: str, limit: int = 30) -> List[Dict[str, Any]]:
        """
        Get similar artists to a given artist, most similar first

        Args:
            artist_name: Name of the artist
            limit: Number of similar artists to return

        Returns:
            List of similar artist dictionaries with name and match score
        """
        cached = self._cached('artist.getSimilar', (artist_name,), limit)
        if cached is not None:
            return cached

        data = self._make_request('artist.getsimilar', {
            'artist': artist_name,
            'limit': limit,
            'autocorrect': 1,
        })

        similar_artists = []
        if data and 'similarartists' in data:
            for artist in _as_list(data['similarartists'].get('artist')):
                name = (artist.get('name') or '').strip()
                if not name:
                    continue
                similar_artists.append({
                    'name': name,
                    'match': _to_float(artist.get('match')),  # Similarity score from Last.FM
                    'mbid': artist.get('mbid', '')
                })

        logger.debug(f"Last.FM: {len(similar_artists)} artists similar to '{artist_name}'")
        self._store('artist.getSimilar', (artist_name,), limit, similar_artists)
        return similar_artists

    def get_top_tracks(
        self,
        artist_name: str,
        limit: int = 10,
        with_rank: bool = False,
    ) -> List[Union[str, Dict[str, Any]]]:
        """
        Get an artist's most popular tracks

        Args:
            artist_name: Name of the artist
            limit: Number of tracks to return
            with_rank: Return dicts with rank and playcount instead of bare titles

        Returns:
            List of titles, or of {'title', 'rank', 'playcount'} when with_rank
        """
        call = 'artist.getTopTracks:rank' if with_rank else 'artist.getTopTracks'
        cached = self._cached(call, (artist_name,), limit)
        if cached is not None:
            return cached

        data = self._make_request('artist.gettoptracks', {
            'artist': artist_name,
            'limit': limit,
            'autocorrect': 1,
        })

        tracks: List[Union[str, Dict[str, Any]]] = []
        if data and 'toptracks' in data:
            for position, track in enumerate(_as_list(data['toptracks'].get('track')), start=1):
                title = (track.get('name') or '').strip()
                if not title:
                    continue
                if with_rank:
                    attr = track.get('@attr') or {}
                    tracks.append({
                        'title': title,
                        'rank': _to_int(attr.get('rank'), position),
                        'playcount': _to_int(track.get('playcount')),
                    })
                else:
                    tracks.append(title)

        tracks = tracks[:limit]
        self._store(call, (artist_name,), limit, tracks)
        return tracks

    def get_similar_tracks(self, artist_name: str, track_title: str, limit: int = 100) -> List[Dict[str, Any]]:
        """
        Get tracks similar to a given track

        Args:
            artist_name: Artist of the seed track
            track_title: Title of the seed track
            limit: Number of similar tracks to return

        Returns:
            List of {'artist', 'title', 'match', 'playcount'} dictionaries
        """
        cached = self._cached('track.getSimilar', (artist_name, track_title), limit)
        if cached is not None:
            return cached

        data = self._make_request('track.getsimilar', {
            'artist': artist_name,
            'track': track_title,
            'limit': limit,
            'autocorrect': 1,
        })

        similar_tracks = []
        if data and 'similartracks' in data:
            for track in _as_list(data['similartracks'].get('track')):
                artist = track.get('artist', {})
                artist = artist.get('name', '') if isinstance(artist, dict) else str(artist or '')
                title = (track.get('name') or '').strip()
                if not artist.strip() or not title:
                    continue
                similar_tracks.append({
                    'artist': artist.strip(),
                    'title': title,
                    'match': _to_float(track.get('match')),
                    'playcount': _to_int(track.get('playcount')),
                })

        self._store('track.getSimilar', (artist_name, track_title), limit, similar_tracks)
        return similar_tracks

    def get_artist_info(self, artist_name: str) -> Optional[Dict[str, Any]]:
        """
        Get artist details (tags, listeners, playcount, similar artist names)

        Returns:
            Artist info dictionary, or None when Last.FM does not know the artist
        """
        cached = self._cached('artist.getInfo', (artist_name,), 0)
        if cached is not None:
            return cached or None

        data = self._make_request('artist.getinfo', {
            'artist': artist_name,
            'autocorrect': 1,
        })

        info: Dict[str, Any] = {}
        if data and 'artist' in data:
            artist = data['artist']
            stats = artist.get('stats') or {}
            tags = _as_list((artist.get('tags') or {}).get('tag'))
            similar = _as_list((artist.get('similar') or {}).get('artist'))
            info = {
                'name': (artist.get('name') or artist_name).strip(),
                'tags': [t.get('name', '').strip() for t in tags if t.get('name')],
                'listeners': _to_int(stats.get('listeners')),
                'playcount': _to_int(stats.get('playcount')),
                'similar': [a.get('name', '').strip() for a in similar if a.get('name')],
            }

        self._store('artist.getInfo', (artist_name,), 0, info)
        return info or None

    def get_artist_tags(self, artist_name: str, limit: int = 3) -> List[str]:
        """
        Get genre tags for an artist

        Args:
            artist_name: Name of the artist
            limit: Maximum number of tags

        Returns:
            List of genre/tag strings (e.g., ["indie rock", "post-punk"])
        """
        info = self.get_artist_info(artist_name)
        if not info:
            return []

        genre_tags = []
        for tag in info.get('tags', []):
            tag_name = tag.lower().strip()
            if tag_name and tag_name not in _EXCLUDED_TAGS and len(tag_name) > 2:
                genre_tags.append(tag_name)

        return genre_tags[:limit]

    def get_tag_top_artists(self, tag_name: str, limit: int = 10) -> List[Dict[str, Any]]:
        """
        Get the top artists for a genre/tag

        Args:
            tag_name: Name of the genre/tag
            limit: Number of artists to return

        Returns:
            List of {'name', 'rank'} dictionaries, best first
        """
        cached = self._cached('tag.getTopArtists', (tag_name,), limit)
        if cached is not None:
            return cached

        data = self._make_request('tag.gettopartists', {
            'tag': tag_name,
            'limit': limit,
        })

        artists = []
        if data and 'topartists' in data:
            for position, artist in enumerate(_as_list(data['topartists'].get('artist')), start=1):
                name = (artist.get('name') or '').strip()
                if not name:
                    continue
                attr = artist.get('@attr') or {}
                artists.append({
                    'name': name,
                    'rank': _to_int(attr.get('rank'), position),
                })

        artists = artists[:limit]
        self._store('tag.getTopArtists', (tag_name,), limit, artists)
        return artists
