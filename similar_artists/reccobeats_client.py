"""
ReccoBeats API Client - Context adapter (mood / activity recommendations)
"""
import logging
from typing import Any, Dict, List, Optional, Sequence

import requests

from .errors import ProviderError, ProviderErrorKind
from .provider_cache import ProviderCache
from .provider_http import JsonHttpProvider

logger = logging.getLogger(__name__)

CONTEXT_KINDS = ("mood", "activity")


class ReccoBeatsClient(JsonHttpProvider):
    """Client for ReccoBeats mood and activity recommendations"""

    BASE_URL = "https://api.reccobeats.com/v1"
    provider_name = "ReccoBeats"

    def __init__(
        self,
        cache: Optional[ProviderCache] = None,
        *,
        base_url: Optional[str] = None,
        session: Optional[requests.Session] = None,
        timeout: float = 10.0,
        activity_duration: int = 60,
    ):
        """
        Args:
            cache: Session cache shared with the other adapters (optional)
            base_url: Override for the API root
            session: requests.Session to reuse
            timeout: Request timeout in seconds
            activity_duration: Target session length in minutes for activity queries
        """
        super().__init__(session=session, timeout=timeout)
        self.cache = cache
        self.base_url = (base_url or self.BASE_URL).rstrip('/')
        self.activity_duration = activity_duration
        logger.info(f"Initialized ReccoBeats client: {self.base_url}")

    def get_context_recommendations(
        self,
        context_kind: str,
        value: str,
        genre_hint: Sequence[str] = (),
        limit: int = 50,
        duration: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """
        Get ranked track recommendations for a mood or an activity.

        Args:
            context_kind: "mood" or "activity"
            value: Mood name (e.g. "energetic") or activity name (e.g. "workout")
            genre_hint: Optional genres to steer the recommendations
            limit: Maximum number of recommendations
            duration: Activity length in minutes (defaults to activity_duration)

        Returns:
            List of {'artist', 'title', 'score'} dictionaries, best first;
            'score' is None when the service does not provide one

        Raises:
            ValueError: If context_kind is not "mood" or "activity"
            ProviderError: on transport or API failures
        """
        kind = (context_kind or '').lower()
        if kind not in CONTEXT_KINDS:
            raise ValueError(f"Unsupported context kind: {context_kind!r}")

        duration = int(duration or self.activity_duration)
        genres = [g.strip() for g in genre_hint if g and g.strip()]
        cache_args = (kind, value, ','.join(genres))
        if kind == 'activity':
            cache_args = cache_args + (str(duration),)

        if self.cache is not None:
            cached = self.cache.get('reccobeats', cache_args, limit)
            if cached is not None:
                return cached

        params: Dict[str, Any] = {kind: value, 'limit': limit, 'format': 'json'}
        if kind == 'activity':
            params['duration'] = duration
        if genres:
            params['genres'] = ','.join(genres)

        url = f"{self.base_url}/recommendations/{kind}"
        logger.debug(f"ReccoBeats query: {url} {params}")
        data = self._get_json(url, params)

        if data.get('error'):
            logger.error(f"ReccoBeats API error: {data['error']}")
            raise ProviderError(ProviderErrorKind.NETWORK, message=str(data['error']))

        recommendations = []
        for track in data.get('tracks') or []:
            if not isinstance(track, dict):
                continue
            artist = str(track.get('artist') or '').strip()
            title = str(track.get('title') or track.get('name') or '').strip()
            if not artist or not title:
                continue
            score = track.get('score', track.get('popularity'))
            try:
                score = float(score) if score is not None else None
            except (TypeError, ValueError):
                score = None
            recommendations.append({'artist': artist, 'title': title, 'score': score})

        recommendations = recommendations[:limit]
        logger.info(f"ReccoBeats: {len(recommendations)} recommendations for {kind} '{value}'")

        if self.cache is not None:
            self.cache.set('reccobeats', cache_args, limit, recommendations)
        return recommendations
