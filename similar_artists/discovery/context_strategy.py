"""
Mood / Activity Discovery Strategy
==================================

Two pools blended by RunConfig.blend_ratio:

- seed pool: artists similar to the seeds (Artist strategy similarity),
- context pool: mood or activity recommendations from the context adapter.

The blended artist list is then expanded to tracks. Artists that came from
the context pool already carry recommended titles and use those; only the
others cost a top-tracks call. A pool that gets no slots is never fetched.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterator, List, Sequence

from ..models import Candidate, CandidatePool, SeedArtist
from ..run_config import DiscoveryMode, RunConfig
from ..string_utils import canonical_key
from .base_strategy import CandidateBatch, DiscoveryStrategy
from .blending import blend_pools, context_pool_needed, seed_pool_needed
from .genre_strategy import split_genres

logger = logging.getLogger(__name__)

MAX_GENRE_HINTS = 3


def collapse_by_artist(pool: Sequence[Candidate]) -> List[Candidate]:
    """First candidate of each artist, in pool order."""
    seen = set()
    artists: List[Candidate] = []
    for candidate in pool:
        if candidate.artist_key in seen:
            continue
        seen.add(candidate.artist_key)
        artists.append(candidate)
    return artists


class ContextDiscoveryStrategy(DiscoveryStrategy):
    """Seed-similarity pool + context pool -> blended artists -> tracks."""

    def __init__(self, similarity, context, mode: DiscoveryMode, **kwargs):
        """
        Args:
            similarity: Similarity adapter (LastFMClient or compatible)
            context: Context adapter (ReccoBeatsClient or compatible)
            mode: DiscoveryMode.MOOD or DiscoveryMode.ACTIVITY
        """
        super().__init__(similarity, **kwargs)
        mode = DiscoveryMode(mode)
        if not mode.is_context:
            raise ValueError(f"ContextDiscoveryStrategy does not handle mode '{mode.value}'")
        self.context = context
        self.mode = mode

    def blend_target(self, seeds: Sequence[SeedArtist], run_config: RunConfig) -> int:
        """Number of blended artists: similar_limit per seed actually used."""
        used = len(self._seed_subset(seeds, run_config.seed_limit))
        return run_config.similar_limit * max(1, used)

    def genre_hints(self, seeds: Sequence[SeedArtist], run_config: RunConfig) -> List[str]:
        """Configured genre hint, else the genres of the seed tracks."""
        if run_config.genre_hint:
            return list(run_config.genre_hint)
        hints: List[str] = []
        for seed in seeds:
            for track in seed.tracks:
                for genre in split_genres(track.genre):
                    if genre not in hints:
                        hints.append(genre)
        return hints[:MAX_GENRE_HINTS]

    def build_seed_pool(self, seeds: Sequence[SeedArtist], run_config: RunConfig) -> List[Candidate]:
        if not seed_pool_needed(run_config.blend_ratio):
            logger.debug("Blend ratio is 0; seed-similarity pool not fetched")
            return []
        return list(self._iter_similar_artists(seeds, run_config))

    def build_context_pool(self, seeds: Sequence[SeedArtist], run_config: RunConfig, limit: int) -> List[Candidate]:
        if not context_pool_needed(run_config.blend_ratio):
            logger.debug("Blend ratio is 1; context pool not fetched")
            return []

        recommendations = self._call_provider(
            f"{self.mode.value} recommendations for '{run_config.context_value}'",
            self.context.get_context_recommendations,
            self.mode.value,
            run_config.context_value,
            self.genre_hints(seeds, run_config),
            limit,
            duration=run_config.activity_duration,
        )

        pool: List[Candidate] = []
        for rec in recommendations or []:
            if self._is_blacklisted(rec['artist'], run_config):
                continue
            pool.append(Candidate(
                artist_name=rec['artist'],
                track_title=rec.get('title') or None,
                score=rec.get('score'),
                origin_pool=CandidatePool.CONTEXT,
            ))
        return pool

    def discover_batches(self, seeds: Sequence[SeedArtist], run_config: RunConfig) -> Iterator[CandidateBatch]:
        target = self.blend_target(seeds, run_config)
        seed_pool = self.build_seed_pool(seeds, run_config)
        context_pool = self.build_context_pool(seeds, run_config, target)

        # Recommended titles per artist, in pool order, before blending collapses artists
        context_titles: Dict[str, List[Candidate]] = {}
        for candidate in context_pool:
            if not candidate.track_title:
                continue
            entries = context_titles.setdefault(candidate.artist_key, [])
            known = {canonical_key(c.track_title) for c in entries}
            if canonical_key(candidate.track_title) in known or len(entries) >= run_config.tracks_per_artist:
                continue
            entries.append(candidate)

        # Blending counts artists, so a multi-title artist takes a single slot
        context_artists = collapse_by_artist(context_pool)
        blended = blend_pools(seed_pool, context_artists, run_config.blend_ratio, target)
        logger.info(
            f"{self.mode.label()} discovery: {len(blended)} artists "
            f"(seed pool {len(seed_pool)}, context pool {len(context_artists)}, ratio {run_config.blend_ratio:.2f})"
        )

        for candidate in blended:
            titled = context_titles.get(candidate.artist_key)
            if candidate.origin_pool == CandidatePool.CONTEXT and titled:
                yield CandidateBatch(artist_name=candidate.artist_name, candidates=list(titled))
                continue
            batch = self._expand_artist(candidate.artist_name, run_config, origin_pool=candidate.origin_pool)
            if batch is not None:
                yield batch
