"""
Track Discovery Strategy
========================

Similar-track expansion keyed by the seed track titles. Results are grouped
back into per-artist batches; no artist expansion is needed because the
provider already returns titles.
"""

from __future__ import annotations

import logging
from collections import OrderedDict
from typing import Dict, Iterator, List, Sequence, Set, Tuple

from ..artist_utils import fix_prefixes
from ..models import Candidate, CandidatePool, SeedArtist, TrackRef
from ..run_config import DiscoveryMode, RunConfig
from ..string_utils import canonical_key
from .base_strategy import CandidateBatch, DiscoveryStrategy

logger = logging.getLogger(__name__)


def seed_tracks(seeds: Sequence[SeedArtist], limit: int) -> List[Tuple[str, TrackRef]]:
    """Distinct (seed artist, titled track) pairs, at most limit of them."""
    pairs: List[Tuple[str, TrackRef]] = []
    seen: Set[Tuple[str, str]] = set()
    for seed in seeds:
        for track in seed.tracks:
            title_key = canonical_key(track.title)
            if not title_key or (seed.key, title_key) in seen:
                continue
            seen.add((seed.key, title_key))
            pairs.append((seed.name, track))
            if len(pairs) >= limit:
                return pairs
    return pairs


class TrackDiscoveryStrategy(DiscoveryStrategy):
    """Seed tracks -> similar tracks, grouped by artist."""

    mode = DiscoveryMode.TRACK

    def discover_batches(self, seeds: Sequence[SeedArtist], run_config: RunConfig) -> Iterator[CandidateBatch]:
        # Titles already emitted per artist key, across seed tracks
        emitted: Dict[str, Set[str]] = {}

        pairs = seed_tracks(seeds, run_config.seed_limit)
        if not pairs:
            logger.debug("No seed track has a title; nothing to discover by track")

        for seed_name, track in pairs:
            groups = self._group_similar_tracks(seed_name, track, run_config)
            for artist_name, candidates in groups.items():
                key = canonical_key(artist_name)
                titles_done = emitted.setdefault(key, set())
                batch = CandidateBatch(artist_name=artist_name)
                for candidate in candidates:
                    if len(titles_done) >= run_config.tracks_per_artist:
                        break
                    title_key = canonical_key(candidate.track_title or '')
                    if not title_key or title_key in titles_done:
                        continue
                    titles_done.add(title_key)
                    batch.candidates.append(candidate)
                if batch.candidates:
                    yield batch

    def _group_similar_tracks(
        self,
        seed_name: str,
        track: TrackRef,
        run_config: RunConfig,
    ) -> "OrderedDict[str, List[Candidate]]":
        """Similar tracks of one seed track, grouped by artist in first-seen order.

        Inside a group titles are sorted by match, best first (stable).
        """
        groups: "OrderedDict[str, List[Candidate]]" = OrderedDict()
        names: Dict[str, str] = {}

        def _add(artist_name: str, candidate: Candidate) -> None:
            key = canonical_key(artist_name)
            if not key:
                return
            if key not in names:
                if self._is_blacklisted(artist_name, run_config):
                    names[key] = ''
                    return
                names[key] = artist_name
                groups[artist_name] = []
            if names[key]:
                groups[names[key]].append(candidate)

        if run_config.include_seed_artist:
            _add(seed_name, Candidate(
                artist_name=seed_name,
                track_title=track.title,
                score=1.0,
                origin_pool=CandidatePool.SEED,
            ))

        similar = self._call_provider(
            f"similar tracks of '{seed_name} - {track.title}'",
            self.similarity.get_similar_tracks,
            fix_prefixes(seed_name, run_config.ignore_prefixes),
            track.title,
            run_config.track_similar_limit,
        )
        for entry in similar or []:
            _add(entry['artist'], Candidate(
                artist_name=entry['artist'],
                track_title=entry['title'],
                score=entry.get('match'),
                origin_pool=CandidatePool.SEED,
            ))

        for candidates in groups.values():
            candidates.sort(key=lambda c: c.score if c.score is not None else 0.0, reverse=True)

        logger.debug(f"Track discovery: {len(groups)} artists from seed '{seed_name} - {track.title}'")
        return groups
