"""
Genre Discovery Strategy
========================

Genre/tag strings from the seed metadata (topped up with provider tags of the
first seed artists) -> top artists per tag -> top tracks per artist.
"""

from __future__ import annotations

import logging
import math
import re
from typing import Dict, Iterator, List, Sequence, Set, Tuple

from ..artist_utils import fix_prefixes
from ..models import SeedArtist
from ..run_config import DiscoveryMode, RunConfig
from ..string_utils import canonical_key
from .base_strategy import CandidateBatch, DiscoveryStrategy

logger = logging.getLogger(__name__)

_GENRE_SPLIT_RE = re.compile(r"[;,/]")
SEED_GENRE_WEIGHT = 3
ARTIST_TAG_WEIGHT = 1
TAG_LOOKUP_SEEDS = 3


def split_genres(raw: str) -> List[str]:
    """'Rock; Prog Rock/Art Rock' -> ['rock', 'prog rock', 'art rock']"""
    return [g.strip().lower() for g in _GENRE_SPLIT_RE.split(raw or '') if g.strip()]


def tag_budget(similar_limit: int) -> Tuple[int, int]:
    """(max_tags, artists_per_tag) for a similar-artist limit."""
    max_tags = min(5, max(1, math.ceil(similar_limit / 5)))
    artists_per_tag = max(1, math.ceil(similar_limit / max_tags))
    return max_tags, artists_per_tag


class GenreDiscoveryStrategy(DiscoveryStrategy):
    """Seeds -> weighted tags -> tag top artists -> top tracks."""

    mode = DiscoveryMode.GENRE

    def collect_tags(self, seeds: Sequence[SeedArtist], run_config: RunConfig) -> List[str]:
        """Tags ordered by weight, ties by first appearance, at most max_tags."""
        max_tags, _ = tag_budget(run_config.similar_limit)
        weights: Dict[str, int] = {}

        for seed in self._seed_subset(seeds, run_config.seed_limit):
            if seed.source_track is None:
                continue
            for genre in split_genres(seed.source_track.genre):
                weights[genre] = weights.get(genre, 0) + SEED_GENRE_WEIGHT

        if len(weights) < max_tags:
            for seed in self._seed_subset(seeds, TAG_LOOKUP_SEEDS):
                tags = self._call_provider(
                    f"tags of '{seed.name}'",
                    self.similarity.get_artist_tags,
                    fix_prefixes(seed.name, run_config.ignore_prefixes),
                    3,
                )
                for tag in tags or []:
                    tag = tag.strip().lower()
                    if tag:
                        weights[tag] = weights.get(tag, 0) + ARTIST_TAG_WEIGHT

        ordered = sorted(weights, key=lambda t: weights[t], reverse=True)
        tags = ordered[:max_tags]
        logger.info(f"Genre discovery tags: {', '.join(tags) if tags else '(none)'}")
        return tags

    def discover_batches(self, seeds: Sequence[SeedArtist], run_config: RunConfig) -> Iterator[CandidateBatch]:
        seen: Set[str] = set()
        collected = 0

        if run_config.include_seed_artist:
            for seed in self._seed_subset(seeds, run_config.seed_limit):
                if seed.key in seen:
                    continue
                seen.add(seed.key)
                batch = self._expand_artist(seed.name, run_config)
                if batch is not None:
                    yield batch

        _, artists_per_tag = tag_budget(run_config.similar_limit)
        for tag in self.collect_tags(seeds, run_config):
            needed = min(artists_per_tag, run_config.similar_limit - collected)
            if needed <= 0:
                break

            artists = self._call_provider(
                f"top artists of tag '{tag}'",
                self.similarity.get_tag_top_artists, tag, needed,
            )
            taken = 0
            for entry in artists or []:
                if taken >= needed:
                    break
                name = entry.get('name', '')
                key = canonical_key(name)
                if not key or key in seen:
                    continue
                seen.add(key)
                if self._is_blacklisted(name, run_config):
                    continue
                taken += 1
                collected += 1
                batch = self._expand_artist(name, run_config)
                if batch is not None:
                    yield batch
