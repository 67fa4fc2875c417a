"""
Artist Discovery Strategy
=========================

Similar-artist expansion of every seed, each artist expanded to its top
tracks.
"""

from __future__ import annotations

import logging
from typing import Iterator, Sequence

from ..models import SeedArtist
from ..run_config import DiscoveryMode, RunConfig
from .base_strategy import CandidateBatch, DiscoveryStrategy

logger = logging.getLogger(__name__)


class ArtistDiscoveryStrategy(DiscoveryStrategy):
    """Seeds -> similar artists -> top tracks."""

    mode = DiscoveryMode.ARTIST

    def discover_batches(self, seeds: Sequence[SeedArtist], run_config: RunConfig) -> Iterator[CandidateBatch]:
        expanded = 0
        for candidate in self._iter_similar_artists(seeds, run_config):
            batch = self._expand_artist(candidate.artist_name, run_config)
            if batch is None:
                continue
            expanded += 1
            yield batch
        logger.debug(f"Artist discovery expanded {expanded} artists")
