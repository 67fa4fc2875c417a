"""
Base Strategy for Discovery
===========================

This module defines the abstract base class for discovery strategies and the
per-artist batch they produce.

Strategies are lazy: discover_batches() is a generator, and provider calls for
the next artist only happen when the consumer asks for the next batch. The
orchestrator stops iterating once it has enough tracks, which stops further
network traffic as well.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence, Set

from ..artist_utils import fix_prefixes
from ..errors import ProviderError
from ..models import Candidate, CandidatePool, SeedArtist
from ..run_config import DiscoveryMode, RunConfig
from ..string_utils import canonical_key

logger = logging.getLogger(__name__)


@dataclass
class CandidateBatch:
    """All candidate titles of one artist, handed to the matcher together."""

    artist_name: str
    """Artist name as returned by the provider."""

    candidates: List[Candidate] = field(default_factory=list)
    """Ordered candidates; every entry has a track title."""

    @property
    def titles(self) -> List[str]:
        return [c.track_title for c in self.candidates if c.track_title]

    @property
    def by_title(self) -> Dict[str, Candidate]:
        """First candidate per title."""
        mapping: Dict[str, Candidate] = {}
        for candidate in self.candidates:
            if candidate.track_title and candidate.track_title not in mapping:
                mapping[candidate.track_title] = candidate
        return mapping


def _noop_checkpoint() -> None:
    return None


class DiscoveryStrategy(ABC):
    """Abstract base class for discovery strategies.

    Subclasses must implement:
    - discover_batches(): yield per-artist candidate batches for the seeds

    Provider failures for one seed or one artist are logged and skipped;
    blacklisted artists are dropped before any of their tracks are fetched.
    """

    mode: DiscoveryMode

    def __init__(
        self,
        similarity,
        *,
        checkpoint: Optional[Callable[[], None]] = None,
    ):
        """Initialize strategy.

        Args:
            similarity: Similarity adapter (LastFMClient or compatible)
            checkpoint: Called between provider calls; raises to cancel the run
        """
        self.similarity = similarity
        self.checkpoint = checkpoint or _noop_checkpoint
        self.stats: Counter = Counter()

    @abstractmethod
    def discover_batches(self, seeds: Sequence[SeedArtist], run_config: RunConfig) -> Iterator[CandidateBatch]:
        """Yield candidate batches, one artist at a time, best first.

        Args:
            seeds: Distinct seed artists of the run
            run_config: Limits and flags of the run

        Yields:
            CandidateBatch per candidate artist
        """

    def discover(self, seeds: Sequence[SeedArtist], run_config: RunConfig) -> List[Candidate]:
        """Eager form of discover_batches(): every candidate, in order."""
        candidates: List[Candidate] = []
        for batch in self.discover_batches(seeds, run_config):
            candidates.extend(batch.candidates)
        return candidates

    # ------------------------------------------------------------------
    # Shared helpers
    # ------------------------------------------------------------------

    def _call_provider(self, description: str, func: Callable[..., Any], *args, **kwargs) -> Optional[Any]:
        """Run one provider call; a ProviderError is logged and yields None."""
        self.checkpoint()
        self.stats['provider_calls'] += 1
        try:
            return func(*args, **kwargs)
        except ProviderError as e:
            self.stats['provider_failures'] += 1
            logger.warning(f"Skipping {description}: {e}")
            return None

    def _is_blacklisted(self, artist_name: str, run_config: RunConfig) -> bool:
        if run_config.is_blacklisted(artist_name):
            self.stats['blacklisted'] += 1
            logger.debug(f"Blacklisted artist skipped: {artist_name}")
            return True
        return False

    def _seed_subset(self, seeds: Sequence[SeedArtist], limit: int) -> List[SeedArtist]:
        return list(seeds[:max(0, limit)])

    def _iter_similar_artists(
        self,
        seeds: Sequence[SeedArtist],
        run_config: RunConfig,
        seen: Optional[Set[str]] = None,
    ) -> Iterator[Candidate]:
        """Artist-level candidates from similarity to each seed.

        Seeds are processed in order up to the seed limit; with
        include_seed_artist the seed itself comes before its similar artists.
        Candidates are unique by canonical key and never blacklisted.
        """
        seen = set() if seen is None else seen
        for seed in self._seed_subset(seeds, run_config.seed_limit):
            if run_config.include_seed_artist and seed.key not in seen:
                seen.add(seed.key)
                if not self._is_blacklisted(seed.name, run_config):
                    yield Candidate(artist_name=seed.name, score=1.0, origin_pool=CandidatePool.SEED)

            query = fix_prefixes(seed.name, run_config.ignore_prefixes)
            similar = self._call_provider(
                f"similar artists of '{seed.name}'",
                self.similarity.get_similar_artists, query, run_config.similar_limit,
            )
            if not similar:
                logger.debug(f"No similar artists for seed '{seed.name}'")
                continue

            for entry in similar[:run_config.similar_limit]:
                name = entry.get('name', '')
                key = canonical_key(name)
                if not key or key in seen:
                    continue
                seen.add(key)
                if self._is_blacklisted(name, run_config):
                    continue
                yield Candidate(artist_name=name, score=entry.get('match'), origin_pool=CandidatePool.SEED)

    def _expand_artist(
        self,
        artist_name: str,
        run_config: RunConfig,
        origin_pool: CandidatePool = CandidatePool.SEED,
    ) -> Optional[CandidateBatch]:
        """Fetch an artist's top tracks as a batch (None when nothing came back).

        With ranking enabled the candidate score is the provider playcount.
        """
        if self._is_blacklisted(artist_name, run_config):
            return None

        query = fix_prefixes(artist_name, run_config.ignore_prefixes)
        tracks = self._call_provider(
            f"top tracks of '{artist_name}'",
            self.similarity.get_top_tracks, query, run_config.tracks_per_artist, with_rank=run_config.rank,
        )
        if not tracks:
            return None

        batch = CandidateBatch(artist_name=artist_name)
        seen_titles: Set[str] = set()
        for track in tracks:
            if isinstance(track, dict):
                title, score = track.get('title', ''), track.get('playcount')
            else:
                title, score = str(track), None
            title_key = canonical_key(title)
            if not title_key or title_key in seen_titles:
                continue
            seen_titles.add(title_key)
            batch.candidates.append(Candidate(
                artist_name=artist_name,
                track_title=title,
                score=float(score) if score is not None else None,
                origin_pool=origin_pool,
            ))
            if len(batch.candidates) >= run_config.tracks_per_artist:
                break
        return batch
