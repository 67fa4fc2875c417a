"""
Track Matcher - Resolves (artist, title) candidates against the local library
"""
import logging
from collections import Counter
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from .artist_utils import DEFAULT_IGNORE_PREFIXES, artist_match_key, split_artists
from .errors import MatcherUnavailable
from .models import Candidate, MatchedTrack, TrackRef
from .string_utils import normalize_match_text, title_tokens

logger = logging.getLogger(__name__)

MATCH_PASSES = ('exact', 'normalized', 'partial')


@dataclass(frozen=True)
class MatchOptions:
    """Post-match filters for a batch lookup."""

    min_rating: int = 0
    """Tracks rated below this are dropped (0-100)."""

    allow_unknown: bool = True
    """Keep unrated tracks regardless of min_rating."""

    prefer_best: bool = False
    """Order matches of one title by rating, then bitrate, best first."""


def passes_rating_filter(track: TrackRef, min_rating: int, allow_unknown: bool) -> bool:
    """Keep if rating >= min_rating, or if unrated and allow_unknown."""
    if track.rating is None or track.rating < 0:
        return allow_unknown
    return track.rating >= min_rating


def dedupe_matches(matches: Iterable[MatchedTrack]) -> List[MatchedTrack]:
    """
    Collapse matches sharing a dedup key to exactly one survivor.

    The survivor has the highest bitrate, then the highest rating; on a full
    tie the earliest match wins. Survivors keep the position of the first
    match with their key.
    """
    best: Dict[str, MatchedTrack] = {}
    order: List[str] = []
    for match in matches:
        current = best.get(match.dedup_key)
        if current is None:
            best[match.dedup_key] = match
            order.append(match.dedup_key)
        elif match.quality_score > current.quality_score:
            best[match.dedup_key] = match
    return [best[key] for key in order]


class _IndexedTrack:
    """Library track with its comparison forms precomputed once per batch."""

    __slots__ = ('track', 'artist_folded', 'title_folded', 'artist_norm', 'title_norm', 'artist_key', 'title_token_set')

    def __init__(self, track: TrackRef, ignore_prefixes: Sequence[str]):
        self.track = track
        self.artist_folded = track.artist.strip().casefold()
        self.title_folded = track.title.strip().casefold()
        self.artist_norm = normalize_match_text(track.artist)
        self.title_norm = normalize_match_text(track.title)
        self.artist_key = artist_match_key(track.artist, ignore_prefixes)
        self.title_token_set = set(normalize_match_text(track.title).split())


class LibraryMatcher:
    """Matches candidate artist/title pairs to library tracks with three ordered passes"""

    def __init__(
        self,
        library,
        *,
        ignore_prefixes: Sequence[str] = DEFAULT_IGNORE_PREFIXES,
        ready_timeout: float = 5.0,
    ):
        """
        Initialize track matcher

        Args:
            library: Library index (LocalLibraryClient or compatible)
            ignore_prefixes: Prefixes ignored when comparing artists
            ready_timeout: Seconds to wait for the library before giving up
        """
        self.library = library
        self.ignore_prefixes = tuple(ignore_prefixes)
        self.ready_timeout = ready_timeout
        self.match_stats: Counter = Counter()
        logger.debug("Initialized LibraryMatcher")

    def ensure_ready(self) -> None:
        """
        Wait for the library index.

        Raises:
            MatcherUnavailable: If the library is not ready within ready_timeout
        """
        if self.library is None:
            raise MatcherUnavailable()
        if self.library.is_ready():
            return
        wait = getattr(self.library, 'wait_until_ready', None)
        if wait is not None and wait(self.ready_timeout):
            return
        logger.error("Library index is not ready")
        raise MatcherUnavailable()

    def _artist_keys(self, artist_name: str) -> List[str]:
        names = [artist_name] + split_artists(artist_name)
        keys = [artist_match_key(name, self.ignore_prefixes) for name in names]
        return [k for k in dict.fromkeys(keys) if k]

    def find_library_tracks_batch(
        self,
        artist_name: str,
        titles: Sequence[str],
        pass_limit: int = 1,
        options: Optional[MatchOptions] = None,
        candidates: Optional[Dict[str, Candidate]] = None,
    ) -> Dict[str, List[MatchedTrack]]:
        """
        Resolve several titles of one artist in a single library lookup.

        For each title the passes run in order (exact, normalized, partial) and
        stop at the first pass that finds anything. Hits are rating-filtered
        first, so a copy that fails min_rating never hides an acceptable
        duplicate; the survivors are then de-duplicated and capped at
        pass_limit.

        Args:
            artist_name: Candidate artist name
            titles: Candidate titles
            pass_limit: Maximum tracks returned per title (<= 0 for no cap)
            options: Rating and ordering options
            candidates: Optional title -> Candidate map attached to the results

        Returns:
            Dict mapping every input title to its (possibly empty) ordered matches

        Raises:
            MatcherUnavailable: If the library index is not ready
        """
        self.ensure_ready()
        options = options or MatchOptions()

        keys = self._artist_keys(artist_name)
        indexed = [_IndexedTrack(t, self.ignore_prefixes) for t in self.library.find_tracks_by_artist_keys(keys)]

        results: Dict[str, List[MatchedTrack]] = {}
        for title in titles:
            if title in results:
                continue
            results[title] = self._match_title(
                artist_name, title, keys, indexed, pass_limit, options,
                candidate=(candidates or {}).get(title),
            )

        matched = sum(1 for v in results.values() if v)
        logger.debug(f"Matched {matched}/{len(results)} titles for '{artist_name}' ({len(indexed)} library tracks)")
        return results

    def _match_title(
        self,
        artist_name: str,
        title: str,
        keys: List[str],
        indexed: List[_IndexedTrack],
        pass_limit: int,
        options: MatchOptions,
        candidate: Optional[Candidate] = None,
    ) -> List[MatchedTrack]:
        if not title or not indexed:
            self.match_stats['unmatched'] += 1
            return []

        artist_folded = artist_name.strip().casefold()
        title_folded = title.strip().casefold()
        artist_norm = normalize_match_text(artist_name)
        title_norm = normalize_match_text(title)
        tokens = title_tokens(title)
        key_set = set(keys)

        passes: List[tuple] = [
            ('exact', lambda t: t.artist_folded == artist_folded and t.title_folded == title_folded),
            ('normalized', lambda t: t.artist_norm == artist_norm and t.title_norm == title_norm),
            ('partial', lambda t: bool(tokens)
                and t.artist_key in key_set
                and all(tok in t.title_token_set for tok in tokens)),
        ]

        for pass_name, predicate in passes:
            hits = self._run_pass(indexed, predicate)
            if not hits:
                continue

            self.match_stats[pass_name] += 1
            matches = dedupe_matches(
                MatchedTrack.from_track(t, pass_name, candidate)
                for t in hits
                if passes_rating_filter(t, options.min_rating, options.allow_unknown)
            )
            if options.prefer_best:
                matches.sort(key=lambda m: (m.track.rating if m.track.rating is not None else -1,
                                            m.track.bitrate if m.track.bitrate is not None else -1),
                             reverse=True)
            if pass_limit and pass_limit > 0:
                matches = matches[:pass_limit]
            if pass_name != 'exact':
                logger.debug(f"{pass_name.title()} match: {artist_name} - {title} ({len(matches)} kept)")
            return matches

        self.match_stats['unmatched'] += 1
        return []

    @staticmethod
    def _run_pass(indexed: List[_IndexedTrack], predicate: Callable[[_IndexedTrack], bool]) -> List[TrackRef]:
        return [entry.track for entry in indexed if predicate(entry)]

    def log_stats(self) -> None:
        """Log the pass breakdown accumulated so far."""
        logger.info(
            "Match breakdown - Exact: %d, Normalized: %d, Partial: %d, Unmatched: %d",
            self.match_stats.get('exact', 0),
            self.match_stats.get('normalized', 0),
            self.match_stats.get('partial', 0),
            self.match_stats.get('unmatched', 0),
        )

    def reset_stats(self) -> None:
        self.match_stats.clear()
