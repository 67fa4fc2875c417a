"""
Orchestrator
============

Drives one run end to end:

    INIT -> COLLECT_SEEDS -> DISCOVER -> MATCH -> POSTPROCESS -> DISPATCH_OUTPUT -> DONE

with FAILED reachable from every other state. Discovery and matching are
interleaved one artist batch at a time so the run stops asking providers for
more as soon as the total-track limit is reached.

At most one run executes at a time per Orchestrator; a run requested while
another is in flight returns immediately with busy=True.
"""

from __future__ import annotations

import logging
import math
import random
import sqlite3
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence, Set

from .artist_utils import split_artists
from .discovery import create_strategy
from .errors import CancellationError, NoMatchesError, NoSeedsError, SimilarArtistsError
from .host.interfaces import SelectionSource
from .logging_utils import (
    RunSummary,
    format_count,
    new_run_id,
    set_run_id,
    stage_timer,
    truncate_list,
)
from .models import Candidate, CandidatePool, MatchedTrack, SeedArtist, TrackRef
from .playlist_output import OutputResult, PlaylistOutput
from .run_config import AutoModeSettings, RunConfig
from .string_utils import canonical_key

logger = logging.getLogger(__name__)

# Per-title cap handed to the matcher
MATCHES_PER_TITLE = 1


class RunState(str, Enum):
    INIT = "init"
    COLLECT_SEEDS = "collect_seeds"
    DISCOVER = "discover"
    MATCH = "match"
    POSTPROCESS = "postprocess"
    DISPATCH_OUTPUT = "dispatch_output"
    DONE = "done"
    FAILED = "failed"


class CancellationToken:
    """
    Cancellation flag shared between a run and whoever may cancel it.

    Thread-safe; the run calls check_cancelled() at its checkpoints.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._cancelled = False

    def cancel(self) -> None:
        with self._lock:
            self._cancelled = True

    def is_cancelled(self) -> bool:
        with self._lock:
            return self._cancelled

    def check_cancelled(self) -> None:
        """Raise CancellationError if cancel() was called."""
        if self.is_cancelled():
            raise CancellationError()


class ProgressReporter(ABC):
    """Progress sink of a run; finish() is called exactly once per run."""

    @abstractmethod
    def update(self, message: str, fraction: Optional[float] = None) -> None:
        pass

    @abstractmethod
    def finish(self) -> None:
        pass


class LoggingProgress(ProgressReporter):
    """Reports progress as log lines."""

    def __init__(self, progress_logger: Optional[logging.Logger] = None):
        self.logger = progress_logger or logger
        self.active = False

    def update(self, message: str, fraction: Optional[float] = None) -> None:
        self.active = True
        if fraction is None:
            self.logger.info(message)
        else:
            self.logger.info(f"[{max(0.0, min(1.0, fraction)) * 100:3.0f}%] {message}")

    def finish(self) -> None:
        self.active = False


@dataclass
class RunResult:
    """Outcome of one run."""

    state: RunState
    tracks: List[MatchedTrack] = field(default_factory=list)
    output: Optional[OutputResult] = None
    error: Optional[BaseException] = None
    message: str = ""
    run_id: Optional[str] = None
    metrics: Dict[str, Any] = field(default_factory=dict)

    failed_in: Optional[RunState] = None
    """State that was active when the run failed."""

    busy: bool = False
    """The run was refused because another run was in progress."""

    @property
    def ok(self) -> bool:
        return self.state == RunState.DONE

    @property
    def fatal(self) -> bool:
        """Hard failure (as opposed to done, busy or an informational outcome)."""
        if self.ok or self.busy or self.error is None:
            return False
        return getattr(self.error, 'fatal', True)

    @property
    def exit_code(self) -> int:
        if self.ok:
            return 0
        return 1 if self.fatal else 2


def collect_seeds(selection: SelectionSource) -> List[SeedArtist]:
    """
    Seed artists from the selection, else from the playing track.

    Multi-artist fields are split; seeds are unique by canonical key and keep
    every selected track they were credited on.

    Raises:
        NoSeedsError: If neither source yields an artist
    """
    tracks = [t for t in selection.get_selected_tracks() if t is not None]
    source = "selection"
    if not tracks:
        playing = selection.get_currently_playing_track()
        tracks = [playing] if playing is not None else []
        source = "now playing"

    names: Dict[str, str] = {}
    tracks_by_key: Dict[str, List[TrackRef]] = {}
    for track in tracks:
        for name in split_artists(track.artist or ''):
            key = canonical_key(name)
            if not key:
                continue
            names.setdefault(key, name)
            credited = tracks_by_key.setdefault(key, [])
            if track not in credited:
                credited.append(track)

    seeds = [
        SeedArtist(name=names[key], source_track=credited[0], other_tracks=tuple(credited[1:]))
        for key, credited in tracks_by_key.items()
    ]

    if not seeds:
        raise NoSeedsError()
    logger.info(f"Seeds from {source}: {truncate_list([s.name for s in seeds], 5)}")
    return seeds


def postprocess(
    matched: Sequence[MatchedTrack],
    rank_map: Dict[str, float],
    run_config: RunConfig,
    rng: Optional[random.Random] = None,
) -> List[MatchedTrack]:
    """
    Rank (stable, descending) and/or shuffle the matched tracks.

    Ranking runs first; shuffle then applies a uniform Fisher-Yates
    permutation. The result never exceeds total_limit.
    """
    tracks = list(matched)
    if run_config.rank:
        tracks.sort(key=lambda m: rank_map.get(m.dedup_key, 0.0), reverse=True)
    if run_config.shuffle:
        rng = rng or random.Random()
        for i in range(len(tracks) - 1, 0, -1):
            j = rng.randint(0, i)
            tracks[i], tracks[j] = tracks[j], tracks[i]
    return tracks[:run_config.total_limit]


def candidate_popularity(candidate: Candidate) -> int:
    """0-100 popularity for the missed-results list.

    Context scores in [0, 1] are scaled to percent, values up to 100 are taken
    as-is, and playcounts are mapped logarithmically (10M plays -> 100).
    """
    score = candidate.score
    if score is None or score <= 0:
        return 0
    if score <= 1 and candidate.origin_pool == CandidatePool.CONTEXT:
        return int(round(score * 100))
    if score <= 100:
        return int(round(score))
    return min(100, int(round(math.log10(score) * 100 / 7)))


class Orchestrator:
    """Runs the seed -> discover -> match -> output pipeline"""

    def __init__(
        self,
        run_config: RunConfig,
        similarity,
        matcher,
        output: PlaylistOutput,
        *,
        context=None,
        cache=None,
        missed_results=None,
        progress: Optional[ProgressReporter] = None,
        auto_settings: Optional[AutoModeSettings] = None,
        clear_cache_on_run: bool = False,
        rng: Optional[random.Random] = None,
    ):
        """
        Args:
            run_config: Base configuration of interactive runs
            similarity: Similarity adapter (LastFMClient or compatible)
            matcher: LibraryMatcher
            output: PlaylistOutput bound to the host store and queue
            context: Context adapter for mood/activity runs
            cache: ProviderCache shared with the adapters
            missed_results: MissedResultsStore (optional)
            progress: Progress sink (defaults to log lines)
            auto_settings: Overrides applied to auto-mode runs
            clear_cache_on_run: Clear the provider cache at the start of every run
            rng: Random source for shuffling
        """
        self.run_config = run_config
        self.similarity = similarity
        self.context = context
        self.matcher = matcher
        self.output = output
        self.cache = cache
        self.missed_results = missed_results
        self.progress = progress or LoggingProgress()
        self.auto_settings = auto_settings or AutoModeSettings()
        self.clear_cache_on_run = clear_cache_on_run
        self.rng = rng or random.Random()

        self._run_lock = threading.Lock()
        self._token_lock = threading.Lock()
        self._current_token: Optional[CancellationToken] = None
        self.refused_runs = 0
        self.state = RunState.INIT
        """State of the current (or last) run."""

    @property
    def is_running(self) -> bool:
        return self._run_lock.locked()

    def cancel(self) -> bool:
        """Cancel the run in flight; False when nothing is running."""
        with self._token_lock:
            token = self._current_token
        if token is None:
            return False
        token.cancel()
        return True

    def clear_cache(self) -> int:
        """Drop every cached provider response."""
        if self.cache is None:
            return 0
        removed = self.cache.clear()
        logger.info(f"Cleared provider cache ({format_count(removed, 'entry', 'entries')})")
        return removed

    def run(
        self,
        selection: SelectionSource,
        *,
        auto_mode: bool = False,
        cancel_token: Optional[CancellationToken] = None,
        confirm: Optional[Callable[[str], Optional[str]]] = None,
        run_config: Optional[RunConfig] = None,
    ) -> RunResult:
        """
        Execute one run. Never raises; every outcome is a RunResult.

        Args:
            selection: Source of seed tracks
            auto_mode: Unattended run (auto-mode limits, queue output, no confirmation)
            cancel_token: Token the caller may cancel
            confirm: Playlist-name confirmation callback
            run_config: Replaces the orchestrator's base configuration for this run
        """
        if not self._run_lock.acquire(blocking=False):
            self.refused_runs += 1
            logger.info("A run is already in progress; request dropped")
            return RunResult(state=RunState.INIT, busy=True, message="A run is already in progress")

        token = cancel_token or CancellationToken()
        with self._token_lock:
            self._current_token = token
        try:
            return self._run(selection, auto_mode, token, confirm, run_config or self.run_config)
        finally:
            with self._token_lock:
                self._current_token = None
            self._run_lock.release()

    def _run(
        self,
        selection: SelectionSource,
        auto_mode: bool,
        token: CancellationToken,
        confirm: Optional[Callable[[str], Optional[str]]],
        base_config: RunConfig,
    ) -> RunResult:
        run_id = new_run_id()
        set_run_id(run_id)
        summary = RunSummary("Similar artists run", logger)
        self.state = RunState.INIT
        matched: List[MatchedTrack] = []

        try:
            run_config = base_config.for_auto_mode(self.auto_settings) if auto_mode else base_config
            summary.add('mode', run_config.discovery_mode.value + (' (auto)' if auto_mode else ''))
            self.matcher.reset_stats()
            if self.clear_cache_on_run:
                self.clear_cache()

            self.state = RunState.COLLECT_SEEDS
            self.progress.update("Collecting seed artists...", 0.0)
            with stage_timer("Collect seeds", logger):
                seeds = collect_seeds(selection)
            summary.add('seeds', len(seeds))
            token.check_cancelled()

            self.state = RunState.DISCOVER
            self.progress.update(f"Discovering {run_config.discovery_mode.label().lower()}...", 0.1)
            with stage_timer("Discover and match", logger):
                matched, rank_map = self._discover_and_match(seeds, run_config, token, summary)
            self.matcher.log_stats()

            if not matched:
                raise NoMatchesError()

            self.state = RunState.POSTPROCESS
            with stage_timer("Post-process", logger):
                final = postprocess(matched, rank_map, run_config, self.rng)
            summary.add('final_tracks', len(final))
            token.check_cancelled()

            self.state = RunState.DISPATCH_OUTPUT
            self.progress.update(f"Saving {format_count(len(final), 'track')}...", 0.95)
            with stage_timer("Dispatch output", logger):
                output = self.output.dispatch(
                    [m.track for m in final],
                    [s.name for s in seeds],
                    run_config,
                    confirm=confirm,
                    checkpoint=token.check_cancelled,
                )
            summary.add('output', f"{output.target.value}: {output.name}")
            summary.add('added', output.added)

            self.state = RunState.DONE
            message = f"Added {format_count(output.added, 'track')} to {output.name}"
            if output.enqueued_instead:
                message += " (playlist creation disabled)"
            return RunResult(
                state=RunState.DONE,
                tracks=final,
                output=output,
                message=message,
                run_id=run_id,
                metrics=summary.as_dict(),
            )

        except SimilarArtistsError as e:
            if e.fatal:
                logger.error(f"Run failed during {self.state.value}: {e}")
            else:
                logger.info(f"Run ended during {self.state.value}: {e}")
            summary.add('outcome', type(e).__name__)
            return RunResult(
                state=RunState.FAILED,
                tracks=matched,
                error=e,
                message=e.user_message,
                run_id=run_id,
                metrics=summary.as_dict(),
                failed_in=self.state,
            )
        except Exception as e:
            logger.exception(f"Unexpected error during {self.state.value}")
            summary.add('outcome', type(e).__name__)
            return RunResult(
                state=RunState.FAILED,
                tracks=matched,
                error=e,
                message=f"Unexpected error: {e}",
                run_id=run_id,
                metrics=summary.as_dict(),
                failed_in=self.state,
            )
        finally:
            self.progress.finish()
            summary.log()
            set_run_id(None)

    def _discover_and_match(
        self,
        seeds: Sequence[SeedArtist],
        run_config: RunConfig,
        token: CancellationToken,
        summary: RunSummary,
    ):
        """Pull candidate batches and match them until total_limit is reached.

        Returns:
            (matched tracks in discovery order, rank map keyed by dedup key)
        """
        strategy = create_strategy(
            run_config.discovery_mode,
            self.similarity,
            self.context,
            checkpoint=token.check_cancelled,
        )

        matched: List[MatchedTrack] = []
        seen: Set[str] = set()
        rank_map: Dict[str, float] = {}
        misses: List[Candidate] = []
        candidates_seen = 0
        limit = run_config.total_limit

        batches = strategy.discover_batches(seeds, run_config)
        try:
            for batch in batches:
                token.check_cancelled()
                self.state = RunState.MATCH
                titles = batch.titles
                if not titles:
                    continue
                candidates_seen += len(titles)
                by_title = batch.by_title
                results = self.matcher.find_library_tracks_batch(
                    batch.artist_name,
                    titles,
                    pass_limit=MATCHES_PER_TITLE,
                    options=run_config.match_options,
                    candidates=by_title,
                )

                for title in dict.fromkeys(titles):
                    found = results.get(title) or []
                    if not found:
                        misses.append(by_title[title])
                        continue
                    for match in found:
                        if match.dedup_key in seen:
                            continue
                        seen.add(match.dedup_key)
                        matched.append(match)
                        if run_config.rank:
                            score = match.candidate.score if match.candidate else None
                            rank_map[match.dedup_key] = float(score) if score is not None else 0.0
                        if len(matched) >= limit:
                            break
                    if len(matched) >= limit:
                        break

                self.state = RunState.DISCOVER
                self.progress.update(
                    f"{batch.artist_name}: {format_count(len(matched), 'track')} matched",
                    0.1 + 0.8 * min(1.0, len(matched) / limit),
                )
                if len(matched) >= limit:
                    logger.info(f"Reached total limit of {format_count(limit, 'track')}; stopping discovery")
                    break
        finally:
            batches.close()
            summary.add('provider_calls', strategy.stats.get('provider_calls', 0))
            summary.add('provider_failures', strategy.stats.get('provider_failures', 0))
            summary.add('blacklisted', strategy.stats.get('blacklisted', 0))
            summary.add('candidates', candidates_seen)
            summary.add('matched_tracks', len(matched))
            summary.add('missed_candidates', len(misses))

        if misses and run_config.record_missed:
            self._record_misses(misses)
        return matched, rank_map

    def _record_misses(self, misses: Sequence[Candidate]) -> None:
        if self.missed_results is None:
            return
        try:
            self.missed_results.add_batch(
                {
                    'artist': c.artist_name,
                    'title': c.track_title or '',
                    'popularity': candidate_popularity(c),
                    'source': c.origin_pool.value,
                }
                for c in misses
            )
        except sqlite3.Error as e:
            logger.warning(f"Could not record missed results: {e}")
