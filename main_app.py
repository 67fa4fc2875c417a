# -*- coding: utf-8 -*-
"""
Similar Artists - Main Application
Builds playlists (or tops up the play queue) from artists similar to the
selected or playing tracks, matched against the local library
"""
import argparse
import logging
import os
import sys
from typing import Any, Dict, List, Optional

from similar_artists.auto_mode import AutoModeListener
from similar_artists.config_loader import Config
from similar_artists.host import (
    M3UPlaybackQueue,
    M3UPlaylistStore,
    ManualPlaybackMonitor,
    PlaybackState,
    StaticSelection,
)
from similar_artists.lastfm_client import LastFMClient
from similar_artists.local_library_client import LocalLibraryClient
from similar_artists.logging_utils import add_logging_args, configure_logging, resolve_log_level
from similar_artists.missed_results import MissedResultsStore
from similar_artists.orchestrator import Orchestrator, RunResult
from similar_artists.playlist_output import PlaylistOutput
from similar_artists.provider_cache import ProviderCache
from similar_artists.reccobeats_client import ReccoBeatsClient
from similar_artists.run_config import DiscoveryMode, auto_mode_settings, build_run_config
from similar_artists.track_matcher import LibraryMatcher

logger = logging.getLogger(__name__)


class SimilarArtistsApp:
    """Wires configuration, providers, library and host adapters together"""

    def __init__(self, config_path: str = "config.yaml", overrides: Optional[Dict[str, Any]] = None):
        self.config = Config(config_path)
        self.overrides = dict(overrides or {})

        self.cache = ProviderCache()
        self.lastfm = LastFMClient(
            api_key=self.config.lastfm_api_key,
            cache=self.cache,
            calls_per_second=self.config.lastfm_calls_per_second,
            timeout=self.config.lastfm_timeout,
        )
        self.reccobeats = ReccoBeatsClient(
            cache=self.cache,
            base_url=self.config.reccobeats_base_url,
            timeout=self.config.reccobeats_timeout,
        )

        self.library = LocalLibraryClient(
            db_path=self.config.library_database_path,
            ignore_prefixes=self.config.ignore_prefixes,
        )
        self.matcher = LibraryMatcher(
            self.library,
            ignore_prefixes=self.config.ignore_prefixes,
            ready_timeout=self.config.library_ready_timeout,
        )

        self.missed = None
        if self.config.missed_results_enabled:
            self.missed = MissedResultsStore(
                self.config.missed_results_path,
                max_results=self.config.missed_results_max,
            )

        self.store = M3UPlaylistStore(self.config.export_path)
        self.queue = M3UPlaybackQueue(self.config.queue_path)

        self.run_config = build_run_config(self.config, overrides=self.overrides)
        self.orchestrator = Orchestrator(
            self.run_config,
            self.lastfm,
            self.matcher,
            PlaylistOutput(self.store, self.queue),
            context=self.reccobeats,
            cache=self.cache,
            missed_results=self.missed,
            auto_settings=auto_mode_settings(self.config),
            clear_cache_on_run=self.config.cache_clear_on_run,
        )

    def build_selection(
        self,
        artists: Optional[List[str]] = None,
        track_ids: Optional[List[str]] = None,
        now_playing_id: Optional[str] = None,
    ) -> StaticSelection:
        if track_ids or now_playing_id:
            selection = StaticSelection.from_library(self.library, track_ids or [], now_playing_id)
            if artists:
                selection.selected.extend(StaticSelection.from_artists(artists).selected)
            return selection
        return StaticSelection.from_artists(artists or [])

    def run(self, selection: StaticSelection, *, assume_yes: bool = False) -> RunResult:
        confirm = None if assume_yes else _prompt_playlist_name
        return self.orchestrator.run(selection, confirm=confirm)

    def run_auto(self, selection: StaticSelection, remaining: int) -> Optional[RunResult]:
        """Simulate one playback event with `remaining` tracks left in the queue."""
        settings = auto_mode_settings(self.config)
        monitor = ManualPlaybackMonitor()
        listener = AutoModeListener(
            self.orchestrator,
            monitor,
            selection,
            threshold=settings.remaining_threshold,
        )
        listener.start()
        try:
            monitor.publish(PlaybackState(remaining_tracks=remaining, current_track=selection.now_playing))
            listener.wait()
        finally:
            listener.stop()
        return listener.last_result

    def show_missed(self, limit: int = 50) -> None:
        if self.missed is None:
            print("Missed results tracking is disabled.")
            return
        stats = self.missed.get_stats()
        print(f"\nMissed results: {stats['total']} tracks by {stats['unique_artists']} artists "
              f"(seen {stats['total_occurrences']} times, avg popularity {stats['avg_popularity']}%)\n")
        for entry in self.missed.get_all(limit):
            print(f"  {entry['artist']} - {entry['title']}  "
                  f"[{entry['popularity']}%, x{entry['occurrences']}]")

    def close(self) -> None:
        self.library.close()
        if self.missed is not None:
            self.missed.close()


def _prompt_playlist_name(name: str) -> Optional[str]:
    """Ask for the playlist name on the terminal; empty input keeps the proposal."""
    try:
        answer = input(f"Playlist name [{name}] (type 'n' to cancel): ").strip()
    except EOFError:
        return name
    if answer.lower() == 'n':
        return None
    return answer or name


def _overrides_from_args(args) -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    if args.mode:
        overrides['discovery_mode'] = DiscoveryMode(args.mode)
    if args.mood:
        overrides.setdefault('discovery_mode', DiscoveryMode.MOOD)
        overrides['context_value'] = args.mood
    if args.activity:
        overrides.setdefault('discovery_mode', DiscoveryMode.ACTIVITY)
        overrides['context_value'] = args.activity
    if args.ratio is not None:
        overrides['blend_ratio'] = args.ratio
    if args.total is not None:
        overrides['total_limit'] = args.total
    for flag in ('enqueue', 'shuffle', 'rank'):
        if getattr(args, flag):
            overrides[flag] = True
    if args.yes:
        overrides['confirm'] = False
    return overrides


def main():
    """Entry point"""
    parser = argparse.ArgumentParser(
        description="Build a playlist from artists similar to the selected or playing tracks"
    )
    parser.add_argument(
        "--config",
        default="config.yaml",
        help="Path to the YAML configuration (default: config.yaml)"
    )
    parser.add_argument(
        "--mode",
        choices=[m.value for m in DiscoveryMode],
        help="Discovery mode (default from config discovery.mode)"
    )
    parser.add_argument(
        "--artist",
        action="append",
        default=[],
        help="Seed artist; repeat for several (e.g., --artist \"Pink Floyd\")"
    )
    parser.add_argument(
        "--track-id",
        action="append",
        default=[],
        help="Library track id to use as a selected seed track; repeatable"
    )
    parser.add_argument("--now-playing-id", help="Library track id of the playing track")
    parser.add_argument("--mood", help="Mood for mood discovery (e.g., energetic)")
    parser.add_argument("--activity", help="Activity for activity discovery (e.g., workout)")
    parser.add_argument("--ratio", type=float, help="Blend ratio of seed similarity vs. mood/activity (0-1)")
    parser.add_argument("--total", type=int, help="Maximum number of tracks")
    parser.add_argument("--enqueue", action="store_true", help="Add to the play queue instead of a playlist")
    parser.add_argument("--shuffle", action="store_true", help="Shuffle the result")
    parser.add_argument("--rank", action="store_true", help="Order by popularity")
    parser.add_argument("--yes", action="store_true", help="Do not ask to confirm the playlist name")
    parser.add_argument(
        "--auto-remaining",
        type=int,
        metavar="N",
        help="Simulate an auto-mode trigger with N tracks left in the queue"
    )
    parser.add_argument("--show-missed", action="store_true", help="List recommended tracks missing from the library")
    parser.add_argument("--clear-missed", action="store_true", help="Clear the missed results list")
    add_logging_args(parser)
    args = parser.parse_args()

    if not os.path.exists(args.config):
        print(f"Error: {args.config} not found")
        print("\nCopy config.example.yaml to config.yaml and set your Last.FM API key.\n")
        sys.exit(1)

    try:
        file_config = Config(args.config)
        level = resolve_log_level(args) if (args.debug or args.quiet or args.log_level != 'INFO') else file_config.log_level
        configure_logging(
            level=level,
            log_file=args.log_file or file_config.log_file,
            show_run_id=args.show_run_id,
        )

        app = SimilarArtistsApp(args.config, overrides=_overrides_from_args(args))
    except ValueError as e:
        print(f"\nConfiguration Error: {e}")
        print("\nPlease check your config file.\n")
        sys.exit(1)

    try:
        if args.clear_missed or args.show_missed:
            if args.clear_missed and app.missed is not None:
                print(f"Cleared {app.missed.clear()} missed results.")
            if args.show_missed:
                app.show_missed()
            return

        selection = app.build_selection(args.artist, args.track_id, args.now_playing_id)
        if args.auto_remaining is not None:
            result = app.run_auto(selection, args.auto_remaining)
            if result is None:
                print("Auto-mode not triggered (queue has enough tracks).")
                return
        else:
            result = app.run(selection, assume_yes=args.yes)

        print(f"\n{result.message}\n")
        for index, match in enumerate(result.tracks if result.ok else [], start=1):
            track = match.track
            print(f"  {index:3d}. {track.artist} - {track.title}")
        sys.exit(result.exit_code)
    finally:
        app.close()


if __name__ == "__main__":
    main()
