"""
Playlist Output - Sends the final track list to a playlist or the playback queue
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional, Sequence

from .errors import CancellationError, PlaylistCommitError
from .host.interfaces import PlaybackQueue, PlaylistHandle, PlaylistStore
from .models import TrackRef, track_dedup_key
from .run_config import PlaylistMode, RunConfig
from .string_utils import truncate_label

logger = logging.getLogger(__name__)

MAX_LABEL_LENGTH = 80
MAX_NAME_LENGTH = 100
DEFAULT_LABEL = "Similar"
QUEUE_NAME = "Now Playing"
MAX_NAME_SUFFIX = 999

ConfirmCallback = Callable[[str], Optional[str]]


class OutputTarget(str, Enum):
    PLAYLIST = "playlist"
    QUEUE = "queue"


@dataclass(frozen=True)
class OutputPlan:
    """Where results go, decided once before anything is created."""

    target: OutputTarget
    playlist_mode: Optional[PlaylistMode] = None
    enqueued_instead: bool = False


@dataclass
class OutputResult:
    """What the dispatch stage did."""

    target: OutputTarget
    name: str
    added: int
    skipped: int = 0
    created: bool = False
    enqueued_instead: bool = False


def resolve_output_plan(run_config: RunConfig) -> OutputPlan:
    """
    Decide the output target from the run configuration alone.

    Auto-mode and the enqueue flag target the queue. Otherwise the playlist
    mode applies; do_not_create sends the tracks to the queue instead.
    """
    if run_config.targets_queue:
        return OutputPlan(OutputTarget.QUEUE)
    if run_config.playlist_mode == PlaylistMode.DO_NOT_CREATE:
        return OutputPlan(OutputTarget.QUEUE, enqueued_instead=True)
    return OutputPlan(OutputTarget.PLAYLIST, playlist_mode=run_config.playlist_mode)


def seed_label(seed_names: Sequence[str]) -> str:
    """Seed names joined by ', ' (capped), or 'Similar' when there are none."""
    names = [n.strip() for n in seed_names if n and n.strip()]
    if not names:
        return DEFAULT_LABEL
    return truncate_label(', '.join(names), MAX_LABEL_LENGTH)


def build_playlist_name(template: str, label: str) -> str:
    """
    Substitute the seed label into the name template.

    '%' is replaced by the label; a template without '%' gets the label
    appended after a space.
    """
    template = (template or '').strip()
    if '%' in template:
        name = template.replace('%', label)
    elif template:
        name = f"{template} {label}"
    else:
        name = label
    return truncate_label(name.strip(), MAX_NAME_LENGTH)


def unique_playlist_name(store: PlaylistStore, name: str, parent: Optional[str] = None) -> str:
    """First of name, name_2, name_3, ... not used by an existing playlist."""
    if store.find_playlist_by_name(name, parent) is None:
        return name
    for index in range(2, MAX_NAME_SUFFIX + 1):
        candidate = f"{name}_{index}"
        if store.find_playlist_by_name(candidate, parent) is None:
            return candidate
    raise PlaylistCommitError(f"No free playlist name for '{name}'")


class PlaylistOutput:
    """Dispatches matched tracks to the host playlist store or play queue"""

    def __init__(self, store: Optional[PlaylistStore], queue: Optional[PlaybackQueue]):
        self.store = store
        self.queue = queue

    def dispatch(
        self,
        tracks: Sequence[TrackRef],
        seed_names: Sequence[str],
        run_config: RunConfig,
        *,
        confirm: Optional[ConfirmCallback] = None,
        checkpoint: Optional[Callable[[], None]] = None,
    ) -> OutputResult:
        """
        Write the tracks to their target.

        Args:
            tracks: Final ordered track list
            seed_names: Seed artist names (for the playlist label)
            run_config: Run configuration
            confirm: Called with the proposed playlist name when confirmation is
                on; returns the (possibly edited) name, or None to cancel
            checkpoint: Cancellation checkpoint, called before anything is written

        Raises:
            CancellationError: If the user cancelled the confirmation
            PlaylistCommitError: If the host failed to persist the results
        """
        plan = resolve_output_plan(run_config)
        logger.debug(f"Output plan: {plan}")

        if plan.target == OutputTarget.QUEUE:
            if checkpoint:
                checkpoint()
            result = self._enqueue(tracks, run_config)
            result.enqueued_instead = plan.enqueued_instead
            return result

        name = build_playlist_name(run_config.playlist_name_template, seed_label(seed_names))
        if run_config.confirm and not run_config.auto_mode and confirm is not None:
            edited = confirm(name)
            if edited is None or not str(edited).strip():
                logger.info("Playlist creation cancelled at confirmation")
                raise CancellationError()
            name = truncate_label(str(edited).strip(), MAX_NAME_LENGTH)

        if checkpoint:
            checkpoint()
        return self._write_playlist(tracks, name, plan.playlist_mode, run_config.parent_playlist or None)

    def _write_playlist(
        self,
        tracks: Sequence[TrackRef],
        name: str,
        mode: PlaylistMode,
        parent: Optional[str],
    ) -> OutputResult:
        if self.store is None:
            raise PlaylistCommitError("No playlist store is available")

        existing = self.store.find_playlist_by_name(name, parent) if mode == PlaylistMode.OVERWRITE else None
        if existing is not None:
            self._overwrite(existing, tracks)
            logger.info(f"Overwrote playlist '{name}' with {len(tracks)} tracks")
            return OutputResult(OutputTarget.PLAYLIST, name, added=len(tracks))

        if mode == PlaylistMode.CREATE:
            name = unique_playlist_name(self.store, name, parent)

        try:
            playlist = self.store.create_playlist(name, parent)
        except Exception as e:
            raise PlaylistCommitError(f"Could not create playlist '{name}': {e}") from e

        try:
            playlist.add_tracks(list(tracks))
            playlist.commit()
        except Exception as e:
            logger.error(f"Filling playlist '{name}' failed, removing it: {e}")
            self._discard(playlist)
            raise PlaylistCommitError(f"Could not save playlist '{name}': {e}") from e

        logger.info(f"Created playlist '{name}' with {len(tracks)} tracks")
        return OutputResult(OutputTarget.PLAYLIST, name, added=len(tracks), created=True)

    def _overwrite(self, playlist: PlaylistHandle, tracks: Sequence[TrackRef]) -> None:
        previous = playlist.get_tracks()
        try:
            playlist.clear()
            playlist.add_tracks(list(tracks))
            playlist.commit()
        except Exception as e:
            logger.error(f"Overwriting playlist '{playlist.name}' failed, restoring it: {e}")
            try:
                playlist.clear()
                playlist.add_tracks(previous)
                playlist.commit()
            except Exception:
                logger.exception(f"Restoring playlist '{playlist.name}' failed")
            raise PlaylistCommitError(f"Could not save playlist '{playlist.name}': {e}") from e

    def _discard(self, playlist: PlaylistHandle) -> None:
        try:
            self.store.delete_playlist(playlist)
        except Exception:
            logger.exception(f"Removing playlist '{playlist.name}' failed")

    def _enqueue(self, tracks: Sequence[TrackRef], run_config: RunConfig) -> OutputResult:
        if self.queue is None:
            raise PlaylistCommitError("No playback queue is available")

        try:
            if run_config.clear_queue:
                self.queue.clear()
                logger.debug("Cleared playback queue")

            to_add: List[TrackRef] = list(tracks)
            skipped = 0
            if run_config.skip_duplicates:
                queued = {track_dedup_key(t) for t in self.queue.get_tracks()}
                to_add = [t for t in tracks if track_dedup_key(t) not in queued]
                skipped = len(tracks) - len(to_add)

            if to_add:
                self.queue.add_tracks(to_add)
        except PlaylistCommitError:
            raise
        except Exception as e:
            raise PlaylistCommitError(f"Could not update the playback queue: {e}") from e

        logger.info(f"Queued {len(to_add)} tracks ({skipped} already queued)")
        return OutputResult(OutputTarget.QUEUE, QUEUE_NAME, added=len(to_add), skipped=skipped)
