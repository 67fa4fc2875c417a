"""
Selection sources for command-line runs.
"""
import logging
from typing import Iterable, List, Optional, Sequence

from ..models import TrackRef
from .interfaces import SelectionSource

logger = logging.getLogger(__name__)


class StaticSelection(SelectionSource):
    """A fixed selection and now-playing track."""

    def __init__(self, selected: Optional[Sequence[TrackRef]] = None, now_playing: Optional[TrackRef] = None):
        self.selected = list(selected or [])
        self.now_playing = now_playing

    def get_selected_tracks(self) -> List[TrackRef]:
        return list(self.selected)

    def get_currently_playing_track(self) -> Optional[TrackRef]:
        return self.now_playing

    @classmethod
    def from_artists(cls, artist_names: Iterable[str]) -> "StaticSelection":
        """Selection of artist-only tracks (no title, no id)."""
        tracks = [TrackRef(id=None, artist=name.strip(), title='') for name in artist_names if name and name.strip()]
        return cls(tracks)

    @classmethod
    def from_library(
        cls,
        library,
        track_ids: Sequence[str] = (),
        now_playing_id: Optional[str] = None,
    ) -> "StaticSelection":
        """Resolve track ids against the library index; unknown ids are skipped."""
        selected = library.get_tracks_by_ids(list(track_ids)) if track_ids else []
        missing = len(track_ids) - len(selected)
        if missing:
            logger.warning(f"{missing} selected track id(s) not found in the library")

        now_playing = None
        if now_playing_id:
            found = library.get_tracks_by_ids([now_playing_id])
            now_playing = found[0] if found else None
            if now_playing is None:
                logger.warning(f"Now-playing track id not found: {now_playing_id}")
        return cls(selected, now_playing)
