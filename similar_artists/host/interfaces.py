"""
Host capability interfaces.

The pipeline only talks to the host application (selection, playlists,
playback queue, playback monitor) through these narrow ABCs. Each host gets
exactly one implementation, chosen at startup.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence

from ..models import TrackRef


class SelectionSource(ABC):
    """Where seed tracks come from."""

    @abstractmethod
    def get_selected_tracks(self) -> List[TrackRef]:
        """Tracks currently selected by the user, in selection order."""

    @abstractmethod
    def get_currently_playing_track(self) -> Optional[TrackRef]:
        """The playing track, or None when nothing plays."""


class PlaylistHandle(ABC):
    """One persistent playlist."""

    name: str

    @abstractmethod
    def get_tracks(self) -> List[TrackRef]:
        pass

    @abstractmethod
    def add_tracks(self, tracks: Sequence[TrackRef]) -> None:
        pass

    @abstractmethod
    def clear(self) -> None:
        pass

    @abstractmethod
    def commit(self) -> None:
        """Persist pending changes."""


class PlaylistStore(ABC):
    """The host's playlist collection."""

    @abstractmethod
    def find_playlist_by_name(self, name: str, parent: Optional[str] = None) -> Optional[PlaylistHandle]:
        pass

    @abstractmethod
    def create_playlist(self, name: str, parent: Optional[str] = None) -> PlaylistHandle:
        pass

    @abstractmethod
    def delete_playlist(self, playlist: PlaylistHandle) -> None:
        pass


class PlaybackQueue(ABC):
    """The host's play queue ("Now Playing")."""

    @abstractmethod
    def get_tracks(self) -> List[TrackRef]:
        pass

    @abstractmethod
    def add_tracks(self, tracks: Sequence[TrackRef]) -> None:
        pass

    @abstractmethod
    def clear(self) -> None:
        pass


@dataclass(frozen=True)
class PlaybackState:
    """Snapshot pushed by a PlaybackMonitor on every playback change."""

    remaining_tracks: int
    current_track: Optional[TrackRef] = None


class Subscription(ABC):
    """Handle returned by PlaybackMonitor.subscribe()."""

    @abstractmethod
    def cancel(self) -> None:
        pass

    @property
    @abstractmethod
    def active(self) -> bool:
        pass


class PlaybackMonitor(ABC):
    """Source of playback-position events."""

    @abstractmethod
    def subscribe(self, callback: Callable[[PlaybackState], None]) -> Subscription:
        pass
