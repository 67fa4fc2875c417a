"""Host application capabilities and their file-based implementations."""

from .interfaces import (
    PlaybackMonitor,
    PlaybackQueue,
    PlaybackState,
    PlaylistHandle,
    PlaylistStore,
    SelectionSource,
    Subscription,
)
from .m3u_store import M3UPlaybackQueue, M3UPlaylist, M3UPlaylistStore
from .playback import CallbackSubscription, ManualPlaybackMonitor
from .selection import StaticSelection

__all__ = [
    "CallbackSubscription",
    "M3UPlaybackQueue",
    "M3UPlaylist",
    "M3UPlaylistStore",
    "ManualPlaybackMonitor",
    "PlaybackMonitor",
    "PlaybackQueue",
    "PlaybackState",
    "PlaylistHandle",
    "PlaylistStore",
    "SelectionSource",
    "StaticSelection",
    "Subscription",
]
