"""
M3U Playlist Store - Playlists and the playback queue as extended M3U8 files
"""
import logging
import os
import tempfile
from pathlib import Path
from typing import List, Optional, Sequence

from ..models import TrackRef
from .interfaces import PlaybackQueue, PlaylistHandle, PlaylistStore

logger = logging.getLogger(__name__)

_TRACK_ID_TAG = '#EXTTRACKID:'


def sanitize_filename(filename: str) -> str:
    """
    Sanitize filename by removing invalid characters

    Args:
        filename: Original filename

    Returns:
        Safe filename
    """
    # Replace invalid Windows filename characters
    invalid_chars = '<>:"/\\|?*'
    for char in invalid_chars:
        filename = filename.replace(char, '_')

    # Remove leading/trailing spaces and dots
    return filename.strip('. ') or '_'


def write_m3u(path: Path, tracks: Sequence[TrackRef]) -> None:
    """Write tracks as extended M3U8, replacing the file atomically."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix='.tmp-', suffix='.m3u8', dir=str(path.parent))
    try:
        with os.fdopen(fd, 'w', encoding='utf-8') as f:
            f.write('#EXTM3U\n')
            for track in tracks:
                # Duration in seconds (stored in milliseconds)
                duration_sec = track.duration_ms // 1000 if track.duration_ms else -1
                f.write(f"#EXTINF:{duration_sec},{track.artist} - {track.title}\n")
                if track.has_id:
                    f.write(f"{_TRACK_ID_TAG}{track.id}\n")
                f.write(f"{track.path or ''}\n")
        os.replace(tmp_name, path)
    except OSError:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise


def read_m3u(path: Path) -> List[TrackRef]:
    """Parse a file written by write_m3u() (plain M3U lines are accepted too)."""
    if not path.exists():
        return []

    tracks: List[TrackRef] = []
    artist, title, track_id, duration_ms = '', '', None, None
    with open(path, 'r', encoding='utf-8') as f:
        for raw in f:
            line = raw.rstrip('\n')
            if not line or line == '#EXTM3U':
                continue
            if line.startswith('#EXTINF:'):
                info = line[len('#EXTINF:'):]
                seconds, _, label = info.partition(',')
                try:
                    duration_ms = int(seconds) * 1000 if int(seconds) >= 0 else None
                except ValueError:
                    duration_ms = None
                artist, _, title = label.partition(' - ')
                continue
            if line.startswith(_TRACK_ID_TAG):
                track_id = line[len(_TRACK_ID_TAG):].strip() or None
                continue
            if line.startswith('#'):
                continue
            tracks.append(TrackRef(
                id=track_id,
                artist=artist.strip(),
                title=title.strip(),
                path=line.strip() or None,
                duration_ms=duration_ms,
            ))
            artist, title, track_id, duration_ms = '', '', None, None
    return tracks


class M3UPlaylist(PlaylistHandle):
    """A playlist file; changes are buffered until commit()."""

    def __init__(self, name: str, path: Path, tracks: Optional[List[TrackRef]] = None):
        self.name = name
        self.path = path
        self._tracks: List[TrackRef] = list(tracks or [])

    def get_tracks(self) -> List[TrackRef]:
        return list(self._tracks)

    def add_tracks(self, tracks: Sequence[TrackRef]) -> None:
        self._tracks.extend(tracks)

    def clear(self) -> None:
        self._tracks = []

    def commit(self) -> None:
        write_m3u(self.path, self._tracks)
        logger.info(f"Saved {len(self._tracks)} tracks to: {self.path}")


class M3UPlaylistStore(PlaylistStore):
    """Playlists stored as <export_path>/[<parent>/]<name>.m3u8"""

    def __init__(self, export_path: str):
        """
        Args:
            export_path: Directory to save M3U files
        """
        self.export_path = Path(export_path)
        self.export_path.mkdir(parents=True, exist_ok=True)
        logger.info(f"Initialized M3U playlist store: {self.export_path}")

    def _playlist_path(self, name: str, parent: Optional[str] = None) -> Path:
        directory = self.export_path
        if parent:
            directory = directory / sanitize_filename(parent)
        return directory / f"{sanitize_filename(name)}.m3u8"

    def find_playlist_by_name(self, name: str, parent: Optional[str] = None) -> Optional[M3UPlaylist]:
        path = self._playlist_path(name, parent)
        if not path.exists():
            return None
        return M3UPlaylist(name, path, read_m3u(path))

    def create_playlist(self, name: str, parent: Optional[str] = None) -> M3UPlaylist:
        path = self._playlist_path(name, parent)
        if path.exists():
            raise FileExistsError(f"Playlist already exists: {path}")
        playlist = M3UPlaylist(name, path)
        playlist.commit()
        logger.debug(f"Created playlist: {path}")
        return playlist

    def delete_playlist(self, playlist: PlaylistHandle) -> None:
        path = getattr(playlist, 'path', None)
        if path is not None and Path(path).exists():
            Path(path).unlink()
            logger.info(f"Deleted playlist: {path}")


class M3UPlaybackQueue(PlaybackQueue):
    """Play queue persisted as one M3U8 file; every change is written at once."""

    def __init__(self, path: str):
        self.path = Path(path)

    def get_tracks(self) -> List[TrackRef]:
        return read_m3u(self.path)

    def add_tracks(self, tracks: Sequence[TrackRef]) -> None:
        write_m3u(self.path, self.get_tracks() + list(tracks))
        logger.debug(f"Queued {len(tracks)} tracks in {self.path}")

    def clear(self) -> None:
        write_m3u(self.path, [])
