"""
Local Library Client - Library index backed by a SQLite tracks table
"""
import logging
import sqlite3
import time
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

from .artist_utils import DEFAULT_IGNORE_PREFIXES, artist_match_key
from .models import TrackRef

logger = logging.getLogger(__name__)

_TRACK_COLUMNS = """
    track_id,
    artist,
    title,
    album,
    genre,
    rating,
    bitrate,
    file_path,
    duration_ms
"""


def _table_exists(conn: sqlite3.Connection, table_name: str) -> bool:
    cursor = conn.cursor()
    cursor.execute(
        "SELECT 1 FROM sqlite_master WHERE type='table' AND name=?",
        (table_name,),
    )
    return cursor.fetchone() is not None


def ensure_library_schema(conn: sqlite3.Connection) -> None:
    """Create the tracks table and its artist_key index if missing."""
    conn.execute("""
        CREATE TABLE IF NOT EXISTS tracks (
            track_id TEXT PRIMARY KEY,
            artist TEXT NOT NULL DEFAULT '',
            title TEXT NOT NULL DEFAULT '',
            album TEXT NOT NULL DEFAULT '',
            genre TEXT NOT NULL DEFAULT '',
            rating INTEGER,
            bitrate INTEGER,
            file_path TEXT,
            duration_ms INTEGER,
            artist_key TEXT NOT NULL DEFAULT ''
        )
    """)
    conn.execute("CREATE INDEX IF NOT EXISTS idx_tracks_artist_key ON tracks(artist_key)")
    conn.commit()


def _row_to_track(row: sqlite3.Row) -> TrackRef:
    return TrackRef(
        id=row['track_id'],
        artist=row['artist'] or '',
        title=row['title'] or '',
        album=row['album'] or '',
        genre=row['genre'] or '',
        rating=row['rating'],
        bitrate=row['bitrate'],
        path=row['file_path'],
        duration_ms=row['duration_ms'],
    )


class LocalLibraryClient:
    """
    Read/write access to the local library index.

    The matcher only needs find_tracks_by_artist_keys(); the write helpers exist
    for the import tooling and for tests.
    """

    def __init__(
        self,
        db_path: str = "data/library.db",
        *,
        create: bool = False,
        ignore_prefixes: Sequence[str] = DEFAULT_IGNORE_PREFIXES,
    ):
        """
        Initialize local library client

        Args:
            db_path: Path to the library database
            create: Create the tracks table when it does not exist yet
            ignore_prefixes: Prefixes ignored when computing artist keys
        """
        self.db_path = db_path
        self.ignore_prefixes = tuple(ignore_prefixes)
        self.conn: Optional[sqlite3.Connection] = None
        self._init_db_connection()
        if create:
            ensure_library_schema(self.conn)
        logger.info(f"Initialized LocalLibraryClient: {db_path}")

    def _init_db_connection(self):
        """Initialize database connection"""
        # Auto-mode runs execute on a worker thread
        self.conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        logger.debug(f"Connected to database: {self.db_path}")

    def is_ready(self) -> bool:
        """True once the connection is open and the tracks table exists."""
        if self.conn is None:
            return False
        try:
            return _table_exists(self.conn, "tracks")
        except sqlite3.Error as e:
            logger.warning(f"Library readiness check failed: {e}")
            return False

    def wait_until_ready(self, timeout: float = 5.0, poll_interval: float = 0.25) -> bool:
        """
        Block until the library is ready or the timeout expires.

        Returns:
            True if the library became ready
        """
        deadline = time.monotonic() + timeout
        while True:
            if self.is_ready():
                return True
            if time.monotonic() >= deadline:
                return False
            time.sleep(poll_interval)

    def add_tracks(self, tracks: Iterable[Union[TrackRef, Dict[str, Any]]]) -> int:
        """
        Insert or replace tracks, computing their artist keys.

        Returns:
            Number of rows written
        """
        rows = []
        for track in tracks:
            if isinstance(track, dict):
                track = TrackRef(
                    id=track.get('track_id') or track.get('id'),
                    artist=track.get('artist', ''),
                    title=track.get('title', ''),
                    album=track.get('album', ''),
                    genre=track.get('genre', ''),
                    rating=track.get('rating'),
                    bitrate=track.get('bitrate'),
                    path=track.get('file_path') or track.get('path'),
                    duration_ms=track.get('duration_ms'),
                )
            rows.append((
                track.id, track.artist, track.title, track.album, track.genre,
                track.rating, track.bitrate, track.path, track.duration_ms,
                artist_match_key(track.artist, self.ignore_prefixes),
            ))

        self.conn.executemany(
            f"""
            INSERT OR REPLACE INTO tracks ({_TRACK_COLUMNS}, artist_key)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            rows,
        )
        self.conn.commit()
        logger.debug(f"Stored {len(rows)} tracks")
        return len(rows)

    def rebuild_artist_keys(self) -> int:
        """Recompute artist_key for every row (after changing ignore prefixes)."""
        cursor = self.conn.cursor()
        cursor.execute("SELECT track_id, artist FROM tracks")
        updates = [
            (artist_match_key(row['artist'] or '', self.ignore_prefixes), row['track_id'])
            for row in cursor.fetchall()
        ]
        self.conn.executemany("UPDATE tracks SET artist_key = ? WHERE track_id = ?", updates)
        self.conn.commit()
        logger.info(f"Rebuilt artist keys for {len(updates)} tracks")
        return len(updates)

    def count_tracks(self) -> int:
        cursor = self.conn.cursor()
        cursor.execute("SELECT COUNT(*) FROM tracks")
        return int(cursor.fetchone()[0])

    def find_tracks_by_artist_keys(self, artist_keys: Sequence[str]) -> List[TrackRef]:
        """
        Get every track whose artist key is one of artist_keys

        Args:
            artist_keys: Keys produced by artist_match_key()

        Returns:
            Tracks ordered by album, title, track id
        """
        keys = [k for k in dict.fromkeys(artist_keys) if k]
        if not keys:
            return []

        placeholders = ",".join("?" for _ in keys)
        cursor = self.conn.cursor()
        cursor.execute(
            f"""
            SELECT {_TRACK_COLUMNS}
            FROM tracks
            WHERE artist_key IN ({placeholders})
            ORDER BY album, title, track_id
            """,
            keys,
        )
        tracks = [_row_to_track(row) for row in cursor.fetchall()]
        logger.debug(f"Found {len(tracks)} library tracks for artist keys {keys}")
        return tracks

    def get_tracks_by_ids(self, track_ids: List[str]) -> List[TrackRef]:
        """
        Batch fetch tracks by id. Preserves input order for hits; missing tracks are skipped.
        """
        if not track_ids:
            return []
        cursor = self.conn.cursor()
        placeholders = ",".join("?" for _ in track_ids)
        cursor.execute(
            f"SELECT {_TRACK_COLUMNS} FROM tracks WHERE track_id IN ({placeholders})",
            [str(t) for t in track_ids],
        )
        lookup = {str(row['track_id']): _row_to_track(row) for row in cursor.fetchall()}
        return [lookup[k] for k in map(str, track_ids) if k in lookup]

    def get_tracks_by_artist(self, artist_name: str) -> List[TrackRef]:
        """Get all tracks of an artist (prefix-aware)."""
        return self.find_tracks_by_artist_keys([artist_match_key(artist_name, self.ignore_prefixes)])

    def close(self):
        """Close database connection"""
        if self.conn:
            self.conn.close()
            self.conn = None
        logger.debug("Closed LocalLibraryClient connection")

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit: ensure resources are closed."""
        self.close()
