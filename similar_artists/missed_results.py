"""
Missed Results - Remembers recommended tracks that are not in the library
"""
import json
import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from .string_utils import canonical_key

logger = logging.getLogger(__name__)

MAX_RESULTS = 10000


class MissedResultsStore:
    """
    SQLite-backed list of (artist, title) recommendations with no library match.

    A repeated miss increments its occurrence count and keeps the higher
    popularity. The table is trimmed to max_results rows, oldest first.
    """

    def __init__(self, db_path: str = "data/missed_results.db", max_results: int = MAX_RESULTS):
        self.db_path = db_path
        self.max_results = max_results
        if db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        # Auto-mode runs record from a worker thread
        self.conn = sqlite3.connect(db_path, check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self._init_schema()
        logger.debug(f"Initialized MissedResultsStore: {db_path}")

    def _init_schema(self):
        self.conn.execute("""
            CREATE TABLE IF NOT EXISTS missed_results (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                artist TEXT NOT NULL,
                title TEXT NOT NULL,
                album TEXT NOT NULL DEFAULT '',
                artist_key TEXT NOT NULL,
                title_key TEXT NOT NULL,
                popularity INTEGER NOT NULL DEFAULT 0,
                occurrences INTEGER NOT NULL DEFAULT 1,
                info TEXT NOT NULL DEFAULT '{}',
                first_seen TEXT NOT NULL,
                last_seen TEXT NOT NULL,
                UNIQUE (artist_key, title_key)
            )
        """)
        self.conn.execute("CREATE INDEX IF NOT EXISTS idx_missed_artist_key ON missed_results(artist_key)")
        self.conn.commit()

    @staticmethod
    def _now() -> str:
        return datetime.now(timezone.utc).isoformat(timespec='seconds')

    def _upsert(self, artist: str, title: str, album: str, popularity: int, info: Dict[str, Any]) -> bool:
        artist_key = canonical_key(artist)
        title_key = canonical_key(title)
        if not artist_key or not title_key:
            return False

        popularity = max(0, min(100, int(popularity or 0)))
        now = self._now()
        cursor = self.conn.cursor()
        cursor.execute(
            "SELECT id, popularity FROM missed_results WHERE artist_key = ? AND title_key = ?",
            (artist_key, title_key),
        )
        row = cursor.fetchone()
        if row is not None:
            cursor.execute(
                """
                UPDATE missed_results
                SET occurrences = occurrences + 1,
                    popularity = MAX(popularity, ?),
                    last_seen = ?
                WHERE id = ?
                """,
                (popularity, now, row['id']),
            )
        else:
            cursor.execute(
                """
                INSERT INTO missed_results
                    (artist, title, album, artist_key, title_key, popularity, occurrences, info, first_seen, last_seen)
                VALUES (?, ?, ?, ?, ?, ?, 1, ?, ?, ?)
                """,
                (artist, title, album or '', artist_key, title_key, popularity, json.dumps(info or {}), now, now),
            )
        return True

    def _trim(self) -> None:
        self.conn.execute(
            """
            DELETE FROM missed_results WHERE id NOT IN (
                SELECT id FROM missed_results ORDER BY last_seen DESC, id DESC LIMIT ?
            )
            """,
            (self.max_results,),
        )

    def add(self, artist: str, title: str, album: str = '', popularity: int = 0, **info) -> bool:
        """
        Record one miss.

        Returns:
            False when artist or title is empty (nothing recorded)
        """
        stored = self._upsert(artist, title, album, popularity, info)
        self._trim()
        self.conn.commit()
        return stored

    def add_batch(self, results: Iterable[Dict[str, Any]]) -> int:
        """Record several misses ({artist, title, album?, popularity?, ...}) in one transaction."""
        count = 0
        for result in results:
            extra = {k: v for k, v in result.items() if k not in ('artist', 'title', 'album', 'popularity')}
            if self._upsert(result.get('artist', ''), result.get('title', ''),
                            result.get('album', ''), result.get('popularity', 0), extra):
                count += 1
        self._trim()
        self.conn.commit()
        if count:
            logger.debug(f"Recorded {count} missed results")
        return count

    @staticmethod
    def _row_to_dict(row: sqlite3.Row) -> Dict[str, Any]:
        return {
            'artist': row['artist'],
            'title': row['title'],
            'album': row['album'],
            'popularity': row['popularity'],
            'occurrences': row['occurrences'],
            'info': json.loads(row['info'] or '{}'),
            'first_seen': row['first_seen'],
            'last_seen': row['last_seen'],
        }

    def get_all(self, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        """All misses, most recently seen first."""
        sql = "SELECT * FROM missed_results ORDER BY last_seen DESC, id DESC"
        params: tuple = ()
        if limit:
            sql += " LIMIT ?"
            params = (int(limit),)
        cursor = self.conn.cursor()
        cursor.execute(sql, params)
        return [self._row_to_dict(row) for row in cursor.fetchall()]

    def get_by_artist(self, artist: str) -> List[Dict[str, Any]]:
        cursor = self.conn.cursor()
        cursor.execute(
            "SELECT * FROM missed_results WHERE artist_key = ? ORDER BY popularity DESC, title",
            (canonical_key(artist),),
        )
        return [self._row_to_dict(row) for row in cursor.fetchall()]

    def get_stats(self) -> Dict[str, Any]:
        cursor = self.conn.cursor()
        cursor.execute("""
            SELECT COUNT(*) AS total,
                   COUNT(DISTINCT artist_key) AS unique_artists,
                   COALESCE(SUM(occurrences), 0) AS total_occurrences,
                   COALESCE(AVG(popularity), 0) AS avg_popularity
            FROM missed_results
        """)
        row = cursor.fetchone()
        return {
            'total': row['total'],
            'unique_artists': row['unique_artists'],
            'total_occurrences': row['total_occurrences'],
            'avg_popularity': int(round(row['avg_popularity'])),
        }

    def clear(self) -> int:
        """Delete every miss; returns the number removed."""
        cursor = self.conn.cursor()
        cursor.execute("DELETE FROM missed_results")
        self.conn.commit()
        logger.info(f"Cleared {cursor.rowcount} missed results")
        return cursor.rowcount

    def close(self):
        if self.conn:
            self.conn.close()
            self.conn = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
