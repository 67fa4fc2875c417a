"""Test configuration and fixtures."""

import sys
from pathlib import Path

import pytest

# Add repo root to path for imports
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from similar_artists.local_library_client import LocalLibraryClient
from similar_artists.models import TrackRef
from similar_artists.track_matcher import LibraryMatcher


def make_library_track(track_id, artist, title, album="", rating=None, bitrate=None, path=None, genre=""):
    return TrackRef(
        id=track_id,
        artist=artist,
        title=title,
        album=album,
        genre=genre,
        rating=rating,
        bitrate=bitrate,
        path=path,
    )


@pytest.fixture()
def library(tmp_path):
    """Empty SQLite library index in a temp directory."""
    client = LocalLibraryClient(str(tmp_path / "library.db"), create=True)
    yield client
    client.close()


@pytest.fixture()
def matcher(library):
    return LibraryMatcher(library, ready_timeout=0.1)


@pytest.fixture()
def track_factory():
    """Build library TrackRefs with sensible defaults."""
    return make_library_track
