"""
Tests for the M3U-backed playlist store, play queue and selection helpers
"""
from pathlib import Path

import pytest

from similar_artists.host import (
    M3UPlaybackQueue,
    M3UPlaylistStore,
    ManualPlaybackMonitor,
    PlaybackState,
    StaticSelection,
)
from similar_artists.host.m3u_store import read_m3u, sanitize_filename, write_m3u
from similar_artists.models import TrackRef
from similar_artists.playlist_output import PlaylistOutput
from similar_artists.run_config import RunConfig


def make_track(track_id, title, path=None, duration_ms=245000):
    return TrackRef(id=track_id, artist="Pink Floyd", title=title, path=path, duration_ms=duration_ms)


class TestM3UFormat:
    def test_write_format(self, tmp_path):
        path = tmp_path / "out.m3u8"

        write_m3u(path, [make_track("7", "Time", "/music/time.flac")])

        assert path.read_text(encoding="utf-8").splitlines() == [
            "#EXTM3U",
            "#EXTINF:245,Pink Floyd - Time",
            "#EXTTRACKID:7",
            "/music/time.flac",
        ]

    def test_read_back_keeps_ids(self, tmp_path):
        path = tmp_path / "out.m3u8"
        write_m3u(path, [make_track("7", "Time", "/music/time.flac"), make_track(None, "Money", "/music/money.flac", None)])

        tracks = read_m3u(path)

        assert [(t.id, t.title, t.path) for t in tracks] == [
            ("7", "Time", "/music/time.flac"),
            (None, "Money", "/music/money.flac"),
        ]
        assert tracks[0].duration_ms == 245000
        assert tracks[1].duration_ms is None

    def test_plain_m3u_lines(self, tmp_path):
        path = tmp_path / "plain.m3u"
        path.write_text("/music/a.mp3\n# comment\n/music/b.mp3\n", encoding="utf-8")

        assert [t.path for t in read_m3u(path)] == ["/music/a.mp3", "/music/b.mp3"]

    def test_missing_file_is_empty(self, tmp_path):
        assert read_m3u(tmp_path / "nope.m3u8") == []

    @pytest.mark.parametrize("raw,expected", [
        ("AC/DC: Live?", "AC_DC_ Live_"),
        ("  .hidden. ", "hidden"),
        ("...", "_"),
    ])
    def test_sanitize_filename(self, raw, expected):
        assert sanitize_filename(raw) == expected


class TestM3UPlaylistStore:
    def test_create_find_delete(self, tmp_path):
        store = M3UPlaylistStore(str(tmp_path / "playlists"))

        playlist = store.create_playlist("Mix", parent="Discovery")
        playlist.add_tracks([make_track("1", "Time")])
        playlist.commit()

        found = store.find_playlist_by_name("Mix", parent="Discovery")
        assert [t.id for t in found.get_tracks()] == ["1"]
        assert found.path == tmp_path / "playlists" / "Discovery" / "Mix.m3u8"
        assert store.find_playlist_by_name("Mix") is None

        store.delete_playlist(found)
        assert store.find_playlist_by_name("Mix", parent="Discovery") is None

    def test_create_existing_raises(self, tmp_path):
        store = M3UPlaylistStore(str(tmp_path))
        store.create_playlist("Mix")

        with pytest.raises(FileExistsError):
            store.create_playlist("Mix")

    def test_uncommitted_changes_are_not_saved(self, tmp_path):
        store = M3UPlaylistStore(str(tmp_path))
        playlist = store.create_playlist("Mix")
        playlist.add_tracks([make_track("1", "Time")])

        assert store.find_playlist_by_name("Mix").get_tracks() == []

    def test_dispatch_creates_suffixed_files(self, tmp_path):
        store = M3UPlaylistStore(str(tmp_path))
        output = PlaylistOutput(store, None)
        config = RunConfig(confirm=False)

        first = output.dispatch([make_track("1", "Time")], ["Yes"], config)
        second = output.dispatch([make_track("2", "Money")], ["Yes"], config)

        assert (first.name, second.name) == ("Artists similar to Yes", "Artists similar to Yes_2")
        assert sorted(p.name for p in Path(tmp_path).glob("*.m3u8")) == [
            "Artists similar to Yes.m3u8",
            "Artists similar to Yes_2.m3u8",
        ]


class TestM3UPlaybackQueue:
    def test_add_and_clear(self, tmp_path):
        queue = M3UPlaybackQueue(str(tmp_path / "Now Playing.m3u8"))
        assert queue.get_tracks() == []

        queue.add_tracks([make_track("1", "Time")])
        queue.add_tracks([make_track("2", "Money")])
        assert [t.id for t in queue.get_tracks()] == ["1", "2"]

        queue.clear()
        assert queue.get_tracks() == []

    def test_skip_duplicates_survives_file_round_trip(self, tmp_path):
        queue = M3UPlaybackQueue(str(tmp_path / "queue.m3u8"))
        queue.add_tracks([make_track("1", "Time", "/music/time.flac")])
        output = PlaylistOutput(None, queue)

        result = output.dispatch(
            [make_track("1", "Time", "/music/time.flac"), make_track("2", "Money")],
            [], RunConfig(enqueue=True, skip_duplicates=True),
        )

        assert (result.added, result.skipped) == (1, 1)


class TestStaticSelection:
    def test_from_artists(self):
        selection = StaticSelection.from_artists(["Pink Floyd", " ", "Camel "])

        assert [t.artist for t in selection.get_selected_tracks()] == ["Pink Floyd", "Camel"]
        assert selection.get_currently_playing_track() is None

    def test_from_library(self, library, track_factory):
        library.add_tracks([track_factory("1", "Pink Floyd", "Time"), track_factory("2", "Yes", "Roundabout")])

        selection = StaticSelection.from_library(library, ["2", "missing", "1"], now_playing_id="1")

        assert [t.id for t in selection.get_selected_tracks()] == ["2", "1"]
        assert selection.get_currently_playing_track().title == "Time"


class TestManualPlaybackMonitor:
    def test_publish_and_cancel(self):
        monitor = ManualPlaybackMonitor()
        seen = []
        subscription = monitor.subscribe(seen.append)

        monitor.publish(PlaybackState(remaining_tracks=3))
        subscription.cancel()
        monitor.publish(PlaybackState(remaining_tracks=1))

        assert [s.remaining_tracks for s in seen] == [3]
        assert not subscription.active
        assert monitor.subscriber_count == 0

    def test_failing_subscriber_does_not_stop_others(self):
        monitor = ManualPlaybackMonitor()
        seen = []

        def broken(state):
            raise RuntimeError("boom")

        monitor.subscribe(broken)
        monitor.subscribe(seen.append)
        monitor.publish(PlaybackState(remaining_tracks=0))

        assert len(seen) == 1
