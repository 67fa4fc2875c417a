"""
Core data structures passed between the pipeline stages.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

from .string_utils import canonical_key


@dataclass(frozen=True)
class TrackRef:
    """A track as exposed by the host library or selection."""

    id: Optional[str]
    """Stable library id ('0' and None mean "no id")."""

    artist: str
    title: str
    album: str = ""
    genre: str = ""

    rating: Optional[int] = None
    """0-100, None when unrated."""

    bitrate: Optional[int] = None
    """kbps, None when unknown."""

    path: Optional[str] = None
    duration_ms: Optional[int] = None

    @property
    def has_id(self) -> bool:
        return bool(self.id) and str(self.id) != "0"


def track_dedup_key(track: TrackRef) -> str:
    """
    Stable identity of a library track.

    Library id when present, else the file path, else a title|album|artist
    composite of canonical keys.
    """
    if track.has_id:
        return f"id:{track.id}"
    if track.path:
        return f"path:{track.path}"
    return "meta:{}|{}|{}".format(
        canonical_key(track.title),
        canonical_key(track.album),
        canonical_key(track.artist),
    )


@dataclass(frozen=True)
class SeedArtist:
    """One distinct seed artist of a run."""

    name: str
    """Raw artist name as split from the source track."""

    source_track: Optional[TrackRef] = None
    """First selected track credited to this artist."""

    other_tracks: Tuple[TrackRef, ...] = ()
    """Further selected tracks by the same artist, in selection order."""

    @property
    def key(self) -> str:
        return canonical_key(self.name)

    @property
    def tracks(self) -> Tuple[TrackRef, ...]:
        """Every selected track of this artist, first one first."""
        if self.source_track is None:
            return self.other_tracks
        return (self.source_track,) + self.other_tracks


class CandidatePool(str, Enum):
    """Which pool a candidate was drawn from."""

    SEED = "seed"
    CONTEXT = "context"


@dataclass(frozen=True)
class Candidate:
    """An unverified (artist, track) proposal from discovery."""

    artist_name: str
    track_title: Optional[str] = None
    score: Optional[float] = None
    origin_pool: CandidatePool = CandidatePool.SEED

    @property
    def artist_key(self) -> str:
        return canonical_key(self.artist_name)


@dataclass(frozen=True)
class MatchedTrack:
    """A library track resolved from a candidate."""

    track: TrackRef
    dedup_key: str
    match_pass: str
    """Matcher pass that produced the match: exact, normalized or partial."""

    candidate: Optional[Candidate] = None

    @classmethod
    def from_track(cls, track: TrackRef, match_pass: str, candidate: Optional[Candidate] = None) -> "MatchedTrack":
        return cls(track=track, dedup_key=track_dedup_key(track), match_pass=match_pass, candidate=candidate)

    @property
    def quality_score(self) -> Tuple[int, int]:
        """Tie-break order for duplicates: bitrate first, then rating."""
        bitrate = self.track.bitrate if self.track.bitrate is not None else -1
        rating = self.track.rating if self.track.rating is not None else -1
        return (bitrate, rating)
