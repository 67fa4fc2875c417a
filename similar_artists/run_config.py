"""
Typed, validated per-run configuration.

A RunConfig is built once when a run starts (build_run_config) and is never
mutated afterwards; invalid values are rejected at construction.
"""
from __future__ import annotations

from dataclasses import dataclass, fields, replace
from enum import Enum
from typing import Any, Dict, FrozenSet, Mapping, Optional, Tuple

from .artist_utils import DEFAULT_IGNORE_PREFIXES
from .string_utils import canonical_key
from .track_matcher import MatchOptions


class DiscoveryMode(str, Enum):
    """Supported discovery strategies."""

    ARTIST = "artist"
    TRACK = "track"
    GENRE = "genre"
    MOOD = "mood"
    ACTIVITY = "activity"

    @property
    def is_context(self) -> bool:
        """Mood and activity runs blend in a context pool."""
        return self in (DiscoveryMode.MOOD, DiscoveryMode.ACTIVITY)

    def label(self) -> str:
        """Human-friendly label."""
        labels = {
            DiscoveryMode.ARTIST: "Similar Artists",
            DiscoveryMode.TRACK: "Similar Tracks",
            DiscoveryMode.GENRE: "Similar Genre",
            DiscoveryMode.MOOD: "Mood",
            DiscoveryMode.ACTIVITY: "Activity",
        }
        return labels.get(self, self.value)


class PlaylistMode(str, Enum):
    """What to do with the results when the target is a playlist."""

    CREATE = "create"
    OVERWRITE = "overwrite"
    DO_NOT_CREATE = "do_not_create"

    @classmethod
    def parse(cls, value: Any) -> "PlaylistMode":
        """Accept enum values as well as the option labels shown to users."""
        if isinstance(value, cls):
            return value
        text = str(value or "").strip().lower()
        aliases = {
            "create new playlist": cls.CREATE,
            "overwrite existing playlist": cls.OVERWRITE,
            "do not create playlist": cls.DO_NOT_CREATE,
            "do-not-create": cls.DO_NOT_CREATE,
        }
        if text in aliases:
            return aliases[text]
        try:
            return cls(text)
        except ValueError:
            raise ValueError(f"Unsupported playlist mode: {value!r}") from None


DEFAULT_CONTEXT_VALUES = {
    DiscoveryMode.MOOD: "energetic",
    DiscoveryMode.ACTIVITY: "workout",
}

_POSITIVE_INT_FIELDS = (
    "seed_limit",
    "similar_limit",
    "tracks_per_artist",
    "total_limit",
    "track_similar_limit",
)


@dataclass(frozen=True)
class AutoModeSettings:
    """Conservative limits applied to unattended auto-queue runs."""

    enabled: bool = False
    remaining_threshold: int = 2
    seed_limit: int = 2
    tracks_per_artist: int = 5
    total_limit: int = 10
    discovery_mode: DiscoveryMode = DiscoveryMode.TRACK

    def __post_init__(self):
        object.__setattr__(self, "discovery_mode", DiscoveryMode(self.discovery_mode))
        if self.remaining_threshold < 0:
            raise ValueError("auto_mode.remaining_threshold must be >= 0")


@dataclass(frozen=True)
class RunConfig:
    """Immutable snapshot of every tunable of one run."""

    discovery_mode: DiscoveryMode = DiscoveryMode.ARTIST

    seed_limit: int = 5
    """Maximum seed artists (or seed tracks) processed."""

    similar_limit: int = 5
    """Similar artists requested per seed."""

    tracks_per_artist: int = 9999
    total_limit: int = 9999

    track_similar_limit: int = 100
    """Similar tracks requested per seed track (track discovery)."""

    include_seed_artist: bool = False

    blend_ratio: float = 0.5
    """Fraction of mood/activity candidates drawn from the seed-similarity pool."""

    context_value: str = ""
    """Mood or activity name for context discovery."""

    genre_hint: Tuple[str, ...] = ()
    activity_duration: int = 60

    blacklist: FrozenSet[str] = frozenset()
    """Canonical keys of artists never used."""

    ignore_prefixes: Tuple[str, ...] = DEFAULT_IGNORE_PREFIXES

    min_rating: int = 0
    allow_unknown: bool = True
    prefer_best: bool = False

    rank: bool = False
    shuffle: bool = False
    confirm: bool = True
    enqueue: bool = False
    clear_queue: bool = False
    skip_duplicates: bool = False

    playlist_mode: PlaylistMode = PlaylistMode.CREATE
    playlist_name_template: str = "Artists similar to %"
    parent_playlist: str = ""

    auto_mode: bool = False
    record_missed: bool = True

    def __post_init__(self):
        object.__setattr__(self, "discovery_mode", DiscoveryMode(self.discovery_mode))
        object.__setattr__(self, "playlist_mode", PlaylistMode.parse(self.playlist_mode))

        for name in _POSITIVE_INT_FIELDS:
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value < 1:
                raise ValueError(f"{name} must be a positive integer, got {value!r}")

        ratio = self.blend_ratio
        if isinstance(ratio, bool) or not isinstance(ratio, (int, float)):
            raise ValueError(f"blend_ratio must be a number, got {ratio!r}")
        if not 0.0 <= float(ratio) <= 1.0:
            raise ValueError(f"blend_ratio must be within [0, 1], got {ratio!r}")
        object.__setattr__(self, "blend_ratio", float(ratio))

        if isinstance(self.min_rating, bool) or not isinstance(self.min_rating, int) or not 0 <= self.min_rating <= 100:
            raise ValueError(f"min_rating must be an integer within [0, 100], got {self.min_rating!r}")

        if self.activity_duration < 1:
            raise ValueError("activity_duration must be positive")

        if self.discovery_mode.is_context and not (self.context_value or "").strip():
            raise ValueError(f"{self.discovery_mode.value} discovery needs a context value")

        object.__setattr__(self, "blacklist", frozenset(
            canonical_key(name) for name in self.blacklist if canonical_key(name)
        ))
        object.__setattr__(self, "genre_hint", tuple(g.strip() for g in self.genre_hint if g and g.strip()))
        object.__setattr__(self, "ignore_prefixes", tuple(self.ignore_prefixes))

    def is_blacklisted(self, artist_name: str) -> bool:
        """True when the artist's canonical key is in the blacklist."""
        return canonical_key(artist_name) in self.blacklist

    @property
    def match_options(self) -> MatchOptions:
        return MatchOptions(
            min_rating=self.min_rating,
            allow_unknown=self.allow_unknown,
            prefer_best=self.prefer_best,
        )

    @property
    def targets_queue(self) -> bool:
        """Output goes to the playback queue instead of a playlist."""
        return self.auto_mode or self.enqueue

    def for_auto_mode(self, settings: Optional[AutoModeSettings] = None) -> "RunConfig":
        """Copy with the unattended-run overrides applied."""
        settings = settings or AutoModeSettings()
        return replace(
            self,
            auto_mode=True,
            discovery_mode=settings.discovery_mode,
            seed_limit=settings.seed_limit,
            tracks_per_artist=settings.tracks_per_artist,
            total_limit=settings.total_limit,
            include_seed_artist=False,
            confirm=False,
            enqueue=True,
            clear_queue=False,
            skip_duplicates=True,
        )

    def with_overrides(self, overrides: Optional[Mapping[str, Any]]) -> "RunConfig":
        """Copy with the given fields replaced (unknown keys are rejected)."""
        if not overrides:
            return self
        known = {f.name for f in fields(self)}
        unknown = set(overrides) - known
        if unknown:
            raise ValueError(f"Unknown run settings: {', '.join(sorted(unknown))}")
        return replace(self, **dict(overrides))


def _as_tuple(value: Any) -> Tuple[str, ...]:
    if not value:
        return ()
    if isinstance(value, str):
        return tuple(part.strip() for part in value.split(";") if part.strip())
    return tuple(str(v).strip() for v in value if str(v).strip())


def auto_mode_settings(config) -> AutoModeSettings:
    """Read the auto_mode section of a Config."""
    section: Dict[str, Any] = config.get_section("auto_mode")
    return AutoModeSettings(
        enabled=bool(section.get("enabled", False)),
        remaining_threshold=int(section.get("remaining_threshold", 2)),
        seed_limit=int(section.get("seed_limit", 2)),
        tracks_per_artist=int(section.get("tracks_per_artist", 5)),
        total_limit=int(section.get("total_limit", 10)),
        discovery_mode=section.get("discovery_mode", DiscoveryMode.TRACK.value),
    )


def build_run_config(
    config,
    *,
    auto_mode: bool = False,
    overrides: Optional[Mapping[str, Any]] = None,
) -> RunConfig:
    """
    Build the RunConfig for one run from the loaded Config.

    Args:
        config: Config instance (YAML settings)
        auto_mode: Apply the auto-mode overrides
        overrides: Field overrides (e.g. from the command line), applied before
            the auto-mode overrides

    Raises:
        ValueError: On any out-of-range or unknown value
    """
    discovery = config.get_section("discovery")
    matching = config.get_section("matching")
    output = config.get_section("output")

    mode = DiscoveryMode(str(discovery.get("mode", DiscoveryMode.ARTIST.value)).lower())
    values: Dict[str, Any] = dict(
        discovery_mode=mode,
        seed_limit=discovery.get("seed_limit", 5),
        similar_limit=discovery.get("similar_limit", 5),
        tracks_per_artist=discovery.get("tracks_per_artist", 9999),
        total_limit=discovery.get("total_limit", 9999),
        track_similar_limit=discovery.get("track_similar_limit", 100),
        include_seed_artist=bool(discovery.get("include_seed_artist", False)),
        blend_ratio=discovery.get("blend_ratio", 0.5),
        context_value=str(discovery.get("context_value") or ""),
        genre_hint=_as_tuple(discovery.get("genre_hint")),
        activity_duration=discovery.get("activity_duration_minutes", 60),
        blacklist=frozenset(_as_tuple(discovery.get("blacklist"))),
        ignore_prefixes=_as_tuple(discovery.get("ignore_prefixes")) or DEFAULT_IGNORE_PREFIXES,
        min_rating=matching.get("min_rating", 0),
        allow_unknown=bool(matching.get("allow_unknown", True)),
        prefer_best=bool(matching.get("prefer_best", False)),
        rank=bool(output.get("rank", False)),
        shuffle=bool(output.get("shuffle", False)),
        confirm=bool(output.get("confirm", True)),
        enqueue=bool(output.get("enqueue", False)),
        clear_queue=bool(output.get("clear_queue", False)),
        skip_duplicates=bool(output.get("skip_duplicates", False)),
        playlist_mode=output.get("playlist_mode", PlaylistMode.CREATE.value),
        playlist_name_template=str(output.get("playlist_name", "Artists similar to %")),
        parent_playlist=str(output.get("parent_playlist") or ""),
        record_missed=bool(config.get_section("missed_results").get("enabled", True)),
    )
    if overrides:
        values.update(overrides)

    resolved_mode = DiscoveryMode(values["discovery_mode"])
    if resolved_mode.is_context and not values.get("context_value"):
        values["context_value"] = DEFAULT_CONTEXT_VALUES[resolved_mode]

    run_config = RunConfig(**values)
    if auto_mode:
        run_config = run_config.for_auto_mode(auto_mode_settings(config))
    return run_config
