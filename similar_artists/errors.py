"""
Error taxonomy for a discovery run.

Per-call provider failures are recovered where they happen (the seed or artist
is skipped). Everything else aborts the run and is turned into a single
user-facing message by the orchestrator.
"""
from enum import Enum
from typing import Optional


class SimilarArtistsError(Exception):
    """Base class for all run errors."""

    fatal = True
    """Whether the error is a hard failure (as opposed to an informational outcome)."""

    default_message = "Similar artists run failed"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.default_message)

    @property
    def user_message(self) -> str:
        return str(self)


class NoSeedsError(SimilarArtistsError):
    """Neither a selection nor a playing track provided a seed artist."""

    fatal = False
    default_message = "No seed tracks found. Select one or more tracks or start playing a track."


class ProviderErrorKind(str, Enum):
    """Why a provider call failed."""

    NETWORK = "network"
    TIMEOUT = "timeout"
    RATE_LIMIT = "rate_limit"
    EMPTY = "empty"


class ProviderError(SimilarArtistsError):
    """A single recommendation-provider call failed; callers skip and continue."""

    fatal = False

    def __init__(self, kind: ProviderErrorKind, cause: Optional[BaseException] = None, message: Optional[str] = None):
        self.kind = ProviderErrorKind(kind)
        self.cause = cause
        detail = message or (str(cause) if cause else "")
        text = f"Provider call failed ({self.kind.value})"
        if detail:
            text = f"{text}: {detail}"
        super().__init__(text)


class MatcherUnavailable(SimilarArtistsError):
    """The library index is not ready; not retried automatically."""

    default_message = "The music library is not available. Try again once it has finished loading."


class NoMatchesError(SimilarArtistsError):
    """Discovery worked but nothing resolved against the library."""

    fatal = False
    default_message = "No matching tracks found in your library."


class PlaylistCommitError(SimilarArtistsError):
    """The host failed to persist the playlist or queue."""

    default_message = "Could not save the results."


class CancellationError(SimilarArtistsError):
    """Raised at the next checkpoint after a cancel was requested."""

    fatal = False
    default_message = "Operation cancelled by user"
