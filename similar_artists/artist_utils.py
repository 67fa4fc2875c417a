"""
Artist-name helpers: multi-artist splitting and "ignore prefix" handling.

split_artists() feeds seed collection, fix_prefixes() is applied to every name
before it is sent to a recommendation provider, and artist_match_key() is the
prefix-aware key the library matcher compares artists with.
"""
import re
from typing import Iterable, List, Optional, Sequence

from .string_utils import canonical_key

DEFAULT_IGNORE_PREFIXES = ("The",)

# Checked in order at every top-level position; longer forms first.
_SPLIT_DELIMITERS = ("; ", ";", " feat. ", " ft. ", " / ", " & ", ", ")

# "Echo & The Bunnymen", "Sun Ra & His Arkestra" are band names, not collaborations
_BAND_NAME_AFTER_AMPERSAND = re.compile(r"(?:the|his|her|their)\s", flags=re.IGNORECASE)

_AMPERSAND_RE = re.compile(r"\s*[&+]\s*")


def _delimiter_at(lowered: str, pos: int) -> Optional[str]:
    for delim in _SPLIT_DELIMITERS:
        if not lowered.startswith(delim, pos):
            continue
        if delim == " & " and _BAND_NAME_AFTER_AMPERSAND.match(lowered, pos + len(delim)):
            continue
        return delim
    return None


def split_artists(raw: str) -> List[str]:
    """
    Split a multi-artist credit into individual artist names.

    Splits on "; ", " feat. ", " ft. ", " / ", " & " and ", " at the top level
    only: text inside parentheses or brackets is never split. If any split would
    leave an empty segment the whole (trimmed) credit is returned unchanged.

    Examples:
        "Pink Siifu & Fly Anakin" -> ["Pink Siifu", "Fly Anakin"]
        "Echo & The Bunnymen" -> ["Echo & The Bunnymen"]
        "Artist (feat. Someone, Else)" -> ["Artist (feat. Someone, Else)"]

    Args:
        raw: Artist field as stored on a track

    Returns:
        Ordered, de-duplicated list of artist names (empty for blank input)
    """
    if not raw:
        return []

    text = str(raw).strip()
    if not text:
        return []

    lowered = text.lower()
    parts: List[str] = []
    depth = 0
    start = 0
    i = 0
    while i < len(text):
        ch = text[i]
        if ch in "([":
            depth += 1
        elif ch in ")]":
            depth = max(0, depth - 1)
        elif depth == 0:
            delim = _delimiter_at(lowered, i)
            if delim:
                parts.append(text[start:i])
                i += len(delim)
                start = i
                continue
        i += 1
    parts.append(text[start:])

    segments = [part.strip() for part in parts]
    if len(segments) > 1 and any(not segment for segment in segments):
        return [text]

    return list(dict.fromkeys(segments))


def fix_prefixes(name: str, prefixes: Sequence[str] = DEFAULT_IGNORE_PREFIXES) -> str:
    """
    Move a trailing ignore-prefix back to the front ("Beatles, The" -> "The Beatles").

    Libraries that sort with ignore-prefixes store names in the trailing form;
    recommendation providers only know the natural form.
    """
    if not name:
        return ""

    text = name.strip()
    lowered = text.lower()
    for prefix in prefixes:
        suffix = f", {prefix.lower()}"
        if lowered.endswith(suffix) and len(text) > len(suffix):
            base = text[: -len(suffix)].strip()
            return f"{text[-len(prefix):]} {base}"
    return text


def strip_prefix(name: str, prefixes: Sequence[str] = DEFAULT_IGNORE_PREFIXES) -> str:
    """Drop a leading ignore-prefix, accepting either ordering of the name."""
    text = fix_prefixes(name, prefixes)
    lowered = text.lower()
    for prefix in prefixes:
        lead = f"{prefix.lower()} "
        if lowered.startswith(lead) and len(text) > len(lead):
            return text[len(lead):].strip()
    return text


def artist_match_key(name: str, prefixes: Sequence[str] = DEFAULT_IGNORE_PREFIXES) -> str:
    """
    Prefix-aware artist key used by the library matcher.

    "The Beatles", "Beatles, The" and "beatles" share a key, as do
    "Simon & Garfunkel" and "Simon and Garfunkel".
    """
    if not name:
        return ""
    base = _AMPERSAND_RE.sub(" and ", strip_prefix(name, prefixes))
    return canonical_key(base)


def unique_by_canonical_key(names: Iterable[str]) -> List[str]:
    """Keep the first spelling of every distinct canonical key, in order."""
    seen = set()
    unique = []
    for name in names:
        key = canonical_key(name)
        if not key or key in seen:
            continue
        seen.add(key)
        unique.append(name)
    return unique
