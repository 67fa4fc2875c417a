"""
Shared string normalization utilities used for dedup, blacklist and matching keys.

canonical_key() is the single identity function for artist names: two names with
the same canonical key are the same artist everywhere in the pipeline.
"""
import re
import unicodedata
from typing import List

# Quote, apostrophe and dash variants folded to their ASCII form before any key
# is computed ("Guns N’ Roses" and "Guns N' Roses" must collide)
_TYPOGRAPHY_VARIANTS = {
    "'": "\u2018\u2019\u201A\u201B\u2032\u2035\u02BC`\u00B4",
    '"': "\u201C\u201D\u201E\u201F\u2033\u2036",
    "-": "\u2010\u2011\u2012\u2013\u2014\u2015\u2212",
}
_TYPOGRAPHY_TRANSLATION = {
    ord(variant): ascii_char
    for ascii_char, variants in _TYPOGRAPHY_VARIANTS.items()
    for variant in variants
}

_AMPERSAND_RE = re.compile(r"\s*[&+]\s*")
_TITLE_TOKEN_MIN_LEN = 3


def _fold_typography(text: str) -> str:
    return str(text).translate(_TYPOGRAPHY_TRANSLATION)


def _strip_diacritics(text: str) -> str:
    text = unicodedata.normalize("NFKD", text)
    return "".join(ch for ch in text if not unicodedata.combining(ch))


def _punctuation_to_spaces(text: str) -> str:
    # Apostrophes join ("Don't" -> "Dont"); all other punctuation separates.
    text = text.replace("'", "")
    return "".join(
        " " if unicodedata.category(ch).startswith("P") else ch for ch in text
    )


def canonical_key(name: str) -> str:
    """
    Canonical comparison key for an artist (or any) name.

    Steps:
    - Normalize typography variants (quotes/dashes)
    - Unicode NFKD + remove combining marks (diacritics)
    - Uppercase
    - Drop apostrophes, replace other punctuation with spaces
    - Collapse whitespace

    Punctuation-only names (e.g. "!!!") keep their punctuation so they still
    produce a non-empty key. The function is idempotent.
    """
    if not name:
        return ""

    text = str(name).strip()
    if not text:
        return ""

    # Upper-casing can reintroduce combining marks
    text = _strip_diacritics(_strip_diacritics(_fold_typography(text)).upper())

    normalized = " ".join(_punctuation_to_spaces(text).split())
    if normalized:
        return normalized

    return " ".join(text.split())


def normalize_match_text(value: str) -> str:
    """
    Normalize a field for the matcher's "normalized" pass.

    Case-folded, diacritics removed, "&"/"+" spelled "and", apostrophes
    dropped, remaining punctuation turned into spaces, whitespace collapsed.
    """
    if not value:
        return ""

    text = _strip_diacritics(_fold_typography(value)).casefold()
    text = _AMPERSAND_RE.sub(" and ", text)
    text = _punctuation_to_spaces(text)
    return " ".join(text.split())


def title_tokens(value: str) -> List[str]:
    """Significant tokens (length >= 3) of a normalized title, in order."""
    return [tok for tok in normalize_match_text(value).split() if len(tok) >= _TITLE_TOKEN_MIN_LEN]


def truncate_label(text: str, max_len: int) -> str:
    """Cap text at max_len characters, ending with '...' when cut."""
    if len(text) <= max_len:
        return text
    return text[: max_len - 3] + "..."
