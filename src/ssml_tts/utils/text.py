"""
Text Normalization Utilities.

This module turns loosely formatted human text into a canonical plain-text
form that is safe to embed in SSML and stable for chunking decisions.

Normalization Steps:
    1. Unescape JSON-style sequences left in client text (\\" \\n \\t)
    2. Smart quotes -> ASCII quotes
    3. Dash and minus variants -> ASCII hyphen
    4. Ellipsis character -> three periods
    5. Exotic spaces -> space, zero-width characters and BOM removed
    6. Collapse whitespace runs to a single space
    7. Fix punctuation spacing (no space before ,.;:!?)
    8. Fix bracket spacing (no space after opening, before closing)
    9. Optional ASCII-only folding (NFKD, drop non-ASCII)

Normalization is total: None and empty strings normalize to "".

Version Tracking:
    NORMALIZE_VERSION is included in object keys written by the CLI.
    Increment it when normalization output changes.

Example:
    >>> from ssml_tts.utils.text import normalize_text
    >>> normalize_text("  “Hello”  ,  world — again… ")
    '"Hello", world - again...'
"""
from __future__ import annotations

import re
import unicodedata
from typing import List, Optional

# Version string for downstream key invalidation
NORMALIZE_VERSION = "v1"

# JSON escape sequences that survive double-encoding by some clients
_JSON_ESCAPES = {
    '\\"': '"',
    "\\'": "'",
    "\\r\\n": "\n",
    "\\n": "\n",
    "\\r": "\n",
    "\\t": "\t",
}
_JSON_ESCAPE_RE = re.compile(r"\\r\\n|\\[\"'nrt]")

_CHAR_MAP = str.maketrans({
    # Single quotes
    "‘": "'", "’": "'", "‚": "'", "‛": "'", "′": "'",
    # Double quotes
    "“": '"', "”": '"', "„": '"', "‟": '"', "″": '"',
    "«": '"', "»": '"',
    # Dashes and minus signs
    "‐": "-", "‑": "-", "‒": "-", "–": "-", "—": "-",
    "―": "-", "−": "-", "﹘": "-", "﹣": "-", "－": "-",
    # Ellipsis
    "…": "...",
    # Spaces
    "\u00a0": " ", "\u2007": " ", "\u202f": " ", "\u3000": " ",
    # Zero-width characters and BOM
    "\u200b": None, "\u200c": None, "\u200d": None, "\u2060": None, "\ufeff": None,
})

_WS_RE = re.compile(r"\s+")

# "word ," -> "word,"
_SPACE_BEFORE_PUNCT = re.compile(r"\s+([,.;:!?])")

# "( word" -> "(word"
_SPACE_AFTER_OPEN = re.compile(r"([(\[{])\s+")

# "word )" -> "word)"
_SPACE_BEFORE_CLOSE = re.compile(r"\s+([)\]}])")

# Two or more newlines, optionally separated by horizontal whitespace
_PARAGRAPH_SPLIT = re.compile(r"\n[ \t\f\v]*\n\s*")


def unescape_json_sequences(text: str) -> str:
    """Replace literal backslash escapes (\\n, \\t, \\") with the characters they name."""
    return _JSON_ESCAPE_RE.sub(lambda m: _JSON_ESCAPES[m.group(0)], text)


def collapse_whitespace(text: Optional[str]) -> str:
    """Collapse every whitespace run to one space and strip the ends."""
    if not text:
        return ""
    return _WS_RE.sub(" ", text).strip()


def to_ascii(text: str) -> str:
    """Fold text to ASCII: canonical decomposition, then drop non-ASCII code points."""
    decomposed = unicodedata.normalize("NFKD", text)
    return decomposed.encode("ascii", "ignore").decode("ascii")


def normalize_text(text: Optional[str], ascii_only: bool = False) -> str:
    """
    Normalize text for SSML embedding.

    Args:
        text: Input text. None is treated as an empty string.
        ascii_only: Strip every non-ASCII code point after NFKD decomposition,
            for providers that mishandle extended characters.

    Returns:
        Normalized single-line text.

    Example:
        >>> normalize_text("Café – ( open ) !", ascii_only=True)
        'Cafe - (open)!'
    """
    if not text:
        return ""

    s = unescape_json_sequences(text)
    s = s.translate(_CHAR_MAP)
    s = _WS_RE.sub(" ", s)
    s = _SPACE_BEFORE_PUNCT.sub(r"\1", s)
    s = _SPACE_AFTER_OPEN.sub(r"\1", s)
    s = _SPACE_BEFORE_CLOSE.sub(r"\1", s)

    if ascii_only:
        s = to_ascii(s)
        # Folding can leave doubled spaces where a combining run was dropped
        s = _WS_RE.sub(" ", s)

    return s.strip()


def split_paragraphs(text: Optional[str]) -> List[str]:
    """
    Split raw text on blank-line boundaries.

    Escaped newlines and CRLF line endings are resolved first so that
    "\\n\\n" sent by a JSON client counts as a paragraph break. Blank
    paragraphs are dropped; paragraphs are returned unnormalized.
    """
    if not text:
        return []
    s = unescape_json_sequences(text).replace("\r\n", "\n").replace("\r", "\n")
    return [p for p in _PARAGRAPH_SPLIT.split(s) if p.strip()]
