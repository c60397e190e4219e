"""
SSML Envelope Helpers.

Small, pure helpers for the top-level <speak> envelope required by
SSML-consuming synthesis APIs:

    - wrap_as_speech(): idempotently wrap text in one <speak> envelope
    - strip_speech_envelope(): remove exactly one envelope
    - convert_to_plain_text(): lossy SSML -> plain text for logging/merging
    - escape_text(): XML-escape plain text before embedding it in SSML
    - pause_marker(): <break> element for inter-paragraph pauses

Example:
    >>> wrap_as_speech("hello   world")
    '<speak>hello world</speak>'
    >>> wrap_as_speech(wrap_as_speech("hello"))
    '<speak>hello</speak>'
    >>> convert_to_plain_text('<speak>Call <say-as interpret-as="telephone">555 01 23</say-as>.</speak>')
    'Call 5550123.'
"""
from __future__ import annotations

import html
import re
from typing import Optional
from xml.sax.saxutils import escape

from ssml_tts.utils.text import collapse_whitespace, normalize_text

SPEAK_OPEN = "<speak>"
SPEAK_CLOSE = "</speak>"

_LEADING_SPEAK = re.compile(r"^\s*<speak(?:\s[^>]*)?>", re.IGNORECASE)
_TRAILING_SPEAK = re.compile(r"</speak>\s*$", re.IGNORECASE)
_SAY_AS = re.compile(r"(<say-as\b[^>]*>)(.*?)(</say-as>)", re.IGNORECASE | re.DOTALL)
_BREAK = re.compile(r"<break\b[^>]*/?>", re.IGNORECASE)
_ANY_TAG = re.compile(r"<[^>]+>")
_WS_RE = re.compile(r"\s+")


def is_ssml(text: Optional[str]) -> bool:
    """Return True if the text opens with a top-level <speak> tag."""
    return bool(text) and _LEADING_SPEAK.match(text) is not None


def wrap_as_speech(text: Optional[str]) -> str:
    """
    Wrap text in a single <speak> envelope.

    Text that already opens with a <speak ...> tag is returned with its
    whitespace collapsed and nothing else changed, so wrapping twice is the
    same as wrapping once. Plain text is normalized and XML-escaped first.
    """
    body = collapse_whitespace(text)
    if is_ssml(body):
        return body
    return f"{SPEAK_OPEN}{escape_text(normalize_text(body))}{SPEAK_CLOSE}"


def strip_speech_envelope(text: Optional[str]) -> str:
    """Remove one leading <speak ...> and one trailing </speak>, if present."""
    if not text:
        return ""
    if not is_ssml(text):
        return text
    inner = _LEADING_SPEAK.sub("", text, count=1)
    return _TRAILING_SPEAK.sub("", inner, count=1)


def convert_to_plain_text(ssml: Optional[str]) -> str:
    """
    Reduce SSML to readable plain text.

    Whitespace inside <say-as> is dropped so digit groups stay together,
    <break/> becomes a space, every other tag is removed and entities are
    unescaped. This is one-way: the result is not meant to be re-wrapped
    as equivalent SSML.
    """
    s = strip_speech_envelope(ssml)
    s = _SAY_AS.sub(lambda m: _WS_RE.sub("", m.group(2)), s)
    s = _BREAK.sub(" ", s)
    s = _ANY_TAG.sub("", s)
    return collapse_whitespace(html.unescape(s))


def escape_text(text: str) -> str:
    """Escape &, < and > for embedding plain text in SSML."""
    return escape(text)


def pause_marker(ms: int) -> str:
    """Return an SSML break element of the given duration."""
    return f'<break time="{int(ms)}ms"/>'
