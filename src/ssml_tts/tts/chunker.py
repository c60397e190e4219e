"""
Text-to-SSML Chunking for Speech Synthesis.

Synthesis APIs cap the size of a single SSML request, so long input text is
split into ordered, size-bounded segments before it is sent:

    - Paragraphs (blank-line separated) are kept together when they fit
    - Otherwise paragraphs are split into sentences (. ! ? + whitespace)
    - A sentence longer than the budget is hard-sliced into fixed-width pieces
    - Paragraphs sharing a segment are joined with a short <break> pause

Every segment is wrapped in its own <speak> envelope. The budget applies to
the envelope's inner content, so an input of exactly max_len characters is a
single segment. Hard slices keep a margin below max_len so the whole SSML
string of a slice still fits providers that count the envelope.

The chunker never raises for string input and never drops text.

Example:
    >>> from ssml_tts.tts.chunker import chunk_text
    >>> segments = chunk_text("Hello there. This is a much longer sentence that will not fit.", max_len=20)
    >>> segments[0].ssml
    '<speak>Hello there.</speak>'
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, List

from ssml_tts.core.logging import get_logger, verbose
from ssml_tts.utils.ssml import SPEAK_CLOSE, SPEAK_OPEN, escape_text, pause_marker
from ssml_tts.utils.text import normalize_text, split_paragraphs
from ssml_tts.utils.timeit import timeit

_LOG = get_logger("ssml-tts.chunker")

DEFAULT_MAX_LEN = 3000
MIN_MAX_LEN = 20
DEFAULT_PAUSE_MS = 600

# Room left below max_len when hard-slicing, for the <speak> envelope
HARD_SLICE_MARGIN = 50

# Sentence boundary: terminal punctuation followed by whitespace
_SENT_SPLIT = re.compile(r"(?<=[.!?])\s+")

# Unterminated XML entity at the end of a slice ("&am")
_OPEN_ENTITY = re.compile(r"&[#a-zA-Z0-9]*$")


@dataclass(frozen=True)
class TextSegment:
    """
    One SSML-wrapped chunk of the input text.

    Attributes:
        index: Zero-based position in the output sequence.
        ssml: The segment, wrapped in <speak>...</speak>.
    """
    index: int
    ssml: str

    @property
    def approximate_byte_size(self) -> int:
        """UTF-8 size of the SSML string (reporting only)."""
        return len(self.ssml.encode("utf-8"))

    def to_dict(self) -> Dict[str, object]:
        return {"index": self.index, "ssml": self.ssml}


def effective_max_len(max_len: int) -> int:
    """Clamp a caller-supplied budget to the supported floor."""
    return max(MIN_MAX_LEN, int(max_len))


def hard_slice_width(max_len: int) -> int:
    """Width of hard-sliced pieces for a given budget."""
    return max_len - min(HARD_SLICE_MARGIN, max_len // 4)


def chunk_text(
    text: str,
    max_len: int = DEFAULT_MAX_LEN,
    *,
    ascii_only: bool = False,
    pause_ms: int = DEFAULT_PAUSE_MS,
) -> List[TextSegment]:
    """
    Split text into ordered SSML segments within a character budget.

    Strategy:
        1. Split into paragraphs at blank lines, normalize each one
        2. Append whole paragraphs to the buffer while they fit
        3. Otherwise append sentence by sentence, flushing when full
        4. Hard-slice any sentence longer than max_len on its own
        5. Flush the remaining buffer

    Args:
        text: Raw input text. Empty or whitespace-only text yields [].
        max_len: Maximum characters inside each <speak> envelope
            (default 3000, floor MIN_MAX_LEN).
        ascii_only: Fold normalized text to ASCII.
        pause_ms: Duration of the pause inserted between paragraphs.

    Returns:
        List of TextSegment in input order, indexed from 0.
    """
    requested = max_len
    max_len = effective_max_len(max_len)
    if max_len != requested:
        verbose(_LOG, "max_len_clamped", requested=requested, used=max_len)

    with timeit("chunk") as t:
        builder = _SegmentBuilder(max_len, pause_marker(pause_ms))
        for raw in split_paragraphs(text):
            paragraph = escape_text(normalize_text(raw, ascii_only=ascii_only))
            if paragraph:
                builder.add_paragraph(paragraph)
        segments = builder.finish()

    verbose(
        _LOG, "chunked",
        segments=len(segments),
        max_len=max_len,
        chars_in=len(text or ""),
        seconds=round(t.seconds, 4),
    )
    return segments


class _SegmentBuilder:
    """Greedy accumulator that turns paragraphs into wrapped segments."""

    def __init__(self, max_len: int, pause: str):
        self._max_len = max_len
        self._pause_sep = f" {pause} "
        self._width = hard_slice_width(max_len)
        self._buf = ""
        self._paragraph_pending = False
        self._out: List[str] = []

    def add_paragraph(self, paragraph: str) -> None:
        if not self._try_append(paragraph):
            for sentence in _SENT_SPLIT.split(paragraph):
                if sentence:
                    self._add_sentence(sentence)
        self._paragraph_pending = True

    def finish(self) -> List[TextSegment]:
        self._flush()
        return [TextSegment(index=i, ssml=s) for i, s in enumerate(self._out)]

    def _add_sentence(self, sentence: str) -> None:
        if self._try_append(sentence):
            return
        self._flush()
        if len(sentence) > self._max_len:
            self._out.extend(
                f"{SPEAK_OPEN}{piece}{SPEAK_CLOSE}"
                for piece in _hard_slice(sentence, self._width)
            )
        else:
            self._buf = sentence

    def _try_append(self, piece: str) -> bool:
        if not self._buf:
            if len(piece) <= self._max_len:
                self._buf = piece
                self._paragraph_pending = False
                return True
            return False

        if self._paragraph_pending:
            candidate = self._buf + self._pause_sep + piece
            if len(candidate) <= self._max_len:
                self._buf = candidate
                self._paragraph_pending = False
                return True

        candidate = self._buf + " " + piece
        if len(candidate) <= self._max_len:
            self._buf = candidate
            self._paragraph_pending = False
            return True
        return False

    def _flush(self) -> None:
        if self._buf:
            self._out.append(f"{SPEAK_OPEN}{self._buf}{SPEAK_CLOSE}")
        self._buf = ""
        self._paragraph_pending = False


def _hard_slice(sentence: str, width: int) -> List[str]:
    """
    Cut a sentence into consecutive pieces of at most `width` characters.

    A cut that would split an XML entity is moved back to the entity's
    ampersand. Joining the pieces reproduces the sentence exactly.
    """
    pieces: List[str] = []
    i = 0
    while i < len(sentence):
        end = min(i + width, len(sentence))
        if end < len(sentence):
            m = _OPEN_ENTITY.search(sentence, i, end)
            if m and m.start() > i:
                end = m.start()
        pieces.append(sentence[i:end])
        i = end
    return pieces
