"""
Lenient JSON Request Bodies.

Clients pasting text from word processors or low-code tools often send
almost-JSON: smart quotes, raw newlines inside strings, trailing commas,
unquoted keys. parse_json_body() tries strict JSON first and, when
tolerant, retries once on a repaired copy:

    - Strip a byte order mark and surrounding Unicode whitespace
    - Smart quotes to ASCII quotes
    - Raw newlines and tabs to spaces
    - Remove trailing commas before } and ]
    - Quote bare object keys

The repair is textual and can touch string contents that look like keys
("a, b: c"), which is why strict parsing always runs first.

Example:
    >>> parse_json_body("{text: \\u201cHello\\u201d,}")
    {'text': 'Hello'}
"""
from __future__ import annotations

import json
import re
from typing import Any, Union

# Characters around the failure position included in error reports
PROBLEM_AREA_RADIUS = 20

_EDGE_WS = re.compile(r"^[\s\ufeff\xa0]+|[\s\ufeff\xa0]+$")
_SMART_SINGLE = re.compile(r"[\u2018\u2019]")
_SMART_DOUBLE = re.compile(r"[\u201c\u201d]")
_LINE_BREAKS = re.compile(r"\r?\n|\t")
_TRAILING_COMMA = re.compile(r",\s*([}\]])")
_BARE_KEY = re.compile(r"([{,])(\s*)([A-Za-z0-9_\-]+?)\s*:")


class JsonBodyError(ValueError):
    """
    Raised when a request body cannot be parsed.

    Attributes:
        message: Parser message.
        position: Character offset of the failure.
        problem_area: Text around the failure position.
    """

    def __init__(self, message: str, position: int = 0, problem_area: str = ""):
        self.message = message
        self.position = position
        self.problem_area = problem_area
        super().__init__(message)

    def to_dict(self) -> dict:
        return {
            "ok": False,
            "error": "INVALID_INPUT",
            "message": "Invalid JSON format",
            "position": self.position,
            "problemArea": self.problem_area,
            "solution": "Check for unclosed quotes, brackets, or trailing commas",
        }


def repair_json_text(text: str) -> str:
    """Apply the textual repairs listed in the module docstring."""
    text = _EDGE_WS.sub("", text)
    text = _SMART_SINGLE.sub("'", text)
    text = _SMART_DOUBLE.sub('"', text)
    text = _LINE_BREAKS.sub(" ", text)
    text = _TRAILING_COMMA.sub(r"\1", text)
    return _BARE_KEY.sub(r'\1"\3":', text)


def problem_area(text: str, position: int) -> str:
    return text[max(0, position - PROBLEM_AREA_RADIUS):position + PROBLEM_AREA_RADIUS]


def parse_json_body(raw: Union[str, bytes], tolerant: bool = True) -> Any:
    """
    Parse a request body, optionally repairing common mistakes.

    Args:
        raw: Body as text or UTF-8 bytes.
        tolerant: Retry through repair_json_text() when strict parsing fails.

    Raises:
        JsonBodyError: If the body is not valid (or repairable) JSON.
    """
    if isinstance(raw, bytes):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise JsonBodyError(f"Body is not UTF-8: {e}", position=e.start) from e

    text = raw.lstrip("\ufeff")
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        if not tolerant:
            raise JsonBodyError(e.msg, e.pos, problem_area(text, e.pos)) from e

    repaired = repair_json_text(text)
    try:
        return json.loads(repaired)
    except json.JSONDecodeError as e:
        raise JsonBodyError(e.msg, e.pos, problem_area(repaired, e.pos)) from e
