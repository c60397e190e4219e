"""
JSON Body Dependency.

Request bodies are read raw and parsed here instead of by FastAPI so that
almost-JSON from copy-paste clients can be repaired (see
utils/json_repair.py) when http.tolerant_json is enabled.

A body that still does not parse raises JsonBodyError, which main.py turns
into a 400 response carrying the failure position and the text around it.
"""
from __future__ import annotations

from typing import Any

from fastapi import Depends, Request

from ssml_tts.api.dependencies import get_config
from ssml_tts.core.config import ServiceConfig
from ssml_tts.core.logging import get_logger, verbose, warn
from ssml_tts.utils.json_repair import JsonBodyError, parse_json_body

_LOG = get_logger("ssml-tts.api")


async def json_body(request: Request, config: ServiceConfig = Depends(get_config)) -> Any:
    raw = await request.body()
    if not raw.strip():
        raise JsonBodyError("Empty request body", 0, "")
    try:
        data = parse_json_body(raw, tolerant=config.http.tolerant_json)
    except JsonBodyError as e:
        warn(
            _LOG, "json_parse_error",
            position=e.position,
            problem_area=e.problem_area,
            raw=raw[:200].decode("utf-8", "replace"),
        )
        raise
    verbose(_LOG, "json_body", bytes=len(raw))
    return data
