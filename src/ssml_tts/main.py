"""
FastAPI Application Entry Point.

Creates the ssml-tts application: logging, request-id middleware, error
handlers and the routes in api/routes.py.

Usage:
    # Run with uvicorn
    uvicorn ssml_tts.main:app --host 0.0.0.0 --port 8000

    # Or use the module directly
    python -m uvicorn ssml_tts.main:app --reload
"""

from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from ssml_tts import __version__
from ssml_tts.api.routes import new_request_id, router
from ssml_tts.core.logging import configure_logging, get_logger, set_request_id, verbose, warn
from ssml_tts.services.errors import ServiceError
from ssml_tts.utils.json_repair import JsonBodyError
from ssml_tts.utils.timeit import timeit

_LOG = get_logger("ssml-tts.http")


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    This factory function:
        1. Configures structured logging (SSML_TTS_LOG_LEVEL etc.)
        2. Creates a FastAPI instance with the service title
        3. Tags every request with a 12-char X-Request-Id
        4. Maps body and service errors to JSON responses
        5. Registers the TTS router
    """
    configure_logging()

    app = FastAPI(title="ssml-tts", version=__version__)

    @app.middleware("http")
    async def request_id_middleware(request: Request, call_next):
        rid = request.headers.get("x-request-id") or new_request_id()
        request.state.request_id = rid
        set_request_id(rid)
        with timeit("request") as t:
            response = await call_next(request)
        response.headers["X-Request-Id"] = rid
        verbose(
            _LOG, "request",
            method=request.method,
            path=request.url.path,
            status=response.status_code,
            seconds=round(t.seconds, 4),
        )
        return response

    @app.exception_handler(JsonBodyError)
    async def json_body_error_handler(request: Request, exc: JsonBodyError):
        content = exc.to_dict()
        content["request_id"] = getattr(request.state, "request_id", None)
        return JSONResponse(status_code=400, content=content)

    @app.exception_handler(ServiceError)
    async def service_error_handler(request: Request, exc: ServiceError):
        warn(_LOG, "service_error", code=exc.code, error=exc.message)
        content = exc.to_dict()
        content["request_id"] = getattr(request.state, "request_id", None)
        return JSONResponse(status_code=exc.http_status, content=content)

    app.include_router(router)

    return app


# Global application instance for ASGI servers (uvicorn, gunicorn, etc.)
app = create_app()
