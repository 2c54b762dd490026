"""Error taxonomy and the FastAPI handlers that render it."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class PulseDashError(Exception):
    """Base class for errors surfaced to API callers as {"error": message}."""

    status_code: int = 500


class UpstreamUnavailable(PulseDashError):
    """Network failure, timeout, missing credentials or non-2xx from a third-party API."""

    status_code = 500


class MalformedResponse(PulseDashError):
    """Upstream answered, but not with the JSON shape we expected."""

    status_code = 500


class NotFound(PulseDashError):
    """Upstream confirms the requested city or instrument does not exist."""

    status_code = 404


class InvalidRequest(PulseDashError):
    """A required client parameter is missing or unusable."""

    status_code = 400


class ConnectionExhausted(PulseDashError):
    """The price stream gave up reconnecting. Never raised to HTTP callers."""

    status_code = 503


def _error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code)


def install_error_handlers(app: FastAPI) -> None:
    """Render every failure as {"error": message} with an appropriate status."""

    @app.exception_handler(PulseDashError)
    async def _handle_pulsedash_error(request: Request, exc: PulseDashError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc)
        return _error_response(exc.status_code, str(exc))

    @app.exception_handler(RequestValidationError)
    async def _handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        details = "; ".join(
            f"{'.'.join(str(part) for part in err.get('loc', ()))}: {err.get('msg', 'invalid')}"
            for err in exc.errors()
        )
        return _error_response(400, details or "Invalid request")

    @app.exception_handler(Exception)
    async def _handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error for %s %s", request.method, request.url.path)
        return _error_response(500, str(exc) or "Internal server error")
