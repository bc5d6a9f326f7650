import logging

from fastapi import Request
from fastapi.responses import JSONResponse

from .custom import (
    ForthAuthError,
    ForthError,
    InvalidPayloadError,
    RateLimitError,
    UnauthorizedError,
)

logger = logging.getLogger(__name__)


async def forth_error_handler(_request: Request, exc: ForthError) -> JSONResponse:
    logger.error("Forth error: %s (status=%s)", exc.message, exc.status_code)
    return JSONResponse(
        status_code=502,
        content={"ok": False, "error": f"Forth error: {exc.message}"},
    )


async def forth_auth_error_handler(_request: Request, exc: ForthAuthError) -> JSONResponse:
    logger.error("Forth auth error: %s (status=%s)", exc.message, exc.status_code)
    return JSONResponse(
        status_code=502,
        content={"ok": False, "error": f"Forth auth error: {exc.message}"},
    )


async def rate_limit_error_handler(_request: Request, exc: RateLimitError) -> JSONResponse:
    logger.warning("Rate limit hit for %s", exc.service)
    return JSONResponse(
        status_code=429,
        content={"ok": False, "error": f"Rate limit exceeded for {exc.service}"},
    )


async def invalid_payload_error_handler(
    _request: Request, exc: InvalidPayloadError
) -> JSONResponse:
    logger.info("Rejected webhook payload: %s", exc.message)
    return JSONResponse(status_code=400, content={"ok": False, "error": exc.message})


async def unauthorized_error_handler(
    _request: Request, exc: UnauthorizedError
) -> JSONResponse:
    logger.warning("Rejected webhook: %s", exc.message)
    return JSONResponse(status_code=401, content={"ok": False, "error": exc.message})
