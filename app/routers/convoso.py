import logging
from collections.abc import Awaitable, Callable

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from app.dependencies import ForwardingDep, SharedSecretDep
from app.exceptions.custom import ForthError, InvalidPayloadError, RateLimitError
from app.mappers.payload import decode_body, normalize_payload
from app.schemas.convoso import CanonicalEvent
from app.schemas.responses import WebhookResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/convoso", dependencies=[SharedSecretDep])

Handler = Callable[[CanonicalEvent], Awaitable[WebhookResponse]]

# Left to the exception handlers registered in app.main
_REPORTED_ERRORS = (ForthError, InvalidPayloadError, RateLimitError)


async def _forward(route: str, request: Request, handler: Handler) -> JSONResponse:
    try:
        body = decode_body(await request.body(), request.headers.get("content-type", ""))
        event = normalize_payload(body)
        result = await handler(event)
    except _REPORTED_ERRORS:
        raise
    except Exception as exc:
        logger.exception("[%s] unexpected failure", route)
        return JSONResponse(status_code=500, content={"ok": False, "error": str(exc)})
    return JSONResponse(content=result.model_dump(exclude_none=True))


@router.post("/call-completed", response_model=WebhookResponse)
async def call_completed(request: Request, service: ForwardingDep) -> JSONResponse:
    return await _forward("call-completed", request, service.handle_call_completed)


@router.post("/disposition", response_model=WebhookResponse)
async def disposition(request: Request, service: ForwardingDep) -> JSONResponse:
    return await _forward("disposition", request, service.handle_disposition)


@router.post("/disposition-set", response_model=WebhookResponse)
async def disposition_set(request: Request, service: ForwardingDep) -> JSONResponse:
    return await _forward("disposition-set", request, service.handle_disposition_set)
