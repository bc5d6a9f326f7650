import asyncio
import contextlib
import logging
import sys
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI

from app.config import Settings
from app.dedup import DispositionDedupGate
from app.exceptions.custom import (
    ForthAuthError,
    ForthError,
    InvalidPayloadError,
    RateLimitError,
    UnauthorizedError,
)
from app.exceptions.handlers import (
    forth_auth_error_handler,
    forth_error_handler,
    invalid_payload_error_handler,
    rate_limit_error_handler,
    unauthorized_error_handler,
)
from app.routers.convoso import router as convoso_router
from app.routers.health import router as health_router
from app.services.convoso import ConvosoService
from app.services.forth import ForthService
from app.services.forwarding import ForwardingService
from app.services.token_manager import ForthTokenManager

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = Settings()

    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stdout,
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)

    async with httpx.AsyncClient(timeout=30.0) as client:
        tokens = ForthTokenManager(
            client,
            settings.forth_base_url,
            client_id=settings.forth_client_id,
            client_secret=settings.forth_client_secret,
            fallback_token=settings.forth_api_key,
        )
        forth = ForthService(client, tokens, settings.forth_base_url)

        if not settings.convoso_auth_token:
            logger.warning("CONVOSO_AUTH_TOKEN not set, call log enrichment disabled")
        convoso = ConvosoService(
            client, settings.convoso_auth_token, settings.convoso_api_base
        )

        app.state.settings = settings
        app.state.token_manager = tokens
        app.state.forwarding_service = ForwardingService(
            forth, convoso, DispositionDedupGate()
        )

        refresher: asyncio.Task | None = None
        if tokens.can_refresh and settings.forth_token_auto_refresh:
            refresher = asyncio.create_task(tokens.run_periodic_refresh())

        try:
            yield
        finally:
            if refresher is not None:
                refresher.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await refresher


app = FastAPI(title="Convoso Forth Bridge", lifespan=lifespan)

app.add_exception_handler(ForthAuthError, forth_auth_error_handler)
app.add_exception_handler(ForthError, forth_error_handler)
app.add_exception_handler(RateLimitError, rate_limit_error_handler)
app.add_exception_handler(InvalidPayloadError, invalid_payload_error_handler)
app.add_exception_handler(UnauthorizedError, unauthorized_error_handler)

app.include_router(health_router)
app.include_router(convoso_router)
