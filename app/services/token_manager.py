import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime, timedelta, timezone
from enum import StrEnum

import httpx

from app.exceptions.custom import ForthAuthError

logger = logging.getLogger(__name__)

AUTH_PATH = "/v1/auth/token"
SAFETY_BUFFER = timedelta(hours=6)
MAX_TOKEN_TTL = timedelta(days=9)
REFRESH_INTERVAL = timedelta(days=9)
REJECTED_STATUSES = {401, 403}

TOKEN_KEYS = ("api_key", "access_token", "token")


class TokenState(StrEnum):
    VALID = "valid"
    EXPIRING = "expiring"
    REFRESHING = "refreshing"
    REJECTED = "rejected"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse_token_response(data: dict) -> tuple[str | None, int | None]:
    body = data.get("response") if isinstance(data.get("response"), dict) else data
    token = next((body[k] for k in TOKEN_KEYS if body.get(k)), None)
    ttl = body.get("expires_in")
    try:
        ttl = int(ttl) if ttl is not None else None
    except (TypeError, ValueError, OverflowError):
        ttl = None
    return token, ttl


class ForthTokenManager:
    """Owns the Forth API key: caches it, refreshes it, retries on rejection.

    Concurrent callers that find no usable token share one refresh request.
    Without client credentials the static key is used as-is.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        base_url: str,
        client_id: str = "",
        client_secret: str = "",
        fallback_token: str = "",
        clock: Callable[[], datetime] = _utcnow,
    ):
        self._client = client
        self._auth_url = f"{base_url.rstrip('/')}{AUTH_PATH}"
        self._client_id = client_id
        self._client_secret = client_secret
        self._fallback_token = fallback_token
        self._clock = clock

        self._token: str | None = None
        self._expires_at: datetime | None = None
        self._inflight: asyncio.Task | None = None
        self._rejected = False

        if fallback_token:
            self._token = fallback_token
            self._expires_at = clock() + MAX_TOKEN_TTL

    @property
    def can_refresh(self) -> bool:
        return bool(self._client_id and self._client_secret)

    @property
    def token(self) -> str | None:
        return self._token

    @property
    def expires_at(self) -> datetime | None:
        return self._expires_at

    @property
    def state(self) -> TokenState:
        if self._inflight is not None and not self._inflight.done():
            return TokenState.REFRESHING
        if self._rejected:
            return TokenState.REJECTED
        if self._is_fresh():
            return TokenState.VALID
        return TokenState.EXPIRING

    def _is_fresh(self) -> bool:
        if not self._token or self._expires_at is None:
            return False
        return self._expires_at - SAFETY_BUFFER > self._clock()

    async def acquire(self) -> str:
        if not self.can_refresh:
            return self._fallback_token
        if self._is_fresh():
            return self._token
        return await self.refresh()

    async def refresh(self) -> str:
        """Join the running refresh or start one."""
        if self._inflight is None or self._inflight.done():
            task = asyncio.ensure_future(self._request_token())
            task.add_done_callback(self._clear_inflight)
            self._inflight = task
        return await asyncio.shield(self._inflight)

    def _clear_inflight(self, task: asyncio.Task) -> None:
        if self._inflight is task:
            self._inflight = None

    async def _request_token(self) -> str:
        if not self.can_refresh:
            raise ForthAuthError("Forth client credentials are not configured")

        logger.info("Refreshing Forth API key")
        try:
            resp = await self._client.post(
                self._auth_url,
                json={"client_id": self._client_id, "client_secret": self._client_secret},
            )
        except httpx.HTTPError as exc:
            logger.error("Forth token refresh failed: %s", exc)
            raise ForthAuthError(f"Token refresh failed: {type(exc).__name__}") from exc

        if resp.status_code >= 400:
            logger.error("Forth token refresh rejected (status=%d)", resp.status_code)
            raise ForthAuthError(resp.text, status_code=resp.status_code)

        try:
            data = resp.json()
        except ValueError as exc:
            raise ForthAuthError("Token refresh returned invalid JSON") from exc
        token, ttl = _parse_token_response(data if isinstance(data, dict) else {})
        if not token:
            raise ForthAuthError("Token refresh response carried no token")

        lifetime = MAX_TOKEN_TTL
        if ttl is not None and ttl > 0:
            lifetime = timedelta(seconds=min(ttl, int(MAX_TOKEN_TTL.total_seconds())))

        self._token = token
        self._expires_at = self._clock() + lifetime
        self._rejected = False
        logger.info("Forth API key refreshed, expires at %s", self._expires_at.isoformat())
        return token

    def invalidate(self) -> None:
        self._token = None
        self._expires_at = None
        self._rejected = True

    async def with_auth(
        self, send: Callable[[str], Awaitable[httpx.Response]]
    ) -> httpx.Response:
        """Run ``send`` with the current key; on 401/403 refresh once and retry once."""
        resp = await send(await self.acquire())
        if resp.status_code not in REJECTED_STATUSES:
            return resp

        logger.warning("Forth rejected API key (status=%d), refreshing", resp.status_code)
        if not self.can_refresh:
            raise ForthAuthError(
                "Forth rejected the static API key and no client credentials are configured",
                status_code=resp.status_code,
            )

        self.invalidate()
        token = await self.refresh()
        resp = await send(token)
        if resp.status_code in REJECTED_STATUSES:
            self._rejected = True
            raise ForthAuthError(
                "Forth rejected the refreshed API key", status_code=resp.status_code
            )
        return resp

    async def run_periodic_refresh(self, interval: timedelta = REFRESH_INTERVAL) -> None:
        """Refresh on a fixed schedule until cancelled. Failures are only logged."""
        while True:
            await asyncio.sleep(interval.total_seconds())
            try:
                await self.refresh()
            except ForthAuthError as exc:
                logger.error("Scheduled Forth token refresh failed: %s", exc.message)
            except Exception:
                logger.exception("Scheduled Forth token refresh failed unexpectedly")
