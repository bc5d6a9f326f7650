import asyncio
import logging
from datetime import datetime, timedelta

import httpx
from pydantic import ValidationError

from app.mappers.phone import last4
from app.schemas.convoso import ConvosoLogEntry

logger = logging.getLogger(__name__)

LOG_RETRIEVE_PATH = "/v1/log/retrieve"
RETRY_DELAYS = (0.0, 3.0, 5.0)  # seconds, before each attempt
REQUEST_TIMEOUT = 15.0  # seconds
LOOKBACK = timedelta(minutes=10)
LOOKAHEAD = timedelta(minutes=2)
RESULT_LIMIT = 3


def format_convoso_time(moment: datetime) -> str:
    return moment.strftime("%Y-%m-%d %H:%M:%S")


def _extract_results(data) -> list:
    """Convoso has answered with several envelope shapes over time."""
    if isinstance(data, list):
        return data
    if not isinstance(data, dict):
        return []
    inner = data.get("data")
    if isinstance(inner, list):
        return inner
    if isinstance(inner, dict) and isinstance(inner.get("results"), list):
        return inner["results"]
    if isinstance(data.get("logs"), list):
        return data["logs"]
    return []


class ConvosoService:
    def __init__(
        self,
        client: httpx.AsyncClient,
        auth_token: str,
        api_base: str = "https://api.convoso.com",
        retry_delays: tuple[float, ...] = RETRY_DELAYS,
        timeout: float = REQUEST_TIMEOUT,
    ):
        self._client = client
        self._auth_token = auth_token.strip()
        self._url = f"{api_base.rstrip('/')}{LOG_RETRIEVE_PATH}"
        self._retry_delays = retry_delays
        self._timeout = timeout

    @property
    def enabled(self) -> bool:
        return bool(self._auth_token)

    async def find_call_log(self, phone: str) -> ConvosoLogEntry | None:
        """Poll Convoso's call log for the newest entry for ``phone``.

        The log lags behind the webhook, so empty answers are retried with
        backoff. Any failure counts as "no match"; this never raises.
        """
        if not self.enabled:
            logger.info("Call log enrichment skipped: no Convoso auth token")
            return None
        if not phone:
            return None

        attempts = len(self._retry_delays)
        for attempt, delay in enumerate(self._retry_delays, start=1):
            if delay:
                await asyncio.sleep(delay)
            entries = await self._fetch(phone)
            if entries:
                entry = entries[0].model_copy(update={"attempt": attempt})
                logger.info(
                    "Call log found for phone_last4=%s on attempt %d/%d (log_id=%s)",
                    last4(phone), attempt, attempts, entry.id,
                )
                return entry
            logger.info(
                "No call log yet for phone_last4=%s (attempt %d/%d)",
                last4(phone), attempt, attempts,
            )

        logger.warning(
            "No call log for phone_last4=%s after %d attempts", last4(phone), attempts
        )
        return None

    async def _fetch(self, phone: str) -> list[ConvosoLogEntry]:
        now = datetime.now()
        params = {
            "auth_token": self._auth_token,
            "phone_number": phone,
            "start_time": format_convoso_time(now - LOOKBACK),
            "end_time": format_convoso_time(now + LOOKAHEAD),
            "order": "desc",
            "limit": str(RESULT_LIMIT),
            "include_recordings": "0",
        }
        try:
            resp = await self._client.get(self._url, params=params, timeout=self._timeout)
        except httpx.TimeoutException:
            logger.warning("Call log fetch timed out after %.0fs", self._timeout)
            return []
        except httpx.HTTPError as exc:
            logger.warning("Call log fetch failed: %s: %s", type(exc).__name__, exc)
            return []

        if resp.status_code >= 400:
            logger.warning("Call log fetch failed: HTTP %d", resp.status_code)
            return []

        try:
            results = _extract_results(resp.json())
            return [ConvosoLogEntry(**item) for item in results if isinstance(item, dict)]
        except (ValueError, ValidationError) as exc:
            logger.warning("Call log response malformed: %s", exc)
            return []
