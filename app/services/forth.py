import logging

import httpx

from app.exceptions.custom import ForthError, RateLimitError
from app.mappers.phone import last4
from app.schemas.forth import ForthCallPayload, ForthContact, ForthNotePayload
from app.services.token_manager import ForthTokenManager

logger = logging.getLogger(__name__)

SEARCH_BY_PHONE_PATH = "/v1/contacts/search_by_phone"
CALLS_PATH = "/v1/calls"
CONTACTS_PATH = "/v1/contacts"


def _raise_for_status(resp: httpx.Response) -> None:
    if resp.status_code == 429:
        raise RateLimitError("Forth")
    if resp.status_code >= 400:
        raise ForthError(resp.text, status_code=resp.status_code)


def _json_or_empty(resp: httpx.Response) -> dict:
    try:
        data = resp.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {"response": data}


class ForthService:
    def __init__(
        self,
        client: httpx.AsyncClient,
        tokens: ForthTokenManager,
        base_url: str = "https://api.forthcrm.com",
    ):
        self._client = client
        self._tokens = tokens
        self._base_url = base_url.rstrip("/")

    @staticmethod
    def _headers(token: str) -> dict[str, str]:
        return {"Api-Key": token, "Content-Type": "application/json"}

    async def search_contacts_by_phone(self, phone: str) -> list[ForthContact]:
        url = f"{self._base_url}{SEARCH_BY_PHONE_PATH}/{phone}"

        async def send(token: str) -> httpx.Response:
            return await self._client.get(url, headers=self._headers(token))

        resp = await self._tokens.with_auth(send)
        if resp.status_code == 404:
            logger.info("No Forth contact for phone_last4=%s", last4(phone))
            return []
        _raise_for_status(resp)

        results = _json_or_empty(resp).get("response") or []
        if not isinstance(results, list):
            results = [results]
        contacts = [
            ForthContact(**item)
            for item in results
            if isinstance(item, dict) and item.get("id") not in (None, "")
        ]
        logger.info(
            "Found %d Forth contacts for phone_last4=%s", len(contacts), last4(phone)
        )
        return contacts

    async def create_call(self, payload: ForthCallPayload) -> dict:
        url = f"{self._base_url}{CALLS_PATH}"
        body = payload.model_dump(exclude_none=True)

        async def send(token: str) -> httpx.Response:
            return await self._client.post(url, json=body, headers=self._headers(token))

        resp = await self._tokens.with_auth(send)
        _raise_for_status(resp)

        logger.info(
            "Created Forth call for contact %s (%s, disposition=%d)",
            payload.contactID, payload.call_type, payload.call_disposition,
        )
        return _json_or_empty(resp)

    async def create_note(self, contact_id: str, content: str, created_at: str) -> dict:
        url = f"{self._base_url}{CONTACTS_PATH}/{contact_id}/notes"
        body = ForthNotePayload(content=content, created_at=created_at).model_dump()

        async def send(token: str) -> httpx.Response:
            return await self._client.post(url, json=body, headers=self._headers(token))

        resp = await self._tokens.with_auth(send)
        _raise_for_status(resp)

        logger.info("Created Forth note for contact %s", contact_id)
        return _json_or_empty(resp)
