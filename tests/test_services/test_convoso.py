from unittest.mock import AsyncMock, call, patch

import httpx
import pytest
import respx
from httpx import Response

from app.services.convoso import ConvosoService

LOG_URL = "https://api.convoso.com/v1/log/retrieve"
PHONE = "4155550100"

ENTRY = {
    "id": 555,
    "call_type": "INBOUND",
    "agent_comment": "Customer asked about balance",
    "status_name": "Sale",
    "term_reason": "AGENT",
    "call_length": "75",
    "call_date": "2024-05-01 12:00:00",
}


@respx.mock
@pytest.mark.asyncio
async def test_found_on_first_attempt():
    route = respx.get(LOG_URL).mock(
        return_value=Response(200, json={"success": True, "data": {"results": [ENTRY, {"id": 1}]}})
    )

    async with httpx.AsyncClient() as client:
        service = ConvosoService(client, "tok")
        with patch("app.services.convoso.asyncio.sleep", new_callable=AsyncMock) as sleep:
            entry = await service.find_call_log(PHONE)

    assert entry.id == "555"
    assert entry.call_type == "INBOUND"
    assert entry.call_length == 75
    assert entry.attempt == 1
    sleep.assert_not_awaited()

    params = route.calls.last.request.url.params
    assert params["auth_token"] == "tok"
    assert params["phone_number"] == PHONE
    assert params["order"] == "desc"
    assert params["limit"] == "3"


@respx.mock
@pytest.mark.asyncio
async def test_found_on_third_attempt_after_backoff():
    route = respx.get(LOG_URL).mock(
        side_effect=[
            Response(200, json={"data": []}),
            Response(200, json={"data": []}),
            Response(200, json={"data": [ENTRY]}),
        ]
    )

    async with httpx.AsyncClient() as client:
        service = ConvosoService(client, "tok")
        with patch("app.services.convoso.asyncio.sleep", new_callable=AsyncMock) as sleep:
            entry = await service.find_call_log(PHONE)

    assert entry is not None
    assert entry.attempt == 3
    assert route.call_count == 3
    assert sleep.await_args_list == [call(3.0), call(5.0)]


@respx.mock
@pytest.mark.asyncio
async def test_no_match_after_three_attempts():
    route = respx.get(LOG_URL).mock(return_value=Response(200, json={"data": []}))

    async with httpx.AsyncClient() as client:
        service = ConvosoService(client, "tok")
        with patch("app.services.convoso.asyncio.sleep", new_callable=AsyncMock):
            entry = await service.find_call_log(PHONE)

    assert entry is None
    assert route.call_count == 3


@respx.mock
@pytest.mark.asyncio
async def test_errors_are_absorbed():
    route = respx.get(LOG_URL).mock(
        side_effect=[
            httpx.ReadTimeout("slow"),
            Response(500, text="server error"),
            Response(200, text="<html>not json</html>"),
        ]
    )

    async with httpx.AsyncClient() as client:
        service = ConvosoService(client, "tok")
        with patch("app.services.convoso.asyncio.sleep", new_callable=AsyncMock):
            entry = await service.find_call_log(PHONE)

    assert entry is None
    assert route.call_count == 3


@respx.mock
@pytest.mark.asyncio
async def test_connect_error_then_success():
    respx.get(LOG_URL).mock(
        side_effect=[httpx.ConnectError("refused"), Response(200, json=[ENTRY])]
    )

    async with httpx.AsyncClient() as client:
        service = ConvosoService(client, "tok")
        with patch("app.services.convoso.asyncio.sleep", new_callable=AsyncMock):
            entry = await service.find_call_log(PHONE)

    assert entry.id == "555"
    assert entry.attempt == 2


@respx.mock
@pytest.mark.asyncio
async def test_logs_envelope():
    respx.get(LOG_URL).mock(return_value=Response(200, json={"logs": [ENTRY]}))

    async with httpx.AsyncClient() as client:
        service = ConvosoService(client, "tok")
        entry = await service.find_call_log(PHONE)

    assert entry.status_name == "Sale"


@respx.mock
@pytest.mark.asyncio
async def test_skipped_without_token_or_phone():
    route = respx.get(LOG_URL).mock(return_value=Response(200, json={"data": [ENTRY]}))

    async with httpx.AsyncClient() as client:
        assert await ConvosoService(client, "  ").find_call_log(PHONE) is None
        assert await ConvosoService(client, "tok").find_call_log("") is None

    assert route.call_count == 0
