import httpx
import pytest
from httpx import ASGITransport


@pytest.fixture
def mock_env(monkeypatch):
    monkeypatch.setenv("FORTH_API_KEY", "test-forth-key")
    monkeypatch.setenv("FORTH_CLIENT_ID", "")
    monkeypatch.setenv("FORTH_CLIENT_SECRET", "")
    monkeypatch.setenv("CONVOSO_AUTH_TOKEN", "test-convoso-token")
    monkeypatch.setenv("SHARED_SECRET", "s3cret")


@pytest.fixture
async def client(mock_env):
    from app.main import app, lifespan

    async with lifespan(app):
        async with httpx.AsyncClient(
            transport=ASGITransport(app=app),
            base_url="http://test",
            headers={"X-Shared-Secret": "s3cret"},
        ) as c:
            yield c
