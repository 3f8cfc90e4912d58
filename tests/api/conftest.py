"""Fixtures for API tests."""

from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from championship.config import Settings
from championship.main import create_app


def get_test_settings() -> Settings:
    """Get test-specific settings."""
    return Settings(
        app_env="test",
        app_debug=False,
        log_level="WARNING",
        database_url="sqlite+aiosqlite:///:memory:",
        penalty_preview_max_rebuys=5,
    )


@pytest.fixture
def app(session_factory, event_bus) -> FastAPI:
    return create_app(
        settings=get_test_settings(),
        session_factory=session_factory,
        event_bus=event_bus,
    )


@pytest_asyncio.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
    await app.state.timer.shutdown()
