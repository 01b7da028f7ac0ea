"""Pytest configuration and fixtures."""

import pytest
from typing import AsyncGenerator
from aiohttp import web
from aiohttp.test_utils import TestServer
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import NullPool

from uptime_engine.config import AlertsConfig, EngineConfig
from uptime_engine.database.base import Base
from uptime_engine.database.store import MonitorStore
from uptime_engine.models.alert_channel import AlertChannel
from uptime_engine.models.monitor import Monitor
from uptime_engine.schemas.monitor import MonitorSnapshot


@pytest.fixture
async def db_engine(tmp_path):
    """Create a fresh file database per test, one connection per session."""
    import uptime_engine.models  # noqa: F401

    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        poolclass=NullPool,
        echo=False
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_maker(db_engine):
    """Create session maker for tests."""
    return async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False
    )


@pytest.fixture
async def db_session(session_maker) -> AsyncGenerator[AsyncSession, None]:
    """Create test database session."""
    async with session_maker() as session:
        yield session


@pytest.fixture
def store(session_maker) -> MonitorStore:
    """Store backed by the test database."""
    return MonitorStore(session_maker)


@pytest.fixture
def engine_config() -> EngineConfig:
    """Engine configuration with a short default timeout."""
    return EngineConfig(default_timeout_ms=2000, group_stagger_seconds=0.0)


@pytest.fixture
async def sample_monitor(db_session: AsyncSession) -> Monitor:
    """Create sample monitor for testing."""
    monitor = Monitor(
        user_id=1,
        name="Test Monitor",
        url="https://example.com/health",
        method="GET",
        expected_status=200,
        check_interval_seconds=60,
        timeout_ms=5000,
        is_active=True
    )

    db_session.add(monitor)
    await db_session.commit()
    await db_session.refresh(monitor)

    return monitor


@pytest.fixture
def monitor_snapshot(sample_monitor: Monitor) -> MonitorSnapshot:
    """Immutable snapshot of the sample monitor."""
    return MonitorSnapshot.model_validate(sample_monitor)


@pytest.fixture
def make_channel(db_session: AsyncSession):
    """Factory inserting alert channels owned by a user."""
    async def _make(channel_type: str, config: dict, user_id: int = 1) -> AlertChannel:
        channel = AlertChannel(user_id=user_id, type=channel_type, config=config, is_verified=True)
        db_session.add(channel)
        await db_session.commit()
        await db_session.refresh(channel)
        return channel

    return _make


class RecordingServer:
    """Local HTTP server recording every request it receives."""

    def __init__(self):
        self.requests = []
        self.responses = {}
        self.app = web.Application()
        self.app.router.add_route("*", "/{tail:.*}", self._handle)
        self.server = TestServer(self.app)

    async def _handle(self, request: web.Request) -> web.Response:
        body = await request.read()
        self.requests.append({
            "method": request.method,
            "path": request.path,
            "headers": dict(request.headers),
            "body": body,
        })
        responder = self.responses.get(request.path)
        if responder is not None:
            return await responder(request)
        return web.json_response({"ok": True})

    def url(self, path: str) -> str:
        return str(self.server.make_url(path))

    def requests_to(self, path: str):
        return [r for r in self.requests if r["path"] == path]


@pytest.fixture
async def http_server() -> AsyncGenerator[RecordingServer, None]:
    """Start a local recording HTTP server."""
    recorder = RecordingServer()
    await recorder.server.start_server()
    yield recorder
    await recorder.server.close()


@pytest.fixture
def alerts_config(http_server: RecordingServer) -> AlertsConfig:
    """Alert configuration routing every provider to the local server."""
    return AlertsConfig(
        telegram_bot_token="test-token",
        telegram_api_base=http_server.url("/telegram"),
        resend_api_key="re_test",
        resend_api_url=http_server.url("/resend/emails"),
        email_from="Uptime Engine <alerts@example.com>",
        channel_timeout_seconds=2.0
    )
