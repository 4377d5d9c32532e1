import os

# must be set before app modules read settings
os.environ.setdefault("TELEMETRY_ENABLED", "false")

import pytest
import pytest_asyncio
import httpx

from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession

# Import Base + all models so metadata is complete
from app.models import Base

from app.core.cache import TTLCache
from app.main import app
from app.services.container import build_container, get_services
from app.services.notifications import Notifier

from fixtures_seed import *  # noqa: F401,F403


def _test_db_url(tmp_path) -> str:
    return os.getenv("DATABASE_URL_TEST") or f"sqlite+aiosqlite:///{tmp_path / 'listings.db'}"


class RecordingNotifier(Notifier):
    def __init__(self) -> None:
        self.sent: list[dict] = []

    def notify(self, *, recipient, template, context) -> None:
        self.sent.append({"recipient": recipient, "template": template, "context": context})

    def templates(self) -> list[str]:
        return [n["template"] for n in self.sent]


@pytest_asyncio.fixture
async def async_engine(tmp_path):
    engine = create_async_engine(_test_db_url(tmp_path))
    try:
        # fresh schema per test
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
            await conn.run_sync(Base.metadata.create_all)
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture
def session_factory(async_engine):
    return async_sessionmaker(async_engine, expire_on_commit=False, class_=AsyncSession)


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def services(session_factory, notifier):
    return build_container(session_factory, notifier=notifier, cache=TTLCache(default_ttl_seconds=300))


@pytest_asyncio.fixture
async def client(services):
    """
    HTTP client wired to the test services via dependency override.
    """
    app.dependency_overrides[get_services] = lambda: services

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
