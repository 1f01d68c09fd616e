import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from pydantic import SecretStr
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from payhook.main import app
from payhook.models.raw_webhook_record import RawWebhookRecord  # noqa: F401
from payhook.models.transaction import Transaction  # noqa: F401
from payhook.services.persistence import get_persistence_adapter
from payhook.utils.config import Settings, get_settings
from payhook.utils.db import Base

from helpers import MPESA_TOKEN, PADDLE_SECRET, RecordingAdapter


@pytest.fixture
def webhook_settings() -> Settings:
    return Settings(
        _env_file=None,
        paddle_webhook_secret=SecretStr(PADDLE_SECRET),
        mpesa_callback_token=SecretStr(MPESA_TOKEN),
        db_operation_timeout_seconds=2.0,
    )


@pytest.fixture
def adapter() -> RecordingAdapter:
    return RecordingAdapter()


@pytest.fixture
def client(adapter, webhook_settings):
    app.dependency_overrides[get_persistence_adapter] = lambda: adapter
    app.dependency_overrides[get_settings] = lambda: webhook_settings
    # No context manager: the lifespan's database probe is not needed with a fake store.
    test_client = TestClient(app)
    yield test_client
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def db_engine():
    engine = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(db_engine):
    return async_sessionmaker(bind=db_engine, autoflush=False, expire_on_commit=False, class_=AsyncSession)
