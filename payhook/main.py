import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from payhook.models.raw_webhook_record import RawWebhookRecord  # noqa: F401
from payhook.models.transaction import Transaction  # noqa: F401
from payhook.router.routes_health import router as health_router
from payhook.router.routes_transactions import router as transactions_router
from payhook.router.routes_webhooks import router as webhooks_router
from payhook.utils.config import settings
from payhook.utils.db import check_db_connection, engine, ensure_tables_exist
from payhook.utils.logging import configure_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI):
    configure_logging()
    logger.info("Starting app and validating DB connectivity")
    await asyncio.wait_for(check_db_connection(), timeout=settings.db_operation_timeout_seconds)
    logger.info("Database connection check successful")
    if settings.db_auto_create:
        # Keeps schema bootstrapped for local/dev usage when Alembic was not run.
        await ensure_tables_exist()
        logger.info("Schema ensure step completed")
    try:
        yield
    finally:
        # Only close pooled DB connections; this does not drop tables.
        await engine.dispose()


app = FastAPI(title="Payhook Payment Webhooks", lifespan=lifespan)
app.include_router(health_router)
app.include_router(webhooks_router)
app.include_router(transactions_router)
