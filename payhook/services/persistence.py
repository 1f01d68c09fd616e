import logging
from collections.abc import Mapping
from datetime import datetime
from typing import Any, Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from payhook.dto.webhook import NormalizedTransaction
from payhook.repositories.raw_webhook_record_repository import RawWebhookRecordRepository
from payhook.repositories.transaction_repository import TransactionRepository
from payhook.utils import db as db_core
from payhook.utils.canonical import payload_digest
from payhook.utils.enums import ProviderTag, RawRecordStage
from payhook.utils.errors import PersistenceFailure
from payhook.utils.time import utcnow

logger = logging.getLogger(__name__)


class PersistenceAdapter(Protocol):
    """Store used by the webhook path.

    Both methods return ``True`` when a row was written and ``False`` when the
    store already held an equivalent record. Store errors raise
    ``PersistenceFailure``. Either method may be called without the other.
    """

    async def save_raw_record(
        self,
        provider: ProviderTag,
        payload: Mapping[str, Any],
        *,
        stage: RawRecordStage = RawRecordStage.ACCEPTED,
        received_at: datetime | None = None,
    ) -> bool: ...

    async def save_normalized_transaction(self, record: NormalizedTransaction) -> bool: ...


class SqlPersistenceAdapter:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def save_raw_record(
        self,
        provider: ProviderTag,
        payload: Mapping[str, Any],
        *,
        stage: RawRecordStage = RawRecordStage.ACCEPTED,
        received_at: datetime | None = None,
    ) -> bool:
        # One session per write: a failure here must not roll back the other write.
        # Driver connect errors (asyncpg raises OSError) surface unwrapped by SQLAlchemy.
        try:
            async with self.session_factory() as db:
                await RawWebhookRecordRepository(db).create(
                    provider=ProviderTag(provider).value,
                    stage=stage,
                    payload=dict(payload),
                    payload_hash=payload_digest(payload),
                    received_at=received_at or utcnow(),
                )
        except (SQLAlchemyError, OSError) as exc:
            raise PersistenceFailure(f"could not store raw {provider} webhook") from exc
        return True

    async def save_normalized_transaction(self, record: NormalizedTransaction) -> bool:
        try:
            async with self.session_factory() as db:
                repository = TransactionRepository(db)
                inserted = await repository.create_if_not_exists(record)
                if inserted is not None:
                    return True

                existing = await repository.get_by_reference(record.reference)
                if existing is not None and existing.payload_hash != record.payload_hash:
                    logger.warning(
                        "Received webhook with duplicate reference but different payload. "
                        "reference=%s existing_payload_hash=%s new_payload_hash=%s",
                        record.reference,
                        existing.payload_hash,
                        record.payload_hash,
                    )
                else:
                    logger.info("Duplicate webhook delivery ignored. reference=%s", record.reference)
                return False
        except (SQLAlchemyError, OSError) as exc:
            raise PersistenceFailure(f"could not store transaction {record.reference}") from exc


def get_persistence_adapter() -> PersistenceAdapter:
    return SqlPersistenceAdapter(db_core.SessionLocal)
