from datetime import datetime
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from payhook.models.raw_webhook_record import RawWebhookRecord
from payhook.utils.enums import RawRecordStage


class RawWebhookRecordRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(
        self,
        *,
        provider: str,
        stage: RawRecordStage,
        payload: dict[str, Any],
        payload_hash: str,
        received_at: datetime,
    ) -> RawWebhookRecord:
        record = RawWebhookRecord(
            provider=provider,
            stage=stage,
            payload=payload,
            payload_hash=payload_hash,
            received_at=received_at,
        )
        self.db.add(record)
        await self.db.commit()
        return record
