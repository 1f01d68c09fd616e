from datetime import datetime
from typing import Any

from sqlalchemy import JSON, DateTime, Enum, String, func
from sqlalchemy.orm import Mapped, mapped_column

from payhook.models.transaction import PrimaryKeyType
from payhook.utils.db import Base
from payhook.utils.enums import RawRecordStage


class RawWebhookRecord(Base):
    __tablename__ = "raw_webhook_records"

    id: Mapped[int] = mapped_column(PrimaryKeyType, primary_key=True, autoincrement=True)
    provider: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    stage: Mapped[RawRecordStage] = mapped_column(
        Enum(RawRecordStage, name="raw_record_stage", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
    )
    payload: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    payload_hash: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    received_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
