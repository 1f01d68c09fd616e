from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, field_serializer

from payhook.utils.enums import TransactionStatus
from payhook.utils.time import to_display


class TransactionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    reference: str
    type: str
    status: TransactionStatus
    event: str | None
    order_id: str
    email: str | None
    customer_name: str | None
    phone: str | None
    amount: Decimal | None
    currency: str
    details: dict[str, Any] | None = None
    received_at: datetime
    created_at: datetime

    @field_serializer("received_at", "created_at", when_used="json")
    def serialize_local(self, value: datetime) -> datetime | None:
        return to_display(value)


class TransactionStats(BaseModel):
    total_transactions: int = 0
    successful_transactions: int = 0
    pending_transactions: int = 0
    failed_transactions: int = 0
    total_amount: Decimal = Decimal("0")


class TransactionListOut(BaseModel):
    success: bool = True
    transactions: list[TransactionOut]
    stats: TransactionStats
