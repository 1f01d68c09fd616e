from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from payhook.utils.enums import ProviderTag, TransactionStatus


class NormalizedTransaction(BaseModel):
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    type: ProviderTag
    status: TransactionStatus
    event: str | None = None
    email: str | None = None
    amount: Decimal | None = None
    currency: str = Field(min_length=1, max_length=8)
    order_id: str = Field(min_length=1, max_length=128)
    reference: str = Field(min_length=1, max_length=160)
    customer_name: str | None = None
    phone: str | None = None
    details: dict[str, Any] = Field(default_factory=dict)
    payload_hash: str
    received_at: datetime

    @field_validator("currency")
    @classmethod
    def normalize_currency(cls, value: str) -> str:
        return value.upper()

    @model_validator(mode="after")
    def reference_embeds_order_id(self) -> "NormalizedTransaction":
        # Downstream lookups search references by the raw order id.
        if self.order_id not in self.reference:
            raise ValueError("reference must contain the provider order id")
        return self


class WebhookAck(BaseModel):
    success: bool
    verified: bool | None = None
    reference: str | None = None
    raw_record_saved: bool | None = None
    transaction_saved: bool | None = None
    duplicate: bool | None = None
    error: str | None = None
