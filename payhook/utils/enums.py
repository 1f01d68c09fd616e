from enum import StrEnum


class ProviderTag(StrEnum):
    PADDLE = "paddle"
    MPESA = "mpesa"


class TransactionStatus(StrEnum):
    SUCCESS = "success"
    PENDING = "pending"
    FAILED = "failed"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class RawRecordStage(StrEnum):
    ACCEPTED = "accepted"
    VALIDATION_FAILED = "validation_failed"


class SignatureScheme(StrEnum):
    HMAC_SHA256 = "hmac-sha256"
    SHARED_TOKEN = "shared-token"
