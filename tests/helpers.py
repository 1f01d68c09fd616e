import json
from datetime import datetime, timezone

from fastapi.testclient import TestClient

from payhook.services.signature import compute_signature
from payhook.utils.enums import RawRecordStage
from payhook.utils.errors import PersistenceFailure

PADDLE_SECRET = "whsec_test_paddle"
MPESA_TOKEN = "mpesa-callback-token"
FIXED_NOW = datetime(2026, 10, 19, 9, 30, tzinfo=timezone.utc)


def paddle_payload(**overrides) -> dict:
    payload = {
        "alert_name": "payment_succeeded",
        "email": "buyer@example.com",
        "amount": "49.99",
        "currency": "USD",
        "order_id": "ORDER12345",
        "customer_name": "Alice Buyer",
    }
    payload.update(overrides)
    return payload


def stk_callback(result_code: int = 0, checkout_request_id: str = "ws_CO_191020261030001") -> dict:
    items = [
        {"Name": "Amount", "Value": 1500},
        {"Name": "MpesaReceiptNumber", "Value": "TJK7XYZ123"},
        {"Name": "TransactionDate", "Value": 20261019103015},
        {"Name": "PhoneNumber", "Value": 254712345678},
    ]
    stk = {
        "MerchantRequestID": "29115-34620561-1",
        "CheckoutRequestID": checkout_request_id,
        "ResultCode": result_code,
        "ResultDesc": "The service request is processed successfully.",
    }
    if result_code == 0:
        stk["CallbackMetadata"] = {"Item": items}
    return {"Body": {"stkCallback": stk}}


def post_paddle(client: TestClient, payload: dict, signature: str | None = None):
    headers = {"Content-Type": "application/json"}
    if signature is None:
        signature = compute_signature(payload, PADDLE_SECRET)
    headers["Paddle-Signature"] = signature
    return client.post("/v1/webhooks/paddle", content=json.dumps(payload), headers=headers)


class RecordingAdapter:
    """In-memory persistence adapter that records every call."""

    def __init__(self):
        self.raw_calls: list[dict] = []
        self.transaction_calls: list = []
        self.fail_raw = False
        self.fail_transaction = False
        self._references: set[str] = set()

    async def save_raw_record(self, provider, payload, *, stage=RawRecordStage.ACCEPTED, received_at=None) -> bool:
        self.raw_calls.append(
            {"provider": provider, "payload": dict(payload), "stage": stage, "received_at": received_at}
        )
        if self.fail_raw:
            raise PersistenceFailure("raw store unavailable")
        return True

    async def save_normalized_transaction(self, record) -> bool:
        self.transaction_calls.append(record)
        if self.fail_transaction:
            raise PersistenceFailure("transaction store unavailable")
        if record.reference in self._references:
            return False
        self._references.add(record.reference)
        return True
