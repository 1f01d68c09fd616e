from decimal import Decimal

import pytest

from payhook.services.normalizer import PROVIDER_PROFILES, normalize
from payhook.utils.canonical import payload_digest
from payhook.utils.enums import ProviderTag, TransactionStatus
from payhook.utils.errors import ValidationError

from helpers import FIXED_NOW, paddle_payload, stk_callback


def test_paddle_payment_succeeded():
    record = normalize(paddle_payload(), ProviderTag.PADDLE, clock=lambda: FIXED_NOW)

    assert record.type == ProviderTag.PADDLE
    assert record.type == "paddle"
    assert record.status == TransactionStatus.SUCCESS
    assert record.event == "payment_succeeded"
    assert record.email == "buyer@example.com"
    assert record.amount == Decimal("49.99")
    assert record.currency == "USD"
    assert record.order_id == "ORDER12345"
    assert record.reference == "paddle-ORDER12345"
    assert record.customer_name == "Alice Buyer"
    assert record.received_at == FIXED_NOW
    assert record.payload_hash == payload_digest(paddle_payload())


@pytest.mark.parametrize("order_id", ["ORDER12345", "ord-with-dash", "1234", "A B"])
def test_reference_contains_order_id(order_id):
    record = normalize(paddle_payload(order_id=order_id), "paddle")
    assert order_id in record.reference


def test_missing_order_id_raises():
    payload = paddle_payload()
    del payload["order_id"]
    with pytest.raises(ValidationError) as excinfo:
        normalize(payload, ProviderTag.PADDLE)
    assert excinfo.value.field == "order_id"


def test_missing_email_raises():
    payload = paddle_payload()
    del payload["email"]
    with pytest.raises(ValidationError) as excinfo:
        normalize(payload, ProviderTag.PADDLE)
    assert excinfo.value.field == "email"


def test_blank_required_field_counts_as_missing():
    with pytest.raises(ValidationError):
        normalize(paddle_payload(order_id="   "), ProviderTag.PADDLE)


def test_optional_fields_default_to_none():
    payload = {"alert_name": "payment_succeeded", "email": "buyer@example.com", "order_id": "ORDER1"}
    record = normalize(payload, ProviderTag.PADDLE)

    assert record.amount is None
    assert record.customer_name is None
    assert record.phone is None
    assert record.currency == "USD"


def test_paddle_classic_fallback_fields():
    payload = {
        "alert_name": "subscription_payment_succeeded",
        "customer_email": "sub@example.com",
        "sale_gross": "19.00",
        "sale_currency": "eur",
        "checkout_id": "CHK-77",
    }
    record = normalize(payload, ProviderTag.PADDLE)

    assert record.email == "sub@example.com"
    assert record.amount == Decimal("19.00")
    assert record.currency == "EUR"
    assert record.reference == "paddle-CHK-77"


def test_paddle_billing_nested_fields():
    payload = {
        "event_type": "transaction.completed",
        "data": {
            "id": "txn_01hv8",
            "currency_code": "USD",
            "details": {"totals": {"total": "5000"}},
            "customer": {"email": "billing@example.com", "name": "Bo Billing"},
        },
    }
    record = normalize(payload, ProviderTag.PADDLE)

    assert record.status == TransactionStatus.SUCCESS
    assert record.email == "billing@example.com"
    assert record.customer_name == "Bo Billing"
    assert record.amount == Decimal("50.00")
    assert record.details == {"is_subscription": True}
    assert record.reference == "paddle-txn_01hv8"


@pytest.mark.parametrize(
    ("alert_name", "expected"),
    [
        ("payment_refunded", TransactionStatus.REFUNDED),
        ("subscription_payment_failed", TransactionStatus.FAILED),
        ("subscription_cancelled", TransactionStatus.CANCELLED),
        ("subscription_created", TransactionStatus.PENDING),
    ],
)
def test_paddle_status_mapping(alert_name, expected):
    record = normalize(paddle_payload(alert_name=alert_name), ProviderTag.PADDLE)
    assert record.status == expected


def test_unparseable_amount_raises():
    with pytest.raises(ValidationError) as excinfo:
        normalize(paddle_payload(amount="forty-nine"), ProviderTag.PADDLE)
    assert excinfo.value.field == "amount"


def test_mpesa_stk_callback_success():
    record = normalize(stk_callback(), ProviderTag.MPESA, clock=lambda: FIXED_NOW)

    assert record.type == "mpesa"
    assert record.status == TransactionStatus.SUCCESS
    assert record.event == "0"
    assert record.amount == Decimal("1500")
    assert record.currency == "KES"
    assert record.phone == "254712345678"
    assert record.email is None
    assert record.reference == "mpesa-ws_CO_191020261030001"


def test_mpesa_cancelled_and_failed_results():
    assert normalize(stk_callback(result_code=1032), ProviderTag.MPESA).status == TransactionStatus.CANCELLED
    assert normalize(stk_callback(result_code=1), ProviderTag.MPESA).status == TransactionStatus.FAILED


def test_mpesa_payload_without_stk_callback_raises():
    with pytest.raises(ValidationError):
        normalize({"Body": {"something": "else"}}, ProviderTag.MPESA)


def test_every_provider_has_a_profile():
    assert set(PROVIDER_PROFILES) == set(ProviderTag)


@pytest.mark.parametrize("amount", ["49.999", "0.001", "1E+20"])
def test_amount_outside_stored_precision_raises(amount):
    with pytest.raises(ValidationError) as excinfo:
        normalize(paddle_payload(amount=amount), ProviderTag.PADDLE)
    assert excinfo.value.field == "amount"


def test_trailing_zeros_are_not_extra_precision():
    record = normalize(paddle_payload(amount="49.9900"), ProviderTag.PADDLE)
    assert record.amount == Decimal("49.99")


@pytest.mark.parametrize("provider_status", ["completed", "Filled", "order_completed"])
def test_paddle_status_field_marks_success(provider_status):
    payload = paddle_payload(alert_name="order_update", status=provider_status)
    assert normalize(payload, ProviderTag.PADDLE).status == TransactionStatus.SUCCESS


def test_paddle_event_mapping_wins_over_status_field():
    payload = paddle_payload(alert_name="payment_refunded", status="completed")
    assert normalize(payload, ProviderTag.PADDLE).status == TransactionStatus.REFUNDED


def test_paddle_classic_details_from_passthrough():
    payload = paddle_payload(subscription_id="sub_881", passthrough={"plan_type": "annual"})
    record = normalize(payload, ProviderTag.PADDLE)

    assert record.details == {"plan_type": "annual", "subscription_id": "sub_881", "is_subscription": False}


def test_paddle_billing_details_from_custom_data():
    payload = {
        "event_type": "subscription.activated",
        "data": {
            "id": "txn_02",
            "subscription_id": "sub_02",
            "custom_data": {"plan_type": "monthly"},
            "customer": {"email": "billing@example.com"},
        },
    }
    record = normalize(payload, ProviderTag.PADDLE)

    assert record.status == TransactionStatus.SUCCESS
    assert record.details == {"plan_type": "monthly", "subscription_id": "sub_02", "is_subscription": True}


def test_mpesa_details_carry_receipt_and_request_ids():
    record = normalize(stk_callback(), ProviderTag.MPESA)

    assert record.details == {
        "merchant_request_id": "29115-34620561-1",
        "result_desc": "The service request is processed successfully.",
        "mpesa_receipt_number": "TJK7XYZ123",
        "transaction_date": "20261019103015",
    }


def test_mpesa_failed_callback_details_without_metadata():
    record = normalize(stk_callback(result_code=1), ProviderTag.MPESA)
    assert "mpesa_receipt_number" not in record.details
    assert record.details["merchant_request_id"] == "29115-34620561-1"
