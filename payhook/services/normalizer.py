"""Map provider webhook payloads onto one transaction shape.

Each provider gets one entry in ``PROVIDER_PROFILES``: the dotted paths its
fields live under (tried in order), which fields are required, the default
currency and how provider events translate into a ``TransactionStatus``.
Provider-specific extras (subscription ids, receipt numbers) land in
``NormalizedTransaction.details``.
"""
import dataclasses
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any

from pydantic import ValidationError as ModelValidationError

from payhook.dto.webhook import NormalizedTransaction
from payhook.utils.canonical import payload_digest
from payhook.utils.enums import ProviderTag, SignatureScheme, TransactionStatus
from payhook.utils.errors import ValidationError
from payhook.utils.time import utcnow

Clock = Callable[[], datetime]

# Matches the transactions.amount column: Numeric(18, 2).
AMOUNT_PLACES = 2
AMOUNT_LIMIT = Decimal(10) ** (18 - AMOUNT_PLACES)


@dataclass(frozen=True)
class FieldMap:
    order_id: tuple[str, ...]
    email: tuple[str, ...] = ()
    amount: tuple[str, ...] = ()
    currency: tuple[str, ...] = ()
    customer_name: tuple[str, ...] = ()
    phone: tuple[str, ...] = ()
    event: tuple[str, ...] = ()
    provider_status: tuple[str, ...] = ()


def _as_mapping(payload: Mapping[str, Any]) -> dict[str, Any]:
    return dict(payload)


def _no_details(data: Mapping[str, Any]) -> dict[str, Any]:
    return {}


@dataclass(frozen=True)
class ProviderProfile:
    tag: ProviderTag
    fields: FieldMap
    required: frozenset[str]
    default_currency: str
    default_status: TransactionStatus
    status_by_event: Mapping[str, TransactionStatus] = field(default_factory=dict)
    # Substrings of the provider's own status field that mean the payment settled.
    success_markers: tuple[str, ...] = ()
    # Multiplier per amount path, for providers that send minor units.
    amount_scale: Mapping[str, Decimal] = field(default_factory=dict)
    detail_fields: Mapping[str, tuple[str, ...]] = field(default_factory=dict)
    derive_details: Callable[[Mapping[str, Any]], dict[str, Any]] = _no_details
    signature_scheme: SignatureScheme = SignatureScheme.HMAC_SHA256
    # Payload key that carries the signature when it is not sent as a header.
    signature_field: str | None = None
    prepare: Callable[[Mapping[str, Any]], dict[str, Any]] = _as_mapping


def _flatten_stk_callback(payload: Mapping[str, Any]) -> dict[str, Any]:
    # Daraja nests the result under Body.stkCallback with metadata as Name/Value items.
    body = payload.get("Body")
    stk = body.get("stkCallback") if isinstance(body, Mapping) else None
    if not isinstance(stk, Mapping):
        return dict(payload)

    flat = {key: value for key, value in stk.items() if key != "CallbackMetadata"}
    metadata = stk.get("CallbackMetadata")
    items = metadata.get("Item") if isinstance(metadata, Mapping) else None
    for item in items or []:
        if isinstance(item, Mapping) and item.get("Name"):
            flat[str(item["Name"])] = item.get("Value")
    return flat


def _paddle_subscription_flag(data: Mapping[str, Any]) -> dict[str, Any]:
    event_type = data.get("event_type")
    if not isinstance(event_type, str):
        return {"is_subscription": False}
    return {
        "is_subscription": "subscription" in event_type
        or "transaction.completed" in event_type
        or event_type == "transaction.paid"
    }


PADDLE_PROFILE = ProviderProfile(
    tag=ProviderTag.PADDLE,
    fields=FieldMap(
        order_id=("order_id", "checkout_id", "sale_id", "data.id", "subscription_id"),
        email=("email", "customer_email", "data.customer.email"),
        amount=("amount", "sale_gross", "data.details.totals.total"),
        currency=("currency", "sale_currency", "data.currency_code"),
        customer_name=("customer_name", "data.customer.name"),
        event=("alert_name", "event_type"),
        provider_status=("status",),
    ),
    required=frozenset({"email", "order_id"}),
    default_currency="USD",
    default_status=TransactionStatus.PENDING,
    status_by_event={
        "payment_succeeded": TransactionStatus.SUCCESS,
        "subscription_payment_succeeded": TransactionStatus.SUCCESS,
        "transaction.completed": TransactionStatus.SUCCESS,
        "transaction.paid": TransactionStatus.SUCCESS,
        "subscription.activated": TransactionStatus.SUCCESS,
        "payment_refunded": TransactionStatus.REFUNDED,
        "subscription_payment_refunded": TransactionStatus.REFUNDED,
        "subscription_payment_failed": TransactionStatus.FAILED,
        "transaction.payment_failed": TransactionStatus.FAILED,
        "subscription_cancelled": TransactionStatus.CANCELLED,
        "subscription.canceled": TransactionStatus.CANCELLED,
    },
    success_markers=("completed", "filled"),
    # Paddle Billing totals are strings in the currency's minor unit.
    amount_scale={"data.details.totals.total": Decimal("0.01")},
    detail_fields={
        "plan_type": ("data.custom_data.plan_type", "passthrough.plan_type"),
        "subscription_id": ("subscription_id", "data.subscription_id"),
    },
    derive_details=_paddle_subscription_flag,
    signature_field="p_signature",
)

MPESA_PROFILE = ProviderProfile(
    tag=ProviderTag.MPESA,
    fields=FieldMap(
        order_id=("CheckoutRequestID",),
        amount=("Amount",),
        phone=("PhoneNumber",),
        event=("ResultCode",),
    ),
    required=frozenset({"order_id"}),
    default_currency="KES",
    default_status=TransactionStatus.FAILED,
    status_by_event={
        "0": TransactionStatus.SUCCESS,
        "1032": TransactionStatus.CANCELLED,
    },
    detail_fields={
        "merchant_request_id": ("MerchantRequestID",),
        "result_desc": ("ResultDesc",),
        "mpesa_receipt_number": ("MpesaReceiptNumber",),
        "transaction_date": ("TransactionDate",),
    },
    signature_scheme=SignatureScheme.SHARED_TOKEN,
    prepare=_flatten_stk_callback,
)

PROVIDER_PROFILES: dict[ProviderTag, ProviderProfile] = {
    ProviderTag.PADDLE: PADDLE_PROFILE,
    ProviderTag.MPESA: MPESA_PROFILE,
}

_unmapped = set(ProviderTag) - PROVIDER_PROFILES.keys()
if _unmapped:
    raise RuntimeError(f"providers without a field mapping: {sorted(_unmapped)}")


def _lookup(data: Mapping[str, Any], path: str) -> Any:
    value: Any = data
    for part in path.split("."):
        if not isinstance(value, Mapping):
            return None
        value = value.get(part)
    return value


def _first_match(data: Mapping[str, Any], paths: tuple[str, ...]) -> tuple[str, str] | None:
    for path in paths:
        value = _lookup(data, path)
        if value is None or isinstance(value, (Mapping, list)):
            continue
        text = str(value).strip()
        if text:
            return path, text
    return None


def _first_text(data: Mapping[str, Any], paths: tuple[str, ...]) -> str | None:
    match = _first_match(data, paths)
    return match[1] if match else None


def _parse_amount(value: str | None, scale: Decimal = Decimal(1)) -> Decimal | None:
    if value is None:
        return None
    try:
        amount = Decimal(value)
    except InvalidOperation as exc:
        raise ValidationError(f"amount is not a number: {value!r}", field="amount") from exc
    if not amount.is_finite():
        raise ValidationError(f"amount is not a number: {value!r}", field="amount")
    amount *= scale
    if amount.normalize().as_tuple().exponent < -AMOUNT_PLACES:
        raise ValidationError(
            f"amount has more than {AMOUNT_PLACES} decimal places: {value!r}", field="amount"
        )
    if abs(amount) >= AMOUNT_LIMIT:
        raise ValidationError(f"amount is out of range: {value!r}", field="amount")
    return amount


def _resolve_status(profile: ProviderProfile, event: str | None, provider_status: str | None) -> TransactionStatus:
    if event in profile.status_by_event:
        return profile.status_by_event[event]
    lowered = (provider_status or "").lower()
    if any(marker in lowered for marker in profile.success_markers):
        return TransactionStatus.SUCCESS
    return profile.default_status


def build_reference(provider: ProviderTag, order_id: str) -> str:
    return f"{provider.value}-{order_id}"


def profile_for(provider: ProviderTag | str) -> ProviderProfile:
    return PROVIDER_PROFILES[ProviderTag(provider)]


def _field_values(data: Mapping[str, Any], profile: ProviderProfile) -> dict[str, str | None]:
    return {
        name: _first_text(data, paths)
        for name, paths in dataclasses.asdict(profile.fields).items()
    }


def extract_fields(raw_payload: Mapping[str, Any], provider: ProviderTag | str) -> dict[str, str | None]:
    profile = profile_for(provider)
    return _field_values(profile.prepare(raw_payload), profile)


def extract_details(data: Mapping[str, Any], profile: ProviderProfile) -> dict[str, Any]:
    details: dict[str, Any] = {}
    for name, paths in profile.detail_fields.items():
        text = _first_text(data, paths)
        if text is not None:
            details[name] = text
    details.update(profile.derive_details(data))
    return details


def normalize(
    raw_payload: Mapping[str, Any],
    provider: ProviderTag | str,
    *,
    clock: Clock = utcnow,
) -> NormalizedTransaction:
    profile = profile_for(provider)
    data = profile.prepare(raw_payload)
    values = _field_values(data, profile)

    for name in sorted(profile.required):
        if not values[name]:
            raise ValidationError(f"missing required field: {name}", field=name)

    amount = None
    amount_match = _first_match(data, profile.fields.amount)
    if amount_match is not None:
        path, text = amount_match
        amount = _parse_amount(text, profile.amount_scale.get(path, Decimal(1)))

    order_id = values["order_id"]
    event = values["event"]
    try:
        return NormalizedTransaction(
            type=profile.tag,
            status=_resolve_status(profile, event, values["provider_status"]),
            event=event,
            email=values["email"],
            amount=amount,
            currency=values["currency"] or profile.default_currency,
            order_id=order_id,
            reference=build_reference(profile.tag, order_id),
            customer_name=values["customer_name"],
            phone=values["phone"],
            details=extract_details(data, profile),
            payload_hash=payload_digest(raw_payload),
            received_at=clock(),
        )
    except ModelValidationError as exc:
        first = exc.errors()[0]
        location = ".".join(str(part) for part in first["loc"]) or None
        raise ValidationError(f"invalid {profile.tag.value} payload: {first['msg']}", field=location) from exc
