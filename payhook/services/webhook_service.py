import asyncio
import json
import logging
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from functools import partial
from typing import Any
from urllib.parse import parse_qsl

from payhook.dto.webhook import WebhookAck
from payhook.services.normalizer import Clock, ProviderProfile, extract_fields, normalize, profile_for
from payhook.services.persistence import PersistenceAdapter
from payhook.services.signature import verify, verify_token
from payhook.utils.canonical import canonicalize
from payhook.utils.config import Settings
from payhook.utils.enums import ProviderTag, RawRecordStage, SignatureScheme
from payhook.utils.errors import MalformedPayload, PersistenceFailure, SignatureMismatch, ValidationError
from payhook.utils.time import utcnow

logger = logging.getLogger(__name__)

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"


@dataclass(frozen=True)
class WebhookResult:
    status_code: int
    ack: WebhookAck


def _decode_form_value(value: str) -> Any:
    # Form posts embed structured fields such as passthrough as JSON text.
    stripped = value.strip()
    if stripped[:1] in ("{", "["):
        try:
            return json.loads(stripped)
        except (json.JSONDecodeError, RecursionError):
            return value
    return value


def _ensure_canonical(payload: dict[str, Any]) -> dict[str, Any]:
    # Signing and hashing re-encode the payload; a depth json.loads just tolerated can still overflow there.
    try:
        canonicalize(payload)
    except RecursionError as exc:
        raise MalformedPayload("body is nested too deeply") from exc
    return payload


def parse_body(raw_body: bytes, content_type: str | None = None) -> dict[str, Any]:
    try:
        text = raw_body.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise MalformedPayload("body is not valid UTF-8") from exc
    if not text.strip():
        raise MalformedPayload("empty body")

    media_type = (content_type or "").split(";", 1)[0].strip().lower()
    if media_type == FORM_CONTENT_TYPE:
        payload = {key: _decode_form_value(value) for key, value in parse_qsl(text, keep_blank_values=True)}
        if not payload:
            raise MalformedPayload("form body has no fields")
        return _ensure_canonical(payload)

    try:
        parsed = json.loads(text)
    except json.JSONDecodeError as exc:
        raise MalformedPayload("body is not valid JSON") from exc
    except RecursionError as exc:
        raise MalformedPayload("body is nested too deeply") from exc
    if not isinstance(parsed, dict):
        raise MalformedPayload("body must be a JSON object")
    return _ensure_canonical(parsed)


class WebhookService:
    """Verify, normalize and persist one provider webhook delivery.

    Every typed failure raised by the parsing, verification, normalization and
    persistence steps is caught here, once, and turned into a ``WebhookResult``.
    """

    def __init__(self, adapter: PersistenceAdapter, *, settings: Settings, clock: Clock = utcnow):
        self.adapter = adapter
        self.settings = settings
        self.clock = clock

    async def ingest(
        self,
        provider: ProviderTag | str,
        raw_body: bytes,
        *,
        content_type: str | None = None,
        signature: str | None = None,
    ) -> WebhookResult:
        profile = profile_for(provider)

        try:
            payload = parse_body(raw_body, content_type)
        except MalformedPayload as exc:
            logger.warning("Rejected malformed %s webhook: %s", profile.tag.value, exc)
            return WebhookResult(
                status_code=self.settings.malformed_payload_status_code,
                ack=WebhookAck(success=False, error="malformed payload"),
            )

        payload, signature = self._split_signature(profile, payload, signature)

        try:
            self._verify(profile, payload, signature)
        except SignatureMismatch:
            fields = extract_fields(payload, profile.tag)
            logger.warning(
                "Rejected %s webhook with invalid signature. event=%s order_id=%s",
                profile.tag.value,
                fields["event"],
                fields["order_id"],
            )
            return WebhookResult(
                status_code=200,
                ack=WebhookAck(success=False, verified=False, error="invalid signature"),
            )

        try:
            record = normalize(payload, profile.tag, clock=self.clock)
        except ValidationError as exc:
            logger.warning("Rejected %s webhook during normalization: %s", profile.tag.value, exc)
            # Keep the verified payload for audit even though it cannot become a transaction.
            raw_result = await self._attempt_write(
                "raw record",
                None,
                partial(
                    self.adapter.save_raw_record,
                    profile.tag,
                    payload,
                    stage=RawRecordStage.VALIDATION_FAILED,
                    received_at=self.clock(),
                ),
            )
            return WebhookResult(
                status_code=200,
                ack=WebhookAck(
                    success=False,
                    verified=True,
                    raw_record_saved=raw_result is not None,
                    error=str(exc),
                ),
            )

        raw_result = await self._attempt_write(
            "raw record",
            record.reference,
            partial(
                self.adapter.save_raw_record,
                profile.tag,
                payload,
                stage=RawRecordStage.ACCEPTED,
                received_at=record.received_at,
            ),
        )
        transaction_result = await self._attempt_write(
            "transaction",
            record.reference,
            partial(self.adapter.save_normalized_transaction, record),
        )
        return self._persisted_result(record.reference, raw_result, transaction_result)

    def _split_signature(
        self,
        profile: ProviderProfile,
        payload: Mapping[str, Any],
        signature: str | None,
    ) -> tuple[dict[str, Any], str | None]:
        # The signature never takes part in the bytes it signs.
        signed_payload = dict(payload)
        if profile.signature_field:
            embedded = signed_payload.pop(profile.signature_field, None)
            if not signature and isinstance(embedded, str):
                signature = embedded
        return signed_payload, signature

    def _verify(self, profile: ProviderProfile, payload: Mapping[str, Any], signature: str | None) -> None:
        secret = self.settings.provider_secret(profile.tag)
        if not secret:
            logger.warning("No webhook secret configured for %s; rejecting delivery", profile.tag.value)

        if profile.signature_scheme is SignatureScheme.SHARED_TOKEN:
            verified = verify_token(signature, secret)
        else:
            verified = verify(payload, signature, secret)
        if not verified:
            raise SignatureMismatch(f"{profile.tag.value} signature did not verify")

    async def _attempt_write(
        self,
        label: str,
        reference: str | None,
        write: Callable[[], Awaitable[bool]],
    ) -> bool | None:
        """Run one store write; ``None`` means the write failed and was logged."""
        try:
            return await asyncio.wait_for(write(), timeout=self.settings.db_operation_timeout_seconds)
        except asyncio.TimeoutError:
            logger.exception("Webhook %s write timed out. reference=%s", label, reference)
        except PersistenceFailure:
            logger.exception("Webhook %s write failed. reference=%s", label, reference)
        except Exception:
            # Any store fault counts as a failed write.
            logger.exception("Unexpected error in webhook %s write. reference=%s", label, reference)
        return None

    def _persisted_result(
        self,
        reference: str,
        raw_result: bool | None,
        transaction_result: bool | None,
    ) -> WebhookResult:
        raw_saved = raw_result is not None
        transaction_saved = transaction_result is not None
        duplicate = None if transaction_result is None else not transaction_result

        if not raw_saved and not transaction_saved:
            # Nothing from this delivery reached the store.
            return WebhookResult(
                status_code=self.settings.persistence_failure_status_code,
                ack=WebhookAck(
                    success=False,
                    verified=True,
                    reference=reference,
                    raw_record_saved=False,
                    transaction_saved=False,
                    error="persistence failed",
                ),
            )

        error = None
        if not raw_saved:
            error = "raw record write failed"
        elif not transaction_saved:
            error = "transaction write failed"
        else:
            logger.info("Accepted webhook. reference=%s duplicate=%s", reference, duplicate)

        return WebhookResult(
            status_code=200,
            ack=WebhookAck(
                success=raw_saved and transaction_saved,
                verified=True,
                reference=reference,
                raw_record_saved=raw_saved,
                transaction_saved=transaction_saved,
                duplicate=duplicate,
                error=error,
            ),
        )
