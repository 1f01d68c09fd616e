import hashlib
import hmac
from collections.abc import Mapping
from typing import Any

from payhook.utils.canonical import canonicalize

SIGNATURE_PREFIX = "sha256="


def compute_signature(payload: Mapping[str, Any], secret: str) -> str:
    """Hex HMAC-SHA256 of the canonical payload bytes, keyed by ``secret``."""
    return hmac.new(secret.encode("utf-8"), canonicalize(payload), hashlib.sha256).hexdigest()


def _constant_time_equals(expected: str, provided: str) -> bool:
    # compare_digest rejects non-ASCII str input, bytes are always accepted.
    return hmac.compare_digest(expected.encode("utf-8"), provided.encode("utf-8"))


def verify(payload: Mapping[str, Any], provided_signature: str | None, secret: str | None) -> bool:
    """Check a provider signature against one computed over the canonical payload.

    Missing credentials count as a failed check: an empty ``secret`` or an
    empty ``provided_signature`` returns ``False`` without computing anything.
    """
    if not secret or not provided_signature:
        return False
    provided = provided_signature.strip()
    if provided.startswith(SIGNATURE_PREFIX):
        provided = provided[len(SIGNATURE_PREFIX):]
    if not provided:
        return False
    return _constant_time_equals(compute_signature(payload, secret), provided)


def verify_token(provided_token: str | None, secret: str | None) -> bool:
    """Shared-token check for providers that do not sign their callbacks."""
    if not secret or not provided_token:
        return False
    return _constant_time_equals(secret, provided_token)
