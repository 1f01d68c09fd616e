import hashlib
import json
from collections.abc import Mapping
from decimal import Decimal
from typing import Any


def _encode_default(value: Any) -> str:
    # Decimals keep their exact textual form; nothing is rounded before signing.
    if isinstance(value, Decimal):
        return str(value)
    raise TypeError(f"Object of type {type(value).__name__} is not canonicalizable")


def canonicalize(payload: Mapping[str, Any]) -> bytes:
    """Serialize a payload to bytes that do not depend on key order.

    Keys are sorted at every nesting level and separators are compact, so two
    mappings with the same key/value sets always produce the same bytes.
    Array element order is significant and kept as is.
    """
    serialized = json.dumps(
        payload,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        default=_encode_default,
    )
    return serialized.encode("utf-8")


def payload_digest(payload: Mapping[str, Any]) -> str:
    return hashlib.sha256(canonicalize(payload)).hexdigest()
