"""Payload fingerprinting for reproduction descriptors.

The fingerprint is computed from a canonical JSON representation of the
payload so that logically identical payloads produce the same reference
regardless of key order.
"""

import hashlib
import json
from typing import Any


def compute_payload_fingerprint(payload: Any) -> str:
    """Compute a deterministic fingerprint for a payload.

    1. Canonical JSON: sorted keys, compact separators, non-JSON values via str()
    2. Final: SHA-256 of the UTF-8 encoded canonical form

    Args:
        payload: Any JSON-like value

    Returns:
        Hexadecimal SHA-256 hash string (64 characters)

    Examples:
        >>> compute_payload_fingerprint({"b": 1, "a": 2}) == compute_payload_fingerprint(
        ...     {"a": 2, "b": 1}
        ... )
        True
    """
    canonical = _canonicalize_payload(payload)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def payload_reference(payload: Any) -> str:
    """Return the ``sha256:<digest>`` reference used in reproduction descriptors."""
    return f"sha256:{compute_payload_fingerprint(payload)}"


def _canonicalize_payload(payload: Any) -> str:
    """Canonicalize a payload as JSON.

    Args:
        payload: Any JSON-like value

    Returns:
        JSON string with sorted keys and no insignificant whitespace
    """
    return json.dumps(
        payload,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        default=str,
    )
