"""
Ledger Client - Transaction signing.

Signature = HMAC-SHA256 over the canonical JSON of the unsigned
payload, keyed by the caller's signing key.
"""

import hashlib
import hmac
from typing import Any

from core.hashing import canonical_json

SIGNATURE_PREFIX = "sign1"


def sign_transaction(payload: dict[str, Any], signing_key: str) -> str:
    """
    Sign an unsigned transaction payload.

    Raises:
        ValueError: If signing_key is empty
    """
    if not signing_key:
        raise ValueError("Signing key is required")

    unsigned = {k: v for k, v in payload.items() if k != "signature"}
    digest = hmac.new(
        signing_key.encode("utf-8"),
        canonical_json(unsigned).encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()
    return f"{SIGNATURE_PREFIX}{digest}"


def verify_signature(payload: dict[str, Any], signing_key: str) -> bool:
    """Check a signed payload's signature field."""
    signature = payload.get("signature")
    if not signature or not signing_key:
        return False
    return hmac.compare_digest(signature, sign_transaction(payload, signing_key))
