"""
Core Module - Canonical encoding and digests.

Every hash and signature in the pipeline is taken over the same
canonical JSON form: sorted keys, no whitespace.
"""

import hashlib
import json
from typing import Any


def canonical_json(payload: Any) -> str:
    """Deterministic JSON: sorted keys, no whitespace."""
    return json.dumps(payload, sort_keys=True, separators=(",", ":"))


def sha256_hex(payload: Any) -> str:
    """SHA-256 hex digest of canonical_json(payload)."""
    return hashlib.sha256(canonical_json(payload).encode("utf-8")).hexdigest()
