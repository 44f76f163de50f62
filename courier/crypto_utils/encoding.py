from __future__ import annotations

import base64
import binascii
import hashlib
import json
import os
from typing import Any, Protocol, runtime_checkable

from pydantic import BaseModel


# =============================================================================
# Randomness
# =============================================================================

@runtime_checkable
class SecureRandom(Protocol):
    def token_bytes(self, n: int) -> bytes: ...


class OsRandom:
    """Default random source backed by the OS CSPRNG."""

    def token_bytes(self, n: int) -> bytes:
        return os.urandom(n)


DEFAULT_RANDOM: SecureRandom = OsRandom()


# =============================================================================
# Transport encoding and canonical JSON
# =============================================================================

def b64_encode(data: bytes) -> str:
    return base64.b64encode(data).decode("utf-8")


def b64_decode(data: str) -> bytes:
    # Strict: reject characters outside the base64 alphabet instead of skipping them
    if not isinstance(data, str):
        raise ValueError("base64 input must be a string")
    try:
        return base64.b64decode(data.encode("utf-8"), validate=True)
    except (binascii.Error, UnicodeEncodeError) as e:
        raise ValueError(f"invalid base64: {e}") from e


def _json_default(obj: Any) -> Any:
    if isinstance(obj, BaseModel):
        return obj.model_dump(mode="json", by_alias=True)
    raise TypeError(f"value of type {type(obj).__name__} is not JSON serializable")


def canonical_string(obj: Any) -> str:
    """
    Deterministic serialization used as the exact input to sign/verify.

    Keys are sorted, no whitespace, non-ASCII left unescaped. The output is
    byte-identical to a stable-key-order JSON.stringify for string, integer,
    boolean, null, list and object values.
    """
    return json.dumps(
        obj,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        allow_nan=False,
        default=_json_default,
    )


def canonical_bytes(obj: Any) -> bytes:
    return canonical_string(obj).encode("utf-8")


def key_fingerprint(key_b64: str) -> str:
    # Short, log-safe identifier for a public key
    return hashlib.sha256(key_b64.encode("utf-8")).hexdigest()[:12]
