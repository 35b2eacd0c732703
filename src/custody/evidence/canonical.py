"""
Canonical serialization and content hashing.

One payload has exactly one canonical byte form: JSON with sorted keys,
no insignificant whitespace and UTF-8 text. Hashes are always taken over
that form, never over a format-specific rendering.
"""

import hashlib
import hmac
import json
import re
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Union
from uuid import UUID

SHA256_HEX = re.compile(r"[0-9a-f]{64}")


def _default(obj: Any) -> Any:
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, UUID):
        return str(obj)
    if isinstance(obj, Decimal):
        return str(obj)
    if isinstance(obj, (set, frozenset)):
        return sorted(obj, key=str)
    if hasattr(obj, "to_dict"):
        return obj.to_dict()
    raise TypeError(f"Object of type {type(obj).__name__} has no canonical form")


def canonical_dumps(obj: Any) -> str:
    """Serialize to canonical JSON text."""
    return json.dumps(
        obj,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        allow_nan=False,
        default=_default,
    )


def canonical_bytes(obj: Any) -> bytes:
    return canonical_dumps(obj).encode("utf-8")


def sha256_hex(data: Union[bytes, str]) -> str:
    """SHA-256 hex digest of bytes, or of text encoded as UTF-8."""
    if isinstance(data, str):
        data = data.encode("utf-8")
    return hashlib.sha256(data).hexdigest()


def content_hash(obj: Any) -> str:
    """Digest of an object's canonical form."""
    return sha256_hex(canonical_bytes(obj))


def is_sha256_hex(value: Any) -> bool:
    return isinstance(value, str) and SHA256_HEX.fullmatch(value.lower()) is not None


def hashes_match(expected: str, actual: str) -> bool:
    """Constant-time comparison of two hex digests, case-insensitive."""
    return hmac.compare_digest(expected.lower().encode(), actual.lower().encode())


def snapshot_of(record: Any) -> str:
    """Canonical snapshot text of a record with a to_dict method."""
    return canonical_dumps(record.to_dict())
