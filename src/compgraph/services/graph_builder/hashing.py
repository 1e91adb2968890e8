"""
Content hashing for drift detection.

Hashes are computed over a canonical form in which every mapping has its
keys sorted, so two definitions that differ only in key order hash equally.
List order is significant.
"""

import hashlib
import json
from enum import Enum
from typing import Any, Optional


def canonicalize(value: Any) -> Any:
    """Recursively sort mapping keys; lists keep their order."""
    if isinstance(value, dict):
        return {str(k): canonicalize(value[k]) for k in sorted(value, key=str)}
    if isinstance(value, (list, tuple)):
        return [canonicalize(item) for item in value]
    if isinstance(value, Enum):
        return value.value
    return value


def canonical_json(value: Any) -> str:
    return json.dumps(
        canonicalize(value),
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        default=str,
    )


def compute_hash(value: Any) -> Optional[str]:
    """
    SHA-256 of the canonical JSON form, or None when there is nothing to hash.
    """
    if value is None:
        return None
    return hashlib.sha256(canonical_json(value).encode("utf-8")).hexdigest()
