"""MD5 helpers for block keys and content hashes.

Keys and content hashes only need to be stable across runs, so MD5 over a
canonical JSON form is enough.  They are **not** used for security.
"""

from __future__ import annotations

import hashlib
import json
from typing import Any


def md5_hash(data: str) -> str:
    """Return the hex-encoded MD5 digest of *data* (UTF-8 encoded).

    Examples
    --------
    >>> md5_hash("hello")
    '5d41402abc4b2a76b9719d911017c592'
    """
    return hashlib.md5(data.encode("utf-8")).hexdigest()


def canonical_json(value: Any) -> str:
    """Serialize *value* with sorted keys and no insignificant whitespace."""
    return json.dumps(value, sort_keys=True, ensure_ascii=False, separators=(",", ":"))


def hash_dict(d: dict) -> str:
    """Return the hex-encoded MD5 of a JSON-serialized dict.

    Examples
    --------
    >>> hash_dict({"b": 2, "a": 1}) == hash_dict({"a": 1, "b": 2})
    True
    """
    return md5_hash(canonical_json(d))


def hash_json(value: Any) -> str:
    """Return the hex-encoded MD5 of any JSON-serializable value."""
    return md5_hash(canonical_json(value))


def stable_key(*parts: object, length: int = 12) -> str:
    """Derive a short deterministic key from *parts*.

    The parts are joined with ``":"`` and hashed; the first *length* hex
    characters are returned.

    >>> stable_key(0, "abc") == stable_key(0, "abc")
    True
    """
    return md5_hash(":".join(str(p) for p in parts))[:length]
