from .hashing import canonical_json, hash_dict, hash_json, md5_hash, stable_key
from .redact import redact
from .slug import slugify

__all__ = [
    "canonical_json",
    "hash_dict",
    "hash_json",
    "md5_hash",
    "redact",
    "slugify",
    "stable_key",
]
