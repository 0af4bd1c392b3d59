"""Token and payload redaction for debug dumps.

Store requests, responses and Portable Text payloads pass through
:func:`redact` before they are printed.  Rules, applied while walking the
structure:

* Values under sensitive keys (``authorization``, ``token``, ``secret`` ...)
  are masked.  Non-string values there become ``"<redacted>"``.
* ``Bearer <credential>`` is masked wherever it appears.
* The API token is replaced by ``<redacted:...abcd>`` (its last four
  characters) in every string.
* Base64 data URIs, e.g. pasted images inside a block ``asset`` or
  ``href``, shrink to ``<data_uri:N_bytes>``.
"""

from __future__ import annotations

import re
from typing import Any

_DATA_URI_RE = re.compile(
    r"data:[a-zA-Z0-9_.+-]+/[a-zA-Z0-9_.+-]+;base64,(?P<data>[A-Za-z0-9+/=]+)"
)
_BEARER_RE = re.compile(r"(Bearer\s+)\S+")

_SENSITIVE_KEYS: tuple[str, ...] = (
    "token",
    "secret",
    "password",
    "authorization",
    "cookie",
    "api_key",
)


def _is_sensitive(key: object) -> bool:
    return isinstance(key, str) and any(part in key.lower() for part in _SENSITIVE_KEYS)


def _scrub(text: str, token: str | None) -> str:
    text = _DATA_URI_RE.sub(lambda m: f"<data_uri:{len(m.group('data')) * 3 // 4}_bytes>", text)
    if token and token in text:
        placeholder = f"<redacted:...{token[-4:]}>" if len(token) >= 4 else "<redacted>"
        if token in placeholder:
            placeholder = "<redacted>"
        text = text.replace(token, placeholder)
    return _BEARER_RE.sub(r"\1<redacted>", text)


def _walk(value: Any, token: str | None, sensitive: bool = False) -> Any:
    if isinstance(value, str):
        return _scrub(value, token)
    if sensitive:
        return "<redacted>"
    if isinstance(value, dict):
        return {k: _walk(v, token, _is_sensitive(k)) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_walk(item, token) for item in value]
    return value


def redact(payload: dict, token: str | None = None) -> dict:
    """Return a copy of *payload* with credentials and inline binaries masked.

    The input is never mutated.

    >>> redact({"Authorization": "Bearer sk_abc123"})
    {'Authorization': 'Bearer <redacted>'}
    >>> redact({"note": "key sk_live_9876"}, token="sk_live_9876")
    {'note': 'key <redacted:...9876>'}
    """
    return _walk(payload, token)
