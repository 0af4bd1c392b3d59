"""Configuration for mdportable.

:class:`MdPortableConfig` is a plain dataclass that captures every tuneable
knob: the content-store connection, timeouts, converter switches, the
metrics hook, and debug dumps.  One instance is shared by the converter,
the pipeline, the sync engine and the store adapter.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from typing import Any

DEFAULT_API_VERSION = "v2024-01-01"
"""Content store API version sent in the request path."""


@dataclass
class MdPortableConfig:
    """Complete configuration for an mdportable client.

    Every parameter has a default so that conversion-only use needs no
    arguments at all.  ``project_id`` and ``token`` are only needed once a
    :class:`~mdportable.store.sanity.SanityContentStore` is created.

    Parameters
    ----------
    project_id:
        Content store project identifier.  Used to derive ``base_url``.
    dataset:
        Dataset the documents live in.
    token:
        API token with write access.  Never logged.
    api_version:
        Dated API version used in request paths.
    base_url:
        API root URL.  Derived from ``project_id`` when left empty.  Override
        for proxy or testing environments.
    timeout_seconds:
        HTTP timeout applied by the store transport.
    sync_timeout_seconds:
        Upper bound for each store call made by the sync engine.  On expiry
        the attempt is recorded as failed with ``SYNC_TIMEOUT``.
    http_proxy:
        Optional HTTP/HTTPS proxy URL.
    enable_tables:
        Convert GFM pipe tables to ``table`` blocks.  When disabled, table
        lines stay paragraph text.
    detect_highlights:
        Turn blockquotes that start with ``**info**:`` (or warning, error,
        success, note) into ``highlight`` blocks.
    metrics:
        Optional :class:`~mdportable.observability.MetricsHook`.
    debug_dump_ast:
        Write the block AST to *stderr* on each conversion.
    debug_dump_payload:
        Write the (redacted) store request payloads to *stderr*.
    """

    # ── Content store ───────────────────────────────────────────────────
    project_id: str = ""

    dataset: str = "production"

    token: str = ""

    api_version: str = DEFAULT_API_VERSION

    base_url: str = ""

    # ── Timeouts ────────────────────────────────────────────────────────
    timeout_seconds: float = 30.0

    sync_timeout_seconds: float = 15.0

    http_proxy: str | None = None

    # ── Converter ───────────────────────────────────────────────────────
    enable_tables: bool = True

    detect_highlights: bool = True

    # ── Observability ──────────────────────────────────────────────────
    metrics: Any | None = None

    # ── Debug ───────────────────────────────────────────────────────────
    debug_dump_ast: bool = False

    debug_dump_payload: bool = False

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        from urllib.parse import urlparse

        if not self.base_url and self.project_id:
            self.base_url = f"https://{self.project_id}.api.sanity.io"

        if self.base_url:
            parsed = urlparse(self.base_url)
            if parsed.scheme == "http" and parsed.hostname not in (
                "localhost",
                "127.0.0.1",
                "::1",
            ):
                raise ValueError(
                    f"base_url uses insecure HTTP for non-local host '{parsed.hostname}'. "
                    "Use HTTPS to protect your API token, or target localhost for testing."
                )

        if not self.dataset:
            raise ValueError("dataset must not be empty")
        if self.timeout_seconds <= 0:
            raise ValueError(f"timeout_seconds must be > 0, got {self.timeout_seconds}")
        if self.sync_timeout_seconds <= 0:
            raise ValueError(
                f"sync_timeout_seconds must be > 0, got {self.sync_timeout_seconds}"
            )

    def __repr__(self) -> str:
        """Mask the token to prevent accidental credential leakage."""
        parts: list[str] = []
        for f in dataclasses.fields(self):
            val = getattr(self, f.name)
            if f.name == "token":
                masked = f"...{val[-4:]}" if len(val) >= 4 else "****"
                parts.append(f"token='{masked}'")
            else:
                parts.append(f"{f.name}={val!r}")
        return f"MdPortableConfig({', '.join(parts)})"
