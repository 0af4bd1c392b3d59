"""Push converted blocks into one field of a remote document.

:class:`SyncEngine` writes a block sequence to a registered
``(document type, field)`` target through a
:class:`~mdportable.store.base.ContentStore` and appends one
:class:`~mdportable.models.SyncAttempt` per call to an audit sink.

Order of checks for every :meth:`SyncEngine.sync` call:

1. **Registry gate** -- unknown targets raise
   :class:`UnsupportedTargetError` before any store I/O.
2. **Slug resolution** -- a target given by slug instead of id is looked up
   in the store; an unknown slug raises :class:`StoreNotFoundError`.
3. **In-flight guard** -- a second call for the same target while one is
   running raises :class:`SyncInProgressError`.  Calls are rejected, never
   queued.
4. **Idempotence** -- content whose hash was already written to this target
   returns ``already_applied=True`` without a write.
5. **Write** -- create when no document id is given; otherwise, when an
   expected revision is given, compare it with the store's current revision
   (raising :class:`RevisionConflictError` on mismatch) and patch only the
   target field.

Retries are left to the caller.  Every attempt is audited, rejected and
cancelled ones included.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable, Sequence
from datetime import datetime, timezone
from typing import Any, TypeVar

from mdportable.audit import AuditSink
from mdportable.config import MdPortableConfig
from mdportable.errors import (
    ErrorCode,
    MdPortableError,
    RevisionConflictError,
    StoreNotFoundError,
    SyncError,
    SyncInProgressError,
    SyncTimeoutError,
)
from mdportable.models import PortableBlock, SyncAttempt, SyncOperation, SyncResult
from mdportable.observability import get_logger, resolve_metrics
from mdportable.registry import FieldRegistry
from mdportable.store.base import ContentStore
from mdportable.utils.hashing import hash_json

log = get_logger("mdportable.sync")

T = TypeVar("T")

_Target = tuple[str, "str | None", str]


def blocks_payload(blocks: Sequence[PortableBlock | dict[str, Any]]) -> list[dict[str, Any]]:
    """Wire dicts for *blocks*; plain dicts pass through unchanged."""
    return [b if isinstance(b, dict) else b.to_dict() for b in blocks]


def content_hash(payload: list[dict[str, Any]]) -> str:
    """Stable hash of a serialised block payload."""
    return hash_json(payload)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _error_code(exc: BaseException) -> str:
    code = getattr(exc, "code", None)
    if code is None:
        return type(exc).__name__
    return getattr(code, "value", code)


class SyncEngine:
    """Audited, idempotent writer of Portable Text fields.

    Parameters
    ----------
    registry:
        Targets that accept Portable Text.  Read-only.
    store:
        The content store adapter.
    audit_sink:
        Receives one :class:`SyncAttempt` per call.
    config:
        Supplies ``sync_timeout_seconds`` and the metrics hook.
    clock:
        Returns the timestamp recorded on audit records.  Defaults to
        the current UTC time.
    """

    def __init__(
        self,
        registry: FieldRegistry,
        store: ContentStore,
        audit_sink: AuditSink,
        config: MdPortableConfig | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._registry = registry
        self._store = store
        self._audit = audit_sink
        self._config = config if config is not None else MdPortableConfig()
        self._clock = clock if clock is not None else _utcnow
        self._metrics = resolve_metrics(self._config.metrics)
        self._in_flight: set[_Target] = set()
        # (document_type, document_id, field_name) -> (content hash, revision)
        self._applied: dict[_Target, tuple[str, str | None]] = {}

    @property
    def registry(self) -> FieldRegistry:
        return self._registry

    def is_in_flight(self, document_type: str, document_id: str | None, field_name: str) -> bool:
        return (document_type, document_id, field_name) in self._in_flight

    async def _call(self, operation: str, awaitable: Awaitable[T]) -> T:
        timeout = self._config.sync_timeout_seconds
        try:
            return await asyncio.wait_for(awaitable, timeout=timeout)
        except asyncio.TimeoutError as exc:
            raise SyncTimeoutError(
                f"Store call '{operation}' did not finish within {timeout}s.",
                context={"operation": operation, "timeout_seconds": timeout},
                cause=exc,
            ) from exc

    def _record(
        self,
        operation: SyncOperation,
        document_type: str,
        document_id: str | None,
        field_name: str,
        digest: str,
        error: BaseException | None = None,
    ) -> None:
        attempt = SyncAttempt(
            operation=operation,
            document_type=document_type,
            document_id=document_id,
            field_name=field_name,
            content_hash=digest,
            success=error is None,
            timestamp=self._clock(),
            error_code=_error_code(error) if error is not None else None,
            error=(error.message if isinstance(error, MdPortableError) else str(error)) if error is not None else None,
        )
        self._audit.append_sync_attempt(attempt)
        self._metrics.increment(
            "mdportable.sync_attempts_total",
            tags={"operation": operation.value, "success": str(error is None).lower()},
        )
        if error is not None:
            self._metrics.increment(
                "mdportable.sync_failures_total", tags={"error_code": attempt.error_code or ""},
            )

    def _cancelled(
        self,
        exc: asyncio.CancelledError,
        document_type: str,
        document_id: str | None,
        field_name: str,
    ) -> SyncError:
        return SyncError(
            f"Sync for {document_type}.{field_name} was cancelled during a store call.",
            context={
                "document_type": document_type,
                "document_id": document_id,
                "field_name": field_name,
            },
            cause=exc,
            code=ErrorCode.SYNC_CANCELLED,
        )

    async def _resolve_slug(
        self,
        operation: SyncOperation,
        document_type: str,
        slug: str,
        field_name: str,
        digest: str,
    ) -> str:
        """Look up the id of the *document_type* document with *slug*.

        Failures are audited before they propagate.
        """
        try:
            found = await self._call(
                "find_document_id", self._store.find_document_id(document_type, slug),
            )
        except asyncio.CancelledError as exc:
            self._record(
                operation, document_type, None, field_name, digest,
                self._cancelled(exc, document_type, None, field_name),
            )
            raise
        except Exception as exc:
            self._record(operation, document_type, None, field_name, digest, exc)
            raise
        if not found:
            exc = StoreNotFoundError(
                f"No {document_type} document has slug '{slug}'.",
                context={"document_type": document_type, "slug": slug},
            )
            self._record(operation, document_type, None, field_name, digest, exc)
            log.warning(
                "Sync rejected: unknown slug",
                extra={"extra_fields": {"document_type": document_type, "slug": slug}},
            )
            raise exc
        return found

    async def sync(
        self,
        document_type: str,
        document_id: str | None,
        field_name: str,
        blocks: Sequence[PortableBlock | dict[str, Any]],
        expected_revision: str | None = None,
        document_slug: str | None = None,
    ) -> SyncResult:
        """Write *blocks* into ``document_type.field_name`` of *document_id*.

        Parameters
        ----------
        document_type, field_name:
            The registered target.
        document_id:
            The existing document, or ``None`` to create a new one.
        blocks:
            Portable blocks (or their wire dicts) for the field.
        expected_revision:
            Revision the caller last saw.  When given, a store at any other
            revision causes :class:`RevisionConflictError` and no write.
        document_slug:
            Alternative to *document_id*: the ``slug.current`` of an
            existing document of *document_type*.  Ignored when
            *document_id* is given.

        Returns
        -------
        SyncResult

        Raises
        ------
        UnsupportedTargetError
            The target is not registered; nothing was sent to the store.
        StoreNotFoundError
            No document of *document_type* has *document_slug*.
        SyncInProgressError
            Another sync for the same target is running.
        RevisionConflictError
            The document moved past *expected_revision*.
        RemoteUnavailableError
            The store could not be reached (:class:`SyncTimeoutError` on
            timeout).
        """
        by_slug = document_id is None and document_slug is not None
        operation = SyncOperation.CREATE if document_id is None and not by_slug else SyncOperation.UPDATE
        payload = blocks_payload(blocks)
        digest = content_hash(payload)
        started = time.monotonic()

        try:
            self._registry.require(document_type, field_name)
        except MdPortableError as exc:
            self._record(operation, document_type, document_id, field_name, digest, exc)
            log.warning(
                "Sync rejected: unsupported target",
                extra={"extra_fields": {"document_type": document_type, "field_name": field_name}},
            )
            raise

        if by_slug:
            document_id = await self._resolve_slug(
                operation, document_type, document_slug, field_name, digest,
            )

        target: _Target = (document_type, document_id, field_name)

        if target in self._in_flight:
            exc = SyncInProgressError(
                f"A sync for {document_type}.{field_name} ({document_id}) is already running.",
                context={
                    "document_type": document_type,
                    "document_id": document_id,
                    "field_name": field_name,
                },
            )
            self._record(operation, document_type, document_id, field_name, digest, exc)
            raise exc

        self._in_flight.add(target)
        try:
            applied = self._applied.get(target) if document_id is not None else None
            if applied is not None and applied[0] == digest and (
                expected_revision is None or expected_revision == applied[1]
            ):
                self._record(operation, document_type, document_id, field_name, digest)
                self._metrics.increment("mdportable.sync_skipped_total")
                log.info(
                    "Sync skipped: content already applied",
                    extra={"extra_fields": {
                        "document_type": document_type,
                        "document_id": document_id,
                        "field_name": field_name,
                        "content_hash": digest,
                    }},
                )
                return SyncResult(
                    operation=operation,
                    document_type=document_type,
                    document_id=document_id,
                    field_name=field_name,
                    revision=applied[1],
                    content_hash=digest,
                    blocks_written=0,
                    already_applied=True,
                )

            try:
                if document_id is None:
                    created = await self._call(
                        "create_document",
                        self._store.create_document(document_type, {field_name: payload}),
                    )
                    written_id, revision = created.id, created.revision
                else:
                    if expected_revision is not None:
                        current = await self._call(
                            "get_revision", self._store.get_revision(document_id),
                        )
                        if current != expected_revision:
                            raise RevisionConflictError(
                                f"Document '{document_id}' is at {current}, expected {expected_revision}.",
                                context={
                                    "document_id": document_id,
                                    "expected_revision": expected_revision,
                                    "current_revision": current,
                                },
                            )
                    revision = await self._call(
                        "patch_field",
                        self._store.patch_field(document_id, field_name, payload, expected_revision),
                    )
                    written_id = document_id
            except asyncio.CancelledError as exc:
                cancelled = self._cancelled(exc, document_type, document_id, field_name)
                self._record(operation, document_type, document_id, field_name, digest, cancelled)
                log.warning(
                    "Sync cancelled",
                    extra={"extra_fields": {
                        "operation": operation.value,
                        "document_type": document_type,
                        "document_id": document_id,
                        "field_name": field_name,
                    }},
                )
                raise
            except Exception as exc:
                self._record(operation, document_type, document_id, field_name, digest, exc)
                log.warning(
                    "Sync failed",
                    extra={"extra_fields": {
                        "operation": operation.value,
                        "document_type": document_type,
                        "document_id": document_id,
                        "field_name": field_name,
                        "error_code": _error_code(exc),
                        "error": str(exc),
                    }},
                )
                raise

            self._applied[(document_type, written_id, field_name)] = (digest, revision)
            self._record(operation, document_type, written_id, field_name, digest)
            self._metrics.timing("mdportable.sync_duration_ms", (time.monotonic() - started) * 1000)
            log.info(
                "Sync succeeded",
                extra={"extra_fields": {
                    "operation": operation.value,
                    "document_type": document_type,
                    "document_id": written_id,
                    "field_name": field_name,
                    "revision": revision,
                    "blocks": len(payload),
                }},
            )
            return SyncResult(
                operation=operation,
                document_type=document_type,
                document_id=written_id,
                field_name=field_name,
                revision=revision,
                content_hash=digest,
                blocks_written=len(payload),
            )
        finally:
            self._in_flight.discard(target)
