"""mdportable -- Markdown to Portable Text conversion and field sync.

Public re-exports
-----------------

* **Client:** :class:`AsyncMdPortableClient`
* **Conversion:** :class:`MarkdownToPortableConverter`, :class:`ConversionPipeline`
* **Sync:** :class:`SyncEngine`, :class:`FieldRegistry`, audit sinks, stores
* **Configuration:** :class:`MdPortableConfig`
* **Errors:** Every :class:`MdPortableError` subclass and :class:`ErrorCode`
* **Models:** Blocks, results and audit records

Usage::

    from mdportable import MarkdownToPortableConverter

    result = MarkdownToPortableConverter().convert("# Title\\n\\nSome **bold** text.")
    payload = result.to_payload()
"""

from __future__ import annotations

# ── Client ─────────────────────────────────────────────────────────────
from mdportable.async_client import AsyncMdPortableClient

# ── Audit ──────────────────────────────────────────────────────────────
from mdportable.audit import AuditSink, InMemoryAuditLog, JsonlAuditLog

# ── Configuration ───────────────────────────────────────────────────────
from mdportable.config import DEFAULT_API_VERSION, MdPortableConfig

# ── Conversion ─────────────────────────────────────────────────────────
from mdportable.converter import (
    CancellationToken,
    MarkdownToPortableConverter,
    conversion_stats,
    estimate_reading_time,
    extract_headings,
    validate_blocks,
)

# ── Errors ──────────────────────────────────────────────────────────────
from mdportable.errors import (
    ConversionCancelled,
    ConversionError,
    ErrorCode,
    MapperInvariantViolation,
    MdPortableError,
    RemoteUnavailableError,
    RevisionConflictError,
    StoreAuthError,
    StoreNotFoundError,
    StoreValidationError,
    SyncError,
    SyncInProgressError,
    SyncTimeoutError,
    UnsupportedTargetError,
)

# ── Models ──────────────────────────────────────────────────────────────
from mdportable.models import (
    BlockStyle,
    CodeBlock,
    ConversionOutcome,
    ConversionResult,
    ConversionStatus,
    ConversionWarning,
    FieldRegistryEntry,
    HighlightBlock,
    ImageBlock,
    ListKind,
    MarkDef,
    SeparatorBlock,
    Span,
    SyncAttempt,
    SyncOperation,
    SyncResult,
    TableBlock,
    TextBlock,
    blocks_to_payload,
)
from mdportable.pipeline import ConversionPipeline
from mdportable.registry import FieldRegistry, default_registry

# ── Stores ─────────────────────────────────────────────────────────────
from mdportable.store import (
    ContentStore,
    DocumentPage,
    DocumentSummary,
    InMemoryContentStore,
    SanityContentStore,
    StoreWriteResult,
)
from mdportable.sync import SyncEngine

__all__ = [
    # Client
    "AsyncMdPortableClient",
    # Configuration
    "MdPortableConfig",
    "DEFAULT_API_VERSION",
    # Conversion
    "MarkdownToPortableConverter",
    "ConversionPipeline",
    "CancellationToken",
    "extract_headings",
    "conversion_stats",
    "validate_blocks",
    "estimate_reading_time",
    # Sync
    "SyncEngine",
    "FieldRegistry",
    "default_registry",
    "AuditSink",
    "InMemoryAuditLog",
    "JsonlAuditLog",
    "ContentStore",
    "StoreWriteResult",
    "DocumentPage",
    "DocumentSummary",
    "InMemoryContentStore",
    "SanityContentStore",
    # Error base + code enum
    "MdPortableError",
    "ErrorCode",
    # Conversion errors
    "ConversionError",
    "MapperInvariantViolation",
    "ConversionCancelled",
    # Sync errors
    "SyncError",
    "UnsupportedTargetError",
    "RevisionConflictError",
    "SyncInProgressError",
    "RemoteUnavailableError",
    "SyncTimeoutError",
    "StoreAuthError",
    "StoreNotFoundError",
    "StoreValidationError",
    # Models: blocks
    "TextBlock",
    "Span",
    "MarkDef",
    "CodeBlock",
    "ImageBlock",
    "SeparatorBlock",
    "TableBlock",
    "HighlightBlock",
    "BlockStyle",
    "ListKind",
    "blocks_to_payload",
    # Models: results
    "ConversionResult",
    "ConversionWarning",
    "ConversionOutcome",
    "ConversionStatus",
    "FieldRegistryEntry",
    "SyncAttempt",
    "SyncOperation",
    "SyncResult",
]
