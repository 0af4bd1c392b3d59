"""Asynchronous mdportable client.

:class:`AsyncMdPortableClient` wires the converter, a preview pipeline and
the sync engine together behind one object.

Usage::

    import asyncio
    from mdportable import AsyncMdPortableClient, MdPortableConfig

    async def main():
        config = MdPortableConfig(project_id="abc123", token="sk_xxx")
        async with AsyncMdPortableClient(config) as client:
            result = await client.sync_markdown(
                "log", None, "content", "# Day one\\n\\nShipped it.",
            )
            print(result.document_id, result.revision)

    asyncio.run(main())
"""

from __future__ import annotations

import asyncio
from typing import Any

from mdportable.audit import AuditSink, InMemoryAuditLog
from mdportable.config import MdPortableConfig
from mdportable.converter.md_to_portable import MarkdownToPortableConverter
from mdportable.models import ConversionOutcome, ConversionResult, FieldRegistryEntry, SyncResult
from mdportable.pipeline import ConversionPipeline
from mdportable.registry import FieldRegistry, default_registry
from mdportable.store.base import ContentStore, DocumentPage
from mdportable.sync import SyncEngine


class AsyncMdPortableClient:
    """Convert Markdown and sync it into a content store.

    Parameters
    ----------
    config:
        Shared configuration.  Defaults to :class:`MdPortableConfig()`.
    registry:
        Accepted sync targets.  Defaults to :func:`default_registry`.
    store:
        Content store adapter.  When omitted a
        :class:`~mdportable.store.sanity.SanityContentStore` is built from
        *config*.
    audit_sink:
        Audit backend.  Defaults to an :class:`InMemoryAuditLog`.
    """

    def __init__(
        self,
        config: MdPortableConfig | None = None,
        registry: FieldRegistry | None = None,
        store: ContentStore | None = None,
        audit_sink: AuditSink | None = None,
    ) -> None:
        self._config = config if config is not None else MdPortableConfig()
        self._registry = registry if registry is not None else default_registry()
        if store is None:
            from mdportable.store.sanity import SanityContentStore
            store = SanityContentStore(self._config)
        self._store = store
        self._audit = audit_sink if audit_sink is not None else InMemoryAuditLog()
        self._converter = MarkdownToPortableConverter(self._config)
        self._pipeline = ConversionPipeline(self._config, converter=self._converter)
        self._engine = SyncEngine(self._registry, self._store, self._audit, self._config)

    @property
    def config(self) -> MdPortableConfig:
        return self._config

    @property
    def audit_sink(self) -> AuditSink:
        return self._audit

    @property
    def pipeline(self) -> ConversionPipeline:
        return self._pipeline

    @property
    def engine(self) -> SyncEngine:
        return self._engine

    def convert(self, markdown: str) -> ConversionResult:
        """Convert *markdown* synchronously; conversion errors propagate."""
        return self._converter.convert(markdown)

    async def preview(self, markdown: str) -> ConversionOutcome:
        """Convert through the session pipeline (latest call wins)."""
        return await self._pipeline.convert(markdown)

    def list_accepted_fields(self) -> tuple[FieldRegistryEntry, ...]:
        return self._registry.list_accepted_fields()

    async def list_documents(
        self,
        document_type: str,
        search: str | None = None,
        limit: int = 6,
        offset: int = 0,
    ) -> DocumentPage:
        """List candidate documents of *document_type* for a sync target."""
        return await self._store.list_documents(document_type, search=search, limit=limit, offset=offset)

    async def sync_markdown(
        self,
        document_type: str,
        document_id: str | None,
        field_name: str,
        markdown: str,
        expected_revision: str | None = None,
        document_slug: str | None = None,
    ) -> SyncResult:
        """Convert *markdown* and sync the blocks to the target field.

        The target is checked against the registry before conversion so an
        unsupported field fails fast.  Pass *document_slug* instead of
        *document_id* to address an existing document by its slug.  See
        :meth:`SyncEngine.sync` for the errors raised.
        """
        if not self._registry.is_accepted(document_type, field_name):
            return await self._engine.sync(
                document_type, document_id, field_name, [], expected_revision, document_slug,
            )
        conversion = await asyncio.to_thread(self._converter.convert, markdown)
        return await self._engine.sync(
            document_type,
            document_id,
            field_name,
            conversion.blocks,
            expected_revision=expected_revision,
            document_slug=document_slug,
        )

    async def close(self) -> None:
        close = getattr(self._store, "close", None)
        if close is not None:
            await close()
        close_audit = getattr(self._audit, "close", None)
        if close_audit is not None:
            close_audit()

    async def __aenter__(self) -> AsyncMdPortableClient:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()
