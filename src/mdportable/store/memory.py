"""In-process content store for tests and local previews.

Documents live in a dict; every write bumps a per-document counter and the
revision becomes ``rev-<n>``.  Each call is recorded in :attr:`calls` so
tests can assert exactly which operations reached the store.
"""

from __future__ import annotations

import asyncio
import copy
from typing import Any

from mdportable.errors import RevisionConflictError, StoreNotFoundError
from mdportable.store.base import DocumentPage, DocumentSummary, StoreWriteResult


def _slug_of(doc: dict[str, Any]) -> str | None:
    slug = doc.get("slug")
    if isinstance(slug, dict):
        return slug.get("current")
    return slug


class InMemoryContentStore:
    """Dict-backed :class:`~mdportable.store.base.ContentStore`.

    Parameters
    ----------
    latency:
        Seconds to sleep before each operation.  Used to exercise timeouts
        and in-flight rejection.
    """

    def __init__(self, latency: float = 0.0) -> None:
        self.latency = latency
        self.documents: dict[str, dict[str, Any]] = {}
        self.calls: list[tuple[str, tuple[Any, ...]]] = []
        self._counters: dict[str, int] = {}
        self._next_id = 0
        self._failures: dict[str, list[Exception]] = {}
        # Creation order, oldest first.
        self._order: list[str] = []

    # -- test helpers ------------------------------------------------------

    def fail_next(self, method: str, exc: Exception) -> None:
        """Make the next call to *method* raise *exc* without writing."""
        self._failures.setdefault(method, []).append(exc)

    def seed(self, document_id: str, document_type: str, fields: dict[str, Any], revision: int = 1) -> None:
        """Insert a document directly, as if written by another client."""
        self.documents[document_id] = {
            "_id": document_id,
            "_type": document_type,
            "_rev": f"rev-{revision}",
            **copy.deepcopy(fields),
        }
        self._counters[document_id] = revision
        if document_id not in self._order:
            self._order.append(document_id)

    # -- internals ---------------------------------------------------------

    async def _enter(self, method: str, *args: Any) -> None:
        self.calls.append((method, args))
        if self.latency:
            await asyncio.sleep(self.latency)
        pending = self._failures.get(method)
        if pending:
            raise pending.pop(0)

    def _bump(self, document_id: str) -> str:
        n = self._counters.get(document_id, 0) + 1
        self._counters[document_id] = n
        rev = f"rev-{n}"
        self.documents[document_id]["_rev"] = rev
        return rev

    # -- ContentStore ------------------------------------------------------

    async def create_document(self, document_type: str, fields: dict[str, Any]) -> StoreWriteResult:
        await self._enter("create_document", document_type, fields)
        self._next_id += 1
        document_id = f"{document_type}-{self._next_id}"
        self.documents[document_id] = {
            "_id": document_id,
            "_type": document_type,
            **copy.deepcopy(fields),
        }
        self._order.append(document_id)
        return StoreWriteResult(id=document_id, revision=self._bump(document_id))

    async def patch_field(
        self,
        document_id: str,
        field_name: str,
        value: Any,
        expected_revision: str | None = None,
    ) -> str:
        await self._enter("patch_field", document_id, field_name, value, expected_revision)
        doc = self.documents.get(document_id)
        if doc is None:
            raise StoreNotFoundError(
                f"Document '{document_id}' does not exist.",
                context={"document_id": document_id},
            )
        if expected_revision is not None and doc["_rev"] != expected_revision:
            raise RevisionConflictError(
                f"Document '{document_id}' is at {doc['_rev']}, expected {expected_revision}.",
                context={
                    "document_id": document_id,
                    "expected_revision": expected_revision,
                    "current_revision": doc["_rev"],
                },
            )
        doc[field_name] = copy.deepcopy(value)
        return self._bump(document_id)

    async def get_revision(self, document_id: str) -> str | None:
        await self._enter("get_revision", document_id)
        doc = self.documents.get(document_id)
        return doc["_rev"] if doc is not None else None

    async def find_document_id(self, document_type: str, slug: str) -> str | None:
        await self._enter("find_document_id", document_type, slug)
        for document_id in self._order:
            doc = self.documents.get(document_id)
            if doc is not None and doc["_type"] == document_type and _slug_of(doc) == slug:
                return document_id
        return None

    async def list_documents(
        self,
        document_type: str,
        search: str | None = None,
        limit: int = 6,
        offset: int = 0,
    ) -> DocumentPage:
        await self._enter("list_documents", document_type, search, limit, offset)
        needle = search.strip().lower() if search else ""
        matches = []
        for document_id in reversed(self._order):
            doc = self.documents.get(document_id)
            if doc is None or doc["_type"] != document_type:
                continue
            if needle and not any(
                needle in (value or "").lower() for value in (doc.get("title"), _slug_of(doc))
            ):
                continue
            matches.append(
                DocumentSummary(
                    id=document_id,
                    document_type=document_type,
                    title=doc.get("title"),
                    slug=_slug_of(doc),
                    is_draft=document_id.startswith("drafts."),
                )
            )
        return DocumentPage(
            documents=matches[offset:offset + limit],
            total=len(matches),
            has_more=offset + limit < len(matches),
        )

    async def close(self) -> None:
        return None
