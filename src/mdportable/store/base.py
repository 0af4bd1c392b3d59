"""Content store contract used by the sync engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable


@dataclass(frozen=True)
class StoreWriteResult:
    """Identity and revision of a freshly created document."""

    id: str
    revision: str | None


@dataclass(frozen=True)
class DocumentSummary:
    """One entry of a document listing, used to pick a sync target."""

    id: str
    document_type: str
    title: str | None = None
    slug: str | None = None
    created_at: str | None = None
    is_draft: bool = False


@dataclass(frozen=True)
class DocumentPage:
    """A page of :class:`DocumentSummary` items, newest first."""

    documents: list[DocumentSummary] = field(default_factory=list)
    total: int = 0
    has_more: bool = False


@runtime_checkable
class ContentStore(Protocol):
    """Minimal document store interface.

    Implementations map transport failures onto the
    :class:`~mdportable.errors.SyncError` hierarchy: a stale
    ``expected_revision`` raises :class:`RevisionConflictError`, an
    unreachable store :class:`RemoteUnavailableError`.
    """

    async def create_document(
        self,
        document_type: str,
        fields: dict[str, Any],
    ) -> StoreWriteResult:
        """Create a document of *document_type* holding *fields*."""
        ...

    async def patch_field(
        self,
        document_id: str,
        field_name: str,
        value: Any,
        expected_revision: str | None = None,
    ) -> str:
        """Replace one field and return the new revision.

        Other fields of the document are left untouched.
        """
        ...

    async def get_revision(self, document_id: str) -> str | None:
        """Current revision of *document_id*, or ``None`` if it does not exist."""
        ...

    async def find_document_id(self, document_type: str, slug: str) -> str | None:
        """Id of the *document_type* document whose ``slug.current`` is *slug*."""
        ...

    async def list_documents(
        self,
        document_type: str,
        search: str | None = None,
        limit: int = 6,
        offset: int = 0,
    ) -> DocumentPage:
        """List *document_type* documents, newest first.

        *search* matches the title or slug as a case-insensitive substring.
        """
        ...
