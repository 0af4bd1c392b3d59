"""Content store adapters.

- :class:`ContentStore` -- the protocol the sync engine writes through.
- :class:`InMemoryContentStore` -- dict-backed store for tests and previews.
- :class:`SanityContentStore` -- the Sanity HTTP data API.
"""

from mdportable.store.base import ContentStore, DocumentPage, DocumentSummary, StoreWriteResult
from mdportable.store.memory import InMemoryContentStore
from mdportable.store.sanity import AsyncSanityTransport, SanityContentStore

__all__ = [
    "AsyncSanityTransport",
    "ContentStore",
    "DocumentPage",
    "DocumentSummary",
    "InMemoryContentStore",
    "SanityContentStore",
    "StoreWriteResult",
]
