"""Append-only audit sinks for sync attempts.

The sync engine writes exactly one :class:`SyncAttempt` per call through an
:class:`AuditSink`.  It never reads back or modifies earlier records.
"""

from __future__ import annotations

import json
import threading
from pathlib import Path
from typing import Protocol, TextIO, runtime_checkable

from mdportable.models import SyncAttempt


@runtime_checkable
class AuditSink(Protocol):
    """Protocol for audit backends."""

    def append_sync_attempt(self, record: SyncAttempt) -> None:
        """Persist *record*.  Must not mutate or drop earlier records."""
        ...


class InMemoryAuditLog:
    """Keeps records in process memory.

    ``records`` returns a tuple so callers cannot edit the history.
    """

    __slots__ = ("_lock", "_records")

    def __init__(self) -> None:
        self._records: list[SyncAttempt] = []
        self._lock = threading.Lock()

    def append_sync_attempt(self, record: SyncAttempt) -> None:
        with self._lock:
            self._records.append(record)

    @property
    def records(self) -> tuple[SyncAttempt, ...]:
        with self._lock:
            return tuple(self._records)

    def for_target(
        self,
        document_type: str,
        document_id: str | None,
        field_name: str,
    ) -> tuple[SyncAttempt, ...]:
        return tuple(
            r for r in self.records
            if r.document_type == document_type
            and r.document_id == document_id
            and r.field_name == field_name
        )

    def __len__(self) -> int:
        return len(self._records)


class JsonlAuditLog:
    """Appends one JSON object per record to a file.

    The write happens inline on the calling thread, including when called
    from :meth:`SyncEngine.sync <mdportable.sync.SyncEngine.sync>` on the
    event loop, so a record is on disk before the sync returns or re-raises.
    One line-buffered append handle is kept open, making each record a
    single small ``write`` and flush.  Call :meth:`close` when done.

    Parameters
    ----------
    path:
        Target file.  Parent directories are created on first write.  The
        file is opened in append mode so concurrent processes interleave
        whole lines.
    """

    __slots__ = ("_fh", "_lock", "path")

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._lock = threading.Lock()
        self._fh: TextIO | None = None

    def append_sync_attempt(self, record: SyncAttempt) -> None:
        line = json.dumps(record.to_dict(), ensure_ascii=False, sort_keys=True)
        with self._lock:
            if self._fh is None:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                self._fh = self.path.open("a", encoding="utf-8", buffering=1)
            self._fh.write(line + "\n")

    def close(self) -> None:
        with self._lock:
            if self._fh is not None:
                self._fh.close()
                self._fh = None

    def read_records(self) -> list[dict]:
        """Load every record written so far (for inspection and tests)."""
        if not self.path.exists():
            return []
        with self.path.open(encoding="utf-8") as fh:
            return [json.loads(line) for line in fh if line.strip()]
