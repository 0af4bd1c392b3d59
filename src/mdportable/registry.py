"""Field registry: which (document type, field) pairs may receive blocks.

The registry is loaded once and never changes afterwards.  The sync engine
consults it before any store I/O, so an unknown target is rejected without
touching the network.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from mdportable.errors import UnsupportedTargetError
from mdportable.models import PORTABLE_TEXT_KIND, FieldRegistryEntry


class FieldRegistry:
    """Immutable lookup table of sync targets.

    Parameters
    ----------
    entries:
        The accepted targets.  Duplicate ``(document_type, field_name)``
        pairs raise :class:`ValueError`.

    Examples
    --------
    >>> registry = FieldRegistry([FieldRegistryEntry("log", "content")])
    >>> registry.is_accepted("log", "content")
    True
    >>> registry.is_accepted("log", "title")
    False
    """

    __slots__ = ("_entries", "_index")

    def __init__(self, entries: Iterable[FieldRegistryEntry]) -> None:
        index: dict[tuple[str, str], FieldRegistryEntry] = {}
        for entry in entries:
            pair = (entry.document_type, entry.field_name)
            if pair in index:
                raise ValueError(
                    f"Duplicate registry entry for {entry.document_type}.{entry.field_name}"
                )
            index[pair] = entry
        self._index = index
        self._entries = tuple(index.values())

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]) -> FieldRegistry:
        """Build a registry from a document-config mapping.

        Accepted shapes per document type::

            {"log": ["content"]}
            {"log": {"content": "Log body"}}
            {"log": {"content": {"title": "Log body", "kind": "portableText"}}}
        """
        entries: list[FieldRegistryEntry] = []
        for document_type, fields in mapping.items():
            if isinstance(fields, Mapping):
                for field_name, spec in fields.items():
                    if isinstance(spec, Mapping):
                        entries.append(FieldRegistryEntry(
                            document_type=document_type,
                            field_name=field_name,
                            accepted_content_kind=spec.get("kind", PORTABLE_TEXT_KIND),
                            title=spec.get("title", ""),
                        ))
                    else:
                        entries.append(FieldRegistryEntry(
                            document_type=document_type,
                            field_name=field_name,
                            title=str(spec or ""),
                        ))
            else:
                entries.extend(
                    FieldRegistryEntry(document_type=document_type, field_name=name)
                    for name in fields
                )
        return cls(entries)

    def is_accepted(self, document_type: str, field_name: str) -> bool:
        entry = self._index.get((document_type, field_name))
        return entry is not None and entry.accepted_content_kind == PORTABLE_TEXT_KIND

    def get(self, document_type: str, field_name: str) -> FieldRegistryEntry | None:
        return self._index.get((document_type, field_name))

    def require(self, document_type: str, field_name: str) -> FieldRegistryEntry:
        """Return the entry for the target or raise :class:`UnsupportedTargetError`."""
        entry = self._index.get((document_type, field_name))
        if entry is None or entry.accepted_content_kind != PORTABLE_TEXT_KIND:
            raise UnsupportedTargetError(
                f"'{document_type}.{field_name}' does not accept Portable Text content.",
                context={"document_type": document_type, "field_name": field_name},
            )
        return entry

    def list_accepted_fields(self) -> tuple[FieldRegistryEntry, ...]:
        return tuple(e for e in self._entries if e.accepted_content_kind == PORTABLE_TEXT_KIND)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, target: object) -> bool:
        return isinstance(target, tuple) and len(target) == 2 and self.is_accepted(*target)

    def __repr__(self) -> str:
        targets = ", ".join(f"{e.document_type}.{e.field_name}" for e in self._entries)
        return f"FieldRegistry({targets})"


def default_registry() -> FieldRegistry:
    """The stock targets: log bodies and the bilingual author biographies."""
    return FieldRegistry([
        FieldRegistryEntry("log", "content", title="Log content"),
        FieldRegistryEntry("author", "zh", title="Author biography (Chinese)"),
        FieldRegistryEntry("author", "en", title="Author biography (English)"),
    ])
