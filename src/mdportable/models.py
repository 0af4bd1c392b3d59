"""Data models for mdportable.

Four groups of types live here:

* **Tokens** produced by the tokenizer (:class:`Token`, :class:`TokenKind`).
* **AST nodes**, a closed set of block variants built from tokens
  (:data:`BlockNode`) with inline content as :class:`InlineSpan`.
* **Portable blocks**, the output unit (:data:`PortableBlock`), serialised
  with Portable Text wire keys (``_type``, ``_key``, ``markDefs`` ...).
* **Results and records**: conversion results and outcomes, field registry
  entries, sync results and the append-only :class:`SyncAttempt`.

Everything a consumer iterates over is immutable; block sequences are
recomputed per conversion and never mutated afterwards.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, ClassVar, Union


# ---------------------------------------------------------------------------
# Tokens
# ---------------------------------------------------------------------------

class TokenKind(str, Enum):
    """Lexical unit kinds emitted by :func:`~mdportable.converter.tokenize`."""

    # Block level
    HEADING = "heading"
    PARAGRAPH = "paragraph"
    LIST = "list"
    LIST_ITEM = "list_item"
    CODE_BLOCK = "code_block"
    BLOCKQUOTE = "blockquote"
    THEMATIC_BREAK = "thematic_break"
    TABLE = "table"
    TABLE_ROW = "table_row"
    TABLE_CELL = "table_cell"

    # Inline level
    TEXT = "text"
    STRONG_MARK = "strong_mark"
    EMPHASIS_MARK = "emphasis_mark"
    CODE_MARK = "code_mark"
    STRIKE_MARK = "strike_mark"
    LINK = "link"
    IMAGE = "image"
    LINE_BREAK = "line_break"


@dataclass(frozen=True)
class Token:
    """One lexical unit.

    Attributes
    ----------
    kind:
        The token kind.
    raw:
        The source text this token covers (for ``TEXT`` the literal text,
        for ``CODE_BLOCK`` the verbatim code).
    level:
        Heading level for headings, leading-whitespace width for list items,
        zero otherwise.
    attrs:
        Kind-specific data: ``ordered``/``marker`` for list items,
        ``info``/``terminated`` for code blocks, ``closing`` for paired
        inline marks, ``href`` for links, ``src``/``alt`` for images,
        ``header`` for table rows.  Treated as read-only.
    children:
        Nested tokens: inline tokens for text-bearing blocks, items for
        lists, paragraphs for blockquotes, rows and cells for tables.
    line:
        Zero-based source line where the token starts (block tokens only).
    """

    kind: TokenKind
    raw: str = ""
    level: int = 0
    attrs: dict[str, Any] = field(default_factory=dict)
    children: tuple[Token, ...] = ()
    line: int = 0


# ---------------------------------------------------------------------------
# AST
# ---------------------------------------------------------------------------

class MarkName(str, Enum):
    """Inline marks understood by the converter."""

    STRONG = "strong"
    EM = "em"
    CODE = "code"
    STRIKE = "strike-through"
    LINK = "link"


DECORATORS: frozenset[str] = frozenset({
    MarkName.STRONG.value,
    MarkName.EM.value,
    MarkName.CODE.value,
    MarkName.STRIKE.value,
})
"""Marks that need no out-of-line definition."""


@dataclass(frozen=True)
class Mark:
    """A mark applied to an inline span.  Links carry their target."""

    name: MarkName
    href: str | None = None


@dataclass(frozen=True)
class InlineSpan:
    """A run of text sharing one ordered set of marks."""

    text: str
    marks: tuple[Mark, ...] = ()


@dataclass(frozen=True)
class HeadingNode:
    level: int
    children: tuple[InlineSpan, ...]
    kind: ClassVar[str] = "heading"


@dataclass(frozen=True)
class ParagraphNode:
    children: tuple[InlineSpan, ...]
    kind: ClassVar[str] = "paragraph"


@dataclass(frozen=True)
class ListItemNode:
    """One list item; nested lists hang off the item that precedes them."""

    children: tuple[InlineSpan, ...]
    sublists: tuple[ListNode, ...] = ()
    kind: ClassVar[str] = "list_item"


@dataclass(frozen=True)
class ListNode:
    """An ordered or unordered list.  ``depth`` is zero for root lists."""

    ordered: bool
    items: tuple[ListItemNode, ...]
    depth: int = 0
    kind: ClassVar[str] = "list"


@dataclass(frozen=True)
class CodeNode:
    code: str
    language: str | None = None
    kind: ClassVar[str] = "code"


@dataclass(frozen=True)
class QuoteNode:
    paragraphs: tuple[tuple[InlineSpan, ...], ...]
    kind: ClassVar[str] = "quote"


@dataclass(frozen=True)
class HighlightNode:
    """A call-out blockquote (``> **warning**: Title``)."""

    tone: str
    title: str | None
    paragraphs: tuple[tuple[InlineSpan, ...], ...]
    kind: ClassVar[str] = "highlight"


@dataclass(frozen=True)
class ImageNode:
    src: str
    alt: str = ""
    title: str | None = None
    kind: ClassVar[str] = "image"


@dataclass(frozen=True)
class SeparatorNode:
    kind: ClassVar[str] = "separator"


@dataclass(frozen=True)
class TableNode:
    """A pipe table.  The first row is the header row."""

    rows: tuple[tuple[tuple[InlineSpan, ...], ...], ...]
    kind: ClassVar[str] = "table"


BlockNode = Union[
    HeadingNode,
    ParagraphNode,
    ListNode,
    CodeNode,
    QuoteNode,
    HighlightNode,
    ImageNode,
    SeparatorNode,
    TableNode,
]


# ---------------------------------------------------------------------------
# Portable blocks
# ---------------------------------------------------------------------------

class BlockStyle(str, Enum):
    """Text block styles, using the content store's style names."""

    NORMAL = "normal"
    H1 = "h1"
    H2 = "h2"
    H3 = "h3"
    H4 = "h4"
    H5 = "h5"
    H6 = "h6"
    QUOTE = "blockquote"

    @classmethod
    def heading(cls, level: int) -> BlockStyle:
        return cls(f"h{level}")


class ListKind(str, Enum):
    """List item kinds, using the content store's names."""

    UNORDERED = "bullet"
    ORDERED = "number"


@dataclass(frozen=True)
class Span:
    key: str
    text: str
    marks: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "_type": "span",
            "_key": self.key,
            "text": self.text,
            "marks": list(self.marks),
        }


@dataclass(frozen=True)
class MarkDef:
    """Out-of-line data for a mark, referenced from spans by ``key``."""

    key: str
    href: str
    type: str = "link"

    def to_dict(self) -> dict[str, Any]:
        return {"_type": self.type, "_key": self.key, "href": self.href}


@dataclass(frozen=True)
class TextBlock:
    key: str
    style: BlockStyle
    children: tuple[Span, ...]
    mark_defs: tuple[MarkDef, ...] = ()
    list_item: ListKind | None = None
    level: int | None = None
    block_type: ClassVar[str] = "block"

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "_type": self.block_type,
            "_key": self.key,
            "style": self.style.value,
            "children": [span.to_dict() for span in self.children],
            "markDefs": [md.to_dict() for md in self.mark_defs],
        }
        if self.list_item is not None:
            data["listItem"] = self.list_item.value
            data["level"] = self.level
        return data


@dataclass(frozen=True)
class CodeBlock:
    key: str
    code: str
    language: str | None = None
    block_type: ClassVar[str] = "code"

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"_type": self.block_type, "_key": self.key, "code": self.code}
        if self.language:
            data["language"] = self.language
        return data


@dataclass(frozen=True)
class ImageBlock:
    key: str
    url: str
    alt: str | None = None
    block_type: ClassVar[str] = "image"

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"_type": self.block_type, "_key": self.key, "url": self.url}
        if self.alt:
            data["alt"] = self.alt
        return data


@dataclass(frozen=True)
class SeparatorBlock:
    key: str
    block_type: ClassVar[str] = "separator"

    def to_dict(self) -> dict[str, Any]:
        return {"_type": self.block_type, "_key": self.key}


@dataclass(frozen=True)
class TableCell:
    key: str
    content: tuple[TextBlock, ...]

    def to_dict(self) -> dict[str, Any]:
        return {
            "_type": "tableCell",
            "_key": self.key,
            "content": [block.to_dict() for block in self.content],
        }


@dataclass(frozen=True)
class TableRow:
    key: str
    cells: tuple[TableCell, ...]

    def to_dict(self) -> dict[str, Any]:
        return {
            "_type": "tableRow",
            "_key": self.key,
            "cells": [cell.to_dict() for cell in self.cells],
        }


@dataclass(frozen=True)
class TableBlock:
    key: str
    rows: tuple[TableRow, ...]
    block_type: ClassVar[str] = "table"

    def to_dict(self) -> dict[str, Any]:
        return {
            "_type": self.block_type,
            "_key": self.key,
            "rows": [row.to_dict() for row in self.rows],
        }


@dataclass(frozen=True)
class HighlightBlock:
    key: str
    tone: str
    content: tuple[TextBlock, ...]
    title: str | None = None
    block_type: ClassVar[str] = "highlight"

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "_type": self.block_type,
            "_key": self.key,
            "tone": self.tone,
            "content": [block.to_dict() for block in self.content],
        }
        if self.title:
            data["title"] = self.title
        return data


PortableBlock = Union[
    TextBlock,
    CodeBlock,
    ImageBlock,
    SeparatorBlock,
    TableBlock,
    HighlightBlock,
]


def blocks_to_payload(blocks: list[PortableBlock] | tuple[PortableBlock, ...]) -> list[dict[str, Any]]:
    """Serialise a block sequence to Portable Text wire dicts."""
    return [block.to_dict() for block in blocks]


# ---------------------------------------------------------------------------
# Conversion results
# ---------------------------------------------------------------------------

@dataclass
class ConversionWarning:
    """A non-fatal issue encountered during conversion.

    Attributes
    ----------
    code:
        A machine-readable code (e.g. ``"PARSE_DEGRADED"``).
    message:
        A human-readable description.
    context:
        Structured diagnostic data (``line``, ``raw`` ...).
    """

    code: str
    message: str
    context: dict = field(default_factory=dict)


@dataclass
class ConversionResult:
    """Output of one synchronous Markdown-to-blocks conversion."""

    blocks: list[PortableBlock] = field(default_factory=list)
    warnings: list[ConversionWarning] = field(default_factory=list)

    def to_payload(self) -> list[dict[str, Any]]:
        return blocks_to_payload(self.blocks)


class ConversionStatus(str, Enum):
    """How a pipeline conversion resolved."""

    OK = "ok"
    """New blocks were produced and committed to the preview."""

    EMPTY = "empty"
    """The input was blank; the preview was cleared."""

    DEGRADED = "degraded"
    """Conversion failed; the previous valid blocks are returned (stale preview)."""

    FAILED = "failed"
    """Conversion failed and no previous valid blocks exist (error state)."""

    SUPERSEDED = "superseded"
    """A newer conversion was requested; this result was discarded."""


@dataclass
class ConversionOutcome:
    """Result of :meth:`ConversionPipeline.convert`.

    Attributes
    ----------
    status:
        See :class:`ConversionStatus`.
    blocks:
        The blocks the preview should show for this outcome.  For
        ``DEGRADED`` these are the last good blocks; for ``SUPERSEDED`` the
        discarded result (may be empty when the work was cancelled early).
    warnings:
        Parse warnings from the conversion.
    generation:
        The generation number the request was issued with.
    error:
        The conversion error for ``DEGRADED`` and ``FAILED`` outcomes.
    """

    status: ConversionStatus
    blocks: list[PortableBlock] = field(default_factory=list)
    warnings: list[ConversionWarning] = field(default_factory=list)
    generation: int = 0
    error: Exception | None = None

    @property
    def committed(self) -> bool:
        """Whether this outcome replaced the preview contents."""
        return self.status in (ConversionStatus.OK, ConversionStatus.EMPTY)


# ---------------------------------------------------------------------------
# Registry and sync
# ---------------------------------------------------------------------------

PORTABLE_TEXT_KIND = "portableText"


@dataclass(frozen=True)
class FieldRegistryEntry:
    """A (document type, field) pair allowed to receive converted blocks."""

    document_type: str
    field_name: str
    accepted_content_kind: str = PORTABLE_TEXT_KIND
    title: str = ""


class SyncOperation(str, Enum):
    CREATE = "create"
    UPDATE = "update"


@dataclass(frozen=True)
class SyncAttempt:
    """Audit record for one sync call.  Never mutated after creation.

    Attributes
    ----------
    operation:
        ``create`` when no document id was given, ``update`` otherwise.
    document_type, document_id, field_name:
        The sync target.  ``document_id`` is the created id on a successful
        create and ``None`` on a failed one.
    content_hash:
        Hash of the serialised block payload.
    success:
        Whether the call succeeded (including already-applied content).
    timestamp:
        When the attempt finished (UTC).
    error_code, error:
        The error code and message of a failed attempt.
    """

    operation: SyncOperation
    document_type: str
    document_id: str | None
    field_name: str
    content_hash: str
    success: bool
    timestamp: datetime
    error_code: str | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "operation": self.operation.value,
            "document_type": self.document_type,
            "document_id": self.document_id,
            "field_name": self.field_name,
            "content_hash": self.content_hash,
            "success": self.success,
            "timestamp": self.timestamp.isoformat(),
            "error_code": self.error_code,
            "error": self.error,
        }


@dataclass
class SyncResult:
    """Result of a successful :meth:`SyncEngine.sync` call.

    Attributes
    ----------
    operation:
        ``create`` or ``update``.
    document_id:
        The target document id (the new id after a create).
    revision:
        The document revision after the write, or the revision recorded by
        the earlier write when ``already_applied`` is true.
    content_hash:
        Hash of the serialised block payload.
    blocks_written:
        Number of top-level blocks in the payload.
    already_applied:
        ``True`` when identical content had already been synced to this
        target and no write was made.
    """

    operation: SyncOperation
    document_type: str
    document_id: str
    field_name: str
    revision: str | None
    content_hash: str
    blocks_written: int
    already_applied: bool = False
