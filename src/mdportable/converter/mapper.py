"""Map the block AST onto Portable Text blocks.

Rules:

- Every top-level node becomes exactly one block, except lists: each list
  item (at any depth) becomes its own ``block`` with ``listItem`` and a
  1-based ``level``.  The list grouping is implicit; consecutive list
  blocks are read as one list by the content store.
- Inline spans become ``children``.  Link marks are lifted into the
  block's ``markDefs`` and referenced from spans by key.
- Keys are derived from the block's output position and a hash of its
  content, never from counters shared across calls or the clock, so the
  same AST always yields byte-identical blocks.

Every mapped block is validated before it is returned; an orphaned mark
reference or a missing key raises :class:`MapperInvariantViolation`.
"""

from __future__ import annotations

import re
from collections.abc import Callable as _Callable
from typing import Any

from mdportable.errors import MapperInvariantViolation
from mdportable.models import (
    DECORATORS,
    BlockNode,
    BlockStyle,
    CodeBlock,
    CodeNode,
    HeadingNode,
    HighlightBlock,
    HighlightNode,
    ImageBlock,
    ImageNode,
    InlineSpan,
    ListKind,
    ListNode,
    MarkDef,
    MarkName,
    ParagraphNode,
    PortableBlock,
    QuoteNode,
    SeparatorBlock,
    SeparatorNode,
    Span,
    TableBlock,
    TableCell,
    TableNode,
    TableRow,
    TextBlock,
)
from mdportable.utils.hashing import hash_json, stable_key

# ---------------------------------------------------------------------------
# Code language normalisation
# ---------------------------------------------------------------------------

_LANGUAGE_ALIASES: dict[str, str] = {
    "py": "python",
    "python3": "python",
    "js": "javascript",
    "mjs": "javascript",
    "jsx": "jsx",
    "ts": "typescript",
    "tsx": "tsx",
    "sh": "sh",
    "shell": "sh",
    "bash": "sh",
    "zsh": "sh",
    "console": "sh",
    "rb": "ruby",
    "rs": "rust",
    "yml": "yaml",
    "md": "markdown",
    "cs": "csharp",
    "c#": "csharp",
    "cpp": "cpp",
    "c++": "cpp",
    "golang": "go",
    "kt": "kotlin",
    "htm": "html",
    "xhtml": "html",
    "jsonc": "json",
    "dockerfile": "docker",
    "ps1": "powershell",
    "tex": "latex",
    "text": "text",
    "txt": "text",
    "plaintext": "text",
}

_LANGUAGE_RE = re.compile(r"^[a-z0-9#+._-]+$")


def normalize_language(info: str | None) -> str | None:
    """Map a fence info word to the content store's language name.

    Unknown but well-formed names pass through lower-cased; an empty or
    malformed info string yields ``None``.

    >>> normalize_language("Py")
    'python'
    >>> normalize_language("elixir")
    'elixir'
    >>> normalize_language("") is None
    True
    """
    if not info:
        return None
    lang = info.strip().lower()
    if not lang:
        return None
    lang = lang.split()[0]
    if lang in _LANGUAGE_ALIASES:
        return _LANGUAGE_ALIASES[lang]
    return lang if _LANGUAGE_RE.match(lang) else None


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def map_blocks(ast: list[BlockNode]) -> list[PortableBlock]:
    """Map block nodes to Portable Text blocks.

    Parameters
    ----------
    ast:
        Top-level nodes from :func:`~mdportable.converter.ast_builder.build`.

    Returns
    -------
    list[PortableBlock]
        Blocks in document order with deterministic keys.

    Raises
    ------
    MapperInvariantViolation
        If a node variant is unknown or a produced block fails validation.
    """
    ctx = _MapContext()
    for node in ast:
        handler = _NODE_MAPPERS.get(type(node))
        if handler is None:
            raise MapperInvariantViolation(
                f"No mapping for node type '{type(node).__name__}'.",
                context={"node_type": type(node).__name__},
            )
        handler(node, ctx)
    for block in ctx.blocks:
        validate_block(block)
    return ctx.blocks


class _MapContext:
    """Output accumulator; ``position`` is the index of the next block."""

    __slots__ = ("blocks",)

    def __init__(self) -> None:
        self.blocks: list[PortableBlock] = []

    @property
    def position(self) -> int:
        return len(self.blocks)

    def key_for(self, *signature: Any) -> str:
        return stable_key(self.position, hash_json(list(signature)))


# ---------------------------------------------------------------------------
# Spans and text blocks
# ---------------------------------------------------------------------------

def _span_signature(spans: tuple[InlineSpan, ...]) -> list:
    return [[s.text, [[m.name.value, m.href] for m in s.marks]] for s in spans]


def text_block(
    key: str,
    spans: tuple[InlineSpan, ...],
    style: BlockStyle = BlockStyle.NORMAL,
    *,
    list_item: ListKind | None = None,
    level: int | None = None,
) -> TextBlock:
    """Build a ``block`` from inline spans, lifting links into ``markDefs``.

    Identical link targets inside one block share a single mark definition.
    """
    mark_defs: list[MarkDef] = []
    def_keys: dict[str, str] = {}
    children: list[Span] = []

    for index, span in enumerate(spans):
        marks: list[str] = []
        for mark in span.marks:
            if mark.name == MarkName.LINK:
                href = mark.href or ""
                if href not in def_keys:
                    def_key = stable_key(key, "link", len(mark_defs), href)
                    def_keys[href] = def_key
                    mark_defs.append(MarkDef(key=def_key, href=href))
                marks.append(def_keys[href])
            else:
                marks.append(mark.name.value)
        children.append(Span(key=stable_key(key, "span", index), text=span.text, marks=tuple(marks)))

    return TextBlock(
        key=key,
        style=style,
        children=tuple(children),
        mark_defs=tuple(mark_defs),
        list_item=list_item,
        level=level,
    )


# ---------------------------------------------------------------------------
# Node mappers
# ---------------------------------------------------------------------------

def _map_heading(node: HeadingNode, ctx: _MapContext) -> None:
    style = BlockStyle.heading(min(max(node.level, 1), 6))
    key = ctx.key_for("heading", node.level, _span_signature(node.children))
    ctx.blocks.append(text_block(key, node.children, style))


def _map_paragraph(node: ParagraphNode, ctx: _MapContext) -> None:
    key = ctx.key_for("paragraph", _span_signature(node.children))
    ctx.blocks.append(text_block(key, node.children))


def _map_list(node: ListNode, ctx: _MapContext) -> None:
    kind = ListKind.ORDERED if node.ordered else ListKind.UNORDERED
    level = node.depth + 1
    for item in node.items:
        if item.children:
            key = ctx.key_for("list_item", kind.value, level, _span_signature(item.children))
            ctx.blocks.append(text_block(key, item.children, list_item=kind, level=level))
        for sublist in item.sublists:
            _map_list(sublist, ctx)


def _map_code(node: CodeNode, ctx: _MapContext) -> None:
    language = normalize_language(node.language)
    key = ctx.key_for("code", language, node.code)
    ctx.blocks.append(CodeBlock(key=key, code=node.code, language=language))


def _map_quote(node: QuoteNode, ctx: _MapContext) -> None:
    # Quoted paragraphs collapse into one block separated by blank lines.
    spans: list[InlineSpan] = []
    for index, paragraph in enumerate(node.paragraphs):
        if index:
            spans.append(InlineSpan("\n\n"))
        spans.extend(paragraph)
    from mdportable.converter.ast_builder import normalize_spans

    merged = normalize_spans(spans)
    key = ctx.key_for("quote", _span_signature(merged))
    ctx.blocks.append(text_block(key, merged, BlockStyle.QUOTE))


def _map_highlight(node: HighlightNode, ctx: _MapContext) -> None:
    key = ctx.key_for(
        "highlight", node.tone, node.title,
        [_span_signature(p) for p in node.paragraphs],
    )
    content = tuple(
        text_block(stable_key(key, "content", index), paragraph)
        for index, paragraph in enumerate(node.paragraphs)
    )
    ctx.blocks.append(HighlightBlock(key=key, tone=node.tone, title=node.title, content=content))


def _map_image(node: ImageNode, ctx: _MapContext) -> None:
    key = ctx.key_for("image", node.src, node.alt)
    ctx.blocks.append(ImageBlock(key=key, url=node.src, alt=node.alt or None))


def _map_separator(node: SeparatorNode, ctx: _MapContext) -> None:
    ctx.blocks.append(SeparatorBlock(key=ctx.key_for("separator")))


def _map_table(node: TableNode, ctx: _MapContext) -> None:
    key = ctx.key_for("table", [[_span_signature(cell) for cell in row] for row in node.rows])
    rows: list[TableRow] = []
    for r, row in enumerate(node.rows):
        row_key = stable_key(key, "row", r)
        cells: list[TableCell] = []
        for c, cell in enumerate(row):
            cell_key = stable_key(row_key, "cell", c)
            content = (text_block(stable_key(cell_key, "block"), cell),) if cell else ()
            cells.append(TableCell(key=cell_key, content=content))
        rows.append(TableRow(key=row_key, cells=tuple(cells)))
    ctx.blocks.append(TableBlock(key=key, rows=tuple(rows)))


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

def _validate_text_block(block: TextBlock) -> None:
    def_keys = [md.key for md in block.mark_defs]
    if len(set(def_keys)) != len(def_keys):
        raise MapperInvariantViolation(
            f"Block '{block.key}' has duplicate mark definition keys.",
            context={"block_key": block.key, "mark_defs": def_keys},
        )
    span_keys = [span.key for span in block.children]
    if len(set(span_keys)) != len(span_keys):
        raise MapperInvariantViolation(
            f"Block '{block.key}' has duplicate span keys.",
            context={"block_key": block.key},
        )
    known = set(def_keys)
    for span in block.children:
        for mark in span.marks:
            if mark not in DECORATORS and mark not in known:
                raise MapperInvariantViolation(
                    f"Span '{span.key}' references mark '{mark}' with no definition.",
                    context={"block_key": block.key, "mark": mark},
                )
    if block.list_item is not None and (block.level is None or block.level < 1):
        raise MapperInvariantViolation(
            f"List block '{block.key}' has no level.",
            context={"block_key": block.key},
        )


def validate_block(block: PortableBlock) -> None:
    """Check one block's self-containment; raise on the first problem."""
    if not block.key:
        raise MapperInvariantViolation(
            f"{type(block).__name__} has an empty key.",
            context={"node_type": type(block).__name__},
        )
    if isinstance(block, TextBlock):
        _validate_text_block(block)
    elif isinstance(block, HighlightBlock):
        for inner in block.content:
            validate_block(inner)
    elif isinstance(block, TableBlock):
        for row in block.rows:
            for cell in row.cells:
                for inner in cell.content:
                    validate_block(inner)


# ---------------------------------------------------------------------------
# Mapper dispatch table
# ---------------------------------------------------------------------------

_NodeMapper = _Callable[[Any, _MapContext], None]

_NODE_MAPPERS: dict[type, _NodeMapper] = {
    HeadingNode: _map_heading,
    ParagraphNode: _map_paragraph,
    ListNode: _map_list,
    CodeNode: _map_code,
    QuoteNode: _map_quote,
    HighlightNode: _map_highlight,
    ImageNode: _map_image,
    SeparatorNode: _map_separator,
    TableNode: _map_table,
}
