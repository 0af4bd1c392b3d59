"""Assemble block tokens into the block AST.

The builder turns the flat token stream from :func:`tokenize` into the
closed set of :data:`~mdportable.models.BlockNode` variants:

- heading -> :class:`HeadingNode`
- paragraph -> :class:`ParagraphNode`, or :class:`ImageNode` when the
  paragraph holds a single image
- list -> one or more :class:`ListNode` trees; nesting is resolved with a
  whitespace-width stack
- code_block -> :class:`CodeNode` (an unterminated fence is closed at EOF
  with a warning)
- blockquote -> :class:`QuoteNode`, or :class:`HighlightNode` for
  ``> **tone**: title`` call-outs
- thematic_break -> :class:`SeparatorNode`
- table -> :class:`TableNode`

Inline tokens are resolved into :class:`InlineSpan` runs with a mark stack
and normalised: duplicate marks are dropped, empty spans removed and
neighbours with identical marks merged.
"""

from __future__ import annotations

import re
from collections.abc import Callable as _Callable

from mdportable.converter.tokenizer import tokenize_inline
from mdportable.errors import ErrorCode
from mdportable.models import (
    BlockNode,
    CodeNode,
    ConversionWarning,
    HeadingNode,
    HighlightNode,
    ImageNode,
    InlineSpan,
    ListItemNode,
    ListNode,
    Mark,
    MarkName,
    ParagraphNode,
    QuoteNode,
    SeparatorNode,
    TableNode,
    Token,
    TokenKind,
)

_HIGHLIGHT_RE = re.compile(
    r"^\*\*(?P<tone>info|warning|error|success|note)\*\*:?[ \t]*(?P<title>.*)$",
    re.IGNORECASE,
)

_MARK_KINDS: dict[TokenKind, MarkName] = {
    TokenKind.STRONG_MARK: MarkName.STRONG,
    TokenKind.EMPHASIS_MARK: MarkName.EM,
    TokenKind.CODE_MARK: MarkName.CODE,
    TokenKind.STRIKE_MARK: MarkName.STRIKE,
    TokenKind.LINK: MarkName.LINK,
}


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def build(
    tokens: list[Token],
    *,
    detect_highlights: bool = True,
    warnings: list[ConversionWarning] | None = None,
) -> list[BlockNode]:
    """Build the block AST from block tokens.

    Parameters
    ----------
    tokens:
        Block tokens from :func:`~mdportable.converter.tokenizer.tokenize`.
    detect_highlights:
        Turn ``> **info**: ...`` style blockquotes into highlight nodes.
    warnings:
        Optional list that receives ``PARSE_DEGRADED`` and
        ``UNTERMINATED_FENCE`` warnings.

    Returns
    -------
    list[BlockNode]
        Top-level nodes in document order.
    """
    ctx = _BuildContext(detect_highlights)
    for token in tokens:
        handler = _TOKEN_HANDLERS.get(token.kind)
        if handler is None:
            # Inline tokens at block level would break the tree shape.
            ctx.add_warning(
                ErrorCode.PARSE_DEGRADED,
                f"Token '{token.kind.value}' is not a block token and was kept as text.",
                line=token.line,
            )
            spans = normalize_spans([InlineSpan(token.raw)])
            if spans:
                ctx.nodes.append(ParagraphNode(children=spans))
            continue
        handler(token, ctx)
    if warnings is not None:
        warnings.extend(ctx.warnings)
    return ctx.nodes


class _BuildContext:
    """Mutable accumulator for one build pass."""

    __slots__ = ("detect_highlights", "nodes", "warnings")

    def __init__(self, detect_highlights: bool) -> None:
        self.detect_highlights = detect_highlights
        self.nodes: list[BlockNode] = []
        self.warnings: list[ConversionWarning] = []

    def add_warning(self, code: str, message: str, **context: object) -> None:
        self.warnings.append(ConversionWarning(
            code=str(code.value if isinstance(code, ErrorCode) else code),
            message=message,
            context=dict(context),
        ))


# ---------------------------------------------------------------------------
# Inline spans
# ---------------------------------------------------------------------------

def build_spans(tokens: tuple[Token, ...] | list[Token]) -> tuple[InlineSpan, ...]:
    """Resolve inline tokens into normalised spans.

    >>> from mdportable.converter.tokenizer import tokenize_inline
    >>> [(s.text, [m.name.value for m in s.marks]) for s in build_spans(tokenize_inline("a **b**"))]
    [('a ', []), ('b', ['strong'])]
    """
    stack: list[Mark] = []
    spans: list[InlineSpan] = []

    for token in tokens:
        kind = token.kind
        if kind in _MARK_KINDS:
            name = _MARK_KINDS[kind]
            if token.attrs.get("closing"):
                for i in range(len(stack) - 1, -1, -1):
                    if stack[i].name == name:
                        del stack[i]
                        break
            else:
                href = token.attrs.get("href") if name == MarkName.LINK else None
                stack.append(Mark(name=name, href=href))
        elif kind in (TokenKind.TEXT, TokenKind.LINE_BREAK):
            spans.append(InlineSpan(token.raw, tuple(stack)))
        elif kind == TokenKind.IMAGE:
            # An image inside running text is kept as its alt text.
            spans.append(InlineSpan(token.attrs.get("alt") or token.attrs.get("src", ""), tuple(stack)))

    return normalize_spans(spans)


def _dedupe_marks(marks: tuple[Mark, ...]) -> tuple[Mark, ...]:
    seen: list[Mark] = []
    for mark in marks:
        if mark not in seen:
            seen.append(mark)
    return tuple(seen)


def normalize_spans(spans: list[InlineSpan]) -> tuple[InlineSpan, ...]:
    """Drop empty spans, de-duplicate marks and merge equal neighbours."""
    result: list[InlineSpan] = []
    for span in spans:
        if not span.text:
            continue
        marks = _dedupe_marks(span.marks)
        if result and result[-1].marks == marks:
            result[-1] = InlineSpan(result[-1].text + span.text, marks)
        else:
            result.append(InlineSpan(span.text, marks))
    return tuple(result)


def _is_blank_text(token: Token) -> bool:
    return token.kind == TokenKind.TEXT and not token.raw.strip()


# ---------------------------------------------------------------------------
# Block handlers
# ---------------------------------------------------------------------------

def _build_heading(token: Token, ctx: _BuildContext) -> None:
    spans = build_spans(token.children)
    if spans:
        ctx.nodes.append(HeadingNode(level=token.level, children=spans))


def _build_paragraph(token: Token, ctx: _BuildContext) -> None:
    degraded = token.attrs.get("degraded")
    if degraded:
        ctx.add_warning(
            ErrorCode.PARSE_DEGRADED,
            f"Unrecognised block syntax ({degraded}) kept as paragraph text.",
            line=token.line,
            reason=degraded,
            raw=token.raw[:200],
        )

    meaningful = [t for t in token.children if not _is_blank_text(t)]
    if len(meaningful) == 1 and meaningful[0].kind == TokenKind.IMAGE:
        image = meaningful[0]
        ctx.nodes.append(ImageNode(
            src=image.attrs.get("src", ""),
            alt=image.attrs.get("alt", ""),
            title=image.attrs.get("title"),
        ))
        return

    spans = build_spans(token.children)
    if spans:
        ctx.nodes.append(ParagraphNode(children=spans))


def _build_code_block(token: Token, ctx: _BuildContext) -> None:
    if not token.attrs.get("terminated", True):
        ctx.add_warning(
            ErrorCode.UNTERMINATED_FENCE,
            "Code fence was not closed; it was closed at end of input.",
            line=token.line,
            fence=token.attrs.get("fence", "```"),
        )
    ctx.nodes.append(CodeNode(code=token.raw, language=token.attrs.get("info") or None))


def _build_separator(token: Token, ctx: _BuildContext) -> None:
    ctx.nodes.append(SeparatorNode())


def _build_blockquote(token: Token, ctx: _BuildContext) -> None:
    paragraphs = list(token.children)

    if ctx.detect_highlights and paragraphs:
        first_line, _, rest = paragraphs[0].raw.partition("\n")
        m = _HIGHLIGHT_RE.match(first_line.strip())
        if m:
            remaining = ([rest] if rest.strip() else []) + [p.raw for p in paragraphs[1:]]
            content = tuple(
                spans for spans in (build_spans(tokenize_inline(text)) for text in remaining)
                if spans
            )
            title = m.group("title").strip() or None
            ctx.nodes.append(HighlightNode(
                tone=m.group("tone").lower(),
                title=title,
                paragraphs=content,
            ))
            return

    content = tuple(spans for spans in (build_spans(p.children) for p in paragraphs) if spans)
    if content:
        ctx.nodes.append(QuoteNode(paragraphs=content))


def _build_table(token: Token, ctx: _BuildContext) -> None:
    rows = tuple(
        tuple(build_spans(cell.children) for cell in row.children)
        for row in token.children
    )
    ctx.nodes.append(TableNode(rows=rows))


# ---------------------------------------------------------------------------
# Lists
# ---------------------------------------------------------------------------

class _OpenItem:
    __slots__ = ("spans", "sublists")

    def __init__(self, spans: tuple[InlineSpan, ...]) -> None:
        self.spans = spans
        self.sublists: list[_OpenList] = []

    def freeze(self) -> ListItemNode:
        return ListItemNode(
            children=self.spans,
            sublists=tuple(sub.freeze() for sub in self.sublists),
        )


class _OpenList:
    __slots__ = ("depth", "indent", "items", "ordered", "parent")

    def __init__(self, indent: int, ordered: bool, depth: int, parent: _OpenItem | None) -> None:
        self.indent = indent
        self.ordered = ordered
        self.depth = depth
        self.parent = parent
        self.items: list[_OpenItem] = []

    def freeze(self) -> ListNode:
        return ListNode(
            ordered=self.ordered,
            items=tuple(item.freeze() for item in self.items),
            depth=self.depth,
        )


def _build_list(token: Token, ctx: _BuildContext) -> None:
    """Resolve list nesting with a stack of open lists keyed by indent width.

    * A deeper indent than the innermost open list opens a sublist under
      that list's last item.
    * A shallower indent pops lists until one with an indent no deeper than
      the item remains; an indent below the root closes every open list and
      starts a new root list.
    * Switching between ordered and unordered at the same level starts a new
      sibling list.
    """
    roots: list[_OpenList] = []
    stack: list[_OpenList] = []

    def open_list(indent: int, ordered: bool, parent: _OpenItem | None, depth: int) -> _OpenList:
        new = _OpenList(indent, ordered, depth, parent)
        if parent is None:
            roots.append(new)
        else:
            parent.sublists.append(new)
        stack.append(new)
        return new

    for item_token in token.children:
        indent = item_token.level
        ordered = bool(item_token.attrs.get("ordered"))
        item = _OpenItem(build_spans(item_token.children))

        while stack and stack[-1].indent > indent:
            stack.pop()

        if not stack:
            current = open_list(indent, ordered, None, 0)
        else:
            top = stack[-1]
            if indent > top.indent:
                current = open_list(indent, ordered, top.items[-1], top.depth + 1)
            elif ordered != top.ordered:
                stack.pop()
                current = open_list(indent, ordered, top.parent, top.depth)
            else:
                current = top

        current.items.append(item)

    for root in roots:
        ctx.nodes.append(root.freeze())


# ---------------------------------------------------------------------------
# Handler dispatch table
# ---------------------------------------------------------------------------

_TokenHandler = _Callable[[Token, _BuildContext], None]

_TOKEN_HANDLERS: dict[TokenKind, _TokenHandler] = {
    TokenKind.HEADING: _build_heading,
    TokenKind.PARAGRAPH: _build_paragraph,
    TokenKind.LIST: _build_list,
    TokenKind.CODE_BLOCK: _build_code_block,
    TokenKind.BLOCKQUOTE: _build_blockquote,
    TokenKind.THEMATIC_BREAK: _build_separator,
    TokenKind.TABLE: _build_table,
}
