"""Split Markdown into block tokens, then scan inline content.

Two passes:

1. **Block pass** -- a line scanner that fixes block boundaries: ATX
   headings, fenced code, blockquotes, thematic breaks, bullet and ordered
   list items (nesting width taken from leading whitespace), GFM pipe
   tables and paragraphs.  Anything it does not recognise stays paragraph
   text; tokens for syntax that looked like a block marker but did not
   parse carry ``attrs["degraded"]`` so the AST builder can report it.
2. **Inline pass** -- every text-bearing block is handed to mistune's inline
   parser on its own, so emphasis, code spans and links can never run across
   a block boundary.  The nested mistune tree is flattened into paired
   open/close mark tokens.

Both passes are pure functions of the input text.
"""

from __future__ import annotations

import re

import mistune

from mdportable.models import Token, TokenKind

# ---------------------------------------------------------------------------
# Block-level patterns
# ---------------------------------------------------------------------------

_FENCE_OPEN_RE = re.compile(r"^(?P<indent> {0,3})(?P<fence>`{3,}|~{3,})(?P<info>.*)$")
_FENCE_CLOSE_RE = re.compile(r"^ {0,3}(?P<fence>`{3,}|~{3,})[ \t]*$")
_HEADING_RE = re.compile(r"^ {0,3}(?P<hashes>#{1,6})(?:[ \t]+(?P<text>.*?))?(?:[ \t]+#+)?[ \t]*$")
_HEADING_OVERFLOW_RE = re.compile(r"^ {0,3}#{7,}(?:[ \t]|$)")
_THEMATIC_BREAK_RE = re.compile(r"^ {0,3}(?P<char>[-*_])(?:[ \t]*(?P=char)){2,}[ \t]*$")
_BLOCKQUOTE_RE = re.compile(r"^ {0,3}>[ ]?(?P<text>.*)$")
_LIST_ITEM_RE = re.compile(
    r"^(?P<indent>[ \t]*)(?P<marker>[-*+]|\d{1,9}[.)])(?:[ \t]+(?P<text>.*)|[ \t]*$)"
)
_HTML_BLOCK_RE = re.compile(r"^ {0,3}<(?:[A-Za-z][A-Za-z0-9-]*[\s/>]|[A-Za-z][A-Za-z0-9-]*$|!--|/[A-Za-z])")
_TABLE_DELIMITER_RE = re.compile(r"^ {0,3}\|?[ \t]*:?-+:?[ \t]*(?:\|[ \t]*:?-+:?[ \t]*)*\|?[ \t]*$")

_TAB_WIDTH = 4


def _indent_width(whitespace: str) -> int:
    """Column width of leading whitespace, tabs counted to the next stop."""
    width = 0
    for ch in whitespace:
        if ch == "\t":
            width += _TAB_WIDTH - (width % _TAB_WIDTH)
        else:
            width += 1
    return width


def _is_blank(line: str) -> bool:
    return not line.strip()


def _split_table_row(line: str) -> list[str]:
    """Split a pipe-table row into stripped cell texts (``\\|`` is literal)."""
    row = line.strip()
    if row.startswith("|"):
        row = row[1:]
    if row.endswith("|") and not row.endswith("\\|"):
        row = row[:-1]
    cells: list[str] = []
    current: list[str] = []
    i = 0
    while i < len(row):
        ch = row[i]
        if ch == "\\" and i + 1 < len(row) and row[i + 1] == "|":
            current.append("|")
            i += 2
            continue
        if ch == "|":
            cells.append("".join(current).strip())
            current = []
        else:
            current.append(ch)
        i += 1
    cells.append("".join(current).strip())
    return cells


# ---------------------------------------------------------------------------
# Inline pass
# ---------------------------------------------------------------------------

_MARKDOWN = mistune.create_markdown(
    renderer="ast",
    plugins=["strikethrough", "url"],
)

_PAIRED_INLINE: dict[str, TokenKind] = {
    "strong": TokenKind.STRONG_MARK,
    "emphasis": TokenKind.EMPHASIS_MARK,
    "strikethrough": TokenKind.STRIKE_MARK,
}


def _plain_text(nodes: list[dict]) -> str:
    parts: list[str] = []
    for node in nodes:
        if "children" in node:
            parts.append(_plain_text(node["children"]))
        else:
            parts.append(node.get("raw", ""))
    return "".join(parts)


def _flatten_inline(nodes: list[dict], out: list[Token]) -> None:
    """Flatten mistune's nested inline tree into paired mark tokens."""
    for node in nodes:
        node_type = node.get("type", "")
        attrs = node.get("attrs") or {}

        if node_type == "text":
            raw = node.get("raw", "")
            if raw:
                out.append(Token(TokenKind.TEXT, raw=raw))

        elif node_type in _PAIRED_INLINE:
            kind = _PAIRED_INLINE[node_type]
            out.append(Token(kind, attrs={"closing": False}))
            _flatten_inline(node.get("children", []), out)
            out.append(Token(kind, attrs={"closing": True}))

        elif node_type == "codespan":
            out.append(Token(TokenKind.CODE_MARK, attrs={"closing": False}))
            out.append(Token(TokenKind.TEXT, raw=node.get("raw", "")))
            out.append(Token(TokenKind.CODE_MARK, attrs={"closing": True}))

        elif node_type == "link":
            out.append(Token(
                TokenKind.LINK,
                attrs={"closing": False, "href": attrs.get("url", ""), "title": attrs.get("title")},
            ))
            _flatten_inline(node.get("children", []), out)
            out.append(Token(TokenKind.LINK, attrs={"closing": True}))

        elif node_type == "image":
            alt = _plain_text(node.get("children", []))
            out.append(Token(
                TokenKind.IMAGE,
                raw=alt,
                attrs={"src": attrs.get("url", ""), "alt": alt, "title": attrs.get("title")},
            ))

        elif node_type == "softbreak":
            out.append(Token(TokenKind.TEXT, raw="\n"))

        elif node_type == "linebreak":
            out.append(Token(TokenKind.LINE_BREAK, raw="\n"))

        elif "children" in node:
            _flatten_inline(node["children"], out)

        elif node.get("raw"):
            # inline_html and anything else mistune hands back verbatim
            out.append(Token(TokenKind.TEXT, raw=node["raw"]))


def tokenize_inline(text: str) -> tuple[Token, ...]:
    """Scan one block's text into inline tokens.

    >>> [t.kind.value for t in tokenize_inline("a **b**")]
    ['text', 'strong_mark', 'text', 'strong_mark']
    """
    if not text:
        return ()
    nodes = _MARKDOWN.inline(text, {})
    out: list[Token] = []
    _flatten_inline(nodes, out)
    return tuple(out)


# ---------------------------------------------------------------------------
# Block pass
# ---------------------------------------------------------------------------

class _BlockScanner:
    """Walk the source lines once, emitting block tokens in order."""

    def __init__(self, text: str, *, enable_tables: bool = True) -> None:
        self.lines = text.replace("\r\n", "\n").replace("\r", "\n").split("\n")
        self.pos = 0
        self.tokens: list[Token] = []
        self.enable_tables = enable_tables

    # -- dispatch ----------------------------------------------------------

    def scan(self) -> list[Token]:
        while self.pos < len(self.lines):
            line = self.lines[self.pos]
            if _is_blank(line):
                self.pos += 1
                continue
            self.tokens.append(self._scan_block(line))
        return self.tokens

    def _scan_block(self, line: str) -> Token:
        if _FENCE_OPEN_RE.match(line) and self._fence_info_ok(line):
            return self._scan_fence()
        if _HEADING_RE.match(line):
            return self._scan_heading()
        if _THEMATIC_BREAK_RE.match(line):
            start = self.pos
            self.pos += 1
            return Token(TokenKind.THEMATIC_BREAK, raw=line, line=start)
        if _BLOCKQUOTE_RE.match(line):
            return self._scan_blockquote()
        if _LIST_ITEM_RE.match(line):
            return self._scan_list()
        if self.enable_tables and self._at_table():
            return self._scan_table()
        return self._scan_paragraph()

    @staticmethod
    def _fence_info_ok(line: str) -> bool:
        m = _FENCE_OPEN_RE.match(line)
        # Backtick fences may not carry backticks in their info string.
        return m is not None and not (m.group("fence")[0] == "`" and "`" in m.group("info"))

    def _starts_block(self, line: str) -> bool:
        """Whether *line* opens a block that interrupts a paragraph."""
        return bool(
            (_FENCE_OPEN_RE.match(line) and self._fence_info_ok(line))
            or _HEADING_RE.match(line)
            or _THEMATIC_BREAK_RE.match(line)
            or _BLOCKQUOTE_RE.match(line)
            or _LIST_ITEM_RE.match(line)
        )

    # -- fenced code -------------------------------------------------------

    def _scan_fence(self) -> Token:
        start = self.pos
        m = _FENCE_OPEN_RE.match(self.lines[start])
        assert m is not None
        fence = m.group("fence")
        indent = len(m.group("indent"))
        info_words = m.group("info").strip().split()
        info = info_words[0] if info_words else ""

        body: list[str] = []
        terminated = False
        self.pos += 1
        while self.pos < len(self.lines):
            line = self.lines[self.pos]
            close = _FENCE_CLOSE_RE.match(line)
            if close and close.group("fence")[0] == fence[0] and len(close.group("fence")) >= len(fence):
                terminated = True
                self.pos += 1
                break
            # Strip up to the opening fence's indentation from content lines.
            strip = min(indent, len(line) - len(line.lstrip(" ")))
            body.append(line[strip:])
            self.pos += 1

        return Token(
            TokenKind.CODE_BLOCK,
            raw="\n".join(body),
            attrs={"info": info, "fence": fence, "terminated": terminated},
            line=start,
        )

    # -- headings ----------------------------------------------------------

    def _scan_heading(self) -> Token:
        start = self.pos
        line = self.lines[start]
        m = _HEADING_RE.match(line)
        assert m is not None
        text = (m.group("text") or "").strip()
        self.pos += 1
        return Token(
            TokenKind.HEADING,
            raw=line,
            level=len(m.group("hashes")),
            children=tokenize_inline(text),
            line=start,
        )

    # -- blockquotes -------------------------------------------------------

    def _scan_blockquote(self) -> Token:
        start = self.pos
        inner: list[str] = []
        while self.pos < len(self.lines):
            line = self.lines[self.pos]
            m = _BLOCKQUOTE_RE.match(line)
            if m:
                inner.append(m.group("text"))
            elif not _is_blank(line) and inner and not _is_blank(inner[-1]) and not self._starts_block(line):
                # Lazy continuation of the quoted paragraph.
                inner.append(line.strip())
            else:
                break
            self.pos += 1

        paragraphs: list[Token] = []
        chunk: list[str] = []
        for text in inner + [""]:
            if _is_blank(text):
                if chunk:
                    joined = "\n".join(chunk)
                    paragraphs.append(Token(
                        TokenKind.PARAGRAPH,
                        raw=joined,
                        children=tokenize_inline(joined),
                    ))
                    chunk = []
            else:
                chunk.append(text.strip())

        return Token(
            TokenKind.BLOCKQUOTE,
            raw="\n".join(self.lines[start:self.pos]),
            children=tuple(paragraphs),
            line=start,
        )

    # -- lists -------------------------------------------------------------

    def _scan_list(self) -> Token:
        start = self.pos
        items: list[dict] = []

        while self.pos < len(self.lines):
            line = self.lines[self.pos]
            m = _LIST_ITEM_RE.match(line)
            if m and not _THEMATIC_BREAK_RE.match(line):
                marker = m.group("marker")
                items.append({
                    "indent": _indent_width(m.group("indent")),
                    "marker": marker,
                    "lines": [(m.group("text") or "").strip()],
                    "line": self.pos,
                })
                self.pos += 1
                continue

            if _is_blank(line):
                nxt = self._next_nonblank(self.pos)
                if nxt is None:
                    self.pos = len(self.lines)
                    break
                next_line = self.lines[nxt]
                next_item = _LIST_ITEM_RE.match(next_line)
                if next_item and not _THEMATIC_BREAK_RE.match(next_line):
                    self.pos = nxt
                    continue
                if items and self._is_item_continuation(next_line, items[-1]):
                    items[-1]["lines"].append("")
                    self.pos = nxt
                    continue
                break

            if self._starts_block(line) and _indent_width(line[: len(line) - len(line.lstrip())]) < 2:
                break

            # Lazy or indented continuation of the last item.
            items[-1]["lines"].append(line.strip())
            self.pos += 1

        item_tokens: list[Token] = []
        for item in items:
            marker = item["marker"]
            ordered = marker[-1] in ".)"
            text = "\n".join(item["lines"]).strip("\n")
            attrs: dict = {"ordered": ordered, "marker": marker}
            if ordered:
                attrs["start"] = int(marker[:-1])
            item_tokens.append(Token(
                TokenKind.LIST_ITEM,
                raw=text,
                level=item["indent"],
                attrs=attrs,
                children=tokenize_inline(text),
                line=item["line"],
            ))

        return Token(
            TokenKind.LIST,
            raw="\n".join(self.lines[start:self.pos]).rstrip("\n"),
            children=tuple(item_tokens),
            line=start,
        )

    @staticmethod
    def _is_item_continuation(line: str, item: dict) -> bool:
        leading = line[: len(line) - len(line.lstrip())]
        return _indent_width(leading) >= item["indent"] + 2

    def _next_nonblank(self, pos: int) -> int | None:
        while pos < len(self.lines):
            if not _is_blank(self.lines[pos]):
                return pos
            pos += 1
        return None

    # -- tables ------------------------------------------------------------

    def _at_table(self) -> bool:
        if self.pos + 1 >= len(self.lines):
            return False
        header, delimiter = self.lines[self.pos], self.lines[self.pos + 1]
        if "|" not in header or not _TABLE_DELIMITER_RE.match(delimiter):
            return False
        if "|" not in delimiter and not header.strip().startswith("|"):
            return False
        return len(_split_table_row(header)) == len(_split_table_row(delimiter))

    def _scan_table(self) -> Token:
        start = self.pos
        width = len(_split_table_row(self.lines[start]))
        rows: list[Token] = [self._table_row(self.lines[start], width, header=True)]
        self.pos += 2
        while self.pos < len(self.lines):
            line = self.lines[self.pos]
            if _is_blank(line) or "|" not in line or self._starts_block(line):
                break
            rows.append(self._table_row(line, width, header=False))
            self.pos += 1
        return Token(
            TokenKind.TABLE,
            raw="\n".join(self.lines[start:self.pos]),
            children=tuple(rows),
            line=start,
        )

    @staticmethod
    def _table_row(line: str, width: int, *, header: bool) -> Token:
        cells = _split_table_row(line)
        # Short rows are padded, long rows truncated, to the header width.
        cells = (cells + [""] * width)[:width]
        return Token(
            TokenKind.TABLE_ROW,
            raw=line,
            attrs={"header": header},
            children=tuple(
                Token(TokenKind.TABLE_CELL, raw=cell, children=tokenize_inline(cell))
                for cell in cells
            ),
        )

    # -- paragraphs --------------------------------------------------------

    def _scan_paragraph(self) -> Token:
        start = self.pos
        lines: list[str] = [self.lines[start].strip()]
        degraded: str | None = None
        if _HEADING_OVERFLOW_RE.match(self.lines[start]):
            degraded = "heading_level_overflow"
        elif _HTML_BLOCK_RE.match(self.lines[start]):
            degraded = "html_block"

        self.pos += 1
        while self.pos < len(self.lines):
            line = self.lines[self.pos]
            if _is_blank(line) or self._starts_block(line):
                break
            lines.append(line.strip())
            self.pos += 1

        text = "\n".join(lines)
        attrs: dict = {}
        if degraded:
            attrs["degraded"] = degraded
        return Token(
            TokenKind.PARAGRAPH,
            raw=text,
            attrs=attrs,
            children=tokenize_inline(text),
            line=start,
        )


def tokenize(text: str, *, enable_tables: bool = True) -> list[Token]:
    """Split *text* into an ordered sequence of block tokens.

    Text-bearing tokens (headings, paragraphs, list items, quoted
    paragraphs, table cells) carry their inline tokens as ``children``.

    Parameters
    ----------
    text:
        Raw Markdown source.
    enable_tables:
        Recognise GFM pipe tables.  When ``False`` table lines stay
        paragraph text.

    Returns
    -------
    list[Token]
        Block tokens in document order.  Never raises on malformed input.

    Examples
    --------
    >>> [t.kind.value for t in tokenize("# Title\\n\\nBody")]
    ['heading', 'paragraph']
    """
    return _BlockScanner(text, enable_tables=enable_tables).scan()
