"""Tests for the block AST builder."""

from __future__ import annotations

from mdportable.converter.ast_builder import build, build_spans, normalize_spans
from mdportable.converter.tokenizer import tokenize, tokenize_inline
from mdportable.models import (
    CodeNode,
    HeadingNode,
    HighlightNode,
    ImageNode,
    InlineSpan,
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


def _build(md, **kwargs):
    warnings = []
    nodes = build(tokenize(md), warnings=warnings, **kwargs)
    return nodes, warnings


def _text(spans):
    return "".join(s.text for s in spans)


def _names(span):
    return [m.name for m in span.marks]


# =========================================================================
# Spans
# =========================================================================

class TestSpans:
    def test_plain_and_strong(self):
        spans = build_spans(tokenize_inline("Some **bold** text."))
        assert [s.text for s in spans] == ["Some ", "bold", " text."]
        assert _names(spans[1]) == [MarkName.STRONG]
        assert spans[0].marks == ()

    def test_nested_marks_keep_order(self):
        spans = build_spans(tokenize_inline("**bold _both_**"))
        assert spans[-1].text == "both"
        assert _names(spans[-1]) == [MarkName.STRONG, MarkName.EM]

    def test_link_mark_carries_href(self):
        spans = build_spans(tokenize_inline("go [here](https://x.io) now"))
        link = [s for s in spans if s.marks][0]
        assert link.text == "here"
        assert link.marks == (Mark(MarkName.LINK, "https://x.io"),)

    def test_normalize_merges_equal_neighbours(self):
        spans = normalize_spans([
            InlineSpan("a"),
            InlineSpan(""),
            InlineSpan("b"),
            InlineSpan("c", (Mark(MarkName.EM), Mark(MarkName.EM))),
        ])
        assert spans == (InlineSpan("ab"), InlineSpan("c", (Mark(MarkName.EM),)))

    def test_inline_image_falls_back_to_alt(self):
        spans = build_spans(tokenize_inline("see ![chart](c.png) below"))
        assert _text(spans) == "see chart below"


# =========================================================================
# Block nodes
# =========================================================================

class TestBlocks:
    def test_heading_and_paragraph(self):
        nodes, warnings = _build("# Title\n\nSome **bold** text.")
        assert [type(n) for n in nodes] == [HeadingNode, ParagraphNode]
        assert nodes[0].level == 1
        assert _text(nodes[1].children) == "Some bold text."
        assert warnings == []

    def test_empty_heading_is_dropped(self):
        nodes, _ = _build("#\n\ntext")
        assert [type(n) for n in nodes] == [ParagraphNode]

    def test_code_block(self):
        nodes, _ = _build("```rust\nfn main() {}\n```")
        assert nodes == [CodeNode(code="fn main() {}", language="rust")]

    def test_code_without_language(self):
        nodes, _ = _build("```\nplain\n```")
        assert nodes[0].language is None

    def test_unterminated_fence_warns(self):
        nodes, warnings = _build("```\nnever closed")
        assert isinstance(nodes[0], CodeNode)
        assert nodes[0].code == "never closed"
        assert [w.code for w in warnings] == ["UNTERMINATED_FENCE"]

    def test_degraded_paragraph_warns(self):
        nodes, warnings = _build("####### deep")
        assert isinstance(nodes[0], ParagraphNode)
        assert _text(nodes[0].children) == "####### deep"
        assert warnings[0].code == "PARSE_DEGRADED"
        assert warnings[0].context["reason"] == "heading_level_overflow"

    def test_separator(self):
        nodes, _ = _build("---")
        assert nodes == [SeparatorNode()]

    def test_single_image_paragraph(self):
        nodes, _ = _build('![Diagram](https://img.example/d.png "Flow")')
        assert nodes == [ImageNode(src="https://img.example/d.png", alt="Diagram", title="Flow")]

    def test_quote(self):
        nodes, _ = _build("> first\n>\n> second")
        assert isinstance(nodes[0], QuoteNode)
        assert [_text(p) for p in nodes[0].paragraphs] == ["first", "second"]

    def test_highlight(self):
        nodes, _ = _build("> **warning**: Careful\n> body text")
        node = nodes[0]
        assert isinstance(node, HighlightNode)
        assert node.tone == "warning"
        assert node.title == "Careful"
        assert [_text(p) for p in node.paragraphs] == ["body text"]

    def test_highlight_detection_can_be_disabled(self):
        nodes, _ = _build("> **info**: Note", detect_highlights=False)
        assert isinstance(nodes[0], QuoteNode)

    def test_table(self):
        nodes, _ = _build("| h1 | h2 |\n|----|----|\n| **a** | b |")
        table = nodes[0]
        assert isinstance(table, TableNode)
        assert len(table.rows) == 2
        assert _text(table.rows[1][0]) == "a"
        assert _names(table.rows[1][0][0]) == [MarkName.STRONG]

    def test_inline_token_at_block_level_is_kept_as_text(self):
        warnings = []
        nodes = build([Token(TokenKind.TEXT, raw="stray")], warnings=warnings)
        assert isinstance(nodes[0], ParagraphNode)
        assert warnings[0].code == "PARSE_DEGRADED"


# =========================================================================
# List nesting
# =========================================================================

class TestListNesting:
    def test_nested_sublist(self):
        nodes, _ = _build("- a\n  - b\n- c")
        assert len(nodes) == 1
        root = nodes[0]
        assert isinstance(root, ListNode)
        assert [_text(i.children) for i in root.items] == ["a", "c"]
        sub = root.items[0].sublists[0]
        assert sub.depth == 1
        assert [_text(i.children) for i in sub.items] == ["b"]

    def test_three_levels(self):
        nodes, _ = _build("- a\n  - b\n    - c\n- d")
        c_list = nodes[0].items[0].sublists[0].items[0].sublists[0]
        assert c_list.depth == 2
        assert _text(c_list.items[0].children) == "c"
        assert _text(nodes[0].items[1].children) == "d"

    def test_shallower_than_root_starts_new_root(self):
        nodes, _ = _build("  - a\n- b")
        assert len(nodes) == 2
        assert all(isinstance(n, ListNode) and n.depth == 0 for n in nodes)

    def test_pop_to_matching_level(self):
        nodes, _ = _build("- a\n    - b\n  - c")
        root = nodes[0]
        assert len(root.items) == 1
        # c is shallower than b but deeper than a: it opens a new sublist of a.
        subs = root.items[0].sublists
        assert [_text(s.items[0].children) for s in subs] == ["b", "c"]

    def test_ordered_switch_starts_sibling_list(self):
        nodes, _ = _build("- a\n1. b")
        assert [n.ordered for n in nodes] == [False, True]

    def test_each_item_belongs_to_one_list(self):
        nodes, _ = _build("- a\n  - b\n  - c\n- d")
        seen = []

        def walk(lst):
            for item in lst.items:
                seen.append(_text(item.children))
                for sub in item.sublists:
                    walk(sub)

        for n in nodes:
            walk(n)
        assert seen == ["a", "b", "c", "d"]
