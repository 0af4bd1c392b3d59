"""Property-based tests for mdportable using Hypothesis.

These tests verify invariant properties of the converter and utility
functions over a wide range of generated inputs.  They complement the
example-based unit tests.
"""

from __future__ import annotations

import re

from hypothesis import given, settings
from hypothesis import strategies as st

from mdportable.converter import build, map_blocks, normalize_language, tokenize, validate_blocks
from mdportable.converter.mapper import _LANGUAGE_ALIASES
from mdportable.models import CodeBlock, TextBlock, blocks_to_payload
from mdportable.utils.hashing import hash_json, stable_key
from mdportable.utils.redact import redact
from mdportable.utils.slug import slugify

# ---------------------------------------------------------------------------
# Reusable strategies
# ---------------------------------------------------------------------------

# Lines built from Markdown-significant fragments so that headings, lists,
# fences, quotes, tables and inline marks all get exercised.
_fragment_st = st.sampled_from([
    "# ", "## ", "###### ", "- ", "* ", "1. ", "  - ", "    ", "> ", "```", "```py",
    "---", "| a | b |", "|---|---|", "**", "*", "_", "`", "~~", "[", "](", ")",
    "https://example.com", "![", "word", "中文", " ", "\t", "\\", "**info**:",
])
_line_st = st.lists(_fragment_st, min_size=0, max_size=8).map("".join)
_markdown_st = st.lists(_line_st, min_size=0, max_size=12).map("\n".join)

_DECORATORS = {"strong", "em", "code", "strike-through"}


def _convert(text: str):
    return map_blocks(build(tokenize(text)))


# ---------------------------------------------------------------------------
# Converter pipeline
# ---------------------------------------------------------------------------


@given(st.text(max_size=400))
@settings(max_examples=200)
def test_tokenize_never_raises(text):
    tokenize(text)


@given(_markdown_st)
@settings(max_examples=200)
def test_conversion_is_deterministic(text):
    assert blocks_to_payload(_convert(text)) == blocks_to_payload(_convert(text))


@given(_markdown_st)
@settings(max_examples=200)
def test_converted_blocks_pass_validation(text):
    assert validate_blocks(_convert(text)) == []


@given(_markdown_st)
@settings(max_examples=200)
def test_every_mark_resolves(text):
    for block in _convert(text):
        if not isinstance(block, TextBlock):
            continue
        def_keys = {d.key for d in block.mark_defs}
        for span in block.children:
            for mark in span.marks:
                assert mark in _DECORATORS or mark in def_keys


@given(_markdown_st)
@settings(max_examples=100)
def test_list_items_carry_positive_level(text):
    for block in _convert(text):
        if isinstance(block, TextBlock) and block.list_item is not None:
            assert block.level is not None and block.level >= 1


@given(_markdown_st)
@settings(max_examples=100)
def test_code_languages_are_normalized(text):
    for block in _convert(text):
        if isinstance(block, CodeBlock) and block.language is not None:
            assert normalize_language(block.language) == block.language


# ---------------------------------------------------------------------------
# normalize_language
# ---------------------------------------------------------------------------


@given(st.text(max_size=30))
def test_normalize_language_is_idempotent(info):
    lang = normalize_language(info)
    if lang is not None:
        assert normalize_language(lang) == lang


@given(st.sampled_from(sorted(_LANGUAGE_ALIASES)))
def test_aliases_are_case_insensitive(alias):
    assert normalize_language(alias.upper()) == _LANGUAGE_ALIASES[alias]


# ---------------------------------------------------------------------------
# Utilities
# ---------------------------------------------------------------------------


@given(st.lists(st.one_of(st.integers(), st.text(max_size=10)), max_size=5))
def test_stable_key_is_deterministic(parts):
    key = stable_key(*parts)
    assert key == stable_key(*parts)
    assert re.fullmatch(r"[0-9a-f]{12}", key)


@given(st.dictionaries(st.text(max_size=5), st.integers(), max_size=6))
def test_hash_json_ignores_key_order(d):
    assert hash_json(d) == hash_json(dict(reversed(list(d.items()))))


@given(st.text(min_size=8, max_size=20, alphabet=st.characters(min_codepoint=33, max_codepoint=126)))
def test_redact_never_leaks_token(token):
    payload = {"body": f"x {token} y", "nested": [{"note": token}], "Authorization": f"Bearer {token}"}
    result = redact(payload, token)
    values = [result["body"], result["nested"][0]["note"], result["Authorization"]]
    assert all(token not in v for v in values)


@given(st.text(max_size=60))
def test_slugify_charset(text):
    slug = slugify(text)
    assert re.fullmatch(r"[a-z0-9\u4e00-\u9fff-]*", slug)
    assert not slug.startswith("-") and not slug.endswith("-")
