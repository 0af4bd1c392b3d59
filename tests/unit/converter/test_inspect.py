"""Tests for the block inspection helpers."""

from __future__ import annotations

from mdportable.converter.inspect import (
    block_text,
    conversion_stats,
    count_words,
    estimate_reading_time,
    extract_headings,
    validate_blocks,
)
from mdportable.models import BlockStyle, SeparatorBlock, Span, TextBlock


class TestExtractHeadings:
    def test_levels_and_ids(self, converter):
        blocks = converter.convert("# Getting Started\n\ntext\n\n## Install & Run").blocks
        assert extract_headings(blocks) == [
            {"id": "getting-started", "text": "Getting Started", "level": 1},
            {"id": "install-run", "text": "Install & Run", "level": 2},
        ]

    def test_cjk_is_kept(self, converter):
        blocks = converter.convert("## 开发 日志").blocks
        assert extract_headings(blocks)[0]["id"] == "开发-日志"

    def test_duplicate_ids_get_suffix(self, converter):
        blocks = converter.convert("# Intro\n\n# Intro").blocks
        assert [h["id"] for h in extract_headings(blocks)] == ["intro", "intro-1"]

    def test_symbol_only_heading(self, converter):
        blocks = converter.convert("# !!!").blocks
        assert extract_headings(blocks)[0]["id"] == "section"


class TestConversionStats:
    def test_counts(self, converter):
        md = (
            "# T\n\n## U\n\n- a\n- b\n\n```py\nx\n```\n\n"
            "![i](https://x.io/i.png)\n\n| a |\n|---|\n| b |\n\n---"
        )
        stats = conversion_stats(converter.convert(md).blocks)
        assert stats["total_blocks"] == 8
        assert stats["headings"] == 2
        assert stats["list_items"] == 2
        assert stats["code_blocks"] == 1
        assert stats["images"] == 1
        assert stats["tables"] == 1
        assert stats["block_types"] == {
            "block": 4, "code": 1, "image": 1, "table": 1, "separator": 1,
        }

    def test_empty(self):
        assert conversion_stats([])["total_blocks"] == 0


class TestValidateBlocks:
    def test_converted_blocks_are_valid(self, converter):
        blocks = converter.convert("# A\n\n[x](https://x.io)\n\n- y").blocks
        assert validate_blocks(blocks) == []

    def test_reports_problems_without_raising(self):
        bad = TextBlock(
            key="k",
            style=BlockStyle.NORMAL,
            children=(Span(key="s", text="x", marks=("nope",)),),
        )
        problems = validate_blocks([bad, SeparatorBlock(key="k")])
        assert len(problems) == 2
        assert problems[0].startswith("block 0:")
        assert "duplicate key" in problems[1]


class TestReadingTime:
    def test_count_words_mixes_cjk_and_latin(self):
        assert count_words("hello world 你好") == 4

    def test_minimum_one_minute(self, converter):
        assert estimate_reading_time(converter.convert("short").blocks) == 1
        assert estimate_reading_time([]) == 1

    def test_rounds_up(self, converter):
        md = " ".join(["word"] * 251)
        assert estimate_reading_time(converter.convert(md).blocks) == 2

    def test_block_text_of_code(self, converter):
        block = converter.convert("```\nprint(1)\n```").blocks[0]
        assert block_text(block) == "print(1)"
