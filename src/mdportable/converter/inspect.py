"""Read-only helpers over converted block sequences.

Used by editors for outlines, status bars and pre-sync checks.  None of
these functions modify the blocks they are given.
"""

from __future__ import annotations

import math
import re
from collections.abc import Sequence
from typing import Any

from mdportable.models import (
    BlockStyle,
    CodeBlock,
    HighlightBlock,
    ImageBlock,
    PortableBlock,
    TableBlock,
    TextBlock,
)
from mdportable.utils.slug import slugify

WORDS_PER_MINUTE = 250

_CJK_RE = re.compile(r"[\u4e00-\u9fff]")
_LATIN_WORD_RE = re.compile(r"[A-Za-z0-9_]+")

_HEADING_LEVELS: dict[BlockStyle, int] = {
    BlockStyle.H1: 1,
    BlockStyle.H2: 2,
    BlockStyle.H3: 3,
    BlockStyle.H4: 4,
    BlockStyle.H5: 5,
    BlockStyle.H6: 6,
}


def block_text(block: PortableBlock) -> str:
    """Plain text of *block* (code bodies included, images excluded)."""
    if isinstance(block, TextBlock):
        return "".join(span.text for span in block.children)
    if isinstance(block, CodeBlock):
        return block.code
    if isinstance(block, HighlightBlock):
        parts = [block.title or ""] + [block_text(inner) for inner in block.content]
        return "\n".join(p for p in parts if p)
    if isinstance(block, TableBlock):
        return "\n".join(
            " ".join(block_text(inner) for cell in row.cells for inner in cell.content)
            for row in block.rows
        )
    return ""


def extract_headings(blocks: Sequence[PortableBlock]) -> list[dict[str, Any]]:
    """Return ``{"id", "text", "level"}`` for every heading block, in order.

    Duplicate ids get a numeric suffix (``intro``, ``intro-1`` ...) so they
    can be used as anchors.
    """
    headings: list[dict[str, Any]] = []
    seen: dict[str, int] = {}
    for block in blocks:
        if not isinstance(block, TextBlock) or block.style not in _HEADING_LEVELS:
            continue
        text = block_text(block)
        slug = slugify(text) or "section"
        count = seen.get(slug, 0)
        seen[slug] = count + 1
        headings.append({
            "id": slug if count == 0 else f"{slug}-{count}",
            "text": text,
            "level": _HEADING_LEVELS[block.style],
        })
    return headings


def conversion_stats(blocks: Sequence[PortableBlock]) -> dict[str, Any]:
    """Count blocks by wire type and by a few editor-relevant categories."""
    stats: dict[str, Any] = {
        "total_blocks": len(blocks),
        "block_types": {},
        "headings": 0,
        "list_items": 0,
        "code_blocks": 0,
        "images": 0,
        "tables": 0,
    }
    for block in blocks:
        types = stats["block_types"]
        types[block.block_type] = types.get(block.block_type, 0) + 1
        if isinstance(block, TextBlock):
            if block.style in _HEADING_LEVELS:
                stats["headings"] += 1
            if block.list_item is not None:
                stats["list_items"] += 1
        elif isinstance(block, CodeBlock):
            stats["code_blocks"] += 1
        elif isinstance(block, ImageBlock):
            stats["images"] += 1
        elif isinstance(block, TableBlock):
            stats["tables"] += 1
    return stats


def validate_blocks(blocks: Sequence[PortableBlock]) -> list[str]:
    """Return a list of problems; an empty list means the sequence is valid.

    Unlike the mapper's own validation this never raises, which makes it
    usable on block sequences assembled by hand.
    """
    from mdportable.converter.mapper import validate_block
    from mdportable.errors import MapperInvariantViolation

    problems: list[str] = []
    keys: set[str] = set()
    for index, block in enumerate(blocks):
        try:
            validate_block(block)
        except MapperInvariantViolation as exc:
            problems.append(f"block {index}: {exc.message}")
        if block.key and block.key in keys:
            problems.append(f"block {index}: duplicate key '{block.key}'")
        keys.add(block.key)
    return problems


def count_words(text: str) -> int:
    """CJK ideographs count one each; latin words and numbers count one each."""
    return len(_CJK_RE.findall(text)) + len(_LATIN_WORD_RE.findall(text))


def estimate_reading_time(blocks: Sequence[PortableBlock]) -> int:
    """Estimated reading time in whole minutes, never less than one."""
    words = sum(count_words(block_text(block)) for block in blocks)
    return max(1, math.ceil(words / WORDS_PER_MINUTE))
