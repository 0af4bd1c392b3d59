"""Markdown to Portable Text conversion.

Public API:

- :class:`MarkdownToPortableConverter` -- Markdown -> Portable Text blocks.
- :class:`CancellationToken` -- cooperative cancellation between stages.
- :func:`tokenize` / :func:`tokenize_inline` -- block and inline tokens.
- :func:`build` -- tokens -> block AST.
- :func:`map_blocks` -- block AST -> keyed Portable Text blocks.
- :func:`extract_headings`, :func:`conversion_stats`,
  :func:`validate_blocks`, :func:`estimate_reading_time` -- inspection.
"""

from mdportable.converter.ast_builder import build
from mdportable.converter.inspect import (
    conversion_stats,
    estimate_reading_time,
    extract_headings,
    validate_blocks,
)
from mdportable.converter.mapper import map_blocks, normalize_language
from mdportable.converter.md_to_portable import (
    CancellationToken,
    MarkdownToPortableConverter,
    markdown_to_blocks,
)
from mdportable.converter.tokenizer import tokenize, tokenize_inline

__all__ = [
    "CancellationToken",
    "MarkdownToPortableConverter",
    "build",
    "conversion_stats",
    "estimate_reading_time",
    "extract_headings",
    "map_blocks",
    "markdown_to_blocks",
    "normalize_language",
    "tokenize",
    "tokenize_inline",
    "validate_blocks",
]
