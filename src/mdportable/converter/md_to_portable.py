"""Full Markdown-to-Portable-Text conversion.

:class:`MarkdownToPortableConverter` runs the three stages in order:

1. **Tokenize** -- block scan plus inline pass into flat :class:`Token` lists.
2. **Build** -- :func:`build` resolves nesting into the block AST.
3. **Map** -- :func:`map_blocks` produces keyed Portable Text blocks and
   validates them.

A :class:`CancellationToken` may be passed in; it is checked between the
stages so that a superseded conversion stops early instead of running to
completion.
"""

from __future__ import annotations

import sys
import threading

from mdportable.config import MdPortableConfig
from mdportable.converter.ast_builder import build
from mdportable.converter.mapper import map_blocks
from mdportable.converter.tokenizer import tokenize
from mdportable.errors import ConversionCancelled
from mdportable.models import ConversionResult, ConversionWarning


class CancellationToken:
    """Thread-safe flag shared between a pipeline and one conversion.

    The pipeline cancels the token when a newer request is issued; the
    converter polls :meth:`raise_if_cancelled` between stages.
    """

    __slots__ = ("_event", "generation")

    def __init__(self, generation: int = 0) -> None:
        self.generation = generation
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self, stage: str = "") -> None:
        if self._event.is_set():
            raise ConversionCancelled(
                context={"generation": self.generation, "stage": stage},
            )


class MarkdownToPortableConverter:
    """Convert Markdown text to Portable Text blocks.

    Parameters
    ----------
    config:
        Controls table support, highlight detection and debug dumps.  A
        default :class:`MdPortableConfig` is used when omitted.

    Examples
    --------
    >>> converter = MarkdownToPortableConverter()
    >>> result = converter.convert("# Hello\\n\\nWorld")
    >>> [b["style"] for b in result.to_payload()]
    ['h1', 'normal']
    """

    def __init__(self, config: MdPortableConfig | None = None) -> None:
        self._config = config if config is not None else MdPortableConfig()

    @property
    def config(self) -> MdPortableConfig:
        return self._config

    def convert(
        self,
        markdown: str,
        cancel_token: CancellationToken | None = None,
    ) -> ConversionResult:
        """Tokenize, build and map *markdown*.

        Parameters
        ----------
        markdown:
            Source text.  Blank input yields an empty result.
        cancel_token:
            Optional token checked between stages.

        Returns
        -------
        ConversionResult
            The blocks and any parse warnings.

        Raises
        ------
        ConversionCancelled
            If *cancel_token* was cancelled before the last stage finished.
        MapperInvariantViolation
            If the mapped blocks fail validation.
        """
        if not markdown.strip():
            return ConversionResult()

        check = cancel_token.raise_if_cancelled if cancel_token is not None else _no_check

        check("tokenize")
        tokens = tokenize(markdown, enable_tables=self._config.enable_tables)

        check("build")
        warnings: list[ConversionWarning] = []
        ast = build(
            tokens,
            detect_highlights=self._config.detect_highlights,
            warnings=warnings,
        )

        if self._config.debug_dump_ast:
            import dataclasses
            import json
            print(
                "[mdportable] Block AST:",
                json.dumps(
                    [{"kind": node.kind, **dataclasses.asdict(node)} for node in ast],
                    indent=2,
                    ensure_ascii=False,
                    default=str,
                ),
                file=sys.stderr,
            )

        check("map")
        blocks = map_blocks(ast)

        if self._config.debug_dump_payload:
            import json

            from mdportable.utils.redact import redact
            safe = redact({"blocks": [b.to_dict() for b in blocks]}, self._config.token)
            print(
                "[mdportable] Portable Text payload:",
                json.dumps(safe["blocks"], indent=2, ensure_ascii=False),
                file=sys.stderr,
            )

        check("commit")
        return ConversionResult(blocks=blocks, warnings=warnings)


def _no_check(stage: str = "") -> None:
    return None


def markdown_to_blocks(markdown: str, config: MdPortableConfig | None = None) -> ConversionResult:
    """Convenience wrapper around :meth:`MarkdownToPortableConverter.convert`."""
    return MarkdownToPortableConverter(config).convert(markdown)
