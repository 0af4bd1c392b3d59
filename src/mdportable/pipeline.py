"""Cancellable async conversion for live preview.

:class:`ConversionPipeline` wraps :class:`MarkdownToPortableConverter` for an
editing session.  Every :meth:`~ConversionPipeline.convert` call:

1. Issues a new generation number and cancels the token of the conversion
   that was in flight, if any.
2. Runs the CPU-bound conversion in a worker thread
   (:func:`asyncio.to_thread`) so the event loop stays responsive.
3. On arrival, commits the result to the preview only if its generation is
   still the latest issued.  A slow earlier conversion can therefore never
   overwrite a fresher one, whatever order they finish in.

Conversion errors never propagate.  The caller gets a
:class:`ConversionOutcome` whose status tells empty input, stale preview
(``degraded``), error state (``failed``) and discarded work
(``superseded``) apart.
"""

from __future__ import annotations

import asyncio
import time

from mdportable.config import MdPortableConfig
from mdportable.converter.md_to_portable import CancellationToken, MarkdownToPortableConverter
from mdportable.errors import ConversionCancelled, ConversionError
from mdportable.models import (
    ConversionOutcome,
    ConversionResult,
    ConversionStatus,
    PortableBlock,
)
from mdportable.observability import get_logger, resolve_metrics

log = get_logger("mdportable.pipeline")


class ConversionPipeline:
    """Per-session conversion driver holding the live preview state.

    Create one pipeline per editing session; pipelines share no mutable
    state with each other.

    Parameters
    ----------
    config:
        Converter and metrics configuration.
    converter:
        Optional converter instance.  Anything with a
        ``convert(markdown, cancel_token)`` method works, which lets tests
        inject a slow or failing converter.
    """

    def __init__(
        self,
        config: MdPortableConfig | None = None,
        converter: MarkdownToPortableConverter | None = None,
    ) -> None:
        self._config = config if config is not None else MdPortableConfig()
        self._converter = converter if converter is not None else MarkdownToPortableConverter(self._config)
        self._metrics = resolve_metrics(self._config.metrics)
        self._generation = 0
        self._active: CancellationToken | None = None
        self._preview: list[PortableBlock] = []
        self._committed_generation = 0
        self._has_valid = False

    # -- state -------------------------------------------------------------

    @property
    def generation(self) -> int:
        """The most recently issued generation number."""
        return self._generation

    @property
    def committed_generation(self) -> int:
        """Generation of the result currently held by the preview (0 if none)."""
        return self._committed_generation

    @property
    def preview(self) -> list[PortableBlock]:
        """The last committed block sequence (a copy)."""
        return list(self._preview)

    @property
    def has_valid_preview(self) -> bool:
        return self._has_valid

    # -- conversion --------------------------------------------------------

    def _issue(self) -> CancellationToken:
        self._generation += 1
        if self._active is not None:
            self._active.cancel()
        token = CancellationToken(self._generation)
        self._active = token
        return token

    def _commit(self, blocks: list[PortableBlock], generation: int) -> None:
        self._preview = list(blocks)
        self._committed_generation = generation
        self._has_valid = True

    def _record(self, status: ConversionStatus, started: float) -> None:
        self._metrics.increment("mdportable.conversions_total", tags={"status": status.value})
        self._metrics.timing(
            "mdportable.conversion_duration_ms",
            (time.monotonic() - started) * 1000,
        )

    async def convert(self, text: str) -> ConversionOutcome:
        """Convert *text* and update the preview if this call is still the latest.

        Parameters
        ----------
        text:
            The full current editor contents.

        Returns
        -------
        ConversionOutcome
            Never raises for conversion problems; see :class:`ConversionStatus`.
        """
        token = self._issue()
        generation = token.generation
        started = time.monotonic()

        if not text.strip():
            self._commit([], generation)
            self._record(ConversionStatus.EMPTY, started)
            return ConversionOutcome(status=ConversionStatus.EMPTY, generation=generation)

        result: ConversionResult | None = None
        error: ConversionError | None = None
        try:
            result = await asyncio.to_thread(self._converter.convert, text, token)
        except ConversionCancelled:
            pass
        except ConversionError as exc:
            error = exc
        except Exception as exc:
            error = ConversionError(
                f"Converter raised {type(exc).__name__}: {exc}",
                context={"generation": generation, "exception_type": type(exc).__name__},
                cause=exc,
            )

        # Checked on arrival: a newer request may have been issued while the
        # worker thread was running.
        if generation != self._generation or token.cancelled:
            self._record(ConversionStatus.SUPERSEDED, started)
            log.debug(
                "Conversion superseded",
                extra={"extra_fields": {
                    "generation": generation,
                    "latest_generation": self._generation,
                }},
            )
            return ConversionOutcome(
                status=ConversionStatus.SUPERSEDED,
                blocks=list(result.blocks) if result is not None else [],
                warnings=list(result.warnings) if result is not None else [],
                generation=generation,
            )

        if self._active is token:
            self._active = None

        if error is not None:
            status = ConversionStatus.DEGRADED if self._has_valid else ConversionStatus.FAILED
            log.warning(
                "Conversion failed; preview kept" if self._has_valid else "Conversion failed",
                extra={"extra_fields": {
                    "generation": generation,
                    "status": status.value,
                    "error_code": getattr(error.code, "value", error.code),
                    "error": error.message,
                }},
            )
            self._metrics.increment("mdportable.conversion_degraded_total", tags={"status": status.value})
            self._record(status, started)
            return ConversionOutcome(
                status=status,
                blocks=self.preview,
                generation=generation,
                error=error,
            )

        if result is None:
            result = ConversionResult()
        for warning in result.warnings:
            self._metrics.increment(
                "mdportable.conversion_warnings_total", tags={"code": warning.code},
            )
        self._commit(result.blocks, generation)
        self._record(ConversionStatus.OK, started)
        return ConversionOutcome(
            status=ConversionStatus.OK,
            blocks=list(result.blocks),
            warnings=list(result.warnings),
            generation=generation,
        )
