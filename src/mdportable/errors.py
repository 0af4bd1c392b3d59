"""Error hierarchy for mdportable.

Every public error class inherits from :class:`MdPortableError`.  Each
carries a machine-readable ``code`` (from :class:`ErrorCode`), a
human-readable ``message``, an optional structured ``context`` dict, and an
optional ``cause`` (chained exception).

Parse-level problems never surface as exceptions: they are recorded as
:class:`~mdportable.models.ConversionWarning` entries using the
``PARSE_DEGRADED`` and ``UNTERMINATED_FENCE`` codes.  Sync-level problems
are raised to the caller verbatim, always after an audit record has been
appended.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, ClassVar

# ---------------------------------------------------------------------------
# Error code enum
# ---------------------------------------------------------------------------

class ErrorCode(str, Enum):
    """Machine-readable codes for every error and warning the package emits."""

    # Warning codes (conversion keeps going)
    PARSE_DEGRADED = "PARSE_DEGRADED"
    UNTERMINATED_FENCE = "UNTERMINATED_FENCE"

    # Conversion
    CONVERSION_ERROR = "CONVERSION_ERROR"
    MAPPER_INVARIANT_VIOLATION = "MAPPER_INVARIANT_VIOLATION"
    CONVERSION_CANCELLED = "CONVERSION_CANCELLED"

    # Sync
    SYNC_ERROR = "SYNC_ERROR"
    UNSUPPORTED_TARGET = "UNSUPPORTED_TARGET"
    REVISION_CONFLICT = "REVISION_CONFLICT"
    SYNC_IN_PROGRESS = "SYNC_IN_PROGRESS"
    REMOTE_UNAVAILABLE = "REMOTE_UNAVAILABLE"
    SYNC_TIMEOUT = "SYNC_TIMEOUT"
    SYNC_CANCELLED = "SYNC_CANCELLED"

    # Store transport
    AUTH_ERROR = "AUTH_ERROR"
    NOT_FOUND = "NOT_FOUND"
    VALIDATION_ERROR = "VALIDATION_ERROR"



# ---------------------------------------------------------------------------
# Base error
# ---------------------------------------------------------------------------

class MdPortableError(Exception):
    """Base exception for all mdportable errors.

    Parameters
    ----------
    code:
        A value from :class:`ErrorCode` (or any string) identifying the
        error category.
    message:
        A developer-friendly description of what went wrong.
    context:
        Arbitrary structured data providing extra diagnostic detail.
        Keys are documented per subclass.
    cause:
        The underlying exception, if this error wraps another.
    """

    def __init__(
        self,
        code: str,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        self.code: str = code
        self.message: str = message
        self.context: dict[str, Any] = context or {}
        self.cause: Exception | None = cause
        super().__init__(message)
        if cause is not None:
            self.__cause__ = cause

    def __repr__(self) -> str:
        ctx = f", context={self.context!r}" if self.context else ""
        return f"{type(self).__name__}(code={self.code!r}, message={self.message!r}{ctx})"


class _CodedError(MdPortableError):
    """Error whose code is fixed per class through :attr:`default_code`.

    Subclasses are raised as ``SomeError(message, context=..., cause=...)``.
    """

    default_code: ClassVar[str]
    default_message: ClassVar[str] = ""

    def __init__(
        self,
        message: str | None = None,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
        code: str | None = None,
    ) -> None:
        super().__init__(
            code=code if code is not None else self.default_code,
            message=message if message is not None else self.default_message,
            context=context,
            cause=cause,
        )


# ---------------------------------------------------------------------------
# Conversion errors
# ---------------------------------------------------------------------------

class ConversionError(_CodedError):
    """Base class for errors raised while converting Markdown to blocks."""

    default_code = ErrorCode.CONVERSION_ERROR
    default_message = "Conversion error"


class MapperInvariantViolation(ConversionError):
    """The mapper produced a block sequence that breaks an internal invariant
    (orphaned mark reference, missing key, unknown node variant).

    Context keys: ``block_key``, ``mark``, ``node_type``.
    """

    default_code = ErrorCode.MAPPER_INVARIANT_VIOLATION


class ConversionCancelled(ConversionError):
    """A newer conversion was requested while this one was running.

    Context keys: ``generation``, ``stage``.
    """

    default_code = ErrorCode.CONVERSION_CANCELLED
    default_message = "Conversion superseded by a newer request"


# ---------------------------------------------------------------------------
# Sync errors
# ---------------------------------------------------------------------------

class SyncError(_CodedError):
    """Base class for errors raised by the sync engine and store adapters."""

    default_code = ErrorCode.SYNC_ERROR


class UnsupportedTargetError(SyncError):
    """The (document type, field) pair is not in the field registry.

    Raised before any store I/O.  Context keys: ``document_type``,
    ``field_name``.
    """

    default_code = ErrorCode.UNSUPPORTED_TARGET


class RevisionConflictError(SyncError):
    """The remote document moved past the revision the caller expected.

    The engine never merges; the caller must re-fetch and decide.  Context
    keys: ``document_id``, ``expected_revision``, ``current_revision``.
    """

    default_code = ErrorCode.REVISION_CONFLICT


class SyncInProgressError(SyncError):
    """Another sync for the same (document type, document id, field) is
    still in flight.

    Context keys: ``document_type``, ``document_id``, ``field_name``.
    """

    default_code = ErrorCode.SYNC_IN_PROGRESS


class RemoteUnavailableError(SyncError):
    """The content store could not be reached or answered with a server error.

    Context keys: ``url``, ``status_code``.
    """

    default_code = ErrorCode.REMOTE_UNAVAILABLE


class SyncTimeoutError(RemoteUnavailableError):
    """A store call did not finish within ``sync_timeout_seconds``.

    Context keys: ``operation``, ``timeout_seconds``.
    """

    default_code = ErrorCode.SYNC_TIMEOUT


# ---------------------------------------------------------------------------
# Store transport errors
# ---------------------------------------------------------------------------

class StoreAuthError(SyncError):
    """The content store rejected the API token (HTTP 401/403)."""

    default_code = ErrorCode.AUTH_ERROR


class StoreNotFoundError(SyncError):
    """The target document does not exist in the content store.

    Context keys: ``document_id``.
    """

    default_code = ErrorCode.NOT_FOUND


class StoreValidationError(SyncError):
    """The content store rejected the mutation payload (HTTP 400/422)."""

    default_code = ErrorCode.VALIDATION_ERROR
