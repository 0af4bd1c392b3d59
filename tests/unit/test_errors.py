"""Tests for the error hierarchy."""

from __future__ import annotations

import pytest

from mdportable.errors import (
    ConversionCancelled,
    ConversionError,
    ErrorCode,
    MapperInvariantViolation,
    MdPortableError,
    RemoteUnavailableError,
    RevisionConflictError,
    StoreAuthError,
    StoreNotFoundError,
    StoreValidationError,
    SyncError,
    SyncInProgressError,
    SyncTimeoutError,
    UnsupportedTargetError,
)


@pytest.mark.parametrize(
    ("cls", "code", "base"),
    [
        (MapperInvariantViolation, ErrorCode.MAPPER_INVARIANT_VIOLATION, ConversionError),
        (ConversionCancelled, ErrorCode.CONVERSION_CANCELLED, ConversionError),
        (UnsupportedTargetError, ErrorCode.UNSUPPORTED_TARGET, SyncError),
        (RevisionConflictError, ErrorCode.REVISION_CONFLICT, SyncError),
        (SyncInProgressError, ErrorCode.SYNC_IN_PROGRESS, SyncError),
        (RemoteUnavailableError, ErrorCode.REMOTE_UNAVAILABLE, SyncError),
        (SyncTimeoutError, ErrorCode.SYNC_TIMEOUT, RemoteUnavailableError),
        (StoreAuthError, ErrorCode.AUTH_ERROR, SyncError),
        (StoreNotFoundError, ErrorCode.NOT_FOUND, SyncError),
        (StoreValidationError, ErrorCode.VALIDATION_ERROR, SyncError),
    ],
)
def test_codes_and_bases(cls, code, base):
    err = cls("message")
    assert err.code == code
    assert isinstance(err, base)
    assert isinstance(err, MdPortableError)
    assert str(err) == "message"


def test_family_bases_have_their_own_codes():
    assert SyncError("x").code == ErrorCode.SYNC_ERROR
    assert ConversionError().code == ErrorCode.CONVERSION_ERROR
    assert ConversionError().message == "Conversion error"


def test_code_override():
    assert RemoteUnavailableError("x", code="CUSTOM").code == "CUSTOM"


def test_context_defaults_to_empty_dict():
    assert UnsupportedTargetError("x").context == {}


def test_cause_is_chained():
    cause = OSError("socket closed")
    err = RemoteUnavailableError("down", cause=cause)
    assert err.cause is cause
    assert err.__cause__ is cause


def test_repr_includes_context():
    err = RevisionConflictError("stale", context={"document_id": "d"})
    text = repr(err)
    assert text.startswith("RevisionConflictError(")
    assert "'document_id': 'd'" in text


def test_conversion_cancelled_default_message():
    assert "superseded" in ConversionCancelled().message


def test_error_codes_are_strings():
    assert ErrorCode.SYNC_TIMEOUT == "SYNC_TIMEOUT"
    assert ErrorCode.SYNC_TIMEOUT.value == "SYNC_TIMEOUT"
