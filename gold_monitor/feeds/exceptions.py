"""Exception hierarchy for fetchers."""

from __future__ import annotations

from enum import StrEnum


class FetchErrorKind(StrEnum):
    """Whether a failed fetch is worth retrying."""

    TRANSIENT = "transient"
    INVALID = "invalid"


class FetchError(Exception):
    """Base exception for all fetch errors."""

    kind: FetchErrorKind = FetchErrorKind.TRANSIENT


class TransientFetchError(FetchError):
    """Timeout, refused connection or upstream hiccup — retryable."""

    kind = FetchErrorKind.TRANSIENT


class InvalidFetchError(FetchError):
    """Malformed or unexpected payload — not retryable."""

    kind = FetchErrorKind.INVALID
