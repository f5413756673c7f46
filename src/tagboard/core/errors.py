"""Error taxonomy shared by the content store and its HTTP boundary."""

from __future__ import annotations


class TagboardError(RuntimeError):
    """Base exception for every failure raised by the content store."""


class NotFoundError(TagboardError):
    """Raised when a referenced post, tag or user does not exist."""

    def __init__(self, kind: str, key: object) -> None:
        super().__init__(f"{kind} {key!r} not found")
        self.kind = kind
        self.key = key


class ValidationError(TagboardError):
    """Raised for malformed input such as an empty tag set or unknown enum value."""


class ConflictError(TagboardError):
    """Raised when a concurrent mutation of the same post won the race.

    ``retryable`` conflicts come from a lost optimistic-lock race and can be
    re-run against fresh state. Non-retryable conflicts mean the caller's
    view of the post is stale (or the transition is meaningless) and
    re-running the same request cannot succeed.
    """

    def __init__(self, message: str, *, retryable: bool = True) -> None:
        super().__init__(message)
        self.retryable = retryable


class PermissionDeniedError(TagboardError):
    """Raised when the requester's tier does not allow the operation."""


class InvariantViolation(TagboardError):
    """Raised when derived state would diverge from its source of truth.

    Never caused by valid external input; the enclosing transaction must be
    aborted and the failure surfaced loudly.
    """
