"""
Relationships service — domain-specific HTTP exceptions.

All exceptions use preset status codes and detail messages so that callers
never need to specify these at the call site.  FastAPI renders them as
``{"detail": ...}``; anything else escaping a route is wrapped by the shared
error_envelope_middleware.
"""
from fastapi import HTTPException, status


# ── Invalid operation ─────────────────────────────────────────────────────────

class InvalidOperation(HTTPException):
    """Self-referential relationship actions."""

    def __init__(self, detail: str = "This action cannot target yourself.") -> None:
        super().__init__(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=detail)


class CannotFollowSelf(InvalidOperation):
    def __init__(self) -> None:
        super().__init__("You cannot follow yourself.")


class CannotBlockSelf(InvalidOperation):
    def __init__(self) -> None:
        super().__init__("You cannot block yourself.")


class CannotMessageSelf(InvalidOperation):
    def __init__(self) -> None:
        super().__init__("You cannot start a conversation with yourself.")


# ── Authorization ─────────────────────────────────────────────────────────────

class Blocked(HTTPException):
    """A block exists between the pair in at least one direction."""

    def __init__(self) -> None:
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="This action is not available between you and this user.",
        )


class MessagingNotAllowed(HTTPException):
    """Neither a grandfathered conversation nor a mutual follow exists."""

    def __init__(self) -> None:
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You can only start a conversation with users who follow you back.",
        )


# ── Lookup ────────────────────────────────────────────────────────────────────

class UserNotFound(HTTPException):
    def __init__(self) -> None:
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail="User not found.")


# ── Infrastructure ────────────────────────────────────────────────────────────

class StorageUnavailable(HTTPException):
    """The persistence layer failed; the caller may retry.  Never a permission denial."""

    def __init__(self) -> None:
        super().__init__(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Relationship storage is temporarily unavailable. Please try again.",
        )


class InvariantViolation(RuntimeError):
    """A block edge was observed alongside a follow edge for the same pair.

    Indicates a concurrency bug in the storage layer, not a user error; it
    surfaces as a 500 through the error envelope.
    """
