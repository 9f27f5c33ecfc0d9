"""
PokeLend Backend — Custom Exception Hierarchy
===============================================

What:  Application-specific exceptions for every lending outcome that is not
       a success.
How:   Each exception carries a human-readable message and an optional
       context dict. Global exception handlers (registered in main.py) catch
       these and return structured JSON error responses.
Who:   Raised by the lending engine and the storage adapter.

Exception Hierarchy:
    LendingError (base)
    ├── ValidationError          → 400 Bad Request (malformed or empty input)
    ├── AuthError                → 401 Unauthorized (credential rejected)
    ├── NotFoundError            → 404 Not Found (unknown item/entry/list)
    ├── ConflictError            → 409 Conflict (item unavailable, lost race)
    └── InternalError            → 500 Internal Server Error (storage failure)

State guarantees:
    ValidationError and AuthError are always raised before a write
    transaction opens. ConflictError and NotFoundError raised from inside a
    transaction are raised only after it has been rolled back. In every case
    the datastore is left exactly as it was before the call.
"""

from typing import Any, Dict, Iterable, Optional


class LendingError(Exception):
    """
    Base exception for all PokeLend application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional info; offending ids are returned to the client,
                  anything else is logged only
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(LendingError):
    """
    Raised when client input fails validation.

    When:    Empty item list, malformed id, duration out of range, comment
             too long, missing credential.
    HTTP:    400 Bad Request
    """

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class AuthError(LendingError):
    """
    Raised when a borrower credential does not match.

    HTTP:    401 Unauthorized

    The message never says whether the borrower or the entry exists.
    """

    def __init__(
        self,
        message: str = "Invalid borrower credential",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class NotFoundError(LendingError):
    """
    Raised when a requested resource does not exist.

    HTTP:    404 Not Found

    A single id goes in the message; several missing ids (batch reservation)
    are listed in the message and in context["resource_ids"].
    """

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        resource_ids: Optional[Iterable[str]] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        ctx["resource"] = resource
        ids = [str(r) for r in resource_ids] if resource_ids else []
        if resource_id:
            message = f"{resource} with ID '{resource_id}' was not found"
            ctx["resource_id"] = str(resource_id)
        elif ids:
            message = f"{resource} not found: {', '.join(ids)}"
            ctx["resource_ids"] = ids
        else:
            message = f"The requested {resource} was not found"
        super().__init__(message=message, context=ctx)


class ConflictError(LendingError):
    """
    Raised when items cannot be transitioned because of their current state.

    When:
        - An item in a strict reservation is not `available`
        - The version-guarded update missed because a concurrent transaction
          changed the item between the snapshot read and the write
        - A favorite-list borrow found nothing it could reserve
    HTTP:    409 Conflict
    """

    def __init__(
        self,
        message: str = "The request conflicts with the current item state",
        item_ids: Optional[Iterable[str]] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        self.item_ids = [str(i) for i in item_ids] if item_ids else []
        if self.item_ids:
            ctx["item_ids"] = self.item_ids
        super().__init__(message=message, context=ctx)


class InternalError(LendingError):
    """
    Raised when the storage layer fails unexpectedly.

    When:    Connection lost mid-transaction, commit failure, rollback
             failure, transient errors that outlived every retry.
    HTTP:    500 Internal Server Error

    The message is always generic; the driver error type goes into context
    and is logged server-side only.
    """

    def __init__(
        self,
        message: str = "A storage error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)

