"""
Lifecycle error -> HTTP mapping shared by all routers.
"""

import logging

from fastapi import HTTPException

from app.services.errors import (
    ActorNotAuthorized,
    DuplicateContact,
    InvalidTransition,
    LeadNotFound,
    LifecycleError,
    NotificationNotFound,
    PersistenceFailure,
    ReminderNotFound,
    ValidationError,
)

logger = logging.getLogger(__name__)

# Order matters: subclasses before their base classes
_STATUS_CODES: list[tuple[type[LifecycleError], int]] = [
    (DuplicateContact, 409),
    (ValidationError, 400),
    (LeadNotFound, 404),
    (ReminderNotFound, 404),
    (NotificationNotFound, 404),
    (ActorNotAuthorized, 403),
    (InvalidTransition, 409),
    (PersistenceFailure, 503),
]


def status_code_for(exc: LifecycleError) -> int:
    for exc_type, status_code in _STATUS_CODES:
        if isinstance(exc, exc_type):
            return status_code
    return 500


def to_http_exception(exc: LifecycleError) -> HTTPException:
    """
    Build the HTTPException for a lifecycle failure.

    ValidationError details carry the offending field; InvalidTransition details
    carry the current status and the rejected action.
    """
    status_code = status_code_for(exc)
    detail: dict = {"error": type(exc).__name__, "message": str(exc)}
    if isinstance(exc, ValidationError) and exc.field:
        detail["field"] = exc.field
    if isinstance(exc, InvalidTransition):
        detail["current_status"] = exc.from_status
        detail["action"] = exc.action
    if status_code >= 500:
        logger.error(f"Lifecycle operation failed: {exc}")
    return HTTPException(status_code=status_code, detail=detail)
