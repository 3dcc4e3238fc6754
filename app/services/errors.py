"""
Typed failures raised by the lead store, ledger and lifecycle engine.

Everything except ExternalDependencyFailure is surfaced synchronously to the caller.
ExternalDependencyFailure is raised inside calendar/notification collaborators and
contained there - it never fails a lifecycle transition.
"""


class LifecycleError(Exception):
    """Base class for lead lifecycle failures."""


class ValidationError(LifecycleError):
    """Missing or malformed payload; rejected before anything is written."""

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.field = field


class DuplicateContact(ValidationError):
    """Contact number already belongs to another lead."""


class LeadNotFound(LifecycleError):
    def __init__(self, lead_id: int):
        super().__init__(f"Lead {lead_id} not found")
        self.lead_id = lead_id


class ActorNotAuthorized(LifecycleError):
    """Actor may not act on this lead (sales actors only own their assigned leads)."""


class InvalidTransition(LifecycleError):
    """Action not permitted from the lead's current status."""

    def __init__(self, lead_id: int, from_status: str, action: str):
        super().__init__(
            f"Invalid transition for lead {lead_id}: '{action}' is not allowed "
            f"from status '{from_status}'"
        )
        self.lead_id = lead_id
        self.from_status = from_status
        self.action = action


class PersistenceFailure(LifecycleError):
    """Store unavailable; the whole operation was rolled back and may be retried."""


class ExternalDependencyFailure(Exception):
    """Calendar or notification collaborator failed (non-fatal)."""

    def __init__(self, dependency: str, message: str):
        super().__init__(f"{dependency}: {message}")
        self.dependency = dependency


class ReminderNotFound(LifecycleError):
    def __init__(self, reminder_id: int):
        super().__init__(f"Reminder {reminder_id} not found")
        self.reminder_id = reminder_id


class NotificationNotFound(LifecycleError):
    def __init__(self, notification_id: int):
        super().__init__(f"Notification {notification_id} not found")
        self.notification_id = notification_id
