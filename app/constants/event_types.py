"""
Event type constants for SystemEvent.

Use these instead of string literals to ensure consistency.
"""

# ---- Lifecycle engine ----
EVENT_LEAD_TRANSITION = "lead.transition"
EVENT_LEAD_ANNOTATED = "lead.annotated"
EVENT_LEAD_QUALIFIED = "lead.qualified"
EVENT_LEAD_ALLOCATED_TO_OPERATIONS = "lead.allocated_to_operations"
EVENT_TRANSITION_REJECTED = "lead.transition_rejected"

# ---- Calendar ----
EVENT_CALENDAR_REGISTRATION_FAILED = "calendar.registration_failed"
EVENT_CALENDAR_DELETE_FAILED = "calendar.delete_failed"

# ---- Reminders ----
EVENT_REMINDER_SCHEDULED = "reminder.scheduled"
EVENT_REMINDER_CANCELLED = "reminder.cancelled"
EVENT_REMINDER_TRIGGERED = "reminder.triggered"

# ---- Notifications ----
EVENT_NOTIFICATION_FAILURE = "notification.failure"
