"""
Lead, reminder and notification constants - centralized to avoid circular imports.
"""

from decimal import Decimal

# Lead lifecycle statuses
STATUS_ADDED_BY_SALES = "added_by_sales"  # Bare contact added by a sales person
STATUS_ALLOCATED = "allocated"  # Assigned by admin (or qualified), normal/urgent
STATUS_HOT = "hot"  # Assigned by admin (or qualified) with lead_type=hot
STATUS_FOLLOW_UP = "follow_up"
STATUS_CONFIRMED = "confirmed"  # Advance paid
STATUS_ALLOCATED_TO_OPERATIONS = "allocated_to_operations"  # Handed over, end of sales workflow
STATUS_DEAD = "dead"

LEAD_STATUSES = (
    STATUS_ADDED_BY_SALES,
    STATUS_ALLOCATED,
    STATUS_HOT,
    STATUS_FOLLOW_UP,
    STATUS_CONFIRMED,
    STATUS_ALLOCATED_TO_OPERATIONS,
    STATUS_DEAD,
)

# Lead types
LEAD_TYPE_NORMAL = "normal"
LEAD_TYPE_URGENT = "urgent"
LEAD_TYPE_HOT = "hot"

LEAD_TYPES = (LEAD_TYPE_NORMAL, LEAD_TYPE_URGENT, LEAD_TYPE_HOT)

# Follow-up ledger action types
ACTION_ITINERARY_SENT = "itinerary_sent"
ACTION_ITINERARY_UPDATED = "itinerary_updated"
ACTION_FOLLOW_UP = "follow_up"
ACTION_CONFIRMED_ADVANCE_PAID = "confirmed_advance_paid"
ACTION_DEAD = "dead"
ACTION_ALMOST_CONFIRMED = "almost_confirmed"  # Annotation only, never moves status

ACTION_TYPES = (
    ACTION_ITINERARY_SENT,
    ACTION_ITINERARY_UPDATED,
    ACTION_FOLLOW_UP,
    ACTION_CONFIRMED_ADVANCE_PAID,
    ACTION_DEAD,
    ACTION_ALMOST_CONFIRMED,
)

# Actions that schedule a next follow-up and move the lead to follow_up
FOLLOW_UP_CLASS_ACTIONS = frozenset(
    {ACTION_ITINERARY_SENT, ACTION_ITINERARY_UPDATED, ACTION_FOLLOW_UP}
)

# Reminder statuses
REMINDER_PENDING = "pending"
REMINDER_TRIGGERED = "triggered"
REMINDER_CANCELLED = "cancelled"

# Actor roles (supplied by the authentication gateway)
ROLE_ADMIN = "admin"
ROLE_SALES = "sales"

ROLES = (ROLE_ADMIN, ROLE_SALES)

# Notification types
NOTIFICATION_LEAD_ASSIGNED = "lead_assigned"
NOTIFICATION_FOLLOW_UP_SCHEDULED = "follow_up_scheduled"
NOTIFICATION_LEAD_CONFIRMED = "lead_confirmed"
NOTIFICATION_LEAD_DEAD = "lead_dead"
NOTIFICATION_LEAD_ALLOCATED_TO_OPERATIONS = "lead_allocated_to_operations"

NOTIFICATION_TYPES = (
    NOTIFICATION_LEAD_ASSIGNED,
    NOTIFICATION_FOLLOW_UP_SCHEDULED,
    NOTIFICATION_LEAD_CONFIRMED,
    NOTIFICATION_LEAD_DEAD,
    NOTIFICATION_LEAD_ALLOCATED_TO_OPERATIONS,
)

# Notification type filters (per-user preference)
NOTIFICATION_FILTER_ALL = "all"
NOTIFICATION_FILTER_HOT_ONLY = "hot_only"

NOTIFICATION_FILTERS = (NOTIFICATION_FILTER_ALL, NOTIFICATION_FILTER_HOT_ONLY)

# Money columns are Numeric(12, 2): amounts must stay below this bound
MAX_AMOUNT = Decimal("1e10")
