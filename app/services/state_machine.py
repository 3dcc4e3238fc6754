"""
Lifecycle engine - the single authority over lead status transitions.

Every status change goes through apply_action, qualify_lead or allocate_to_operations.

- The transition table is keyed by (from_status, action)
- The lead row is reloaded with SELECT FOR UPDATE
- Status update, ledger entry and reminder rows commit in ONE transaction
- Side effects (calendar, notifications, system events) happen AFTER commit and never
  undo the transition
"""

import logging
from collections.abc import Iterator
from contextlib import contextmanager, nullcontext

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.constants.event_types import (
    EVENT_LEAD_ALLOCATED_TO_OPERATIONS,
    EVENT_LEAD_ANNOTATED,
    EVENT_LEAD_QUALIFIED,
    EVENT_LEAD_TRANSITION,
    EVENT_TRANSITION_REJECTED,
)
from app.constants.statuses import (
    ACTION_ALMOST_CONFIRMED,
    ACTION_CONFIRMED_ADVANCE_PAID,
    ACTION_DEAD,
    ACTION_FOLLOW_UP,
    ACTION_ITINERARY_SENT,
    ACTION_ITINERARY_UPDATED,
    LEAD_TYPE_HOT,
    LEAD_TYPE_NORMAL,
    STATUS_ADDED_BY_SALES,
    STATUS_ALLOCATED,
    STATUS_ALLOCATED_TO_OPERATIONS,
    STATUS_CONFIRMED,
    STATUS_DEAD,
    STATUS_FOLLOW_UP,
    STATUS_HOT,
)
from app.db.models import Lead
from app.services import ledger
from app.services.actor import Actor
from app.services.calendar_service import CalendarClient, calendar_client
from app.services.errors import (
    InvalidTransition,
    LeadNotFound,
    LifecycleError,
    PersistenceFailure,
    ValidationError,
)
from app.services.leads import (
    LeadDetails,
    apply_details,
    ensure_can_act,
    ensure_contact_unique,
    validate_travel_window,
)
from app.services.metrics import (
    record_persistence_failure,
    record_rejected_transition,
    record_transition,
)
from app.services.notifications import (
    notify_action_recorded,
    notify_allocated_to_operations,
    notify_lead_assigned,
)
from app.services.reminders import (
    cancel_pending_reminders,
    create_travel_reminder,
    register_with_calendar,
    release_calendar_events,
)
from app.services.system_event_service import info, warn
from app.utils.datetime_utils import utcnow

logger = logging.getLogger(__name__)

# Engine-only actions (not ledger action types)
ACTION_QUALIFY = "qualify"
ACTION_ALLOCATE_TO_OPERATIONS = "allocate_to_operations"

# Define allowed transitions
# Format: {(from_status, action): to_status}
TRANSITIONS = {
    # qualify lands in hot for lead_type=hot (see qualified_status)
    (STATUS_ADDED_BY_SALES, ACTION_QUALIFY): STATUS_ALLOCATED,
    (STATUS_ALLOCATED, ACTION_ITINERARY_SENT): STATUS_FOLLOW_UP,
    (STATUS_ALLOCATED, ACTION_ITINERARY_UPDATED): STATUS_FOLLOW_UP,
    (STATUS_ALLOCATED, ACTION_FOLLOW_UP): STATUS_FOLLOW_UP,
    (STATUS_ALLOCATED, ACTION_CONFIRMED_ADVANCE_PAID): STATUS_CONFIRMED,
    (STATUS_ALLOCATED, ACTION_DEAD): STATUS_DEAD,
    (STATUS_ALLOCATED, ACTION_ALMOST_CONFIRMED): STATUS_ALLOCATED,
    (STATUS_HOT, ACTION_ITINERARY_SENT): STATUS_FOLLOW_UP,
    (STATUS_HOT, ACTION_ITINERARY_UPDATED): STATUS_FOLLOW_UP,
    (STATUS_HOT, ACTION_FOLLOW_UP): STATUS_FOLLOW_UP,
    (STATUS_HOT, ACTION_CONFIRMED_ADVANCE_PAID): STATUS_CONFIRMED,
    (STATUS_HOT, ACTION_DEAD): STATUS_DEAD,
    (STATUS_HOT, ACTION_ALMOST_CONFIRMED): STATUS_HOT,
    # Self-loop: reschedules the next follow-up
    (STATUS_FOLLOW_UP, ACTION_ITINERARY_SENT): STATUS_FOLLOW_UP,
    (STATUS_FOLLOW_UP, ACTION_ITINERARY_UPDATED): STATUS_FOLLOW_UP,
    (STATUS_FOLLOW_UP, ACTION_FOLLOW_UP): STATUS_FOLLOW_UP,
    (STATUS_FOLLOW_UP, ACTION_CONFIRMED_ADVANCE_PAID): STATUS_CONFIRMED,
    (STATUS_FOLLOW_UP, ACTION_DEAD): STATUS_DEAD,
    (STATUS_FOLLOW_UP, ACTION_ALMOST_CONFIRMED): STATUS_FOLLOW_UP,
    (STATUS_CONFIRMED, ACTION_ALLOCATE_TO_OPERATIONS): STATUS_ALLOCATED_TO_OPERATIONS,
}

# Terminal state definitions (no outbound edges)
TERMINAL_STATES = {
    STATUS_DEAD,
    STATUS_ALLOCATED_TO_OPERATIONS,
}

# Statuses from which sales actions can still be recorded
OPEN_STATUSES = {STATUS_ALLOCATED, STATUS_HOT, STATUS_FOLLOW_UP}


def is_action_allowed(from_status: str, action: str) -> bool:
    """
    Check if an action is accepted from a status.

    Args:
        from_status: Current status
        action: Ledger action type, or qualify / allocate_to_operations

    Returns:
        True if the transition table has an edge for (from_status, action)
    """
    return (from_status, action) in TRANSITIONS


def get_allowed_actions(from_status: str) -> list[str]:
    """
    Get list of actions accepted from a status (empty for terminal states).
    """
    return [action for (status, action) in TRANSITIONS if status == from_status]


def is_terminal_state(status: str) -> bool:
    return status in TERMINAL_STATES


def qualified_status(lead_type: str | None) -> str:
    """Status a qualified lead enters: hot for lead_type=hot, allocated otherwise."""
    return STATUS_HOT if lead_type == LEAD_TYPE_HOT else STATUS_ALLOCATED


@contextmanager
def lifecycle_transaction(db: Session, operation: str) -> Iterator[None]:
    """
    Commit on success; roll back on any failure.

    SQLAlchemy errors surface as PersistenceFailure (nothing was written).
    """
    try:
        yield
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        record_persistence_failure(operation)
        logger.error(f"{operation} rolled back after store failure: {e}")
        raise PersistenceFailure(f"{operation} failed: the store is unavailable and nothing was saved") from e
    except LifecycleError:
        db.rollback()
        raise


def _lock_lead(db: Session, lead_id: int, actor: Actor) -> Lead:
    # CRITICAL: lock the row so the status read and the write see the same state
    stmt = (
        select(Lead)
        .where(Lead.id == lead_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    lead = db.execute(stmt).scalar_one_or_none()
    if lead is None:
        raise LeadNotFound(lead_id)
    ensure_can_act(actor, lead)
    return lead


def _record_rejection(db: Session, exc: InvalidTransition, actor: Actor) -> None:
    """Runs after rollback: the rejection is reported, nothing else is written."""
    logger.warning(
        f"Invalid transition attempted: '{exc.action}' from '{exc.from_status}' for lead {exc.lead_id}"
    )
    record_rejected_transition(exc.from_status, exc.action)
    warn(
        db=db,
        event_type=EVENT_TRANSITION_REJECTED,
        lead_id=exc.lead_id,
        payload={"from_status": exc.from_status, "action": exc.action, "actor_id": actor.user_id},
    )


def apply_action(
    db: Session,
    lead_id: int,
    action: ledger.LeadAction,
    actor: Actor,
    calendar: CalendarClient | None = None,
) -> Lead:
    """
    Record an action against a lead and apply the resulting transition.

    CRITICAL: the ledger entry, the status update and (for confirmed_advance_paid) the
    reminder row are committed together or not at all.

    Args:
        db: Database session
        lead_id: Lead to act on
        action: Proposed action with its payload
        actor: Acting user (sales actors only act on their own leads)
        calendar: Calendar collaborator (defaults to a configured client opened and closed here)

    Returns:
        The refreshed Lead

    Raises:
        ValidationError: Incomplete or malformed payload (checked before any write)
        LeadNotFound: No such lead
        ActorNotAuthorized: Sales actor acting on someone else's lead
        InvalidTransition: No edge for (status, action), including every action on a terminal lead
        PersistenceFailure: Store failure; nothing was applied
    """
    ledger.validate_action(action)

    reminder = None
    cancelled = []
    try:
        with lifecycle_transaction(db, "apply_action"):
            lead = _lock_lead(db, lead_id, actor)
            from_status = lead.status
            to_status = TRANSITIONS.get((from_status, action.action_type))
            if to_status is None:
                raise InvalidTransition(lead.id, from_status, action.action_type)

            now = utcnow()
            entry = ledger.append(db, lead, actor, action, to_status, now=now)

            if to_status != from_status:
                lead.status = to_status
                lead.status_changed_at = now

            if action.action_type == ACTION_CONFIRMED_ADVANCE_PAID:
                lead.confirmed_at = now
                lead.travel_date = action.travel_date
                lead.travel_month = None
                reminder = create_travel_reminder(
                    db,
                    lead,
                    sales_person_id=lead.assigned_to or actor.user_id,
                    travel_date=action.travel_date,
                    reminder_time=action.reminder_time,
                )
            elif action.action_type == ACTION_DEAD:
                lead.dead_at = now
                cancelled = cancel_pending_reminders(db, lead.id)

            validate_travel_window(lead.travel_date, lead.travel_month)
    except InvalidTransition as e:
        _record_rejection(db, e, actor)
        raise

    db.refresh(lead)
    logger.info(
        f"Lead {lead.id} {action.action_type} by {actor.user_id}: {from_status} -> {to_status}"
    )

    # Side effects AFTER commit
    if reminder is not None or cancelled:
        # A client built here is closed here; a caller-supplied one belongs to the caller
        scope = nullcontext(calendar) if calendar is not None else calendar_client()
        with scope as client:
            if reminder is not None:
                register_with_calendar(db, reminder, lead, client)
            if cancelled:
                release_calendar_events(db, cancelled, client)
    notify_action_recorded(db, lead, entry)

    info(
        db=db,
        event_type=EVENT_LEAD_TRANSITION if to_status != from_status else EVENT_LEAD_ANNOTATED,
        lead_id=lead.id,
        payload={
            "from_status": from_status,
            "to_status": to_status,
            "action": action.action_type,
            "entry_id": entry.id,
            "actor_id": actor.user_id,
        },
    )
    record_transition(from_status, action.action_type, to_status)
    return lead


def qualify_lead(db: Session, lead_id: int, details: LeadDetails, actor: Actor) -> Lead:
    """
    Qualify a bare contact: added_by_sales -> allocated | hot.

    The client details are completed and the travel date/month invariant is enforced
    before the status moves.

    Raises:
        ValidationError: Missing details or both/neither of travel_date and travel_month
        InvalidTransition: Lead is not in added_by_sales
    """
    for field in ("client_name", "place", "no_of_pax", "expected_budget"):
        if getattr(details, field) is None:
            raise ValidationError(f"{field} is required", field=field)

    try:
        with lifecycle_transaction(db, "qualify_lead"):
            lead = _lock_lead(db, lead_id, actor)
            from_status = lead.status
            if not is_action_allowed(from_status, ACTION_QUALIFY):
                raise InvalidTransition(lead.id, from_status, ACTION_QUALIFY)

            # Travel window comes wholly from the qualification form
            lead.travel_date = None
            lead.travel_month = None
            previous_number = lead.contact_number
            apply_details(lead, details)
            if lead.contact_number != previous_number:
                ensure_contact_unique(db, lead.contact_number, exclude_id=lead.id)
            validate_travel_window(lead.travel_date, lead.travel_month)
            if lead.lead_type is None:
                lead.lead_type = LEAD_TYPE_NORMAL

            now = utcnow()
            lead.status = qualified_status(lead.lead_type)
            lead.status_changed_at = now
            lead.qualified_at = now
            if actor.is_admin and lead.assigned_by is None:
                lead.assigned_by = actor.user_id
    except InvalidTransition as e:
        _record_rejection(db, e, actor)
        raise

    db.refresh(lead)
    to_status = lead.status
    logger.info(f"Lead {lead.id} qualified by {actor.user_id}: {from_status} -> {to_status}")

    if lead.assigned_to and lead.assigned_to != actor.user_id:
        notify_lead_assigned(db, lead)
    info(
        db=db,
        event_type=EVENT_LEAD_QUALIFIED,
        lead_id=lead.id,
        payload={
            "from_status": from_status,
            "to_status": to_status,
            "lead_type": lead.lead_type,
            "actor_id": actor.user_id,
        },
    )
    record_transition(from_status, ACTION_QUALIFY, to_status)
    return lead


def allocate_to_operations(db: Session, lead_id: int, actor: Actor) -> Lead:
    """
    Hand a confirmed lead to operations: confirmed -> allocated_to_operations (terminal).

    Raises:
        InvalidTransition: Lead is not confirmed
    """
    try:
        with lifecycle_transaction(db, "allocate_to_operations"):
            lead = _lock_lead(db, lead_id, actor)
            from_status = lead.status
            to_status = TRANSITIONS.get((from_status, ACTION_ALLOCATE_TO_OPERATIONS))
            if to_status is None:
                raise InvalidTransition(lead.id, from_status, ACTION_ALLOCATE_TO_OPERATIONS)
            now = utcnow()
            lead.status = to_status
            lead.status_changed_at = now
            lead.allocated_to_operations_at = now
    except InvalidTransition as e:
        _record_rejection(db, e, actor)
        raise

    db.refresh(lead)
    logger.info(f"Lead {lead.id} allocated to operations by {actor.user_id}")

    notify_allocated_to_operations(db, lead)
    info(
        db=db,
        event_type=EVENT_LEAD_ALLOCATED_TO_OPERATIONS,
        lead_id=lead.id,
        payload={"from_status": from_status, "to_status": to_status, "actor_id": actor.user_id},
    )
    record_transition(from_status, ACTION_ALLOCATE_TO_OPERATIONS, to_status)
    return lead
