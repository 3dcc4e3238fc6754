"""
Reminder scheduler - one travel reminder per confirmed lead.

The reminder fires a fixed number of calendar days (default 7) before the travel
date, at the time the sales person picked (default 09:00). The row is written inside
the lifecycle transaction; calendar registration happens after commit and is
best-effort: a failed registration leaves the row with calendar_event_id = None.
"""

import logging
from datetime import date, datetime, time, timedelta
from zoneinfo import ZoneInfo

from sqlalchemy import desc, select
from sqlalchemy.orm import Session

from app.constants.event_types import (
    EVENT_CALENDAR_DELETE_FAILED,
    EVENT_CALENDAR_REGISTRATION_FAILED,
    EVENT_REMINDER_CANCELLED,
    EVENT_REMINDER_SCHEDULED,
    EVENT_REMINDER_TRIGGERED,
)
from app.constants.statuses import REMINDER_CANCELLED, REMINDER_PENDING, REMINDER_TRIGGERED
from app.core.config import settings
from app.db.helpers import commit_and_refresh
from app.db.models import Lead, ReminderRecord
from app.services.calendar_service import CALENDAR_DEPENDENCY, CalendarClient
from app.services.errors import InvalidTransition, ReminderNotFound
from app.services.metrics import record_external_failure
from app.services.system_event_service import info, warn
from app.utils.datetime_utils import parse_hhmm, utcnow

logger = logging.getLogger(__name__)


def default_reminder_time() -> time:
    return parse_hhmm(settings.default_reminder_time)


def compute_reminder_date(travel_date: date, offset_days: int | None = None) -> date:
    """
    Reminder date for a travel date: a fixed calendar-day offset, not business days.

    >>> compute_reminder_date(date(2026, 1, 3))
    datetime.date(2025, 12, 27)
    """
    days = settings.reminder_offset_days if offset_days is None else offset_days
    return travel_date - timedelta(days=days)


def reminder_instant(reminder_date: date, reminder_time: time | None = None, tz: str | None = None) -> datetime:
    """Combine reminder date and time into an aware datetime in the configured timezone."""
    return datetime.combine(
        reminder_date,
        reminder_time or default_reminder_time(),
        tzinfo=ZoneInfo(tz or settings.reminder_timezone),
    )


def create_travel_reminder(
    db: Session,
    lead: Lead,
    sales_person_id: str,
    travel_date: date,
    reminder_time: time | None = None,
) -> ReminderRecord:
    """
    Add a pending reminder for a confirmed lead to the current transaction.

    Does NOT commit: the lifecycle engine commits it together with the status update
    and the ledger entry.
    """
    reminder = ReminderRecord(
        lead_id=lead.id,
        sales_person_id=sales_person_id,
        travel_date=travel_date,
        reminder_date=compute_reminder_date(travel_date),
        reminder_time=reminder_time or default_reminder_time(),
        calendar_event_id=None,
        status=REMINDER_PENDING,
    )
    db.add(reminder)
    return reminder


def format_reminder_event(lead: Lead, reminder: ReminderRecord) -> tuple[str, str]:
    """Calendar title and description for a travel reminder."""
    title = f"Travel Reminder: {lead.client_name}"
    description = (
        f"Client: {lead.client_name}\n"
        f"Location: {lead.place}\n"
        f"Pax: {lead.no_of_pax}\n"
        f"Travel Date: {reminder.travel_date.isoformat()}\n\n"
        f"This is a {(reminder.travel_date - reminder.reminder_date).days}-day advance "
        "reminder for the travel date."
    )
    return title, description


def register_with_calendar(
    db: Session,
    reminder: ReminderRecord,
    lead: Lead,
    calendar: CalendarClient,
) -> str | None:
    """
    Register a committed reminder with the calendar collaborator (best-effort).

    Returns:
        The calendar event reference, or None if registration failed. The reminder
        row stays persisted either way.
    """
    title, description = format_reminder_event(lead, reminder)
    start = reminder_instant(reminder.reminder_date, reminder.reminder_time)

    event_ref: str | None = None
    failure: Exception | None = None
    try:
        event_ref = calendar.create_reminder(title, description, start)
    except Exception as e:  # no-raise contract violated
        failure = e

    if not event_ref:
        logger.warning(f"Calendar registration failed for reminder {reminder.id} (lead {lead.id})")
        record_external_failure(CALENDAR_DEPENDENCY)
        warn(
            db=db,
            event_type=EVENT_CALENDAR_REGISTRATION_FAILED,
            lead_id=lead.id,
            payload={"reminder_id": reminder.id, "start": start.isoformat()},
            exc=failure,
        )
        return None

    reminder.calendar_event_id = event_ref
    commit_and_refresh(db, reminder)
    info(
        db=db,
        event_type=EVENT_REMINDER_SCHEDULED,
        lead_id=lead.id,
        payload={"reminder_id": reminder.id, "calendar_event_id": event_ref},
    )
    return event_ref


def cancel_pending_reminders(db: Session, lead_id: int) -> list[ReminderRecord]:
    """
    Mark a lead's pending reminders cancelled inside the current transaction.

    Returns the cancelled rows so the caller can release their calendar events after commit.
    """
    stmt = select(ReminderRecord).where(
        ReminderRecord.lead_id == lead_id,
        ReminderRecord.status == REMINDER_PENDING,
    )
    cancelled = list(db.execute(stmt).scalars().all())
    now = utcnow()
    for reminder in cancelled:
        reminder.status = REMINDER_CANCELLED
        reminder.cancelled_at = now
    return cancelled


def release_calendar_events(
    db: Session,
    reminders: list[ReminderRecord],
    calendar: CalendarClient,
) -> None:
    """Delete calendar events of cancelled reminders (best-effort, after commit)."""
    for reminder in reminders:
        info(
            db=db,
            event_type=EVENT_REMINDER_CANCELLED,
            lead_id=reminder.lead_id,
            payload={"reminder_id": reminder.id},
        )
        if not reminder.calendar_event_id:
            continue
        try:
            deleted = calendar.delete_reminder(reminder.calendar_event_id)
        except Exception as e:
            logger.warning(f"Calendar delete raised for reminder {reminder.id}: {e}")
            deleted = False
        if not deleted:
            record_external_failure(CALENDAR_DEPENDENCY)
            warn(
                db=db,
                event_type=EVENT_CALENDAR_DELETE_FAILED,
                lead_id=reminder.lead_id,
                payload={"reminder_id": reminder.id, "calendar_event_id": reminder.calendar_event_id},
            )


def mark_reminder_triggered(db: Session, reminder_id: int) -> ReminderRecord:
    """
    Record that the external scheduler fired a reminder (pending -> triggered).

    Idempotent for already-triggered reminders; cancelled reminders cannot trigger.
    """
    reminder = db.get(ReminderRecord, reminder_id)
    if reminder is None:
        raise ReminderNotFound(reminder_id)
    if reminder.status == REMINDER_TRIGGERED:
        return reminder
    if reminder.status != REMINDER_PENDING:
        raise InvalidTransition(reminder.lead_id, reminder.status, "trigger_reminder")

    reminder.status = REMINDER_TRIGGERED
    reminder.triggered_at = utcnow()
    commit_and_refresh(db, reminder)
    info(
        db=db,
        event_type=EVENT_REMINDER_TRIGGERED,
        lead_id=reminder.lead_id,
        payload={"reminder_id": reminder.id},
    )
    return reminder


def list_reminders(
    db: Session,
    sales_person_id: str | None = None,
    status: str | None = None,
    lead_id: int | None = None,
) -> list[ReminderRecord]:
    """Reminders ordered by reminder date, soonest first."""
    stmt = select(ReminderRecord).order_by(ReminderRecord.reminder_date, desc(ReminderRecord.id))
    if sales_person_id is not None:
        stmt = stmt.where(ReminderRecord.sales_person_id == sales_person_id)
    if status is not None:
        stmt = stmt.where(ReminderRecord.status == status)
    if lead_id is not None:
        stmt = stmt.where(ReminderRecord.lead_id == lead_id)
    return list(db.execute(stmt).scalars().all())
