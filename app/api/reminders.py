"""
Travel reminder endpoints: listing, iCalendar download and the scheduler callback.
"""

import logging
from datetime import timedelta

from fastapi import APIRouter, Depends, HTTPException, Response, Security
from sqlalchemy.orm import Session

from app.api.auth import get_actor, get_admin_auth
from app.api.errors import to_http_exception
from app.core.config import settings
from app.db.deps import get_db
from app.db.models import ReminderRecord
from app.schemas.leads import ReminderResponse
from app.services.actor import Actor
from app.services.calendar_service import build_ics_event
from app.services.errors import LifecycleError
from app.services.reminders import (
    format_reminder_event,
    list_reminders,
    mark_reminder_triggered,
    reminder_instant,
)

logger = logging.getLogger(__name__)

router = APIRouter()

ICS_MEDIA_TYPE = "text/calendar"


@router.get("/reminders", response_model=list[ReminderResponse])
def get_reminders(
    status: str | None = None,
    lead_id: int | None = None,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    """Reminders of the acting sales person (all reminders for admins), soonest first."""
    return list_reminders(
        db,
        sales_person_id=None if actor.is_admin else actor.user_id,
        status=status,
        lead_id=lead_id,
    )


@router.get("/reminders/{reminder_id}/ics")
def download_ics(
    reminder_id: int,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    """
    iCalendar file for a reminder, for clients without a calendar service.
    """
    reminder = db.get(ReminderRecord, reminder_id)
    if reminder is None:
        raise HTTPException(status_code=404, detail="Reminder not found")
    if not actor.is_admin and reminder.sales_person_id != actor.user_id:
        raise HTTPException(status_code=403, detail="Reminder belongs to another sales person")

    title, description = format_reminder_event(reminder.lead, reminder)
    start = reminder_instant(reminder.reminder_date, reminder.reminder_time)
    body = build_ics_event(
        uid=f"reminder-{reminder.id}@travel-crm",
        title=title,
        description=description,
        start=start,
        end=start + timedelta(minutes=30),
        alarm_minutes=settings.calendar_alarm_minutes,
    )
    return Response(
        content=body,
        media_type=ICS_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="reminder-{reminder.id}.ics"'},
    )


@router.post("/reminders/{reminder_id}/triggered", response_model=ReminderResponse)
def reminder_triggered(
    reminder_id: int,
    db: Session = Depends(get_db),
    _auth: bool = Security(get_admin_auth),
):
    """
    Callback from the external scheduler once a reminder fired (pending -> triggered).
    Repeated callbacks are no-ops; cancelled reminders answer 409.
    """
    try:
        return mark_reminder_triggered(db, reminder_id)
    except LifecycleError as e:
        raise to_http_exception(e) from e
