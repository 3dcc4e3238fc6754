"""
Notification dispatcher - persists in-app notifications for lifecycle events.

Delivery (push, badges) is out of scope: a notification is a row the client polls.
Per-user preferences decide what is stored:
- notifications disabled -> skipped
- hot_only filter -> only notifications about hot leads are stored
- do-not-disturb window -> stored with is_muted=True (no alert, still listed)

notify() is fire-and-forget: it never raises, so a failing dispatcher cannot undo a
committed lifecycle transition.
"""

import logging
from datetime import datetime, time
from zoneinfo import ZoneInfo

from sqlalchemy import delete, desc, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.constants.event_types import EVENT_NOTIFICATION_FAILURE
from app.constants.statuses import (
    ACTION_CONFIRMED_ADVANCE_PAID,
    ACTION_DEAD,
    FOLLOW_UP_CLASS_ACTIONS,
    LEAD_TYPE_HOT,
    NOTIFICATION_FILTER_ALL,
    NOTIFICATION_FILTER_HOT_ONLY,
    NOTIFICATION_FILTERS,
    NOTIFICATION_FOLLOW_UP_SCHEDULED,
    NOTIFICATION_LEAD_ALLOCATED_TO_OPERATIONS,
    NOTIFICATION_LEAD_ASSIGNED,
    NOTIFICATION_LEAD_CONFIRMED,
    NOTIFICATION_LEAD_DEAD,
)
from app.core.config import settings
from app.db.helpers import commit_and_refresh
from app.db.models import FollowUpEntry, Lead, Notification, NotificationPreference
from app.services.errors import NotificationNotFound, ValidationError
from app.services.metrics import record_external_failure
from app.services.system_event_service import warn
from app.utils.datetime_utils import utcnow

logger = logging.getLogger(__name__)

NOTIFICATIONS_DEPENDENCY = "notifications"

# notify() result statuses
NOTIFY_STORED = "stored"
NOTIFY_MUTED = "muted"
NOTIFY_SKIPPED = "skipped"
NOTIFY_FAILED = "failed"


def get_or_create_preferences(db: Session, user_id: str) -> NotificationPreference:
    """Preferences for a user; defaults (enabled, no DND, all types) are created lazily."""
    pref = db.execute(
        select(NotificationPreference).where(NotificationPreference.user_id == user_id)
    ).scalar_one_or_none()
    if pref is None:
        pref = NotificationPreference(
            user_id=user_id,
            notifications_enabled=True,
            do_not_disturb_enabled=False,
            notification_type_filter=NOTIFICATION_FILTER_ALL,
        )
        db.add(pref)
        commit_and_refresh(db, pref)
    return pref


def update_preferences(
    db: Session,
    user_id: str,
    *,
    notifications_enabled: bool | None = None,
    do_not_disturb_enabled: bool | None = None,
    do_not_disturb_start: time | None = None,
    do_not_disturb_end: time | None = None,
    notification_type_filter: str | None = None,
) -> NotificationPreference:
    """
    Update a user's preferences; None leaves a field unchanged.

    Raises:
        ValidationError: Unknown type filter, or DND enabled without a start and end time
    """
    if notification_type_filter is not None and notification_type_filter not in NOTIFICATION_FILTERS:
        raise ValidationError(
            f"notification_type_filter must be one of: {', '.join(NOTIFICATION_FILTERS)}",
            field="notification_type_filter",
        )

    pref = get_or_create_preferences(db, user_id)
    if notifications_enabled is not None:
        pref.notifications_enabled = notifications_enabled
    if do_not_disturb_enabled is not None:
        pref.do_not_disturb_enabled = do_not_disturb_enabled
    if do_not_disturb_start is not None:
        pref.do_not_disturb_start = do_not_disturb_start
    if do_not_disturb_end is not None:
        pref.do_not_disturb_end = do_not_disturb_end
    if notification_type_filter is not None:
        pref.notification_type_filter = notification_type_filter

    if pref.do_not_disturb_enabled and (pref.do_not_disturb_start is None or pref.do_not_disturb_end is None):
        db.rollback()
        raise ValidationError(
            "do_not_disturb_start and do_not_disturb_end are required when do-not-disturb is enabled",
            field="do_not_disturb_start",
        )

    commit_and_refresh(db, pref)
    return pref


def is_within_dnd_window(start: time, end: time, at: time) -> bool:
    """
    Whether a local time falls inside [start, end).

    Windows may wrap midnight (22:00-07:00). An empty window (start == end) never matches.
    """
    if start == end:
        return False
    if start < end:
        return start <= at < end
    return at >= start or at < end


def _local_time(now: datetime) -> time:
    return now.astimezone(ZoneInfo(settings.reminder_timezone)).time().replace(tzinfo=None)


def notify(
    db: Session,
    user_id: str | None,
    notification_type: str,
    title: str,
    message: str,
    lead: Lead | None = None,
    scheduled_for: datetime | None = None,
    now: datetime | None = None,
) -> dict:
    """
    Persist one notification for a user, honoring their preferences.

    Args:
        db: Database session (no lifecycle transaction may be open)
        user_id: Recipient; None skips
        notification_type: One of the NOTIFICATION_* types
        title: Short title
        message: Body text
        lead: Related lead (its lead_type drives the hot_only filter)
        scheduled_for: When the notified event is due (follow-ups)
        now: Clock override for the do-not-disturb check

    Returns:
        {"status": stored|muted|skipped|failed, "notification_id": int|None, "reason": str|None}
    """
    result: dict = {"status": NOTIFY_SKIPPED, "notification_id": None, "reason": None}
    if not settings.feature_notifications_enabled:
        result["reason"] = "feature_disabled"
        return result
    if not user_id:
        result["reason"] = "no_recipient"
        return result

    try:
        pref = get_or_create_preferences(db, user_id)
        if not pref.notifications_enabled:
            result["reason"] = "disabled_by_user"
            return result
        if pref.notification_type_filter == NOTIFICATION_FILTER_HOT_ONLY and (
            lead is None or lead.lead_type != LEAD_TYPE_HOT
        ):
            result["reason"] = "filtered_hot_only"
            return result

        muted = bool(
            pref.do_not_disturb_enabled
            and pref.do_not_disturb_start is not None
            and pref.do_not_disturb_end is not None
            and is_within_dnd_window(
                pref.do_not_disturb_start, pref.do_not_disturb_end, _local_time(now or utcnow())
            )
        )
        notification = Notification(
            user_id=user_id,
            type=notification_type,
            title=title,
            message=message,
            lead_id=lead.id if lead is not None else None,
            is_read=False,
            is_muted=muted,
            scheduled_for=scheduled_for,
        )
        db.add(notification)
        commit_and_refresh(db, notification)
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to store {notification_type} notification for {user_id}: {e}")
        record_external_failure(NOTIFICATIONS_DEPENDENCY)
        try:
            warn(
                db=db,
                event_type=EVENT_NOTIFICATION_FAILURE,
                lead_id=lead.id if lead is not None else None,
                payload={"user_id": user_id, "notification_type": notification_type},
                exc=e,
            )
        except SQLAlchemyError as event_exc:
            db.rollback()
            logger.error(f"Could not record notification failure event: {event_exc}")
        result.update(status=NOTIFY_FAILED, reason=type(e).__name__)
        return result

    result.update(status=NOTIFY_MUTED if muted else NOTIFY_STORED, notification_id=notification.id)
    return result


def notify_lead_assigned(db: Session, lead: Lead) -> dict:
    return notify(
        db,
        lead.assigned_to,
        NOTIFICATION_LEAD_ASSIGNED,
        title="New lead assigned",
        message=f"{lead.client_name} ({lead.place}, {lead.no_of_pax} pax) has been assigned to you.",
        lead=lead,
    )


def notify_action_recorded(db: Session, lead: Lead, entry: FollowUpEntry) -> dict | None:
    """
    Notification for a ledger entry, if its action type warrants one.

    follow_up-class actions remind the owner of the next follow-up; confirmations
    and dead leads are reported as such. almost_confirmed stays silent.
    """
    if entry.action_type in FOLLOW_UP_CLASS_ACTIONS:
        when = datetime.combine(
            entry.next_follow_up_date,
            entry.next_follow_up_time,
            tzinfo=ZoneInfo(settings.reminder_timezone),
        )
        return notify(
            db,
            lead.assigned_to,
            NOTIFICATION_FOLLOW_UP_SCHEDULED,
            title="Follow-up scheduled",
            message=(
                f"Follow up with {lead.client_name} on "
                f"{entry.next_follow_up_date.isoformat()} at {entry.next_follow_up_time.strftime('%H:%M')}."
            ),
            lead=lead,
            scheduled_for=when,
        )
    if entry.action_type == ACTION_CONFIRMED_ADVANCE_PAID:
        return notify(
            db,
            lead.assigned_to,
            NOTIFICATION_LEAD_CONFIRMED,
            title="Lead confirmed",
            message=(
                f"{lead.client_name} confirmed with an advance of {entry.advance_amount} "
                f"(due {entry.due_amount}). Travel date {entry.travel_date.isoformat()}."
            ),
            lead=lead,
        )
    if entry.action_type == ACTION_DEAD:
        return notify(
            db,
            lead.assigned_to,
            NOTIFICATION_LEAD_DEAD,
            title="Lead closed",
            message=f"{lead.client_name} was marked dead: {entry.dead_reason}",
            lead=lead,
        )
    return None


def notify_allocated_to_operations(db: Session, lead: Lead) -> dict:
    return notify(
        db,
        lead.assigned_to,
        NOTIFICATION_LEAD_ALLOCATED_TO_OPERATIONS,
        title="Lead handed to operations",
        message=f"{lead.client_name} has been allocated to operations.",
        lead=lead,
    )


def list_notifications(
    db: Session,
    user_id: str,
    *,
    unread_only: bool = False,
    include_muted: bool = True,
    limit: int = 100,
) -> list[Notification]:
    """A user's notifications, newest first."""
    stmt = (
        select(Notification)
        .where(Notification.user_id == user_id)
        .order_by(desc(Notification.created_at), desc(Notification.id))
    )
    if unread_only:
        stmt = stmt.where(Notification.is_read.is_(False))
    if not include_muted:
        stmt = stmt.where(Notification.is_muted.is_(False))
    stmt = stmt.limit(max(0, min(limit, 500)))
    return list(db.execute(stmt).scalars().all())


def unread_count(db: Session, user_id: str) -> int:
    stmt = select(func.count(Notification.id)).where(
        Notification.user_id == user_id, Notification.is_read.is_(False)
    )
    return db.execute(stmt).scalar_one()


def mark_read(db: Session, user_id: str, notification_id: int) -> Notification:
    notification = db.get(Notification, notification_id)
    # Other users' notifications are reported as missing
    if notification is None or notification.user_id != user_id:
        raise NotificationNotFound(notification_id)
    if not notification.is_read:
        notification.is_read = True
        commit_and_refresh(db, notification)
    return notification


def clear_all(db: Session, user_id: str) -> int:
    """Delete all of a user's notifications. Returns the number removed."""
    result = db.execute(delete(Notification).where(Notification.user_id == user_id))
    db.commit()
    return result.rowcount
