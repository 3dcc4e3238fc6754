"""
Follow-up ledger - append-only history of every action recorded against a lead.

The ledger is the lifecycle engine's only input: an action is validated here before
anything is written, then appended inside the engine's transaction. Entries are
point-in-time snapshots and are never updated or deleted; due_amount is computed
once, at write time.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, time
from decimal import Decimal, InvalidOperation

from sqlalchemy import desc, exists, func, select
from sqlalchemy.orm import Session

from app.constants.statuses import (
    ACTION_ALMOST_CONFIRMED,
    ACTION_CONFIRMED_ADVANCE_PAID,
    ACTION_DEAD,
    ACTION_TYPES,
    FOLLOW_UP_CLASS_ACTIONS,
    MAX_AMOUNT,
    STATUS_ALLOCATED,
    STATUS_FOLLOW_UP,
    STATUS_HOT,
)
from app.db.models import FollowUpEntry, Lead
from app.services.actor import Actor
from app.services.errors import ValidationError
from app.utils.datetime_utils import utcnow

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


@dataclass
class LeadAction:
    """An action proposed by an actor; only the fields of its action_type are kept."""

    action_type: str
    note: str | None = None
    # follow_up-class
    next_follow_up_date: date | None = None
    next_follow_up_time: time | None = None
    # confirmed_advance_paid
    itinerary_id: str | None = None
    total_amount: Decimal | int | float | str | None = None
    advance_amount: Decimal | int | float | str | None = None
    transaction_id: str | None = None
    travel_date: date | None = None
    reminder_time: time | None = None
    # dead
    dead_reason: str | None = None


@dataclass(frozen=True)
class FinancialState:
    """Latest known amounts for a lead, taken from the newest entry bearing them."""

    entry_id: int
    total_amount: Decimal
    advance_amount: Decimal
    due_amount: Decimal
    transaction_id: str | None
    itinerary_id: str | None
    recorded_at: datetime


def _to_amount(value, field: str) -> Decimal:
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValidationError(f"{field} is required", field=field)
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number", field=field)
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError) as e:
        raise ValidationError(f"{field} must be a number", field=field) from e
    if not amount.is_finite():
        raise ValidationError(f"{field} must be a finite number", field=field)
    if amount < 0:
        raise ValidationError(f"{field} must not be negative", field=field)
    if amount >= MAX_AMOUNT:
        raise ValidationError(f"{field} must be less than {MAX_AMOUNT:,.0f}", field=field)
    if amount != amount.quantize(CENT):
        raise ValidationError(f"{field} must have at most 2 decimal places", field=field)
    return amount.quantize(CENT)


def _require_text(value: str | None, field: str) -> str:
    if value is None or not str(value).strip():
        raise ValidationError(f"{field} is required", field=field)
    return str(value).strip()


def compute_due_amount(total_amount: Decimal, advance_amount: Decimal) -> Decimal:
    return total_amount - advance_amount


def validate_action(action: LeadAction) -> dict:
    """
    Check payload completeness for the action type.

    Returns:
        The normalized column values for the ledger entry (payload fields only)

    Raises:
        ValidationError: Unknown action type, missing field or malformed amount
    """
    if action.action_type not in ACTION_TYPES:
        raise ValidationError(
            f"Unknown action_type '{action.action_type}'. Expected one of: {', '.join(ACTION_TYPES)}",
            field="action_type",
        )

    values: dict = {"note": action.note.strip() if action.note and action.note.strip() else None}

    if action.action_type in FOLLOW_UP_CLASS_ACTIONS:
        if action.next_follow_up_date is None:
            raise ValidationError("next_follow_up_date is required", field="next_follow_up_date")
        if action.next_follow_up_time is None:
            raise ValidationError("next_follow_up_time is required", field="next_follow_up_time")
        values["next_follow_up_date"] = action.next_follow_up_date
        values["next_follow_up_time"] = action.next_follow_up_time

    elif action.action_type == ACTION_CONFIRMED_ADVANCE_PAID:
        values["itinerary_id"] = _require_text(action.itinerary_id, "itinerary_id")
        total = _to_amount(action.total_amount, "total_amount")
        advance = _to_amount(action.advance_amount, "advance_amount")
        if advance > total:
            raise ValidationError("advance_amount must not exceed total_amount", field="advance_amount")
        values["transaction_id"] = _require_text(action.transaction_id, "transaction_id")
        if action.travel_date is None:
            raise ValidationError("travel_date is required", field="travel_date")
        values["total_amount"] = total
        values["advance_amount"] = advance
        values["due_amount"] = compute_due_amount(total, advance)
        values["travel_date"] = action.travel_date

    elif action.action_type == ACTION_DEAD:
        values["dead_reason"] = _require_text(action.dead_reason, "dead_reason")

    # almost_confirmed carries only the note

    return values


def append(
    db: Session,
    lead: Lead,
    actor: Actor,
    action: LeadAction,
    to_status: str,
    now: datetime | None = None,
) -> FollowUpEntry:
    """
    Validate and append one entry inside the caller's transaction (flush, no commit).

    Args:
        db: Database session with the lifecycle transaction open
        lead: Lead the action is recorded against (status is the from_status)
        actor: Acting user
        action: Proposed action
        to_status: Status the lead moves to (equal to lead.status for annotations)
        now: created_at override

    Returns:
        The flushed FollowUpEntry
    """
    values = validate_action(action)
    entry = FollowUpEntry(
        lead_id=lead.id,
        action_type=action.action_type,
        actor_id=actor.user_id,
        from_status=lead.status,
        to_status=to_status,
        created_at=now or utcnow(),
        **values,
    )
    db.add(entry)
    db.flush()
    return entry


def history_for(db: Session, lead_id: int) -> list[FollowUpEntry]:
    """All entries for a lead, newest first."""
    stmt = (
        select(FollowUpEntry)
        .where(FollowUpEntry.lead_id == lead_id)
        .order_by(desc(FollowUpEntry.created_at), desc(FollowUpEntry.id))
    )
    return list(db.execute(stmt).scalars().all())


def latest_financial_state(db: Session, lead_id: int) -> FinancialState | None:
    stmt = (
        select(FollowUpEntry)
        .where(FollowUpEntry.lead_id == lead_id, FollowUpEntry.total_amount.isnot(None))
        .order_by(desc(FollowUpEntry.created_at), desc(FollowUpEntry.id))
        .limit(1)
    )
    entry = db.execute(stmt).scalar_one_or_none()
    if entry is None:
        return None
    return FinancialState(
        entry_id=entry.id,
        total_amount=entry.total_amount,
        advance_amount=entry.advance_amount,
        due_amount=entry.due_amount,
        transaction_id=entry.transaction_id,
        itinerary_id=entry.itinerary_id,
        recorded_at=entry.created_at,
    )


def upcoming_follow_ups(
    db: Session,
    sales_person_id: str | None = None,
    on_date: date | None = None,
) -> list[tuple[Lead, FollowUpEntry]]:
    """
    Next scheduled follow-up of every lead currently in follow_up.

    Only the latest scheduling entry of each lead counts: rescheduling replaces the
    previous date.

    Args:
        db: Database session
        sales_person_id: Restrict to leads assigned to this sales person
        on_date: Restrict to follow-ups due on this date ("today" view)

    Returns:
        (lead, entry) pairs ordered by next follow-up date and time
    """
    latest = (
        select(FollowUpEntry.lead_id, func.max(FollowUpEntry.id).label("entry_id"))
        .where(FollowUpEntry.next_follow_up_date.isnot(None))
        .group_by(FollowUpEntry.lead_id)
        .subquery()
    )
    stmt = (
        select(Lead, FollowUpEntry)
        .join(latest, latest.c.lead_id == Lead.id)
        .join(FollowUpEntry, FollowUpEntry.id == latest.c.entry_id)
        .where(Lead.status == STATUS_FOLLOW_UP)
        .order_by(FollowUpEntry.next_follow_up_date, FollowUpEntry.next_follow_up_time, Lead.id)
    )
    if sales_person_id is not None:
        stmt = stmt.where(Lead.assigned_to == sales_person_id)
    if on_date is not None:
        stmt = stmt.where(FollowUpEntry.next_follow_up_date == on_date)
    return [(lead, entry) for lead, entry in db.execute(stmt).all()]


def almost_confirmed_leads(db: Session, sales_person_id: str | None = None) -> list[Lead]:
    """Open leads that carry at least one almost_confirmed annotation."""
    marked = exists().where(
        FollowUpEntry.lead_id == Lead.id,
        FollowUpEntry.action_type == ACTION_ALMOST_CONFIRMED,
    )
    stmt = (
        select(Lead)
        .where(marked, Lead.status.in_((STATUS_ALLOCATED, STATUS_HOT, STATUS_FOLLOW_UP)))
        .order_by(desc(Lead.updated_at), desc(Lead.id))
    )
    if sales_person_id is not None:
        stmt = stmt.where(Lead.assigned_to == sales_person_id)
    return list(db.execute(stmt).scalars().all())
