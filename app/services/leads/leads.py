import logging
import re
from dataclasses import dataclass, fields
from datetime import date
from decimal import Decimal, InvalidOperation

from sqlalchemy import desc, select
from sqlalchemy.orm import Session

from app.constants.statuses import (
    LEAD_TYPE_HOT,
    LEAD_TYPE_NORMAL,
    LEAD_TYPES,
    MAX_AMOUNT,
    STATUS_ADDED_BY_SALES,
    STATUS_ALLOCATED,
    STATUS_ALLOCATED_TO_OPERATIONS,
    STATUS_DEAD,
    STATUS_HOT,
)
from app.db.helpers import commit_and_refresh
from app.db.models import Lead
from app.services.actor import Actor
from app.services.errors import ActorNotAuthorized, DuplicateContact, LeadNotFound, ValidationError
from app.services.notifications import notify_lead_assigned
from app.utils.datetime_utils import utcnow

logger = logging.getLogger(__name__)

# Placeholders for a bare contact added by a sales person (filled in at qualification)
PLACEHOLDER_CLIENT_NAME = "To be updated"
PLACEHOLDER_PLACE = "TBD"

CONTACT_DIGITS_MIN = 7
CONTACT_DIGITS_MAX = 15
CENT = Decimal("0.01")

# Leads in these statuses accept no further edits
CLOSED_STATUSES = {STATUS_DEAD, STATUS_ALLOCATED_TO_OPERATIONS}


@dataclass
class LeadDetails:
    """Client attributes of a lead; None means "not provided" (partial updates)."""

    lead_type: str | None = None
    client_name: str | None = None
    country_code: str | None = None
    contact_number: str | None = None
    no_of_pax: int | None = None
    place: str | None = None
    travel_date: date | None = None
    travel_month: str | None = None
    expected_budget: Decimal | int | float | str | None = None
    remark: str | None = None

    def provided(self) -> dict:
        return {f.name: getattr(self, f.name) for f in fields(self) if getattr(self, f.name) is not None}


def get_lead_or_none(db: Session, lead_id: int) -> Lead | None:
    """
    Load a lead by ID. Returns None if not found.

    Use when the caller will handle "not found" (e.g. return tuple, log, raise).
    """
    return db.get(Lead, lead_id)


def get_lead(db: Session, lead_id: int) -> Lead:
    lead = db.get(Lead, lead_id)
    if lead is None:
        raise LeadNotFound(lead_id)
    return lead


def ensure_can_act(actor: Actor, lead: Lead) -> None:
    """Admins act on any lead; sales actors only on leads assigned to them."""
    if actor.is_admin:
        return
    if lead.assigned_to != actor.user_id:
        raise ActorNotAuthorized(f"Lead {lead.id} is not assigned to {actor.user_id}")


def normalize_contact_number(contact_number: str, country_code: str | None = None) -> str:
    """
    Validate a contact number (7-15 digits) and prefix the country code.

    Returns:
        "+<code><digits>" when a country code is given, otherwise the digits
    """
    digits = re.sub(r"\D", "", contact_number or "")
    if not digits:
        raise ValidationError("Contact number is required", field="contact_number")
    if not CONTACT_DIGITS_MIN <= len(digits) <= CONTACT_DIGITS_MAX:
        raise ValidationError(
            f"Contact number must be between {CONTACT_DIGITS_MIN} and {CONTACT_DIGITS_MAX} digits",
            field="contact_number",
        )
    if country_code:
        code = re.sub(r"\D", "", country_code)
        if not code:
            raise ValidationError("Invalid country code", field="country_code")
        return f"+{code}{digits}"
    return digits


def validate_travel_window(travel_date: date | None, travel_month: str | None) -> None:
    """Exactly one of travel_date (exact) and travel_month (approximate) must be set."""
    has_month = bool(travel_month and travel_month.strip())
    if travel_date is not None and has_month:
        raise ValidationError(
            "Provide either travel_date or travel_month, not both", field="travel_date"
        )
    if travel_date is None and not has_month:
        raise ValidationError("Either travel_date or travel_month is required", field="travel_date")


def ensure_contact_unique(db: Session, contact_number: str, exclude_id: int | None = None) -> None:
    """Raise DuplicateContact if another lead already holds this normalized number."""
    stmt = select(Lead.id).where(Lead.contact_number == contact_number)
    if exclude_id is not None:
        stmt = stmt.where(Lead.id != exclude_id)
    if db.execute(stmt.limit(1)).scalar_one_or_none() is not None:
        raise DuplicateContact(
            "This contact number already exists in the system", field="contact_number"
        )


def _to_budget(value) -> Decimal:
    try:
        budget = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError) as e:
        raise ValidationError("expected_budget must be a number", field="expected_budget") from e
    if not budget.is_finite() or budget < 0:
        raise ValidationError("expected_budget must not be negative", field="expected_budget")
    if budget >= MAX_AMOUNT:
        raise ValidationError(f"expected_budget must be less than {MAX_AMOUNT:,.0f}", field="expected_budget")
    if budget != budget.quantize(CENT):
        raise ValidationError("expected_budget must have at most 2 decimal places", field="expected_budget")
    return budget.quantize(CENT)


def apply_details(lead: Lead, details: LeadDetails) -> None:
    """
    Copy provided attributes onto the lead (no status change, no commit).

    Setting travel_date clears travel_month and vice versa.
    """
    values = details.provided()
    if "lead_type" in values and values["lead_type"] not in LEAD_TYPES:
        raise ValidationError(f"Unknown lead_type '{values['lead_type']}'", field="lead_type")
    if "no_of_pax" in values and values["no_of_pax"] < 1:
        raise ValidationError("no_of_pax must be at least 1", field="no_of_pax")
    if "expected_budget" in values:
        values["expected_budget"] = _to_budget(values["expected_budget"])
    for field in ("client_name", "place"):
        if field in values:
            values[field] = values[field].strip()
            if not values[field]:
                raise ValidationError(f"{field} must not be empty", field=field)
    if "contact_number" in values:
        values["contact_number"] = normalize_contact_number(
            values["contact_number"], values.get("country_code")
        )

    if "travel_date" in values:
        lead.travel_month = None
    elif "travel_month" in values:
        lead.travel_date = None

    for name, value in values.items():
        setattr(lead, name, value)


def create_assigned_lead(db: Session, actor: Actor, details: LeadDetails, assigned_to: str) -> Lead:
    """
    Admin assignment: create a qualified lead for a sales person.

    Status is hot for lead_type=hot, allocated otherwise.
    """
    if not actor.is_admin:
        raise ActorNotAuthorized("Only admins can assign leads")
    if not assigned_to:
        raise ValidationError("assigned_to is required", field="assigned_to")
    for field in ("client_name", "contact_number", "place", "no_of_pax", "expected_budget"):
        if getattr(details, field) is None:
            raise ValidationError(f"{field} is required", field=field)
    validate_travel_window(details.travel_date, details.travel_month)

    lead_type = details.lead_type or LEAD_TYPE_NORMAL
    now = utcnow()
    lead = Lead(
        lead_type=lead_type,
        status=STATUS_HOT if lead_type == LEAD_TYPE_HOT else STATUS_ALLOCATED,
        assigned_to=assigned_to,
        assigned_by=actor.user_id,
        created_by=actor.user_id,
        status_changed_at=now,
        qualified_at=now,
    )
    apply_details(lead, details)
    ensure_contact_unique(db, lead.contact_number)
    db.add(lead)
    commit_and_refresh(db, lead)
    logger.info(f"Lead {lead.id} assigned to {assigned_to} by {actor.user_id} (status={lead.status})")
    notify_lead_assigned(db, lead)
    return lead


def add_sales_contact(db: Session, actor: Actor, contact_number: str, country_code: str | None = None) -> Lead:
    """
    Sales person adds a bare contact; the lead starts in added_by_sales.

    Raises:
        ValidationError: Malformed contact number
        DuplicateContact: Number already exists on another lead
    """
    full_number = normalize_contact_number(contact_number, country_code)
    ensure_contact_unique(db, full_number)

    lead = Lead(
        lead_type=LEAD_TYPE_NORMAL,
        status=STATUS_ADDED_BY_SALES,
        client_name=PLACEHOLDER_CLIENT_NAME,
        place=PLACEHOLDER_PLACE,
        no_of_pax=0,
        expected_budget=Decimal("0"),
        country_code=country_code,
        contact_number=full_number,
        assigned_to=actor.user_id,
        assigned_by=None,
        created_by=actor.user_id,
        status_changed_at=utcnow(),
    )
    db.add(lead)
    commit_and_refresh(db, lead)
    logger.info(f"Lead {lead.id} added by {actor.user_id} as bare contact")
    return lead


def update_lead(db: Session, lead_id: int, actor: Actor, details: LeadDetails) -> Lead:
    """
    Edit client attributes without touching status.

    The travel date/month invariant is enforced for every lead past added_by_sales.
    lead_type is fixed after qualification (it decided allocated vs hot).
    """
    lead = get_lead(db, lead_id)
    ensure_can_act(actor, lead)
    if lead.status in CLOSED_STATUSES:
        raise ValidationError(f"Lead {lead.id} is closed ({lead.status}) and cannot be edited")
    if details.lead_type is not None and lead.status != STATUS_ADDED_BY_SALES:
        raise ValidationError("lead_type cannot change after qualification", field="lead_type")

    previous_number = lead.contact_number
    try:
        apply_details(lead, details)
        if lead.contact_number != previous_number:
            ensure_contact_unique(db, lead.contact_number, exclude_id=lead.id)
        if lead.status != STATUS_ADDED_BY_SALES:
            validate_travel_window(lead.travel_date, lead.travel_month)
    except ValidationError:
        db.rollback()
        raise
    commit_and_refresh(db, lead)
    return lead


def query_leads(
    db: Session,
    *,
    assigned_to: str | None = None,
    statuses: list[str] | None = None,
    lead_type: str | None = None,
    limit: int = 100,
    offset: int = 0,
) -> list[Lead]:
    """Leads matching the filters, most recently updated first."""
    stmt = select(Lead).order_by(desc(Lead.updated_at), desc(Lead.id))
    if assigned_to is not None:
        stmt = stmt.where(Lead.assigned_to == assigned_to)
    if statuses:
        stmt = stmt.where(Lead.status.in_(statuses))
    if lead_type is not None:
        stmt = stmt.where(Lead.lead_type == lead_type)
    stmt = stmt.offset(max(0, offset)).limit(max(0, min(limit, 500)))
    return list(db.execute(stmt).scalars().all())
