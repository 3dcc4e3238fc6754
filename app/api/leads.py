"""
Lead lifecycle endpoints: creation, qualification, actions, history and follow-ups.
"""

import logging
from datetime import datetime
from zoneinfo import ZoneInfo

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.api.auth import get_actor
from app.api.dependencies import get_calendar, get_lead_or_404
from app.api.errors import to_http_exception
from app.core.config import settings
from app.db.deps import get_db
from app.db.models import Lead
from app.schemas.leads import (
    AddContactRequest,
    CreateLeadRequest,
    FinancialStateResponse,
    FollowUpEntryResponse,
    LeadActionRequest,
    LeadResponse,
    QualifyLeadRequest,
    UpcomingFollowUpResponse,
    UpdateLeadRequest,
)
from app.services import ledger, state_machine
from app.services.actor import Actor
from app.services.calendar_service import CalendarClient
from app.services.errors import LifecycleError
from app.services.leads import (
    add_sales_contact,
    create_assigned_lead,
    query_leads,
    update_lead,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def lead_response(lead: Lead) -> LeadResponse:
    response = LeadResponse.model_validate(lead)
    response.allowed_actions = state_machine.get_allowed_actions(lead.status)
    return response


@router.post("/leads", response_model=LeadResponse, status_code=201)
def create_lead(
    body: CreateLeadRequest,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    """Admin assigns a new lead to a sales person (status allocated, or hot for lead_type=hot)."""
    try:
        lead = create_assigned_lead(db, actor, body.to_details(), body.assigned_to)
    except LifecycleError as e:
        raise to_http_exception(e) from e
    return lead_response(lead)


@router.post("/leads/contacts", response_model=LeadResponse, status_code=201)
def add_contact(
    body: AddContactRequest,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    """Sales person adds a bare contact (status added_by_sales)."""
    try:
        lead = add_sales_contact(db, actor, body.contact_number, body.country_code)
    except LifecycleError as e:
        raise to_http_exception(e) from e
    return lead_response(lead)


@router.get("/leads", response_model=list[LeadResponse])
def list_leads(
    status: list[str] | None = Query(default=None),
    lead_type: str | None = None,
    assigned_to: str | None = None,
    limit: int = 100,
    offset: int = 0,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    """
    Query leads. Sales actors only see their own; admins may filter by assigned_to.
    """
    owner = assigned_to if actor.is_admin else actor.user_id
    leads = query_leads(
        db, assigned_to=owner, statuses=status, lead_type=lead_type, limit=limit, offset=offset
    )
    return [lead_response(lead) for lead in leads]


@router.get("/leads/almost-confirmed", response_model=list[LeadResponse])
def list_almost_confirmed(
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    leads = ledger.almost_confirmed_leads(db, sales_person_id=None if actor.is_admin else actor.user_id)
    return [lead_response(lead) for lead in leads]


@router.get("/leads/{lead_id}", response_model=LeadResponse)
def get_lead_detail(lead: Lead = Depends(get_lead_or_404)):
    return lead_response(lead)


@router.patch("/leads/{lead_id}", response_model=LeadResponse)
def edit_lead(
    lead_id: int,
    body: UpdateLeadRequest,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    """Edit client attributes; status is untouched."""
    try:
        lead = update_lead(db, lead_id, actor, body.to_details())
    except LifecycleError as e:
        raise to_http_exception(e) from e
    return lead_response(lead)


@router.post("/leads/{lead_id}/qualify", response_model=LeadResponse)
def qualify(
    lead_id: int,
    body: QualifyLeadRequest,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    try:
        lead = state_machine.qualify_lead(db, lead_id, body.to_details(), actor)
    except LifecycleError as e:
        raise to_http_exception(e) from e
    return lead_response(lead)


@router.post("/leads/{lead_id}/actions", response_model=LeadResponse)
def record_action(
    lead_id: int,
    body: LeadActionRequest,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
    calendar: CalendarClient = Depends(get_calendar),
):
    """
    Record an action (itinerary_sent, itinerary_updated, follow_up, confirmed_advance_paid,
    dead, almost_confirmed) and apply its transition.
    """
    try:
        lead = state_machine.apply_action(db, lead_id, body.to_action(), actor, calendar=calendar)
    except LifecycleError as e:
        raise to_http_exception(e) from e
    return lead_response(lead)


@router.post("/leads/{lead_id}/allocate-to-operations", response_model=LeadResponse)
def hand_over_to_operations(
    lead_id: int,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    try:
        lead = state_machine.allocate_to_operations(db, lead_id, actor)
    except LifecycleError as e:
        raise to_http_exception(e) from e
    return lead_response(lead)


@router.get("/leads/{lead_id}/history", response_model=list[FollowUpEntryResponse])
def lead_history(lead: Lead = Depends(get_lead_or_404), db: Session = Depends(get_db)):
    """Ledger entries, newest first."""
    return ledger.history_for(db, lead.id)


@router.get("/leads/{lead_id}/financials", response_model=FinancialStateResponse | None)
def lead_financials(lead: Lead = Depends(get_lead_or_404), db: Session = Depends(get_db)):
    """Latest total/advance/due amounts (null before any confirmation)."""
    return ledger.latest_financial_state(db, lead.id)


@router.get("/follow-ups/upcoming", response_model=list[UpcomingFollowUpResponse])
def upcoming_follow_ups(
    today_only: bool = False,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    """Next scheduled follow-up of each lead in follow_up; today_only uses the business timezone."""
    on_date = datetime.now(ZoneInfo(settings.reminder_timezone)).date() if today_only else None
    rows = ledger.upcoming_follow_ups(
        db,
        sales_person_id=None if actor.is_admin else actor.user_id,
        on_date=on_date,
    )
    return [
        UpcomingFollowUpResponse(
            lead_id=lead.id,
            client_name=lead.client_name,
            lead_type=lead.lead_type,
            place=lead.place,
            assigned_to=lead.assigned_to,
            entry_id=entry.id,
            action_type=entry.action_type,
            next_follow_up_date=entry.next_follow_up_date,
            next_follow_up_time=entry.next_follow_up_time,
            note=entry.note,
        )
        for lead, entry in rows
    ]
