"""
Lead, ledger and reminder API request/response schemas.
"""

from dataclasses import fields
from datetime import date, datetime, time
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from app.services.leads import LeadDetails
from app.services.ledger import LeadAction


class LeadDetailsFields(BaseModel):
    """Client attributes shared by create, qualify and update requests."""

    lead_type: str | None = None  # normal, urgent, hot
    client_name: str | None = None
    country_code: str | None = None
    contact_number: str | None = None
    no_of_pax: int | None = None
    place: str | None = None
    travel_date: date | None = None
    travel_month: str | None = None  # Approximate, e.g. "2026-06"
    expected_budget: Decimal | None = None
    remark: str | None = None

    def to_details(self) -> LeadDetails:
        return LeadDetails(**self.model_dump(include={f.name for f in fields(LeadDetails)}))


class CreateLeadRequest(LeadDetailsFields):
    """Admin assignment: a qualified lead for a sales person."""

    assigned_to: str


class AddContactRequest(BaseModel):
    """Sales person adds a bare contact."""

    contact_number: str
    country_code: str | None = None


class QualifyLeadRequest(LeadDetailsFields):
    """Completes a bare contact's details (added_by_sales -> allocated | hot)."""


class UpdateLeadRequest(LeadDetailsFields):
    """Partial edit of client attributes (status is never changed here)."""


class LeadActionRequest(BaseModel):
    """An action to record against a lead; fields depend on action_type."""

    action_type: str
    note: str | None = None
    next_follow_up_date: date | None = None
    next_follow_up_time: time | None = None
    itinerary_id: str | None = None
    total_amount: Decimal | None = None
    advance_amount: Decimal | None = None
    transaction_id: str | None = None
    travel_date: date | None = None
    reminder_time: time | None = None  # Defaults to 09:00
    dead_reason: str | None = None

    def to_action(self) -> LeadAction:
        return LeadAction(**self.model_dump())


class LeadResponse(BaseModel):
    """Response schema for a single lead."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    lead_type: str
    status: str
    client_name: str
    country_code: str | None = None
    contact_number: str | None = None
    no_of_pax: int
    place: str
    travel_date: date | None = None
    travel_month: str | None = None
    expected_budget: Decimal
    remark: str | None = None
    assigned_to: str | None = None
    assigned_by: str | None = None
    created_by: str | None = None
    status_changed_at: datetime | None = None
    qualified_at: datetime | None = None
    confirmed_at: datetime | None = None
    dead_at: datetime | None = None
    allocated_to_operations_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    allowed_actions: list[str] = Field(default_factory=list)


class FollowUpEntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    lead_id: int
    action_type: str
    actor_id: str
    note: str | None = None
    from_status: str
    to_status: str
    next_follow_up_date: date | None = None
    next_follow_up_time: time | None = None
    itinerary_id: str | None = None
    total_amount: Decimal | None = None
    advance_amount: Decimal | None = None
    due_amount: Decimal | None = None
    transaction_id: str | None = None
    travel_date: date | None = None
    dead_reason: str | None = None
    created_at: datetime


class FinancialStateResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    entry_id: int
    total_amount: Decimal
    advance_amount: Decimal
    due_amount: Decimal
    transaction_id: str | None = None
    itinerary_id: str | None = None
    recorded_at: datetime


class UpcomingFollowUpResponse(BaseModel):
    """A lead in follow_up with its latest scheduled next follow-up."""

    lead_id: int
    client_name: str
    lead_type: str
    place: str
    assigned_to: str | None = None
    entry_id: int
    action_type: str
    next_follow_up_date: date
    next_follow_up_time: time
    note: str | None = None


class ReminderResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    lead_id: int
    sales_person_id: str
    travel_date: date
    reminder_date: date
    reminder_time: time
    calendar_event_id: str | None = None
    status: str
    triggered_at: datetime | None = None
    cancelled_at: datetime | None = None
    created_at: datetime | None = None
