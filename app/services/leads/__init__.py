"""Lead store: creation, lookup, editing and actor checks. Re-exports for stable public API."""

from app.services.leads.leads import (
    CLOSED_STATUSES,
    LeadDetails,
    add_sales_contact,
    apply_details,
    create_assigned_lead,
    ensure_can_act,
    ensure_contact_unique,
    get_lead,
    get_lead_or_none,
    normalize_contact_number,
    query_leads,
    update_lead,
    validate_travel_window,
)

__all__ = [
    "CLOSED_STATUSES",
    "LeadDetails",
    "add_sales_contact",
    "apply_details",
    "create_assigned_lead",
    "ensure_can_act",
    "ensure_contact_unique",
    "get_lead",
    "get_lead_or_none",
    "normalize_contact_number",
    "query_leads",
    "update_lead",
    "validate_travel_window",
]
