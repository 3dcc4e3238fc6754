"""FastAPI dependencies for API routes."""

from collections.abc import Iterator

from fastapi import Depends, HTTPException
from sqlalchemy.orm import Session

from app.api.auth import get_actor
from app.db.deps import get_db
from app.db.models import Lead
from app.services.actor import Actor
from app.services.calendar_service import CalendarClient, calendar_client


def get_lead_or_404(lead_id: int, db: Session = Depends(get_db), actor: Actor = Depends(get_actor)) -> Lead:
    """
    Resolve lead by path parameter lead_id; raise 404 if not found, 403 if the
    sales actor does not own it.

    Use as a dependency on read routes with path parameter {lead_id}.
    """
    lead = db.get(Lead, lead_id)
    if not lead:
        raise HTTPException(status_code=404, detail="Lead not found")
    if not actor.is_admin and lead.assigned_to != actor.user_id:
        raise HTTPException(status_code=403, detail="Lead is not assigned to you")
    return lead


def get_calendar() -> Iterator[CalendarClient]:
    """Request-scoped calendar collaborator; its connection pool is closed after the response."""
    with calendar_client() as client:
        yield client
