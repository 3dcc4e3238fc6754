import logging

from fastapi import APIRouter, Depends, Security
from sqlalchemy.orm import Session

from app.api.auth import get_admin_auth
from app.core.config import settings
from app.db.deps import get_db
from app.schemas.admin import MetricsResponse, RetentionCleanupResponse, SystemEventResponse
from app.services.metrics import get_metrics, get_metrics_summary
from app.services.system_event_service import cleanup_old_events, list_events

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/events", response_model=list[SystemEventResponse])
def get_system_events(
    lead_id: int | None = None,
    event_type: str | None = None,
    level: str | None = None,
    limit: int = 100,
    db: Session = Depends(get_db),
    _auth: bool = Security(get_admin_auth),
):
    """
    List system events, newest first.
    Query params: lead_id, event_type (e.g. lead.transition), level (INFO, WARN, ERROR), limit.
    """
    return list_events(db, lead_id=lead_id, event_type=event_type, level=level, limit=limit)


@router.post("/events/retention-cleanup", response_model=RetentionCleanupResponse)
def retention_cleanup(
    retention_days: int | None = None,
    db: Session = Depends(get_db),
    _auth: bool = Security(get_admin_auth),
):
    """Delete system events older than retention_days (default from settings)."""
    days = retention_days if retention_days is not None else settings.system_event_retention_days
    deleted = cleanup_old_events(db, retention_days=max(1, days))
    return RetentionCleanupResponse(deleted=deleted, retention_days=max(1, days))


@router.get("/metrics", response_model=MetricsResponse)
def metrics(_auth: bool = Security(get_admin_auth)):
    return MetricsResponse(counters=get_metrics(), summary=get_metrics_summary())
