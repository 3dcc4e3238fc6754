"""
System event logging service.

Persists structured records of lifecycle transitions and collaborator failures.
All SystemEvent creation goes through log_event (or info/warn/error) so payloads
keep a consistent shape.

log_event commits its own row: never call it while a lifecycle transaction is open.
"""

import logging
from datetime import UTC, datetime, timedelta

from sqlalchemy import delete, desc, select
from sqlalchemy.orm import Session

from app.db.models import SystemEvent
from app.middleware.correlation_id import get_correlation_id

logger = logging.getLogger(__name__)

# Default retention: delete events older than this many days
DEFAULT_RETENTION_DAYS = 90


def log_event(
    db: Session,
    level: str,
    event_type: str,
    lead_id: int | None = None,
    payload: dict | None = None,
    exc: BaseException | None = None,
    correlation_id: str | None = None,
) -> SystemEvent:
    """
    Log a system event to the database.

    Args:
        db: Database session
        level: Event level (INFO, WARN, ERROR)
        event_type: Type of event (e.g., "lead.transition", "calendar.registration_failed")
        lead_id: Optional lead ID associated with the event
        payload: Optional additional event data (copied, never mutated)
        exc: Optional exception; its type and message are added to the payload
        correlation_id: Optional request correlation ID (defaults to the current request's)

    Returns:
        Created SystemEvent object
    """
    normalized: dict = dict(payload) if payload else {}
    if exc is not None:
        normalized["error"] = {
            "type": type(exc).__name__,
            "message": str(exc)[:500],  # Truncate to avoid huge payloads
        }
    resolved_cid = correlation_id if correlation_id is not None else get_correlation_id()
    if resolved_cid is not None:
        normalized["correlation_id"] = resolved_cid

    event = SystemEvent(
        level=level.upper(),
        event_type=event_type,
        lead_id=lead_id,
        payload=normalized if normalized else None,
    )
    db.add(event)
    db.commit()
    db.refresh(event)
    return event


def info(db: Session, event_type: str, lead_id: int | None = None, payload: dict | None = None, **kwargs) -> SystemEvent:
    """Log an INFO-level system event."""
    return log_event(db, level="INFO", event_type=event_type, lead_id=lead_id, payload=payload, **kwargs)


def warn(db: Session, event_type: str, lead_id: int | None = None, payload: dict | None = None, **kwargs) -> SystemEvent:
    """Log a WARN-level system event."""
    return log_event(db, level="WARN", event_type=event_type, lead_id=lead_id, payload=payload, **kwargs)


def error(db: Session, event_type: str, lead_id: int | None = None, payload: dict | None = None, **kwargs) -> SystemEvent:
    """Log an ERROR-level system event."""
    return log_event(db, level="ERROR", event_type=event_type, lead_id=lead_id, payload=payload, **kwargs)


def list_events(
    db: Session,
    *,
    lead_id: int | None = None,
    event_type: str | None = None,
    level: str | None = None,
    limit: int = 100,
) -> list[SystemEvent]:
    """Most recent events first, optionally filtered."""
    stmt = select(SystemEvent).order_by(desc(SystemEvent.created_at), desc(SystemEvent.id))
    if lead_id is not None:
        stmt = stmt.where(SystemEvent.lead_id == lead_id)
    if event_type:
        stmt = stmt.where(SystemEvent.event_type == event_type)
    if level:
        stmt = stmt.where(SystemEvent.level == level.upper())
    stmt = stmt.limit(max(0, min(limit, 500)))
    return list(db.execute(stmt).scalars().all())


def cleanup_old_events(
    db: Session,
    *,
    retention_days: int = DEFAULT_RETENTION_DAYS,
    cutoff: datetime | None = None,
) -> int:
    """
    Delete SystemEvents older than retention_days (or before cutoff if provided).

    Returns:
        Number of rows deleted
    """
    if cutoff is None:
        cutoff = datetime.now(UTC) - timedelta(days=retention_days)
    if cutoff.tzinfo is None:
        cutoff = cutoff.replace(tzinfo=UTC)
    stmt = delete(SystemEvent).where(SystemEvent.created_at < cutoff)
    result = db.execute(stmt)
    db.commit()
    deleted = result.rowcount
    logger.info(f"SystemEvent retention: deleted {deleted} events older than {cutoff.isoformat()}")
    return deleted
