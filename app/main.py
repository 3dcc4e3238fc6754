import logging
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from fastapi import Depends, FastAPI
from sqlalchemy.orm import Session

from app.api.admin import router as admin_router
from app.api.leads import router as leads_router
from app.api.notifications import router as notifications_router
from app.api.reminders import router as reminders_router
from app.core.config import settings
from app.db.deps import get_db
from app.middleware.correlation_id import CorrelationIdFilter, CorrelationIdMiddleware
from app.utils.datetime_utils import parse_hhmm

logger = logging.getLogger(__name__)

app = FastAPI(title="Travel CRM Lead Lifecycle")

# Request tracing: X-Correlation-ID in and out, attached to system events
app.add_middleware(CorrelationIdMiddleware)


def validate_settings() -> list[str]:
    """Configuration problems that must stop the service from starting."""
    errors = []
    if not settings.database_url:
        errors.append("DATABASE_URL is required.")
    try:
        ZoneInfo(settings.reminder_timezone)
    except (ZoneInfoNotFoundError, ValueError):
        errors.append(f"REMINDER_TIMEZONE '{settings.reminder_timezone}' is not a known timezone.")
    try:
        parse_hhmm(settings.default_reminder_time)
    except ValueError:
        errors.append(f"DEFAULT_REMINDER_TIME '{settings.default_reminder_time}' must be HH:MM.")
    if settings.reminder_offset_days < 0:
        errors.append("REMINDER_OFFSET_DAYS must not be negative.")
    if settings.calendar_enabled and not settings.calendar_api_url:
        errors.append("CALENDAR_API_URL is required when CALENDAR_ENABLED=true.")

    # Production-specific validation
    if settings.app_env == "production" and not settings.admin_api_key:
        errors.append(
            "ADMIN_API_KEY is required in production. "
            "Set ADMIN_API_KEY environment variable with a strong random key."
        )
    return errors


@app.on_event("startup")
def startup_event():
    """Run startup checks and validation."""
    errors = validate_settings()
    if errors:
        error_message = (
            "Configuration validation failed:\n\n"
            + "\n".join(f"  - {error}" for error in errors)
            + "\n\nThe application cannot start with these missing or invalid settings."
        )
        logger.error(error_message)
        raise RuntimeError(error_message)

    for handler in logging.getLogger().handlers:
        handler.addFilter(CorrelationIdFilter())

    # Log enabled integrations summary (no secrets)
    logger.info(
        "Startup: Configuration loaded - "
        f"Environment: {settings.app_env}, "
        f"Calendar: {settings.calendar_enabled and settings.feature_calendar_enabled}, "
        f"Notifications: {settings.feature_notifications_enabled}, "
        f"Reminder timezone: {settings.reminder_timezone}"
    )


@app.get("/health")
def health():
    """
    Health check endpoint with feature flag visibility.

    Returns 200 immediately - used for basic health checks.
    """
    return {
        "ok": True,
        "features": {
            "calendar_enabled": settings.feature_calendar_enabled,
            "notifications_enabled": settings.feature_notifications_enabled,
        },
        "integrations": {
            "calendar_service_enabled": settings.calendar_enabled,
        },
        "reminders": {
            "offset_days": settings.reminder_offset_days,
            "default_time": settings.default_reminder_time,
            "timezone": settings.reminder_timezone,
        },
    }


@app.get("/ready")
def ready(db: Session = Depends(get_db)):
    """
    Readiness check endpoint - verifies database connectivity.

    Returns 200 if database is accessible, 503 if not.
    Used by load balancers and orchestration systems.
    """
    from sqlalchemy import text

    try:
        # Simple SELECT 1 query to verify database connection
        db.execute(text("SELECT 1"))
        return {"ok": True, "database": "connected"}
    except Exception as e:
        logger.error(f"Readiness check failed: {e}")
        from fastapi import status
        from fastapi.responses import JSONResponse

        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"ok": False, "database": "disconnected", "error": str(e)},
        )


app.include_router(leads_router, tags=["leads"])
app.include_router(reminders_router, tags=["reminders"])
app.include_router(notifications_router, tags=["notifications"])
app.include_router(admin_router, prefix="/admin", tags=["admin"])
