from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
        validate_assignment=True,
    )

    app_env: str = "dev"
    database_url: str

    admin_api_key: str | None = (
        None  # Optional - if not set, admin endpoints are unprotected (dev mode)
    )

    # Travel reminders
    reminder_offset_days: int = 7  # Reminder fires this many calendar days before travel
    default_reminder_time: str = "09:00"  # HH:MM, used when the sales person picks none
    reminder_timezone: str = "Asia/Kolkata"

    # External calendar collaborator
    calendar_enabled: bool = False  # Set to True when the calendar service is reachable
    calendar_api_url: str | None = None  # Base URL of the calendar service
    calendar_api_token: str | None = None  # Bearer token for the calendar service
    calendar_name: str = "CRM Reminders"
    calendar_alarm_minutes: int = 15  # Alarm offset attached to each calendar event

    # Feature flags
    feature_notifications_enabled: bool = True  # In-app notifications on lifecycle events
    feature_calendar_enabled: bool = True  # Calendar registration for travel reminders

    # System event retention
    system_event_retention_days: int = 90


# Settings will load from environment variables or .env file
# Required fields will raise ValidationError if missing (fail-fast)
settings = Settings()
