"""
Notification API request/response schemas.
"""

from datetime import datetime, time

from pydantic import BaseModel, ConfigDict


class NotificationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    type: str
    title: str
    message: str
    lead_id: int | None = None
    is_read: bool
    is_muted: bool
    scheduled_for: datetime | None = None
    created_at: datetime | None = None


class NotificationListResponse(BaseModel):
    unread_count: int
    notifications: list[NotificationResponse]


class NotificationPreferenceResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: str
    notifications_enabled: bool
    do_not_disturb_enabled: bool
    do_not_disturb_start: time | None = None
    do_not_disturb_end: time | None = None
    notification_type_filter: str


class UpdatePreferencesRequest(BaseModel):
    """Only the fields provided are changed."""

    notifications_enabled: bool | None = None
    do_not_disturb_enabled: bool | None = None
    do_not_disturb_start: time | None = None
    do_not_disturb_end: time | None = None
    notification_type_filter: str | None = None  # all, hot_only
