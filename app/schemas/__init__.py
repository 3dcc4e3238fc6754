"""
Pydantic schemas for API request/response validation.
"""

from app.schemas.admin import MetricsResponse, RetentionCleanupResponse, SystemEventResponse
from app.schemas.leads import (
    AddContactRequest,
    CreateLeadRequest,
    FinancialStateResponse,
    FollowUpEntryResponse,
    LeadActionRequest,
    LeadResponse,
    QualifyLeadRequest,
    ReminderResponse,
    UpcomingFollowUpResponse,
    UpdateLeadRequest,
)
from app.schemas.notifications import (
    NotificationListResponse,
    NotificationPreferenceResponse,
    NotificationResponse,
    UpdatePreferencesRequest,
)

__all__ = [
    "AddContactRequest",
    "CreateLeadRequest",
    "FinancialStateResponse",
    "FollowUpEntryResponse",
    "LeadActionRequest",
    "LeadResponse",
    "MetricsResponse",
    "NotificationListResponse",
    "NotificationPreferenceResponse",
    "NotificationResponse",
    "QualifyLeadRequest",
    "ReminderResponse",
    "RetentionCleanupResponse",
    "SystemEventResponse",
    "UpcomingFollowUpResponse",
    "UpdateLeadRequest",
]
