"""
In-app notification endpoints for the acting user.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.auth import get_actor
from app.api.errors import to_http_exception
from app.db.deps import get_db
from app.schemas.notifications import (
    NotificationListResponse,
    NotificationPreferenceResponse,
    NotificationResponse,
    UpdatePreferencesRequest,
)
from app.services.actor import Actor
from app.services.errors import LifecycleError
from app.services.notifications import (
    clear_all,
    get_or_create_preferences,
    list_notifications,
    mark_read,
    unread_count,
    update_preferences,
)

router = APIRouter()


@router.get("/notifications", response_model=NotificationListResponse)
def get_notifications(
    unread_only: bool = False,
    limit: int = 100,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    notifications = list_notifications(db, actor.user_id, unread_only=unread_only, limit=limit)
    return NotificationListResponse(
        unread_count=unread_count(db, actor.user_id),
        notifications=[NotificationResponse.model_validate(n) for n in notifications],
    )


@router.post("/notifications/{notification_id}/read", response_model=NotificationResponse)
def read_notification(
    notification_id: int,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    try:
        return mark_read(db, actor.user_id, notification_id)
    except LifecycleError as e:
        raise to_http_exception(e) from e


@router.delete("/notifications")
def clear_notifications(db: Session = Depends(get_db), actor: Actor = Depends(get_actor)):
    return {"deleted": clear_all(db, actor.user_id)}


@router.get("/notifications/preferences", response_model=NotificationPreferenceResponse)
def get_preferences(db: Session = Depends(get_db), actor: Actor = Depends(get_actor)):
    return get_or_create_preferences(db, actor.user_id)


@router.put("/notifications/preferences", response_model=NotificationPreferenceResponse)
def put_preferences(
    body: UpdatePreferencesRequest,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    try:
        return update_preferences(db, actor.user_id, **body.model_dump(exclude_none=True))
    except LifecycleError as e:
        raise to_http_exception(e) from e
