"""Notification inbox, push subscription and service-worker support routes."""

from fastapi import APIRouter, status

from foodshare.api.deps import Notifications
from foodshare.core.exceptions import ResourceNotFound
from foodshare.core.rbac import CurrentUser
from foodshare.core.responses import list_response
from foodshare.db.session import DbSession
from foodshare.models.notification import Notification, PushSubscription
from foodshare.schemas.notification import (
    ClickRequest,
    ClickResponse,
    NotificationResponse,
    OfflineManifest,
    PushSubscriptionCreate,
)
from foodshare.services.push import offline_manifest, resolve_click_target

router = APIRouter()


@router.get("")
def list_notifications(current_user: CurrentUser, db: DbSession, unread_only: bool = False, limit: int = 50):
    q = db.query(Notification).filter(Notification.user_id == current_user.user_id)
    if unread_only:
        q = q.filter(Notification.read.is_(False))
    total = q.count()
    items = q.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(min(limit, 200)).all()
    return list_response(
        [NotificationResponse.model_validate(n).model_dump(mode="json") for n in items],
        total=total,
    )


@router.post("/{notification_id}/read", response_model=NotificationResponse)
def mark_read(notification_id: int, current_user: CurrentUser, db: DbSession):
    notification = db.get(Notification, notification_id)
    if notification is None or notification.user_id != current_user.user_id:
        raise ResourceNotFound("Notification", notification_id)
    notification.read = True
    db.commit()
    db.refresh(notification)
    return notification


@router.post("/read-all")
def mark_all_read(current_user: CurrentUser, db: DbSession):
    updated = (
        db.query(Notification)
        .filter(Notification.user_id == current_user.user_id, Notification.read.is_(False))
        .update({Notification.read: True}, synchronize_session=False)
    )
    db.commit()
    return {"updated": updated}


@router.post("/subscriptions", status_code=status.HTTP_201_CREATED)
def subscribe(data: PushSubscriptionCreate, current_user: CurrentUser, db: DbSession, notifications: Notifications):
    """Register the browser's push subscription after permission was granted."""
    subscription = notifications.request_permission(db, current_user.user_id, data)
    return {"id": subscription.id, "endpoint": subscription.endpoint}


@router.delete("/subscriptions", status_code=status.HTTP_204_NO_CONTENT)
def unsubscribe(endpoint: str, current_user: CurrentUser, db: DbSession):
    db.query(PushSubscription).filter(
        PushSubscription.user_id == current_user.user_id,
        PushSubscription.endpoint == endpoint,
    ).delete(synchronize_session=False)
    db.commit()


@router.post("/click", response_model=ClickResponse)
def click_target(data: ClickRequest):
    """Where a notification click should navigate. ``url`` is null for dismiss."""
    url = resolve_click_target(data.action, data.data)
    return ClickResponse(url=url)


@router.get("/offline-manifest", response_model=OfflineManifest)
def get_offline_manifest():
    return offline_manifest()
