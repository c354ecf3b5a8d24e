import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, status, Depends

from ..errors import StorefrontError
from ..models.schemas import NotificationCreate
from ..services import NotificationService
from .deps import success, get_notification_service, get_optional_user_id, get_guest_id, require_platform_admin

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/notifications", tags=["Notifications"])


def _require_session(user_id: Optional[str], guest_id: Optional[str]) -> None:
    if not user_id and not guest_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="A user or guest session is required"
        )


@router.get("")
def list_notifications(
        user_id: Optional[str] = Depends(get_optional_user_id),
        guest_id: Optional[str] = Depends(get_guest_id),
        notifications: NotificationService = Depends(get_notification_service)
):
    """Notifications newest first, with the unread count"""
    _require_session(user_id, guest_id)
    if user_id:
        items = notifications.get_notifications(user_id)
    else:
        items = notifications.get_guest_notifications(guest_id)
    unread = sum(1 for n in items if not n.read)
    return success({"notifications": items, "unreadCount": unread}, total=len(items))


@router.get("/unread-count")
def unread_count(
        user_id: Optional[str] = Depends(get_optional_user_id),
        guest_id: Optional[str] = Depends(get_guest_id),
        notifications: NotificationService = Depends(get_notification_service)
):
    _require_session(user_id, guest_id)
    if user_id:
        count = notifications.get_unread_count(user_id)
    else:
        count = sum(1 for n in notifications.get_guest_notifications(guest_id) if not n.read)
    return success({"unreadCount": count})


@router.post("", status_code=status.HTTP_201_CREATED)
def create_notification(
        request: NotificationCreate,
        _: bool = Depends(require_platform_admin),
        notifications: NotificationService = Depends(get_notification_service)
):
    try:
        notification = notifications.create_notification(
            request.user_id, request.title, request.message, request.type, request.link
        )
        return success(notification, message="Notification sent")
    except (HTTPException, StorefrontError):
        raise
    except Exception as e:
        logger.error(f"Error creating notification: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create notification"
        )


@router.post("/read-all")
def mark_all_read(
        user_id: Optional[str] = Depends(get_optional_user_id),
        guest_id: Optional[str] = Depends(get_guest_id),
        notifications: NotificationService = Depends(get_notification_service)
):
    _require_session(user_id, guest_id)
    try:
        if user_id:
            updated = notifications.mark_all_as_read(user_id)
        else:
            updated = len(notifications.mark_guest_as_read(guest_id))
        return success({"updated": updated}, message="All notifications marked as read")
    except Exception as e:
        logger.error(f"Error marking notifications read: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to mark notifications as read"
        )


@router.post("/{notification_id}/read")
def mark_read(
        notification_id: str,
        user_id: Optional[str] = Depends(get_optional_user_id),
        guest_id: Optional[str] = Depends(get_guest_id),
        notifications: NotificationService = Depends(get_notification_service)
):
    _require_session(user_id, guest_id)
    try:
        if user_id:
            return success(notifications.mark_as_read(user_id, notification_id))
        items = notifications.mark_guest_as_read(guest_id, notification_id)
        match = next((n for n in items if n.id == notification_id), None)
        if match is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Notification {notification_id} not found"
            )
        return success(match)
    except (HTTPException, StorefrontError):
        raise
    except Exception as e:
        logger.error(f"Error marking notification {notification_id} read: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to mark notification as read"
        )


@router.delete("/{notification_id}")
def delete_notification(
        notification_id: str,
        user_id: Optional[str] = Depends(get_optional_user_id),
        guest_id: Optional[str] = Depends(get_guest_id),
        notifications: NotificationService = Depends(get_notification_service)
):
    _require_session(user_id, guest_id)
    try:
        if user_id:
            notifications.delete_notification(user_id, notification_id)
        else:
            notifications.delete_guest_notification(guest_id, notification_id)
        return success(message="Notification deleted")
    except (HTTPException, StorefrontError):
        raise
    except Exception as e:
        logger.error(f"Error deleting notification {notification_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to delete notification"
        )
