import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy import desc

from ..config import settings
from ..errors import StorefrontError, NotFoundError
from ..models.database import SessionLocal, Notification, new_id
from ..models.schemas import NotificationModel
from ..models.converters import notification_to_model
from .guest_storage import GuestStore, GUEST_NOTIFICATIONS_KEY
from .realtime import change_feed

logger = logging.getLogger(__name__)


def build_notification(user_id: str, title: str, message: str, type: str = "system",
                       link: Optional[str] = None) -> Notification:
    """Unsaved notification row, for callers adding it to their own transaction"""
    return Notification(id=new_id(), user_id=user_id, title=title, message=message, type=type, link=link, read=False)


class NotificationService:
    def __init__(self, session_factory=SessionLocal, guest_store: Optional[GuestStore] = None, feed=change_feed):
        self.session_factory = session_factory
        self.guest_store = guest_store or GuestStore(session_factory)
        self.feed = feed

    def get_notifications(self, user_id: str) -> List[NotificationModel]:
        db = self.session_factory()
        try:
            rows = db.query(Notification).filter(Notification.user_id == user_id).order_by(
                desc(Notification.created_at)
            ).all()
            return [notification_to_model(row) for row in rows]
        except Exception as e:
            logger.error(f"Error fetching notifications for user {user_id}: {e}")
            return []
        finally:
            db.close()

    def get_unread_count(self, user_id: str) -> int:
        db = self.session_factory()
        try:
            return db.query(Notification).filter(
                Notification.user_id == user_id, Notification.read.is_(False)
            ).count()
        except Exception as e:
            logger.error(f"Error counting unread notifications for user {user_id}: {e}")
            return 0
        finally:
            db.close()

    def create_notification(self, user_id: str, title: str, message: str, type: str = "system",
                            link: Optional[str] = None) -> NotificationModel:
        db = self.session_factory()
        try:
            notification = build_notification(user_id, title, message, type, link)
            db.add(notification)
            db.commit()
            db.refresh(notification)
            self.feed.publish("user_notifications", "insert", user_id=user_id, record_id=notification.id)
            return notification_to_model(notification)
        except Exception as e:
            db.rollback()
            logger.error(f"Error creating notification for user {user_id}: {e}")
            raise
        finally:
            db.close()

    def mark_as_read(self, user_id: str, notification_id: str) -> NotificationModel:
        db = self.session_factory()
        try:
            notification = db.query(Notification).filter(
                Notification.id == notification_id, Notification.user_id == user_id
            ).first()
            if not notification:
                raise NotFoundError(f"Notification {notification_id} not found")
            notification.read = True
            db.commit()
            db.refresh(notification)
            self.feed.publish("user_notifications", "update", user_id=user_id, record_id=notification_id)
            return notification_to_model(notification)
        except StorefrontError:
            raise
        except Exception as e:
            db.rollback()
            logger.error(f"Error marking notification {notification_id} read: {e}")
            raise
        finally:
            db.close()

    def mark_all_as_read(self, user_id: str) -> int:
        db = self.session_factory()
        try:
            updated = db.query(Notification).filter(
                Notification.user_id == user_id, Notification.read.is_(False)
            ).update({Notification.read: True}, synchronize_session=False)
            db.commit()
            if updated:
                self.feed.publish("user_notifications", "update", user_id=user_id)
            return updated
        except Exception as e:
            db.rollback()
            logger.error(f"Error marking notifications read for user {user_id}: {e}")
            raise
        finally:
            db.close()

    def delete_notification(self, user_id: str, notification_id: str) -> None:
        db = self.session_factory()
        try:
            deleted = db.query(Notification).filter(
                Notification.id == notification_id, Notification.user_id == user_id
            ).delete()
            if not deleted:
                raise NotFoundError(f"Notification {notification_id} not found")
            db.commit()
            self.feed.publish("user_notifications", "delete", user_id=user_id, record_id=notification_id)
        except StorefrontError:
            db.rollback()
            raise
        except Exception as e:
            db.rollback()
            logger.error(f"Error deleting notification {notification_id}: {e}")
            raise
        finally:
            db.close()

    def notify_partner_request(self, business_name: str, request_id: Optional[str] = None) -> NotificationModel:
        """Tell platform admins about a new partner request"""
        return self.create_notification(
            settings.ADMIN_NOTIFICATION_USER,
            "New Partner Request",
            f"{business_name} has requested to become a partner.",
            type="partner-request",
            link=f"/admin/partner-requests/{request_id}" if request_id else "/admin/partner-requests",
        )

    # Guest notifications live in the guest store, newest first

    def get_guest_notifications(self, guest_id: str) -> List[NotificationModel]:
        data = self.guest_store.get(guest_id, GUEST_NOTIFICATIONS_KEY, [])
        if not isinstance(data, list):
            return []
        notifications = []
        for entry in data:
            try:
                notifications.append(NotificationModel.model_validate(entry))
            except ValueError:
                logger.warning(f"Skipping unreadable guest notification for {guest_id}")
        return notifications

    def _save_guest(self, guest_id: str, notifications: List[NotificationModel]) -> None:
        self.guest_store.set(
            guest_id, GUEST_NOTIFICATIONS_KEY,
            [n.model_dump(by_alias=True, mode="json") for n in notifications],
        )

    def add_guest_notification(self, guest_id: str, title: str, message: str, type: str = "system",
                               link: Optional[str] = None) -> NotificationModel:
        notification = NotificationModel(
            id=new_id(), title=title, message=message, type=type, link=link,
            read=False, created_at=datetime.utcnow(),
        )
        self._save_guest(guest_id, [notification] + self.get_guest_notifications(guest_id))
        return notification

    def mark_guest_as_read(self, guest_id: str, notification_id: Optional[str] = None) -> List[NotificationModel]:
        """Mark one guest notification read, or all of them when no id is given"""
        notifications = [
            n.model_copy(update={"read": True}) if notification_id in (None, n.id) else n
            for n in self.get_guest_notifications(guest_id)
        ]
        self._save_guest(guest_id, notifications)
        return notifications

    def delete_guest_notification(self, guest_id: str, notification_id: str) -> List[NotificationModel]:
        notifications = [n for n in self.get_guest_notifications(guest_id) if n.id != notification_id]
        self._save_guest(guest_id, notifications)
        return notifications
