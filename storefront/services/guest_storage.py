import json
import logging
from typing import Any, Optional

from ..models.database import SessionLocal, GuestStorage

logger = logging.getLogger(__name__)

GUEST_CART_KEY = "guest_cart"
GUEST_SEARCH_HISTORY_KEY = "searchHistory"
GUEST_NOTIFICATIONS_KEY = "notifications"


class GuestStore:
    """JSON key/value storage for visitors who have not signed in"""

    def __init__(self, session_factory=SessionLocal):
        self.session_factory = session_factory

    def get_raw(self, guest_id: str, key: str) -> Optional[str]:
        db = self.session_factory()
        try:
            row = db.query(GuestStorage).filter(
                GuestStorage.guest_id == guest_id, GuestStorage.key == key
            ).first()
            return row.value if row else None
        finally:
            db.close()

    def get(self, guest_id: str, key: str, default: Any = None) -> Any:
        """
        Read a JSON value for a guest

        Corrupt values are removed and the default is returned.
        """
        raw = self.get_raw(guest_id, key)
        if raw is None:
            return default
        try:
            return json.loads(raw)
        except (ValueError, TypeError):
            logger.warning(f"Discarding corrupt guest value {key} for {guest_id}")
            self.remove(guest_id, key)
            return default

    def set(self, guest_id: str, key: str, value: Any) -> None:
        self.set_raw(guest_id, key, json.dumps(value, default=str))

    def set_raw(self, guest_id: str, key: str, payload: str) -> None:
        """Store an already-encoded JSON value"""
        db = self.session_factory()
        try:
            row = db.query(GuestStorage).filter(
                GuestStorage.guest_id == guest_id, GuestStorage.key == key
            ).first()
            if row:
                row.value = payload
            else:
                db.add(GuestStorage(guest_id=guest_id, key=key, value=payload))
            db.commit()
        except Exception as e:
            db.rollback()
            logger.error(f"Error saving guest value {key} for {guest_id}: {e}")
            raise
        finally:
            db.close()

    def remove(self, guest_id: str, key: str) -> None:
        db = self.session_factory()
        try:
            db.query(GuestStorage).filter(
                GuestStorage.guest_id == guest_id, GuestStorage.key == key
            ).delete()
            db.commit()
        except Exception as e:
            db.rollback()
            logger.error(f"Error removing guest value {key} for {guest_id}: {e}")
            raise
        finally:
            db.close()
