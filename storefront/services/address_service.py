import logging
from typing import List

from sqlalchemy import desc

from ..errors import StorefrontError, NotFoundError, InvalidRequestError
from ..models.database import SessionLocal, Address, Order
from ..models.schemas import AddressModel, AddressCreate, AddressUpdate
from ..models.converters import address_to_model
from .realtime import change_feed

logger = logging.getLogger(__name__)


class AddressService:
    """Delivery addresses; each customer has at most one default"""

    def __init__(self, session_factory=SessionLocal, feed=change_feed):
        self.session_factory = session_factory
        self.feed = feed

    def get_addresses(self, user_id: str) -> List[AddressModel]:
        db = self.session_factory()
        try:
            rows = db.query(Address).filter(Address.user_id == user_id).order_by(
                desc(Address.is_default), desc(Address.created_at)
            ).all()
            return [address_to_model(row) for row in rows]
        except Exception as e:
            logger.error(f"Error fetching addresses for user {user_id}: {e}")
            return []
        finally:
            db.close()

    def _owned(self, db, user_id: str, address_id: str) -> Address:
        address = db.query(Address).filter(Address.id == address_id, Address.user_id == user_id).first()
        if not address:
            raise NotFoundError(f"Address {address_id} not found")
        return address

    @staticmethod
    def _clear_default(db, user_id: str) -> None:
        db.query(Address).filter(Address.user_id == user_id, Address.is_default.is_(True)).update(
            {Address.is_default: False}, synchronize_session="fetch"
        )

    def add_address(self, user_id: str, data: AddressCreate) -> AddressModel:
        """Save an address; a customer's first address becomes the default"""
        db = self.session_factory()
        try:
            has_addresses = db.query(Address.id).filter(Address.user_id == user_id).first() is not None
            is_default = data.is_default or not has_addresses
            if is_default:
                self._clear_default(db, user_id)
            address = Address(**data.model_dump(exclude={"is_default"}), user_id=user_id, is_default=is_default)
            db.add(address)
            db.commit()
            db.refresh(address)
            self.feed.publish("user_addresses", "insert", user_id=user_id, record_id=address.id)
            return address_to_model(address)
        except Exception as e:
            db.rollback()
            logger.error(f"Error adding address for user {user_id}: {e}")
            raise
        finally:
            db.close()

    def update_address(self, user_id: str, address_id: str, data: AddressUpdate) -> AddressModel:
        db = self.session_factory()
        try:
            address = self._owned(db, user_id, address_id)
            for field, value in data.model_dump(exclude_unset=True).items():
                if value is None and field not in ("full_name", "address_line2", "phone_number"):
                    continue
                setattr(address, field, value)
            db.commit()
            db.refresh(address)
            self.feed.publish("user_addresses", "update", user_id=user_id, record_id=address_id)
            return address_to_model(address)
        except StorefrontError:
            db.rollback()
            raise
        except Exception as e:
            db.rollback()
            logger.error(f"Error updating address {address_id}: {e}")
            raise
        finally:
            db.close()

    def delete_address(self, user_id: str, address_id: str) -> None:
        db = self.session_factory()
        try:
            address = self._owned(db, user_id, address_id)
            if db.query(Order.id).filter(Order.shipping_address_id == address_id).first():
                raise InvalidRequestError("This address is used by an order and cannot be deleted")
            db.delete(address)
            db.commit()
            self.feed.publish("user_addresses", "delete", user_id=user_id, record_id=address_id)
        except StorefrontError:
            db.rollback()
            raise
        except Exception as e:
            db.rollback()
            logger.error(f"Error deleting address {address_id}: {e}")
            raise
        finally:
            db.close()

    def set_default_address(self, user_id: str, address_id: str) -> AddressModel:
        db = self.session_factory()
        try:
            address = self._owned(db, user_id, address_id)
            self._clear_default(db, user_id)
            address.is_default = True
            db.commit()
            db.refresh(address)
            self.feed.publish("user_addresses", "update", user_id=user_id, record_id=address_id)
            return address_to_model(address)
        except StorefrontError:
            db.rollback()
            raise
        except Exception as e:
            db.rollback()
            logger.error(f"Error setting default address {address_id}: {e}")
            raise
        finally:
            db.close()
