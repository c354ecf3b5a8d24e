import logging
from typing import List

from sqlalchemy import desc

from ..errors import StorefrontError, NotFoundError
from ..models.database import SessionLocal, WishlistItem, Product
from ..models.schemas import WishlistEntry, CartLine
from ..models.converters import product_to_model
from .cart_service import CartService
from .realtime import change_feed

logger = logging.getLogger(__name__)


class WishlistService:
    def __init__(self, session_factory=SessionLocal, cart_service: CartService = None, feed=change_feed):
        self.session_factory = session_factory
        self.cart_service = cart_service or CartService(session_factory, feed=feed)
        self.feed = feed

    def get_wishlist(self, user_id: str) -> List[WishlistEntry]:
        """Saved products with their details, most recent first"""
        db = self.session_factory()
        try:
            rows = db.query(WishlistItem, Product).join(
                Product, Product.id == WishlistItem.product_id
            ).filter(WishlistItem.user_id == user_id).order_by(desc(WishlistItem.created_at)).all()
            return [
                WishlistEntry(id=item.id, product=product_to_model(product), added_at=item.created_at)
                for item, product in rows
            ]
        except Exception as e:
            logger.error(f"Error fetching wishlist for user {user_id}: {e}")
            return []
        finally:
            db.close()

    def contains(self, user_id: str, product_id: str) -> bool:
        db = self.session_factory()
        try:
            return db.query(WishlistItem.id).filter(
                WishlistItem.user_id == user_id, WishlistItem.product_id == product_id
            ).first() is not None
        except Exception as e:
            logger.error(f"Error checking wishlist for user {user_id}: {e}")
            return False
        finally:
            db.close()

    def add(self, user_id: str, product_id: str) -> bool:
        """
        Save a product; adding it twice is a no-op

        Returns:
            bool: True when a new entry was created
        """
        db = self.session_factory()
        try:
            if not db.query(Product.id).filter(Product.id == product_id).first():
                raise NotFoundError(f"Product {product_id} not found")
            exists = db.query(WishlistItem.id).filter(
                WishlistItem.user_id == user_id, WishlistItem.product_id == product_id
            ).first()
            if exists:
                return False
            item = WishlistItem(user_id=user_id, product_id=product_id)
            db.add(item)
            db.commit()
            self.feed.publish("user_wishlists", "insert", user_id=user_id, record_id=item.id)
            return True
        except StorefrontError:
            raise
        except Exception as e:
            db.rollback()
            logger.error(f"Error adding {product_id} to wishlist of {user_id}: {e}")
            raise
        finally:
            db.close()

    def remove(self, user_id: str, product_id: str) -> bool:
        db = self.session_factory()
        try:
            deleted = db.query(WishlistItem).filter(
                WishlistItem.user_id == user_id, WishlistItem.product_id == product_id
            ).delete()
            db.commit()
            if deleted:
                self.feed.publish("user_wishlists", "delete", user_id=user_id)
            return bool(deleted)
        except Exception as e:
            db.rollback()
            logger.error(f"Error removing {product_id} from wishlist of {user_id}: {e}")
            raise
        finally:
            db.close()

    def move_to_cart(self, user_id: str, product_id: str) -> List[CartLine]:
        """Add one unit to the cart, then drop the wishlist entry"""
        if not self.contains(user_id, product_id):
            raise NotFoundError(f"Product {product_id} is not in the wishlist")
        lines = self.cart_service.add_item(product_id, 1, user_id=user_id)
        self.remove(user_id, product_id)
        return lines
