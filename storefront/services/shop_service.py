import logging
from typing import List, Optional

from sqlalchemy import desc, func

from ..errors import StorefrontError, InvalidRequestError, NotFoundError
from ..models.database import (
    SessionLocal, Shop, ShopAdmin, ShopFollow, Product, OrderItem, CartItem, WishlistItem,
    ProductReview, UserProfile
)
from ..models.schemas import (
    ShopModel, ShopCreate, ShopUpdate, ShopStatusUpdate, ShopAdminCreate, ShopFollower,
    ProductModel, ProductCreate, ProductUpdate
)
from ..models.converters import shop_to_model, product_to_model
from .access import ensure_shop_admin
from .realtime import change_feed

logger = logging.getLogger(__name__)


class ShopService:
    """
    Multi-tenant shop administration.

    A user manages a shop when a shop_admins row links them to it; creating
    a shop makes the creator its owner.
    """

    def __init__(self, session_factory=SessionLocal, feed=change_feed):
        self.session_factory = session_factory
        self.feed = feed

    # Shops

    def list_shops(self, status: Optional[str] = None, search: Optional[str] = None) -> List[ShopModel]:
        db = self.session_factory()
        try:
            q = db.query(Shop)
            if status:
                q = q.filter(Shop.status == status)
            if search and search.strip():
                q = q.filter(func.lower(Shop.name).contains(search.strip().lower()))
            return [shop_to_model(s) for s in q.order_by(Shop.name).all()]
        except Exception as e:
            logger.error(f"Error listing shops: {e}")
            return []
        finally:
            db.close()

    def get_shop(self, shop_id: str) -> Optional[ShopModel]:
        db = self.session_factory()
        try:
            shop = db.query(Shop).filter(Shop.id == shop_id).first()
            return shop_to_model(shop) if shop else None
        except Exception as e:
            logger.error(f"Error fetching shop {shop_id}: {e}")
            return None
        finally:
            db.close()

    def get_user_shops(self, user_id: str) -> List[ShopModel]:
        """Shops the user administers"""
        db = self.session_factory()
        try:
            rows = db.query(Shop).join(ShopAdmin, ShopAdmin.shop_id == Shop.id).filter(
                ShopAdmin.user_id == user_id
            ).order_by(Shop.name).all()
            return [shop_to_model(s) for s in rows]
        except Exception as e:
            logger.error(f"Error fetching shops for user {user_id}: {e}")
            return []
        finally:
            db.close()

    def create_shop(self, user_id: str, data: ShopCreate) -> ShopModel:
        """
        Open a new shop, pending platform approval

        Args:
            user_id: Creator, who becomes the shop owner
            data: Shop details

        Returns:
            ShopModel: The created shop
        """
        db = self.session_factory()
        try:
            shop = Shop(**data.model_dump(), status="pending")
            db.add(shop)
            db.flush()
            db.add(ShopAdmin(shop_id=shop.id, user_id=user_id, role="owner"))
            db.commit()
            db.refresh(shop)
            self.feed.publish("shops", "insert", record_id=shop.id)
            logger.info(f"Created shop {shop.id} ({shop.name}) owned by {user_id}")
            return shop_to_model(shop)
        except Exception as e:
            db.rollback()
            logger.error(f"Error creating shop {data.name}: {e}")
            raise
        finally:
            db.close()

    def update_shop(self, shop_id: str, user_id: str, data: ShopUpdate) -> ShopModel:
        db = self.session_factory()
        try:
            shop = db.query(Shop).filter(Shop.id == shop_id).first()
            if not shop:
                raise NotFoundError(f"Shop {shop_id} not found")
            ensure_shop_admin(db, shop_id, user_id)
            for field, value in data.model_dump(exclude_unset=True).items():
                setattr(shop, field, value)
            db.commit()
            db.refresh(shop)
            self.feed.publish("shops", "update", record_id=shop_id)
            return shop_to_model(shop)
        except StorefrontError:
            db.rollback()
            raise
        except Exception as e:
            db.rollback()
            logger.error(f"Error updating shop {shop_id}: {e}")
            raise
        finally:
            db.close()

    def update_shop_status(self, shop_id: str, data: ShopStatusUpdate) -> ShopModel:
        """Platform moderation: approve, suspend or reactivate a shop"""
        db = self.session_factory()
        try:
            shop = db.query(Shop).filter(Shop.id == shop_id).first()
            if not shop:
                raise NotFoundError(f"Shop {shop_id} not found")
            shop.status = data.status.value
            if data.is_verified is not None:
                shop.is_verified = data.is_verified
            db.commit()
            db.refresh(shop)
            self.feed.publish("shops", "update", record_id=shop_id)
            logger.info(f"Shop {shop_id} status set to {shop.status}")
            return shop_to_model(shop)
        except StorefrontError:
            db.rollback()
            raise
        except Exception as e:
            db.rollback()
            logger.error(f"Error updating status of shop {shop_id}: {e}")
            raise
        finally:
            db.close()

    def delete_shop(self, shop_id: str, user_id: str) -> None:
        """
        Remove a shop and its catalog

        Shops whose products appear in orders are kept for the order
        history; suspend them instead.
        """
        db = self.session_factory()
        try:
            shop = db.query(Shop).filter(Shop.id == shop_id).first()
            if not shop:
                raise NotFoundError(f"Shop {shop_id} not found")
            ensure_shop_admin(db, shop_id, user_id)
            if db.query(OrderItem.id).filter(OrderItem.shop_id == shop_id).first():
                raise InvalidRequestError("Shops with orders cannot be deleted; suspend the shop instead")

            for product in db.query(Product).filter(Product.shop_id == shop_id).all():
                self._delete_product_rows(db, product)
            db.query(ProductReview).filter(ProductReview.shop_id == shop_id).delete(synchronize_session=False)
            db.delete(shop)
            db.commit()
            self.feed.publish("shops", "delete", record_id=shop_id)
            logger.info(f"Deleted shop {shop_id}")
        except StorefrontError:
            db.rollback()
            raise
        except Exception as e:
            db.rollback()
            logger.error(f"Error deleting shop {shop_id}: {e}")
            raise
        finally:
            db.close()

    def add_admin(self, shop_id: str, user_id: str, data: ShopAdminCreate) -> None:
        db = self.session_factory()
        try:
            if not db.query(Shop.id).filter(Shop.id == shop_id).first():
                raise NotFoundError(f"Shop {shop_id} not found")
            ensure_shop_admin(db, shop_id, user_id)
            exists = db.query(ShopAdmin).filter(
                ShopAdmin.shop_id == shop_id, ShopAdmin.user_id == data.user_id
            ).first()
            if exists:
                exists.role = data.role
            else:
                db.add(ShopAdmin(shop_id=shop_id, user_id=data.user_id, role=data.role))
            db.commit()
            logger.info(f"User {data.user_id} is now {data.role} of shop {shop_id}")
        except StorefrontError:
            db.rollback()
            raise
        except Exception as e:
            db.rollback()
            logger.error(f"Error adding admin to shop {shop_id}: {e}")
            raise
        finally:
            db.close()

    # Shop catalog

    def get_shop_products(self, shop_id: str) -> List[ProductModel]:
        db = self.session_factory()
        try:
            rows = db.query(Product).filter(Product.shop_id == shop_id).order_by(desc(Product.created_at)).all()
            return [product_to_model(row) for row in rows]
        except Exception as e:
            logger.error(f"Error fetching products for shop {shop_id}: {e}")
            return []
        finally:
            db.close()

    def create_product(self, shop_id: str, user_id: str, data: ProductCreate) -> ProductModel:
        db = self.session_factory()
        try:
            if not db.query(Shop.id).filter(Shop.id == shop_id).first():
                raise NotFoundError(f"Shop {shop_id} not found")
            ensure_shop_admin(db, shop_id, user_id)
            product = Product(**data.model_dump(), shop_id=shop_id)
            db.add(product)
            db.commit()
            db.refresh(product)
            self.feed.publish("products", "insert", record_id=product.id)
            logger.info(f"Shop {shop_id} added product {product.id} ({product.name})")
            return product_to_model(product)
        except StorefrontError:
            db.rollback()
            raise
        except Exception as e:
            db.rollback()
            logger.error(f"Error creating product for shop {shop_id}: {e}")
            raise
        finally:
            db.close()

    def _shop_product(self, db, shop_id: str, product_id: str, user_id: str) -> Product:
        product = db.query(Product).filter(Product.id == product_id, Product.shop_id == shop_id).first()
        if not product:
            raise NotFoundError(f"Product {product_id} not found in shop {shop_id}")
        ensure_shop_admin(db, shop_id, user_id)
        return product

    def update_product(self, shop_id: str, product_id: str, user_id: str, data: ProductUpdate) -> ProductModel:
        db = self.session_factory()
        try:
            product = self._shop_product(db, shop_id, product_id, user_id)
            for field, value in data.model_dump(exclude_unset=True).items():
                setattr(product, field, value)
            db.commit()
            db.refresh(product)
            self.feed.publish("products", "update", record_id=product_id)
            return product_to_model(product)
        except StorefrontError:
            db.rollback()
            raise
        except Exception as e:
            db.rollback()
            logger.error(f"Error updating product {product_id}: {e}")
            raise
        finally:
            db.close()

    @staticmethod
    def _delete_product_rows(db, product: Product) -> None:
        db.query(CartItem).filter(CartItem.product_id == product.id).delete(synchronize_session=False)
        db.query(WishlistItem).filter(WishlistItem.product_id == product.id).delete(synchronize_session=False)
        db.query(ProductReview).filter(ProductReview.product_id == product.id).delete(synchronize_session=False)
        db.delete(product)

    def delete_product(self, shop_id: str, product_id: str, user_id: str) -> None:
        db = self.session_factory()
        try:
            product = self._shop_product(db, shop_id, product_id, user_id)
            if db.query(OrderItem.id).filter(OrderItem.product_id == product_id).first():
                raise InvalidRequestError("Products that have been ordered cannot be deleted; set stock to 0 instead")
            self._delete_product_rows(db, product)
            db.commit()
            self.feed.publish("products", "delete", record_id=product_id)
            logger.info(f"Deleted product {product_id} from shop {shop_id}")
        except StorefrontError:
            db.rollback()
            raise
        except Exception as e:
            db.rollback()
            logger.error(f"Error deleting product {product_id}: {e}")
            raise
        finally:
            db.close()

    # Follows

    def follow_shop(self, user_id: str, shop_id: str) -> bool:
        """
        Follow a shop; following twice changes nothing

        Returns:
            bool: True when a new follow was recorded
        """
        db = self.session_factory()
        try:
            shop = db.query(Shop).filter(Shop.id == shop_id).first()
            if not shop:
                raise NotFoundError(f"Shop {shop_id} not found")
            exists = db.query(ShopFollow.id).filter(
                ShopFollow.shop_id == shop_id, ShopFollow.user_id == user_id
            ).first()
            if exists:
                return False
            db.add(ShopFollow(shop_id=shop_id, user_id=user_id))
            shop.followers_count = (shop.followers_count or 0) + 1
            db.commit()
            self.feed.publish("shop_follows", "insert", user_id=user_id, record_id=shop_id)
            return True
        except StorefrontError:
            db.rollback()
            raise
        except Exception as e:
            db.rollback()
            logger.error(f"Error following shop {shop_id}: {e}")
            raise
        finally:
            db.close()

    def unfollow_shop(self, user_id: str, shop_id: str) -> bool:
        db = self.session_factory()
        try:
            deleted = db.query(ShopFollow).filter(
                ShopFollow.shop_id == shop_id, ShopFollow.user_id == user_id
            ).delete(synchronize_session=False)
            if deleted:
                shop = db.query(Shop).filter(Shop.id == shop_id).first()
                if shop:
                    shop.followers_count = max((shop.followers_count or 0) - 1, 0)
            db.commit()
            if deleted:
                self.feed.publish("shop_follows", "delete", user_id=user_id, record_id=shop_id)
            return bool(deleted)
        except Exception as e:
            db.rollback()
            logger.error(f"Error unfollowing shop {shop_id}: {e}")
            raise
        finally:
            db.close()

    def is_following(self, user_id: str, shop_id: str) -> bool:
        db = self.session_factory()
        try:
            return db.query(ShopFollow.id).filter(
                ShopFollow.shop_id == shop_id, ShopFollow.user_id == user_id
            ).first() is not None
        except Exception as e:
            logger.error(f"Error checking follow of shop {shop_id}: {e}")
            return False
        finally:
            db.close()

    def get_followers_count(self, shop_id: str) -> int:
        db = self.session_factory()
        try:
            return db.query(ShopFollow).filter(ShopFollow.shop_id == shop_id).count()
        except Exception as e:
            logger.error(f"Error counting followers of shop {shop_id}: {e}")
            return 0
        finally:
            db.close()

    def get_followers(self, shop_id: str) -> List[ShopFollower]:
        db = self.session_factory()
        try:
            rows = db.query(ShopFollow, UserProfile).outerjoin(
                UserProfile, UserProfile.id == ShopFollow.user_id
            ).filter(ShopFollow.shop_id == shop_id).order_by(desc(ShopFollow.created_at)).all()
            return [
                ShopFollower(
                    user_id=follow.user_id,
                    email=profile.email if profile else None,
                    full_name=profile.full_name if profile else None,
                    followed_at=follow.created_at,
                )
                for follow, profile in rows
            ]
        except Exception as e:
            logger.error(f"Error fetching followers of shop {shop_id}: {e}")
            return []
        finally:
            db.close()
