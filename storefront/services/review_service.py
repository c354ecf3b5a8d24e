import logging
from typing import List, Optional

from sqlalchemy import desc, func

from ..errors import StorefrontError, InvalidRequestError, NotFoundError, PermissionDeniedError
from ..models.database import SessionLocal, ProductReview, Product, Shop
from ..models.schemas import ReviewModel, ReviewCreate
from ..models.converters import review_to_model
from ..utils.helpers import round_half_up, clean_text
from .realtime import change_feed

logger = logging.getLogger(__name__)

REVIEW_COMMENT_LIMIT = 2000


def validate_review(data: ReviewCreate) -> None:
    if data.review_type == "product" and not data.product_id:
        raise InvalidRequestError("Product ID is required for product reviews")
    if data.review_type == "shop" and not data.shop_id:
        raise InvalidRequestError("Shop ID is required for shop reviews")


class ReviewService:
    """Product and shop reviews; targets keep their rating and review count in sync"""

    def __init__(self, session_factory=SessionLocal, feed=change_feed):
        self.session_factory = session_factory
        self.feed = feed

    def _list(self, label: str, *filters) -> List[ReviewModel]:
        db = self.session_factory()
        try:
            q = db.query(ProductReview)
            for condition in filters:
                q = q.filter(condition)
            return [review_to_model(r) for r in q.order_by(desc(ProductReview.created_at)).all()]
        except Exception as e:
            logger.error(f"Error fetching reviews for {label}: {e}")
            return []
        finally:
            db.close()

    def get_product_reviews(self, product_id: str) -> List[ReviewModel]:
        return self._list(
            f"product {product_id}",
            ProductReview.product_id == product_id,
            ProductReview.review_type == "product",
        )

    def get_shop_reviews(self, shop_id: str) -> List[ReviewModel]:
        return self._list(
            f"shop {shop_id}",
            ProductReview.shop_id == shop_id,
            ProductReview.review_type == "shop",
        )

    @staticmethod
    def _refresh_rating(db, review_type: str, target_id: str) -> None:
        """Recompute the target's mean rating and review count"""
        if review_type == "product":
            target = db.query(Product).filter(Product.id == target_id).first()
            column = ProductReview.product_id
        else:
            target = db.query(Shop).filter(Shop.id == target_id).first()
            column = ProductReview.shop_id
        if target is None:
            return

        average, count = db.query(func.avg(ProductReview.rating), func.count(ProductReview.id)).filter(
            column == target_id, ProductReview.review_type == review_type
        ).one()
        target.rating = round_half_up(float(average), 2) if count else 0
        target.review_count = count

    def create_review(self, user_id: str, data: ReviewCreate) -> ReviewModel:
        """
        Add a review and update the target's rating

        Raises:
            InvalidRequestError: The review type's target id is missing
            NotFoundError: The target does not exist
        """
        validate_review(data)
        db = self.session_factory()
        try:
            if data.review_type == "product":
                target_id = data.product_id
                if not db.query(Product.id).filter(Product.id == target_id).first():
                    raise NotFoundError(f"Product {target_id} not found")
            else:
                target_id = data.shop_id
                if not db.query(Shop.id).filter(Shop.id == target_id).first():
                    raise NotFoundError(f"Shop {target_id} not found")

            review = ProductReview(
                user_id=user_id,
                rating=data.rating,
                comment=clean_text(data.comment, REVIEW_COMMENT_LIMIT),
                images=data.images,
                review_type=data.review_type,
                product_id=data.product_id if data.review_type == "product" else None,
                shop_id=data.shop_id if data.review_type == "shop" else None,
            )
            db.add(review)
            db.flush()
            self._refresh_rating(db, data.review_type, target_id)
            db.commit()
            db.refresh(review)
            result = review_to_model(review)
            logger.info(f"User {user_id} reviewed {data.review_type} {target_id} ({data.rating} stars)")

        except StorefrontError:
            db.rollback()
            raise
        except Exception as e:
            db.rollback()
            logger.error(f"Error creating review: {e}")
            raise
        finally:
            db.close()

        table = "products" if data.review_type == "product" else "shops"
        self.feed.publish(table, "update", record_id=target_id)
        self.feed.publish("product_reviews", "insert", record_id=result.id)
        return result

    def mark_helpful(self, review_id: str) -> ReviewModel:
        db = self.session_factory()
        try:
            review = db.query(ProductReview).filter(ProductReview.id == review_id).first()
            if not review:
                raise NotFoundError(f"Review {review_id} not found")
            review.helpful_count = (review.helpful_count or 0) + 1
            db.commit()
            db.refresh(review)
            return review_to_model(review)
        except StorefrontError:
            db.rollback()
            raise
        except Exception as e:
            db.rollback()
            logger.error(f"Error marking review {review_id} helpful: {e}")
            raise
        finally:
            db.close()

    def delete_review(self, review_id: str, user_id: Optional[str] = None, platform_admin: bool = False) -> None:
        db = self.session_factory()
        try:
            review = db.query(ProductReview).filter(ProductReview.id == review_id).first()
            if not review:
                raise NotFoundError(f"Review {review_id} not found")
            if not platform_admin and review.user_id != user_id:
                raise PermissionDeniedError("You can only delete your own reviews")

            review_type = review.review_type or "product"
            target_id = review.product_id if review_type == "product" else review.shop_id
            db.delete(review)
            db.flush()
            self._refresh_rating(db, review_type, target_id)
            db.commit()
            logger.info(f"Deleted review {review_id}")
        except StorefrontError:
            db.rollback()
            raise
        except Exception as e:
            db.rollback()
            logger.error(f"Error deleting review {review_id}: {e}")
            raise
        finally:
            db.close()

        self.feed.publish("products" if review_type == "product" else "shops", "update", record_id=target_id)
        self.feed.publish("product_reviews", "delete", record_id=review_id)
