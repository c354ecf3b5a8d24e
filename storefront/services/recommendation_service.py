import logging
from collections import defaultdict
from typing import Dict, List

from sqlalchemy import desc, select

from ..models.database import SessionLocal, Product, ProductViewHistory
from ..models.schemas import ProductModel
from ..models.converters import product_to_model

logger = logging.getLogger(__name__)

HISTORY_SAMPLE = 20
TOP_CATEGORIES = 3


def rank_categories(views: List[tuple], top: int = TOP_CATEGORIES) -> List[str]:
    """
    Categories a customer looks at most

    Args:
        views: (category_id, view_count) pairs from the customer's history
        top: Number of categories to keep

    Returns:
        list: Category ids, heaviest first
    """
    weights: Dict[str, int] = defaultdict(int)
    for category_id, view_count in views:
        if category_id:
            weights[category_id] += view_count or 0
    return [cid for cid, _ in sorted(weights.items(), key=lambda kv: kv[1], reverse=True)[:top]]


class RecommendationService:
    def __init__(self, session_factory=SessionLocal):
        self.session_factory = session_factory

    def get_personalized(self, user_id: str, limit: int = 10) -> List[ProductModel]:
        """Unseen, well-rated products from the customer's favourite categories"""
        db = self.session_factory()
        try:
            history = db.query(ProductViewHistory.product_id, Product.category_id, ProductViewHistory.view_count).join(
                Product, Product.id == ProductViewHistory.product_id
            ).filter(ProductViewHistory.user_id == user_id).order_by(
                desc(ProductViewHistory.view_count)
            ).limit(HISTORY_SAMPLE).all()
            if not history:
                return []

            categories = rank_categories([(category_id, count) for _, category_id, count in history])
            if not categories:
                return []

            seen = select(ProductViewHistory.product_id).where(ProductViewHistory.user_id == user_id)
            rows = db.query(Product).filter(
                Product.category_id.in_(categories),
                Product.id.notin_(seen),
            ).order_by(desc(Product.rating), Product.id).limit(limit).all()
            return [product_to_model(row) for row in rows]

        except Exception as e:
            logger.error(f"Error building recommendations for user {user_id}: {e}")
            return []
        finally:
            db.close()

    def get_similar(self, product_id: str, limit: int = 6) -> List[ProductModel]:
        db = self.session_factory()
        try:
            product = db.query(Product).filter(Product.id == product_id).first()
            if not product or not product.category_id:
                return []
            rows = db.query(Product).filter(
                Product.category_id == product.category_id, Product.id != product_id
            ).order_by(desc(Product.rating), Product.id).limit(limit).all()
            return [product_to_model(row) for row in rows]
        except Exception as e:
            logger.error(f"Error fetching products similar to {product_id}: {e}")
            return []
        finally:
            db.close()

    def get_recently_viewed(self, user_id: str, limit: int = 10) -> List[ProductModel]:
        db = self.session_factory()
        try:
            rows = db.query(Product).join(
                ProductViewHistory, ProductViewHistory.product_id == Product.id
            ).filter(ProductViewHistory.user_id == user_id).order_by(
                desc(ProductViewHistory.last_viewed_at)
            ).limit(limit).all()
            return [product_to_model(row) for row in rows]
        except Exception as e:
            logger.error(f"Error fetching recently viewed products for user {user_id}: {e}")
            return []
        finally:
            db.close()
