import logging
from datetime import datetime, timedelta
from typing import List, Optional, Tuple

from sqlalchemy import desc, asc, func

from ..config import settings
from ..errors import NotFoundError
from ..models.database import SessionLocal, Product, ProductViewHistory, Category
from ..models.schemas import ProductModel, ProductQuery, TrendingProduct, DealProduct, CategoryModel
from ..models.converters import product_to_model, category_to_model
from ..utils.helpers import merge_unique_lists
from .pricing import trending_score, pick_deal_of_the_day

logger = logging.getLogger(__name__)

DEAL_CANDIDATES = 10

PRODUCT_SORTS = {
    "newest": desc(Product.created_at),
    "price-asc": asc(Product.price),
    "price-desc": desc(Product.price),
    "rating": desc(Product.rating),
    "popularity": desc(Product.review_count),
}


def timeframe_start(timeframe: str, now: Optional[datetime] = None) -> Optional[datetime]:
    """Earliest view time counted for a trending timeframe; None means all time"""
    now = now or datetime.utcnow()
    if timeframe == "today":
        return now.replace(hour=0, minute=0, second=0, microsecond=0)
    if timeframe == "week":
        return now - timedelta(days=7)
    if timeframe == "month":
        return now - timedelta(days=30)
    return None


class CatalogService:
    """Product browsing: listings, home page sections, deals and view tracking"""

    def __init__(self, session_factory=SessionLocal):
        self.session_factory = session_factory

    def list_products(self, query: Optional[ProductQuery] = None) -> Tuple[List[ProductModel], int]:
        """
        List products with optional filters

        Args:
            query: Filters, sort order and limit

        Returns:
            tuple: (products, total matching before the limit)
        """
        query = query or ProductQuery()
        db = self.session_factory()
        try:
            q = db.query(Product)
            if query.category_id:
                q = q.filter(Product.category_id == query.category_id)
            if query.shop_id:
                q = q.filter(Product.shop_id == query.shop_id)
            if query.is_new is not None:
                q = q.filter(Product.is_new == query.is_new)
            if query.is_trending is not None:
                q = q.filter(Product.is_trending == query.is_trending)
            if query.with_discount:
                q = q.filter(Product.sale_price.isnot(None))

            total = q.count()
            rows = q.order_by(PRODUCT_SORTS[query.sort_by], Product.id).limit(query.limit).all()
            return [product_to_model(row) for row in rows], total

        except Exception as e:
            logger.error(f"Error listing products: {e}")
            return [], 0
        finally:
            db.close()

    def get_product(self, product_id: str) -> Optional[ProductModel]:
        db = self.session_factory()
        try:
            product = db.query(Product).filter(Product.id == product_id).first()
            return product_to_model(product) if product else None
        except Exception as e:
            logger.error(f"Error fetching product {product_id}: {e}")
            return None
        finally:
            db.close()

    def get_products_by_tag(self, tag: str) -> List[ProductModel]:
        """Products whose tag list contains tag (case-insensitive)"""
        wanted = (tag or "").strip().lower()
        if not wanted:
            return []
        db = self.session_factory()
        try:
            rows = db.query(Product).order_by(desc(Product.created_at)).all()
            return [
                product_to_model(row) for row in rows
                if wanted in [t.lower() for t in (row.tags or [])]
            ]
        except Exception as e:
            logger.error(f"Error fetching products for tag {tag}: {e}")
            return []
        finally:
            db.close()

    def get_new_arrivals(self, limit: int = None, category_id: Optional[str] = None) -> List[ProductModel]:
        db = self.session_factory()
        try:
            q = db.query(Product).filter(Product.is_new.is_(True))
            if category_id:
                q = q.filter(Product.category_id == category_id)
            rows = q.order_by(desc(Product.created_at)).limit(limit or settings.HOME_SECTION_LIMIT).all()
            return [product_to_model(row) for row in rows]
        except Exception as e:
            logger.error(f"Error fetching new arrivals: {e}")
            return []
        finally:
            db.close()

    def get_trending_products(self, timeframe: str = "all", sort_by: str = "popularity",
                              now: Optional[datetime] = None) -> List[TrendingProduct]:
        """
        Rank products by recent engagement

        The view count of a product is the number of customers who viewed
        it within the timeframe.

        Args:
            timeframe: all, today, week or month
            sort_by: popularity (trending score), rating or recent

        Returns:
            list: Up to TRENDING_LIMIT products, all flagged trending
        """
        db = self.session_factory()
        try:
            views_q = db.query(ProductViewHistory.product_id, func.count(ProductViewHistory.id))
            start = timeframe_start(timeframe, now)
            if start is not None:
                views_q = views_q.filter(ProductViewHistory.last_viewed_at >= start)
            views = dict(views_q.group_by(ProductViewHistory.product_id).all())

            products = db.query(Product).all()
            ranked = []
            for row in products:
                view_count = views.get(row.id, 0)
                score = trending_score(view_count, row.review_count or 0, row.rating or 0)
                ranked.append(product_to_model(
                    row, model_class=TrendingProduct,
                    view_count=view_count, trending_score=score, is_trending=True,
                ))

            if sort_by == "rating":
                ranked.sort(key=lambda p: p.rating, reverse=True)
            elif sort_by == "recent":
                ranked.sort(key=lambda p: p.created_at or datetime.min, reverse=True)
            else:
                ranked.sort(key=lambda p: p.trending_score, reverse=True)

            return ranked[:settings.TRENDING_LIMIT]

        except Exception as e:
            logger.error(f"Error fetching trending products: {e}")
            return []
        finally:
            db.close()

    def _section(self, order, label: str, limit: Optional[int], *filters) -> List[ProductModel]:
        db = self.session_factory()
        try:
            q = db.query(Product)
            for condition in filters:
                q = q.filter(condition)
            rows = q.order_by(order, Product.id).limit(limit or settings.HOME_SECTION_LIMIT).all()
            return [product_to_model(row) for row in rows]
        except Exception as e:
            logger.error(f"Error fetching {label} products: {e}")
            return []
        finally:
            db.close()

    def get_top_rated(self, limit: int = None) -> List[ProductModel]:
        return self._section(desc(Product.rating), "top rated", limit)

    def get_best_selling(self, limit: int = None) -> List[ProductModel]:
        return self._section(desc(Product.review_count), "best selling", limit)

    def get_discounted(self, limit: int = None) -> List[ProductModel]:
        return self._section(desc(Product.created_at), "discounted", limit, Product.sale_price.isnot(None))

    def get_deal_of_the_day(self, now: Optional[datetime] = None) -> DealProduct:
        """Deepest discount among the highest-priced products on sale"""
        candidates = self._section(
            desc(Product.price), "deal", DEAL_CANDIDATES, Product.sale_price.isnot(None)
        )
        return pick_deal_of_the_day(candidates, now)

    def get_categories(self) -> List[CategoryModel]:
        db = self.session_factory()
        try:
            categories = db.query(Category).order_by(Category.name).all()
            if categories:
                return [category_to_model(c) for c in categories]

            # No category table rows yet: derive them from products
            ids = [row[0] for row in db.query(Product.category_id).order_by(Product.category_id).all() if row[0]]
            return [
                CategoryModel(id=cid, name=cid.replace("-", " ").title())
                for cid in merge_unique_lists(ids)
            ]
        except Exception as e:
            logger.error(f"Error fetching categories: {e}")
            return []
        finally:
            db.close()

    def get_related_products(self, product_id: str, limit: int = 4) -> List[ProductModel]:
        db = self.session_factory()
        try:
            product = db.query(Product).filter(Product.id == product_id).first()
            if not product or not product.category_id:
                return []
            rows = db.query(Product).filter(
                Product.category_id == product.category_id,
                Product.id != product_id,
            ).order_by(desc(Product.rating), Product.id).limit(limit).all()
            return [product_to_model(row) for row in rows]
        except Exception as e:
            logger.error(f"Error fetching related products for {product_id}: {e}")
            return []
        finally:
            db.close()

    def record_product_view(self, product_id: str, user_id: Optional[str] = None) -> None:
        """
        Count a product view

        Anonymous views bump the product's view counter; signed-in views
        upsert the customer's view history row.
        """
        db = self.session_factory()
        try:
            product = db.query(Product).filter(Product.id == product_id).first()
            if not product:
                raise NotFoundError(f"Product {product_id} not found")

            if user_id:
                history = db.query(ProductViewHistory).filter(
                    ProductViewHistory.product_id == product_id,
                    ProductViewHistory.user_id == user_id,
                ).first()
                if history:
                    history.view_count = (history.view_count or 0) + 1
                    history.last_viewed_at = datetime.utcnow()
                else:
                    db.add(ProductViewHistory(product_id=product_id, user_id=user_id, view_count=1))
            else:
                product.view_count = (product.view_count or 0) + 1

            db.commit()

        except NotFoundError:
            raise
        except Exception as e:
            db.rollback()
            logger.error(f"Error recording view of product {product_id}: {e}")
            raise
        finally:
            db.close()
