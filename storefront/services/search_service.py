import logging
from datetime import datetime
from typing import List, Optional, Tuple, Any

from sqlalchemy import desc, func

from ..config import settings
from ..models.database import SessionLocal, Product, Shop, Category, SearchHistory, PopularSearchTerm
from ..models.schemas import ProductModel, SearchFilters, SearchHistoryItem, SearchResult, CategoryModel
from ..models.converters import product_to_model, shop_to_model, search_history_to_model
from ..utils.helpers import normalize_query, page_count, truncate_list, merge_unique_lists
from .guest_storage import GuestStore, GUEST_SEARCH_HISTORY_KEY
from .pricing import effective_price, is_in_stock, available_stock
from .realtime import change_feed

logger = logging.getLogger(__name__)

POPULAR_SEARCH_LIMIT = 5
SHOP_FACET_LIMIT = 5

# Fields reset by clear_filters; sort and paging survive
FILTER_FIELDS = (
    "category", "shop", "price_range", "rating", "colors", "sizes", "tags",
    "in_stock_only", "on_sale_only", "active_filters",
)


# Active filter chips

def add_filter(filters: SearchFilters, label: str) -> SearchFilters:
    if not label or label in filters.active_filters:
        return filters
    return filters.model_copy(update={"active_filters": filters.active_filters + [label], "page": 1})


def remove_filter(filters: SearchFilters, label: str) -> SearchFilters:
    remaining = [f for f in filters.active_filters if f != label]
    return filters.model_copy(update={"active_filters": remaining, "page": 1})


def toggle_filter(filters: SearchFilters, label: str) -> SearchFilters:
    if label in filters.active_filters:
        return remove_filter(filters, label)
    return add_filter(filters, label)


def clear_filters(filters: SearchFilters) -> SearchFilters:
    defaults = SearchFilters()
    return filters.model_copy(
        update={**{name: getattr(defaults, name) for name in FILTER_FIELDS}, "page": 1}
    )


# Predicates, ordering and paging over an already fetched list

def _lowered(values: List[str]) -> List[str]:
    return [v.lower() for v in values or []]


def _matches_any(selected: List[str], available: List[str]) -> bool:
    if not selected:
        return True
    available = _lowered(available)
    return any(value.lower() in available for value in selected)


def _matches_chip(label: str, product: ProductModel) -> bool:
    chip = label.lower()
    return (
        chip == product.category.lower()
        or chip in _lowered(product.tags)
        or chip in _lowered(product.colors)
        or chip in _lowered(product.sizes)
    )


def matches_filters(product: ProductModel, filters: SearchFilters) -> bool:
    if filters.category and product.category != filters.category:
        return False
    if filters.shop and product.shop_id != filters.shop:
        return False

    low, high = filters.price_range
    price = effective_price(product.price, product.sale_price)
    if price < low or price > high:
        return False

    if filters.rating and product.rating < filters.rating:
        return False
    if not _matches_any(filters.colors, product.colors):
        return False
    if not _matches_any(filters.sizes, product.sizes):
        return False
    if not _matches_any(filters.tags, product.tags):
        return False
    if filters.in_stock_only and not is_in_stock(available_stock(product.stock)):
        return False
    if filters.on_sale_only and product.sale_price is None:
        return False

    # Every chip must match something on the product
    return all(_matches_chip(label, product) for label in filters.active_filters)


def filter_products(products: List[ProductModel], filters: SearchFilters) -> List[ProductModel]:
    return [p for p in products if matches_filters(p, filters)]


def sort_products(products: List[ProductModel], sort: str) -> List[ProductModel]:
    """Stable sort; relevance keeps the incoming order"""
    if sort == "newest":
        return sorted(products, key=lambda p: p.created_at or datetime.min, reverse=True)
    if sort == "price_asc":
        return sorted(products, key=lambda p: effective_price(p.price, p.sale_price))
    if sort == "price_desc":
        return sorted(products, key=lambda p: effective_price(p.price, p.sale_price), reverse=True)
    if sort == "rating":
        return sorted(products, key=lambda p: p.rating, reverse=True)
    return list(products)


def paginate(items: List[Any], page: int, per_page: int) -> Tuple[List[Any], int, int, int]:
    """
    Slice one page out of items

    Returns:
        tuple: (page items, total, page, page count)
    """
    total = len(items)
    page = max(page, 1)
    start = (page - 1) * per_page
    return items[start:start + per_page], total, page, page_count(total, per_page)


class SearchService:
    """Product search, per-customer search history and popular terms"""

    def __init__(self, session_factory=SessionLocal, guest_store: Optional[GuestStore] = None, feed=change_feed):
        self.session_factory = session_factory
        self.guest_store = guest_store or GuestStore(session_factory)
        self.feed = feed

    def search(self, query: str, filters: Optional[SearchFilters] = None,
               user_id: Optional[str] = None, guest_id: Optional[str] = None) -> SearchResult:
        """
        Search products by name, then filter, sort and paginate in memory

        Args:
            query: Free text; empty matches every product
            filters: Filter, sort and paging options
            user_id: Signed-in searcher, whose history is updated
            guest_id: Guest searcher, whose local history is updated

        Returns:
            SearchResult: One page of products plus category and shop facets
        """
        filters = filters or SearchFilters()
        term = (query or "").strip()
        db = self.session_factory()
        try:
            q = db.query(Product)
            if term:
                q = q.filter(func.lower(Product.name).contains(term.lower()))
            matched = [product_to_model(row) for row in q.order_by(desc(Product.created_at), Product.id).all()]

            category_ids = merge_unique_lists([p.category for p in matched if p.category])
            names = dict(db.query(Category.id, Category.name).filter(Category.id.in_(category_ids)).all()) if category_ids else {}
            categories = [
                CategoryModel(id=cid, name=names.get(cid) or cid.replace("-", " ").title())
                for cid in category_ids
            ]

            shops = []
            if term:
                shop_rows = db.query(Shop).filter(
                    func.lower(Shop.name).contains(term.lower()),
                    Shop.status == "active",
                ).order_by(Shop.name).limit(SHOP_FACET_LIMIT).all()
                shops = [shop_to_model(s) for s in shop_rows]

        except Exception as e:
            logger.error(f"Error searching products for '{term}': {e}")
            matched, categories, shops = [], [], []
        finally:
            db.close()

        ordered = sort_products(filter_products(matched, filters), filters.sort)
        items, total, page, pages = paginate(ordered, filters.page, filters.per_page)

        if term:
            self._remember(term, user_id, guest_id)

        return SearchResult(
            query=term, products=items, total=total, page=page,
            page_count=pages, categories=categories, shops=shops,
        )

    def _remember(self, term: str, user_id: Optional[str], guest_id: Optional[str]) -> None:
        # History bookkeeping never fails the search itself
        try:
            if user_id:
                self.save_search(user_id, term)
            elif guest_id:
                self.add_guest_search(guest_id, term)
            self.record_popular_search(term)
        except Exception as e:
            logger.warning(f"Could not record search '{term}': {e}")

    # Signed-in history

    def save_search(self, user_id: str, query: str) -> Optional[SearchHistoryItem]:
        """Store a query (lower-cased, trimmed); repeating it refreshes its time"""
        normalized = normalize_query(query)
        if not normalized:
            return None
        db = self.session_factory()
        try:
            entry = db.query(SearchHistory).filter(
                SearchHistory.user_id == user_id, SearchHistory.query == normalized
            ).first()
            if entry:
                entry.searched_at = datetime.utcnow()
            else:
                entry = SearchHistory(user_id=user_id, query=normalized)
                db.add(entry)
            db.commit()
            db.refresh(entry)
            self.feed.publish("search_history", "insert", user_id=user_id, record_id=entry.id)
            return search_history_to_model(entry)
        except Exception as e:
            db.rollback()
            logger.error(f"Error saving search for user {user_id}: {e}")
            raise
        finally:
            db.close()

    def get_recent_searches(self, user_id: str, limit: int = None) -> List[SearchHistoryItem]:
        db = self.session_factory()
        try:
            rows = db.query(SearchHistory).filter(SearchHistory.user_id == user_id).order_by(
                desc(SearchHistory.searched_at)
            ).limit(limit or settings.SEARCH_HISTORY_LIMIT).all()
            return [search_history_to_model(row) for row in rows]
        except Exception as e:
            logger.error(f"Error fetching search history for user {user_id}: {e}")
            return []
        finally:
            db.close()

    def delete_search(self, user_id: str, search_id: str) -> bool:
        db = self.session_factory()
        try:
            deleted = db.query(SearchHistory).filter(
                SearchHistory.id == search_id, SearchHistory.user_id == user_id
            ).delete()
            db.commit()
            if deleted:
                self.feed.publish("search_history", "delete", user_id=user_id, record_id=search_id)
            return bool(deleted)
        except Exception as e:
            db.rollback()
            logger.error(f"Error deleting search {search_id}: {e}")
            raise
        finally:
            db.close()

    def clear_search_history(self, user_id: str) -> int:
        db = self.session_factory()
        try:
            deleted = db.query(SearchHistory).filter(SearchHistory.user_id == user_id).delete()
            db.commit()
            self.feed.publish("search_history", "delete", user_id=user_id)
            logger.info(f"Cleared {deleted} searches for user {user_id}")
            return deleted
        except Exception as e:
            db.rollback()
            logger.error(f"Error clearing search history for user {user_id}: {e}")
            raise
        finally:
            db.close()

    # Guest history

    def get_guest_history(self, guest_id: str) -> List[str]:
        history = self.guest_store.get(guest_id, GUEST_SEARCH_HISTORY_KEY, [])
        return history if isinstance(history, list) else []

    def add_guest_search(self, guest_id: str, query: str) -> List[str]:
        normalized = normalize_query(query)
        history = self.get_guest_history(guest_id)
        if not normalized:
            return history
        history = [normalized] + [h for h in history if h != normalized]
        history = truncate_list(history, settings.GUEST_SEARCH_HISTORY_LIMIT)
        self.guest_store.set(guest_id, GUEST_SEARCH_HISTORY_KEY, history)
        return history

    def clear_guest_history(self, guest_id: str) -> None:
        self.guest_store.remove(guest_id, GUEST_SEARCH_HISTORY_KEY)

    # Popular terms

    def record_popular_search(self, query: str) -> None:
        normalized = normalize_query(query)
        if not normalized:
            return
        db = self.session_factory()
        try:
            term = db.query(PopularSearchTerm).filter(PopularSearchTerm.query == normalized).first()
            if term:
                term.count = (term.count or 0) + 1
            else:
                db.add(PopularSearchTerm(query=normalized, count=1))
            db.commit()
        except Exception as e:
            db.rollback()
            logger.error(f"Error recording popular search '{normalized}': {e}")
            raise
        finally:
            db.close()

    def get_popular_searches(self, limit: int = POPULAR_SEARCH_LIMIT) -> List[str]:
        db = self.session_factory()
        try:
            rows = db.query(PopularSearchTerm.query).order_by(
                desc(PopularSearchTerm.count), PopularSearchTerm.query
            ).limit(limit).all()
            terms = [row[0] for row in rows]
            return terms or list(settings.POPULAR_SEARCH_FALLBACK[:limit])
        except Exception as e:
            logger.error(f"Error fetching popular searches: {e}")
            return list(settings.POPULAR_SEARCH_FALLBACK[:limit])
        finally:
            db.close()
