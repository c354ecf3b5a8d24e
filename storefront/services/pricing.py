"""
Price, discount and ranking arithmetic shared by the catalog, cart and checkout
"""
from datetime import datetime, timedelta
from typing import List, Optional

from ..config import settings
from ..models.schemas import ProductModel, DealProduct
from ..utils.helpers import round_half_up, format_price

PLACEHOLDER_IMAGE = "/placeholder.png"

VIEW_WEIGHT = 1
REVIEW_WEIGHT = 2
RATING_WEIGHT = 3


def effective_price(price: float, sale_price: Optional[float] = None) -> float:
    """Price the customer pays: the sale price when one is set"""
    return sale_price if sale_price is not None else price


def is_on_sale(price: float, sale_price: Optional[float]) -> bool:
    return sale_price is not None and sale_price < price


def is_in_stock(stock: Optional[int]) -> bool:
    return (stock or 0) > 0


def available_stock(stock: Optional[int]) -> int:
    """Units that can be sold; products without stock tracking count as DEFAULT_STOCK"""
    return stock if stock is not None else settings.DEFAULT_STOCK


def calculate_discount(price: float, sale_price: Optional[float]) -> Optional[int]:
    """
    Whole-percent discount shown on product cards

    Args:
        price: Regular price
        sale_price: Sale price, if any

    Returns:
        int: Discount percent, or None when the product is not on sale
    """
    if sale_price is None or sale_price >= price or price <= 0:
        return None
    return int(round_half_up((price - sale_price) / price * 100))


def discount_percentage(price: float, sale_price: Optional[float]) -> int:
    """Discount percent used to rank deals; 0 for unpriced products"""
    if sale_price is None or not price or price <= 0:
        return 0
    return int(round_half_up((price - sale_price) / price * 100))


def trending_score(views: int, reviews: int, rating: float) -> float:
    return VIEW_WEIGHT * (views or 0) + REVIEW_WEIGHT * (reviews or 0) + RATING_WEIGHT * (rating or 0)


def format_product_price(amount: float, currency: Optional[str] = None) -> str:
    return format_price(amount, currency or settings.CURRENCY)


def product_images(product: ProductModel) -> List[str]:
    return product.images if product.images else [PLACEHOLDER_IMAGE]


def default_deal(now: datetime) -> DealProduct:
    """Deal shown when no product is on sale"""
    return DealProduct(
        id="default-deal-1",
        name="Premium Cotton T-Shirt",
        description="Ultra-soft premium cotton t-shirt with a relaxed fit. Perfect for everyday wear.",
        summary="Ultra-soft premium cotton t-shirt with a relaxed fit. Perfect for everyday wear.",
        price=29.99,
        sale_price=19.99,
        images=["https://images.unsplash.com/photo-1521572163474-6864f9cf17ab?q=80&w=2080"],
        category="t-shirts",
        colors=["White", "Black", "Navy", "Gray"],
        sizes=["S", "M", "L", "XL", "XXL"],
        tags=["cotton", "casual", "summer"],
        is_new=False,
        is_trending=True,
        rating=4.5,
        review_count=128,
        stock=50,
        shop_id="shop-1",
        discount_percentage=33,
        end_time=now + timedelta(hours=settings.DEAL_DURATION_HOURS),
    )


def pick_deal_of_the_day(products: List[ProductModel], now: Optional[datetime] = None) -> DealProduct:
    """
    Choose the product with the deepest discount

    Args:
        products: Candidate products; those without a sale price are ignored
        now: Reference time for the deal's end time

    Returns:
        DealProduct: The winning product, or the default deal
    """
    now = now or datetime.utcnow()
    best = None
    best_discount = -1
    for product in products:
        if product.sale_price is None:
            continue
        discount = discount_percentage(product.price, product.sale_price)
        # First product wins ties
        if discount > best_discount:
            best, best_discount = product, discount

    if best is None:
        return default_deal(now)

    return DealProduct(
        **best.model_dump(),
        discount_percentage=best_discount,
        end_time=now + timedelta(hours=settings.DEAL_DURATION_HOURS),
    )
