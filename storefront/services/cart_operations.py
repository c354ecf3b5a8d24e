"""
Cart arithmetic over plain lists of cart lines.

Nothing here touches storage: every function takes the current lines and
returns new ones, so the same rules apply to signed-in carts (database rows)
and guest carts (a JSON blob).
"""
import json
import logging
from typing import Dict, List, Optional, Tuple

from pydantic import ValidationError

from ..config import settings
from ..errors import InvalidRequestError, NotFoundError, StockLimitError
from ..models.database import new_id
from ..models.schemas import CartLine, OrderSummary, ProductModel
from ..utils.helpers import round_half_up
from .pricing import effective_price, available_stock

logger = logging.getLogger(__name__)

UNKNOWN_SHOP = "unknown"
BASE_SHIPPING = 5
PER_ITEM_SHIPPING = 0.5
BASE_DISTANCE = 5


def _variant(value: Optional[str]) -> Optional[str]:
    return value or None


def _with_quantity(line: CartLine, quantity: int) -> CartLine:
    return line.model_copy(update={"quantity": quantity, "total": round_half_up(line.price * quantity, 2)})


def _find(cart: List[CartLine], line_id: str) -> CartLine:
    for line in cart:
        if line.id == line_id:
            return line
    raise NotFoundError(f"Cart item {line_id} not found")


def _replace(cart: List[CartLine], updated: CartLine) -> List[CartLine]:
    return [updated if line.id == updated.id else line for line in cart]


def build_cart_item(product: Optional[ProductModel], quantity: int = 1, color: Optional[str] = None,
                    size: Optional[str] = None, line_id: Optional[str] = None) -> CartLine:
    """
    Turn a product into a cart line

    Args:
        product: Product being added
        quantity: Units of the product
        color: Selected color, if any
        size: Selected size, if any
        line_id: Existing line id to keep

    Returns:
        CartLine: Priced line carrying the product's stock
    """
    if product is None:
        raise InvalidRequestError("Product is required")

    price = effective_price(product.price, product.sale_price)
    stock = available_stock(product.stock)
    return CartLine(
        id=line_id or new_id(),
        product_id=product.id,
        name=product.name,
        image=product.images[0] if product.images else "",
        price=price,
        quantity=quantity,
        color=_variant(color),
        size=_variant(size),
        shop_id=product.shop_id or None,
        stock=stock,
        total=round_half_up(price * quantity, 2),
    )


def find_line(cart: List[CartLine], product_id: str, color: Optional[str] = None,
              size: Optional[str] = None) -> Optional[CartLine]:
    """Line for the exact product/color/size combination"""
    for line in cart:
        if line.product_id == product_id and line.color == _variant(color) and line.size == _variant(size):
            return line
    return None


def add_to_cart(cart: List[CartLine], product: ProductModel, quantity: int = 1,
                color: Optional[str] = None, size: Optional[str] = None) -> List[CartLine]:
    """
    Add units of a product, merging with an existing identical line

    Raises:
        StockLimitError: The resulting quantity exceeds the stock
    """
    if quantity < 1:
        raise InvalidRequestError("Quantity must be at least 1")

    existing = find_line(cart, product.id, color, size)
    if existing:
        new_quantity = existing.quantity + quantity
        if new_quantity > existing.stock:
            raise StockLimitError(f"Sorry, there are only {existing.stock} units available.")
        return _replace(cart, _with_quantity(existing, new_quantity))

    line = build_cart_item(product, quantity, color, size)
    if quantity > line.stock:
        raise StockLimitError(f"Sorry, there are only {line.stock} units available.")
    return cart + [line]


def update_cart_item_quantity(line: CartLine, quantity: int) -> CartLine:
    if quantity < 1:
        raise InvalidRequestError("Quantity must be at least 1")
    if quantity > line.stock:
        raise StockLimitError(f"Only {line.stock} items available")
    return _with_quantity(line, quantity)


def set_quantity(cart: List[CartLine], line_id: str, quantity: int) -> List[CartLine]:
    return _replace(cart, update_cart_item_quantity(_find(cart, line_id), quantity))


def remove_from_cart(cart: List[CartLine], line_id: str) -> List[CartLine]:
    _find(cart, line_id)
    return [line for line in cart if line.id != line_id]


def increase_quantity(cart: List[CartLine], line_id: str) -> List[CartLine]:
    line = _find(cart, line_id)
    return _replace(cart, update_cart_item_quantity(line, line.quantity + 1))


def decrease_quantity(cart: List[CartLine], line_id: str) -> List[CartLine]:
    """Drop one unit; a line never goes below one unit"""
    line = _find(cart, line_id)
    if line.quantity <= 1:
        return cart
    return _replace(cart, _with_quantity(line, line.quantity - 1))


def clear_cart() -> List[CartLine]:
    return []


def calculate_cart_total(cart: List[CartLine]) -> float:
    return round_half_up(sum(line.price * line.quantity for line in cart), 2)


def calculate_cart_item_count(cart: List[CartLine]) -> int:
    return sum(line.quantity for line in cart)


def is_in_cart(cart: List[CartLine], product_id: str, color: Optional[str] = None,
               size: Optional[str] = None) -> bool:
    """True when the product is in the cart; color and size narrow the match when given"""
    for line in cart:
        if line.product_id != product_id:
            continue
        if color is not None and line.color != _variant(color):
            continue
        if size is not None and line.size != _variant(size):
            continue
        return True
    return False


def group_cart_items_by_shop(cart: List[CartLine]) -> Dict[str, List[CartLine]]:
    groups: Dict[str, List[CartLine]] = {}
    for line in cart:
        groups.setdefault(line.shop_id or UNKNOWN_SHOP, []).append(line)
    return groups


def calculate_shipping_cost(cart: List[CartLine], distance: float = BASE_DISTANCE) -> float:
    """Distance-based delivery estimate: a base fee plus a per-line charge"""
    factor = max(1, distance / BASE_DISTANCE)
    return round_half_up(BASE_SHIPPING + len(cart) * PER_ITEM_SHIPPING * factor, 2)


def validate_cart_items(cart: List[CartLine],
                        products: Dict[str, ProductModel]) -> Tuple[bool, List[CartLine]]:
    """
    Check every line against current stock

    Args:
        cart: Lines to check
        products: Current products keyed by id

    Returns:
        tuple: (all valid, offending lines with the quantity that fits)
    """
    invalid = []
    for line in cart:
        product = products.get(line.product_id)
        available = max(available_stock(product.stock), 0) if product is not None else 0
        if line.quantity > available:
            invalid.append(line.model_copy(update={
                "stock": available,
                "quantity": available,
                "total": round_half_up(line.price * available, 2),
            }))
    return not invalid, invalid


def merge_carts(target: List[CartLine], incoming: List[CartLine]) -> List[CartLine]:
    """Fold incoming lines into target; merged quantities are capped at stock"""
    merged = list(target)
    for line in incoming:
        existing = find_line(merged, line.product_id, line.color, line.size)
        if existing:
            quantity = min(existing.quantity + line.quantity, existing.stock)
            merged = _replace(merged, _with_quantity(existing, quantity))
        else:
            merged.append(_with_quantity(line, min(line.quantity, line.stock)))
    return [line for line in merged if line.quantity > 0]


def serialize_cart(cart: List[CartLine]) -> str:
    return json.dumps([line.model_dump(by_alias=True) for line in cart])


def deserialize_cart(raw: Optional[str]) -> List[CartLine]:
    """Parse a stored cart; anything unreadable yields an empty cart"""
    if not raw:
        return []
    try:
        data = json.loads(raw)
        if not isinstance(data, list):
            return []
        return [CartLine.model_validate(entry) for entry in data]
    except (ValueError, TypeError, ValidationError) as e:
        logger.warning(f"Discarding unreadable cart data: {e}")
        return []


def summarize_order(cart: List[CartLine], coupon_code: Optional[str] = None,
                    discount: Optional[float] = None) -> OrderSummary:
    """
    Checkout totals for a cart

    Args:
        cart: Cart lines
        coupon_code: Code entered by the customer
        discount: Discount already worked out for the code; when omitted
            only the built-in promo code is honoured

    Returns:
        OrderSummary: subtotal - discount + shipping
    """
    subtotal = calculate_cart_total(cart)

    if discount is None:
        discount = promo_discount(coupon_code, subtotal)
    discount = round_half_up(min(max(discount, 0), subtotal), 2)

    if not cart or subtotal > settings.FREE_SHIPPING_THRESHOLD:
        shipping = 0.0
    else:
        shipping = settings.FLAT_SHIPPING_FEE

    return OrderSummary(
        subtotal=subtotal,
        discount=discount,
        shipping=shipping,
        total=round_half_up(subtotal - discount + shipping, 2),
        item_count=calculate_cart_item_count(cart),
        coupon_code=coupon_code or None,
    )


def is_promo_code(code: Optional[str]) -> bool:
    return bool(code) and code.strip().lower() == settings.PROMO_CODE.lower()


def promo_discount(coupon_code: Optional[str], subtotal: float) -> float:
    if is_promo_code(coupon_code):
        return round_half_up(subtotal * settings.PROMO_DISCOUNT, 2)
    return 0.0
