import logging
from typing import Dict, List, Optional, Callable, Iterable

from ..errors import AuthenticationRequiredError, NotFoundError
from ..models.database import SessionLocal, CartItem, Product
from ..models.schemas import CartLine, CartView, OrderSummary, ProductModel
from ..models.converters import product_to_model
from . import cart_operations as ops
from .coupon_service import CouponService
from .guest_storage import GuestStore, GUEST_CART_KEY
from .realtime import change_feed

logger = logging.getLogger(__name__)


class CartService:
    """
    Cart storage for signed-in customers and guests.

    Every mutation loads the whole cart, applies a pure cart operation and
    writes the whole cart back.
    """

    def __init__(self, session_factory=SessionLocal, guest_store: Optional[GuestStore] = None,
                 coupon_service: Optional[CouponService] = None, feed=change_feed):
        self.session_factory = session_factory
        self.guest_store = guest_store or GuestStore(session_factory)
        self.coupon_service = coupon_service or CouponService(session_factory, feed)
        self.feed = feed

    @staticmethod
    def _require_owner(user_id: Optional[str], guest_id: Optional[str]) -> None:
        if not user_id and not guest_id:
            raise AuthenticationRequiredError("A user or guest session is required for the cart")

    def get_products(self, product_ids: Iterable[str]) -> Dict[str, ProductModel]:
        ids = list(set(product_ids))
        if not ids:
            return {}
        db = self.session_factory()
        try:
            rows = db.query(Product).filter(Product.id.in_(ids)).all()
            return {row.id: product_to_model(row) for row in rows}
        finally:
            db.close()

    def _get_product(self, product_id: str) -> ProductModel:
        product = self.get_products([product_id]).get(product_id)
        if product is None:
            raise NotFoundError(f"Product {product_id} not found")
        return product

    def load_cart(self, user_id: Optional[str] = None, guest_id: Optional[str] = None,
                  strict: bool = False) -> List[CartLine]:
        """
        Current cart lines, priced from current product data

        Args:
            user_id: Signed-in owner; takes precedence over guest_id
            guest_id: Guest owner
            strict: Re-raise database errors instead of returning an empty cart.
                Mutations load strictly because the result replaces the stored cart.

        Returns:
            list: Cart lines; lines whose product no longer exists are dropped
        """
        self._require_owner(user_id, guest_id)
        if user_id:
            return self._load_user_cart(user_id, strict)
        return self._load_guest_cart(guest_id)

    def _load_user_cart(self, user_id: str, strict: bool = False) -> List[CartLine]:
        db = self.session_factory()
        try:
            rows = db.query(CartItem).filter(CartItem.user_id == user_id).order_by(CartItem.created_at).all()
            products = {
                row.id: product_to_model(row)
                for row in db.query(Product).filter(Product.id.in_({r.product_id for r in rows})).all()
            } if rows else {}

            lines = []
            for row in rows:
                product = products.get(row.product_id)
                if product is None:
                    logger.warning(f"Skipping cart item {row.id}: product {row.product_id} no longer exists")
                    continue
                lines.append(ops.build_cart_item(product, row.quantity, row.color, row.size, line_id=row.id))
            return lines

        except Exception as e:
            logger.error(f"Error loading cart for user {user_id}: {e}")
            if strict:
                raise
            return []
        finally:
            db.close()

    def _load_guest_cart(self, guest_id: str) -> List[CartLine]:
        raw = self.guest_store.get_raw(guest_id, GUEST_CART_KEY)
        lines = ops.deserialize_cart(raw)
        if raw and not lines:
            # Unreadable or empty blob
            self.guest_store.remove(guest_id, GUEST_CART_KEY)
        return lines

    def save_cart(self, lines: List[CartLine], user_id: Optional[str] = None,
                  guest_id: Optional[str] = None) -> List[CartLine]:
        """Replace the stored cart with lines"""
        self._require_owner(user_id, guest_id)
        if user_id:
            self._save_user_cart(user_id, lines)
            self.feed.publish("cart_items", "update", user_id=user_id)
        else:
            self.guest_store.set_raw(guest_id, GUEST_CART_KEY, ops.serialize_cart(lines))
        return lines

    def _save_user_cart(self, user_id: str, lines: List[CartLine]) -> None:
        db = self.session_factory()
        try:
            db.query(CartItem).filter(CartItem.user_id == user_id).delete(synchronize_session=False)
            for line in lines:
                db.add(CartItem(
                    id=line.id,
                    user_id=user_id,
                    product_id=line.product_id,
                    quantity=line.quantity,
                    color=line.color or "",
                    size=line.size or "",
                ))
            db.commit()
        except Exception as e:
            db.rollback()
            logger.error(f"Error saving cart for user {user_id}: {e}")
            raise
        finally:
            db.close()

    def _mutate(self, operation: Callable[[List[CartLine]], List[CartLine]],
                user_id: Optional[str], guest_id: Optional[str]) -> List[CartLine]:
        lines = operation(self.load_cart(user_id, guest_id, strict=True))
        return self.save_cart(lines, user_id, guest_id)

    def add_item(self, product_id: str, quantity: int = 1, color: Optional[str] = None,
                 size: Optional[str] = None, user_id: Optional[str] = None,
                 guest_id: Optional[str] = None) -> List[CartLine]:
        self._require_owner(user_id, guest_id)
        product = self._get_product(product_id)
        lines = self._mutate(lambda cart: ops.add_to_cart(cart, product, quantity, color, size), user_id, guest_id)
        logger.info(f"Added {quantity} x {product_id} to cart of {user_id or 'guest ' + guest_id}")
        return lines

    def update_quantity(self, line_id: str, quantity: int, user_id: Optional[str] = None,
                        guest_id: Optional[str] = None) -> List[CartLine]:
        return self._mutate(lambda cart: ops.set_quantity(cart, line_id, quantity), user_id, guest_id)

    def increase_quantity(self, line_id: str, user_id: Optional[str] = None,
                          guest_id: Optional[str] = None) -> List[CartLine]:
        return self._mutate(lambda cart: ops.increase_quantity(cart, line_id), user_id, guest_id)

    def decrease_quantity(self, line_id: str, user_id: Optional[str] = None,
                          guest_id: Optional[str] = None) -> List[CartLine]:
        return self._mutate(lambda cart: ops.decrease_quantity(cart, line_id), user_id, guest_id)

    def remove_item(self, line_id: str, user_id: Optional[str] = None,
                    guest_id: Optional[str] = None) -> List[CartLine]:
        return self._mutate(lambda cart: ops.remove_from_cart(cart, line_id), user_id, guest_id)

    def clear(self, user_id: Optional[str] = None, guest_id: Optional[str] = None) -> List[CartLine]:
        self._require_owner(user_id, guest_id)
        if guest_id and not user_id:
            self.guest_store.remove(guest_id, GUEST_CART_KEY)
            return []
        return self.save_cart(ops.clear_cart(), user_id, guest_id)

    def summarize(self, lines: List[CartLine], coupon_code: Optional[str] = None) -> OrderSummary:
        discount, _ = self.coupon_service.resolve_discount(coupon_code, ops.calculate_cart_total(lines))
        return ops.summarize_order(lines, coupon_code, discount)

    def get_cart_view(self, user_id: Optional[str] = None, guest_id: Optional[str] = None,
                      coupon_code: Optional[str] = None) -> CartView:
        lines = self.load_cart(user_id, guest_id)
        return CartView(items=lines, summary=self.summarize(lines, coupon_code))

    def merge_guest_cart(self, guest_id: str, user_id: str) -> List[CartLine]:
        """
        Move a guest cart into a customer's cart after sign-in

        Quantities of matching lines are summed and capped at stock; the
        guest cart is removed afterwards.
        """
        guest_lines = self._load_guest_cart(guest_id)
        if not guest_lines:
            return self.load_cart(user_id=user_id)

        # Re-price guest lines from current product data
        products = self.get_products(line.product_id for line in guest_lines)
        refreshed = []
        for line in guest_lines:
            product = products.get(line.product_id)
            if product is None:
                logger.warning(f"Dropping guest cart line for missing product {line.product_id}")
                continue
            refreshed.append(ops.build_cart_item(product, line.quantity, line.color, line.size))

        lines = self.save_cart(ops.merge_carts(self.load_cart(user_id=user_id, strict=True), refreshed), user_id=user_id)
        self.guest_store.remove(guest_id, GUEST_CART_KEY)
        logger.info(f"Merged {len(refreshed)} guest cart lines into cart of user {user_id}")
        return lines
