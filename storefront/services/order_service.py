import logging
from typing import List, Optional

from sqlalchemy import desc, select
from sqlalchemy.orm import Session, selectinload

from ..errors import StorefrontError, InvalidRequestError, NotFoundError, PermissionDeniedError, StockLimitError
from ..models.database import (
    SessionLocal, Order, OrderItem, Product, Address, CartItem, Coupon, OrderCouponUsage
)
from ..models.schemas import CheckoutRequest, OrderModel, OrderTracking, TrackingStep, OrderStatus
from ..models.converters import order_to_model
from ..utils.helpers import short_id
from . import cart_operations as ops
from .access import is_shop_admin, ensure_shop_admin
from .cart_service import CartService
from .coupon_service import CouponService
from .notification_service import build_notification
from .pricing import available_stock
from .realtime import change_feed

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS = {
    "pending": {"processing", "cancelled"},
    "processing": {"shipped", "cancelled"},
    "shipped": {"delivered"},
    "delivered": {"returned"},
    "cancelled": set(),
    "returned": set(),
}

FULFILMENT_STEPS = ["pending", "processing", "shipped", "delivered"]

STATUS_LABELS = {
    "pending": "Order Placed",
    "processing": "Processing",
    "shipped": "Shipped",
    "delivered": "Delivered",
    "cancelled": "Cancelled",
    "returned": "Returned",
}


def can_transition(current: str, new: str) -> bool:
    return new in ALLOWED_TRANSITIONS.get(current, set())


def tracking_steps(status: str) -> List[TrackingStep]:
    """Timeline shown on the order tracking page"""
    if status == "cancelled":
        return [
            TrackingStep(status="pending", label=STATUS_LABELS["pending"], completed=True),
            TrackingStep(status="cancelled", label=STATUS_LABELS["cancelled"], completed=True),
        ]

    reached = len(FULFILMENT_STEPS) - 1 if status == "returned" else FULFILMENT_STEPS.index(status)
    steps = [
        TrackingStep(status=step, label=STATUS_LABELS[step], completed=index <= reached)
        for index, step in enumerate(FULFILMENT_STEPS)
    ]
    if status == "returned":
        steps.append(TrackingStep(status="returned", label=STATUS_LABELS["returned"], completed=True))
    return steps


class OrderService:
    """Checkout, order history, cancellation, fulfilment and tracking"""

    def __init__(self, session_factory=SessionLocal, cart_service: Optional[CartService] = None,
                 coupon_service: Optional[CouponService] = None, feed=change_feed):
        self.session_factory = session_factory
        self.coupon_service = coupon_service or CouponService(session_factory, feed)
        self.cart_service = cart_service or CartService(
            session_factory, coupon_service=self.coupon_service, feed=feed
        )
        self.feed = feed

    @staticmethod
    def _order_query(db: Session):
        return db.query(Order).options(
            selectinload(Order.items).selectinload(OrderItem.product),
            selectinload(Order.shipping_address),
        )

    def create_order(self, user_id: str, data: CheckoutRequest) -> OrderModel:
        """
        Turn the customer's cart into a pending order

        Args:
            user_id: Customer placing the order
            data: Shipping address, payment method, coupon code and notes

        Returns:
            OrderModel: The new order with its items

        Raises:
            InvalidRequestError: Empty cart or unusable coupon
            StockLimitError: A line exceeds the current stock
            NotFoundError: The shipping address does not belong to the customer
        """
        lines = self.cart_service.load_cart(user_id=user_id)
        if not lines:
            raise InvalidRequestError("Your cart is empty")

        products = self.cart_service.get_products(line.product_id for line in lines)
        valid, invalid = ops.validate_cart_items(lines, products)
        if not valid:
            names = ", ".join(f"{line.name} (available: {line.quantity})" for line in invalid)
            raise StockLimitError(f"Some items are not available in the requested quantity: {names}")

        subtotal = ops.calculate_cart_total(lines)
        discount, coupon_id = self.coupon_service.resolve_discount(data.coupon_code, subtotal)
        summary = ops.summarize_order(lines, data.coupon_code, discount)

        db = self.session_factory()
        try:
            address = db.query(Address).filter(
                Address.id == data.shipping_address_id, Address.user_id == user_id
            ).first()
            if not address:
                raise NotFoundError("Shipping address not found")

            shop_ids = {line.shop_id for line in lines}
            order = Order(
                user_id=user_id,
                shop_id=shop_ids.pop() if len(shop_ids) == 1 else None,
                status="pending",
                payment_status="pending",
                payment_method=data.payment_method,
                subtotal=summary.subtotal,
                discount=summary.discount,
                shipping=summary.shipping,
                total=summary.total,
                shipping_address_id=address.id,
                notes=data.notes,
            )
            db.add(order)
            db.flush()

            for line in lines:
                product = db.query(Product).filter(Product.id == line.product_id).with_for_update().first()
                available = available_stock(product.stock) if product else 0
                if available < line.quantity:
                    raise StockLimitError(f"Only {available} of {line.name} available")
                product.stock = available - line.quantity
                db.add(OrderItem(
                    order_id=order.id,
                    product_id=line.product_id,
                    shop_id=line.shop_id,
                    quantity=line.quantity,
                    price=line.price,
                    color=line.color,
                    size=line.size,
                ))

            if coupon_id:
                coupon = db.query(Coupon).filter(Coupon.id == coupon_id).first()
                if coupon is not None:
                    coupon.current_uses = (coupon.current_uses or 0) + 1
                db.add(OrderCouponUsage(order_id=order.id, coupon_id=coupon_id, discount_applied=summary.discount))

            db.query(CartItem).filter(CartItem.user_id == user_id).delete(synchronize_session=False)
            db.add(build_notification(
                user_id,
                "Order Placed",
                f"Your order #{short_id(order.id)} has been placed successfully.",
                type="order",
                link=f"/orders/{order.id}",
            ))
            db.commit()

            order = self._order_query(db).filter(Order.id == order.id).first()
            result = order_to_model(order)
            logger.info(f"Created order {order.id} for user {user_id} (total {order.total})")

        except StorefrontError:
            db.rollback()
            raise
        except Exception as e:
            db.rollback()
            logger.error(f"Error creating order for user {user_id}: {e}")
            raise
        finally:
            db.close()

        self.feed.publish("orders", "insert", user_id=user_id, record_id=result.id)
        self.feed.publish("cart_items", "delete", user_id=user_id)
        self.feed.publish("user_notifications", "insert", user_id=user_id)
        for item in result.items:
            self.feed.publish("products", "update", record_id=item.product_id)
        return result

    def get_user_orders(self, user_id: str) -> List[OrderModel]:
        db = self.session_factory()
        try:
            orders = self._order_query(db).filter(Order.user_id == user_id).order_by(desc(Order.created_at)).all()
            return [order_to_model(order) for order in orders]
        except Exception as e:
            logger.error(f"Error fetching orders for user {user_id}: {e}")
            return []
        finally:
            db.close()

    def _can_view(self, db: Session, order: Order, user_id: Optional[str]) -> bool:
        if order.user_id == user_id:
            return True
        return any(is_shop_admin(db, item.shop_id, user_id) for item in order.items)

    def get_order(self, order_id: str, user_id: str) -> Optional[OrderModel]:
        """An order visible to its customer or to an admin of one of its shops"""
        db = self.session_factory()
        try:
            order = self._order_query(db).filter(Order.id == order_id).first()
            if not order or not self._can_view(db, order, user_id):
                return None
            return order_to_model(order)
        except Exception as e:
            logger.error(f"Error fetching order {order_id}: {e}")
            return None
        finally:
            db.close()

    def get_shop_orders(self, shop_id: str, user_id: Optional[str] = None,
                        platform_admin: bool = False) -> List[OrderModel]:
        db = self.session_factory()
        try:
            if not platform_admin:
                ensure_shop_admin(db, shop_id, user_id)
            order_ids = select(OrderItem.order_id).where(OrderItem.shop_id == shop_id)
            orders = self._order_query(db).filter(Order.id.in_(order_ids)).order_by(desc(Order.created_at)).all()
            return [order_to_model(order) for order in orders]
        except StorefrontError:
            raise
        except Exception as e:
            logger.error(f"Error fetching orders for shop {shop_id}: {e}")
            return []
        finally:
            db.close()

    @staticmethod
    def _restock(db: Session, order: Order) -> None:
        for item in order.items:
            product = db.query(Product).filter(Product.id == item.product_id).first()
            if product is not None:
                product.stock = (product.stock or 0) + item.quantity

    def cancel_order(self, user_id: str, order_id: str, reason: Optional[str] = None) -> OrderModel:
        """
        Cancel a pending order on the customer's request

        Raises:
            NotFoundError: No such order for this customer
            InvalidRequestError: The order is past the pending stage
        """
        db = self.session_factory()
        try:
            order = self._order_query(db).filter(Order.id == order_id).first()
            if not order:
                raise NotFoundError(f"Order {order_id} not found")
            if order.user_id != user_id:
                raise PermissionDeniedError("You can only cancel your own orders")
            if order.status != "pending":
                raise InvalidRequestError("Only pending orders can be cancelled")

            order.status = "cancelled"
            order.cancellation_reason = reason
            self._restock(db, order)
            db.add(build_notification(
                user_id,
                "Order Cancelled",
                f"Your order #{short_id(order.id)} has been cancelled.",
                type="order",
                link=f"/orders/{order.id}",
            ))
            db.commit()
            db.refresh(order)
            result = order_to_model(order)
            logger.info(f"Order {order_id} cancelled by user {user_id}")

        except StorefrontError:
            db.rollback()
            raise
        except Exception as e:
            db.rollback()
            logger.error(f"Error cancelling order {order_id}: {e}")
            raise
        finally:
            db.close()

        self.feed.publish("orders", "update", user_id=user_id, record_id=order_id)
        self.feed.publish("user_notifications", "insert", user_id=user_id)
        return result

    def update_order_status(self, order_id: str, status: OrderStatus, tracking_number: Optional[str] = None,
                            user_id: Optional[str] = None, platform_admin: bool = False) -> OrderModel:
        """
        Move an order along its fulfilment path

        Allowed for admins of a shop with items in the order. The customer
        is notified of every change.
        """
        new_status = OrderStatus(status).value
        db = self.session_factory()
        try:
            order = self._order_query(db).filter(Order.id == order_id).first()
            if not order:
                raise NotFoundError(f"Order {order_id} not found")
            if not platform_admin and not any(is_shop_admin(db, item.shop_id, user_id) for item in order.items):
                raise PermissionDeniedError("You do not have permission to manage this order")
            if not can_transition(order.status, new_status):
                raise InvalidRequestError(f"Cannot change order status from {order.status} to {new_status}")

            order.status = new_status
            if tracking_number:
                order.tracking_number = tracking_number
            if new_status == "cancelled":
                self._restock(db, order)

            customer_id = order.user_id
            if customer_id:
                db.add(build_notification(
                    customer_id,
                    f"Order {STATUS_LABELS[new_status]}",
                    f"Your order #{short_id(order.id)} is now {new_status}.",
                    type="order",
                    link=f"/orders/{order.id}",
                ))
            db.commit()
            db.refresh(order)
            result = order_to_model(order)
            logger.info(f"Order {order_id} moved to {new_status}")

        except StorefrontError:
            db.rollback()
            raise
        except Exception as e:
            db.rollback()
            logger.error(f"Error updating order {order_id}: {e}")
            raise
        finally:
            db.close()

        self.feed.publish("orders", "update", user_id=customer_id, record_id=order_id)
        if customer_id:
            self.feed.publish("user_notifications", "insert", user_id=customer_id)
        return result

    def track_order(self, order_id: str, user_id: str) -> OrderTracking:
        order = self.get_order(order_id, user_id)
        if order is None:
            raise NotFoundError(f"Order {order_id} not found")
        return OrderTracking(
            order_id=order.id,
            status=order.status,
            tracking_number=order.tracking_number,
            steps=tracking_steps(order.status.value),
            updated_at=order.updated_at,
        )
