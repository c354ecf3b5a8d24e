"""Tests for checkout, cancellation, fulfilment and tracking."""

import pytest

from storefront.config import settings
from storefront.errors import InvalidRequestError, NotFoundError, PermissionDeniedError, StockLimitError
from storefront.models.database import Product, Notification
from storefront.models.schemas import CheckoutRequest
from storefront.services import CartService, OrderService
from storefront.services.order_service import can_transition, tracking_steps


@pytest.fixture
def orders(seeded, feed):
    return OrderService(seeded, feed=feed)


@pytest.fixture
def carts(seeded, feed):
    return CartService(seeded, feed=feed)


def checkout(orders, coupon_code=None, address_id="addr-1"):
    return orders.create_order("user-1", CheckoutRequest(
        shipping_address_id=address_id, payment_method="razorpay", coupon_code=coupon_code
    ))


def stock_of(session_factory, product_id):
    db = session_factory()
    try:
        return db.get(Product, product_id).stock
    finally:
        db.close()


class TestCheckout:
    """Test turning a cart into an order."""

    def test_multi_shop_order(self, orders, carts, seeded, feed):
        carts.add_item("p-tee", 2, user_id="user-1")
        carts.add_item("p-phones", 1, user_id="user-1")
        order = checkout(orders)

        assert order.status.value == "pending"
        assert order.shop_id is None
        assert (order.subtotal, order.shipping, order.total) == (190.0, 0, 190.0)
        assert {item.product_id: item.quantity for item in order.items} == {"p-tee": 2, "p-phones": 1}
        assert order.shipping_address.city == "Bengaluru"
        assert stock_of(seeded, "p-tee") == 3
        assert stock_of(seeded, "p-phones") == 1
        assert carts.load_cart(user_id="user-1") == []
        assert {"orders", "cart_items", "user_notifications", "products"} <= set(feed.tables())

    def test_single_shop_order_with_promo(self, orders, carts):
        carts.add_item("p-tee", 2, user_id="user-1")
        order = checkout(orders, coupon_code="discount10")
        assert order.shop_id == "shop-a"
        assert (order.subtotal, order.discount, order.shipping, order.total) == (40.0, 4.0, 10.0, 46.0)

    def test_customer_is_notified(self, orders, carts, seeded):
        carts.add_item("p-tee", user_id="user-1")
        checkout(orders)
        db = seeded()
        titles = [n.title for n in db.query(Notification).filter(Notification.user_id == "user-1")]
        db.close()
        assert titles == ["Order Placed"]

    def test_empty_cart(self, orders):
        with pytest.raises(InvalidRequestError, match="empty"):
            checkout(orders)

    def test_foreign_address(self, orders, carts):
        carts.add_item("p-tee", user_id="user-1")
        with pytest.raises(NotFoundError):
            checkout(orders, address_id="addr-missing")
        assert len(carts.load_cart(user_id="user-1")) == 1

    def test_stock_shrank_since_adding(self, orders, carts, seeded):
        carts.add_item("p-tee", 5, user_id="user-1")
        db = seeded()
        db.get(Product, "p-tee").stock = 2
        db.commit()
        db.close()
        with pytest.raises(StockLimitError, match="Cotton Tee"):
            checkout(orders)
        assert stock_of(seeded, "p-tee") == 2

    def test_untracked_stock_starts_tracking(self, orders, carts, seeded):
        db = seeded()
        db.get(Product, "p-polo").stock = None
        db.commit()
        db.close()
        carts.add_item("p-polo", 4, user_id="user-1")
        checkout(orders)
        assert stock_of(seeded, "p-polo") == settings.DEFAULT_STOCK - 4


class TestCancel:
    """Test customer cancellation."""

    def test_cancel_restocks(self, orders, carts, seeded):
        carts.add_item("p-tee", 2, user_id="user-1")
        order = checkout(orders)
        cancelled = orders.cancel_order("user-1", order.id, "Changed my mind")
        assert cancelled.status.value == "cancelled"
        assert cancelled.cancellation_reason == "Changed my mind"
        assert stock_of(seeded, "p-tee") == 5

    def test_only_pending_orders(self, orders, carts):
        carts.add_item("p-tee", user_id="user-1")
        order = checkout(orders)
        orders.cancel_order("user-1", order.id)
        with pytest.raises(InvalidRequestError):
            orders.cancel_order("user-1", order.id)

    def test_only_own_orders(self, orders, carts):
        carts.add_item("p-tee", user_id="user-1")
        order = checkout(orders)
        with pytest.raises(PermissionDeniedError):
            orders.cancel_order("user-2", order.id)
        with pytest.raises(NotFoundError):
            orders.cancel_order("user-1", "missing")


class TestFulfilment:
    """Test shop-side status changes and visibility."""

    @pytest.fixture
    def order(self, orders, carts):
        carts.add_item("p-tee", 1, user_id="user-1")
        return checkout(orders)

    def test_transitions(self):
        assert can_transition("pending", "processing")
        assert can_transition("delivered", "returned")
        assert not can_transition("pending", "delivered")
        assert not can_transition("cancelled", "pending")

    def test_shop_admin_moves_order(self, orders, order):
        orders.update_order_status(order.id, "processing", user_id="owner-a")
        shipped = orders.update_order_status(order.id, "shipped", tracking_number="TRK1", user_id="owner-a")
        assert shipped.status.value == "shipped"
        assert shipped.tracking_number == "TRK1"

    def test_invalid_transition(self, orders, order):
        with pytest.raises(InvalidRequestError, match="from pending to delivered"):
            orders.update_order_status(order.id, "delivered", user_id="owner-a")

    def test_other_shop_cannot_manage(self, orders, order):
        with pytest.raises(PermissionDeniedError):
            orders.update_order_status(order.id, "processing", user_id="owner-b")

    def test_platform_admin_cancel_restocks(self, orders, order, seeded):
        orders.update_order_status(order.id, "cancelled", platform_admin=True)
        assert stock_of(seeded, "p-tee") == 5

    def test_visibility(self, orders, order):
        assert orders.get_order(order.id, "user-1").id == order.id
        assert orders.get_order(order.id, "owner-a").id == order.id
        assert orders.get_order(order.id, "owner-b") is None
        assert [o.id for o in orders.get_user_orders("user-1")] == [order.id]

    def test_shop_orders(self, orders, order):
        assert [o.id for o in orders.get_shop_orders("shop-a", "owner-a")] == [order.id]
        assert orders.get_shop_orders("shop-b", platform_admin=True) == []
        with pytest.raises(PermissionDeniedError):
            orders.get_shop_orders("shop-a", "owner-b")


class TestTracking:
    """Test the tracking timeline."""

    def test_steps_for_shipped(self):
        steps = tracking_steps("shipped")
        assert [s.completed for s in steps] == [True, True, True, False]
        assert steps[0].label == "Order Placed"

    def test_steps_for_cancelled_and_returned(self):
        assert [s.status.value for s in tracking_steps("cancelled")] == ["pending", "cancelled"]
        returned = tracking_steps("returned")
        assert len(returned) == 5
        assert all(s.completed for s in returned)

    def test_track_order(self, orders, carts):
        carts.add_item("p-tee", user_id="user-1")
        order = checkout(orders)
        orders.update_order_status(order.id, "processing", user_id="owner-a")
        tracking = orders.track_order(order.id, "user-1")
        assert tracking.status.value == "processing"
        assert [s.completed for s in tracking.steps] == [True, True, False, False]
        with pytest.raises(NotFoundError):
            orders.track_order(order.id, "user-2")
