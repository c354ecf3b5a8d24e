"""Tests for shop sales figures and the platform dashboard."""

from datetime import datetime, date, timedelta

import pytest

from storefront.errors import PermissionDeniedError
from storefront.models.database import Order, OrderItem, ShopFollow
from storefront.services import AnalyticsService
from storefront.services.analytics_service import recent_months

NOW = datetime(2024, 5, 20, 12, 0, 0)


def add_order(db, created_at, items, status="pending"):
    total = sum(price * quantity for _, _, price, quantity in items)
    order = Order(user_id="user-1", status=status, total=total, created_at=created_at)
    db.add(order)
    db.flush()
    for product_id, shop_id, price, quantity in items:
        db.add(OrderItem(order_id=order.id, product_id=product_id, shop_id=shop_id, price=price, quantity=quantity))
    return order


@pytest.fixture
def sales(seeded):
    """
    - May 18: one order with 2 tees (shop-a) and headphones (shop-b)
    - May 19: one order with a polo (shop-a)
    - May 19: a cancelled tee order
    - March: one old headphones order (shop-b)
    """
    db = seeded()
    add_order(db, datetime(2024, 5, 18, 9), [("p-tee", "shop-a", 20, 2), ("p-phones", "shop-b", 150, 1)])
    add_order(db, datetime(2024, 5, 19, 9), [("p-polo", "shop-a", 40, 1)])
    add_order(db, datetime(2024, 5, 19, 10), [("p-tee", "shop-a", 20, 1)], status="cancelled")
    add_order(db, datetime(2024, 3, 2, 9), [("p-phones", "shop-b", 150, 1)])
    db.add(ShopFollow(shop_id="shop-a", user_id="user-1"))
    db.commit()
    db.close()
    return AnalyticsService(seeded)


class TestShopAnalytics:
    """Test figures shown to shop admins."""

    def test_daily_sales(self, sales):
        points = sales.get_shop_sales("shop-a", "owner-a", now=NOW)
        assert [(p.date, p.sales_amount, p.orders_count) for p in points] == [
            (date(2024, 5, 18), 40.0, 1),
            (date(2024, 5, 19), 40.0, 1),
        ]

    def test_window(self, sales):
        assert sales.get_shop_sales("shop-b", platform_admin=True, days=1, now=NOW) == []
        assert len(sales.get_shop_sales("shop-b", platform_admin=True, days=90, now=NOW)) == 2

    def test_stats(self, sales):
        stats = sales.get_shop_stats("shop-a", "owner-a")
        assert (stats.total_sales, stats.total_orders) == (80.0, 2)
        assert stats.average_order_value == 40.0
        assert (stats.product_count, stats.followers_count) == (2, 1)

    def test_admins_only(self, sales):
        with pytest.raises(PermissionDeniedError):
            sales.get_shop_stats("shop-a", "owner-b")
        with pytest.raises(PermissionDeniedError):
            sales.get_shop_sales("shop-b", "owner-a", now=NOW)


class TestDashboard:
    """Test the platform dashboard."""

    def test_recent_months_cross_year(self):
        assert recent_months(datetime(2024, 2, 1), 3) == [(2023, 12), (2024, 1), (2024, 2)]

    def test_dashboard(self, sales):
        dashboard = sales.get_dashboard(now=NOW)
        assert dashboard.total_revenue == 190 + 40 + 150
        assert dashboard.total_orders == 3
        assert dashboard.total_shops == 2

        months = {m.month: (m.total_sales, m.total_orders) for m in dashboard.monthly_sales_data}
        assert list(months) == ["2023-12", "2024-01", "2024-02", "2024-03", "2024-04", "2024-05"]
        assert months["2024-05"] == (230.0, 2)
        assert months["2024-03"] == (150.0, 1)
        assert months["2024-04"] == (0, 0)

        performance = [(p.shop_id, p.sales, p.orders) for p in dashboard.shop_performance]
        assert performance == [("shop-b", 300.0, 2), ("shop-a", 80.0, 2)]

    def test_empty_dashboard(self, session_factory):
        dashboard = AnalyticsService(session_factory).get_dashboard(now=NOW)
        assert dashboard.total_revenue == 0
        assert len(dashboard.monthly_sales_data) == 6
        assert dashboard.shop_performance == []
