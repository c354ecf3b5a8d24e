import logging
from collections import defaultdict
from datetime import datetime, timedelta
from typing import List, Optional, Tuple

from sqlalchemy import func

from ..errors import StorefrontError
from ..models.database import SessionLocal, Order, OrderItem, Product, Shop, ShopFollow, UserProfile
from ..models.schemas import SalesDataPoint, ShopStats, DashboardAnalytics, MonthlySales, ShopPerformance
from ..utils.helpers import round_half_up
from .access import ensure_shop_admin

logger = logging.getLogger(__name__)

SALES_WINDOW_DAYS = 30
DASHBOARD_MONTHS = 6
TOP_SHOPS = 5


def recent_months(now: datetime, count: int = DASHBOARD_MONTHS) -> List[Tuple[int, int]]:
    """(year, month) pairs for the last count months, oldest first, current month included"""
    year, month = now.year, now.month
    months = []
    for _ in range(count):
        months.append((year, month))
        month -= 1
        if month == 0:
            year, month = year - 1, 12
    return list(reversed(months))


class AnalyticsService:
    """Sales figures for shop admins and the platform dashboard"""

    def __init__(self, session_factory=SessionLocal):
        self.session_factory = session_factory

    def get_shop_sales(self, shop_id: str, user_id: Optional[str] = None, platform_admin: bool = False,
                       days: int = SALES_WINDOW_DAYS, now: Optional[datetime] = None) -> List[SalesDataPoint]:
        """
        Daily sales of one shop

        Args:
            shop_id: Shop to report on
            days: Length of the window ending now

        Returns:
            list: One point per day with sales, oldest first
        """
        now = now or datetime.utcnow()
        db = self.session_factory()
        try:
            if not platform_admin:
                ensure_shop_admin(db, shop_id, user_id)
            rows = db.query(Order.id, Order.created_at, OrderItem.price, OrderItem.quantity).join(
                OrderItem, OrderItem.order_id == Order.id
            ).filter(
                OrderItem.shop_id == shop_id,
                Order.status != "cancelled",
                Order.created_at >= now - timedelta(days=days),
            ).all()

            amounts = defaultdict(float)
            orders = defaultdict(set)
            for order_id, created_at, price, quantity in rows:
                day = created_at.date()
                amounts[day] += price * quantity
                orders[day].add(order_id)

            return [
                SalesDataPoint(date=day, sales_amount=round_half_up(amounts[day], 2), orders_count=len(orders[day]))
                for day in sorted(amounts)
            ]
        except StorefrontError:
            raise
        except Exception as e:
            logger.error(f"Error fetching sales for shop {shop_id}: {e}")
            return []
        finally:
            db.close()

    def get_shop_stats(self, shop_id: str, user_id: Optional[str] = None,
                       platform_admin: bool = False) -> ShopStats:
        db = self.session_factory()
        try:
            if not platform_admin:
                ensure_shop_admin(db, shop_id, user_id)
            total_sales, total_orders = db.query(
                func.coalesce(func.sum(OrderItem.price * OrderItem.quantity), 0),
                func.count(func.distinct(OrderItem.order_id)),
            ).join(Order, Order.id == OrderItem.order_id).filter(
                OrderItem.shop_id == shop_id, Order.status != "cancelled"
            ).one()
            product_count = db.query(Product).filter(Product.shop_id == shop_id).count()
            followers = db.query(ShopFollow).filter(ShopFollow.shop_id == shop_id).count()

            total_sales = round_half_up(float(total_sales or 0), 2)
            return ShopStats(
                shop_id=shop_id,
                total_sales=total_sales,
                total_orders=total_orders or 0,
                product_count=product_count,
                followers_count=followers,
                average_order_value=round_half_up(total_sales / total_orders, 2) if total_orders else 0,
            )
        except StorefrontError:
            raise
        except Exception as e:
            logger.error(f"Error fetching stats for shop {shop_id}: {e}")
            return ShopStats(shop_id=shop_id)
        finally:
            db.close()

    def get_dashboard(self, now: Optional[datetime] = None) -> DashboardAnalytics:
        """Platform-wide totals, monthly sales and the best selling shops"""
        now = now or datetime.utcnow()
        db = self.session_factory()
        try:
            orders = db.query(Order.total, Order.created_at).filter(Order.status != "cancelled").all()
            total_revenue = round_half_up(sum(total or 0 for total, _ in orders), 2)

            months = recent_months(now)
            monthly = {key: [0.0, 0] for key in months}
            for total, created_at in orders:
                key = (created_at.year, created_at.month)
                if key in monthly:
                    monthly[key][0] += total or 0
                    monthly[key][1] += 1

            shop_rows = db.query(
                Shop.id, Shop.name,
                func.coalesce(func.sum(OrderItem.price * OrderItem.quantity), 0),
                func.count(func.distinct(OrderItem.order_id)),
            ).join(OrderItem, OrderItem.shop_id == Shop.id).join(
                Order, Order.id == OrderItem.order_id
            ).filter(Order.status != "cancelled").group_by(Shop.id, Shop.name).all()
            performance = sorted(
                (ShopPerformance(shop_id=sid, name=name, sales=round_half_up(float(sales), 2), orders=count)
                 for sid, name, sales, count in shop_rows),
                key=lambda p: p.sales, reverse=True,
            )[:TOP_SHOPS]

            return DashboardAnalytics(
                total_revenue=total_revenue,
                total_orders=len(orders),
                total_shops=db.query(Shop).count(),
                total_users=db.query(UserProfile).count(),
                monthly_sales_data=[
                    MonthlySales(
                        month=f"{year:04d}-{month:02d}",
                        total_sales=round_half_up(monthly[(year, month)][0], 2),
                        total_orders=monthly[(year, month)][1],
                    )
                    for year, month in months
                ],
                shop_performance=performance,
            )
        except Exception as e:
            logger.error(f"Error building dashboard analytics: {e}")
            return DashboardAnalytics()
        finally:
            db.close()
