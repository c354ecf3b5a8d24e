import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, status, Depends, Query

from ..services import AnalyticsService
from .deps import success, get_analytics_service, get_optional_user_id, is_platform_admin, require_platform_admin

logger = logging.getLogger(__name__)
router = APIRouter(tags=["Analytics"])


def _require_identity(user_id: Optional[str], admin: bool) -> None:
    if not user_id and not admin:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required"
        )


@router.get("/shops/{shop_id}/analytics/sales")
def shop_sales(
        shop_id: str,
        days: int = Query(30, ge=1, le=365),
        user_id: Optional[str] = Depends(get_optional_user_id),
        admin: bool = Depends(is_platform_admin),
        analytics: AnalyticsService = Depends(get_analytics_service)
):
    """Daily sales for the last `days` days (shop admins only)"""
    _require_identity(user_id, admin)
    points = analytics.get_shop_sales(shop_id, user_id, platform_admin=admin, days=days)
    return success(points, total=len(points))


@router.get("/shops/{shop_id}/analytics/stats")
def shop_stats(
        shop_id: str,
        user_id: Optional[str] = Depends(get_optional_user_id),
        admin: bool = Depends(is_platform_admin),
        analytics: AnalyticsService = Depends(get_analytics_service)
):
    _require_identity(user_id, admin)
    return success(analytics.get_shop_stats(shop_id, user_id, platform_admin=admin))


@router.get("/analytics/dashboard")
def dashboard(
        _: bool = Depends(require_platform_admin),
        analytics: AnalyticsService = Depends(get_analytics_service)
):
    """Platform revenue, monthly sales and the best selling shops"""
    return success(analytics.get_dashboard())
