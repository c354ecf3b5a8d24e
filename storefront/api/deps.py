"""
Request-scoped dependencies: identity headers and service construction
"""
import hmac
import logging
from typing import Optional, Any

from fastapi import Depends, Header, HTTPException, status

from ..config import settings
from ..models.database import SessionLocal
from ..services.realtime import ChangeFeed, change_feed
from ..services import (
    CatalogService, SearchService, CartService, CouponService, WishlistService, OrderService,
    PaymentService, RazorpayClient, NotificationService, ShopService, PartnerRequestService,
    ReviewService, AddressService, RecommendationService, AnalyticsService, ProfileService, GuestStore
)

logger = logging.getLogger(__name__)


def success(data: Any = None, message: Optional[str] = None, total: Optional[int] = None) -> dict:
    """Standard response envelope"""
    body = {"success": True, "data": data}
    if message:
        body["message"] = message
    if total is not None:
        body["total"] = total
    return body


def get_session_factory():
    return SessionLocal


# Identity

def get_optional_user_id(x_user_id: Optional[str] = Header(None),
                         session_factory=Depends(get_session_factory)) -> Optional[str]:
    user_id = x_user_id.strip() if x_user_id and x_user_id.strip() else None
    if user_id:
        try:
            ProfileService(session_factory).ensure_profile(user_id)
        except Exception as e:
            logger.warning(f"Could not record profile for user {user_id}: {e}")
    return user_id


def get_current_user_id(user_id: Optional[str] = Depends(get_optional_user_id)) -> str:
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required"
        )
    return user_id


def get_guest_id(x_guest_id: Optional[str] = Header(None)) -> Optional[str]:
    return x_guest_id.strip() if x_guest_id and x_guest_id.strip() else None


def is_platform_admin(x_admin_key: Optional[str] = Header(None)) -> bool:
    if not settings.API_KEY or not x_admin_key:
        return False
    return hmac.compare_digest(x_admin_key, settings.API_KEY)


def require_platform_admin(admin: bool = Depends(is_platform_admin)) -> bool:
    if not admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="A valid management key is required"
        )
    return True


# Services

def get_change_feed() -> ChangeFeed:
    return change_feed


def get_payment_client() -> RazorpayClient:
    return RazorpayClient()


def get_guest_store(session_factory=Depends(get_session_factory)) -> GuestStore:
    return GuestStore(session_factory)


def get_catalog_service(session_factory=Depends(get_session_factory)) -> CatalogService:
    return CatalogService(session_factory)


def get_search_service(session_factory=Depends(get_session_factory),
                       feed: ChangeFeed = Depends(get_change_feed)) -> SearchService:
    return SearchService(session_factory, feed=feed)


def get_coupon_service(session_factory=Depends(get_session_factory),
                       feed: ChangeFeed = Depends(get_change_feed)) -> CouponService:
    return CouponService(session_factory, feed)


def get_cart_service(session_factory=Depends(get_session_factory),
                     feed: ChangeFeed = Depends(get_change_feed)) -> CartService:
    return CartService(session_factory, feed=feed)


def get_wishlist_service(session_factory=Depends(get_session_factory),
                         feed: ChangeFeed = Depends(get_change_feed)) -> WishlistService:
    return WishlistService(session_factory, feed=feed)


def get_order_service(session_factory=Depends(get_session_factory),
                      feed: ChangeFeed = Depends(get_change_feed)) -> OrderService:
    return OrderService(session_factory, feed=feed)


def get_payment_service(session_factory=Depends(get_session_factory),
                        client: RazorpayClient = Depends(get_payment_client),
                        feed: ChangeFeed = Depends(get_change_feed)) -> PaymentService:
    return PaymentService(session_factory, client, feed)


def get_notification_service(session_factory=Depends(get_session_factory),
                             feed: ChangeFeed = Depends(get_change_feed)) -> NotificationService:
    return NotificationService(session_factory, feed=feed)


def get_shop_service(session_factory=Depends(get_session_factory),
                     feed: ChangeFeed = Depends(get_change_feed)) -> ShopService:
    return ShopService(session_factory, feed)


def get_partner_service(session_factory=Depends(get_session_factory),
                        feed: ChangeFeed = Depends(get_change_feed)) -> PartnerRequestService:
    return PartnerRequestService(session_factory, feed=feed)


def get_review_service(session_factory=Depends(get_session_factory),
                       feed: ChangeFeed = Depends(get_change_feed)) -> ReviewService:
    return ReviewService(session_factory, feed)


def get_address_service(session_factory=Depends(get_session_factory),
                        feed: ChangeFeed = Depends(get_change_feed)) -> AddressService:
    return AddressService(session_factory, feed)


def get_recommendation_service(session_factory=Depends(get_session_factory)) -> RecommendationService:
    return RecommendationService(session_factory)


def get_analytics_service(session_factory=Depends(get_session_factory)) -> AnalyticsService:
    return AnalyticsService(session_factory)


def get_profile_service(session_factory=Depends(get_session_factory)) -> ProfileService:
    return ProfileService(session_factory)
