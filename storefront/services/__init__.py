"""
Business logic services for the storefront
"""

from .catalog_service import CatalogService
from .search_service import SearchService
from .cart_service import CartService
from .coupon_service import CouponService
from .wishlist_service import WishlistService
from .order_service import OrderService
from .payment_service import PaymentService, RazorpayClient
from .notification_service import NotificationService
from .shop_service import ShopService
from .partner_service import PartnerRequestService
from .review_service import ReviewService
from .address_service import AddressService
from .recommendation_service import RecommendationService
from .analytics_service import AnalyticsService
from .profile_service import ProfileService
from .guest_storage import GuestStore
from .realtime import ChangeFeed, change_feed

__all__ = [
    "CatalogService",
    "SearchService",
    "CartService",
    "CouponService",
    "WishlistService",
    "OrderService",
    "PaymentService",
    "RazorpayClient",
    "NotificationService",
    "ShopService",
    "PartnerRequestService",
    "ReviewService",
    "AddressService",
    "RecommendationService",
    "AnalyticsService",
    "ProfileService",
    "GuestStore",
    "ChangeFeed",
    "change_feed"
]
