"""
Data models and schemas for the storefront
"""

from .schemas import (
    ProductModel,
    DealProduct,
    TrendingProduct,
    ShopModel,
    CartLine,
    OrderSummary,
    OrderModel,
    OrderItemModel,
    NotificationModel,
    SearchFilters,
    SearchHistoryItem,
    SearchResult,
    ReviewModel,
    AddressModel,
    OfferModel,
    CouponModel,
    PartnerRequestModel,
    ChangeEvent,
    ErrorResponse
)

__all__ = [
    "ProductModel",
    "DealProduct",
    "TrendingProduct",
    "ShopModel",
    "CartLine",
    "OrderSummary",
    "OrderModel",
    "OrderItemModel",
    "NotificationModel",
    "SearchFilters",
    "SearchHistoryItem",
    "SearchResult",
    "ReviewModel",
    "AddressModel",
    "OfferModel",
    "CouponModel",
    "PartnerRequestModel",
    "ChangeEvent",
    "ErrorResponse"
]
