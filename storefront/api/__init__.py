"""
HTTP and WebSocket routes, mounted under /api/v1
"""
from fastapi import APIRouter

from . import (
    products, search, cart, wishlist, orders, notifications, shops, reviews, addresses,
    offers, partner_requests, analytics, profile, realtime
)

router = APIRouter()

for module in (
        products, search, cart, wishlist, orders, notifications, shops, reviews, addresses,
        offers, partner_requests, analytics, profile, realtime
):
    router.include_router(module.router)

__all__ = ["router"]
