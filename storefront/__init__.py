"""
Storefront Backend Application

A multi-tenant e-commerce storefront API including:
- Product browsing, search and filtering
- Cart, wishlist and checkout summary
- Orders, tracking and notifications
- Shop administration, reviews and analytics
"""

__version__ = "1.0.0"
__author__ = "Storefront Developers"
