"""
Row to record conversion.

Database rows use snake_case columns and may carry NULLs for optional
fields; records exposed to clients always carry every field with an
empty/zero default.
"""
from typing import Optional

from .database import (
    Product, Shop, Order, OrderItem, Address, Notification, ProductReview,
    Offer, Coupon, PartnerRequest, SearchHistory, Category
)
from .schemas import (
    ProductModel, ShopModel, OrderModel, OrderItemModel, ShippingAddressModel,
    AddressModel, NotificationModel, ReviewModel, OfferModel, CouponModel,
    PartnerRequestModel, SearchHistoryItem, CategoryModel
)
from ..utils.parsing import description_excerpt


def product_to_model(product: Product, model_class=ProductModel, **extra) -> ProductModel:
    data = {
        "id": product.id,
        "name": product.name or "",
        "description": product.description or "",
        "summary": description_excerpt(product.description),
        "price": product.price or 0,
        "sale_price": product.sale_price,
        "images": list(product.images or []),
        "category": product.category_id or "",
        "colors": list(product.colors or []),
        "sizes": list(product.sizes or []),
        "tags": list(product.tags or []),
        "is_new": bool(product.is_new),
        "is_trending": bool(product.is_trending),
        "rating": product.rating or 0,
        "review_count": product.review_count or 0,
        "view_count": product.view_count or 0,
        "stock": product.stock,
        "shop_id": product.shop_id or "",
        "created_at": product.created_at,
        "updated_at": product.updated_at,
    }
    data.update(extra)
    return model_class(**data)


def shop_to_model(shop: Shop) -> ShopModel:
    return ShopModel(
        id=shop.id,
        name=shop.name or "",
        description=shop.description or "",
        logo=shop.logo or "",
        cover_image=shop.cover_image or "",
        address=shop.address or "",
        phone_number=shop.phone_number or "",
        owner_name=shop.owner_name or "",
        owner_email=shop.owner_email or "",
        rating=shop.rating or 0,
        review_count=shop.review_count or 0,
        followers_count=shop.followers_count or 0,
        status=shop.status or "pending",
        is_verified=bool(shop.is_verified),
        created_at=shop.created_at,
    )


def category_to_model(category: Category) -> CategoryModel:
    return CategoryModel(
        id=category.id,
        name=category.name,
        description=category.description,
        image=category.image,
    )


def order_item_to_model(item: OrderItem) -> OrderItemModel:
    product = item.product
    images = (product.images or []) if product is not None else []
    return OrderItemModel(
        id=item.id,
        order_id=item.order_id,
        product_id=item.product_id,
        product_name=(product.name if product is not None else None) or "Product",
        product_image=images[0] if images else "",
        quantity=item.quantity,
        price=item.price,
        color=item.color or None,
        size=item.size or None,
        shop_id=item.shop_id,
    )


def shipping_address_to_model(address: Optional[Address]) -> Optional[ShippingAddressModel]:
    if address is None:
        return None
    return ShippingAddressModel(
        id=address.id,
        name=address.name,
        address_line1=address.address_line1,
        address_line2=address.address_line2,
        city=address.city,
        state=address.state,
        postal_code=address.postal_code,
        country=address.country,
    )


def order_to_model(order: Order, include_items: bool = True) -> OrderModel:
    return OrderModel(
        id=order.id,
        user_id=order.user_id,
        shop_id=order.shop_id,
        status=order.status,
        payment_status=order.payment_status or "pending",
        payment_method=order.payment_method,
        subtotal=order.subtotal or 0,
        discount=order.discount or 0,
        shipping=order.shipping or 0,
        total=order.total,
        tracking_number=order.tracking_number,
        notes=order.notes,
        cancellation_reason=order.cancellation_reason,
        created_at=order.created_at,
        updated_at=order.updated_at,
        items=[order_item_to_model(item) for item in order.items] if include_items else [],
        shipping_address=shipping_address_to_model(order.shipping_address),
    )


def address_to_model(address: Address) -> AddressModel:
    return AddressModel.model_validate(address)


def notification_to_model(notification: Notification) -> NotificationModel:
    return NotificationModel(
        id=notification.id,
        title=notification.title,
        message=notification.message,
        type=notification.type or "system",
        read=bool(notification.read),
        link=notification.link,
        created_at=notification.created_at,
    )


def review_to_model(review: ProductReview) -> ReviewModel:
    return ReviewModel(
        id=review.id,
        rating=review.rating,
        comment=review.comment or "",
        images=list(review.images or []),
        created_at=review.created_at,
        updated_at=review.updated_at,
        product_id=review.product_id,
        shop_id=review.shop_id,
        user_id=review.user_id,
        helpful_count=review.helpful_count or 0,
        review_type=review.review_type or "product",
    )


def offer_to_model(offer: Offer) -> OfferModel:
    return OfferModel(
        id=offer.id,
        title=offer.title,
        description=offer.description,
        code=offer.code,
        discount=offer.discount,
        type=offer.type,
        shop_id=offer.shop_id,
        shop_name=offer.shop.name if offer.shop is not None else None,
        banner_image=offer.banner_image,
        start_date=offer.start_date,
        expiry=offer.expiry,
        is_active=bool(offer.is_active),
        created_at=offer.created_at,
    )


def coupon_to_model(coupon: Coupon) -> CouponModel:
    return CouponModel.model_validate(coupon)


def partner_request_to_model(request: PartnerRequest) -> PartnerRequestModel:
    return PartnerRequestModel.model_validate(request)


def search_history_to_model(entry: SearchHistory) -> SearchHistoryItem:
    return SearchHistoryItem(id=entry.id, query=entry.query, searched_at=entry.searched_at)
