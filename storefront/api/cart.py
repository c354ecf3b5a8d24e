import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, status, Depends, Query

from ..errors import StorefrontError
from ..models.schemas import CartAddRequest, CartQuantityUpdate
from ..services import CartService
from ..services import cart_operations as ops
from .deps import success, get_cart_service, get_optional_user_id, get_current_user_id, get_guest_id

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/cart", tags=["Cart"])


def _internal_error(action: str, e: Exception) -> HTTPException:
    logger.error(f"Error trying to {action}: {e}")
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"Failed to {action}"
    )


@router.get("")
def get_cart(
        coupon_code: Optional[str] = None,
        user_id: Optional[str] = Depends(get_optional_user_id),
        guest_id: Optional[str] = Depends(get_guest_id),
        cart_service: CartService = Depends(get_cart_service)
):
    """
    Current cart lines and checkout totals

    **Parameters:**
    - coupon_code: Optional coupon or promo code applied to the summary

    Signed-in customers are identified by X-User-Id, guests by X-Guest-Id.
    """
    try:
        return success(cart_service.get_cart_view(user_id, guest_id, coupon_code))
    except (HTTPException, StorefrontError):
        raise
    except Exception as e:
        raise _internal_error("load cart", e)


@router.get("/summary")
def cart_summary(
        coupon_code: Optional[str] = None,
        user_id: Optional[str] = Depends(get_optional_user_id),
        guest_id: Optional[str] = Depends(get_guest_id),
        cart_service: CartService = Depends(get_cart_service)
):
    try:
        lines = cart_service.load_cart(user_id, guest_id)
        return success(cart_service.summarize(lines, coupon_code))
    except (HTTPException, StorefrontError):
        raise
    except Exception as e:
        raise _internal_error("summarize cart", e)


@router.get("/shipping-estimate")
def shipping_estimate(
        distance: float = Query(5, gt=0),
        user_id: Optional[str] = Depends(get_optional_user_id),
        guest_id: Optional[str] = Depends(get_guest_id),
        cart_service: CartService = Depends(get_cart_service)
):
    """Distance-based delivery estimate with the cart grouped by shop"""
    try:
        lines = cart_service.load_cart(user_id, guest_id)
        groups = ops.group_cart_items_by_shop(lines)
        return success({
            "shippingCost": ops.calculate_shipping_cost(lines, distance),
            "shops": {shop_id: len(items) for shop_id, items in groups.items()},
        })
    except (HTTPException, StorefrontError):
        raise
    except Exception as e:
        raise _internal_error("estimate shipping", e)


@router.get("/validate")
def validate_cart(
        user_id: Optional[str] = Depends(get_optional_user_id),
        guest_id: Optional[str] = Depends(get_guest_id),
        cart_service: CartService = Depends(get_cart_service)
):
    """Check every cart line against current stock"""
    try:
        lines = cart_service.load_cart(user_id, guest_id)
        valid, invalid = ops.validate_cart_items(
            lines, cart_service.get_products(line.product_id for line in lines)
        )
        return success({"valid": valid, "invalidItems": invalid})
    except (HTTPException, StorefrontError):
        raise
    except Exception as e:
        raise _internal_error("validate cart", e)


@router.post("/items", status_code=status.HTTP_201_CREATED)
def add_item(
        request: CartAddRequest,
        user_id: Optional[str] = Depends(get_optional_user_id),
        guest_id: Optional[str] = Depends(get_guest_id),
        cart_service: CartService = Depends(get_cart_service)
):
    try:
        lines = cart_service.add_item(
            request.product_id, request.quantity, request.color, request.size,
            user_id=user_id, guest_id=guest_id
        )
        return success(lines, message="Added to cart", total=len(lines))
    except (HTTPException, StorefrontError):
        raise
    except Exception as e:
        raise _internal_error("add item to cart", e)


@router.patch("/items/{line_id}")
def update_item_quantity(
        line_id: str,
        request: CartQuantityUpdate,
        user_id: Optional[str] = Depends(get_optional_user_id),
        guest_id: Optional[str] = Depends(get_guest_id),
        cart_service: CartService = Depends(get_cart_service)
):
    try:
        lines = cart_service.update_quantity(line_id, request.quantity, user_id=user_id, guest_id=guest_id)
        return success(lines, total=len(lines))
    except (HTTPException, StorefrontError):
        raise
    except Exception as e:
        raise _internal_error("update cart quantity", e)


@router.post("/items/{line_id}/increase")
def increase_item(
        line_id: str,
        user_id: Optional[str] = Depends(get_optional_user_id),
        guest_id: Optional[str] = Depends(get_guest_id),
        cart_service: CartService = Depends(get_cart_service)
):
    try:
        lines = cart_service.increase_quantity(line_id, user_id=user_id, guest_id=guest_id)
        return success(lines, total=len(lines))
    except (HTTPException, StorefrontError):
        raise
    except Exception as e:
        raise _internal_error("increase cart quantity", e)


@router.post("/items/{line_id}/decrease")
def decrease_item(
        line_id: str,
        user_id: Optional[str] = Depends(get_optional_user_id),
        guest_id: Optional[str] = Depends(get_guest_id),
        cart_service: CartService = Depends(get_cart_service)
):
    try:
        lines = cart_service.decrease_quantity(line_id, user_id=user_id, guest_id=guest_id)
        return success(lines, total=len(lines))
    except (HTTPException, StorefrontError):
        raise
    except Exception as e:
        raise _internal_error("decrease cart quantity", e)


@router.delete("/items/{line_id}")
def remove_item(
        line_id: str,
        user_id: Optional[str] = Depends(get_optional_user_id),
        guest_id: Optional[str] = Depends(get_guest_id),
        cart_service: CartService = Depends(get_cart_service)
):
    try:
        lines = cart_service.remove_item(line_id, user_id=user_id, guest_id=guest_id)
        return success(lines, message="Removed from cart", total=len(lines))
    except (HTTPException, StorefrontError):
        raise
    except Exception as e:
        raise _internal_error("remove cart item", e)


@router.delete("")
def clear_cart(
        user_id: Optional[str] = Depends(get_optional_user_id),
        guest_id: Optional[str] = Depends(get_guest_id),
        cart_service: CartService = Depends(get_cart_service)
):
    try:
        cart_service.clear(user_id, guest_id)
        return success([], message="Cart cleared", total=0)
    except (HTTPException, StorefrontError):
        raise
    except Exception as e:
        raise _internal_error("clear cart", e)


@router.post("/merge")
def merge_guest_cart(
        user_id: str = Depends(get_current_user_id),
        guest_id: Optional[str] = Depends(get_guest_id),
        cart_service: CartService = Depends(get_cart_service)
):
    """Fold the guest cart named by X-Guest-Id into the signed-in customer's cart"""
    if not guest_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="X-Guest-Id header is required to merge a guest cart"
        )
    try:
        lines = cart_service.merge_guest_cart(guest_id, user_id)
        return success(lines, message="Guest cart merged", total=len(lines))
    except (HTTPException, StorefrontError):
        raise
    except Exception as e:
        raise _internal_error("merge guest cart", e)
