import logging

from fastapi import APIRouter, HTTPException, status, Depends

from ..errors import StorefrontError
from ..models.schemas import WishlistAddRequest
from ..services import WishlistService
from .deps import success, get_wishlist_service, get_current_user_id

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/wishlist", tags=["Wishlist"])


@router.get("")
def get_wishlist(user_id: str = Depends(get_current_user_id),
                       wishlist: WishlistService = Depends(get_wishlist_service)):
    entries = wishlist.get_wishlist(user_id)
    return success(entries, total=len(entries))


@router.post("")
def add_to_wishlist(
        request: WishlistAddRequest,
        user_id: str = Depends(get_current_user_id),
        wishlist: WishlistService = Depends(get_wishlist_service)
):
    """Save a product; saving it again is a no-op"""
    try:
        created = wishlist.add(user_id, request.product_id)
        message = "Added to wishlist" if created else "Already in wishlist"
        return success({"productId": request.product_id, "created": created}, message=message)
    except (HTTPException, StorefrontError):
        raise
    except Exception as e:
        logger.error(f"Error adding to wishlist: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to add to wishlist"
        )


@router.get("/{product_id}")
def wishlist_contains(product_id: str, user_id: str = Depends(get_current_user_id),
                            wishlist: WishlistService = Depends(get_wishlist_service)):
    return success({"productId": product_id, "inWishlist": wishlist.contains(user_id, product_id)})


@router.delete("/{product_id}")
def remove_from_wishlist(
        product_id: str,
        user_id: str = Depends(get_current_user_id),
        wishlist: WishlistService = Depends(get_wishlist_service)
):
    try:
        if not wishlist.remove(user_id, product_id):
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Product {product_id} is not in the wishlist"
            )
        return success(message="Removed from wishlist")
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error removing from wishlist: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to remove from wishlist"
        )


@router.post("/{product_id}/move-to-cart")
def move_to_cart(
        product_id: str,
        user_id: str = Depends(get_current_user_id),
        wishlist: WishlistService = Depends(get_wishlist_service)
):
    try:
        lines = wishlist.move_to_cart(user_id, product_id)
        return success(lines, message="Moved to cart", total=len(lines))
    except (HTTPException, StorefrontError):
        raise
    except Exception as e:
        logger.error(f"Error moving {product_id} to cart: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to move product to cart"
        )
