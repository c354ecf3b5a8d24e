import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, status, Depends, Query

from ..errors import StorefrontError
from ..models.schemas import (
    ShopCreate, ShopUpdate, ShopStatusUpdate, ShopAdminCreate, ShopStatus, ProductCreate, ProductUpdate
)
from ..services import ShopService
from .deps import success, get_shop_service, get_current_user_id, get_optional_user_id, require_platform_admin

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/shops", tags=["Shops"])


def _failed(action: str, e: Exception) -> HTTPException:
    logger.error(f"Error trying to {action}: {e}")
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"Failed to {action}"
    )


@router.get("")
def list_shops(
        shop_status: Optional[ShopStatus] = Query(None, alias="status"),
        search: Optional[str] = None,
        shops: ShopService = Depends(get_shop_service)
):
    """
    List shops

    **Parameters:**
    - status: pending, active or suspended
    - search: Case-insensitive match on the shop name
    """
    results = shops.list_shops(shop_status.value if shop_status else None, search)
    return success(results, total=len(results))


@router.get("/mine")
def my_shops(user_id: str = Depends(get_current_user_id), shops: ShopService = Depends(get_shop_service)):
    """Shops the signed-in user administers"""
    results = shops.get_user_shops(user_id)
    return success(results, total=len(results))


@router.post("", status_code=status.HTTP_201_CREATED)
def create_shop(
        request: ShopCreate,
        user_id: str = Depends(get_current_user_id),
        shops: ShopService = Depends(get_shop_service)
):
    """Open a shop; it stays pending until approved and the creator becomes its owner"""
    try:
        shop = shops.create_shop(user_id, request)
        return success(shop, message="Shop created and awaiting approval")
    except (HTTPException, StorefrontError):
        raise
    except Exception as e:
        raise _failed("create shop", e)


@router.get("/{shop_id}")
def get_shop(shop_id: str, shops: ShopService = Depends(get_shop_service)):
    shop = shops.get_shop(shop_id)
    if not shop:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Shop {shop_id} not found"
        )
    return success(shop)


@router.patch("/{shop_id}")
def update_shop(
        shop_id: str,
        request: ShopUpdate,
        user_id: str = Depends(get_current_user_id),
        shops: ShopService = Depends(get_shop_service)
):
    try:
        return success(shops.update_shop(shop_id, user_id, request), message="Shop updated")
    except (HTTPException, StorefrontError):
        raise
    except Exception as e:
        raise _failed("update shop", e)


@router.delete("/{shop_id}")
def delete_shop(
        shop_id: str,
        user_id: str = Depends(get_current_user_id),
        shops: ShopService = Depends(get_shop_service)
):
    try:
        shops.delete_shop(shop_id, user_id)
        return success(message="Shop deleted")
    except (HTTPException, StorefrontError):
        raise
    except Exception as e:
        raise _failed("delete shop", e)


@router.patch("/{shop_id}/status")
def update_shop_status(
        shop_id: str,
        request: ShopStatusUpdate,
        _: bool = Depends(require_platform_admin),
        shops: ShopService = Depends(get_shop_service)
):
    """Approve, suspend or verify a shop (management key required)"""
    try:
        shop = shops.update_shop_status(shop_id, request)
        return success(shop, message=f"Shop status set to {shop.status.value}")
    except (HTTPException, StorefrontError):
        raise
    except Exception as e:
        raise _failed("update shop status", e)


@router.post("/{shop_id}/admins", status_code=status.HTTP_201_CREATED)
def add_shop_admin(
        shop_id: str,
        request: ShopAdminCreate,
        user_id: str = Depends(get_current_user_id),
        shops: ShopService = Depends(get_shop_service)
):
    try:
        shops.add_admin(shop_id, user_id, request)
        return success({"shopId": shop_id, "userId": request.user_id, "role": request.role},
                       message="Shop admin added")
    except (HTTPException, StorefrontError):
        raise
    except Exception as e:
        raise _failed("add shop admin", e)


# Shop catalog

@router.get("/{shop_id}/products")
def shop_products(shop_id: str, shops: ShopService = Depends(get_shop_service)):
    products = shops.get_shop_products(shop_id)
    return success(products, total=len(products))


@router.post("/{shop_id}/products", status_code=status.HTTP_201_CREATED)
def create_product(
        shop_id: str,
        request: ProductCreate,
        user_id: str = Depends(get_current_user_id),
        shops: ShopService = Depends(get_shop_service)
):
    try:
        return success(shops.create_product(shop_id, user_id, request), message="Product created")
    except (HTTPException, StorefrontError):
        raise
    except Exception as e:
        raise _failed("create product", e)


@router.patch("/{shop_id}/products/{product_id}")
def update_product(
        shop_id: str,
        product_id: str,
        request: ProductUpdate,
        user_id: str = Depends(get_current_user_id),
        shops: ShopService = Depends(get_shop_service)
):
    try:
        return success(shops.update_product(shop_id, product_id, user_id, request), message="Product updated")
    except (HTTPException, StorefrontError):
        raise
    except Exception as e:
        raise _failed("update product", e)


@router.delete("/{shop_id}/products/{product_id}")
def delete_product(
        shop_id: str,
        product_id: str,
        user_id: str = Depends(get_current_user_id),
        shops: ShopService = Depends(get_shop_service)
):
    try:
        shops.delete_product(shop_id, product_id, user_id)
        return success(message="Product deleted")
    except (HTTPException, StorefrontError):
        raise
    except Exception as e:
        raise _failed("delete product", e)


# Followers

@router.get("/{shop_id}/follow")
def follow_status(
        shop_id: str,
        user_id: Optional[str] = Depends(get_optional_user_id),
        shops: ShopService = Depends(get_shop_service)
):
    following = shops.is_following(user_id, shop_id) if user_id else False
    return success({"shopId": shop_id, "isFollowing": following,
                    "followersCount": shops.get_followers_count(shop_id)})


@router.post("/{shop_id}/follow")
def follow_shop(
        shop_id: str,
        user_id: str = Depends(get_current_user_id),
        shops: ShopService = Depends(get_shop_service)
):
    """Follow a shop; following twice is a no-op"""
    try:
        created = shops.follow_shop(user_id, shop_id)
        return success({"shopId": shop_id, "isFollowing": True, "created": created},
                       message="Now following shop" if created else "Already following shop")
    except (HTTPException, StorefrontError):
        raise
    except Exception as e:
        raise _failed("follow shop", e)


@router.delete("/{shop_id}/follow")
def unfollow_shop(
        shop_id: str,
        user_id: str = Depends(get_current_user_id),
        shops: ShopService = Depends(get_shop_service)
):
    try:
        removed = shops.unfollow_shop(user_id, shop_id)
        return success({"shopId": shop_id, "isFollowing": False, "removed": removed}, message="Unfollowed shop")
    except (HTTPException, StorefrontError):
        raise
    except Exception as e:
        raise _failed("unfollow shop", e)


@router.get("/{shop_id}/followers")
def shop_followers(shop_id: str, shops: ShopService = Depends(get_shop_service)):
    followers = shops.get_followers(shop_id)
    return success(followers, total=len(followers))


@router.get("/{shop_id}/followers/count")
def followers_count(shop_id: str, shops: ShopService = Depends(get_shop_service)):
    return success({"shopId": shop_id, "followersCount": shops.get_followers_count(shop_id)})
