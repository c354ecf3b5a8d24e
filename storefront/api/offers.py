import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, status, Depends, Query

from ..errors import StorefrontError
from ..models.schemas import OfferCreate, OfferUpdate, CouponCreate
from ..services import CouponService
from .deps import (
    success, get_coupon_service, get_optional_user_id, is_platform_admin, require_platform_admin
)

logger = logging.getLogger(__name__)
router = APIRouter(tags=["Offers"])


def _failed(action: str, e: Exception) -> HTTPException:
    logger.error(f"Error trying to {action}: {e}")
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"Failed to {action}"
    )


# Offers

@router.get("/offers")
def list_offers(active_only: bool = True, coupons: CouponService = Depends(get_coupon_service)):
    """Offers ordered by expiry; by default only those running now"""
    offers = coupons.list_offers(active_only)
    return success(offers, total=len(offers))


@router.get("/shops/{shop_id}/offers")
def shop_offers(shop_id: str, coupons: CouponService = Depends(get_coupon_service)):
    offers = coupons.get_shop_offers(shop_id)
    return success(offers, total=len(offers))


@router.get("/offers/{offer_id}")
def get_offer(offer_id: str, coupons: CouponService = Depends(get_coupon_service)):
    offer = coupons.get_offer(offer_id)
    if not offer:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Offer {offer_id} not found"
        )
    return success(offer)


@router.post("/offers", status_code=status.HTTP_201_CREATED)
def create_offer(
        request: OfferCreate,
        user_id: Optional[str] = Depends(get_optional_user_id),
        admin: bool = Depends(is_platform_admin),
        coupons: CouponService = Depends(get_coupon_service)
):
    """
    Create an offer

    Shop admins create offers for their shop; platform-wide offers need
    the management key.
    """
    try:
        return success(coupons.create_offer(request, user_id, platform_admin=admin), message="Offer created")
    except (HTTPException, StorefrontError):
        raise
    except Exception as e:
        raise _failed("create offer", e)


@router.patch("/offers/{offer_id}")
def update_offer(
        offer_id: str,
        request: OfferUpdate,
        user_id: Optional[str] = Depends(get_optional_user_id),
        admin: bool = Depends(is_platform_admin),
        coupons: CouponService = Depends(get_coupon_service)
):
    try:
        offer = coupons.update_offer(offer_id, request, user_id, platform_admin=admin)
        return success(offer, message="Offer updated")
    except (HTTPException, StorefrontError):
        raise
    except Exception as e:
        raise _failed("update offer", e)


@router.delete("/offers/{offer_id}")
def delete_offer(
        offer_id: str,
        user_id: Optional[str] = Depends(get_optional_user_id),
        admin: bool = Depends(is_platform_admin),
        coupons: CouponService = Depends(get_coupon_service)
):
    try:
        coupons.delete_offer(offer_id, user_id, platform_admin=admin)
        return success(message="Offer deleted")
    except (HTTPException, StorefrontError):
        raise
    except Exception as e:
        raise _failed("delete offer", e)


# Coupons

@router.get("/coupons")
def list_coupons(_: bool = Depends(require_platform_admin),
                       coupons: CouponService = Depends(get_coupon_service)):
    results = coupons.list_coupons()
    return success(results, total=len(results))


@router.post("/coupons", status_code=status.HTTP_201_CREATED)
def create_coupon(
        request: CouponCreate,
        _: bool = Depends(require_platform_admin),
        coupons: CouponService = Depends(get_coupon_service)
):
    try:
        return success(coupons.create_coupon(request), message="Coupon created")
    except (HTTPException, StorefrontError):
        raise
    except Exception as e:
        raise _failed("create coupon", e)


@router.get("/coupons/{code}/validate")
def validate_coupon(
        code: str,
        subtotal: float = Query(..., ge=0),
        coupons: CouponService = Depends(get_coupon_service)
):
    """
    Work out the discount a code gives on a subtotal

    **Error Codes:**
    - 400: Unknown, expired, used-up or below-minimum coupon
    """
    try:
        discount, _ = coupons.resolve_discount(code, subtotal)
        return success({"code": code, "subtotal": subtotal, "discount": discount})
    except (HTTPException, StorefrontError):
        raise
    except Exception as e:
        raise _failed("validate coupon", e)
