import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, status, Depends

from ..errors import StorefrontError
from ..models.schemas import ReviewCreate
from ..services import ReviewService
from .deps import success, get_review_service, get_current_user_id, get_optional_user_id, is_platform_admin

logger = logging.getLogger(__name__)
router = APIRouter(tags=["Reviews"])


@router.get("/products/{product_id}/reviews")
def product_reviews(product_id: str, reviews: ReviewService = Depends(get_review_service)):
    results = reviews.get_product_reviews(product_id)
    return success(results, total=len(results))


@router.get("/shops/{shop_id}/reviews")
def shop_reviews(shop_id: str, reviews: ReviewService = Depends(get_review_service)):
    results = reviews.get_shop_reviews(shop_id)
    return success(results, total=len(results))


@router.post("/reviews", status_code=status.HTTP_201_CREATED)
def create_review(
        request: ReviewCreate,
        user_id: str = Depends(get_current_user_id),
        reviews: ReviewService = Depends(get_review_service)
):
    """
    Review a product or a shop

    The target's average rating and review count are recalculated.
    """
    try:
        return success(reviews.create_review(user_id, request), message="Review submitted")
    except (HTTPException, StorefrontError):
        raise
    except Exception as e:
        logger.error(f"Error creating review: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to submit review"
        )


@router.post("/reviews/{review_id}/helpful")
def mark_review_helpful(review_id: str, reviews: ReviewService = Depends(get_review_service)):
    try:
        return success(reviews.mark_helpful(review_id))
    except (HTTPException, StorefrontError):
        raise
    except Exception as e:
        logger.error(f"Error marking review {review_id} helpful: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update review"
        )


@router.delete("/reviews/{review_id}")
def delete_review(
        review_id: str,
        user_id: Optional[str] = Depends(get_optional_user_id),
        admin: bool = Depends(is_platform_admin),
        reviews: ReviewService = Depends(get_review_service)
):
    if not user_id and not admin:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required"
        )
    try:
        reviews.delete_review(review_id, user_id, platform_admin=admin)
        return success(message="Review deleted")
    except (HTTPException, StorefrontError):
        raise
    except Exception as e:
        logger.error(f"Error deleting review {review_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to delete review"
        )
