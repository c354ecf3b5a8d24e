import logging
from typing import List, Optional

from fastapi import APIRouter, HTTPException, status, Depends, Query

from ..config import settings
from ..errors import StorefrontError
from ..models.schemas import SearchFilters, SearchSort
from ..services import SearchService
from .deps import success, get_search_service, get_optional_user_id, get_current_user_id, get_guest_id

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/search", tags=["Search"])


@router.get("")
def search_products(
        q: str = "",
        category: str = "",
        shop: str = "",
        min_price: float = Query(0, ge=0),
        max_price: float = Query(settings.DEFAULT_MAX_PRICE, ge=0),
        rating: float = Query(0, ge=0, le=5),
        colors: List[str] = Query([]),
        sizes: List[str] = Query([]),
        tags: List[str] = Query([]),
        in_stock_only: bool = False,
        on_sale_only: bool = False,
        filters: List[str] = Query([]),
        sort: SearchSort = "relevance",
        page: int = Query(1, ge=1),
        per_page: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=100),
        user_id: Optional[str] = Depends(get_optional_user_id),
        guest_id: Optional[str] = Depends(get_guest_id),
        search_service: SearchService = Depends(get_search_service)
):
    """
    Search products by name with filters, sorting and paging

    **Parameters:**
    - q: Free text matched against product names; empty matches everything
    - min_price / max_price: Price range applied to the effective price
    - filters: Active filter chips, each matched against category, tags, colors or sizes
    - sort: relevance, newest, price_asc, price_desc or rating

    **Returns:**
    - One page of products with category and shop facets

    Non-empty queries are added to the caller's search history.
    """
    try:
        options = SearchFilters(
            category=category, shop=shop, price_range=[min_price, max_price], rating=rating,
            colors=colors, sizes=sizes, tags=tags, in_stock_only=in_stock_only,
            on_sale_only=on_sale_only, active_filters=filters, sort=sort, page=page, per_page=per_page
        )
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid search filters: {e}"
        )

    try:
        result = search_service.search(q, options, user_id=user_id, guest_id=guest_id)
        return success(result, total=result.total)
    except (HTTPException, StorefrontError):
        raise
    except Exception as e:
        logger.error(f"Error searching for '{q}': {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Search failed"
        )


@router.get("/popular")
def popular_searches(limit: int = Query(5, ge=1, le=20),
                           search_service: SearchService = Depends(get_search_service)):
    return success(search_service.get_popular_searches(limit))


@router.get("/history")
def search_history(
        user_id: Optional[str] = Depends(get_optional_user_id),
        guest_id: Optional[str] = Depends(get_guest_id),
        search_service: SearchService = Depends(get_search_service)
):
    """Recent searches of the signed-in customer, or the guest's local history"""
    if user_id:
        history = search_service.get_recent_searches(user_id)
        return success(history, total=len(history))
    if guest_id:
        history = search_service.get_guest_history(guest_id)
        return success(history, total=len(history))
    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="A user or guest session is required"
    )


@router.delete("/history")
def clear_search_history(
        user_id: Optional[str] = Depends(get_optional_user_id),
        guest_id: Optional[str] = Depends(get_guest_id),
        search_service: SearchService = Depends(get_search_service)
):
    try:
        if user_id:
            removed = search_service.clear_search_history(user_id)
            return success({"removed": removed}, message="Search history cleared")
        if guest_id:
            search_service.clear_guest_history(guest_id)
            return success(message="Search history cleared")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="A user or guest session is required"
        )
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error clearing search history: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to clear search history"
        )


@router.delete("/history/{search_id}")
def delete_search(
        search_id: str,
        user_id: str = Depends(get_current_user_id),
        search_service: SearchService = Depends(get_search_service)
):
    try:
        if not search_service.delete_search(user_id, search_id):
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Search {search_id} not found"
            )
        return success(message="Search removed")
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error deleting search {search_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to delete search"
        )
