import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, status, Depends, Query

from ..errors import StorefrontError
from ..models.schemas import ProductQuery, ProductSort
from ..services import CatalogService, RecommendationService
from .deps import (
    success, get_catalog_service, get_recommendation_service, get_current_user_id, get_optional_user_id
)

logger = logging.getLogger(__name__)
router = APIRouter(tags=["Products"])


@router.get("/products")
def list_products(
        limit: int = Query(12, ge=1, le=200),
        category_id: Optional[str] = None,
        shop_id: Optional[str] = None,
        is_new: Optional[bool] = None,
        is_trending: Optional[bool] = None,
        with_discount: Optional[bool] = None,
        sort_by: ProductSort = "newest",
        catalog: CatalogService = Depends(get_catalog_service)
):
    """
    List products with optional filters

    **Parameters:**
    - limit: Maximum number of products (default: 12)
    - category_id / shop_id: Restrict to one category or shop
    - is_new / is_trending / with_discount: Flag filters
    - sort_by: newest, price-asc, price-desc, rating or popularity
    """
    try:
        query = ProductQuery(
            limit=limit, category_id=category_id, shop_id=shop_id, is_new=is_new,
            is_trending=is_trending, with_discount=with_discount, sort_by=sort_by
        )
        products, total = catalog.list_products(query)
        return success(products, total=total)
    except (HTTPException, StorefrontError):
        raise
    except Exception as e:
        logger.error(f"Error listing products: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to list products"
        )


@router.get("/products/new-arrivals")
def new_arrivals(
        limit: Optional[int] = Query(None, ge=1, le=100),
        category_id: Optional[str] = None,
        catalog: CatalogService = Depends(get_catalog_service)
):
    products = catalog.get_new_arrivals(limit, category_id)
    return success(products, total=len(products))


@router.get("/products/trending")
def trending_products(
        timeframe: str = Query("all", pattern="^(today|week|month|all)$"),
        sort_by: str = Query("popularity", pattern="^(popularity|rating|recent)$"),
        catalog: CatalogService = Depends(get_catalog_service)
):
    """Products ranked by trending score within a timeframe"""
    products = catalog.get_trending_products(timeframe, sort_by)
    return success(products, total=len(products))


@router.get("/products/top-rated")
def top_rated(limit: Optional[int] = Query(None, ge=1, le=100),
                    catalog: CatalogService = Depends(get_catalog_service)):
    products = catalog.get_top_rated(limit)
    return success(products, total=len(products))


@router.get("/products/best-selling")
def best_selling(limit: Optional[int] = Query(None, ge=1, le=100),
                       catalog: CatalogService = Depends(get_catalog_service)):
    products = catalog.get_best_selling(limit)
    return success(products, total=len(products))


@router.get("/products/discounted")
def discounted(limit: Optional[int] = Query(None, ge=1, le=100),
                     catalog: CatalogService = Depends(get_catalog_service)):
    products = catalog.get_discounted(limit)
    return success(products, total=len(products))


@router.get("/products/deal-of-the-day")
def deal_of_the_day(catalog: CatalogService = Depends(get_catalog_service)):
    """Today's deal; a default deal is returned when no product is on sale"""
    try:
        return success(catalog.get_deal_of_the_day())
    except Exception as e:
        logger.error(f"Error picking deal of the day: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to pick deal of the day"
        )


@router.get("/products/recommendations")
def recommendations(
        limit: int = Query(10, ge=1, le=50),
        user_id: str = Depends(get_current_user_id),
        recommender: RecommendationService = Depends(get_recommendation_service)
):
    """Personalised products based on the customer's viewing history"""
    products = recommender.get_personalized(user_id, limit)
    return success(products, total=len(products))


@router.get("/products/recently-viewed")
def recently_viewed(
        limit: int = Query(10, ge=1, le=50),
        user_id: str = Depends(get_current_user_id),
        recommender: RecommendationService = Depends(get_recommendation_service)
):
    products = recommender.get_recently_viewed(user_id, limit)
    return success(products, total=len(products))


@router.get("/products/tag/{tag}")
def products_by_tag(tag: str, catalog: CatalogService = Depends(get_catalog_service)):
    products = catalog.get_products_by_tag(tag)
    return success(products, total=len(products))


@router.get("/categories")
def list_categories(catalog: CatalogService = Depends(get_catalog_service)):
    categories = catalog.get_categories()
    return success(categories, total=len(categories))


@router.get("/products/{product_id}")
def get_product(product_id: str, catalog: CatalogService = Depends(get_catalog_service)):
    try:
        product = catalog.get_product(product_id)
        if not product:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Product {product_id} not found"
            )
        return success(product)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error fetching product {product_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to fetch product"
        )


@router.post("/products/{product_id}/view")
def record_view(
        product_id: str,
        user_id: Optional[str] = Depends(get_optional_user_id),
        catalog: CatalogService = Depends(get_catalog_service)
):
    """Count a product view and, for signed-in customers, update viewing history"""
    try:
        catalog.record_product_view(product_id, user_id)
        return success(message="View recorded")
    except (HTTPException, StorefrontError):
        raise
    except Exception as e:
        logger.error(f"Error recording view of product {product_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to record product view"
        )


@router.get("/products/{product_id}/related")
def related_products(product_id: str, limit: int = Query(4, ge=1, le=20),
                           catalog: CatalogService = Depends(get_catalog_service)):
    products = catalog.get_related_products(product_id, limit)
    return success(products, total=len(products))


@router.get("/products/{product_id}/similar")
def similar_products(product_id: str, limit: int = Query(6, ge=1, le=20),
                           recommender: RecommendationService = Depends(get_recommendation_service)):
    products = recommender.get_similar(product_id, limit)
    return success(products, total=len(products))
