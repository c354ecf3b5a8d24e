from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.openapi.utils import get_openapi
import logging
from datetime import datetime
from contextlib import asynccontextmanager

from storefront.config import settings, get_environment
from storefront.errors import StorefrontError
from storefront.logging_config import setup_logging
from storefront.models.schemas import ErrorResponse
from storefront.api import router

setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Storefront API starting up...")
    try:
        from storefront.models.database import create_tables
        create_tables()
        logger.info("Database tables initialized successfully")
    except Exception as e:
        logger.error(f"Failed to initialize database: {e}")

    yield
    logger.info("Storefront API shutting down...")

app = FastAPI(
    title=settings.API_TITLE,
    description="""
    ## Multi-tenant storefront API

    Catalog browsing, search, carts for customers and guests, checkout with
    online payment, and shop administration. Signed-in customers are
    identified by the `X-User-Id` header, guests by `X-Guest-Id`; platform
    endpoints require `X-Admin-Key`.
    """,
    version=settings.API_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(router, prefix="/api/v1")


@app.get("/", tags=["Root"])
async def root():
    """Root endpoint with API information"""
    return {
        "message": settings.API_TITLE,
        "version": settings.API_VERSION,
        "documentation": {
            "swagger_ui": "/docs",
            "redoc": "/redoc",
            "openapi_json": "/openapi.json"
        },
        "endpoints": {
            "products": "/api/v1/products",
            "search": "/api/v1/search",
            "cart": "/api/v1/cart",
            "checkout": "/api/v1/checkout",
            "orders": "/api/v1/orders",
            "shops": "/api/v1/shops",
            "offers": "/api/v1/offers",
            "notifications": "/api/v1/notifications",
            "profile": "/api/v1/profile",
            "changes": "/api/v1/ws/changes",
            "health": "/health"
        },
        "status": "active"
    }


@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "timestamp": datetime.now(),
        "version": settings.API_VERSION,
        "service": settings.API_TITLE,
        "environment": get_environment(),
    }


def custom_openapi():
    if app.openapi_schema:
        return app.openapi_schema

    openapi_schema = get_openapi(
        title=settings.API_TITLE,
        version=settings.API_VERSION,
        description=settings.API_DESCRIPTION,
        routes=app.routes,
    )

    # Identity is asserted by the upstream auth proxy through these headers
    openapi_schema.setdefault("components", {})["securitySchemes"] = {
        "UserId": {"type": "apiKey", "in": "header", "name": "X-User-Id"},
        "GuestId": {"type": "apiKey", "in": "header", "name": "X-Guest-Id"},
        "AdminKey": {"type": "apiKey", "in": "header", "name": "X-Admin-Key"},
    }

    app.openapi_schema = openapi_schema
    return app.openapi_schema


app.openapi = custom_openapi


def _error_response(status_code: int, error: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(
            error=error,
            message=message,
            status_code=status_code
        ).model_dump(mode="json")
    )


# Global exception handlers
@app.exception_handler(404)
async def not_found_handler(request, exc):
    detail = getattr(exc, "detail", None)
    if not detail or detail == "Not Found":
        detail = "The requested resource was not found"
    return _error_response(404, "Not Found", detail)


@app.exception_handler(500)
async def internal_server_error_handler(request, exc):
    logger.error(f"Internal server error: {exc}")
    return _error_response(500, "Internal Server Error", "An internal server error occurred")


@app.exception_handler(HTTPException)
async def http_exception_handler(request, exc: HTTPException):
    return _error_response(exc.status_code, "HTTP Error", exc.detail)


@app.exception_handler(StorefrontError)
async def storefront_error_handler(request, exc: StorefrontError):
    if exc.status_code >= 500:
        logger.error(f"{exc.error}: {exc.message}")
    return _error_response(exc.status_code, exc.error, exc.message)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("storefront.main:app", host=settings.HOST, port=settings.PORT, reload=settings.DEBUG)
