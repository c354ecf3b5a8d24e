import logging
import sys
from typing import Dict, List, Optional

import mysql.connector
from mysql.connector import Error

from storefront.config import settings
from storefront.logging_config import setup_logging
from storefront.models.database import SessionLocal, Base, Category, Shop, ShopAdmin, Product, create_tables
from storefront.utils.helpers import retry_on_failure

logger = logging.getLogger(__name__)

DEMO_OWNER_ID = "demo-owner"

DEMO_CATEGORIES = [
    {"id": "t-shirts", "name": "T-Shirts", "description": "Everyday cotton tees"},
    {"id": "electronics", "name": "Electronics", "description": "Phones, audio and accessories"},
    {"id": "home", "name": "Home", "description": "Decor and kitchen essentials"},
]

DEMO_SHOPS = [
    {
        "id": "demo-shop-apparel",
        "name": "Cotton Street",
        "description": "Soft basics made from organic cotton.",
        "owner_name": "Demo Owner",
        "owner_email": "owner@example.com",
        "status": "active",
        "is_verified": True,
    },
    {
        "id": "demo-shop-gadgets",
        "name": "Gadget Corner",
        "description": "<p>Audio gear and <strong>smart</strong> accessories.</p>",
        "owner_name": "Demo Owner",
        "owner_email": "owner@example.com",
        "status": "active",
        "is_verified": False,
    },
]

DEMO_PRODUCTS = [
    {
        "name": "Premium Cotton T-Shirt",
        "description": "<p>Ultra-soft premium cotton t-shirt with a relaxed fit.</p>",
        "price": 29.99, "sale_price": 19.99, "category_id": "t-shirts",
        "colors": ["White", "Black", "Navy", "Gray"], "sizes": ["S", "M", "L", "XL", "XXL"],
        "tags": ["cotton", "casual", "summer"], "is_new": True, "rating": 4.5, "review_count": 128,
        "stock": 50, "shop_id": "demo-shop-apparel",
    },
    {
        "name": "Striped Polo",
        "description": "Breathable pique polo with contrast stripes.",
        "price": 39.0, "category_id": "t-shirts",
        "colors": ["Blue", "White"], "sizes": ["M", "L", "XL"],
        "tags": ["cotton", "smart-casual"], "rating": 4.1, "review_count": 42,
        "stock": 25, "shop_id": "demo-shop-apparel",
    },
    {
        "name": "Wireless Headphones",
        "description": "<p>Over-ear headphones with <em>active noise cancelling</em>.</p>",
        "price": 199.0, "sale_price": 149.0, "category_id": "electronics",
        "colors": ["Black", "Silver"], "tags": ["audio", "wireless"], "is_trending": True,
        "rating": 4.7, "review_count": 310, "stock": 15, "shop_id": "demo-shop-gadgets",
    },
    {
        "name": "Smartwatch Lite",
        "description": "Fitness tracking, notifications and a seven day battery.",
        "price": 129.0, "category_id": "electronics",
        "colors": ["Black", "Rose"], "tags": ["watch", "fitness"], "is_new": True,
        "rating": 4.2, "review_count": 87, "stock": 30, "shop_id": "demo-shop-gadgets",
    },
    {
        "name": "Bluetooth Speaker",
        "description": "Pocket-sized speaker with deep bass.",
        "price": 59.0, "sale_price": 45.0, "category_id": "electronics",
        "colors": ["Red", "Black"], "tags": ["audio", "portable"],
        "rating": 4.0, "review_count": 64, "stock": 0, "shop_id": "demo-shop-gadgets",
    },
]


def _connect(use_database: bool = True):
    options = dict(
        host=settings.DB_HOST,
        port=settings.DB_PORT,
        user=settings.DB_USER,
        password=settings.DB_PASSWORD,
    )
    if use_database:
        options["database"] = settings.DB_NAME
    return mysql.connector.connect(**options)


def ensure_database() -> bool:
    """Create the storefront schema with a utf8mb4 collation when it is missing"""
    try:
        connection = _connect(use_database=False)
        try:
            cursor = connection.cursor()
            cursor.execute(
                f"CREATE DATABASE IF NOT EXISTS `{settings.DB_NAME}` "
                "CHARACTER SET utf8mb4 COLLATE utf8mb4_unicode_ci"
            )
            cursor.close()
        finally:
            connection.close()
        logger.info(f"Schema '{settings.DB_NAME}' is ready on {settings.DB_HOST}:{settings.DB_PORT}")
        return True

    except Error as e:
        logger.error(f"Could not create schema '{settings.DB_NAME}': {e}")
        return False


@retry_on_failure(retries=settings.MAX_RETRIES, delay=1.0, exceptions=(Error,))
def _ping() -> bool:
    connection = _connect()
    try:
        return connection.is_connected()
    finally:
        connection.close()


def can_connect() -> bool:
    """Whether the storefront schema accepts connections, retrying while MySQL starts up"""
    try:
        return _ping()
    except Error as e:
        logger.error(f"MySQL is unreachable at {settings.DB_HOST}:{settings.DB_PORT}: {e}")
        return False


def seed_demo_catalog(session_factory=SessionLocal) -> int:
    """
    Insert demo categories, shops and products into an empty catalog

    Returns:
        int: Number of products created (0 when products already exist)
    """
    db = session_factory()
    try:
        if db.query(Product.id).first():
            logger.info("Catalog already has products; skipping demo data")
            return 0

        for category in DEMO_CATEGORIES:
            if not db.query(Category.id).filter(Category.id == category["id"]).first():
                db.add(Category(**category))

        for shop in DEMO_SHOPS:
            if not db.query(Shop.id).filter(Shop.id == shop["id"]).first():
                db.add(Shop(**shop))
                db.add(ShopAdmin(shop_id=shop["id"], user_id=DEMO_OWNER_ID, role="owner"))

        for product in DEMO_PRODUCTS:
            db.add(Product(images=[], **product))

        db.commit()
        logger.info(f"Seeded {len(DEMO_PRODUCTS)} demo products")
        return len(DEMO_PRODUCTS)

    except Exception as e:
        db.rollback()
        logger.error(f"Error seeding demo catalog: {e}")
        raise
    finally:
        db.close()



def initialize_database(seed: bool = True) -> bool:
    """
    Prepare a MySQL server for the storefront

    Creates the schema, waits for it to accept connections, creates the
    ORM tables and, unless ``seed`` is false, loads the demo catalog.
    """
    if not ensure_database() or not can_connect():
        return False

    try:
        create_tables()
        if seed:
            seed_demo_catalog()
    except Exception as e:
        logger.error(f"Storefront setup stopped: {e}")
        return False

    logger.info(f"Storefront tables ready in '{settings.DB_NAME}'")
    return True


def table_row_counts() -> Dict[str, Optional[int]]:
    """Row count per storefront table; ``None`` marks a table that is not created yet"""
    counts: Dict[str, Optional[int]] = {}
    connection = _connect()
    try:
        cursor = connection.cursor()
        cursor.execute("SHOW TABLES")
        existing = {row[0] for row in cursor.fetchall()}
        for name in sorted(Base.metadata.tables):
            if name not in existing:
                counts[name] = None
                continue
            cursor.execute(f"SELECT COUNT(*) FROM `{name}`")
            counts[name] = cursor.fetchone()[0]
        cursor.close()
    finally:
        connection.close()
    return counts


def main(argv: Optional[List[str]] = None) -> int:
    setup_logging()
    args = sys.argv[1:] if argv is None else argv
    seed = "--no-seed" not in args

    if can_connect():
        for name, count in table_row_counts().items():
            print(f"  {name:<24} {'missing' if count is None else count}")
        if "--yes" not in args:
            answer = input("\nCreate missing storefront tables and load the demo catalog? (y/N): ")
            if answer.strip().lower() != "y":
                print("Nothing changed.")
                return 0

    if not initialize_database(seed=seed):
        print(f"Setup of '{settings.DB_NAME}' failed; see the log for details.")
        return 1

    print(f"Storefront schema '{settings.DB_NAME}' is ready on {settings.DB_HOST}:{settings.DB_PORT}.")
    print("Start the API with: uvicorn storefront.main:app --reload --port 8000")
    return 0


if __name__ == "__main__":
    sys.exit(main())
