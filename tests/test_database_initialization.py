"""Tests for the demo catalog seed."""

from storefront.models.database import Category, Product, ShopAdmin
from storefront.services import database_initialization


def test_seed_fills_an_empty_catalog(session_factory):
    assert database_initialization.seed_demo_catalog(session_factory) == len(database_initialization.DEMO_PRODUCTS)

    db = session_factory()
    try:
        assert db.query(Product).count() == len(database_initialization.DEMO_PRODUCTS)
        assert db.query(Category).count() == len(database_initialization.DEMO_CATEGORIES)
        owners = {a.user_id for a in db.query(ShopAdmin).all()}
        assert owners == {database_initialization.DEMO_OWNER_ID}
    finally:
        db.close()


def test_seed_skips_a_populated_catalog(seeded):
    assert database_initialization.seed_demo_catalog(seeded) == 0
