"""Shared fixtures: an in-memory database, a seeded catalog and an API client."""

import os

# Settings are read at import time
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["API_KEY"] = "test-admin-key"
os.environ["RAZORPAY_KEY_ID"] = "rzp_test_key"
os.environ["RAZORPAY_KEY_SECRET"] = "rzp_test_secret"

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from storefront.models.database import (
    create_tables, drop_tables, Category, Shop, ShopAdmin, Product, Address
)
from storefront.models.schemas import ChangeEvent


class RecordingFeed:
    """Change feed stand-in that remembers what was published"""

    def __init__(self):
        self.events = []

    def publish(self, table, action, user_id=None, record_id=None):
        event = ChangeEvent(table=table, action=action, user_id=user_id, record_id=record_id)
        self.events.append(event)
        return event

    def tables(self):
        return [event.table for event in self.events]


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    create_tables(bind=engine)
    yield engine
    drop_tables(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def feed():
    return RecordingFeed()


@pytest.fixture
def seeded(session_factory):
    """
    Two shops with two products each.

    - shop-a (admin owner-a): p-tee on sale 30 -> 20, p-polo 40
    - shop-b (admin owner-b): p-phones on sale 200 -> 150, p-speaker 60 out of stock
    - user-1 has one saved address, addr-1
    """
    db = session_factory()
    db.add_all([
        Category(id="t-shirts", name="T-Shirts"),
        Category(id="electronics", name="Electronics"),
        Shop(id="shop-a", name="Cotton Street", status="active"),
        Shop(id="shop-b", name="Gadget Corner", status="active"),
        ShopAdmin(shop_id="shop-a", user_id="owner-a", role="owner"),
        ShopAdmin(shop_id="shop-b", user_id="owner-b", role="owner"),
        Product(
            id="p-tee", name="Cotton Tee", description="<p>Soft <b>cotton</b> tee</p>",
            price=30.0, sale_price=20.0, category_id="t-shirts", images=["/img/tee.png"],
            colors=["White", "Black"], sizes=["S", "M"], tags=["cotton", "summer"],
            is_new=True, rating=4.5, review_count=10, stock=5, shop_id="shop-a",
        ),
        Product(
            id="p-polo", name="Striped Polo", description="Breathable polo",
            price=40.0, category_id="t-shirts", images=[], colors=["Blue"], sizes=["M", "L"],
            tags=["cotton"], rating=4.0, review_count=4, stock=3, shop_id="shop-a",
        ),
        Product(
            id="p-phones", name="Wireless Headphones", description="Noise cancelling",
            price=200.0, sale_price=150.0, category_id="electronics", images=[],
            colors=["Black"], sizes=[], tags=["audio"], is_trending=True,
            rating=4.8, review_count=30, stock=2, shop_id="shop-b",
        ),
        Product(
            id="p-speaker", name="Bluetooth Speaker", description="Deep bass",
            price=60.0, category_id="electronics", images=[], colors=["Red"], sizes=[],
            tags=["audio"], rating=3.5, review_count=2, stock=0, shop_id="shop-b",
        ),
        Address(
            id="addr-1", user_id="user-1", name="Home", full_name="Asha Rao",
            address_line1="12 MG Road", city="Bengaluru", state="KA",
            postal_code="560001", country="India", is_default=True,
        ),
    ])
    db.commit()
    db.close()
    return session_factory


@pytest.fixture
def client(session_factory, feed):
    from fastapi.testclient import TestClient

    from storefront.api import deps
    from storefront.main import app

    app.dependency_overrides[deps.get_session_factory] = lambda: session_factory
    app.dependency_overrides[deps.get_change_feed] = lambda: feed
    yield TestClient(app)
    app.dependency_overrides.clear()
