"""Tests for shop administration, shop catalogs and follows."""

import pytest

from storefront.errors import AuthenticationRequiredError, InvalidRequestError, NotFoundError, PermissionDeniedError
from storefront.models.database import OrderItem, Order, UserProfile
from storefront.models.schemas import (
    ShopCreate, ShopUpdate, ShopStatusUpdate, ShopAdminCreate, ProductCreate, ProductUpdate
)
from storefront.services import ShopService


@pytest.fixture
def shops(seeded, feed):
    return ShopService(seeded, feed)


class TestShops:
    """Test opening, moderating and editing shops."""

    def test_new_shop_awaits_approval(self, shops, feed):
        shop = shops.create_shop("user-7", ShopCreate(name="Paper Lane", owner_email="paper@example.com"))
        assert shop.status.value == "pending"
        assert [s.id for s in shops.get_user_shops("user-7")] == [shop.id]
        assert "shops" in feed.tables()

    def test_invalid_owner_email(self):
        with pytest.raises(ValueError):
            ShopCreate(name="Paper Lane", owner_email="not-an-email")

    def test_list_filters(self, shops):
        shops.create_shop("user-7", ShopCreate(name="Paper Lane"))
        assert [s.name for s in shops.list_shops()] == ["Cotton Street", "Gadget Corner", "Paper Lane"]
        assert [s.name for s in shops.list_shops(status="pending")] == ["Paper Lane"]
        assert [s.name for s in shops.list_shops(search="GADGET")] == ["Gadget Corner"]

    def test_moderation(self, shops):
        shop = shops.update_shop_status("shop-a", ShopStatusUpdate(status="suspended", is_verified=True))
        assert shop.status.value == "suspended"
        assert shop.is_verified
        with pytest.raises(NotFoundError):
            shops.update_shop_status("nope", ShopStatusUpdate(status="active"))

    def test_only_admins_edit(self, shops):
        updated = shops.update_shop("shop-a", "owner-a", ShopUpdate(description="Organic cotton"))
        assert updated.description == "Organic cotton"
        assert updated.name == "Cotton Street"
        with pytest.raises(PermissionDeniedError):
            shops.update_shop("shop-a", "owner-b", ShopUpdate(name="Taken"))

    def test_add_admin(self, shops):
        shops.add_admin("shop-a", "owner-a", ShopAdminCreate(user_id="helper"))
        assert [s.id for s in shops.get_user_shops("helper")] == ["shop-a"]
        with pytest.raises(PermissionDeniedError):
            shops.add_admin("shop-a", "helper-2", ShopAdminCreate(user_id="helper-3"))

    def test_delete_shop_with_catalog(self, shops):
        shops.delete_shop("shop-a", "owner-a")
        assert shops.get_shop("shop-a") is None
        assert shops.get_shop_products("shop-a") == []

    def test_delete_blocked_by_orders(self, shops, seeded):
        db = seeded()
        order = Order(user_id="user-1", status="pending", total=20)
        db.add(order)
        db.flush()
        db.add(OrderItem(order_id=order.id, product_id="p-tee", shop_id="shop-a", quantity=1, price=20))
        db.commit()
        db.close()
        with pytest.raises(InvalidRequestError, match="suspend"):
            shops.delete_shop("shop-a", "owner-a")
        with pytest.raises(InvalidRequestError):
            shops.delete_product("shop-a", "p-tee", "owner-a")


class TestShopCatalog:
    """Test products managed by shop admins."""

    def test_create_update_delete(self, shops):
        product = shops.create_product("shop-a", "owner-a", ProductCreate(
            name="Linen Shirt", price=55, category_id="t-shirts", stock=4
        ))
        assert product.shop_id == "shop-a"
        assert product.id in [p.id for p in shops.get_shop_products("shop-a")]

        updated = shops.update_product("shop-a", product.id, "owner-a", ProductUpdate(sale_price=45))
        assert (updated.price, updated.sale_price) == (55, 45)

        shops.delete_product("shop-a", product.id, "owner-a")
        assert product.id not in [p.id for p in shops.get_shop_products("shop-a")]

    def test_foreign_products_are_hidden(self, shops):
        with pytest.raises(NotFoundError):
            shops.update_product("shop-a", "p-phones", "owner-a", ProductUpdate(stock=1))

    def test_sign_in_required(self, shops):
        with pytest.raises(AuthenticationRequiredError):
            shops.create_product("shop-a", None, ProductCreate(name="Anon", price=1))


class TestFollows:
    """Test following shops."""

    def test_follow_is_idempotent(self, shops):
        assert shops.follow_shop("user-1", "shop-a")
        assert not shops.follow_shop("user-1", "shop-a")
        assert shops.is_following("user-1", "shop-a")
        assert shops.get_followers_count("shop-a") == 1
        assert shops.get_shop("shop-a").followers_count == 1

    def test_unfollow(self, shops):
        shops.follow_shop("user-1", "shop-a")
        assert shops.unfollow_shop("user-1", "shop-a")
        assert not shops.unfollow_shop("user-1", "shop-a")
        assert shops.get_shop("shop-a").followers_count == 0

    def test_unknown_shop(self, shops):
        with pytest.raises(NotFoundError):
            shops.follow_shop("user-1", "nope")

    def test_followers_with_profiles(self, shops, seeded):
        db = seeded()
        db.add(UserProfile(id="user-1", email="asha@example.com", full_name="Asha Rao"))
        db.commit()
        db.close()
        shops.follow_shop("user-1", "shop-b")
        shops.follow_shop("user-2", "shop-b")
        followers = {f.user_id: f for f in shops.get_followers("shop-b")}
        assert followers["user-1"].full_name == "Asha Rao"
        assert followers["user-2"].email is None
