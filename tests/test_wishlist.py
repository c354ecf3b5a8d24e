"""Tests for saved products."""

import pytest

from storefront.errors import NotFoundError
from storefront.services import WishlistService, CartService


@pytest.fixture
def wishlist(seeded, feed):
    return WishlistService(seeded, feed=feed)


def test_add_is_idempotent(wishlist, feed):
    assert wishlist.add("user-1", "p-tee")
    assert not wishlist.add("user-1", "p-tee")
    entries = wishlist.get_wishlist("user-1")
    assert [e.product.id for e in entries] == ["p-tee"]
    assert feed.tables().count("user_wishlists") == 1


def test_unknown_product(wishlist):
    with pytest.raises(NotFoundError):
        wishlist.add("user-1", "nope")


def test_remove(wishlist):
    wishlist.add("user-1", "p-tee")
    assert wishlist.remove("user-1", "p-tee")
    assert not wishlist.remove("user-1", "p-tee")
    assert not wishlist.contains("user-1", "p-tee")


def test_move_to_cart(wishlist, seeded):
    wishlist.add("user-1", "p-polo")
    lines = wishlist.move_to_cart("user-1", "p-polo")
    assert [(line.product_id, line.quantity) for line in lines] == [("p-polo", 1)]
    assert not wishlist.contains("user-1", "p-polo")
    assert len(CartService(seeded).load_cart(user_id="user-1")) == 1


def test_move_requires_wishlist_entry(wishlist):
    with pytest.raises(NotFoundError):
        wishlist.move_to_cart("user-1", "p-tee")
