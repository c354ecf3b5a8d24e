"""Tests for coupon rules and promotional offers."""

from datetime import datetime, timedelta

import pytest

from storefront.errors import InvalidRequestError, NotFoundError, PermissionDeniedError, AuthenticationRequiredError
from storefront.models.schemas import CouponCreate, CouponModel, OfferCreate, OfferUpdate
from storefront.services import CouponService
from storefront.services.coupon_service import evaluate_coupon

NOW = datetime(2024, 5, 1, 12, 0, 0)


def make_coupon(**overrides):
    data = {
        "id": "c-1", "code": "SAVE10", "discount_percent": 10,
        "start_date": NOW - timedelta(days=1), "end_date": NOW + timedelta(days=1),
    }
    data.update(overrides)
    return CouponModel(**data)


def make_offer(**overrides):
    data = {
        "title": "Summer sale", "code": "SUMMER", "discount": 15, "type": "percentage",
        "shop_id": "shop-a", "expiry": datetime.utcnow() + timedelta(days=7),
    }
    data.update(overrides)
    return OfferCreate(**data)


@pytest.fixture
def coupons(seeded, feed):
    return CouponService(seeded, feed)


class TestEvaluateCoupon:
    """Test when a coupon applies and how much it takes off."""

    def test_percent(self):
        assert evaluate_coupon(make_coupon(), 45.5, NOW) == 4.55

    def test_fixed_amount_is_capped_at_subtotal(self):
        coupon = make_coupon(discount_percent=None, discount_amount=50)
        assert evaluate_coupon(coupon, 30, NOW) == 30

    @pytest.mark.parametrize("overrides,message", [
        ({"is_active": False}, "no longer active"),
        ({"start_date": NOW + timedelta(hours=1)}, "not valid yet"),
        ({"end_date": NOW - timedelta(hours=1)}, "expired"),
        ({"max_uses": 3, "current_uses": 3}, "usage limit"),
        ({"minimum_purchase": 100}, "minimum purchase of 100"),
    ])
    def test_rejections(self, overrides, message):
        with pytest.raises(InvalidRequestError, match=message):
            evaluate_coupon(make_coupon(**overrides), 50, NOW)


class TestResolveDiscount:
    """Test code lookup at checkout."""

    def test_no_code(self, coupons):
        assert coupons.resolve_discount(None, 50) == (0.0, None)
        assert coupons.resolve_discount("  ", 50) == (0.0, None)

    def test_promo_code(self, coupons):
        assert coupons.resolve_discount("DISCOUNT10", 50) == (5.0, None)

    def test_stored_coupon_wins_over_promo(self, coupons):
        now = datetime.utcnow()
        created = coupons.create_coupon(CouponCreate(
            code="discount10", discount_percent=50,
            start_date=now - timedelta(days=1), end_date=now + timedelta(days=1),
        ))
        assert coupons.resolve_discount("discount10", 50) == (25.0, created.id)

    def test_unknown_code(self, coupons):
        with pytest.raises(InvalidRequestError):
            coupons.resolve_discount("NOPE", 50)

    def test_duplicate_coupon(self, coupons):
        data = CouponCreate(code="SAVE5", discount_amount=5, start_date=NOW, end_date=NOW + timedelta(days=1))
        coupons.create_coupon(data)
        with pytest.raises(InvalidRequestError, match="already exists"):
            coupons.create_coupon(data.model_copy(update={"code": "save5"}))
        assert [c.code for c in coupons.list_coupons()] == ["SAVE5"]

    def test_coupon_needs_a_discount(self):
        with pytest.raises(ValueError):
            CouponCreate(code="EMPTY", start_date=NOW, end_date=NOW + timedelta(days=1))


class TestOffers:
    """Test offer management."""

    def test_shop_admin_creates_offer(self, coupons, feed):
        offer = coupons.create_offer(make_offer(), user_id="owner-a")
        assert offer.shop_id == "shop-a"
        assert [o.id for o in coupons.get_shop_offers("shop-a")] == [offer.id]
        assert "offers" in feed.tables()

    def test_other_shop_admin_is_rejected(self, coupons):
        with pytest.raises(PermissionDeniedError):
            coupons.create_offer(make_offer(), user_id="owner-b")

    def test_anonymous_is_rejected(self, coupons):
        with pytest.raises(AuthenticationRequiredError):
            coupons.create_offer(make_offer())

    def test_platform_offer_needs_admin_key(self, coupons):
        with pytest.raises(InvalidRequestError):
            coupons.create_offer(make_offer(shop_id=None), user_id="owner-a")
        offer = coupons.create_offer(make_offer(shop_id=None), platform_admin=True)
        assert offer.shop_id is None

    def test_active_only_hides_expired(self, coupons):
        live = coupons.create_offer(make_offer(), user_id="owner-a")
        coupons.create_offer(
            make_offer(code="OLD", expiry=datetime.utcnow() - timedelta(days=1)), user_id="owner-a"
        )
        assert [o.id for o in coupons.list_offers()] == [live.id]
        assert len(coupons.list_offers(active_only=False)) == 2

    def test_update_and_delete(self, coupons):
        offer = coupons.create_offer(make_offer(), user_id="owner-a")
        updated = coupons.update_offer(offer.id, OfferUpdate(discount=20), user_id="owner-a")
        assert updated.discount == 20
        assert updated.title == "Summer sale"
        coupons.delete_offer(offer.id, user_id="owner-a")
        assert coupons.get_offer(offer.id) is None
        with pytest.raises(NotFoundError):
            coupons.delete_offer(offer.id, platform_admin=True)
