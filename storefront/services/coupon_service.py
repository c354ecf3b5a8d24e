import logging
from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy import desc, or_, func

from ..errors import StorefrontError, InvalidRequestError, NotFoundError
from ..models.database import SessionLocal, Coupon, Offer
from ..models.schemas import CouponCreate, CouponModel, OfferCreate, OfferUpdate, OfferModel
from ..models.converters import coupon_to_model, offer_to_model
from ..utils.helpers import round_half_up
from .access import ensure_shop_admin
from .cart_operations import promo_discount, is_promo_code
from .realtime import change_feed

logger = logging.getLogger(__name__)


def evaluate_coupon(coupon: CouponModel, subtotal: float, now: Optional[datetime] = None) -> float:
    """
    Discount a coupon grants on a subtotal

    Raises:
        InvalidRequestError: The coupon cannot be used for this order
    """
    now = now or datetime.utcnow()
    if not coupon.is_active:
        raise InvalidRequestError("This coupon is no longer active")
    if now < coupon.start_date:
        raise InvalidRequestError("This coupon is not valid yet")
    if now > coupon.end_date:
        raise InvalidRequestError("This coupon has expired")
    if coupon.max_uses is not None and coupon.current_uses >= coupon.max_uses:
        raise InvalidRequestError("This coupon has reached its usage limit")
    if coupon.minimum_purchase and subtotal < coupon.minimum_purchase:
        raise InvalidRequestError(f"A minimum purchase of {coupon.minimum_purchase:g} is required")

    if coupon.discount_percent:
        discount = subtotal * coupon.discount_percent / 100
    else:
        discount = coupon.discount_amount or 0
    return round_half_up(min(discount, subtotal), 2)


class CouponService:
    """Coupons redeemable at checkout and promotional offers"""

    def __init__(self, session_factory=SessionLocal, feed=change_feed):
        self.session_factory = session_factory
        self.feed = feed

    # Coupons

    def get_coupon(self, code: str) -> Optional[CouponModel]:
        db = self.session_factory()
        try:
            coupon = db.query(Coupon).filter(func.lower(Coupon.code) == code.strip().lower()).first()
            return coupon_to_model(coupon) if coupon else None
        except Exception as e:
            logger.error(f"Error fetching coupon {code}: {e}")
            return None
        finally:
            db.close()

    def resolve_discount(self, code: Optional[str], subtotal: float,
                         now: Optional[datetime] = None) -> Tuple[float, Optional[str]]:
        """
        Work out the discount for a code entered at checkout

        Stored coupons take precedence over the built-in promo code.

        Returns:
            tuple: (discount, coupon id or None for the promo code)
        """
        if not code or not code.strip():
            return 0.0, None

        coupon = self.get_coupon(code)
        if coupon:
            return evaluate_coupon(coupon, subtotal, now), coupon.id

        if is_promo_code(code):
            return promo_discount(code, subtotal), None

        raise InvalidRequestError("Invalid coupon code")

    def list_coupons(self) -> List[CouponModel]:
        db = self.session_factory()
        try:
            return [coupon_to_model(c) for c in db.query(Coupon).order_by(desc(Coupon.created_at)).all()]
        except Exception as e:
            logger.error(f"Error listing coupons: {e}")
            return []
        finally:
            db.close()

    def create_coupon(self, data: CouponCreate) -> CouponModel:
        db = self.session_factory()
        try:
            code = data.code.strip()
            if db.query(Coupon.id).filter(func.lower(Coupon.code) == code.lower()).first():
                raise InvalidRequestError(f"Coupon {code} already exists")
            coupon = Coupon(**data.model_dump(exclude={"code"}), code=code)
            db.add(coupon)
            db.commit()
            db.refresh(coupon)
            logger.info(f"Created coupon {coupon.code}")
            return coupon_to_model(coupon)
        except StorefrontError:
            db.rollback()
            raise
        except Exception as e:
            db.rollback()
            logger.error(f"Error creating coupon {data.code}: {e}")
            raise
        finally:
            db.close()

    # Offers

    def list_offers(self, active_only: bool = True, now: Optional[datetime] = None) -> List[OfferModel]:
        now = now or datetime.utcnow()
        db = self.session_factory()
        try:
            q = db.query(Offer)
            if active_only:
                q = q.filter(
                    Offer.is_active.is_(True),
                    Offer.expiry >= now,
                    or_(Offer.start_date.is_(None), Offer.start_date <= now),
                )
            return [offer_to_model(o) for o in q.order_by(Offer.expiry).all()]
        except Exception as e:
            logger.error(f"Error listing offers: {e}")
            return []
        finally:
            db.close()

    def get_shop_offers(self, shop_id: str) -> List[OfferModel]:
        db = self.session_factory()
        try:
            rows = db.query(Offer).filter(Offer.shop_id == shop_id).order_by(desc(Offer.created_at)).all()
            return [offer_to_model(o) for o in rows]
        except Exception as e:
            logger.error(f"Error listing offers for shop {shop_id}: {e}")
            return []
        finally:
            db.close()

    def get_offer(self, offer_id: str) -> Optional[OfferModel]:
        db = self.session_factory()
        try:
            offer = db.query(Offer).filter(Offer.id == offer_id).first()
            return offer_to_model(offer) if offer else None
        except Exception as e:
            logger.error(f"Error fetching offer {offer_id}: {e}")
            return None
        finally:
            db.close()

    def create_offer(self, data: OfferCreate, user_id: Optional[str] = None,
                     platform_admin: bool = False) -> OfferModel:
        """
        Create an offer

        Shop offers may be created by that shop's admins; platform-wide
        offers (no shop) only through the management key.
        """
        db = self.session_factory()
        try:
            if data.shop_id:
                if not platform_admin:
                    ensure_shop_admin(db, data.shop_id, user_id)
            elif not platform_admin:
                raise InvalidRequestError("Shop ID is required for shop offers")

            offer = Offer(**data.model_dump())
            db.add(offer)
            db.commit()
            db.refresh(offer)
            self.feed.publish("offers", "insert", record_id=offer.id)
            logger.info(f"Created offer {offer.code} ({offer.type})")
            return offer_to_model(offer)
        except StorefrontError:
            db.rollback()
            raise
        except Exception as e:
            db.rollback()
            logger.error(f"Error creating offer {data.code}: {e}")
            raise
        finally:
            db.close()

    def update_offer(self, offer_id: str, data: OfferUpdate, user_id: Optional[str] = None,
                     platform_admin: bool = False) -> OfferModel:
        db = self.session_factory()
        try:
            offer = db.query(Offer).filter(Offer.id == offer_id).first()
            if not offer:
                raise NotFoundError(f"Offer {offer_id} not found")
            if not platform_admin:
                ensure_shop_admin(db, offer.shop_id, user_id)

            for field, value in data.model_dump(exclude_unset=True).items():
                setattr(offer, field, value)
            db.commit()
            db.refresh(offer)
            self.feed.publish("offers", "update", record_id=offer.id)
            return offer_to_model(offer)
        except StorefrontError:
            db.rollback()
            raise
        except Exception as e:
            db.rollback()
            logger.error(f"Error updating offer {offer_id}: {e}")
            raise
        finally:
            db.close()

    def delete_offer(self, offer_id: str, user_id: Optional[str] = None, platform_admin: bool = False) -> None:
        db = self.session_factory()
        try:
            offer = db.query(Offer).filter(Offer.id == offer_id).first()
            if not offer:
                raise NotFoundError(f"Offer {offer_id} not found")
            if not platform_admin:
                ensure_shop_admin(db, offer.shop_id, user_id)
            db.delete(offer)
            db.commit()
            self.feed.publish("offers", "delete", record_id=offer_id)
            logger.info(f"Deleted offer {offer_id}")
        except StorefrontError:
            db.rollback()
            raise
        except Exception as e:
            db.rollback()
            logger.error(f"Error deleting offer {offer_id}: {e}")
            raise
        finally:
            db.close()
