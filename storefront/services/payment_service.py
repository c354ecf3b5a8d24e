import hashlib
import hmac
import logging
from typing import Optional, Dict, Any

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from ..config import settings
from ..errors import StorefrontError, InvalidRequestError, NotFoundError, PaymentError
from ..models.database import SessionLocal, Order
from ..models.schemas import PaymentStartResponse, PaymentConfirmRequest, OrderModel
from ..models.converters import order_to_model
from ..utils.helpers import round_half_up, short_id
from .notification_service import build_notification
from .realtime import change_feed

logger = logging.getLogger(__name__)

RETRY_METHODS = frozenset(["GET", "POST"])
# 500 is left out: the gateway may already have created the order
RETRY_STATUSES = [429, 502, 503, 504]


class RazorpayClient:
    """Minimal client for the Razorpay orders API"""

    def __init__(self, key_id: Optional[str] = None, key_secret: Optional[str] = None,
                 base_url: Optional[str] = None, session: Optional[requests.Session] = None):
        self.key_id = key_id if key_id is not None else settings.RAZORPAY_KEY_ID
        self.key_secret = key_secret if key_secret is not None else settings.RAZORPAY_KEY_SECRET
        self.base_url = (base_url or settings.RAZORPAY_API_URL).rstrip("/")
        self.session = session or self._create_session()

    def _create_session(self) -> requests.Session:
        session = requests.Session()
        # Order creation is retried only when the gateway did not take the request
        retry_strategy = Retry(
            total=settings.MAX_RETRIES,
            backoff_factor=1,
            allowed_methods=RETRY_METHODS,
            status_forcelist=RETRY_STATUSES,
        )
        adapter = HTTPAdapter(max_retries=retry_strategy)
        session.mount("http://", adapter)
        session.mount("https://", adapter)
        return session

    @property
    def configured(self) -> bool:
        return bool(self.key_id and self.key_secret)

    def create_payment_order(self, amount: int, currency: str, receipt: str) -> Dict[str, Any]:
        """
        Register an order with the gateway

        Args:
            amount: Amount in the currency's smallest unit (paise for INR)
            currency: ISO currency code
            receipt: Our reference for the payment

        Returns:
            dict: Gateway order, including its id
        """
        if not self.configured:
            raise PaymentError("Payment gateway is not configured")

        try:
            response = self.session.post(
                f"{self.base_url}/orders",
                json={"amount": amount, "currency": currency, "receipt": receipt},
                auth=(self.key_id, self.key_secret),
                timeout=settings.REQUEST_TIMEOUT,
            )
            response.raise_for_status()
            return response.json()
        except requests.exceptions.RequestException as e:
            logger.error(f"Payment gateway order creation failed for {receipt}: {e}")
            raise PaymentError("Could not reach the payment gateway") from e

    def verify_signature(self, gateway_order_id: str, payment_id: str, signature: str) -> bool:
        """Check the checkout signature: HMAC-SHA256 of "order_id|payment_id" keyed with the secret"""
        if not self.key_secret:
            return False
        message = f"{gateway_order_id}|{payment_id}".encode()
        expected = hmac.new(self.key_secret.encode(), message, hashlib.sha256).hexdigest()
        return hmac.compare_digest(expected, signature or "")


class PaymentService:
    def __init__(self, session_factory=SessionLocal, client: Optional[RazorpayClient] = None, feed=change_feed):
        self.session_factory = session_factory
        self.client = client or RazorpayClient()
        self.feed = feed

    def _load_order(self, db, order_id: str, user_id: str) -> Order:
        order = db.query(Order).filter(Order.id == order_id, Order.user_id == user_id).first()
        if not order:
            raise NotFoundError(f"Order {order_id} not found")
        return order

    def start_payment(self, order_id: str, user_id: str) -> PaymentStartResponse:
        """Create the gateway order a client needs to open checkout"""
        db = self.session_factory()
        try:
            order = self._load_order(db, order_id, user_id)
            if order.status == "cancelled":
                raise InvalidRequestError("Cancelled orders cannot be paid")
            if order.payment_status == "completed":
                raise InvalidRequestError("This order has already been paid")

            amount = int(round_half_up(order.total * 100))
            gateway_order = self.client.create_payment_order(amount, settings.CURRENCY, receipt=order.id)
            order.payment_reference = gateway_order["id"]
            order.payment_status = "pending"
            db.commit()
            logger.info(f"Started payment {gateway_order['id']} for order {order_id}")

            return PaymentStartResponse(
                order_id=order.id,
                gateway_order_id=gateway_order["id"],
                amount=amount,
                currency=settings.CURRENCY,
                key_id=self.client.key_id,
            )
        except StorefrontError:
            db.rollback()
            raise
        except Exception as e:
            db.rollback()
            logger.error(f"Error starting payment for order {order_id}: {e}")
            raise
        finally:
            db.close()

    def confirm_payment(self, order_id: str, user_id: str, data: PaymentConfirmRequest) -> OrderModel:
        """
        Verify the gateway callback and mark the order paid

        Raises:
            PaymentError: The signature does not match; the payment is marked failed
        """
        db = self.session_factory()
        try:
            order = self._load_order(db, order_id, user_id)
            if order.payment_reference != data.razorpay_order_id:
                raise InvalidRequestError("Payment does not belong to this order")

            if not self.client.verify_signature(data.razorpay_order_id, data.razorpay_payment_id,
                                                data.razorpay_signature):
                order.payment_status = "failed"
                db.commit()
                logger.warning(f"Payment signature mismatch for order {order_id}")
                self.feed.publish("orders", "update", user_id=user_id, record_id=order_id)
                raise PaymentError("Payment verification failed")

            order.payment_status = "completed"
            order.payment_reference = data.razorpay_payment_id
            if order.status == "pending":
                order.status = "processing"
            db.add(build_notification(
                user_id,
                "Payment Received",
                f"Payment for your order #{short_id(order.id)} was successful.",
                type="payment",
                link=f"/orders/{order.id}",
            ))
            db.commit()
            db.refresh(order)
            result = order_to_model(order)
            logger.info(f"Payment confirmed for order {order_id}")

        except StorefrontError:
            db.rollback()
            raise
        except Exception as e:
            db.rollback()
            logger.error(f"Error confirming payment for order {order_id}: {e}")
            raise
        finally:
            db.close()

        self.feed.publish("orders", "update", user_id=user_id, record_id=order_id)
        self.feed.publish("user_notifications", "insert", user_id=user_id)
        return result
