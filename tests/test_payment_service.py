"""Tests for the payment gateway client and payment confirmation."""

import hashlib
import hmac

import pytest
import requests

from storefront.config import settings
from storefront.errors import InvalidRequestError, NotFoundError, PaymentError
from storefront.models.schemas import CheckoutRequest, PaymentConfirmRequest
from storefront.services import CartService, OrderService, PaymentService
from storefront.services.payment_service import RazorpayClient

SECRET = "rzp_test_secret"


class FakeResponse:
    def __init__(self, payload, status_code=200):
        self.payload = payload
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.exceptions.HTTPError(f"{self.status_code} error")

    def json(self):
        return self.payload


class FakeSession:
    """Records gateway calls instead of sending them"""

    def __init__(self, response=None, error=None):
        self.response = response or FakeResponse({"id": "order_gw_1"})
        self.error = error
        self.calls = []

    def post(self, url, **kwargs):
        self.calls.append((url, kwargs))
        if self.error:
            raise self.error
        return self.response


def sign(order_id, payment_id, secret=SECRET):
    return hmac.new(secret.encode(), f"{order_id}|{payment_id}".encode(), hashlib.sha256).hexdigest()


@pytest.fixture
def gateway():
    return FakeSession()


@pytest.fixture
def razorpay(gateway):
    return RazorpayClient("rzp_test_key", SECRET, base_url="https://gateway.test/v1/", session=gateway)


@pytest.fixture
def payments(seeded, razorpay, feed):
    return PaymentService(seeded, razorpay, feed)


@pytest.fixture
def order(seeded, feed):
    CartService(seeded, feed=feed).add_item("p-tee", 2, user_id="user-1")
    return OrderService(seeded, feed=feed).create_order("user-1", CheckoutRequest(
        shipping_address_id="addr-1", payment_method="razorpay"
    ))


class TestRazorpayClient:
    """Test gateway calls and signature checks."""

    def test_create_payment_order(self, razorpay, gateway):
        assert razorpay.create_payment_order(5000, "INR", "r-1") == {"id": "order_gw_1"}
        url, kwargs = gateway.calls[0]
        assert url == "https://gateway.test/v1/orders"
        assert kwargs["json"] == {"amount": 5000, "currency": "INR", "receipt": "r-1"}
        assert kwargs["auth"] == ("rzp_test_key", SECRET)

    def test_gateway_failure(self, gateway, razorpay):
        gateway.error = requests.exceptions.ConnectionError("down")
        with pytest.raises(PaymentError):
            razorpay.create_payment_order(100, "INR", "r-1")

    def test_order_creation_is_retried_when_gateway_is_unavailable(self):
        session = RazorpayClient(key_id="rzp_test_key", key_secret=SECRET).session
        retry = session.get_adapter("https://api.razorpay.com/v1/orders").max_retries
        assert retry.total == settings.MAX_RETRIES
        assert retry.is_retry("POST", 503)
        assert not retry.is_retry("POST", 500)

    def test_unconfigured(self):
        with pytest.raises(PaymentError, match="not configured"):
            RazorpayClient("", "", session=FakeSession()).create_payment_order(100, "INR", "r-1")

    def test_verify_signature(self, razorpay):
        assert razorpay.verify_signature("order_gw_1", "pay_1", sign("order_gw_1", "pay_1"))
        assert not razorpay.verify_signature("order_gw_1", "pay_1", sign("order_gw_1", "pay_1", "other"))
        assert not razorpay.verify_signature("order_gw_1", "pay_1", None)


class TestPaymentFlow:
    """Test starting and confirming payment for an order."""

    def test_start_payment(self, payments, order, gateway):
        started = payments.start_payment(order.id, "user-1")
        assert started.gateway_order_id == "order_gw_1"
        assert started.amount == 5000
        assert started.currency == "INR"
        assert started.key_id == "rzp_test_key"
        assert gateway.calls[0][1]["json"]["receipt"] == order.id

    def test_start_payment_for_someone_else(self, payments, order):
        with pytest.raises(NotFoundError):
            payments.start_payment(order.id, "user-2")

    def test_confirm_payment(self, payments, order, feed):
        payments.start_payment(order.id, "user-1")
        paid = payments.confirm_payment(order.id, "user-1", PaymentConfirmRequest(
            razorpay_payment_id="pay_1", razorpay_order_id="order_gw_1",
            razorpay_signature=sign("order_gw_1", "pay_1"),
        ))
        assert paid.payment_status.value == "completed"
        assert paid.status.value == "processing"
        assert "user_notifications" in feed.tables()
        with pytest.raises(InvalidRequestError, match="already been paid"):
            payments.start_payment(order.id, "user-1")

    def test_bad_signature_marks_failed(self, payments, order, seeded):
        payments.start_payment(order.id, "user-1")
        with pytest.raises(PaymentError, match="verification failed"):
            payments.confirm_payment(order.id, "user-1", PaymentConfirmRequest(
                razorpay_payment_id="pay_1", razorpay_order_id="order_gw_1", razorpay_signature="forged",
            ))
        assert OrderService(seeded).get_order(order.id, "user-1").payment_status.value == "failed"

    def test_mismatched_gateway_order(self, payments, order):
        payments.start_payment(order.id, "user-1")
        with pytest.raises(InvalidRequestError):
            payments.confirm_payment(order.id, "user-1", PaymentConfirmRequest(
                razorpay_payment_id="pay_1", razorpay_order_id="order_other",
                razorpay_signature=sign("order_other", "pay_1"),
            ))

    def test_cancelled_order_cannot_be_paid(self, payments, order, seeded):
        OrderService(seeded).cancel_order("user-1", order.id)
        with pytest.raises(InvalidRequestError, match="Cancelled"):
            payments.start_payment(order.id, "user-1")
