import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, status, Depends

from ..errors import StorefrontError
from ..models.schemas import CheckoutRequest, OrderCancelRequest, OrderStatusUpdate, PaymentConfirmRequest
from ..services import OrderService, PaymentService
from .deps import (
    success, get_order_service, get_payment_service, get_current_user_id, get_optional_user_id,
    is_platform_admin
)

logger = logging.getLogger(__name__)
router = APIRouter(tags=["Orders"])


@router.post("/checkout", status_code=status.HTTP_201_CREATED)
def checkout(
        request: CheckoutRequest,
        user_id: str = Depends(get_current_user_id),
        orders: OrderService = Depends(get_order_service)
):
    """
    Turn the customer's cart into an order

    **Parameters:**
    - shippingAddressId: One of the customer's saved addresses
    - paymentMethod: Payment method chosen at checkout
    - couponCode: Optional coupon or promo code

    **Returns:**
    - The created order; totals are computed from current prices and stock

    **Error Codes:**
    - 400: Empty cart, unknown address or invalid coupon
    - 409: A line exceeds the available stock
    """
    try:
        order = orders.create_order(user_id, request)
        return success(order, message="Order placed successfully")
    except (HTTPException, StorefrontError):
        raise
    except Exception as e:
        logger.error(f"Error placing order for user {user_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to place order"
        )


@router.get("/orders")
def list_orders(user_id: str = Depends(get_current_user_id),
                      orders: OrderService = Depends(get_order_service)):
    results = orders.get_user_orders(user_id)
    return success(results, total=len(results))


@router.get("/orders/{order_id}")
def get_order(order_id: str, user_id: str = Depends(get_current_user_id),
                    orders: OrderService = Depends(get_order_service)):
    order = orders.get_order(order_id, user_id)
    if not order:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Order {order_id} not found"
        )
    return success(order)


@router.get("/orders/{order_id}/tracking")
def track_order(order_id: str, user_id: str = Depends(get_current_user_id),
                      orders: OrderService = Depends(get_order_service)):
    return success(orders.track_order(order_id, user_id))


@router.post("/orders/{order_id}/cancel")
def cancel_order(
        order_id: str,
        request: Optional[OrderCancelRequest] = None,
        user_id: str = Depends(get_current_user_id),
        orders: OrderService = Depends(get_order_service)
):
    """Cancel a pending order and put its items back in stock"""
    try:
        reason = request.reason if request else None
        order = orders.cancel_order(user_id, order_id, reason)
        return success(order, message="Order cancelled")
    except (HTTPException, StorefrontError):
        raise
    except Exception as e:
        logger.error(f"Error cancelling order {order_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to cancel order"
        )


@router.patch("/orders/{order_id}/status")
def update_order_status(
        order_id: str,
        request: OrderStatusUpdate,
        user_id: Optional[str] = Depends(get_optional_user_id),
        admin: bool = Depends(is_platform_admin),
        orders: OrderService = Depends(get_order_service)
):
    """Move an order along its fulfilment path (shop admins or the management key)"""
    try:
        order = orders.update_order_status(
            order_id, request.status, request.tracking_number, user_id=user_id, platform_admin=admin
        )
        return success(order, message=f"Order status updated to {order.status.value}")
    except (HTTPException, StorefrontError):
        raise
    except Exception as e:
        logger.error(f"Error updating status of order {order_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update order status"
        )


@router.get("/shops/{shop_id}/orders")
def shop_orders(
        shop_id: str,
        user_id: Optional[str] = Depends(get_optional_user_id),
        admin: bool = Depends(is_platform_admin),
        orders: OrderService = Depends(get_order_service)
):
    results = orders.get_shop_orders(shop_id, user_id, platform_admin=admin)
    return success(results, total=len(results))


@router.post("/orders/{order_id}/payment")
def start_payment(
        order_id: str,
        user_id: str = Depends(get_current_user_id),
        payments: PaymentService = Depends(get_payment_service)
):
    """Create a gateway order for client-side checkout"""
    try:
        return success(payments.start_payment(order_id, user_id))
    except (HTTPException, StorefrontError):
        raise
    except Exception as e:
        logger.error(f"Error starting payment for order {order_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to start payment"
        )


@router.post("/orders/{order_id}/payment/confirm")
def confirm_payment(
        order_id: str,
        request: PaymentConfirmRequest,
        user_id: str = Depends(get_current_user_id),
        payments: PaymentService = Depends(get_payment_service)
):
    try:
        order = payments.confirm_payment(order_id, user_id, request)
        return success(order, message="Payment confirmed")
    except (HTTPException, StorefrontError):
        raise
    except Exception as e:
        logger.error(f"Error confirming payment for order {order_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to confirm payment"
        )
