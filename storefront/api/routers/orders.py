# storefront/api/routers/orders.py
from fastapi import APIRouter, Depends, Query

from storefront.api.deps import get_order_service, get_payment_service
from storefront.domain.schemas import CancelOrderIn, OrderOut, OrderStatusIn, PaymentConfirmIn, PaymentOut
from storefront.services.order_service import OrderService
from storefront.services.payment_service import PaymentService

router = APIRouter(prefix="/orders", tags=["orders"])


@router.get("/by-number/{order_number}", response_model=OrderOut)
def get_order_by_number(order_number: str, svc: OrderService = Depends(get_order_service)):
    return svc.get_by_number(order_number)


@router.get("/{order_id}", response_model=OrderOut)
def get_order(order_id: int, user_id: int | None = Query(None), svc: OrderService = Depends(get_order_service)):
    return svc.get_order(order_id, user_id)


@router.post("/{order_id}/status", response_model=OrderOut)
def update_status(order_id: int, payload: OrderStatusIn, svc: OrderService = Depends(get_order_service)):
    return svc.update_status(order_id, payload.status)


@router.post("/{order_id}/cancel", response_model=OrderOut)
def cancel_order(order_id: int, payload: CancelOrderIn, svc: OrderService = Depends(get_order_service)):
    return svc.cancel_order(order_id, payload.reason)


@router.post("/{order_id}/cod-paid", response_model=PaymentOut)
def confirm_cod_paid(order_id: int, payload: PaymentConfirmIn, svc: PaymentService = Depends(get_payment_service)):
    return svc.confirm_cod_paid(order_id, payload.transaction_ref)
