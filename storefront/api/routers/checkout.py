# storefront/api/routers/checkout.py
from fastapi import APIRouter, Depends

from storefront.api.deps import get_checkout_service
from storefront.domain.schemas import CheckoutIn, CheckoutOut
from storefront.services.checkout_service import CheckoutOptions, CheckoutService

router = APIRouter(prefix="/checkout", tags=["checkout"])


@router.post("/", response_model=CheckoutOut, status_code=201)
def checkout(payload: CheckoutIn, svc: CheckoutService = Depends(get_checkout_service)):
    """
    Turn an active cart into an order. Totals are recomputed server-side.
    A 503 PAYMENT_UNAVAILABLE still means the order exists; its id and
    number are in the error meta.
    """
    result = svc.create_order_from_cart(
        cart_id=payload.cart_id,
        user_id=payload.user_id,
        address=payload.address,
        options=CheckoutOptions(
            payment_method=payload.payment_method,
            shipping_method=payload.shipping_method,
            coupon_code=payload.coupon_code,
            gift_wrap=payload.gift_wrap,
            note=payload.note,
        ),
        return_url=payload.return_url,
        cancel_url=payload.cancel_url,
    )
    return result.to_dict()
