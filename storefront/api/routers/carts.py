# storefront/api/routers/carts.py
from fastapi import APIRouter, Depends, Response

from storefront.api.deps import get_cart_service, get_inventory_service, get_pricing_service
from storefront.domain.errors import AppError
from storefront.domain.schemas import CartOut, CartOwnerIn, ItemIn, ItemUpdate, MergeCartIn, QuoteIn
from storefront.services.cart_service import CartService
from storefront.services.inventory_service import InventoryService
from storefront.services.pricing_service import PricingService, QuoteOptions

router = APIRouter(prefix="/carts", tags=["carts"])


@router.post("/", response_model=CartOut)
def open_cart(payload: CartOwnerIn, svc: CartService = Depends(get_cart_service)):
    """Active cart of a user or guest, created on first use."""
    if payload.user_id is not None:
        return svc.get_or_create_for_user(payload.user_id)
    if payload.anonymous_id:
        return svc.get_or_create_for_anonymous(payload.anonymous_id)
    raise AppError.validation("user_id or anonymous_id is required", field="user_id")


@router.post("/merge", response_model=CartOut)
def merge_carts(payload: MergeCartIn, svc: CartService = Depends(get_cart_service)):
    return svc.merge_anonymous_into_user(payload.user_id, payload.anonymous_id)


@router.get("/{cart_id}", response_model=CartOut)
def get_cart(cart_id: int, svc: CartService = Depends(get_cart_service)):
    return svc.get_cart(cart_id)


@router.post("/{cart_id}/items", response_model=CartOut, status_code=201)
def add_item(cart_id: int, payload: ItemIn, svc: CartService = Depends(get_cart_service)):
    svc.add_item(cart_id, payload.product_id, payload.variant_id, payload.quantity)
    return svc.get_cart(cart_id)


@router.patch("/{cart_id}/items/{item_id}", response_model=CartOut)
def update_item(cart_id: int, item_id: int, payload: ItemUpdate, svc: CartService = Depends(get_cart_service)):
    svc.update_item(cart_id, item_id, payload.quantity)
    return svc.get_cart(cart_id)


@router.delete("/{cart_id}/items/{item_id}", response_model=CartOut)
def remove_item(cart_id: int, item_id: int, svc: CartService = Depends(get_cart_service)):
    svc.remove_item(cart_id, item_id)
    return svc.get_cart(cart_id)


@router.delete("/{cart_id}/items", status_code=204)
def clear_cart(cart_id: int, svc: CartService = Depends(get_cart_service)):
    svc.clear(cart_id)
    return Response(status_code=204)


@router.post("/{cart_id}/quote")
def quote_cart(
    cart_id: int,
    payload: QuoteIn,
    carts: CartService = Depends(get_cart_service),
    pricing: PricingService = Depends(get_pricing_service),
):
    carts.get_cart(cart_id)
    quote = pricing.quote_cart(
        cart_id,
        QuoteOptions(
            coupon_code=payload.coupon_code,
            shipping_method=payload.shipping_method,
            gift_wrap=payload.gift_wrap,
            user_id=payload.user_id,
            currency_code=payload.currency_code,
        ),
    )
    return quote.to_dict()


@router.get("/{cart_id}/availability")
def cart_availability(
    cart_id: int,
    carts: CartService = Depends(get_cart_service),
    inventory: InventoryService = Depends(get_inventory_service),
):
    carts.get_cart(cart_id)
    return inventory.verify_cart_availability(cart_id)
