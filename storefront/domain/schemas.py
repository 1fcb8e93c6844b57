# storefront/domain/schemas.py
from datetime import datetime
from typing import Any, Dict, List, Literal

from pydantic import BaseModel, ConfigDict, Field


class ItemIn(BaseModel):
    """Add a product (optionally a variant) to a cart."""

    product_id: int = Field(..., gt=0)
    variant_id: int | None = Field(None, gt=0)
    quantity: int = Field(1, gt=0)


class ItemUpdate(BaseModel):
    # 0 or less removes the line
    quantity: int


class CartOwnerIn(BaseModel):
    user_id: int | None = Field(None, gt=0)
    anonymous_id: str | None = Field(None, min_length=1, max_length=64)


class MergeCartIn(BaseModel):
    user_id: int = Field(..., gt=0)
    anonymous_id: str = Field(..., min_length=1, max_length=64)


class CartItemOut(BaseModel):
    id: int
    product_id: int
    variant_id: int | None = None
    title: str
    variant_name: str | None = None
    unit_price: int
    quantity: int
    currency_code: str

    model_config = ConfigDict(from_attributes=True)


class CartOut(BaseModel):
    id: int
    user_id: int | None = None
    anonymous_id: str | None = None
    status: str
    items: List[CartItemOut]

    model_config = ConfigDict(from_attributes=True)


class QuoteIn(BaseModel):
    coupon_code: str | None = None
    shipping_method: Literal["standard", "express"] = "standard"
    gift_wrap: bool = False
    user_id: int | None = None
    currency_code: str | None = None


class AddressIn(BaseModel):
    """Shipping address as typed by the customer; normalized by checkout."""

    first_name: str = ""
    last_name: str = ""
    phone: str = ""
    postal_code: str | None = None
    province: str = ""
    city: str = ""
    address_line1: str = ""
    address_line2: str | None = None
    country: str | None = None


class CheckoutIn(BaseModel):
    cart_id: int = Field(..., gt=0)
    user_id: int | None = Field(None, gt=0)
    address: AddressIn
    payment_method: Literal["gateway", "cod"]
    shipping_method: Literal["standard", "express"] = "standard"
    coupon_code: str | None = None
    gift_wrap: bool = False
    note: str | None = Field(None, max_length=1000)
    return_url: str | None = None
    cancel_url: str | None = None


class ReserveLineIn(BaseModel):
    variant_id: int = Field(..., gt=0)
    quantity: int = Field(..., gt=0)


class ReserveIn(BaseModel):
    lines: List[ReserveLineIn]


class StockSetIn(BaseModel):
    stock: int = Field(..., ge=0)


class StockAdjustIn(BaseModel):
    delta: int


class OrderItemOut(BaseModel):
    id: int
    product_id: int | None = None
    variant_id: int | None = None
    title: str
    variant_name: str | None = None
    unit_price: int
    quantity: int
    line_total: int
    currency_code: str
    position: int

    model_config = ConfigDict(from_attributes=True)


class PaymentOut(BaseModel):
    id: int
    order_id: int
    method: str
    status: str
    provider: str | None = None
    amount: int
    currency_code: str
    authority: str | None = None
    transaction_ref: str | None = None
    paid_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class OrderOut(BaseModel):
    id: int
    order_number: str
    user_id: int | None = None
    status: str
    shipping_method: str
    payment_method: str
    coupon_code: str | None = None
    gift_wrap: bool
    inventory_reserved: bool = False
    subtotal: int
    discount_total: int
    shipping_total: int
    gift_wrap_total: int
    total: int
    currency_code: str
    placed_at: datetime
    items: List[OrderItemOut] = []
    payments: List[PaymentOut] = []

    model_config = ConfigDict(from_attributes=True)


class OrderStatusIn(BaseModel):
    status: str


class CancelOrderIn(BaseModel):
    reason: str | None = None


class PaymentConfirmIn(BaseModel):
    transaction_ref: str | None = None


class PaymentFailIn(BaseModel):
    reason: str | None = None


class CheckoutOut(BaseModel):
    order_id: int
    order_number: str
    status: str
    amounts: Dict[str, Any]
    payment: Dict[str, Any]
    quote: Dict[str, Any]
