# storefront/services/checkout_service.py
"""
Checkout: quote -> order -> payment.

create_order_from_cart runs in three stages, strictly in this order:

1. one DB transaction writing the Order, its items, a PENDING Payment and
   flipping the cart to CONVERTED and dropping its lines (plus the coupon redemption);
2. payment initialization with the configured gateway, outside the
   transaction, so a failing provider never removes an order that was
   already written;
3. the `order.created` event for stock reservation and notifications.
"""
import secrets
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict

from sqlalchemy.orm import Session

from storefront.data.database import transaction
from storefront.data.models.order import OrderModel, OrderItemModel
from storefront.data.models.payment import PaymentModel
from storefront.domain.constants import (
    CartStatus,
    Events,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    ShippingMethod,
)
from storefront.domain.errors import AppError
from storefront.domain.schemas import AddressIn
from storefront.repos.cart_repo import CartRepo
from storefront.repos.coupon_repo import CouponRepo
from storefront.repos.order_repo import OrderRepo
from storefront.repos.payment_repo import PaymentRepo
from storefront.services.event_bus import EventBus
from storefront.services.gateways import PaymentGateway
from storefront.services.inventory_service import InventoryService, ReserveLine
from storefront.services.pricing_service import PricingConfig, PricingService, Quote, QuoteOptions
from storefront.utils import settings
from storefront.utils.logging import get_logger
from storefront.utils.validation import digits_only, normalize_phone

logger = get_logger(__name__)

ORDER_NUMBER_ATTEMPTS = 6


@dataclass(frozen=True)
class CheckoutOptions:
    payment_method: str
    shipping_method: str = ShippingMethod.STANDARD
    coupon_code: str | None = None
    gift_wrap: bool = False
    note: str | None = None


@dataclass(frozen=True)
class ShippingAddress:
    first_name: str
    last_name: str
    phone: str
    province: str
    city: str
    address_line1: str
    country: str
    postal_code: str | None = None
    address_line2: str | None = None


@dataclass
class CheckoutResult:
    order_id: int
    order_number: str
    status: str
    quote: Quote
    payment: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        q = self.quote
        return {
            "order_id": self.order_id,
            "order_number": self.order_number,
            "status": self.status,
            "amounts": {
                "subtotal": q.subtotal,
                "discount": q.discount,
                "shipping": q.shipping,
                "gift_wrap": q.gift_wrap,
                "total": q.total,
                "currency_code": q.currency_code,
            },
            "payment": dict(self.payment),
            "quote": q.to_dict(),
        }


def normalize_address(address: AddressIn, default_country: str = "IR") -> ShippingAddress:
    addr = ShippingAddress(
        first_name=(address.first_name or "").strip(),
        last_name=(address.last_name or "").strip(),
        phone=normalize_phone(address.phone or ""),
        province=(address.province or "").strip(),
        city=(address.city or "").strip(),
        address_line1=(address.address_line1 or "").strip(),
        country=(address.country or default_country).strip().upper(),
        postal_code=digits_only(address.postal_code),
        address_line2=(address.address_line2 or "").strip() or None,
    )

    missing = [
        name
        for name in ("first_name", "last_name", "phone", "province", "city", "address_line1")
        if not getattr(addr, name)
    ]
    if missing:
        raise AppError.conflict("Shipping address is incomplete", "BAD_ADDRESS", missing=missing)
    return addr


class CheckoutService:
    def __init__(
        self,
        db: Session,
        bus: EventBus,
        gateway: PaymentGateway | None,
        pricing_config: PricingConfig | None = None,
        reserve_on_checkout: bool | None = None,
        allow_backorder: bool | None = None,
        order_prefix: str | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self.db = db
        self.bus = bus
        self.gateway = gateway
        self.pricing = PricingService(db, pricing_config)
        self.inventory = InventoryService(db, bus, allow_backorder=allow_backorder)
        self.reserve_on_checkout = (
            settings.INVENTORY_RESERVE_ON_CHECKOUT if reserve_on_checkout is None else reserve_on_checkout
        )
        self.order_prefix = order_prefix or settings.ORDER_PREFIX
        self.clock = clock or (lambda: datetime.now(timezone.utc))

        self.cart_repo = CartRepo(db)
        self.coupon_repo = CouponRepo(db)
        self.order_repo = OrderRepo(db)
        self.payment_repo = PaymentRepo(db)

    # query
    def prepare_quote(self, cart_id: int, options: QuoteOptions | None = None) -> Quote:
        """Read-only, safe to call as often as the client likes."""
        return self.pricing.quote_cart(cart_id, options)

    # command
    def create_order_from_cart(
        self,
        cart_id: int,
        user_id: int | None,
        address: AddressIn,
        options: CheckoutOptions,
        return_url: str | None = None,
        cancel_url: str | None = None,
    ) -> CheckoutResult:
        if options.payment_method not in (PaymentMethod.GATEWAY, PaymentMethod.COD):
            raise AppError.validation("Unknown payment method", field="payment_method")

        cart = self.cart_repo.get_cart(cart_id)
        if not cart:
            raise AppError.not_found("Cart not found", "CART_NOT_FOUND", cartId=cart_id)
        if cart.status != CartStatus.ACTIVE:
            raise AppError.conflict("Cart is not active", "CART_INACTIVE", cartId=cart_id)

        items = self.cart_repo.get_cart_items(cart_id)
        if not items:
            raise AppError.conflict("Cart is empty", "CART_EMPTY", cartId=cart_id)

        # totals are always recomputed here, never taken from the client
        shipping_method = (
            ShippingMethod.EXPRESS if options.shipping_method == ShippingMethod.EXPRESS else ShippingMethod.STANDARD
        )
        quote = self.pricing.quote_cart(
            cart_id,
            QuoteOptions(
                coupon_code=options.coupon_code,
                shipping_method=shipping_method,
                gift_wrap=options.gift_wrap,
                user_id=user_id,
            ),
        )

        addr = normalize_address(address, settings.ADDRESS_COUNTRY_DEFAULT)
        order_number = self.generate_order_number()

        is_cod = options.payment_method == PaymentMethod.COD
        status = OrderStatus.PROCESSING if is_cod else OrderStatus.AWAITING_PAYMENT
        applied = quote.applied_coupon
        coupon_code = applied.code if applied is not None and applied.ok else None
        currency = quote.currency_code

        with transaction(self.db):
            order = self.order_repo.add_order(
                OrderModel(
                    order_number=order_number,
                    user_id=user_id,
                    status=status,
                    shipping_method=shipping_method,
                    payment_method=options.payment_method,
                    coupon_code=coupon_code,
                    gift_wrap=bool(options.gift_wrap),
                    inventory_reserved=bool(self.reserve_on_checkout),
                    note=options.note,
                    subtotal=quote.subtotal,
                    discount_total=quote.discount,
                    shipping_total=quote.shipping,
                    gift_wrap_total=quote.gift_wrap,
                    total=quote.total,
                    currency_code=currency,
                    shipping_first_name=addr.first_name,
                    shipping_last_name=addr.last_name,
                    shipping_phone=addr.phone,
                    shipping_postal_code=addr.postal_code,
                    shipping_province=addr.province,
                    shipping_city=addr.city,
                    shipping_address_line1=addr.address_line1,
                    shipping_address_line2=addr.address_line2,
                    shipping_country=addr.country,
                    placed_at=self.clock(),
                )
            )

            self.order_repo.add_items(
                [
                    OrderItemModel(
                        order_id=order.id,
                        product_id=line.product_id,
                        variant_id=line.variant_id,
                        title=line.title,
                        variant_name=line.variant_name,
                        unit_price=line.unit_price,
                        quantity=line.quantity,
                        line_total=line.line_total,
                        currency_code=line.currency_code or currency,
                        position=position,
                    )
                    for position, line in enumerate(quote.lines)
                ]
            )

            payment = self.payment_repo.add_payment(
                PaymentModel(
                    order_id=order.id,
                    method=options.payment_method,
                    status=PaymentStatus.PENDING,
                    amount=quote.total,
                    currency_code=currency,
                )
            )

            if self.cart_repo.convert_if_active(cart_id) == 0:
                raise AppError.conflict("Cart is not active", "CART_INACTIVE", cartId=cart_id)
            # a converted cart keeps no lines, the order items are the record now
            self.cart_repo.clear_items(cart_id)

            if applied is not None and applied.ok and applied.id is not None:
                self.coupon_repo.add_redemption(applied.id, user_id, order.id)

            if self.reserve_on_checkout:
                self.inventory.apply_reservation(
                    ReserveLine(variant_id=line.variant_id, quantity=line.quantity)
                    for line in quote.lines
                    if line.variant_id is not None
                )

        self.db.expire(cart)

        logger.info(
            f"Order {order_number} (id {order.id}) created from cart {cart_id}, "
            f"total {quote.total} {currency}, payment {options.payment_method}"
        )

        result = CheckoutResult(
            order_id=order.id,
            order_number=order_number,
            status=status,
            quote=quote,
            payment={
                "id": payment.id,
                "method": options.payment_method,
                "status": PaymentStatus.PENDING,
                "amount": quote.total,
                "currency_code": currency,
                "authority": None,
            },
        )

        if not is_cod:
            self._init_gateway_payment(result, payment, addr, return_url, cancel_url)

        self.bus.emit(
            Events.ORDER_CREATED,
            {
                "orderId": order.id,
                "orderNumber": order_number,
                "userId": user_id,
                "paymentMethod": options.payment_method,
                "shippingMethod": shipping_method,
                "totals": {
                    "subtotal": quote.subtotal,
                    "discount": quote.discount,
                    "shipping": quote.shipping,
                    "giftWrap": quote.gift_wrap,
                    "total": quote.total,
                    "currency": currency,
                },
                "couponCode": coupon_code,
                "inventoryReserved": self.reserve_on_checkout,
            },
        )
        return result

    def generate_order_number(self) -> str:
        """PREFIX-YYYYMMDD-NNNNNN, random suffix retried on collision."""
        base = f"{self.order_prefix}-{self.clock():%Y%m%d}"
        for _ in range(ORDER_NUMBER_ATTEMPTS):
            candidate = f"{base}-{secrets.randbelow(1_000_000):06d}"
            if not self.order_repo.order_number_exists(candidate):
                return candidate

        fallback = f"{base}-{str(time.time_ns() // 1_000_000)[-6:]}"
        logger.warning(f"Order number collisions, falling back to {fallback}")
        return fallback

    # helpers
    def _init_gateway_payment(
        self,
        result: CheckoutResult,
        payment: PaymentModel,
        addr: ShippingAddress,
        return_url: str | None,
        cancel_url: str | None,
    ) -> None:
        recovery = {"orderId": result.order_id, "orderNumber": result.order_number, "paymentId": payment.id}

        if self.gateway is None:
            logger.error(f"No payment gateway configured, order {result.order_number} left pending")
            raise AppError.unavailable("Payment gateway is temporarily unavailable", **recovery)

        provider = self.gateway.name
        try:
            intent = self.gateway.create_intent(
                amount=result.quote.total,
                currency=result.quote.currency_code,
                metadata={"orderId": result.order_id, "orderNumber": result.order_number, "mobile": addr.phone},
                return_url=return_url or f"{settings.APP_URL}/payments/{provider}/return",
                cancel_url=cancel_url or f"{settings.APP_URL}/payments/{provider}/cancel",
            )
        except AppError as e:
            logger.error(
                f"Payment init failed for order {result.order_number} ({e.code}); order and payment kept for recovery"
            )
            raise AppError.unavailable(e.message, **recovery, provider=provider) from e
        except Exception as e:
            # the order is committed either way, the client still needs the recovery ids
            logger.exception(f"Payment init crashed for order {result.order_number} with {provider}")
            raise AppError.unavailable(
                "Payment gateway is temporarily unavailable", **recovery, provider=provider
            ) from e

        with transaction(self.db):
            payment.authority = intent.external_id
            payment.provider = provider

        result.payment.update(authority=intent.external_id, provider=provider)
        if intent.client_secret:
            result.payment["client_secret"] = intent.client_secret
        if intent.approval_url:
            result.payment["approval_url"] = intent.approval_url

        logger.info(f"Payment {payment.id} for order {result.order_number} initialized with {provider}")
