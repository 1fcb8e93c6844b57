# storefront/services/pricing_service.py
"""
Quote engine.

    subtotal         = sum(unit_price * quantity)
    discount         = coupon subtotal discount, clamped to subtotal
    post_subtotal    = subtotal - discount
    shipping_base    = 0 if post_subtotal >= free_ship_threshold else base_shipping
    shipping_discount= min(shipping_base, coupon shipping discount)
    shipping         = shipping_base - shipping_discount (+ express surcharge)
    gift_wrap        = gift_wrap_price if requested
    tax              = 0
    total            = post_subtotal + shipping + gift_wrap + tax

Every amount is an int in minor currency units.
"""
import math
from dataclasses import dataclass, field, asdict
from datetime import datetime
from typing import Any, Dict, List, Sequence

from sqlalchemy.orm import Session

from storefront.domain.constants import ShippingMethod
from storefront.domain.errors import AppError
from storefront.repos.cart_repo import CartRepo
from storefront.repos.coupon_repo import CouponRepo
from storefront.services.coupon_evaluator import (
    CouponContext,
    CouponDefinition,
    CouponEffect,
    CouponReason,
    evaluate,
    normalize_coupon_code,
    sample_coupon,
)
from storefront.utils import settings
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class PricingConfig:
    free_ship_threshold: int = 1_000_000
    base_shipping: int = 45_000
    express_surcharge: int = 30_000
    gift_wrap_price: int = 20_000
    default_currency: str = "IRR"
    enable_sample_coupons: bool = True

    @classmethod
    def from_settings(cls) -> "PricingConfig":
        return cls(
            free_ship_threshold=settings.money_setting("PRICING_FREE_SHIP_THRESHOLD"),
            base_shipping=settings.money_setting("PRICING_BASE_SHIPPING"),
            express_surcharge=settings.money_setting("PRICING_EXPRESS_SURCHARGE"),
            gift_wrap_price=settings.money_setting("PRICING_GIFT_WRAP_PRICE"),
            default_currency=settings.CURRENCY_DEFAULT,
            enable_sample_coupons=settings.PRICING_ENABLE_SAMPLE_COUPONS,
        )


@dataclass(frozen=True)
class QuoteOptions:
    coupon_code: str | None = None
    shipping_method: str = ShippingMethod.STANDARD
    gift_wrap: bool = False
    user_id: int | None = None
    currency_code: str | None = None
    # pins coupon window checks, defaults to the wall clock
    now: datetime | None = None


@dataclass(frozen=True)
class QuoteLine:
    title: str
    unit_price: int
    quantity: int
    id: int | None = None
    product_id: int | None = None
    variant_id: int | None = None
    variant_name: str | None = None
    currency_code: str | None = None
    line_total: int = 0


@dataclass(frozen=True)
class AppliedCoupon:
    code: str
    ok: bool
    reason: str | None = None
    effect: CouponEffect | None = None
    id: int | None = None


@dataclass(frozen=True)
class Quote:
    lines: List[QuoteLine]
    subtotal: int
    discount: int
    post_subtotal: int
    shipping_base: int
    shipping_discount: int
    shipping: int
    gift_wrap: int
    tax: int
    total: int
    currency_code: str
    shipping_method: str
    free_shipping_threshold: int
    applied_coupon: AppliedCoupon | None = field(default=None)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _as_int(value, name: str) -> int:
    # fractional inputs are floored once here, everything after is int arithmetic
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise AppError.validation(f"{name} must be a number", field=name)
    if isinstance(value, int):
        return value
    if not math.isfinite(value):
        raise AppError.validation(f"{name} must be finite", field=name)
    return math.floor(value)


def normalize_line(line: QuoteLine) -> QuoteLine:
    unit_price = max(0, _as_int(line.unit_price, "unit_price"))
    quantity = max(1, _as_int(line.quantity, "quantity"))
    return QuoteLine(
        title=line.title,
        unit_price=unit_price,
        quantity=quantity,
        id=line.id,
        product_id=line.product_id,
        variant_id=line.variant_id,
        variant_name=line.variant_name,
        currency_code=line.currency_code,
        line_total=unit_price * quantity,
    )


def normalize_method(method: str | None) -> str:
    return ShippingMethod.EXPRESS if (method or "").lower() == ShippingMethod.EXPRESS else ShippingMethod.STANDARD


class PricingService:
    def __init__(self, db: Session, config: PricingConfig | None = None):
        self.db = db
        self.config = config or PricingConfig.from_settings()
        self.cart_repo = CartRepo(db)
        self.coupon_repo = CouponRepo(db)

    # query
    def quote_cart(self, cart_id: int, options: QuoteOptions | None = None) -> Quote:
        """Quote the snapshot lines currently stored on the cart."""
        items = self.cart_repo.get_cart_items(cart_id)
        lines = [
            QuoteLine(
                id=it.id,
                product_id=it.product_id,
                variant_id=it.variant_id,
                title=it.title,
                variant_name=it.variant_name,
                unit_price=it.unit_price,
                quantity=it.quantity,
                currency_code=it.currency_code,
            )
            for it in items
        ]
        return self.quote_lines(lines, options)

    def quote_lines(self, lines: Sequence[QuoteLine], options: QuoteOptions | None = None) -> Quote:
        options = options or QuoteOptions()
        cfg = self.config

        normalized = [normalize_line(line) for line in lines]
        subtotal = sum(line.line_total for line in normalized)

        applied, effect = None, CouponEffect()
        if options.coupon_code:
            applied = self._apply_coupon(options, subtotal)
            if applied.ok and applied.effect is not None:
                effect = applied.effect

        discount = min(subtotal, max(0, effect.discount))
        post_subtotal = max(0, subtotal - discount)

        # threshold is inclusive and measured after the discount
        shipping_base = 0 if post_subtotal >= cfg.free_ship_threshold else cfg.base_shipping
        shipping_discount = min(shipping_base, max(0, effect.shipping_discount))

        method = normalize_method(options.shipping_method)
        surcharge = cfg.express_surcharge if method == ShippingMethod.EXPRESS else 0
        shipping = max(0, shipping_base - shipping_discount) + surcharge

        gift_wrap = cfg.gift_wrap_price if options.gift_wrap else 0
        tax = 0
        total = max(0, post_subtotal + shipping + gift_wrap + tax)

        return Quote(
            lines=normalized,
            subtotal=subtotal,
            discount=discount,
            post_subtotal=post_subtotal,
            shipping_base=shipping_base,
            shipping_discount=shipping_discount,
            shipping=shipping,
            gift_wrap=gift_wrap,
            tax=tax,
            total=total,
            currency_code=self._pick_currency(normalized, options.currency_code),
            shipping_method=method,
            free_shipping_threshold=cfg.free_ship_threshold,
            applied_coupon=applied,
        )

    def load_coupon(self, code: str) -> CouponDefinition | None:
        row = self.coupon_repo.get_by_code(code)
        if row is not None:
            return CouponDefinition.from_model(row)
        if self.config.enable_sample_coupons:
            return sample_coupon(code)
        return None

    # helpers
    def _apply_coupon(self, options: QuoteOptions, subtotal: int) -> AppliedCoupon:
        code = normalize_coupon_code(options.coupon_code)
        coupon = self.load_coupon(code)

        if coupon is None:
            logger.info(f"Coupon {code} not found")
            return AppliedCoupon(code=code, ok=False, reason=CouponReason.INVALID)

        # shipping estimate uses the pre-discount subtotal, the final figure is recomputed later
        prelim_shipping = 0 if subtotal >= self.config.free_ship_threshold else self.config.base_shipping

        if coupon.is_sample:
            global_count, user_count = 0, (0 if options.user_id is not None else None)
        else:
            global_count = self.coupon_repo.count_redemptions(coupon.id)
            user_count = (
                self.coupon_repo.count_redemptions(coupon.id, options.user_id)
                if options.user_id is not None
                else None
            )

        decision = evaluate(
            coupon,
            CouponContext(
                subtotal=subtotal,
                shipping_base=prelim_shipping,
                global_redemptions=global_count,
                user_redemptions=user_count,
                now=options.now,
            ),
        )

        if not decision.ok:
            logger.info(f"Coupon {code} not applied: {decision.reason}")
            return AppliedCoupon(code=code, ok=False, reason=decision.reason, id=coupon.id)

        return AppliedCoupon(code=code, ok=True, effect=decision.effect, id=coupon.id)

    def _pick_currency(self, lines: Sequence[QuoteLine], requested: str | None) -> str:
        for line in lines:
            if line.currency_code:
                return line.currency_code
        return requested or self.config.default_currency
