# storefront/services/coupon_evaluator.py
"""
Coupon rules.

Pure functions: given a coupon definition, the amounts it would apply to and
how many times it was already redeemed, decide whether it applies and what it
takes off. Nothing here touches the database or records a redemption.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict

from storefront.domain.constants import CouponType


class CouponReason:
    INVALID = "INVALID"
    INACTIVE = "INACTIVE"
    NOT_STARTED = "NOT_STARTED"
    EXPIRED = "EXPIRED"
    MIN_SUBTOTAL_NOT_MET = "MIN_SUBTOTAL_NOT_MET"
    INVALID_DEFINITION = "INVALID_DEFINITION"
    MAX_USES_REACHED = "MAX_USES_REACHED"
    MAX_USES_PER_USER_REACHED = "MAX_USES_PER_USER_REACHED"


@dataclass(frozen=True)
class CouponDefinition:
    code: str
    type: str
    percent_value: int | None = None
    amount_value: int | None = None
    min_subtotal: int = 0
    max_uses: int | None = None
    max_uses_per_user: int | None = None
    starts_at: datetime | None = None
    ends_at: datetime | None = None
    is_active: bool = True
    id: int | None = None
    # built-in demo coupons have no redemption history
    is_sample: bool = False

    @classmethod
    def from_model(cls, row) -> "CouponDefinition":
        return cls(
            id=row.id,
            code=normalize_coupon_code(row.code),
            type=(row.type or CouponType.PERCENT).upper(),
            percent_value=row.percent_value,
            amount_value=row.amount_value,
            min_subtotal=row.min_subtotal or 0,
            max_uses=row.max_uses,
            max_uses_per_user=row.max_uses_per_user,
            starts_at=_aware(row.starts_at),
            ends_at=_aware(row.ends_at),
            is_active=bool(row.is_active),
        )


@dataclass(frozen=True)
class CouponContext:
    subtotal: int
    shipping_base: int
    global_redemptions: int = 0
    # None when there is no signed-in user
    user_redemptions: int | None = None
    now: datetime | None = None


@dataclass(frozen=True)
class CouponEffect:
    discount: int = 0
    shipping_discount: int = 0


@dataclass(frozen=True)
class CouponDecision:
    ok: bool
    reason: str | None = None
    effect: CouponEffect = field(default_factory=CouponEffect)

    def to_dict(self) -> Dict[str, Any]:
        if self.ok:
            return {
                "ok": True,
                "effect": {"discount": self.effect.discount, "shippingDiscount": self.effect.shipping_discount},
            }
        return {"ok": False, "reason": self.reason}


def normalize_coupon_code(code: str | None) -> str:
    return (code or "").strip().upper()


def _aware(value: datetime | None) -> datetime | None:
    # some drivers (sqlite) hand back naive datetimes, stored values are UTC
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _reject(reason: str) -> CouponDecision:
    return CouponDecision(ok=False, reason=reason)


def _definition_error(coupon: CouponDefinition) -> bool:
    if coupon.type == CouponType.PERCENT:
        return not (coupon.percent_value is not None and 0 < coupon.percent_value <= 100)
    if coupon.type == CouponType.AMOUNT:
        return not (coupon.amount_value is not None and coupon.amount_value > 0)
    return coupon.type != CouponType.FREE_SHIPPING


def compute_effect(coupon: CouponDefinition, subtotal: int, shipping_base: int) -> CouponEffect:
    subtotal = max(0, subtotal)
    shipping_base = max(0, shipping_base)

    if coupon.type == CouponType.PERCENT:
        pct = min(100, max(0, coupon.percent_value or 0))
        return CouponEffect(discount=subtotal * pct // 100)

    if coupon.type == CouponType.AMOUNT:
        return CouponEffect(discount=min(subtotal, max(0, coupon.amount_value or 0)))

    if coupon.type == CouponType.FREE_SHIPPING:
        # waives the base fee only, an express surcharge is never discounted
        return CouponEffect(shipping_discount=shipping_base)

    return CouponEffect()


def evaluate(coupon: CouponDefinition, context: CouponContext) -> CouponDecision:
    """Checks run in a fixed order and the first failing one is reported."""
    now = context.now or datetime.now(timezone.utc)

    if not coupon.is_active:
        return _reject(CouponReason.INACTIVE)

    if coupon.starts_at is not None and now < coupon.starts_at:
        return _reject(CouponReason.NOT_STARTED)

    if coupon.ends_at is not None and now > coupon.ends_at:
        return _reject(CouponReason.EXPIRED)

    if context.subtotal < (coupon.min_subtotal or 0):
        return _reject(CouponReason.MIN_SUBTOTAL_NOT_MET)

    if _definition_error(coupon):
        return _reject(CouponReason.INVALID_DEFINITION)

    if coupon.max_uses is not None and context.global_redemptions >= coupon.max_uses:
        return _reject(CouponReason.MAX_USES_REACHED)

    if (
        coupon.max_uses_per_user is not None
        and context.user_redemptions is not None
        and context.user_redemptions >= coupon.max_uses_per_user
    ):
        return _reject(CouponReason.MAX_USES_PER_USER_REACHED)

    return CouponDecision(ok=True, effect=compute_effect(coupon, context.subtotal, context.shipping_base))


_SAMPLE_COUPONS = {
    "KOALAW10": dict(type=CouponType.PERCENT, percent_value=10),
    "WELCOME15": dict(type=CouponType.PERCENT, percent_value=15, min_subtotal=400_000),
    "FREESHIP": dict(type=CouponType.FREE_SHIPPING),
}


def sample_coupon(code: str) -> CouponDefinition | None:
    """Demo coupons used when the code is not in the database and samples are enabled."""
    upper = normalize_coupon_code(code)
    fields = _SAMPLE_COUPONS.get(upper)
    if fields is None:
        return None
    return CouponDefinition(code=upper, is_sample=True, **fields)
