from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

from storefront.domain.constants import CouponType
from storefront.services.coupon_evaluator import (
    CouponContext,
    CouponDefinition,
    CouponReason,
    compute_effect,
    evaluate,
    normalize_coupon_code,
    sample_coupon,
)

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def ctx(subtotal=500_000, shipping_base=45_000, **kw):
    return CouponContext(subtotal=subtotal, shipping_base=shipping_base, now=NOW, **kw)


def percent(value=10, **kw):
    return CouponDefinition(code="P", type=CouponType.PERCENT, percent_value=value, **kw)


def test_inactive_wins_over_later_failures():
    coupon = percent(
        is_active=False,
        ends_at=NOW - timedelta(days=1),
        min_subtotal=10_000_000,
    )
    decision = evaluate(coupon, ctx())
    assert not decision.ok
    assert decision.reason == CouponReason.INACTIVE


def test_window_checks():
    assert evaluate(percent(starts_at=NOW + timedelta(hours=1)), ctx()).reason == CouponReason.NOT_STARTED
    assert evaluate(percent(ends_at=NOW - timedelta(seconds=1)), ctx()).reason == CouponReason.EXPIRED
    # both bounds are inclusive
    assert evaluate(percent(starts_at=NOW, ends_at=NOW), ctx()).ok


def test_expired_reported_before_min_subtotal():
    coupon = percent(ends_at=NOW - timedelta(days=1), min_subtotal=10_000_000)
    assert evaluate(coupon, ctx()).reason == CouponReason.EXPIRED


def test_min_subtotal():
    coupon = percent(min_subtotal=400_000)
    assert evaluate(coupon, ctx(subtotal=399_999)).reason == CouponReason.MIN_SUBTOTAL_NOT_MET
    assert evaluate(coupon, ctx(subtotal=400_000)).ok


def test_invalid_definitions():
    assert evaluate(percent(0), ctx()).reason == CouponReason.INVALID_DEFINITION
    assert evaluate(percent(101), ctx()).reason == CouponReason.INVALID_DEFINITION
    amount = CouponDefinition(code="A", type=CouponType.AMOUNT, amount_value=None)
    assert evaluate(amount, ctx()).reason == CouponReason.INVALID_DEFINITION
    unknown = CouponDefinition(code="X", type="BOGO")
    assert evaluate(unknown, ctx()).reason == CouponReason.INVALID_DEFINITION


def test_usage_limits():
    coupon = percent(max_uses=5, max_uses_per_user=1)
    assert evaluate(coupon, ctx(global_redemptions=5)).reason == CouponReason.MAX_USES_REACHED
    assert evaluate(coupon, ctx(global_redemptions=4, user_redemptions=1)).reason == (
        CouponReason.MAX_USES_PER_USER_REACHED
    )
    # no signed-in user, the per-user limit does not apply
    assert evaluate(coupon, ctx(global_redemptions=4, user_redemptions=None)).ok


def test_percent_discount_is_floored():
    decision = evaluate(percent(10), ctx(subtotal=333))
    assert decision.ok
    assert decision.effect.discount == 33
    assert decision.effect.shipping_discount == 0


def test_amount_discount_clamped_to_subtotal():
    coupon = CouponDefinition(code="A", type=CouponType.AMOUNT, amount_value=90_000)
    assert compute_effect(coupon, 50_000, 45_000).discount == 50_000
    assert compute_effect(coupon, 500_000, 45_000).discount == 90_000


def test_free_shipping_waives_base_fee_only():
    coupon = CouponDefinition(code="F", type=CouponType.FREE_SHIPPING)
    effect = evaluate(coupon, ctx(shipping_base=45_000)).effect
    assert effect.discount == 0
    assert effect.shipping_discount == 45_000


def test_decision_to_dict():
    assert evaluate(percent(10), ctx(subtotal=1000)).to_dict() == {
        "ok": True,
        "effect": {"discount": 100, "shippingDiscount": 0},
    }
    assert evaluate(percent(10, is_active=False), ctx()).to_dict() == {"ok": False, "reason": "INACTIVE"}


def test_sample_coupons():
    welcome = sample_coupon(" welcome15 ")
    assert welcome.code == "WELCOME15"
    assert welcome.is_sample
    assert welcome.percent_value == 15
    assert welcome.min_subtotal == 400_000
    assert sample_coupon("FREESHIP").type == CouponType.FREE_SHIPPING
    assert sample_coupon("NOPE") is None


def test_from_model_treats_naive_datetimes_as_utc():
    row = SimpleNamespace(
        id=3,
        code="spring",
        type="percent",
        percent_value=20,
        amount_value=None,
        min_subtotal=None,
        max_uses=None,
        max_uses_per_user=None,
        starts_at=datetime(2024, 1, 1),
        ends_at=None,
        is_active=True,
    )
    coupon = CouponDefinition.from_model(row)
    assert coupon.code == "SPRING"
    assert coupon.type == CouponType.PERCENT
    assert coupon.min_subtotal == 0
    assert coupon.starts_at.tzinfo is timezone.utc
    assert evaluate(coupon, ctx()).ok


def test_normalize_coupon_code():
    assert normalize_coupon_code("  koalaw10 ") == "KOALAW10"
    assert normalize_coupon_code(None) == ""
