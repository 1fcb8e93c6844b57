# storefront/data/models/coupon.py
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, BigInteger, ForeignKey, String, Boolean, DateTime

from storefront.data.database import Base


class CouponModel(Base):
    __tablename__ = "coupons"

    id = Column(Integer, primary_key=True)
    code = Column(String(64), nullable=False, unique=True)
    type = Column(String(20), nullable=False)  # PERCENT, AMOUNT, FREE_SHIPPING

    percent_value = Column(Integer, nullable=True)
    amount_value = Column(BigInteger, nullable=True)
    min_subtotal = Column(BigInteger, nullable=False, default=0)

    max_uses = Column(Integer, nullable=True)
    max_uses_per_user = Column(Integer, nullable=True)

    starts_at = Column(DateTime(timezone=True), nullable=True)
    ends_at = Column(DateTime(timezone=True), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)


class CouponRedemptionModel(Base):
    __tablename__ = "coupon_redemptions"

    id = Column(Integer, primary_key=True)
    coupon_id = Column(Integer, ForeignKey("coupons.id"), nullable=False, index=True)
    user_id = Column(Integer, nullable=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=True)
    redeemed_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
