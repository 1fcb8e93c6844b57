# storefront/repos/coupon_repo.py
from sqlalchemy import select, func
from sqlalchemy.orm import Session

from storefront.data.models.coupon import CouponModel, CouponRedemptionModel


class CouponRepo:
    def __init__(self, db: Session):
        self.db = db

    def get_by_code(self, code: str) -> CouponModel | None:
        # codes are matched case-insensitively
        return self.db.execute(
            select(CouponModel).where(func.upper(CouponModel.code) == code.upper())
        ).scalars().first()

    def count_redemptions(self, coupon_id: int, user_id: int | None = None) -> int:
        stmt = select(func.count(CouponRedemptionModel.id)).where(CouponRedemptionModel.coupon_id == coupon_id)
        if user_id is not None:
            stmt = stmt.where(CouponRedemptionModel.user_id == user_id)
        return self.db.execute(stmt).scalar_one()

    def add_redemption(self, coupon_id: int, user_id: int | None, order_id: int) -> CouponRedemptionModel:
        redemption = CouponRedemptionModel(coupon_id=coupon_id, user_id=user_id, order_id=order_id)
        self.db.add(redemption)
        return redemption
