# storefront/repos/payment_repo.py
from typing import List

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from storefront.data.models.payment import PaymentModel
from storefront.domain.constants import PaymentStatus


class PaymentRepo:
    def __init__(self, db: Session):
        self.db = db

    def add_payment(self, payment: PaymentModel) -> PaymentModel:
        self.db.add(payment)
        self.db.flush()
        return payment

    def get_payment(self, payment_id: int) -> PaymentModel | None:
        return self.db.get(PaymentModel, payment_id)

    def get_by_authority(self, authority: str) -> PaymentModel | None:
        return self.db.execute(
            select(PaymentModel).where(PaymentModel.authority == authority)
        ).scalars().first()

    def list_for_order(self, order_id: int) -> List[PaymentModel]:
        return list(
            self.db.execute(
                select(PaymentModel).where(PaymentModel.order_id == order_id).order_by(PaymentModel.id)
            ).scalars()
        )

    def get_pending_for_order(self, order_id: int, method: str) -> PaymentModel | None:
        return self.db.execute(
            select(PaymentModel).where(
                PaymentModel.order_id == order_id,
                PaymentModel.method == method,
                PaymentModel.status == PaymentStatus.PENDING,
            )
        ).scalars().first()

    def transition(self, payment_id: int, old_status: str, values: dict) -> int:
        res = self.db.execute(
            update(PaymentModel)
            .where(PaymentModel.id == payment_id, PaymentModel.status == old_status)
            .values(**values)
        )
        return res.rowcount
