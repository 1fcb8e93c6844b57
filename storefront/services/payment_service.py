# storefront/services/payment_service.py
from datetime import datetime, timezone

from sqlalchemy.orm import Session

from storefront.data.database import transaction
from storefront.data.models.payment import PaymentModel
from storefront.domain.constants import Events, OrderStatus, PaymentMethod, PaymentStatus
from storefront.domain.errors import AppError
from storefront.repos.order_repo import OrderRepo
from storefront.repos.payment_repo import PaymentRepo
from storefront.services.event_bus import EventBus
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


class PaymentService:
    """
    Settles payments created at checkout. A payment leaves PENDING exactly
    once; every transition is a conditional UPDATE on the current status.
    """

    def __init__(self, db: Session, bus: EventBus | None = None):
        self.db = db
        self.bus = bus
        self.repo = PaymentRepo(db)
        self.order_repo = OrderRepo(db)

    def get_payment(self, payment_id: int) -> PaymentModel:
        payment = self.repo.get_payment(payment_id)
        if not payment:
            raise AppError.not_found("Payment not found", "PAYMENT_NOT_FOUND", paymentId=payment_id)
        return payment

    def find_by_authority(self, authority: str) -> PaymentModel:
        payment = self.repo.get_by_authority(authority)
        if not payment:
            raise AppError.not_found("Payment not found", "PAYMENT_NOT_FOUND", authority=authority)
        return payment

    def mark_paid(self, payment_id: int, transaction_ref: str | None = None) -> PaymentModel:
        payment = self.get_payment(payment_id)

        with transaction(self.db):
            changed = self.repo.transition(
                payment_id,
                PaymentStatus.PENDING,
                {"status": PaymentStatus.PAID, "transaction_ref": transaction_ref, "paid_at": datetime.now(timezone.utc)},
            )
            if changed == 0:
                raise AppError.conflict(
                    "Payment is not pending", "BAD_STATE", paymentId=payment_id, status=payment.status
                )
            # cod orders are already PROCESSING and stay there
            self.order_repo.update_status(payment.order_id, OrderStatus.AWAITING_PAYMENT, OrderStatus.PAID)

        self.db.refresh(payment)
        order = self.order_repo.get_order(payment.order_id)
        self.db.refresh(order)

        logger.info(f"Payment {payment_id} for order {order.order_number} paid ({transaction_ref})")
        if self.bus is not None:
            self.bus.emit(
                Events.PAYMENT_SUCCEEDED,
                {
                    "paymentId": payment.id,
                    "orderId": order.id,
                    "orderNumber": order.order_number,
                    "amount": payment.amount,
                    "currency": payment.currency_code,
                    "transactionRef": transaction_ref,
                },
            )
        return payment

    def mark_failed(self, payment_id: int, reason: str | None = None) -> PaymentModel:
        payment = self.get_payment(payment_id)

        with transaction(self.db):
            changed = self.repo.transition(
                payment_id,
                PaymentStatus.PENDING,
                {"status": PaymentStatus.FAILED, "failure_reason": (reason or "")[:255] or None},
            )
            if changed == 0:
                raise AppError.conflict(
                    "Payment is not pending", "BAD_STATE", paymentId=payment_id, status=payment.status
                )

        self.db.refresh(payment)
        logger.warning(f"Payment {payment_id} for order {payment.order_id} failed: {reason}")
        if self.bus is not None:
            self.bus.emit(
                Events.PAYMENT_FAILED,
                {"paymentId": payment.id, "orderId": payment.order_id, "reason": reason},
            )
        return payment

    def confirm_cod_paid(self, order_id: int, transaction_ref: str | None = None) -> PaymentModel:
        """Cash collected on delivery."""
        if self.order_repo.get_order(order_id) is None:
            raise AppError.not_found("Order not found", "ORDER_NOT_FOUND", orderId=order_id)

        payment = self.repo.get_pending_for_order(order_id, PaymentMethod.COD)
        if not payment:
            raise AppError.conflict("No pending cash payment for order", "BAD_STATE", orderId=order_id)
        return self.mark_paid(payment.id, transaction_ref)
