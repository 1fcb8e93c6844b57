# storefront/services/order_service.py
from sqlalchemy.orm import Session

from storefront.data.database import transaction
from storefront.data.models.order import OrderModel
from storefront.domain.constants import Events, OrderStatus
from storefront.domain.errors import AppError
from storefront.repos.order_repo import OrderRepo
from storefront.services.event_bus import EventBus
from storefront.services.inventory_service import InventoryService
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

TRANSITIONS = {
    OrderStatus.AWAITING_PAYMENT: {OrderStatus.PAID, OrderStatus.CANCELLED},
    OrderStatus.PAID: {OrderStatus.PROCESSING, OrderStatus.CANCELLED},
    OrderStatus.PROCESSING: {OrderStatus.SHIPPED, OrderStatus.CANCELLED},
    OrderStatus.SHIPPED: {OrderStatus.DELIVERED},
}


def can_transition(current: str, new: str) -> bool:
    return new in TRANSITIONS.get(current, set())


class OrderService:
    """
    Order queries and status changes after checkout.
    Orders themselves are created by CheckoutService.
    """

    def __init__(self, db: Session, bus: EventBus | None = None, inventory: InventoryService | None = None):
        self.db = db
        self.bus = bus
        self.repo = OrderRepo(db)
        self.inventory = inventory or InventoryService(db, bus)

    def get_order(self, order_id: int, user_id: int | None = None) -> OrderModel:
        order = self.repo.get_order(order_id)
        if not order:
            raise AppError.not_found("Order not found", "ORDER_NOT_FOUND", orderId=order_id)

        # someone else's order looks the same as a missing one
        if user_id is not None and order.user_id != user_id:
            raise AppError.not_found("Order not found", "ORDER_NOT_FOUND", orderId=order_id)
        return order

    def get_by_number(self, order_number: str) -> OrderModel:
        order = self.repo.get_by_number(order_number)
        if not order:
            raise AppError.not_found("Order not found", "ORDER_NOT_FOUND", orderNumber=order_number)
        return order

    def update_status(self, order_id: int, new_status: str) -> OrderModel:
        order = self.get_order(order_id)
        old_status = order.status

        if not can_transition(old_status, new_status):
            raise AppError.conflict(
                f"Cannot move order from {old_status} to {new_status}",
                "BAD_STATE",
                orderId=order_id,
                status=old_status,
            )

        with transaction(self.db):
            if self.repo.update_status(order_id, old_status, new_status) == 0:
                raise AppError.conflict(
                    "Order status changed concurrently", "BAD_STATE", orderId=order_id, status=old_status
                )
        self.db.refresh(order)

        logger.info(f"Order {order.order_number} status {old_status} -> {new_status}")
        self._emit_status(order, old_status)
        return order

    def cancel_order(self, order_id: int, reason: str | None = None) -> OrderModel:
        order = self.update_status(order_id, OrderStatus.CANCELLED)

        # stock comes back on a best-effort basis, the cancellation itself stands
        try:
            self.inventory.release_for_order(order_id)
        except AppError as e:
            logger.error(f"Could not release inventory for cancelled order {order.order_number}: {e.code}")

        logger.info(f"Order {order.order_number} cancelled" + (f": {reason}" if reason else ""))
        return order

    def _emit_status(self, order: OrderModel, old_status: str) -> None:
        if self.bus is None:
            return
        self.bus.emit(
            Events.ORDER_STATUS_CHANGED,
            {
                "orderId": order.id,
                "orderNumber": order.order_number,
                "from": old_status,
                "to": order.status,
            },
        )
