# storefront/events/handlers.py
from typing import Any, Dict

from storefront.domain.constants import Events
from storefront.services.event_bus import EventBus
from storefront.services.notification_service import send_order_notification_task
from storefront.tasks.reserve import reserve_inventory_for_order_task
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


def bind_order_created_handler(bus: EventBus, reserve_task=None, notify_task=None) -> None:
    """
    Hand `order.created` off to the worker: stock reservation (unless checkout
    already reserved inside its transaction) and the customer notification.
    Enqueue failures are logged; the order is already committed.
    """
    reserve_task = reserve_task or reserve_inventory_for_order_task
    notify_task = notify_task or send_order_notification_task

    def on_order_created(payload: Dict[str, Any]) -> None:
        order_id = payload.get("orderId")
        order_number = payload.get("orderNumber")

        if not payload.get("inventoryReserved"):
            try:
                reserve_task.delay(order_id)
            except Exception as e:
                logger.error(f"Could not enqueue reservation for order {order_number}: {e!r}")

        try:
            notify_task.delay(order_id, order_number, payload.get("userId"))
        except Exception as e:
            logger.error(f"Could not enqueue notification for order {order_number}: {e!r}")

    bus.subscribe(Events.ORDER_CREATED, on_order_created)
