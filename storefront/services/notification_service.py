# storefront/services/notification_service.py
from storefront.celery_worker import celery_app
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


class NotificationService:
    """
    Customer notifications, sent from the Celery worker so a slow mail or SMS
    provider never holds up checkout.
    """

    @staticmethod
    def send_order_notification(order_id: int, order_number: str, user_id: int | None = None):
        return send_order_notification_task.delay(order_id, order_number, user_id)


@celery_app.task(name="storefront.services.notification_service.send_order_notification_task")
def send_order_notification_task(order_id: int, order_number: str, user_id: int | None = None):
    """Only logs for now; the delivery channel is not chosen yet."""
    recipient = f"user {user_id}" if user_id is not None else "guest"
    logger.info(f"[NOTIFICATION] {recipient}: order {order_number} (id {order_id}) received")
    return {"order_id": order_id, "order_number": order_number, "user_id": user_id, "status": "sent"}
