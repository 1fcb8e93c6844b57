# storefront/tasks/reserve.py
import uuid

from redis.exceptions import RedisError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from storefront.celery_worker import celery_app
from storefront.data.database import SessionLocal
from storefront.domain.errors import AppError
from storefront.services.inventory_service import InventoryService
from storefront.services.lock_service import LockService
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


def reserve_order_once(db: Session, order_id: int, lock: LockService, owner: str | None = None) -> dict:
    """
    Reserve stock for an order unless another delivery already did.

    On failure the claim is dropped again so a later retry can reserve.
    """
    owner = owner or uuid.uuid4().hex
    if not lock.claim_order_reservation(order_id, owner):
        logger.info(f"Reservation for order {order_id} already claimed, skipping")
        return {"order_id": order_id, "status": "skipped"}

    try:
        result = InventoryService(db).reserve_for_order(order_id)
    except AppError as e:
        lock.release_order_reservation(order_id, owner)
        logger.error(f"Reservation for order {order_id} failed: {e.code} {e.meta}")
        return {"order_id": order_id, "status": "failed", "code": e.code, "meta": e.meta}
    except Exception:
        # database or driver trouble, drop the claim so the celery retry can take it
        db.rollback()
        lock.release_order_reservation(order_id, owner)
        logger.exception(f"Reservation for order {order_id} crashed, claim released")
        raise

    if result.already_reserved:
        return {"order_id": order_id, "status": "already_reserved"}

    return {
        "order_id": order_id,
        "status": "reserved",
        "lines": len(result.reserved),
        "skipped_items": result.skipped_item_ids,
    }


@celery_app.task(
    name="storefront.tasks.reserve.reserve_inventory_for_order_task",
    autoretry_for=(RedisError, SQLAlchemyError),
    retry_backoff=True,
    max_retries=3,
)
def reserve_inventory_for_order_task(order_id: int):
    db = SessionLocal()
    try:
        return reserve_order_once(db, order_id, LockService())
    finally:
        db.close()
