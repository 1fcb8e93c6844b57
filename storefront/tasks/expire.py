# storefront/tasks/expire.py
from datetime import datetime, timedelta, timezone

from sqlalchemy.orm import Session

from storefront.celery_worker import celery_app
from storefront.data.database import SessionLocal, transaction
from storefront.domain.constants import CartStatus
from storefront.repos.cart_repo import CartRepo
from storefront.utils.logging import get_logger
from storefront.utils.settings import CART_ABANDON_AFTER_SECONDS

logger = get_logger(__name__)


def abandon_stale_carts(db: Session, max_idle_seconds: int = CART_ABANDON_AFTER_SECONDS, now: datetime | None = None) -> int:
    """Mark ACTIVE carts untouched for longer than max_idle_seconds as ABANDONED."""
    now = now or datetime.now(timezone.utc)
    repo = CartRepo(db)

    carts = repo.list_stale_active(now - timedelta(seconds=max_idle_seconds))
    logger.info(f"Found {len(carts)} stale carts")

    abandoned = 0
    with transaction(db):
        for cart in carts:
            # a cart checked out meanwhile is left alone
            if cart.status == CartStatus.ACTIVE:
                cart.status = CartStatus.ABANDONED
                abandoned += 1
    return abandoned


@celery_app.task(name="storefront.tasks.expire.abandon_stale_carts_task")
def abandon_stale_carts_task():
    logger.info("Abandon stale carts task started")

    db = SessionLocal()
    try:
        count = abandon_stale_carts(db)
        logger.info(f"Marked {count} carts as abandoned")
        return count
    finally:
        db.close()
