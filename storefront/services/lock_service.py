# storefront/services/lock_service.py
import redis

from storefront.utils.logging import get_logger
from storefront.utils.retry import redis_retry
from storefront.utils.settings import REDIS_URL

logger = get_logger(__name__)

# compare-and-delete in one step, so only the owner can drop its key
_RELEASE_LUA = """
if redis.call('GET', KEYS[1]) == ARGV[1] then
    return redis.call('DEL', KEYS[1])
else
    return 0
end
"""

# a finished reservation stays marked for a day
RESERVATION_MARK_TTL = 24 * 60 * 60


class LockService:
    """
    Once-guards for order side effects.

    The `order.created` event and the Celery task carrying it can both be
    delivered more than once. Before reserving stock for an order the worker
    claims `order:{id}:reservation` with SET NX; a second claimant sees the
    key and skips.
    """

    def __init__(self, url: str | None = None, client: redis.Redis | None = None):
        self.redis = client or redis.Redis.from_url(url or REDIS_URL, decode_responses=True)

    @staticmethod
    def _key(order_id: int) -> str:
        return f"order:{order_id}:reservation"

    @redis_retry()
    def claim_order_reservation(self, order_id: int, owner: str, ttl: int = RESERVATION_MARK_TTL) -> bool:
        key = self._key(order_id)
        logger.info(f"Claim {key} for {owner}")
        return bool(self.redis.set(name=key, value=owner, nx=True, ex=ttl))

    @redis_retry()
    def release_order_reservation(self, order_id: int, owner: str) -> bool:
        # used when the reservation failed, so a retry may claim again
        key = self._key(order_id)
        logger.info(f"Release {key} for {owner}")
        return bool(self.redis.eval(_RELEASE_LUA, 1, key, owner))
