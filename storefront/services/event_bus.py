# storefront/services/event_bus.py
from collections import defaultdict
from typing import Any, Callable, Dict, List

from storefront.utils.logging import get_logger

logger = get_logger(__name__)

Handler = Callable[[Dict[str, Any]], Any]


class EventBus:
    """
    In-process publish/subscribe.

    Built once at startup and handed to the services that emit or consume
    events. Dispatch is synchronous, in subscription order. A handler that
    raises is logged and skipped; the emitter and the remaining handlers are
    not affected. Nothing is persisted, so an event is lost if the process
    dies before dispatch and handlers must tolerate redelivery.
    """

    def __init__(self):
        self._handlers: Dict[str, List[Handler]] = defaultdict(list)

    def subscribe(self, event_name: str, handler: Handler) -> None:
        self._handlers[event_name].append(handler)
        logger.debug(f"Handler {getattr(handler, '__name__', handler)!s} bound to {event_name}")

    def handlers(self, event_name: str) -> List[Handler]:
        return list(self._handlers.get(event_name, ()))

    def emit(self, event_name: str, payload: Dict[str, Any]) -> int:
        """Returns how many handlers completed without raising."""
        delivered = 0
        for handler in self.handlers(event_name):
            try:
                handler(payload)
                delivered += 1
            except Exception as e:
                logger.error(f"Handler for {event_name} failed: {e!r}")
        return delivered
