# storefront/services/inventory_service.py
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from storefront.data.database import transaction
from storefront.domain.constants import Events
from storefront.domain.errors import AppError
from storefront.repos.cart_repo import CartRepo
from storefront.repos.inventory_repo import InventoryRepo
from storefront.repos.order_repo import OrderRepo
from storefront.services.event_bus import EventBus
from storefront.utils import settings
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class ReserveLine:
    variant_id: int
    quantity: int


@dataclass
class ReserveResult:
    reserved: List[ReserveLine] = field(default_factory=list)
    failures: List[Dict[str, Any]] = field(default_factory=list)
    skipped_item_ids: List[int] = field(default_factory=list)
    # reserve_for_order found the stock already taken
    already_reserved: bool = False


def merge_lines(lines: Iterable[ReserveLine]) -> List[ReserveLine]:
    """Sum quantities per variant, keeping first-seen order."""
    merged: Dict[int, int] = {}
    for line in lines:
        if isinstance(line.quantity, bool) or not isinstance(line.quantity, int) or line.quantity <= 0:
            raise AppError.bad_request("Quantity must be a positive integer", "BAD_QTY", variantId=line.variant_id)
        merged[line.variant_id] = merged.get(line.variant_id, 0) + line.quantity
    return [ReserveLine(variant_id=v, quantity=q) for v, q in merged.items()]


class InventoryService:
    """
    Stock ledger over product_variants.stock.

    Every decrement is a conditional UPDATE (`stock >= qty`) whose row count
    tells whether it applied, so two reservations racing for the last unit
    cannot both succeed. With backorders allowed the condition is dropped and
    stock may go negative.
    """

    def __init__(self, db: Session, bus: EventBus | None = None, allow_backorder: bool | None = None):
        self.db = db
        self.bus = bus
        self.allow_backorder = settings.INVENTORY_ALLOW_BACKORDER if allow_backorder is None else allow_backorder
        self.repo = InventoryRepo(db)
        self.order_repo = OrderRepo(db)
        self.cart_repo = CartRepo(db)

    # ---- stock ops ----

    def get_stock(self, variant_id: int) -> int:
        stock = self.repo.get_stock(variant_id)
        if stock is None:
            raise AppError.not_found("Variant not found", "VARIANT_NOT_FOUND", variantId=variant_id)
        return stock

    def set_stock(self, variant_id: int, value: int) -> int:
        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            raise AppError.bad_request("Stock must be a non-negative integer", "BAD_STOCK", variantId=variant_id)

        with transaction(self.db):
            if self.repo.set_stock(variant_id, value) == 0:
                raise AppError.not_found("Variant not found", "VARIANT_NOT_FOUND", variantId=variant_id)

        logger.info(f"Stock for variant {variant_id} set to {value}")
        self._emit(Events.INVENTORY_SET, {"variantId": variant_id, "stock": value})
        return value

    def adjust_stock(self, variant_id: int, delta: int) -> int:
        if isinstance(delta, bool) or not isinstance(delta, int):
            raise AppError.bad_request("Stock change must be an integer", "BAD_STOCK", variantId=variant_id)

        with transaction(self.db):
            if delta < 0 and not self.allow_backorder:
                rowcount = self.repo.conditional_decrement(variant_id, -delta)
                if rowcount == 0:
                    available = self.get_stock(variant_id)
                    raise AppError.conflict(
                        "Not enough stock",
                        "OUT_OF_STOCK",
                        variantId=variant_id,
                        requested=-delta,
                        available=available,
                    )
            elif self.repo.increment(variant_id, delta) == 0:
                raise AppError.not_found("Variant not found", "VARIANT_NOT_FOUND", variantId=variant_id)
            stock = self.get_stock(variant_id)

        logger.info(f"Stock for variant {variant_id} adjusted by {delta}, now {stock}")
        self._emit(Events.INVENTORY_ADJUSTED, {"variantId": variant_id, "delta": delta, "stock": stock})
        return stock

    # ---- batch reservations ----

    def apply_reservation(self, lines: Iterable[ReserveLine]) -> List[ReserveLine]:
        """
        Decrement stock for every line inside the caller's transaction.
        Does not commit; raising leaves rollback to the caller.
        """
        compact = merge_lines(lines)

        for line in compact:
            if not self.repo.exists(line.variant_id):
                raise AppError.not_found("Variant not found", "VARIANT_NOT_FOUND", variantId=line.variant_id)

        for line in compact:
            if self.allow_backorder:
                self.repo.increment(line.variant_id, -line.quantity)
                continue

            if self.repo.conditional_decrement(line.variant_id, line.quantity) == 0:
                available = self.repo.get_stock(line.variant_id) or 0
                raise AppError.conflict(
                    "Not enough stock",
                    "OUT_OF_STOCK",
                    variantId=line.variant_id,
                    requested=line.quantity,
                    available=available,
                )
        return compact

    def reserve(self, lines: Iterable[ReserveLine]) -> ReserveResult:
        """All-or-nothing: on any failure no stock counter is changed."""
        lines = list(lines)
        if not lines:
            return ReserveResult()

        try:
            with transaction(self.db):
                compact = self.apply_reservation(lines)
        except AppError as e:
            logger.warning(f"Reservation failed ({e.code}): {e.meta}")
            raise
        except SQLAlchemyError as e:
            logger.error(f"Reservation transaction failed: {e}")
            raise AppError.conflict("Could not reserve inventory", "RESERVE_FAILED") from e

        logger.info(f"Reserved {len(compact)} variant line(s)")
        self._emit(Events.INVENTORY_RESERVED, {"lines": [_line_dict(l) for l in compact]})
        return ReserveResult(reserved=compact)

    def release(self, lines: Iterable[ReserveLine]) -> List[ReserveLine]:
        """
        Put stock back for raw lines (returns, manual corrections). Nothing tracks
        these lines, so releasing them twice adds the stock back twice; orders go
        through release_for_order instead.
        """
        lines = list(lines)
        if not lines:
            return []

        compact = merge_lines(lines)
        with transaction(self.db):
            for line in compact:
                self.repo.increment(line.variant_id, line.quantity)

        logger.info(f"Released {len(compact)} variant line(s)")
        self._emit(Events.INVENTORY_RELEASED, {"lines": [_line_dict(l) for l in compact]})
        return compact

    # ---- order / cart helpers ----

    def reserve_for_order(self, order_id: int) -> ReserveResult:
        """
        Take stock for the order's tracked lines, once. The order's
        inventory_reserved flag flips in the same commit as the stock, so a
        second call reserves nothing and reports already_reserved.
        """
        lines, skipped = self._order_lines(order_id)
        if skipped:
            logger.warning(
                f"reserve_for_order {order_id}: {len(skipped)} item(s) without variant, inventory not tracked"
            )

        try:
            with transaction(self.db):
                if self.order_repo.set_inventory_reserved(order_id, True) == 0:
                    compact = None
                else:
                    compact = self.apply_reservation(lines)
        except AppError as e:
            logger.warning(f"Reservation for order {order_id} failed ({e.code}): {e.meta}")
            raise
        except SQLAlchemyError as e:
            logger.error(f"Reservation transaction for order {order_id} failed: {e}")
            raise AppError.conflict("Could not reserve inventory", "RESERVE_FAILED", orderId=order_id) from e
        self._expire_flag(order_id)

        if compact is None:
            logger.info(f"Order {order_id} already holds its stock")
            return ReserveResult(skipped_item_ids=skipped, already_reserved=True)

        logger.info(f"Reserved {len(compact)} variant line(s) for order {order_id}")
        if compact:
            self._emit(Events.INVENTORY_RESERVED, {"orderId": order_id, "lines": [_line_dict(l) for l in compact]})
        return ReserveResult(reserved=compact, skipped_item_ids=skipped)

    def release_for_order(self, order_id: int) -> List[ReserveLine]:
        """Return the order's stock if it holds any; otherwise a no-op."""
        lines, skipped = self._order_lines(order_id)
        if skipped:
            logger.warning(f"release_for_order {order_id}: skipped {len(skipped)} item(s) without variant")

        compact = merge_lines(lines)
        with transaction(self.db):
            if self.order_repo.set_inventory_reserved(order_id, False) == 0:
                compact = None
            else:
                for line in compact:
                    self.repo.increment(line.variant_id, line.quantity)
        self._expire_flag(order_id)

        if compact is None:
            logger.info(f"Order {order_id} holds no stock, nothing to release")
            return []

        logger.info(f"Released {len(compact)} variant line(s) for order {order_id}")
        if compact:
            self._emit(Events.INVENTORY_RELEASED, {"orderId": order_id, "lines": [_line_dict(l) for l in compact]})
        return compact

    def reserve_for_cart(self, cart_id: int) -> ReserveResult:
        lines = [
            ReserveLine(variant_id=it.variant_id, quantity=it.quantity)
            for it in self.cart_repo.get_cart_items(cart_id)
            if it.variant_id is not None
        ]
        return self.reserve(lines)

    def verify_cart_availability(self, cart_id: int) -> Dict[str, Any]:
        """Read-only check of a cart against current stock; reserves nothing."""
        items = self.cart_repo.get_cart_items(cart_id)

        requested_per_variant: Dict[int, int] = {}
        for it in items:
            if it.variant_id is not None:
                requested_per_variant[it.variant_id] = requested_per_variant.get(it.variant_id, 0) + it.quantity

        stocks = self.repo.get_stocks(requested_per_variant.keys())

        lines = []
        unavailable = 0
        missing_variant = 0
        for it in items:
            if it.variant_id is None:
                missing_variant += 1
                lines.append(
                    {"cartItemId": it.id, "variantId": None, "requested": it.quantity, "available": 0, "ok": True}
                )
                continue

            available = stocks.get(it.variant_id, 0)
            ok = self.allow_backorder or available >= requested_per_variant[it.variant_id]
            if not ok:
                unavailable += 1
            lines.append(
                {
                    "cartItemId": it.id,
                    "variantId": it.variant_id,
                    "requested": it.quantity,
                    "available": available,
                    "ok": ok,
                }
            )

        return {
            "ok": unavailable == 0,
            "lines": lines,
            "unavailableCount": unavailable,
            "missingVariantCount": missing_variant,
        }

    # ---- internals ----

    def _order_lines(self, order_id: int):
        if self.order_repo.get_order(order_id) is None:
            raise AppError.not_found("Order not found", "ORDER_NOT_FOUND", orderId=order_id)

        lines, skipped = [], []
        for it in self.order_repo.get_items(order_id):
            if it.variant_id is None:
                skipped.append(it.id)
                continue
            lines.append(ReserveLine(variant_id=it.variant_id, quantity=it.quantity))
        return lines, skipped

    def _expire_flag(self, order_id: int) -> None:
        order = self.order_repo.get_order(order_id)
        if order is not None:
            self.db.expire(order, ["inventory_reserved"])

    def _emit(self, event_name: str, payload: Dict[str, Any]) -> None:
        if self.bus is not None:
            self.bus.emit(event_name, payload)


def _line_dict(line: ReserveLine) -> Dict[str, int]:
    return {"variantId": line.variant_id, "quantity": line.quantity}
