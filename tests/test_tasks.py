from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.exc import OperationalError

from storefront.data.models import CartModel
from storefront.domain.constants import CartStatus
from storefront.services.cart_service import CartService
from storefront.services.inventory_service import InventoryService
from storefront.services.notification_service import send_order_notification_task
from storefront.tasks.expire import abandon_stale_carts
from storefront.tasks.reserve import reserve_order_once

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


def test_abandon_stale_carts(db):
    old = NOW - timedelta(days=10)
    stale = CartModel(user_id=1, status=CartStatus.ACTIVE, created_at=old, updated_at=old)
    fresh = CartModel(user_id=2, status=CartStatus.ACTIVE, created_at=NOW, updated_at=NOW)
    converted = CartModel(user_id=3, status=CartStatus.CONVERTED, created_at=old, updated_at=old)
    db.add_all([stale, fresh, converted])
    db.commit()

    assert abandon_stale_carts(db, max_idle_seconds=7 * 24 * 3600, now=NOW) == 1

    db.expire_all()
    assert db.get(CartModel, stale.id).status == CartStatus.ABANDONED
    assert db.get(CartModel, fresh.id).status == CartStatus.ACTIVE
    assert db.get(CartModel, converted.id).status == CartStatus.CONVERTED


def test_reservation_runs_once_per_order(db, lock, make_product, fill_cart, place_order):
    product = make_product(variants=[("one", None, 5)])
    variant = product.variants[0]
    result = place_order(fill_cart([(product, variant, 2)]))

    first = reserve_order_once(db, result.order_id, lock, owner="worker-a")
    second = reserve_order_once(db, result.order_id, lock, owner="worker-b")

    assert first["status"] == "reserved"
    assert second["status"] == "skipped"
    assert InventoryService(db).get_stock(variant.id) == 3


def test_failed_reservation_can_be_retried(db, lock, make_product, fill_cart, place_order):
    product = make_product(variants=[("one", None, 1)])
    variant = product.variants[0]
    result = place_order(fill_cart([(product, variant, 2)]))

    failed = reserve_order_once(db, result.order_id, lock, owner="worker-a")

    assert failed["status"] == "failed"
    assert failed["code"] == "OUT_OF_STOCK"
    assert result.order_id not in lock.keys

    InventoryService(db).set_stock(variant.id, 4)
    assert reserve_order_once(db, result.order_id, lock)["status"] == "reserved"
    assert InventoryService(db).get_stock(variant.id) == 2


def test_notification_task_runs_locally():
    outcome = send_order_notification_task(11, "KL-11", 4)
    assert outcome == {"order_id": 11, "order_number": "KL-11", "user_id": 4, "status": "sent"}


def test_cart_in_use_is_not_abandoned(db, make_product):
    tea = make_product(title="Eucalyptus tea", price=120_000)
    created = datetime.now(timezone.utc) - timedelta(days=8)
    cart = CartModel(user_id=4, status=CartStatus.ACTIVE, created_at=created, updated_at=created)
    db.add(cart)
    db.commit()

    CartService(db).add_item(cart.id, tea.id, quantity=1)

    assert abandon_stale_carts(db, max_idle_seconds=7 * 24 * 3600) == 0
    db.expire_all()
    assert db.get(CartModel, cart.id).status == CartStatus.ACTIVE


def test_database_error_drops_the_claim(db, lock, monkeypatch, make_product, fill_cart, place_order):
    product = make_product(variants=[("one", None, 5)])
    result = place_order(fill_cart([(product, product.variants[0], 1)]))

    def broken(self, order_id):
        raise OperationalError("UPDATE product_variants", {}, Exception("connection lost"))

    monkeypatch.setattr(InventoryService, "reserve_for_order", broken)

    with pytest.raises(OperationalError):
        reserve_order_once(db, result.order_id, lock, owner="worker-a")
    assert result.order_id not in lock.keys

    monkeypatch.undo()
    assert reserve_order_once(db, result.order_id, lock, owner="worker-b")["status"] == "reserved"


def test_second_delivery_after_claim_expiry_takes_no_more_stock(db, lock, make_product, fill_cart, place_order):
    product = make_product(variants=[("one", None, 5)])
    variant = product.variants[0]
    result = place_order(fill_cart([(product, variant, 2)]))

    assert reserve_order_once(db, result.order_id, lock, owner="worker-a")["status"] == "reserved"
    lock.keys.clear()

    again = reserve_order_once(db, result.order_id, lock, owner="worker-b")

    assert again["status"] == "already_reserved"
    assert InventoryService(db).get_stock(variant.id) == 3
