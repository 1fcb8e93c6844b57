import pytest

from storefront.domain.constants import Events
from storefront.domain.errors import AppError
from storefront.services.inventory_service import InventoryService, ReserveLine, merge_lines


@pytest.fixture
def inventory(db, bus):
    return InventoryService(db, bus, allow_backorder=False)


@pytest.fixture
def variants(make_product):
    product = make_product(variants=[("red", None, 3), ("blue", None, 10), ("green", None, 1)])
    return {v.variant_name: v for v in product.variants}


def test_reserve_more_than_available(inventory, variants):
    red = variants["red"]

    with pytest.raises(AppError) as exc:
        inventory.reserve([ReserveLine(red.id, 5)])

    assert exc.value.code == "OUT_OF_STOCK"
    assert exc.value.http_status == 409
    assert exc.value.meta == {"variantId": red.id, "requested": 5, "available": 3}
    assert inventory.get_stock(red.id) == 3


def test_reserve_is_all_or_nothing(inventory, variants):
    blue, green = variants["blue"], variants["green"]

    with pytest.raises(AppError) as exc:
        inventory.reserve([ReserveLine(blue.id, 2), ReserveLine(green.id, 5)])

    assert exc.value.meta["variantId"] == green.id
    assert inventory.get_stock(blue.id) == 10
    assert inventory.get_stock(green.id) == 1


def test_reserve_merges_lines_and_emits(inventory, recorder, variants):
    recorder.listen(Events.INVENTORY_RESERVED)
    red = variants["red"]

    result = inventory.reserve([ReserveLine(red.id, 1), ReserveLine(red.id, 2)])

    assert result.reserved == [ReserveLine(red.id, 3)]
    assert inventory.get_stock(red.id) == 0
    assert recorder.named(Events.INVENTORY_RESERVED) == [{"lines": [{"variantId": red.id, "quantity": 3}]}]


def test_reserve_unknown_variant_changes_nothing(inventory, variants):
    blue = variants["blue"]

    with pytest.raises(AppError) as exc:
        inventory.reserve([ReserveLine(blue.id, 1), ReserveLine(9999, 1)])

    assert exc.value.code == "VARIANT_NOT_FOUND"
    assert inventory.get_stock(blue.id) == 10


def test_reserve_rejects_bad_quantity(inventory, variants):
    with pytest.raises(AppError) as exc:
        inventory.reserve([ReserveLine(variants["red"].id, 0)])
    assert exc.value.code == "BAD_QTY"


def test_reserve_nothing_is_a_noop(inventory):
    assert inventory.reserve([]).reserved == []


def test_release_twice_adds_stock_twice(inventory, recorder, variants):
    recorder.listen(Events.INVENTORY_RELEASED)
    red = variants["red"]

    inventory.release([ReserveLine(red.id, 2)])
    inventory.release([ReserveLine(red.id, 2)])

    assert inventory.get_stock(red.id) == 3 + 2 * 2
    assert len(recorder.named(Events.INVENTORY_RELEASED)) == 2


def test_backorder_lets_stock_go_negative(db, variants):
    inventory = InventoryService(db, allow_backorder=True)
    red = variants["red"]

    inventory.reserve([ReserveLine(red.id, 5)])

    assert inventory.get_stock(red.id) == -2


def test_set_and_adjust_stock(inventory, recorder, variants):
    recorder.listen(Events.INVENTORY_SET, Events.INVENTORY_ADJUSTED)
    red = variants["red"]

    assert inventory.set_stock(red.id, 7) == 7
    assert inventory.adjust_stock(red.id, 3) == 10
    assert inventory.adjust_stock(red.id, -4) == 6

    with pytest.raises(AppError) as exc:
        inventory.adjust_stock(red.id, -7)
    assert exc.value.code == "OUT_OF_STOCK"
    assert exc.value.meta["available"] == 6
    assert inventory.get_stock(red.id) == 6

    assert recorder.named(Events.INVENTORY_SET) == [{"variantId": red.id, "stock": 7}]
    assert [p["stock"] for p in recorder.named(Events.INVENTORY_ADJUSTED)] == [10, 6]


def test_stock_validation(inventory, variants):
    with pytest.raises(AppError) as exc:
        inventory.set_stock(variants["red"].id, -1)
    assert exc.value.code == "BAD_STOCK"

    with pytest.raises(AppError) as exc:
        inventory.set_stock(9999, 1)
    assert exc.value.code == "VARIANT_NOT_FOUND"

    with pytest.raises(AppError) as exc:
        inventory.get_stock(9999)
    assert exc.value.code == "VARIANT_NOT_FOUND"

    with pytest.raises(AppError) as exc:
        inventory.adjust_stock(9999, 2)
    assert exc.value.code == "VARIANT_NOT_FOUND"


def test_reserve_for_order_skips_items_without_variant(db, inventory, make_product, fill_cart, place_order):
    tracked = make_product(title="Mug", price=90_000, variants=[("white", None, 4)])
    untracked = make_product(title="Gift card", price=500_000)
    white = tracked.variants[0]

    cart = fill_cart([(tracked, white, 3), (untracked, None, 1)])
    result = place_order(cart)

    reserved = inventory.reserve_for_order(result.order_id)

    assert reserved.reserved == [ReserveLine(white.id, 3)]
    assert len(reserved.skipped_item_ids) == 1
    assert inventory.get_stock(white.id) == 1

    inventory.release_for_order(result.order_id)
    assert inventory.get_stock(white.id) == 4


def test_reserve_for_unknown_order(inventory):
    with pytest.raises(AppError) as exc:
        inventory.reserve_for_order(12345)
    assert exc.value.code == "ORDER_NOT_FOUND"


def test_reserve_for_cart(inventory, make_product, fill_cart):
    product = make_product(variants=[("s", None, 5)])
    small = product.variants[0]
    cart = fill_cart([(product, small, 2)])

    inventory.reserve_for_cart(cart.id)

    assert inventory.get_stock(small.id) == 3


def test_verify_cart_availability(inventory, make_product, fill_cart):
    product = make_product(variants=[("s", None, 3)])
    small = product.variants[0]
    card = make_product(title="Gift card")
    cart = fill_cart([(product, small, 4), (card, None, 1)])

    report = inventory.verify_cart_availability(cart.id)

    assert report["ok"] is False
    assert report["unavailableCount"] == 1
    assert report["missingVariantCount"] == 1
    first = report["lines"][0]
    assert first["variantId"] == small.id
    assert (first["requested"], first["available"], first["ok"]) == (4, 3, False)
    # nothing was reserved
    assert inventory.get_stock(small.id) == 3


def test_merge_lines_keeps_first_seen_order():
    merged = merge_lines([ReserveLine(2, 1), ReserveLine(1, 1), ReserveLine(2, 4)])
    assert merged == [ReserveLine(2, 5), ReserveLine(1, 1)]
