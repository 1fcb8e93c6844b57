import pytest

from storefront.domain.constants import Events, OrderStatus, PaymentMethod, PaymentStatus
from storefront.domain.errors import AppError
from storefront.services.inventory_service import InventoryService
from storefront.services.order_service import OrderService, can_transition
from storefront.services.payment_service import PaymentService


@pytest.fixture
def plush(make_product):
    return make_product(title="Koala plush", price=250_000, variants=[("small", None, 5)])


@pytest.fixture
def orders(db, bus):
    return OrderService(db, bus)


@pytest.fixture
def payments(db, bus):
    return PaymentService(db, bus)


def test_transition_table():
    assert can_transition(OrderStatus.AWAITING_PAYMENT, OrderStatus.PAID)
    assert can_transition(OrderStatus.SHIPPED, OrderStatus.DELIVERED)
    assert not can_transition(OrderStatus.AWAITING_PAYMENT, OrderStatus.SHIPPED)
    assert not can_transition(OrderStatus.DELIVERED, OrderStatus.CANCELLED)
    assert not can_transition(OrderStatus.CANCELLED, OrderStatus.PAID)


def test_get_order(orders, plush, fill_cart, place_order):
    result = place_order(fill_cart([(plush, plush.variants[0], 1)]), user_id=1)

    assert orders.get_order(result.order_id).order_number == result.order_number
    assert orders.get_by_number(result.order_number).id == result.order_id

    with pytest.raises(AppError) as exc:
        orders.get_order(result.order_id, user_id=2)
    assert exc.value.code == "ORDER_NOT_FOUND"

    with pytest.raises(AppError):
        orders.get_by_number("KL-00000000-000000")


def test_status_updates(orders, recorder, plush, fill_cart, place_order):
    recorder.listen(Events.ORDER_STATUS_CHANGED)
    result = place_order(fill_cart([(plush, plush.variants[0], 1)]))

    order = orders.update_status(result.order_id, OrderStatus.SHIPPED)
    assert order.status == OrderStatus.SHIPPED

    with pytest.raises(AppError) as exc:
        orders.update_status(result.order_id, OrderStatus.PROCESSING)
    assert exc.value.code == "BAD_STATE"
    assert exc.value.http_status == 409

    assert recorder.named(Events.ORDER_STATUS_CHANGED) == [
        {
            "orderId": result.order_id,
            "orderNumber": result.order_number,
            "from": OrderStatus.PROCESSING,
            "to": OrderStatus.SHIPPED,
        }
    ]


def test_cancel_releases_reserved_stock(db, orders, checkout_service, plush, fill_cart, place_order):
    small = plush.variants[0]
    service = checkout_service(reserve_on_checkout=True)
    result = place_order(fill_cart([(plush, small, 2)]), service=service)
    assert InventoryService(db).get_stock(small.id) == 3

    order = orders.cancel_order(result.order_id, reason="customer changed mind")

    assert order.status == OrderStatus.CANCELLED
    assert InventoryService(db).get_stock(small.id) == 5

    with pytest.raises(AppError) as exc:
        orders.cancel_order(result.order_id)
    assert exc.value.code == "BAD_STATE"


def test_cancel_without_reservation_keeps_stock(db, orders, recorder, plush, fill_cart, place_order):
    recorder.listen(Events.INVENTORY_RELEASED)
    small = plush.variants[0]
    result = place_order(fill_cart([(plush, small, 2)]))

    order = orders.cancel_order(result.order_id)

    assert order.status == OrderStatus.CANCELLED
    assert order.inventory_reserved is False
    assert InventoryService(db).get_stock(small.id) == 5
    assert recorder.named(Events.INVENTORY_RELEASED) == []


def test_cancel_after_async_reservation_returns_it_once(db, orders, plush, fill_cart, place_order):
    small = plush.variants[0]
    result = place_order(fill_cart([(plush, small, 2)]))
    inventory = InventoryService(db)
    inventory.reserve_for_order(result.order_id)
    assert inventory.get_stock(small.id) == 3

    orders.cancel_order(result.order_id)

    assert inventory.get_stock(small.id) == 5
    assert inventory.release_for_order(result.order_id) == []
    assert inventory.get_stock(small.id) == 5


def test_mark_paid(payments, orders, recorder, plush, fill_cart, place_order):
    recorder.listen(Events.PAYMENT_SUCCEEDED)
    result = place_order(fill_cart([(plush, plush.variants[0], 1)]), payment_method=PaymentMethod.GATEWAY)
    payment_id = result.payment["id"]

    payment = payments.mark_paid(payment_id, transaction_ref="ch_42")

    assert payment.status == PaymentStatus.PAID
    assert payment.transaction_ref == "ch_42"
    assert payment.paid_at is not None
    assert orders.get_order(result.order_id).status == OrderStatus.PAID

    [event] = recorder.named(Events.PAYMENT_SUCCEEDED)
    assert event["orderNumber"] == result.order_number
    assert event["amount"] == result.quote.total

    with pytest.raises(AppError) as exc:
        payments.mark_paid(payment_id)
    assert exc.value.code == "BAD_STATE"


def test_mark_failed(payments, recorder, plush, fill_cart, place_order):
    recorder.listen(Events.PAYMENT_FAILED)
    result = place_order(fill_cart([(plush, plush.variants[0], 1)]), payment_method=PaymentMethod.GATEWAY)

    payment = payments.mark_failed(result.payment["id"], reason="card declined")

    assert payment.status == PaymentStatus.FAILED
    assert payment.failure_reason == "card declined"
    assert recorder.named(Events.PAYMENT_FAILED)[0]["reason"] == "card declined"

    with pytest.raises(AppError) as exc:
        payments.mark_paid(payment.id)
    assert exc.value.code == "BAD_STATE"


def test_find_by_authority(payments, plush, fill_cart, place_order):
    result = place_order(fill_cart([(plush, plush.variants[0], 1)]), payment_method=PaymentMethod.GATEWAY)

    assert payments.find_by_authority(result.payment["authority"]).id == result.payment["id"]

    with pytest.raises(AppError) as exc:
        payments.find_by_authority("missing")
    assert exc.value.code == "PAYMENT_NOT_FOUND"


def test_confirm_cod_paid(payments, orders, plush, fill_cart, place_order):
    result = place_order(fill_cart([(plush, plush.variants[0], 1)]), payment_method=PaymentMethod.COD)

    payment = payments.confirm_cod_paid(result.order_id, transaction_ref="courier-7")

    assert payment.status == PaymentStatus.PAID
    assert payment.method == PaymentMethod.COD
    # cash orders are already being processed
    assert orders.get_order(result.order_id).status == OrderStatus.PROCESSING

    with pytest.raises(AppError) as exc:
        payments.confirm_cod_paid(result.order_id)
    assert exc.value.code == "BAD_STATE"

    with pytest.raises(AppError) as exc:
        payments.confirm_cod_paid(9999)
    assert exc.value.code == "ORDER_NOT_FOUND"
