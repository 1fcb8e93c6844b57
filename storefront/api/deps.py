# storefront/api/deps.py
from fastapi import Depends, Request
from sqlalchemy.orm import Session

from storefront.data.database import get_db
from storefront.services.cart_service import CartService
from storefront.services.checkout_service import CheckoutService
from storefront.services.event_bus import EventBus
from storefront.services.inventory_service import InventoryService
from storefront.services.order_service import OrderService
from storefront.services.payment_service import PaymentService
from storefront.services.pricing_service import PricingService


def get_bus(request: Request) -> EventBus:
    return request.app.state.bus


def get_cart_service(db: Session = Depends(get_db), bus: EventBus = Depends(get_bus)) -> CartService:
    return CartService(db, bus)


def get_pricing_service(request: Request, db: Session = Depends(get_db)) -> PricingService:
    return PricingService(db, request.app.state.pricing_config)


def get_inventory_service(db: Session = Depends(get_db), bus: EventBus = Depends(get_bus)) -> InventoryService:
    return InventoryService(db, bus)


def get_checkout_service(
    request: Request, db: Session = Depends(get_db), bus: EventBus = Depends(get_bus)
) -> CheckoutService:
    return CheckoutService(db, bus, request.app.state.gateway, pricing_config=request.app.state.pricing_config)


def get_order_service(db: Session = Depends(get_db), bus: EventBus = Depends(get_bus)) -> OrderService:
    return OrderService(db, bus)


def get_payment_service(db: Session = Depends(get_db), bus: EventBus = Depends(get_bus)) -> PaymentService:
    return PaymentService(db, bus)
