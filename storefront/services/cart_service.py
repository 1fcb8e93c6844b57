# storefront/services/cart_service.py
from typing import Any, Dict

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from storefront.data.database import transaction
from storefront.data.models.cart import CartModel
from storefront.data.models.cart_item import CartItemModel
from storefront.data.models.product import ProductModel, ProductVariantModel
from storefront.domain.constants import CartStatus, Events
from storefront.domain.errors import AppError
from storefront.repos.cart_repo import CartRepo
from storefront.services.event_bus import EventBus
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


class CartService:
    """
    Carts for signed-in users and guests.

    Lines hold a snapshot of title and price taken when the product is added.
    The snapshot is refreshed only when the same product/variant is added
    again, never on read.
    """

    def __init__(self, db: Session, bus: EventBus | None = None):
        self.db = db
        self.bus = bus
        self.repo = CartRepo(db)

    # ---- query ----

    def get_cart(self, cart_id: int) -> CartModel:
        cart = self.repo.get_cart(cart_id)
        if not cart:
            raise AppError.not_found("Cart not found", "CART_NOT_FOUND", cartId=cart_id)
        return cart

    # ---- lookup or create ----

    def get_or_create_for_user(self, user_id: int) -> CartModel:
        existing = self.repo.get_active_cart_by_user(user_id)
        if existing:
            return existing

        try:
            created = self.repo.create_cart(CartModel(user_id=user_id, status=CartStatus.ACTIVE))
        except IntegrityError:
            # lost the race against a concurrent create, use the winner's cart
            self.repo.rollback()
            existing = self.repo.get_active_cart_by_user(user_id)
            if not existing:
                raise
            return existing

        logger.info(f"Created cart {created.id} for user {user_id}")
        return created

    def get_or_create_for_anonymous(self, anonymous_id: str) -> CartModel:
        """
        The guest's ACTIVE cart; else its last ABANDONED cart, reopened; else a
        new one. A CONVERTED cart is never reopened, it already became an order.
        """
        existing = self.repo.get_active_cart_by_anonymous(anonymous_id)
        if existing:
            return existing

        abandoned = self.repo.get_latest_cart_by_anonymous(anonymous_id, CartStatus.ABANDONED)
        try:
            if abandoned is not None:
                with transaction(self.db):
                    abandoned.status = CartStatus.ACTIVE
                logger.info(f"Reopened abandoned guest cart {abandoned.id}")
                return abandoned

            created = self.repo.create_cart(CartModel(anonymous_id=anonymous_id, status=CartStatus.ACTIVE))
        except IntegrityError:
            # a concurrent request opened the guest's cart first
            self.repo.rollback()
            existing = self.repo.get_active_cart_by_anonymous(anonymous_id)
            if not existing:
                raise
            return existing

        logger.info(f"Created guest cart {created.id}")
        return created

    # ---- item commands ----

    def add_item(self, cart_id: int, product_id: int, variant_id: int | None = None, quantity: int = 1) -> CartItemModel:
        if quantity <= 0:
            raise AppError.validation("Quantity must be greater than 0", field="quantity")

        cart = self.get_cart(cart_id)
        if cart.status != CartStatus.ACTIVE:
            raise AppError.conflict("Cart is not active", "CART_INACTIVE", cartId=cart_id)

        snap = self._snapshot(product_id, variant_id)

        with transaction(self.db):
            existing = self.repo.find_line(cart_id, product_id, variant_id)
            if existing:
                logger.info(
                    f"Product {product_id}/{variant_id} already in cart {cart_id}, "
                    f"quantity {existing.quantity} -> {existing.quantity + quantity}"
                )
                existing.quantity += quantity
                # re-adding refreshes the snapshot
                existing.unit_price = snap["unit_price"]
                existing.title = snap["title"]
                existing.variant_name = snap["variant_name"]
                existing.currency_code = snap["currency_code"]
                item = existing
            else:
                item = self.repo.add_cart_item(
                    CartItemModel(cart_id=cart_id, product_id=product_id, variant_id=variant_id, quantity=quantity, **snap)
                )
            self.repo.touch(cart_id)

        self.db.expire(cart, ["items", "updated_at"])
        return item

    def update_item(self, cart_id: int, item_id: int, quantity: int) -> CartItemModel | None:
        """Returns None when the quantity removed the line."""
        item = self.repo.get_cart_item(cart_id, item_id)
        if not item:
            raise AppError.not_found("Cart item not found", "ITEM_NOT_FOUND", itemId=item_id)

        with transaction(self.db):
            if quantity <= 0:
                self.repo.delete_cart_item(item)
            else:
                item.quantity = quantity
            self.repo.touch(cart_id)

        if quantity <= 0:
            self.db.expire_all()
            return None
        return item

    def remove_item(self, cart_id: int, item_id: int) -> None:
        item = self.repo.get_cart_item(cart_id, item_id)
        if not item:
            raise AppError.not_found("Cart item not found", "ITEM_NOT_FOUND", itemId=item_id)

        with transaction(self.db):
            self.repo.delete_cart_item(item)
            self.repo.touch(cart_id)
        self.db.expire_all()

    def clear(self, cart_id: int) -> int:
        self.get_cart(cart_id)
        with transaction(self.db):
            count = self.repo.clear_items(cart_id)
            self.repo.touch(cart_id)
        self.db.expire_all()
        return count

    def set_status(self, cart_id: int, status: str) -> CartModel:
        if status not in (CartStatus.ACTIVE, CartStatus.CONVERTED, CartStatus.ABANDONED):
            raise AppError.validation("Unknown cart status", field="status")
        cart = self.get_cart(cart_id)
        try:
            with transaction(self.db):
                cart.status = status
        except IntegrityError:
            # reactivating while the owner already has another ACTIVE cart
            raise AppError.conflict("Owner already has an active cart", "CART_CONFLICT", cartId=cart_id)
        return cart

    # ---- merge ----

    def merge_anonymous_into_user(self, user_id: int, anonymous_id: str) -> CartModel:
        """
        Fold the guest cart into the user's active cart: lines with the same
        product and variant have their quantities summed (the user line keeps
        its price snapshot), the rest are moved over, and the guest cart is
        deleted. All of it commits together.
        """
        guest = self.repo.get_active_cart_by_anonymous(anonymous_id)
        user_cart = self.get_or_create_for_user(user_id)

        if guest is None or guest.id == user_cart.id:
            return user_cart

        guest_id = guest.id
        with transaction(self.db):
            index = {(it.product_id, it.variant_id): it for it in self.repo.get_cart_items(user_cart.id)}
            moved, summed = 0, 0

            for gi in self.repo.get_cart_items(guest_id):
                current = index.get((gi.product_id, gi.variant_id))
                if current is not None:
                    current.quantity += gi.quantity
                    summed += 1
                else:
                    gi.cart = user_cart
                    gi.cart_id = user_cart.id
                    moved += 1

            self.db.flush()
            self.db.expire(guest, ["items"])
            self.repo.delete_cart(guest)
            self.repo.touch(user_cart.id)

        logger.info(
            f"Merged guest cart {guest_id} into cart {user_cart.id} of user {user_id}: "
            f"{summed} summed, {moved} moved"
        )
        if self.bus is not None:
            self.bus.emit(
                Events.CART_MERGED,
                {"userId": user_id, "anonymousId": anonymous_id, "targetCartId": user_cart.id, "sourceCartId": guest_id},
            )

        self.db.expire(user_cart)
        return user_cart

    # ---- helpers ----

    def _snapshot(self, product_id: int, variant_id: int | None) -> Dict[str, Any]:
        product = self.db.get(ProductModel, product_id)
        if not product or not product.is_active:
            raise AppError.not_found("Product not found", "PRODUCT_NOT_FOUND", productId=product_id)

        unit_price = product.price
        variant_name = None
        if variant_id is not None:
            variant = self.db.get(ProductVariantModel, variant_id)
            if not variant or variant.product_id != product_id or not variant.is_active:
                raise AppError.not_found("Variant not found", "VARIANT_NOT_FOUND", variantId=variant_id)
            variant_name = variant.variant_name
            if variant.price is not None and variant.price > 0:
                unit_price = variant.price

        return {
            "title": product.title,
            "variant_name": variant_name,
            "unit_price": unit_price,
            "currency_code": product.currency_code,
        }
