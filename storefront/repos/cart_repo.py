# storefront/repos/cart_repo.py
from datetime import datetime, timezone
from typing import List

from sqlalchemy import select, update, delete
from sqlalchemy.orm import Session

from storefront.data.models.cart import CartModel
from storefront.data.models.cart_item import CartItemModel
from storefront.domain.constants import CartStatus


class CartRepo:
    def __init__(self, db: Session):
        self.db = db

    def get_cart(self, cart_id: int) -> CartModel | None:
        return self.db.get(CartModel, cart_id)

    def get_active_cart_by_user(self, user_id: int) -> CartModel | None:
        return self.db.execute(
            select(CartModel)
            .where(CartModel.user_id == user_id, CartModel.status == CartStatus.ACTIVE)
            .order_by(CartModel.id)
        ).scalars().first()

    def get_active_cart_by_anonymous(self, anonymous_id: str) -> CartModel | None:
        return self.db.execute(
            select(CartModel)
            .where(CartModel.anonymous_id == anonymous_id, CartModel.status == CartStatus.ACTIVE)
            .order_by(CartModel.id)
        ).scalars().first()

    def get_latest_cart_by_anonymous(self, anonymous_id: str, status: str) -> CartModel | None:
        return self.db.execute(
            select(CartModel)
            .where(CartModel.anonymous_id == anonymous_id, CartModel.status == status)
            .order_by(CartModel.id.desc())
        ).scalars().first()

    def create_cart(self, cart: CartModel) -> CartModel:
        self.db.add(cart)
        self.db.commit()
        self.db.refresh(cart)
        return cart

    def get_cart_items(self, cart_id: int) -> List[CartItemModel]:
        return list(
            self.db.execute(
                select(CartItemModel).where(CartItemModel.cart_id == cart_id).order_by(CartItemModel.id)
            ).scalars()
        )

    def get_cart_item(self, cart_id: int, item_id: int) -> CartItemModel | None:
        item = self.db.get(CartItemModel, item_id)
        if item is None or item.cart_id != cart_id:
            return None
        return item

    def find_line(self, cart_id: int, product_id: int, variant_id: int | None) -> CartItemModel | None:
        return self.db.execute(
            select(CartItemModel).where(
                CartItemModel.cart_id == cart_id,
                CartItemModel.product_id == product_id,
                CartItemModel.variant_id.is_(None) if variant_id is None else CartItemModel.variant_id == variant_id,
            )
        ).scalars().first()

    def add_cart_item(self, item: CartItemModel) -> CartItemModel:
        self.db.add(item)
        return item

    def delete_cart_item(self, item: CartItemModel) -> None:
        self.db.delete(item)

    def clear_items(self, cart_id: int) -> int:
        res = self.db.execute(delete(CartItemModel).where(CartItemModel.cart_id == cart_id))
        return res.rowcount or 0

    def delete_cart(self, cart: CartModel) -> None:
        self.db.delete(cart)

    def convert_if_active(self, cart_id: int) -> int:
        # 0 rows means a concurrent checkout already took this cart
        res = self.db.execute(
            update(CartModel)
            .where(CartModel.id == cart_id, CartModel.status == CartStatus.ACTIVE)
            .values(status=CartStatus.CONVERTED)
        )
        return res.rowcount

    def set_status(self, cart_id: int, status: str) -> int:
        res = self.db.execute(update(CartModel).where(CartModel.id == cart_id).values(status=status))
        return res.rowcount

    def touch(self, cart_id: int) -> int:
        # line edits only write cart_items, so the cart row is bumped by hand
        res = self.db.execute(
            update(CartModel).where(CartModel.id == cart_id).values(updated_at=datetime.now(timezone.utc))
        )
        return res.rowcount

    def list_stale_active(self, older_than: datetime) -> List[CartModel]:
        return list(
            self.db.execute(
                select(CartModel).where(
                    CartModel.status == CartStatus.ACTIVE,
                    CartModel.updated_at < older_than,
                )
            ).scalars()
        )

    def commit(self):
        self.db.commit()

    def rollback(self):
        self.db.rollback()
