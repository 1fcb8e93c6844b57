# storefront/repos/order_repo.py
from typing import List

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from storefront.data.models.order import OrderModel, OrderItemModel


class OrderRepo:
    def __init__(self, db: Session):
        self.db = db

    def add_order(self, order: OrderModel) -> OrderModel:
        self.db.add(order)
        # flush for the primary key, items and payment reference it
        self.db.flush()
        return order

    def add_items(self, items: List[OrderItemModel]) -> List[OrderItemModel]:
        self.db.add_all(items)
        return items

    def get_order(self, order_id: int) -> OrderModel | None:
        return self.db.get(OrderModel, order_id)

    def get_by_number(self, order_number: str) -> OrderModel | None:
        return self.db.execute(
            select(OrderModel).where(OrderModel.order_number == order_number)
        ).scalars().first()

    def order_number_exists(self, order_number: str) -> bool:
        return self.db.execute(
            select(OrderModel.id).where(OrderModel.order_number == order_number)
        ).first() is not None

    def get_items(self, order_id: int) -> List[OrderItemModel]:
        return list(
            self.db.execute(
                select(OrderItemModel).where(OrderItemModel.order_id == order_id).order_by(OrderItemModel.position)
            ).scalars()
        )

    def update_status(self, order_id: int, old_status: str, new_status: str) -> int:
        # guarded on the current status, 0 rows means someone else moved it
        res = self.db.execute(
            update(OrderModel)
            .where(OrderModel.id == order_id, OrderModel.status == old_status)
            .values(status=new_status)
        )
        return res.rowcount

    def set_inventory_reserved(self, order_id: int, reserved: bool) -> int:
        # flips only from the opposite value, 0 rows means there was nothing to flip
        res = self.db.execute(
            update(OrderModel)
            .where(OrderModel.id == order_id, OrderModel.inventory_reserved == (not reserved))
            .values(inventory_reserved=reserved)
        )
        return res.rowcount
