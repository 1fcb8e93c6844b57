# storefront/repos/inventory_repo.py
from typing import Dict, Iterable

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from storefront.data.models.product import ProductVariantModel


class InventoryRepo:
    """
    Stock counter access. Mutations are single UPDATE statements so concurrent
    requests never overwrite each other's changes.
    """

    def __init__(self, db: Session):
        self.db = db

    def get_stock(self, variant_id: int) -> int | None:
        return self.db.execute(
            select(ProductVariantModel.stock).where(ProductVariantModel.id == variant_id)
        ).scalar_one_or_none()

    def exists(self, variant_id: int) -> bool:
        return self.get_stock(variant_id) is not None

    def get_stocks(self, variant_ids: Iterable[int]) -> Dict[int, int]:
        ids = list(variant_ids)
        if not ids:
            return {}
        rows = self.db.execute(
            select(ProductVariantModel.id, ProductVariantModel.stock).where(ProductVariantModel.id.in_(ids))
        ).all()
        return {row.id: row.stock for row in rows}

    def set_stock(self, variant_id: int, value: int) -> int:
        res = self.db.execute(
            update(ProductVariantModel).where(ProductVariantModel.id == variant_id).values(stock=value)
        )
        return res.rowcount

    def increment(self, variant_id: int, delta: int) -> int:
        res = self.db.execute(
            update(ProductVariantModel)
            .where(ProductVariantModel.id == variant_id)
            .values(stock=ProductVariantModel.stock + delta)
        )
        return res.rowcount

    def conditional_decrement(self, variant_id: int, qty: int) -> int:
        # UPDATE ... SET stock = stock - qty WHERE id = ? AND stock >= qty
        res = self.db.execute(
            update(ProductVariantModel)
            .where(ProductVariantModel.id == variant_id, ProductVariantModel.stock >= qty)
            .values(stock=ProductVariantModel.stock - qty)
        )
        return res.rowcount
