# storefront/data/models/cart.py
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, DateTime, Index, text
from sqlalchemy.orm import relationship

from storefront.data.database import Base
from storefront.domain.constants import CartStatus


def _utcnow():
    return datetime.now(timezone.utc)


# partial unique index predicate: only ACTIVE carts compete for an owner
_ACTIVE_ONLY = text(f"status = '{CartStatus.ACTIVE}'")


class CartModel(Base):
    __tablename__ = "carts"
    __table_args__ = (
        Index(
            "uq_carts_active_user",
            "user_id",
            unique=True,
            postgresql_where=_ACTIVE_ONLY,
            sqlite_where=_ACTIVE_ONLY,
        ),
        Index(
            "uq_carts_active_anonymous",
            "anonymous_id",
            unique=True,
            postgresql_where=_ACTIVE_ONLY,
            sqlite_where=_ACTIVE_ONLY,
        ),
    )

    id = Column(Integer, primary_key=True)
    # exactly one of user_id / anonymous_id identifies the owner
    user_id = Column(Integer, nullable=True, index=True)
    anonymous_id = Column(String(64), nullable=True, index=True)

    status = Column(String(20), nullable=False, default=CartStatus.ACTIVE)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    # bumped by every cart or line change, the stale-cart sweep keys on it
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    items = relationship(
        "CartItemModel",
        back_populates="cart",
        cascade="all, delete-orphan",
        order_by="CartItemModel.id",
    )
