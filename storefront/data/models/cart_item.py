# storefront/data/models/cart_item.py
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, BigInteger, ForeignKey, String, DateTime
from sqlalchemy.orm import relationship

from storefront.data.database import Base


class CartItemModel(Base):
    __tablename__ = "cart_items"

    id = Column(Integer, primary_key=True)
    cart_id = Column(Integer, ForeignKey("carts.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(Integer, nullable=False)
    variant_id = Column(Integer, nullable=True)

    # snapshot of the product/variant at add time
    title = Column(String(255), nullable=False)
    variant_name = Column(String(255), nullable=True)
    unit_price = Column(BigInteger, nullable=False)
    currency_code = Column(String(3), nullable=False)

    quantity = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))

    cart = relationship("CartModel", back_populates="items")
