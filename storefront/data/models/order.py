# storefront/data/models/order.py
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, BigInteger, ForeignKey, String, Boolean, DateTime
from sqlalchemy.orm import relationship

from storefront.data.database import Base
from storefront.domain.constants import OrderStatus


class OrderModel(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True)
    order_number = Column(String(40), nullable=False, unique=True)
    user_id = Column(Integer, nullable=True, index=True)

    status = Column(String(20), nullable=False, default=OrderStatus.AWAITING_PAYMENT)
    shipping_method = Column(String(20), nullable=False)
    payment_method = Column(String(20), nullable=False)
    coupon_code = Column(String(64), nullable=True)
    gift_wrap = Column(Boolean, nullable=False, default=False)
    note = Column(String(1000), nullable=True)
    # set in the same commit that takes the stock, cleared by the one that returns it
    inventory_reserved = Column(Boolean, nullable=False, default=False)

    # amounts frozen from the quote
    subtotal = Column(BigInteger, nullable=False)
    discount_total = Column(BigInteger, nullable=False, default=0)
    shipping_total = Column(BigInteger, nullable=False, default=0)
    gift_wrap_total = Column(BigInteger, nullable=False, default=0)
    total = Column(BigInteger, nullable=False)
    currency_code = Column(String(3), nullable=False)

    # address snapshot
    shipping_first_name = Column(String(100), nullable=False)
    shipping_last_name = Column(String(100), nullable=False)
    shipping_phone = Column(String(32), nullable=False)
    shipping_postal_code = Column(String(20), nullable=True)
    shipping_province = Column(String(100), nullable=False)
    shipping_city = Column(String(100), nullable=False)
    shipping_address_line1 = Column(String(255), nullable=False)
    shipping_address_line2 = Column(String(255), nullable=True)
    shipping_country = Column(String(2), nullable=False)

    placed_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))

    items = relationship("OrderItemModel", back_populates="order", order_by="OrderItemModel.position")
    payments = relationship("PaymentModel", back_populates="order", order_by="PaymentModel.id")


class OrderItemModel(Base):
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(Integer, nullable=True)
    variant_id = Column(Integer, nullable=True)

    title = Column(String(255), nullable=False)
    variant_name = Column(String(255), nullable=True)
    unit_price = Column(BigInteger, nullable=False)
    quantity = Column(Integer, nullable=False)
    line_total = Column(BigInteger, nullable=False)
    currency_code = Column(String(3), nullable=False)
    position = Column(Integer, nullable=False, default=0)

    order = relationship("OrderModel", back_populates="items")
