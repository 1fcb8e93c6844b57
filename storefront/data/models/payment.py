# storefront/data/models/payment.py
from sqlalchemy import Column, Integer, BigInteger, ForeignKey, String, DateTime
from sqlalchemy.orm import relationship

from storefront.data.database import Base
from storefront.domain.constants import PaymentStatus


class PaymentModel(Base):
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)

    method = Column(String(20), nullable=False)  # gateway, cod
    status = Column(String(20), nullable=False, default=PaymentStatus.PENDING)
    provider = Column(String(20), nullable=True)
    amount = Column(BigInteger, nullable=False)
    currency_code = Column(String(3), nullable=False)

    authority = Column(String(255), nullable=True, index=True)
    transaction_ref = Column(String(255), nullable=True)
    failure_reason = Column(String(255), nullable=True)
    paid_at = Column(DateTime(timezone=True), nullable=True)

    order = relationship("OrderModel", back_populates="payments")
