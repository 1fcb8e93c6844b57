# storefront/data/models/product.py
from sqlalchemy import Column, Integer, BigInteger, ForeignKey, String, Boolean
from sqlalchemy.orm import relationship

from storefront.data.database import Base


class ProductModel(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True)
    title = Column(String(255), nullable=False)
    price = Column(BigInteger, nullable=False)
    currency_code = Column(String(3), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)

    variants = relationship("ProductVariantModel", back_populates="product")


class ProductVariantModel(Base):
    """Sellable variant; `stock` is the single inventory counter for it."""

    __tablename__ = "product_variants"

    id = Column(Integer, primary_key=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    variant_name = Column(String(255), nullable=False)
    # overrides product price when set and > 0
    price = Column(BigInteger, nullable=True)
    stock = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)

    product = relationship("ProductModel", back_populates="variants")
