# storefront/data/seed.py
from sqlalchemy.orm import Session

from storefront.data.database import SessionLocal, transaction
from storefront.data.models import CouponModel, ProductModel, ProductVariantModel
from storefront.domain.constants import CouponType
from storefront.utils.logging import get_logger
from storefront.utils.settings import CURRENCY_DEFAULT

logger = get_logger(__name__)

DEMO_PRODUCTS = [
    # title, price, [(variant, price override, stock)]
    ("Koala plush", 250_000, [("small", None, 20), ("large", 400_000, 5)]),
    ("Eucalyptus tea", 120_000, [("50g", None, 100)]),
    ("Gift card", 1_000_000, []),
]

DEMO_COUPONS = [
    dict(code="SPRING20", type=CouponType.PERCENT, percent_value=20, min_subtotal=500_000, max_uses=100),
    dict(code="TAKE50K", type=CouponType.AMOUNT, amount_value=50_000, max_uses_per_user=1),
]


def seed_demo_data(db: Session) -> bool:
    """Insert demo catalog and coupons; only into an empty catalog."""
    if db.query(ProductModel).first():
        return False

    with transaction(db):
        for title, price, variants in DEMO_PRODUCTS:
            product = ProductModel(title=title, price=price, currency_code=CURRENCY_DEFAULT, is_active=True)
            db.add(product)
            for name, override, stock in variants:
                db.add(ProductVariantModel(product=product, variant_name=name, price=override, stock=stock))
        for coupon in DEMO_COUPONS:
            db.add(CouponModel(**coupon))

    logger.info(f"Seeded {len(DEMO_PRODUCTS)} products and {len(DEMO_COUPONS)} coupons")
    return True


def seed():
    db = SessionLocal()
    try:
        seed_demo_data(db)
    finally:
        db.close()


if __name__ == "__main__":
    seed()
