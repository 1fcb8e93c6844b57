# import all models so SQLAlchemy registers them in Base.metadata

from storefront.data.models.cart import CartModel
from storefront.data.models.cart_item import CartItemModel
from storefront.data.models.product import ProductModel, ProductVariantModel
from storefront.data.models.coupon import CouponModel, CouponRedemptionModel
from storefront.data.models.order import OrderModel, OrderItemModel
from storefront.data.models.payment import PaymentModel

__all__ = [
    "CartModel",
    "CartItemModel",
    "ProductModel",
    "ProductVariantModel",
    "CouponModel",
    "CouponRedemptionModel",
    "OrderModel",
    "OrderItemModel",
    "PaymentModel",
]
