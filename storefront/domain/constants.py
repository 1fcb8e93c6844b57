# storefront/domain/constants.py
# Status and method values as stored in the database.


class CartStatus:
    ACTIVE = "ACTIVE"
    CONVERTED = "CONVERTED"
    ABANDONED = "ABANDONED"


class CouponType:
    PERCENT = "PERCENT"
    AMOUNT = "AMOUNT"
    FREE_SHIPPING = "FREE_SHIPPING"


class ShippingMethod:
    STANDARD = "standard"
    EXPRESS = "express"


class PaymentMethod:
    GATEWAY = "gateway"
    COD = "cod"


class OrderStatus:
    AWAITING_PAYMENT = "AWAITING_PAYMENT"
    PROCESSING = "PROCESSING"
    PAID = "PAID"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"


class PaymentStatus:
    PENDING = "PENDING"
    PAID = "PAID"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"


class Events:
    ORDER_CREATED = "order.created"
    ORDER_STATUS_CHANGED = "order.status.changed"
    PAYMENT_SUCCEEDED = "payment.succeeded"
    PAYMENT_FAILED = "payment.failed"
    CART_MERGED = "cart.merged"
    INVENTORY_RESERVED = "inventory.reserved"
    INVENTORY_RELEASED = "inventory.released"
    INVENTORY_ADJUSTED = "inventory.stock.adjusted"
    INVENTORY_SET = "inventory.stock.set"
