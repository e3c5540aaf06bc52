# Import all models to register them with SQLModel
from mycoshop.models.product import Product, ProductSize, ProductCategory, Size
from mycoshop.models.cart import Cart, CartItem, CartStatus
from mycoshop.models.order import Order, OrderItem, OrderStatusHistory, OrderStatus, PaymentMethod, PaymentStatus
from mycoshop.models.payment import Payment, PaymentRecordStatus

__all__ = [
    "Product",
    "ProductSize",
    "ProductCategory",
    "Size",
    "Cart",
    "CartItem",
    "CartStatus",
    "Order",
    "OrderItem",
    "OrderStatusHistory",
    "OrderStatus",
    "PaymentMethod",
    "PaymentStatus",
    "Payment",
    "PaymentRecordStatus",
]
