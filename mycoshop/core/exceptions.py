"""Storefront errors.

Every business rule violation is a ``ShopError`` subclass carrying a short
machine-checkable ``code`` and the HTTP status the API answers with, so the
routers never build error responses by hand.
"""


class ShopError(Exception):
    code = "SHOP_ERROR"
    status_code = 400
    default_message = "Request could not be processed"

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(ShopError):
    code = "VALIDATION_ERROR"
    default_message = "Validation error"


class InvalidQuantity(ValidationError):
    code = "INVALID_QUANTITY"
    default_message = "Quantity must be a whole number"


class NotFound(ShopError):
    code = "NOT_FOUND"
    status_code = 404
    default_message = "Resource not found"


class ProductNotFound(NotFound):
    code = "PRODUCT_NOT_FOUND"
    default_message = "Product not found"


class ItemNotFound(NotFound):
    code = "ITEM_NOT_FOUND"
    default_message = "Item not found in cart"


class OrderNotFound(NotFound):
    code = "ORDER_NOT_FOUND"
    default_message = "Order not found"


class OutOfStock(ShopError):
    code = "OUT_OF_STOCK"
    default_message = "Insufficient stock available"


class InsufficientStock(ShopError):
    code = "INSUFFICIENT_STOCK"
    default_message = "Insufficient stock"


class CartLimitExceeded(ShopError):
    code = "CART_LIMIT_EXCEEDED"
    default_message = "Cart item limit exceeded"


class ItemLimitExceeded(CartLimitExceeded):
    code = "ITEM_LIMIT_EXCEEDED"
    default_message = "Quantity limit per item exceeded"


class EmptyCart(ShopError):
    code = "EMPTY_CART"
    default_message = "Cart is empty"


class InvalidTransition(ShopError):
    code = "INVALID_TRANSITION"
    default_message = "Transition not allowed in the current state"


class ConcurrentModification(ShopError):
    code = "CONCURRENT_MODIFICATION"
    status_code = 409
    default_message = "The resource was modified by another request, please retry"


class GatewayError(ShopError):
    code = "GATEWAY_ERROR"
    status_code = 502
    default_message = "Payment gateway request failed"


class StoreUnavailable(ShopError):
    code = "STORE_UNAVAILABLE"
    status_code = 503
    default_message = "Store is temporarily unavailable, please try again later"


class PaymentDeclined(ShopError):
    code = "PAYMENT_DECLINED"
    status_code = 402
    default_message = "Payment was declined"


class Forbidden(ShopError):
    code = "FORBIDDEN"
    status_code = 403
    default_message = "This action is not allowed"
