# cart_service/domain/errors.py
from typing import Any, Dict


class CartError(Exception):
    """Bazowy blad domeny koszyka, mapowany 1:1 na odpowiedz HTTP."""

    status_code = 400
    kind = "cart_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_detail(self) -> Dict[str, Any]:
        return {"error": self.kind, "message": self.message}


class NotFound(CartError):
    status_code = 404
    kind = "not_found"


class ProductNotFound(NotFound):
    kind = "product_not_found"

    def __init__(self, product_id: str):
        super().__init__(f"Product with ID {product_id} not found.")
        self.product_id = product_id


class CartNotFound(NotFound):
    kind = "cart_not_found"

    def __init__(self, user_id: str):
        super().__init__(f"Cart for user {user_id} not found.")
        self.user_id = user_id


class ItemNotFound(NotFound):
    kind = "item_not_found"

    def __init__(self, product_id: str):
        super().__init__(f"Product {product_id} is not in the cart.")
        self.product_id = product_id


class ProductInactive(CartError):
    kind = "product_inactive"

    def __init__(self, product_id: str):
        super().__init__(f"Product {product_id} is not active and cannot be ordered.")
        self.product_id = product_id


class InsufficientStock(CartError):
    status_code = 409
    kind = "insufficient_stock"

    def __init__(self, product_id: str, requested: int, available: int):
        super().__init__(
            f"Insufficient stock for product {product_id}: "
            f"requested {requested}, available {available}."
        )
        self.product_id = product_id
        self.requested = requested
        self.available = available

    def to_detail(self) -> Dict[str, Any]:
        detail = super().to_detail()
        detail.update(requested=self.requested, available=self.available)
        return detail


class UpstreamUnavailable(CartError):
    status_code = 503
    kind = "upstream_unavailable"


class ValidationFailed(CartError):
    kind = "validation_failed"
