# app/domain/errors.py
"""
Bledy domenowe.

Walidacja -> 400, brak zasobu -> 404, brak dostepu -> 403,
konflikt (stan magazynu, przejscie statusu) -> 409,
naruszenie integralnosci danych miedzy podsystemami -> 500,
awaria magazynu danych w trakcie operacji -> 503.
"""
from typing import Any, Iterable


class DomainError(Exception):
    code = "domain_error"

    def __init__(self, message: str, **extra: Any):
        super().__init__(message)
        self.message = message
        self.extra = extra

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.code, "detail": self.message, **self.extra}


# --- walidacja ---
class ValidationFailedError(DomainError, ValueError):
    code = "validation_failed"


class EmptyCartError(ValidationFailedError):
    code = "cart_empty"

    def __init__(self, cart_id: str):
        super().__init__(f"Cart {cart_id} is empty", cart_id=cart_id)


class InvalidQuantityError(ValidationFailedError):
    code = "invalid_quantity"


class InvalidAddressError(ValidationFailedError):
    code = "invalid_address"


class InvalidIdentityError(ValidationFailedError):
    code = "invalid_identity"


# --- brak zasobu ---
class NotFoundError(DomainError, LookupError):
    code = "not_found"


class CartNotFoundError(NotFoundError):
    code = "cart_not_found"

    def __init__(self, cart_id: str):
        super().__init__(f"Cart {cart_id} not found", cart_id=cart_id)


class CartItemNotFoundError(NotFoundError):
    code = "cart_item_not_found"

    def __init__(self, cart_id: str, product_id: str):
        super().__init__(
            f"Product {product_id} is not in cart {cart_id}",
            cart_id=cart_id,
            product_id=product_id,
        )


class OrderNotFoundError(NotFoundError):
    code = "order_not_found"

    def __init__(self, order_id: str):
        super().__init__(f"Order {order_id} not found", order_id=order_id)


class ProductNotFoundError(NotFoundError):
    code = "product_not_found"

    def __init__(self, product_id: str):
        super().__init__(f"Product {product_id} not found", product_id=product_id)


class UserNotFoundError(NotFoundError):
    code = "user_not_found"


# --- konflikty ---
class ConflictError(DomainError):
    code = "conflict"


class InsufficientStockError(ConflictError):
    code = "insufficient_stock"

    def __init__(self, product_ids: Iterable[str]):
        product_ids = sorted(str(p) for p in product_ids)
        super().__init__(
            f"Insufficient stock for product: {', '.join(product_ids)}",
            product_ids=product_ids,
        )
        self.product_ids = product_ids


class ProductUnavailableError(ConflictError):
    code = "product_unavailable"

    def __init__(self, product_id: str):
        super().__init__(f"Product {product_id} is not available", product_id=product_id)


class InvalidTransitionError(ConflictError):
    code = "invalid_transition"

    def __init__(self, order_id: str, current: str, requested: str):
        super().__init__(
            f"Order {order_id} cannot move from {current} to {requested}",
            order_id=order_id,
            current=current,
            requested=requested,
        )
        self.current = current
        self.requested = requested


class ConcurrentModificationError(ConflictError):
    code = "concurrent_modification"


class CartAlreadyCheckedOutError(ConflictError):
    code = "cart_already_checked_out"

    def __init__(self, cart_id: str, order_id: str | None = None):
        super().__init__(
            f"Cart {cart_id} was already checked out",
            cart_id=cart_id,
            order_id=order_id,
        )


class CheckoutInProgressError(ConflictError):
    code = "checkout_in_progress"


# --- dostep ---
class AccessDeniedError(DomainError, PermissionError):
    code = "access_denied"


class CartOwnershipError(AccessDeniedError):
    code = "cart_ownership"

    def __init__(self, cart_id: str):
        super().__init__(f"Cart {cart_id} does not belong to user", cart_id=cart_id)


class OrderAccessError(AccessDeniedError):
    code = "order_access"

    def __init__(self, order_id: str):
        super().__init__(f"Order {order_id} does not belong to user", order_id=order_id)


class PaymentSignatureError(AccessDeniedError):
    code = "invalid_signature"


# --- integralnosc ---
class IntegrityViolationError(DomainError):
    code = "integrity_violation"


class ProductMissingError(IntegrityViolationError):
    code = "product_missing"

    def __init__(self, product_id: str):
        super().__init__(
            f"Line item references missing product: {product_id}",
            product_id=product_id,
        )


# --- infrastruktura ---
class StorageUnavailableError(DomainError):
    code = "storage_unavailable"


class StockReservationFailedError(StorageUnavailableError):
    code = "stock_reservation_failed"

    def __init__(self, product_ids: Iterable[str], results: dict[str, bool]):
        product_ids = sorted(str(p) for p in product_ids)
        super().__init__(
            f"Stock reservation could not be stored for product: {', '.join(product_ids)}",
            product_ids=product_ids,
        )
        self.product_ids = product_ids
        # wynik per produkt, udane rezerwacje do kompensacji
        self.results = dict(results)
