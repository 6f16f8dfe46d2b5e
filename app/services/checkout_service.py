# app/services/checkout_service.py
import uuid
from typing import Any, Dict, Optional

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.domain.errors import (
    CartAlreadyCheckedOutError,
    CartNotFoundError,
    CartOwnershipError,
    CheckoutInProgressError,
    EmptyCartError,
    InsufficientStockError,
    InvalidAddressError,
    ProductMissingError,
    StockReservationFailedError,
    ValidationFailedError,
)
from app.domain.schemas import Address, PaymentMethod
from app.repos.cart_repo import CartRepo
from app.services.cart_service import CartService
from app.services.idempotency_service import IdempotencyService
from app.services.order_service import OrderService
from app.services.product_catalog import ProductCatalog
from app.services.stock_service import StockService
from app.utils.logging import get_logger

logger = get_logger(__name__)


class CheckoutService:
    """
    Use Case: koszyk -> zamowienie.

    1. Walidacja adresow i metody platnosci
    2. Koszyk istnieje i nalezy do usera, nie jest pusty, nie byl juz zamowiony
    3. Rezerwacja stanu dla wszystkich pozycji (reserve_batch)
    4. Jesli cokolwiek sie nie zarezerwowalo -> zwolnij udane rezerwacje i zglos blad
    5. Snapshot pozycji (cena z koszyka, tytul z katalogu)
    6-7. Zamowienie PENDING ze stub platnoscia (kwoty liczy OrderService)
    8. Usuniecie koszyka

    Checkout jest wszystko-albo-nic: albo stan zarezerwowany i zamowienie istnieje,
    albo stan zwolniony i zamowienia nie ma.
    """

    def __init__(
        self,
        db: Session,
        stock_service: StockService | None = None,
        order_service: OrderService | None = None,
        cart_service: CartService | None = None,
        catalog: ProductCatalog | None = None,
        idempotency_service: IdempotencyService | None = None,
    ):
        self.carts = CartRepo(db)
        self.catalog = catalog or ProductCatalog(db)
        self.stock_service = stock_service or StockService(db)
        self.order_service = order_service or OrderService(db)
        self.cart_service = cart_service or CartService(db, catalog=self.catalog)
        self.idempotency_service = idempotency_service

    def checkout(
        self,
        user_id: int,
        cart_id: str,
        shipping_address,
        billing_address,
        payment_method,
        idempotency_key: Optional[str] = None,
    ) -> Dict[str, Any]:
        logger.info(f"Creating order for user {user_id}, cart {cart_id}")

        shipping = self._validate_address(shipping_address, "shipping_address")
        billing = self._validate_address(billing_address, "billing_address")
        payment = self._validate_payment_method(payment_method)

        if idempotency_key:
            replay = self._replay(user_id, cart_id, idempotency_key)
            if replay is not None:
                return replay

        if idempotency_key and self.idempotency_service is not None:
            owner = str(user_id)
            if not self.idempotency_service.claim(idempotency_key, owner):
                raise CheckoutInProgressError(f"Checkout with key {idempotency_key} is already in progress")
            try:
                return self._checkout(user_id, cart_id, shipping, billing, payment, idempotency_key)
            finally:
                self.idempotency_service.release(idempotency_key, owner)

        return self._checkout(user_id, cart_id, shipping, billing, payment, idempotency_key)

    def _checkout(
        self,
        user_id: int,
        cart_id: str,
        shipping: Address,
        billing: Address,
        payment: PaymentMethod,
        idempotency_key: Optional[str],
    ) -> Dict[str, Any]:
        cart = self.carts.get_cart(cart_id)
        if not cart:
            previous = self.order_service.find_by_cart(cart_id)
            if previous is not None and previous.user_id == user_id:
                raise CartAlreadyCheckedOutError(cart_id, previous.id)
            raise CartNotFoundError(cart_id)

        if cart.user_id != user_id:
            raise CartOwnershipError(cart_id)

        # koszyk przezyl po udanym zamowieniu (nieudane usuniecie), nie realizujemy drugi raz
        previous = self.order_service.find_by_cart(cart_id)
        if previous is not None:
            logger.warning(f"Cart {cart_id} already converted into order {previous.id}")
            raise CartAlreadyCheckedOutError(cart_id, previous.id)

        # snapshot pozycji przed rezerwacja, commit rezerwacji wygasza obiekty ORM
        items = [
            {
                "product_id": item.product_id,
                "sku": item.sku,
                "quantity": item.quantity,
                "price": item.price,
                "attributes": dict(item.attributes or {}),
            }
            for item in cart.items
        ]
        if not items:
            raise EmptyCartError(cart_id)

        titles = {}
        for item in items:
            product = self.catalog.get_product(item["product_id"])
            if product is None:
                raise ProductMissingError(item["product_id"])
            titles[item["product_id"]] = product.title

        reservation: Dict[str, int] = {}
        for item in items:
            reservation[item["product_id"]] = reservation.get(item["product_id"], 0) + item["quantity"]

        try:
            results = self.stock_service.reserve_batch(reservation)
        except StockReservationFailedError as e:
            logger.error(f"Checkout of cart {cart_id} aborted, stock storage failed for {e.product_ids}")
            self._compensate({pid: reservation[pid] for pid, ok in e.results.items() if ok})
            raise
        failed = [pid for pid, ok in results.items() if not ok]
        if failed:
            reserved = {pid: reservation[pid] for pid, ok in results.items() if ok}
            logger.warning(f"Checkout of cart {cart_id} failed, insufficient stock for {failed}")
            self._compensate(reserved)
            raise InsufficientStockError(failed)

        # od tego miejsca kazdy blad musi zwolnic cala rezerwacje
        try:
            line_items = [{**item, "title": titles[item["product_id"]]} for item in items]
            order = self.order_service.create(
                user_id=user_id,
                line_items=line_items,
                shipping_address=shipping,
                billing_address=billing,
                payment={
                    "provider": payment.provider,
                    "transaction_id": f"mock_{uuid.uuid4()}",
                    "status": "PENDING",
                },
                cart_id=cart_id,
                idempotency_key=idempotency_key,
            )
        except Exception:
            logger.error(f"Order creation for cart {cart_id} failed, releasing reservations")
            self._compensate(reservation)
            raise

        try:
            self.cart_service.delete_cart(cart_id)
        except SQLAlchemyError as e:
            # zamowienie juz jest, ponowny checkout tego koszyka zostanie odrzucony
            logger.error(f"Order {order['id']} created but cart {cart_id} could not be deleted: {e}")

        logger.info(f"Order created successfully with ID: {order['id']}")
        return order

    def _replay(self, user_id: int, cart_id: str, idempotency_key: str) -> Dict[str, Any] | None:
        existing = self.order_service.find_by_idempotency_key(idempotency_key)
        if existing is None:
            return None
        if existing.user_id != user_id:
            raise ValidationFailedError("Idempotency key already used by another caller")
        if existing.cart_id != cart_id:
            raise ValidationFailedError(
                f"Idempotency key {idempotency_key} already used for another cart",
                field="idempotency_key",
            )
        logger.info(f"Idempotent replay of checkout {idempotency_key}: order {existing.id}")
        return self.order_service.find_by_id(existing.id)

    def _compensate(self, reserved: Dict[str, int]) -> None:
        for product_id, quantity in reserved.items():
            try:
                if not self.stock_service.release(product_id, quantity):
                    logger.error(f"Compensation: product {product_id} vanished, {quantity} units not released")
            except SQLAlchemyError as e:
                logger.error(f"Compensation failed for product {product_id} ({quantity} units): {e}")

    @staticmethod
    def _validate_address(value, field: str) -> Address:
        if value is None:
            raise InvalidAddressError(f"{field} is required", field=field)
        if isinstance(value, Address):
            return value
        try:
            return Address.model_validate(value)
        except ValidationError as e:
            missing = sorted({str(err["loc"][0]) for err in e.errors() if err.get("loc")})
            raise InvalidAddressError(f"{field} is invalid: {', '.join(missing)}", field=field, fields=missing) from None

    @staticmethod
    def _validate_payment_method(value) -> PaymentMethod:
        if isinstance(value, PaymentMethod):
            return value
        try:
            return PaymentMethod.model_validate(value or {})
        except ValidationError:
            raise ValidationFailedError("payment_method.provider is required", field="payment_method") from None
