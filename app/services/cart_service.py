from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.data.models.cart import CartModel
from app.data.models.cart_item import CartItemModel
from app.domain.errors import (
    CartItemNotFoundError,
    CartNotFoundError,
    ConcurrentModificationError,
    InsufficientStockError,
    InvalidIdentityError,
    InvalidQuantityError,
    ProductMissingError,
    ProductNotFoundError,
    ProductUnavailableError,
    ValidationFailedError,
)
from app.repos.cart_repo import CartRepo
from app.services.pricing import ZERO, line_total, to_money
from app.services.product_catalog import ProductCatalog
from app.utils.logging import get_logger

logger = get_logger(__name__)


class CartService:
    """
    Koszyk przed zakupem, klucz: user_id albo session_id goscia.
    commands (add, update, merge, delete) modyfikuja stan,
    query (get) tylko odczyt.
    Stan magazynu sprawdzany tylko pogladowo, rezerwacja dopiero przy checkoucie.
    """

    def __init__(self, db: Session, catalog: ProductCatalog | None = None):
        self.repo = CartRepo(db)
        self.catalog = catalog or ProductCatalog(db)

    # query - odczyt
    def get_cart(self, cart_id: str) -> Dict[str, Any]:
        return self._cart_to_dict(self._require_cart(cart_id))

    def get_or_create(self, user_id: Optional[int] = None, session_id: Optional[str] = None) -> Dict[str, Any]:
        return self._cart_to_dict(self._get_or_create_model(user_id, session_id))

    def find_cart(self, user_id: Optional[int] = None, session_id: Optional[str] = None) -> CartModel | None:
        self._validate_identity(user_id, session_id)
        if user_id is not None:
            return self.repo.get_cart_by_user(user_id)
        return self.repo.get_cart_by_session(session_id)

    # commands
    def add_item(
        self,
        cart_id: str,
        product_id: str,
        quantity: int,
        attributes: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        if quantity <= 0:
            raise InvalidQuantityError("Quantity must be greater than 0")

        cart = self._require_cart(cart_id)

        # jednorazowy odczyt ceny i dostepnosci z katalogu
        product = self.catalog.get_product(product_id)
        if product is None:
            raise ProductNotFoundError(product_id)
        if not product.available:
            raise ProductUnavailableError(product_id)

        existing_item = self.repo.get_cart_item(cart.id, product_id)
        new_quantity = quantity + (existing_item.quantity if existing_item else 0)
        if new_quantity > product.stock:
            raise InsufficientStockError([product_id])

        self._bump_version(cart)
        try:
            if existing_item:
                logger.info(
                    f"Product {product_id} already in cart {cart.id}, quantity "
                    f"{existing_item.quantity} -> {new_quantity}"
                )
                # snapshot ceny zostaje z pierwszego dodania
                existing_item.quantity = new_quantity
            else:
                logger.info(f"Adding product {product_id} to cart {cart.id}")
                self.repo.add_cart_item(
                    CartItemModel(
                        cart_id=cart.id,
                        product_id=product.id,
                        sku=product.sku,
                        quantity=quantity,
                        price=to_money(product.price),
                        attributes=dict(attributes or {}),
                        position=self._next_position(cart),
                    )
                )
            self.repo.commit()
        except SQLAlchemyError:
            self.repo.rollback()
            raise

        return self.get_cart(cart_id)

    def update_item(self, cart_id: str, product_id: str, new_quantity: int) -> Dict[str, Any]:
        if new_quantity < 0:
            raise InvalidQuantityError("Quantity cannot be negative")

        cart = self._require_cart(cart_id)
        item = self.repo.get_cart_item(cart.id, product_id)
        if item is None:
            raise CartItemNotFoundError(cart.id, product_id)

        if new_quantity > 0:
            product = self.catalog.get_product(product_id)
            if product is None:
                raise ProductMissingError(product_id)
            if not product.available:
                raise ProductUnavailableError(product_id)
            if new_quantity > product.stock:
                raise InsufficientStockError([product_id])

        self._bump_version(cart)
        try:
            if new_quantity == 0:
                logger.info(f"Removing product {product_id} from cart {cart.id}")
                self.repo.delete_cart_item(item)
            else:
                logger.info(f"Product {product_id} in cart {cart.id}: quantity {item.quantity} -> {new_quantity}")
                item.quantity = new_quantity
            self.repo.commit()
        except SQLAlchemyError:
            self.repo.rollback()
            raise

        return self.get_cart(cart_id)

    def remove_item(self, cart_id: str, product_id: str) -> Dict[str, Any]:
        return self.update_item(cart_id, product_id, 0)

    def merge_into(self, target_cart_id: str, source_cart_id: str) -> Dict[str, Any]:
        """
        Scala source do target w jednej transakcji i usuwa source.
        Obie wersje podbijane warunkowo, rownolegla zmiana ktoregokolwiek
        koszyka = konflikt i nic nie zostaje zapisane.
        """
        if target_cart_id == source_cart_id:
            raise ValidationFailedError("Cannot merge a cart into itself")

        target = self._require_cart(target_cart_id)
        source = self._require_cart(source_cart_id)

        source_items = [
            {
                "product_id": i.product_id,
                "sku": i.sku,
                "quantity": i.quantity,
                "price": i.price,
                "attributes": dict(i.attributes or {}),
            }
            for i in source.items
        ]
        target_items = {i.product_id: i for i in target.items}
        position = self._next_position(target)

        logger.info(f"Merging cart {source.id} ({len(source_items)} items) into cart {target.id}")

        self._bump_version(target)
        self._bump_version(source)
        try:
            for src in source_items:
                existing = target_items.get(src["product_id"])
                if existing:
                    existing.quantity += src["quantity"]
                else:
                    self.repo.add_cart_item(
                        CartItemModel(
                            cart_id=target.id,
                            position=position,
                            **src,
                        )
                    )
                    position += 1

            self.repo.expunge(source)
            self.repo.delete_cart(source.id)
            self.repo.commit()
        except SQLAlchemyError:
            self.repo.rollback()
            raise

        logger.info(f"Cart {source.id} merged into {target.id} and deleted")
        return self.get_cart(target.id)

    def merge_guest_cart(self, user_id: int, guest_session_id: str) -> Dict[str, Any]:
        target = self._get_or_create_model(user_id=user_id)
        guest = self.repo.get_cart_by_session(guest_session_id)

        if guest is None:
            logger.info(f"No guest cart for session {guest_session_id}, nothing to merge")
            return self._cart_to_dict(target)

        return self.merge_into(target.id, guest.id)

    def delete_cart(self, cart_id: str) -> bool:
        try:
            deleted = self.repo.delete_cart(cart_id)
            self.repo.commit()
        except SQLAlchemyError:
            self.repo.rollback()
            raise

        logger.info(f"Cart {cart_id} deleted" if deleted else f"Cart {cart_id} already gone")
        return bool(deleted)

    # helpers
    @staticmethod
    def _validate_identity(user_id: Optional[int], session_id: Optional[str]) -> None:
        if (user_id is None) == (session_id is None):
            raise InvalidIdentityError("Exactly one of user_id or session_id is required")

    def _get_or_create_model(self, user_id: Optional[int] = None, session_id: Optional[str] = None) -> CartModel:
        existing = self.find_cart(user_id, session_id)
        if existing:
            return existing

        now = datetime.now(timezone.utc)
        try:
            created = self.repo.create_cart(
                CartModel(
                    user_id=user_id,
                    session_id=session_id,
                    version=1,
                    created_at=now,
                    updated_at=now,
                )
            )
        except IntegrityError:
            # rownolegle utworzenie dla tej samej tozsamosci, unique constraint wygral
            self.repo.rollback()
            existing = self.find_cart(user_id, session_id)
            if existing is None:
                raise
            return existing

        logger.info(f"Created cart {created.id} for user={user_id} session={session_id}")
        return created

    def _require_cart(self, cart_id: str) -> CartModel:
        cart = self.repo.get_cart(cart_id)
        if not cart:
            raise CartNotFoundError(cart_id)
        return cart

    def _bump_version(self, cart: CartModel) -> None:
        # Optimistic locking
        # np w bazie update set version 2 where id 'c1' and version 1
        rowcount = self.repo.update_cart_version(
            cart_id=cart.id,
            old_version=cart.version,
            new_data={
                "version": cart.version + 1,
                "updated_at": datetime.now(timezone.utc),
            },
        )
        if rowcount == 0:
            self.repo.rollback()
            raise ConcurrentModificationError(f"Cart {cart.id} was modified by another operation")

    @staticmethod
    def _next_position(cart: CartModel) -> int:
        return max((i.position for i in cart.items), default=-1) + 1

    @staticmethod
    def _cart_to_dict(cart: CartModel) -> Dict[str, Any]:
        items = list(cart.items)
        total = sum((line_total(i.price, i.quantity) for i in items), ZERO)

        return {
            "cart_id": cart.id,
            "user_id": cart.user_id,
            "session_id": cart.session_id,
            "items": [
                {
                    "product_id": i.product_id,
                    "sku": i.sku,
                    "quantity": i.quantity,
                    "price": to_money(i.price),
                    "attributes": dict(i.attributes or {}),
                }
                for i in items
            ],
            "total": to_money(total),
            "item_count": len(items),
            "created_at": cart.created_at,
            "updated_at": cart.updated_at,
        }
