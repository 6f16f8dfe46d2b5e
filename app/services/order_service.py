# app/services/order_service.py
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from pydantic import BaseModel
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.data.models.order import OrderModel
from app.data.models.order_event import OrderEventModel
from app.data.models.order_item import OrderItemModel
from app.domain.errors import (
    CartAlreadyCheckedOutError,
    ConcurrentModificationError,
    InvalidQuantityError,
    InvalidTransitionError,
    OrderAccessError,
    OrderNotFoundError,
    ValidationFailedError,
)
from app.domain.status import INITIAL_STATUS, OrderStatus, can_transition
from app.repos.order_repo import OrderRepo
from app.repos.stock_repo import StockRepo
from app.services.notification_service import NotificationService
from app.services.pricing import ShippingPolicy, compute_totals, default_shipping_policy, to_money
from app.utils import settings
from app.utils.logging import get_logger

logger = get_logger(__name__)

PAYMENT_COMPLETED = "COMPLETED"


def _parse_status(value) -> OrderStatus:
    try:
        return OrderStatus(value)
    except ValueError:
        raise ValidationFailedError(f"Unknown order status: {value}") from None


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _as_dict(value) -> Dict[str, Any]:
    if isinstance(value, BaseModel):
        return value.model_dump()
    return dict(value)


class OrderService:
    """
    Ledger zamowien.
    Zamowienie po utworzeniu jest niezmienne poza statusem, rekordem platnosci
    i logiem zdarzen (tylko dopisywanie). Status i nowe zdarzenie zapisywane
    w jednej transakcji, pod warunkiem wersji i aktualnego statusu.
    Anulowanie zwraca stan magazynu w tej samej transakcji.
    """

    def __init__(
        self,
        db: Session,
        shipping_policy: ShippingPolicy | None = None,
        notification_service: NotificationService | None = None,
    ):
        self.repo = OrderRepo(db)
        self.stock = StockRepo(db)
        self.shipping_policy = shipping_policy or default_shipping_policy()
        self.notification_service = notification_service or NotificationService()

    # =====================================================
    # COMMANDS
    # =====================================================
    def create(
        self,
        user_id: int,
        line_items: Iterable[Dict[str, Any]],
        shipping_address,
        billing_address,
        payment: Dict[str, Any],
        cart_id: Optional[str] = None,
        idempotency_key: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Use Case: utworzenie zamowienia w PENDING z jednym zdarzeniem poczatkowym.
        Kwoty liczone raz tutaj i zamrazane.
        """
        lines = list(line_items)
        if not lines:
            raise ValidationFailedError("Order must contain at least one line item")
        for line in lines:
            if line["quantity"] <= 0:
                raise InvalidQuantityError(f"Invalid quantity for product {line['product_id']}")

        totals = compute_totals(((line["price"], line["quantity"]) for line in lines), self.shipping_policy)
        now = datetime.now(timezone.utc)

        order = OrderModel(
            user_id=user_id,
            cart_id=cart_id,
            idempotency_key=idempotency_key,
            status=INITIAL_STATUS.value,
            version=1,
            subtotal=totals.subtotal,
            shipping=totals.shipping,
            total=totals.total,
            shipping_address=_as_dict(shipping_address),
            billing_address=_as_dict(billing_address),
            payment_provider=payment["provider"],
            payment_transaction_id=payment.get("transaction_id"),
            payment_status=payment.get("status", "PENDING"),
            payment_amount=totals.total,
            payment_currency=payment.get("currency", settings.CURRENCY),
            created_at=now,
            updated_at=now,
        )
        order.items = [
            OrderItemModel(
                position=position,
                product_id=line["product_id"],
                sku=line["sku"],
                title=line["title"],
                quantity=line["quantity"],
                price=to_money(line["price"]),
                attributes=dict(line.get("attributes") or {}),
            )
            for position, line in enumerate(lines)
        ]
        order.events = [
            OrderEventModel(
                sequence=1,
                status=INITIAL_STATUS.value,
                at=now,
                message="Order created",
                meta={"cart_id": cart_id, "actor": "CUSTOMER"},
            )
        ]

        try:
            created = self.repo.create_order(order)
        except IntegrityError:
            self.repo.rollback()
            # unique na cart_id: ten koszyk ma juz zamowienie
            if cart_id is not None:
                existing = self.repo.get_order_by_cart(cart_id)
                if existing is not None:
                    raise CartAlreadyCheckedOutError(cart_id, existing.id) from None
            raise

        logger.info(
            f"Order {created.id} created for user {user_id}: subtotal={totals.subtotal} "
            f"shipping={totals.shipping} total={totals.total}"
        )
        self.notification_service.send_order_notification(user_id, created.id, created.status)

        return self._order_to_dict(created)

    def transition(
        self,
        order_id: str,
        new_status,
        note: Optional[str] = None,
        actor: str = "SYSTEM",
    ) -> Dict[str, Any]:
        new_status = _parse_status(new_status)
        order = self._require_order(order_id)
        current = OrderStatus(order.status)

        if not can_transition(current, new_status):
            logger.warning(f"Rejected transition of order {order.id}: {current.value} -> {new_status.value}")
            raise InvalidTransitionError(order.id, current.value, new_status.value)

        now = datetime.now(timezone.utc)
        released = [(i.product_id, i.quantity) for i in order.items] if new_status is OrderStatus.CANCELLED else []

        # status, zdarzenie i zwrot stanu razem albo wcale
        rowcount = self.repo.update_order_version(
            order_id=order.id,
            old_version=order.version,
            old_status=current.value,
            new_data={
                "status": new_status.value,
                "version": order.version + 1,
                "updated_at": now,
            },
        )
        if rowcount == 0:
            self.repo.rollback()
            raise ConcurrentModificationError(f"Order {order.id} was modified by another operation")

        try:
            self.repo.add_event(
                OrderEventModel(
                    order_id=order.id,
                    sequence=self.repo.next_event_sequence(order.id),
                    status=new_status.value,
                    at=now,
                    message=note,
                    meta={"previous_status": current.value, "actor": actor},
                )
            )
            for product_id, quantity in released:
                if self.stock.increment(product_id, quantity) == 0:
                    logger.warning(f"Product {product_id} of cancelled order {order_id} no longer exists")
            self.repo.commit()
        except SQLAlchemyError as e:
            self.repo.rollback()
            logger.error(f"Transition of order {order_id} to {new_status.value} rolled back: {e}")
            raise

        logger.info(f"Order {order_id} status updated: {current.value} -> {new_status.value} by {actor}")
        for product_id, quantity in released:
            logger.info(f"Released {quantity} units of product {product_id} for cancelled order {order_id}")

        order = self._require_order(order_id)
        self.notification_service.send_order_notification(order.user_id, order.id, new_status.value)
        return self._order_to_dict(order)

    def cancel(self, order_id: str, reason: str, actor: str = "ADMIN") -> Dict[str, Any]:
        logger.info(f"Cancelling order {order_id} with reason: {reason}")

        order = self._require_order(order_id)
        if order.status in (OrderStatus.DELIVERED.value, OrderStatus.REFUNDED.value):
            raise InvalidTransitionError(order.id, order.status, OrderStatus.CANCELLED.value)

        return self.transition(order_id, OrderStatus.CANCELLED, f"Cancelled. Reason: {reason}", actor)

    def refund(self, order_id: str, reason: str, actor: str = "ADMIN") -> Dict[str, Any]:
        logger.info(f"Refunding order {order_id} with reason: {reason}")

        order = self._require_order(order_id)
        if order.status != OrderStatus.DELIVERED.value:
            raise InvalidTransitionError(order.id, order.status, OrderStatus.REFUNDED.value)

        return self.transition(order_id, OrderStatus.REFUNDED, f"Refunded. Reason: {reason}", actor)

    def record_payment(
        self,
        order_id: str,
        provider_status: str,
        transaction_id: Optional[str] = None,
        amount=None,
    ) -> Dict[str, Any]:
        """
        Punkt integracji z bramka platnosci: aktualizuje rekord platnosci,
        COMPLETED na zamowieniu PENDING przesuwa je do PAID.
        """
        order = self._require_order(order_id)
        provider_status = provider_status.strip().upper()
        now = datetime.now(timezone.utc)

        new_data: Dict[str, Any] = {
            "payment_status": provider_status,
            "payment_processed_at": now,
            "version": order.version + 1,
            "updated_at": now,
        }
        if transaction_id:
            new_data["payment_transaction_id"] = transaction_id
        if amount is not None:
            new_data["payment_amount"] = to_money(amount)

        rowcount = self.repo.update_order_version(order.id, order.version, order.status, new_data)
        if rowcount == 0:
            self.repo.rollback()
            raise ConcurrentModificationError(f"Order {order.id} was modified by another operation")
        self.repo.commit()

        logger.info(f"Payment for order {order_id} recorded: {provider_status}")

        order = self._require_order(order_id)
        if provider_status == PAYMENT_COMPLETED and order.status == OrderStatus.PENDING.value:
            return self.transition(order_id, OrderStatus.PAID, "Payment completed", "PAYMENT_GATEWAY")
        return self._order_to_dict(order)

    # =====================================================
    # QUERY
    # =====================================================
    def find_by_id(self, order_id: str) -> Dict[str, Any]:
        return self._order_to_dict(self._require_order(order_id))

    def get_for_user(self, order_id: str, user_id: int) -> Dict[str, Any]:
        order = self._require_order(order_id)
        if order.user_id != user_id:
            raise OrderAccessError(order_id)
        return self._order_to_dict(order)

    def find_by_user(self, user_id: int, page: int = 0, size: int = 10) -> Dict[str, Any]:
        page = max(page, 0)
        size = min(max(size, 1), 100)
        orders = self.repo.get_orders_by_user(user_id, offset=page * size, limit=size)
        return {
            "items": [self._order_to_dict(o) for o in orders],
            "page": page,
            "size": size,
            "total": self.repo.count_orders_by_user(user_id),
        }

    def find_all(self, page: int = 0, size: int = 10) -> Dict[str, Any]:
        page = max(page, 0)
        size = min(max(size, 1), 100)
        orders = self.repo.get_orders(offset=page * size, limit=size)
        return {
            "items": [self._order_to_dict(o) for o in orders],
            "page": page,
            "size": size,
            "total": self.repo.count_orders(),
        }

    def find_by_date_range(self, start: datetime, end: datetime) -> List[Dict[str, Any]]:
        """Zamowienia utworzone w [start, end], daty bez strefy traktowane jako UTC."""
        start, end = _as_utc(start), _as_utc(end)
        if start > end:
            raise ValidationFailedError("Date range start must not be after its end", field="start")
        return [self._order_to_dict(o) for o in self.repo.get_orders_created_between(start, end)]

    def find_by_status(self, status) -> List[Dict[str, Any]]:
        status = _parse_status(status)
        return [self._order_to_dict(o) for o in self.repo.get_orders_by_status(status.value)]

    def find_by_idempotency_key(self, key: str) -> OrderModel | None:
        return self.repo.get_order_by_idempotency_key(key)

    def find_by_cart(self, cart_id: str) -> OrderModel | None:
        return self.repo.get_order_by_cart(cart_id)

    # =====================================================
    # HELPERS
    # =====================================================
    def _require_order(self, order_id: str) -> OrderModel:
        order = self.repo.get_order(order_id)
        if not order:
            raise OrderNotFoundError(order_id)
        return order

    @staticmethod
    def _order_to_dict(order: OrderModel) -> Dict[str, Any]:
        return {
            "id": order.id,
            "user_id": order.user_id,
            "items": [
                {
                    "product_id": i.product_id,
                    "sku": i.sku,
                    "title": i.title,
                    "quantity": i.quantity,
                    "price": to_money(i.price),
                    "attributes": dict(i.attributes or {}),
                }
                for i in order.items
            ],
            "subtotal": to_money(order.subtotal),
            "shipping": to_money(order.shipping),
            "total": to_money(order.total),
            "status": OrderStatus(order.status),
            "shipping_address": dict(order.shipping_address),
            "billing_address": dict(order.billing_address),
            "payment": {
                "provider": order.payment_provider,
                "transaction_id": order.payment_transaction_id,
                "status": order.payment_status,
                "amount": to_money(order.payment_amount) if order.payment_amount is not None else None,
                "currency": order.payment_currency,
                "processed_at": order.payment_processed_at,
            },
            "events": [
                {
                    "status": OrderStatus(e.status),
                    "at": e.at,
                    "message": e.message,
                    "meta": dict(e.meta) if e.meta is not None else None,
                }
                for e in order.events
            ],
            "created_at": order.created_at,
            "updated_at": order.updated_at,
        }
