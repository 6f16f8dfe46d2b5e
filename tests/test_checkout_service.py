from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError, SQLAlchemyError

from app.data.models import ProductModel
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
from app.domain.status import OrderStatus
from app.repos.stock_repo import StockRepo
from app.services.cart_service import CartService
from app.services.checkout_service import CheckoutService
from app.services.idempotency_service import IdempotencyService
from app.services.order_service import OrderService
from app.services.stock_service import StockService

PAYMENT = {"provider": "stripe", "token": "tok_visa"}


@pytest.fixture
def carts(db):
    return CartService(db)


@pytest.fixture
def stock(db):
    return StockService(db)


@pytest.fixture
def filled_cart(carts, make_product):
    make_product("A", price="100.00", stock=10)
    make_product("B", price="250.00", stock=5)

    def _fill(user_id=1):
        cart_id = carts.get_or_create(user_id=user_id)["cart_id"]
        carts.add_item(cart_id, "A", 2)
        carts.add_item(cart_id, "B", 1)
        return cart_id

    return _fill


def test_checkout_creates_order_and_removes_cart(db, carts, stock, filled_cart, address):
    cart_id = filled_cart()

    order = CheckoutService(db).checkout(1, cart_id, address, address, PAYMENT)

    assert order["status"] == OrderStatus.PENDING
    assert order["subtotal"] == Decimal("450.00")
    assert order["shipping"] == Decimal("50.00")
    assert order["total"] == Decimal("500.00")
    assert [(i["product_id"], i["quantity"], i["price"]) for i in order["items"]] == [
        ("A", 2, Decimal("100.00")),
        ("B", 1, Decimal("250.00")),
    ]
    assert order["items"][0]["title"] == "Product A"
    assert order["payment"]["status"] == "PENDING"
    assert order["payment"]["transaction_id"].startswith("mock_")
    assert order["payment"]["amount"] == Decimal("500.00")
    assert order["shipping_address"]["city"] == "Warsaw"
    assert len(order["events"]) == 1

    assert stock.current_stock("A") == 8
    assert stock.current_stock("B") == 4
    with pytest.raises(CartNotFoundError):
        carts.get_cart(cart_id)


def test_checkout_free_shipping_at_threshold(db, carts, make_product, address):
    make_product("C", price="250.00", stock=5)
    cart_id = carts.get_or_create(user_id=1)["cart_id"]
    carts.add_item(cart_id, "C", 2)

    order = CheckoutService(db).checkout(1, cart_id, address, address, PAYMENT)

    assert order["shipping"] == Decimal("0.00")
    assert order["total"] == Decimal("500.00")


def test_insufficient_stock_releases_successful_reservations(db, carts, stock, filled_cart, address):
    cart_id = filled_cart()
    db.query(ProductModel).filter(ProductModel.id == "B").update({"stock": 0})
    db.commit()

    with pytest.raises(InsufficientStockError) as exc:
        CheckoutService(db).checkout(1, cart_id, address, address, PAYMENT)

    assert exc.value.product_ids == ["B"]
    assert stock.current_stock("A") == 10
    assert stock.current_stock("B") == 0
    assert OrderService(db).find_by_user(1)["total"] == 0
    # koszyk zostaje, mozna poprawic i ponowic
    assert carts.get_cart(cart_id)["item_count"] == 2


def test_unavailable_product_fails_reservation(db, carts, stock, filled_cart, address):
    cart_id = filled_cart()
    db.query(ProductModel).filter(ProductModel.id == "A").update({"available": False})
    db.commit()

    with pytest.raises(InsufficientStockError) as exc:
        CheckoutService(db).checkout(1, cart_id, address, address, PAYMENT)

    assert exc.value.product_ids == ["A"]
    assert stock.current_stock("B") == 5


def test_unknown_cart(db, address):
    with pytest.raises(CartNotFoundError):
        CheckoutService(db).checkout(1, "missing", address, address, PAYMENT)


def test_cart_of_another_user(db, filled_cart, stock, address):
    cart_id = filled_cart(user_id=1)

    with pytest.raises(CartOwnershipError):
        CheckoutService(db).checkout(2, cart_id, address, address, PAYMENT)
    assert stock.current_stock("A") == 10


def test_empty_cart(db, carts, address):
    cart_id = carts.get_or_create(user_id=1)["cart_id"]

    with pytest.raises(EmptyCartError):
        CheckoutService(db).checkout(1, cart_id, address, address, PAYMENT)


def test_product_removed_from_catalog(db, carts, stock, filled_cart, address):
    cart_id = filled_cart()
    db.query(ProductModel).filter(ProductModel.id == "B").delete()
    db.commit()

    with pytest.raises(ProductMissingError):
        CheckoutService(db).checkout(1, cart_id, address, address, PAYMENT)
    assert stock.current_stock("A") == 10


@pytest.mark.parametrize("field", ["line1", "city", "postal_code", "country"])
def test_invalid_address(db, filled_cart, address, field):
    cart_id = filled_cart()
    broken = {k: v for k, v in address.items() if k != field}

    with pytest.raises(InvalidAddressError) as exc:
        CheckoutService(db).checkout(1, cart_id, broken, address, PAYMENT)
    assert field in exc.value.extra["fields"]


def test_missing_payment_provider(db, filled_cart, address):
    cart_id = filled_cart()
    with pytest.raises(ValidationFailedError):
        CheckoutService(db).checkout(1, cart_id, address, address, {})


def test_order_failure_compensates_reservation(db, stock, filled_cart, address):
    class BrokenOrders(OrderService):
        def create(self, *args, **kwargs):
            raise RuntimeError("database went away")

    cart_id = filled_cart()
    svc = CheckoutService(db, stock_service=stock, order_service=BrokenOrders(db))

    with pytest.raises(RuntimeError):
        svc.checkout(1, cart_id, address, address, PAYMENT)

    assert stock.current_stock("A") == 10
    assert stock.current_stock("B") == 5


def test_surviving_cart_cannot_be_checked_out_twice(db, stock, filled_cart, address):
    class StickyCarts(CartService):
        def delete_cart(self, cart_id):
            raise SQLAlchemyError("delete failed")

    cart_id = filled_cart()
    svc = CheckoutService(db, stock_service=stock, cart_service=StickyCarts(db))

    first = svc.checkout(1, cart_id, address, address, PAYMENT)
    with pytest.raises(CartAlreadyCheckedOutError) as exc:
        svc.checkout(1, cart_id, address, address, PAYMENT)

    assert exc.value.extra["order_id"] == first["id"]
    assert stock.current_stock("A") == 8
    assert OrderService(db).find_by_user(1)["total"] == 1


def test_checkout_of_deleted_cart_points_to_order(db, filled_cart, address):
    cart_id = filled_cart()
    svc = CheckoutService(db)
    svc.checkout(1, cart_id, address, address, PAYMENT)

    with pytest.raises(CartAlreadyCheckedOutError):
        svc.checkout(1, cart_id, address, address, PAYMENT)


def test_idempotency_key_replays_order(db, stock, filled_cart, address):
    cart_id = filled_cart()
    svc = CheckoutService(db)

    first = svc.checkout(1, cart_id, address, address, PAYMENT, idempotency_key="key-1")
    again = svc.checkout(1, cart_id, address, address, PAYMENT, idempotency_key="key-1")

    assert again["id"] == first["id"]
    assert stock.current_stock("A") == 8
    assert OrderService(db).find_by_user(1)["total"] == 1


def test_idempotency_key_of_another_user(db, filled_cart, address):
    cart_id = filled_cart()
    svc = CheckoutService(db)
    svc.checkout(1, cart_id, address, address, PAYMENT, idempotency_key="key-1")

    with pytest.raises(ValidationFailedError):
        svc.checkout(2, cart_id, address, address, PAYMENT, idempotency_key="key-1")


def test_claimed_key_is_rejected(db, stock, filled_cart, address, fake_redis):
    cart_id = filled_cart()
    fake_redis.store["checkout:key-2:claim"] = "other"
    svc = CheckoutService(db, idempotency_service=IdempotencyService(client=fake_redis))

    with pytest.raises(CheckoutInProgressError):
        svc.checkout(1, cart_id, address, address, PAYMENT, idempotency_key="key-2")
    assert stock.current_stock("A") == 10


def test_claim_released_after_checkout(db, filled_cart, address, fake_redis):
    cart_id = filled_cart()
    svc = CheckoutService(db, idempotency_service=IdempotencyService(client=fake_redis))

    svc.checkout(1, cart_id, address, address, PAYMENT, idempotency_key="key-3")

    assert fake_redis.store == {}


def test_storage_failure_is_not_reported_as_missing_stock(db, carts, stock, filled_cart, address, monkeypatch):
    cart_id = filled_cart()
    original = StockRepo.decrement_if_available

    def locked(self, product_id, quantity):
        if product_id == "B":
            raise OperationalError("UPDATE products", {}, Exception("database is locked"))
        return original(self, product_id, quantity)

    monkeypatch.setattr(StockRepo, "decrement_if_available", locked)

    with pytest.raises(StockReservationFailedError) as exc:
        CheckoutService(db).checkout(1, cart_id, address, address, PAYMENT)

    assert not isinstance(exc.value, InsufficientStockError)
    assert exc.value.product_ids == ["B"]
    # rezerwacja A zwrocona
    assert stock.current_stock("A") == 10
    assert stock.current_stock("B") == 5
    assert OrderService(db).find_by_user(1)["total"] == 0
    assert carts.get_cart(cart_id)["item_count"] == 2


def test_idempotency_key_reused_for_another_cart(db, carts, stock, filled_cart, address):
    first_cart = filled_cart()
    svc = CheckoutService(db)
    svc.checkout(1, first_cart, address, address, PAYMENT, idempotency_key="key-1")

    second_cart = carts.get_or_create(user_id=1)["cart_id"]
    carts.add_item(second_cart, "A", 1)
    assert second_cart != first_cart

    with pytest.raises(ValidationFailedError):
        svc.checkout(1, second_cart, address, address, PAYMENT, idempotency_key="key-1")

    assert stock.current_stock("A") == 8
    assert carts.get_cart(second_cart)["item_count"] == 1
