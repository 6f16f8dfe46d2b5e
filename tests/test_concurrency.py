import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from app.domain.errors import (
    CartNotFoundError,
    ConcurrentModificationError,
    DomainError,
    InsufficientStockError,
    InvalidTransitionError,
)
from app.domain.status import OrderStatus
from app.services.cart_service import CartService
from app.services.checkout_service import CheckoutService
from app.services.order_service import OrderService
from app.services.stock_service import StockService

PAYMENT = {"provider": "stripe"}


def _run_parallel(session_factory, count, work):
    """Kazdy watek dostaje wlasna sesje, start rownoczesny przez barrier."""
    barrier = threading.Barrier(count)

    def _worker(index):
        session = session_factory()
        try:
            barrier.wait()
            return work(session, index)
        finally:
            session.close()

    with ThreadPoolExecutor(max_workers=count) as pool:
        return list(pool.map(_worker, range(count)))


@pytest.mark.parametrize("stock, workers", [(5, 12), (1, 8)])
def test_parallel_reservations_never_oversell(session_factory, make_product, db, stock, workers):
    make_product("hot", stock=stock)

    results = _run_parallel(session_factory, workers, lambda s, _: StockService(s).reserve("hot", 1))

    assert results.count(True) == stock
    assert results.count(False) == workers - stock
    assert StockService(db).current_stock("hot") == 0


def test_parallel_reserve_and_release_balance(session_factory, make_product, db):
    make_product("p", stock=20)

    def work(session, index):
        svc = StockService(session)
        if svc.reserve("p", 2):
            return svc.release("p", 2)
        return False

    assert all(_run_parallel(session_factory, 10, work))
    assert StockService(db).current_stock("p") == 20


def test_parallel_checkouts_sell_exactly_the_stock(session_factory, make_product, db, address):
    make_product("limited", price="40.00", stock=3)
    workers = 6
    carts = CartService(db)
    cart_ids = []
    for user_id in range(1, workers + 1):
        cart_id = carts.get_or_create(user_id=user_id)["cart_id"]
        carts.add_item(cart_id, "limited", 1)
        cart_ids.append(cart_id)

    def work(session, index):
        try:
            return CheckoutService(session).checkout(index + 1, cart_ids[index], address, address, PAYMENT)
        except InsufficientStockError as e:
            return e

    results = _run_parallel(session_factory, workers, work)

    orders = [r for r in results if isinstance(r, dict)]
    failures = [r for r in results if isinstance(r, InsufficientStockError)]
    assert len(orders) == 3
    assert len(failures) == 3
    assert all(f.product_ids == ["limited"] for f in failures)
    assert StockService(db).current_stock("limited") == 0


def test_same_cart_checked_out_in_parallel_yields_one_order(session_factory, make_product, db, address):
    make_product("p", stock=10)
    carts = CartService(db)
    cart_id = carts.get_or_create(user_id=1)["cart_id"]
    carts.add_item(cart_id, "p", 2)

    def work(session, _):
        try:
            return CheckoutService(session).checkout(1, cart_id, address, address, PAYMENT)
        except DomainError as e:
            return e

    results = _run_parallel(session_factory, 4, work)

    assert len([r for r in results if isinstance(r, dict)]) == 1
    assert OrderService(db).find_by_user(1)["total"] == 1
    assert StockService(db).current_stock("p") == 8


def test_merge_racing_add_item_never_half_merges(session_factory, make_product, db):
    for product_id in ("a", "b", "c"):
        make_product(product_id)
    carts = CartService(db)
    target = carts.get_or_create(user_id=1)["cart_id"]
    source = carts.get_or_create(session_id="guest-1")["cart_id"]
    carts.add_item(target, "a", 1)
    carts.add_item(source, "b", 2)

    def work(session, index):
        svc = CartService(session)
        try:
            if index == 0:
                return svc.merge_into(target, source)
            return svc.add_item(target, "c", 1)
        except ConcurrentModificationError as e:
            return e

    merged, added = _run_parallel(session_factory, 2, work)

    assert isinstance(merged, dict) or isinstance(added, dict)
    db.expire_all()
    lines = {i["product_id"]: i["quantity"] for i in carts.get_cart(target)["items"]}
    assert lines["a"] == 1
    assert ("c" in lines) == isinstance(added, dict)
    if isinstance(merged, dict):
        assert lines["b"] == 2
        with pytest.raises(CartNotFoundError):
            carts.get_cart(source)
    else:
        assert "b" not in lines
        assert [(i["product_id"], i["quantity"]) for i in carts.get_cart(source)["items"]] == [("b", 2)]


def test_parallel_cancels_release_stock_once(session_factory, make_product, db, address):
    make_product("p", stock=10)
    carts = CartService(db)
    cart_id = carts.get_or_create(user_id=1)["cart_id"]
    carts.add_item(cart_id, "p", 3)
    order_id = CheckoutService(db).checkout(1, cart_id, address, address, PAYMENT)["id"]
    assert StockService(db).current_stock("p") == 7

    def work(session, _):
        try:
            return OrderService(session).cancel(order_id, "duplicate click")
        except (ConcurrentModificationError, InvalidTransitionError) as e:
            return e

    results = _run_parallel(session_factory, 2, work)

    assert len([r for r in results if isinstance(r, dict)]) == 1
    assert StockService(db).current_stock("p") == 10
    events = OrderService(db).find_by_id(order_id)["events"]
    assert [e["status"] for e in events] == [OrderStatus.PENDING, OrderStatus.CANCELLED]
