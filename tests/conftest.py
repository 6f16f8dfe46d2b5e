import os

# przed importem aplikacji: celery bez brokera
os.environ.setdefault("CELERY_TASK_ALWAYS_EAGER", "1")

from decimal import Decimal

import pytest
from sqlalchemy.orm import sessionmaker

from app.data.database import init_db, make_engine
from app.data.models import ProductModel, UserModel
from app.domain.roles import Role


class FakeRedis:
    """Minimalny klient redis dla IdempotencyService: SET NX i compare-and-delete."""

    def __init__(self):
        self.store = {}

    def set(self, name, value, nx=False, ex=None):
        if nx and name in self.store:
            return None
        self.store[name] = value
        return True

    def eval(self, script, numkeys, key, owner):
        if self.store.get(key) == owner:
            del self.store[key]
            return 1
        return 0


@pytest.fixture
def engine(tmp_path):
    engine = make_engine(f"sqlite:///{tmp_path / 'checkout.db'}")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def make_product(db):
    def _make(product_id, price="100.00", stock=10, available=True, title=None):
        product = ProductModel(
            id=product_id,
            sku=f"SKU-{product_id}",
            title=title or f"Product {product_id}",
            price=Decimal(price),
            stock=stock,
            available=available,
        )
        db.add(product)
        db.commit()
        return product

    return _make


@pytest.fixture
def make_user(db):
    def _make(user_id, role=Role.CUSTOMER):
        user = UserModel(id=user_id, name=f"User {user_id}", email=f"user{user_id}@example.com", role=role.value)
        db.add(user)
        db.commit()
        return user

    return _make


@pytest.fixture
def address():
    return {
        "label": "Home",
        "line1": "Main Street 1",
        "city": "Warsaw",
        "postal_code": "00-001",
        "country": "PL",
    }


@pytest.fixture
def fake_redis():
    return FakeRedis()
