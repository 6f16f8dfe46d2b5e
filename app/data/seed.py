# app/data/seed.py
from decimal import Decimal

from app.data.database import SessionLocal, engine, init_db
from app.data.models import ProductModel, UserModel
from app.domain.roles import Role

PRODUCTS = [
    {"id": "p-keyboard", "sku": "KB-001", "title": "Keyboard", "price": Decimal("199.99"), "stock": 25},
    {"id": "p-mouse", "sku": "MS-001", "title": "Mouse", "price": Decimal("49.50"), "stock": 100},
    {"id": "p-monitor", "sku": "MN-001", "title": "Monitor", "price": Decimal("899.00"), "stock": 5},
]

USERS = [
    {"id": 1, "name": "Admin", "email": "admin@example.com", "role": Role.ADMIN.value},
    {"id": 2, "name": "Customer", "email": "customer@example.com", "role": Role.CUSTOMER.value},
]


def seed(bind=engine):
    init_db(bind)
    db = SessionLocal(bind=bind)
    try:
        # not forcing: only seed if empty
        if db.query(ProductModel).first():
            return
        db.add_all(ProductModel(available=True, **p) for p in PRODUCTS)
        db.add_all(UserModel(**u) for u in USERS)
        db.commit()
    finally:
        db.close()


if __name__ == "__main__":
    seed()
