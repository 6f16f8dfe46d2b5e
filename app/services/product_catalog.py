# app/services/product_catalog.py
from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy.orm import Session

from app.repos.product_repo import ProductRepo


@dataclass(frozen=True)
class ProductSnapshot:
    id: str
    sku: str
    title: str
    price: Decimal
    stock: int
    available: bool


class ProductCatalog:
    """Odczyt katalogu produktow: get_product(id) -> {sku, title, price, stock, available}."""

    def __init__(self, db: Session):
        self.repo = ProductRepo(db)

    def get_product(self, product_id: str) -> ProductSnapshot | None:
        product = self.repo.get_product(product_id)
        if product is None:
            return None
        return ProductSnapshot(
            id=product.id,
            sku=product.sku,
            title=product.title,
            price=Decimal(product.price),
            stock=product.stock,
            available=bool(product.available),
        )
