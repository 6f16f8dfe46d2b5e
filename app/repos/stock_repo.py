# app/repos/stock_repo.py
from datetime import datetime, timezone

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from app.data.models.product import ProductModel


class StockRepo:
    """
    Atomowe operacje na stanie magazynowym.
    Kazda operacja to jeden warunkowy UPDATE, baza rozstrzyga wyscig,
    np. update products set stock = stock - 2 where id = 'p1' and stock >= 2 and available
    """

    def __init__(self, db: Session):
        self.db = db

    def decrement_if_available(self, product_id: str, quantity: int) -> int:
        result = self.db.execute(
            update(ProductModel)
            .where(
                ProductModel.id == product_id,
                ProductModel.stock >= quantity,
                ProductModel.available.is_(True),
            )
            .values(
                stock=ProductModel.stock - quantity,
                updated_at=datetime.now(timezone.utc),
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def increment(self, product_id: str, quantity: int) -> int:
        result = self.db.execute(
            update(ProductModel)
            .where(ProductModel.id == product_id)
            .values(
                stock=ProductModel.stock + quantity,
                updated_at=datetime.now(timezone.utc),
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def get_stock(self, product_id: str) -> tuple[int, bool] | None:
        row = self.db.execute(
            select(ProductModel.stock, ProductModel.available).where(ProductModel.id == product_id)
        ).one_or_none()
        if row is None:
            return None
        return row.stock, row.available

    def commit(self):
        self.db.commit()

    def rollback(self):
        self.db.rollback()
