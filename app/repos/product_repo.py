# app/repos/product_repo.py
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.data.models.product import ProductModel


class ProductRepo:
    def __init__(self, db: Session):
        self.db = db

    def get_product(self, product_id: str) -> ProductModel | None:
        return self.db.execute(
            select(ProductModel)
            .where(ProductModel.id == product_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
