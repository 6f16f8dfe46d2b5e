# app/data/models/product.py
from datetime import datetime, timezone

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, Integer, Numeric, String

from app.data.database import Base


class ProductModel(Base):
    """
    Rekord katalogu produktu.
    stock i available zmienia wylacznie StockService (warunkowy UPDATE),
    nigdy read-modify-write w aplikacji.
    """

    __tablename__ = "products"

    id = Column(String(64), primary_key=True)
    sku = Column(String(64), unique=True, nullable=False)
    title = Column(String(255), nullable=False)
    price = Column(Numeric(12, 2), nullable=False)

    stock = Column(Integer, CheckConstraint("stock >= 0", name="ck_products_stock_non_negative"), nullable=False, default=0)
    available = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
