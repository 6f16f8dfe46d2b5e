from sqlalchemy import JSON, Column, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import relationship

from app.data.database import Base


class OrderItemModel(Base):
    """Snapshot pozycji z chwili checkoutu, nigdy nie aktualizowany."""

    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True)
    order_id = Column(String(36), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(Integer, nullable=False)

    product_id = Column(String(64), nullable=False)
    sku = Column(String(64), nullable=False)
    title = Column(String(255), nullable=False)
    quantity = Column(Integer, nullable=False)
    price = Column(Numeric(12, 2), nullable=False)
    attributes = Column(JSON, nullable=False, default=dict)

    order = relationship("OrderModel", back_populates="items")
