from sqlalchemy import JSON, CheckConstraint, Column, ForeignKey, Integer, Numeric, String, UniqueConstraint
from sqlalchemy.orm import relationship

from app.data.database import Base


class CartItemModel(Base):
    __tablename__ = "cart_items"

    id = Column(Integer, primary_key=True)
    cart_id = Column(String(36), ForeignKey("carts.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(String(64), nullable=False)
    sku = Column(String(64), nullable=False)

    quantity = Column(Integer, CheckConstraint("quantity >= 1", name="ck_cart_items_quantity"), nullable=False)
    # cena z chwili dodania do koszyka
    price = Column(Numeric(12, 2), nullable=False)
    attributes = Column(JSON, nullable=False, default=dict)
    position = Column(Integer, nullable=False, default=0)

    cart = relationship("CartModel", back_populates="items")

    __table_args__ = (UniqueConstraint("cart_id", "product_id", name="u_cart_product"),)
