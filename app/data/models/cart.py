#app/data/models/cart.py
import uuid
from datetime import datetime, timezone

from sqlalchemy import CheckConstraint, Column, DateTime, Integer, String
from sqlalchemy.orm import relationship

from app.data.database import Base


class CartModel(Base):
    __tablename__ = "carts"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    # koszyk usera albo koszyk goscia, nigdy oba
    user_id = Column(Integer, unique=True, nullable=True)
    session_id = Column(String(255), unique=True, nullable=True)

    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))

    items = relationship(
        "CartItemModel",
        back_populates="cart",
        cascade="all, delete-orphan",
        order_by="CartItemModel.position",
    )

    __table_args__ = (
        CheckConstraint(
            "(user_id IS NULL) != (session_id IS NULL)",
            name="ck_carts_single_identity",
        ),
    )
