import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON, Column, DateTime, Integer, Numeric, String
from sqlalchemy.orm import relationship

from app.data.database import Base
from app.domain.status import INITIAL_STATUS


class OrderModel(Base):
    __tablename__ = "orders"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(Integer, nullable=False, index=True)

    # koszyk zrodlowy; unique blokuje ponowny checkout tego samego koszyka
    cart_id = Column(String(36), unique=True, nullable=True)
    idempotency_key = Column(String(128), unique=True, nullable=True)

    status = Column(String(20), nullable=False, default=INITIAL_STATUS.value, index=True)
    version = Column(Integer, nullable=False, default=1)

    subtotal = Column(Numeric(12, 2), nullable=False)
    shipping = Column(Numeric(12, 2), nullable=False)
    total = Column(Numeric(12, 2), nullable=False)

    shipping_address = Column(JSON, nullable=False)
    billing_address = Column(JSON, nullable=False)

    payment_provider = Column(String(64), nullable=False)
    payment_transaction_id = Column(String(128), nullable=True)
    payment_status = Column(String(32), nullable=False, default="PENDING")
    payment_amount = Column(Numeric(12, 2), nullable=True)
    payment_currency = Column(String(3), nullable=True)
    payment_processed_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))

    items = relationship(
        "OrderItemModel",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItemModel.position",
    )
    events = relationship(
        "OrderEventModel",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderEventModel.sequence",
    )
