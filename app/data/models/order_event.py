from datetime import datetime, timezone

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from app.data.database import Base


class OrderEventModel(Base):
    __tablename__ = "order_events"

    id = Column(Integer, primary_key=True)
    order_id = Column(String(36), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    # kolejnosc w logu, append-only
    sequence = Column(Integer, nullable=False)

    status = Column(String(20), nullable=False)
    at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    message = Column(Text, nullable=True)
    meta = Column(JSON, nullable=True)

    order = relationship("OrderModel", back_populates="events")

    __table_args__ = (UniqueConstraint("order_id", "sequence", name="u_order_event_sequence"),)
