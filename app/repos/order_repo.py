# app/repos/order_repo.py
from datetime import datetime
from typing import Any, Dict

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from app.data.models.order import OrderModel
from app.data.models.order_event import OrderEventModel


class OrderRepo:
    def __init__(self, db: Session):
        self.db = db

    def create_order(self, order: OrderModel) -> OrderModel:
        self.db.add(order)
        self.db.commit()
        self.db.refresh(order)
        return order

    def get_order(self, order_id: str) -> OrderModel | None:
        return self.db.get(OrderModel, order_id)

    def get_order_by_cart(self, cart_id: str) -> OrderModel | None:
        return self.db.execute(
            select(OrderModel).where(OrderModel.cart_id == cart_id)
        ).scalar_one_or_none()

    def get_order_by_idempotency_key(self, key: str) -> OrderModel | None:
        return self.db.execute(
            select(OrderModel).where(OrderModel.idempotency_key == key)
        ).scalar_one_or_none()

    def get_orders_by_user(self, user_id: int, offset: int, limit: int) -> list[OrderModel]:
        return list(
            self.db.execute(
                select(OrderModel)
                .where(OrderModel.user_id == user_id)
                .order_by(OrderModel.created_at.desc(), OrderModel.id)
                .offset(offset)
                .limit(limit)
            ).scalars().all()
        )

    def count_orders_by_user(self, user_id: int) -> int:
        return self.db.execute(
            select(func.count()).select_from(OrderModel).where(OrderModel.user_id == user_id)
        ).scalar_one()

    def get_orders(self, offset: int, limit: int) -> list[OrderModel]:
        return list(
            self.db.execute(
                select(OrderModel)
                .order_by(OrderModel.created_at.desc(), OrderModel.id)
                .offset(offset)
                .limit(limit)
            ).scalars().all()
        )

    def count_orders(self) -> int:
        return self.db.execute(select(func.count()).select_from(OrderModel)).scalar_one()

    def get_orders_created_between(self, start: datetime, end: datetime) -> list[OrderModel]:
        # oba konce wlacznie
        return list(
            self.db.execute(
                select(OrderModel)
                .where(OrderModel.created_at >= start, OrderModel.created_at <= end)
                .order_by(OrderModel.created_at.desc(), OrderModel.id)
            ).scalars().all()
        )

    def get_orders_by_status(self, status: str) -> list[OrderModel]:
        return list(
            self.db.execute(
                select(OrderModel)
                .where(OrderModel.status == status)
                .order_by(OrderModel.created_at.desc(), OrderModel.id)
            ).scalars().all()
        )

    def update_order_version(
        self,
        order_id: str,
        old_version: int,
        old_status: str,
        new_data: Dict[str, Any],
    ) -> int:
        """update orders set ... where id = :id and version = :v and status = :s"""
        result = self.db.execute(
            update(OrderModel)
            .where(
                OrderModel.id == order_id,
                OrderModel.version == old_version,
                OrderModel.status == old_status,
            )
            .values(**new_data)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def next_event_sequence(self, order_id: str) -> int:
        current = self.db.execute(
            select(func.max(OrderEventModel.sequence)).where(OrderEventModel.order_id == order_id)
        ).scalar_one()
        return (current or 0) + 1

    def add_event(self, event: OrderEventModel) -> None:
        self.db.add(event)
        self.db.flush()

    def commit(self):
        self.db.commit()

    def rollback(self):
        self.db.rollback()
