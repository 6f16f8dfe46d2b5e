# app/api/routers/admin.py
from datetime import datetime
from typing import List

from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.orm import Session

from app.api.deps import current_user_id
from app.data.database import get_db
from app.domain.roles import Permission
from app.domain.schemas import OrderOut, OrderPageOut, ReasonIn, StatusUpdateIn
from app.domain.status import OrderStatus
from app.services.order_service import OrderService
from app.services.user_service import UserService

router = APIRouter(prefix="/admin/orders", tags=["admin"])


def _require(db: Session, user_id: int, permission: Permission) -> str:
    user = UserService(db).require_permission(user_id, permission)
    return f"{user.role.value}:{user.id}"


@router.get("", response_model=OrderPageOut)
def all_orders(
    page: int = Query(0, ge=0),
    size: int = Query(10, ge=1, le=100),
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    _require(db, user_id, Permission.READ_ANY_ORDER)
    return OrderService(db).find_all(page=page, size=size)


@router.get("/range", response_model=List[OrderOut])
def orders_in_range(
    start: datetime,
    end: datetime,
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    """Zamowienia utworzone miedzy start i end (wlacznie)."""
    _require(db, user_id, Permission.READ_ANY_ORDER)
    return OrderService(db).find_by_date_range(start, end)


@router.get("/user/{customer_id}", response_model=OrderPageOut)
def orders_of_user(
    customer_id: int = Path(..., gt=0, le=2**63 - 1),
    page: int = Query(0, ge=0),
    size: int = Query(10, ge=1, le=100),
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    _require(db, user_id, Permission.READ_ANY_ORDER)
    return OrderService(db).find_by_user(customer_id, page=page, size=size)


@router.get("/status/{status}", response_model=List[OrderOut])
def orders_by_status(
    status: OrderStatus,
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    _require(db, user_id, Permission.READ_ANY_ORDER)
    return OrderService(db).find_by_status(status)


@router.get("/{order_id}", response_model=OrderOut)
def get_order(
    order_id: str,
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    _require(db, user_id, Permission.READ_ANY_ORDER)
    return OrderService(db).find_by_id(order_id)


@router.put("/{order_id}/status", response_model=OrderOut)
def update_status(
    order_id: str,
    payload: StatusUpdateIn,
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    actor = _require(db, user_id, Permission.MANAGE_ORDERS)
    return OrderService(db).transition(order_id, payload.status, payload.note, actor=actor)


@router.post("/{order_id}/cancel", response_model=OrderOut)
def cancel_order(
    order_id: str,
    payload: ReasonIn,
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    actor = _require(db, user_id, Permission.MANAGE_ORDERS)
    return OrderService(db).cancel(order_id, payload.reason, actor=actor)


@router.post("/{order_id}/refund", response_model=OrderOut)
def refund_order(
    order_id: str,
    payload: ReasonIn,
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    actor = _require(db, user_id, Permission.MANAGE_ORDERS)
    return OrderService(db).refund(order_id, payload.reason, actor=actor)
