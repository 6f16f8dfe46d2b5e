# app/api/routers/orders.py
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.api.deps import current_user_id, get_idempotency_service, verify_payment_signature
from app.data.database import get_db
from app.domain.schemas import CheckoutIn, OrderOut, OrderPageOut, PaymentNotificationIn
from app.services.checkout_service import CheckoutService
from app.services.idempotency_service import IdempotencyService
from app.services.order_service import OrderService

router = APIRouter(prefix="/orders", tags=["orders"])


def get_service(db: Session):
    return OrderService(db)


@router.post("/checkout", response_model=OrderOut, status_code=201)
def checkout(
    payload: CheckoutIn,
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
    idempotency: Optional[IdempotencyService] = Depends(get_idempotency_service),
):
    """
    Tworzy zamówienie z koszyka usera.
    Stan magazynowy rezerwowany atomowo, koszyk usuwany po zapisaniu zamówienia.
    """
    svc = CheckoutService(db, idempotency_service=idempotency)
    return svc.checkout(
        user_id=user_id,
        cart_id=payload.cart_id,
        shipping_address=payload.shipping_address,
        billing_address=payload.billing_address,
        payment_method=payload.payment_method,
        idempotency_key=payload.idempotency_key,
    )


@router.get("", response_model=OrderPageOut)
def list_orders(
    page: int = Query(0, ge=0),
    size: int = Query(10, ge=1, le=100),
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    return get_service(db).find_by_user(user_id, page=page, size=size)


@router.get("/{order_id}", response_model=OrderOut)
def get_order(
    order_id: str,
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    return get_service(db).get_for_user(order_id, user_id)


@router.post("/{order_id}/payment", response_model=OrderOut, dependencies=[Depends(verify_payment_signature)])
def payment_notification(
    order_id: str,
    payload: PaymentNotificationIn,
    db: Session = Depends(get_db),
):
    """Callback bramki platnosci (rozliczenie jest zewnetrzne), podpisany X-Payment-Signature."""
    return get_service(db).record_payment(
        order_id,
        provider_status=payload.status,
        transaction_id=payload.transaction_id,
        amount=payload.amount,
    )
