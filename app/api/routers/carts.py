#app/api/routers/carts.py
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.deps import current_user_id, optional_user_id, session_id_header
from app.data.database import get_db
from app.domain.schemas import CartOut, ItemIn, ItemUpdateIn, MergeCartIn
from app.services.cart_service import CartService

router = APIRouter(prefix="/carts", tags=["carts"])


def get_service(db: Session):
    return CartService(db=db)


def _cart_id(svc: CartService, user_id: Optional[int], session_id: Optional[str]) -> str:
    # zalogowany user ma pierwszenstwo przed sesja goscia
    if user_id is not None:
        return svc.get_or_create(user_id=user_id)["cart_id"]
    return svc.get_or_create(session_id=session_id)["cart_id"]


@router.get("", response_model=CartOut)
def get_cart(
    user_id: Optional[int] = Depends(optional_user_id),
    session_id: Optional[str] = Depends(session_id_header),
    db: Session = Depends(get_db),
):
    svc = get_service(db)
    if user_id is not None:
        return svc.get_or_create(user_id=user_id)
    return svc.get_or_create(session_id=session_id)


@router.post("/items", response_model=CartOut)
def add_item(
    payload: ItemIn,
    user_id: Optional[int] = Depends(optional_user_id),
    session_id: Optional[str] = Depends(session_id_header),
    db: Session = Depends(get_db),
):
    svc = get_service(db)
    return svc.add_item(
        cart_id=_cart_id(svc, user_id, session_id),
        product_id=payload.product_id,
        quantity=payload.quantity,
        attributes=payload.attributes,
    )


@router.put("/items/{product_id}", response_model=CartOut)
def update_item(
    product_id: str,
    payload: ItemUpdateIn,
    user_id: Optional[int] = Depends(optional_user_id),
    session_id: Optional[str] = Depends(session_id_header),
    db: Session = Depends(get_db),
):
    svc = get_service(db)
    return svc.update_item(_cart_id(svc, user_id, session_id), product_id, payload.quantity)


@router.delete("/items/{product_id}", response_model=CartOut)
def remove_item(
    product_id: str,
    user_id: Optional[int] = Depends(optional_user_id),
    session_id: Optional[str] = Depends(session_id_header),
    db: Session = Depends(get_db),
):
    svc = get_service(db)
    return svc.remove_item(_cart_id(svc, user_id, session_id), product_id)


@router.post("/merge", response_model=CartOut)
def merge_cart(
    payload: MergeCartIn,
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    """Po zalogowaniu: koszyk goscia wchodzi do koszyka usera, koszyk goscia znika."""
    return get_service(db).merge_guest_cart(user_id, payload.guest_session_id)
