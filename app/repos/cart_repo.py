# app/repos/cart_repo.py
from typing import Any, Dict

from sqlalchemy import delete, select, update
from sqlalchemy.orm import Session

from app.data.models.cart import CartModel
from app.data.models.cart_item import CartItemModel


class CartRepo:
    def __init__(self, db: Session):
        self.db = db

    def get_cart(self, cart_id: str) -> CartModel | None:
        return self.db.get(CartModel, cart_id)

    def get_cart_by_user(self, user_id: int) -> CartModel | None:
        return self.db.execute(
            select(CartModel).where(CartModel.user_id == user_id)
        ).scalar_one_or_none()

    def get_cart_by_session(self, session_id: str) -> CartModel | None:
        return self.db.execute(
            select(CartModel).where(CartModel.session_id == session_id)
        ).scalar_one_or_none()

    def create_cart(self, cart: CartModel) -> CartModel:
        self.db.add(cart)
        self.db.commit()
        self.db.refresh(cart)
        return cart

    def get_cart_item(self, cart_id: str, product_id: str) -> CartItemModel | None:
        return self.db.execute(
            select(CartItemModel).where(
                CartItemModel.cart_id == cart_id,
                CartItemModel.product_id == product_id,
            )
        ).scalar_one_or_none()

    def add_cart_item(self, item: CartItemModel) -> None:
        # bez commita, commit dopiero po udanym update wersji koszyka
        self.db.add(item)
        self.db.flush()

    def delete_cart_item(self, item: CartItemModel) -> None:
        self.db.delete(item)
        self.db.flush()

    def update_cart_version(self, cart_id: str, old_version: int, new_data: Dict[str, Any]) -> int:
        """Optimistic locking: update carts set ... where id = :id and version = :old"""
        result = self.db.execute(
            update(CartModel)
            .where(CartModel.id == cart_id, CartModel.version == old_version)
            .values(**new_data)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def delete_cart(self, cart_id: str) -> int:
        self.db.execute(
            delete(CartItemModel)
            .where(CartItemModel.cart_id == cart_id)
            .execution_options(synchronize_session=False)
        )
        result = self.db.execute(
            delete(CartModel)
            .where(CartModel.id == cart_id)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def expunge(self, cart: CartModel) -> None:
        self.db.expunge(cart)

    def commit(self):
        self.db.commit()

    def rollback(self):
        self.db.rollback()
