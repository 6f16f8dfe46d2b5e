# app/domain/schemas.py
from pydantic import BaseModel, Field, ConfigDict
from typing import Any, Dict, List, Optional
from decimal import Decimal
from datetime import datetime

from app.domain.roles import Role
from app.domain.status import OrderStatus


# =====================================================
# USERS
# =====================================================
class UserCreate(BaseModel):
    """Schema dla tworzenia użytkownika."""

    id: int = Field(..., gt=0, le=2**63 - 1, description="ID użytkownika (musi być > 0)")
    name: str = Field(..., min_length=1, max_length=100)
    email: str = Field(..., min_length=3, max_length=255)
    role: Role = Role.CUSTOMER


class UserRead(BaseModel):
    id: int
    name: str
    email: str
    role: Role

    model_config = ConfigDict(from_attributes=True)


# =====================================================
# CART
# =====================================================
class ItemIn(BaseModel):
    """Schema dla dodawania produktu do koszyka."""

    product_id: str = Field(..., min_length=1)
    quantity: int = Field(..., gt=0, description="Ilość produktu (musi być > 0)")
    attributes: Dict[str, Any] = Field(default_factory=dict)


class ItemUpdateIn(BaseModel):
    # 0 usuwa pozycje
    quantity: int = Field(..., ge=0)


class MergeCartIn(BaseModel):
    guest_session_id: str = Field(..., min_length=1)


class CartItemOut(BaseModel):
    product_id: str
    sku: str
    quantity: int
    price: Decimal
    attributes: Dict[str, Any] = Field(default_factory=dict)


class CartOut(BaseModel):
    cart_id: str
    user_id: Optional[int] = None
    session_id: Optional[str] = None
    items: List[CartItemOut]
    total: Decimal
    item_count: int
    created_at: datetime
    updated_at: datetime


# =====================================================
# ORDERS
# =====================================================
class Address(BaseModel):
    """Adres jako snapshot w zamówieniu, nie referencja."""

    label: str = Field(..., min_length=1)
    line1: str = Field(..., min_length=1)
    line2: Optional[str] = None
    city: str = Field(..., min_length=1)
    postal_code: str = Field(..., min_length=1)
    country: str = Field(..., min_length=1)
    phone: Optional[str] = None


class PaymentMethod(BaseModel):
    provider: str = Field(..., min_length=1)
    token: Optional[str] = None


class CheckoutIn(BaseModel):
    cart_id: str = Field(..., min_length=1)
    shipping_address: Address
    billing_address: Address
    payment_method: PaymentMethod
    idempotency_key: Optional[str] = Field(default=None, max_length=128)


class StatusUpdateIn(BaseModel):
    status: OrderStatus
    note: Optional[str] = None


class ReasonIn(BaseModel):
    reason: str = Field(..., min_length=1)


class PaymentNotificationIn(BaseModel):
    status: str = Field(..., min_length=1)
    transaction_id: Optional[str] = None
    amount: Optional[Decimal] = None


class OrderItemOut(BaseModel):
    product_id: str
    sku: str
    title: str
    quantity: int
    price: Decimal
    attributes: Dict[str, Any] = Field(default_factory=dict)


class PaymentOut(BaseModel):
    provider: str
    transaction_id: Optional[str] = None
    status: str
    amount: Optional[Decimal] = None
    currency: Optional[str] = None
    processed_at: Optional[datetime] = None


class OrderEventOut(BaseModel):
    status: OrderStatus
    at: datetime
    message: Optional[str] = None
    meta: Optional[Dict[str, Any]] = None


class OrderOut(BaseModel):
    """Schema dla zamówienia (response)."""

    id: str
    user_id: int
    items: List[OrderItemOut]
    subtotal: Decimal
    shipping: Decimal
    total: Decimal
    status: OrderStatus
    shipping_address: Address
    billing_address: Address
    payment: PaymentOut
    events: List[OrderEventOut]
    created_at: datetime
    updated_at: datetime


class OrderPageOut(BaseModel):
    items: List[OrderOut]
    page: int
    size: int
    total: int
