# app/domain/roles.py
from enum import Enum


class Role(str, Enum):
    CUSTOMER = "CUSTOMER"
    SUPPORT = "SUPPORT"
    ADMIN = "ADMIN"


class Permission(str, Enum):
    READ_OWN_ORDERS = "READ_OWN_ORDERS"
    READ_ANY_ORDER = "READ_ANY_ORDER"
    MANAGE_ORDERS = "MANAGE_ORDERS"


def has_permission(role: Role, permission: Permission) -> bool:
    role = Role(role)
    permission = Permission(permission)

    if role is Role.ADMIN:
        return True
    if role is Role.SUPPORT:
        return permission in (Permission.READ_OWN_ORDERS, Permission.READ_ANY_ORDER)
    if role is Role.CUSTOMER:
        return permission is Permission.READ_OWN_ORDERS
    return False
