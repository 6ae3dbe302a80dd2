"""
Regras de acesso a pedidos por papel (customer, seller, admin).
Toda operação do OrderService passa por aqui.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from ..models import Order
from .errors import UnauthorizedError


class UserRole(Enum):
    CUSTOMER = "customer"
    SELLER = "seller"
    ADMIN = "admin"

    @classmethod
    def parse(cls, value) -> Optional["UserRole"]:
        try:
            return cls((value or "").strip().lower())
        except (ValueError, AttributeError):
            return None


@dataclass(frozen=True)
class Actor:
    """Usuário que executa a operação"""
    user_id: int
    role: UserRole

    @property
    def is_admin(self) -> bool:
        return self.role is UserRole.ADMIN


class OrderAction(Enum):
    VIEW = "view"
    UPDATE_STATUS = "update_status"
    CANCEL = "cancel"
    PAY = "pay"
    UPDATE_TRACKING = "update_tracking"
    UPDATE_NOTES = "update_notes"
    UPDATE_INTERNAL_NOTES = "update_internal_notes"


class OrderPolicy:
    """
    | ação                   | admin | seller dono de item | customer dono |
    |------------------------|-------|---------------------|---------------|
    | view                   | sim   | sim                 | sim           |
    | update_status          | sim   | sim                 | não           |
    | cancel                 | sim   | não                 | sim           |
    | pay                    | sim   | não                 | sim           |
    | update_tracking        | sim   | sim                 | não           |
    | update_notes           | sim   | não                 | sim           |
    | update_internal_notes  | sim   | sim                 | não           |
    """

    _CUSTOMER_ACTIONS = frozenset({
        OrderAction.VIEW,
        OrderAction.CANCEL,
        OrderAction.PAY,
        OrderAction.UPDATE_NOTES,
    })
    _SELLER_ACTIONS = frozenset({
        OrderAction.VIEW,
        OrderAction.UPDATE_STATUS,
        OrderAction.UPDATE_TRACKING,
        OrderAction.UPDATE_INTERNAL_NOTES,
    })

    def __init__(self, products):
        self.products = products

    def is_allowed(self, actor: Actor, action: OrderAction, order: Order) -> bool:
        if actor.is_admin:
            return True
        # o dono do pedido age como customer, qualquer que seja o papel
        if order.customer_id == actor.user_id and action in self._CUSTOMER_ACTIONS:
            return True
        if actor.role is UserRole.SELLER and action in self._SELLER_ACTIONS:
            return self.seller_owns_item(actor.user_id, order)
        return False

    def authorize(self, actor: Actor, action: OrderAction, order: Order) -> None:
        if not self.is_allowed(actor, action, order):
            raise UnauthorizedError(f"Sem permissão para {action.value} no pedido {order.id}")

    def seller_owns_item(self, seller_id: int, order: Order) -> bool:
        products = self.products.get_many(item.product_id for item in order.items)
        return any(p.seller_id == seller_id for p in products.values())


def require_role(actor: Actor, *roles: UserRole) -> None:
    """Para rotas sem pedido específico (listagens de vendedor e admin)."""
    if actor.role not in roles:
        allowed = ", ".join(r.value for r in roles)
        raise UnauthorizedError(f"Acesso restrito a: {allowed}")
