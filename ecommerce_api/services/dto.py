"""
Estruturas de entrada e saída do OrderService e do CartService.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, List, Optional

from ..models import Order, PaymentMethod


@dataclass
class OrderItemRequest:
    product_id: int
    quantity: int


@dataclass
class Address:
    """Endereço copiado para o pedido no checkout"""
    street: str
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    phone: Optional[str] = None
    city: str = ""
    state: str = ""
    country: str = ""
    postal_code: str = ""

    @classmethod
    def from_payload(cls, data) -> "Address":
        """Aceita a string do endereço (rua) ou um objeto com os campos."""
        if isinstance(data, str):
            return cls(street=data.strip())
        data = data or {}
        return cls(
            street=(data.get("street") or "").strip(),
            first_name=(data.get("first_name") or "").strip(),
            last_name=(data.get("last_name") or "").strip(),
            email=(data.get("email") or "").strip(),
            phone=(data.get("phone") or "").strip() or None,
            city=(data.get("city") or "").strip(),
            state=(data.get("state") or "").strip(),
            country=(data.get("country") or "").strip(),
            postal_code=(data.get("postal_code") or "").strip(),
        )


@dataclass
class CreateOrderRequest:
    items: List[OrderItemRequest]
    shipping_address: Address
    payment_method: PaymentMethod
    billing_address: Optional[Address] = None
    tax_amount: Decimal = Decimal("0")
    shipping_amount: Decimal = Decimal("0")
    discount_amount: Decimal = Decimal("0")
    notes: Optional[str] = None


@dataclass
class PaymentRequest:
    # None mantém a forma escolhida na criação do pedido
    payment_method: Optional[PaymentMethod] = None
    currency: str = "usd"
    payment_method_id: Optional[str] = None


@dataclass
class PaymentResponse:
    transaction_id: str
    status: str
    amount: Decimal

    def to_dict(self):
        return {"transaction_id": self.transaction_id, "status": self.status, "amount": float(self.amount)}


@dataclass
class StockAdjustment:
    """Resultado de um ajuste de estoque best-effort"""
    product_id: int
    delta: int
    applied: bool
    error: Optional[str] = None

    def to_dict(self):
        return {"product_id": self.product_id, "delta": self.delta, "applied": self.applied, "error": self.error}


@dataclass
class OrderResult:
    """
    Pedido gravado mais os ajustes de estoque feitos fora da transação do pedido.
    Um ajuste com applied=False não desfaz o pedido; fica registrado aqui e no log.
    """
    order: Order
    stock_adjustments: List[StockAdjustment] = field(default_factory=list)

    @property
    def fully_applied(self) -> bool:
        return all(a.applied for a in self.stock_adjustments)

    def to_dict(self):
        data = self.order.to_dict()
        data["stock_adjustments"] = [a.to_dict() for a in self.stock_adjustments]
        return data


@dataclass
class OrderAnalytics:
    total_revenue: Decimal
    total_orders: int
    orders_by_status: Dict[str, int]

    def to_dict(self):
        data = {
            "total_revenue": float(self.total_revenue),
            "total_orders": self.total_orders,
            "orders_by_status": dict(self.orders_by_status),
        }
        # mesmas chaves do dashboard antigo
        for status, count in self.orders_by_status.items():
            data[f"{status}_orders"] = count
        return data


@dataclass
class CartLine:
    """Linha do carrinho com preço e disponibilidade do catálogo atual"""
    product_id: int
    product_name: str
    product_sku: str
    unit_price: Decimal
    quantity: int
    subtotal: Decimal
    available: bool

    def to_dict(self):
        return {
            "product_id": self.product_id,
            "product_name": self.product_name,
            "product_sku": self.product_sku,
            "unit_price": float(self.unit_price),
            "quantity": self.quantity,
            "subtotal": float(self.subtotal),
            "available": self.available,
        }


@dataclass
class CartView:
    customer_id: int
    items: List[CartLine] = field(default_factory=list)

    @property
    def total_amount(self) -> Decimal:
        return sum((line.subtotal for line in self.items), Decimal("0"))

    @property
    def item_count(self) -> int:
        return sum(line.quantity for line in self.items)

    def to_dict(self):
        return {
            "customer_id": self.customer_id,
            "items": [line.to_dict() for line in self.items],
            "total_amount": float(self.total_amount),
            "item_count": self.item_count,
        }
