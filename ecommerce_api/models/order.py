# ecommerce_api/models/order.py
"""
Pedidos e itens de pedido.
Os itens guardam um snapshot do produto no momento da compra, então
pedidos antigos não mudam quando o catálogo muda.
"""

import secrets
from enum import Enum
from typing import Dict, FrozenSet, Optional

from . import db, utcnow


class OrderStatus(Enum):
    """Status do pedido"""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"

    @classmethod
    def parse(cls, value) -> Optional["OrderStatus"]:
        if isinstance(value, cls):
            return value
        try:
            return cls((value or "").strip().lower())
        except (ValueError, AttributeError):
            return None


class PaymentStatus(Enum):
    """Status do pagamento"""
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"
    CANCELLED = "cancelled"


class PaymentMethod(Enum):
    """Formas de pagamento aceitas"""
    CARD = "card"
    PAYPAL = "paypal"
    BANK_TRANSFER = "bank_transfer"
    CASH_ON_DELIVERY = "cash_on_delivery"


# Tabela de transições permitidas. Estados sem saída são finais.
VALID_TRANSITIONS: Dict[OrderStatus, FrozenSet[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.CONFIRMED, OrderStatus.CANCELLED}),
    OrderStatus.CONFIRMED: frozenset({OrderStatus.PROCESSING, OrderStatus.CANCELLED}),
    OrderStatus.PROCESSING: frozenset({OrderStatus.SHIPPED, OrderStatus.CANCELLED}),
    OrderStatus.SHIPPED: frozenset({OrderStatus.DELIVERED}),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
    OrderStatus.REFUNDED: frozenset(),
}

CANCELLABLE_STATUSES = frozenset({OrderStatus.PENDING, OrderStatus.CONFIRMED})


def is_valid_transition(from_status: OrderStatus, to_status: OrderStatus) -> bool:
    return to_status in VALID_TRANSITIONS.get(from_status, frozenset())


def generate_order_number(now=None) -> str:
    """
    Gera o número legível do pedido: ORD-YYYYMMDD-HHMMSS-XXXXXX.
    O sufixo é aleatório e não depende do ID (que ainda não existe antes do INSERT).
    """
    now = now or utcnow()
    return f"ORD-{now:%Y%m%d-%H%M%S}-{secrets.token_hex(3).upper()}"


class Order(db.Model):
    __tablename__ = "orders"

    id = db.Column(db.Integer, primary_key=True)
    order_number = db.Column(db.String(50), unique=True, nullable=False, index=True)
    customer_id = db.Column(db.Integer, nullable=False, index=True)

    status = db.Column(db.String(20), nullable=False, default=OrderStatus.PENDING.value, index=True)
    subtotal_amount = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    tax_amount = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    shipping_amount = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    discount_amount = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    total_amount = db.Column(db.Numeric(10, 2), nullable=False, default=0)

    # Pagamento
    payment_status = db.Column(db.String(20), nullable=False, default=PaymentStatus.PENDING.value)
    payment_method = db.Column(db.String(20))
    payment_id = db.Column(db.String(255))
    paid_at = db.Column(db.DateTime)

    # Endereço de entrega (snapshot)
    shipping_first_name = db.Column(db.String(100), default="")
    shipping_last_name = db.Column(db.String(100), default="")
    shipping_email = db.Column(db.String(255), default="")
    shipping_phone = db.Column(db.String(20))
    shipping_street = db.Column(db.String(255), nullable=False)
    shipping_city = db.Column(db.String(100), default="")
    shipping_state = db.Column(db.String(100), default="")
    shipping_country = db.Column(db.String(100), default="")
    shipping_postal_code = db.Column(db.String(20), default="")

    # Cobrança (opcional)
    billing_first_name = db.Column(db.String(100))
    billing_last_name = db.Column(db.String(100))
    billing_email = db.Column(db.String(255))
    billing_phone = db.Column(db.String(20))
    billing_street = db.Column(db.String(255))
    billing_city = db.Column(db.String(100))
    billing_state = db.Column(db.String(100))
    billing_country = db.Column(db.String(100))
    billing_postal_code = db.Column(db.String(20))

    # Rastreamento
    tracking_number = db.Column(db.String(100))
    shipped_at = db.Column(db.DateTime)
    delivered_at = db.Column(db.DateTime)

    notes = db.Column(db.Text)
    internal_notes = db.Column(db.Text)

    created_at = db.Column(db.DateTime, default=utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)
    deleted_at = db.Column(db.DateTime, index=True)

    items = db.relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="OrderItem.id",
    )

    @property
    def status_enum(self) -> OrderStatus:
        return OrderStatus(self.status)

    @property
    def item_count(self) -> int:
        return sum(item.quantity for item in self.items)

    def can_cancel(self) -> bool:
        return self.status_enum in CANCELLABLE_STATUSES

    def to_dict(self):
        return {
            "id": self.id,
            "order_number": self.order_number,
            "customer_id": self.customer_id,
            "status": self.status,
            "subtotal_amount": float(self.subtotal_amount or 0),
            "tax_amount": float(self.tax_amount or 0),
            "shipping_amount": float(self.shipping_amount or 0),
            "discount_amount": float(self.discount_amount or 0),
            "total_amount": float(self.total_amount or 0),
            "payment_status": self.payment_status,
            "payment_method": self.payment_method,
            "payment_id": self.payment_id,
            "paid_at": self.paid_at.isoformat() if self.paid_at else None,
            "shipping_address": {
                "first_name": self.shipping_first_name,
                "last_name": self.shipping_last_name,
                "email": self.shipping_email,
                "phone": self.shipping_phone,
                "street": self.shipping_street,
                "city": self.shipping_city,
                "state": self.shipping_state,
                "country": self.shipping_country,
                "postal_code": self.shipping_postal_code,
            },
            "billing_address": {
                "first_name": self.billing_first_name,
                "last_name": self.billing_last_name,
                "email": self.billing_email,
                "phone": self.billing_phone,
                "street": self.billing_street,
                "city": self.billing_city,
                "state": self.billing_state,
                "country": self.billing_country,
                "postal_code": self.billing_postal_code,
            } if self.billing_street else None,
            "tracking_number": self.tracking_number,
            "shipped_at": self.shipped_at.isoformat() if self.shipped_at else None,
            "delivered_at": self.delivered_at.isoformat() if self.delivered_at else None,
            "notes": self.notes,
            "item_count": self.item_count,
            "items": [item.to_dict() for item in self.items],
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f"<Order id={self.id} number={self.order_number!r} status={self.status}>"


class OrderItem(db.Model):
    __tablename__ = "order_items"

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    # preço unitário à época do pedido
    unit_price = db.Column(db.Numeric(10, 2), nullable=False)
    total_price = db.Column(db.Numeric(10, 2), nullable=False)

    # snapshot do produto
    product_name = db.Column(db.String(255), nullable=False)
    product_sku = db.Column(db.String(100), nullable=False)
    product_description = db.Column(db.Text)
    product_image = db.Column(db.String(500))

    created_at = db.Column(db.DateTime, default=utcnow)

    order = db.relationship("Order", back_populates="items")

    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="chk_order_items_quantity"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "product_id": self.product_id,
            "quantity": self.quantity,
            "unit_price": float(self.unit_price or 0),
            "total_price": float(self.total_price or 0),
            "product_name": self.product_name,
            "product_sku": self.product_sku,
            "product_description": self.product_description,
            "product_image": self.product_image,
        }

    def __repr__(self):
        return f"<OrderItem {self.quantity}x product={self.product_id} order={self.order_id}>"
