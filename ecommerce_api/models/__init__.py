# ecommerce_api/models/__init__.py
from datetime import datetime, timezone
from decimal import Decimal

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()

# maior valor que cabe em Numeric(10, 2)
MAX_AMOUNT = Decimal("99999999.99")


def utcnow() -> datetime:
    """Horário UTC sem tzinfo (formato gravado pelas colunas DateTime)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Product(db.Model):
    __tablename__ = "products"

    id = db.Column(db.Integer, primary_key=True)
    sku = db.Column(db.String(100), nullable=False, unique=True)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, default="")
    image_url = db.Column(db.String(500), default="")
    price = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    stock = db.Column(db.Integer, nullable=False, default=0)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    seller_id = db.Column(db.Integer, nullable=False, index=True)
    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    def __repr__(self):
        return f"<Product id={self.id} sku={self.sku!r} stock={self.stock}>"


from .order import (  # noqa: E402
    Order,
    OrderItem,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    generate_order_number,
)
from .cart import CartItem  # noqa: E402

__all__ = [
    "db",
    "MAX_AMOUNT",
    "utcnow",
    "Product",
    "CartItem",
    "Order",
    "OrderItem",
    "OrderStatus",
    "PaymentMethod",
    "PaymentStatus",
    "generate_order_number",
]
