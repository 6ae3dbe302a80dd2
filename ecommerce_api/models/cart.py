# ecommerce_api/models/cart.py
"""
Carrinho: uma linha por (cliente, produto).
Preço não é guardado aqui; o valor sempre sai do catálogo atual.
"""

from . import db, utcnow


class CartItem(db.Model):
    __tablename__ = "cart_items"

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id", ondelete="CASCADE"), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    product = db.relationship("Product", lazy="joined")

    __table_args__ = (
        db.UniqueConstraint("customer_id", "product_id", name="uq_cart_items_customer_product"),
        db.CheckConstraint("quantity > 0", name="chk_cart_items_quantity"),
    )

    def __repr__(self):
        return f"<CartItem customer={self.customer_id} product={self.product_id} qty={self.quantity}>"
