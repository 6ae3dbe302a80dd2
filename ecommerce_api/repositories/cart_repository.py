"""
Acesso ao carrinho. Cada cliente tem no máximo uma linha por produto.
"""

from typing import List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..models import db, CartItem, utcnow


class CartRepository:

    def __init__(self, session=None):
        self._session = session

    @property
    def session(self):
        return self._session or db.session

    def _commit(self):
        try:
            self.session.commit()
        except SQLAlchemyError:
            self.session.rollback()
            raise

    def get_items(self, customer_id: int) -> List[CartItem]:
        return (
            self.session.query(CartItem)
            .filter(CartItem.customer_id == customer_id)
            .order_by(CartItem.id)
            .all()
        )

    def get_item(self, customer_id: int, product_id: int) -> Optional[CartItem]:
        return (
            self.session.query(CartItem)
            .filter(CartItem.customer_id == customer_id, CartItem.product_id == product_id)
            .first()
        )

    def add_quantity(self, customer_id: int, product_id: int, quantity: int) -> None:
        """Soma à linha existente ou cria uma nova."""
        if self._increment(customer_id, product_id, quantity):
            return
        self.session.add(CartItem(customer_id=customer_id, product_id=product_id, quantity=quantity))
        try:
            self.session.commit()
        except IntegrityError:
            # outra requisição criou a linha entre o UPDATE e o INSERT
            self.session.rollback()
            if not self._increment(customer_id, product_id, quantity):
                raise
        except SQLAlchemyError:
            self.session.rollback()
            raise

    def set_quantity(self, customer_id: int, product_id: int, quantity: int) -> bool:
        return self._execute(
            db.update(CartItem)
            .where(CartItem.customer_id == customer_id, CartItem.product_id == product_id)
            .values(quantity=quantity, updated_at=utcnow())
        ) > 0

    def remove(self, customer_id: int, product_id: int) -> bool:
        return self._execute(
            db.delete(CartItem)
            .where(CartItem.customer_id == customer_id, CartItem.product_id == product_id)
        ) > 0

    def clear(self, customer_id: int) -> int:
        return self._execute(db.delete(CartItem).where(CartItem.customer_id == customer_id))

    def _increment(self, customer_id: int, product_id: int, quantity: int) -> bool:
        return self._execute(
            db.update(CartItem)
            .where(CartItem.customer_id == customer_id, CartItem.product_id == product_id)
            .values(quantity=CartItem.quantity + quantity, updated_at=utcnow())
        ) > 0

    def _execute(self, stmt) -> int:
        try:
            result = self.session.execute(stmt.execution_options(synchronize_session=False))
        except SQLAlchemyError:
            self.session.rollback()
            raise
        self._commit()
        return result.rowcount
