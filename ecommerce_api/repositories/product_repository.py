"""
Acesso ao catálogo (produtos e estoque).
"""

from typing import Dict, Iterable, Optional

from sqlalchemy.exc import SQLAlchemyError

from ..models import db, Product, utcnow
from ..services.errors import StockAdjustmentError


class ProductRepository:
    """Catálogo de produtos sobre o Flask-SQLAlchemy."""

    def __init__(self, session=None):
        self._session = session

    @property
    def session(self):
        return self._session or db.session

    def get_by_id(self, product_id: int) -> Optional[Product]:
        return self.session.get(Product, product_id)

    def get_many(self, product_ids: Iterable[int]) -> Dict[int, Product]:
        ids = set(product_ids)
        if not ids:
            return {}
        rows = self.session.query(Product).filter(Product.id.in_(ids)).all()
        return {p.id: p for p in rows}

    def update_stock(self, product_id: int, new_stock: int) -> None:
        """Grava um valor absoluto de estoque."""
        if new_stock < 0:
            raise StockAdjustmentError(f"Estoque negativo não permitido para o produto {product_id}")
        try:
            result = self.session.execute(
                db.update(Product)
                .where(Product.id == product_id)
                .values(stock=new_stock, updated_at=utcnow())
            )
            if result.rowcount == 0:
                self.session.rollback()
                raise StockAdjustmentError(f"Produto {product_id} não encontrado")
            self.session.commit()
        except SQLAlchemyError:
            self.session.rollback()
            raise

    def adjust_stock(self, product_id: int, delta: int) -> None:
        """
        Soma `delta` ao estoque num único UPDATE condicional.
        Não aplica (e levanta StockAdjustmentError) se o resultado ficaria negativo,
        o que acontece quando outro checkout consumiu o estoque depois da verificação.
        """
        try:
            result = self.session.execute(
                db.update(Product)
                .where(Product.id == product_id, Product.stock + delta >= 0)
                .values(stock=Product.stock + delta, updated_at=utcnow())
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                self.session.rollback()
                raise StockAdjustmentError(
                    f"Não foi possível ajustar o estoque do produto {product_id} em {delta:+d}"
                )
            self.session.commit()
        except SQLAlchemyError:
            self.session.rollback()
            raise
