"""
Acesso a pedidos. Pedidos com deleted_at preenchido não aparecem em nenhuma leitura.
"""

from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from ..models import db, Order, OrderItem, OrderStatus, PaymentMethod, PaymentStatus, Product, utcnow


class OrderRepository:

    def __init__(self, session=None):
        self._session = session

    @property
    def session(self):
        return self._session or db.session

    def _query(self):
        return self.session.query(Order).filter(Order.deleted_at.is_(None))

    def _commit(self):
        try:
            self.session.commit()
        except SQLAlchemyError:
            self.session.rollback()
            raise

    # ------------------------------------------------------------------ #
    #  escrita                                                             #
    # ------------------------------------------------------------------ #

    def create(self, order: Order) -> Order:
        """Grava pedido e itens num único commit."""
        self.session.add(order)
        self._commit()
        return order

    def update_status(self, order_id: int, status: OrderStatus,
                      expected: Optional[OrderStatus] = None, **extra) -> bool:
        """
        Com expected, só grava se o pedido ainda estiver nesse status.
        Retorna False quando nenhuma linha foi alterada.
        """
        values = {"status": status.value, "updated_at": utcnow()}
        values.update(extra)
        return self._update(order_id, values, expected)

    def mark_paid(self, order_id: int, payment_id: str,
                  payment_method: Optional[PaymentMethod] = None) -> bool:
        """pending -> confirmed/paid; False se o pedido já saiu de pending."""
        now = utcnow()
        values = {
            "status": OrderStatus.CONFIRMED.value,
            "payment_status": PaymentStatus.PAID.value,
            "payment_id": payment_id,
            "paid_at": now,
            "updated_at": now,
        }
        if payment_method is not None:
            values["payment_method"] = payment_method.value
        return self._update(order_id, values, OrderStatus.PENDING)

    def update_tracking_number(self, order_id: int, tracking_number: str) -> None:
        self._update(order_id, {"tracking_number": tracking_number, "updated_at": utcnow()})

    def update_notes(self, order_id: int, notes=None, internal_notes=None) -> None:
        values = {"updated_at": utcnow()}
        if notes is not None:
            values["notes"] = notes
        if internal_notes is not None:
            values["internal_notes"] = internal_notes
        self._update(order_id, values)

    def soft_delete(self, order_id: int) -> None:
        self._update(order_id, {"deleted_at": utcnow()})

    def _update(self, order_id: int, values: dict, expected: Optional[OrderStatus] = None) -> bool:
        stmt = db.update(Order).where(Order.id == order_id, Order.deleted_at.is_(None))
        if expected is not None:
            # compare-and-set: quem gravou antes vence
            stmt = stmt.where(Order.status == expected.value)
        try:
            result = self.session.execute(
                stmt.values(**values).execution_options(synchronize_session=False)
            )
        except SQLAlchemyError:
            self.session.rollback()
            raise
        self._commit()
        return result.rowcount > 0

    # ------------------------------------------------------------------ #
    #  leitura                                                             #
    # ------------------------------------------------------------------ #

    def get_by_id(self, order_id: int) -> Optional[Order]:
        order = self._query().filter(Order.id == order_id).first()
        if order is not None:
            # updates em lote não sincronizam a identity map
            self.session.refresh(order)
        return order

    def get_by_user_id(self, customer_id: int, limit: int = 10, offset: int = 0) -> List[Order]:
        return (
            self._query()
            .filter(Order.customer_id == customer_id)
            .order_by(Order.created_at.desc(), Order.id.desc())
            .limit(limit).offset(offset).all()
        )

    def get_all(self, limit: int = 10, offset: int = 0) -> List[Order]:
        return (
            self._query()
            .order_by(Order.created_at.desc(), Order.id.desc())
            .limit(limit).offset(offset).all()
        )

    def get_by_status(self, status: OrderStatus, limit: int = 10, offset: int = 0) -> List[Order]:
        return (
            self._query()
            .filter(Order.status == status.value)
            .order_by(Order.created_at.desc(), Order.id.desc())
            .limit(limit).offset(offset).all()
        )

    def get_by_date_range(self, start_date: datetime, end_date: datetime,
                          limit: int = 10, offset: int = 0) -> List[Order]:
        return (
            self._query()
            .filter(Order.created_at.between(start_date, end_date))
            .order_by(Order.created_at.desc(), Order.id.desc())
            .limit(limit).offset(offset).all()
        )

    def get_orders_by_seller_id(self, seller_id: int, limit: int = 10, offset: int = 0) -> List[Order]:
        seller_orders = (
            db.select(OrderItem.order_id)
            .join(Product, OrderItem.product_id == Product.id)
            .where(Product.seller_id == seller_id)
        )
        return (
            self._query()
            .filter(Order.id.in_(seller_orders))
            .order_by(Order.created_at.desc(), Order.id.desc())
            .limit(limit).offset(offset).all()
        )

    # ------------------------------------------------------------------ #
    #  agregados                                                           #
    # ------------------------------------------------------------------ #

    def count_by_status(self, seller_id: Optional[int] = None,
                        start_date: Optional[datetime] = None,
                        end_date: Optional[datetime] = None) -> Dict[str, int]:
        q = (
            self.session.query(Order.status, func.count(func.distinct(Order.id)))
            .filter(Order.deleted_at.is_(None))
        )
        if seller_id is not None:
            q = (
                q.join(OrderItem, OrderItem.order_id == Order.id)
                .join(Product, OrderItem.product_id == Product.id)
                .filter(Product.seller_id == seller_id)
            )
        q = _date_bounds(q, start_date, end_date)
        return {status: int(count) for status, count in q.group_by(Order.status).all()}

    def get_total_revenue(self, start_date: Optional[datetime] = None,
                          end_date: Optional[datetime] = None) -> Decimal:
        q = (
            self.session.query(func.coalesce(func.sum(Order.total_amount), 0))
            .filter(Order.deleted_at.is_(None), Order.status == OrderStatus.DELIVERED.value)
        )
        q = _date_bounds(q, start_date, end_date)
        return Decimal(str(q.scalar() or 0))

    def get_revenue_by_seller_id(self, seller_id: int,
                                 start_date: Optional[datetime] = None,
                                 end_date: Optional[datetime] = None) -> Decimal:
        """Soma só os itens do vendedor, nunca o total do pedido inteiro."""
        q = (
            self.session.query(func.coalesce(func.sum(OrderItem.total_price), 0))
            .join(Order, OrderItem.order_id == Order.id)
            .join(Product, OrderItem.product_id == Product.id)
            .filter(
                Product.seller_id == seller_id,
                Order.deleted_at.is_(None),
                Order.status == OrderStatus.DELIVERED.value,
            )
        )
        q = _date_bounds(q, start_date, end_date)
        return Decimal(str(q.scalar() or 0))


def _date_bounds(q, start_date, end_date):
    if start_date is not None:
        q = q.filter(Order.created_at >= start_date)
    if end_date is not None:
        q = q.filter(Order.created_at <= end_date)
    return q
