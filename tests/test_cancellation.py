"""Tests for OrderService.cancel_order."""

import pytest
from sqlalchemy.exc import SQLAlchemyError

from ecommerce_api.models import OrderStatus
from ecommerce_api.services.errors import NotCancellableError, OrderNotFoundError, UnauthorizedError

from conftest import ADMIN, CUSTOMER, OTHER_CUSTOMER, SELLER, order_request, stock_of


@pytest.fixture
def two_line_order(service, make_product):
    a = make_product(stock=5)
    b = make_product(stock=8)
    order = service.create_order(CUSTOMER.user_id, order_request((a.id, 2), (b.id, 3))).order
    return order.id, a.id, b.id


class TestCancelOrder:
    def test_pending_order_restores_stock(self, service, two_line_order):
        order_id, a, b = two_line_order
        assert (stock_of(a), stock_of(b)) == (3, 5)

        result = service.cancel_order(order_id, CUSTOMER)

        assert result.order.status == OrderStatus.CANCELLED.value
        assert result.fully_applied
        assert {(adj.product_id, adj.delta) for adj in result.stock_adjustments} == {(a, 2), (b, 3)}
        assert (stock_of(a), stock_of(b)) == (5, 8)

    def test_confirmed_order_can_be_cancelled(self, service, two_line_order):
        order_id, a, _ = two_line_order
        service.orders.update_status(order_id, OrderStatus.CONFIRMED)

        service.cancel_order(order_id, ADMIN)

        assert stock_of(a) == 5

    @pytest.mark.parametrize("status", [
        OrderStatus.PROCESSING,
        OrderStatus.SHIPPED,
        OrderStatus.DELIVERED,
        OrderStatus.CANCELLED,
        OrderStatus.REFUNDED,
    ])
    def test_not_cancellable(self, service, two_line_order, status):
        order_id, a, _ = two_line_order
        service.orders.update_status(order_id, status)

        with pytest.raises(NotCancellableError):
            service.cancel_order(order_id, ADMIN)

        assert stock_of(a) == 3
        assert service.get_order(order_id, ADMIN).status == status.value

    def test_second_cancel_does_not_restore_twice(self, service, two_line_order):
        order_id, a, _ = two_line_order
        service.cancel_order(order_id, CUSTOMER)

        with pytest.raises(NotCancellableError):
            service.cancel_order(order_id, CUSTOMER)
        assert stock_of(a) == 5

    def test_unknown_order(self, service):
        with pytest.raises(OrderNotFoundError):
            service.cancel_order(999, ADMIN)

    def test_stock_restore_failure_still_cancels(self, service, two_line_order, monkeypatch):
        order_id, a, b = two_line_order
        original = service.products.adjust_stock

        def flaky(product_id, delta):
            if product_id == a:
                raise SQLAlchemyError("timeout")
            return original(product_id, delta)

        monkeypatch.setattr(service.products, "adjust_stock", flaky)

        result = service.cancel_order(order_id, CUSTOMER)

        assert result.order.status == OrderStatus.CANCELLED.value
        assert not result.fully_applied
        assert stock_of(a) == 3
        assert stock_of(b) == 8


class TestCancelAuthorization:
    def test_other_customer_is_rejected(self, service, two_line_order):
        order_id, a, _ = two_line_order
        with pytest.raises(UnauthorizedError):
            service.cancel_order(order_id, OTHER_CUSTOMER)
        assert stock_of(a) == 3

    def test_seller_cannot_cancel(self, service, two_line_order):
        order_id, _, _ = two_line_order
        with pytest.raises(UnauthorizedError):
            service.cancel_order(order_id, SELLER)

    def test_admin_can_cancel_any_order(self, service, two_line_order):
        order_id, _, _ = two_line_order
        assert service.cancel_order(order_id, ADMIN).order.status == "cancelled"


class TestConcurrentCancellation:
    def _interleave_before_first_write(self, service, monkeypatch, competing):
        """A primeira gravação de status dispara antes outra operação no mesmo pedido."""
        original = service.orders.update_status
        triggered = []

        def update_status(order_id, status, expected=None, **extra):
            if not triggered:
                triggered.append(order_id)
                competing(order_id)
            return original(order_id, status, expected=expected, **extra)

        monkeypatch.setattr(service.orders, "update_status", update_status)

    def test_two_cancellations_restore_stock_once(self, service, two_line_order, monkeypatch):
        order_id, a, b = two_line_order
        self._interleave_before_first_write(
            service, monkeypatch, lambda oid: service.cancel_order(oid, ADMIN)
        )

        with pytest.raises(NotCancellableError) as exc:
            service.cancel_order(order_id, CUSTOMER)

        assert exc.value.status == OrderStatus.CANCELLED.value
        assert service.get_order(order_id, ADMIN).status == OrderStatus.CANCELLED.value
        assert (stock_of(a), stock_of(b)) == (5, 8)

    def test_cancel_loses_to_status_change(self, service, two_line_order, monkeypatch):
        order_id, a, _ = two_line_order
        service.orders.update_status(order_id, OrderStatus.CONFIRMED)
        self._interleave_before_first_write(
            service, monkeypatch, lambda oid: service.update_order_status(oid, "processing", ADMIN)
        )

        with pytest.raises(NotCancellableError) as exc:
            service.cancel_order(order_id, CUSTOMER)

        assert exc.value.status == OrderStatus.PROCESSING.value
        assert service.get_order(order_id, ADMIN).status == OrderStatus.PROCESSING.value
        assert stock_of(a) == 3

    def test_stale_expected_status_writes_nothing(self, service, two_line_order):
        order_id, _, _ = two_line_order

        applied = service.orders.update_status(
            order_id, OrderStatus.CANCELLED, expected=OrderStatus.CONFIRMED
        )

        assert applied is False
        assert service.get_order(order_id, ADMIN).status == OrderStatus.PENDING.value
