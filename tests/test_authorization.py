"""Tests for OrderPolicy and order reads by role."""

import pytest

from ecommerce_api.services.authorization import OrderAction, UserRole, require_role
from ecommerce_api.services.errors import OrderNotFoundError, UnauthorizedError

from conftest import ADMIN, CUSTOMER, OTHER_CUSTOMER, OTHER_SELLER, SELLER, order_request


@pytest.fixture
def order(service, make_product):
    p = make_product(seller_id=SELLER.user_id)
    return service.create_order(CUSTOMER.user_id, order_request((p.id, 1))).order


class TestOrderPolicy:
    @pytest.mark.parametrize("action", list(OrderAction))
    def test_admin_can_do_everything(self, service, order, action):
        assert service.policy.is_allowed(ADMIN, action, order)

    @pytest.mark.parametrize("action,allowed", [
        (OrderAction.VIEW, True),
        (OrderAction.CANCEL, True),
        (OrderAction.PAY, True),
        (OrderAction.UPDATE_NOTES, True),
        (OrderAction.UPDATE_STATUS, False),
        (OrderAction.UPDATE_TRACKING, False),
        (OrderAction.UPDATE_INTERNAL_NOTES, False),
    ])
    def test_owning_customer(self, service, order, action, allowed):
        assert service.policy.is_allowed(CUSTOMER, action, order) is allowed

    @pytest.mark.parametrize("action", list(OrderAction))
    def test_other_customer_gets_nothing(self, service, order, action):
        assert not service.policy.is_allowed(OTHER_CUSTOMER, action, order)

    @pytest.mark.parametrize("action,allowed", [
        (OrderAction.VIEW, True),
        (OrderAction.UPDATE_STATUS, True),
        (OrderAction.UPDATE_TRACKING, True),
        (OrderAction.UPDATE_INTERNAL_NOTES, True),
        (OrderAction.CANCEL, False),
        (OrderAction.PAY, False),
        (OrderAction.UPDATE_NOTES, False),
    ])
    def test_seller_owning_item(self, service, order, action, allowed):
        assert service.policy.is_allowed(SELLER, action, order) is allowed

    @pytest.mark.parametrize("action", list(OrderAction))
    def test_unrelated_seller_gets_nothing(self, service, order, action):
        assert not service.policy.is_allowed(OTHER_SELLER, action, order)

    def test_require_role(self):
        require_role(ADMIN, UserRole.ADMIN)
        with pytest.raises(UnauthorizedError):
            require_role(SELLER, UserRole.ADMIN)

    def test_role_parse(self):
        assert UserRole.parse("Seller") is UserRole.SELLER
        assert UserRole.parse("root") is None


class TestOrderReads:
    def test_get_order_checks_view(self, service, order):
        assert service.get_order(order.id, CUSTOMER).id == order.id
        assert service.get_order(order.id, SELLER).id == order.id
        with pytest.raises(UnauthorizedError):
            service.get_order(order.id, OTHER_CUSTOMER)

    def test_seller_orders_only_include_own_items(self, service, make_product, order):
        other = make_product(seller_id=OTHER_SELLER.user_id)
        service.create_order(OTHER_CUSTOMER.user_id, order_request((other.id, 1)))

        assert [o.id for o in service.get_seller_orders(SELLER.user_id)] == [order.id]
        assert len(service.get_seller_orders(OTHER_SELLER.user_id)) == 1

    def test_user_orders_are_paginated(self, service, make_product):
        p = make_product(stock=10)
        ids = [service.create_order(CUSTOMER.user_id, order_request((p.id, 1))).order.id for _ in range(3)]

        first_page = service.get_user_orders(CUSTOMER.user_id, limit=2, offset=0)
        second_page = service.get_user_orders(CUSTOMER.user_id, limit=2, offset=2)

        assert len(first_page) == 2
        assert len(second_page) == 1
        assert {o.id for o in first_page + second_page} == set(ids)

    def test_tracking_and_notes(self, service, order):
        updated = service.update_tracking_number(order.id, "BR123456789", SELLER)
        assert updated.tracking_number == "BR123456789"

        updated = service.update_notes(order.id, CUSTOMER, notes="Entregar à tarde")
        assert updated.notes == "Entregar à tarde"

        with pytest.raises(UnauthorizedError):
            service.update_notes(order.id, CUSTOMER, internal_notes="cliente VIP")

        updated = service.update_notes(order.id, SELLER, internal_notes="embalar para presente")
        assert updated.internal_notes == "embalar para presente"
        assert "internal_notes" not in updated.to_dict()

    def test_soft_deleted_order_is_hidden(self, service, order):
        service.orders.soft_delete(order.id)

        with pytest.raises(OrderNotFoundError):
            service.get_order(order.id, ADMIN)
        assert service.get_user_orders(CUSTOMER.user_id) == []
