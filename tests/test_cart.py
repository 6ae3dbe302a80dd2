"""Tests for CartService and the cart routes."""

from decimal import Decimal

import pytest
from sqlalchemy.exc import SQLAlchemyError

from ecommerce_api.models import db, CartItem, Order, OrderStatus, PaymentMethod
from ecommerce_api.services.dto import Address, CreateOrderRequest
from ecommerce_api.services.errors import (
    CartItemNotFoundError,
    EmptyCartError,
    InsufficientStockError,
    InvalidOrderRequestError,
    ProductInactiveError,
    ProductNotFoundError,
)

from conftest import CUSTOMER, OTHER_CUSTOMER, auth_headers, stock_of


def _checkout_request(**kwargs):
    kwargs.setdefault("shipping_address", Address(street="Rua das Flores, 123", city="Lisboa"))
    kwargs.setdefault("payment_method", PaymentMethod.CARD)
    return CreateOrderRequest(items=[], **kwargs)


class TestCartContents:
    def test_empty_cart(self, cart_service):
        cart = cart_service.get_cart(CUSTOMER.user_id)

        assert cart.items == []
        assert cart.total_amount == Decimal("0")
        assert cart.item_count == 0

    def test_add_items(self, cart_service, make_product):
        a = make_product(price="19.90", stock=10)
        b = make_product(price="5.05", stock=10)

        cart_service.add_item(CUSTOMER.user_id, a.id, 2)
        cart = cart_service.add_item(CUSTOMER.user_id, b.id, 3)

        assert [(line.product_id, line.quantity) for line in cart.items] == [(a.id, 2), (b.id, 3)]
        assert cart.total_amount == Decimal("54.95")
        assert cart.item_count == 5
        assert all(line.available for line in cart.items)

    def test_adding_same_product_increments(self, cart_service, make_product):
        p = make_product(stock=10)

        cart_service.add_item(CUSTOMER.user_id, p.id, 2)
        cart = cart_service.add_item(CUSTOMER.user_id, p.id, 3)

        assert [(line.product_id, line.quantity) for line in cart.items] == [(p.id, 5)]
        assert CartItem.query.count() == 1

    def test_cart_does_not_reserve_stock(self, cart_service, make_product):
        p = make_product(stock=5)
        cart_service.add_item(CUSTOMER.user_id, p.id, 4)
        assert stock_of(p.id) == 5

    def test_prices_follow_the_catalog(self, cart_service, make_product):
        p = make_product(price="10.00", stock=5)
        cart_service.add_item(CUSTOMER.user_id, p.id, 2)

        p.price = Decimal("12.50")
        db.session.commit()

        assert cart_service.get_total(CUSTOMER.user_id) == Decimal("25.00")

    def test_carts_are_per_customer(self, cart_service, make_product):
        p = make_product(stock=5)
        cart_service.add_item(CUSTOMER.user_id, p.id, 1)

        assert cart_service.get_item_count(OTHER_CUSTOMER.user_id) == 0
        assert cart_service.get_item_count(CUSTOMER.user_id) == 1

    def test_update_quantity(self, cart_service, make_product):
        p = make_product(price="3.00", stock=10)
        cart_service.add_item(CUSTOMER.user_id, p.id, 1)

        cart = cart_service.update_item(CUSTOMER.user_id, p.id, 7)

        assert cart.item_count == 7
        assert cart.total_amount == Decimal("21.00")

    def test_remove_and_clear(self, cart_service, make_product):
        a = make_product(stock=5)
        b = make_product(stock=5)
        cart_service.add_item(CUSTOMER.user_id, a.id, 1)
        cart_service.add_item(CUSTOMER.user_id, b.id, 1)

        cart = cart_service.remove_item(CUSTOMER.user_id, a.id)
        assert [line.product_id for line in cart.items] == [b.id]

        assert cart_service.clear_cart(CUSTOMER.user_id) == 1
        assert cart_service.get_cart(CUSTOMER.user_id).items == []

    def test_line_becomes_unavailable(self, cart_service, make_product):
        p = make_product(stock=5)
        cart_service.add_item(CUSTOMER.user_id, p.id, 3)

        p.stock = 2
        db.session.commit()

        assert cart_service.get_cart(CUSTOMER.user_id).items[0].available is False


class TestCartValidation:
    def test_unknown_product(self, cart_service):
        with pytest.raises(ProductNotFoundError):
            cart_service.add_item(CUSTOMER.user_id, 404, 1)

    def test_inactive_product(self, cart_service, make_product):
        p = make_product(is_active=False)
        with pytest.raises(ProductInactiveError):
            cart_service.add_item(CUSTOMER.user_id, p.id, 1)

    def test_stock_limit_counts_quantity_already_in_cart(self, cart_service, make_product):
        p = make_product(stock=5)
        cart_service.add_item(CUSTOMER.user_id, p.id, 4)

        with pytest.raises(InsufficientStockError) as exc:
            cart_service.add_item(CUSTOMER.user_id, p.id, 2)

        assert exc.value.requested == 6
        assert cart_service.get_item_count(CUSTOMER.user_id) == 4

    def test_update_beyond_stock(self, cart_service, make_product):
        p = make_product(stock=3)
        cart_service.add_item(CUSTOMER.user_id, p.id, 1)

        with pytest.raises(InsufficientStockError):
            cart_service.update_item(CUSTOMER.user_id, p.id, 4)

    @pytest.mark.parametrize("quantity", [0, -2, True])
    def test_invalid_quantity(self, cart_service, make_product, quantity):
        p = make_product()
        with pytest.raises(InvalidOrderRequestError):
            cart_service.add_item(CUSTOMER.user_id, p.id, quantity)

    def test_update_missing_line(self, cart_service, make_product):
        p = make_product()
        with pytest.raises(CartItemNotFoundError):
            cart_service.update_item(CUSTOMER.user_id, p.id, 1)

    def test_remove_missing_line(self, cart_service, make_product):
        p = make_product()
        with pytest.raises(CartItemNotFoundError):
            cart_service.remove_item(CUSTOMER.user_id, p.id)


class TestCheckout:
    def test_checkout_creates_order_and_clears_cart(self, cart_service, make_product):
        a = make_product(price="10.00", stock=5)
        b = make_product(price="2.50", stock=5)
        cart_service.add_item(CUSTOMER.user_id, a.id, 2)
        cart_service.add_item(CUSTOMER.user_id, b.id, 4)

        result = cart_service.checkout(CUSTOMER.user_id, _checkout_request(shipping_amount=Decimal("5.00")))

        order = result.order
        assert order.status == OrderStatus.PENDING.value
        assert order.customer_id == CUSTOMER.user_id
        assert order.total_amount == Decimal("35.00")
        assert sorted((item.product_id, item.quantity) for item in order.items) == [(a.id, 2), (b.id, 4)]
        assert (stock_of(a.id), stock_of(b.id)) == (3, 1)
        assert cart_service.get_cart(CUSTOMER.user_id).items == []

    def test_empty_cart(self, cart_service):
        with pytest.raises(EmptyCartError):
            cart_service.checkout(CUSTOMER.user_id, _checkout_request())
        assert Order.query.count() == 0

    def test_failed_checkout_keeps_cart(self, cart_service, make_product):
        p = make_product(stock=5)
        cart_service.add_item(CUSTOMER.user_id, p.id, 3)
        p.stock = 1
        db.session.commit()

        with pytest.raises(InsufficientStockError):
            cart_service.checkout(CUSTOMER.user_id, _checkout_request())

        assert Order.query.count() == 0
        assert cart_service.get_item_count(CUSTOMER.user_id) == 3

    def test_cart_clear_failure_keeps_order(self, cart_service, make_product, monkeypatch):
        p = make_product(stock=5)
        cart_service.add_item(CUSTOMER.user_id, p.id, 1)

        def broken_clear(customer_id):
            raise SQLAlchemyError("lock timeout")

        monkeypatch.setattr(cart_service.carts, "clear", broken_clear)

        result = cart_service.checkout(CUSTOMER.user_id, _checkout_request())

        assert result.order.id is not None
        assert Order.query.count() == 1


class TestCartRoutes:
    def test_add_get_update_remove(self, client, make_product):
        p = make_product(price="4.00", stock=10)
        headers = auth_headers(CUSTOMER)

        resp = client.post("/api/cart/", json={"product_id": p.id, "quantity": 2}, headers=headers)
        assert resp.status_code == 201
        assert resp.get_json()["data"]["total_amount"] == 8.0

        resp = client.put(f"/api/cart/{p.id}", json={"quantity": 5}, headers=headers)
        assert resp.get_json()["data"]["item_count"] == 5

        assert client.get("/api/cart/total", headers=headers).get_json()["data"]["total_amount"] == 20.0
        assert client.get("/api/cart/count", headers=headers).get_json()["data"]["item_count"] == 5

        resp = client.delete(f"/api/cart/{p.id}", headers=headers)
        assert resp.status_code == 200
        assert client.get("/api/cart/", headers=headers).get_json()["data"]["items"] == []

        resp = client.delete(f"/api/cart/{p.id}", headers=headers)
        assert resp.status_code == 404

    def test_clear(self, client, make_product):
        p = make_product()
        headers = auth_headers(CUSTOMER)
        client.post("/api/cart/", json={"product_id": p.id, "quantity": 1}, headers=headers)

        resp = client.delete("/api/cart/", headers=headers)

        assert resp.get_json()["data"] == {"removed_items": 1}

    def test_requires_identity(self, client):
        assert client.get("/api/cart/").status_code == 401

    def test_validation(self, client):
        resp = client.post("/api/cart/", json={"product_id": "x", "quantity": 0}, headers=auth_headers(CUSTOMER))
        assert resp.status_code == 400
        assert set(resp.get_json()["details"]) == {"product_id", "quantity"}

    def test_insufficient_stock(self, client, make_product):
        p = make_product(stock=1)
        resp = client.post("/api/cart/", json={"product_id": p.id, "quantity": 2}, headers=auth_headers(CUSTOMER))
        assert resp.status_code == 400

    def test_checkout(self, client, make_product):
        p = make_product(price="10.00", stock=5)
        headers = auth_headers(CUSTOMER)
        client.post("/api/cart/", json={"product_id": p.id, "quantity": 2}, headers=headers)

        resp = client.post(
            "/api/cart/checkout",
            json={"shipping_address": "Av. Brasil, 500", "payment_method": "card"},
            headers=headers,
        )

        assert resp.status_code == 201
        assert resp.get_json()["data"]["total_amount"] == 20.0
        assert stock_of(p.id) == 3
        assert client.get("/api/cart/count", headers=headers).get_json()["data"]["item_count"] == 0

    def test_checkout_rejects_explicit_items(self, client, make_product):
        p = make_product()
        resp = client.post(
            "/api/cart/checkout",
            json={"items": [{"product_id": p.id, "quantity": 1}], "shipping_address": "Av. Brasil, 500",
                  "payment_method": "card"},
            headers=auth_headers(CUSTOMER),
        )
        assert resp.status_code == 400
        assert set(resp.get_json()["details"]) == {"items"}
