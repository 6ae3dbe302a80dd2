from decimal import Decimal

import pytest

from ecommerce_api.main import create_app
from ecommerce_api.models import db, Product
from ecommerce_api.models.demo_payment_gateway import DemoPaymentGateway
from ecommerce_api.services.authorization import Actor, UserRole
from ecommerce_api.services.dto import Address, CreateOrderRequest, OrderItemRequest
from ecommerce_api.models import PaymentMethod

ADMIN = Actor(user_id=1, role=UserRole.ADMIN)
CUSTOMER = Actor(user_id=10, role=UserRole.CUSTOMER)
OTHER_CUSTOMER = Actor(user_id=11, role=UserRole.CUSTOMER)
SELLER = Actor(user_id=100, role=UserRole.SELLER)
OTHER_SELLER = Actor(user_id=200, role=UserRole.SELLER)


@pytest.fixture
def gateway():
    return DemoPaymentGateway()


@pytest.fixture
def app(gateway):
    app = create_app(
        {
            "TESTING": True,
            "SQLALCHEMY_DATABASE_URI": "sqlite://",
            "CORS_ORIGINS": ["*"],
            "LOG_LEVEL": "WARNING",
        },
        payment_gateway=gateway,
    )
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def service(app):
    return app.extensions["ecommerce"]["order_service"]


@pytest.fixture
def cart_service(app):
    return app.extensions["ecommerce"]["cart_service"]


@pytest.fixture
def make_product(app):
    counter = {"n": 0}

    def _make(price="10.00", stock=5, seller_id=SELLER.user_id, is_active=True, name=None):
        counter["n"] += 1
        n = counter["n"]
        p = Product(
            sku=f"SKU-{n:04d}",
            name=name or f"Produto {n}",
            description=f"Descrição do produto {n}",
            image_url=f"https://cdn.example.com/p{n}.jpg",
            price=Decimal(price),
            stock=stock,
            is_active=is_active,
            seller_id=seller_id,
        )
        db.session.add(p)
        db.session.commit()
        return p

    return _make


def order_request(*lines, **kwargs):
    """order_request((product_id, qty), ...) com endereço e pagamento padrão."""
    kwargs.setdefault("shipping_address", Address(street="Rua das Flores, 123", city="Lisboa"))
    kwargs.setdefault("payment_method", PaymentMethod.CARD)
    return CreateOrderRequest(
        items=[OrderItemRequest(product_id=pid, quantity=qty) for pid, qty in lines],
        **kwargs,
    )


def stock_of(product_id):
    return db.session.get(Product, product_id).stock


def auth_headers(actor):
    return {"X-User-ID": str(actor.user_id), "X-User-Role": actor.role.value}
