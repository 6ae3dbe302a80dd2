import logging
import os

from flask import Flask, jsonify
from flask_cors import CORS
from werkzeug.exceptions import HTTPException

from .config import Config
from .models import db
from .models.demo_payment_gateway import DemoPaymentGateway
from .models.payment_base import PaymentGateway
from .models.stripe_gateway import StripeGateway
from .repositories import CartRepository, OrderRepository, ProductRepository
from .services.cart_service import CartService
from .services.order_service import OrderService
from .services.errors import OrderWorkflowError
from .utils.responses import error_response
from .utils.validation import OrderRequestValidator

logger = logging.getLogger(__name__)


def _build_payment_gateway(app: Flask) -> PaymentGateway:
    secret = app.config.get("STRIPE_SECRET_KEY")
    if secret:
        return StripeGateway.from_settings(
            secret,
            base_url=app.config.get("STRIPE_API_BASE", "https://api.stripe.com/v1"),
            timeout=int(app.config.get("STRIPE_TIMEOUT", 30)),
        )
    logger.warning("STRIPE_SECRET_KEY ausente: usando gateway de demonstração")
    return DemoPaymentGateway()


def create_app(config_overrides=None, payment_gateway: PaymentGateway = None) -> Flask:
    app = Flask(__name__)
    app.config.from_mapping(Config().as_dict())
    if config_overrides:
        app.config.update(config_overrides)

    logging.basicConfig(level=app.config.get("LOG_LEVEL", "INFO"))

    # CORS somente para as origens configuradas em /api/*
    CORS(app, resources={r"/api/*": {"origins": app.config["CORS_ORIGINS"]}})

    # Banco
    db.init_app(app)
    with app.app_context():
        uri = app.config["SQLALCHEMY_DATABASE_URI"]
        if uri.startswith("sqlite:///"):
            os.makedirs(os.path.dirname(uri[len("sqlite:///"):]) or ".", exist_ok=True)
        db.create_all()

    # Dependências explícitas do fluxo de pedidos
    products = ProductRepository()
    orders = OrderRepository()
    carts = CartRepository()
    gateway = payment_gateway or _build_payment_gateway(app)
    order_service = OrderService(orders, products, gateway)
    app.extensions["ecommerce"] = {
        "products": products,
        "orders": orders,
        "carts": carts,
        "payment_gateway": gateway,
        "order_service": order_service,
        "cart_service": CartService(carts, products, order_service),
        "validator": OrderRequestValidator(),
    }

    @app.errorhandler(OrderWorkflowError)
    def handle_workflow_error(err: OrderWorkflowError):
        if err.status_code >= 500:
            logger.error(f"Erro interno no fluxo de pedidos: {err.message}")
        return error_response(err.message, err.status_code)

    @app.errorhandler(HTTPException)
    def handle_http_error(err: HTTPException):
        return error_response(err.description or err.name, err.code or 500)

    @app.route("/api/health", methods=["GET"])
    def health():
        return jsonify({"status": "healthy", "service": "ecommerce-api"}), 200

    from .blueprints.products import bp as products_bp
    from .blueprints.orders import bp as orders_bp
    from .blueprints.cart import bp as cart_bp
    from .blueprints.admin import admin_bp, seller_bp

    app.register_blueprint(products_bp, url_prefix="/api/products")
    app.register_blueprint(orders_bp, url_prefix="/api/orders")
    app.register_blueprint(cart_bp, url_prefix="/api/cart")
    app.register_blueprint(seller_bp, url_prefix="/api/seller")
    app.register_blueprint(admin_bp, url_prefix="/api/admin")

    return app
