from .cart_repository import CartRepository
from .order_repository import OrderRepository
from .product_repository import ProductRepository

__all__ = ["CartRepository", "OrderRepository", "ProductRepository"]
