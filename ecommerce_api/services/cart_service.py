"""
Carrinho do cliente e passagem do carrinho para pedido.
"""

from dataclasses import replace
from decimal import Decimal, ROUND_HALF_UP
import logging

from sqlalchemy.exc import SQLAlchemyError

from .dto import CartLine, CartView, CreateOrderRequest, OrderItemRequest, OrderResult
from .errors import (
    CartItemNotFoundError,
    EmptyCartError,
    InsufficientStockError,
    InvalidOrderRequestError,
    ProductInactiveError,
    ProductNotFoundError,
)
from .order_service import CENTS, OrderService, _store_errors

logger = logging.getLogger(__name__)


class CartService:
    """
    O carrinho não reserva estoque: a checagem aqui só evita linhas impossíveis.
    A baixa de estoque acontece no checkout, via OrderService.create_order.
    """

    def __init__(self, carts, products, order_service: OrderService):
        self.carts = carts
        self.products = products
        self.order_service = order_service

    def get_cart(self, customer_id: int) -> CartView:
        with _store_errors("falha ao buscar carrinho"):
            items = self.carts.get_items(customer_id)

        lines = []
        for item in items:
            product = item.product
            unit_price = Decimal(str(product.price or 0))
            lines.append(CartLine(
                product_id=product.id,
                product_name=product.name,
                product_sku=product.sku,
                unit_price=unit_price,
                quantity=item.quantity,
                subtotal=(unit_price * item.quantity).quantize(CENTS, rounding=ROUND_HALF_UP),
                available=bool(product.is_active) and product.stock >= item.quantity,
            ))
        return CartView(customer_id=customer_id, items=lines)

    def get_total(self, customer_id: int) -> Decimal:
        return self.get_cart(customer_id).total_amount

    def get_item_count(self, customer_id: int) -> int:
        return self.get_cart(customer_id).item_count

    def add_item(self, customer_id: int, product_id: int, quantity: int) -> CartView:
        """Soma à quantidade já no carrinho; o total da linha não pode passar do estoque."""
        _check_quantity(product_id, quantity)
        product = self._get_product(product_id)

        with _store_errors("falha ao buscar carrinho"):
            current = self.carts.get_item(customer_id, product_id)
        wanted = quantity + (current.quantity if current else 0)
        if product.stock < wanted:
            raise InsufficientStockError(product.id, product.name, product.stock, wanted)

        with _store_errors("falha ao adicionar item ao carrinho"):
            self.carts.add_quantity(customer_id, product_id, quantity)
        logger.info(f"Cliente {customer_id}: +{quantity}x produto {product_id} no carrinho")
        return self.get_cart(customer_id)

    def update_item(self, customer_id: int, product_id: int, quantity: int) -> CartView:
        _check_quantity(product_id, quantity)
        with _store_errors("falha ao buscar carrinho"):
            current = self.carts.get_item(customer_id, product_id)
        if current is None:
            raise CartItemNotFoundError(product_id)

        product = self._get_product(product_id)
        if product.stock < quantity:
            raise InsufficientStockError(product.id, product.name, product.stock, quantity)

        with _store_errors("falha ao atualizar item do carrinho"):
            updated = self.carts.set_quantity(customer_id, product_id, quantity)
        if not updated:
            raise CartItemNotFoundError(product_id)
        return self.get_cart(customer_id)

    def remove_item(self, customer_id: int, product_id: int) -> CartView:
        with _store_errors("falha ao remover item do carrinho"):
            removed = self.carts.remove(customer_id, product_id)
        if not removed:
            raise CartItemNotFoundError(product_id)
        return self.get_cart(customer_id)

    def clear_cart(self, customer_id: int) -> int:
        with _store_errors("falha ao limpar carrinho"):
            removed = self.carts.clear(customer_id)
        logger.info(f"Carrinho do cliente {customer_id} limpo ({removed} linhas)")
        return removed

    def checkout(self, customer_id: int, request: CreateOrderRequest) -> OrderResult:
        """
        Cria o pedido com as linhas do carrinho (os itens de `request` são ignorados).
        O carrinho só é limpo depois que o pedido foi gravado; se a limpeza falhar,
        o pedido continua valendo e o erro fica no log.
        """
        cart = self.get_cart(customer_id)
        if not cart.items:
            raise EmptyCartError()

        items = [OrderItemRequest(product_id=line.product_id, quantity=line.quantity) for line in cart.items]
        result = self.order_service.create_order(customer_id, replace(request, items=items))

        try:
            self.carts.clear(customer_id)
        except SQLAlchemyError as e:
            logger.warning(
                f"Pedido {result.order.order_number} criado, mas o carrinho do cliente "
                f"{customer_id} não foi limpo: {e}"
            )
        return result

    def _get_product(self, product_id: int):
        with _store_errors(f"falha ao buscar produto {product_id}"):
            product = self.products.get_by_id(product_id)
        if product is None:
            raise ProductNotFoundError(product_id)
        if not product.is_active:
            raise ProductInactiveError(product.id, product.name)
        return product


def _check_quantity(product_id: int, quantity) -> None:
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
        raise InvalidOrderRequestError(f"Quantidade inválida para o produto {product_id}: {quantity}")
