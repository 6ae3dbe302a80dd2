"""
Fluxo de pedidos: criação, transições de status, cancelamento, pagamento e analytics.
"""

from collections import OrderedDict
from contextlib import contextmanager
from datetime import datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import List, Optional
import logging

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..models import (
    MAX_AMOUNT,
    Order,
    OrderItem,
    OrderStatus,
    PaymentStatus,
    generate_order_number,
    utcnow,
)
from ..models.order import is_valid_transition
from ..models.payment_base import PaymentGateway, PaymentGatewayError, PaymentInfo
from .authorization import Actor, OrderAction, OrderPolicy
from .dto import (
    CreateOrderRequest,
    OrderAnalytics,
    OrderResult,
    PaymentRequest,
    PaymentResponse,
    StockAdjustment,
)
from .errors import (
    EmptyCartError,
    InsufficientStockError,
    InvalidOrderRequestError,
    InvalidStatusError,
    InvalidTransitionError,
    NotCancellableError,
    OrderNotFoundError,
    OrderNotPendingError,
    OrderPersistenceError,
    PaymentFailedError,
    PaymentNotFoundError,
    ProductInactiveError,
    ProductNotFoundError,
    StockAdjustmentError,
)

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")


def _money(value) -> Decimal:
    try:
        amount = Decimal(str(value or 0)).quantize(CENTS, rounding=ROUND_HALF_UP)
    except (InvalidOperation, ValueError) as e:
        raise InvalidOrderRequestError(f"Valor monetário inválido: {value!r}") from e
    if not amount.is_finite() or abs(amount) > MAX_AMOUNT:
        raise InvalidOrderRequestError(f"Valor monetário fora do limite de {MAX_AMOUNT}: {value}")
    return amount


@contextmanager
def _store_errors(context: str):
    """Erros do banco sobem com contexto, como OrderPersistenceError."""
    try:
        yield
    except SQLAlchemyError as e:
        logger.error(f"{context}: {e}")
        raise OrderPersistenceError(f"{context}: {e}") from e


class OrderService:
    """
    Serviço sem estado: todo estado vive no banco e no gateway.
    Chamadas concorrentes não são serializadas aqui; o ajuste condicional
    de estoque no repositório impede estoque negativo, e as mudanças de
    status só gravam se o pedido ainda estiver no status lido.
    """

    def __init__(self, orders, products, payment_gateway: PaymentGateway, policy: Optional[OrderPolicy] = None):
        self.orders = orders
        self.products = products
        self.payment_gateway = payment_gateway
        self.policy = policy or OrderPolicy(products)

    # ------------------------------------------------------------------ #
    #  criação                                                             #
    # ------------------------------------------------------------------ #

    def create_order(self, customer_id: int, request: CreateOrderRequest) -> OrderResult:
        """
        Cria o pedido a partir de (product_id, quantity) e baixa o estoque.

        Preços vêm sempre do catálogo. Pedido e itens são gravados juntos;
        a baixa de estoque vem depois, item a item, e uma falha nela não
        desfaz o pedido (fica em OrderResult.stock_adjustments).
        """
        if not request.items:
            raise EmptyCartError()

        # quantidade total por produto, na ordem em que aparece
        requested = OrderedDict()
        for line in request.items:
            if line.quantity is None or int(line.quantity) < 1:
                raise InvalidOrderRequestError(
                    f"Quantidade inválida para o produto {line.product_id}: {line.quantity}"
                )
            requested[line.product_id] = requested.get(line.product_id, 0) + int(line.quantity)

        subtotal = Decimal("0")
        order_items: List[OrderItem] = []
        for product_id, quantity in requested.items():
            with _store_errors(f"falha ao buscar produto {product_id}"):
                product = self.products.get_by_id(product_id)
            if product is None:
                raise ProductNotFoundError(product_id)
            if not product.is_active:
                raise ProductInactiveError(product.id, product.name)
            if product.stock < quantity:
                raise InsufficientStockError(product.id, product.name, product.stock, quantity)

            unit_price = _money(product.price)
            line_total = _money(unit_price * quantity)
            subtotal += line_total
            order_items.append(OrderItem(
                product_id=product.id,
                quantity=quantity,
                unit_price=unit_price,
                total_price=line_total,
                product_name=product.name,
                product_sku=product.sku,
                product_description=product.description,
                product_image=product.image_url or None,
            ))

        tax = _money(request.tax_amount)
        shipping = _money(request.shipping_amount)
        discount = _money(request.discount_amount)
        if min(tax, shipping, discount) < 0:
            raise InvalidOrderRequestError("Valores de imposto, frete e desconto não podem ser negativos")
        subtotal = _money(subtotal)
        total = _money(subtotal + tax + shipping - discount)
        if total < 0:
            raise InvalidOrderRequestError(f"Desconto maior que o valor do pedido ({total})")

        ship = request.shipping_address
        bill = request.billing_address
        order = Order(
            order_number=generate_order_number(),
            customer_id=customer_id,
            status=OrderStatus.PENDING.value,
            payment_status=PaymentStatus.PENDING.value,
            payment_method=request.payment_method.value,
            subtotal_amount=subtotal,
            tax_amount=tax,
            shipping_amount=shipping,
            discount_amount=discount,
            total_amount=total,
            shipping_first_name=ship.first_name,
            shipping_last_name=ship.last_name,
            shipping_email=ship.email,
            shipping_phone=ship.phone,
            shipping_street=ship.street,
            shipping_city=ship.city,
            shipping_state=ship.state,
            shipping_country=ship.country,
            shipping_postal_code=ship.postal_code,
            notes=request.notes,
            items=order_items,
        )
        if bill is not None:
            order.billing_first_name = bill.first_name
            order.billing_last_name = bill.last_name
            order.billing_email = bill.email
            order.billing_phone = bill.phone
            order.billing_street = bill.street
            order.billing_city = bill.city
            order.billing_state = bill.state
            order.billing_country = bill.country
            order.billing_postal_code = bill.postal_code

        try:
            self.orders.create(order)
        except IntegrityError as e:
            logger.error(f"Erro de integridade ao criar pedido do cliente {customer_id}: {e}")
            raise OrderPersistenceError("falha ao criar pedido: conflito de dados") from e
        except SQLAlchemyError as e:
            logger.error(f"Erro ao criar pedido do cliente {customer_id}: {e}")
            raise OrderPersistenceError(f"falha ao criar pedido: {e}") from e

        logger.info(f"Pedido {order.order_number} criado para o cliente {customer_id} (total {total})")

        adjustments = [
            self._apply_stock_delta(product_id, -quantity, order.order_number)
            for product_id, quantity in requested.items()
        ]
        return OrderResult(order=order, stock_adjustments=adjustments)

    # ------------------------------------------------------------------ #
    #  leitura                                                             #
    # ------------------------------------------------------------------ #

    def get_order(self, order_id: int, actor: Actor) -> Order:
        order = self._get_order(order_id)
        self.policy.authorize(actor, OrderAction.VIEW, order)
        return order

    def get_user_orders(self, customer_id: int, limit: int = 10, offset: int = 0) -> List[Order]:
        with _store_errors("falha ao listar pedidos do usuário"):
            return self.orders.get_by_user_id(customer_id, limit, offset)

    def get_all_orders(self, limit: int = 10, offset: int = 0) -> List[Order]:
        with _store_errors("falha ao listar pedidos"):
            return self.orders.get_all(limit, offset)

    def get_orders_by_status(self, status, limit: int = 10, offset: int = 0) -> List[Order]:
        target = OrderStatus.parse(status)
        if target is None:
            raise InvalidStatusError(status)
        with _store_errors("falha ao listar pedidos por status"):
            return self.orders.get_by_status(target, limit, offset)

    def get_orders_by_date_range(self, start_date: datetime, end_date: datetime,
                                 limit: int = 10, offset: int = 0) -> List[Order]:
        with _store_errors("falha ao listar pedidos por período"):
            return self.orders.get_by_date_range(start_date, end_date, limit, offset)

    def get_seller_orders(self, seller_id: int, limit: int = 10, offset: int = 0) -> List[Order]:
        with _store_errors("falha ao listar pedidos do vendedor"):
            return self.orders.get_orders_by_seller_id(seller_id, limit, offset)

    # ------------------------------------------------------------------ #
    #  status                                                              #
    # ------------------------------------------------------------------ #

    def update_order_status(self, order_id: int, status, actor: Actor) -> OrderResult:
        """
        Aplica uma transição da tabela VALID_TRANSITIONS.
        Só grava o status (e shipped_at/delivered_at). Ir para cancelled
        por aqui devolve o estoque como em cancel_order.

        A gravação é condicionada ao status lido; se outra requisição mudou o
        pedido no meio tempo, nada é gravado e sobe InvalidTransitionError.
        """
        target = OrderStatus.parse(status)
        if target is None:
            raise InvalidStatusError(status)

        order = self._get_order(order_id)
        self.policy.authorize(actor, OrderAction.UPDATE_STATUS, order)

        current = order.status_enum
        if not is_valid_transition(current, target):
            raise InvalidTransitionError(current.value, target.value)

        extra = {}
        if target is OrderStatus.SHIPPED:
            extra["shipped_at"] = utcnow()
        elif target is OrderStatus.DELIVERED:
            extra["delivered_at"] = utcnow()

        with _store_errors("falha ao atualizar status do pedido"):
            applied = self.orders.update_status(order.id, target, expected=current, **extra)
        if not applied:
            latest = self._get_order(order_id)
            logger.warning(
                f"Pedido {order.order_number} mudou de {current.value} para {latest.status} "
                f"antes de gravar {target.value}"
            )
            raise InvalidTransitionError(latest.status, target.value)

        # estoque só volta depois que o cancelamento foi gravado
        adjustments = []
        if target is OrderStatus.CANCELLED:
            adjustments = self._restore_stock(order)

        logger.info(
            f"Pedido {order.order_number}: {current.value} -> {target.value} "
            f"(usuário {actor.user_id}, {actor.role.value})"
        )
        return OrderResult(order=self._get_order(order_id), stock_adjustments=adjustments)

    def update_tracking_number(self, order_id: int, tracking_number: str, actor: Actor) -> Order:
        order = self._get_order(order_id)
        self.policy.authorize(actor, OrderAction.UPDATE_TRACKING, order)
        with _store_errors("falha ao atualizar código de rastreio"):
            self.orders.update_tracking_number(order.id, tracking_number)
        return self._get_order(order_id)

    def update_notes(self, order_id: int, actor: Actor, notes: Optional[str] = None,
                     internal_notes: Optional[str] = None) -> Order:
        order = self._get_order(order_id)
        if notes is not None:
            self.policy.authorize(actor, OrderAction.UPDATE_NOTES, order)
        if internal_notes is not None:
            self.policy.authorize(actor, OrderAction.UPDATE_INTERNAL_NOTES, order)
        with _store_errors("falha ao atualizar observações do pedido"):
            self.orders.update_notes(order.id, notes=notes, internal_notes=internal_notes)
        return self._get_order(order_id)

    # ------------------------------------------------------------------ #
    #  cancelamento                                                        #
    # ------------------------------------------------------------------ #

    def cancel_order(self, order_id: int, actor: Actor) -> OrderResult:
        order = self._get_order(order_id)
        self.policy.authorize(actor, OrderAction.CANCEL, order)

        if not order.can_cancel():
            raise NotCancellableError(order.status)

        with _store_errors("falha ao cancelar pedido"):
            applied = self.orders.update_status(order.id, OrderStatus.CANCELLED, expected=order.status_enum)
        if not applied:
            # outro cancelamento (ou transição) gravou primeiro; estoque não volta duas vezes
            latest = self._get_order(order_id)
            logger.warning(f"Cancelamento do pedido {order.order_number} perdeu a corrida (status {latest.status})")
            raise NotCancellableError(latest.status)

        adjustments = self._restore_stock(order)
        logger.info(f"Pedido {order.order_number} cancelado por {actor.user_id} ({actor.role.value})")
        return OrderResult(order=self._get_order(order_id), stock_adjustments=adjustments)

    # ------------------------------------------------------------------ #
    #  pagamento                                                           #
    # ------------------------------------------------------------------ #

    def process_payment(self, order_id: int, payment_request: PaymentRequest,
                        actor: Optional[Actor] = None) -> PaymentResponse:
        """
        Cria e confirma o intent pelo total do pedido e confirma o pedido.
        É uma transição do sistema: não passa pela checagem de update_order_status.
        Qualquer falha do gateway deixa o pedido em pending; não há retry.
        Se payment_request traz forma de pagamento, ela substitui a da criação.
        """
        order = self._get_order(order_id)
        if actor is not None:
            self.policy.authorize(actor, OrderAction.PAY, order)

        if order.status != OrderStatus.PENDING.value:
            raise OrderNotPendingError(order.status)

        amount = _money(order.total_amount)
        metadata = {"order_id": str(order.id), "order_number": order.order_number}
        gateway = self.payment_gateway.get_gateway_info().get("name")

        try:
            intent_id = self.payment_gateway.create_payment_intent(
                amount,
                payment_request.currency,
                metadata,
                payment_method_id=payment_request.payment_method_id,
            )
        except PaymentGatewayError as e:
            logger.error(f"Pagamento do pedido {order.order_number} falhou no {gateway}: {e}")
            raise PaymentFailedError(f"falha no processamento do pagamento: {e}") from e

        try:
            self.payment_gateway.confirm_payment(intent_id)
        except PaymentGatewayError as e:
            logger.error(f"Confirmação do intent {intent_id} (pedido {order.order_number}) falhou: {e}")
            raise PaymentFailedError(f"falha na confirmação do pagamento: {e}") from e

        with _store_errors("falha ao atualizar pedido após pagamento"):
            applied = self.orders.mark_paid(order.id, intent_id, payment_request.payment_method)
        if not applied:
            # o pedido saiu de pending durante a chamada ao gateway; o intent precisa de estorno manual
            latest = self._get_order(order_id)
            logger.error(
                f"Pedido {order.order_number} ficou {latest.status} durante o pagamento; "
                f"intent {intent_id} já confirmado precisa ser estornado"
            )
            raise OrderNotPendingError(latest.status)

        method = payment_request.payment_method.value if payment_request.payment_method else order.payment_method
        logger.info(f"Pedido {order.order_number} pago ({amount} {payment_request.currency}, {method}) intent={intent_id}")
        return PaymentResponse(transaction_id=intent_id, status=OrderStatus.CONFIRMED.value, amount=amount)

    def get_payment(self, order_id: int, actor: Actor) -> PaymentInfo:
        order = self.get_order(order_id, actor)
        if not order.payment_id:
            raise PaymentNotFoundError(order.id)
        try:
            return self.payment_gateway.get_payment(order.payment_id)
        except PaymentGatewayError as e:
            raise PaymentFailedError(f"falha ao consultar pagamento: {e}") from e

    # ------------------------------------------------------------------ #
    #  analytics                                                           #
    # ------------------------------------------------------------------ #

    def get_order_analytics(self, seller_id: Optional[int] = None,
                            start_date: Optional[datetime] = None,
                            end_date: Optional[datetime] = None) -> OrderAnalytics:
        """
        Receita de pedidos delivered e contagem por status.
        Com seller_id, a receita soma só os itens do vendedor.
        """
        with _store_errors("falha ao obter receita"):
            if seller_id is not None:
                revenue = self.orders.get_revenue_by_seller_id(seller_id, start_date, end_date)
            else:
                revenue = self.orders.get_total_revenue(start_date, end_date)

        with _store_errors("falha ao contar pedidos"):
            counts = self.orders.count_by_status(seller_id, start_date, end_date)

        by_status = {status.value: counts.get(status.value, 0) for status in OrderStatus}
        return OrderAnalytics(
            total_revenue=Decimal(str(revenue or 0)).quantize(CENTS, rounding=ROUND_HALF_UP),
            total_orders=sum(by_status.values()),
            orders_by_status=by_status,
        )

    # ------------------------------------------------------------------ #
    #  internos                                                            #
    # ------------------------------------------------------------------ #

    def _get_order(self, order_id: int) -> Order:
        with _store_errors(f"falha ao buscar pedido {order_id}"):
            order = self.orders.get_by_id(order_id)
        if order is None:
            raise OrderNotFoundError(order_id)
        return order

    def _restore_stock(self, order: Order) -> List[StockAdjustment]:
        return [
            self._apply_stock_delta(item.product_id, item.quantity, order.order_number)
            for item in order.items
        ]

    def _apply_stock_delta(self, product_id: int, delta: int, order_number: str) -> StockAdjustment:
        """Ajuste best-effort: falha vira warning e StockAdjustment(applied=False)."""
        try:
            self.products.adjust_stock(product_id, delta)
            return StockAdjustment(product_id=product_id, delta=delta, applied=True)
        except (StockAdjustmentError, SQLAlchemyError) as e:
            logger.warning(
                f"Falha ao ajustar estoque do produto {product_id} em {delta:+d} "
                f"(pedido {order_number}): {e}"
            )
            return StockAdjustment(product_id=product_id, delta=delta, applied=False, error=str(e))
