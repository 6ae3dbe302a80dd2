"""
Exceções do fluxo de pedidos.
A camada de serviço levanta; o handler registrado em create_app converte em JSON.
"""


class OrderWorkflowError(Exception):
    """Base para todos os erros do fluxo de pedidos"""
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


# --- validação na criação do pedido ---

class EmptyCartError(OrderWorkflowError):
    status_code = 400

    def __init__(self):
        super().__init__("O pedido precisa ter pelo menos um item")


class ProductNotFoundError(OrderWorkflowError):
    status_code = 404

    def __init__(self, product_id: int):
        super().__init__(f"Produto {product_id} não encontrado")
        self.product_id = product_id


class ProductInactiveError(OrderWorkflowError):
    status_code = 400

    def __init__(self, product_id: int, name: str):
        super().__init__(f"Produto {name} não está disponível")
        self.product_id = product_id


class InsufficientStockError(OrderWorkflowError):
    status_code = 400

    def __init__(self, product_id: int, name: str, available: int, requested: int):
        super().__init__(
            f"Estoque insuficiente para o produto {name} "
            f"(disponível: {available}, solicitado: {requested})"
        )
        self.product_id = product_id
        self.available = available
        self.requested = requested


class InvalidOrderRequestError(OrderWorkflowError):
    """Quantidade ou valores monetários inválidos"""
    status_code = 400


# --- pedidos existentes ---

class OrderNotFoundError(OrderWorkflowError):
    status_code = 404

    def __init__(self, order_id: int):
        super().__init__(f"Pedido {order_id} não encontrado")
        self.order_id = order_id


class UnauthorizedError(OrderWorkflowError):
    status_code = 403


class InvalidStatusError(OrderWorkflowError):
    status_code = 400

    def __init__(self, value):
        super().__init__(f"Status inválido: {value!r}")
        self.value = value


class InvalidTransitionError(OrderWorkflowError):
    status_code = 409

    def __init__(self, from_status: str, to_status: str):
        super().__init__(f"Transição de status inválida de {from_status} para {to_status}")
        self.from_status = from_status
        self.to_status = to_status


class NotCancellableError(OrderWorkflowError):
    status_code = 409

    def __init__(self, status: str):
        super().__init__(f"O pedido não pode ser cancelado no status atual ({status})")
        self.status = status


class OrderNotPendingError(OrderWorkflowError):
    status_code = 409

    def __init__(self, status: str):
        super().__init__(f"O pedido não está pendente (status atual: {status})")
        self.status = status


class PaymentNotFoundError(OrderWorkflowError):
    status_code = 404

    def __init__(self, order_id: int):
        super().__init__(f"Pedido {order_id} não possui pagamento registrado")
        self.order_id = order_id


# --- colaboradores externos ---

class PaymentFailedError(OrderWorkflowError):
    status_code = 402


class OrderPersistenceError(OrderWorkflowError):
    status_code = 500


class StockAdjustmentError(OrderWorkflowError):
    """Ajuste condicional de estoque não aplicado (produto ausente ou estoque insuficiente)"""
    status_code = 409


# --- carrinho ---

class CartItemNotFoundError(OrderWorkflowError):
    status_code = 404

    def __init__(self, product_id: int):
        super().__init__(f"Produto {product_id} não está no carrinho")
        self.product_id = product_id
