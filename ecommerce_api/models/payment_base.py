"""
Classe base abstrata para gateways de pagamento.
Define a interface comum usada pelo fluxo de pedidos.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Optional
import logging

import requests

logger = logging.getLogger(__name__)


class PaymentGatewayError(Exception):
    """Falha reportada pelo gateway (rede, recusa, resposta inválida)"""


@dataclass
class GatewayConfig:
    """Configuração base para gateways"""
    name: str
    api_key: str
    base_url: str
    timeout: int = 30
    additional_config: Dict[str, str] = field(default_factory=dict)


@dataclass
class PaymentInfo:
    """Estado de um payment intent no gateway"""
    id: str
    amount: Decimal
    currency: str
    status: str


def amount_to_cents(amount) -> int:
    cents = (Decimal(str(amount)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return int(cents)


def cents_to_amount(cents: int) -> Decimal:
    return (Decimal(int(cents)) / Decimal(100)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


class PaymentGateway(ABC):
    """
    Interface de um gateway de pagamento.
    Nenhuma implementação faz retry: uma falha volta direto para quem chamou.
    """

    name = "base"

    @abstractmethod
    def create_payment_intent(self, amount: Decimal, currency: str,
                              metadata: Dict[str, str],
                              payment_method_id: Optional[str] = None) -> str:
        """
        Cria um payment intent.

        Args:
            amount: Valor em unidades da moeda (ex.: 10.00)
            currency: Código ISO de 3 letras
            metadata: Referências do pedido (order_id, order_number)
            payment_method_id: Meio de pagamento já tokenizado, se houver

        Returns:
            str: ID do intent no gateway
        """

    @abstractmethod
    def confirm_payment(self, intent_id: str) -> None:
        """Confirma o intent; levanta PaymentGatewayError se recusado."""

    @abstractmethod
    def get_payment(self, intent_id: str) -> PaymentInfo:
        """Consulta o intent no gateway."""

    def get_gateway_info(self) -> Dict[str, str]:
        return {"name": self.name}


class HttpPaymentGateway(PaymentGateway):
    """Base para gateways acessados por HTTP."""

    def __init__(self, config: GatewayConfig):
        self.config = config
        self.name = config.name
        self.session = requests.Session()
        self._setup_session()

    def _setup_session(self):
        """Configuração inicial da sessão HTTP"""
        self.session.headers.update({
            'User-Agent': f'ecommerce-api/{self.config.name}',
            'Accept': 'application/json',
        })

    def _make_request(self, method: str, path: str, **kwargs) -> requests.Response:
        """
        Faz uma única requisição HTTP ao gateway.

        Args:
            method: Método HTTP (GET, POST, etc.)
            path: Caminho relativo a base_url
            **kwargs: Parâmetros adicionais para requests

        Returns:
            requests.Response: Resposta da requisição
        """
        url = f"{self.config.base_url.rstrip('/')}/{path.lstrip('/')}"
        kwargs.setdefault("timeout", self.config.timeout)
        try:
            response = self.session.request(method, url, **kwargs)
            response.raise_for_status()
            return response
        except requests.exceptions.RequestException as e:
            detail = _error_detail(getattr(e, "response", None))
            logger.error(f"Requisição {method} {url} falhou no {self.config.name}: {e} {detail}".rstrip())
            raise PaymentGatewayError(detail or str(e)) from e

    def get_gateway_info(self) -> Dict[str, str]:
        return {
            'name': self.config.name,
            'base_url': self.config.base_url,
            'timeout': str(self.config.timeout),
        }


def _error_detail(response) -> str:
    if response is None:
        return ""
    try:
        payload = response.json()
    except ValueError:
        return ""
    error = payload.get("error") if isinstance(payload, dict) else None
    if isinstance(error, dict):
        return error.get("message", "") or ""
    return ""
