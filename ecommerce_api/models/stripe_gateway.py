"""
Gateway Stripe (API REST de Payment Intents).
"""

from decimal import Decimal
from typing import Dict, Optional
import logging

from .payment_base import (
    GatewayConfig,
    HttpPaymentGateway,
    PaymentGatewayError,
    PaymentInfo,
    amount_to_cents,
    cents_to_amount,
)

logger = logging.getLogger(__name__)

STRIPE_API_BASE = "https://api.stripe.com/v1"


class StripeGateway(HttpPaymentGateway):
    """Cria e confirma payment intents na Stripe."""

    def __init__(self, config: GatewayConfig):
        super().__init__(config)
        self.session.auth = (config.api_key, "")

    @classmethod
    def from_settings(cls, secret_key: str, base_url: str = STRIPE_API_BASE, timeout: int = 30):
        return cls(GatewayConfig(name="stripe", api_key=secret_key, base_url=base_url, timeout=timeout))

    def create_payment_intent(self, amount: Decimal, currency: str,
                              metadata: Dict[str, str],
                              payment_method_id: Optional[str] = None) -> str:
        data = {
            "amount": amount_to_cents(amount),
            "currency": currency.lower(),
        }
        for key, value in (metadata or {}).items():
            data[f"metadata[{key}]"] = str(value)
        if payment_method_id:
            data["payment_method"] = payment_method_id

        payload = self._make_request("POST", "/payment_intents", data=data).json()
        intent_id = payload.get("id")
        if not intent_id:
            raise PaymentGatewayError("Resposta da Stripe sem ID do payment intent")
        logger.info(f"Payment intent {intent_id} criado ({data['amount']} {data['currency']})")
        return intent_id

    def confirm_payment(self, intent_id: str) -> None:
        payload = self._make_request("POST", f"/payment_intents/{intent_id}/confirm").json()
        status = payload.get("status")
        if status in ("requires_payment_method", "canceled"):
            raise PaymentGatewayError(f"Pagamento {intent_id} não confirmado (status: {status})")
        logger.info(f"Payment intent {intent_id} confirmado (status: {status})")

    def get_payment(self, intent_id: str) -> PaymentInfo:
        payload = self._make_request("GET", f"/payment_intents/{intent_id}").json()
        return PaymentInfo(
            id=payload["id"],
            amount=cents_to_amount(payload.get("amount", 0)),
            currency=payload.get("currency", ""),
            status=payload.get("status", ""),
        )
