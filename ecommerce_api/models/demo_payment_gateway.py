"""
Gateway de demonstração com pagamentos simulados em memória.
Usado em desenvolvimento e testes quando não há STRIPE_SECRET_KEY.
"""

import uuid
from decimal import Decimal
from typing import Dict, Optional
import logging

from .payment_base import PaymentGateway, PaymentGatewayError, PaymentInfo

logger = logging.getLogger(__name__)


class DemoPaymentGateway(PaymentGateway):
    """
    Simula o ciclo create/confirm de um payment intent.
    `decline_confirm=True` faz toda confirmação ser recusada.
    """

    name = "demo"

    def __init__(self, decline_confirm: bool = False):
        self.decline_confirm = decline_confirm
        self.intents: Dict[str, Dict] = {}

    def create_payment_intent(self, amount: Decimal, currency: str,
                              metadata: Dict[str, str],
                              payment_method_id: Optional[str] = None) -> str:
        intent_id = f"pi_demo_{uuid.uuid4().hex[:16]}"
        self.intents[intent_id] = {
            "amount": Decimal(str(amount)),
            "currency": currency.lower(),
            "metadata": dict(metadata or {}),
            "payment_method": payment_method_id,
            "status": "requires_confirmation",
        }
        logger.info(f"[demo] Payment intent {intent_id} criado: {amount} {currency}")
        return intent_id

    def confirm_payment(self, intent_id: str) -> None:
        intent = self.intents.get(intent_id)
        if intent is None:
            raise PaymentGatewayError(f"Payment intent {intent_id} não existe")
        if self.decline_confirm:
            intent["status"] = "requires_payment_method"
            raise PaymentGatewayError("Cartão recusado (simulação)")
        intent["status"] = "succeeded"
        logger.info(f"[demo] Payment intent {intent_id} confirmado")

    def get_payment(self, intent_id: str) -> PaymentInfo:
        intent = self.intents.get(intent_id)
        if intent is None:
            raise PaymentGatewayError(f"Payment intent {intent_id} não existe")
        return PaymentInfo(
            id=intent_id,
            amount=intent["amount"],
            currency=intent["currency"],
            status=intent["status"],
        )
