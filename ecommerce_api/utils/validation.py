# ecommerce_api/utils/validation.py
"""
Validação dos payloads JSON da API de pedidos.
Uma instância é criada em create_app e fica em app.extensions; nada aqui é global.
"""

import re
from decimal import Decimal, InvalidOperation
from typing import Any, Dict

from ..models import MAX_AMOUNT, OrderStatus, PaymentMethod

_CURRENCY_RE = re.compile(r"^[A-Za-z]{3}$")
_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class OrderRequestValidator:
    """Retorna {campo: mensagem}; dicionário vazio quando o payload é válido."""

    def __init__(self, max_items: int = 100, max_quantity: int = 10_000, max_notes_length: int = 1000):
        self.max_items = max_items
        self.max_quantity = max_quantity
        self.max_notes_length = max_notes_length

    def validate_create_order(self, data: Dict[str, Any]) -> Dict[str, str]:
        errors: Dict[str, str] = {}

        items = data.get("items")
        if items is None:
            errors["items"] = "Campo obrigatório"
        elif not isinstance(items, list):
            errors["items"] = "Deve ser uma lista"
        elif len(items) > self.max_items:
            errors["items"] = f"Máximo de {self.max_items} itens"
        else:
            # lista vazia passa: o serviço responde com EmptyCartError
            for idx, item in enumerate(items):
                if not isinstance(item, dict):
                    errors[f"items[{idx}]"] = "Item inválido"
                    continue
                if not _is_positive_int(item.get("product_id")):
                    errors[f"items[{idx}].product_id"] = "Deve ser um inteiro positivo"
                qty = item.get("quantity")
                if not _is_positive_int(qty):
                    errors[f"items[{idx}].quantity"] = "Deve ser um inteiro >= 1"
                elif int(qty) > self.max_quantity:
                    errors[f"items[{idx}].quantity"] = f"Máximo de {self.max_quantity} unidades"

        self._validate_address(data.get("shipping_address"), "shipping_address", errors, required=True)
        if data.get("billing_address") is not None:
            self._validate_address(data.get("billing_address"), "billing_address", errors, required=False)

        method = data.get("payment_method")
        if not method:
            errors["payment_method"] = "Campo obrigatório"
        elif method not in {m.value for m in PaymentMethod}:
            errors["payment_method"] = "Forma de pagamento inválida"

        for field in ("tax_amount", "shipping_amount", "discount_amount"):
            if field in data and _to_decimal(data[field]) is None:
                errors[field] = f"Deve ser um valor numérico entre 0 e {MAX_AMOUNT}"

        notes = data.get("notes")
        if notes is not None and (not isinstance(notes, str) or len(notes) > self.max_notes_length):
            errors["notes"] = f"Texto de até {self.max_notes_length} caracteres"

        return errors

    def validate_status_update(self, data: Dict[str, Any]) -> Dict[str, str]:
        status = data.get("status")
        if not status:
            return {"status": "Campo obrigatório"}
        if OrderStatus.parse(status) is None:
            return {"status": "Status inválido"}
        return {}

    def validate_payment(self, data: Dict[str, Any]) -> Dict[str, str]:
        errors: Dict[str, str] = {}
        method = data.get("payment_method")
        if method is not None and method not in {m.value for m in PaymentMethod}:
            errors["payment_method"] = "Forma de pagamento inválida"
        currency = data.get("currency")
        if currency is not None and not (isinstance(currency, str) and _CURRENCY_RE.match(currency)):
            errors["currency"] = "Código de moeda com 3 letras"
        pm_id = data.get("payment_method_id")
        if pm_id is not None and not isinstance(pm_id, str):
            errors["payment_method_id"] = "Deve ser texto"
        return errors

    def validate_tracking(self, data: Dict[str, Any]) -> Dict[str, str]:
        tracking = data.get("tracking_number")
        if not isinstance(tracking, str) or not tracking.strip():
            return {"tracking_number": "Campo obrigatório"}
        if len(tracking) > 100:
            return {"tracking_number": "Máximo de 100 caracteres"}
        return {}

    def validate_notes(self, data: Dict[str, Any]) -> Dict[str, str]:
        errors: Dict[str, str] = {}
        if "notes" not in data and "internal_notes" not in data:
            errors["notes"] = "Informe notes ou internal_notes"
        for field in ("notes", "internal_notes"):
            value = data.get(field)
            if value is not None and (not isinstance(value, str) or len(value) > self.max_notes_length):
                errors[field] = f"Texto de até {self.max_notes_length} caracteres"
        return errors

    def validate_cart_item(self, data: Dict[str, Any], require_product: bool = True) -> Dict[str, str]:
        errors: Dict[str, str] = {}
        if require_product and not _is_positive_int(data.get("product_id")):
            errors["product_id"] = "Deve ser um inteiro positivo"
        qty = data.get("quantity")
        if not _is_positive_int(qty):
            errors["quantity"] = "Deve ser um inteiro >= 1"
        elif int(qty) > self.max_quantity:
            errors["quantity"] = f"Máximo de {self.max_quantity} unidades"
        return errors

    def validate_checkout(self, data: Dict[str, Any]) -> Dict[str, str]:
        """Como validate_create_order, mas os itens vêm do carrinho."""
        errors = self.validate_create_order(dict(data, items=[]))
        if "items" in data:
            errors["items"] = "Os itens vêm do carrinho; não envie items"
        return errors

    def _validate_address(self, value, field: str, errors: Dict[str, str], required: bool) -> None:
        if value is None or value == "":
            if required:
                errors[field] = "Campo obrigatório"
            return
        if isinstance(value, str):
            if len(value.strip()) < 5:
                errors[field] = "Endereço muito curto"
            return
        if not isinstance(value, dict):
            errors[field] = "Deve ser texto ou objeto"
            return
        street = (value.get("street") or "").strip()
        if len(street) < 5:
            errors[f"{field}.street"] = "Endereço muito curto"
        email = (value.get("email") or "").strip()
        if email and not _EMAIL_RE.match(email):
            errors[f"{field}.email"] = "E-mail inválido"


def _is_positive_int(value) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return value >= 1
    if isinstance(value, str) and value.strip().isdigit():
        return int(value) >= 1
    return False


def _to_decimal(value):
    if isinstance(value, bool):
        return None
    try:
        d = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None
    if not d.is_finite() or d < 0 or d > MAX_AMOUNT:
        return None
    return d
