# ecommerce_api/blueprints/orders.py
from decimal import Decimal

from flask import Blueprint, current_app, request

from ..models import PaymentMethod
from ..services.dto import Address, CreateOrderRequest, OrderItemRequest, PaymentRequest
from ..utils.responses import current_actor, pagination_args, success_response, validation_error

bp = Blueprint("orders", __name__)


def _deps():
    ext = current_app.extensions["ecommerce"]
    return ext["order_service"], ext["validator"]


def build_create_request(data) -> CreateOrderRequest:
    billing = data.get("billing_address")
    return CreateOrderRequest(
        items=[
            OrderItemRequest(product_id=int(it["product_id"]), quantity=int(it["quantity"]))
            for it in data.get("items") or []
        ],
        shipping_address=Address.from_payload(data.get("shipping_address")),
        billing_address=Address.from_payload(billing) if billing else None,
        payment_method=PaymentMethod(data["payment_method"]),
        tax_amount=Decimal(str(data.get("tax_amount") or 0)),
        shipping_amount=Decimal(str(data.get("shipping_amount") or 0)),
        discount_amount=Decimal(str(data.get("discount_amount") or 0)),
        notes=data.get("notes"),
    )


@bp.post("/")
def create_order():
    service, validator = _deps()
    actor = current_actor()
    data = request.get_json(silent=True) or {}

    errors = validator.validate_create_order(data)
    if errors:
        return validation_error(errors)

    result = service.create_order(actor.user_id, build_create_request(data))
    return success_response("Pedido criado com sucesso", result.to_dict(), status=201)


@bp.get("/my")
def my_orders():
    service, _ = _deps()
    actor = current_actor()
    limit, offset = pagination_args()
    orders = service.get_user_orders(actor.user_id, limit, offset)
    return success_response("Pedidos encontrados", [o.to_dict() for o in orders])


@bp.get("/<int:order_id>")
def get_order(order_id: int):
    service, _ = _deps()
    order = service.get_order(order_id, current_actor())
    return success_response("Pedido encontrado", order.to_dict())


@bp.put("/<int:order_id>/status")
def update_status(order_id: int):
    service, validator = _deps()
    actor = current_actor()
    data = request.get_json(silent=True) or {}

    errors = validator.validate_status_update(data)
    if errors:
        return validation_error(errors)

    result = service.update_order_status(order_id, data["status"], actor)
    return success_response("Status do pedido atualizado", result.to_dict())


@bp.post("/<int:order_id>/cancel")
def cancel_order(order_id: int):
    service, _ = _deps()
    result = service.cancel_order(order_id, current_actor())
    return success_response("Pedido cancelado", result.to_dict())


@bp.post("/<int:order_id>/payment")
def process_payment(order_id: int):
    service, validator = _deps()
    actor = current_actor()
    data = request.get_json(silent=True) or {}

    errors = validator.validate_payment(data)
    if errors:
        return validation_error(errors)

    method = data.get("payment_method")
    payment_request = PaymentRequest(
        payment_method=PaymentMethod(method) if method else None,
        currency=(data.get("currency") or current_app.config.get("DEFAULT_CURRENCY", "usd")).lower(),
        payment_method_id=data.get("payment_method_id"),
    )
    response = service.process_payment(order_id, payment_request, actor=actor)
    return success_response("Pagamento processado com sucesso", response.to_dict())


@bp.get("/<int:order_id>/payment")
def get_payment(order_id: int):
    service, _ = _deps()
    info = service.get_payment(order_id, current_actor())
    return success_response("Pagamento encontrado", {
        "id": info.id,
        "amount": float(info.amount),
        "currency": info.currency,
        "status": info.status,
    })


@bp.put("/<int:order_id>/tracking")
def update_tracking(order_id: int):
    service, validator = _deps()
    actor = current_actor()
    data = request.get_json(silent=True) or {}

    errors = validator.validate_tracking(data)
    if errors:
        return validation_error(errors)

    order = service.update_tracking_number(order_id, data["tracking_number"].strip(), actor)
    return success_response("Código de rastreio atualizado", order.to_dict())


@bp.put("/<int:order_id>/notes")
def update_notes(order_id: int):
    service, validator = _deps()
    actor = current_actor()
    data = request.get_json(silent=True) or {}

    errors = validator.validate_notes(data)
    if errors:
        return validation_error(errors)

    order = service.update_notes(
        order_id,
        actor,
        notes=data.get("notes"),
        internal_notes=data.get("internal_notes"),
    )
    return success_response("Observações atualizadas", order.to_dict())
