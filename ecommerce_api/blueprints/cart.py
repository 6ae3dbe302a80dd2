# ecommerce_api/blueprints/cart.py
from flask import Blueprint, current_app, request

from ..utils.responses import current_actor, success_response, validation_error
from .orders import build_create_request

bp = Blueprint("cart", __name__)


def _deps():
    ext = current_app.extensions["ecommerce"]
    return ext["cart_service"], ext["validator"]


@bp.get("/")
def get_cart():
    service, _ = _deps()
    cart = service.get_cart(current_actor().user_id)
    return success_response("Carrinho encontrado", cart.to_dict())


@bp.post("/")
def add_item():
    service, validator = _deps()
    actor = current_actor()
    data = request.get_json(silent=True) or {}

    errors = validator.validate_cart_item(data)
    if errors:
        return validation_error(errors)

    cart = service.add_item(actor.user_id, int(data["product_id"]), int(data["quantity"]))
    return success_response("Item adicionado ao carrinho", cart.to_dict(), status=201)


@bp.put("/<int:product_id>")
def update_item(product_id: int):
    service, validator = _deps()
    actor = current_actor()
    data = request.get_json(silent=True) or {}

    errors = validator.validate_cart_item(data, require_product=False)
    if errors:
        return validation_error(errors)

    cart = service.update_item(actor.user_id, product_id, int(data["quantity"]))
    return success_response("Carrinho atualizado", cart.to_dict())


@bp.delete("/<int:product_id>")
def remove_item(product_id: int):
    service, _ = _deps()
    cart = service.remove_item(current_actor().user_id, product_id)
    return success_response("Item removido do carrinho", cart.to_dict())


@bp.delete("/")
def clear_cart():
    service, _ = _deps()
    removed = service.clear_cart(current_actor().user_id)
    return success_response("Carrinho limpo", {"removed_items": removed})


@bp.get("/total")
def cart_total():
    service, _ = _deps()
    total = service.get_total(current_actor().user_id)
    return success_response("Total do carrinho", {"total_amount": float(total)})


@bp.get("/count")
def cart_count():
    service, _ = _deps()
    count = service.get_item_count(current_actor().user_id)
    return success_response("Quantidade de itens no carrinho", {"item_count": count})


@bp.post("/checkout")
def checkout():
    service, validator = _deps()
    actor = current_actor()
    data = request.get_json(silent=True) or {}

    errors = validator.validate_checkout(data)
    if errors:
        return validation_error(errors)

    result = service.checkout(actor.user_id, build_create_request(dict(data, items=[])))
    return success_response("Pedido criado a partir do carrinho", result.to_dict(), status=201)
