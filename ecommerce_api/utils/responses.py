# ecommerce_api/utils/responses.py
from flask import jsonify, request

from ..services.authorization import Actor, UserRole
from ..services.errors import OrderWorkflowError


class MissingActorError(OrderWorkflowError):
    status_code = 401

    def __init__(self):
        super().__init__("Cabeçalhos X-User-ID e X-User-Role são obrigatórios")


def success_response(message: str, data=None, status: int = 200, meta=None):
    body = {"success": True, "message": message, "data": data}
    if meta is not None:
        body["meta"] = meta
    return jsonify(body), status


def error_response(message: str, status: int, details=None):
    body = {"success": False, "error": message}
    if details:
        body["details"] = details
    return jsonify(body), status


def validation_error(details):
    return error_response("Falha na validação", 400, details=details)


def current_actor() -> Actor:
    """
    Usuário autenticado, repassado pelo gateway de autenticação nos cabeçalhos.
    A emissão e verificação de tokens acontecem fora deste serviço.
    """
    raw_id = (request.headers.get("X-User-ID") or "").strip()
    role = UserRole.parse(request.headers.get("X-User-Role"))
    if not raw_id.isdigit() or role is None:
        raise MissingActorError()
    return Actor(user_id=int(raw_id), role=role)


def pagination_args(default_limit: int = 10, max_limit: int = 100):
    """(limit, offset) a partir de ?page=&limit=, como na listagem de produtos."""
    try:
        page = int(request.args.get("page", 1))
    except (TypeError, ValueError):
        page = 1
    try:
        limit = int(request.args.get("limit", default_limit))
    except (TypeError, ValueError):
        limit = default_limit
    page = max(page, 1)
    if limit <= 0 or limit > max_limit:
        limit = default_limit
    return limit, (page - 1) * limit
