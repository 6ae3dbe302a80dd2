# ecommerce_api/blueprints/admin.py
"""
Rotas de vendedor e de administração (listagens e analytics de pedidos).
"""

import re
from datetime import datetime, time, timezone

from flask import Blueprint, current_app, request

from ..services.authorization import UserRole, require_role
from ..services.errors import InvalidOrderRequestError
from ..utils.responses import current_actor, pagination_args, success_response

seller_bp = Blueprint("seller", __name__)
admin_bp = Blueprint("admin", __name__)


def _service():
    return current_app.extensions["ecommerce"]["order_service"]


_DATE_ONLY = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def _parse_date(name: str, end_of_day: bool = False):
    """
    Lê uma data ISO 8601 da query string como UTC sem tzinfo (formato das colunas).
    Datas com fuso são convertidas para UTC. Com end_of_day, uma data sem hora
    vale até o último instante do dia, para o limite final incluir o dia inteiro.
    """
    raw = (request.args.get(name) or "").strip()
    if not raw:
        return None
    try:
        parsed = datetime.fromisoformat(raw)
    except ValueError:
        raise InvalidOrderRequestError(f"Data inválida em {name}: {raw!r} (use ISO 8601)")
    if _DATE_ONLY.match(raw):
        return datetime.combine(parsed.date(), time.max) if end_of_day else parsed
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


@seller_bp.get("/orders")
def seller_orders():
    actor = current_actor()
    require_role(actor, UserRole.SELLER)
    limit, offset = pagination_args()
    orders = _service().get_seller_orders(actor.user_id, limit, offset)
    return success_response("Pedidos do vendedor", [o.to_dict() for o in orders])


@seller_bp.get("/analytics/orders")
def seller_analytics():
    actor = current_actor()
    require_role(actor, UserRole.SELLER)
    analytics = _service().get_order_analytics(
        seller_id=actor.user_id,
        start_date=_parse_date("start_date"),
        end_date=_parse_date("end_date", end_of_day=True),
    )
    return success_response("Analytics do vendedor", analytics.to_dict())


@admin_bp.get("/orders")
def all_orders():
    require_role(current_actor(), UserRole.ADMIN)
    limit, offset = pagination_args()
    service = _service()

    status = (request.args.get("status") or "").strip()
    date_from = _parse_date("date_from")
    date_to = _parse_date("date_to", end_of_day=True)

    if status:
        orders = service.get_orders_by_status(status, limit, offset)
    elif date_from and date_to:
        orders = service.get_orders_by_date_range(date_from, date_to, limit, offset)
    else:
        orders = service.get_all_orders(limit, offset)
    return success_response("Pedidos encontrados", [o.to_dict() for o in orders])


@admin_bp.get("/analytics/orders")
def order_analytics():
    require_role(current_actor(), UserRole.ADMIN)
    raw_seller = (request.args.get("seller_id") or "").strip()
    if raw_seller and not raw_seller.isdigit():
        raise InvalidOrderRequestError(f"seller_id inválido: {raw_seller!r}")

    analytics = _service().get_order_analytics(
        seller_id=int(raw_seller) if raw_seller else None,
        start_date=_parse_date("start_date"),
        end_date=_parse_date("end_date", end_of_day=True),
    )
    return success_response("Analytics de pedidos", analytics.to_dict())
