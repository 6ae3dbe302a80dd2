# ecommerce_api/blueprints/products.py
from decimal import Decimal, InvalidOperation

from flask import Blueprint, current_app, request
from sqlalchemy import or_, asc, desc
from sqlalchemy.exc import IntegrityError

from ..models import db, MAX_AMOUNT, Product
from ..services.authorization import UserRole, require_role
from ..services.errors import UnauthorizedError
from ..utils.responses import current_actor, error_response, success_response, validation_error

bp = Blueprint("products", __name__)

PRICE_ERROR = f"Deve ser um valor numérico entre 0 e {MAX_AMOUNT}"


def product_to_dict(p: Product):
    return {
        "id": p.id,
        "sku": p.sku,
        "name": p.name,
        "description": p.description or "",
        "image_url": p.image_url or "",
        "price": float(p.price or 0),
        "stock": int(p.stock or 0),
        "is_active": bool(p.is_active),
        "seller_id": p.seller_id,
    }


def _parse_price(value):
    if isinstance(value, bool):
        return None
    try:
        price = Decimal(str(value)).quantize(Decimal("0.01"))
    except (InvalidOperation, ValueError):
        return None
    if not price.is_finite() or price < 0 or price > MAX_AMOUNT:
        return None
    return price


def _parse_bool(value):
    """Só aceita booleano JSON; "false" em texto não vira True."""
    return value if isinstance(value, bool) else None


def _parse_stock(value):
    if isinstance(value, bool):
        return None
    try:
        stock = int(value)
    except (TypeError, ValueError):
        return None
    return stock if stock >= 0 else None


@bp.route("/", methods=["GET"])
def list_products():
    page = max(request.args.get("page", 1, type=int), 1)
    per_page = max(min(request.args.get("per_page", 10, type=int), 50), 1)
    search = (request.args.get("search") or "").strip()
    sort_by = (request.args.get("sort_by") or "name").lower()
    sort_dir = (request.args.get("sort_dir") or "asc").lower()

    q = Product.query.filter(Product.is_active.is_(True))
    if search:
        like = f"%{search}%"
        q = q.filter(or_(Product.name.ilike(like), Product.description.ilike(like), Product.sku.ilike(like)))
    seller_id = request.args.get("seller_id", type=int)
    if seller_id:
        q = q.filter(Product.seller_id == seller_id)

    sort_map = {"name": Product.name, "price": Product.price, "id": Product.id, "sku": Product.sku, "stock": Product.stock}
    col = sort_map.get(sort_by, Product.name)
    q = q.order_by(asc(col) if sort_dir == "asc" else desc(col))

    pag = q.paginate(page=page, per_page=per_page, error_out=False)
    return success_response("Produtos encontrados", [product_to_dict(p) for p in pag.items], meta={
        "page": pag.page,
        "per_page": pag.per_page,
        "pages": pag.pages,
        "total": pag.total,
    })


@bp.route("/<int:pid>/", methods=["GET"])
def get_product(pid):
    p = db.get_or_404(Product, pid)
    return success_response("Produto encontrado", product_to_dict(p))


@bp.route("/", methods=["POST"])
def create_product():
    actor = current_actor()
    require_role(actor, UserRole.SELLER, UserRole.ADMIN)
    data = request.get_json(silent=True) or {}

    errors = {}
    name = (data.get("name") or "").strip()
    sku = (data.get("sku") or "").strip()
    if not name:
        errors["name"] = "Campo obrigatório"
    if not sku:
        errors["sku"] = "Campo obrigatório"
    price = _parse_price(data.get("price", 0))
    if price is None:
        errors["price"] = PRICE_ERROR
    stock = _parse_stock(data.get("stock", 0))
    if stock is None:
        errors["stock"] = "Deve ser um inteiro >= 0"
    is_active = _parse_bool(data.get("is_active", True))
    if is_active is None:
        errors["is_active"] = "Deve ser booleano"
    seller_id = actor.user_id
    if actor.is_admin and data.get("seller_id") is not None:
        seller_id = _parse_stock(data.get("seller_id"))
        if not seller_id:
            errors["seller_id"] = "Deve ser um inteiro positivo"
    if errors:
        return validation_error(errors)

    p = Product(
        sku=sku,
        name=name,
        description=(data.get("description") or "").strip(),
        image_url=(data.get("image_url") or "").strip(),
        price=price,
        stock=stock,
        is_active=is_active,
        seller_id=seller_id,
    )
    db.session.add(p)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return error_response("sku já existe", 409)
    return success_response("Produto criado", product_to_dict(p), status=201)


@bp.route("/<int:pid>/", methods=["PUT"])
def update_product(pid):
    actor = current_actor()
    p = db.get_or_404(Product, pid)
    if not actor.is_admin and not (actor.role is UserRole.SELLER and p.seller_id == actor.user_id):
        raise UnauthorizedError(f"Sem permissão para alterar o produto {pid}")
    data = request.get_json(silent=True) or {}

    errors = {}
    if "price" in data and _parse_price(data["price"]) is None:
        errors["price"] = PRICE_ERROR
    if "stock" in data and _parse_stock(data["stock"]) is None:
        errors["stock"] = "Deve ser um inteiro >= 0"
    if "is_active" in data and _parse_bool(data["is_active"]) is None:
        errors["is_active"] = "Deve ser booleano"
    if errors:
        return validation_error(errors)

    if "sku" in data:
        p.sku = (data.get("sku") or "").strip() or p.sku
    if "name" in data:
        p.name = (data.get("name") or "").strip() or p.name
    if "description" in data:
        p.description = (data.get("description") or "").strip()
    if "image_url" in data:
        p.image_url = (data.get("image_url") or "").strip()
    if "price" in data:
        p.price = _parse_price(data["price"])
    if "is_active" in data:
        p.is_active = data["is_active"]
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return error_response("sku já existe", 409)

    # estoque passa pelo repositório do catálogo
    if "stock" in data:
        current_app.extensions["ecommerce"]["products"].update_stock(pid, _parse_stock(data["stock"]))

    return success_response("Produto atualizado", product_to_dict(db.session.get(Product, pid)))


@bp.route("/<int:pid>/", methods=["DELETE"])
def deactivate_product(pid):
    actor = current_actor()
    p = db.get_or_404(Product, pid)
    if not actor.is_admin and not (actor.role is UserRole.SELLER and p.seller_id == actor.user_id):
        raise UnauthorizedError(f"Sem permissão para remover o produto {pid}")
    # itens de pedido referenciam o produto; só desativa
    p.is_active = False
    db.session.commit()
    return success_response("Produto desativado", {"id": pid, "is_active": False})
