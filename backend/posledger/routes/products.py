# Overview: Catalog routes (list, detail, create, update, soft delete) under /api/inventory.

from flask import Blueprint, current_app, g, request

from ..decorators import require_auth
from ..errors import PosError, error_response, internal_error_response
from ..responses import ok
from ..services import products_service
from ..validation import parse_choice, parse_id_list, parse_pagination

products_bp = Blueprint("products", __name__, url_prefix="/api/inventory")


@products_bp.get("/listProduct")
@require_auth
def list_products_route():
    """
    Query params:
    - search: name or barcode substring
    - category (alias category_id): exact category, case-insensitive
    - sort_by: name | barcode (default name)
    - sort_order: ASC | DESC (default ASC)
    - page, limit: pagination (default 1, 10; limit max 100)
    """
    try:
        page, limit = parse_pagination(request.args)
        result = products_service.list_products(
            search=request.args.get("search"),
            category=request.args.get("category") or request.args.get("category_id"),
            sort_by=parse_choice(request.args.get("sort_by"), "sort_by", products_service.PRODUCT_SORT_FIELDS, "name"),
            sort_order=parse_choice(request.args.get("sort_order"), "sort_order", ("ASC", "DESC"), "ASC", upper=True),
            page=page,
            limit=limit,
        )
        return ok("Products retrieved successfully", result)
    except PosError as exc:
        return error_response(exc)
    except Exception:
        current_app.logger.exception("Failed to list products")
        return internal_error_response()


@products_bp.get("/detailProduct/<int:product_id>")
@require_auth
def product_detail_route(product_id: int):
    try:
        return ok("Product retrieved successfully", products_service.get_product(product_id))
    except PosError as exc:
        return error_response(exc)
    except Exception:
        current_app.logger.exception("Failed to load product")
        return internal_error_response()


@products_bp.post("/addProduct")
@require_auth
def create_product_route():
    try:
        data = request.get_json(silent=True)
        product = products_service.create_product(data, g.current_user.id)
        return ok("Product created successfully", product, 201)
    except PosError as exc:
        return error_response(exc)
    except Exception:
        current_app.logger.exception("Failed to create product")
        return internal_error_response()


@products_bp.put("/updateProduct/<int:product_id>")
@require_auth
def update_product_route(product_id: int):
    try:
        data = request.get_json(silent=True)
        product = products_service.update_product(product_id, data, g.current_user.id)
        return ok("Product updated successfully", product)
    except PosError as exc:
        return error_response(exc)
    except Exception:
        current_app.logger.exception("Failed to update product")
        return internal_error_response()


@products_bp.delete("/deleteProduct/<int:product_id>")
@require_auth
def delete_product_route(product_id: int):
    try:
        product = products_service.delete_product(product_id, g.current_user.id)
        return ok("Product deleted successfully", product)
    except PosError as exc:
        return error_response(exc)
    except Exception:
        current_app.logger.exception("Failed to delete product")
        return internal_error_response()


@products_bp.delete("/deleteProduct")
@require_auth
def delete_products_route():
    """Bulk soft delete. Body: {"ids": [int, ...]}; all or nothing."""
    try:
        data = request.get_json(silent=True) or {}
        ids = parse_id_list(data.get("ids"))
        products = products_service.delete_products(ids, g.current_user.id)
        return ok("Products deleted successfully", products)
    except PosError as exc:
        return error_response(exc)
    except Exception:
        current_app.logger.exception("Failed to delete products")
        return internal_error_response()
