# Overview: Restock recommendation listing.

from flask import Blueprint, current_app, request

from ..decorators import require_auth
from ..errors import PosError, error_response, internal_error_response
from ..responses import ok
from ..services import restock_service
from ..validation import parse_choice, parse_id_list

restock_bp = Blueprint("restock", __name__, url_prefix="/api/restock-recommendations")


@restock_bp.get("/list")
@require_auth
def list_recommendations_route():
    """
    Query params:
    - search: product name substring
    - sort_by: estimated_days_left | current_stock | product_name
    - order: asc | desc (default asc)
    - product_ids: comma-separated ids; restricts the list to those products (search is ignored)
    """
    try:
        sort_by = parse_choice(request.args.get("sort_by"), "sort_by", restock_service.SORT_FIELDS, "estimated_days_left")
        order = parse_choice((request.args.get("order") or "").lower() or None, "order", ("asc", "desc"), "asc")
        raw_ids = request.args.get("product_ids")
        if raw_ids is not None:
            ids = parse_id_list([part for part in raw_ids.split(",") if part.strip()], "product_ids")
            items = restock_service.recommendations_for_products(ids, sort_by=sort_by, order=order)
        else:
            items = restock_service.recommendations(search=request.args.get("search"), sort_by=sort_by, order=order)
        return ok("Restock recommendations retrieved successfully", items)
    except PosError as exc:
        return error_response(exc)
    except Exception:
        current_app.logger.exception("Failed to list restock recommendations")
        return internal_error_response()
