# Overview: Inventory transaction routes (list, detail, purchase, adjustment) under /api/inventory.

from flask import Blueprint, current_app, g, request

from ..decorators import require_auth
from ..errors import PosError, ValidationError, error_response, internal_error_response
from ..responses import ok
from ..services import inventory_service
from ..validation import parse_choice, parse_order_lines, parse_pagination

inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


def _json_body() -> dict:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("Invalid JSON payload")
    return data


@inventory_bp.get("/transactionList")
@require_auth
def list_transactions_route():
    """
    Query params:
    - search: transaction number, type or product name substring
    - sort_by: no | product_name | type | date | created_at (default created_at)
    - sort_order: ASC | DESC (default DESC)
    - page, limit
    """
    try:
        page, limit = parse_pagination(request.args)
        result = inventory_service.list_transactions(
            search=request.args.get("search"),
            sort_by=parse_choice(
                request.args.get("sort_by"), "sort_by", inventory_service.TRANSACTION_SORT_FIELDS, "created_at",
            ),
            sort_order=parse_choice(request.args.get("sort_order"), "sort_order", ("ASC", "DESC"), "DESC", upper=True),
            page=page,
            limit=limit,
        )
        return ok("Transactions retrieved successfully", result)
    except PosError as exc:
        return error_response(exc)
    except Exception:
        current_app.logger.exception("Failed to list transactions")
        return internal_error_response()


@inventory_bp.get("/transactionDetail/<int:transaction_id>")
@require_auth
def transaction_detail_route(transaction_id: int):
    try:
        return ok("Transaction retrieved successfully", inventory_service.get_transaction(transaction_id))
    except PosError as exc:
        return error_response(exc)
    except Exception:
        current_app.logger.exception("Failed to load transaction")
        return internal_error_response()


@inventory_bp.post("/purchaseTransaction")
@require_auth
def purchase_transaction_route():
    """
    Body: {"items": [{"product_id", "quantity"}], "description"?, "total_amount"?}
    """
    try:
        data = _json_body()
        items = parse_order_lines(data.get("items"), id_key="product_id", qty_key="quantity")
        txn = inventory_service.purchase_transaction(
            items,
            g.current_user.id,
            description=data.get("description"),
            total_amount=data.get("total_amount"),
        )
        return ok("Purchase transaction created successfully", txn, 201)
    except PosError as exc:
        return error_response(exc)
    except Exception:
        current_app.logger.exception("Failed to create purchase transaction")
        return internal_error_response()


@inventory_bp.post("/adjustmentTransaction")
@require_auth
def adjustment_transaction_route():
    """
    Body: {"items": [{"product_id", "quantity"}], "description"}

    quantity is the counted on-hand quantity (0 allowed); one line per product.
    """
    try:
        data = _json_body()
        items = parse_order_lines(
            data.get("items"), id_key="product_id", qty_key="quantity", min_qty=0, merge=False,
        )
        txn = inventory_service.adjustment_transaction(items, data.get("description"), g.current_user.id)
        return ok("Adjustment transaction created successfully", txn, 201)
    except PosError as exc:
        return error_response(exc)
    except Exception:
        current_app.logger.exception("Failed to create adjustment transaction")
        return internal_error_response()
