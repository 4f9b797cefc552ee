# Overview: Cashier routes: QRIS image path, order review and checkout.

from flask import Blueprint, current_app, g, request

from ..decorators import require_auth
from ..errors import PosError, ValidationError, error_response, internal_error_response
from ..responses import ok
from ..services import checkout_service
from ..validation import parse_order_lines

cashier_bp = Blueprint("cashier", __name__, url_prefix="/api/cashier")


@cashier_bp.get("/showQris")
@require_auth
def show_qris_route():
    return ok("QRIS path retrieved successfully", {"qrisPath": checkout_service.qris_path()})


@cashier_bp.post("/reviewOrder")
@require_auth
def review_order_route():
    """Body: {"products": [{"id", "qty"}]}"""
    try:
        data = request.get_json(silent=True) or {}
        lines = parse_order_lines(data.get("products"))
        return ok("Order reviewed successfully", checkout_service.review_order(lines))
    except PosError as exc:
        return error_response(exc)
    except Exception:
        current_app.logger.exception("Failed to review order")
        return internal_error_response()


@cashier_bp.post("/checkout")
@require_auth
def checkout_route():
    """
    Body: {"products": [{"id", "qty"}], "total_price": number, "payment_method": "cash" | "qris"}

    409 PriceMismatch when total_price disagrees with current prices,
    409 InsufficientStock when any line exceeds on-hand stock.
    """
    try:
        data = request.get_json(silent=True) or {}
        lines = parse_order_lines(data.get("products"))
        if data.get("total_price") is None:
            raise ValidationError("total_price is required")
        result = checkout_service.checkout(
            lines,
            data.get("payment_method"),
            data.get("total_price"),
            g.current_user.id,
        )
        return ok("Checkout processed successfully", result.to_dict())
    except PosError as exc:
        return error_response(exc)
    except Exception:
        current_app.logger.exception("Failed to process checkout")
        return internal_error_response()
