# Overview: Read-only report routes (dashboard, sales, profit, products, restock).

from flask import Blueprint, current_app, request

from ..decorators import require_auth
from ..errors import PosError, error_response, internal_error_response
from ..responses import ok
from ..services import reporting_service
from ..services.reporting_service import DateRange
from ..time_utils import utctoday
from ..validation import ensure_previous_period, parse_date_param, parse_date_range

reports_bp = Blueprint("reports", __name__, url_prefix="/api/report")


def _range_from_args() -> DateRange:
    start, end = parse_date_range(request.args.get("start_date"), request.args.get("end_date"))
    return DateRange(start=start, end=end)


@reports_bp.get("/dashboard")
@require_auth
def dashboard_route():
    try:
        rng = _range_from_args()
        return ok("Dashboard report retrieved successfully", reporting_service.dashboard(rng))
    except PosError as exc:
        return error_response(exc)
    except Exception:
        current_app.logger.exception("Failed to build dashboard report")
        return internal_error_response()


@reports_bp.get("/sales")
@require_auth
def sales_route():
    try:
        rng = _range_from_args()
        return ok("Sales report retrieved successfully", reporting_service.sales(rng))
    except PosError as exc:
        return error_response(exc)
    except Exception:
        current_app.logger.exception("Failed to build sales report")
        return internal_error_response()


@reports_bp.get("/profit")
@require_auth
def profit_route():
    """Query: date=YYYY-MM-DD (default today). Profit and sales history cover that day."""
    try:
        on_date = parse_date_param(request.args.get("date"), "date") or utctoday()
        ensure_previous_period(on_date, on_date)
        return ok("Profit report retrieved successfully", reporting_service.profit(on_date))
    except PosError as exc:
        return error_response(exc)
    except Exception:
        current_app.logger.exception("Failed to build profit report")
        return internal_error_response()


@reports_bp.get("/products")
@require_auth
def products_route():
    try:
        rng = _range_from_args()
        return ok("Product report retrieved successfully", reporting_service.sales_products(rng))
    except PosError as exc:
        return error_response(exc)
    except Exception:
        current_app.logger.exception("Failed to build product report")
        return internal_error_response()


@reports_bp.get("/restock")
@require_auth
def restock_route():
    try:
        rng = _range_from_args()
        return ok("Restock report retrieved successfully", reporting_service.restock(rng))
    except PosError as exc:
        return error_response(exc)
    except Exception:
        current_app.logger.exception("Failed to build restock report")
        return internal_error_response()
