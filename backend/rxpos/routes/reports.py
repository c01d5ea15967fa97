# Overview: Flask API routes for stock and sales reports; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify

from ..services import report_service
from ..errors import ServiceError
from ..decorators import require_actor
from .sales import _parse_bound

reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@reports_bp.get("/low-stock")
@require_actor
def low_stock_route():
    items = report_service.low_stock_products()
    return jsonify({"items": items, "count": len(items)}), 200


@reports_bp.get("/expiring")
@require_actor
def expiring_route():
    """Lots expiring within ?days=N (required, positive integer)."""
    days = request.args.get("days", type=int)
    if days is None or days <= 0:
        return jsonify({"error": "days must be a positive integer", "code": "invalid-field"}), 400
    items = report_service.expiring_lots(days)
    return jsonify({"items": items, "count": len(items), "days": days}), 200


@reports_bp.get("/expired")
@require_actor
def expired_route():
    items = report_service.expired_lots()
    return jsonify({"items": items, "count": len(items)}), 200


@reports_bp.get("/top-products")
@require_actor
def top_products_route():
    """
    Best sellers by quantity.

    Query params:
    - from, to: ISO-8601 datetime or YYYY-MM-DD (inclusive)
    - limit: int (default 10, clamped to 1..100)
    """
    limit = request.args.get("limit", 10, type=int)
    limit = max(1, min(limit, 100))
    try:
        items = report_service.top_products(
            date_from=_parse_bound(request.args.get("from")),
            date_to=_parse_bound(request.args.get("to"), end_of_day=True),
            limit=limit,
        )
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status
    return jsonify({"items": items, "count": len(items)}), 200
