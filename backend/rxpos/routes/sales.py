# Overview: Flask API routes for sales operations; parses input and returns JSON responses.

# backend/rxpos/routes/sales.py
"""Sales API routes"""

from datetime import datetime, time, timedelta

from flask import Blueprint, request, jsonify, g, current_app

from ..services import sales_service
from ..errors import ServiceError, ValidationError
from ..validation import parse_sale_payload
from ..decorators import require_actor
from rxpos.time_utils import parse_iso_datetime


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


def _parse_bound(value: str | None, *, end_of_day: bool = False) -> datetime | None:
    """ISO datetime or YYYY-MM-DD; a date-only upper bound covers the whole day."""
    if not value:
        return None
    try:
        dt = parse_iso_datetime(value)
    except ValueError:
        raise ValidationError("invalid-date", code="invalid-date", details={"value": value})
    if dt is not None and end_of_day and len(value.strip()) == 10:
        dt = datetime.combine(dt.date(), time.min) + timedelta(days=1) - timedelta(microseconds=1)
    return dt


@sales_bp.post("")
@require_actor
def create_sale_route():
    """
    Create and commit a sale.

    Request body:
    {
        "items": [{"product_id": 1, "qty": 2}],   // required, non-empty
        "payment_method": "CASH",                 // optional
        "note": "..."                             // optional
    }

    Returns:
        201 {sale: Sale with items and lot allocations}
    """
    try:
        command = parse_sale_payload(request.get_json(silent=True))
        sale = sales_service.create_sale(g.actor.id, command)
        return jsonify({"sale": sale.to_dict()}), 201

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status
    except Exception:
        current_app.logger.exception("Failed to create sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("")
@require_actor
def list_sales_route():
    """
    List sales, newest first.

    Query parameters:
    - from, to: ISO-8601 datetime or YYYY-MM-DD (inclusive)
    - sold_by_user_id, product_id: int
    - receipt_no: exact match
    """
    try:
        sales = sales_service.list_sales(
            date_from=_parse_bound(request.args.get("from")),
            date_to=_parse_bound(request.args.get("to"), end_of_day=True),
            sold_by_user_id=request.args.get("sold_by_user_id", type=int),
            product_id=request.args.get("product_id", type=int),
            receipt_no=request.args.get("receipt_no"),
        )
        items = [sales_service.sale_summary(sale) for sale in sales]
        return jsonify({"items": items, "count": len(items)}), 200

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status
    except Exception:
        current_app.logger.exception("Failed to list sales")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("/<int:sale_id>")
@require_actor
def get_sale_route(sale_id: int):
    """Get sale with items and allocations."""
    try:
        sale = sales_service.get_sale(sale_id)
        return jsonify({"sale": sale.to_dict()}), 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status


@sales_bp.post("/<int:sale_id>/reprint")
@require_actor
def reprint_sale_route(sale_id: int):
    """Receipt payload for reprinting; the sale itself is never modified."""
    try:
        sale = sales_service.get_sale(sale_id)
        current_app.logger.info("Receipt %s reprinted by user_id=%s", sale.receipt_no, g.actor.id)
        return jsonify({"sale": sale.to_dict()}), 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status
