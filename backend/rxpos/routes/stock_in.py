# Overview: Flask API routes for stock receiving; parses input and returns JSON responses.

"""
Stock-In Routes

All routes resolve the acting user via @require_actor.
Each POST records one batch; every line becomes one new stock lot.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_actor
from ..errors import ServiceError
from ..services import stock_in_service
from ..validation import parse_stock_in_payload


stock_in_bp = Blueprint("stock_in", __name__, url_prefix="/api/stock-in")


@stock_in_bp.post("")
@require_actor
def create_stock_in_route():
    """
    Record a stock-in batch.

    Request body:
    {
        "items": [{
            "product_id": 1,             // required
            "qty_added": 5,              // required, positive integer
            "unit_cost_cents": 850,      // required, positive integer
            "expiry_date": "2026-06-30"  // required, YYYY-MM-DD
        }],
        "note": "..."                    // optional
    }

    Returns:
        201 {stock_in: StockIn with items and created lots}
    """
    try:
        command = parse_stock_in_payload(request.get_json(silent=True))
        stock_in = stock_in_service.create_stock_in(g.actor.id, command)
        return jsonify({"stock_in": stock_in.to_dict()}), 201

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status
    except Exception:
        current_app.logger.exception("Failed to record stock-in")
        return jsonify({"error": "Internal server error"}), 500


@stock_in_bp.get("")
@require_actor
def list_stock_ins_route():
    stock_ins = stock_in_service.list_stock_ins()
    return jsonify({
        "items": [s.to_dict() for s in stock_ins],
        "count": len(stock_ins),
    }), 200


@stock_in_bp.get("/<int:stock_in_id>")
@require_actor
def get_stock_in_route(stock_in_id: int):
    try:
        stock_in = stock_in_service.get_stock_in(stock_in_id)
        return jsonify({"stock_in": stock_in.to_dict()}), 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status
