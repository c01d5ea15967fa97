# Overview: Flask API routes for inventory levels; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify

from ..services import inventory_service
from ..decorators import require_actor

inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


@inventory_bp.get("")
@require_actor
def get_inventory_route():
    """
    Products with total sellable quantity and their non-empty lots (FEFO order).

    Query params:
    - include_inactive: bool (optional, default false)
    """
    include_inactive = request.args.get("include_inactive", "").lower() in {"1", "true", "yes"}
    items = inventory_service.get_inventory(include_inactive=include_inactive)
    return jsonify({"items": items, "count": len(items)}), 200
