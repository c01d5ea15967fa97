# Overview: Flask API routes for products operations; parses input and returns JSON responses.

# backend/rxpos/routes/products.py
"""
Product catalog routes.

Products are never deleted; PATCH {"is_active": false} deactivates.
"""
from flask import Blueprint, request, jsonify, current_app

from ..services import product_service
from ..errors import ServiceError
from ..validation import validate_product_payload
from ..decorators import require_actor

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


def _include_inactive() -> bool:
    return request.args.get("include_inactive", "").lower() in {"1", "true", "yes"}


@products_bp.get("")
@require_actor
def list_products_route():
    """
    List products ordered by name with their sellable total_qty.

    Query params:
    - include_inactive: bool (optional, default false)
    """
    items = product_service.list_products(include_inactive=_include_inactive())
    return jsonify({"items": items, "count": len(items)}), 200


@products_bp.post("")
@require_actor
def create_product_route():
    try:
        patch = validate_product_payload(request.get_json(silent=True), partial=False)
        product = product_service.create_product(**patch)
        return jsonify({"product": product.to_dict()}), 201
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status
    except Exception:
        current_app.logger.exception("Failed to create product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.get("/<int:product_id>")
@require_actor
def get_product_route(product_id: int):
    try:
        product = product_service.get_product(product_id)
        return jsonify({"product": product.to_dict()}), 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status


@products_bp.patch("/<int:product_id>")
@require_actor
def update_product_route(product_id: int):
    try:
        patch = validate_product_payload(request.get_json(silent=True), partial=True)
        product = product_service.update_product(product_id, patch)
        return jsonify({"product": product.to_dict()}), 200
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status
    except Exception:
        current_app.logger.exception("Failed to update product")
        return jsonify({"error": "Internal server error"}), 500
