# backend/shopcore/routes/inventory.py
"""Inventory API routes: stock adjustments, movement history, stock levels."""

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import CommerceError
from ..services import stock_service
from ..validation import coerce_int
from ..decorators import require_auth


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api")


@inventory_bp.post("/inventory/variants/<int:variant_id>/adjust")
@require_auth
def adjust_stock_route(variant_id: int):
    """
    Apply a manual stock change.

    Body: {"type": "received|sold|adjusted|returned|audit", "quantity": <signed int>, "reason"?}
    Requires: org admin
    """
    try:
        data = request.get_json(silent=True) or {}
        movement_type = data.get("type")
        quantity = data.get("quantity")

        if movement_type is None or quantity is None:
            return jsonify({"error": "type and quantity required"}), 400

        new_stock = stock_service.adjust_stock(
            actor_user_id=g.current_user.id,
            variant_id=variant_id,
            movement_type=movement_type,
            delta=quantity,
            reason=data.get("reason"),
        )
        return jsonify({"variant_id": variant_id, "new_stock": new_stock}), 200

    except CommerceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to adjust stock")
        return jsonify({"error": "Internal server error"}), 500


@inventory_bp.get("/inventory/variants/<int:variant_id>/history")
@require_auth
def movement_history_route(variant_id: int):
    try:
        limit = request.args.get("limit")
        history = stock_service.get_movement_history(
            actor_user_id=g.current_user.id,
            variant_id=variant_id,
            limit=coerce_int(limit, "limit") if limit is not None else None,
        )
        return jsonify({"movements": history}), 200

    except CommerceError as e:
        return jsonify(e.to_dict()), e.status_code


@inventory_bp.get("/orgs/<int:org_id>/inventory")
@require_auth
def list_inventory_route(org_id: int):
    try:
        threshold = request.args.get("low_stock_threshold")
        items = stock_service.list_inventory(
            actor_user_id=g.current_user.id,
            org_id=org_id,
            low_stock_threshold=coerce_int(threshold, "low_stock_threshold") if threshold is not None else None,
        )
        return jsonify({"items": items}), 200

    except CommerceError as e:
        return jsonify(e.to_dict()), e.status_code
