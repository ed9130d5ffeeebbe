# backend/shopcore/routes/orders.py
"""Admin order API routes."""

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import CommerceError
from ..services import order_service
from ..decorators import require_auth


orders_bp = Blueprint("orders", __name__, url_prefix="/api")


@orders_bp.post("/orgs/<int:org_id>/orders")
@require_auth
def create_manual_order_route(org_id: int):
    """
    Create a manual (staff-entered) order.

    Body: {"items": [{"variant_id", "quantity"}], "customer_info": {"name", "email", "address"?, "phone"?}}
    Requires: org admin
    """
    try:
        data = request.get_json(silent=True) or {}
        order = order_service.create_manual_order(
            actor_user_id=g.current_user.id,
            org_id=org_id,
            items=data.get("items"),
            customer_info=data.get("customer_info"),
        )
        return jsonify({"order": order.to_dict(include_items=True)}), 201

    except CommerceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create manual order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.get("/orgs/<int:org_id>/orders")
@require_auth
def list_orders_route(org_id: int):
    orders = order_service.list_orders(
        actor_user_id=g.current_user.id,
        org_id=org_id,
        status=request.args.get("status"),
    )
    return jsonify({"orders": [o.to_dict() for o in orders]}), 200


@orders_bp.get("/orders/<int:order_id>")
@require_auth
def get_order_route(order_id: int):
    order = order_service.get_order(actor_user_id=g.current_user.id, order_id=order_id)
    if not order:
        return jsonify({"error": "Order not found"}), 404
    return jsonify({"order": order.to_dict(include_items=True)}), 200


@orders_bp.patch("/orders/<int:order_id>/status")
@require_auth
def update_order_status_route(order_id: int):
    """
    Change order status.

    Requires: org admin or manager
    """
    try:
        data = request.get_json(silent=True) or {}
        status = data.get("status")
        if not status:
            return jsonify({"error": "status required"}), 400

        order = order_service.update_order_status(
            actor_user_id=g.current_user.id,
            order_id=order_id,
            status=status,
        )
        return jsonify({"order": order.to_dict()}), 200

    except CommerceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update order status")
        return jsonify({"error": "Internal server error"}), 500
