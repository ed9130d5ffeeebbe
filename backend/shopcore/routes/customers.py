# backend/shopcore/routes/customers.py
"""Customer profile API routes."""

from flask import Blueprint, request, jsonify, g

from ..services import customer_service
from ..decorators import require_auth


customers_bp = Blueprint("customers", __name__, url_prefix="/api")


@customers_bp.get("/orgs/<int:org_id>/customers")
@require_auth
def list_customers_route(org_id: int):
    customers = customer_service.list_customers(
        actor_user_id=g.current_user.id,
        org_id=org_id,
        search=request.args.get("search"),
    )
    return jsonify({"customers": [c.to_dict() for c in customers]}), 200


@customers_bp.get("/customers/<int:customer_id>")
@require_auth
def get_customer_route(customer_id: int):
    customer = customer_service.get_customer(
        actor_user_id=g.current_user.id,
        customer_id=customer_id,
    )
    if not customer:
        return jsonify({"error": "Customer not found"}), 404
    return jsonify({"customer": customer}), 200
