# backend/shopcore/routes/storefront.py
"""
Public storefront API routes (anonymous).

Every route is scoped by the organization slug in the URL. Unknown and
inactive stores are indistinguishable (404), and references to another
store's products are answered as "not found" rather than "forbidden".
"""

from flask import Blueprint, request, jsonify, current_app

from ..errors import CommerceError, CrossTenantError
from ..services import cart_service, order_service, payment_service, tenant_service


storefront_bp = Blueprint("storefront", __name__, url_prefix="/api/store/<org_slug>")


def _store_not_found():
    return jsonify({"error": "Store not found"}), 404


def _error_response(e: CommerceError):
    if isinstance(e, CrossTenantError):
        return jsonify({"error": "Product or variant not found", "details": {}}), 404
    return jsonify(e.to_dict()), e.status_code


@storefront_bp.get("/cart")
def get_cart_route(org_slug: str):
    org = tenant_service.get_active_org_by_slug(org_slug)
    if not org:
        return _store_not_found()

    session_id = request.args.get("session_id")
    if not session_id:
        return jsonify({"error": "session_id required"}), 400

    return jsonify({"cart": cart_service.get_cart(session_id, org.id)}), 200


@storefront_bp.post("/cart/items")
def add_cart_item_route(org_slug: str):
    """
    Add to cart.

    Body: {"session_id", "product_id", "variant_id", "quantity"}
    """
    org = tenant_service.get_active_org_by_slug(org_slug)
    if not org:
        return _store_not_found()

    try:
        data = request.get_json(silent=True) or {}
        if not all(data.get(k) is not None for k in ("session_id", "product_id", "variant_id", "quantity")):
            return jsonify({"error": "session_id, product_id, variant_id and quantity required"}), 400

        cart = cart_service.add_item(
            org_id=org.id,
            session_id=data["session_id"],
            product_id=data["product_id"],
            variant_id=data["variant_id"],
            quantity=data["quantity"],
        )
        return jsonify({"cart_id": cart.id, "cart": cart_service.get_cart(cart.session_id, org.id)}), 200

    except CommerceError as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to add item to cart")
        return jsonify({"error": "Internal server error"}), 500


@storefront_bp.patch("/cart/<int:cart_id>/items/<int:variant_id>")
def update_cart_item_route(org_slug: str, cart_id: int, variant_id: int):
    org = tenant_service.get_active_org_by_slug(org_slug)
    if not org:
        return _store_not_found()

    try:
        data = request.get_json(silent=True) or {}
        if data.get("quantity") is None:
            return jsonify({"error": "quantity required"}), 400

        cart_service.update_quantity(
            cart_id=cart_id,
            variant_id=variant_id,
            quantity=data["quantity"],
            org_id=org.id,
        )
        return jsonify({"message": "Cart updated"}), 200

    except CommerceError as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update cart item")
        return jsonify({"error": "Internal server error"}), 500


@storefront_bp.delete("/cart/<int:cart_id>/items/<int:variant_id>")
def remove_cart_item_route(org_slug: str, cart_id: int, variant_id: int):
    org = tenant_service.get_active_org_by_slug(org_slug)
    if not org:
        return _store_not_found()

    try:
        cart_service.remove_item(cart_id=cart_id, variant_id=variant_id, org_id=org.id)
        return jsonify({"message": "Item removed"}), 200

    except CommerceError as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to remove cart item")
        return jsonify({"error": "Internal server error"}), 500


@storefront_bp.post("/payment-intent")
def create_payment_intent_route(org_slug: str):
    """
    Create a payment handle for the session's cart.

    Body: {"session_id"}. The amount is computed server-side.
    """
    org = tenant_service.get_active_org_by_slug(org_slug)
    if not org:
        return _store_not_found()

    try:
        data = request.get_json(silent=True) or {}
        if not data.get("session_id"):
            return jsonify({"error": "session_id required"}), 400

        intent = payment_service.create_payment_intent(session_id=data["session_id"], org_id=org.id)
        return jsonify(intent), 200

    except CommerceError as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create payment intent")
        return jsonify({"error": "Internal server error"}), 500


@storefront_bp.post("/cart/<int:cart_id>/checkout")
def checkout_route(org_slug: str, cart_id: int):
    """
    Convert the cart into an order.

    Body: {"customer_info": {...}, "payment_intent_id"?}
    The order is created pending/pending. payment_intent_id is only used to
    report a failed checkout after payment; the payment collaborator records
    the payment result on the order.
    """
    org = tenant_service.get_active_org_by_slug(org_slug)
    if not org:
        return _store_not_found()

    data = request.get_json(silent=True) or {}
    payment_intent_id = data.get("payment_intent_id")
    try:
        order = cart_service.checkout(
            cart_id=cart_id,
            customer_info=data.get("customer_info"),
            org_id=org.id,
        )
        return jsonify({"order_id": order.id, "order": order.to_public_dict()}), 201

    except CommerceError as e:
        if payment_intent_id:
            # Payment was taken but no order exists; needs manual refund
            current_app.logger.warning(
                "Checkout failed after payment: cart=%s payment_intent=%s error=%s",
                cart_id, payment_intent_id, e,
            )
        return _error_response(e)
    except Exception:
        current_app.logger.exception(
            "Failed to checkout cart: cart=%s payment_intent=%s", cart_id, payment_intent_id
        )
        return jsonify({"error": "Internal server error"}), 500


@storefront_bp.get("/orders/<order_number>")
def order_status_route(org_slug: str, order_number: str):
    """Public order status by order number + email (?email=)."""
    order = order_service.lookup_public_order(org_slug, order_number, request.args.get("email", ""))
    if not order:
        return jsonify({"error": "Order not found"}), 404
    return jsonify({"order": order}), 200
