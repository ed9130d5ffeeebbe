# Overview: Payment collaborator seam for storefront checkout.

"""
Payment Service

WHY: The storefront needs a client-usable payment handle for the cart
total before it calls checkout. Processor integration is out of scope, so
the gateway is pluggable and defaults to a local stub.

DESIGN PRINCIPLES:
- The amount always comes from the server-side cart total, never the client
- No external call happens inside a database transaction
- The core never verifies payment. A payment captured for a checkout that
  then fails (e.g. insufficient stock) is a known, logged gap.
"""

import logging
import secrets

from flask import current_app

from ..errors import EmptyCartError
from . import cart_service


logger = logging.getLogger(__name__)


class StubPaymentGateway:
    """Issues processor-shaped handles without contacting a processor."""

    name = "stub"

    def create_intent(self, *, amount_cents: int, currency: str, metadata: dict) -> dict:
        intent_id = f"pi_{secrets.token_hex(12)}"
        return {
            "id": intent_id,
            "client_secret": f"{intent_id}_secret_{secrets.token_hex(12)}",
            "amount": amount_cents,
            "currency": currency,
        }


def get_gateway():
    """Gateway registered on the app (app.extensions["payment_gateway"]), else the stub."""
    gateway = current_app.extensions.get("payment_gateway")
    return gateway or StubPaymentGateway()


def create_payment_intent(*, session_id: str, org_id: int | None = None) -> dict:
    """
    Create a payment handle for the session's active cart.

    Raises EmptyCartError when there is no cart or nothing to pay.
    """
    total = cart_service.get_cart_total(session_id, org_id)
    if not total or total["total_amount_cents"] <= 0:
        raise EmptyCartError("Cart is empty")

    currency = current_app.config.get("PAYMENT_CURRENCY", "usd")
    intent = get_gateway().create_intent(
        amount_cents=total["total_amount_cents"],
        currency=currency,
        metadata={
            "cart_id": total["cart_id"],
            "org_id": total["org_id"],
            "session_id": session_id,
        },
    )
    logger.info(
        "Payment intent created: cart=%s amount=%s %s",
        total["cart_id"], total["total_amount_cents"], currency,
    )
    return {
        "client_secret": intent["client_secret"],
        "amount": intent["amount"],
        "currency": intent["currency"],
        "cart_id": total["cart_id"],
    }
