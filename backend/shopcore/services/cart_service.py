# Overview: Storefront cart aggregate and checkout.

"""
Cart Service

Anonymous, session-scoped carts. No authorization gate: a shopper is
identified only by (organization, session_id).

SOFT RESERVATION: Adding to a cart checks stock but holds nothing. Two
carts can both contain the last unit; checkout() is the authoritative
check and the first shopper to commit wins.

Checkout runs the order commit engine and closes the cart in the same
transaction. If the commit fails the cart stays active and unchanged.
"""

from __future__ import annotations

import logging
from datetime import timedelta

from flask import current_app

from ..extensions import db
from ..errors import (
    CartNotActiveError,
    EmptyCartError,
    InsufficientStockError,
    NotFoundError,
)
from ..models import Cart, CartItem, Order, Product, ProductVariant
from ..validation import (
    coerce_int,
    merge_order_lines,
    parse_customer_info,
    require_positive_int,
    require_text,
)
from ..time_utils import utcnow
from .concurrency import ORDER_COMMIT_ERRORS, begin_write, lock_for_update, run_with_retry
from . import order_service, tenant_service


logger = logging.getLogger(__name__)

DEFAULT_VARIANT_NAME = "Standard"


def _insufficient(variant: ProductVariant, requested: int) -> InsufficientStockError:
    return InsufficientStockError(
        f"Insufficient stock. Only {variant.stock_quantity} available.",
        variant_id=variant.id,
        sku=variant.sku,
        requested=requested,
        available=variant.stock_quantity,
    )


def _get_active_cart(cart_id: int, org_id: int | None) -> Cart:
    cart = lock_for_update(db.session.query(Cart).filter_by(id=cart_id)).first()
    # A cart of another store is reported exactly like a closed one
    if not cart or cart.status != "active" or (org_id is not None and cart.org_id != org_id):
        raise CartNotActiveError("Cart not active", field="cart_id", details={"cart_id": cart_id})
    return cart


def _find_item(cart_id: int, variant_id: int) -> CartItem | None:
    return (
        db.session.query(CartItem)
        .filter_by(cart_id=cart_id, variant_id=variant_id)
        .populate_existing()
        .first()
    )


def add_item(
    *,
    org_id: int,
    session_id: str,
    product_id: int,
    variant_id: int,
    quantity,
) -> Cart:
    """
    Add quantity of a variant to the session's active cart.

    Creates the cart on first use. Re-adding a variant increases the
    existing line; the combined quantity must not exceed current stock.
    """
    quantity = require_positive_int(quantity, "quantity")
    session_id = require_text(session_id, "session_id", max_length=128)
    product_id = coerce_int(product_id, "product_id")
    variant_id = coerce_int(variant_id, "variant_id")

    def _op() -> Cart:
        begin_write()
        product = db.session.get(Product, product_id)
        variant = db.session.get(ProductVariant, variant_id, populate_existing=True)
        if not product or not variant:
            raise NotFoundError(
                "Product or variant not found",
                details={"product_id": product_id, "variant_id": variant_id},
            )
        if product.org_id != org_id:
            tenant_service.deny_cross_tenant(
                f"Cart add for org {org_id} referenced product {product_id} of org {product.org_id}",
                org_id=org_id,
                details={"product_id": product_id},
            )
        if variant.product_id != product_id:
            tenant_service.deny_cross_tenant(
                f"Variant {variant_id} does not belong to product {product_id}",
                org_id=org_id,
                details={"product_id": product_id, "variant_id": variant_id},
            )

        now = utcnow()
        cart = lock_for_update(
            db.session.query(Cart)
            .filter_by(org_id=org_id, session_id=session_id, status="active")
            .order_by(Cart.id.desc())
        ).first()
        if not cart:
            cart = Cart(org_id=org_id, session_id=session_id, status="active", created_at=now, updated_at=now)
            db.session.add(cart)
            db.session.flush()

        item = _find_item(cart.id, variant_id)
        new_quantity = (item.quantity if item else 0) + quantity
        if new_quantity > variant.stock_quantity:
            raise _insufficient(variant, new_quantity)

        if item:
            item.quantity = new_quantity
        else:
            db.session.add(CartItem(
                cart_id=cart.id,
                product_id=product_id,
                variant_id=variant_id,
                quantity=quantity,
            ))
        cart.updated_at = now
        db.session.commit()
        return cart

    return run_with_retry(_op)


def update_quantity(*, cart_id: int, variant_id: int, quantity, org_id: int | None = None) -> None:
    """
    Set a cart line's quantity. Zero or less removes the line.
    """
    quantity = coerce_int(quantity, "quantity")

    def _op() -> None:
        begin_write()
        cart = _get_active_cart(cart_id, org_id)

        if quantity <= 0:
            item = _find_item(cart_id, variant_id)
            if item:
                db.session.delete(item)
                cart.updated_at = utcnow()
            db.session.commit()
            return

        variant = db.session.get(ProductVariant, variant_id, populate_existing=True)
        if not variant:
            raise NotFoundError("Variant not found", details={"variant_id": variant_id})
        if quantity > variant.stock_quantity:
            raise _insufficient(variant, quantity)

        item = _find_item(cart_id, variant_id)
        if not item:
            raise NotFoundError("Item not in cart", details={"cart_id": cart_id, "variant_id": variant_id})
        item.quantity = quantity
        cart.updated_at = utcnow()
        db.session.commit()

    run_with_retry(_op)


def remove_item(*, cart_id: int, variant_id: int, org_id: int | None = None) -> None:
    def _op() -> None:
        cart = _get_active_cart(cart_id, org_id)
        item = _find_item(cart_id, variant_id)
        if item:
            db.session.delete(item)
            cart.updated_at = utcnow()
        db.session.commit()

    run_with_retry(_op)


def _find_active_cart(session_id: str, org_id: int | None) -> Cart | None:
    query = db.session.query(Cart).filter_by(session_id=session_id, status="active")
    if org_id is not None:
        query = query.filter_by(org_id=org_id)
    return query.order_by(Cart.updated_at.desc(), Cart.id.desc()).first()


def _item_display_name(product: Product, variant: ProductVariant) -> str:
    if variant.name and variant.name != DEFAULT_VARIANT_NAME:
        return f"{product.name} - {variant.name}"
    return product.name


def get_cart(session_id: str, org_id: int | None = None) -> dict | None:
    """
    Hydrated view of the session's active cart with live prices.

    Lines whose product or variant no longer exists are left out of both
    the item list and the totals.
    """
    if not session_id:
        return None
    cart = _find_active_cart(session_id, org_id)
    if not cart:
        return None

    items = []
    for item in db.session.query(CartItem).filter_by(cart_id=cart.id).order_by(CartItem.id).all():
        product = db.session.get(Product, item.product_id)
        variant = db.session.get(ProductVariant, item.variant_id)
        if not product or not variant:
            continue
        price = variant.effective_price_cents(product)
        items.append({
            "id": item.id,
            "product_id": product.id,
            "variant_id": variant.id,
            "name": _item_display_name(product, variant),
            "sku": variant.sku,
            "price_cents": price,
            "quantity": item.quantity,
            "max_stock": variant.stock_quantity,
            "line_total_cents": price * item.quantity,
        })

    return {
        "id": cart.id,
        "org_id": cart.org_id,
        "session_id": cart.session_id,
        "status": cart.status,
        "items": items,
        "total_amount_cents": sum(i["line_total_cents"] for i in items),
        "total_items": sum(i["quantity"] for i in items),
    }


def get_cart_total(session_id: str, org_id: int | None = None) -> dict | None:
    """Server-side cart total for the payment collaborator."""
    cart = get_cart(session_id, org_id)
    if not cart:
        return None
    return {
        "cart_id": cart["id"],
        "org_id": cart["org_id"],
        "session_id": cart["session_id"],
        "total_amount_cents": cart["total_amount_cents"],
        "item_count": len(cart["items"]),
    }


def checkout(*, cart_id: int, customer_info, org_id: int | None = None) -> Order:
    """
    Convert an active cart into a committed order and close the cart.

    The cart's lines are passed to the order engine unchanged (the engine
    re-checks stock under lock). On any failure nothing is written and the
    cart remains active.
    """
    info = parse_customer_info(customer_info)

    def _op() -> Order:
        begin_write()
        cart = _get_active_cart(cart_id, org_id)

        cart_items = db.session.query(CartItem).filter_by(cart_id=cart.id).order_by(CartItem.id).all()
        if not cart_items:
            raise EmptyCartError("Cart is empty", details={"cart_id": cart_id})

        lines = merge_order_lines([
            {"variant_id": item.variant_id, "quantity": item.quantity} for item in cart_items
        ])
        order = order_service.commit_order_in_transaction(
            org_id=cart.org_id,
            lines=lines,
            customer_info=info,
            user_id=cart.user_id,
        )

        cart.status = "completed"
        cart.updated_at = utcnow()
        db.session.commit()
        return order

    order = run_with_retry(_op, retry_on=ORDER_COMMIT_ERRORS)
    logger.info(
        "Cart checked out: cart=%s order=%s number=%s total=%s",
        cart_id, order.id, order.order_number, order.total_amount_cents,
    )
    return order


def abandon_stale_carts(*, older_than_hours: int | None = None) -> int:
    """Mark active carts idle longer than the cutoff as abandoned."""
    if older_than_hours is None:
        older_than_hours = current_app.config.get("CART_ABANDON_AFTER_HOURS", 72)
    cutoff = utcnow() - timedelta(hours=older_than_hours)

    def _op() -> int:
        stale = (
            db.session.query(Cart)
            .filter(Cart.status == "active", Cart.updated_at < cutoff)
            .all()
        )
        for cart in stale:
            cart.status = "abandoned"
        db.session.commit()
        return len(stale)

    count = run_with_retry(_op)
    logger.info("Abandoned %d stale carts (idle > %sh)", count, older_than_hours)
    return count
