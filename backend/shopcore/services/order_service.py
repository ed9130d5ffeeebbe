# Overview: Order commit engine and admin order operations.

"""
Order Service - the single commit path for every order

WHY: Admin manual orders and storefront checkouts must enforce exactly the
same rules. Both call commit_order (checkout via commit_order_in_transaction
so it can close the cart in the same transaction).

ATOMICITY: Variant resolution, stock checks, order + item inserts, stock
decrements, movement records and the customer profile upsert run in ONE
database transaction. Any failure rolls all of it back; nothing partial is
ever visible.

CONCURRENCY: begin_write() serializes writers on SQLite (BEGIN IMMEDIATE);
lock_for_update() takes row locks elsewhere. Stock is read inside the
transaction after the lock is held, so two commits racing for the last unit
cannot both succeed. Lock/serialization failures are retried by
run_with_retry; business errors never are.
"""

from __future__ import annotations

import logging
import random

from ..extensions import db
from ..errors import (
    InsufficientStockError,
    InvalidInputError,
    InvalidStatusTransitionError,
    NotFoundError,
)
from ..models import Order, OrderItem, Product, ProductVariant
from ..models.orders import ORDER_STATUSES, PAYMENT_STATUSES
from ..validation import CustomerInfo, OrderLine, merge_order_lines, parse_customer_info
from shopcore.time_utils import epoch_millis, utcnow
from .concurrency import ORDER_COMMIT_ERRORS, begin_write, lock_for_update, run_with_retry
from . import customer_service, permission_service, stock_service, tenant_service


logger = logging.getLogger(__name__)


# Allowed status changes; cancelled and refunded are terminal
STATUS_TRANSITIONS = {
    "pending": {"paid", "processing", "cancelled"},
    "paid": {"processing", "cancelled", "refunded"},
    "processing": {"shipped", "cancelled", "refunded"},
    "shipped": {"delivered", "refunded"},
    "delivered": {"refunded"},
    "cancelled": set(),
    "refunded": set(),
}


def generate_order_number() -> str:
    """
    Human-readable order number: ORD-<last 6 digits of epoch ms>-<0..999>.

    Collisions are possible and tolerated; Order.id is the real key.
    """
    millis = str(epoch_millis())[-6:]
    return f"ORD-{millis}-{random.randint(0, 999)}"


def commit_order_in_transaction(
    *,
    org_id: int,
    lines: list[OrderLine],
    customer_info: CustomerInfo,
    user_id: int | None = None,
) -> Order:
    """
    Engine body. Caller has already called begin_write() and owns the commit.

    lines must already be validated and merged (see merge_order_lines).
    """
    variant_ids = [line.variant_id for line in lines]
    variants = {
        v.id: v
        for v in lock_for_update(
            db.session.query(ProductVariant).filter(ProductVariant.id.in_(variant_ids))
        ).all()
    }

    for line in lines:
        variant = variants.get(line.variant_id)
        if variant is None:
            raise NotFoundError("Variant not found", details={"variant_id": line.variant_id})
        if variant.org_id != org_id:
            tenant_service.deny_cross_tenant(
                f"Order for org {org_id} referenced variant {variant.id} of org {variant.org_id}",
                org_id=org_id,
                user_id=user_id,
                details={"variant_id": variant.id},
            )

    product_ids = {v.product_id for v in variants.values()}
    products = {
        p.id: p
        for p in db.session.query(Product).filter(Product.id.in_(product_ids)).all()
    }

    priced = []
    for line in lines:
        variant = variants[line.variant_id]
        product = products.get(variant.product_id)
        if product is None:
            raise NotFoundError("Product not found", details={"product_id": variant.product_id})

        if line.quantity > variant.stock_quantity:
            raise InsufficientStockError(
                f"Insufficient stock for {variant.name} (SKU: {variant.sku}). "
                f"Requested: {line.quantity}, Available: {variant.stock_quantity}",
                variant_id=variant.id,
                sku=variant.sku,
                requested=line.quantity,
                available=variant.stock_quantity,
            )
        priced.append((line, variant, product, variant.effective_price_cents(product)))

    total_cents = sum(price * line.quantity for line, _, _, price in priced)
    order_number = generate_order_number()
    now = utcnow()

    order = Order(
        org_id=org_id,
        order_number=order_number,
        status="pending",
        payment_status="pending",
        total_amount_cents=total_cents,
        customer_name=customer_info.name,
        customer_email=customer_service.normalize_email(customer_info.email),
        customer_address=customer_info.address,
        customer_phone=customer_info.phone,
        created_by_user_id=user_id,
        created_at=now,
        updated_at=now,
    )
    db.session.add(order)
    db.session.flush()

    for line, variant, product, price in priced:
        db.session.add(OrderItem(
            order_id=order.id,
            product_id=product.id,
            variant_id=variant.id,
            product_name=product.name,
            variant_name=variant.name,
            sku=variant.sku,
            quantity=line.quantity,
            price_cents=price,
        ))
        stock_service.apply_stock_delta(
            variant,
            -line.quantity,
            movement_type="sold",
            reason=f"Order {order_number}",
            user_id=user_id,
            order_id=order.id,
        )

    customer_service.upsert_customer_profile(
        org_id=org_id,
        customer_info=customer_info,
        order_total_cents=total_cents,
        now=now,
    )
    return order


def commit_order(
    *,
    org_id: int,
    items,
    customer_info,
    user_id: int | None = None,
) -> Order:
    """
    Validate, then atomically commit one order.

    Raises EmptyOrderError, InvalidInputError, NotFoundError,
    CrossTenantError or InsufficientStockError with nothing persisted.
    """
    lines = merge_order_lines(items)
    info = parse_customer_info(customer_info)

    def _op() -> Order:
        begin_write()
        order = commit_order_in_transaction(
            org_id=org_id,
            lines=lines,
            customer_info=info,
            user_id=user_id,
        )
        db.session.commit()
        return order

    order = run_with_retry(_op, retry_on=ORDER_COMMIT_ERRORS)
    logger.info(
        "Order committed: id=%s number=%s org=%s total=%s lines=%d user=%s",
        order.id, order.order_number, org_id, order.total_amount_cents, len(lines), user_id,
    )
    return order


def create_manual_order(
    *,
    actor_user_id: int | None,
    org_id: int,
    items,
    customer_info,
) -> Order:
    """
    Staff-entered order. Requires org admin (or platform admin).

    Authorization happens before any input is validated or data read.
    """
    permission_service.require_org_role(actor_user_id, org_id, ("admin",), action="CREATE_ORDER")
    tenant_service.get_org(org_id)
    return commit_order(
        org_id=org_id,
        items=items,
        customer_info=customer_info,
        user_id=actor_user_id,
    )


def list_orders(
    *,
    actor_user_id: int | None,
    org_id: int,
    status: str | None = None,
) -> list[Order]:
    if not permission_service.can_view_org(actor_user_id, org_id):
        return []
    query = db.session.query(Order).filter(Order.org_id == org_id)
    if status:
        query = query.filter(Order.status == status)
    return query.order_by(Order.created_at.desc(), Order.id.desc()).all()


def get_order(*, actor_user_id: int | None, order_id: int) -> Order | None:
    """Order (items loaded via relationship), or None when missing or not visible."""
    order = db.session.get(Order, order_id)
    if not order:
        return None
    if not permission_service.can_view_org(actor_user_id, order.org_id):
        return None
    return order


def update_order_status(*, actor_user_id: int | None, order_id: int, status: str) -> Order:
    """
    Move an order through its lifecycle. Requires admin or manager.

    Status changes never touch stock. Restocking a cancelled order is a
    separate "returned" adjustment.
    """
    if status not in ORDER_STATUSES:
        raise InvalidInputError(f"status must be one of: {', '.join(ORDER_STATUSES)}", field="status")

    order = db.session.get(Order, order_id)
    if not order:
        raise NotFoundError("Order not found", details={"order_id": order_id})
    permission_service.require_org_role(
        actor_user_id, order.org_id, ("admin", "manager"), action="UPDATE_ORDER_STATUS"
    )

    def _op() -> Order:
        locked = lock_for_update(db.session.query(Order).filter_by(id=order_id)).first()
        if not locked:
            raise NotFoundError("Order not found", details={"order_id": order_id})
        if locked.status == status:
            return locked
        if status not in STATUS_TRANSITIONS.get(locked.status, set()):
            raise InvalidStatusTransitionError(
                f"Cannot change order status from {locked.status} to {status}",
                field="status",
                details={"from": locked.status, "to": status},
            )
        previous = locked.status
        locked.status = status
        db.session.commit()
        logger.info("Order status changed: id=%s %s -> %s user=%s", order_id, previous, status, actor_user_id)
        return locked

    return run_with_retry(_op)


def record_payment_status(*, order_id: int, payment_status: str) -> Order:
    """
    Record the payment collaborator's verdict on an order.

    A pending order becomes "paid" when payment succeeds.
    """
    if payment_status not in PAYMENT_STATUSES:
        raise InvalidInputError(
            f"payment_status must be one of: {', '.join(PAYMENT_STATUSES)}", field="payment_status"
        )

    def _op() -> Order:
        order = lock_for_update(db.session.query(Order).filter_by(id=order_id)).first()
        if not order:
            raise NotFoundError("Order not found", details={"order_id": order_id})
        order.payment_status = payment_status
        if payment_status == "paid" and order.status == "pending":
            order.status = "paid"
        db.session.commit()
        return order

    return run_with_retry(_op)


def lookup_public_order(org_slug: str, order_number: str, email: str) -> dict | None:
    """
    Storefront order status lookup.

    Unknown or inactive store, unknown order number and wrong email all
    return None; callers cannot tell which one failed.
    """
    org = tenant_service.get_active_org_by_slug(org_slug)
    if not org or not order_number or not email:
        return None

    order = (
        db.session.query(Order)
        .filter_by(
            org_id=org.id,
            order_number=order_number.strip(),
            customer_email=customer_service.normalize_email(email),
        )
        .order_by(Order.id.desc())
        .first()
    )
    if not order:
        return None
    return order.to_public_dict()
