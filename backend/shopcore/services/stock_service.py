# Overview: Stock ledger; every stock change in the system goes through here.

"""
Stock Ledger Service

WHY: A variant's stock_quantity is a cached counter over an append-only
movement log. Keeping both in step, and never letting the counter go
negative, is the core consistency guarantee of the platform.

INVARIANTS:
- stock_quantity >= 0 after every committed transaction
- exactly one InventoryMovement per stock change
- replaying a variant's movements from creation yields stock_quantity

apply_stock_delta() is the only function that writes stock_quantity. Both
the order commit engine and manual adjustments call it inside their own
transaction; it never commits.
"""

from __future__ import annotations

import logging

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..errors import InsufficientStockError, InvalidInputError, NotFoundError, UnauthorizedError
from ..models import InventoryMovement, Product, ProductVariant, User
from ..models.inventory import MOVEMENT_TYPES
from ..validation import coerce_int, optional_text
from .concurrency import begin_write, lock_for_update, run_with_retry
from . import permission_service


logger = logging.getLogger(__name__)

MAX_HISTORY_LIMIT = 500


def get_variant_for_update(variant_id: int) -> ProductVariant | None:
    return lock_for_update(
        db.session.query(ProductVariant).filter_by(id=variant_id)
    ).first()


def apply_stock_delta(
    variant: ProductVariant,
    delta: int,
    *,
    movement_type: str,
    reason: str | None = None,
    user_id: int | None = None,
    order_id: int | None = None,
) -> InventoryMovement:
    """
    Change a locked variant's stock by delta and append the movement.

    Caller must hold the write lock (begin_write / lock_for_update) and
    owns the transaction. Raises InsufficientStockError, leaving both the
    counter and the log untouched, if the result would be negative.
    """
    if movement_type not in MOVEMENT_TYPES:
        raise InvalidInputError(
            f"type must be one of: {', '.join(MOVEMENT_TYPES)}", field="type"
        )
    if delta == 0:
        raise InvalidInputError("quantity change cannot be zero", field="quantity")

    current = variant.stock_quantity
    new_stock = current + delta
    if new_stock < 0:
        raise InsufficientStockError(
            f"Insufficient stock. Current: {current}, Requested change: {delta}",
            variant_id=variant.id,
            sku=variant.sku,
            requested=-delta,
            available=current,
        )

    variant.stock_quantity = new_stock
    movement = InventoryMovement(
        org_id=variant.org_id,
        variant_id=variant.id,
        product_id=variant.product_id,
        type=movement_type,
        quantity=delta,
        reason=reason,
        user_id=user_id,
        order_id=order_id,
    )
    db.session.add(movement)
    return movement


def adjust_stock(
    *,
    actor_user_id: int | None,
    variant_id: int,
    movement_type: str,
    delta,
    reason: str | None = None,
) -> int:
    """
    Manual stock change outside of order flow (receiving, returns, audits).

    Requires an acting user who is an org admin (or platform admin).
    Returns the new stock level.
    """
    if not actor_user_id:
        raise UnauthorizedError("Unauthenticated")
    delta = coerce_int(delta, "quantity")
    if movement_type not in MOVEMENT_TYPES:
        raise InvalidInputError(
            f"type must be one of: {', '.join(MOVEMENT_TYPES)}", field="type"
        )
    reason = optional_text(reason)

    variant = db.session.get(ProductVariant, variant_id)
    if not variant:
        raise NotFoundError("Variant not found", details={"variant_id": variant_id})
    permission_service.require_org_role(
        actor_user_id, variant.org_id, ("admin",), action="ADJUST_STOCK"
    )

    def _op() -> int:
        begin_write()
        locked = get_variant_for_update(variant_id)
        if not locked:
            raise NotFoundError("Variant not found", details={"variant_id": variant_id})

        apply_stock_delta(
            locked,
            delta,
            movement_type=movement_type,
            reason=reason,
            user_id=actor_user_id,
        )
        new_stock = locked.stock_quantity
        db.session.commit()
        return new_stock

    new_stock = run_with_retry(_op)
    logger.info(
        "Stock adjusted: variant=%s type=%s delta=%s new_stock=%s user=%s",
        variant_id, movement_type, delta, new_stock, actor_user_id,
    )
    return new_stock


def _performer_name(user: User | None) -> str:
    if user is None:
        return "System"
    return user.email or user.name or "Unknown User"


def get_movement_history(
    *,
    actor_user_id: int | None,
    variant_id: int,
    limit: int | None = None,
) -> list[dict]:
    """
    Newest-first movements for one variant, with performer_name.

    Unknown variants and unauthorized callers both get an empty list.
    """
    variant = db.session.get(ProductVariant, variant_id)
    if not variant:
        return []
    if not permission_service.can_view_org(actor_user_id, variant.org_id):
        return []

    if limit is None:
        limit = current_app.config.get("MOVEMENT_HISTORY_LIMIT", 50)
    limit = max(1, min(int(limit), MAX_HISTORY_LIMIT))

    movements = (
        db.session.query(InventoryMovement)
        .filter_by(variant_id=variant_id, org_id=variant.org_id)
        .order_by(InventoryMovement.created_at.desc(), InventoryMovement.id.desc())
        .limit(limit)
        .all()
    )

    history = []
    for movement in movements:
        entry = movement.to_dict()
        entry["performer_name"] = _performer_name(movement.user)
        history.append(entry)
    return history


def list_inventory(
    *,
    actor_user_id: int | None,
    org_id: int,
    low_stock_threshold: int | None = None,
) -> list[dict]:
    """
    Flattened product/variant stock view for an organization, lowest stock first.

    Every row carries is_low_stock. When low_stock_threshold is passed
    explicitly, only rows at or below it are returned.
    """
    if not permission_service.can_view_org(actor_user_id, org_id):
        return []

    threshold = low_stock_threshold
    if threshold is None:
        threshold = current_app.config.get("LOW_STOCK_THRESHOLD", 10)

    rows = (
        db.session.query(ProductVariant, Product)
        .outerjoin(Product, Product.id == ProductVariant.product_id)
        .filter(ProductVariant.org_id == org_id)
        .all()
    )

    items = []
    for variant, product in rows:
        is_low = variant.stock_quantity <= threshold
        if low_stock_threshold is not None and not is_low:
            continue
        items.append({
            "variant_id": variant.id,
            "product_id": variant.product_id,
            "product_name": product.name if product else "Unknown Product",
            "product_status": product.status if product else None,
            "variant_name": variant.name,
            "sku": variant.sku,
            "stock_quantity": variant.stock_quantity,
            "price_cents": variant.effective_price_cents(product),
            "is_low_stock": is_low,
        })

    items.sort(key=lambda row: (row["stock_quantity"], row["variant_id"]))
    return items


def reconstruct_stock(variant_id: int) -> int:
    """Sum of every movement ever recorded for a variant."""
    total = (
        db.session.query(func.coalesce(func.sum(InventoryMovement.quantity), 0))
        .filter(InventoryMovement.variant_id == variant_id)
        .scalar()
    )
    return int(total or 0)


def audit_stock(org_id: int | None = None) -> list[dict]:
    """
    Compare every variant's stock counter with its movement log.

    Returns one row per variant whose counter and replayed sum disagree.
    An empty list means the ledger is consistent.
    """
    sums = dict(
        db.session.query(InventoryMovement.variant_id, func.sum(InventoryMovement.quantity))
        .group_by(InventoryMovement.variant_id)
        .all()
    )

    query = db.session.query(ProductVariant)
    if org_id is not None:
        query = query.filter_by(org_id=org_id)

    mismatches = []
    for variant in query.order_by(ProductVariant.id).all():
        replayed = int(sums.get(variant.id) or 0)
        if replayed != variant.stock_quantity:
            mismatches.append({
                "variant_id": variant.id,
                "org_id": variant.org_id,
                "sku": variant.sku,
                "stock_quantity": variant.stock_quantity,
                "replayed_quantity": replayed,
                "difference": variant.stock_quantity - replayed,
            })
    return mismatches
