# Overview: Minimal catalog operations the order engine depends on.

"""
Catalog Service

Products and their variants. Only what the fulfillment core needs is
here: resolving entities, creating them with initial stock recorded in the
ledger, and deleting variants under the published-product rule.

Stock is never written directly by catalog code. Initial stock goes
through stock_service.apply_stock_delta as a "received" movement so the
movement log can always reconstruct the counter.
"""

from __future__ import annotations

import logging
import re

from ..extensions import db
from ..errors import InvalidInputError, NotFoundError, UnauthorizedError
from ..models import Product, ProductVariant
from ..models.catalog import PRODUCT_STATUSES
from ..validation import (
    coerce_int,
    normalize_sku,
    optional_text,
    require_text,
    validate_price_cents,
)
from .concurrency import begin_write, lock_for_update, run_with_retry
from . import permission_service, stock_service


logger = logging.getLogger(__name__)

INITIAL_STOCK_REASON = "Initial stock"


def slugify(value: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", value.strip().lower()).strip("-")
    return slug[:255]


def get_product(product_id: int) -> Product | None:
    return db.session.get(Product, product_id)


def get_variant(variant_id: int) -> ProductVariant | None:
    return db.session.get(ProductVariant, variant_id)


def create_product(
    *,
    actor_user_id: int | None,
    org_id: int,
    name: str,
    price_cents,
    slug: str | None = None,
    description: str | None = None,
    status: str = "draft",
) -> Product:
    """Create a product. Requires org admin."""
    if not actor_user_id:
        raise UnauthorizedError("Unauthenticated")
    permission_service.require_org_role(actor_user_id, org_id, ("admin",), action="CREATE_PRODUCT")

    name = require_text(name, "name", max_length=255)
    price_cents = validate_price_cents(price_cents)
    if status not in PRODUCT_STATUSES:
        raise InvalidInputError(f"status must be one of: {', '.join(PRODUCT_STATUSES)}", field="status")

    slug = slugify(slug or name)
    if not slug:
        raise InvalidInputError("slug cannot be empty", field="slug")
    if db.session.query(Product.id).filter_by(org_id=org_id, slug=slug).first():
        raise InvalidInputError(f"Product slug '{slug}' already exists in this organization", field="slug")

    product = Product(
        org_id=org_id,
        name=name,
        slug=slug,
        description=optional_text(description),
        price_cents=price_cents,
        status=status,
    )
    db.session.add(product)
    db.session.commit()
    return product


def create_variant(
    *,
    actor_user_id: int | None,
    product_id: int,
    sku: str,
    name: str,
    price_cents=None,
    stock_quantity=0,
    is_default: bool | None = None,
) -> ProductVariant:
    """
    Create a variant under a product. Requires org admin.

    - SKU is trimmed, uppercased, at most 50 characters, unique per org
    - the first variant of a product is always default, whatever is_default says
    - making a variant default clears the flag on its siblings
    - org_id is copied from the product
    - initial stock is written as a "received" movement
    """
    product = get_product(product_id)
    if not product:
        raise NotFoundError("Product not found", details={"product_id": product_id})
    if not actor_user_id:
        raise UnauthorizedError("Unauthenticated")
    permission_service.require_org_role(actor_user_id, product.org_id, ("admin",), action="CREATE_VARIANT")

    sku = normalize_sku(sku)
    name = require_text(name, "name", max_length=255)
    if price_cents is not None:
        price_cents = validate_price_cents(price_cents)
    stock_quantity = coerce_int(stock_quantity if stock_quantity is not None else 0, "stock_quantity")
    if stock_quantity < 0:
        raise InvalidInputError("Stock quantity cannot be negative", field="stock_quantity")

    org_id = product.org_id

    def _op() -> ProductVariant:
        begin_write()
        if db.session.query(ProductVariant.id).filter_by(org_id=org_id, sku=sku).first():
            raise InvalidInputError(f"SKU '{sku}' already exists in this organization", field="sku")

        siblings = lock_for_update(
            db.session.query(ProductVariant).filter_by(product_id=product_id)
        ).all()
        # A product must always keep exactly one default variant
        make_default = bool(is_default) if siblings else True
        if make_default:
            for sibling in siblings:
                if sibling.is_default:
                    sibling.is_default = False

        variant = ProductVariant(
            org_id=org_id,
            product_id=product_id,
            sku=sku,
            name=name,
            price_cents=price_cents,
            stock_quantity=0,
            is_default=make_default,
        )
        db.session.add(variant)
        db.session.flush()

        if stock_quantity > 0:
            stock_service.apply_stock_delta(
                variant,
                stock_quantity,
                movement_type="received",
                reason=INITIAL_STOCK_REASON,
                user_id=actor_user_id,
            )

        db.session.commit()
        return variant

    variant = run_with_retry(_op)
    logger.info("Variant created: id=%s sku=%s org=%s stock=%s", variant.id, sku, org_id, stock_quantity)
    return variant


def delete_variant(*, actor_user_id: int | None, variant_id: int) -> None:
    """
    Delete a variant. Requires org admin.

    The last variant of an active product cannot be deleted. Deleting the
    default variant promotes the oldest remaining sibling. Movement and
    order history keep the variant id.
    """
    variant = get_variant(variant_id)
    if not variant:
        raise NotFoundError("Variant not found", details={"variant_id": variant_id})
    if not actor_user_id:
        raise UnauthorizedError("Unauthenticated")
    permission_service.require_org_role(actor_user_id, variant.org_id, ("admin",), action="DELETE_VARIANT")

    def _op() -> None:
        begin_write()
        locked = stock_service.get_variant_for_update(variant_id)
        if not locked:
            raise NotFoundError("Variant not found", details={"variant_id": variant_id})

        product = db.session.get(Product, locked.product_id)
        siblings = (
            db.session.query(ProductVariant)
            .filter(ProductVariant.product_id == locked.product_id, ProductVariant.id != locked.id)
            .order_by(ProductVariant.id)
            .all()
        )
        if not siblings and product is not None and product.status == "active":
            raise InvalidInputError(
                "Cannot delete the last variant of a published product",
                details={"variant_id": variant_id, "product_id": locked.product_id},
            )

        if locked.is_default and siblings:
            siblings[0].is_default = True

        db.session.delete(locked)
        db.session.commit()

    run_with_retry(_op)
    logger.info("Variant deleted: id=%s user=%s", variant_id, actor_user_id)
