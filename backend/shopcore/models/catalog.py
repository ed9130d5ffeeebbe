from __future__ import annotations

from ..extensions import db
from shopcore.time_utils import to_utc_z


PRODUCT_STATUSES = ("draft", "active", "archived")


class Product(db.Model):
    """
    Sellable product within an organization.

    MULTI-TENANT: Scoped by org_id. Slugs are unique within an organization.

    price_cents is the fallback unit price for variants that do not
    override it. Stock lives on variants, never on the product.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.UniqueConstraint("org_id", "slug", name="uq_products_org_slug"),
        db.Index("ix_products_org_status", "org_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    slug = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)

    price_cents = db.Column(db.Integer, nullable=False, default=0)
    status = db.Column(db.String(16), nullable=False, default="draft")

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    organization = db.relationship("Organization", backref=db.backref("products", lazy=True))

    def __repr__(self) -> str:
        return f"<Product id={self.id} slug={self.slug!r} org_id={self.org_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "name": self.name,
            "slug": self.slug,
            "description": self.description,
            "price_cents": self.price_cents,
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class ProductVariant(db.Model):
    """
    Stock-keeping unit of a product.

    MULTI-TENANT: org_id is a denormalized copy of the owning product's
    org_id. It is written from the product at creation time and never set
    independently; it exists so tenant checks need no join.

    INVARIANTS:
    - stock_quantity >= 0 (enforced in stock_service, backed by a CHECK)
    - SKU is uppercase and unique per organization
    - exactly one is_default variant per product while the product has variants

    CONCURRENCY: version_id gives optimistic locking on top of the row lock
    taken by every stock write.
    """
    __tablename__ = "product_variants"
    __table_args__ = (
        db.UniqueConstraint("org_id", "sku", name="uq_product_variants_org_sku"),
        db.CheckConstraint("stock_quantity >= 0", name="ck_product_variants_stock_nonnegative"),
        db.Index("ix_product_variants_product", "product_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)

    sku = db.Column(db.String(50), nullable=False)
    name = db.Column(db.String(255), nullable=False)

    # NULL means "use the product price"
    price_cents = db.Column(db.Integer, nullable=True)
    stock_quantity = db.Column(db.Integer, nullable=False, default=0)
    is_default = db.Column(db.Boolean, nullable=False, default=False)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    product = db.relationship("Product", backref=db.backref("variants", lazy=True))

    __mapper_args__ = {"version_id_col": version_id}

    def effective_price_cents(self, product: Product | None = None) -> int:
        if self.price_cents is not None:
            return self.price_cents
        product = product or self.product
        return product.price_cents if product else 0

    def __repr__(self) -> str:
        return f"<ProductVariant id={self.id} sku={self.sku!r} stock={self.stock_quantity}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "product_id": self.product_id,
            "sku": self.sku,
            "name": self.name,
            "price_cents": self.price_cents,
            "stock_quantity": self.stock_quantity,
            "is_default": self.is_default,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
