from __future__ import annotations

from ..extensions import db
from shopcore.time_utils import to_utc_z, utcnow


ORDER_STATUSES = ("pending", "paid", "processing", "shipped", "delivered", "cancelled", "refunded")
PAYMENT_STATUSES = ("pending", "paid", "failed", "refunded")


class Order(db.Model):
    """
    Committed customer order.

    INVARIANTS:
    - at least one OrderItem
    - total_amount_cents == sum(item.price_cents * item.quantity)

    order_number is for humans (receipts, public status lookup). It is not a
    key and is only unique on a best-effort basis; id is authoritative.

    Customer fields are a snapshot taken at commit time.
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.Index("ix_orders_org_created", "org_id", "created_at"),
        db.Index("ix_orders_org_number", "org_id", "order_number"),
        db.Index("ix_orders_org_email", "org_id", "customer_email"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    order_number = db.Column(db.String(32), nullable=False)

    status = db.Column(db.String(16), nullable=False, default="pending", index=True)
    payment_status = db.Column(db.String(16), nullable=False, default="pending")
    total_amount_cents = db.Column(db.Integer, nullable=False)

    customer_name = db.Column(db.String(255), nullable=False)
    # Normalized (lowercase) so profile lookups by email match
    customer_email = db.Column(db.String(255), nullable=False)
    customer_address = db.Column(db.Text, nullable=True)
    customer_phone = db.Column(db.String(32), nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    items = db.relationship(
        "OrderItem",
        backref="order",
        lazy=True,
        order_by="OrderItem.id",
        cascade="all, delete-orphan",
    )

    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self, include_items: bool = False) -> dict:
        data = {
            "id": self.id,
            "org_id": self.org_id,
            "order_number": self.order_number,
            "status": self.status,
            "payment_status": self.payment_status,
            "total_amount_cents": self.total_amount_cents,
            "customer_name": self.customer_name,
            "customer_email": self.customer_email,
            "customer_address": self.customer_address,
            "customer_phone": self.customer_phone,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data

    def to_public_dict(self) -> dict:
        """Fields safe to show to an anonymous shopper who knows number + email."""
        return {
            "order_number": self.order_number,
            "status": self.status,
            "payment_status": self.payment_status,
            "total_amount_cents": self.total_amount_cents,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "items": [
                {
                    "product_name": item.product_name,
                    "variant_name": item.variant_name,
                    "quantity": item.quantity,
                    "price_cents": item.price_cents,
                }
                for item in self.items
            ],
        }


class OrderItem(db.Model):
    """
    Line of a committed order.

    IMMUTABLE: Snapshot of name, SKU and unit price at commit time. Later
    catalog edits or deletions never change it, so variant_id and
    product_id are plain integers.
    """
    __tablename__ = "order_items"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_order_items_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, nullable=False)
    variant_id = db.Column(db.Integer, nullable=False)

    product_name = db.Column(db.String(255), nullable=False)
    variant_name = db.Column(db.String(255), nullable=False)
    sku = db.Column(db.String(50), nullable=True)

    quantity = db.Column(db.Integer, nullable=False)
    price_cents = db.Column(db.Integer, nullable=False)

    @property
    def line_total_cents(self) -> int:
        return self.price_cents * self.quantity

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "product_id": self.product_id,
            "variant_id": self.variant_id,
            "product_name": self.product_name,
            "variant_name": self.variant_name,
            "sku": self.sku,
            "quantity": self.quantity,
            "price_cents": self.price_cents,
            "line_total_cents": self.line_total_cents,
        }
