from __future__ import annotations

from ..extensions import db
from shopcore.time_utils import to_utc_z, utcnow


CART_STATUSES = ("active", "completed", "abandoned")


class Cart(db.Model):
    """
    Storefront cart for one anonymous shopping session.

    At most one active cart exists per (org_id, session_id); it is created
    lazily by the first add-to-cart. Checkout flips it to "completed".

    Holding items in a cart reserves nothing. Stock is re-checked
    authoritatively at checkout.
    """
    __tablename__ = "carts"
    __table_args__ = (
        db.Index("ix_carts_org_session_status", "org_id", "session_id", "status"),
        db.Index("ix_carts_status_updated", "status", "updated_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    session_id = db.Column(db.String(128), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    status = db.Column(db.String(16), nullable=False, default="active")

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    items = db.relationship(
        "CartItem",
        backref="cart",
        lazy=True,
        order_by="CartItem.id",
        cascade="all, delete-orphan",
    )

    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "session_id": self.session_id,
            "user_id": self.user_id,
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class CartItem(db.Model):
    __tablename__ = "cart_items"
    __table_args__ = (
        db.UniqueConstraint("cart_id", "variant_id", name="uq_cart_items_cart_variant"),
        db.CheckConstraint("quantity > 0", name="ck_cart_items_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    cart_id = db.Column(db.Integer, db.ForeignKey("carts.id"), nullable=False, index=True)
    # Plain ids: a cart line may outlive its variant and is then dropped on read
    product_id = db.Column(db.Integer, nullable=False)
    variant_id = db.Column(db.Integer, nullable=False)
    quantity = db.Column(db.Integer, nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "cart_id": self.cart_id,
            "product_id": self.product_id,
            "variant_id": self.variant_id,
            "quantity": self.quantity,
        }
