from __future__ import annotations

from ..extensions import db
from shopcore.time_utils import to_utc_z, utcnow


MOVEMENT_TYPES = ("received", "sold", "adjusted", "returned", "audit")


class InventoryMovement(db.Model):
    """
    Append-only record of one stock delta on one variant.

    IMMUTABLE: Never update or delete. Replaying every movement of a variant
    from its creation yields its current stock_quantity exactly, because
    initial stock is itself recorded as a "received" movement.

    variant_id and product_id are plain integers (no FK) so the log
    outlives catalog deletions.

    quantity is signed: positive increases stock, negative decreases it.
    order_id is set only on movements written by an order commit.
    """
    __tablename__ = "inventory_movements"
    __table_args__ = (
        db.Index("ix_inventory_movements_variant_created", "variant_id", "created_at"),
        db.Index("ix_inventory_movements_org_created", "org_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    variant_id = db.Column(db.Integer, nullable=False)
    product_id = db.Column(db.Integer, nullable=False)

    type = db.Column(db.String(16), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    reason = db.Column(db.String(500), nullable=True)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())

    user = db.relationship("User")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "variant_id": self.variant_id,
            "product_id": self.product_id,
            "type": self.type,
            "quantity": self.quantity,
            "reason": self.reason,
            "user_id": self.user_id,
            "order_id": self.order_id,
            "created_at": to_utc_z(self.created_at),
        }
