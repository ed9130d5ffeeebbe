from __future__ import annotations

from ..extensions import db
from shopcore.time_utils import to_utc_z


class Customer(db.Model):
    """
    Denormalized customer profile, one per (organization, email).

    MULTI-TENANT: Scoped by org_id. The same email in two organizations is
    two unrelated profiles.

    WHY: Lifetime value (total_orders, total_spend_cents) without scanning
    orders. Aggregates are only ever changed inside an order commit, in the
    same transaction as the order.

    email is stored normalized (stripped, lowercased).
    """
    __tablename__ = "customers"
    __table_args__ = (
        db.UniqueConstraint("org_id", "email", name="uq_customers_org_email"),
        db.Index("ix_customers_org_spend", "org_id", "total_spend_cents"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)

    email = db.Column(db.String(255), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(32), nullable=True)
    address = db.Column(db.Text, nullable=True)

    total_orders = db.Column(db.Integer, nullable=False, default=0)
    total_spend_cents = db.Column(db.Integer, nullable=False, default=0)
    first_seen_at = db.Column(db.DateTime(timezone=True), nullable=False)
    last_seen_at = db.Column(db.DateTime(timezone=True), nullable=False)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "email": self.email,
            "name": self.name,
            "phone": self.phone,
            "address": self.address,
            "total_orders": self.total_orders,
            "total_spend_cents": self.total_spend_cents,
            "first_seen_at": to_utc_z(self.first_seen_at),
            "last_seen_at": to_utc_z(self.last_seen_at),
        }
