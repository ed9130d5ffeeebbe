from __future__ import annotations

from ..extensions import db
from shopcore.time_utils import to_utc_z


ORG_PLANS = ("free", "pro", "enterprise")


class Organization(db.Model):
    """
    Multi-tenant root: every tenant is an Organization.

    WHY: Shared-database multi-tenancy with strict isolation. Products,
    variants, carts, orders, customers and movements all carry org_id and
    no data may cross organization boundaries.

    The slug is the public handle used by storefront routes; the numeric id
    is only used by authenticated admin routes.
    """
    __tablename__ = "organizations"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    slug = db.Column(db.String(64), nullable=False, unique=True, index=True)
    plan = db.Column(db.String(16), nullable=False, default="free")

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Organization id={self.id} slug={self.slug!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "slug": self.slug,
            "plan": self.plan,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
