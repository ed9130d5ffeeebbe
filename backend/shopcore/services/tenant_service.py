"""
Multi-Tenant Service: Tenant Validation Helpers

WHY: Centralize tenant checks for reuse across services and routes. Every
operation is scoped to one organization, and a reference to an entity of
another organization is an explicit, logged denial.

SECURITY INVARIANTS:
1. Entity ids from client input are validated against the caller's org
2. Cross-tenant references are logged as security events
3. Storefront lookups by slug never distinguish "missing" from "inactive"
"""

import logging
import re

from ..extensions import db
from ..errors import CrossTenantError, InvalidInputError, NotFoundError
from ..models import Organization
from ..models.tenancy import ORG_PLANS
from .permission_service import log_security_event


logger = logging.getLogger(__name__)

ORG_SLUG_PATTERN = re.compile(r"^[a-z0-9-]+$")


def get_org(org_id: int) -> Organization:
    org = db.session.get(Organization, org_id)
    if not org:
        raise NotFoundError("Organization not found", details={"org_id": org_id})
    return org


def get_active_org_by_slug(slug: str | None) -> Organization | None:
    """
    Resolve a storefront slug to an active organization.

    Returns None for unknown and inactive organizations alike.
    """
    if not slug:
        return None
    org = db.session.query(Organization).filter_by(slug=slug.strip().lower()).first()
    if not org or not org.is_active:
        return None
    return org


def require_active_org_by_slug(slug: str | None) -> Organization:
    org = get_active_org_by_slug(slug)
    if not org:
        raise NotFoundError("Store not found")
    return org


def deny_cross_tenant(
    reason: str,
    *,
    org_id: int | None,
    user_id: int | None = None,
    details: dict | None = None,
):
    """
    Record a cross-tenant reference and raise CrossTenantError.

    Any pending work in the session is rolled back first; the caller's
    transaction is over either way.
    """
    db.session.rollback()
    logger.warning("Cross-tenant access denied: org=%s user=%s %s", org_id, user_id, reason)
    log_security_event(
        user_id=user_id,
        event_type="CROSS_TENANT_ACCESS_DENIED",
        success=False,
        reason=reason,
        org_id=org_id,
    )
    raise CrossTenantError("Security violation: entity belongs to a different organization", details=details)


def create_organization(*, name: str, slug: str, plan: str = "free") -> Organization:
    """
    Create a tenant.

    Slugs are 1-50 characters of lowercase letters, digits and hyphens,
    and globally unique since storefront URLs are keyed by them.
    """
    name = (name or "").strip()
    if not name:
        raise InvalidInputError("Organization name is required", field="name")

    slug = (slug or "").strip()
    if not slug or len(slug) > 50:
        raise InvalidInputError("Slug must be between 1 and 50 characters", field="slug")
    if not ORG_SLUG_PATTERN.match(slug):
        raise InvalidInputError(
            "Invalid slug: Only lowercase alphanumeric characters and hyphens are allowed",
            field="slug",
        )
    if plan not in ORG_PLANS:
        raise InvalidInputError(f"plan must be one of: {', '.join(ORG_PLANS)}", field="plan")

    if db.session.query(Organization.id).filter_by(slug=slug).first():
        raise InvalidInputError(f"Organization slug '{slug}' is already taken", field="slug")

    org = Organization(name=name, slug=slug, plan=plan, is_active=True)
    db.session.add(org)
    db.session.commit()
    return org
