# Overview: Authorization gate and security event logging.

"""
Role checks and Security Event Logging with Multi-Tenant Support

WHY: Every mutating admin operation is gated by organization role, and
every denial is recorded for security monitoring.

DESIGN PRINCIPLES:
- Fail closed: no membership means no access
- Platform admins pass every organization check
- Log denials only: grants are not logged
- Reads that fail authorization return empty results at the service edge,
  writes raise UnauthorizedError
"""

import logging

from flask import has_request_context, request

from ..extensions import db
from ..errors import UnauthorizedError
from ..models import OrganizationMember, PlatformAdmin, SecurityEvent
from ..time_utils import utcnow


logger = logging.getLogger(__name__)


def log_security_event(
    user_id: int | None,
    event_type: str,
    success: bool,
    resource: str | None = None,
    action: str | None = None,
    reason: str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
    org_id: int | None = None,
) -> SecurityEvent:
    """
    Log security event to audit trail with tenant context.

    Request metadata (path, IP, user agent) is filled in from the active
    Flask request when the caller did not pass it.

    The event is committed in its own short transaction, so callers must
    roll back any pending work first if they do not want it persisted.

    event_type examples:
    - PERMISSION_DENIED
    - LOGIN_FAILED
    - CROSS_TENANT_ACCESS_DENIED
    """
    if has_request_context():
        resource = resource or request.path
        ip_address = ip_address or request.remote_addr
        user_agent = user_agent or request.headers.get("User-Agent")

    event = SecurityEvent(
        user_id=user_id,
        org_id=org_id,
        event_type=event_type,
        resource=resource,
        action=action,
        success=success,
        reason=reason,
        ip_address=ip_address,
        user_agent=user_agent,
        occurred_at=utcnow(),
    )
    db.session.add(event)
    db.session.commit()
    return event


def is_platform_admin(user_id: int | None) -> bool:
    if not user_id:
        return False
    return db.session.query(PlatformAdmin.id).filter_by(user_id=user_id).first() is not None


def get_org_role(user_id: int | None, org_id: int | None) -> str | None:
    """Role of user in org, or None when the user is not a member."""
    if not user_id or not org_id:
        return None
    member = (
        db.session.query(OrganizationMember)
        .filter_by(user_id=user_id, org_id=org_id)
        .first()
    )
    return member.role if member else None


def has_org_role(user_id: int | None, org_id: int | None, roles: tuple[str, ...]) -> bool:
    if is_platform_admin(user_id):
        return True
    return get_org_role(user_id, org_id) in roles


def can_view_org(user_id: int | None, org_id: int | None) -> bool:
    """Any membership (or platform admin) grants read access to org data."""
    if is_platform_admin(user_id):
        return True
    return get_org_role(user_id, org_id) is not None


def require_org_role(
    user_id: int | None,
    org_id: int,
    roles: tuple[str, ...],
    *,
    action: str,
) -> None:
    """
    Raise UnauthorizedError unless user holds one of roles in org.

    SECURITY: Called before any data is touched. Denials are persisted as
    PERMISSION_DENIED security events.
    """
    if has_org_role(user_id, org_id, roles):
        return

    reason = f"Requires role {' or '.join(roles)} in organization {org_id}"
    logger.warning("Permission denied: user=%s org=%s action=%s", user_id, org_id, action)
    db.session.rollback()
    log_security_event(
        user_id=user_id,
        event_type="PERMISSION_DENIED",
        success=False,
        action=action,
        reason=reason,
        org_id=org_id,
    )
    raise UnauthorizedError("Unauthorized", details={"action": action, "required_roles": list(roles)})
