# backend/shopcore/routes/auth.py
"""Authentication API routes (login, logout, current user)."""

from flask import Blueprint, request, jsonify, current_app, g

from ..services import auth_service
from ..services import session_service
from ..services import permission_service
from ..models import OrganizationMember
from ..extensions import db
from ..decorators import require_auth, bearer_token


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


def _memberships(user_id: int) -> list[dict]:
    members = db.session.query(OrganizationMember).filter_by(user_id=user_id).all()
    return [{"org_id": m.org_id, "role": m.role} for m in members]


@auth_bp.post("/login")
def login_route():
    """
    Authenticate with email + password and create a session token.

    Token must be included as "Authorization: Bearer <token>" on admin routes.
    """
    try:
        data = request.get_json(silent=True) or {}
        email = data.get("email")
        password = data.get("password")

        if not all([email, password]):
            return jsonify({"error": "email and password required"}), 400

        user = auth_service.authenticate(email, password)
        if not user:
            permission_service.log_security_event(
                user_id=None,
                event_type="LOGIN_FAILED",
                success=False,
                action="LOGIN",
                reason=f"Invalid credentials for {str(email).strip().lower()}",
            )
            return jsonify({"error": "Invalid credentials"}), 401

        session, token = session_service.create_session(
            user_id=user.id,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr,
        )

        return jsonify({
            "user": user.to_dict(),
            "token": token,
            "session": session.to_dict(),
            "memberships": _memberships(user.id),
            "is_platform_admin": permission_service.is_platform_admin(user.id),
        }), 200

    except Exception:
        current_app.logger.exception("Failed to login user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/logout")
@require_auth
def logout_route():
    session_service.revoke_session(bearer_token())
    return jsonify({"message": "Logged out"}), 200


@auth_bp.get("/me")
@require_auth
def me_route():
    user = g.current_user
    return jsonify({
        "user": user.to_dict(),
        "memberships": _memberships(user.id),
        "is_platform_admin": permission_service.is_platform_admin(user.id),
    }), 200
