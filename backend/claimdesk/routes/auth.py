# Overview: Flask API routes for authentication; parses input and returns JSON responses.

"""
Authentication API routes

SECURITY FEATURES:
- Unknown handle and wrong password return the same 401
- Inactive accounts are reported only to a caller holding the password
- Opaque access + refresh tokens (see session_service)
- Password change revokes every other session of the user
- No bootstrap credentials: the first admin is seeded with `flask system init`
"""

from flask import Blueprint, current_app, g, request

from ..decorators import require_auth
from ..errors import AuthenticationError, ClaimdeskError, ValidationError
from ..permissions import capabilities_for_role
from ..responses import domain_error_response, error_response, success_response
from ..services import audit_service, identity_service, session_service
from ..services.audit_service import AuditActor
from ..validation import json_object


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


def _client():
    return request.headers.get("User-Agent"), request.remote_addr


@auth_bp.post("/login")
def login_route():
    """
    Authenticate by employee id or email and issue a token pair.

    Request body: {"username": "...", "password": "..."}
    ("email" or "employee_id" are accepted in place of "username")
    """
    try:
        data = json_object(request.get_json(silent=True))
        handle = data.get("username") or data.get("email") or data.get("employee_id")
        password = data.get("password")

        if not handle or not password:
            return error_response("Username and password are required", 400)
        if not isinstance(handle, str) or not isinstance(password, str):
            return error_response("Username and password must be strings", 400)

        try:
            user = identity_service.authenticate(handle, password)
        except AuthenticationError as e:
            current_app.logger.info("Failed login: %s", e.reason)
            return error_response(e.message, e.status_code)

        user_agent, ip_address = _client()
        issued = session_service.create_session(user, user_agent=user_agent, ip_address=ip_address)

        audit_service.record(
            "login",
            actor=AuditActor.from_user(user),
            entity_type="user",
            entity_id=user.id,
            details=f"User {user.employee_id} logged in",
        )

        return success_response({
            "user": user.to_dict(),
            "capabilities": sorted(capabilities_for_role(user.role)),
            "token": issued.access_token,
            "refresh_token": issued.refresh_token,
            "expires_at": issued.session.to_dict()["expires_at"],
        }, message="Login successful")

    except ClaimdeskError as e:
        return domain_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to login user")
        return error_response("Server error", 500)


@auth_bp.post("/refresh")
def refresh_route():
    """Exchange a refresh token for a new access token."""
    try:
        data = json_object(request.get_json(silent=True))
        refresh_token = data.get("refresh_token") or data.get("refreshToken")

        try:
            issued = session_service.refresh_session(refresh_token)
        except AuthenticationError as e:
            current_app.logger.info("Refresh rejected: %s", e.reason)
            return error_response(e.message, e.status_code)

        return success_response({
            "token": issued.access_token,
            "expires_at": issued.session.to_dict()["expires_at"],
        })

    except Exception:
        current_app.logger.exception("Failed to refresh token")
        return error_response("Server error", 500)


@auth_bp.post("/logout")
@require_auth
def logout_route():
    """Revoke the current session."""
    try:
        user = g.current_user
        session_service.revoke_session(g.session_context.session, reason="User logout")

        audit_service.record(
            "logout",
            actor=AuditActor.from_user(user),
            entity_type="user",
            entity_id=user.id,
            details=f"User {user.employee_id} logged out",
        )
        return success_response(message="Logged out successfully")

    except Exception:
        current_app.logger.exception("Failed to logout user")
        return error_response("Server error", 500)


@auth_bp.get("/me")
@require_auth
def me_route():
    user = g.current_user
    return success_response({
        **user.to_dict(),
        "capabilities": sorted(capabilities_for_role(user.role)),
    })


@auth_bp.post("/change-password")
@require_auth
def change_password_route():
    """
    Request body: {"currentPassword": "...", "newPassword": "..."}
    (snake_case keys are accepted too)
    """
    try:
        data = json_object(request.get_json(silent=True))
        current_password = data.get("currentPassword") or data.get("current_password")
        new_password = data.get("newPassword") or data.get("new_password")

        if not current_password or not new_password:
            raise ValidationError("Current password and new password are required")
        if not isinstance(current_password, str) or not isinstance(new_password, str):
            raise ValidationError("Passwords must be strings")

        user = g.current_user
        try:
            identity_service.change_password(user, current_password, new_password)
        except AuthenticationError as e:
            current_app.logger.info("Password change rejected: %s", e.reason)
            return error_response(e.message, 400)

        session_service.revoke_all_user_sessions(
            user.id,
            reason="Password changed",
            except_session_id=g.session_context.session.id,
        )

        audit_service.record(
            "update",
            actor=AuditActor.from_user(user),
            entity_type="user",
            entity_id=user.id,
            details="Password changed",
        )
        return success_response(message="Password changed successfully")

    except ClaimdeskError as e:
        return domain_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to change password")
        return error_response("Server error", 500)
