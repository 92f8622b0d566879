# Overview: Flask API routes for user management; parses input and returns JSON responses.

"""
User management API routes.

SECURITY:
- Listing, creation, status changes and deletion require MANAGE_USERS
- A user may read and edit their own profile fields; role, status and
  employee id are only writable with MANAGE_USERS
- Self-protection: nobody can deactivate or delete their own account (400)
- Deactivation and deletion revoke the target's sessions
"""

import math

from flask import Blueprint, current_app, g, request

from ..decorators import require_auth, require_capability
from ..errors import ClaimdeskError
from ..extensions import db
from ..models import User
from ..responses import domain_error_response, error_response, success_response
from ..services import audit_service, identity_service, permission_service, session_service
from ..services.audit_service import AuditActor
from ..validation import json_object, parse_pagination, validate_user_payload


users_bp = Blueprint("users", __name__, url_prefix="/api/users")


def _audit(action: str, target_id, details: str) -> None:
    audit_service.record(
        action,
        actor=AuditActor.from_user(g.current_user),
        entity_type="user",
        entity_id=target_id,
        details=details,
    )


@users_bp.get("")
@require_auth
@require_capability("MANAGE_USERS")
def list_users_route():
    """
    Query params: role, department, status, search, page, limit
    """
    try:
        page, limit = parse_pagination(request.args)

        q = db.session.query(User)
        role = request.args.get("role")
        if role:
            q = q.filter(User.role == role.strip().lower())
        department = request.args.get("department")
        if department:
            q = q.filter(User.department == department.strip())
        status = request.args.get("status")
        if status:
            q = q.filter(User.status == status.strip().lower())
        search = (request.args.get("search") or "").strip()
        if search:
            pattern = f"%{search}%"
            q = q.filter(db.or_(
                User.name.ilike(pattern),
                User.email.ilike(pattern),
                User.employee_id.ilike(pattern),
            ))

        total = q.count()
        users = (
            q.order_by(User.created_at.desc(), User.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )

        return success_response(
            [u.to_dict() for u in users],
            pagination={
                "page": page,
                "limit": limit,
                "total": total,
                "pages": math.ceil(total / limit) if total else 0,
            },
        )

    except ClaimdeskError as e:
        return domain_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list users")
        return error_response("Server error", 500)


@users_bp.post("")
@require_auth
@require_capability("MANAGE_USERS")
def create_user_route():
    """
    Request body: name, email, password, department (required);
    role, employee_id, phone, status (optional). employee_id is
    auto-assigned when omitted.
    """
    try:
        data = validate_user_payload(request.get_json(silent=True), partial=False)
        optional = {k: v for k, v in data.items() if k in ("role", "employee_id", "phone", "status") and v}

        user = identity_service.create_user(
            name=data["name"],
            email=data["email"],
            password=data["password"],
            department=data["department"],
            **optional,
        )

        _audit("create", user.id, f"Created user {user.employee_id} ({user.role})")
        return success_response(user.to_dict(), message="User created successfully", status=201)

    except ClaimdeskError as e:
        db.session.rollback()
        return domain_error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to create user")
        return error_response("Server error", 500)


@users_bp.get("/<int:user_id>")
@require_auth
def get_user_route(user_id: int):
    try:
        target = identity_service.get_user(user_id)
        permission_service.ensure_can_view_user(g.current_user, target)
        return success_response(target.to_dict())

    except ClaimdeskError as e:
        return domain_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to get user")
        return error_response("Server error", 500)


@users_bp.put("/<int:user_id>")
@require_auth
def update_user_route(user_id: int):
    """
    Self may edit name, email, department, phone.
    MANAGE_USERS holders may also edit role, status, employee_id.
    """
    try:
        actor = g.current_user
        target = identity_service.get_user(user_id)
        permission_service.ensure_can_view_user(actor, target)

        payload = json_object(request.get_json(silent=True))
        data = validate_user_payload(payload, partial=True)
        is_manager = permission_service.user_has_capability(actor, "MANAGE_USERS")

        if is_manager and "status" in data and identity_service.normalize_status(data["status"]) != "active":
            permission_service.ensure_not_self(actor, target, "You cannot deactivate your own account")

        previous_status = target.status
        identity_service.update_user(target, data, allow_admin_fields=is_manager)

        if previous_status == "active" and target.status != "active":
            session_service.revoke_all_user_sessions(target.id, reason="Account deactivated")

        changed = sorted(k for k in data if k in identity_service.SELF_EDITABLE_FIELDS
                         or (is_manager and k in identity_service.ADMIN_EDITABLE_FIELDS))
        _audit("update", target.id, f"Updated user {target.employee_id}: {', '.join(changed) or 'no changes'}")
        return success_response(target.to_dict(), message="User updated successfully")

    except ClaimdeskError as e:
        db.session.rollback()
        return domain_error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to update user")
        return error_response("Server error", 500)


@users_bp.put("/<int:user_id>/status")
@require_auth
@require_capability("MANAGE_USERS")
def set_user_status_route(user_id: int):
    """Request body: {"status": "active" | "inactive" | "suspended"}"""
    try:
        actor = g.current_user
        target = identity_service.get_user(user_id)
        status = json_object(request.get_json(silent=True)).get("status")

        permission_service.ensure_not_self(actor, target, "You cannot change your own status")

        previous_status = target.status
        identity_service.set_status(target, status)

        if target.status != "active":
            session_service.revoke_all_user_sessions(target.id, reason=f"Account {target.status}")

        _audit("update", target.id, f"User {target.employee_id} status {previous_status} -> {target.status}")
        return success_response(target.to_dict(), message=f"User status updated to {target.status}")

    except ClaimdeskError as e:
        db.session.rollback()
        return domain_error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to update user status")
        return error_response("Server error", 500)


@users_bp.delete("/<int:user_id>/delete")
@require_auth
@require_capability("MANAGE_USERS")
def delete_user_route(user_id: int):
    """
    Permanently delete a user that no claim references.
    Referenced users must be deactivated instead (409).
    """
    try:
        actor = g.current_user
        target = identity_service.get_user(user_id)

        permission_service.ensure_not_self(actor, target, "You cannot delete your own account")

        employee_id = target.employee_id
        identity_service.delete_user(target)

        _audit("delete", user_id, f"Deleted user {employee_id}")
        return success_response(message="User deleted permanently")

    except ClaimdeskError as e:
        db.session.rollback()
        return domain_error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to delete user")
        return error_response("Server error", 500)
