# Overview: Identity store operations: credentials, user records, employee ids.

"""
Identity Service

WHY: Every claim and audit entry is attributed to a user. This module is
the only place that reads or writes credential hashes.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor BCRYPT_ROUNDS, default 12)
- Minimum 6 characters
- Login accepts either the employee id or the email as the handle
- Unknown handle and wrong password raise the same client-visible
  AuthenticationError; the internal reason differs and is only logged
- A correct password on a non-active account raises AuthorizationError,
  so the account state is only revealed to someone holding the password
- password_hash is never returned or logged
"""

from __future__ import annotations

import re

import bcrypt
from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..errors import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from ..models import Claim, User, USER_STATUSES
from ..permissions import Role
from claimdesk.time_utils import utcnow


MIN_PASSWORD_LENGTH = 6

DEFAULT_EMPLOYEE_ID_PREFIX = "HFA-W"
DEFAULT_EMPLOYEE_ID_OFFSET = 1000

# Fields a user may change on their own profile
SELF_EDITABLE_FIELDS = ("name", "email", "department", "phone")
# Additional fields only a user manager may change
ADMIN_EDITABLE_FIELDS = ("role", "status", "employee_id")


def validate_password(password) -> None:
    if not isinstance(password, str) or len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters long",
            errors=[{"field": "password", "message": f"Minimum {MIN_PASSWORD_LENGTH} characters"}],
        )


def hash_password(password: str) -> str:
    """Hash with bcrypt; validates length first."""
    validate_password(password)
    salt = bcrypt.gensalt(rounds=int(current_app.config.get("BCRYPT_ROUNDS", 12)))
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Timing-safe via bcrypt.checkpw. Malformed hashes never match."""
    if not isinstance(password, str) or not isinstance(password_hash, str):
        return False
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


def normalize_email(value) -> str:
    return str(value or "").strip().lower()


def normalize_employee_id(value) -> str:
    return str(value or "").strip().upper()


def normalize_role(value) -> str:
    try:
        return Role.parse(value).value
    except ValueError as e:
        raise ValidationError(str(e), errors=[{"field": "role", "message": str(e)}]) from None


def normalize_status(value) -> str:
    status = str(value or "").strip().lower()
    if status not in USER_STATUSES:
        message = f"Invalid status '{value}'. Must be one of: {', '.join(USER_STATUSES)}"
        raise ValidationError(message, errors=[{"field": "status", "message": message}])
    return status


def get_user(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found")
    return user


def find_by_login_handle(handle: str) -> User | None:
    """Look a user up by employee id or email (both normalized)."""
    handle = str(handle or "").strip()
    if not handle:
        return None
    return db.session.query(User).filter(
        db.or_(
            User.email == normalize_email(handle),
            User.employee_id == normalize_employee_id(handle),
        )
    ).first()


def next_employee_id() -> str:
    """
    Allocate the next employee id.

    Takes the highest numeric suffix among ids matching PREFIX-NNNN and
    returns NNNN + 1. When no id matches (only legacy or hand-entered ids
    exist) falls back to user count + offset + 1. Neither branch raises;
    a candidate that is already taken is bumped until free.
    """
    prefix = current_app.config.get("EMPLOYEE_ID_PREFIX", DEFAULT_EMPLOYEE_ID_PREFIX)
    offset = int(current_app.config.get("EMPLOYEE_ID_OFFSET", DEFAULT_EMPLOYEE_ID_OFFSET))
    pattern = re.compile(rf"^{re.escape(prefix)}-(\d+)$")

    # Suffixes compare numerically; a string sort ranks 9999 above 10000
    candidates = (
        db.session.query(User.employee_id)
        .filter(User.employee_id.like(f"{prefix}-%"))
        .all()
    )
    numbers = []
    for (value,) in candidates:
        match = pattern.match(value)
        if match:
            numbers.append(int(match.group(1)))

    if numbers:
        number = max(numbers) + 1
    else:
        number = db.session.query(User).count() + offset + 1

    while db.session.query(User.id).filter_by(employee_id=f"{prefix}-{number}").first():
        number += 1
    return f"{prefix}-{number}"


def _commit_user_change() -> None:
    """Commit, mapping a lost uniqueness race to a conflict."""
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("Email or employee ID already exists") from None


def _ensure_unique(*, email: str | None = None, employee_id: str | None = None, exclude_id: int | None = None) -> None:
    if email is not None:
        q = db.session.query(User.id).filter(User.email == email)
        if exclude_id is not None:
            q = q.filter(User.id != exclude_id)
        if q.first():
            raise ConflictError("Email already exists")
    if employee_id is not None:
        q = db.session.query(User.id).filter(User.employee_id == employee_id)
        if exclude_id is not None:
            q = q.filter(User.id != exclude_id)
        if q.first():
            raise ConflictError("Employee ID already exists")


def create_user(
    *,
    name: str,
    email: str,
    password: str,
    department: str,
    role: str = Role.WORKER.value,
    employee_id: str | None = None,
    phone: str | None = None,
    status: str = "active",
) -> User:
    """
    Create a user with globally unique email and employee id.

    employee_id is auto-allocated when omitted.

    Raises:
        ValidationError: bad role/status/password
        ConflictError: email or employee id already taken
    """
    email = normalize_email(email)
    role = normalize_role(role)
    status = normalize_status(status)
    password_hash = hash_password(password)

    if employee_id:
        employee_id = normalize_employee_id(employee_id)
        _ensure_unique(email=email, employee_id=employee_id)
    else:
        _ensure_unique(email=email)
        employee_id = next_employee_id()

    user = User(
        employee_id=employee_id,
        name=str(name).strip(),
        email=email,
        password_hash=password_hash,
        role=role,
        department=str(department).strip(),
        phone=(str(phone).strip() or None) if phone else None,
        status=status,
    )
    db.session.add(user)
    _commit_user_change()
    return user


def authenticate(handle: str, password: str) -> User:
    """
    Verify a login handle + password and record last_login_at.

    Raises:
        AuthenticationError: unknown handle or wrong password (same message)
        AuthorizationError: correct password, account not active
    """
    user = find_by_login_handle(handle)
    if user is None:
        raise AuthenticationError(reason=f"unknown login handle '{handle}'")

    if not verify_password(password, user.password_hash):
        raise AuthenticationError(reason=f"wrong password for user {user.id}")

    if not user.is_active:
        raise AuthorizationError("Account is not active")

    user.last_login_at = utcnow()
    db.session.commit()
    return user


def update_user(user: User, changes: dict, *, allow_admin_fields: bool) -> User:
    """
    Apply profile changes.

    Only SELF_EDITABLE_FIELDS are applied unless allow_admin_fields is set;
    other keys are ignored.
    """
    allowed = SELF_EDITABLE_FIELDS + (ADMIN_EDITABLE_FIELDS if allow_admin_fields else ())
    updates = {k: v for k, v in (changes or {}).items() if k in allowed}

    if "email" in updates:
        updates["email"] = normalize_email(updates["email"])
        if not updates["email"]:
            raise ValidationError("Email is required", errors=[{"field": "email", "message": "Required"}])
        _ensure_unique(email=updates["email"], exclude_id=user.id)
    if "employee_id" in updates:
        updates["employee_id"] = normalize_employee_id(updates["employee_id"])
        if not updates["employee_id"]:
            raise ValidationError("Employee ID is required", errors=[{"field": "employee_id", "message": "Required"}])
        _ensure_unique(employee_id=updates["employee_id"], exclude_id=user.id)
    if "role" in updates:
        updates["role"] = normalize_role(updates["role"])
    if "status" in updates:
        updates["status"] = normalize_status(updates["status"])
    for key in ("name", "department"):
        if key in updates:
            updates[key] = str(updates[key] or "").strip()
            if not updates[key]:
                raise ValidationError(f"{key} is required", errors=[{"field": key, "message": "Required"}])
    if "phone" in updates:
        updates["phone"] = (str(updates["phone"]).strip() or None) if updates["phone"] else None

    for key, value in updates.items():
        setattr(user, key, value)

    _commit_user_change()
    return user


def set_status(user: User, status: str) -> User:
    user.status = normalize_status(status)
    db.session.commit()
    return user


def is_referenced(user: User) -> bool:
    """True if any claim is owned by or records an action by this user."""
    return db.session.query(Claim.id).filter(
        db.or_(
            Claim.user_id == user.id,
            Claim.recommended_by_id == user.id,
            Claim.escalated_by_id == user.id,
            Claim.approved_by_id == user.id,
            Claim.rejected_by_id == user.id,
            Claim.paid_by_id == user.id,
        )
    ).first() is not None


def delete_user(user: User) -> None:
    """
    Hard delete an unreferenced user.

    Users referenced by claims must be deactivated instead.
    """
    if is_referenced(user):
        raise ConflictError("User is referenced by claims; deactivate the account instead")
    db.session.delete(user)
    db.session.commit()


def change_password(user: User, current_password: str, new_password: str) -> None:
    if not verify_password(current_password, user.password_hash):
        raise AuthenticationError("Current password is incorrect", reason=f"bad current password for user {user.id}")
    user.password_hash = hash_password(new_password)
    db.session.commit()


def seed_admin(*, email: str, password: str, name: str, department: str = "Administration") -> tuple[User, bool]:
    """
    Create the deployment's first admin account.

    Idempotent: returns (existing_user, False) if the email is taken.
    """
    existing = db.session.query(User).filter_by(email=normalize_email(email)).first()
    if existing:
        return existing, False
    user = create_user(
        name=name,
        email=email,
        password=password,
        department=department,
        role=Role.ADMIN.value,
    )
    return user, True
