# Overview: Authorization guard: role capabilities, ownership and self-protection checks.

"""
Authorization Guard

WHY: Decide, for a caller and an operation, whether the operation is
permitted. Decoupled from literal role names: code asks for a capability
and permissions.roles maps roles to capabilities.

DESIGN PRINCIPLES:
- Fail closed: unknown roles have no capabilities
- Log denials only: grants are not logged
- Ownership: a claim is readable by its owner or a VIEW_ALL_CLAIMS holder,
  and modifiable by its owner or a MANAGE_ALL_CLAIMS holder
- Denials never reveal whether the resource exists beyond the fact that
  it was looked up (403 vs 404 is decided before ownership is checked)
"""

from __future__ import annotations

from flask import current_app

from ..errors import AuthorizationError, ValidationError
from ..models import Claim, User
from ..permissions import capabilities_for_role
from . import audit_service
from .audit_service import AuditActor


def get_user_capabilities(user: User | None) -> frozenset[str]:
    if user is None:
        return frozenset()
    return capabilities_for_role(user.role)


def user_has_capability(user: User | None, capability: str) -> bool:
    return capability in get_user_capabilities(user)


def log_access_denied(user: User | None, *, resource: str | None, reason: str) -> None:
    """Record a denial in the audit log and the application log."""
    current_app.logger.warning(
        "Access denied: user=%s resource=%s reason=%s",
        user.id if user else None, resource, reason,
    )
    if user is None:
        return
    audit_service.record(
        "access_denied",
        actor=AuditActor.from_user(user),
        entity_type=None,
        entity_id=None,
        details=f"{resource}: {reason}" if resource else reason,
    )


def require_capability(user: User, capability: str, *, resource: str | None = None) -> None:
    """
    Raise AuthorizationError (and log the denial) unless user has capability.
    """
    if not user_has_capability(user, capability):
        log_access_denied(user, resource=resource, reason=f"missing capability {capability}")
        raise AuthorizationError()


def is_owner(user: User, claim: Claim) -> bool:
    return user is not None and claim.user_id == user.id


def can_view_claim(user: User, claim: Claim) -> bool:
    return is_owner(user, claim) or user_has_capability(user, "VIEW_ALL_CLAIMS")


def can_modify_claim(user: User, claim: Claim) -> bool:
    return is_owner(user, claim) or user_has_capability(user, "MANAGE_ALL_CLAIMS")


def ensure_can_view_claim(user: User, claim: Claim) -> None:
    if not can_view_claim(user, claim):
        log_access_denied(user, resource=f"claim {claim.id}", reason="not owner")
        raise AuthorizationError()


def ensure_can_modify_claim(user: User, claim: Claim) -> None:
    if not can_modify_claim(user, claim):
        log_access_denied(user, resource=f"claim {claim.id}", reason="not owner")
        raise AuthorizationError()


def ensure_can_view_user(actor: User, target: User) -> None:
    if actor.id != target.id and not user_has_capability(actor, "MANAGE_USERS"):
        log_access_denied(actor, resource=f"user {target.id}", reason="not self")
        raise AuthorizationError()


def ensure_not_self(actor: User, target: User, message: str) -> None:
    """
    Self-protection: an actor may never deactivate or delete their own
    account, regardless of role. This is a 400, not a 403.
    """
    if actor.id == target.id:
        raise ValidationError(message)
