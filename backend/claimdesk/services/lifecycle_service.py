# Overview: Claim status state machine: statuses, transitions and guards.

"""
Claim Lifecycle Service

================================================================================
PURPOSE: Enforce the claim status state machine
================================================================================

STATE MACHINE:

    new ----------+--> recommendation --+--> approved --> paid
     |            |    verified         |
     +--> pending-+    under_review     +--> rejected

    new:            Submitted, owner may still edit or delete
    pending:        Awaiting review (created above the escalation threshold,
                    or escalated by an edit while new)
    recommendation,
    verified,
    under_review:   Review states; still editable, may be decided
    approved:       Decision made; only mark-paid remains
    rejected:       Terminal
    paid:           Terminal and immutable

TRANSITIONS:

    | Action    | From                                     | To             |
    |-----------|------------------------------------------|----------------|
    | recommend | new, pending                             | recommendation |
    | approve   | new, pending, review states              | approved       |
    | reject    | new, pending, review states              | rejected       |
    | pay       | approved                                 | paid           |
    | escalate  | new                                      | pending        |

RULES:
1. Capability checks live in permission_service; this module only knows
   statuses.
2. A transition to the status the claim already has is refused
   ("already approved"), never treated as a no-op.
3. Editing is allowed only before a decision; deletion only in the
   statuses listed in CLAIM_DELETABLE_STATUSES (default: new).
4. Deployments may disable statuses (CLAIM_ENABLED_STATUSES). A disabled
   status can neither be entered nor used as a source.

This module is pure: it never touches the database.
================================================================================
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation

from flask import current_app

from ..errors import LifecycleError


STATUS_NEW = "new"
STATUS_PENDING = "pending"
STATUS_RECOMMENDATION = "recommendation"
STATUS_VERIFIED = "verified"
STATUS_UNDER_REVIEW = "under_review"
STATUS_APPROVED = "approved"
STATUS_REJECTED = "rejected"
STATUS_PAID = "paid"

ALL_STATUSES = (
    STATUS_NEW,
    STATUS_PENDING,
    STATUS_RECOMMENDATION,
    STATUS_VERIFIED,
    STATUS_UNDER_REVIEW,
    STATUS_APPROVED,
    STATUS_REJECTED,
    STATUS_PAID,
)

REVIEW_STATUSES = (STATUS_RECOMMENDATION, STATUS_VERIFIED, STATUS_UNDER_REVIEW)
DECIDED_STATUSES = (STATUS_APPROVED, STATUS_REJECTED, STATUS_PAID)
EDITABLE_STATUSES = (STATUS_NEW, STATUS_PENDING) + REVIEW_STATUSES
DECIDABLE_STATUSES = EDITABLE_STATUSES

DEFAULT_DELETABLE_STATUSES = (STATUS_NEW,)
DEFAULT_ESCALATION_THRESHOLD = Decimal("1000")

# action -> (allowed source statuses, target status)
TRANSITIONS: dict[str, tuple[tuple[str, ...], str]] = {
    "recommend": ((STATUS_NEW, STATUS_PENDING), STATUS_RECOMMENDATION),
    "approve": (DECIDABLE_STATUSES, STATUS_APPROVED),
    "reject": (DECIDABLE_STATUSES, STATUS_REJECTED),
    "pay": ((STATUS_APPROVED,), STATUS_PAID),
    "escalate": ((STATUS_NEW,), STATUS_PENDING),
}

# Targets accepted by the generic status override, and the action each runs
OVERRIDE_TARGETS = {
    STATUS_APPROVED: "approve",
    STATUS_REJECTED: "reject",
    STATUS_PAID: "pay",
    STATUS_PENDING: "escalate",
}


def enabled_statuses() -> tuple[str, ...]:
    configured = current_app.config.get("CLAIM_ENABLED_STATUSES") or ALL_STATUSES
    statuses = tuple(s for s in ALL_STATUSES if s in configured)
    # `new` is where every claim starts
    if STATUS_NEW not in statuses:
        statuses = (STATUS_NEW,) + statuses
    return statuses


def deletable_statuses() -> tuple[str, ...]:
    return tuple(current_app.config.get("CLAIM_DELETABLE_STATUSES") or DEFAULT_DELETABLE_STATUSES)


def escalation_threshold() -> Decimal:
    raw = current_app.config.get("CLAIM_ESCALATION_THRESHOLD", DEFAULT_ESCALATION_THRESHOLD)
    try:
        return Decimal(str(raw))
    except InvalidOperation:
        current_app.logger.error("Invalid CLAIM_ESCALATION_THRESHOLD %r, using default", raw)
        return DEFAULT_ESCALATION_THRESHOLD


def validate_status(status: str) -> None:
    """
    Raises LifecycleError if status is unknown or disabled in this deployment.
    """
    if status not in ALL_STATUSES:
        raise LifecycleError(
            f"Invalid status '{status}'. Must be one of: {', '.join(ALL_STATUSES)}"
        )
    if status not in enabled_statuses():
        raise LifecycleError(f"Status '{status}' is not enabled")


def can_transition(from_status: str, to_status: str) -> bool:
    """
    True if some action moves from_status to to_status and both are enabled.

    Same-status transitions are never allowed.
    """
    enabled = enabled_statuses()
    if from_status not in enabled or to_status not in enabled:
        return False
    if from_status == to_status:
        return False
    return any(
        from_status in sources and to_status == target
        for sources, target in TRANSITIONS.values()
    )


def check_transition(action: str, current_status: str) -> str:
    """
    Validate an action against the claim's current status.

    Returns the target status.

    Raises:
        LifecycleError: unknown action, claim already in target status,
            source not allowed, or target disabled
    """
    if action not in TRANSITIONS:
        raise LifecycleError(f"Unknown claim action '{action}'")

    sources, target = TRANSITIONS[action]
    if current_status == target:
        raise LifecycleError(f"Claim is already {target}")

    validate_status(target)
    if current_status not in sources or current_status not in enabled_statuses():
        raise LifecycleError(
            f"Cannot {action} a claim with status '{current_status}'"
        )
    return target


def action_for_override(target_status: str) -> str:
    """Map a status-override target onto the action that enforces its guard."""
    try:
        return OVERRIDE_TARGETS[target_status]
    except KeyError:
        raise LifecycleError(
            f"Invalid status '{target_status}'. Must be one of: {', '.join(OVERRIDE_TARGETS)}"
        ) from None


def can_edit(status: str) -> bool:
    return status in EDITABLE_STATUSES


def ensure_editable(status: str) -> None:
    if not can_edit(status):
        raise LifecycleError(f"Claim cannot be edited once {status}")


def can_delete(status: str) -> bool:
    return status in deletable_statuses()


def ensure_deletable(status: str) -> None:
    if not can_delete(status):
        raise LifecycleError(f"Claim cannot be deleted with status '{status}'")


def should_escalate(amount) -> bool:
    """True if amount is strictly above the escalation threshold."""
    return Decimal(str(amount)) > escalation_threshold()


def initial_status(amount) -> str:
    if should_escalate(amount) and STATUS_PENDING in enabled_statuses():
        return STATUS_PENDING
    return STATUS_NEW


def status_after_edit(current_status: str, amount) -> str:
    """
    An edit that pushes the amount over the threshold while the claim is
    still new escalates it to pending.
    """
    if current_status == STATUS_NEW:
        return initial_status(amount)
    return current_status
