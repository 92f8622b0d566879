# Overview: Claim store operations and lifecycle transitions.

"""
Claim Service

WHY: The single write path for claims. Every mutation runs in this order:

    1. resolve capability / ownership      (permission_service)
    2. validate the transition or edit     (lifecycle_service)
    3. write the claim                     (this module)
    4. append an audit entry               (audit_service, after commit)

CONCURRENCY:
Each mutation is a read-modify-write wrapped in run_with_retry. The claim's
`version` column makes the UPDATE conditional on the version that was read
(compare-and-swap). If another request committed in between, the flush
raises StaleDataError, the session is rolled back and the operation re-reads
the claim and re-evaluates its guard. The loser of an approve/reject race
therefore sees "Cannot approve a claim with status 'rejected'" (409) rather
than overwriting the winner. If the retries run out the caller gets a
ConflictError.

AUDIT:
Audit entries are appended only after the claim write committed. Audit
failures never surface here.
"""

from __future__ import annotations

from datetime import date

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from ..errors import ConflictError, NotFoundError, ValidationError
from ..models import Claim, ClaimSequence, User
from . import audit_service, lifecycle_service as lifecycle, permission_service
from .audit_service import AuditActor
from .concurrency import lock_for_update, run_with_retry
from .receipt_storage import StoredReceipt
from claimdesk.time_utils import utcnow


DEFAULT_CLAIM_NUMBER_PREFIX = "HFA-C"
DEFAULT_CLAIM_NUMBER_START = 3001

# Lifecycle action -> audit action kind
AUDIT_ACTION_FOR = {
    "recommend": "recommend",
    "approve": "approve",
    "reject": "reject",
    "pay": "pay",
    "escalate": "update",
}


def next_claim_number() -> str:
    """
    Allocate the next claim number inside the caller's transaction.

    Atomic UPDATE ... SET next_number = next_number + 1 on the prefix row;
    the first allocation for a prefix inserts the row. Only flushes; the
    caller commits together with the claim, and must call this before
    adding anything else to the session (a lost insert race rolls back).
    """
    prefix = current_app.config.get("CLAIM_NUMBER_PREFIX", DEFAULT_CLAIM_NUMBER_PREFIX)
    start = int(current_app.config.get("CLAIM_NUMBER_START", DEFAULT_CLAIM_NUMBER_START))

    stmt = (
        update(ClaimSequence)
        .where(ClaimSequence.prefix == prefix)
        .values(next_number=ClaimSequence.next_number + 1)
        .execution_options(synchronize_session=False)
    )

    def _allocated() -> str:
        current = (
            db.session.query(ClaimSequence.next_number)
            .filter_by(prefix=prefix)
            .scalar()
        )
        return f"{prefix}-{current - 1}"

    result = db.session.execute(stmt)
    if result.rowcount:
        return _allocated()

    db.session.add(ClaimSequence(prefix=prefix, next_number=start + 1))
    try:
        db.session.flush()
        return f"{prefix}-{start}"
    except IntegrityError:
        # Another request created the row first
        db.session.rollback()
        result = db.session.execute(stmt)
        if not result.rowcount:
            raise
        return _allocated()


def _load_claim(claim_id: int) -> Claim:
    """Fresh read of one claim; identity-map state is overwritten."""
    claim = lock_for_update(
        db.session.query(Claim).filter_by(id=claim_id).populate_existing()
    ).first()
    if claim is None:
        raise NotFoundError("Claim not found")
    return claim


def _run_guarded(op):
    try:
        return run_with_retry(op)
    except StaleDataError:
        raise ConflictError("Claim was modified by another request, please retry") from None


def _describe(claim: Claim) -> str:
    return f"{claim.claim_number} ({claim.amount} {claim.currency})"


def get_claim(actor: User, claim_id: int) -> Claim:
    """404 if missing, 403 if neither owner nor a VIEW_ALL_CLAIMS holder."""
    claim = db.session.get(Claim, claim_id)
    if claim is None:
        raise NotFoundError("Claim not found")
    permission_service.ensure_can_view_claim(actor, claim)
    return claim


def list_claims(
    actor: User,
    *,
    statuses: list[str] | None = None,
    categories: list[str] | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
    user_id: int | None = None,
    page: int = 1,
    limit: int = 10,
) -> tuple[list[Claim], int]:
    """
    Filtered, paginated claim listing, newest first.

    Callers without VIEW_ALL_CLAIMS only ever see their own claims; a
    user_id filter from them is ignored.
    """
    q = db.session.query(Claim)

    if permission_service.user_has_capability(actor, "VIEW_ALL_CLAIMS"):
        if user_id is not None:
            q = q.filter(Claim.user_id == user_id)
    else:
        q = q.filter(Claim.user_id == actor.id)

    if statuses:
        unknown = [s for s in statuses if s not in lifecycle.ALL_STATUSES]
        if unknown:
            raise ValidationError(
                f"Invalid status filter: {', '.join(unknown)}",
                errors=[{"field": "status", "message": f"Must be one of: {', '.join(lifecycle.ALL_STATUSES)}"}],
            )
        q = q.filter(Claim.status.in_(statuses))
    if categories:
        q = q.filter(Claim.category.in_(categories))
    if start_date is not None:
        q = q.filter(Claim.expense_date >= start_date)
    if end_date is not None:
        q = q.filter(Claim.expense_date <= end_date)

    total = q.count()
    items = (
        q.order_by(Claim.created_at.desc(), Claim.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return items, total


def create_claim(
    actor: User,
    data: dict,
    *,
    receipt: StoredReceipt | None = None,
    owner: User | None = None,
) -> Claim:
    """
    Create a claim from a validated payload (validation.validate_claim_payload).

    The status is always decided here: `pending` above the escalation
    threshold, `new` otherwise. Submitter name and employee id are
    snapshotted from the owner.

    `owner` lets a MANAGE_ALL_CLAIMS holder file a claim on someone's behalf.
    """
    permission_service.require_capability(actor, "CREATE_CLAIM", resource="claims")
    if owner is not None and owner.id != actor.id:
        permission_service.require_capability(actor, "MANAGE_ALL_CLAIMS", resource=f"user {owner.id} claims")
    owner = owner or actor

    def _op():
        claim = Claim(
            claim_number=next_claim_number(),
            kind=data.get("kind", "simple"),
            user_id=owner.id,
            user_name=owner.name,
            employee_id=owner.employee_id,
            currency=data.get("currency") or current_app.config.get("DEFAULT_CURRENCY", "GBP"),
            status=lifecycle.initial_status(data["amount"]),
        )
        for key, value in data.items():
            if key not in ("kind", "currency"):
                setattr(claim, key, value)
        if receipt is not None:
            claim.receipt_filename = receipt.filename
            claim.receipt_url = receipt.url

        db.session.add(claim)
        db.session.commit()
        return claim

    claim = run_with_retry(_op)

    audit_service.record(
        "create",
        actor=AuditActor.from_user(actor),
        entity_type="claim",
        entity_id=claim.claim_number,
        details=f"Created claim {_describe(claim)} with status {claim.status}",
    )
    return claim


def update_claim(
    actor: User,
    claim_id: int,
    changes: dict,
    *,
    receipt: StoredReceipt | None = None,
) -> Claim:
    """
    Edit a claim's mutable fields while it is still editable.

    A new claim whose edited amount crosses the escalation threshold is
    promoted to pending.
    """
    def _op():
        claim = _load_claim(claim_id)
        permission_service.ensure_can_modify_claim(actor, claim)
        lifecycle.ensure_editable(claim.status)

        previous_status = claim.status
        for key, value in changes.items():
            setattr(claim, key, value)
        if receipt is not None:
            claim.receipt_filename = receipt.filename
            claim.receipt_url = receipt.url

        now = utcnow()
        claim.status = lifecycle.status_after_edit(claim.status, claim.amount)
        if claim.status != previous_status:
            claim.escalated_by_id = actor.id
            claim.escalated_at = now
        claim.updated_at = now
        db.session.commit()
        return claim, previous_status

    claim, previous_status = _run_guarded(_op)

    details = f"Updated claim {_describe(claim)}: {', '.join(sorted(changes)) or 'receipt'}"
    if claim.status != previous_status:
        details += f"; status {previous_status} -> {claim.status}"
    audit_service.record(
        "update",
        actor=AuditActor.from_user(actor),
        entity_type="claim",
        entity_id=claim.claim_number,
        details=details,
    )
    return claim


def delete_claim(actor: User, claim_id: int) -> dict:
    """
    Delete a claim in a deletable status (default: new only).

    Returns the claim as it was just before deletion.
    """
    def _op():
        claim = _load_claim(claim_id)
        permission_service.ensure_can_modify_claim(actor, claim)
        lifecycle.ensure_deletable(claim.status)

        snapshot = claim.to_dict()
        description = _describe(claim)
        db.session.delete(claim)
        db.session.commit()
        return snapshot, description

    snapshot, description = _run_guarded(_op)

    audit_service.record(
        "delete",
        actor=AuditActor.from_user(actor),
        entity_type="claim",
        entity_id=snapshot["claim_number"],
        details=f"Deleted claim {description} with status {snapshot['status']}",
    )
    return snapshot


def _require_text(value, field_name: str, message: str) -> str:
    text = str(value or "").strip()
    if not text:
        raise ValidationError(message, errors=[{"field": field_name, "message": "Required"}])
    return text


def _transition(actor: User, claim_id: int, action: str, *, apply=None, admin_notes: str | None = None, detail: str | None = None) -> Claim:
    def _op():
        claim = _load_claim(claim_id)
        previous_status = claim.status
        target = lifecycle.check_transition(action, previous_status)

        claim.status = target
        if apply is not None:
            apply(claim, utcnow())
        if admin_notes is not None:
            claim.admin_notes = admin_notes
        claim.updated_at = utcnow()
        db.session.commit()
        return claim, previous_status

    claim, previous_status = _run_guarded(_op)

    details = f"Claim {_describe(claim)}: {previous_status} -> {claim.status}"
    if detail:
        details += f"; {detail}"
    audit_service.record(
        AUDIT_ACTION_FOR[action],
        actor=AuditActor.from_user(actor),
        entity_type="claim",
        entity_id=claim.claim_number,
        details=details,
    )
    current_app.logger.info(
        "Claim %s %s -> %s by user %s", claim.claim_number, previous_status, claim.status, actor.id,
    )
    return claim


def recommend_claim(actor: User, claim_id: int, recommendation: str) -> Claim:
    permission_service.require_capability(actor, "RECOMMEND_CLAIM", resource=f"claim {claim_id}")
    text = _require_text(recommendation, "recommendation", "Recommendation is required")

    def apply(claim, now):
        claim.recommendation = text
        claim.recommended_by_id = actor.id
        claim.recommended_at = now

    return _transition(actor, claim_id, "recommend", apply=apply)


def approve_claim(actor: User, claim_id: int, *, admin_notes: str | None = None) -> Claim:
    permission_service.require_capability(actor, "APPROVE_CLAIM", resource=f"claim {claim_id}")

    def apply(claim, now):
        claim.approved_by_id = actor.id
        claim.approved_at = now

    return _transition(actor, claim_id, "approve", apply=apply, admin_notes=admin_notes)


def reject_claim(actor: User, claim_id: int, reason: str, *, admin_notes: str | None = None) -> Claim:
    """Rejection reason is required; a missing reason changes nothing."""
    permission_service.require_capability(actor, "APPROVE_CLAIM", resource=f"claim {claim_id}")
    text = _require_text(reason, "reason", "Rejection reason is required")

    def apply(claim, now):
        claim.rejected_by_id = actor.id
        claim.rejected_at = now
        claim.rejection_reason = text

    return _transition(actor, claim_id, "reject", apply=apply, admin_notes=admin_notes, detail=f"reason: {text}")


def mark_paid(actor: User, claim_id: int, payment_reference: str, *, admin_notes: str | None = None) -> Claim:
    permission_service.require_capability(actor, "PAY_CLAIM", resource=f"claim {claim_id}")
    reference = _require_text(payment_reference, "payment_reference", "Payment reference is required")

    def apply(claim, now):
        claim.paid_by_id = actor.id
        claim.paid_at = now
        claim.payment_reference = reference

    return _transition(actor, claim_id, "pay", apply=apply, admin_notes=admin_notes, detail=f"reference: {reference}")


def override_status(
    actor: User,
    claim_id: int,
    status: str,
    *,
    notes: str | None = None,
    reason: str | None = None,
    payment_reference: str | None = None,
) -> Claim:
    """
    Deprecated generic status setter.

    Accepts approved | rejected | paid | pending and runs the same guard and
    required fields as the per-action operation for that target. `notes`
    is stored as admin_notes.
    """
    permission_service.require_capability(actor, "OVERRIDE_CLAIM_STATUS", resource=f"claim {claim_id}")
    status = str(status or "").strip().lower()
    if status not in lifecycle.OVERRIDE_TARGETS:
        raise ValidationError(
            f"Invalid status. Must be one of: {', '.join(lifecycle.OVERRIDE_TARGETS)}",
            errors=[{"field": "status", "message": "Invalid status"}],
        )
    admin_notes = (str(notes).strip() or None) if notes else None
    action = lifecycle.action_for_override(status)

    if action == "approve":
        return approve_claim(actor, claim_id, admin_notes=admin_notes)
    if action == "reject":
        return reject_claim(actor, claim_id, reason, admin_notes=admin_notes)
    if action == "pay":
        return mark_paid(actor, claim_id, payment_reference, admin_notes=admin_notes)

    def apply(claim, now):
        claim.escalated_by_id = actor.id
        claim.escalated_at = now

    return _transition(actor, claim_id, "escalate", apply=apply, admin_notes=admin_notes)
