# Overview: Flask API routes for expense claims; parses input and returns JSON responses.

"""
Claim API routes.

Create and edit accept JSON or multipart/form-data (with an optional
`receipt` file). Status changes go through the per-action endpoints
(recommend, approve, reject, pay); PUT /<id>/status is the deprecated
admin override and runs the same guards.
"""

import math

from flask import Blueprint, current_app, g, request

from ..decorators import require_auth
from ..errors import ClaimdeskError, ValidationError
from ..extensions import db
from ..responses import domain_error_response, error_response, success_response
from ..services import claim_service, identity_service, reporting_service
from ..services.receipt_storage import ReceiptStorage
from ..time_utils import parse_expense_date
from ..validation import json_object, parse_csv_arg, parse_pagination, validate_claim_payload


claims_bp = Blueprint("claims", __name__, url_prefix="/api/claims")


def _payload() -> dict:
    if request.mimetype == "multipart/form-data" or request.form:
        return request.form.to_dict()
    return json_object(request.get_json(silent=True))


def _store_receipt(owner_id: int):
    file = request.files.get("receipt")
    if file is None or not file.filename:
        return None, None
    storage = ReceiptStorage.from_app()
    return storage, storage.save(file, owner_id)


def _date_arg(name: str):
    value = request.args.get(name)
    if not value:
        return None
    try:
        return parse_expense_date(value)
    except ValueError:
        raise ValidationError(
            f"{name} must be an ISO-8601 date",
            errors=[{"field": name, "message": "Must be an ISO-8601 date"}],
        ) from None


@claims_bp.get("")
@require_auth
def list_claims_route():
    """
    Query params: status, category (comma-separated), start_date, end_date,
    user_id (VIEW_ALL_CLAIMS holders only), page, limit
    """
    try:
        page, limit = parse_pagination(request.args)
        user_id = request.args.get("user_id", type=int)

        claims, total = claim_service.list_claims(
            g.current_user,
            statuses=parse_csv_arg(request.args.get("status")),
            categories=parse_csv_arg(request.args.get("category")),
            start_date=_date_arg("start_date"),
            end_date=_date_arg("end_date"),
            user_id=user_id,
            page=page,
            limit=limit,
        )

        return success_response(
            [c.to_dict() for c in claims],
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
        current_app.logger.exception("Failed to list claims")
        return error_response("Server error", 500)


@claims_bp.get("/stats")
@require_auth
def claim_stats_route():
    try:
        return success_response(reporting_service.claim_stats(g.current_user))
    except Exception:
        current_app.logger.exception("Failed to compute claim stats")
        return error_response("Server error", 500)


@claims_bp.get("/<int:claim_id>")
@require_auth
def get_claim_route(claim_id: int):
    try:
        claim = claim_service.get_claim(g.current_user, claim_id)
        return success_response(claim.to_dict(resolve_references=True))

    except ClaimdeskError as e:
        return domain_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to get claim")
        return error_response("Server error", 500)


@claims_bp.post("")
@require_auth
def create_claim_route():
    """
    Fields: date, category, description, amount (required); currency,
    notes, kind ("simple" | "reimbursement"); reimbursement claims also
    need company_name, contact_person, contact_email and may carry
    bank_transfer_amount, vat_amount, cash_amount. Optional `user_id`
    files the claim for another user (MANAGE_ALL_CLAIMS).

    Status is decided by the server; a client-sent status is ignored.
    """
    storage = receipt = None
    try:
        payload = _payload()
        data = validate_claim_payload(payload, partial=False)

        owner = None
        if payload.get("user_id"):
            try:
                owner = identity_service.get_user(int(payload["user_id"]))
            except (TypeError, ValueError):
                raise ValidationError("user_id must be an integer") from None

        storage, receipt = _store_receipt((owner or g.current_user).id)
        claim = claim_service.create_claim(g.current_user, data, receipt=receipt, owner=owner)

        return success_response(claim.to_dict(), message="Claim created successfully", status=201)

    except ClaimdeskError as e:
        db.session.rollback()
        if receipt is not None:
            storage.delete((owner or g.current_user).id, receipt.filename)
        return domain_error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to create claim")
        return error_response("Server error", 500)


@claims_bp.put("/<int:claim_id>")
@require_auth
def update_claim_route(claim_id: int):
    """Edit description, category, amount, date, notes or receipt while editable."""
    storage = receipt = None
    try:
        claim = claim_service.get_claim(g.current_user, claim_id)
        owner_id = claim.user_id

        data = validate_claim_payload(_payload(), partial=True, kind=claim.kind)
        storage, receipt = _store_receipt(owner_id)
        if not data and receipt is None:
            raise ValidationError("No changes provided")

        claim = claim_service.update_claim(g.current_user, claim_id, data, receipt=receipt)
        return success_response(claim.to_dict(), message="Claim updated successfully")

    except ClaimdeskError as e:
        db.session.rollback()
        if receipt is not None:
            storage.delete(owner_id, receipt.filename)
        return domain_error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to update claim")
        return error_response("Server error", 500)


@claims_bp.delete("/<int:claim_id>")
@require_auth
def delete_claim_route(claim_id: int):
    try:
        deleted = claim_service.delete_claim(g.current_user, claim_id)
        ReceiptStorage.from_app().delete(deleted["user_id"], deleted["receipt_filename"])
        return success_response(message="Claim deleted successfully")

    except ClaimdeskError as e:
        db.session.rollback()
        return domain_error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to delete claim")
        return error_response("Server error", 500)


# =============================================================================
# STATUS TRANSITIONS
# =============================================================================

def _transition_response(fn, message: str):
    try:
        claim = fn(json_object(request.get_json(silent=True)))
        return success_response(claim.to_dict(), message=message)

    except ClaimdeskError as e:
        db.session.rollback()
        return domain_error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to change claim status")
        return error_response("Server error", 500)


@claims_bp.put("/<int:claim_id>/recommend")
@require_auth
def recommend_claim_route(claim_id: int):
    """Request body: {"recommendation": "..."}"""
    return _transition_response(
        lambda data: claim_service.recommend_claim(g.current_user, claim_id, data.get("recommendation")),
        "Claim recommended",
    )


@claims_bp.put("/<int:claim_id>/approve")
@require_auth
def approve_claim_route(claim_id: int):
    return _transition_response(
        lambda data: claim_service.approve_claim(g.current_user, claim_id),
        "Claim approved",
    )


@claims_bp.put("/<int:claim_id>/reject")
@require_auth
def reject_claim_route(claim_id: int):
    """Request body: {"reason": "..."} (required)"""
    return _transition_response(
        lambda data: claim_service.reject_claim(
            g.current_user, claim_id, data.get("reason") or data.get("rejection_reason"),
        ),
        "Claim rejected",
    )


@claims_bp.put("/<int:claim_id>/pay")
@require_auth
def pay_claim_route(claim_id: int):
    """Request body: {"payment_reference": "..."} (required)"""
    return _transition_response(
        lambda data: claim_service.mark_paid(g.current_user, claim_id, data.get("payment_reference")),
        "Claim marked as paid",
    )


@claims_bp.put("/<int:claim_id>/status")
@require_auth
def override_status_route(claim_id: int):
    """
    Deprecated: use the per-action endpoints.

    Request body: {"status": "approved" | "rejected" | "paid" | "pending",
                   "notes": "...", "reason": "...", "payment_reference": "..."}
    """
    def _op(data):
        current_app.logger.warning(
            "Deprecated status override used on claim %s by user %s", claim_id, g.current_user.id,
        )
        return claim_service.override_status(
            g.current_user,
            claim_id,
            data.get("status"),
            notes=data.get("notes"),
            reason=data.get("reason"),
            payment_reference=data.get("payment_reference"),
        )

    return _transition_response(_op, "Claim status updated")
