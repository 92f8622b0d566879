from __future__ import annotations

from decimal import Decimal

from ..extensions import db
from claimdesk.time_utils import to_utc_z


CLAIM_KINDS = ("simple", "reimbursement")

CLAIM_CATEGORIES = (
    "Travel",
    "Meal",
    "Office Supplies",
    "Equipment",
    "Training",
    "Other",
)


def _money(value: Decimal | None) -> float | None:
    if value is None:
        return None
    return float(Decimal(value).quantize(Decimal("0.01")))


class Claim(db.Model):
    """
    Expense claim submitted by an employee.

    LIFECYCLE: status only changes through services.claim_service, which
    enforces the table in services.lifecycle_service.

    DENORMALIZED: user_name and employee_id are captured at creation time
    and are not live-joined.

    CONCURRENCY: `version` is the mapper's version_id_col. Every UPDATE is
    issued as "... WHERE id = ? AND version = ?", so a write based on a stale
    read fails with StaleDataError instead of overwriting.

    KINDS:
    - simple: single amount with category/description
    - reimbursement: adds company/contact details and a bank/VAT/cash split
    """
    __tablename__ = "claims"
    __table_args__ = (
        db.CheckConstraint("amount >= 0", name="ck_claims_amount_non_negative"),
        db.Index("ix_claims_user_status", "user_id", "status"),
        db.Index("ix_claims_expense_date", "expense_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    claim_number = db.Column(db.String(32), nullable=False, unique=True, index=True)
    kind = db.Column(db.String(16), nullable=False, default="simple")

    # Owner + snapshot of who they were at submission
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    user_name = db.Column(db.String(120), nullable=False)
    employee_id = db.Column(db.String(32), nullable=False)

    expense_date = db.Column(db.Date, nullable=False)
    category = db.Column(db.String(32), nullable=False, default="Other")
    description = db.Column(db.Text, nullable=False)
    amount = db.Column(db.Numeric(12, 2), nullable=False)
    currency = db.Column(db.String(3), nullable=False, default="GBP")
    notes = db.Column(db.Text, nullable=True)

    # Receipt reference; the binary lives in receipt storage
    receipt_filename = db.Column(db.String(255), nullable=True)
    receipt_url = db.Column(db.String(512), nullable=True)

    # Reimbursement variant
    company_name = db.Column(db.String(255), nullable=True)
    contact_person = db.Column(db.String(120), nullable=True)
    contact_email = db.Column(db.String(255), nullable=True)
    bank_transfer_amount = db.Column(db.Numeric(12, 2), nullable=True)
    vat_amount = db.Column(db.Numeric(12, 2), nullable=True)
    cash_amount = db.Column(db.Numeric(12, 2), nullable=True)

    status = db.Column(db.String(20), nullable=False, default="new", index=True)

    # Per-transition audit fields
    recommendation = db.Column(db.Text, nullable=True)
    recommended_by_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    recommended_at = db.Column(db.DateTime(timezone=True), nullable=True)

    # Promotion of a new claim to pending (edit above threshold or override)
    escalated_by_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    escalated_at = db.Column(db.DateTime(timezone=True), nullable=True)

    approved_by_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    approved_at = db.Column(db.DateTime(timezone=True), nullable=True)

    rejected_by_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    rejected_at = db.Column(db.DateTime(timezone=True), nullable=True)
    rejection_reason = db.Column(db.Text, nullable=True)

    paid_by_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    paid_at = db.Column(db.DateTime(timezone=True), nullable=True)
    payment_reference = db.Column(db.String(128), nullable=True)

    # Set by the status override surface only
    admin_notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    version = db.Column(db.Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    owner = db.relationship("User", foreign_keys=[user_id], backref=db.backref("claims", lazy=True))
    recommended_by = db.relationship("User", foreign_keys=[recommended_by_id])
    escalated_by = db.relationship("User", foreign_keys=[escalated_by_id])
    approved_by = db.relationship("User", foreign_keys=[approved_by_id])
    rejected_by = db.relationship("User", foreign_keys=[rejected_by_id])
    paid_by = db.relationship("User", foreign_keys=[paid_by_id])

    def to_dict(self, *, resolve_references: bool = False) -> dict:
        data = {
            "id": self.id,
            "claim_number": self.claim_number,
            "kind": self.kind,
            "user_id": self.user_id,
            "user_name": self.user_name,
            "employee_id": self.employee_id,
            "date": self.expense_date.isoformat() if self.expense_date else None,
            "category": self.category,
            "description": self.description,
            "amount": _money(self.amount),
            "currency": self.currency,
            "notes": self.notes,
            "receipt_filename": self.receipt_filename,
            "receipt_url": self.receipt_url,
            "status": self.status,
            "recommendation": self.recommendation,
            "recommended_by_id": self.recommended_by_id,
            "recommended_at": to_utc_z(self.recommended_at),
            "escalated_by_id": self.escalated_by_id,
            "escalated_at": to_utc_z(self.escalated_at),
            "approved_by_id": self.approved_by_id,
            "approved_at": to_utc_z(self.approved_at),
            "rejected_by_id": self.rejected_by_id,
            "rejected_at": to_utc_z(self.rejected_at),
            "rejection_reason": self.rejection_reason,
            "paid_by_id": self.paid_by_id,
            "paid_at": to_utc_z(self.paid_at),
            "payment_reference": self.payment_reference,
            "admin_notes": self.admin_notes,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version": self.version,
        }
        if self.kind == "reimbursement":
            data.update({
                "company_name": self.company_name,
                "contact_person": self.contact_person,
                "contact_email": self.contact_email,
                "bank_transfer_amount": _money(self.bank_transfer_amount),
                "vat_amount": _money(self.vat_amount),
                "cash_amount": _money(self.cash_amount),
            })
        if resolve_references:
            owner = self.owner
            data["owner"] = {
                **owner.summary(),
                "email": owner.email,
                "department": owner.department,
            } if owner else None
            for field in ("recommended_by", "escalated_by", "approved_by", "rejected_by", "paid_by"):
                ref = getattr(self, field)
                data[field] = ref.summary() if ref else None
        return data


class ClaimSequence(db.Model):
    """
    Atomic claim number allocation, one row per prefix.

    WHY: claim numbers are human-readable PREFIX-NNNN and must never be
    handed out twice, even when two claims are created at the same time.
    """
    __tablename__ = "claim_sequences"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    prefix = db.Column(db.String(16), nullable=False, unique=True)
    next_number = db.Column(db.Integer, nullable=False)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
