from __future__ import annotations

import re
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any

from .errors import ValidationError
from .models import CLAIM_CATEGORIES, CLAIM_KINDS
from .time_utils import parse_expense_date


# Numeric(12, 2): 10 integer digits
MAX_AMOUNT = Decimal("9999999999.99")

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
CURRENCY_RE = re.compile(r"^[A-Z]{3}$")

REIMBURSEMENT_AMOUNT_FIELDS = ("bank_transfer_amount", "vat_amount", "cash_amount")


@dataclass
class FieldErrors:
    """Collects field-level problems so a caller sees all of them at once."""
    errors: list[dict] = field(default_factory=list)

    def add(self, field_name: str, message: str) -> None:
        self.errors.append({"field": field_name, "message": message})

    def raise_if_any(self, message: str = "Validation failed") -> None:
        if self.errors:
            raise ValidationError(message, errors=list(self.errors))


def json_object(value: Any) -> dict:
    """A parsed request body, or {} when it is not a JSON object."""
    return value if isinstance(value, dict) else {}


def is_valid_email(value: Any) -> bool:
    return isinstance(value, str) and bool(EMAIL_RE.match(value.strip()))


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def parse_amount(value: Any, field_name: str, errors: FieldErrors) -> Decimal | None:
    """
    Parse a money amount: non-negative, at most 2 decimals.

    Accepts numbers and numeric strings (multipart forms send strings).
    Booleans are rejected.
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        errors.add(field_name, "Required")
        return None
    if isinstance(value, bool):
        errors.add(field_name, "Must be a number")
        return None
    try:
        amount = Decimal(str(value).strip())
    except InvalidOperation:
        errors.add(field_name, "Must be a number")
        return None
    if not amount.is_finite():
        errors.add(field_name, "Must be a number")
        return None
    if amount < 0:
        errors.add(field_name, "Must be zero or greater")
        return None
    if amount > MAX_AMOUNT:
        errors.add(field_name, "Too large")
        return None
    if amount != amount.quantize(Decimal("0.01")):
        errors.add(field_name, "At most 2 decimal places")
        return None
    return amount.quantize(Decimal("0.01"))


def validate_claim_payload(payload: dict | None, *, partial: bool, kind: str | None = None) -> dict:
    """
    Validates + normalizes a claim create/edit payload.

    partial=False: create semantics, required fields enforced
    partial=True: edit semantics, only provided keys validated;
                  `kind` must be passed (the claim's existing kind)

    Returns a clean dict keyed by Claim column names (`date` becomes
    `expense_date`). Unknown keys are ignored. Status, ownership and
    per-transition fields are never accepted here.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid payload")

    errors = FieldErrors()
    clean: dict = {}

    if partial:
        claim_kind = kind or "simple"
    else:
        claim_kind = _text(payload.get("kind")).lower() or "simple"
        if claim_kind not in CLAIM_KINDS:
            errors.add("kind", f"Must be one of: {', '.join(CLAIM_KINDS)}")
        clean["kind"] = claim_kind

    def provided(key: str) -> bool:
        return key in payload or not partial

    if provided("date"):
        raw = payload.get("date")
        try:
            clean["expense_date"] = parse_expense_date(raw)
        except ValueError:
            errors.add("date", "Required" if not _text(raw) else "Must be an ISO-8601 date")

    if provided("category"):
        category = _text(payload.get("category"))
        if not category:
            errors.add("category", "Required")
        elif category not in CLAIM_CATEGORIES:
            errors.add("category", f"Must be one of: {', '.join(CLAIM_CATEGORIES)}")
        else:
            clean["category"] = category

    if provided("description"):
        description = _text(payload.get("description"))
        if not description:
            errors.add("description", "Required")
        elif len(description) > 2000:
            errors.add("description", "At most 2000 characters")
        else:
            clean["description"] = description

    if provided("amount"):
        amount = parse_amount(payload.get("amount"), "amount", errors)
        if amount is not None:
            clean["amount"] = amount

    if "currency" in payload:
        currency = _text(payload.get("currency")).upper()
        if not CURRENCY_RE.match(currency):
            errors.add("currency", "Must be a 3-letter currency code")
        else:
            clean["currency"] = currency

    if "notes" in payload:
        clean["notes"] = _text(payload.get("notes")) or None

    if claim_kind == "reimbursement":
        for key in ("company_name", "contact_person"):
            if provided(key):
                value = _text(payload.get(key))
                if not value:
                    errors.add(key, "Required")
                else:
                    clean[key] = value

        if provided("contact_email"):
            email = _text(payload.get("contact_email")).lower()
            if not email:
                errors.add("contact_email", "Required")
            elif not is_valid_email(email):
                errors.add("contact_email", "Must be a valid email address")
            else:
                clean["contact_email"] = email

        for key in REIMBURSEMENT_AMOUNT_FIELDS:
            if key in payload:
                value = parse_amount(payload.get(key), key, errors)
                if value is not None:
                    clean[key] = value
            elif not partial:
                clean[key] = Decimal("0.00")

    errors.raise_if_any()
    return clean


def validate_user_payload(payload: dict | None, *, partial: bool) -> dict:
    """
    Presence/format checks for user create/edit payloads.

    Normalization (case, role, status) happens in identity_service.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid payload")

    errors = FieldErrors()
    clean: dict = {}

    for key in ("name", "email", "department"):
        if key in payload or not partial:
            value = _text(payload.get(key))
            if not value:
                errors.add(key, "Required")
            else:
                clean[key] = value

    if "email" in clean and not is_valid_email(clean["email"]):
        errors.add("email", "Must be a valid email address")

    if not partial:
        password = payload.get("password")
        if not isinstance(password, str) or not password:
            errors.add("password", "Required")
        else:
            clean["password"] = password

    for key in ("role", "status", "employee_id", "phone"):
        if key in payload:
            clean[key] = _text(payload.get(key)) or None

    errors.raise_if_any()
    return clean


def parse_pagination(args, *, default_limit: int = 10, max_limit: int = 100) -> tuple[int, int]:
    """page >= 1, 1 <= limit <= max_limit. Bad values raise ValidationError."""
    try:
        page = int(args.get("page", 1))
        limit = int(args.get("limit", default_limit))
    except (TypeError, ValueError):
        raise ValidationError("page and limit must be integers") from None
    if page < 1 or limit < 1:
        raise ValidationError("page and limit must be positive")
    return page, min(limit, max_limit)


def parse_csv_arg(value: str | None) -> list[str]:
    if not value:
        return []
    return [part.strip() for part in value.split(",") if part.strip()]
