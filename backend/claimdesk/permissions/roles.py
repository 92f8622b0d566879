# Overview: Enumerated roles and the role -> capability table.

from __future__ import annotations

import enum


class Role(str, enum.Enum):
    WORKER = "worker"
    ADMIN = "admin"
    ADMINISTRATOR = "administrator"
    ACCOUNTANT = "accountant"
    APPROVER = "approver"
    MANAGER = "manager"

    @classmethod
    def parse(cls, value: str | None) -> "Role":
        """Case-insensitive lookup; raises ValueError for unknown names."""
        if value is None:
            raise ValueError("role is required")
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            allowed = ", ".join(r.value for r in cls)
            raise ValueError(f"Invalid role '{value}'. Must be one of: {allowed}") from None


_ADMIN_CAPABILITIES = frozenset({
    "CREATE_CLAIM",
    "VIEW_ALL_CLAIMS",
    "MANAGE_ALL_CLAIMS",
    "RECOMMEND_CLAIM",
    "APPROVE_CLAIM",
    "OVERRIDE_CLAIM_STATUS",
    "PAY_CLAIM",
    "MANAGE_USERS",
    "VIEW_CLAIM_REPORTS",
})

ROLE_CAPABILITIES: dict[Role, frozenset[str]] = {
    Role.WORKER: frozenset({"CREATE_CLAIM"}),
    Role.ADMIN: _ADMIN_CAPABILITIES,
    Role.ADMINISTRATOR: _ADMIN_CAPABILITIES,
    Role.ACCOUNTANT: frozenset({
        "VIEW_ALL_CLAIMS",
        "RECOMMEND_CLAIM",
        "APPROVE_CLAIM",
        "PAY_CLAIM",
        "VIEW_CLAIM_REPORTS",
    }),
    Role.APPROVER: frozenset({
        "VIEW_ALL_CLAIMS",
        "RECOMMEND_CLAIM",
        "APPROVE_CLAIM",
    }),
    Role.MANAGER: frozenset({
        "CREATE_CLAIM",
        "VIEW_ALL_CLAIMS",
        "RECOMMEND_CLAIM",
        "APPROVE_CLAIM",
    }),
}
