from __future__ import annotations

from sqlalchemy import event

from ..extensions import db
from claimdesk.time_utils import to_utc_z


AUDIT_ACTIONS = (
    "login",
    "logout",
    "create",
    "update",
    "delete",
    "recommend",
    "approve",
    "reject",
    "pay",
    "access_denied",
)

AUDIT_ENTITY_TYPES = ("user", "claim", "system")


class AuditLogEntry(db.Model):
    """
    Record of a sensitive action.

    IMMUTABLE: append-only. The ORM refuses UPDATE and DELETE on this table
    (see listeners below), and no service exposes either.

    actor_id is deliberately not a foreign key: entries outlive the
    accounts they mention, so name and role are denormalized at write time.
    """
    __tablename__ = "audit_log"
    __table_args__ = (
        db.Index("ix_audit_log_occurred", "occurred_at"),
        db.Index("ix_audit_log_actor_occurred", "actor_id", "occurred_at"),
        db.Index("ix_audit_log_action_occurred", "action", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    action = db.Column(db.String(32), nullable=False)

    actor_id = db.Column(db.Integer, nullable=True)  # Nullable for system actions
    actor_name = db.Column(db.String(120), nullable=False)
    actor_role = db.Column(db.String(32), nullable=False)

    entity_type = db.Column(db.String(16), nullable=True)
    entity_id = db.Column(db.String(64), nullable=True)
    details = db.Column(db.Text, nullable=True)

    # Client context
    ip_address = db.Column(db.String(45), nullable=True)
    user_agent = db.Column(db.String(512), nullable=True)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "action": self.action,
            "actor_id": self.actor_id,
            "actor_name": self.actor_name,
            "actor_role": self.actor_role,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "details": self.details,
            "ip_address": self.ip_address,
            "occurred_at": to_utc_z(self.occurred_at),
        }


@event.listens_for(AuditLogEntry, "before_update")
def _refuse_audit_update(mapper, connection, target):
    raise RuntimeError("audit_log entries are append-only")


@event.listens_for(AuditLogEntry, "before_delete")
def _refuse_audit_delete(mapper, connection, target):
    raise RuntimeError("audit_log entries are append-only")
