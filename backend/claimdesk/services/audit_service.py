# Overview: Append-only audit sink for sensitive actions.

"""
Audit Log Sink

WHY: Every sensitive action (login, claim transitions, user management)
must leave an immutable, attributable record.

CONTRACT:
- record(...) is fire-and-forget. It never raises into the caller's
  business operation.
- Inside a request, entries are queued on `g` and written when the request
  tears down, after the route has committed its own work. Claim store
  writes therefore always happen-before the audit write is attempted, and
  lifecycle latency does not depend on the audit table.
- Outside a request (CLI, scripts) entries are written immediately.
- A failed write is rolled back, logged with the stack trace, and counted
  in `audit_sink.failed_writes`; the caller never sees it.
- There is no read or mutate API here. Reporting reads the table directly.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from flask import current_app, g, has_request_context, request

from ..extensions import db
from ..models import AuditLogEntry, AUDIT_ACTIONS, AUDIT_ENTITY_TYPES
from claimdesk.time_utils import utcnow


@dataclass(frozen=True)
class AuditActor:
    id: int | None
    name: str
    role: str

    @classmethod
    def from_user(cls, user) -> "AuditActor":
        return cls(id=user.id, name=user.name, role=user.role)


SYSTEM_ACTOR = AuditActor(id=None, name="system", role="system")


@dataclass(frozen=True)
class RequestOrigin:
    ip_address: str | None = None
    user_agent: str | None = None

    @classmethod
    def current(cls) -> "RequestOrigin":
        if not has_request_context():
            return cls()
        return cls(
            ip_address=request.remote_addr,
            user_agent=request.headers.get("User-Agent"),
        )


@dataclass(frozen=True)
class AuditEntry:
    action: str
    actor: AuditActor
    entity_type: str | None
    entity_id: str | None
    details: str | None
    origin: RequestOrigin = field(default_factory=RequestOrigin)
    occurred_at: datetime = field(default_factory=utcnow)

    def to_model(self) -> AuditLogEntry:
        return AuditLogEntry(
            action=self.action,
            actor_id=self.actor.id,
            actor_name=self.actor.name,
            actor_role=self.actor.role,
            entity_type=self.entity_type,
            entity_id=self.entity_id,
            details=self.details,
            ip_address=self.origin.ip_address,
            user_agent=(self.origin.user_agent or "")[:512] or None,
            occurred_at=self.occurred_at,
        )


class AuditSink:
    """Queues entries per request and writes them once the request's work is done."""

    QUEUE_KEY = "_audit_queue"

    def __init__(self):
        self.written = 0
        self.failed_writes = 0

    def append(self, entry: AuditEntry) -> None:
        if has_request_context():
            queue = g.get(self.QUEUE_KEY)
            if queue is None:
                queue = []
                setattr(g, self.QUEUE_KEY, queue)
            queue.append(entry)
            return
        self.write([entry])

    def flush(self) -> None:
        entries = g.pop(self.QUEUE_KEY, None)
        if entries:
            self.write(entries)

    def discard_pending(self) -> None:
        g.pop(self.QUEUE_KEY, None)

    def write(self, entries: list[AuditEntry]) -> None:
        try:
            db.session.add_all([entry.to_model() for entry in entries])
            db.session.commit()
            self.written += len(entries)
        except Exception:
            # Best-effort: the triggering action already committed.
            db.session.rollback()
            self.failed_writes += len(entries)
            current_app.logger.exception(
                "Failed to write %d audit entr%s (actions: %s)",
                len(entries),
                "y" if len(entries) == 1 else "ies",
                ", ".join(e.action for e in entries),
            )


audit_sink = AuditSink()


def record(
    action: str,
    *,
    actor: AuditActor,
    entity_type: str | None = None,
    entity_id=None,
    details: str | None = None,
    origin: RequestOrigin | None = None,
) -> None:
    """
    Append one audit entry.

    Raises ValueError only for programming errors (unknown action or entity
    type); storage failures are never propagated.
    """
    if action not in AUDIT_ACTIONS:
        raise ValueError(f"Unknown audit action '{action}'")
    if entity_type is not None and entity_type not in AUDIT_ENTITY_TYPES:
        raise ValueError(f"Unknown audit entity type '{entity_type}'")

    audit_sink.append(AuditEntry(
        action=action,
        actor=actor,
        entity_type=entity_type,
        entity_id=str(entity_id) if entity_id is not None else None,
        details=details,
        origin=origin or RequestOrigin.current(),
    ))


def init_app(app) -> None:
    @app.teardown_request
    def _flush_audit_queue(exc):
        audit_sink.flush()
