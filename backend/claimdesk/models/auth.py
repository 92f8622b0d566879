from __future__ import annotations

from ..extensions import db
from claimdesk.time_utils import to_utc_z


USER_STATUSES = ("active", "inactive", "suspended")


class User(db.Model):
    """
    Employee accounts for authentication and claim attribution.

    employee_id is stored uppercase and email lowercase; both are globally
    unique and either one is accepted as the login handle.

    password_hash never leaves the identity service: to_dict() omits it.
    """
    __tablename__ = "users"
    __table_args__ = (
        db.Index("ix_users_role_status", "role", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    employee_id = db.Column(db.String(32), nullable=False, unique=True, index=True)
    name = db.Column(db.String(120), nullable=False)
    email = db.Column(db.String(255), nullable=False, unique=True, index=True)

    # Bcrypt hashed password
    password_hash = db.Column(db.String(255), nullable=False)

    # One of permissions.roles.Role
    role = db.Column(db.String(32), nullable=False, default="worker")
    department = db.Column(db.String(120), nullable=False)
    phone = db.Column(db.String(32), nullable=True)

    # active | inactive | suspended
    status = db.Column(db.String(16), nullable=False, default="active", index=True)

    last_login_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    @property
    def is_active(self) -> bool:
        return self.status == "active"

    def summary(self) -> dict:
        """Compact reference used when a claim resolves its actors."""
        return {
            "id": self.id,
            "name": self.name,
            "employee_id": self.employee_id,
        }

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "employee_id": self.employee_id,
            "name": self.name,
            "email": self.email,
            "role": self.role,
            "department": self.department,
            "phone": self.phone,
            "status": self.status,
            "last_login_at": to_utc_z(self.last_login_at) if self.last_login_at else None,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class SessionToken(db.Model):
    """
    Bearer session with an access token and a refresh token.

    SECURITY NOTES:
    - Only SHA-256 hashes of both tokens are stored
    - Access token: absolute expiry plus idle timeout
    - Refresh token: longer absolute expiry, mints new access tokens
      for the same session
    - Revoked on logout, password change, deactivation
    """
    __tablename__ = "session_tokens"
    __table_args__ = (
        db.Index("ix_session_tokens_user_active", "user_id", "is_revoked"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    # Token hashes (never store plaintext tokens!)
    token_hash = db.Column(db.String(64), nullable=False, unique=True, index=True)
    refresh_token_hash = db.Column(db.String(64), nullable=False, unique=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    last_used_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    expires_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)
    refresh_expires_at = db.Column(db.DateTime(timezone=True), nullable=False)

    is_revoked = db.Column(db.Boolean, nullable=False, default=False, index=True)
    revoked_at = db.Column(db.DateTime(timezone=True), nullable=True)
    revoked_reason = db.Column(db.String(255), nullable=True)

    # Client information (for security monitoring)
    user_agent = db.Column(db.String(512), nullable=True)
    ip_address = db.Column(db.String(45), nullable=True)  # IPv6 max length

    user = db.relationship(
        "User",
        backref=db.backref("session_tokens", lazy=True, cascade="all, delete-orphan"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "created_at": to_utc_z(self.created_at),
            "last_used_at": to_utc_z(self.last_used_at),
            "expires_at": to_utc_z(self.expires_at),
            "refresh_expires_at": to_utc_z(self.refresh_expires_at),
            "is_revoked": self.is_revoked,
        }
