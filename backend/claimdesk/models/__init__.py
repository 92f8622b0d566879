from .auth import User, SessionToken, USER_STATUSES
from .claims import Claim, ClaimSequence, CLAIM_KINDS, CLAIM_CATEGORIES
from .audit import AuditLogEntry, AUDIT_ACTIONS, AUDIT_ENTITY_TYPES

__all__ = [
    'User', 'SessionToken', 'USER_STATUSES',
    'Claim', 'ClaimSequence', 'CLAIM_KINDS', 'CLAIM_CATEGORIES',
    'AuditLogEntry', 'AUDIT_ACTIONS', 'AUDIT_ENTITY_TYPES',
]
