# Overview: Capability system package.
# Re-exports the role table and capability definitions.

from .categories import CapabilityCategory
from .definitions import (
    CAPABILITY_DEFINITIONS,
    CLAIM_CAPABILITIES,
    REVIEW_CAPABILITIES,
    PAYMENT_CAPABILITIES,
    USER_CAPABILITIES,
    REPORT_CAPABILITIES,
)
from .roles import Role, ROLE_CAPABILITIES
from .helpers import (
    get_all_capability_codes,
    get_capabilities_by_category,
    get_capability_definition,
    validate_capability_code,
    capabilities_for_role,
)

__all__ = [
    "CapabilityCategory",
    "CAPABILITY_DEFINITIONS",
    "CLAIM_CAPABILITIES",
    "REVIEW_CAPABILITIES",
    "PAYMENT_CAPABILITIES",
    "USER_CAPABILITIES",
    "REPORT_CAPABILITIES",
    "Role",
    "ROLE_CAPABILITIES",
    "get_all_capability_codes",
    "get_capabilities_by_category",
    "get_capability_definition",
    "validate_capability_code",
    "capabilities_for_role",
]
