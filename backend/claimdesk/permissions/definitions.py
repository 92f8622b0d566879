# Overview: All capability definitions organized by category.
# Each capability is defined as: (code, name, description, category)

from .categories import CapabilityCategory


# -- CLAIMS --

CLAIM_CAPABILITIES = [
    (
        "CREATE_CLAIM",
        "Create Claim",
        "Submit expense claims of one's own",
        CapabilityCategory.CLAIMS,
    ),
    (
        "VIEW_ALL_CLAIMS",
        "View All Claims",
        "Read claims owned by anyone",
        CapabilityCategory.CLAIMS,
    ),
    (
        "MANAGE_ALL_CLAIMS",
        "Manage All Claims",
        "Edit or delete claims owned by anyone (still subject to lifecycle guards)",
        CapabilityCategory.CLAIMS,
    ),
]


# -- REVIEW --

REVIEW_CAPABILITIES = [
    (
        "RECOMMEND_CLAIM",
        "Recommend Claim",
        "Move a new/pending claim to recommendation",
        CapabilityCategory.REVIEW,
    ),
    (
        "APPROVE_CLAIM",
        "Approve or Reject Claim",
        "Approve or reject claims awaiting a decision",
        CapabilityCategory.REVIEW,
    ),
    (
        "OVERRIDE_CLAIM_STATUS",
        "Override Claim Status",
        "Use the generic status endpoint (same guards per target status)",
        CapabilityCategory.REVIEW,
    ),
]


# -- PAYMENTS --

PAYMENT_CAPABILITIES = [
    (
        "PAY_CLAIM",
        "Mark Claim Paid",
        "Record payment of an approved claim",
        CapabilityCategory.PAYMENTS,
    ),
]


# -- USERS --

USER_CAPABILITIES = [
    (
        "MANAGE_USERS",
        "Manage Users",
        "Create, edit, change status of and delete user accounts",
        CapabilityCategory.USERS,
    ),
]


# -- REPORTS --

REPORT_CAPABILITIES = [
    (
        "VIEW_CLAIM_REPORTS",
        "View Claim Reports",
        "See organisation-wide claim aggregates such as top categories",
        CapabilityCategory.REPORTS,
    ),
]


CAPABILITY_DEFINITIONS = (
    CLAIM_CAPABILITIES
    + REVIEW_CAPABILITIES
    + PAYMENT_CAPABILITIES
    + USER_CAPABILITIES
    + REPORT_CAPABILITIES
)
