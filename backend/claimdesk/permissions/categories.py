# Overview: Capability category constants for grouping related capabilities.


class CapabilityCategory:
    """Capability categories for organization and UI display."""
    CLAIMS = "CLAIMS"
    REVIEW = "REVIEW"
    PAYMENTS = "PAYMENTS"
    USERS = "USERS"
    REPORTS = "REPORTS"
