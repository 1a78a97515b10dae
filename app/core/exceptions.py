"""
Domain errors for the campaign workflow.

Every error carries a human-readable message that the dashboard can show
as-is, plus optional structured details. The HTTP layer maps each class to
a status code via `status_code`.
"""

from typing import Dict, List, Optional


class CampaignOpsError(Exception):
    """Base class for recoverable campaign workflow errors."""
    status_code = 400

    def __init__(self, message: str, details: Optional[Dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(CampaignOpsError):
    """Malformed or incomplete input to a progress or compliance mutation."""
    status_code = 400


class ComplianceIncompleteError(CampaignOpsError):
    """Order creation blocked by unconfirmed compliance items."""
    status_code = 400

    def __init__(self, missing: List[str]):
        self.missing = list(missing)
        super().__init__(
            f"Compliance checklist incomplete: {', '.join(self.missing)}",
            details={"missing": self.missing},
        )


class InvalidPackageError(CampaignOpsError):
    """Package pricing snapshot is unusable."""
    status_code = 400


class NotFoundError(CampaignOpsError):
    """Unknown order, supplier, package or tracking code."""
    status_code = 404

    def __init__(self, entity_type: str, key: str):
        self.entity_type = entity_type
        self.key = key
        super().__init__(
            f"{entity_type} '{key}' not found",
            details={"entity_type": entity_type, "key": key},
        )


class InvalidTransitionError(CampaignOpsError):
    """Supplier payment state machine precondition violated."""
    status_code = 409

    def __init__(self, current_status: str, new_status: str, allowed: Optional[List[str]] = None):
        self.current_status = current_status
        self.new_status = new_status
        self.allowed = list(allowed or [])
        if self.allowed:
            message = (
                f"Cannot change supplier payment from '{current_status}' to '{new_status}'. "
                f"Allowed transitions: {', '.join(self.allowed)}"
            )
        else:
            message = (
                f"Cannot change supplier payment from '{current_status}' to '{new_status}'. "
                f"'{current_status}' is a terminal state."
            )
        super().__init__(
            message,
            details={"current_status": current_status, "new_status": new_status, "allowed": self.allowed},
        )


class ForbiddenError(CampaignOpsError):
    """Actor role does not permit the mutation."""
    status_code = 403


class StorageError(CampaignOpsError):
    """Persistence layer failure. Not retried automatically."""
    status_code = 503


class DuplicateTrackingCodeError(StorageError):
    """Store rejected a tracking code that is already taken."""
    status_code = 409

    def __init__(self, tracking_code: str):
        self.tracking_code = tracking_code
        super().__init__(
            f"Tracking code '{tracking_code}' already exists",
            details={"tracking_code": tracking_code},
        )
