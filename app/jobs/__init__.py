"""
Background Jobs Module

Handles scheduled tasks for:
- Supplier payment auto-verification
- Expired login code cleanup
"""

from app.jobs.scheduler import scheduler, start_scheduler, shutdown_scheduler
from app.jobs.order_jobs import auto_verify_supplier_payments
from app.jobs.auth_jobs import cleanup_expired_otps

__all__ = [
    "scheduler",
    "start_scheduler",
    "shutdown_scheduler",
    "auto_verify_supplier_payments",
    "cleanup_expired_otps",
]
