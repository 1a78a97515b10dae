# Services module
#
# Pure workflow modules (progress, workflow_engine, payment_state_machine,
# order_aggregate) are imported by their submodule path; the service
# classes are exposed lazily so that schema modules can import the pure
# modules without loading the whole service layer.

__all__ = [
    "AuthService",
    "OrderService",
    "SupplierService",
    "PackageService",
    "ActivityLogService",
    "EmailOTPService",
    "EmailService",
]


def __getattr__(name):
    if name == "AuthService":
        from app.services.auth_service import AuthService
        return AuthService
    if name == "OrderService":
        from app.services.order_service import OrderService
        return OrderService
    if name == "SupplierService":
        from app.services.supplier_service import SupplierService
        return SupplierService
    if name == "PackageService":
        from app.services.package_service import PackageService
        return PackageService
    if name == "ActivityLogService":
        from app.services.activity_log_service import ActivityLogService
        return ActivityLogService
    if name == "EmailOTPService":
        from app.services.otp_service import EmailOTPService
        return EmailOTPService
    if name == "EmailService":
        from app.services.email_service import EmailService
        return EmailService
    raise AttributeError(f"module 'app.services' has no attribute {name!r}")
