# Models module. Importing it registers every table with Base.metadata.
from app.models.package import CampaignPackage
from app.models.supplier import Supplier
from app.models.user import RoleAssignment, UserRole
from app.models.order import (
    Order,
    OrderStatus,
    SupplierPaymentStatus,
    OrderAgencyProgress,
    OrderSupplierProgress,
    OrderAffiliate,
    OrderNote,
    OrderStatusHistory,
)
from app.models.activity_log import ActivityLog, ActivityAction, EntityType
from app.models.login_otp import LoginOTP

__all__ = [
    "CampaignPackage",
    "Supplier",
    "RoleAssignment",
    "UserRole",
    "Order",
    "OrderStatus",
    "SupplierPaymentStatus",
    "OrderAgencyProgress",
    "OrderSupplierProgress",
    "OrderAffiliate",
    "OrderNote",
    "OrderStatusHistory",
    "ActivityLog",
    "ActivityAction",
    "EntityType",
    "LoginOTP",
]
