# Repositories module
from app.repositories.order_repository import OrderRepository
from app.repositories.supplier_repository import SupplierRepository
from app.repositories.package_repository import PackageRepository

__all__ = [
    "OrderRepository",
    "SupplierRepository",
    "PackageRepository",
]
