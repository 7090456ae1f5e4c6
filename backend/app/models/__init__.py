from app.core.database import Base
from app.models.audit_log import AuditLog
from app.models.product import ListingStatus, Product

__all__ = [
    "Base",
    "AuditLog",
    "ListingStatus",
    "Product",
]
