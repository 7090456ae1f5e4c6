from sqlalchemy import Column, DateTime, String, Text
from sqlalchemy.sql import func

from app.core.database import Base


class AuditLog(Base):
    """Listing history: one row per creation, status transition, edit or deletion."""

    __tablename__ = "audit_log"

    id = Column(String(36), primary_key=True, index=True)
    product_id = Column(String(36), nullable=False, index=True)  # kept after the product is deleted
    action = Column(String(100), nullable=False, index=True)  # product.create, product.approve, ...
    actor_role = Column(String(20), nullable=False)  # seller, admin
    actor_id = Column(String(36), nullable=False, index=True)
    from_status = Column(String(32), nullable=True)  # null on create
    to_status = Column(String(32), nullable=True)  # null on delete
    note = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
