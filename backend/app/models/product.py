import enum

from sqlalchemy import Boolean, Column, DateTime, Enum, Integer, Numeric, String, Text
from sqlalchemy.sql import func

from app.core.database import Base


class ListingStatus(str, enum.Enum):
    draft = "draft"
    pending_review = "pending_review"
    active = "active"
    rejected = "rejected"
    archived = "archived"


class Product(Base):
    """Seller listing. Created in draft once the listing OTP has been consumed."""

    __tablename__ = "products"

    # Product context id chosen by the seller client before creation (OTP is bound to it)
    id = Column(String(36), primary_key=True, index=True)
    seller_id = Column(String(36), nullable=False, index=True)

    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=False)
    price = Column(Numeric(12, 2), nullable=False)
    stock = Column(Integer, nullable=False, default=0)
    primary_category = Column(String(64), nullable=False, index=True)
    sub_category = Column(String(64), nullable=False)

    image_url_1 = Column(String(2048), nullable=False)
    image_url_2 = Column(String(2048), nullable=True)
    image_url_3 = Column(String(2048), nullable=True)
    image_url_4 = Column(String(2048), nullable=True)

    ai_enabled = Column(Boolean, default=False, nullable=False)

    status = Column(
        Enum(ListingStatus),
        default=ListingStatus.draft,
        nullable=False,
        index=True,
    )
    review_note = Column(String(500), nullable=True)  # admin rejection reason
    submitted_at = Column(DateTime(timezone=True), nullable=True)
    reviewed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
