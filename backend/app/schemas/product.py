from datetime import datetime
from decimal import Decimal
from typing import Annotated, Iterable, Optional
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator

from app.models.product import ListingStatus
from app.services.categories import belongs_to, is_primary_category

PRICE_MIN = Decimal("100")
PRICE_MAX = Decimal("10000000")
STOCK_MAX = 999
IMAGE_FIELDS = ("image_url_1", "image_url_2", "image_url_3", "image_url_4")

NameStr = Annotated[str, Field(min_length=5, max_length=100)]
DescriptionStr = Annotated[str, Field(min_length=20, max_length=500)]
Price = Annotated[Decimal, Field(ge=PRICE_MIN, le=PRICE_MAX, decimal_places=2)]
Stock = Annotated[int, Field(ge=0, le=STOCK_MAX)]


def is_well_formed_url(value: str) -> bool:
    parsed = urlparse(value)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def _check_image_url(value: Optional[str], required: bool) -> Optional[str]:
    value = (value or "").strip()
    if not value:
        if required:
            raise ValueError("At least one primary image link is required.")
        return None
    if not is_well_formed_url(value):
        raise ValueError("Must be a valid URL.")
    return value


class ListingFields(BaseModel):
    """Seller-editable listing content, validated field by field."""

    name: NameStr
    description: DescriptionStr
    price: Price
    stock: Stock
    primary_category: str
    sub_category: str
    image_url_1: str
    image_url_2: Optional[str] = None
    image_url_3: Optional[str] = None
    image_url_4: Optional[str] = None
    ai_enabled: bool = False

    @field_validator("primary_category", mode="before")
    @classmethod
    def primary_category_registered(cls, v: Optional[str]) -> str:
        if not is_primary_category(v):
            raise ValueError("Please select a primary category.")
        return v

    # Runs after primary_category, so info.data holds it when it was valid
    @field_validator("sub_category", mode="before")
    @classmethod
    def sub_category_under_primary(cls, v: Optional[str], info: ValidationInfo) -> str:
        primary = info.data.get("primary_category")
        if not belongs_to(primary, v):
            raise ValueError("Please select a sub-category.")
        return v

    @field_validator("image_url_1", mode="before")
    @classmethod
    def primary_image(cls, v: Optional[str]) -> Optional[str]:
        return _check_image_url(v, required=True)

    @field_validator("image_url_2", "image_url_3", "image_url_4", mode="before")
    @classmethod
    def extra_image(cls, v: Optional[str]) -> Optional[str]:
        return _check_image_url(v, required=False)


class ProductCreate(ListingFields):
    # Product context id the OTP was issued for; becomes the product id
    product_id: str = Field(min_length=1, max_length=36)
    code: str


class ProductUpdate(BaseModel):
    """Partial edit. Category coupling is checked against the merged listing in the route."""

    name: Optional[NameStr] = None
    description: Optional[DescriptionStr] = None
    price: Optional[Price] = None
    stock: Optional[Stock] = None
    primary_category: Optional[str] = None
    sub_category: Optional[str] = None
    image_url_1: Optional[str] = None
    image_url_2: Optional[str] = None
    image_url_3: Optional[str] = None
    image_url_4: Optional[str] = None
    ai_enabled: Optional[bool] = None


class CapabilitiesResponse(BaseModel):
    can_edit: bool
    can_delete: bool
    can_submit_for_review: bool
    can_unpublish: bool
    can_archive: bool


class ProductResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    seller_id: str
    name: str
    description: str
    price: Decimal
    stock: int
    primary_category: str
    sub_category: str
    image_url_1: str
    image_url_2: Optional[str] = None
    image_url_3: Optional[str] = None
    image_url_4: Optional[str] = None
    ai_enabled: bool
    status: ListingStatus
    review_note: Optional[str] = None
    submitted_at: Optional[datetime] = None
    reviewed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    capabilities: Optional[CapabilitiesResponse] = None


class ProductSummary(BaseModel):
    total: int = 0
    current: int = 0  # everything except archived
    draft: int = 0
    pending_review: int = 0
    active: int = 0
    rejected: int = 0
    archived: int = 0
    ai_enabled: int = 0

    @classmethod
    def from_listings(cls, listings: Iterable) -> "ProductSummary":
        """Count listings by status. Items need .status and .ai_enabled."""
        summary = cls()
        for listing in listings:
            key = ListingStatus(listing.status).value
            setattr(summary, key, getattr(summary, key) + 1)
            summary.total += 1
            if listing.ai_enabled:
                summary.ai_enabled += 1
        summary.current = summary.total - summary.archived
        return summary


class RejectRequest(BaseModel):
    note: Optional[str] = Field(default=None, max_length=500)
