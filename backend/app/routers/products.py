import logging
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from pydantic import ValidationError
from sqlalchemy.orm import Session

from app.core.auth import Principal, get_current_seller
from app.core.config import settings
from app.core.deps import get_db
from app.models.audit_log import AuditLog
from app.models.product import ListingStatus, Product
from app.schemas.otp import OtpDisplayResponse, OtpIssueResponse
from app.schemas.product import (
    CapabilitiesResponse,
    ListingFields,
    ProductCreate,
    ProductResponse,
    ProductSummary,
    ProductUpdate,
)
from app.services.authorization import capabilities_for
from app.services.credentials import credential_issuer
from app.services.listing_state import (
    EDITABLE_FIELDS,
    IllegalTransition,
    Trigger,
    apply_edit,
    apply_transition,
    next_status,
)

logger = logging.getLogger(__name__)

router = APIRouter()

CREDENTIAL_INVALID_MESSAGE = "Incorrect or expired code"


def product_response(product: Product) -> ProductResponse:
    data = ProductResponse.model_validate(product)
    data.capabilities = CapabilitiesResponse(**capabilities_for(product.status)._asdict())
    return data


def illegal_transition_error(exc: IllegalTransition) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail={
            "code": "illegal_transition",
            "message": exc.message,
            "status": exc.status.value,
            "required_action": exc.required_action,
        },
    )


def _validation_errors(exc: ValidationError) -> list:
    return [
        {"loc": list(err["loc"]), "msg": err["msg"], "type": err["type"]}
        for err in exc.errors()
    ]


def record_audit(
    db: Session,
    trigger: Trigger,
    actor: Principal,
    product_id: str,
    from_status: Optional[ListingStatus],
    to_status: Optional[ListingStatus],
    note: Optional[str] = None,
) -> None:
    db.add(
        AuditLog(
            id=str(uuid.uuid4()),
            product_id=product_id,
            action=f"product.{trigger.value}",
            actor_role=actor.role,
            actor_id=actor.id,
            from_status=from_status.value if from_status else None,
            to_status=to_status.value if to_status else None,
            note=note,
        )
    )


def _get_owned_product_or_404(product_id: str, seller: Principal, db: Session) -> Product:
    product = (
        db.query(Product)
        .filter(Product.id == product_id, Product.seller_id == seller.id)
        .first()
    )
    if not product:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Product not found")
    return product


def _transition(product: Product, trigger: Trigger, seller: Principal, db: Session) -> ProductResponse:
    try:
        previous = apply_transition(product, trigger)
    except IllegalTransition as e:
        logger.info("Rejected %s for product %s in status %s", trigger.value, product.id, e.status.value)
        raise illegal_transition_error(e) from e
    record_audit(db, trigger, seller, product.id, previous, product.status)
    db.commit()
    db.refresh(product)
    logger.info("Product %s: %s -> %s", product.id, previous.value, product.status.value)
    return product_response(product)


# --- Listing OTP (payment acknowledged -> code) ---


@router.post("/{product_id}/otp", response_model=OtpIssueResponse)
def generate_listing_otp(
    product_id: str,
    db: Session = Depends(get_db),
    seller: Principal = Depends(get_current_seller),
):
    """
    Seller acknowledged the listing fee for this product context: issue a 6-digit OTP.
    Replaces any earlier code for the same product. Valid for LISTING_OTP_TTL_SECONDS.
    """
    if db.query(Product.id).filter(Product.id == product_id).first():
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Product already created; an OTP is only needed for a new listing.",
        )
    owner = credential_issuer.owner_of(product_id)
    if owner is not None and owner != seller.id:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Product id already in use")

    credential = credential_issuer.issue(product_id, seller_id=seller.id)
    return OtpIssueResponse(
        product_id=product_id,
        code=credential.code if settings.EXPOSE_OTP_CODE else None,
        remaining_seconds=credential.remaining_seconds(credential.issued_at),
        expires_at=credential.expires_at,
        message=(
            f"Listing fee of {settings.LISTING_FEE_LABEL} acknowledged (MoMo {settings.LISTING_FEE_PHONE}). "
            "The OTP is ready for confirmation."
        ),
    )


@router.get("/{product_id}/otp", response_model=OtpDisplayResponse)
def get_listing_otp(
    product_id: str,
    seller: Principal = Depends(get_current_seller),
):
    """Live code and remaining seconds for the OTP panel. 404 once expired or used."""
    display = credential_issuer.display(product_id)
    if display is None or credential_issuer.owner_of(product_id) not in (None, seller.id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No active OTP for this product")
    return OtpDisplayResponse(code=display.code, remaining_seconds=display.remaining_seconds)


@router.delete("/{product_id}/otp", status_code=status.HTTP_204_NO_CONTENT)
def discard_listing_otp(
    product_id: str,
    seller: Principal = Depends(get_current_seller),
):
    """Form abandoned: drop the OTP. No product state is touched."""
    if credential_issuer.owner_of(product_id) in (None, seller.id):
        credential_issuer.discard(product_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# --- Products ---


@router.get("", response_model=list[ProductResponse])
def list_products(
    status_filter: Optional[ListingStatus] = Query(None, alias="status"),
    db: Session = Depends(get_db),
    seller: Principal = Depends(get_current_seller),
):
    """Seller's own listings, newest first."""
    query = db.query(Product).filter(Product.seller_id == seller.id)
    if status_filter is not None:
        query = query.filter(Product.status == status_filter)
    products = query.order_by(Product.created_at.desc(), Product.id).all()
    return [product_response(p) for p in products]


@router.get("/summary", response_model=ProductSummary)
def product_summary(
    db: Session = Depends(get_db),
    seller: Principal = Depends(get_current_seller),
):
    """Dashboard counters for the seller's listings."""
    rows = db.query(Product.status, Product.ai_enabled).filter(Product.seller_id == seller.id).all()
    return ProductSummary.from_listings(rows)


@router.post("", response_model=ProductResponse, status_code=status.HTTP_201_CREATED)
def create_product(
    body: ProductCreate,
    db: Session = Depends(get_db),
    seller: Principal = Depends(get_current_seller),
):
    """
    Create a draft listing. The body carries the product context id and the OTP;
    the OTP is consumed here and cannot be used again.
    """
    if db.query(Product.id).filter(Product.id == body.product_id).first():
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Product already exists")

    if not credential_issuer.consume(body.product_id, body.code, seller_id=seller.id):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"code": "credential_invalid", "message": CREDENTIAL_INVALID_MESSAGE},
        )

    product = Product(
        id=body.product_id,
        seller_id=seller.id,
        status=next_status(None, Trigger.create),
        **body.model_dump(include=set(EDITABLE_FIELDS)),
    )
    db.add(product)
    record_audit(db, Trigger.create, seller, product.id, None, product.status)
    db.commit()
    db.refresh(product)
    logger.info("Draft %s created by seller %s", product.id, seller.id)
    return product_response(product)


@router.get("/{product_id}", response_model=ProductResponse)
def get_product(
    product_id: str,
    db: Session = Depends(get_db),
    seller: Principal = Depends(get_current_seller),
):
    return product_response(_get_owned_product_or_404(product_id, seller, db))


@router.patch("/{product_id}", response_model=ProductResponse)
def update_product(
    product_id: str,
    body: ProductUpdate,
    db: Session = Depends(get_db),
    seller: Principal = Depends(get_current_seller),
):
    """
    Edit listing fields. Refused while active (unpublish first).
    Any edit of a listing pending review withdraws it back to draft.
    """
    product = _get_owned_product_or_404(product_id, seller, db)
    changes = body.model_dump(exclude_unset=True)

    try:
        next_status(product.status, Trigger.edit)
    except IllegalTransition as e:
        raise illegal_transition_error(e) from e

    merged = {field: getattr(product, field) for field in EDITABLE_FIELDS}
    merged.update(changes)
    try:
        validated = ListingFields.model_validate(merged)
    except ValidationError as e:
        raise HTTPException(
            status_code=422,
            detail=_validation_errors(e),
        ) from e
    previous = apply_edit(product, {field: getattr(validated, field) for field in changes})

    record_audit(db, Trigger.edit, seller, product.id, previous, product.status)
    db.commit()
    db.refresh(product)
    if previous != product.status:
        logger.info("Product %s edited while %s; now %s", product.id, previous.value, product.status.value)
    return product_response(product)


@router.patch("/{product_id}/submit-review", response_model=ProductResponse)
def submit_for_review(
    product_id: str,
    db: Session = Depends(get_db),
    seller: Principal = Depends(get_current_seller),
):
    """Draft or rejected listing goes to the admin review queue."""
    product = _get_owned_product_or_404(product_id, seller, db)
    return _transition(product, Trigger.submit_for_review, seller, db)


@router.patch("/{product_id}/unpublish", response_model=ProductResponse)
def unpublish_product(
    product_id: str,
    db: Session = Depends(get_db),
    seller: Principal = Depends(get_current_seller),
):
    """Take an active listing offline; it reverts to draft and can be edited or deleted."""
    product = _get_owned_product_or_404(product_id, seller, db)
    return _transition(product, Trigger.unpublish, seller, db)


@router.patch("/{product_id}/archive", response_model=ProductResponse)
def archive_product(
    product_id: str,
    db: Session = Depends(get_db),
    seller: Principal = Depends(get_current_seller),
):
    product = _get_owned_product_or_404(product_id, seller, db)
    return _transition(product, Trigger.archive, seller, db)


@router.delete("/{product_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_product(
    product_id: str,
    db: Session = Depends(get_db),
    seller: Principal = Depends(get_current_seller),
):
    """Permanently delete a listing. Active listings must be unpublished first."""
    product = _get_owned_product_or_404(product_id, seller, db)
    try:
        previous = apply_transition(product, Trigger.delete)
    except IllegalTransition as e:
        raise illegal_transition_error(e) from e
    db.delete(product)
    record_audit(db, Trigger.delete, seller, product_id, previous, None)
    db.commit()
    logger.info("Product %s deleted by seller %s", product_id, seller.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
