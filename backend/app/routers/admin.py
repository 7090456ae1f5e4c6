import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from app.core.auth import Principal, get_current_admin
from app.core.deps import get_db
from app.models.product import ListingStatus, Product
from app.routers.products import illegal_transition_error, product_response, record_audit
from app.schemas.product import ProductResponse, RejectRequest
from app.services.listing_state import IllegalTransition, Trigger, apply_transition

logger = logging.getLogger(__name__)

router = APIRouter()


def _get_product_or_404(product_id: str, db: Session) -> Product:
    product = db.query(Product).filter(Product.id == product_id).first()
    if not product:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Product not found")
    return product


def _review(product: Product, trigger: Trigger, admin: Principal, db: Session, note: Optional[str] = None):
    try:
        previous = apply_transition(product, trigger, note=note)
    except IllegalTransition as e:
        raise illegal_transition_error(e) from e
    record_audit(db, trigger, admin, product.id, previous, product.status, note=note)
    db.commit()
    db.refresh(product)
    logger.info("Admin %s: product %s %s -> %s", admin.id, product.id, previous.value, product.status.value)
    return product_response(product)


@router.get("/products", response_model=list[ProductResponse])
def list_review_queue(
    status_filter: ListingStatus = Query(ListingStatus.pending_review, alias="status"),
    db: Session = Depends(get_db),
    admin: Principal = Depends(get_current_admin),
):
    """Listings awaiting review (or any other status), oldest submission first."""
    products = (
        db.query(Product)
        .filter(Product.status == status_filter)
        .order_by(Product.submitted_at.asc(), Product.id)
        .all()
    )
    return [product_response(p) for p in products]


@router.patch("/products/{product_id}/approve", response_model=ProductResponse)
def approve_product(
    product_id: str,
    db: Session = Depends(get_db),
    admin: Principal = Depends(get_current_admin),
):
    """Pending listing goes live."""
    return _review(_get_product_or_404(product_id, db), Trigger.approve, admin, db)


@router.patch("/products/{product_id}/reject", response_model=ProductResponse)
def reject_product(
    product_id: str,
    body: Optional[RejectRequest] = None,
    db: Session = Depends(get_db),
    admin: Principal = Depends(get_current_admin),
):
    """Pending listing is sent back to the seller; the note explains why."""
    note = body.note if body else None
    return _review(_get_product_or_404(product_id, db), Trigger.reject, admin, db, note=note)
