"""
Listing status state machine.

    (new) --create--> draft
    draft | rejected --submit_for_review--> pending_review
    pending_review --approve--> active          (admin)
    pending_review --reject--> rejected         (admin)
    pending_review --edit--> draft              (any field change withdraws the review)
    active --unpublish--> draft
    draft | rejected --archive--> archived
    any but active --delete--> (removed)

Seller-side legality comes from the authorization guard; this module only adds
the destination status and the bookkeeping that goes with each transition.
"""

import enum
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional, Tuple

from app.models.product import ListingStatus, Product
from app.services.authorization import capabilities_for


class Trigger(str, enum.Enum):
    create = "create"
    submit_for_review = "submit_for_review"
    approve = "approve"
    reject = "reject"
    edit = "edit"
    unpublish = "unpublish"
    archive = "archive"
    delete = "delete"


# Fields a seller may change through an edit
EDITABLE_FIELDS = (
    "name",
    "description",
    "price",
    "stock",
    "primary_category",
    "sub_category",
    "image_url_1",
    "image_url_2",
    "image_url_3",
    "image_url_4",
    "ai_enabled",
)

_TARGETS: Dict[Tuple[Trigger, ListingStatus], Optional[ListingStatus]] = {
    (Trigger.submit_for_review, ListingStatus.draft): ListingStatus.pending_review,
    (Trigger.submit_for_review, ListingStatus.rejected): ListingStatus.pending_review,
    (Trigger.approve, ListingStatus.pending_review): ListingStatus.active,
    (Trigger.reject, ListingStatus.pending_review): ListingStatus.rejected,
    (Trigger.edit, ListingStatus.draft): ListingStatus.draft,
    (Trigger.edit, ListingStatus.pending_review): ListingStatus.draft,
    (Trigger.edit, ListingStatus.rejected): ListingStatus.rejected,
    (Trigger.edit, ListingStatus.archived): ListingStatus.archived,
    (Trigger.unpublish, ListingStatus.active): ListingStatus.draft,
    (Trigger.archive, ListingStatus.draft): ListingStatus.archived,
    (Trigger.archive, ListingStatus.rejected): ListingStatus.archived,
    (Trigger.delete, ListingStatus.draft): None,
    (Trigger.delete, ListingStatus.pending_review): None,
    (Trigger.delete, ListingStatus.rejected): None,
    (Trigger.delete, ListingStatus.archived): None,
}

_GUARDED = {
    Trigger.edit: "can_edit",
    Trigger.delete: "can_delete",
    Trigger.submit_for_review: "can_submit_for_review",
    Trigger.unpublish: "can_unpublish",
    Trigger.archive: "can_archive",
}


class IllegalTransition(Exception):
    """A trigger that the current status does not allow."""

    def __init__(self, status: ListingStatus, trigger: Trigger, required_action: Optional[str] = None):
        self.status = ListingStatus(status)
        self.trigger = Trigger(trigger)
        self.required_action = required_action
        super().__init__(self.message)

    @property
    def message(self) -> str:
        if self.required_action == "unpublish":
            verb = "edited" if self.trigger == Trigger.edit else "deleted"
            return f"Active listings cannot be {verb}. Unpublish the listing first."
        if self.trigger == Trigger.submit_for_review and self.status == ListingStatus.pending_review:
            return "Listing is already pending review."
        return f"Cannot {self.trigger.value.replace('_', ' ')} a listing in status {self.status.value}."


def _required_action(status: ListingStatus, trigger: Trigger) -> Optional[str]:
    if status == ListingStatus.active and trigger in (Trigger.edit, Trigger.delete):
        return "unpublish"
    return None


def next_status(status: Optional[ListingStatus], trigger: Trigger) -> Optional[ListingStatus]:
    """Destination status for trigger, None when the listing is removed. Raises IllegalTransition.

    status is None only for a product that does not exist yet (create).
    """
    trigger = Trigger(trigger)
    if trigger == Trigger.create:
        if status is not None:
            raise IllegalTransition(status, trigger)
        return ListingStatus.draft
    status = ListingStatus(status)
    capability = _GUARDED.get(trigger)
    if capability is not None and not getattr(capabilities_for(status), capability):
        raise IllegalTransition(status, trigger, _required_action(status, trigger))
    if (trigger, status) not in _TARGETS:
        raise IllegalTransition(status, trigger)
    return _TARGETS[(trigger, status)]


def apply_transition(
    product: Product,
    trigger: Trigger,
    note: Optional[str] = None,
    now: Optional[datetime] = None,
) -> ListingStatus:
    """Validate and apply a status transition. Returns the previous status.

    For delete only legality is checked; the caller removes the row.
    """
    previous = ListingStatus(product.status)
    target = next_status(previous, trigger)
    now = now or datetime.now(timezone.utc)

    if target is not None:
        product.status = target
    if trigger == Trigger.submit_for_review:
        product.submitted_at = now
        product.review_note = None
    elif trigger in (Trigger.approve, Trigger.reject):
        product.reviewed_at = now
        product.review_note = note if trigger == Trigger.reject else None
    return previous


def apply_edit(product: Product, changes: Mapping[str, Any]) -> ListingStatus:
    """Write field changes and apply the edit transition. Returns the previous status.

    A pending listing always drops back to draft, even if the values are unchanged.
    """
    previous = ListingStatus(product.status)
    target = next_status(previous, Trigger.edit)
    for field, value in changes.items():
        if field not in EDITABLE_FIELDS:
            raise ValueError(f"{field} is not an editable listing field")
        setattr(product, field, value)
    product.status = target
    return previous
