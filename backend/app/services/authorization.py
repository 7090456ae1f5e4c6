"""
Which listing mutations are currently legal, as a pure function of status.

Both the API routes and the seller dashboard read this; nothing else decides
whether edit/delete/submit/unpublish is allowed.
"""

from typing import NamedTuple

from app.models.product import ListingStatus


class Capabilities(NamedTuple):
    can_edit: bool
    can_delete: bool
    can_submit_for_review: bool
    can_unpublish: bool
    can_archive: bool


def capabilities_for(status: ListingStatus) -> Capabilities:
    status = ListingStatus(status)
    unlocked = status != ListingStatus.active
    return Capabilities(
        can_edit=unlocked,
        can_delete=unlocked,
        can_submit_for_review=status in (ListingStatus.draft, ListingStatus.rejected),
        can_unpublish=status == ListingStatus.active,
        can_archive=status in (ListingStatus.draft, ListingStatus.rejected),
    )


def can_edit(status: ListingStatus) -> bool:
    return capabilities_for(status).can_edit


def can_delete(status: ListingStatus) -> bool:
    return capabilities_for(status).can_delete


def can_submit_for_review(status: ListingStatus) -> bool:
    return capabilities_for(status).can_submit_for_review


def can_unpublish(status: ListingStatus) -> bool:
    return capabilities_for(status).can_unpublish
