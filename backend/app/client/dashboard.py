"""
Seller dashboard: the seller's listings, their counters, and the per-listing actions.

Which actions a row offers comes from the authorization guard. An action the guard
refuses is reported locally and never sent; anything the API still rejects is
turned into a notification. Nothing is retried.
"""

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, List, Optional

from app.client.api import SellerApiClient
from app.client.errors import ApiError, AuthorizationDenied
from app.client.form import ListingForm
from app.client.notifications import ERROR, SUCCESS, Notifier
from app.models.product import ListingStatus
from app.schemas.product import ProductResponse, ProductSummary
from app.services.authorization import Capabilities, capabilities_for
from app.services.listing_state import IllegalTransition, Trigger, next_status

logger = logging.getLogger(__name__)


@dataclass
class DashboardRow:
    product: ProductResponse
    capabilities: Capabilities

    @property
    def id(self) -> str:
        return self.product.id

    @property
    def status(self) -> ListingStatus:
        return self.product.status


class SellerDashboard:
    def __init__(self, api: SellerApiClient, notifier: Optional[Notifier] = None):
        self.api = api
        self.notify = notifier or Notifier()
        self.rows: List[DashboardRow] = []
        self.summary = ProductSummary()
        self.auth_required = False
        self.loaded = False

    # --- Loading ---

    async def refresh(self) -> bool:
        """Reload the seller's listings. Counters are derived from the same list."""
        try:
            products = await self.api.list_products()
        except ApiError as e:
            self._report("Could Not Load Listings", e)
            return False
        self._set_products(products)
        self.loaded = True
        return True

    def _set_products(self, products: List[ProductResponse]) -> None:
        self.rows = [DashboardRow(p, capabilities_for(p.status)) for p in products]
        self.summary = ProductSummary.from_listings(products)

    def _replace(self, product: ProductResponse) -> None:
        products = [product if row.id == product.id else row.product for row in self.rows]
        if not any(row.id == product.id for row in self.rows):
            products.append(product)
        self._set_products(products)

    def _remove(self, product_id: str) -> None:
        self._set_products([row.product for row in self.rows if row.id != product_id])

    def row(self, product_id: str) -> Optional[DashboardRow]:
        for row in self.rows:
            if row.id == product_id:
                return row
        return None

    def current_listings(self) -> List[DashboardRow]:
        return [row for row in self.rows if row.status != ListingStatus.archived]

    def by_status(self) -> Dict[ListingStatus, List[DashboardRow]]:
        grouped: Dict[ListingStatus, List[DashboardRow]] = {s: [] for s in ListingStatus}
        for row in self.rows:
            grouped[row.status].append(row)
        return grouped

    # --- Actions ---

    def _report(self, title: str, error: ApiError) -> None:
        if isinstance(error, AuthorizationDenied):
            self.auth_required = True
            self.notify(error.title, error.message, ERROR)
            return
        self.notify(title, error.message, ERROR)

    def _refuse_locally(self, product_id: str, trigger: Trigger, failure_title: str) -> Optional[DashboardRow]:
        """Row for product_id if trigger is legal for it; otherwise notify and return None."""
        row = self.row(product_id)
        if row is None:
            self.notify(failure_title, "Listing not found.", ERROR)
            return None
        try:
            next_status(row.status, trigger)
        except IllegalTransition as e:
            self.notify(failure_title, e.message, ERROR)
            return None
        return row

    async def _run(
        self,
        product_id: str,
        trigger: Trigger,
        call: Callable[[str], Awaitable[Optional[ProductResponse]]],
        failure_title: str,
    ) -> Optional[DashboardRow]:
        row = self._refuse_locally(product_id, trigger, failure_title)
        if row is None:
            return None
        try:
            updated = await call(product_id)
        except ApiError as e:
            self._report(failure_title, e)
            return None
        if updated is None:
            self._remove(product_id)
        else:
            self._replace(updated)
        return row

    async def submit_for_review(self, product_id: str) -> bool:
        row = await self._run(product_id, Trigger.submit_for_review, self.api.submit_for_review, "Submission Failed")
        if row is None:
            return False
        self.notify(
            "Submission Successful",
            f"Product '{row.product.name}' is now in 'Pending Review' status, awaiting admin approval.",
            SUCCESS,
        )
        return True

    async def unpublish(self, product_id: str) -> bool:
        row = await self._run(product_id, Trigger.unpublish, self.api.unpublish, "Unpublish Failed")
        if row is None:
            return False
        self.notify(
            "Product Unpublished",
            f"Product '{row.product.name}' is now a Draft and can be edited/deleted.",
            SUCCESS,
        )
        return True

    async def archive(self, product_id: str) -> bool:
        row = await self._run(product_id, Trigger.archive, self.api.archive, "Archive Failed")
        if row is None:
            return False
        self.notify("Product Archived", f"Product '{row.product.name}' was moved to the archive.", SUCCESS)
        return True

    async def delete(self, product_id: str) -> bool:
        row = await self._run(product_id, Trigger.delete, self.api.delete, "Deletion Failed")
        if row is None:
            return False
        self.notify("Product Deleted", f"Product '{row.product.name}' was successfully removed.", SUCCESS)
        return True

    # --- Forms ---

    def new_listing_form(self, **kwargs) -> ListingForm:
        return ListingForm.for_create(self.api, notifier=self.notify, **kwargs)

    def edit_form(self, product_id: str, **kwargs) -> Optional[ListingForm]:
        """Edit form for a listing, or None (with a notice) when it may not be edited."""
        row = self._refuse_locally(product_id, Trigger.edit, "Update Failed")
        if row is None:
            return None
        return ListingForm.for_edit(self.api, row.product, notifier=self.notify, **kwargs)

    def form_saved(self, product: ProductResponse) -> None:
        """Fold a product returned by a form back into the list."""
        self._replace(product)
