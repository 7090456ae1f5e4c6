import httpx
import pytest

from app.client.api import SellerApiClient
from app.client.dashboard import SellerDashboard
from app.client.form import ListingForm
from app.client.notifications import Notifier
from app.models.product import ListingStatus
from conftest import listing_fields


async def create_listing(dashboard: SellerDashboard, clock, **overrides):
    form = dashboard.new_listing_form(clock=clock, auto_tick=False)
    for name, value in listing_fields(**overrides).items():
        form.set_field(name, value)
    await form.acknowledge_payment()
    form.enter_code(form.copy_code())
    product = await form.submit()
    assert product is not None
    dashboard.form_saved(product)
    return product


@pytest.fixture
def dashboard(seller_api):
    return SellerDashboard(seller_api, Notifier())


@pytest.mark.asyncio
async def test_refresh_builds_rows_and_counters(dashboard, clock):
    await create_listing(dashboard, clock)
    await create_listing(dashboard, clock, ai_enabled=False)

    fresh = SellerDashboard(dashboard.api, Notifier())
    assert await fresh.refresh() is True
    assert len(fresh.rows) == 2
    assert fresh.summary.total == 2
    assert fresh.summary.draft == 2
    assert fresh.summary.ai_enabled == 1
    assert all(row.capabilities.can_submit_for_review for row in fresh.rows)


@pytest.mark.asyncio
async def test_submit_for_review_updates_row(dashboard, clock):
    product = await create_listing(dashboard, clock)

    assert await dashboard.submit_for_review(product.id) is True
    row = dashboard.row(product.id)
    assert row.status == ListingStatus.pending_review
    assert not row.capabilities.can_submit_for_review
    assert dashboard.summary.pending_review == 1
    assert dashboard.notify.last.title == "Submission Successful"

    # Guard refuses a second submission without calling the API
    assert await dashboard.submit_for_review(product.id) is False
    assert dashboard.notify.last.message == "Listing is already pending review."


@pytest.mark.asyncio
async def test_active_listing_must_be_unpublished_before_delete(dashboard, clock, client, admin_headers):
    product = await create_listing(dashboard, clock)
    await dashboard.submit_for_review(product.id)
    client.patch(f"/admin/products/{product.id}/approve", headers=admin_headers)
    await dashboard.refresh()

    row = dashboard.row(product.id)
    assert row.status == ListingStatus.active
    assert not row.capabilities.can_delete
    assert dashboard.edit_form(product.id) is None
    assert dashboard.notify.last.title == "Update Failed"

    assert await dashboard.delete(product.id) is False
    assert dashboard.notify.last.title == "Deletion Failed"
    assert dashboard.notify.last.message == "Active listings cannot be deleted. Unpublish the listing first."

    assert await dashboard.unpublish(product.id) is True
    assert dashboard.row(product.id).status == ListingStatus.draft
    assert await dashboard.delete(product.id) is True
    assert dashboard.row(product.id) is None
    assert dashboard.summary.total == 0
    assert dashboard.notify.last.title == "Product Deleted"


@pytest.mark.asyncio
async def test_server_refusal_is_reported(dashboard, clock, client, admin_headers):
    product = await create_listing(dashboard, clock)
    await dashboard.submit_for_review(product.id)
    # Approved elsewhere; the local row still says pending
    client.patch(f"/admin/products/{product.id}/approve", headers=admin_headers)

    assert await dashboard.delete(product.id) is False
    assert dashboard.notify.last.title == "Deletion Failed"
    assert "Unpublish" in dashboard.notify.last.message
    assert dashboard.row(product.id) is not None


@pytest.mark.asyncio
async def test_archive_hides_from_current_listings(dashboard, clock):
    kept = await create_listing(dashboard, clock)
    archived = await create_listing(dashboard, clock)

    assert await dashboard.archive(archived.id) is True
    assert [row.id for row in dashboard.current_listings()] == [kept.id]
    assert dashboard.summary.archived == 1
    assert dashboard.summary.current == 1
    assert [row.id for row in dashboard.by_status()[ListingStatus.archived]] == [archived.id]


@pytest.mark.asyncio
async def test_edit_form_for_draft(dashboard, clock):
    product = await create_listing(dashboard, clock)
    form = dashboard.edit_form(product.id)
    assert isinstance(form, ListingForm)
    assert form.product_id == product.id
    assert form.notify is dashboard.notify


@pytest.mark.asyncio
async def test_expired_token_asks_for_login():
    transport = httpx.MockTransport(lambda request: httpx.Response(401, json={"detail": "Invalid or expired token"}))
    async with SellerApiClient("stale", base_url="http://api", transport=transport) as api:
        dashboard = SellerDashboard(api, Notifier())
        assert await dashboard.refresh() is False

    assert dashboard.auth_required
    assert dashboard.notify.last.title == "Authentication Required"
    assert dashboard.notify.last.message == "Please log in again."


@pytest.mark.asyncio
async def test_unknown_listing(dashboard):
    assert await dashboard.unpublish("missing") is False
    assert dashboard.notify.last.message == "Listing not found."
