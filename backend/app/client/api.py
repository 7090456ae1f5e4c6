"""
Async client for the seller listings API.

Every call carries the seller's bearer token. Calls are never retried: a failure
is translated into an ApiError subclass and the user re-triggers the action.
"""

import logging
from typing import Any, Optional

import httpx

from app.client.errors import (
    ApiError,
    AuthorizationDenied,
    Conflict,
    CredentialRejected,
    IllegalTransitionError,
    NotFound,
    TransportFailure,
    ValidationFailed,
)
from app.core.config import settings
from app.models.product import ListingStatus
from app.schemas.otp import OtpDisplayResponse, OtpIssueResponse
from app.schemas.product import ListingFields, ProductResponse, ProductSummary

logger = logging.getLogger(__name__)


def _detail(resp: httpx.Response) -> Any:
    try:
        body = resp.json()
    except ValueError:
        return resp.text[:200]
    if isinstance(body, dict) and "detail" in body:
        return body["detail"]
    return body


def error_for_response(resp: httpx.Response) -> ApiError:
    """Map an HTTP failure onto the client error taxonomy."""
    code = resp.status_code
    detail = _detail(resp)
    detail_code = detail.get("code") if isinstance(detail, dict) else None
    if isinstance(detail, dict):
        message = detail.get("message") or str(detail)
    elif isinstance(detail, str) and detail:
        message = detail
    else:
        message = f"Request failed with status {code}"

    if code in (401, 403):
        return AuthorizationDenied(status_code=code, detail=detail)
    if code == 400 and detail_code == "illegal_transition":
        return IllegalTransitionError(
            message,
            required_action=detail.get("required_action"),
            status_code=code,
            code=detail_code,
            detail=detail,
        )
    if code == 400 and detail_code == "credential_invalid":
        return CredentialRejected(message, status_code=code, code=detail_code, detail=detail)
    if code == 404:
        return NotFound(message, status_code=code, detail=detail)
    if code == 409:
        return Conflict(message, status_code=code, detail=detail)
    if code == 422:
        return ValidationFailed("Some listing fields are invalid.", status_code=code, detail=detail)
    if code >= 500:
        return TransportFailure(f"Server error ({code}). Please try again.", status_code=code, detail=detail)
    return ValidationFailed(message, status_code=code, code=detail_code, detail=detail)


class SellerApiClient:
    def __init__(
        self,
        token: str,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._client = httpx.AsyncClient(
            base_url=base_url or settings.API_BASE_URL,
            timeout=timeout or settings.API_TIMEOUT_SECONDS,
            headers={"Authorization": f"Bearer {token}"},
            transport=transport,
        )

    async def __aenter__(self) -> "SellerApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        try:
            resp = await self._client.request(method, path, **kwargs)
        except httpx.RequestError as e:
            logger.warning("%s %s failed: %s", method, path, e)
            raise TransportFailure("Could not connect to the API server.") from e
        if resp.status_code >= 400:
            error = error_for_response(resp)
            logger.info("%s %s returned %s: %s", method, path, resp.status_code, error.message)
            raise error
        if resp.status_code == 204 or not resp.content:
            return None
        return resp.json()

    # --- Listing OTP ---

    async def request_otp(self, product_id: str) -> OtpIssueResponse:
        """Payment acknowledged: ask for a fresh OTP bound to product_id."""
        data = await self._request("POST", f"/products/{product_id}/otp")
        return OtpIssueResponse.model_validate(data)

    async def get_otp(self, product_id: str) -> Optional[OtpDisplayResponse]:
        try:
            data = await self._request("GET", f"/products/{product_id}/otp")
        except NotFound:
            return None
        return OtpDisplayResponse.model_validate(data)

    async def discard_otp(self, product_id: str) -> None:
        await self._request("DELETE", f"/products/{product_id}/otp")

    # --- Products ---

    async def list_products(self, status: Optional[ListingStatus] = None) -> list[ProductResponse]:
        params = {"status": ListingStatus(status).value} if status is not None else None
        data = await self._request("GET", "/products", params=params)
        return [ProductResponse.model_validate(item) for item in data]

    async def summary(self) -> ProductSummary:
        return ProductSummary.model_validate(await self._request("GET", "/products/summary"))

    async def create_draft(self, product_id: str, fields: ListingFields, code: str) -> ProductResponse:
        payload = fields.model_dump(mode="json")
        payload.update(product_id=product_id, code=code)
        return ProductResponse.model_validate(await self._request("POST", "/products", json=payload))

    async def get_product(self, product_id: str) -> ProductResponse:
        return ProductResponse.model_validate(await self._request("GET", f"/products/{product_id}"))

    async def patch(self, product_id: str, changes: dict) -> ProductResponse:
        data = await self._request("PATCH", f"/products/{product_id}", json=changes)
        return ProductResponse.model_validate(data)

    async def submit_for_review(self, product_id: str) -> ProductResponse:
        data = await self._request("PATCH", f"/products/{product_id}/submit-review")
        return ProductResponse.model_validate(data)

    async def unpublish(self, product_id: str) -> ProductResponse:
        data = await self._request("PATCH", f"/products/{product_id}/unpublish")
        return ProductResponse.model_validate(data)

    async def archive(self, product_id: str) -> ProductResponse:
        data = await self._request("PATCH", f"/products/{product_id}/archive")
        return ProductResponse.model_validate(data)

    async def delete(self, product_id: str) -> None:
        await self._request("DELETE", f"/products/{product_id}")
