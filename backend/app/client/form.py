"""
Seller listing form: one controller for both "post a new listing" and "edit listing".

A new listing needs the listing OTP: the seller acknowledges the fee, the API
issues a code bound to this form's product context id, a local countdown tracks
its 15 minutes, and submission is enabled only while every field is valid and the
entered code matches the live one. The API consumes the code on creation.
"""

import enum
import logging
import uuid
from typing import Any, Callable, Dict, List, Optional

from pydantic import ValidationError

from app.client.api import SellerApiClient
from app.client.errors import ApiError, CredentialRejected
from app.client.notifications import ERROR, SUCCESS, Notifier
from app.core.config import settings
from app.schemas.product import ListingFields, ProductResponse
from app.services.authorization import capabilities_for
from app.services.categories import primary_categories, sub_categories
from app.services.countdown import Clock, Countdown
from app.services.credentials import CredentialDisplay, is_well_formed_code, normalise_code
from app.services.listing_state import IllegalTransition, Trigger, next_status

logger = logging.getLogger(__name__)

CODE_ERROR_MESSAGE = "Incorrect or expired code"

FIELD_DEFAULTS: Dict[str, Any] = {
    "name": "",
    "description": "",
    "price": None,
    "stock": 1,
    "primary_category": None,
    "sub_category": None,
    "image_url_1": "",
    "image_url_2": "",
    "image_url_3": "",
    "image_url_4": "",
    "ai_enabled": True,
}


class FormMode(str, enum.Enum):
    create = "create"
    edit = "edit"


def _field_errors(values: Dict[str, Any]) -> Dict[str, str]:
    try:
        ListingFields.model_validate(values)
    except ValidationError as e:
        errors: Dict[str, str] = {}
        for err in e.errors():
            field = str(err["loc"][0]) if err["loc"] else "__all__"
            errors.setdefault(field, err["msg"].removeprefix("Value error, "))
        return errors
    return {}


class ListingForm:
    def __init__(
        self,
        api: SellerApiClient,
        mode: FormMode = FormMode.create,
        product_id: Optional[str] = None,
        product: Optional[ProductResponse] = None,
        notifier: Optional[Notifier] = None,
        clock: Optional[Clock] = None,
        auto_tick: bool = True,
    ):
        if mode == FormMode.edit and product is None:
            raise ValueError("An edit form needs the product being edited")
        self.api = api
        self.mode = mode
        self.product = product
        self.product_id = product.id if product is not None else (product_id or str(uuid.uuid4()))
        self.notify = notifier or Notifier()
        self._clock = clock
        self._auto_tick = auto_tick

        self.values: Dict[str, Any] = dict(FIELD_DEFAULTS)
        self.errors: Dict[str, str] = {}
        self.entered_code = ""
        self.payment_acknowledged = False
        self.busy = False  # OTP request in flight
        self.submitting = False
        self.closed = False

        self._live_code: Optional[str] = None
        self._countdown: Optional[Countdown] = None
        self._remaining_listeners: List[Callable[[int], None]] = []

        if product is not None:
            self._load(product)

    @classmethod
    def for_create(cls, api: SellerApiClient, **kwargs) -> "ListingForm":
        return cls(api, mode=FormMode.create, **kwargs)

    @classmethod
    def for_edit(cls, api: SellerApiClient, product: ProductResponse, **kwargs) -> "ListingForm":
        return cls(api, mode=FormMode.edit, product=product, **kwargs)

    def _load(self, product: ProductResponse) -> None:
        for field in FIELD_DEFAULTS:
            value = getattr(product, field)
            self.values[field] = "" if value is None and field.startswith("image_url") else value

    # --- Fields ---

    @property
    def primary_categories(self) -> List[str]:
        return primary_categories()

    @property
    def available_sub_categories(self) -> List[str]:
        return sub_categories(self.values.get("primary_category"))

    def set_field(self, name: str, value: Any) -> Optional[str]:
        """Set one field and validate it. Returns its error message, if any."""
        if name not in FIELD_DEFAULTS:
            raise KeyError(f"Unknown listing field: {name}")
        if name == "primary_category":
            return self.set_primary_category(value)
        self.values[name] = value
        return self._revalidate(name)

    def set_primary_category(self, value: Optional[str]) -> Optional[str]:
        """Select a primary category; the subcategory is reset when it changes."""
        if value != self.values.get("primary_category"):
            self.values["sub_category"] = None
            self.errors.pop("sub_category", None)
        self.values["primary_category"] = value
        return self._revalidate("primary_category")

    def _revalidate(self, name: str) -> Optional[str]:
        message = _field_errors(self.values).get(name)
        if message:
            self.errors[name] = message
        else:
            self.errors.pop(name, None)
        return message

    def validate(self) -> Dict[str, str]:
        """Validate every field; keeps the code error, replaces the rest."""
        code_error = self.errors.get("code")
        self.errors = _field_errors(self.values)
        if code_error:
            self.errors["code"] = code_error
        return self.errors

    @property
    def is_valid(self) -> bool:
        return not _field_errors(self.values)

    # --- Listing OTP ---

    @property
    def remaining_seconds(self) -> int:
        return self._countdown.remaining_seconds if self._countdown is not None else 0

    @property
    def has_live_code(self) -> bool:
        return self._countdown is not None and not self._countdown.done and self.remaining_seconds > 0

    def display(self) -> Optional[CredentialDisplay]:
        """Code and remaining seconds for the OTP panel; None once expired or used."""
        if not self.has_live_code or self._live_code is None:
            return None
        return CredentialDisplay(self._live_code, self.remaining_seconds)

    def copy_code(self) -> Optional[str]:
        display = self.display()
        return display.code if display else None

    def subscribe_remaining(self, listener: Callable[[int], None]) -> Callable[[], None]:
        """Observe the remaining seconds of the current (and any later) OTP."""
        self._remaining_listeners.append(listener)
        unsubscribe_current = self._countdown.subscribe(listener) if self._countdown is not None else None

        def unsubscribe() -> None:
            if listener in self._remaining_listeners:
                self._remaining_listeners.remove(listener)
            if unsubscribe_current is not None:
                unsubscribe_current()

        return unsubscribe

    def enter_code(self, code: str) -> None:
        self.entered_code = code or ""
        self.errors.pop("code", None)

    def _code_matches(self) -> bool:
        if not self.has_live_code:
            return False
        entered = normalise_code(self.entered_code)
        if self._live_code is None:
            # Code was not returned to us; the API is the only judge
            return is_well_formed_code(entered)
        return entered == self._live_code

    async def acknowledge_payment(self) -> bool:
        """Seller says the listing fee is paid: request an OTP for this product context."""
        if self.mode != FormMode.create:
            raise RuntimeError("Only a new listing needs an OTP")
        if self.busy:
            self.notify("OTP Request Pending", "An OTP is already being generated. Please wait.", ERROR)
            return False
        if not self.product_id:
            self.notify("Error", "Product ID is missing. Cannot generate OTP.", ERROR)
            return False

        self.busy = True
        self.payment_acknowledged = True
        try:
            issued = await self.api.request_otp(self.product_id)
        except ApiError as e:
            # An earlier code that is still live stays usable
            self.payment_acknowledged = self.has_live_code
            self.notify("OTP Failure", e.message, ERROR)
            return False
        finally:
            self.busy = False

        self._drop_credential()
        self._live_code = issued.code
        self._start_countdown(issued.remaining_seconds)
        self.notify("OTP Generated", issued.message, SUCCESS)
        return True

    def _start_countdown(self, seconds: int) -> None:
        self._stop_countdown()
        countdown = Countdown.for_seconds(seconds, on_expire=self._on_expired, clock=self._clock)
        for listener in self._remaining_listeners:
            countdown.subscribe(listener)
        self._countdown = countdown
        if self._auto_tick:
            countdown.start(settings.LISTING_OTP_TICK_SECONDS)

    def _stop_countdown(self) -> None:
        if self._countdown is not None:
            self._countdown.cancel()
            self._countdown = None

    def _drop_credential(self) -> None:
        self._stop_countdown()
        self._live_code = None

    def tick(self) -> int:
        """Advance the countdown by hand (when auto_tick is off)."""
        if self._countdown is None:
            return 0
        return self._countdown.tick()

    def _on_expired(self) -> None:
        self._countdown = None
        self._live_code = None
        self.entered_code = ""
        self.payment_acknowledged = False
        self.notify(
            "OTP Expired",
            "The generated OTP has expired. Please acknowledge payment again to generate a new one.",
            ERROR,
        )

    # --- Submission ---

    @property
    def can_submit(self) -> bool:
        if self.submitting or self.closed or not self.is_valid:
            return False
        if self.mode == FormMode.edit:
            return capabilities_for(self.product.status).can_edit
        return self._code_matches()

    async def submit(self) -> Optional[ProductResponse]:
        """Create the draft (new listing) or save the edit. Returns the product on success."""
        if self.submitting or self.closed:
            return None
        if self.validate():
            first = next(iter(self.errors.values()))
            self.notify("Invalid Listing", first, ERROR)
            return None
        if self.mode == FormMode.edit:
            return await self._submit_edit()
        return await self._submit_create()

    async def _submit_create(self) -> Optional[ProductResponse]:
        if not self._code_matches():
            self.errors["code"] = CODE_ERROR_MESSAGE
            self.notify("Invalid OTP", CODE_ERROR_MESSAGE, ERROR)
            return None

        fields = ListingFields.model_validate(self.values)
        self.submitting = True
        try:
            product = await self.api.create_draft(self.product_id, fields, normalise_code(self.entered_code))
        except CredentialRejected:
            self.errors["code"] = CODE_ERROR_MESSAGE
            self.notify("Invalid OTP", CODE_ERROR_MESSAGE, ERROR)
            return None
        except ApiError as e:
            self.notify("Draft Submission Failed", e.message, ERROR)
            return None
        finally:
            self.submitting = False

        # Single use: forget the code and start a fresh listing context
        self._drop_credential()
        self.payment_acknowledged = False
        self.reset()
        self.product_id = str(uuid.uuid4())
        self.notify(
            "Draft Created Successfully!",
            f"Product draft '{product.name}' is now ready for editing or review submission.",
            SUCCESS,
        )
        return product

    async def _submit_edit(self) -> Optional[ProductResponse]:
        try:
            next_status(self.product.status, Trigger.edit)
        except IllegalTransition as e:
            self.notify("Update Failed", e.message, ERROR)
            return None

        changes = ListingFields.model_validate(self.values).model_dump(mode="json")
        self.submitting = True
        try:
            product = await self.api.patch(self.product_id, changes)
        except ApiError as e:
            self.notify("Update Failed", e.message, ERROR)
            return None
        finally:
            self.submitting = False

        self.product = product
        self._load(product)
        self.notify("Update Successful", f"Product '{product.name}' has been updated.", SUCCESS)
        return product

    def reset(self) -> None:
        self.values = dict(FIELD_DEFAULTS)
        self.errors = {}
        self.entered_code = ""

    async def close(self) -> None:
        """Abandon the form: stop the countdown and release the OTP. No product is created."""
        if self.closed:
            return
        self.closed = True
        had_credential = self._countdown is not None
        self._drop_credential()
        if self.mode == FormMode.create and had_credential:
            try:
                await self.api.discard_otp(self.product_id)
            except ApiError as e:
                logger.info("Could not release OTP for %s: %s", self.product_id, e.message)
