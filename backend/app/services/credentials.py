"""
Listing OTP issuer.

A seller who has paid the listing fee gets a 6-digit code bound to one product
context. The code is valid for LISTING_OTP_TTL_SECONDS and unlocks exactly one
draft creation. Credentials are held in a dict keyed by product id, so there is
never more than one per product: issuing again replaces the previous one.

consume() is the only gate. It checks liveness against the clock under the lock,
so an expired code fails even if the countdown has not ticked yet.
"""

import logging
import math
import re
import secrets
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Dict, List, NamedTuple, Optional

from app.core.config import settings
from app.services.countdown import Clock, Countdown, utcnow

logger = logging.getLogger(__name__)

CODE_LENGTH = 6
CODE_PATTERN = re.compile(r"[0-9]{6}")

ExpiryListener = Callable[[str], None]


def generate_code() -> str:
    return f"{secrets.randbelow(10 ** CODE_LENGTH):0{CODE_LENGTH}d}"


def normalise_code(code: Optional[str]) -> str:
    """Surrounding whitespace removed; the code itself is taken as typed."""
    return str(code or "").strip()


def is_well_formed_code(code: str) -> bool:
    """Exactly six ASCII digits."""
    return CODE_PATTERN.fullmatch(code) is not None


@dataclass
class VerificationCredential:
    product_id: str
    code: str
    issued_at: datetime
    ttl_seconds: int
    consumed: bool = False
    seller_id: Optional[str] = None
    countdown: Optional[Countdown] = field(default=None, repr=False, compare=False)

    @property
    def expires_at(self) -> datetime:
        return self.issued_at + timedelta(seconds=self.ttl_seconds)

    def is_live(self, now: datetime) -> bool:
        return not self.consumed and now < self.expires_at

    def remaining_seconds(self, now: datetime) -> int:
        if not self.is_live(now):
            return 0
        return max(1, math.ceil((self.expires_at - now).total_seconds()))


class CredentialDisplay(NamedTuple):
    code: str
    remaining_seconds: int


class CredentialIssuer:
    """Thread-safe store of listing OTPs, at most one per product."""

    def __init__(
        self,
        ttl_seconds: int = 900,
        clock: Optional[Clock] = None,
        code_factory: Callable[[], str] = generate_code,
    ):
        self.ttl_seconds = ttl_seconds
        self._clock = clock or utcnow
        self._code_factory = code_factory
        self._credentials: Dict[str, VerificationCredential] = {}
        self._expiry_listeners: List[ExpiryListener] = []
        self._lock = threading.Lock()

    def issue(self, product_id: str, seller_id: Optional[str] = None) -> VerificationCredential:
        """Issue a fresh code for product_id, replacing any previous one."""
        if not product_id:
            raise ValueError("product_id is required to issue a listing OTP")

        now = self._clock()
        credential = VerificationCredential(
            product_id=product_id,
            code=self._code_factory(),
            issued_at=now,
            ttl_seconds=self.ttl_seconds,
            seller_id=seller_id,
        )
        credential.countdown = Countdown(
            credential.expires_at,
            on_expire=lambda: self._handle_expiry(credential),
            clock=self._clock,
        )
        with self._lock:
            previous = self._credentials.pop(product_id, None)
            if previous is not None and previous.countdown is not None:
                previous.countdown.cancel()
            self._credentials[product_id] = credential

        if previous is not None:
            logger.info("Listing OTP replaced for product %s", product_id)
        logger.info("Listing OTP issued for product %s (expires in %s s)", product_id, self.ttl_seconds)
        return credential

    def _live(self, product_id: str) -> Optional[VerificationCredential]:
        credential = self._credentials.get(product_id)
        if credential is None or not credential.is_live(self._clock()):
            return None
        return credential

    def current_code(self, product_id: str) -> Optional[str]:
        with self._lock:
            credential = self._live(product_id)
            return credential.code if credential else None

    def remaining_seconds(self, product_id: str) -> int:
        with self._lock:
            credential = self._live(product_id)
            return credential.remaining_seconds(self._clock()) if credential else 0

    def display(self, product_id: str) -> Optional[CredentialDisplay]:
        """Code and remaining time for rendering; None when nothing is live."""
        with self._lock:
            credential = self._live(product_id)
            if credential is None:
                return None
            return CredentialDisplay(credential.code, credential.remaining_seconds(self._clock()))

    def copy(self, product_id: str) -> Optional[str]:
        return self.current_code(product_id)

    def owner_of(self, product_id: str) -> Optional[str]:
        with self._lock:
            credential = self._live(product_id)
            return credential.seller_id if credential else None

    def consume(self, product_id: str, supplied_code: Optional[str], seller_id: Optional[str] = None) -> bool:
        """True exactly once per issued code, while it is live and matches."""
        supplied = normalise_code(supplied_code)
        with self._lock:
            credential = self._live(product_id)
            if credential is None:
                logger.info("Listing OTP rejected for product %s: none live", product_id)
                return False
            if seller_id is not None and credential.seller_id is not None and credential.seller_id != seller_id:
                logger.warning("Listing OTP for product %s presented by another seller", product_id)
                return False
            if not is_well_formed_code(supplied) or not secrets.compare_digest(supplied, credential.code):
                logger.info("Listing OTP rejected for product %s: mismatch", product_id)
                return False
            credential.consumed = True
            if credential.countdown is not None:
                credential.countdown.cancel()
            del self._credentials[product_id]

        logger.info("Listing OTP consumed for product %s", product_id)
        return True

    def discard(self, product_id: str) -> bool:
        """Forget the credential without an expiry notification (form abandoned)."""
        with self._lock:
            credential = self._credentials.pop(product_id, None)
            if credential is None:
                return False
            if credential.countdown is not None:
                credential.countdown.cancel()
        logger.info("Listing OTP discarded for product %s", product_id)
        return True

    def subscribe_expiry(self, listener: ExpiryListener) -> Callable[[], None]:
        with self._lock:
            self._expiry_listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._expiry_listeners:
                    self._expiry_listeners.remove(listener)

        return unsubscribe

    def sweep(self) -> int:
        """Tick every countdown once. Returns the number of credentials still held."""
        with self._lock:
            credentials = list(self._credentials.values())
        for credential in credentials:
            if credential.countdown is not None:
                credential.countdown.tick()
        with self._lock:
            return len(self._credentials)

    def _handle_expiry(self, credential: VerificationCredential) -> None:
        with self._lock:
            # Consumed, replaced or discarded credentials never report expiry
            if credential.consumed or self._credentials.get(credential.product_id) is not credential:
                return
            del self._credentials[credential.product_id]
            listeners = list(self._expiry_listeners)

        logger.info("Listing OTP expired for product %s", credential.product_id)
        for listener in listeners:
            try:
                listener(credential.product_id)
            except Exception:
                logger.exception("Listing OTP expiry listener failed for product %s", credential.product_id)

    def __len__(self) -> int:
        with self._lock:
            return len(self._credentials)


# Global instance
credential_issuer = CredentialIssuer(ttl_seconds=settings.LISTING_OTP_TTL_SECONDS)
