"""
Stamp card lookup with email verification and a client-side identifier cache.

Flow:
    INPUT_IDENTIFIER --(email)--> SENDING_CODE --> CODE_INPUT --> RESOLVED
    INPUT_IDENTIFIER --(referral code)------------------------> RESOLVED

A cached identifier younger than the cache TTL skips straight to a
lookup when the flow starts. Successful lookups refresh the cache;
failed lookups and logout clear it.
"""

import logging
import re
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Callable, MutableMapping, Optional, Protocol

from barbershop.clients.errors import BackendError, FunctionCallError
from barbershop.clients.store import DataStore
from barbershop.config import settings
from barbershop.schemas.loyalty_schema import StampCard

logger = logging.getLogger(__name__)

CACHE_IDENTIFIER_KEY = "stampcard_identifier"
CACHE_TIMESTAMP_KEY = "stampcard_timestamp"

REQUEST_EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

NOT_FOUND_MESSAGE = (
    "No stamp card was found with that email address or referral code. "
    "Check what you entered and try again."
)
LOOKUP_FAILED_MESSAGE = (
    "Something went wrong while fetching the stamp card. "
    "Check your connection and try again."
)
SEND_CODE_FAILED_MESSAGE = (
    "Sending the verification code failed. Check your connection and try again."
)
VERIFY_FAILED_MESSAGE = (
    "Checking the verification code failed. Check your connection and try again."
)
INVALID_CODE_MESSAGE = "Invalid or expired verification code. Request a new code or check the code."
REQUEST_FAILED_MESSAGE = "Sending the request failed. Check your connection and try again."


class LoyaltyState(str, Enum):
    INPUT_IDENTIFIER = "input_identifier"
    SENDING_CODE = "sending_code"
    CODE_INPUT = "code_input"
    RESOLVED = "resolved"


class VerificationGateway(Protocol):
    async def send_verification_code(self, email: str) -> Any: ...

    async def verify_code(self, email: str, code: str) -> Any: ...

    async def submit_stamp_card_request(self, name: str, email: str) -> Any: ...


def _epoch_ms(moment: datetime) -> int:
    return int(moment.timestamp() * 1000)


class IdentifierCache:
    """The last resolved identifier plus when it was stored (epoch ms)."""

    def __init__(
        self,
        storage: Optional[MutableMapping[str, str]] = None,
        ttl_hours: int = settings.booking.lookup_cache_ttl_hours,
    ) -> None:
        self._storage: MutableMapping[str, str] = storage if storage is not None else {}
        self._ttl = timedelta(hours=ttl_hours)

    def get(self, now: datetime) -> Optional[str]:
        """Return the cached identifier if still fresh; stale entries are discarded."""
        identifier = self._storage.get(CACHE_IDENTIFIER_KEY)
        stamp = self._storage.get(CACHE_TIMESTAMP_KEY)
        if not identifier or not stamp:
            return None
        try:
            age_ms = _epoch_ms(now) - int(stamp)
        except ValueError:
            self.clear()
            return None
        if age_ms >= self._ttl.total_seconds() * 1000:
            logger.debug("Identifier cache expired")
            self.clear()
            return None
        return identifier

    def set(self, identifier: str, now: datetime) -> None:
        self._storage[CACHE_IDENTIFIER_KEY] = identifier
        self._storage[CACHE_TIMESTAMP_KEY] = str(_epoch_ms(now))

    def clear(self) -> None:
        self._storage.pop(CACHE_IDENTIFIER_KEY, None)
        self._storage.pop(CACHE_TIMESTAMP_KEY, None)


class LoyaltyFlow:
    """Client-side state for looking up a stamp card."""

    def __init__(
        self,
        store: DataStore,
        gateway: VerificationGateway,
        cache: IdentifierCache,
        total_stamps: int = settings.booking.stamps_per_card,
        now: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self._store = store
        self._gateway = gateway
        self._cache = cache
        self._now = now
        self.total_stamps = total_stamps
        self.state = LoyaltyState.INPUT_IDENTIFIER
        self.stamp_card: Optional[StampCard] = None
        self.pending_email: Optional[str] = None
        self.code_input = ""
        self._clear_messages()
        self.request_error = ""
        self.request_success = False

    def _clear_messages(self) -> None:
        self.error_message = ""
        self.verification_error = ""
        self.api_error = ""

    @property
    def stamps_remaining(self) -> Optional[int]:
        if self.stamp_card is None:
            return None
        return self.stamp_card.stamps_remaining(self.total_stamps)

    async def start(self) -> LoyaltyState:
        """Resume from a fresh cached identifier, if any."""
        cached = self._cache.get(self._now())
        if cached:
            logger.debug("Resuming stamp card lookup from cache")
            await self.lookup(cached)
        return self.state

    async def submit_identifier(self, identifier: str) -> LoyaltyState:
        """Email addresses go through verification; anything else is a referral code."""
        self._clear_messages()
        identifier = identifier.strip()
        if not identifier:
            self.error_message = NOT_FOUND_MESSAGE
            return self.state
        if "@" in identifier:
            return await self._send_code(identifier)
        return await self.lookup(identifier)

    async def _send_code(self, email: str) -> LoyaltyState:
        previous = self.state
        self.state = LoyaltyState.SENDING_CODE
        try:
            await self._gateway.send_verification_code(email)
        except FunctionCallError as exc:
            self.state = previous
            if exc.is_server_side:
                self.api_error = SEND_CODE_FAILED_MESSAGE
            else:
                self.error_message = exc.message or SEND_CODE_FAILED_MESSAGE
            return self.state
        except BackendError as exc:
            logger.error("Sending verification code failed: %s", exc)
            self.state = previous
            self.api_error = SEND_CODE_FAILED_MESSAGE
            return self.state

        self.pending_email = email
        self.code_input = ""
        self.state = LoyaltyState.CODE_INPUT
        return self.state

    async def submit_code(self, code: str) -> LoyaltyState:
        self._clear_messages()
        self.code_input = code
        if self.state != LoyaltyState.CODE_INPUT or self.pending_email is None:
            return self.state
        if not code.strip():
            self.verification_error = "Enter the verification code"
            return self.state

        try:
            await self._gateway.verify_code(self.pending_email, code.strip())
        except FunctionCallError as exc:
            if exc.is_server_side:
                self.api_error = VERIFY_FAILED_MESSAGE
            else:
                self.verification_error = exc.message or INVALID_CODE_MESSAGE
            return self.state
        except BackendError as exc:
            logger.error("Verifying code failed: %s", exc)
            self.api_error = VERIFY_FAILED_MESSAGE
            return self.state

        return await self.lookup(self.pending_email)

    async def resend_code(self) -> LoyaltyState:
        """Issue a fresh code for the pending email and clear the code input."""
        self.code_input = ""
        self.verification_error = ""
        if self.pending_email is None:
            return self.state
        return await self._send_code(self.pending_email)

    async def lookup(self, identifier: str) -> LoyaltyState:
        """Find a card by email or referral code (case-insensitive)."""
        try:
            cards = await self._store.find_stamp_cards(identifier)
        except BackendError as exc:
            logger.error("Stamp card lookup failed: %s", exc)
            self.api_error = LOOKUP_FAILED_MESSAGE
            self._cache.clear()
            self.state = LoyaltyState.INPUT_IDENTIFIER
            return self.state

        if not cards:
            self.error_message = NOT_FOUND_MESSAGE
            self._cache.clear()
            self.state = LoyaltyState.INPUT_IDENTIFIER
            return self.state

        self.stamp_card = cards[0]
        self.pending_email = None
        self._cache.set(identifier, self._now())
        self.state = LoyaltyState.RESOLVED
        logger.info("Stamp card %s resolved", self.stamp_card.id)
        return self.state

    def logout(self) -> None:
        self._cache.clear()
        self.reset()

    def reset(self) -> None:
        self.state = LoyaltyState.INPUT_IDENTIFIER
        self.stamp_card = None
        self.pending_email = None
        self.code_input = ""
        self._clear_messages()
        self.request_error = ""
        self.request_success = False

    async def request_stamp_card(self, name: str, email: str) -> bool:
        """Ask staff for a new card. Input is checked before any call is made."""
        self.request_error = ""
        self.api_error = ""
        self.request_success = False
        name, email = name.strip(), email.strip()
        if not name or not email:
            self.request_error = "Name and email address are required"
            return False
        if not REQUEST_EMAIL_PATTERN.match(email):
            self.request_error = "Invalid email address"
            return False

        try:
            await self._gateway.submit_stamp_card_request(name, email)
        except FunctionCallError as exc:
            if exc.is_server_side:
                self.api_error = REQUEST_FAILED_MESSAGE
            else:
                self.request_error = exc.message
            return False
        except BackendError as exc:
            logger.error("Stamp card request failed: %s", exc)
            self.api_error = REQUEST_FAILED_MESSAGE
            return False

        self.request_success = True
        return True
