"""
Data store clients for services, bookings, availability and loyalty records.

``SupabaseStore`` talks to the hosted PostgREST endpoint over httpx.
``InMemoryStore`` keeps the same tables in dicts; it backs the tests
and the offline console demo.
"""

import logging
import re
import uuid
from datetime import date, datetime, timezone
from typing import Any, Iterable, Optional, Protocol

import httpx

from barbershop.clients.errors import NetworkError, UnknownError, server_error_from_payload
from barbershop.schemas.booking_schema import (
    AvailabilityBlock,
    BookingRecord,
    BookingServiceLink,
    BookingStatus,
)
from barbershop.schemas.loyalty_schema import StampCard, StampCardRequest, VerificationCode
from barbershop.schemas.service_schema import Service

logger = logging.getLogger(__name__)

_ADD_ON_ORDER = ["beard_add_on", "general_add_on", "hair_add_on", "kid_add_on"]


class DataStore(Protocol):
    """Operations the booking and loyalty logic needs from the backend."""

    async def list_active_services(self) -> list[Service]: ...

    async def list_bookings(
        self, start: date, end: date, statuses: Iterable[BookingStatus]
    ) -> list[BookingRecord]: ...

    async def list_booked_blocks(self, start: date, end: date) -> list[AvailabilityBlock]: ...

    async def insert_booking(self, booking: BookingRecord) -> BookingRecord: ...

    async def insert_booking_services(self, links: list[BookingServiceLink]) -> None: ...

    async def find_stamp_cards(self, identifier: str) -> list[StampCard]: ...

    async def find_stamp_card_by_email(self, email: str) -> Optional[StampCard]: ...

    async def upsert_verification_code(
        self, email: str, code: str, expires_at: datetime
    ) -> None: ...

    async def find_live_verification_code(
        self, email: str, code: str, now: datetime
    ) -> Optional[VerificationCode]: ...

    async def delete_verification_code(self, code_id: str) -> None: ...

    async def find_pending_stamp_card_request(self, email: str) -> Optional[StampCardRequest]: ...

    async def insert_stamp_card_request(self, name: str, email: str) -> StampCardRequest: ...


def _quote(value: str) -> str:
    """Quote a value for a PostgREST filter so commas and parens stay literal."""
    return '"' + value.replace('"', "") + '"'


# LIKE wildcards plus PostgREST's `*` alias for `%`.
_LIKE_SPECIAL = re.compile(r"([\\%_*])")


def _ilike_exact(value: str) -> str:
    """Quoted ``ilike`` operand that matches ``value`` literally, ignoring case.

    Each wildcard gets a backslash; the backslash itself is doubled because
    PostgREST unescapes quoted values once.
    """
    return _quote(_LIKE_SPECIAL.sub(r"\\\\\1", value.replace('"', "")))


def _same_text(value: Optional[str], other: str) -> bool:
    return value is not None and value.lower() == other.lower()


def card_matches(card: StampCard, identifier: str) -> bool:
    """Exact, case-insensitive match on email or referral code."""
    return _same_text(card.email, identifier) or _same_text(card.referral_code, identifier)


class SupabaseStore:
    """PostgREST client for the hosted Supabase project."""

    def __init__(
        self,
        url: str,
        api_key: str,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 10.0,
    ) -> None:
        self._client = client or httpx.AsyncClient(
            base_url=f"{url.rstrip('/')}/rest/v1",
            headers={"apikey": api_key, "Authorization": f"Bearer {api_key}"},
            timeout=timeout,
        )

    @classmethod
    def from_settings(cls, settings: Any, service_role: bool = False) -> "SupabaseStore":
        key = settings.store.service_role_key if service_role else settings.store.anon_key
        return cls(settings.store.url, key, timeout=settings.http_timeout_seconds)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "SupabaseStore":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def _request(
        self,
        method: str,
        table: str,
        params: Optional[list[tuple[str, str]]] = None,
        json: Any = None,
        prefer: Optional[str] = None,
    ) -> Any:
        headers = {"Prefer": prefer} if prefer else {}
        try:
            response = await self._client.request(
                method, f"/{table}", params=params, json=json, headers=headers
            )
        except httpx.TransportError as exc:
            logger.warning("Store %s %s failed in transport: %s", method, table, exc)
            raise NetworkError(str(exc) or type(exc).__name__) from exc

        if response.is_error:
            try:
                payload = response.json()
            except ValueError:
                payload = response.text
            logger.error("Store %s %s returned %d", method, table, response.status_code)
            raise server_error_from_payload(payload, response.status_code)

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise UnknownError(response.text) from exc

    async def list_active_services(self) -> list[Service]:
        rows = await self._request(
            "GET",
            "services",
            params=[
                ("select", "id,name,discerption,price,duration_minutes,category,is_active,add_on_type"),
                ("is_active", "eq.true"),
                ("order", "add_on_type.asc"),
            ],
        )
        return [Service.model_validate(row) for row in rows or []]

    async def list_bookings(
        self, start: date, end: date, statuses: Iterable[BookingStatus]
    ) -> list[BookingRecord]:
        status_list = ",".join(BookingStatus(s).value for s in statuses)
        rows = await self._request(
            "GET",
            "bookings",
            params=[
                ("select", "id,booking_date,booking_time,end_at_time,status,total_duration_minutes"),
                ("booking_date", f"gte.{start.isoformat()}"),
                ("booking_date", f"lte.{end.isoformat()}"),
                ("status", f"in.({status_list})"),
            ],
        )
        return [BookingRecord.model_validate(row) for row in rows or []]

    async def list_booked_blocks(self, start: date, end: date) -> list[AvailabilityBlock]:
        rows = await self._request(
            "GET",
            "availability",
            params=[
                ("select", "*"),
                ("date", f"gte.{start.isoformat()}"),
                ("date", f"lte.{end.isoformat()}"),
                ("is_booked", "eq.true"),
            ],
        )
        return [AvailabilityBlock.model_validate(row) for row in rows or []]

    async def insert_booking(self, booking: BookingRecord) -> BookingRecord:
        payload = booking.model_dump(
            mode="json", exclude={"id", "created_at", "updated_at"}, exclude_none=True
        )
        rows = await self._request(
            "POST", "bookings", json=[payload], prefer="return=representation"
        )
        if not rows:
            raise UnknownError(rows)
        return BookingRecord.model_validate(rows[0])

    async def insert_booking_services(self, links: list[BookingServiceLink]) -> None:
        await self._request(
            "POST",
            "booking_services",
            json=[link.model_dump() for link in links],
            prefer="return=minimal",
        )

    async def find_stamp_cards(self, identifier: str) -> list[StampCard]:
        quoted = _ilike_exact(identifier)
        rows = await self._request(
            "GET",
            "stamp_cards",
            params=[
                ("select", "*"),
                ("or", f"(email.ilike.{quoted},referral_code.ilike.{quoted})"),
            ],
        )
        cards = [StampCard.model_validate(row) for row in rows or []]
        return [card for card in cards if card_matches(card, identifier)]

    async def find_stamp_card_by_email(self, email: str) -> Optional[StampCard]:
        rows = await self._request(
            "GET",
            "stamp_cards",
            params=[("select", "*"), ("email", f"ilike.{_ilike_exact(email)}")],
        )
        for row in rows or []:
            card = StampCard.model_validate(row)
            if _same_text(card.email, email):
                return card
        return None

    async def upsert_verification_code(self, email: str, code: str, expires_at: datetime) -> None:
        await self._request(
            "POST",
            "email_verification_codes",
            params=[("on_conflict", "email")],
            json={"email": email.lower(), "code": code, "expires_at": expires_at.isoformat()},
            prefer="resolution=merge-duplicates,return=minimal",
        )

    async def find_live_verification_code(
        self, email: str, code: str, now: datetime
    ) -> Optional[VerificationCode]:
        rows = await self._request(
            "GET",
            "email_verification_codes",
            params=[
                ("select", "*"),
                ("email", f"eq.{email.lower()}"),
                ("code", f"eq.{code}"),
                ("expires_at", f"gt.{now.isoformat()}"),
                ("limit", "1"),
            ],
        )
        return VerificationCode.model_validate(rows[0]) if rows else None

    async def delete_verification_code(self, code_id: str) -> None:
        await self._request(
            "DELETE", "email_verification_codes", params=[("id", f"eq.{code_id}")]
        )

    async def find_pending_stamp_card_request(self, email: str) -> Optional[StampCardRequest]:
        rows = await self._request(
            "GET",
            "stamp_card_requests",
            params=[
                ("select", "*"),
                ("email", f"ilike.{_ilike_exact(email)}"),
                ("status", "eq.pending"),
            ],
        )
        for row in rows or []:
            request = StampCardRequest.model_validate(row)
            if _same_text(request.email, email):
                return request
        return None

    async def insert_stamp_card_request(self, name: str, email: str) -> StampCardRequest:
        rows = await self._request(
            "POST",
            "stamp_card_requests",
            json={"name": name, "email": email, "status": "pending"},
            prefer="return=representation",
        )
        if not rows:
            raise UnknownError(rows)
        return StampCardRequest.model_validate(rows[0])


def _new_id() -> str:
    return str(uuid.uuid4())


class InMemoryStore:
    """Dict-backed store with the same semantics as the hosted tables."""

    def __init__(self) -> None:
        self.services: dict[str, Service] = {}
        self.bookings: dict[str, BookingRecord] = {}
        self.booking_services: list[BookingServiceLink] = []
        self.blocks: list[AvailabilityBlock] = []
        self.stamp_cards: dict[str, StampCard] = {}
        self.verification_codes: dict[str, VerificationCode] = {}
        self.stamp_card_requests: dict[str, StampCardRequest] = {}

    # --- Seeding (staff-side edits happen outside the booking flow) ---

    def add_service(self, service: Service) -> Service:
        self.services[service.id] = service
        return service

    def add_booking(self, booking: BookingRecord) -> BookingRecord:
        stored = booking.model_copy(update={"id": booking.id or _new_id()})
        self.bookings[stored.id] = stored
        return stored

    def add_block(self, block: AvailabilityBlock) -> AvailabilityBlock:
        stored = block.model_copy(update={"id": block.id or _new_id()})
        self.blocks.append(stored)
        return stored

    def add_stamp_card(self, card: StampCard) -> StampCard:
        self.stamp_cards[card.id] = card
        return card

    # --- DataStore protocol ---

    async def list_active_services(self) -> list[Service]:
        active = [s for s in self.services.values() if s.is_active]
        return sorted(active, key=lambda s: _ADD_ON_ORDER.index(s.add_on_type.value))

    async def list_bookings(
        self, start: date, end: date, statuses: Iterable[BookingStatus]
    ) -> list[BookingRecord]:
        wanted = {BookingStatus(s) for s in statuses}
        return [
            b for b in self.bookings.values()
            if start <= b.booking_date <= end and b.status in wanted
        ]

    async def list_booked_blocks(self, start: date, end: date) -> list[AvailabilityBlock]:
        return [b for b in self.blocks if start <= b.date <= end and b.is_booked]

    async def insert_booking(self, booking: BookingRecord) -> BookingRecord:
        now = datetime.now(timezone.utc)
        stored = booking.model_copy(
            update={"id": _new_id(), "created_at": now, "updated_at": now}
        )
        self.bookings[stored.id] = stored
        logger.debug("Booking stored: %s", stored.id)
        return stored

    async def insert_booking_services(self, links: list[BookingServiceLink]) -> None:
        self.booking_services.extend(links)

    async def find_stamp_cards(self, identifier: str) -> list[StampCard]:
        return [card for card in self.stamp_cards.values() if card_matches(card, identifier)]

    async def find_stamp_card_by_email(self, email: str) -> Optional[StampCard]:
        needle = email.lower()
        for card in self.stamp_cards.values():
            if (card.email or "").lower() == needle:
                return card
        return None

    async def upsert_verification_code(self, email: str, code: str, expires_at: datetime) -> None:
        key = email.lower()
        self.verification_codes[key] = VerificationCode(
            id=_new_id(), email=key, code=code, expires_at=expires_at
        )

    async def find_live_verification_code(
        self, email: str, code: str, now: datetime
    ) -> Optional[VerificationCode]:
        record = self.verification_codes.get(email.lower())
        if record is None or record.code != code or record.expires_at <= now:
            return None
        return record

    async def delete_verification_code(self, code_id: str) -> None:
        for key, record in list(self.verification_codes.items()):
            if record.id == code_id:
                del self.verification_codes[key]

    async def find_pending_stamp_card_request(self, email: str) -> Optional[StampCardRequest]:
        needle = email.lower()
        for request in self.stamp_card_requests.values():
            if request.email.lower() == needle and request.status == "pending":
                return request
        return None

    async def insert_stamp_card_request(self, name: str, email: str) -> StampCardRequest:
        request = StampCardRequest(
            id=_new_id(), name=name, email=email, created_at=datetime.now(timezone.utc)
        )
        self.stamp_card_requests[request.id] = request
        return request
