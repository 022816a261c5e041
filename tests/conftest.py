"""Shared test fixtures and helpers."""

from datetime import date, datetime, timezone
from typing import Optional

import pytest

from barbershop.clients.errors import BackendError, NetworkError
from barbershop.clients.store import InMemoryStore
from barbershop.schemas.booking_schema import AvailabilityBlock, BookingRecord, BookingStatus
from barbershop.schemas.draft_schema import BookingDraft, CustomerDetails
from barbershop.schemas.loyalty_schema import StampCard
from barbershop.schemas.service_schema import AddOnType, Service

# A Monday; the week runs 2025-03-10 .. 2025-03-16.
MONDAY = date(2025, 3, 10)
SATURDAY = date(2025, 3, 15)
SUNDAY = date(2025, 3, 16)
# The Friday before; every day of the week above is bookable.
PREVIOUS_FRIDAY = date(2025, 3, 7)


def make_service(
    service_id: str,
    add_on_type: AddOnType,
    duration: int = 30,
    price: float = 20.0,
    name: Optional[str] = None,
    is_active: bool = True,
) -> Service:
    """Helper to create a Service."""
    return Service(
        id=service_id,
        name=name or service_id,
        price=price,
        duration_minutes=duration,
        add_on_type=add_on_type,
        is_active=is_active,
    )


def make_booking(
    day: date,
    start: str,
    end: Optional[str] = None,
    duration: Optional[int] = None,
    status: BookingStatus = BookingStatus.CONFIRMED,
) -> BookingRecord:
    """Helper to create a stored booking occupying ``start``..``end``."""
    return BookingRecord(
        user_name="Existing Customer",
        booking_date=day,
        booking_time=start,
        end_at_time=end,
        total_duration_minutes=duration,
        status=status,
    )


def make_block(day: date, start: str, end: str, is_booked: bool = True) -> AvailabilityBlock:
    return AvailabilityBlock(date=day, start_time=start, end_time=end, is_booked=is_booked)


def utc(*args: int) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


class RecordingNotifier:
    """BookingNotifier / VerificationGateway double that records calls."""

    def __init__(
        self,
        confirmation_error: Optional[BackendError] = None,
        report_error: Optional[BackendError] = None,
    ) -> None:
        self.confirmation_error = confirmation_error
        self.report_error = report_error
        self.confirmations: list = []
        self.reports: list = []

    async def send_booking_confirmation(self, body):
        self.confirmations.append(body)
        if self.confirmation_error is not None:
            raise self.confirmation_error
        return {"success": True}

    async def report_booking_error(self, body):
        self.reports.append(body)
        if self.report_error is not None:
            raise self.report_error
        return {"success": True}


class FailingStore(InMemoryStore):
    """In-memory store whose selected operations raise."""

    def __init__(self, error: Optional[BackendError] = None, fail_on: tuple[str, ...] = ()) -> None:
        super().__init__()
        self.error = error or NetworkError("connection refused")
        self.fail_on = set(fail_on)

    def _maybe_fail(self, operation: str) -> None:
        if operation in self.fail_on:
            raise self.error

    async def list_bookings(self, start, end, statuses):
        self._maybe_fail("list_bookings")
        return await super().list_bookings(start, end, statuses)

    async def list_booked_blocks(self, start, end):
        self._maybe_fail("list_booked_blocks")
        return await super().list_booked_blocks(start, end)

    async def insert_booking(self, booking):
        self._maybe_fail("insert_booking")
        return await super().insert_booking(booking)

    async def insert_booking_services(self, links):
        self._maybe_fail("insert_booking_services")
        return await super().insert_booking_services(links)

    async def find_stamp_cards(self, identifier):
        self._maybe_fail("find_stamp_cards")
        return await super().find_stamp_cards(identifier)

    async def delete_verification_code(self, code_id):
        self._maybe_fail("delete_verification_code")
        return await super().delete_verification_code(code_id)


@pytest.fixture
def haircut():
    return make_service("haircut", AddOnType.HAIR, duration=30, price=28.0, name="Haircut")


@pytest.fixture
def beard_trim():
    return make_service("beard", AddOnType.BEARD, duration=20, price=18.0, name="Beard trim")


@pytest.fixture
def kids_cut():
    return make_service("kids", AddOnType.KID, duration=25, price=20.0, name="Kids haircut")


@pytest.fixture
def hair_wash():
    return make_service("wash", AddOnType.GENERAL, duration=10, price=8.0, name="Hair wash")


@pytest.fixture
def all_services(haircut, beard_trim, kids_cut, hair_wash):
    return [haircut, beard_trim, kids_cut, hair_wash]


@pytest.fixture
def store(all_services):
    store = InMemoryStore()
    for service in all_services:
        store.add_service(service)
    store.add_stamp_card(StampCard(
        id="card-1", email="Matti@Example.com", name="Matti",
        referral_code="MATTI10", stamps=7,
    ))
    return store


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def valid_details():
    return CustomerDetails(
        name="Teemu Testaaja", phone="0401234567", email="teemu@example.com", notes="",
    )


@pytest.fixture
def complete_draft(haircut, hair_wash, valid_details):
    return BookingDraft(
        main_service=haircut,
        add_ons=[hair_wash],
        selected_date=MONDAY,
        selected_time="17:45",
        details=valid_details,
    )
