"""
Booking submission: persist, then notify.

The booking row and its service links are written first. Only once both
succeed is the customer confirmation email requested; a failing email
never turns a stored booking into a failure. Persistence failures that
are not network problems are also reported to the operator channel,
best effort and in the background.
"""

import asyncio
import json
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Optional, Protocol, TypedDict

from pydantic import ValidationError

from barbershop.clients.errors import (
    BackendError,
    FunctionCallError,
    NetworkError,
    UnknownError,
    describe_error,
)
from barbershop.clients.store import DataStore
from barbershop.schemas.booking_schema import BookingRecord, BookingServiceLink, BookingStatus
from barbershop.schemas.draft_schema import BookingDraft
from barbershop.schemas.function_schema import (
    BookingConfirmationRequest,
    ConfirmationServiceLine,
    ErrorReportRequest,
)
from barbershop.tools.services import total_duration, total_price
from barbershop.utils import minutes_to_time, time_to_minutes

logger = logging.getLogger(__name__)

NETWORK_FAILURE_MESSAGE = (
    "Confirming the booking failed because of a network problem. "
    "Check your internet connection and try again."
)
SERVER_FAILURE_MESSAGE = (
    "Confirming the booking failed. Check your details and try again. "
    "If the problem persists, please contact us."
)


class BookingNotifier(Protocol):
    """The two functions the submission calls after (or instead of) success."""

    async def send_booking_confirmation(self, body: BookingConfirmationRequest) -> Any: ...

    async def report_booking_error(self, body: ErrorReportRequest) -> Any: ...


class SubmissionResult(TypedDict, total=False):
    """Result from BookingSubmitter.submit."""

    success: bool
    message: str
    booking_id: str
    error_kind: str
    email_sent: bool
    details: BookingRecord


def compute_end_time(start_time: str, duration_minutes: int) -> str:
    """End of an appointment; past-midnight values are not wrapped."""
    return minutes_to_time(time_to_minutes(start_time) + duration_minutes)


def build_booking_record(draft: BookingDraft) -> BookingRecord:
    """Assemble the ``pending`` booking row for a complete draft."""
    if draft.main_service is None or draft.selected_date is None or not draft.selected_time:
        raise ValueError("Booking draft is incomplete")
    duration = total_duration(draft.main_service, draft.add_ons)
    return BookingRecord(
        user_name=draft.details.name,
        user_phone=draft.details.phone,
        user_email=draft.details.email,
        booking_date=draft.selected_date,
        booking_time=draft.selected_time,
        end_at_time=compute_end_time(draft.selected_time, duration),
        total_duration_minutes=duration,
        notes=draft.details.notes,
        status=BookingStatus.PENDING,
    )


def build_confirmation_request(
    booking: BookingRecord, draft: BookingDraft
) -> BookingConfirmationRequest:
    services = draft.services
    return BookingConfirmationRequest(
        booking_id=booking.id or "",
        customer_name=booking.user_name,
        customer_email=booking.user_email,
        customer_phone=booking.user_phone,
        booking_date=booking.booking_date.isoformat(),
        booking_time=booking.booking_time,
        end_time=booking.end_at_time or "",
        total_duration=booking.total_duration_minutes or 0,
        services=[
            ConfirmationServiceLine(name=s.name, price=s.price, is_main_service=index == 0)
            for index, s in enumerate(services)
        ],
        total_price=total_price(services[0], services[1:]),
        notes=booking.notes or None,
    )


class BookingSubmitter:
    """Runs the persist-then-notify sequence for a completed wizard draft."""

    def __init__(
        self,
        store: DataStore,
        notifier: BookingNotifier,
        is_online: Optional[Callable[[], bool]] = None,
        user_agent: Optional[str] = None,
        page_url: Optional[str] = None,
        now: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self._store = store
        self._notifier = notifier
        self._is_online = is_online
        self._user_agent = user_agent
        self._page_url = page_url
        self._now = now
        self._pending_reports: set[asyncio.Task] = set()

    async def submit(self, draft: BookingDraft) -> SubmissionResult:
        booking = build_booking_record(draft)

        try:
            stored = await self._persist(booking, draft)
        except BackendError as exc:
            return self._handle_failure(exc, draft)

        email_sent = await self._send_confirmation(stored, draft)
        logger.info(
            "Booking %s confirmed for %s on %s at %s",
            stored.id, stored.user_name, stored.booking_date, stored.booking_time,
        )
        return {
            "success": True,
            "booking_id": stored.id or "",
            "message": "Booking confirmed. A confirmation has been sent to your email.",
            "email_sent": email_sent,
            "details": stored,
        }

    async def _persist(self, booking: BookingRecord, draft: BookingDraft) -> BookingRecord:
        try:
            stored = await self._store.insert_booking(booking)
        except ValidationError as exc:
            raise UnknownError(exc.errors()) from exc
        if not stored.id:
            raise UnknownError({"error": "Inserted booking has no id"})

        links = [
            BookingServiceLink(booking_id=stored.id, service_id=service.id)
            for service in draft.services
        ]
        await self._store.insert_booking_services(links)
        return stored

    async def _send_confirmation(self, booking: BookingRecord, draft: BookingDraft) -> bool:
        try:
            await self._notifier.send_booking_confirmation(
                build_confirmation_request(booking, draft)
            )
        except BackendError as exc:
            logger.error("Booking confirmation email for %s failed: %s", booking.id, exc)
            return False
        logger.info("Booking confirmation email requested for %s", booking.id)
        return True

    def _is_network_failure(self, exc: BackendError) -> bool:
        if isinstance(exc, NetworkError):
            return True
        return self._is_online is not None and not self._is_online()

    def _handle_failure(self, exc: BackendError, draft: BookingDraft) -> SubmissionResult:
        if self._is_network_failure(exc):
            logger.warning("Booking submission failed on network: %s", exc)
            return {"success": False, "error_kind": "network", "message": NETWORK_FAILURE_MESSAGE}

        logger.error("Booking submission failed: %s", describe_error(exc))
        self._schedule_report(exc, draft)
        return {"success": False, "error_kind": "server", "message": SERVER_FAILURE_MESSAGE}

    def _schedule_report(self, exc: BackendError, draft: BookingDraft) -> None:
        body = ErrorReportRequest(
            error_message=describe_error(exc),
            booking_data=json.dumps(draft.to_report_dict(), default=str),
            timestamp=self._now().isoformat(),
            user_agent=self._user_agent,
            url=self._page_url,
        )
        task = asyncio.create_task(self._send_report(body))
        self._pending_reports.add(task)
        task.add_done_callback(self._pending_reports.discard)

    async def _send_report(self, body: ErrorReportRequest) -> None:
        try:
            await self._notifier.report_booking_error(body)
        except Exception:
            logger.exception("Failed to send error report")

    async def drain_reports(self) -> None:
        """Wait for in-flight operator reports (shutdown and tests)."""
        if self._pending_reports:
            await asyncio.gather(*self._pending_reports)
