"""Tests for booking persistence, confirmation and failure reporting."""

import json

import pytest

from barbershop.clients.errors import FunctionCallError, NetworkError, ServerError
from barbershop.clients.store import InMemoryStore
from barbershop.schemas.booking_schema import BookingStatus
from barbershop.schemas.draft_schema import BookingDraft
from barbershop.tools.booking import (
    NETWORK_FAILURE_MESSAGE,
    SERVER_FAILURE_MESSAGE,
    BookingSubmitter,
    build_booking_record,
    build_confirmation_request,
    compute_end_time,
)
from tests.conftest import FailingStore, RecordingNotifier, utc


class IdlessStore(InMemoryStore):
    async def insert_booking(self, booking):
        return booking


class TestEndTime:
    def test_quarter_past_closing(self):
        assert compute_end_time("17:45", 45) == "18:30"

    def test_on_the_hour(self):
        assert compute_end_time("10:00", 60) == "11:00"


class TestBuildRecord:
    def test_pending_with_totals(self, complete_draft):
        record = build_booking_record(complete_draft)
        assert record.status == BookingStatus.PENDING
        assert record.total_duration_minutes == 40
        assert record.end_at_time == "18:25"
        assert record.user_email == "teemu@example.com"

    def test_incomplete_draft_rejected(self, haircut):
        with pytest.raises(ValueError):
            build_booking_record(BookingDraft(main_service=haircut))

    def test_confirmation_request(self, complete_draft):
        record = build_booking_record(complete_draft).model_copy(update={"id": "b-1"})
        request = build_confirmation_request(record, complete_draft)
        assert request.booking_id == "b-1"
        assert [line.name for line in request.services] == ["Haircut", "Hair wash"]
        assert [line.is_main_service for line in request.services] == [True, False]
        assert request.total_price == 36.0
        assert request.notes is None

    def test_confirmation_wire_format(self, complete_draft):
        record = build_booking_record(complete_draft).model_copy(update={"id": "b-1"})
        payload = build_confirmation_request(record, complete_draft).model_dump(by_alias=True)
        assert payload["bookingId"] == "b-1"
        assert payload["endTime"] == "18:25"
        assert payload["services"][0]["isMainService"] is True


class TestSuccessfulSubmission:
    @pytest.mark.asyncio
    async def test_persists_booking_and_links(self, store, notifier, complete_draft):
        result = await BookingSubmitter(store, notifier).submit(complete_draft)
        assert result["success"] is True
        stored = store.bookings[result["booking_id"]]
        assert stored.status == BookingStatus.PENDING
        assert [link.service_id for link in store.booking_services] == ["haircut", "wash"]
        assert all(link.booking_id == stored.id for link in store.booking_services)

    @pytest.mark.asyncio
    async def test_sends_confirmation_after_persisting(self, store, notifier, complete_draft):
        result = await BookingSubmitter(store, notifier).submit(complete_draft)
        assert result["email_sent"] is True
        assert len(notifier.confirmations) == 1
        assert notifier.confirmations[0].booking_id == result["booking_id"]

    @pytest.mark.asyncio
    async def test_email_failure_is_not_fatal(self, store, complete_draft):
        notifier = RecordingNotifier(confirmation_error=FunctionCallError(500, "mail down"))
        result = await BookingSubmitter(store, notifier).submit(complete_draft)
        assert result["success"] is True
        assert result["email_sent"] is False
        assert len(store.bookings) == 1
        assert notifier.reports == []


class TestFailedSubmission:
    @pytest.mark.asyncio
    async def test_network_failure_not_reported(self, complete_draft):
        store = FailingStore(error=NetworkError("offline"), fail_on=("insert_booking",))
        notifier = RecordingNotifier()
        submitter = BookingSubmitter(store, notifier)
        result = await submitter.submit(complete_draft)
        await submitter.drain_reports()
        assert result == {
            "success": False, "error_kind": "network", "message": NETWORK_FAILURE_MESSAGE,
        }
        assert notifier.reports == []
        assert notifier.confirmations == []

    @pytest.mark.asyncio
    async def test_offline_client_classifies_as_network(self, complete_draft):
        store = FailingStore(error=ServerError("fetch failed"), fail_on=("insert_booking",))
        notifier = RecordingNotifier()
        submitter = BookingSubmitter(store, notifier, is_online=lambda: False)
        result = await submitter.submit(complete_draft)
        await submitter.drain_reports()
        assert result["error_kind"] == "network"
        assert notifier.reports == []

    @pytest.mark.asyncio
    async def test_server_failure_reported_to_operator(self, complete_draft):
        error = ServerError("violates check constraint", code="23514", hint="check the status")
        store = FailingStore(error=error, fail_on=("insert_booking",))
        notifier = RecordingNotifier()
        submitter = BookingSubmitter(
            store, notifier, user_agent="pytest", page_url="https://example.com/book",
            now=lambda: utc(2025, 3, 10, 9, 0),
        )
        result = await submitter.submit(complete_draft)
        await submitter.drain_reports()

        assert result["error_kind"] == "server"
        assert result["message"] == SERVER_FAILURE_MESSAGE
        assert len(notifier.reports) == 1
        report = notifier.reports[0]
        assert "violates check constraint" in report.error_message
        assert "code=23514" in report.error_message
        assert report.timestamp == "2025-03-10T09:00:00+00:00"
        assert report.user_agent == "pytest"
        booking_data = json.loads(report.booking_data)
        assert booking_data["selectedTime"] == "17:45"
        assert booking_data["selectedService"]["id"] == "haircut"
        assert booking_data["userDetails"]["email"] == "teemu@example.com"

    @pytest.mark.asyncio
    async def test_link_insert_failure_is_server_failure(self, complete_draft):
        store = FailingStore(error=ServerError("fk violation"), fail_on=("insert_booking_services",))
        notifier = RecordingNotifier()
        submitter = BookingSubmitter(store, notifier)
        result = await submitter.submit(complete_draft)
        await submitter.drain_reports()
        assert result["error_kind"] == "server"
        assert notifier.confirmations == []
        assert len(notifier.reports) == 1

    @pytest.mark.asyncio
    async def test_missing_id_is_unknown_failure(self, complete_draft):
        notifier = RecordingNotifier()
        submitter = BookingSubmitter(IdlessStore(), notifier)
        result = await submitter.submit(complete_draft)
        await submitter.drain_reports()
        assert result["error_kind"] == "server"
        assert "Inserted booking has no id" in notifier.reports[0].error_message

    @pytest.mark.asyncio
    async def test_report_failure_is_swallowed(self, complete_draft):
        store = FailingStore(error=ServerError("boom"), fail_on=("insert_booking",))
        notifier = RecordingNotifier(report_error=NetworkError("offline"))
        submitter = BookingSubmitter(store, notifier)
        result = await submitter.submit(complete_draft)
        await submitter.drain_reports()
        assert result["success"] is False
        assert len(notifier.reports) == 1
