"""End-to-end tests for the serverless function handlers, served in-process."""

import json
from dataclasses import replace
from datetime import timedelta

import httpx
import pytest

from barbershop.clients.email import ConsoleEmailSender
from barbershop.clients.errors import EmailDeliveryError, FunctionCallError
from barbershop.clients.store import InMemoryStore
from barbershop.clients.functions import FunctionsClient
from barbershop.config import AppConfig, EmailConfig
from barbershop.functions.app import create_app
from barbershop.schemas.function_schema import BookingConfirmationRequest, ConfirmationServiceLine
from barbershop.schemas.loyalty_schema import StampCardRequest
from barbershop.tools.booking import BookingSubmitter
from barbershop.tools.loyalty import IdentifierCache, LoyaltyFlow, LoyaltyState

BASE_URL = "http://functions.test/functions/v1"


class FlakySender(ConsoleEmailSender):
    """Fails for the listed recipients."""

    def __init__(self, failing: tuple[str, ...] = ()) -> None:
        super().__init__()
        self.failing = set(failing)

    async def send(self, message):
        if self.failing.intersection(message.to):
            raise EmailDeliveryError("rejected")
        await super().send(message)


def make_config(admin_email: str = "owner@example.com") -> AppConfig:
    return replace(AppConfig(), email=replace(EmailConfig(), admin_email=admin_email))


def make_http(app) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url=BASE_URL)


@pytest.fixture
def outbox():
    return ConsoleEmailSender()


@pytest.fixture
def app(store, outbox):
    return create_app(store=store, email_sender=outbox, config=make_config())


@pytest.fixture
def http(app):
    return make_http(app)


def confirmation_body(**overrides):
    body = {
        "bookingId": "b-1", "customerName": "Teemu", "customerEmail": "teemu@example.com",
        "customerPhone": "0401234567", "bookingDate": "2025-03-10", "bookingTime": "10:00",
        "endTime": "10:40", "totalDuration": 40, "totalPrice": 36,
        "services": [
            {"name": "Haircut", "price": 28, "isMainService": True},
            {"name": "Hair wash", "price": 8, "isMainService": False},
        ],
    }
    body.update(overrides)
    return body


class TestBookingConfirmation:
    @pytest.mark.asyncio
    async def test_sends_customer_and_admin_email(self, http, outbox):
        response = await http.post("/send-booking-confirmation", json=confirmation_body())
        assert response.status_code == 200
        assert response.json()["adminEmailSent"] is True
        assert [m.to for m in outbox.outbox] == [["teemu@example.com"], ["owner@example.com"]]
        assert "Haircut" in outbox.outbox[0].html
        assert "10:00" in outbox.outbox[0].html

    @pytest.mark.asyncio
    async def test_customer_input_escaped(self, http, outbox):
        await http.post(
            "/send-booking-confirmation",
            json=confirmation_body(customerName="<script>x</script>", notes="<b>hi</b>"),
        )
        html = outbox.outbox[0].html
        assert "<script>" not in html
        assert "&lt;script&gt;" in html

    @pytest.mark.asyncio
    async def test_missing_fields(self, http):
        response = await http.post("/send-booking-confirmation", json=confirmation_body(bookingId=""))
        assert response.status_code == 400
        assert response.json() == {"error": "Required booking details are missing"}

    @pytest.mark.asyncio
    async def test_admin_failure_not_fatal(self, store):
        app = create_app(store=store, email_sender=FlakySender(("owner@example.com",)), config=make_config())
        response = await make_http(app).post("/send-booking-confirmation", json=confirmation_body())
        assert response.status_code == 200
        assert response.json()["adminEmailSent"] is False

    @pytest.mark.asyncio
    async def test_customer_failure_is_500(self, store):
        app = create_app(store=store, email_sender=FlakySender(("teemu@example.com",)), config=make_config())
        response = await make_http(app).post("/send-booking-confirmation", json=confirmation_body())
        assert response.status_code == 500

    @pytest.mark.asyncio
    async def test_missing_admin_email_is_500(self, store, outbox):
        app = create_app(store=store, email_sender=outbox, config=make_config(admin_email=""))
        response = await make_http(app).post("/send-booking-confirmation", json=confirmation_body())
        assert response.status_code == 500
        assert response.json() == {"error": "Admin email is not configured"}

    @pytest.mark.asyncio
    async def test_missing_email_sender_is_500(self, store):
        app = create_app(store=store, config=replace(make_config(), email=replace(EmailConfig(), resend_api_key="", admin_email="o@x.fi")))
        response = await make_http(app).post("/send-booking-confirmation", json=confirmation_body())
        assert response.status_code == 500
        assert response.json() == {"error": "Email service is not configured"}

    @pytest.mark.asyncio
    async def test_malformed_body_is_400(self, http):
        response = await http.post("/send-booking-confirmation", json={"totalDuration": "long"})
        assert response.status_code == 400
        assert response.json() == {"error": "Invalid request body"}

    @pytest.mark.asyncio
    async def test_request_id_header(self, http):
        response = await http.post(
            "/send-booking-confirmation", json=confirmation_body(), headers={"X-Request-ID": "REQ-test"}
        )
        assert response.headers["X-Request-ID"] == "REQ-test"

    @pytest.mark.asyncio
    async def test_request_id_generated_when_absent(self, http):
        response = await http.post("/send-booking-confirmation", json=confirmation_body())
        assert response.headers["X-Request-ID"].startswith("REQ-")

    @pytest.mark.asyncio
    async def test_unexpected_error_is_500_with_request_id(self, outbox):
        class BrokenStore(InMemoryStore):
            async def find_stamp_card_by_email(self, email):
                raise RuntimeError("boom")

        http = make_http(create_app(store=BrokenStore(), email_sender=outbox, config=make_config()))
        response = await http.post(
            "/send-stampcard-verification-code",
            json={"userEmail": "a@b.com"},
            headers={"X-Request-ID": "REQ-broken"},
        )
        assert response.status_code == 500
        assert response.json() == {"error": "Internal server error"}
        assert response.headers["X-Request-ID"] == "REQ-broken"


class TestErrorReport:
    @pytest.mark.asyncio
    async def test_report_emailed_to_admin(self, http, outbox):
        booking_data = json.dumps({"selectedTime": "10:00", "userDetails": {"name": "Teemu"}})
        response = await http.post("/report-booking-error", json={
            "errorMessage": "insert failed", "bookingData": booking_data,
            "timestamp": "2025-03-10T09:00:00Z", "userAgent": "pytest",
        })
        assert response.status_code == 200
        assert outbox.outbox[0].to == ["owner@example.com"]
        assert "insert failed" in outbox.outbox[0].html
        assert "pytest" in outbox.outbox[0].html

    @pytest.mark.asyncio
    async def test_unparseable_booking_data_still_reported(self, http, outbox):
        response = await http.post("/report-booking-error", json={
            "errorMessage": "insert failed", "bookingData": "{not json",
            "timestamp": "2025-03-10T09:00:00Z",
        })
        assert response.status_code == 200
        assert "{not json" in outbox.outbox[0].html

    @pytest.mark.asyncio
    async def test_requires_message_and_timestamp(self, http):
        response = await http.post("/report-booking-error", json={"errorMessage": "x"})
        assert response.status_code == 400


class TestVerificationFunctions:
    @pytest.mark.asyncio
    async def test_send_code_for_known_card(self, http, store, outbox):
        response = await http.post("/send-stampcard-verification-code", json={"userEmail": "matti@example.com"})
        assert response.status_code == 200
        assert response.json()["expiresIn"] == 15
        code = store.verification_codes["matti@example.com"].code
        assert code in outbox.outbox[0].html

    @pytest.mark.asyncio
    async def test_send_code_unknown_card(self, http, outbox):
        response = await http.post("/send-stampcard-verification-code", json={"userEmail": "nobody@example.com"})
        assert response.status_code == 404
        assert outbox.outbox == []

    @pytest.mark.asyncio
    async def test_send_code_invalid_email(self, http):
        response = await http.post("/send-stampcard-verification-code", json={"userEmail": "nope"})
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_verify_round_trip_is_single_use(self, http, store):
        await http.post("/send-stampcard-verification-code", json={"userEmail": "matti@example.com"})
        code = store.verification_codes["matti@example.com"].code
        body = {"userEmail": "matti@example.com", "verificationCode": code}
        first = await http.post("/verify-stampcard-code", json=body)
        assert first.json() == {"success": True, "message": "Verification succeeded", "verified": True}
        second = await http.post("/verify-stampcard-code", json=body)
        assert second.status_code == 400
        assert second.json()["details"] == "Check your code or request a new one"

    @pytest.mark.asyncio
    async def test_expired_code_rejected(self, http, store):
        await http.post("/send-stampcard-verification-code", json={"userEmail": "matti@example.com"})
        record = store.verification_codes["matti@example.com"]
        store.verification_codes["matti@example.com"] = record.model_copy(
            update={"expires_at": record.expires_at - timedelta(minutes=16)}
        )
        response = await http.post(
            "/verify-stampcard-code",
            json={"userEmail": "matti@example.com", "verificationCode": record.code},
        )
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_verify_requires_both_fields(self, http):
        response = await http.post("/verify-stampcard-code", json={"userEmail": "matti@example.com"})
        assert response.status_code == 400


class TestStampCardRequestFunction:
    @pytest.mark.asyncio
    async def test_stores_lowercased_request(self, http, store):
        response = await http.post("/submit-stampcard-request", json={"name": " Teemu ", "email": "Teemu@Example.com "})
        assert response.status_code == 200
        request = store.stamp_card_requests[response.json()["requestId"]]
        assert (request.name, request.email, request.status) == ("Teemu", "teemu@example.com", "pending")

    @pytest.mark.asyncio
    async def test_existing_card_conflict(self, http):
        response = await http.post("/submit-stampcard-request", json={"name": "Matti", "email": "matti@example.com"})
        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_pending_request_conflict(self, http, store):
        store.stamp_card_requests["r-1"] = StampCardRequest(id="r-1", name="Teemu", email="teemu@example.com")
        response = await http.post("/submit-stampcard-request", json={"name": "Teemu", "email": "teemu@example.com"})
        assert response.status_code == 409

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", [
        {"name": "", "email": "t@x.fi"},
        {"name": "T", "email": "t@x.fi"},
        {"name": "Teemu", "email": "t@x"},
    ])
    async def test_validation(self, http, body):
        response = await http.post("/submit-stampcard-request", json=body)
        assert response.status_code == 400


class TestThroughFunctionsClient:
    @pytest.mark.asyncio
    async def test_booking_submission_sends_confirmation(self, app, store, outbox, complete_draft):
        functions = FunctionsClient(BASE_URL, client=make_http(app))
        result = await BookingSubmitter(store, functions).submit(complete_draft)
        assert result["success"] is True
        assert result["email_sent"] is True
        assert outbox.outbox[0].to == ["teemu@example.com"]

    @pytest.mark.asyncio
    async def test_loyalty_flow_with_email_verification(self, app, store):
        functions = FunctionsClient(BASE_URL, client=make_http(app))
        flow = LoyaltyFlow(store, functions, IdentifierCache())
        assert await flow.submit_identifier("matti@example.com") == LoyaltyState.CODE_INPUT
        assert await flow.submit_code("000000") == LoyaltyState.CODE_INPUT
        assert flow.verification_error == "Invalid or expired verification code"
        code = store.verification_codes["matti@example.com"].code
        assert await flow.submit_code(code) == LoyaltyState.RESOLVED

    @pytest.mark.asyncio
    async def test_client_error_carries_function_message(self, app):
        functions = FunctionsClient(BASE_URL, client=make_http(app))
        with pytest.raises(FunctionCallError) as exc_info:
            await functions.send_booking_confirmation(BookingConfirmationRequest(
                booking_id="b-1", customer_email="t@x.fi",
                services=[ConfirmationServiceLine(name="Haircut", price=28)],
            ))
        assert exc_info.value.status == 400
        assert exc_info.value.message == "Required booking details are missing"
