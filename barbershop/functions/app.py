"""
Serverless function handlers, served as one FastAPI application.

Every endpoint accepts a JSON POST under ``/functions/v1/`` and answers
``{"error": ...}`` with a 4xx/5xx status on failure. Customer-facing
messages never carry internal error details; those go to the log.
"""

import json
import re
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional

from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from barbershop.clients.email import EmailMessage, EmailSender, ResendEmailSender
from barbershop.clients.errors import BackendError, EmailDeliveryError
from barbershop.clients.store import DataStore, SupabaseStore
from barbershop.config import AppConfig, settings
from barbershop.functions import templates
from barbershop.logging_context import (
    get_request_id,
    get_request_logger,
    new_request_id,
    set_request_id,
)
from barbershop.schemas.function_schema import (
    BookingConfirmationRequest,
    ErrorReportRequest,
    SendCodeRequest,
    StampCardRequestBody,
    VerifyCodeRequest,
)
from barbershop.tools.verification import VerificationCodeService

logger = get_request_logger(__name__)

MIN_REQUEST_NAME_LENGTH = 2
REQUEST_EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


class FunctionError(Exception):
    """Turned into a ``{"error": message, **extra}`` response."""

    def __init__(self, status: int, message: str, **extra: Any) -> None:
        super().__init__(message)
        self.status = status
        self.message = message
        self.extra = extra


def get_config(request: Request) -> AppConfig:
    return request.app.state.config


def get_store(request: Request) -> DataStore:
    store = request.app.state.store
    if store is None:
        logger.error("Data store is not configured")
        raise FunctionError(500, "Server configuration is missing")
    return store


def get_email_sender(request: Request) -> EmailSender:
    sender = request.app.state.email_sender
    if sender is None:
        logger.error("RESEND_API_KEY not configured")
        raise FunctionError(500, "Email service is not configured")
    return sender


def get_admin_email(config: AppConfig = Depends(get_config)) -> str:
    if not config.email.admin_email:
        logger.error("ADMIN_EMAIL not configured")
        raise FunctionError(500, "Admin email is not configured")
    return config.email.admin_email


def get_verification_service(
    store: DataStore = Depends(get_store),
    config: AppConfig = Depends(get_config),
) -> VerificationCodeService:
    return VerificationCodeService(store, ttl_minutes=config.booking.verification_code_ttl_minutes)


router = APIRouter(prefix="/functions/v1")


@router.post("/send-booking-confirmation")
async def send_booking_confirmation(
    body: BookingConfirmationRequest,
    config: AppConfig = Depends(get_config),
    sender: EmailSender = Depends(get_email_sender),
    admin_email: str = Depends(get_admin_email),
) -> dict[str, Any]:
    required = (body.booking_id, body.customer_name, body.customer_email,
                body.booking_date, body.booking_time)
    if not all(required) or not body.services:
        raise FunctionError(400, "Required booking details are missing")

    try:
        await sender.send(EmailMessage(
            sender=config.email.booking_sender,
            to=[body.customer_email],
            subject=f"Booking confirmation - {config.business.name}",
            html=templates.booking_confirmation_template(body, config.business),
        ))
    except EmailDeliveryError as exc:
        logger.error("Customer confirmation for booking %s failed: %s", body.booking_id, exc)
        raise FunctionError(500, "Sending the confirmation email failed") from exc

    admin_sent = True
    try:
        await sender.send(EmailMessage(
            sender=config.email.booking_sender,
            to=[admin_email],
            subject=f"New booking received - {config.business.name}",
            html=templates.new_booking_notification_template(body, config.business),
        ))
    except EmailDeliveryError as exc:
        admin_sent = False
        logger.error("Admin notification for booking %s failed: %s", body.booking_id, exc)

    logger.info("Booking confirmation sent for %s", body.booking_id)
    return {
        "success": True,
        "message": "Booking confirmation sent",
        "adminEmailSent": admin_sent,
    }


@router.post("/report-booking-error")
async def report_booking_error(
    body: ErrorReportRequest,
    config: AppConfig = Depends(get_config),
    sender: EmailSender = Depends(get_email_sender),
    admin_email: str = Depends(get_admin_email),
) -> dict[str, Any]:
    if not body.error_message or not body.timestamp:
        raise FunctionError(400, "Error message and timestamp are required")

    try:
        booking_data = json.loads(body.booking_data)
    except ValueError:
        logger.warning("Failed to parse bookingData in error report")
        booking_data = {"error": "Failed to parse booking data", "raw": body.booking_data}
    if not isinstance(booking_data, dict):
        booking_data = {"raw": booking_data}

    try:
        await sender.send(EmailMessage(
            sender=config.email.error_sender,
            to=[admin_email],
            subject=f"{config.business.name} booking error alert",
            html=templates.booking_error_report_template(
                body.error_message, booking_data, body.timestamp, config.business,
                user_agent=body.user_agent, url=body.url,
            ),
        ))
    except EmailDeliveryError as exc:
        logger.error("Sending error report failed: %s", exc)
        raise FunctionError(500, "Sending the error report failed") from exc

    return {"success": True, "message": "Error report sent"}


@router.post("/send-stampcard-verification-code")
async def send_stampcard_verification_code(
    body: SendCodeRequest,
    config: AppConfig = Depends(get_config),
    store: DataStore = Depends(get_store),
    sender: EmailSender = Depends(get_email_sender),
    verification: VerificationCodeService = Depends(get_verification_service),
) -> dict[str, Any]:
    email = body.user_email.strip()
    if not email or "@" not in email:
        raise FunctionError(400, "A valid email address is required")

    try:
        card = await store.find_stamp_card_by_email(email)
    except BackendError as exc:
        logger.error("Stamp card lookup for %s failed: %s", email, exc)
        raise FunctionError(500, "Looking up the stamp card failed") from exc
    if card is None:
        raise FunctionError(404, "No stamp card found for this email address")

    try:
        code, _ = await verification.issue(email)
    except BackendError as exc:
        logger.error("Storing verification code failed: %s", exc)
        raise FunctionError(500, "Saving the verification code failed") from exc

    try:
        await sender.send(EmailMessage(
            sender=config.email.verification_sender,
            to=[email],
            subject=f"Stamp card verification code - {config.business.name}",
            html=templates.verification_code_template(
                code, verification.ttl_minutes, config.business
            ),
        ))
    except EmailDeliveryError as exc:
        logger.error("Verification email to %s failed: %s", email, exc)
        raise FunctionError(500, "Sending the verification email failed") from exc

    return {
        "success": True,
        "message": "Verification code sent",
        "expiresIn": verification.ttl_minutes,
    }


@router.post("/verify-stampcard-code")
async def verify_stampcard_code(
    body: VerifyCodeRequest,
    verification: VerificationCodeService = Depends(get_verification_service),
) -> dict[str, Any]:
    if not body.user_email.strip() or not body.verification_code.strip():
        raise FunctionError(400, "Email address and verification code are required")

    try:
        verified = await verification.verify(body.user_email.strip(), body.verification_code)
    except BackendError as exc:
        logger.error("Verification lookup failed: %s", exc)
        raise FunctionError(500, "Internal server error") from exc

    if not verified:
        raise FunctionError(
            400,
            "Invalid or expired verification code",
            details="Check your code or request a new one",
        )
    return {"success": True, "message": "Verification succeeded", "verified": True}


@router.post("/submit-stampcard-request")
async def submit_stampcard_request(
    body: StampCardRequestBody,
    store: DataStore = Depends(get_store),
) -> dict[str, Any]:
    name, email = body.name.strip(), body.email.strip()
    if not name or not email:
        raise FunctionError(400, "Name and email address are required")
    if len(name) < MIN_REQUEST_NAME_LENGTH:
        raise FunctionError(400, f"Name must be at least {MIN_REQUEST_NAME_LENGTH} characters")
    if not REQUEST_EMAIL_PATTERN.match(email):
        raise FunctionError(400, "Invalid email address")

    try:
        if await store.find_stamp_card_by_email(email) is not None:
            raise FunctionError(
                409,
                "This email address already has a stamp card. "
                "Open it by signing in with your email address.",
            )
        pending = await store.find_pending_stamp_card_request(email)
        if pending is not None:
            raise FunctionError(
                409,
                "You have already sent a request with this email address. "
                "It is being processed.",
                requestDate=pending.created_at.isoformat() if pending.created_at else None,
            )
        request = await store.insert_stamp_card_request(name, email.lower())
    except BackendError as exc:
        logger.error("Stamp card request for %s failed: %s", email, exc)
        raise FunctionError(500, "Sending the request failed. Please try again.") from exc

    logger.info("Stamp card request %s stored", request.id)
    return {
        "success": True,
        "message": "Your request has been received. We will be in touch soon.",
        "requestId": request.id,
    }


def _default_store(config: AppConfig) -> Optional[DataStore]:
    if not config.store.url or not config.store.service_role_key:
        return None
    return SupabaseStore.from_settings(config, service_role=True)


def _default_email_sender(config: AppConfig) -> Optional[EmailSender]:
    if not config.email.resend_api_key:
        return None
    return ResendEmailSender(config.email.resend_api_key)


def create_app(
    store: Optional[DataStore] = None,
    email_sender: Optional[EmailSender] = None,
    config: AppConfig = settings,
) -> FastAPI:
    """Build the functions app. Collaborators default to the configured backends."""
    resolved_store = store if store is not None else _default_store(config)
    resolved_sender = email_sender if email_sender is not None else _default_email_sender(config)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        for client in (app.state.store, app.state.email_sender):
            aclose = getattr(client, "aclose", None)
            if aclose is not None:
                await aclose()

    app = FastAPI(title=f"{config.business.name} functions", lifespan=lifespan)
    app.state.config = config
    app.state.store = resolved_store
    app.state.email_sender = resolved_sender

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "X-Client-Info", "Apikey"],
    )

    @app.middleware("http")
    async def request_context(request: Request, call_next: Any) -> Any:
        set_request_id(request.headers.get("X-Request-ID") or new_request_id())
        try:
            response = await call_next(request)
        except Exception:
            logger.exception("Unexpected error in %s", request.url.path)
            response = JSONResponse({"error": "Internal server error"}, status_code=500)
        response.headers["X-Request-ID"] = get_request_id()
        return response

    @app.exception_handler(FunctionError)
    async def function_error_handler(request: Request, exc: FunctionError) -> JSONResponse:
        payload = {"error": exc.message}
        payload.update({k: v for k, v in exc.extra.items() if v is not None})
        return JSONResponse(payload, status_code=exc.status)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        logger.info("Rejected malformed body for %s: %s", request.url.path, exc.errors())
        return JSONResponse({"error": "Invalid request body"}, status_code=400)

    app.include_router(router)
    return app
