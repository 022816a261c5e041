"""
Client for the serverless functions, as called from the booking site.

Mirrors the browser's calls: booking confirmation email, operator error
report, verification code issuance/validation and stamp card requests.
"""

import logging
from typing import Any, Optional

import httpx

from barbershop.clients.errors import FunctionCallError, NetworkError
from barbershop.schemas.function_schema import (
    BookingConfirmationRequest,
    ErrorReportRequest,
    SendCodeRequest,
    StampCardRequestBody,
    VerifyCodeRequest,
)

logger = logging.getLogger(__name__)


class FunctionsClient:
    """Posts JSON bodies to ``<base_url>/<function-name>``."""

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 10.0,
    ) -> None:
        headers = {"Authorization": f"Bearer {api_key}"} if api_key else {}
        self._client = client or httpx.AsyncClient(
            base_url=base_url.rstrip("/"), headers=headers, timeout=timeout
        )

    @classmethod
    def from_settings(cls, settings: Any) -> "FunctionsClient":
        return cls(
            settings.functions.base_url,
            api_key=settings.store.anon_key,
            timeout=settings.http_timeout_seconds,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _call(self, name: str, body: Any) -> dict[str, Any]:
        payload = body.model_dump(by_alias=True, exclude_none=True)
        try:
            response = await self._client.post(f"/{name}", json=payload)
        except httpx.TransportError as exc:
            raise NetworkError(str(exc) or type(exc).__name__) from exc

        try:
            result = response.json()
        except ValueError:
            result = {}
        if not isinstance(result, dict):
            result = {}

        if response.is_error:
            message = result.get("error") or f"{name} failed with status {response.status_code}"
            logger.warning("Function %s returned %d: %s", name, response.status_code, message)
            raise FunctionCallError(response.status_code, message)
        return result

    async def send_booking_confirmation(self, body: BookingConfirmationRequest) -> dict[str, Any]:
        return await self._call("send-booking-confirmation", body)

    async def report_booking_error(self, body: ErrorReportRequest) -> dict[str, Any]:
        return await self._call("report-booking-error", body)

    async def send_verification_code(self, email: str) -> dict[str, Any]:
        return await self._call(
            "send-stampcard-verification-code", SendCodeRequest(user_email=email)
        )

    async def verify_code(self, email: str, code: str) -> dict[str, Any]:
        return await self._call(
            "verify-stampcard-code",
            VerifyCodeRequest(user_email=email, verification_code=code),
        )

    async def submit_stamp_card_request(self, name: str, email: str) -> dict[str, Any]:
        return await self._call(
            "submit-stampcard-request", StampCardRequestBody(name=name, email=email)
        )
