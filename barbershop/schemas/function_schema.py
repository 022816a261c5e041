"""Request bodies accepted by the serverless functions.

Field names on the wire are camelCase. Required fields default to empty
values so handlers can answer with their own 400 messages instead of a
generic validation error.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class ConfirmationServiceLine(_WireModel):
    name: str
    price: float
    is_main_service: bool = Field(default=False, alias="isMainService")


class BookingConfirmationRequest(_WireModel):
    booking_id: str = Field(default="", alias="bookingId")
    customer_name: str = Field(default="", alias="customerName")
    customer_email: str = Field(default="", alias="customerEmail")
    customer_phone: str = Field(default="", alias="customerPhone")
    booking_date: str = Field(default="", alias="bookingDate")
    booking_time: str = Field(default="", alias="bookingTime")
    end_time: str = Field(default="", alias="endTime")
    total_duration: int = Field(default=0, alias="totalDuration")
    services: list[ConfirmationServiceLine] = Field(default_factory=list)
    total_price: float = Field(default=0, alias="totalPrice")
    notes: Optional[str] = None


class ErrorReportRequest(_WireModel):
    error_message: str = Field(default="", alias="errorMessage")
    booking_data: str = Field(default="", alias="bookingData")
    timestamp: str = ""
    user_agent: Optional[str] = Field(default=None, alias="userAgent")
    url: Optional[str] = None


class SendCodeRequest(_WireModel):
    user_email: str = Field(default="", alias="userEmail")


class VerifyCodeRequest(_WireModel):
    user_email: str = Field(default="", alias="userEmail")
    verification_code: str = Field(default="", alias="verificationCode")


class StampCardRequestBody(_WireModel):
    name: str = ""
    email: str = ""
