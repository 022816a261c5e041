"""HTML email bodies sent by the serverless functions."""

from datetime import date, datetime
from html import escape
from typing import Any, Optional

from barbershop.config import BusinessConfig
from barbershop.schemas.function_schema import BookingConfirmationRequest

THEME = {
    "primary": "#f97316",
    "danger": "#dc2626",
    "text_primary": "#374151",
    "text_muted": "#6b7280",
    "border": "#e5e7eb",
    "panel": "#f8fafc",
}


def get_base_template(title: str, body: str, business: BusinessConfig, accent: str = THEME["primary"]) -> str:
    return f"""
    <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto; padding: 20px;">
      <div style="text-align: center; padding: 20px; background: {accent}; border-radius: 12px;">
        <h1 style="color: white; margin: 0;">{escape(business.name)}</h1>
        <p style="color: white; margin: 10px 0 0 0;">{escape(title)}</p>
      </div>
      {body}
      <div style="margin-top: 30px; padding-top: 20px; border-top: 1px solid {THEME['border']};
                  text-align: center; color: {THEME['text_muted']}; font-size: 14px;">
        {escape(business.address)}<br>
        Tel: {escape(business.phone)}
      </div>
    </div>
    """


def format_display_date(value: str) -> str:
    """``2025-03-18`` -> ``Tuesday 18 March 2025``; unparseable values pass through."""
    try:
        parsed = date.fromisoformat(value)
    except ValueError:
        return value
    return f"{parsed.strftime('%A')} {parsed.day} {parsed.strftime('%B %Y')}"


def _services_rows(request: BookingConfirmationRequest) -> str:
    rows = []
    for line in request.services:
        prefix = "" if line.is_main_service else "+ "
        rows.append(
            f"<tr><td style=\"padding: 8px 0; color: {THEME['text_primary']};\">"
            f"{prefix}{escape(line.name)}</td>"
            f"<td style=\"text-align: right; color: {THEME['primary']}; font-weight: bold;\">"
            f"{line.price:g}€</td></tr>"
        )
    return "".join(rows)


def _booking_summary(request: BookingConfirmationRequest) -> str:
    notes = ""
    if request.notes:
        notes = f"<p><strong>Notes:</strong> {escape(request.notes)}</p>"
    return f"""
      <div style="background: {THEME['panel']}; border: 2px solid {THEME['border']};
                  border-radius: 12px; padding: 25px; margin: 25px 0;">
        <p><strong>Date:</strong> {escape(format_display_date(request.booking_date))}</p>
        <p><strong>Time:</strong> {escape(request.booking_time)} - {escape(request.end_time)}
           ({request.total_duration} min)</p>
        <table style="width: 100%; border-collapse: collapse;">{_services_rows(request)}</table>
        <p style="border-top: 2px solid {THEME['primary']}; padding-top: 15px;">
          <strong>Total:</strong> {request.total_price:g}€
        </p>
        {notes}
      </div>
    """


def booking_confirmation_template(request: BookingConfirmationRequest, business: BusinessConfig) -> str:
    body = f"""
      <h2 style="color: {THEME['text_primary']};">Hi {escape(request.customer_name)}!</h2>
      <p style="color: {THEME['text_muted']};">
        Thank you for your booking. Your appointment has been reserved; the details are below.
      </p>
      {_booking_summary(request)}
      <ul style="color: {THEME['text_muted']};">
        <li>Please arrive on time or a little early.</li>
        <li>Cancel at least 24 hours in advance.</li>
        <li>Cancellations within 24 hours may be charged 50% of the price.</li>
      </ul>
    """
    return get_base_template("Booking confirmation", body, business)


def new_booking_notification_template(request: BookingConfirmationRequest, business: BusinessConfig) -> str:
    body = f"""
      <h2 style="color: {THEME['text_primary']};">New booking received</h2>
      <p><strong>Customer:</strong> {escape(request.customer_name)}<br>
         <strong>Phone:</strong> {escape(request.customer_phone)}<br>
         <strong>Email:</strong> {escape(request.customer_email)}<br>
         <strong>Booking ID:</strong> {escape(request.booking_id)}</p>
      {_booking_summary(request)}
    """
    return get_base_template("New booking", body, business)


def verification_code_template(code: str, ttl_minutes: int, business: BusinessConfig) -> str:
    body = f"""
      <p style="color: {THEME['text_muted']};">
        Use the code below to open your stamp card. The code expires in {ttl_minutes} minutes.
      </p>
      <div style="text-align: center; font-size: 36px; letter-spacing: 8px; font-weight: bold;
                  color: {THEME['primary']}; padding: 20px; margin: 20px 0;
                  border: 2px dashed {THEME['primary']}; border-radius: 12px;">{escape(code)}</div>
      <p style="color: {THEME['text_muted']};">If you did not ask for this code, you can ignore this email.</p>
    """
    return get_base_template("Stamp card verification code", body, business)


def _format_report_booking(data: Optional[dict[str, Any]]) -> str:
    if not data:
        return "No booking data available"

    parts = []
    service = data.get("selectedService")
    if isinstance(service, dict):
        parts.append(
            f"<strong>Service:</strong> {escape(str(service.get('name')))} "
            f"({escape(str(service.get('price')))}€)<br>"
        )
    add_ons = data.get("selectedAddOns")
    if isinstance(add_ons, list) and add_ons:
        parts.append("<strong>Add-ons:</strong><br>")
        for add_on in add_ons:
            if isinstance(add_on, dict):
                parts.append(
                    f"&nbsp;&nbsp;• {escape(str(add_on.get('name')))} "
                    f"({escape(str(add_on.get('price')))}€)<br>"
                )
    if data.get("selectedDate") and data.get("selectedTime"):
        parts.append(
            f"<strong>Time:</strong> {escape(str(data['selectedDate']))} "
            f"at {escape(str(data['selectedTime']))}<br>"
        )
    details = data.get("userDetails")
    if isinstance(details, dict):
        parts.append("<strong>Customer:</strong><br>")
        for key, label in (("name", "Name"), ("phone", "Phone"), ("email", "Email"), ("notes", "Notes")):
            if details.get(key):
                parts.append(f"&nbsp;&nbsp;{label}: {escape(str(details[key]))}<br>")
    if "raw" in data:
        parts.append(
            f"<strong>{escape(str(data.get('error') or 'Raw booking data'))}:</strong>"
            f"<pre style=\"white-space: pre-wrap;\">{escape(str(data['raw']))}</pre>"
        )

    return "".join(parts) or "Booking data available but could not be formatted"


def booking_error_report_template(
    error_message: str,
    booking_data: Optional[dict[str, Any]],
    timestamp: str,
    business: BusinessConfig,
    user_agent: Optional[str] = None,
    url: Optional[str] = None,
) -> str:
    try:
        when = datetime.fromisoformat(timestamp.replace("Z", "+00:00")).strftime("%d.%m.%Y %H:%M:%S")
    except ValueError:
        when = timestamp
    technical = [f"<strong>Timestamp:</strong> {escape(when)}<br>"]
    if user_agent:
        technical.append(f"<strong>User Agent:</strong> {escape(user_agent)}<br>")
    if url:
        technical.append(f"<strong>URL:</strong> {escape(url)}<br>")

    body = f"""
      <p>A customer hit an error while booking an appointment.</p>
      <h2 style="color: {THEME['danger']};">Error details</h2>
      <pre style="background: white; padding: 15px; border-left: 4px solid {THEME['danger']};
                  white-space: pre-wrap;">{escape(error_message)}</pre>
      <h2 style="color: {THEME['text_primary']};">Booking information</h2>
      <div>{_format_report_booking(booking_data)}</div>
      <h2 style="color: {THEME['text_primary']};">Technical details</h2>
      <div style="color: {THEME['text_muted']};">{''.join(technical)}</div>
    """
    return get_base_template("Booking error alert", body, business, accent=THEME["danger"])
