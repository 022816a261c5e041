"""Customer details validation for the third wizard step."""

import re
from typing import Optional

from barbershop.schemas.draft_schema import CustomerDetails

MIN_NAME_LENGTH = 2

# Finnish mobile number: leading 0 or +358, then 8-9 digits.
PHONE_PATTERN = re.compile(r"^(\+358|0)[0-9]{8,9}$")
EMAIL_PATTERN = re.compile(r"^[a-z0-9._%+-]+@[a-z0-9.-]+\.[a-z]{2,}$", re.IGNORECASE)


def validate_name(value: str) -> Optional[str]:
    if not value.strip():
        return "Name is required"
    if len(value.strip()) < MIN_NAME_LENGTH:
        return f"Name must be at least {MIN_NAME_LENGTH} characters"
    return None


def validate_phone(value: str) -> Optional[str]:
    if not value.strip():
        return "Phone number is required"
    if not PHONE_PATTERN.match(value.strip()):
        return "Enter a valid Finnish phone number (e.g. 0401234567 or +358401234567)"
    return None


def validate_email(value: str) -> Optional[str]:
    if not value.strip():
        return "Email address is required"
    if not EMAIL_PATTERN.match(value.strip()):
        return "Enter a valid email address (e.g. name@email.com)"
    return None


def details_errors(details: CustomerDetails) -> dict[str, str]:
    """Per-field error messages; empty when the details are valid. Notes are free text."""
    checks = {
        "name": validate_name(details.name),
        "phone": validate_phone(details.phone),
        "email": validate_email(details.email),
    }
    return {field: error for field, error in checks.items() if error}


def is_details_valid(details: CustomerDetails) -> bool:
    return not details_errors(details)
