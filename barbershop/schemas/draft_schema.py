"""In-memory booking draft owned by the wizard."""

from dataclasses import dataclass, field
from datetime import date
from typing import Optional

from barbershop.schemas.service_schema import Service


@dataclass
class CustomerDetails:
    name: str = ""
    phone: str = ""
    email: str = ""
    notes: str = ""


@dataclass
class BookingDraft:
    """
    Transient wizard state. Created empty when the wizard opens and
    reset to empty after a successful submission; never persisted.
    """
    main_service: Optional[Service] = None
    add_ons: list[Service] = field(default_factory=list)
    selected_date: Optional[date] = None
    selected_time: Optional[str] = None
    details: CustomerDetails = field(default_factory=CustomerDetails)

    @property
    def services(self) -> list[Service]:
        """Main service first, then add-ons in selection order."""
        if self.main_service is None:
            return []
        return [self.main_service, *self.add_ons]

    def to_report_dict(self) -> dict:
        """Serializable snapshot used in operator error reports."""
        return {
            "selectedService": self.main_service.model_dump() if self.main_service else None,
            "selectedAddOns": [a.model_dump() for a in self.add_ons],
            "selectedDate": self.selected_date.isoformat() if self.selected_date else "",
            "selectedTime": self.selected_time or "",
            "userDetails": {
                "name": self.details.name,
                "phone": self.details.phone,
                "email": self.details.email,
                "notes": self.details.notes,
            },
        }
