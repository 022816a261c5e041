from barbershop.wizard.details import details_errors, is_details_valid
from barbershop.wizard.state_machine import (
    BookingWizard,
    InvalidTransitionError,
    WizardStep,
    WizardTrigger,
)

__all__ = [
    "BookingWizard",
    "WizardStep",
    "WizardTrigger",
    "InvalidTransitionError",
    "details_errors",
    "is_details_valid",
]
