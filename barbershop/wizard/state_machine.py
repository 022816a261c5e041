"""
Four-step booking wizard with guarded forward transitions.

Steps run strictly in order: service selection, time selection,
customer details, confirmation. ``next`` is a no-op while the current
step's gate is closed, ``back`` is a no-op on the first step, and
``confirm_booking`` is only accepted on the last step.

Usage:
    wizard = BookingWizard(store, submitter, on_close=modal.close)
    wizard.select_main_service(haircut)
    wizard.next()
    assert wizard.current_step == WizardStep.TIME_SELECTION
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from enum import Enum, IntEnum
from typing import Callable, Optional

from barbershop.clients.store import DataStore
from barbershop.schemas.draft_schema import BookingDraft, CustomerDetails
from barbershop.schemas.service_schema import Service
from barbershop.tools import services as selection
from barbershop.tools.availability import (
    WeekAvailability,
    fetch_week_availability,
    is_past_or_today,
)
from barbershop.tools.booking import BookingSubmitter, SubmissionResult
from barbershop.wizard.details import details_errors, is_details_valid

logger = logging.getLogger(__name__)


class WizardStep(IntEnum):
    SERVICE_SELECTION = 1
    TIME_SELECTION = 2
    CUSTOMER_DETAILS = 3
    CONFIRMATION = 4


class WizardTrigger(str, Enum):
    NEXT = "next"
    BACK = "back"
    CONFIRM = "confirm"


@dataclass
class Transition:
    """A single valid step transition; ``guard`` receives the wizard."""
    from_step: WizardStep
    to_step: WizardStep
    trigger: WizardTrigger
    guard: Optional[Callable[["BookingWizard"], bool]] = None


@dataclass
class StepEntry:
    """Recorded history entry for a step visit."""
    step: WizardStep
    entered_at: datetime
    trigger: Optional[WizardTrigger] = None


class InvalidTransitionError(Exception):
    """Raised when a trigger has no transition from the current step."""


def _has_main_service(wizard: "BookingWizard") -> bool:
    return wizard.draft.main_service is not None


def _has_date_and_time(wizard: "BookingWizard") -> bool:
    day = wizard.draft.selected_date
    if day is None or is_past_or_today(day, wizard.today):
        return False
    return bool(wizard.draft.selected_time)


def _details_valid(wizard: "BookingWizard") -> bool:
    return is_details_valid(wizard.draft.details)


class BookingWizard:
    """
    Drives a BookingDraft through the four booking steps.

    Forward transitions carry guards; a closed guard leaves the step
    unchanged rather than raising, matching a disabled "next" button.
    Triggers with no transition at all raise InvalidTransitionError.
    """

    TRANSITIONS: list[Transition] = [
        Transition(WizardStep.SERVICE_SELECTION, WizardStep.TIME_SELECTION,
                   WizardTrigger.NEXT, _has_main_service),
        Transition(WizardStep.TIME_SELECTION, WizardStep.CUSTOMER_DETAILS,
                   WizardTrigger.NEXT, _has_date_and_time),
        Transition(WizardStep.CUSTOMER_DETAILS, WizardStep.CONFIRMATION,
                   WizardTrigger.NEXT, _details_valid),

        Transition(WizardStep.TIME_SELECTION, WizardStep.SERVICE_SELECTION,
                   WizardTrigger.BACK),
        Transition(WizardStep.CUSTOMER_DETAILS, WizardStep.TIME_SELECTION,
                   WizardTrigger.BACK),
        Transition(WizardStep.CONFIRMATION, WizardStep.CUSTOMER_DETAILS,
                   WizardTrigger.BACK),

        # Successful confirmation starts over with an empty draft.
        Transition(WizardStep.CONFIRMATION, WizardStep.SERVICE_SELECTION,
                   WizardTrigger.CONFIRM),
    ]

    def __init__(
        self,
        store: DataStore,
        submitter: BookingSubmitter,
        on_close: Optional[Callable[[], None]] = None,
        clock: Callable[[], date] = date.today,
    ) -> None:
        self._store = store
        self._submitter = submitter
        self._on_close = on_close
        self._clock = clock
        self.draft = BookingDraft()
        self.availability: Optional[WeekAvailability] = None
        self.submission_error: Optional[str] = None
        self._submitting = False
        self._current_step = WizardStep.SERVICE_SELECTION
        self._history: list[StepEntry] = [
            StepEntry(step=self._current_step, entered_at=datetime.now(timezone.utc))
        ]

    @property
    def current_step(self) -> WizardStep:
        return self._current_step

    @property
    def is_submitting(self) -> bool:
        return self._submitting

    @property
    def today(self) -> date:
        return self._clock()

    # --- Transitions ---

    def _find(self, trigger: WizardTrigger) -> Transition:
        for t in self.TRANSITIONS:
            if t.from_step == self._current_step and t.trigger == trigger:
                return t
        valid = [t.value for t in self.get_valid_triggers()]
        raise InvalidTransitionError(
            f"No '{trigger.value}' transition from step {self._current_step.value} "
            f"({self._current_step.name}). Valid triggers: {valid}"
        )

    def _enter(self, step: WizardStep, trigger: WizardTrigger) -> WizardStep:
        old_step = self._current_step
        self._current_step = step
        self._history.append(StepEntry(
            step=step, entered_at=datetime.now(timezone.utc), trigger=trigger,
        ))
        logger.debug(
            "Wizard step: %s -> %s (trigger: %s)", old_step.name, step.name, trigger.value,
        )
        return step

    def can_advance(self) -> bool:
        """Whether ``next`` would move forward from the current step."""
        for t in self.TRANSITIONS:
            if t.from_step == self._current_step and t.trigger == WizardTrigger.NEXT:
                return t.guard is None or t.guard(self)
        return False

    def can_go_back(self) -> bool:
        return self._current_step != WizardStep.SERVICE_SELECTION

    def next(self) -> WizardStep:
        """Advance one step if the current step's gate is open."""
        if not self.can_advance():
            return self._current_step
        return self._enter(self._find(WizardTrigger.NEXT).to_step, WizardTrigger.NEXT)

    def back(self) -> WizardStep:
        """Go back one step; no-op on the first step."""
        if not self.can_go_back():
            return self._current_step
        return self._enter(self._find(WizardTrigger.BACK).to_step, WizardTrigger.BACK)

    def get_valid_triggers(self) -> list[WizardTrigger]:
        return [t.trigger for t in self.TRANSITIONS if t.from_step == self._current_step]

    def get_history(self) -> list[StepEntry]:
        return list(self._history)

    def get_step_trace(self) -> list[int]:
        return [entry.step.value for entry in self._history]

    # --- Step 1: services ---

    def select_main_service(self, service: Optional[Service]) -> None:
        selection.select_main_service(self.draft, service)

    def toggle_add_on(self, add_on: Service) -> None:
        selection.toggle_add_on(self.draft, add_on)

    def offerable_add_ons(self, all_services: list[Service]) -> list[Service]:
        return selection.compute_offerable_add_ons(self.draft.main_service, all_services)

    @property
    def total_duration(self) -> int:
        if self.draft.main_service is None:
            return 0
        return selection.total_duration(self.draft.main_service, self.draft.add_ons)

    @property
    def total_price(self) -> float:
        if self.draft.main_service is None:
            return 0
        return selection.total_price(self.draft.main_service, self.draft.add_ons)

    # --- Step 2: time ---

    async def load_week(self, week_of: date) -> Optional[WeekAvailability]:
        """Compute the week's slots for the current services' total duration."""
        if self.draft.main_service is None:
            return None
        self.availability = await fetch_week_availability(
            self._store, week_of, self.total_duration, today=self.today
        )
        return self.availability

    def select_date(self, day: date) -> bool:
        """Pick the appointment day. Today and past days are refused."""
        if is_past_or_today(day, self.today):
            logger.debug("Refusing date %s (today is %s)", day, self.today)
            return False
        self.draft.selected_date = day
        return True

    def select_time(self, time: str) -> None:
        self.draft.selected_time = time

    # --- Step 3: details ---

    def update_details(self, details: CustomerDetails) -> dict[str, str]:
        """Replace the customer details and return per-field errors."""
        self.draft.details = details
        return details_errors(details)

    # --- Step 4: confirm ---

    async def confirm_booking(self) -> Optional[SubmissionResult]:
        """Submit the draft. Returns None when a submission is already in flight."""
        transition = self._find(WizardTrigger.CONFIRM)
        if self._submitting:
            logger.debug("Ignoring confirm while a submission is in flight")
            return None

        self._submitting = True
        self.submission_error = None
        try:
            result = await self._submitter.submit(self.draft)
        finally:
            self._submitting = False

        if not result["success"]:
            self.submission_error = result["message"]
            return result

        self.reset()
        self._enter(transition.to_step, WizardTrigger.CONFIRM)
        if self._on_close is not None:
            self._on_close()
        return result

    def reset(self) -> None:
        """Discard all selections and details."""
        self.draft = BookingDraft()
        self.availability = None
        self.submission_error = None
