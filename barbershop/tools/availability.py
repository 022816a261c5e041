"""
Weekly slot generation against operating hours, bookings and blocks.

A slot is a candidate start time every ``slot_step_minutes`` from opening
time up to (not including) closing time. A candidate is dropped if the
interval ``[start, start + duration)`` overlaps an active booking or a
booked availability block.

When a reference ``today`` is given, that day and every earlier day are
closed: bookings open from tomorrow onwards.
"""

import logging
from datetime import date, timedelta
from typing import Iterable, NamedTuple, Optional, TypedDict

from barbershop.clients.errors import BackendError
from barbershop.clients.store import DataStore
from barbershop.config import settings
from barbershop.schemas.booking_schema import (
    ACTIVE_BOOKING_STATUSES,
    AvailabilityBlock,
    BookingRecord,
)
from barbershop.utils import minutes_to_time, time_to_minutes

logger = logging.getLogger(__name__)


class OpeningHours(NamedTuple):
    start: str
    end: str


# Keyed by date.weekday(): Monday=0 ... Sunday=6. None means closed.
OPERATING_HOURS: dict[int, Optional[OpeningHours]] = {
    0: OpeningHours("10:00", "18:00"),
    1: OpeningHours("10:00", "18:00"),
    2: OpeningHours("10:00", "18:00"),
    3: OpeningHours("10:00", "18:00"),
    4: OpeningHours("10:00", "18:00"),
    5: OpeningHours("10:00", "17:00"),
    6: None,
}

FETCH_FAILED_MESSAGE = (
    "Loading appointment times failed. Check your connection or try again later."
)


class WeekAvailability(TypedDict):
    """Result of fetch_week_availability."""

    week_start: str
    slots: dict[str, list[str]]
    fetch_failed: bool
    message: str


def get_week_dates(any_day: date) -> list[date]:
    """Return Monday through Sunday of the week containing ``any_day``."""
    monday = any_day - timedelta(days=any_day.weekday())
    return [monday + timedelta(days=i) for i in range(7)]


def get_operating_hours(day: date) -> Optional[OpeningHours]:
    return OPERATING_HOURS[day.weekday()]


def is_past_or_today(day: date, today: Optional[date]) -> bool:
    """Whether ``day`` is closed for booking relative to ``today``; no reference closes nothing."""
    return today is not None and day <= today


def _booking_interval(booking: BookingRecord) -> Optional[tuple[int, int]]:
    """Extent of a booking in minutes, or None if it cannot be determined."""
    start = time_to_minutes(booking.booking_time)
    if booking.end_at_time:
        return start, time_to_minutes(booking.end_at_time)
    if booking.total_duration_minutes:
        return start, start + booking.total_duration_minutes
    logger.debug("Skipping booking %s without end time or duration", booking.id)
    return None


def _overlaps(start: int, end: int, other_start: int, other_end: int) -> bool:
    return start < other_end and end > other_start


def generate_day_slots(
    day: date,
    duration_minutes: int,
    bookings: Iterable[BookingRecord],
    blocks: Iterable[AvailabilityBlock],
    step_minutes: int = settings.booking.slot_step_minutes,
    enforce_closing_time: bool = settings.booking.enforce_closing_time,
) -> list[str]:
    """Bookable start times for a single day, ascending.

    ``bookings`` and ``blocks`` may span several days; only those dated
    ``day`` are considered. With ``enforce_closing_time`` off, a slot may
    start before closing and run past it.
    """
    hours = get_operating_hours(day)
    if hours is None:
        return []

    day_start = time_to_minutes(hours.start)
    day_end = time_to_minutes(hours.end)

    busy: list[tuple[int, int]] = []
    for booking in bookings:
        if booking.booking_date != day:
            continue
        interval = _booking_interval(booking)
        if interval is not None:
            busy.append(interval)
    for block in blocks:
        if block.date == day:
            busy.append((time_to_minutes(block.start_time), time_to_minutes(block.end_time)))

    slots = []
    for slot_start in range(day_start, day_end, step_minutes):
        slot_end = slot_start + duration_minutes
        if enforce_closing_time and slot_end > day_end:
            continue
        if any(_overlaps(slot_start, slot_end, b_start, b_end) for b_start, b_end in busy):
            continue
        slots.append(minutes_to_time(slot_start))
    return slots


def generate_week_slots(
    week_of: date,
    duration_minutes: int,
    bookings: Iterable[BookingRecord],
    blocks: Iterable[AvailabilityBlock],
    step_minutes: int = settings.booking.slot_step_minutes,
    enforce_closing_time: bool = settings.booking.enforce_closing_time,
    today: Optional[date] = None,
) -> dict[str, list[str]]:
    """Slots for each of the 7 days of the week containing ``week_of``, keyed by ISO date.

    Days on or before ``today`` get no slots.
    """
    bookings = list(bookings)
    blocks = list(blocks)
    return {
        day.isoformat(): (
            []
            if is_past_or_today(day, today)
            else generate_day_slots(
                day, duration_minutes, bookings, blocks, step_minutes, enforce_closing_time
            )
        )
        for day in get_week_dates(week_of)
    }


def empty_week(week_of: date) -> dict[str, list[str]]:
    return {day.isoformat(): [] for day in get_week_dates(week_of)}


async def fetch_week_availability(
    store: DataStore,
    week_of: date,
    duration_minutes: int,
    enforce_closing_time: bool = settings.booking.enforce_closing_time,
    today: Optional[date] = None,
) -> WeekAvailability:
    """Fetch the week's bookings and blocks and compute slots.

    A store failure yields ``fetch_failed=True`` with an empty list for every
    day, so callers can tell it apart from a fully booked week.
    """
    week = get_week_dates(week_of)
    start, end = week[0], week[-1]
    try:
        bookings = await store.list_bookings(start, end, ACTIVE_BOOKING_STATUSES)
        blocks = await store.list_booked_blocks(start, end)
    except BackendError:
        logger.exception("Fetching availability for week of %s failed", start)
        return {
            "week_start": start.isoformat(),
            "slots": empty_week(start),
            "fetch_failed": True,
            "message": FETCH_FAILED_MESSAGE,
        }

    slots = generate_week_slots(
        start, duration_minutes, bookings, blocks,
        enforce_closing_time=enforce_closing_time, today=today,
    )
    total = sum(len(day_slots) for day_slots in slots.values())
    logger.info(
        "Computed %d slots for week of %s (%d min, %d bookings, %d blocks)",
        total, start, duration_minutes, len(bookings), len(blocks),
    )
    return {
        "week_start": start.isoformat(),
        "slots": slots,
        "fetch_failed": False,
        "message": f"{total} time slots available in the week of {start.isoformat()}.",
    }


def first_day_with_slots(slots: dict[str, list[str]]) -> Optional[str]:
    """The day to expand by default: first with slots, else the first day."""
    for day, day_slots in slots.items():
        if day_slots:
            return day
    return next(iter(slots), None)
