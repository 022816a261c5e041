"""
Offline console demo: books an appointment and opens a stamp card without
any network access or API keys.

Runs the real wizard, slot generator, submission and loyalty flow against
the in-memory store. The serverless functions run in-process behind an
httpx ASGI transport and "send" email to a console outbox.

Usage:
    python console_demo.py
    python console_demo.py --scenario booking
    python console_demo.py --scenario loyalty
"""

import argparse
import asyncio
from dataclasses import replace
from datetime import date, timedelta
from typing import Optional

import httpx

from barbershop.clients.email import ConsoleEmailSender
from barbershop.clients.functions import FunctionsClient
from barbershop.clients.store import InMemoryStore
from barbershop.config import settings
from barbershop.functions.app import create_app
from barbershop.schemas.booking_schema import AvailabilityBlock, BookingRecord, BookingStatus
from barbershop.schemas.draft_schema import CustomerDetails
from barbershop.schemas.loyalty_schema import StampCard
from barbershop.schemas.service_schema import AddOnType, Service
from barbershop.tools.availability import first_day_with_slots
from barbershop.tools.booking import BookingSubmitter
from barbershop.tools.loyalty import IdentifierCache, LoyaltyFlow, LoyaltyState
from barbershop.tools.services import fetch_service_catalog
from barbershop.wizard import BookingWizard, WizardStep

BLUE = "\033[94m"
GREEN = "\033[92m"
YELLOW = "\033[93m"
RED = "\033[91m"
DIM = "\033[2m"
RESET = "\033[0m"
BOLD = "\033[1m"

DEMO_SERVICES = [
    Service(id="svc-haircut", name="Haircut", price=28, duration_minutes=30,
            category="Hair", add_on_type=AddOnType.HAIR),
    Service(id="svc-clipper", name="Clipper cut", price=22, duration_minutes=20,
            category="Hair", add_on_type=AddOnType.HAIR),
    Service(id="svc-beard", name="Beard trim", price=18, duration_minutes=20,
            category="Beard", add_on_type=AddOnType.BEARD),
    Service(id="svc-kids", name="Kids haircut", price=20, duration_minutes=25,
            category="Kids", add_on_type=AddOnType.KID),
    Service(id="svc-wash", name="Hair wash", price=8, duration_minutes=10,
            category="Extras", add_on_type=AddOnType.GENERAL),
    Service(id="svc-brows", name="Eyebrow shaping", price=10, duration_minutes=10,
            category="Extras", add_on_type=AddOnType.GENERAL),
]

DEMO_CARD = StampCard(
    id="card-1", email="matti@example.com", name="Matti Meikäläinen",
    referral_code="MATTI10", stamps=7, referral_count=1,
)


def _next_weekday(start: date) -> date:
    day = start + timedelta(days=1)
    while day.weekday() == 6:
        day += timedelta(days=1)
    return day


def build_demo_store(today: date) -> InMemoryStore:
    """In-memory store with a small catalogue, one booking, one block and a stamp card."""
    store = InMemoryStore()
    for service in DEMO_SERVICES:
        store.add_service(service)
    busy_day = _next_weekday(today)
    store.add_booking(BookingRecord(
        user_name="Existing Customer", user_phone="0401234567",
        user_email="existing@example.com", booking_date=busy_day,
        booking_time="10:00", end_at_time="11:00", total_duration_minutes=60,
        status=BookingStatus.CONFIRMED,
    ))
    store.add_block(AvailabilityBlock(
        date=busy_day, start_time="12:00", end_time="13:00", is_booked=True,
    ))
    store.add_stamp_card(DEMO_CARD)
    return store


class ConsoleSession:
    """Walks the booking wizard and the stamp card flow in the terminal."""

    SCENARIOS = ("booking", "loyalty")

    def __init__(self, today: Optional[date] = None) -> None:
        self.today = today or date.today()
        self.store = build_demo_store(self.today)
        self.outbox = ConsoleEmailSender()
        config = replace(
            settings,
            email=replace(settings.email, admin_email=settings.email.admin_email or "owner@example.com"),
        )
        self.app = create_app(store=self.store, email_sender=self.outbox, config=config)
        self.functions = FunctionsClient(
            "http://demo/functions/v1",
            client=httpx.AsyncClient(
                transport=httpx.ASGITransport(app=self.app),
                base_url="http://demo/functions/v1",
            ),
        )
        self.submitter = BookingSubmitter(self.store, self.functions, user_agent="console-demo")
        self.wizard = BookingWizard(
            self.store, self.submitter, on_close=self._on_close, clock=lambda: self.today
        )
        self.loyalty = LoyaltyFlow(self.store, self.functions, IdentifierCache())

    def say(self, text: str) -> None:
        print(f"{GREEN}{BOLD}[{settings.business.name}]{RESET} {GREEN}{text}{RESET}")

    def system_log(self, text: str) -> None:
        print(f"{DIM}  >> {text}{RESET}")

    def customer(self, text: str) -> None:
        print(f"\n{BLUE}[Customer] {RESET}{text}")

    def _on_close(self) -> None:
        self.system_log("Booking modal closed")

    def _banner(self, title: str) -> None:
        print()
        print(f"{BOLD}{'=' * 60}{RESET}")
        print(f"{BOLD}  {title}{RESET}")
        print(f"{BOLD}  Business: {settings.business.name}{RESET}")
        print(f"{BOLD}{'=' * 60}{RESET}")
        print()

    def _show_outbox(self) -> None:
        for message in self.outbox.outbox:
            self.system_log(f"Email to {', '.join(message.to)}: {message.subject}")
        self.outbox.outbox.clear()

    # ------------------------------------------------------------------ #
    # Booking wizard
    # ------------------------------------------------------------------ #

    async def run_booking(self, pick: Optional[dict[str, str]] = None) -> None:
        """Book an appointment; ``pick`` pre-answers the prompts for scripted runs."""
        pick = pick or {}
        catalog = await fetch_service_catalog(self.store)

        self.say("Choose a service:")
        for index, service in enumerate(catalog.main_services, 1):
            print(f"  {index}. {service.name} ({service.duration_minutes} min, {service.price:.2f} EUR)")
        choice = self._ask("Service number", pick.get("service"))
        main = catalog.main_services[int(choice) - 1]
        self.wizard.select_main_service(main)

        add_ons = self.wizard.offerable_add_ons(catalog.services)
        if add_ons:
            self.say("Add-ons available:")
            for index, add_on in enumerate(add_ons, 1):
                print(f"  {index}. {add_on.name} (+{add_on.duration_minutes} min, +{add_on.price:.2f} EUR)")
            raw = self._ask("Add-on numbers separated by commas (blank for none)", pick.get("add_ons", ""))
            for part in filter(None, (p.strip() for p in raw.split(","))):
                self.wizard.toggle_add_on(add_ons[int(part) - 1])
        self.system_log(
            f"Total {self.wizard.total_duration} min, {self.wizard.total_price:.2f} EUR"
        )
        self.wizard.next()

        availability = await self.wizard.load_week(_next_weekday(self.today))
        if availability is None or availability["fetch_failed"]:
            self.say(availability["message"] if availability else "Pick a service first.")
            return
        slots = availability["slots"]
        default_day = first_day_with_slots(slots)
        for day, day_slots in slots.items():
            label = ", ".join(day_slots[:8]) + (" ..." if len(day_slots) > 8 else "")
            print(f"  {day}: {label or 'no times'}")
        day = self._ask(f"Date (default {default_day})", pick.get("date")) or default_day
        if not slots.get(day):
            self.say("No free times on that day.")
            return
        time = self._ask(f"Time (default {slots[day][0]})", pick.get("time")) or slots[day][0]
        self.wizard.select_date(date.fromisoformat(day))
        self.wizard.select_time(time)
        self.wizard.next()

        details = CustomerDetails(
            name=self._ask("Name", pick.get("name")),
            phone=self._ask("Phone", pick.get("phone")),
            email=self._ask("Email", pick.get("email")),
            notes=self._ask("Notes", pick.get("notes", "")),
        )
        errors = self.wizard.update_details(details)
        for field, error in errors.items():
            self.say(f"{field}: {error}")
        if self.wizard.next() != WizardStep.CONFIRMATION:
            return

        self.say(
            f"Confirm {main.name} on {day} at {time} "
            f"({self.wizard.total_duration} min, {self.wizard.total_price:.2f} EUR)?"
        )
        result = await self.wizard.confirm_booking()
        await self.submitter.drain_reports()
        if result is None:
            return
        self.say(result["message"])
        if result["success"]:
            self.system_log(f"Booking id: {result['booking_id']}")
        self._show_outbox()
        self.system_log(f"Step trace: {' -> '.join(map(str, self.wizard.get_step_trace()))}")

    # ------------------------------------------------------------------ #
    # Stamp card
    # ------------------------------------------------------------------ #

    async def run_loyalty(self, identifier: Optional[str] = None) -> None:
        scripted = identifier is not None
        await self.loyalty.start()
        if self.loyalty.state != LoyaltyState.RESOLVED:
            identifier = self._ask("Email or referral code", identifier)
            await self.loyalty.submit_identifier(identifier)

        if self.loyalty.state == LoyaltyState.CODE_INPUT:
            self._show_outbox()
            live = self.store.verification_codes.get(self.loyalty.pending_email.lower())
            self.system_log(f"Code in outbox: {live.code if live else '?'}")
            code = self._ask("Verification code", live.code if live and scripted else None)
            await self.loyalty.submit_code(code)

        for message in (self.loyalty.error_message, self.loyalty.verification_error,
                        self.loyalty.api_error):
            if message:
                self.say(f"{RED}{message}{RESET}")

        if self.loyalty.state == LoyaltyState.RESOLVED and self.loyalty.stamp_card:
            card = self.loyalty.stamp_card
            self.say(
                f"{card.name}: {card.stamps}/{self.loyalty.total_stamps} stamps, "
                f"{self.loyalty.stamps_remaining} to go. Referral code {card.referral_code}."
            )

    def _ask(self, prompt: str, scripted: Optional[str]) -> str:
        if scripted is not None:
            self.customer(f"{prompt}: {scripted}")
            return scripted
        return input(f"\n{BLUE}[Customer] {prompt}: {RESET}").strip()

    async def run_scenario(self, scenario: str) -> None:
        """Auto-play a pre-scripted scenario for demo purposes."""
        if scenario not in self.SCENARIOS:
            print(f"{RED}Unknown scenario: {scenario}{RESET}")
            return
        self._banner(f"BARBERSHOP BOOKING - Scenario: {scenario}")
        try:
            if scenario == "booking":
                await self.run_booking({
                    "service": "1", "add_ons": "1", "date": "", "time": "",
                    "name": "Teemu Testaaja", "phone": "0401234567",
                    "email": "teemu@example.com", "notes": "",
                })
            else:
                await self.run_loyalty(DEMO_CARD.email)
                self.loyalty.logout()
                await self.run_loyalty(DEMO_CARD.referral_code.lower())
        finally:
            await self.functions.aclose()
        print(f"\n{BOLD}  Scenario '{scenario}' complete.{RESET}")

    async def run(self) -> None:
        self._banner("BARBERSHOP BOOKING - Console Demo")
        try:
            while True:
                choice = input(f"\n{BLUE}[b]ook, [s]tamp card or [q]uit: {RESET}").strip().lower()
                if choice in ("q", "quit", "exit"):
                    print(f"\n{DIM}Session ended.{RESET}")
                    return
                if choice.startswith("b"):
                    await self.run_booking()
                elif choice.startswith("s"):
                    await self.run_loyalty()
        finally:
            await self.functions.aclose()


def main() -> None:
    parser = argparse.ArgumentParser(description="Offline barbershop booking demo")
    parser.add_argument("--scenario", choices=ConsoleSession.SCENARIOS, default=None)
    args = parser.parse_args()

    session = ConsoleSession()
    if args.scenario:
        asyncio.run(session.run_scenario(args.scenario))
    else:
        asyncio.run(session.run())


if __name__ == "__main__":
    main()
