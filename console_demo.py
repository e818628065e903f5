"""
Offline console demo: plays scripted reservation scenarios end to end.

Everything runs against in-memory collaborators, so no Redis or database
is needed. Designed for live demo walkthroughs.

Usage:
    python console_demo.py
    python console_demo.py --scenario race
    python console_demo.py --scenario calendar
"""

import argparse
from concurrent.futures import ThreadPoolExecutor
from datetime import time, timedelta

from reservation_core.bootstrap import build_core
from reservation_core.booking.events import InMemoryEventPublisher
from reservation_core.errors import ReservationError
from reservation_core.logging_context import set_request_id
from reservation_core.schemas.booking_schema import BookingRequest
from reservation_core.schemas.menu_schema import Menu, MenuOption
from reservation_core.schemas.resource_schema import Resource, ResourceType
from reservation_core.schemas.store_schema import Store
from reservation_core.schemas.time_schema import DailyHours, TimeInterval
from reservation_core.store.catalog import InMemoryCatalog
from reservation_core.utils import DAY_NAMES, format_time, mask_token

BLUE = "\033[94m"
GREEN = "\033[92m"
YELLOW = "\033[93m"
RED = "\033[91m"
DIM = "\033[2m"
RESET = "\033[0m"
BOLD = "\033[1m"

DEMO_STORE_ID = 1
DEMO_MENU_ID = 10
DEMO_OPTION_ID = 100
DEMO_STYLISTS = (20, 21)
RACE_CLIENTS = 8


def _demo_catalog() -> InMemoryCatalog:
    catalog = InMemoryCatalog()
    hours = DailyHours(open=time(9, 0), close=time(18, 0))
    catalog.add_store(Store(
        id=DEMO_STORE_ID,
        name="Salon Aoyama",
        business_hours={day: hours for day in DAY_NAMES if day != "sunday"},
    ))
    catalog.add_menu(Menu(
        id=DEMO_MENU_ID,
        store_id=DEMO_STORE_ID,
        name="Cut & Blow",
        base_price=3000,
        prep_duration=10,
        base_duration=60,
        cleanup_duration=5,
        resource_types=[ResourceType.STAFF],
        options=[MenuOption(id=DEMO_OPTION_ID, menu_id=DEMO_MENU_ID, name="Head spa", price=500)],
    ))
    catalog.add_resource(Resource(
        id=DEMO_STYLISTS[0], store_id=DEMO_STORE_ID, name="Yuki",
        hourly_rate_diff=1000, nomination_fee=300,
    ))
    catalog.add_resource(Resource(
        id=DEMO_STYLISTS[1], store_id=DEMO_STORE_ID, name="Ren",
        working_hours={"monday": DailyHours(open=time(12, 0), close=time(18, 0))},
    ))
    return catalog


class ConsoleSession:
    """Runs scenarios against a freshly built in-memory core."""

    def __init__(self) -> None:
        self.events = InMemoryEventPublisher()
        self.core = build_core(catalog=_demo_catalog(), publisher=self.events)
        self.day = self.core.holds.clock().date() + timedelta(days=1)
        if DAY_NAMES[self.day.weekday()] == "sunday":
            self.day += timedelta(days=1)

    def say(self, text: str) -> None:
        print(f"{GREEN}{text}{RESET}")

    def warn(self, text: str) -> None:
        print(f"{YELLOW}{text}{RESET}")

    def system_log(self, text: str) -> None:
        print(f"{DIM}  >> {text}{RESET}")

    SCENARIOS = ("booking", "race", "calendar")

    def run_scenario(self, scenario: str) -> None:
        handler = getattr(self, f"_scenario_{scenario}", None)
        if handler is None:
            print(f"{RED}Unknown scenario: {scenario}{RESET}")
            return

        set_request_id(f"DEMO-{scenario}")
        print()
        print(f"{BOLD}{'=' * 60}{RESET}")
        print(f"{BOLD}  RESERVATION CORE - Scenario: {scenario}{RESET}")
        print(f"{BOLD}  Store: {self.core.catalog.get_store(DEMO_STORE_ID).name}{RESET}")
        print(f"{BOLD}{'=' * 60}{RESET}")
        print()
        try:
            handler()
        except ReservationError as e:
            print(f"{RED}[{e.code}] {e.message}{RESET}")

        print(f"\n{BOLD}{'=' * 60}{RESET}")
        print(f"{BOLD}  Scenario '{scenario}' complete.{RESET}")
        print(f"{DIM}  Events published: {[e.type.value for e in self.events.events]}{RESET}")
        print(f"{BOLD}{'=' * 60}{RESET}")

    # ------------------------------------------------------------------ #
    # Scenarios
    # ------------------------------------------------------------------ #

    def _show_slots(self, resource_id=None) -> list:
        slots = self.core.availability.get_available_slots(
            DEMO_STORE_ID, self.day, DEMO_MENU_ID, resource_id
        )
        preview = ", ".join(format_time(s.start) for s in slots[:8])
        self.system_log(f"{len(slots)} slot(s) on {self.day}: {preview}{' ...' if len(slots) > 8 else ''}")
        return slots

    def _scenario_booking(self) -> None:
        stylist = DEMO_STYLISTS[0]
        slots = self._show_slots(stylist)
        if not slots:
            self.warn("No availability, nothing to book.")
            return
        first = slots[0]
        interval = TimeInterval(date=self.day, start=first.start, end=first.end)

        print(f"\n{BLUE}[Customer]{RESET} Hold {interval.label()} with stylist {stylist}")
        lease = self.core.holds.create_hold(DEMO_STORE_ID, stylist, interval, DEMO_MENU_ID).unwrap()
        self.say(f"Hold granted: {mask_token(lease.token)} until {lease.expires_at:%H:%M:%S}")

        lease = self.core.holds.extend_hold(lease.token, 5)
        self.system_log(f"Extended, now expires {lease.expires_at:%H:%M:%S}")

        rival = self.core.holds.create_hold(DEMO_STORE_ID, stylist, interval, DEMO_MENU_ID)
        self.system_log(f"Second hold on the same slot: {'granted' if rival.ok else rival.error.code}")

        request = BookingRequest(
            menu_id=DEMO_MENU_ID,
            date=self.day,
            start=first.start,
            resource_id=stylist,
            option_ids=[DEMO_OPTION_ID],
        )
        booking = self.core.orchestrator.create_booking(
            DEMO_STORE_ID, request, hold_token=lease.token, actor_id="console"
        ).unwrap()
        pricing = booking.pricing
        self.say(
            f"Booked {booking.booking_number} ({booking.status.value}) "
            f"total {booking.total_price}: base {pricing.base_price} + options "
            f"{pricing.options_total} + resource {pricing.resource_line}"
        )
        self.system_log(f"Hold still valid? {self.core.holds.release_hold(lease.token)}")
        self._show_slots(stylist)

        cancelled = self.core.orchestrator.cancel_booking(
            DEMO_STORE_ID, booking.id, reason="Changed plans", actor_id="console"
        )
        self.warn(f"Cancelled {cancelled.booking_number}")
        stats = self.core.holds.get_hold_stats(DEMO_STORE_ID, self.day)
        self.system_log(f"Hold stats: {stats.model_dump()} conversion={stats.conversion_rate:.0%}")

    def _scenario_race(self) -> None:
        stylist = DEMO_STYLISTS[0]
        request = BookingRequest(
            menu_id=DEMO_MENU_ID, date=self.day, start=time(10, 0), resource_id=stylist,
        )
        print(f"{BLUE}[Clients]{RESET} {RACE_CLIENTS} clients book 10:00 with stylist {stylist} at once")
        with ThreadPoolExecutor(max_workers=RACE_CLIENTS) as pool:
            results = list(pool.map(
                lambda _: self.core.orchestrator.create_booking(DEMO_STORE_ID, request),
                range(RACE_CLIENTS),
            ))
        winners = [r.value for r in results if r.ok]
        for booking in winners:
            self.say(f"Winner: {booking.booking_number} {booking.interval.label()}")
        self.warn(f"{len(results) - len(winners)} client(s) got a conflict")

    def _scenario_calendar(self) -> None:
        calendar = self.core.availability.get_availability_calendar(DEMO_STORE_ID, DEMO_MENU_ID, days=7)
        for day, summary in calendar.items():
            if summary.available:
                self.say(
                    f"{day} {DAY_NAMES[day.weekday()][:3]}: {summary.slots_count} slots, "
                    f"{format_time(summary.first_available)}-{format_time(summary.last_available)}"
                )
            else:
                self.warn(f"{day} {DAY_NAMES[day.weekday()][:3]}: closed or full")
        nxt = self.core.availability.get_next_available_slot(DEMO_STORE_ID, DEMO_MENU_ID)
        if nxt is not None:
            self.system_log(f"Next available: {nxt.date} {format_time(nxt.slot.start)}")
        for usage in self.core.availability.get_resource_utilization(DEMO_STORE_ID, self.day):
            self.system_log(
                f"Resource {usage.resource_id}: {usage.working_minutes} working min, "
                f"utilization {usage.utilization_rate:.0%}"
            )


def main() -> None:
    parser = argparse.ArgumentParser(description="Offline reservation demo")
    parser.add_argument(
        "--scenario",
        choices=list(ConsoleSession.SCENARIOS),
        default="booking",
        help="Scripted scenario to play",
    )
    args = parser.parse_args()

    session = ConsoleSession()
    session.run_scenario(args.scenario)


if __name__ == "__main__":
    main()
