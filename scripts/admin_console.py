#!/usr/bin/env python3
"""
Interactive local admin console (no HTTP).

Usage:
  python3 scripts/admin_console.py

What it does:
- Starts the same BookingViewModel the API uses, wired from .env
- Prints the list or calendar projection after every command
- Lets you approve/decline/annotate bookings and file demo bookings
"""

from __future__ import annotations

import asyncio
import sys
from datetime import timedelta
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.application.exceptions import (  # noqa: E402
    AuthenticationError,
    BookingNotFound,
    BookingSubmissionError,
    BookingValidationError,
    InvalidStatusTransition,
)
from app.application.presenters.booking_calendar import BookingCalendarPresenter  # noqa: E402
from app.application.presenters.booking_list import BookingListPresenter  # noqa: E402
from app.domain.entities.booking_request import BookingDraft  # noqa: E402
from app.wiring.dependencies import (  # noqa: E402
    act_as_admin,
    business_today,
    get_auth,
    get_catalog_cache,
    get_submit_booking_use_case,
    get_view_model,
    shutdown,
)

HELP = """Commands:
  /login <email> <password>               -> act as a signed-in admin against the store
  /list [all|pending|approved|declined]  -> list bookings (sets the filter)
  /stats                                  -> aggregate counts
  /cal | /next | /prev                    -> calendar for the displayed month
  /approve <id> | /decline <id>           -> moderate a pending booking
  /notes <id>                             -> edit admin notes; type text, then /save or /cancel
  /book <plate> <service_key> [days]      -> file a demo booking N days ahead
  /refresh                                -> force a full reload
  /quit"""


def _print_list(presenter: BookingListPresenter) -> None:
    rows = presenter.rows()
    if not rows:
        print("(no bookings)")
        return
    for row in rows:
        marker = "*" if row.is_editing_notes else " "
        print(
            f"{marker} {row.id[:8]}  {row.booking_date.isoformat()} {row.booking_time:<5}  "
            f"{row.status:<8}  {row.car_plate:<10} {row.service_type:<14} {row.price:>8}"
        )
        if row.admin_notes:
            print(f"      notes: {row.admin_notes}")


def _print_calendar(presenter: BookingCalendarPresenter) -> None:
    grid = presenter.month_grid()
    print(f"\n{grid.title}")
    print(" ".join(f"{label:>4}" for label in grid.weekday_labels))
    cells = ["    "] * grid.leading_blanks
    for day in grid.days:
        mark = "!" if day.is_today else " "
        count = f"({len(day.entries)})" if day.entries else ""
        cells.append(f"{day.day:>2}{mark}{count}".ljust(4))
    for start in range(0, len(cells), 7):
        print(" ".join(cells[start : start + 7]))


def _resolve_id(vm, prefix: str) -> str:
    matches = [b.id for b in vm.bookings if b.id.startswith(prefix)]
    if len(matches) != 1:
        raise KeyError(prefix)
    return matches[0]


async def main() -> None:
    vm = get_view_model()
    await vm.start()
    list_presenter = BookingListPresenter(vm)
    calendar_presenter = BookingCalendarPresenter(vm, today=business_today())
    print("\nAdmin console")
    print("-" * 60)
    print(HELP)
    print("-" * 60)

    try:
        while True:
            try:
                text = (await asyncio.to_thread(input, "\n> ")).strip()
            except (EOFError, KeyboardInterrupt):
                print("\nBye!")
                return
            if not text:
                continue

            if not text.startswith("/"):
                if list_presenter.editing_id is None:
                    print("Not editing notes. Use /notes <id> first.")
                else:
                    list_presenter.update_draft(text)
                continue

            cmd, *args = text.split()
            try:
                if cmd in ("/quit", "/exit"):
                    print("Bye!")
                    return
                elif cmd == "/help":
                    print(HELP)
                elif cmd == "/login" and len(args) == 2:
                    session = await get_auth().sign_in(args[0], args[1])
                    await act_as_admin(session.access_token)
                    print(f"Signed in as {session.user.email}")
                elif cmd == "/list":
                    if args:
                        vm.set_status_filter(args[0])
                    _print_list(list_presenter)
                elif cmd == "/stats":
                    stats = vm.stats
                    print(
                        f"total={stats.total} pending={stats.pending} "
                        f"approved={stats.approved} declined={stats.declined}"
                    )
                elif cmd in ("/cal", "/next", "/prev"):
                    if cmd == "/next":
                        calendar_presenter.next_month()
                    elif cmd == "/prev":
                        calendar_presenter.previous_month()
                    _print_calendar(calendar_presenter)
                elif cmd == "/approve" and args:
                    await vm.approve(_resolve_id(vm, args[0]))
                    _print_list(list_presenter)
                elif cmd == "/decline" and args:
                    await vm.decline(_resolve_id(vm, args[0]))
                    _print_list(list_presenter)
                elif cmd == "/notes" and args:
                    list_presenter.begin_edit(_resolve_id(vm, args[0]))
                    print(f"Editing notes (current: {list_presenter.notes_draft!r})")
                elif cmd == "/save":
                    await list_presenter.save_notes()
                    _print_list(list_presenter)
                elif cmd == "/cancel":
                    list_presenter.cancel_edit()
                elif cmd == "/book" and len(args) >= 2:
                    days = int(args[2]) if len(args) > 2 else 1
                    slots = await get_catalog_cache().time_slots()
                    draft = BookingDraft(
                        phone_number="+48 123 456 789",
                        booking_date=(business_today() + timedelta(days=days)).isoformat(),
                        booking_time=slots[0].time_slot if slots else "09:00",
                        car_plate=args[0],
                        service_type=args[1],
                    )
                    result = await get_submit_booking_use_case().execute(draft, today=business_today())
                    print(f"Created {result.booking_id} at {result.price}")
                elif cmd == "/refresh":
                    await vm.reconcile()
                    _print_list(list_presenter)
                else:
                    print("Unknown command. /help for the list.")
            except AuthenticationError as e:
                print(f"Sign-in failed: {e}")
            except BookingValidationError as e:
                print(f"Invalid booking: {e.errors}")
            except InvalidStatusTransition as e:
                print(f"Rejected: {e}")
            except (KeyError, BookingNotFound):
                print("No single booking matches that id.")
            except (BookingSubmissionError, RuntimeError, ValueError) as e:
                print(f"ERROR: {e}")
    finally:
        await shutdown()


if __name__ == "__main__":
    asyncio.run(main())
