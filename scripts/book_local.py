#!/usr/bin/env python3
"""
Interactive local booking harness (no HTTP).

Usage:
  python3 scripts/book_local.py

What it does:
- Builds the booking wizard through the project wiring (mock backend unless BACKEND_BASE_URL is set)
- Resumes any stored draft
- Lets you fill fields, move between steps, apply promo codes and submit
"""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from bookingflow.application.exceptions import (  # noqa: E402
    BookingSubmissionError,
    WizardStateError,
    WizardValidationError,
)
from bookingflow.application.use_cases.booking_wizard import BookingWizard  # noqa: E402
from bookingflow.main import configure_logging  # noqa: E402
from bookingflow.wiring.dependencies import build_booking_wizard  # noqa: E402

HELP = """Commands:
  set <field> <value>     service_id, provider_id, scheduled_date, scheduled_time, location, notes
  custom <field_id> <value>
  next | back
  promo <code> | nopromo
  show | submit | /quit | /help"""


def _print_state(wizard: BookingWizard) -> None:
    draft = wizard.draft
    print("-" * 60)
    print(f"step: {wizard.step.value} ({draft.step_index + 1}/6)")
    for key, value in draft.to_dict().items():
        if key not in {"step_index", "idempotency_key"}:
            print(f"  {key}: {value!r}")
    if wizard.step.value == "service":
        print("services:", ", ".join(f"{o['value']} ({o['label']})" for o in wizard.service_options()))
        print("providers:", ", ".join(f"{o['value']} ({o['label']})" for o in wizard.provider_options()))
    if wizard.errors:
        print("errors:")
        for field, message in wizard.errors.items():
            print(f"  {field}: {message}")
    if wizard.promo_error:
        print(f"promo: {wizard.promo_error}")
    if wizard.step.value == "review":
        for key, value in wizard.review_summary().items():
            print(f"  {key}: {value}")
    print("-" * 60)


async def _run() -> None:
    configure_logging("WARNING")
    wizard = build_booking_wizard()
    await wizard.start()

    print("\nLocal Booking Harness")
    print(HELP)
    _print_state(wizard)

    while True:
        try:
            line = input("> ").strip()
        except (EOFError, KeyboardInterrupt):
            print()
            break
        if not line:
            continue

        command, _, rest = line.partition(" ")
        try:
            if command == "/quit":
                break
            elif command == "/help":
                print(HELP)
                continue
            elif command == "set":
                field, _, value = rest.partition(" ")
                wizard.update(**{field: value})
            elif command == "custom":
                field_id, _, value = rest.partition(" ")
                wizard.set_custom_value(field_id, value)
            elif command == "next":
                wizard.next()
            elif command == "back":
                wizard.back()
            elif command == "promo":
                await wizard.apply_promo_code(rest)
            elif command == "nopromo":
                wizard.remove_promo_code()
            elif command == "submit":
                result = await wizard.submit()
                await wizard.drain_background_tasks()
                print(f"Booking confirmed: {result.booking_id} -> {result.confirmation_path}")
                break
            elif command != "show":
                print(f"Unknown command: {command}")
                continue
        except WizardValidationError as e:
            print(f"Fix these first: {e}")
        except (WizardStateError, BookingSubmissionError, ValueError) as e:
            print(f"Error: {e}")

        _print_state(wizard)


def main() -> None:
    asyncio.run(_run())


if __name__ == "__main__":
    main()
