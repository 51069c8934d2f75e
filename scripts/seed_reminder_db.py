#!/usr/bin/env python3
"""
Seed the reminders SQLite DB for demos or tests.

Creates reminder.db (or REMINDER_DB_PATH) if missing, ensures the reminders table exists,
and inserts seed reminders. Use --reset to clear existing rows first. Seeding stops at the
reminder limit like any other insert.

Run from project root:

    python scripts/seed_reminder_db.py
    python scripts/seed_reminder_db.py --reset --db data/reminder.db
"""

import argparse
import sys
from pathlib import Path

# Project root on path so "app" resolves
_ROOT = Path(__file__).resolve().parent.parent
if str(_ROOT) not in sys.path:
    sys.path.insert(0, str(_ROOT))

from app.core.errors import ReminderCapacityError
from app.core.reminder_db import add_reminder, clear_all, count_reminders, init_db

# (name, due date, priority, description). Edit to match your demo.
SEED_REMINDERS = [
    ("Renew passport", "2026-11-02 09:00:00", "high", "Passport expires before the December trip"),
    ("Check in for JFK-LHR flight", "2026-12-14 08:00:00", "high", "Online check-in opens 24h before departure"),
    ("Book airport parking", "2026-12-10 18:00:00", "medium", ""),
    ("Exchange currency", "2026-12-12 12:00:00", "low", "GBP for the first two days"),
]


def main() -> None:
    parser = argparse.ArgumentParser(description="Seed reminders DB for demos/tests.")
    parser.add_argument(
        "--reset",
        action="store_true",
        help="Clear all existing rows before inserting seed reminders.",
    )
    parser.add_argument("--db", default=None, help="Database file (default: REMINDER_DB_PATH).")
    args = parser.parse_args()

    init_db(args.db)
    if args.reset:
        clear_all(args.db)
        print("Cleared existing reminders.")

    added = 0
    for name, due, priority, description in SEED_REMINDERS:
        try:
            new_id = add_reminder(name, due, priority, description, db_path=args.db)
        except ReminderCapacityError as e:
            print(f"  stopped: {e}")
            break
        added += 1
        print(f"  added #{new_id}: {name}")

    print(f"Done. Seeded {added} reminders ({count_reminders(args.db)} total).")


if __name__ == "__main__":
    main()
