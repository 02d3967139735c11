#!/usr/bin/env python3
from __future__ import annotations

import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.append(str(ROOT))

from apexchat.core.config import DATABASE_URL, IS_PROD  # noqa: E402
from apexchat.core.database import Database  # noqa: E402
from apexchat.fsm import states  # noqa: E402
from apexchat.services.conversation_store import ConversationStore  # noqa: E402
from apexchat.services.phone_numbers import standardize_phone_number  # noqa: E402


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Move a customer's onboarding conversation back to a given state.")
    parser.add_argument("phone", help="Customer phone, e.g. +2348012345678 or whatsapp:+2348012345678")
    parser.add_argument(
        "--state",
        default=states.INITIAL,
        choices=sorted(states.ALL_STATES),
        help="Target state (default: initial)",
    )
    parser.add_argument("--database-url", default=DATABASE_URL, help="Overrides DATABASE_URL")
    parser.add_argument(
        "--force",
        action="store_true",
        help="Allow running with ENV=production",
    )
    return parser.parse_args(argv)


def reset_conversation(database: Database, phone: str, state: str) -> str | None:
    """Return the previous state, or None when the phone has no conversation.

    The linked business is kept: ``business_id`` never changes once set.
    """
    db = database.session()
    try:
        with db.begin():
            store = ConversationStore(db)
            conversation = store.get(phone, for_update=True)
            if conversation is None:
                return None
            previous_state = conversation.current_state
            store.update(conversation.id, state)
        return previous_state
    finally:
        db.close()


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)

    if IS_PROD and not args.force:
        print("Refusing to run in production without --force.")
        return 1

    phone = standardize_phone_number(args.phone)
    if phone is None:
        print(f"Invalid phone number: {args.phone}")
        return 1

    database = Database(args.database_url).open()
    try:
        previous_state = reset_conversation(database, phone, args.state)
    finally:
        database.close()

    if previous_state is None:
        print(f"No conversation found for {phone}")
        return 1

    print(f"Conversation {phone}: {previous_state} -> {args.state}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
