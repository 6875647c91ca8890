#!/usr/bin/env python3
"""
Bulk reset - delete every account and all order history.

Outlets and menus are kept; outlet wallets are set back to zero and token
counters restart. Asks for confirmation twice unless --yes is given.

Usage:
    python scripts/reset_data.py
    python scripts/reset_data.py --yes
"""

import argparse
import logging
import sys
from pathlib import Path

# Add parent to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from canteen.db.session import SessionLocal
from canteen.services.admin_service import reset_ledger

logger = logging.getLogger("reset")


def confirm(prompt_fn=input) -> bool:
    """Require the operator to type 'yes' twice."""
    first = prompt_fn("This deletes ALL users, orders, transactions and notifications. Type 'yes' to continue: ")
    if first.strip().lower() != "yes":
        return False
    second = prompt_fn("Are you absolutely sure? Type 'yes' again: ")
    return second.strip().lower() == "yes"


def main(argv=None, prompt_fn=input) -> int:
    parser = argparse.ArgumentParser(description="Delete all users and order history")
    parser.add_argument("--yes", action="store_true", help="skip the interactive confirmation")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")

    if not args.yes and not confirm(prompt_fn):
        logger.info("Reset cancelled")
        return 1

    db = SessionLocal()
    try:
        counts = reset_ledger(db)
    finally:
        db.close()

    for table, count in counts.items():
        logger.info(f"{table}: {count} rows deleted")
    logger.info("Outlets and menu items were preserved")
    return 0


if __name__ == "__main__":
    sys.exit(main())
