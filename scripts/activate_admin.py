#!/usr/bin/env python3
"""
Activate or deactivate an admin account by email.

Usage:
    python scripts/activate_admin.py --email admin@company.com
    python scripts/activate_admin.py -e admin@company.com --active false
"""

import argparse
import logging
import sys
from pathlib import Path

# Add project root to path
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from pymongo import ReturnDocument

from database import ADMINS, get_collection, utcnow

logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")
logger = logging.getLogger(__name__)


def parse_bool(value: str) -> bool:
    if value.lower() in ("true", "1", "yes"):
        return True
    if value.lower() in ("false", "0", "no"):
        return False
    raise argparse.ArgumentTypeError(f"expected true or false, got {value!r}")


def set_admin_active(email: str, active: bool):
    """Return the updated admin (without its password hash), or None if no such email."""
    return get_collection(ADMINS).find_one_and_update(
        {"email": email.strip().lower()},
        {"$set": {"isActive": active, "updatedAt": utcnow()}},
        projection={"passwordHash": 0},
        return_document=ReturnDocument.AFTER,
    )


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Set isActive on an admin account")
    parser.add_argument("-e", "--email", required=True)
    parser.add_argument("-a", "--active", type=parse_bool, default=True)
    args = parser.parse_args(argv)

    admin = set_admin_active(args.email, args.active)
    if admin is None:
        logger.error("Admin not found for email: %s", args.email)
        return 1
    logger.info("Admin %s isActive set to %s", admin["email"], admin["isActive"])
    return 0


if __name__ == "__main__":
    sys.exit(main())
