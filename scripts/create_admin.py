#!/usr/bin/env python3
"""
Create the first super admin account.

Does nothing when a super admin already exists.

Usage:
    python scripts/create_admin.py
    python scripts/create_admin.py --username owner --email owner@company.com --password 'S3cret!pass'

Requirements:
    - DATABASE_URL and DATABASE_NAME set in the environment or .env
"""

import argparse
import logging
import sys
from pathlib import Path

# Add project root to path
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from auth import create_admin_account
from database import ADMINS, get_collection

logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")
logger = logging.getLogger(__name__)

DEFAULT_USERNAME = "superadmin"
DEFAULT_EMAIL = "admin@company.com"
DEFAULT_PASSWORD = "Admin@123"


def create_super_admin(username: str = DEFAULT_USERNAME, email: str = DEFAULT_EMAIL, password: str = DEFAULT_PASSWORD):
    """Return the new admin document, or None when a super admin is already present."""
    existing = get_collection(ADMINS).find_one({"role": "super_admin"}, {"email": 1})
    if existing:
        logger.info("Super admin already exists (%s), nothing to do", existing["email"])
        return None
    admin = create_admin_account(username, email.lower(), password, role="super_admin")
    logger.info("Super admin %s <%s> created", admin["username"], admin["email"])
    return admin


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Create the first super admin account")
    parser.add_argument("--username", default=DEFAULT_USERNAME)
    parser.add_argument("--email", default=DEFAULT_EMAIL)
    parser.add_argument("--password", default=DEFAULT_PASSWORD)
    args = parser.parse_args(argv)

    admin = create_super_admin(args.username, args.email, args.password)
    if admin is not None and args.password == DEFAULT_PASSWORD:
        logger.warning("Default password in use; change it after the first login")
    return 0


if __name__ == "__main__":
    sys.exit(main())
