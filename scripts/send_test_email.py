#!/usr/bin/env python3
"""
send_test_email.py - Contact form mail transport diagnostic

Verifies the SMTP connection configured in the environment / .env and,
unless --verify-only is given, sends one canned contact submission to
ADMIN_EMAIL.

Usage:
    python scripts/send_test_email.py
    python scripts/send_test_email.py --verify-only
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

# Ensure project root is on sys.path
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from app.core.config import Settings  # noqa: E402
from app.core.email import build_transport  # noqa: E402
from app.services.notifier import ContactNotifier  # noqa: E402

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
)
logger = logging.getLogger("smtp_diag")


async def _main(verify_only: bool) -> int:
    settings = Settings()
    notifier = ContactNotifier(settings, build_transport(settings))

    logger.info(
        "SMTP host=%s port=%s secure=%s admin=%s",
        settings.SMTP_HOST or "not configured",
        settings.SMTP_PORT,
        settings.SMTP_SECURE,
        settings.ADMIN_EMAIL or "not configured",
    )

    verified = await notifier.verify_connection()
    if not verified.success:
        logger.error("Verification failed (%s): %s", verified.error_category, verified.error)
        return 1
    if verify_only:
        return 0

    result = await notifier.send_test_email()
    if not result.success:
        logger.error("Test email failed (%s): %s", result.error_category, result.error)
        return 1

    logger.info(
        "Test email sent message_id=%s accepted=%s rejected=%s",
        result.message_id,
        result.accepted,
        result.rejected,
    )
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(description="Check the contact form mail transport")
    parser.add_argument(
        "--verify-only",
        action="store_true",
        help="Only connect and authenticate; do not send anything",
    )
    args = parser.parse_args()
    return asyncio.run(_main(args.verify_only))


if __name__ == "__main__":
    sys.exit(main())
