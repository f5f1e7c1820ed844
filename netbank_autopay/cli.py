"""Command line entry point.

Run with: netbank-autopay run [--dry-run] [--force] [--visible]

Environment Variables:
    CBA_LOGIN: NetBank client number
    CBA_PASSWORD: NetBank password
    FAVOURITE_PAYMENT: Label of the favourite payment (default: Appartment Weekly)
    PAYMENT_AMOUNT: Amount per pending bill (default: 585)
    PAY_DAYS: JSON list of pay days (default: [1, 15])
    BROWSER_HEADLESS: Set to "false" to watch the browser
"""

import argparse
import asyncio
import json
import sqlite3
import sys
from datetime import datetime
from typing import Any

from netbank_autopay.browser import (
    AuthenticationError,
    BrowserManager,
    NetBankAuth,
    NetBankPortal,
    PortalError,
)
from netbank_autopay.config import ConfigurationError, Settings, load_selectors, load_settings
from netbank_autopay.ledger import TransferLedger
from netbank_autopay.logging_config import configure_logging, get_logger
from netbank_autopay.paydate import calculate_next_pay_date
from netbank_autopay.workflow import AutopayWorkflow

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_CONFIG_ERROR = 2


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="netbank-autopay",
        description="Pay upcoming NetBank bills due before the next pay day",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    run = subparsers.add_parser("run", help="Log in, count pending bills and transfer")
    run.add_argument(
        "--dry-run",
        action="store_true",
        help="Fill in the payment but do not press Pay",
    )
    run.add_argument(
        "--force",
        action="store_true",
        help="Pay even if this pay period was already paid",
    )
    run.add_argument(
        "--visible",
        action="store_true",
        help="Run with visible browser (overrides BROWSER_HEADLESS)",
    )

    next_pay = subparsers.add_parser("next-pay-date", help="Print the payment cutoff date")
    next_pay.add_argument(
        "--date",
        type=datetime.fromisoformat,
        default=None,
        help="Reference date (YYYY-MM-DD[THH:MM]); defaults to now",
    )

    history = subparsers.add_parser("history", help="List recorded transfers")
    history.add_argument("--limit", type=int, default=20, help="Number of transfers to show")

    return parser.parse_args(argv)


async def run_autopay(settings: Settings, *, dry_run: bool = False, force: bool = False) -> dict[str, Any]:
    """Wire up the components and execute one autopay run."""
    client_number, password = settings.require_credentials()
    selectors = load_selectors(settings.selectors_path)

    async with TransferLedger(settings.ledger_db_path, get_logger("ledger")) as ledger:
        async with BrowserManager(settings, get_logger("browser")) as browser:
            auth = NetBankAuth(selectors, client_number, password, get_logger("auth"))
            portal = NetBankPortal(browser, auth, selectors, settings, get_logger("portal"))
            workflow = AutopayWorkflow(settings, portal, ledger, get_logger("workflow"))
            result = await workflow.run(dry_run=dry_run, force=force)

    return result.as_dict()


async def show_history(settings: Settings, limit: int) -> list[dict[str, Any]]:
    async with TransferLedger(settings.ledger_db_path, get_logger("ledger")) as ledger:
        return await ledger.list_transfers(limit=limit)


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = parse_args(argv)

    overrides = {"browser_headless": False} if getattr(args, "visible", False) else {}
    try:
        settings = load_settings(**overrides)
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    configure_logging(settings.log_level, settings.log_format)
    logger = get_logger("cli", command=args.command)

    if args.command == "next-pay-date":
        cutoff = calculate_next_pay_date(args.date, settings.pay_days)
        print(cutoff.date().isoformat())
        return EXIT_OK

    if args.command == "history":
        try:
            transfers = asyncio.run(show_history(settings, args.limit))
        except (OSError, sqlite3.Error) as e:
            logger.error("autopay_failed", error=str(e), exc_info=True)
            return EXIT_FAILURE
        print(json.dumps(transfers, default=str, indent=2))
        return EXIT_OK

    logger.info("autopay_started", dry_run=args.dry_run, force=args.force)
    try:
        result = asyncio.run(run_autopay(settings, dry_run=args.dry_run, force=args.force))
    except ConfigurationError as e:
        logger.error("configuration_error", error=str(e))
        return EXIT_CONFIG_ERROR
    except (AuthenticationError, PortalError, RuntimeError, OSError, sqlite3.Error) as e:
        logger.error("autopay_failed", error=str(e), exc_info=True)
        return EXIT_FAILURE

    logger.info("autopay_finished", status=result["status"])
    print(json.dumps(result, default=str, indent=2))
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
