"""One autopay run: balances, pending bills, transfer.

Steps:
1. Work out the next pay date (the cutoff)
2. Skip the run if this cutoff was already paid
3. Log in and read account balances
4. Count bills due before the cutoff
5. Transfer ``payment_amount`` for each of them through the favourite payment
"""

from collections.abc import Callable
from dataclasses import asdict, dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from netbank_autopay.config import Settings
from netbank_autopay.ledger.sqlite_ledger import STATUS_DRY_RUN, STATUS_SUBMITTED
from netbank_autopay.paydate import calculate_next_pay_date

STATUS_ALREADY_PAID = "already_paid"
STATUS_NOTHING_DUE = "nothing_due"


@dataclass
class RunResult:
    status: str
    cutoff: date
    pending_payments: int = 0
    amount: Decimal = Decimal("0")
    accounts: dict[str, Any] = field(default_factory=dict)
    screenshot: str | None = None

    def as_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["cutoff"] = self.cutoff.isoformat()
        data["amount"] = str(self.amount)
        return data


class AutopayWorkflow:
    """Runs the bill payment job against a NetBank portal."""

    def __init__(
        self,
        settings: Settings,
        portal: Any,
        ledger: Any,
        logger: Any,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.settings = settings
        self.portal = portal
        self.ledger = ledger
        self.logger = logger
        self.clock = clock

    async def run(self, *, dry_run: bool = False, force: bool = False) -> RunResult:
        """Execute one run.

        Args:
            dry_run: Fill in the payment form but do not press Pay.
            force: Pay even if a transfer for this cutoff is already recorded.

        Returns:
            RunResult describing what happened.
        """
        now = self.clock()
        cutoff = calculate_next_pay_date(now, self.settings.pay_days).date()
        self.logger.info("next_pay_date_calculated", cutoff=cutoff.isoformat())

        previous = await self.ledger.find_submitted(cutoff)
        if previous and not force:
            self.logger.info(
                "transfer_already_submitted",
                cutoff=cutoff.isoformat(),
                transfer_id=previous["id"],
                amount=str(previous["amount"]),
            )
            return RunResult(status=STATUS_ALREADY_PAID, cutoff=cutoff)

        self.logger.info("logging_in")
        page = await self.portal.open_session()

        accounts = await self.portal.get_accounts(page)
        self.logger.info(
            "accounts_read",
            accounts={name: acc["balance"] for name, acc in accounts.items()},
        )
        await self.ledger.save_snapshot(accounts)

        pending = await self.portal.count_pending_payments(page, cutoff, now.date())
        self.logger.info("pending_payments_counted", pending_payments=pending)

        if pending == 0:
            return RunResult(status=STATUS_NOTHING_DUE, cutoff=cutoff, accounts=accounts)

        amount = self.settings.payment_amount * pending
        payee = self.settings.favourite_payment
        self.logger.info("processing_pending_payments", payee=payee, amount=str(amount))

        screenshot = await self.portal.submit_payment(page, payee, amount, confirm=not dry_run)
        screenshot_path = str(screenshot) if screenshot else None

        # Nothing fallible may run between submitting and recording the transfer.
        status = STATUS_DRY_RUN if dry_run else STATUS_SUBMITTED
        try:
            await self.ledger.record_transfer(
                cutoff=cutoff,
                bill_count=pending,
                amount=amount,
                payee=payee,
                status=status,
                screenshot=screenshot_path,
            )
        except Exception as e:
            self.logger.error(
                "transfer_not_recorded",
                status=status,
                cutoff=cutoff.isoformat(),
                amount=str(amount),
                payee=payee,
                error=str(e),
            )
            raise

        self.logger.info("payments_processed", status=status, screenshot=screenshot_path)

        return RunResult(
            status=status,
            cutoff=cutoff,
            pending_payments=pending,
            amount=amount,
            accounts=accounts,
            screenshot=screenshot_path,
        )
