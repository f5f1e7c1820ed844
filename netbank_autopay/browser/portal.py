"""NetBank page automation.

This module provides the NetBankPortal class that handles everything done
after login: reading the account portfolio, counting upcoming bills in the
bills management app, and filling in a favourite payment.
"""

import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any
from urllib.parse import urljoin

from playwright.async_api import Frame, Page

from netbank_autopay.bills import BillParseError, count_bills_due
from netbank_autopay.browser.auth import NetBankAuth
from netbank_autopay.browser.context import BrowserManager
from netbank_autopay.config import Settings


class PortalError(Exception):
    """Raised when a NetBank page does not behave as expected."""

    pass


class FavouritePaymentNotFound(PortalError):
    """Raised when no favourite payment carries the configured label."""

    pass


class NetBankPortal:
    """Reads and drives NetBank pages for a logged-in session.

    Attributes:
        browser: BrowserManager instance for page access.
        auth: NetBankAuth instance for logging in.
        selectors: CSS selectors loaded from selectors.yaml.
    """

    def __init__(
        self,
        browser: BrowserManager,
        auth: NetBankAuth,
        selectors: dict[str, Any],
        settings: Settings,
        logger: Any,
    ) -> None:
        self.browser = browser
        self.auth = auth
        self.selectors = selectors
        self.screenshot_dir = Path(settings.screenshot_dir)
        self.logger = logger

    async def open_session(self) -> Page:
        """Open a new page and log in on it."""
        page = await self.browser.new_page()
        await self.auth.login(page)
        return page

    async def get_accounts(self, page: Page) -> dict[str, dict[str, Any]]:
        """Read every account row from the portfolio grid.

        Returns:
            Mapping of account nickname to a dictionary containing:
                - balance: Available funds as displayed (str)
                - balance_amount: Available funds as a number (Decimal or None)
                - details: BSB details (str)
                - number: Account number (str)

        Raises:
            PortalError: If the portfolio cannot be read.
        """
        selectors = self.selectors["accounts"]
        try:
            self.logger.debug("waiting_for_account_portfolio")
            await page.wait_for_selector(selectors["portfolio"])

            accounts = {}
            for row in await page.query_selector_all(selectors["rows"]):
                name = await self._row_text(row, selectors["name"])
                balance = await self._row_text(row, selectors["balance"])
                accounts[name] = {
                    "balance": balance,
                    "balance_amount": parse_amount(balance),
                    "details": await self._row_text(row, selectors["details"]),
                    "number": await self._row_text(row, selectors["number"]),
                }

            self.logger.debug("accounts_read", count=len(accounts))
            return accounts

        except Exception as e:
            await self._error_screenshot(page, "accounts_error")
            raise PortalError(f"Failed to read accounts: {e}") from e

    async def count_pending_payments(
        self, page: Page, cutoff: datetime, today: date | None = None
    ) -> int:
        """Count upcoming bills due before the cutoff date.

        Args:
            page: Logged-in page on the NetBank home screen.
            cutoff: Next pay date; bills due on or after it are left alone.
            today: Date used to resolve the year of each bill. Defaults to today.

        Raises:
            PortalError: If the bills list cannot be read.
        """
        selectors = self.selectors["bills"]
        today = today or date.today()
        try:
            self.logger.debug("opening_bills_management")
            await page.click(selectors["link"])

            await page.wait_for_selector(selectors["app"])
            await page.wait_for_timeout(selectors.get("app_settle_ms", 3000))

            frame = self._app_frame(page)
            await frame.wait_for_selector(selectors["list"])

            due_texts = []
            for cell in await frame.query_selector_all(selectors["due_date"]):
                due_texts.append((await cell.inner_text()).strip())

            self.logger.debug("upcoming_bills_read", count=len(due_texts))
            return count_bills_due(due_texts, cutoff, today)

        except BillParseError as e:
            await self._error_screenshot(page, "bills_parse_error")
            raise PortalError(f"Failed to parse upcoming bills: {e}") from e
        except Exception as e:
            await self._error_screenshot(page, "bills_error")
            raise PortalError(f"Failed to read upcoming bills: {e}") from e

    async def submit_payment(
        self, page: Page, payee: str, amount: Decimal, *, confirm: bool = True
    ) -> Path | None:
        """Fill in a favourite payment and press Pay.

        Once Pay has been pressed this method no longer raises: the payment
        has left the account and the caller must record it.

        Args:
            page: Logged-in page.
            payee: Label of the favourite payment.
            amount: Amount to transfer.
            confirm: Press the Pay button. When False the form is only filled.

        Returns:
            Path of the screenshot taken after the form was handled, or None
            if the screenshot could not be saved.

        Raises:
            FavouritePaymentNotFound: If no favourite matches ``payee``.
            PortalError: If any step up to pressing Pay fails.
        """
        selectors = self.selectors["payments"]
        try:
            self.logger.debug("opening_payments_page")
            await page.goto(urljoin(page.url, selectors["path"]))
            await page.wait_for_selector(selectors["favourites"])

            self.logger.debug("choosing_favourite_payment", payee=payee)
            link = await self._find_favourite(page, payee)
            await link.click()

            self.logger.debug("filling_payment_amount", amount=str(amount))
            await page.wait_for_selector(selectors["payment_panel"])
            await page.fill(selectors["amount_input"], format_amount(amount))

            if confirm:
                await page.click(selectors["pay_button"])

        except FavouritePaymentNotFound:
            await self._error_screenshot(page, "favourite_not_found")
            raise
        except Exception as e:
            await self._error_screenshot(page, "payment_error")
            raise PortalError(f"Failed to submit payment to '{payee}': {e}") from e

        if confirm:
            self.logger.info("payment_submitted", payee=payee, amount=str(amount))
        else:
            self.logger.info("payment_left_unsubmitted", payee=payee, amount=str(amount))

        return await self._error_screenshot(page, "payment")

    async def capture_screenshot(self, page: Page, name: str) -> Path:
        """Save a full page screenshot under the screenshot directory."""
        self.screenshot_dir.mkdir(parents=True, exist_ok=True)
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        path = self.screenshot_dir / f"{name}_{timestamp}.png"
        await page.screenshot(path=str(path), full_page=True)
        self.logger.debug("screenshot_saved", path=str(path))
        return path

    async def _find_favourite(self, page: Page, payee: str) -> Any:
        selectors = self.selectors["payments"]
        for row in await page.query_selector_all(selectors["favourite_rows"]):
            label = await self._row_text(row, selectors["favourite_label"])
            if label == payee:
                link = await row.query_selector(selectors["favourite_link"])
                if link:
                    return link

        raise FavouritePaymentNotFound(f"Favourite payment '{payee}' was not found")

    def _app_frame(self, page: Page) -> Frame:
        frames = page.main_frame.child_frames
        if not frames:
            raise PortalError("Bills app frame not found")
        return frames[0]

    async def _row_text(self, row: Any, selector: str) -> str:
        element = await row.query_selector(selector)
        if element is None:
            return ""
        return (await element.inner_text()).strip()

    async def _error_screenshot(self, page: Page, name: str) -> Path | None:
        try:
            return await self.capture_screenshot(page, name)
        except Exception as e:
            self.logger.warning("screenshot_failed", name=name, error=str(e))
            return None


def parse_amount(text: str) -> Decimal | None:
    """Parse a displayed balance such as ``$1,234.56`` or ``-$12.00 DR``.

    Returns None when the text holds no number.
    """
    cleaned = re.sub(r"[$,\s]", "", text)
    match = re.search(r"-?\d+(?:\.\d+)?", cleaned)
    if not match:
        return None

    try:
        amount = Decimal(match.group(0))
    except InvalidOperation:
        return None

    if cleaned.upper().endswith("DR") and amount > 0:
        amount = -amount
    return amount


def format_amount(amount: Decimal) -> str:
    """Format an amount the way the payment form expects it."""
    return f"{amount.quantize(Decimal('0.01'))}"
