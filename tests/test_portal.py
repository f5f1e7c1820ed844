"""Tests for NetBank page automation and login.

Playwright pages, frames and element handles are replaced with mocks that
answer the selectors from the packaged selectors.yaml.
"""

from datetime import date, datetime
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest
from pydantic import SecretStr

from netbank_autopay.browser.auth import AuthenticationError, NetBankAuth
from netbank_autopay.browser.portal import (
    FavouritePaymentNotFound,
    NetBankPortal,
    PortalError,
    format_amount,
    parse_amount,
)
from netbank_autopay.config import load_selectors, load_settings

SELECTORS = load_selectors()


def element(text):
    handle = AsyncMock()
    handle.inner_text.return_value = text
    return handle


def row(cells, **handles):
    """Element handle whose query_selector answers from ``cells`` and ``handles``."""
    children = {selector: element(text) for selector, text in cells.items()}
    children.update(handles)
    handle = MagicMock()
    handle.query_selector = AsyncMock(side_effect=lambda selector: children.get(selector))
    return handle


def make_page(url="https://www.my.commbank.com.au/netbank/Portfolio/Home/Home.aspx"):
    page = AsyncMock()
    page.url = url
    page.main_frame = MagicMock()
    page.main_frame.child_frames = []
    return page


@pytest.fixture
def portal(tmp_path):
    settings = load_settings(_env_file=None, screenshot_dir=str(tmp_path / "shots"))
    return NetBankPortal(
        browser=AsyncMock(),
        auth=AsyncMock(),
        selectors=SELECTORS,
        settings=settings,
        logger=MagicMock(),
    )


@pytest.mark.asyncio
async def test_open_session_logs_in_on_new_page(portal):
    """Test that a session is a fresh page after login."""
    page = make_page()
    portal.browser.new_page.return_value = page

    assert await portal.open_session() is page
    portal.auth.login.assert_called_once_with(page)


@pytest.mark.asyncio
async def test_get_accounts(portal):
    """Test reading the portfolio grid."""
    sel = SELECTORS["accounts"]
    page = make_page()
    page.query_selector_all.return_value = [
        row(
            {
                sel["name"]: "Smart Access",
                sel["details"]: "06 2000",
                sel["number"]: "1234 5678",
                sel["balance"]: " $1,234.56 ",
            }
        ),
        row(
            {
                sel["name"]: "Credit Card",
                sel["details"]: "",
                sel["number"]: "5353 0000 0000 0000",
                sel["balance"]: "$250.00 DR",
            }
        ),
    ]

    accounts = await portal.get_accounts(page)

    page.wait_for_selector.assert_called_once_with(sel["portfolio"])
    page.query_selector_all.assert_called_once_with(sel["rows"])
    assert accounts["Smart Access"] == {
        "balance": "$1,234.56",
        "balance_amount": Decimal("1234.56"),
        "details": "06 2000",
        "number": "1234 5678",
    }
    assert accounts["Credit Card"]["balance_amount"] == Decimal("-250.00")


@pytest.mark.asyncio
async def test_get_accounts_failure_takes_screenshot(portal, tmp_path):
    """Test that a missing portfolio raises PortalError."""
    page = make_page()
    page.wait_for_selector.side_effect = TimeoutError("portfolio not visible")

    with pytest.raises(PortalError, match="Failed to read accounts"):
        await portal.get_accounts(page)

    page.screenshot.assert_called_once()
    assert "accounts_error" in page.screenshot.call_args.kwargs["path"]


@pytest.mark.asyncio
async def test_count_pending_payments(portal):
    """Test counting bills in the bills app frame."""
    sel = SELECTORS["bills"]
    frame = AsyncMock()
    frame.query_selector_all.return_value = [
        element("29/05"),
        element("01/06"),
        element("15/06"),
        element("30/06"),
    ]
    page = make_page()
    page.main_frame.child_frames = [frame]

    count = await portal.count_pending_payments(page, datetime(2026, 6, 15), date(2026, 5, 28))

    assert count == 2
    page.click.assert_called_once_with(sel["link"])
    page.wait_for_timeout.assert_called_once_with(sel["app_settle_ms"])
    frame.wait_for_selector.assert_called_once_with(sel["list"])
    frame.query_selector_all.assert_called_once_with(sel["due_date"])


@pytest.mark.asyncio
async def test_count_pending_payments_without_frame(portal):
    """Test that a missing bills frame is reported."""
    page = make_page()

    with pytest.raises(PortalError, match="Bills app frame not found"):
        await portal.count_pending_payments(page, datetime(2026, 6, 15), date(2026, 5, 28))


@pytest.mark.asyncio
async def test_count_pending_payments_bad_due_date(portal):
    """Test that an unreadable due date fails the run."""
    frame = AsyncMock()
    frame.query_selector_all.return_value = [element("soon")]
    page = make_page()
    page.main_frame.child_frames = [frame]

    with pytest.raises(PortalError, match="Failed to parse upcoming bills"):
        await portal.count_pending_payments(page, datetime(2026, 6, 15), date(2026, 5, 28))

    page.screenshot.assert_called_once()
    assert "bills_parse_error" in page.screenshot.call_args.kwargs["path"]


@pytest.mark.asyncio
async def test_submit_payment(portal):
    """Test choosing the favourite, filling the amount and paying."""
    sel = SELECTORS["payments"]
    link = AsyncMock()
    page = make_page()
    page.query_selector_all.return_value = [
        row({sel["favourite_label"]: "Electricity"}, **{sel["favourite_link"]: AsyncMock()}),
        row({sel["favourite_label"]: "Appartment Weekly"}, **{sel["favourite_link"]: link}),
    ]

    path = await portal.submit_payment(page, "Appartment Weekly", Decimal("1170"))

    page.goto.assert_called_once_with(
        "https://www.my.commbank.com.au/netbank/PaymentHub/MakePayment.aspx"
    )
    link.click.assert_called_once()
    page.fill.assert_called_once_with(sel["amount_input"], "1170.00")
    page.click.assert_called_once_with(sel["pay_button"])
    assert path.name.startswith("payment_")
    assert path.parent == portal.screenshot_dir


@pytest.mark.asyncio
async def test_submit_payment_screenshot_failure_after_pay(portal):
    """Test that a failed screenshot after pressing Pay is not reported as a failed payment."""
    sel = SELECTORS["payments"]
    page = make_page()
    page.query_selector_all.return_value = [
        row({sel["favourite_label"]: "Appartment Weekly"}, **{sel["favourite_link"]: AsyncMock()}),
    ]
    page.screenshot.side_effect = OSError("disk full")

    path = await portal.submit_payment(page, "Appartment Weekly", Decimal("585"))

    assert path is None
    page.click.assert_called_once_with(sel["pay_button"])
    portal.logger.warning.assert_called_once()
    assert portal.logger.warning.call_args.kwargs["name"] == "payment"


@pytest.mark.asyncio
async def test_submit_payment_without_confirm(portal):
    """Test that the Pay button is left alone when not confirming."""
    sel = SELECTORS["payments"]
    page = make_page()
    page.query_selector_all.return_value = [
        row({sel["favourite_label"]: "Appartment Weekly"}, **{sel["favourite_link"]: AsyncMock()}),
    ]

    await portal.submit_payment(page, "Appartment Weekly", Decimal("585"), confirm=False)

    page.fill.assert_called_once()
    page.click.assert_not_called()
    page.screenshot.assert_called_once()


@pytest.mark.asyncio
async def test_submit_payment_favourite_not_found(portal):
    """Test that a missing favourite payment is reported as such."""
    sel = SELECTORS["payments"]
    page = make_page()
    page.query_selector_all.return_value = [
        row({sel["favourite_label"]: "Electricity"}, **{sel["favourite_link"]: AsyncMock()}),
    ]

    with pytest.raises(FavouritePaymentNotFound, match="Appartment Weekly"):
        await portal.submit_payment(page, "Appartment Weekly", Decimal("585"))

    page.fill.assert_not_called()
    assert "favourite_not_found" in page.screenshot.call_args.kwargs["path"]


@pytest.mark.asyncio
async def test_screenshot_failure_does_not_hide_error(portal):
    """Test that the first failure survives a failing error screenshot."""
    page = make_page()
    page.goto.side_effect = RuntimeError("navigation failed")
    page.screenshot.side_effect = RuntimeError("page crashed")

    with pytest.raises(PortalError, match="navigation failed"):
        await portal.submit_payment(page, "Appartment Weekly", Decimal("585"))


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("$1,234.56", Decimal("1234.56")),
        ("-$12.00", Decimal("-12.00")),
        ("$250.00 DR", Decimal("-250.00")),
        ("$0.00", Decimal("0.00")),
        ("", None),
        ("n/a", None),
    ],
)
def test_parse_amount(text, expected):
    """Test parsing displayed balances."""
    assert parse_amount(text) == expected


def test_format_amount():
    """Test the amount sent to the payment form."""
    assert format_amount(Decimal("1170")) == "1170.00"
    assert format_amount(Decimal("400.255")) == "400.26"


# Login


def make_auth(**kwargs):
    return NetBankAuth(
        SELECTORS,
        "12345678",
        SecretStr("hunter2"),
        MagicMock(),
        retry_delays=[0],
        **kwargs,
    )


@pytest.mark.asyncio
async def test_login_fills_frame_form():
    """Test the login flow through the login panel frame."""
    sel = SELECTORS["auth"]
    frame = AsyncMock()
    page = make_page()
    page.main_frame.child_frames = [frame]

    await make_auth().login(page)

    page.goto.assert_called_once_with(SELECTORS["home_url"])
    page.click.assert_called_once_with(sel["login_button"])
    frame.fill.assert_any_call(sel["client_number_input"], "12345678")
    frame.fill.assert_any_call(sel["password_input"], "hunter2")
    frame.click.assert_called_once_with(sel["submit_button"])
    page.wait_for_selector.assert_called_with(sel["logged_in_marker"])


@pytest.mark.asyncio
async def test_login_retries_then_fails():
    """Test that login gives up after the configured attempts."""
    page = make_page()

    with pytest.raises(AuthenticationError, match="after 2 attempts"):
        await make_auth(max_retries=2).login(page)

    assert page.goto.call_count == 2


@pytest.mark.asyncio
async def test_login_succeeds_on_retry():
    """Test that a transient failure is retried."""
    frame = AsyncMock()
    page = make_page()
    page.main_frame.child_frames = [frame]
    page.goto.side_effect = [RuntimeError("net::ERR_CONNECTION_RESET"), None]

    await make_auth(max_retries=3).login(page)

    assert page.goto.call_count == 2
    frame.click.assert_called_once()


@pytest.mark.asyncio
async def test_is_logged_in():
    """Test the session check against the log off link."""
    page = make_page()
    page.query_selector.return_value = AsyncMock()
    assert await make_auth().is_logged_in(page) is True

    page.query_selector.return_value = None
    assert await make_auth().is_logged_in(page) is False
