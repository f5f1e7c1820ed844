"""Browser automation module for CommBank NetBank.

This module provides browser lifecycle management, authentication, and page
automation using Playwright.
"""

from netbank_autopay.browser.auth import AuthenticationError, NetBankAuth
from netbank_autopay.browser.context import BrowserManager
from netbank_autopay.browser.portal import FavouritePaymentNotFound, NetBankPortal, PortalError

__all__ = [
    "AuthenticationError",
    "BrowserManager",
    "FavouritePaymentNotFound",
    "NetBankAuth",
    "NetBankPortal",
    "PortalError",
]
