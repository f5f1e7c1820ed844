"""Authentication for CommBank NetBank.

Login flow: Home page → Log on button → Login panel (iframe) → Portfolio

The login form lives in an iframe inside a slide-out panel on the public
home page. Once submitted, the browser is redirected into NetBank, where the
log off link marks a successful session.
"""

import asyncio
from collections.abc import Sequence
from typing import Any

from playwright.async_api import Frame, Page
from pydantic import SecretStr


class AuthenticationError(Exception):
    """Raised when authentication fails after all retries."""

    pass


class NetBankAuth:
    """Logs into NetBank with a client number and password."""

    def __init__(
        self,
        selectors: dict[str, Any],
        client_number: str,
        password: SecretStr,
        logger: Any,
        *,
        max_retries: int = 3,
        retry_delays: Sequence[float] = (5, 15, 45),
    ) -> None:
        self.home_url = selectors["home_url"]
        self.selectors = selectors["auth"]
        self.logger = logger
        self._client_number = client_number
        self._password = password
        self._max_retries = max_retries
        self._retry_delays = list(retry_delays)

    async def login(self, page: Page) -> None:
        """Perform the full login flow with retry logic.

        Args:
            page: Page to log in on. It stays logged in afterwards.

        Raises:
            AuthenticationError: If login fails after all retries.
        """
        for attempt in range(1, self._max_retries + 1):
            try:
                self.logger.info("login_attempt_started", attempt=attempt)
                await self._submit_credentials(page)

                self.logger.debug("waiting_for_login_to_finish")
                await page.wait_for_selector(self.selectors["logged_in_marker"])

                self.logger.info("login_successful", attempt=attempt)
                return

            except Exception as e:
                self.logger.warning("login_attempt_failed", attempt=attempt, error=str(e))

                if attempt < self._max_retries:
                    delay = self._retry_delays[min(attempt - 1, len(self._retry_delays) - 1)]
                    self.logger.info("retrying_login", delay_seconds=delay)
                    await asyncio.sleep(delay)
                else:
                    raise AuthenticationError(
                        f"Login failed after {self._max_retries} attempts: {e}"
                    ) from e

        raise AuthenticationError(f"Login failed after {self._max_retries} attempts")

    async def is_logged_in(self, page: Page) -> bool:
        """Check whether the page shows a NetBank session."""
        try:
            return await page.query_selector(self.selectors["logged_in_marker"]) is not None
        except Exception as e:
            self.logger.warning("session_check_failed", error=str(e))
            return False

    async def _submit_credentials(self, page: Page) -> None:
        self.logger.debug("loading_home_page", url=self.home_url)
        await page.goto(self.home_url)

        self.logger.debug("opening_login_panel")
        await page.click(self.selectors["login_button"])
        await page.wait_for_selector(self.selectors["login_panel"])

        frame = self._login_frame(page)
        await frame.wait_for_selector(self.selectors["client_number_input"])

        self.logger.debug("filling_login_form")
        await frame.fill(self.selectors["client_number_input"], self._client_number)
        await frame.fill(self.selectors["password_input"], self._password.get_secret_value())
        await frame.click(self.selectors["submit_button"])

    def _login_frame(self, page: Page) -> Frame:
        frames = page.main_frame.child_frames
        if not frames:
            raise AuthenticationError("Login panel frame not found")
        return frames[0]
