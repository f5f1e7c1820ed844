"""Application configuration management using Pydantic Settings.

Settings are loaded from environment variables (.env file) exactly once, by
``load_settings()`` at startup, and the resulting object is passed to every
component that needs it. Credentials are wrapped in SecretStr so they never
end up in log output.
"""

from decimal import Decimal
from pathlib import Path
from typing import Any

import yaml
from pydantic import Field, SecretStr, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_SELECTORS_PATH = Path(__file__).with_name("selectors.yaml")


class ConfigurationError(Exception):
    """Raised when settings or selectors cannot be loaded."""

    pass


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # NetBank credentials, only needed by commands that open the portal
    cba_login: str | None = Field(default=None, description="NetBank client number")
    cba_password: SecretStr | None = Field(default=None, description="NetBank password")

    # Payment
    favourite_payment: str = Field(
        default="Appartment Weekly",
        description="Label of the saved favourite payment to use",
    )
    payment_amount: Decimal = Field(
        default=Decimal("585"),
        gt=0,
        description="Amount transferred per pending bill",
    )
    pay_days: list[int] = Field(
        default=[1, 15],
        description="Days of the month income arrives on",
    )

    # Browser
    browser_headless: bool = Field(default=True, description="Run browser in headless mode")
    browser_user_agent: str = Field(
        default=(
            "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_12_6) "
            "AppleWebKit/537.36 (KHTML, like Gecko)"
        ),
        description="User agent emulated by the browser context",
    )
    viewport_width: int = Field(default=1280, gt=0)
    viewport_height: int = Field(default=743, gt=0)
    navigation_timeout_ms: int = Field(
        default=30000, gt=0, description="Default Playwright timeout in milliseconds"
    )
    screenshot_dir: str = Field(
        default="screenshots", description="Directory for page screenshots"
    )

    # Ledger
    ledger_db_path: str = Field(
        default="data/autopay.db", description="SQLite ledger database path"
    )

    # Selectors
    selectors_path: str = Field(
        default=str(DEFAULT_SELECTORS_PATH),
        description="Path to CSS selectors YAML configuration file",
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )
    log_format: str = Field(
        default="console", description="Log output format (json or console)"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("pay_days")
    @classmethod
    def _check_pay_days(cls, value: list[int]) -> list[int]:
        if not value:
            raise ValueError("at least one pay day is required")
        # Every month must contain each pay day.
        for day in value:
            if not 1 <= day <= 28:
                raise ValueError(f"pay day {day} is outside 1..28")
        return sorted(set(value))

    @field_validator("log_format")
    @classmethod
    def _check_log_format(cls, value: str) -> str:
        value = value.lower()
        if value not in ("json", "console"):
            raise ValueError("log_format must be 'json' or 'console'")
        return value

    def require_credentials(self) -> tuple[str, SecretStr]:
        """Return the NetBank client number and password.

        Raises:
            ConfigurationError: If either is missing.
        """
        missing = [
            name
            for name, value in (("CBA_LOGIN", self.cba_login), ("CBA_PASSWORD", self.cba_password))
            if not value or (isinstance(value, SecretStr) and not value.get_secret_value())
        ]
        if missing:
            raise ConfigurationError(f"{', '.join(missing)} environment variable is not defined")
        return self.cba_login, self.cba_password  # type: ignore[return-value]


def load_settings(**overrides: Any) -> Settings:
    """Build and validate the settings object.

    Args:
        **overrides: Values taking precedence over the environment.

    Returns:
        Validated Settings instance.

    Raises:
        ConfigurationError: If any setting is missing or invalid.
    """
    try:
        return Settings(**overrides)
    except ValidationError as e:
        fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in e.errors())
        raise ConfigurationError(f"Invalid configuration ({fields}): {e}") from e


def load_selectors(path: str | Path | None = None) -> dict[str, Any]:
    """Load CSS selectors for the NetBank pages.

    Args:
        path: Path to selectors YAML file. If None, uses the packaged file.

    Returns:
        Nested dictionary of selectors grouped by page.

    Raises:
        ConfigurationError: If the file does not exist or is not a mapping.
    """
    selectors_path = Path(path) if path else DEFAULT_SELECTORS_PATH
    if not selectors_path.exists():
        raise ConfigurationError(f"Selectors config not found: {selectors_path}")

    with open(selectors_path, encoding="utf-8") as f:
        data = yaml.safe_load(f)

    if not isinstance(data, dict):
        raise ConfigurationError(f"Selectors config is not a mapping: {selectors_path}")

    return data
