"""Configuration management for ynab-shared."""

from pathlib import Path

from pydantic import BaseModel
from pydantic_settings import BaseSettings, SettingsConfigDict

from .exceptions import ConfigurationError


class OwnerSettings(BaseModel):
    """Configuration of one personal budget owner."""

    name: str
    budget_id: str

    # Owner's private account inside the shared budget, and the transfer
    # payee YNAB generated for it
    shared_account_id: str
    shared_account_payee_id: str

    # Account in the owner's own budget receiving balancing transfers
    balancing_account_id: str

    # Used only at bootstrap when the ids below are not given
    shared_category_name: str = "Shared Expenses"
    balancing_category_name: str = "Shared Balancing"
    shared_category_id: str | None = None
    balancing_category_id: str | None = None


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Owner settings are nested, e.g. ``OWNER_A__BUDGET_ID``.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    # YNAB API
    ynab_access_token: str

    # Budgets
    shared_budget_id: str
    owner_a: OwnerSettings
    owner_b: OwnerSettings

    # Rate limiting (YNAB allows 200 requests per hour per token)
    hourly_call_limit: int = 200

    # Polling
    poll_interval_seconds: float = 10.0

    # Monthly allocation transactions
    allocation_payee_name: str = "Monthly Allocated Budget"

    # Database path
    database_path: Path = Path.home() / ".ynab_shared" / "ynab_shared.db"

    def __init__(self, **kwargs):
        """Initialize settings and create database directory if needed."""
        super().__init__(**kwargs)
        self.database_path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def owners(self) -> list[OwnerSettings]:
        """Both owners, A first."""
        return [self.owner_a, self.owner_b]


def load_settings(**overrides) -> Settings:
    """Load application settings from environment variables."""
    overrides = {k: v for k, v in overrides.items() if v is not None}
    try:
        return Settings(**overrides)
    except Exception as e:
        raise ConfigurationError(
            f"Failed to load settings. Make sure you have created a .env file "
            f"with all required variables. See .env.example for reference.\n"
            f"Error: {e}"
        ) from e
