"""
Configuration for the YNAB OAuth MCP server.

All settings come from environment variables prefixed with ``YNAB_`` (or a
``.env`` file). The OAuth client secret may also be kept in the OS keyring.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple

import keyring
from keyring.errors import KeyringError
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

# ============================================================================
# CONFIGURATION - The only external endpoints this code contacts
# ============================================================================

YNAB_API_BASE = "https://api.ynab.com/v1"
YNAB_OAUTH_BASE = "https://app.youneedabudget.com/oauth"

KEYRING_SERVICE = "ynab-oauth-mcp"
KEYRING_SECRET_USER = "client_secret"


class Settings(BaseSettings):
    """Server settings, read from ``YNAB_*`` environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="YNAB_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # OAuth application
    client_id: str = ""
    client_secret: Optional[str] = None
    redirect_uri: str = "urn:ietf:wg:oauth:2.0:oob"

    # Endpoints
    api_base: str = YNAB_API_BASE
    oauth_base: str = YNAB_OAUTH_BASE
    request_timeout: float = 30.0  # seconds

    # Persistence
    token_store_path: Path = Path("config/tokens.json")
    rate_limit_store_path: Path = Path("data/rate-limits.json")

    # YNAB allows 200 requests per hour per token
    rate_limit_per_hour: int = Field(default=200, ge=1)
    rate_limit_buffer_percent: int = Field(default=10, ge=0, le=100)
    rate_limit_window_seconds: int = Field(default=3600, ge=1)
    rate_limit_sweep_seconds: float = Field(default=60.0, gt=0)
    rate_limit_persistence: bool = True

    log_level: str = "INFO"

    def resolve_client_secret(self) -> Optional[str]:
        """
        Return the OAuth client secret.

        Priority:
        1. Environment variable YNAB_CLIENT_SECRET
        2. OS keyring
        """
        if self.client_secret:
            return self.client_secret
        try:
            return keyring.get_password(KEYRING_SERVICE, KEYRING_SECRET_USER)
        except KeyringError as e:
            logger.warning("Keyring unavailable: %s", e)
            return None


def store_client_secret(secret: str) -> bool:
    """Store the OAuth client secret in the OS keyring."""
    try:
        keyring.set_password(KEYRING_SERVICE, KEYRING_SECRET_USER, secret)
        return True
    except KeyringError as e:
        logger.error("Error storing client secret: %s", e)
        return False


# ============================================================================
# RECOMMENDATION RULES
# ============================================================================

@dataclass(frozen=True)
class RecommendationRules:
    """Heuristics used when ranking categories for new money."""

    essential_groups: Tuple[str, ...] = (
        "Immediate Obligations",
        "Bills",
        "Essentials",
        "Essential Expenses",
        "Housing",
        "Utilities",
        "Monthly Bills",
        "Fixed Expenses",
        "Debt Payments",
    )
    savings_groups: Tuple[str, ...] = (
        "Savings Goals",
        "Savings",
        "Long-Term Savings",
        "Long Term Goals",
        "Investments",
        "Quality of Life Goals",
    )
    # Categories whose name contains one of these also count as savings
    savings_keywords: Tuple[str, ...] = ("savings", "emergency", "retirement", "invest")
    # Prior-month spending below this (milliunits) is not "material"
    material_spending_threshold: int = 10_000
    excluded_groups: Tuple[str, ...] = ("Internal Master Category", "Credit Card Payments", "Hidden Categories")
