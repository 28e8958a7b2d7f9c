"""
Token storage and lifecycle for YNAB OAuth credentials.

One credential record is kept per account identifier (usually an email).
The TokenManager owns the records; CredentialStore only reads and writes the
JSON file they live in.
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import Callable, Dict, List, Optional, Any

import httpx
from pydantic import BaseModel, ConfigDict

from .errors import TokenError
from .formatters import current_millis, millis_to_iso
from .oauth import OAuthClient, TokenGrant

logger = logging.getLogger(__name__)

# Refresh when the access token has less than this long to live
REFRESH_WINDOW_MS = 5 * 60 * 1000


class CredentialRecord(BaseModel):
    """Stored OAuth credential for one account."""
    model_config = ConfigDict(extra="ignore")

    access_token: str
    refresh_token: Optional[str] = None
    token_type: str = "bearer"
    expires_at: int  # epoch milliseconds


# ============================================================================
# CREDENTIAL STORE
# ============================================================================

class CredentialStore:
    """JSON file mapping account identifier -> credential record."""

    def __init__(self, path: Path):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def load(self) -> Dict[str, CredentialRecord]:
        """Read every record; an unreadable file yields no records."""
        if not self.path.exists():
            logger.info("No tokens file found, starting with empty tokens")
            return {}
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
            records = {email: CredentialRecord.model_validate(data) for email, data in raw.items()}
        except (OSError, ValueError, AttributeError) as e:
            logger.error("Failed to load tokens from %s: %s", self.path, e)
            return {}
        logger.info("Tokens loaded successfully (%d accounts)", len(records))
        return records

    def save(self, records: Dict[str, CredentialRecord]) -> None:
        """
        Write every record.

        Raises:
            TokenError: If the file cannot be written
        """
        payload = {email: record.model_dump() for email, record in records.items()}
        try:
            self.path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        except OSError as e:
            logger.error("Failed to save tokens to %s: %s", self.path, e)
            raise TokenError("Failed to save authentication data") from e
        logger.info("Tokens saved successfully")


# ============================================================================
# TOKEN MANAGER
# ============================================================================

class TokenManager:
    """
    Hands out valid access tokens, refreshing them when they are about to expire.

    Per account the lifecycle is:
        unauthenticated -> valid -> expiring -> valid (after refresh)
                                             -> unauthenticated (removal or dead refresh token)

    Concurrent refreshes for one account share a single in-flight request.
    """

    def __init__(
        self,
        store: CredentialStore,
        oauth: OAuthClient,
        clock: Callable[[], int] = current_millis,
    ):
        self._store = store
        self._oauth = oauth
        self._clock = clock
        self._tokens: Dict[str, CredentialRecord] = store.load()
        self._refreshes: Dict[str, "asyncio.Task[CredentialRecord]"] = {}

    def get_token(self, email: str) -> Optional[CredentialRecord]:
        return self._tokens.get(email)

    def has_token(self, email: str) -> bool:
        return email in self._tokens

    def set_token(self, email: str, grant: TokenGrant) -> CredentialRecord:
        """Store a fresh grant, replacing any earlier record for the account."""
        record = CredentialRecord(
            access_token=grant.access_token,
            refresh_token=grant.refresh_token,
            token_type=grant.token_type,
            expires_at=self._clock() + grant.expires_in * 1000,
        )
        records = {**self._tokens, email: record}
        self._store.save(records)
        self._tokens = records
        return record

    def remove_token(self, email: str) -> bool:
        """Delete the record for an account. Returns False if there was none."""
        if email not in self._tokens:
            return False
        records = {k: v for k, v in self._tokens.items() if k != email}
        self._store.save(records)
        self._tokens = records
        logger.info("Token removed for %s", email)
        return True

    def list_accounts(self) -> List[Dict[str, Any]]:
        """Snapshot of every stored account and its token state."""
        now = self._clock()
        return [
            {
                "email": email,
                "authenticated": True,
                "hasRefreshToken": bool(record.refresh_token),
                "isExpired": record.expires_at < now,
                "expiresAt": millis_to_iso(record.expires_at),
            }
            for email, record in self._tokens.items()
        ]

    async def get_fresh_access_token(self, email: str) -> str:
        """
        Return an access token valid for at least the next five minutes.

        Raises:
            TokenError: If the account has no credential or the refresh fails
        """
        record = self._tokens.get(email)
        if record is None:
            raise TokenError(f"No token found for account: {email}")

        if record.expires_at - self._clock() >= REFRESH_WINDOW_MS:
            return record.access_token

        logger.info("Token for %s is expiring soon, refreshing", email)
        refreshed = await self._refresh_once(email, record.refresh_token)
        return refreshed.access_token

    async def force_refresh(self, email: str) -> str:
        """Refresh regardless of expiry, e.g. after YNAB rejected the access token."""
        record = self._tokens.get(email)
        if record is None:
            raise TokenError(f"No token found for account: {email}")
        refreshed = await self._refresh_once(email, record.refresh_token)
        return refreshed.access_token

    async def _refresh_once(self, email: str, refresh_token: Optional[str]) -> CredentialRecord:
        task = self._refreshes.get(email)
        if task is None:
            task = asyncio.ensure_future(self.refresh_token(email, refresh_token))
            self._refreshes[email] = task
            task.add_done_callback(lambda done: self._forget_refresh(email, done))
        return await task

    def _forget_refresh(self, email: str, task: "asyncio.Task[CredentialRecord]") -> None:
        if self._refreshes.get(email) is task:
            del self._refreshes[email]

    def _holds(self, email: str, refresh_token: str) -> bool:
        """Whether the stored record is still the one issued with ``refresh_token``."""
        record = self._tokens.get(email)
        return record is not None and record.refresh_token == refresh_token

    async def refresh_token(self, email: str, refresh_token: Optional[str]) -> CredentialRecord:
        """
        Exchange a refresh token for a new credential and store it.

        A 400/401 from the authorization server means the credential is dead:
        it is deleted, unless the account was re-authenticated meanwhile. Any
        other failure leaves it in place. If the record was removed or
        replaced while the request was in flight, the result is discarded.

        Raises:
            TokenError: On any failure, or if the account was removed meanwhile
        """
        if not refresh_token:
            logger.error("Token for %s has no refresh token and cannot be renewed", email)
            self.remove_token(email)
            raise TokenError("Failed to refresh token, authentication required")

        try:
            grant = await self._oauth.refresh(refresh_token)
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            logger.error("Token refresh failed for %s: HTTP %s", email, status)
            if status in (400, 401) and self._holds(email, refresh_token):
                self.remove_token(email)
            raise TokenError("Failed to refresh token, authentication required") from e
        except (httpx.HTTPError, ValueError) as e:
            logger.error("Token refresh failed for %s: %s", email, e)
            raise TokenError("Failed to refresh token, authentication required") from e

        if not self._holds(email, refresh_token):
            current = self._tokens.get(email)
            if current is None:
                logger.info("Account %s was removed during token refresh", email)
                raise TokenError(f"No token found for account: {email}")
            logger.info("Account %s was re-authenticated during token refresh", email)
            return current

        if not grant.refresh_token:
            grant = grant.model_copy(update={"refresh_token": refresh_token})

        record = self.set_token(email, grant)
        logger.info("Token refreshed successfully for %s", email)
        return record
