"""
Service container passed to every operation.

The entry point builds one YNABServices from Settings and owns its
lifecycle; tests build a fresh one per test with fake transports and clocks.
"""

import logging
from typing import Awaitable, Callable, Optional, TypeVar

import httpx

from .api import YNABBadRequestError, YNABClient, YNABNotFoundError, YNABUnauthorizedError
from .config import RecommendationRules, Settings
from .errors import NotFoundError, ValidationError
from .formatters import current_millis
from .oauth import OAuthClient
from .rate_limit import Priority, RateLimiter
from .tokens import CredentialStore, TokenManager

logger = logging.getLogger(__name__)

T = TypeVar("T")


class YNABServices:
    """Token manager, rate limiter and API client factory for one process."""

    def __init__(
        self,
        settings: Settings,
        tokens: TokenManager,
        rate_limiter: RateLimiter,
        oauth: OAuthClient,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        rules: Optional[RecommendationRules] = None,
    ):
        self.settings = settings
        self.tokens = tokens
        self.rate_limiter = rate_limiter
        self.oauth = oauth
        self.rules = rules or RecommendationRules()
        self._transport = transport

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Callable[[], int] = current_millis,
    ) -> "YNABServices":
        oauth = OAuthClient(settings, transport=transport)
        tokens = TokenManager(CredentialStore(settings.token_store_path), oauth, clock=clock)
        rate_limiter = RateLimiter(
            store_path=settings.rate_limit_store_path,
            limit=settings.rate_limit_per_hour,
            buffer_percentage=settings.rate_limit_buffer_percent,
            reset_interval=settings.rate_limit_window_seconds * 1000,
            persistence_enabled=settings.rate_limit_persistence,
            sweep_interval=settings.rate_limit_sweep_seconds,
            clock=clock,
        )
        return cls(settings, tokens, rate_limiter, oauth, transport=transport)

    def client(self, access_token: str) -> YNABClient:
        return YNABClient(
            access_token,
            base_url=self.settings.api_base,
            timeout=self.settings.request_timeout,
            transport=self._transport,
        )

    async def request(
        self,
        email: str,
        operation: Callable[[YNABClient], Awaitable[T]],
        not_found: Optional[str] = None,
        invalid: Optional[str] = None,
        priority: Priority = Priority.NORMAL,
    ) -> T:
        """
        Run one YNAB call for an account under its rate limit.

        Args:
            email: Account identifier
            operation: Receives a YNABClient and performs the call
            not_found: Message for the NotFoundError raised on a 404
            invalid: Prefix for the ValidationError raised on a 400
            priority: Rate limit priority

        A 401 from YNAB triggers one forced token refresh and one retry.
        """
        access_token = await self.tokens.get_fresh_access_token(email)
        try:
            try:
                return await self._call(email, access_token, operation, priority)
            except YNABUnauthorizedError:
                logger.info("YNAB rejected the access token for %s, refreshing", email)
                access_token = await self.tokens.force_refresh(email)
                return await self._call(email, access_token, operation, priority)
        except YNABNotFoundError as e:
            if not_found is None:
                raise
            raise NotFoundError(not_found) from e
        except YNABBadRequestError as e:
            if invalid is None:
                raise
            raise ValidationError(f"{invalid}: {e.detail or e}") from e

    async def _call(
        self,
        email: str,
        access_token: str,
        operation: Callable[[YNABClient], Awaitable[T]],
        priority: Priority,
    ) -> T:
        async def run() -> T:
            async with self.client(access_token) as client:
                return await operation(client)

        return await self.rate_limiter.execute(email, run, priority)
