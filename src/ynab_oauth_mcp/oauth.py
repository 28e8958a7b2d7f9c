"""
OAuth client for YNAB's authorization server.

Only two endpoints are used:
- {oauth_base}/authorize  (the user opens this in a browser)
- {oauth_base}/token      (code exchange and refresh)

Failures are left as httpx exceptions; callers decide what a 400/401 means.
"""

import logging
from typing import Optional
from urllib.parse import urlencode

import httpx
from pydantic import BaseModel, ConfigDict

from .config import Settings

logger = logging.getLogger(__name__)

DEFAULT_EXPIRES_IN = 7200  # seconds, used when YNAB omits expires_in


class TokenGrant(BaseModel):
    """A token response from the authorization server."""
    model_config = ConfigDict(extra="ignore")

    access_token: str
    refresh_token: Optional[str] = None
    token_type: str = "bearer"
    expires_in: int = DEFAULT_EXPIRES_IN


class OAuthClient:
    """Talks to the YNAB authorization server on behalf of one OAuth application."""

    def __init__(self, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None):
        self._settings = settings
        self._transport = transport

    @property
    def token_url(self) -> str:
        return f"{self._settings.oauth_base}/token"

    def authorization_url(self) -> str:
        """URL the user visits to grant access; YNAB then shows an auth code."""
        query = urlencode({
            "client_id": self._settings.client_id,
            "redirect_uri": self._settings.redirect_uri,
            "response_type": "code",
        })
        return f"{self._settings.oauth_base}/authorize?{query}"

    async def exchange_code(self, code: str) -> TokenGrant:
        """Exchange an authorization code for an access/refresh token pair."""
        return await self._post_token({
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": self._settings.redirect_uri,
        })

    async def refresh(self, refresh_token: str) -> TokenGrant:
        """Mint a new access token from a refresh token."""
        return await self._post_token({
            "grant_type": "refresh_token",
            "refresh_token": refresh_token,
        })

    async def _post_token(self, form: dict) -> TokenGrant:
        form = {
            "client_id": self._settings.client_id,
            "client_secret": self._settings.resolve_client_secret() or "",
            **form,
        }
        async with httpx.AsyncClient(
            timeout=self._settings.request_timeout,
            transport=self._transport,
        ) as client:
            logger.debug("Requesting token with grant_type=%s", form["grant_type"])
            response = await client.post(self.token_url, data=form)
            response.raise_for_status()
            return TokenGrant.model_validate(response.json())
