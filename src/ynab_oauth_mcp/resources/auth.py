"""
Authentication operations: starting and completing the OAuth flow,
removing accounts and listing stored accounts.
"""

import logging
from typing import Any, Dict, List, Optional

import httpx

from ..errors import AuthenticationError, require
from ..services import YNABServices

logger = logging.getLogger(__name__)


async def start_authentication(services: YNABServices, email: str) -> Dict[str, Any]:
    """Return the URL the user must visit to grant access."""
    require(email=email)
    if not services.settings.client_id:
        raise AuthenticationError(
            "OAuth client is not configured. Set YNAB_CLIENT_ID and YNAB_CLIENT_SECRET.",
            "OAUTH_NOT_CONFIGURED",
        )
    return {
        "status": "auth_required",
        "message": "Authentication required",
        "auth_url": services.oauth.authorization_url(),
        "email": email,
    }


async def complete_authentication(services: YNABServices, email: str, code: str) -> Dict[str, Any]:
    """Exchange the authorization code and store the resulting tokens."""
    require(email=email, auth_code=code)
    try:
        grant = await services.oauth.exchange_code(code)
    except httpx.HTTPStatusError as e:
        status = e.response.status_code
        logger.error("Error exchanging code for token: HTTP %s", status)
        if status == 400:
            try:
                description = e.response.json().get("error_description")
            except ValueError:
                description = None
            raise AuthenticationError(description or "Invalid authorization code", "INVALID_AUTH_CODE") from e
        if status == 401:
            raise AuthenticationError("OAuth client authentication failed", "CLIENT_AUTH_FAILED") from e
        raise AuthenticationError("Failed to complete authentication") from e
    except (httpx.HTTPError, ValueError) as e:
        logger.error("Error exchanging code for token: %s", e)
        raise AuthenticationError("Failed to complete authentication") from e

    services.tokens.set_token(email, grant)
    logger.info("Authentication completed for %s", email)
    return {
        "status": "success",
        "message": "Authentication completed successfully",
        "email": email,
        "authenticated": True,
    }


async def authenticate_account(
    services: YNABServices,
    email: str,
    auth_code: Optional[str] = None,
) -> Dict[str, Any]:
    """Start the flow, or complete it when an auth code is supplied."""
    require(email=email)
    if auth_code:
        return await complete_authentication(services, email, auth_code)
    return await start_authentication(services, email)


async def remove_authentication(services: YNABServices, email: str) -> Dict[str, Any]:
    require(email=email)
    if services.tokens.remove_token(email):
        return {"status": "success", "message": f"Authentication removed for {email}"}
    return {"status": "not_found", "message": f"No authentication found for {email}"}


async def list_authenticated_accounts(services: YNABServices) -> List[Dict[str, Any]]:
    return services.tokens.list_accounts()
