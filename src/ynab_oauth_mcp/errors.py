"""
Error taxonomy for the MCP server and the envelope tools return on failure.
"""

import logging
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

DEFAULT_RETRY_AFTER = 3600  # seconds


class YnabMcpError(Exception):
    """Base class for errors raised by this server."""

    status_code = 500
    default_code = "INTERNAL_ERROR"

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code


class AuthenticationError(YnabMcpError):
    """The OAuth flow could not be started or completed."""

    status_code = 401
    default_code = "AUTH_ERROR"

    def __init__(self, message: str = "Authentication failed", code: Optional[str] = None):
        super().__init__(message, code)


class TokenError(YnabMcpError):
    """No usable credential for an account; re-authentication is required."""

    status_code = 401
    default_code = "TOKEN_ERROR"

    def __init__(self, message: str = "Token error", code: Optional[str] = None):
        super().__init__(message, code)


class RateLimitError(YnabMcpError):
    """Local or remote quota exhausted. Never retried here."""

    status_code = 429
    default_code = "RATE_LIMIT_ERROR"

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        code: Optional[str] = None,
        retry_after: int = DEFAULT_RETRY_AFTER,
    ):
        super().__init__(message, code)
        self.retry_after = retry_after


class ValidationError(YnabMcpError):
    """Missing or malformed caller input."""

    status_code = 400
    default_code = "VALIDATION_ERROR"

    def __init__(self, message: str = "Validation failed", code: Optional[str] = None):
        super().__init__(message, code)


class NotFoundError(YnabMcpError):
    """A YNAB resource does not exist."""

    status_code = 404
    default_code = "NOT_FOUND_ERROR"

    def __init__(self, message: str = "Resource not found", code: Optional[str] = None):
        super().__init__(message, code)


def require(**params: Any) -> None:
    """
    Raise ValidationError for the first missing parameter.

    Keyword names are turned into the label used in the message, e.g.
    ``budget_id`` -> "Budget ID parameter is required".
    """
    for name, value in params.items():
        if value is None or (isinstance(value, str) and not value.strip()):
            label = name.replace("_id", " ID").replace("_", " ")
            label = label[0].upper() + label[1:]
            raise ValidationError(f"{label} parameter is required")


def format_mcp_error(error: BaseException) -> Dict[str, Any]:
    """Build the structured error envelope returned to the assistant."""
    if isinstance(error, YnabMcpError):
        logger.warning("%s: %s", type(error).__name__, error.message)
        message, code = error.message, error.code
    else:
        logger.error("Unhandled error: %s", error, exc_info=error)
        message = str(error) or "Internal server error"
        code = getattr(error, "code", None) or "INTERNAL_ERROR"

    envelope: Dict[str, Any] = {"error": {"message": message, "code": code}}

    if isinstance(error, (AuthenticationError, TokenError)):
        envelope["authenticationRequired"] = True
    elif isinstance(error, RateLimitError):
        envelope["retryAfter"] = error.retry_after

    return envelope
