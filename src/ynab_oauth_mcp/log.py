"""
Logging setup.

Logs go to stderr because stdout carries the MCP stdio protocol. Every record
passes through a filter that masks OAuth secrets.
"""

import logging
import re
import sys

_SECRET_PATTERNS = [
    (re.compile(r"""(["']?(?:access_token|refresh_token|client_secret)["']?\s*[:=]\s*["']?)[^"'\s,&}]+"""), r"\1[FILTERED]"),
    (re.compile(r"Bearer\s+[A-Za-z0-9\-_.~+/]+=*"), "Bearer [FILTERED]"),
]

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def redact(text: str) -> str:
    """Mask tokens and client secrets in a string."""
    for pattern, replacement in _SECRET_PATTERNS:
        text = pattern.sub(replacement, text)
    return text


class RedactingFilter(logging.Filter):
    """Rewrite each record's message with secrets masked."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        redacted = redact(message)
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True


def configure_logging(level: str = "INFO") -> None:
    """Install a stderr handler on the package logger."""
    package_logger = logging.getLogger("ynab_oauth_mcp")
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))
    handler.addFilter(RedactingFilter())

    package_logger.handlers.clear()
    package_logger.addHandler(handler)
    package_logger.setLevel(level.upper())
    package_logger.propagate = False
