"""
Rate limit handling for the YNAB API.

YNAB allows 200 requests per hour per access token. Counters are kept per
account identifier, persisted to disk after every change so a restart does
not reset the clock, and a slice of the quota is reserved for high priority
calls.
"""

import asyncio
import json
import logging
import math
from enum import Enum
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar

from .api import YNABRateLimitedError
from .errors import RateLimitError
from .formatters import current_millis

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_LIMIT = 200
DEFAULT_BUFFER_PERCENTAGE = 10
DEFAULT_RESET_INTERVAL_MS = 60 * 60 * 1000
DEFAULT_SWEEP_INTERVAL = 60.0  # seconds


class Priority(str, Enum):
    """Request priority. High priority calls may use the reserved buffer."""
    NORMAL = "normal"
    HIGH = "high"


class RateLimiter:
    """Per-account hourly request counter with a safety buffer."""

    def __init__(
        self,
        store_path: Optional[Path] = None,
        limit: int = DEFAULT_LIMIT,
        buffer_percentage: int = DEFAULT_BUFFER_PERCENTAGE,
        reset_interval: int = DEFAULT_RESET_INTERVAL_MS,
        persistence_enabled: bool = True,
        sweep_interval: float = DEFAULT_SWEEP_INTERVAL,
        clock: Callable[[], int] = current_millis,
    ):
        """
        Args:
            store_path: JSON file holding {account: {count, resetTime}}
            limit: Requests allowed per window (the full ceiling)
            buffer_percentage: Share of the limit reserved for high priority calls
            reset_interval: Window length in milliseconds
            persistence_enabled: Whether to read and write store_path
            sweep_interval: Seconds between background rollover sweeps
            clock: Returns the current time in epoch milliseconds
        """
        self.limit = limit
        self.buffer_percentage = buffer_percentage
        self.effective_limit = math.floor(limit * (100 - buffer_percentage) / 100)
        self.reset_interval = reset_interval
        self.sweep_interval = sweep_interval
        self.store_path = Path(store_path) if store_path else None
        self.persistence_enabled = persistence_enabled and self.store_path is not None
        self._clock = clock
        self._sweeper: Optional["asyncio.Task[None]"] = None
        self.request_counts: Dict[str, Dict[str, int]] = {}

        if self.persistence_enabled:
            self.store_path.parent.mkdir(parents=True, exist_ok=True)
            self.load_state()

    # ========================================================================
    # PERSISTENCE
    # ========================================================================

    def load_state(self) -> None:
        if not self.store_path.exists():
            return
        try:
            data = json.loads(self.store_path.read_text(encoding="utf-8"))
            self.request_counts = {
                account: {"count": int(entry["count"]), "resetTime": int(entry["resetTime"])}
                for account, entry in data.items()
            }
            logger.debug("Rate limiter state loaded from disk")
        except (OSError, ValueError, KeyError, TypeError, AttributeError) as e:
            logger.warning("Failed to load rate limiter state: %s", e)
            self.request_counts = {}

    def save_state(self) -> None:
        if not self.persistence_enabled:
            return
        try:
            self.store_path.write_text(json.dumps(self.request_counts, indent=2), encoding="utf-8")
            logger.debug("Rate limiter state saved to disk")
        except OSError as e:
            logger.warning("Failed to save rate limiter state: %s", e)

    # ========================================================================
    # COUNTERS
    # ========================================================================

    def _limit_for(self, priority: Priority) -> int:
        return self.limit if Priority(priority) == Priority.HIGH else self.effective_limit

    def can_make_request(self, account_id: str, priority: Priority = Priority.NORMAL) -> bool:
        """Whether another request fits in the account's current window."""
        now = self._clock()

        account = self.request_counts.get(account_id)
        if account is None:
            account = {"count": 0, "resetTime": now + self.reset_interval}
            self.request_counts[account_id] = account

        if now > account["resetTime"]:
            account["count"] = 0
            account["resetTime"] = now + self.reset_interval

        return account["count"] < self._limit_for(priority)

    def increment_counter(self, account_id: str) -> None:
        if account_id in self.request_counts:
            self.request_counts[account_id]["count"] += 1
            self.save_state()

    def decrement_counter(self, account_id: str) -> None:
        account = self.request_counts.get(account_id)
        if account and account["count"] > 0:
            account["count"] -= 1
            self.save_state()

    def get_remaining_requests(self, account_id: str, priority: Priority = Priority.NORMAL) -> int:
        limit = self._limit_for(priority)
        account = self.request_counts.get(account_id)
        if account is None:
            return limit
        return max(0, limit - account["count"])

    def get_reset_time(self, account_id: str) -> int:
        """Epoch milliseconds at which the account's window resets."""
        account = self.request_counts.get(account_id)
        if account is None:
            return self._clock() + self.reset_interval
        return account["resetTime"]

    def cleanup_expired_entries(self) -> bool:
        """Roll over every account whose window has elapsed. Returns True if any did."""
        now = self._clock()
        changed = False

        for account in self.request_counts.values():
            if now > account["resetTime"]:
                account["count"] = 0
                account["resetTime"] = now + self.reset_interval
                changed = True

        if changed:
            self.save_state()
        return changed

    # ========================================================================
    # EXECUTION
    # ========================================================================

    async def execute(
        self,
        account_id: str,
        operation: Callable[[], Awaitable[T]],
        priority: Priority = Priority.NORMAL,
    ) -> T:
        """
        Run ``operation`` if the account has quota left.

        The counter is incremented before the call, so a failed call still
        counts. A 429 from YNAB pins the counter at the full limit.

        Raises:
            RateLimitError: If the local or remote quota is exhausted
        """
        if not self.can_make_request(account_id, priority):
            reset_in_ms = self.get_reset_time(account_id) - self._clock()
            reset_in_minutes = math.ceil(reset_in_ms / 60000)
            raise RateLimitError(
                f"Rate limit exceeded for {account_id}. Resets in {reset_in_minutes} minutes.",
                "RATE_LIMIT_EXCEEDED",
                retry_after=max(0, math.ceil(reset_in_ms / 1000)),
            )

        self.increment_counter(account_id)

        try:
            return await operation()
        except YNABRateLimitedError as e:
            self.request_counts[account_id]["count"] = self.limit
            self.save_state()
            logger.warning("YNAB returned 429 for %s; retry after %ss", account_id, e.retry_after)
            raise RateLimitError(
                f"YNAB API rate limit exceeded. Retry after {e.retry_after} seconds.",
                "YNAB_RATE_LIMIT_EXCEEDED",
                retry_after=e.retry_after,
            ) from e

    # ========================================================================
    # BACKGROUND SWEEP
    # ========================================================================

    def start(self) -> None:
        """Start the periodic rollover sweep on the running event loop."""
        if self._sweeper is None or self._sweeper.done():
            self._sweeper = asyncio.get_running_loop().create_task(self._sweep_forever())

    async def stop(self) -> None:
        if self._sweeper is None:
            return
        self._sweeper.cancel()
        try:
            await self._sweeper
        except asyncio.CancelledError:
            pass
        self._sweeper = None

    async def _sweep_forever(self) -> None:
        while True:
            await asyncio.sleep(self.sweep_interval)
            self.cleanup_expired_entries()

    def status(self, account_id: str) -> Dict[str, Any]:
        """Diagnostic view of one account's quota."""
        return {
            "limit": self.limit,
            "effective_limit": self.effective_limit,
            "remaining": self.get_remaining_requests(account_id),
            "remaining_high_priority": self.get_remaining_requests(account_id, Priority.HIGH),
            "reset_time": self.get_reset_time(account_id),
        }
