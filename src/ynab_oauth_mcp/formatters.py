"""
Formatting helpers shared by the resource operations.

YNAB stores money as integer milliunits: 1000 milliunits = $1.00.
"""

import math
import re
import time
from datetime import date, datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Any, Dict, Iterable, Optional, Union

from .errors import ValidationError

MONTH_PATTERN = re.compile(r"^\d{4}-\d{2}(-01)?$")

# Integer amounts of at least this magnitude are taken to be milliunits
MILLIUNIT_THRESHOLD = 1000


class AmountUnits(str, Enum):
    """Units a caller may state for an amount."""
    DOLLARS = "dollars"
    MILLIUNITS = "milliunits"


# ============================================================================
# CLOCK
# ============================================================================

def current_millis() -> int:
    """Current time as epoch milliseconds."""
    return int(time.time() * 1000)


def millis_to_iso(millis: int) -> str:
    """Epoch milliseconds as an ISO 8601 UTC string."""
    moment = datetime.fromtimestamp(millis / 1000, tz=timezone.utc)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


# ============================================================================
# MONEY
# ============================================================================

def dollars_to_milliunits(dollars: Union[Decimal, float, int]) -> int:
    """Convert dollars to YNAB milliunits (1000 milliunits = $1.00)."""
    return int((Decimal(str(dollars)) * 1000).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def milliunits_to_dollars(milliunits: int) -> Decimal:
    """Convert YNAB milliunits to dollars."""
    return Decimal(milliunits) / 1000


def format_currency(milliunits: Optional[int]) -> Optional[str]:
    """Format milliunits as a US currency string, e.g. ``-$1,234.50``."""
    if milliunits is None:
        return None
    dollars = milliunits_to_dollars(milliunits).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    if dollars < 0:
        return f"-${abs(dollars):,.2f}"
    return f"${dollars:,.2f}"


def with_formatted(source: Dict[str, Any], fields: Iterable[str]) -> Dict[str, Any]:
    """Copy each money field as ``<field>`` and ``<field>_formatted``."""
    result = {}
    for name in fields:
        value = source.get(name)
        result[name] = value
        result[f"{name}_formatted"] = format_currency(value)
    return result


def to_milliunits(amount: Union[int, float], units: Optional[AmountUnits] = None) -> int:
    """
    Normalize a caller-supplied amount to milliunits.

    With explicit ``units`` the conversion is exact. Without them, fractional
    amounts are dollars and integer amounts of magnitude >= 1000 are
    milliunits; smaller integers could be either and are rejected.
    """
    if isinstance(amount, float) and not math.isfinite(amount):
        raise ValidationError(f"Amount must be a finite number, got {amount}")
    if units == AmountUnits.MILLIUNITS:
        if isinstance(amount, float) and not amount.is_integer():
            raise ValidationError(f"Milliunit amounts must be whole numbers, got {amount}")
        return int(amount)
    if units == AmountUnits.DOLLARS:
        return dollars_to_milliunits(amount)

    if isinstance(amount, float) and not amount.is_integer():
        return dollars_to_milliunits(amount)
    if abs(amount) >= MILLIUNIT_THRESHOLD or amount == 0:
        return int(amount)
    raise ValidationError(
        f"Amount {amount} is ambiguous: state units as 'dollars' or 'milliunits'"
    )


# ============================================================================
# MONTHS
# ============================================================================

def get_current_month() -> str:
    """Get current month in YNAB format (YYYY-MM-01)."""
    today = date.today()
    return f"{today.year}-{today.month:02d}-01"


def normalize_month(month: Optional[str]) -> str:
    """
    Turn ``YYYY-MM``, ``YYYY-MM-01`` or ``current`` into ``YYYY-MM-01``.

    Raises:
        ValidationError: On a missing or malformed month
    """
    if not month:
        raise ValidationError("Month parameter is required (format: YYYY-MM)")
    if month == "current":
        return get_current_month()
    if not MONTH_PATTERN.match(month):
        raise ValidationError("Month must be in format YYYY-MM (e.g., 2025-04)")
    if len(month) == 7:
        month = f"{month}-01"
    if not 1 <= int(month[5:7]) <= 12:
        raise ValidationError(f"Invalid month: {month[:7]}")
    return month


def previous_month(month: str) -> str:
    """The month before a ``YYYY-MM-01`` month."""
    year, mon = int(month[:4]), int(month[5:7])
    if mon == 1:
        return f"{year - 1}-12-01"
    return f"{year}-{mon - 1:02d}-01"
