"""Budget month operations."""

import logging
from typing import Any, Dict, Optional

from ..errors import require
from ..formatters import normalize_month, with_formatted
from ..services import YNABServices
from .categories import format_category

logger = logging.getLogger(__name__)

MONTH_MONEY_FIELDS = ("income", "budgeted", "activity", "to_be_budgeted")


def format_month(month: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "month": month.get("month"),
        "note": month.get("note"),
        **with_formatted(month, MONTH_MONEY_FIELDS),
        "age_of_money": month.get("age_of_money"),
    }


async def list_months(
    services: YNABServices,
    email: str,
    budget_id: str,
    since_date: Optional[str] = None,
) -> Dict[str, Any]:
    """Summaries of every budget month, optionally only those on or after since_date."""
    require(email=email, budget_id=budget_id)
    logger.info("Listing months for budget %s for %s", budget_id, email)

    data = await services.request(
        email,
        lambda client: client.get_budget_months(budget_id),
        not_found=f"Budget with ID {budget_id} not found",
    )
    months = [m for m in data.get("months", []) if not m.get("deleted")]
    if since_date:
        months = [m for m in months if m.get("month", "") >= since_date]

    return {
        "months": [format_month(m) for m in months],
        "server_knowledge": data.get("server_knowledge"),
    }


async def get_month(services: YNABServices, email: str, budget_id: str, month: str) -> Dict[str, Any]:
    """One budget month with every non-deleted category's budgeted, activity and balance."""
    require(email=email, budget_id=budget_id)
    month = normalize_month(month)
    logger.info("Getting month %s for budget %s", month, budget_id)

    data = await services.request(
        email,
        lambda client: client.get_budget_month(budget_id, month),
        not_found=f"Month {month[:7]} not found in budget {budget_id}",
    )
    return {
        **format_month(data),
        "categories": [format_category(c) for c in data.get("categories") or [] if not c.get("deleted")],
    }
