"""Budget operations."""

import logging
from typing import Any, Dict

from ..errors import require
from ..services import YNABServices

logger = logging.getLogger(__name__)


def _summarize_budget(budget: Dict[str, Any]) -> Dict[str, Any]:
    currency = budget.get("currency_format")
    date_format = budget.get("date_format")
    return {
        "id": budget["id"],
        "name": budget.get("name"),
        "last_modified_on": budget.get("last_modified_on"),
        "first_month": budget.get("first_month"),
        "last_month": budget.get("last_month"),
        "currency_format": {
            "iso_code": currency.get("iso_code"),
            "example_format": currency.get("example_format"),
        } if currency else None,
        "date_format": {"format": date_format.get("format")} if date_format else None,
    }


async def list_budgets(services: YNABServices, email: str) -> Dict[str, Any]:
    """List all budgets for the authenticated YNAB account."""
    require(email=email)
    logger.info("Listing budgets for %s", email)

    data = await services.request(email, lambda client: client.get_budgets())
    default_budget = data.get("default_budget")
    return {
        "budgets": [_summarize_budget(b) for b in data.get("budgets", [])],
        "default_budget": default_budget["id"] if default_budget else None,
    }


async def get_budget(services: YNABServices, email: str, budget_id: str) -> Dict[str, Any]:
    """Budget details with counts of its contents rather than the full export."""
    require(email=email, budget_id=budget_id)
    logger.info("Getting budget %s for %s", budget_id, email)

    data = await services.request(
        email,
        lambda client: client.get_budget(budget_id),
        not_found=f"Budget with ID {budget_id} not found",
    )
    budget = data["budget"]

    def count(key: str) -> int:
        return sum(1 for item in budget.get(key) or [] if not item.get("deleted"))

    return {
        **_summarize_budget(budget),
        "currency_format": budget.get("currency_format"),
        "date_format": budget.get("date_format"),
        "accounts_count": count("accounts"),
        "category_groups_count": count("category_groups"),
        "categories_count": count("categories"),
        "payees_count": count("payees"),
        "months_count": count("months"),
        "server_knowledge": data.get("server_knowledge"),
    }


async def get_budget_settings(services: YNABServices, email: str, budget_id: str) -> Dict[str, Any]:
    require(email=email, budget_id=budget_id)
    logger.info("Getting settings for budget %s for %s", budget_id, email)

    return await services.request(
        email,
        lambda client: client.get_budget_settings(budget_id),
        not_found=f"Budget with ID {budget_id} not found",
    )
