"""Category operations."""

import logging
from typing import Any, Dict, Optional

from ..errors import ValidationError, require
from ..formatters import normalize_month, with_formatted
from ..services import YNABServices

logger = logging.getLogger(__name__)

INTERNAL_GROUP = "Internal Master Category"
MONEY_FIELDS = ("budgeted", "activity", "balance")


def format_category(category: Dict[str, Any]) -> Dict[str, Any]:
    """Category fields, money echoed as milliunits and currency, plus goal info."""
    return {
        "id": category["id"],
        "name": category.get("name"),
        "category_group_id": category.get("category_group_id"),
        "category_group_name": category.get("category_group_name"),
        "hidden": category.get("hidden", False),
        "note": category.get("note"),
        **with_formatted(category, MONEY_FIELDS),
        "goal_type": category.get("goal_type"),
        "goal_target": category.get("goal_target"),
        "goal_target_month": category.get("goal_target_month"),
        "goal_percentage_complete": category.get("goal_percentage_complete"),
        "goal_under_funded": category.get("goal_under_funded"),
    }


async def list_categories(services: YNABServices, email: str, budget_id: str) -> Dict[str, Any]:
    """Category groups with their categories nested, without deleted or internal entries."""
    require(email=email, budget_id=budget_id)
    logger.info("Listing categories for budget %s for %s", budget_id, email)

    data = await services.request(
        email,
        lambda client: client.get_categories(budget_id),
        not_found=f"Budget with ID {budget_id} not found",
    )

    groups = []
    for group in data.get("category_groups", []):
        if group.get("deleted") or group.get("name") == INTERNAL_GROUP:
            continue
        groups.append({
            "id": group["id"],
            "name": group.get("name"),
            "hidden": group.get("hidden", False),
            "categories": [
                format_category(c) for c in group.get("categories", []) if not c.get("deleted")
            ],
        })

    return {"category_groups": groups, "server_knowledge": data.get("server_knowledge")}


async def get_category(services: YNABServices, email: str, budget_id: str, category_id: str) -> Dict[str, Any]:
    require(email=email, budget_id=budget_id, category_id=category_id)
    logger.info("Getting category %s for budget %s for %s", category_id, budget_id, email)

    category = await services.request(
        email,
        lambda client: client.get_category(budget_id, category_id),
        not_found=f"Category with ID {category_id} not found in budget {budget_id}",
    )
    return format_category(category)


async def update_category(
    services: YNABServices,
    email: str,
    budget_id: str,
    category_id: str,
    month: Optional[str] = None,
    budgeted: Optional[int] = None,
    name: Optional[str] = None,
    note: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Update a category's budgeted amount for a month and/or its name and note.

    ``budgeted`` is in milliunits and requires ``month``.
    """
    require(email=email, budget_id=budget_id, category_id=category_id)
    if budgeted is None and name is None and note is None:
        raise ValidationError("Specify at least one of budgeted, name or note")
    if budgeted is not None:
        month = normalize_month(month)

    not_found = f"Category with ID {category_id} not found in budget {budget_id}"
    details = {k: v for k, v in (("name", name), ("note", note)) if v is not None}
    category = None

    if details:
        logger.info("Updating category %s details for budget %s", category_id, budget_id)
        category = await services.request(
            email,
            lambda client: client.update_category(budget_id, category_id, **details),
            not_found=not_found,
            invalid="Invalid category update",
        )

    if budgeted is not None:
        logger.info("Updating category %s budget for %s to %s", category_id, month, budgeted)
        category = await services.request(
            email,
            lambda client: client.update_category_budget(budget_id, category_id, month, budgeted),
            not_found=not_found,
            invalid="Invalid category update",
        )

    result = format_category(category)
    if budgeted is not None:
        result["month"] = month
    return result
