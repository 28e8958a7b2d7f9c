"""
Moving "Ready to Assign" money into categories.

assign_to_categories applies a caller's allocation batch; get_recommended_allocations
proposes one. Both read the month's to_be_budgeted balance first.
"""

import logging
from typing import Any, Dict, List, Optional

from ..config import RecommendationRules
from ..errors import NotFoundError, ValidationError, require
from ..formatters import AmountUnits, format_currency, normalize_month, previous_month, to_milliunits
from ..services import YNABServices

logger = logging.getLogger(__name__)

PRIORITY_GOAL = 1
PRIORITY_ESSENTIAL = 2
PRIORITY_SPENDING = 3
PRIORITY_SAVINGS = 4


# ============================================================================
# ASSIGN
# ============================================================================

def _allocation_amounts(allocations: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    normalized = []
    for allocation in allocations:
        category_id = allocation.get("category_id")
        if not category_id:
            raise ValidationError("Each allocation must include category_id")
        if allocation.get("amount") is None:
            raise ValidationError(f"Allocation for category {category_id} must include amount")
        units = allocation.get("units")
        amount = to_milliunits(allocation["amount"], AmountUnits(units) if units else None)
        if amount <= 0:
            raise ValidationError(f"Allocation for category {category_id} must be a positive amount")
        normalized.append({"category_id": category_id, "amount": amount})
    return normalized


async def assign_to_categories(
    services: YNABServices,
    email: str,
    budget_id: str,
    month: str,
    allocations: Optional[List[Dict[str, Any]]],
) -> Dict[str, Any]:
    """
    Add money from Ready to Assign to several categories.

    The whole batch is rejected, with nothing written, when it asks for more
    than is available. Otherwise each category's budgeted amount is read and
    written back increased; a failure part way through leaves the earlier
    categories updated.

    Args:
        services: Service container
        email: Account identifier
        budget_id: Budget ID or "last-used"
        month: Target month (YYYY-MM, YYYY-MM-01 or "current")
        allocations: [{"category_id", "amount", "units"?}]

    Returns:
        Report with per-category before/after amounts and the remaining balance
    """
    require(email=email, budget_id=budget_id)
    month = normalize_month(month)
    if not allocations:
        raise ValidationError("Allocations array is required")
    requested_allocations = _allocation_amounts(allocations)

    month_data = await services.request(
        email,
        lambda client: client.get_budget_month(budget_id, month),
        not_found=f"Month {month[:7]} not found in budget {budget_id}",
    )
    available = month_data.get("to_be_budgeted") or 0
    requested = sum(a["amount"] for a in requested_allocations)

    if requested > available:
        logger.info("Allocation of %s exceeds available %s for %s", requested, available, month)
        return {
            "success": False,
            "message": "Requested allocation exceeds available funds",
            "available": available,
            "available_formatted": format_currency(available),
            "requested": requested,
            "requested_formatted": format_currency(requested),
            "month": month,
        }

    results = []
    for allocation in requested_allocations:
        category_id, amount = allocation["category_id"], allocation["amount"]
        not_found = f"Category with ID {category_id} not found in budget {budget_id}"

        current = await services.request(
            email,
            lambda client: client.get_month_category(budget_id, month, category_id),
            not_found=not_found,
        )
        before = current.get("budgeted") or 0
        after = before + amount

        updated = await services.request(
            email,
            lambda client: client.update_category_budget(budget_id, category_id, month, after),
            not_found=not_found,
            invalid="Invalid allocation",
        )
        logger.info("Assigned %s to category %s for %s", amount, category_id, month)
        results.append({
            "category_id": category_id,
            "category_name": updated.get("name") or current.get("name"),
            "amount": amount,
            "amount_formatted": format_currency(amount),
            "budgeted_before": before,
            "budgeted_before_formatted": format_currency(before),
            "budgeted_after": updated.get("budgeted", after),
            "budgeted_after_formatted": format_currency(updated.get("budgeted", after)),
        })

    remaining = available - requested
    return {
        "success": True,
        "message": f"Assigned {format_currency(requested)} to {len(results)} categories",
        "month": month,
        "allocations": results,
        "total_assigned": requested,
        "total_assigned_formatted": format_currency(requested),
        "remaining": remaining,
        "remaining_formatted": format_currency(remaining),
    }


# ============================================================================
# RECOMMEND
# ============================================================================

def _group_names(categories_data: Dict[str, Any]) -> Dict[str, str]:
    names = {}
    for group in categories_data.get("category_groups", []):
        for category in group.get("categories", []):
            names[category["id"]] = group.get("name") or ""
    return names


def _is_savings(rules: RecommendationRules, group_name: str, category_name: str) -> bool:
    if group_name in rules.savings_groups:
        return True
    lowered = category_name.lower()
    return any(keyword in lowered for keyword in rules.savings_keywords)


def rank_categories(
    categories: List[Dict[str, Any]],
    group_names: Dict[str, str],
    previous_spending: Dict[str, int],
    rules: RecommendationRules,
) -> List[Dict[str, Any]]:
    """
    Place each eligible category in its highest tier.

    Returns candidates ordered by tier, each with ``need`` in milliunits.
    Savings candidates get ``need=None``; they share whatever is left.
    """
    tiers: Dict[int, List[Dict[str, Any]]] = {
        PRIORITY_GOAL: [], PRIORITY_ESSENTIAL: [], PRIORITY_SPENDING: [], PRIORITY_SAVINGS: [],
    }

    for category in categories:
        if category.get("deleted") or category.get("hidden"):
            continue
        group_name = group_names.get(category["id"]) or category.get("category_group_name") or ""
        if group_name in rules.excluded_groups:
            continue

        name = category.get("name") or ""
        balance = category.get("balance") or 0
        under_funded = category.get("goal_under_funded") or 0
        spent = previous_spending.get(category["id"], 0)
        candidate = {
            "category_id": category["id"],
            "category_name": name,
            "group_name": group_name,
            "current_balance": balance,
        }

        if under_funded > 0:
            tiers[PRIORITY_GOAL].append({
                **candidate, "need": under_funded, "priority": PRIORITY_GOAL,
                "reason": f"Goal is underfunded by {format_currency(under_funded)}",
            })
        elif group_name in rules.essential_groups and balance < 0:
            tiers[PRIORITY_ESSENTIAL].append({
                **candidate, "need": -balance, "priority": PRIORITY_ESSENTIAL,
                "reason": f"Essential category is overspent by {format_currency(-balance)}",
            })
        elif spent >= rules.material_spending_threshold and balance < spent:
            tiers[PRIORITY_SPENDING].append({
                **candidate, "need": spent - balance, "priority": PRIORITY_SPENDING,
                "reason": f"Spent {format_currency(spent)} last month; balance covers {format_currency(balance)}",
            })
        elif _is_savings(rules, group_name, name):
            tiers[PRIORITY_SAVINGS].append({
                **candidate, "need": None, "priority": PRIORITY_SAVINGS,
                "reason": "Savings or long-term goal",
            })

    return [c for tier in sorted(tiers) for c in tiers[tier]]


def allocate_greedily(candidates: List[Dict[str, Any]], available: int) -> List[Dict[str, Any]]:
    """Fund candidates in order until the money runs out; savings split the remainder evenly."""
    remaining = available
    recommendations = []

    for candidate in candidates:
        if candidate["need"] is None or remaining <= 0:
            continue
        amount = min(candidate["need"], remaining)
        if amount <= 0:
            continue
        remaining -= amount
        recommendations.append({**candidate, "amount": amount})

    savings = [c for c in candidates if c["need"] is None]
    if savings and remaining > 0:
        share = remaining // len(savings)
        if share > 0:
            for candidate in savings:
                recommendations.append({**candidate, "amount": share})
            remaining -= share * len(savings)

    for recommendation in recommendations:
        del recommendation["need"]
        recommendation["amount_formatted"] = format_currency(recommendation["amount"])
        recommendation["current_balance_formatted"] = format_currency(recommendation["current_balance"])
    return recommendations


async def get_recommended_allocations(
    services: YNABServices,
    email: str,
    budget_id: str,
    month: str,
    available_amount: Optional[int] = None,
) -> Dict[str, Any]:
    """
    Suggest how to distribute Ready to Assign for a month.

    Tiers, highest first: underfunded goals, overspent essential categories,
    categories whose prior-month spending exceeds their balance, then savings.
    ``available_amount`` (milliunits) overrides the month's to_be_budgeted.
    """
    require(email=email, budget_id=budget_id)
    month = normalize_month(month)
    rules = services.rules
    logger.info("Building allocation recommendations for %s in budget %s", month, budget_id)

    month_data = await services.request(
        email,
        lambda client: client.get_budget_month(budget_id, month),
        not_found=f"Month {month[:7]} not found in budget {budget_id}",
    )
    categories_data = await services.request(
        email,
        lambda client: client.get_categories(budget_id),
        not_found=f"Budget with ID {budget_id} not found",
    )

    prior = previous_month(month)
    try:
        prior_data = await services.request(
            email,
            lambda client: client.get_budget_month(budget_id, prior),
            not_found=f"Month {prior[:7]} not found in budget {budget_id}",
        )
    except NotFoundError:
        logger.info("No data for %s, skipping spending history", prior)
        prior_data = {}

    previous_spending = {
        c["id"]: -(c.get("activity") or 0)
        for c in prior_data.get("categories") or []
        if (c.get("activity") or 0) < 0
    }

    available = (month_data.get("to_be_budgeted") or 0) if available_amount is None else available_amount
    candidates = rank_categories(
        month_data.get("categories") or [],
        _group_names(categories_data),
        previous_spending,
        rules,
    )
    recommendations = allocate_greedily(candidates, available)
    total = sum(r["amount"] for r in recommendations)

    return {
        "month": month,
        "available": available,
        "available_formatted": format_currency(available),
        "recommendations": recommendations,
        "total_recommended": total,
        "total_recommended_formatted": format_currency(total),
        "remaining": available - total,
        "remaining_formatted": format_currency(available - total),
    }
