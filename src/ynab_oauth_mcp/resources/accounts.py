"""Account operations."""

import logging
from typing import Any, Dict

from ..errors import require
from ..formatters import format_currency, with_formatted
from ..services import YNABServices

logger = logging.getLogger(__name__)

BALANCE_FIELDS = ("balance", "cleared_balance", "uncleared_balance")


def format_account(account: Dict[str, Any]) -> Dict[str, Any]:
    """Account fields with every balance also shown as currency."""
    return {
        "id": account["id"],
        "name": account.get("name"),
        "type": account.get("type"),
        "on_budget": account.get("on_budget"),
        "closed": account.get("closed"),
        "note": account.get("note"),
        **with_formatted(account, BALANCE_FIELDS),
        "transfer_payee_id": account.get("transfer_payee_id"),
        "deleted": account.get("deleted", False),
    }


async def list_accounts(services: YNABServices, email: str, budget_id: str) -> Dict[str, Any]:
    """List all non-deleted accounts in a budget with their balances."""
    require(email=email, budget_id=budget_id)
    logger.info("Listing accounts for budget %s for %s", budget_id, email)

    data = await services.request(
        email,
        lambda client: client.get_accounts(budget_id),
        not_found=f"Budget with ID {budget_id} not found",
    )
    accounts = [format_account(a) for a in data.get("accounts", []) if not a.get("deleted")]
    on_budget_total = sum(a["balance"] or 0 for a in accounts if a["on_budget"] and not a["closed"])
    return {
        "accounts": accounts,
        "on_budget_balance": on_budget_total,
        "on_budget_balance_formatted": format_currency(on_budget_total),
        "server_knowledge": data.get("server_knowledge"),
    }


async def get_account(services: YNABServices, email: str, budget_id: str, account_id: str) -> Dict[str, Any]:
    require(email=email, budget_id=budget_id, account_id=account_id)
    logger.info("Getting account %s for budget %s for %s", account_id, budget_id, email)

    account = await services.request(
        email,
        lambda client: client.get_account(budget_id, account_id),
        not_found=f"Account with ID {account_id} not found in budget {budget_id}",
    )
    return format_account(account)
