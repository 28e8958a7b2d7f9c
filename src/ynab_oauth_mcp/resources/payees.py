"""Payee operations."""

import logging
from typing import Any, Dict, Optional

from ..errors import require
from ..services import YNABServices
from .transactions import format_transaction

logger = logging.getLogger(__name__)


def format_payee(payee: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": payee["id"],
        "name": payee.get("name"),
        "transfer_account_id": payee.get("transfer_account_id"),
        "deleted": payee.get("deleted", False),
    }


async def list_payees(services: YNABServices, email: str, budget_id: str) -> Dict[str, Any]:
    """Non-deleted payees sorted by name."""
    require(email=email, budget_id=budget_id)
    logger.info("Listing payees for budget %s for %s", budget_id, email)

    data = await services.request(
        email,
        lambda client: client.get_payees(budget_id),
        not_found=f"Budget with ID {budget_id} not found",
    )
    payees = [format_payee(p) for p in data.get("payees", []) if not p.get("deleted")]
    payees.sort(key=lambda p: (p["name"] or "").lower())
    return {"payees": payees, "server_knowledge": data.get("server_knowledge")}


async def get_payee(services: YNABServices, email: str, budget_id: str, payee_id: str) -> Dict[str, Any]:
    require(email=email, budget_id=budget_id, payee_id=payee_id)
    logger.info("Getting payee %s for budget %s", payee_id, budget_id)

    payee = await services.request(
        email,
        lambda client: client.get_payee(budget_id, payee_id),
        not_found=f"Payee with ID {payee_id} not found in budget {budget_id}",
    )
    return format_payee(payee)


async def get_payee_transactions(
    services: YNABServices,
    email: str,
    budget_id: str,
    payee_id: str,
    since_date: Optional[str] = None,
) -> Dict[str, Any]:
    require(email=email, budget_id=budget_id, payee_id=payee_id)
    logger.info("Getting transactions for payee %s in budget %s", payee_id, budget_id)

    data = await services.request(
        email,
        lambda client: client.get_transactions(budget_id, since_date=since_date, payee_id=payee_id),
        not_found=f"Payee with ID {payee_id} not found in budget {budget_id}",
    )
    transactions = [format_transaction(t) for t in data.get("transactions", []) if not t.get("deleted")]
    return {
        "payee_id": payee_id,
        "transactions": transactions,
        "count": len(transactions),
        "server_knowledge": data.get("server_knowledge"),
    }
