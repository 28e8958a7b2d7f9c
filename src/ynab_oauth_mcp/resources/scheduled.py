"""Scheduled transaction operations."""

import logging
from typing import Any, Dict, Optional

from ..errors import ValidationError, require
from ..formatters import AmountUnits, to_milliunits, with_formatted
from ..services import YNABServices

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = {
    "account_id": "Scheduled transaction must include account_id",
    "date_first": "Scheduled transaction must include date_first (format: YYYY-MM-DD)",
    "amount": "Scheduled transaction must include amount",
    "frequency": "Scheduled transaction must include frequency",
}


def format_scheduled_transaction(txn: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": txn["id"],
        "date_first": txn.get("date_first"),
        "date_next": txn.get("date_next"),
        "frequency": txn.get("frequency"),
        **with_formatted(txn, ("amount",)),
        "memo": txn.get("memo"),
        "flag_color": txn.get("flag_color"),
        "account_id": txn.get("account_id"),
        "account_name": txn.get("account_name"),
        "payee_id": txn.get("payee_id"),
        "payee_name": txn.get("payee_name"),
        "category_id": txn.get("category_id"),
        "category_name": txn.get("category_name"),
        "transfer_account_id": txn.get("transfer_account_id"),
        "deleted": txn.get("deleted", False),
        "subtransactions": [
            {
                "id": s.get("id"),
                **with_formatted(s, ("amount",)),
                "memo": s.get("memo"),
                "payee_id": s.get("payee_id"),
                "category_id": s.get("category_id"),
                "transfer_account_id": s.get("transfer_account_id"),
            }
            for s in txn.get("subtransactions") or []
            if not s.get("deleted")
        ],
    }


def _payload(scheduled_transaction: Dict[str, Any]) -> Dict[str, Any]:
    """Tool input as a YNAB request body; YNAB calls the first occurrence ``date``."""
    units = scheduled_transaction.get("units")
    payload = {k: v for k, v in scheduled_transaction.items() if v is not None and k != "units"}
    if "amount" in payload:
        payload["amount"] = to_milliunits(payload["amount"], AmountUnits(units) if units else None)
    if "date_first" in payload:
        payload["date"] = payload.pop("date_first")
    return payload


def _not_found(budget_id: str, scheduled_transaction_id: str) -> str:
    return f"Scheduled transaction with ID {scheduled_transaction_id} not found in budget {budget_id}"


async def list_scheduled_transactions(services: YNABServices, email: str, budget_id: str) -> Dict[str, Any]:
    require(email=email, budget_id=budget_id)
    logger.info("Listing scheduled transactions for budget %s for %s", budget_id, email)

    data = await services.request(
        email,
        lambda client: client.get_scheduled_transactions(budget_id),
        not_found=f"Budget not found with ID {budget_id}",
        invalid="Invalid request",
    )
    return {
        "scheduled_transactions": [
            format_scheduled_transaction(t)
            for t in data.get("scheduled_transactions", [])
            if not t.get("deleted")
        ],
        "server_knowledge": data.get("server_knowledge"),
    }


async def get_scheduled_transaction(
    services: YNABServices,
    email: str,
    budget_id: str,
    scheduled_transaction_id: str,
) -> Dict[str, Any]:
    require(email=email, budget_id=budget_id, scheduled_transaction_id=scheduled_transaction_id)
    logger.info("Getting scheduled transaction %s for budget %s", scheduled_transaction_id, budget_id)

    txn = await services.request(
        email,
        lambda client: client.get_scheduled_transaction(budget_id, scheduled_transaction_id),
        not_found=_not_found(budget_id, scheduled_transaction_id),
    )
    return format_scheduled_transaction(txn)


async def create_scheduled_transaction(
    services: YNABServices,
    email: str,
    budget_id: str,
    scheduled_transaction: Optional[Dict[str, Any]],
) -> Dict[str, Any]:
    require(email=email, budget_id=budget_id)
    if not scheduled_transaction:
        raise ValidationError("Scheduled transaction data is required")
    for field, message in REQUIRED_FIELDS.items():
        if scheduled_transaction.get(field) is None:
            raise ValidationError(message)
    payload = _payload(scheduled_transaction)
    logger.info("Creating scheduled transaction for budget %s", budget_id)

    txn = await services.request(
        email,
        lambda client: client.create_scheduled_transaction(budget_id, payload),
        not_found=f"Budget not found with ID {budget_id}",
        invalid="Invalid scheduled transaction data",
    )
    return format_scheduled_transaction(txn)


async def update_scheduled_transaction(
    services: YNABServices,
    email: str,
    budget_id: str,
    scheduled_transaction_id: str,
    scheduled_transaction: Optional[Dict[str, Any]],
) -> Dict[str, Any]:
    require(email=email, budget_id=budget_id, scheduled_transaction_id=scheduled_transaction_id)
    if not scheduled_transaction:
        raise ValidationError("Scheduled transaction data is required")
    payload = _payload(scheduled_transaction)
    logger.info("Updating scheduled transaction %s for budget %s", scheduled_transaction_id, budget_id)

    txn = await services.request(
        email,
        lambda client: client.update_scheduled_transaction(budget_id, scheduled_transaction_id, payload),
        not_found=_not_found(budget_id, scheduled_transaction_id),
        invalid="Invalid scheduled transaction data",
    )
    return format_scheduled_transaction(txn)


async def delete_scheduled_transaction(
    services: YNABServices,
    email: str,
    budget_id: str,
    scheduled_transaction_id: str,
) -> Dict[str, Any]:
    require(email=email, budget_id=budget_id, scheduled_transaction_id=scheduled_transaction_id)
    logger.info("Deleting scheduled transaction %s for budget %s", scheduled_transaction_id, budget_id)

    await services.request(
        email,
        lambda client: client.delete_scheduled_transaction(budget_id, scheduled_transaction_id),
        not_found=_not_found(budget_id, scheduled_transaction_id),
    )
    return {
        "success": True,
        "message": f"Scheduled transaction {scheduled_transaction_id} deleted successfully",
    }
