"""Transaction operations."""

import logging
from typing import Any, Dict, List, Optional

from ..errors import ValidationError, require
from ..formatters import AmountUnits, format_currency, to_milliunits, with_formatted
from ..services import YNABServices

logger = logging.getLogger(__name__)


def format_subtransaction(sub: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": sub.get("id"),
        **with_formatted(sub, ("amount",)),
        "memo": sub.get("memo"),
        "payee_id": sub.get("payee_id"),
        "payee_name": sub.get("payee_name"),
        "category_id": sub.get("category_id"),
        "category_name": sub.get("category_name"),
        "transfer_account_id": sub.get("transfer_account_id"),
    }


def format_transaction(txn: Dict[str, Any]) -> Dict[str, Any]:
    """Transaction fields with split lines nested under ``subtransactions``."""
    return {
        "id": txn["id"],
        "date": txn.get("date"),
        **with_formatted(txn, ("amount",)),
        "memo": txn.get("memo"),
        "cleared": txn.get("cleared"),
        "approved": txn.get("approved"),
        "flag_color": txn.get("flag_color"),
        "account_id": txn.get("account_id"),
        "account_name": txn.get("account_name"),
        "payee_id": txn.get("payee_id"),
        "payee_name": txn.get("payee_name"),
        "category_id": txn.get("category_id"),
        "category_name": txn.get("category_name"),
        "transfer_account_id": txn.get("transfer_account_id"),
        "import_id": txn.get("import_id"),
        "deleted": txn.get("deleted", False),
        "subtransactions": [
            format_subtransaction(s) for s in txn.get("subtransactions") or [] if not s.get("deleted")
        ],
    }


def build_transaction_payload(transaction: Dict[str, Any], required: bool = True) -> Dict[str, Any]:
    """
    Turn tool input into the body YNAB expects.

    Drops unset fields and converts ``amount`` and split amounts to milliunits
    using the optional ``units``.
    """
    if required:
        for field in ("account_id", "date", "amount"):
            if transaction.get(field) is None:
                raise ValidationError(f"Transaction must include {field}")

    units = AmountUnits(transaction["units"]) if transaction.get("units") else None
    payload = {k: v for k, v in transaction.items() if v is not None and k != "units"}
    if "amount" in payload:
        payload["amount"] = to_milliunits(payload["amount"], units)
    if payload.get("subtransactions"):
        payload["subtransactions"] = [
            {**{k: v for k, v in sub.items() if v is not None}, "amount": to_milliunits(sub["amount"], units)}
            for sub in payload["subtransactions"]
        ]
    return payload


async def list_transactions(
    services: YNABServices,
    email: str,
    budget_id: str,
    account_id: Optional[str] = None,
    category_id: Optional[str] = None,
    payee_id: Optional[str] = None,
    since_date: Optional[str] = None,
    type: Optional[str] = None,
    limit: Optional[int] = None,
) -> Dict[str, Any]:
    """Newest-first transactions, optionally filtered, without deleted entries."""
    require(email=email, budget_id=budget_id)
    logger.info("Listing transactions for budget %s for %s", budget_id, email)

    data = await services.request(
        email,
        lambda client: client.get_transactions(
            budget_id,
            since_date=since_date,
            type=type,
            account_id=account_id,
            category_id=category_id,
            payee_id=payee_id,
        ),
        not_found=f"Budget with ID {budget_id} not found",
        invalid="Invalid transaction filter",
    )

    transactions = [t for t in data.get("transactions", []) if not t.get("deleted")]
    transactions.sort(key=lambda t: t.get("date") or "", reverse=True)
    if limit:
        transactions = transactions[:limit]

    total = sum(t.get("amount", 0) for t in transactions)
    return {
        "transactions": [format_transaction(t) for t in transactions],
        "count": len(transactions),
        "total": total,
        "total_formatted": format_currency(total),
        "server_knowledge": data.get("server_knowledge"),
    }


async def get_transaction(services: YNABServices, email: str, budget_id: str, transaction_id: str) -> Dict[str, Any]:
    require(email=email, budget_id=budget_id, transaction_id=transaction_id)
    logger.info("Getting transaction %s for budget %s", transaction_id, budget_id)

    txn = await services.request(
        email,
        lambda client: client.get_transaction(budget_id, transaction_id),
        not_found=f"Transaction with ID {transaction_id} not found in budget {budget_id}",
    )
    return format_transaction(txn)


async def create_transaction(
    services: YNABServices,
    email: str,
    budget_id: str,
    transaction: Optional[Dict[str, Any]],
) -> Dict[str, Any]:
    require(email=email, budget_id=budget_id)
    if not transaction:
        raise ValidationError("Transaction data is required")
    payload = build_transaction_payload(transaction)
    logger.info("Creating transaction for budget %s", budget_id)

    txn = await services.request(
        email,
        lambda client: client.create_transaction(budget_id, payload),
        not_found=f"Budget with ID {budget_id} not found",
        invalid="Invalid transaction data",
    )
    return format_transaction(txn)


async def update_transaction(
    services: YNABServices,
    email: str,
    budget_id: str,
    transaction_id: str,
    transaction: Optional[Dict[str, Any]],
) -> Dict[str, Any]:
    """Update an existing transaction. Only the supplied fields change."""
    require(email=email, budget_id=budget_id, transaction_id=transaction_id)
    if not transaction:
        raise ValidationError("Transaction data is required")
    payload = build_transaction_payload(transaction, required=False)
    if not payload:
        raise ValidationError("No fields to update. Specify at least one field to change.")
    logger.info("Updating transaction %s for budget %s", transaction_id, budget_id)

    txn = await services.request(
        email,
        lambda client: client.update_transaction(budget_id, transaction_id, **payload),
        not_found=f"Transaction with ID {transaction_id} not found in budget {budget_id}",
        invalid="Invalid transaction data",
    )
    return format_transaction(txn)


async def bulk_create_transactions(
    services: YNABServices,
    email: str,
    budget_id: str,
    transactions: Optional[List[Dict[str, Any]]],
) -> Dict[str, Any]:
    """Create several transactions with a single API call."""
    require(email=email, budget_id=budget_id)
    if not transactions:
        raise ValidationError("Transactions array is required")
    payloads = [build_transaction_payload(t) for t in transactions]
    logger.info("Bulk creating %d transactions for budget %s", len(payloads), budget_id)

    data = await services.request(
        email,
        lambda client: client.create_transactions(budget_id, payloads),
        not_found=f"Budget with ID {budget_id} not found",
        invalid="Invalid transaction data",
    )
    created = data.get("transactions") or []
    return {
        "transaction_ids": data.get("transaction_ids", [t["id"] for t in created]),
        "duplicate_import_ids": data.get("duplicate_import_ids", []),
        "transactions": [format_transaction(t) for t in created],
        "count": len(created),
    }
