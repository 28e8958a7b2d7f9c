"""
Routes tool calls to resource operations and wraps every outcome in an envelope.

Success:  {"status": "success", "result": ...}
Failure:  {"error": {"message": ..., "code": ...}, "authenticationRequired"?: true, "retryAfter"?: seconds}
"""

import logging
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple, Type

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from . import models
from .errors import ValidationError, format_mcp_error
from .resources import (
    accounts,
    allocation,
    auth,
    budgets,
    categories,
    months,
    payees,
    scheduled,
    transactions,
)
from .services import YNABServices

logger = logging.getLogger(__name__)

Handler = Callable[[YNABServices, Any], Awaitable[Any]]


def _dump(model: Optional[BaseModel]) -> Optional[Dict[str, Any]]:
    return model.model_dump(mode="json", exclude_none=True) if model is not None else None


# ============================================================================
# HANDLERS
# ============================================================================
# Each handler receives the service container and an already validated model.

async def _list_ynab_accounts(services, params: models.ListYnabAccountsInput):
    return await auth.list_authenticated_accounts(services)


async def _authenticate_ynab_account(services, params: models.AuthenticateAccountInput):
    return await auth.authenticate_account(services, params.email, params.auth_code)


async def _remove_ynab_account(services, params: models.RemoveAccountInput):
    return await auth.remove_authentication(services, params.email)


async def _list_budgets(services, params: models.ListBudgetsInput):
    return await budgets.list_budgets(services, params.email)


async def _get_budget(services, params: models.GetBudgetInput):
    return await budgets.get_budget(services, params.email, params.budget_id)


async def _get_budget_settings(services, params: models.GetBudgetSettingsInput):
    return await budgets.get_budget_settings(services, params.email, params.budget_id)


async def _list_accounts(services, params: models.ListAccountsInput):
    return await accounts.list_accounts(services, params.email, params.budget_id)


async def _get_account(services, params: models.GetAccountInput):
    return await accounts.get_account(services, params.email, params.budget_id, params.account_id)


async def _list_categories(services, params: models.ListCategoriesInput):
    return await categories.list_categories(services, params.email, params.budget_id)


async def _get_category(services, params: models.GetCategoryInput):
    return await categories.get_category(services, params.email, params.budget_id, params.category_id)


async def _update_category(services, params: models.UpdateCategoryInput):
    return await categories.update_category(
        services,
        params.email,
        params.budget_id,
        params.category_id,
        month=params.month,
        budgeted=params.budgeted,
        name=params.name,
        note=params.note,
    )


async def _assign_to_categories(services, params: models.AssignToCategoriesInput):
    return await allocation.assign_to_categories(
        services,
        params.email,
        params.budget_id,
        params.month,
        [_dump(a) for a in params.allocations],
    )


async def _get_recommended_allocations(services, params: models.GetRecommendedAllocationsInput):
    return await allocation.get_recommended_allocations(
        services, params.email, params.budget_id, params.month, params.available_amount
    )


async def _list_transactions(services, params: models.ListTransactionsInput):
    return await transactions.list_transactions(
        services,
        params.email,
        params.budget_id,
        account_id=params.account_id,
        category_id=params.category_id,
        payee_id=params.payee_id,
        since_date=params.since_date,
        type=params.type.value if params.type else None,
        limit=params.limit,
    )


async def _get_transaction(services, params: models.GetTransactionInput):
    return await transactions.get_transaction(services, params.email, params.budget_id, params.transaction_id)


async def _create_transaction(services, params: models.CreateTransactionInput):
    return await transactions.create_transaction(
        services, params.email, params.budget_id, _dump(params.transaction)
    )


async def _update_transaction(services, params: models.UpdateTransactionInput):
    return await transactions.update_transaction(
        services, params.email, params.budget_id, params.transaction_id, _dump(params.transaction)
    )


async def _bulk_create_transactions(services, params: models.BulkCreateTransactionsInput):
    return await transactions.bulk_create_transactions(
        services, params.email, params.budget_id, [_dump(t) for t in params.transactions]
    )


async def _list_payees(services, params: models.ListPayeesInput):
    return await payees.list_payees(services, params.email, params.budget_id)


async def _get_payee(services, params: models.GetPayeeInput):
    return await payees.get_payee(services, params.email, params.budget_id, params.payee_id)


async def _get_payee_transactions(services, params: models.GetPayeeTransactionsInput):
    return await payees.get_payee_transactions(
        services, params.email, params.budget_id, params.payee_id, since_date=params.since_date
    )


async def _list_months(services, params: models.ListMonthsInput):
    return await months.list_months(services, params.email, params.budget_id, since_date=params.since_date)


async def _get_month(services, params: models.GetMonthInput):
    return await months.get_month(services, params.email, params.budget_id, params.month)


async def _list_scheduled_transactions(services, params: models.ListScheduledTransactionsInput):
    return await scheduled.list_scheduled_transactions(services, params.email, params.budget_id)


async def _get_scheduled_transaction(services, params: models.GetScheduledTransactionInput):
    return await scheduled.get_scheduled_transaction(
        services, params.email, params.budget_id, params.scheduled_transaction_id
    )


async def _create_scheduled_transaction(services, params: models.CreateScheduledTransactionInput):
    return await scheduled.create_scheduled_transaction(
        services, params.email, params.budget_id, _dump(params.scheduled_transaction)
    )


async def _update_scheduled_transaction(services, params: models.UpdateScheduledTransactionInput):
    return await scheduled.update_scheduled_transaction(
        services,
        params.email,
        params.budget_id,
        params.scheduled_transaction_id,
        _dump(params.scheduled_transaction),
    )


async def _delete_scheduled_transaction(services, params: models.DeleteScheduledTransactionInput):
    return await scheduled.delete_scheduled_transaction(
        services, params.email, params.budget_id, params.scheduled_transaction_id
    )


TOOLS: Dict[str, Tuple[Type[BaseModel], Handler]] = {
    # Authentication
    "list_ynab_accounts": (models.ListYnabAccountsInput, _list_ynab_accounts),
    "authenticate_ynab_account": (models.AuthenticateAccountInput, _authenticate_ynab_account),
    "remove_ynab_account": (models.RemoveAccountInput, _remove_ynab_account),
    # Budgets
    "list_budgets": (models.ListBudgetsInput, _list_budgets),
    "get_budget": (models.GetBudgetInput, _get_budget),
    "get_budget_settings": (models.GetBudgetSettingsInput, _get_budget_settings),
    # Accounts
    "list_accounts": (models.ListAccountsInput, _list_accounts),
    "get_account": (models.GetAccountInput, _get_account),
    # Categories
    "list_categories": (models.ListCategoriesInput, _list_categories),
    "get_category": (models.GetCategoryInput, _get_category),
    "update_category": (models.UpdateCategoryInput, _update_category),
    "assign_to_categories": (models.AssignToCategoriesInput, _assign_to_categories),
    "get_recommended_allocations": (models.GetRecommendedAllocationsInput, _get_recommended_allocations),
    # Transactions
    "list_transactions": (models.ListTransactionsInput, _list_transactions),
    "get_transaction": (models.GetTransactionInput, _get_transaction),
    "create_transaction": (models.CreateTransactionInput, _create_transaction),
    "update_transaction": (models.UpdateTransactionInput, _update_transaction),
    "bulk_create_transactions": (models.BulkCreateTransactionsInput, _bulk_create_transactions),
    # Payees
    "list_payees": (models.ListPayeesInput, _list_payees),
    "get_payee": (models.GetPayeeInput, _get_payee),
    "get_payee_transactions": (models.GetPayeeTransactionsInput, _get_payee_transactions),
    # Months
    "list_months": (models.ListMonthsInput, _list_months),
    "get_month": (models.GetMonthInput, _get_month),
    # Scheduled transactions
    "list_scheduled_transactions": (models.ListScheduledTransactionsInput, _list_scheduled_transactions),
    "get_scheduled_transaction": (models.GetScheduledTransactionInput, _get_scheduled_transaction),
    "create_scheduled_transaction": (models.CreateScheduledTransactionInput, _create_scheduled_transaction),
    "update_scheduled_transaction": (models.UpdateScheduledTransactionInput, _update_scheduled_transaction),
    "delete_scheduled_transaction": (models.DeleteScheduledTransactionInput, _delete_scheduled_transaction),
}


def _validation_message(error: PydanticValidationError) -> str:
    first = error.errors()[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    return f"Invalid {location}: {first.get('msg')}" if location else first.get("msg", "Invalid parameters")


# ============================================================================
# DISPATCHER
# ============================================================================

class ToolDispatcher:
    """Looks up a tool by name, validates its input and runs it."""

    def __init__(self, services: YNABServices):
        self.services = services

    @staticmethod
    def tool_names():
        return list(TOOLS)

    async def call(self, name: Optional[str], arguments: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Validate raw arguments for a tool and run it.

        Args:
            name: Tool name
            arguments: Raw tool arguments

        Returns:
            Success or error envelope; never raises
        """
        try:
            if not name:
                raise ValidationError("Function name is required")
            if name not in TOOLS:
                raise ValidationError(f"Unsupported function: {name}")
            model, _ = TOOLS[name]
            try:
                params = model.model_validate(arguments or {})
            except PydanticValidationError as e:
                raise ValidationError(_validation_message(e)) from e
        except ValidationError as e:
            return format_mcp_error(e)
        return await self.run(name, params)

    async def run(self, name: str, params: BaseModel) -> Dict[str, Any]:
        """Run a tool with an already validated input model."""
        logger.info("Processing MCP request: %s", name)
        try:
            if name not in TOOLS:
                raise ValidationError(f"Unsupported function: {name}")
            _, handler = TOOLS[name]
            result = await handler(self.services, params)
        except Exception as e:
            logger.error("Error processing MCP request %s: %s", name, e)
            return format_mcp_error(e)
        return {"status": "success", "result": result}
