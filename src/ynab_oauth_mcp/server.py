"""
YNAB OAuth MCP Server - Main entry point.

This file registers one MCP tool per YNAB operation. Every tool returns the
dispatcher's JSON envelope as text.
Run with: python -m ynab_oauth_mcp.server

Or via the CLI: ynab-oauth-mcp
"""

import json
import logging
from typing import Any, Dict
from contextlib import asynccontextmanager

from mcp.server.fastmcp import Context, FastMCP

from .config import Settings, store_client_secret
from .dispatcher import ToolDispatcher
from .log import configure_logging
from .services import YNABServices
from .models import (
    ListYnabAccountsInput,
    AuthenticateAccountInput,
    RemoveAccountInput,
    ListBudgetsInput,
    GetBudgetInput,
    GetBudgetSettingsInput,
    ListAccountsInput,
    GetAccountInput,
    ListCategoriesInput,
    GetCategoryInput,
    UpdateCategoryInput,
    AssignToCategoriesInput,
    GetRecommendedAllocationsInput,
    ListTransactionsInput,
    GetTransactionInput,
    CreateTransactionInput,
    UpdateTransactionInput,
    BulkCreateTransactionsInput,
    ListPayeesInput,
    GetPayeeInput,
    GetPayeeTransactionsInput,
    ListMonthsInput,
    GetMonthInput,
    ListScheduledTransactionsInput,
    GetScheduledTransactionInput,
    CreateScheduledTransactionInput,
    UpdateScheduledTransactionInput,
    DeleteScheduledTransactionInput,
)

logger = logging.getLogger(__name__)


# ============================================================================
# HELPER FUNCTIONS
# ============================================================================

def read_only(title: str) -> Dict[str, Any]:
    return {
        "title": title,
        "readOnlyHint": True,
        "destructiveHint": False,
        "idempotentHint": True,
        "openWorldHint": False,
    }


def writes(title: str, destructive: bool = False, idempotent: bool = False) -> Dict[str, Any]:
    return {
        "title": title,
        "readOnlyHint": False,
        "destructiveHint": destructive,
        "idempotentHint": idempotent,
        "openWorldHint": False,
    }


async def dispatch(ctx: Context, name: str, params) -> str:
    """Run a tool through the dispatcher held in the lifespan context."""
    dispatcher: ToolDispatcher = ctx.request_context.lifespan_context["dispatcher"]
    envelope = await dispatcher.run(name, params)
    return json.dumps(envelope, indent=2)


# ============================================================================
# MCP SERVER SETUP
# ============================================================================

@asynccontextmanager
async def lifespan(server):
    """Build the service container and run the rate limit sweep while serving."""
    settings = Settings()
    configure_logging(settings.log_level)
    services = YNABServices.from_settings(settings)
    services.rate_limiter.start()
    logger.info("YNAB OAuth MCP server started")
    try:
        yield {"services": services, "dispatcher": ToolDispatcher(services)}
    finally:
        await services.rate_limiter.stop()
        logger.info("YNAB OAuth MCP server stopped")


mcp = FastMCP("ynab_oauth_mcp", lifespan=lifespan)


# ============================================================================
# AUTHENTICATION TOOLS
# ============================================================================

@mcp.tool(name="list_ynab_accounts", annotations=read_only("List Connected YNAB Accounts"))
async def list_ynab_accounts(params: ListYnabAccountsInput, ctx: Context) -> str:
    """List every YNAB account with stored credentials and whether its token has expired."""
    return await dispatch(ctx, "list_ynab_accounts", params)


@mcp.tool(name="authenticate_ynab_account", annotations=writes("Authenticate YNAB Account"))
async def authenticate_ynab_account(params: AuthenticateAccountInput, ctx: Context) -> str:
    """
    Connect a YNAB account.

    Call without auth_code to get the URL the user must open; call again with
    the code YNAB displays to finish.
    """
    return await dispatch(ctx, "authenticate_ynab_account", params)


@mcp.tool(name="remove_ynab_account", annotations=writes("Remove YNAB Account", destructive=True, idempotent=True))
async def remove_ynab_account(params: RemoveAccountInput, ctx: Context) -> str:
    """Forget the stored credentials for a YNAB account."""
    return await dispatch(ctx, "remove_ynab_account", params)


# ============================================================================
# BUDGET TOOLS
# ============================================================================

@mcp.tool(name="list_budgets", annotations=read_only("List YNAB Budgets"))
async def list_budgets(params: ListBudgetsInput, ctx: Context) -> str:
    """List all budgets available to the authenticated user."""
    return await dispatch(ctx, "list_budgets", params)


@mcp.tool(name="get_budget", annotations=read_only("Get Budget"))
async def get_budget(params: GetBudgetInput, ctx: Context) -> str:
    """Get a budget's details and counts of its accounts, categories and payees."""
    return await dispatch(ctx, "get_budget", params)


@mcp.tool(name="get_budget_settings", annotations=read_only("Get Budget Settings"))
async def get_budget_settings(params: GetBudgetSettingsInput, ctx: Context) -> str:
    """Get a budget's currency and date format settings."""
    return await dispatch(ctx, "get_budget_settings", params)


# ============================================================================
# ACCOUNT TOOLS
# ============================================================================

@mcp.tool(name="list_accounts", annotations=read_only("List Accounts"))
async def list_accounts(params: ListAccountsInput, ctx: Context) -> str:
    """List all accounts in a budget with their current balances."""
    return await dispatch(ctx, "list_accounts", params)


@mcp.tool(name="get_account", annotations=read_only("Get Account"))
async def get_account(params: GetAccountInput, ctx: Context) -> str:
    """Get a single account and its balances."""
    return await dispatch(ctx, "get_account", params)


# ============================================================================
# CATEGORY TOOLS
# ============================================================================

@mcp.tool(name="list_categories", annotations=read_only("List Categories"))
async def list_categories(params: ListCategoriesInput, ctx: Context) -> str:
    """List category groups and their categories with budgeted, activity and balance."""
    return await dispatch(ctx, "list_categories", params)


@mcp.tool(name="get_category", annotations=read_only("Get Category"))
async def get_category(params: GetCategoryInput, ctx: Context) -> str:
    """Get a single category, including goal progress."""
    return await dispatch(ctx, "get_category", params)


@mcp.tool(name="update_category", annotations=writes("Update Category", idempotent=True))
async def update_category(params: UpdateCategoryInput, ctx: Context) -> str:
    """Set a category's budgeted amount (milliunits) for a month, or rename it or change its note."""
    return await dispatch(ctx, "update_category", params)


@mcp.tool(name="assign_to_categories", annotations=writes("Assign Money to Categories"))
async def assign_to_categories(params: AssignToCategoriesInput, ctx: Context) -> str:
    """
    Move money from Ready to Assign into one or more categories.

    Nothing is changed if the total exceeds what is available.
    """
    return await dispatch(ctx, "assign_to_categories", params)


@mcp.tool(name="get_recommended_allocations", annotations=read_only("Recommend Allocations"))
async def get_recommended_allocations(params: GetRecommendedAllocationsInput, ctx: Context) -> str:
    """Suggest how to distribute Ready to Assign across categories, with reasons."""
    return await dispatch(ctx, "get_recommended_allocations", params)


# ============================================================================
# TRANSACTION TOOLS
# ============================================================================

@mcp.tool(name="list_transactions", annotations=read_only("List Transactions"))
async def list_transactions(params: ListTransactionsInput, ctx: Context) -> str:
    """List recent transactions, optionally filtered by account, category, payee, date or type."""
    return await dispatch(ctx, "list_transactions", params)


@mcp.tool(name="get_transaction", annotations=read_only("Get Transaction"))
async def get_transaction(params: GetTransactionInput, ctx: Context) -> str:
    """Get a single transaction including its split lines."""
    return await dispatch(ctx, "get_transaction", params)


@mcp.tool(name="create_transaction", annotations=writes("Create Transaction"))
async def create_transaction(params: CreateTransactionInput, ctx: Context) -> str:
    """Create a new transaction. Use negative amounts for spending."""
    return await dispatch(ctx, "create_transaction", params)


@mcp.tool(name="update_transaction", annotations=writes("Update Transaction", idempotent=True))
async def update_transaction(params: UpdateTransactionInput, ctx: Context) -> str:
    """Update fields of an existing transaction."""
    return await dispatch(ctx, "update_transaction", params)


@mcp.tool(name="bulk_create_transactions", annotations=writes("Bulk Create Transactions"))
async def bulk_create_transactions(params: BulkCreateTransactionsInput, ctx: Context) -> str:
    """Create several transactions in one request."""
    return await dispatch(ctx, "bulk_create_transactions", params)


# ============================================================================
# PAYEE TOOLS
# ============================================================================

@mcp.tool(name="list_payees", annotations=read_only("List Payees"))
async def list_payees(params: ListPayeesInput, ctx: Context) -> str:
    """List all payees in the budget."""
    return await dispatch(ctx, "list_payees", params)


@mcp.tool(name="get_payee", annotations=read_only("Get Payee"))
async def get_payee(params: GetPayeeInput, ctx: Context) -> str:
    return await dispatch(ctx, "get_payee", params)


@mcp.tool(name="get_payee_transactions", annotations=read_only("Get Payee Transactions"))
async def get_payee_transactions(params: GetPayeeTransactionsInput, ctx: Context) -> str:
    """List transactions for one payee."""
    return await dispatch(ctx, "get_payee_transactions", params)


# ============================================================================
# MONTH TOOLS
# ============================================================================

@mcp.tool(name="list_months", annotations=read_only("List Budget Months"))
async def list_months(params: ListMonthsInput, ctx: Context) -> str:
    """List budget months with income, budgeted, activity and Ready to Assign."""
    return await dispatch(ctx, "list_months", params)


@mcp.tool(name="get_month", annotations=read_only("Get Budget Month"))
async def get_month(params: GetMonthInput, ctx: Context) -> str:
    """Get a summary of a budget month including every category."""
    return await dispatch(ctx, "get_month", params)


# ============================================================================
# SCHEDULED TRANSACTION TOOLS
# ============================================================================

@mcp.tool(name="list_scheduled_transactions", annotations=read_only("List Scheduled Transactions"))
async def list_scheduled_transactions(params: ListScheduledTransactionsInput, ctx: Context) -> str:
    """List upcoming and recurring transactions."""
    return await dispatch(ctx, "list_scheduled_transactions", params)


@mcp.tool(name="get_scheduled_transaction", annotations=read_only("Get Scheduled Transaction"))
async def get_scheduled_transaction(params: GetScheduledTransactionInput, ctx: Context) -> str:
    return await dispatch(ctx, "get_scheduled_transaction", params)


@mcp.tool(name="create_scheduled_transaction", annotations=writes("Create Scheduled Transaction"))
async def create_scheduled_transaction(params: CreateScheduledTransactionInput, ctx: Context) -> str:
    """Create a scheduled transaction. Requires account_id, date_first, amount and frequency."""
    return await dispatch(ctx, "create_scheduled_transaction", params)


@mcp.tool(name="update_scheduled_transaction", annotations=writes("Update Scheduled Transaction", idempotent=True))
async def update_scheduled_transaction(params: UpdateScheduledTransactionInput, ctx: Context) -> str:
    """Replace a scheduled transaction."""
    return await dispatch(ctx, "update_scheduled_transaction", params)


@mcp.tool(
    name="delete_scheduled_transaction",
    annotations=writes("Delete Scheduled Transaction", destructive=True, idempotent=True),
)
async def delete_scheduled_transaction(params: DeleteScheduledTransactionInput, ctx: Context) -> str:
    """Delete a scheduled transaction."""
    return await dispatch(ctx, "delete_scheduled_transaction", params)


# ============================================================================
# CLI ENTRY POINT
# ============================================================================

def main():
    """Main entry point for the MCP server."""
    import argparse

    parser = argparse.ArgumentParser(description="YNAB OAuth MCP Server")
    parser.add_argument(
        "command",
        nargs="?",
        choices=["run", "store-client-secret", "check-config", "list-accounts"],
        default="run",
        help="Command to execute (default: run)",
    )

    args = parser.parse_args()

    if args.command == "store-client-secret":
        print("Enter your YNAB OAuth application's client secret:")
        print("(Find it at https://app.ynab.com/settings/developer)")
        secret = input("> ").strip()
        if secret:
            if store_client_secret(secret):
                print("✓ Client secret stored securely in OS keyring.")
            else:
                print("✗ Failed to store secret. Set YNAB_CLIENT_SECRET environment variable instead.")
        else:
            print("✗ No secret provided.")
        return

    settings = Settings()

    if args.command == "check-config":
        print(f"{'✓' if settings.client_id else '✗'} Client ID {'set' if settings.client_id else 'missing (YNAB_CLIENT_ID)'}")
        secret = settings.resolve_client_secret()
        print(f"{'✓' if secret else '✗'} Client secret {'found' if secret else 'missing (YNAB_CLIENT_SECRET or keyring)'}")
        print(f"  Redirect URI: {settings.redirect_uri}")
        print(f"  Token store: {settings.token_store_path}")
        print(f"  Rate limit store: {settings.rate_limit_store_path}")
        return

    if args.command == "list-accounts":
        configure_logging("WARNING")
        services = YNABServices.from_settings(settings)
        accounts = services.tokens.list_accounts()
        if not accounts:
            print("No authenticated accounts.")
        for account in accounts:
            quota = services.rate_limiter.status(account["email"])
            state = "expired" if account["isExpired"] else "valid"
            print(f"- {account['email']}: token {state} until {account['expiresAt']}")
            print(f"  Requests remaining this hour: {quota['remaining']} of {quota['effective_limit']}")
        return

    # Default: run the MCP server
    mcp.run()


if __name__ == "__main__":
    main()
