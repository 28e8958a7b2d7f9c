"""
Pydantic models for MCP tool input validation.

All inputs are validated before any operation runs. Amounts that carry an
optional ``units`` field follow the same rule everywhere: with units the
value is taken as stated, without them fractional values are dollars,
integers of magnitude 1000 or more are milliunits, and smaller integers are
rejected as ambiguous.
"""

from typing import List, Optional, Union
from enum import Enum

from pydantic import BaseModel, Field, ConfigDict

from .formatters import AmountUnits

DATE_PATTERN = r"^\d{4}-\d{2}-\d{2}$"
MONTH_PATTERN = r"^(current|\d{4}-\d{2}(-01)?)$"

Amount = Union[int, float]


# ============================================================================
# COMMON MODELS
# ============================================================================

class AccountInput(BaseModel):
    """Base model with the account identifier."""
    model_config = ConfigDict(str_strip_whitespace=True)

    email: str = Field(..., description="Email address identifying the YNAB account", min_length=1)


class BudgetIdInput(AccountInput):
    """Base model with budget_id field."""
    budget_id: str = Field(
        default="last-used",
        description="Budget ID or 'last-used' for the most recently accessed budget",
    )


class ClearedStatus(str, Enum):
    """Transaction cleared status."""
    CLEARED = "cleared"
    UNCLEARED = "uncleared"
    RECONCILED = "reconciled"


class FlagColor(str, Enum):
    RED = "red"
    ORANGE = "orange"
    YELLOW = "yellow"
    GREEN = "green"
    BLUE = "blue"
    PURPLE = "purple"


class TransactionType(str, Enum):
    """Server-side transaction filters."""
    UNCATEGORIZED = "uncategorized"
    UNAPPROVED = "unapproved"


class Frequency(str, Enum):
    """Scheduled transaction recurrence."""
    NEVER = "never"
    DAILY = "daily"
    WEEKLY = "weekly"
    EVERY_OTHER_WEEK = "everyOtherWeek"
    TWICE_A_MONTH = "twiceAMonth"
    EVERY_4_WEEKS = "every4Weeks"
    MONTHLY = "monthly"
    EVERY_OTHER_MONTH = "everyOtherMonth"
    EVERY_3_MONTHS = "every3Months"
    EVERY_4_MONTHS = "every4Months"
    TWICE_A_YEAR = "twiceAYear"
    YEARLY = "yearly"
    EVERY_OTHER_YEAR = "everyOtherYear"


# ============================================================================
# AUTHENTICATION TOOLS
# ============================================================================

class ListYnabAccountsInput(BaseModel):
    """Input for listing stored YNAB accounts."""
    model_config = ConfigDict(str_strip_whitespace=True)


class AuthenticateAccountInput(AccountInput):
    """Input for starting or completing authentication."""
    auth_code: Optional[str] = Field(
        default=None,
        description="Authorization code shown by YNAB. Omit to get the authorization URL.",
    )


class RemoveAccountInput(AccountInput):
    """Input for forgetting an account's stored credential."""
    pass


# ============================================================================
# BUDGET TOOLS
# ============================================================================

class ListBudgetsInput(AccountInput):
    """Input for listing all budgets."""
    pass


class GetBudgetInput(BudgetIdInput):
    """Input for getting a specific budget."""
    pass


class GetBudgetSettingsInput(BudgetIdInput):
    pass


# ============================================================================
# ACCOUNT TOOLS
# ============================================================================

class ListAccountsInput(BudgetIdInput):
    """Input for listing accounts in a budget."""
    pass


class GetAccountInput(BudgetIdInput):
    """Input for getting a specific account."""
    account_id: str = Field(..., description="The account ID")


# ============================================================================
# CATEGORY TOOLS
# ============================================================================

class ListCategoriesInput(BudgetIdInput):
    """Input for listing all categories in a budget."""
    pass


class GetCategoryInput(BudgetIdInput):
    """Input for getting a specific category."""
    category_id: str = Field(..., description="The category ID")


class UpdateCategoryInput(BudgetIdInput):
    """Input for updating a category's budgeted amount, name or note."""
    category_id: str = Field(..., description="The category ID")
    month: Optional[str] = Field(
        default=None,
        description="Month for the budgeted amount (YYYY-MM, YYYY-MM-01 or 'current')",
        pattern=MONTH_PATTERN,
    )
    budgeted: Optional[int] = Field(default=None, description="New budgeted amount in milliunits")
    name: Optional[str] = Field(default=None, description="New category name", max_length=200)
    note: Optional[str] = Field(default=None, description="New category note", max_length=500)


class AllocationInput(BaseModel):
    """One category and the amount to add to it."""
    model_config = ConfigDict(str_strip_whitespace=True)

    category_id: str = Field(..., description="The category ID")
    amount: Amount = Field(..., description="Amount to assign (see units)")
    units: Optional[AmountUnits] = Field(default=None, description="'dollars' or 'milliunits'")


class AssignToCategoriesInput(BudgetIdInput):
    """Input for assigning Ready to Assign money to categories."""
    month: str = Field(default="current", description="Month (YYYY-MM, YYYY-MM-01 or 'current')", pattern=MONTH_PATTERN)
    allocations: List[AllocationInput] = Field(..., description="Categories and amounts", min_length=1)


class GetRecommendedAllocationsInput(BudgetIdInput):
    """Input for recommending how to distribute Ready to Assign."""
    month: str = Field(default="current", description="Month (YYYY-MM, YYYY-MM-01 or 'current')", pattern=MONTH_PATTERN)
    available_amount: Optional[int] = Field(
        default=None,
        description="Milliunits to distribute instead of the month's Ready to Assign",
        ge=0,
    )


# ============================================================================
# TRANSACTION TOOLS
# ============================================================================

class SubTransactionInput(BaseModel):
    """One line of a split transaction. Uses the parent's units."""
    model_config = ConfigDict(str_strip_whitespace=True)

    amount: Amount = Field(..., description="Amount of this split line")
    payee_id: Optional[str] = Field(default=None)
    payee_name: Optional[str] = Field(default=None, max_length=200)
    category_id: Optional[str] = Field(default=None)
    memo: Optional[str] = Field(default=None, max_length=500)


class TransactionInput(BaseModel):
    """Transaction fields. account_id, date and amount are required on create."""
    model_config = ConfigDict(str_strip_whitespace=True)

    account_id: Optional[str] = Field(default=None, description="The account ID for the transaction")
    date: Optional[str] = Field(default=None, description="Transaction date in YYYY-MM-DD format", pattern=DATE_PATTERN)
    amount: Optional[Amount] = Field(
        default=None,
        description="Negative for spending, positive for income (see units)",
    )
    units: Optional[AmountUnits] = Field(default=None, description="'dollars' or 'milliunits'")
    payee_id: Optional[str] = Field(default=None, description="Payee ID")
    payee_name: Optional[str] = Field(default=None, description="Name of the payee", max_length=200)
    category_id: Optional[str] = Field(default=None, description="Category ID for the transaction")
    memo: Optional[str] = Field(default=None, description="Optional memo/note", max_length=500)
    cleared: Optional[ClearedStatus] = Field(default=None, description="Cleared status")
    approved: Optional[bool] = Field(default=None, description="Whether the transaction is approved")
    flag_color: Optional[FlagColor] = Field(default=None, description="Flag color")
    import_id: Optional[str] = Field(default=None, description="Import ID used for duplicate detection", max_length=36)
    subtransactions: Optional[List[SubTransactionInput]] = Field(default=None, description="Split lines")


class ListTransactionsInput(BudgetIdInput):
    """Input for listing transactions."""
    account_id: Optional[str] = Field(default=None, description="Filter by account ID")
    category_id: Optional[str] = Field(default=None, description="Filter by category ID")
    payee_id: Optional[str] = Field(default=None, description="Filter by payee ID")
    since_date: Optional[str] = Field(
        default=None,
        description="Only return transactions on or after this date (YYYY-MM-DD)",
        pattern=DATE_PATTERN,
    )
    type: Optional[TransactionType] = Field(default=None, description="'uncategorized' or 'unapproved'")
    limit: int = Field(default=50, description="Maximum number of transactions to return", ge=1, le=500)


class GetTransactionInput(BudgetIdInput):
    transaction_id: str = Field(..., description="The transaction ID")


class CreateTransactionInput(BudgetIdInput):
    """Input for creating a new transaction."""
    transaction: TransactionInput = Field(..., description="The transaction to create")


class UpdateTransactionInput(BudgetIdInput):
    """Input for updating an existing transaction."""
    transaction_id: str = Field(..., description="The transaction ID to update")
    transaction: TransactionInput = Field(..., description="Fields to change")


class BulkCreateTransactionsInput(BudgetIdInput):
    """Input for creating several transactions at once."""
    transactions: List[TransactionInput] = Field(..., description="Transactions to create", min_length=1)


# ============================================================================
# PAYEE TOOLS
# ============================================================================

class ListPayeesInput(BudgetIdInput):
    """Input for listing all payees."""
    pass


class GetPayeeInput(BudgetIdInput):
    payee_id: str = Field(..., description="The payee ID")


class GetPayeeTransactionsInput(BudgetIdInput):
    payee_id: str = Field(..., description="The payee ID")
    since_date: Optional[str] = Field(default=None, description="YYYY-MM-DD", pattern=DATE_PATTERN)


# ============================================================================
# MONTH TOOLS
# ============================================================================

class ListMonthsInput(BudgetIdInput):
    since_date: Optional[str] = Field(default=None, description="Only months on or after this date", pattern=DATE_PATTERN)


class GetMonthInput(BudgetIdInput):
    """Input for getting a month's budget summary."""
    month: str = Field(default="current", description="Month (YYYY-MM, YYYY-MM-01 or 'current')", pattern=MONTH_PATTERN)


# ============================================================================
# SCHEDULED TRANSACTION TOOLS
# ============================================================================

class ScheduledTransactionInput(BaseModel):
    """Scheduled transaction fields. account_id, date_first, amount and frequency are required on create."""
    model_config = ConfigDict(str_strip_whitespace=True)

    account_id: Optional[str] = Field(default=None, description="The account ID")
    date_first: Optional[str] = Field(default=None, description="First occurrence (YYYY-MM-DD)", pattern=DATE_PATTERN)
    frequency: Optional[Frequency] = Field(default=None, description="Recurrence")
    amount: Optional[Amount] = Field(default=None, description="Negative for spending (see units)")
    units: Optional[AmountUnits] = Field(default=None, description="'dollars' or 'milliunits'")
    payee_id: Optional[str] = Field(default=None)
    payee_name: Optional[str] = Field(default=None, max_length=200)
    category_id: Optional[str] = Field(default=None)
    memo: Optional[str] = Field(default=None, max_length=500)
    flag_color: Optional[FlagColor] = Field(default=None)


class ListScheduledTransactionsInput(BudgetIdInput):
    pass


class GetScheduledTransactionInput(BudgetIdInput):
    scheduled_transaction_id: str = Field(..., description="The scheduled transaction ID")


class CreateScheduledTransactionInput(BudgetIdInput):
    scheduled_transaction: ScheduledTransactionInput = Field(..., description="The scheduled transaction to create")


class UpdateScheduledTransactionInput(BudgetIdInput):
    scheduled_transaction_id: str = Field(..., description="The scheduled transaction ID")
    scheduled_transaction: ScheduledTransactionInput = Field(..., description="The full replacement")


class DeleteScheduledTransactionInput(BudgetIdInput):
    scheduled_transaction_id: str = Field(..., description="The scheduled transaction ID")
