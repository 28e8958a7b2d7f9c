"""
YNAB API Client - Handles all communication with YNAB's REST API.

SECURITY AUDIT NOTES:
- All requests go ONLY to the configured YNAB API base (api.ynab.com)
- The bearer token is supplied per client by the token manager
- Token is NEVER logged, printed, or sent elsewhere
- All responses are returned as-is from YNAB's API

YNAB API Documentation: https://api.ynab.com/
"""

from typing import Optional, Dict, Any, List

import httpx

from .config import YNAB_API_BASE

REQUEST_TIMEOUT = 30.0  # seconds
DEFAULT_RETRY_AFTER = 3600  # seconds


# ============================================================================
# ERRORS
# ============================================================================

class YNABAPIError(Exception):
    """Exception raised for YNAB API errors."""

    code = "YNAB_API_ERROR"

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        error_id: Optional[str] = None,
        detail: str = "",
    ):
        super().__init__(message)
        self.status_code = status_code
        self.error_id = error_id
        self.detail = detail


class YNABBadRequestError(YNABAPIError):
    """400 - the request was malformed or failed YNAB's validation."""
    code = "YNAB_BAD_REQUEST"


class YNABUnauthorizedError(YNABAPIError):
    """401 - the access token is missing, expired or revoked."""
    code = "YNAB_UNAUTHORIZED"


class YNABForbiddenError(YNABAPIError):
    """403 - the token lacks permission for this resource."""
    code = "YNAB_FORBIDDEN"


class YNABNotFoundError(YNABAPIError):
    """404 - the budget, account, category, etc. does not exist."""
    code = "YNAB_NOT_FOUND"


class YNABRateLimitedError(YNABAPIError):
    """429 - YNAB's own hourly quota is exhausted."""
    code = "YNAB_RATE_LIMITED"

    def __init__(self, message: str, retry_after: int = DEFAULT_RETRY_AFTER, **kwargs):
        super().__init__(message, status_code=429, **kwargs)
        self.retry_after = retry_after


class YNABTransportError(YNABAPIError):
    """The request never produced a response (timeout, DNS, connection)."""
    code = "YNAB_TRANSPORT_ERROR"


def parse_retry_after(value: Optional[str]) -> int:
    """Seconds from a Retry-After header, falling back to one hour."""
    try:
        return int(value) if value is not None else DEFAULT_RETRY_AFTER
    except ValueError:
        return DEFAULT_RETRY_AFTER


# ============================================================================
# API CLIENT
# ============================================================================

class YNABClient:
    """
    Async client for YNAB API.

    All methods in this class:
    - Only contact the configured YNAB API base
    - Return raw API response data (no reshaping)
    - Raise a YNABAPIError subclass on failure
    """

    def __init__(
        self,
        token: str,
        base_url: str = YNAB_API_BASE,
        timeout: float = REQUEST_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize YNAB client.

        Args:
            token: OAuth access token for one YNAB user
            base_url: API root, e.g. https://api.ynab.com/v1
            timeout: Request timeout in seconds
            transport: Optional httpx transport (used by tests)
        """
        self._token = token
        self._base_url = base_url
        self._timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                headers={
                    "Authorization": f"Bearer {self._token}",
                    "Content-Type": "application/json",
                },
                timeout=self._timeout,
                transport=self._transport,
            )
        return self._client

    async def close(self):
        """Close HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    async def __aenter__(self):
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()

    async def _request(
        self,
        method: str,
        endpoint: str,
        data: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Make API request to YNAB.

        Args:
            method: HTTP method (GET, POST, PATCH, etc.)
            endpoint: API endpoint (e.g., "/budgets")
            data: Request body for POST/PATCH
            params: Query parameters

        Returns:
            JSON response from YNAB API

        Raises:
            YNABAPIError: On API errors (a subclass per failure kind)
        """
        client = await self._get_client()

        try:
            response = await client.request(
                method=method,
                url=endpoint,
                json=data,
                params=params,
            )
            response.raise_for_status()
            return response.json()

        except httpx.HTTPStatusError as e:
            raise self._error_from_response(e.response) from e
        except httpx.TimeoutException as e:
            raise YNABTransportError("Request timed out. Please try again.") from e
        except httpx.RequestError as e:
            raise YNABTransportError(f"Network error: {str(e)}") from e

    @staticmethod
    def _error_from_response(response: httpx.Response) -> YNABAPIError:
        """Map a failed response onto the YNABAPIError hierarchy."""
        status = response.status_code
        error_id, detail = str(status), ""
        try:
            error_data = response.json().get("error", {})
            error_id = str(error_data.get("id", error_id))
            detail = error_data.get("detail", "") or ""
        except (ValueError, AttributeError):
            pass

        details = {"status_code": status, "error_id": error_id, "detail": detail}
        if status == 400:
            return YNABBadRequestError(f"Bad request: {detail}", **details)
        if status == 401:
            return YNABUnauthorizedError("Invalid or expired access token.", **details)
        if status == 403:
            return YNABForbiddenError(f"Permission denied: {detail}", **details)
        if status == 404:
            return YNABNotFoundError(f"Resource not found: {detail}", **details)
        if status == 429:
            return YNABRateLimitedError(
                "Rate limit exceeded. Please wait before making more requests.",
                retry_after=parse_retry_after(response.headers.get("retry-after")),
                error_id=error_id,
                detail=detail,
            )
        return YNABAPIError(f"API error {status}: {detail}", **details)

    # ========================================================================
    # BUDGET OPERATIONS
    # ========================================================================

    async def get_budgets(self) -> Dict[str, Any]:
        """Get all budgets plus the default budget, if one is set."""
        response = await self._request("GET", "/budgets")
        return response["data"]

    async def get_budget(self, budget_id: str) -> Dict[str, Any]:
        """Get a single budget by ID, with server knowledge."""
        response = await self._request("GET", f"/budgets/{budget_id}")
        return response["data"]

    async def get_budget_settings(self, budget_id: str) -> Dict[str, Any]:
        """Get date and currency format settings for a budget."""
        response = await self._request("GET", f"/budgets/{budget_id}/settings")
        return response["data"]["settings"]

    # ========================================================================
    # ACCOUNT OPERATIONS
    # ========================================================================

    async def get_accounts(self, budget_id: str) -> Dict[str, Any]:
        """Get all accounts for a budget, with server knowledge."""
        response = await self._request("GET", f"/budgets/{budget_id}/accounts")
        return response["data"]

    async def get_account(self, budget_id: str, account_id: str) -> Dict[str, Any]:
        """Get a single account by ID."""
        response = await self._request("GET", f"/budgets/{budget_id}/accounts/{account_id}")
        return response["data"]["account"]

    # ========================================================================
    # CATEGORY OPERATIONS
    # ========================================================================

    async def get_categories(self, budget_id: str) -> Dict[str, Any]:
        """Get all category groups and categories for a budget."""
        response = await self._request("GET", f"/budgets/{budget_id}/categories")
        return response["data"]

    async def get_category(self, budget_id: str, category_id: str) -> Dict[str, Any]:
        """Get a single category by ID (current month values)."""
        response = await self._request("GET", f"/budgets/{budget_id}/categories/{category_id}")
        return response["data"]["category"]

    async def get_month_category(self, budget_id: str, month: str, category_id: str) -> Dict[str, Any]:
        """Get a single category's values for a specific month."""
        response = await self._request(
            "GET", f"/budgets/{budget_id}/months/{month}/categories/{category_id}"
        )
        return response["data"]["category"]

    async def update_category(self, budget_id: str, category_id: str, **updates) -> Dict[str, Any]:
        """Update a category's name or note."""
        response = await self._request(
            "PATCH",
            f"/budgets/{budget_id}/categories/{category_id}",
            data={"category": updates},
        )
        return response["data"]["category"]

    async def update_category_budget(
        self,
        budget_id: str,
        category_id: str,
        month: str,
        budgeted: int,
    ) -> Dict[str, Any]:
        """Update the budgeted amount for a category in a specific month."""
        response = await self._request(
            "PATCH",
            f"/budgets/{budget_id}/months/{month}/categories/{category_id}",
            data={"category": {"budgeted": budgeted}},
        )
        return response["data"]["category"]

    # ========================================================================
    # TRANSACTION OPERATIONS
    # ========================================================================

    async def get_transactions(
        self,
        budget_id: str,
        since_date: Optional[str] = None,
        type: Optional[str] = None,
        account_id: Optional[str] = None,
        category_id: Optional[str] = None,
        payee_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Get transactions for a budget, optionally scoped to one account, category or payee."""
        params = {}
        if since_date:
            params["since_date"] = since_date
        if type:
            params["type"] = type

        if account_id:
            endpoint = f"/budgets/{budget_id}/accounts/{account_id}/transactions"
        elif category_id:
            endpoint = f"/budgets/{budget_id}/categories/{category_id}/transactions"
        elif payee_id:
            endpoint = f"/budgets/{budget_id}/payees/{payee_id}/transactions"
        else:
            endpoint = f"/budgets/{budget_id}/transactions"

        response = await self._request("GET", endpoint, params=params)
        return response["data"]

    async def get_transaction(self, budget_id: str, transaction_id: str) -> Dict[str, Any]:
        """Get a single transaction by ID."""
        response = await self._request("GET", f"/budgets/{budget_id}/transactions/{transaction_id}")
        return response["data"]["transaction"]

    async def create_transaction(self, budget_id: str, transaction: Dict[str, Any]) -> Dict[str, Any]:
        """Create a new transaction."""
        response = await self._request(
            "POST",
            f"/budgets/{budget_id}/transactions",
            data={"transaction": transaction},
        )
        return response["data"]["transaction"]

    async def create_transactions(self, budget_id: str, transactions: List[Dict[str, Any]]) -> Dict[str, Any]:
        """Create several transactions in one request."""
        response = await self._request(
            "POST",
            f"/budgets/{budget_id}/transactions",
            data={"transactions": transactions},
        )
        return response["data"]

    async def update_transaction(
        self,
        budget_id: str,
        transaction_id: str,
        **updates,
    ) -> Dict[str, Any]:
        """Update an existing transaction."""
        response = await self._request(
            "PUT",
            f"/budgets/{budget_id}/transactions/{transaction_id}",
            data={"transaction": updates},
        )
        return response["data"]["transaction"]

    # ========================================================================
    # SCHEDULED TRANSACTION OPERATIONS
    # ========================================================================

    async def get_scheduled_transactions(self, budget_id: str) -> Dict[str, Any]:
        """Get all scheduled transactions for a budget."""
        response = await self._request("GET", f"/budgets/{budget_id}/scheduled_transactions")
        return response["data"]

    async def get_scheduled_transaction(self, budget_id: str, scheduled_transaction_id: str) -> Dict[str, Any]:
        """Get a single scheduled transaction by ID."""
        response = await self._request(
            "GET", f"/budgets/{budget_id}/scheduled_transactions/{scheduled_transaction_id}"
        )
        return response["data"]["scheduled_transaction"]

    async def create_scheduled_transaction(self, budget_id: str, scheduled_transaction: Dict[str, Any]) -> Dict[str, Any]:
        """Create a scheduled transaction."""
        response = await self._request(
            "POST",
            f"/budgets/{budget_id}/scheduled_transactions",
            data={"scheduled_transaction": scheduled_transaction},
        )
        return response["data"]["scheduled_transaction"]

    async def update_scheduled_transaction(
        self,
        budget_id: str,
        scheduled_transaction_id: str,
        scheduled_transaction: Dict[str, Any],
    ) -> Dict[str, Any]:
        """Replace a scheduled transaction."""
        response = await self._request(
            "PUT",
            f"/budgets/{budget_id}/scheduled_transactions/{scheduled_transaction_id}",
            data={"scheduled_transaction": scheduled_transaction},
        )
        return response["data"]["scheduled_transaction"]

    async def delete_scheduled_transaction(self, budget_id: str, scheduled_transaction_id: str) -> Dict[str, Any]:
        """Delete a scheduled transaction."""
        response = await self._request(
            "DELETE", f"/budgets/{budget_id}/scheduled_transactions/{scheduled_transaction_id}"
        )
        return response["data"]["scheduled_transaction"]

    # ========================================================================
    # PAYEE OPERATIONS
    # ========================================================================

    async def get_payees(self, budget_id: str) -> Dict[str, Any]:
        """Get all payees for a budget."""
        response = await self._request("GET", f"/budgets/{budget_id}/payees")
        return response["data"]

    async def get_payee(self, budget_id: str, payee_id: str) -> Dict[str, Any]:
        """Get a single payee by ID."""
        response = await self._request("GET", f"/budgets/{budget_id}/payees/{payee_id}")
        return response["data"]["payee"]

    # ========================================================================
    # MONTH OPERATIONS
    # ========================================================================

    async def get_budget_months(self, budget_id: str) -> Dict[str, Any]:
        """Get the summary of every budget month."""
        response = await self._request("GET", f"/budgets/{budget_id}/months")
        return response["data"]

    async def get_budget_month(self, budget_id: str, month: str) -> Dict[str, Any]:
        """Get budget month details including all category balances."""
        response = await self._request("GET", f"/budgets/{budget_id}/months/{month}")
        return response["data"]["month"]
