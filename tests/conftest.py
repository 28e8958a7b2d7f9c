"""Pytest fixtures for YNAB OAuth MCP tests."""

import json
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

import httpx
import pytest

from ynab_oauth_mcp.config import Settings
from ynab_oauth_mcp.dispatcher import ToolDispatcher
from ynab_oauth_mcp.oauth import TokenGrant
from ynab_oauth_mcp.services import YNABServices

NOW = 1_700_000_000_000  # 2023-11-14T22:13:20Z
EMAIL = "user@example.com"
BUDGET_ID = "budget-1"

Route = Union[httpx.Response, Callable[[httpx.Request], httpx.Response]]


class FakeClock:
    """Controllable epoch-millisecond clock."""

    def __init__(self, now: int = NOW):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, millis: int) -> None:
        self.now += millis


class FakeYNAB:
    """
    In-memory stand-in for api.ynab.com and the YNAB OAuth server.

    Routes are keyed by (method, path); every request is recorded.
    Unrouted requests get a YNAB-shaped 404.
    """

    def __init__(self):
        self.routes: Dict[Tuple[str, str], Route] = {}
        self.requests: List[httpx.Request] = []

    def api(self, method: str, path: str, data: Any = None, status: int = 200,
            headers: Optional[Dict[str, str]] = None, error: Optional[Dict[str, Any]] = None) -> None:
        body = {"error": error} if error else {"data": data}
        self.routes[(method, f"/v1{path}")] = httpx.Response(status, json=body, headers=headers)

    def api_handler(self, method: str, path: str, handler: Callable[[httpx.Request], httpx.Response]) -> None:
        self.routes[(method, f"/v1{path}")] = handler

    def token(self, status: int = 200, **body: Any) -> None:
        self.routes[("POST", "/oauth/token")] = httpx.Response(status, json=body)

    def token_handler(self, handler: Callable[[httpx.Request], httpx.Response]) -> None:
        self.routes[("POST", "/oauth/token")] = handler

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get((request.method, request.url.path))
        if route is None:
            return httpx.Response(404, json={"error": {"id": "404", "name": "not_found", "detail": "Resource not found"}})
        if callable(route):
            return route(request)
        return httpx.Response(route.status_code, content=route.content, headers=route.headers)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def calls(self, method: Optional[str] = None, path: Optional[str] = None) -> List[httpx.Request]:
        return [
            r for r in self.requests
            if (method is None or r.method == method) and (path is None or r.url.path == path)
        ]

    def token_calls(self) -> List[httpx.Request]:
        return self.calls("POST", "/oauth/token")


def form_of(request: httpx.Request) -> Dict[str, str]:
    """Decode a form-encoded request body."""
    return dict(httpx.QueryParams(request.content.decode()))


def json_of(request: httpx.Request) -> Dict[str, Any]:
    return json.loads(request.content)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fake_ynab():
    return FakeYNAB()


@pytest.fixture
def settings(tmp_path):
    return Settings(
        _env_file=None,
        client_id="client-123",
        client_secret="secret-456",
        token_store_path=tmp_path / "config" / "tokens.json",
        rate_limit_store_path=tmp_path / "data" / "rate-limits.json",
    )


@pytest.fixture
def services(settings, fake_ynab, clock):
    return YNABServices.from_settings(settings, transport=fake_ynab.transport, clock=clock)


@pytest.fixture
def authed_services(services):
    """Services with EMAIL holding a token valid for two hours."""
    services.tokens.set_token(
        EMAIL, TokenGrant(access_token="access-1", refresh_token="refresh-1", expires_in=7200)
    )
    return services


@pytest.fixture
def dispatcher(authed_services):
    return ToolDispatcher(authed_services)


@pytest.fixture
def sample_transaction():
    """Sample transaction data."""
    return {
        "id": "txn-001",
        "date": "2024-01-15",
        "amount": -50000,  # -$50.00 in milliunits
        "memo": "Test transaction",
        "cleared": "cleared",
        "approved": True,
        "flag_color": None,
        "account_id": "acc-001",
        "account_name": "Checking",
        "payee_id": "payee-001",
        "payee_name": "Test Store",
        "category_id": "cat-001",
        "category_name": "Groceries",
        "transfer_account_id": None,
        "import_id": None,
        "deleted": False,
        "subtransactions": [],
    }


@pytest.fixture
def sample_category():
    """Sample category data."""
    return {
        "id": "cat-001",
        "category_group_id": "group-001",
        "category_group_name": "Everyday Expenses",
        "name": "Groceries",
        "hidden": False,
        "note": None,
        "budgeted": 500000,  # $500.00 in milliunits
        "activity": -125000,
        "balance": 375000,
        "goal_type": None,
        "goal_target": None,
        "goal_under_funded": None,
        "deleted": False,
    }
