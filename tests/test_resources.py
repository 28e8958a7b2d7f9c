"""Tests for budget, account, category, transaction, payee, month and scheduled transaction tools."""

import pytest

from .conftest import BUDGET_ID, EMAIL, json_of

B = f"/budgets/{BUDGET_ID}"


def account(id, name, balance, on_budget=True, closed=False, deleted=False):
    return {
        "id": id, "name": name, "type": "checking", "on_budget": on_budget, "closed": closed,
        "note": None, "balance": balance, "cleared_balance": balance, "uncleared_balance": 0,
        "transfer_payee_id": f"payee-{id}", "deleted": deleted,
    }


@pytest.mark.asyncio
class TestBudgets:

    async def test_get_budget_counts_live_items(self, dispatcher, fake_ynab):
        fake_ynab.api("GET", B, {
            "budget": {
                "id": BUDGET_ID,
                "name": "Household",
                "currency_format": {"iso_code": "USD", "example_format": "123,456.78"},
                "accounts": [{"id": "a", "deleted": False}, {"id": "b", "deleted": True}],
                "payees": [{"id": "p", "deleted": False}],
            },
            "server_knowledge": 42,
        })

        result = (await dispatcher.call("get_budget", {"email": EMAIL, "budget_id": BUDGET_ID}))["result"]

        assert result["accounts_count"] == 1
        assert result["payees_count"] == 1
        assert result["categories_count"] == 0
        assert result["server_knowledge"] == 42

    async def test_budget_id_defaults_to_last_used(self, dispatcher, fake_ynab):
        fake_ynab.api("GET", "/budgets/last-used/settings", {"settings": {"currency_format": {"iso_code": "USD"}}})

        envelope = await dispatcher.call("get_budget_settings", {"email": EMAIL})

        assert envelope["result"] == {"currency_format": {"iso_code": "USD"}}


@pytest.mark.asyncio
class TestAccounts:

    async def test_list_accounts(self, dispatcher, fake_ynab):
        fake_ynab.api("GET", f"{B}/accounts", {
            "accounts": [
                account("acc-1", "Checking", 1234560),
                account("acc-2", "Old", 999000, deleted=True),
                account("acc-3", "Brokerage", 5000000, on_budget=False),
            ],
            "server_knowledge": 7,
        })

        result = (await dispatcher.call("list_accounts", {"email": EMAIL, "budget_id": BUDGET_ID}))["result"]

        assert [a["id"] for a in result["accounts"]] == ["acc-1", "acc-3"]
        assert result["accounts"][0]["balance_formatted"] == "$1,234.56"
        assert result["on_budget_balance"] == 1234560

    async def test_missing_account(self, dispatcher, fake_ynab):
        envelope = await dispatcher.call(
            "get_account", {"email": EMAIL, "budget_id": BUDGET_ID, "account_id": "nope"}
        )

        assert envelope["error"] == {
            "message": f"Account with ID nope not found in budget {BUDGET_ID}",
            "code": "NOT_FOUND_ERROR",
        }

    async def test_blank_id_fails_before_io(self, dispatcher, fake_ynab):
        envelope = await dispatcher.call(
            "get_account", {"email": EMAIL, "budget_id": BUDGET_ID, "account_id": "  "}
        )

        assert envelope["error"] == {"message": "Account ID parameter is required", "code": "VALIDATION_ERROR"}
        assert fake_ynab.requests == []


@pytest.mark.asyncio
class TestCategories:

    async def test_list_skips_internal_and_deleted(self, dispatcher, fake_ynab, sample_category):
        fake_ynab.api("GET", f"{B}/categories", {
            "category_groups": [
                {"id": "g0", "name": "Internal Master Category", "hidden": False, "deleted": False,
                 "categories": [{**sample_category, "id": "inflow", "name": "Inflow: Ready to Assign"}]},
                {"id": "g1", "name": "Everyday Expenses", "hidden": False, "deleted": False,
                 "categories": [sample_category, {**sample_category, "id": "gone", "deleted": True}]},
            ],
        })

        result = (await dispatcher.call("list_categories", {"email": EMAIL, "budget_id": BUDGET_ID}))["result"]

        assert [g["name"] for g in result["category_groups"]] == ["Everyday Expenses"]
        category = result["category_groups"][0]["categories"][0]
        assert [c["id"] for c in result["category_groups"][0]["categories"]] == ["cat-001"]
        assert category["balance_formatted"] == "$375.00"
        assert category["activity_formatted"] == "-$125.00"

    async def test_update_budgeted_amount(self, dispatcher, fake_ynab, sample_category):
        fake_ynab.api("PATCH", f"{B}/months/2024-03-01/categories/cat-001", {
            "category": {**sample_category, "budgeted": 600000},
        })

        envelope = await dispatcher.call("update_category", {
            "email": EMAIL, "budget_id": BUDGET_ID, "category_id": "cat-001",
            "month": "2024-03", "budgeted": 600000,
        })

        assert envelope["result"]["budgeted"] == 600000
        assert envelope["result"]["month"] == "2024-03-01"
        request = fake_ynab.calls("PATCH")[0]
        assert json_of(request) == {"category": {"budgeted": 600000}}

    async def test_rename(self, dispatcher, fake_ynab, sample_category):
        fake_ynab.api("PATCH", f"{B}/categories/cat-001", {"category": {**sample_category, "name": "Food"}})

        envelope = await dispatcher.call("update_category", {
            "email": EMAIL, "budget_id": BUDGET_ID, "category_id": "cat-001", "name": "Food",
        })

        assert envelope["result"]["name"] == "Food"
        assert json_of(fake_ynab.calls("PATCH")[0]) == {"category": {"name": "Food"}}

    async def test_budgeted_requires_month(self, dispatcher, fake_ynab):
        envelope = await dispatcher.call("update_category", {
            "email": EMAIL, "budget_id": BUDGET_ID, "category_id": "cat-001", "budgeted": 1000,
        })

        assert envelope["error"]["code"] == "VALIDATION_ERROR"
        assert fake_ynab.requests == []

    async def test_nothing_to_update(self, dispatcher, fake_ynab):
        envelope = await dispatcher.call("update_category", {
            "email": EMAIL, "budget_id": BUDGET_ID, "category_id": "cat-001",
        })

        assert envelope["error"]["code"] == "VALIDATION_ERROR"


@pytest.mark.asyncio
class TestTransactions:

    async def test_list_newest_first_with_limit(self, dispatcher, fake_ynab, sample_transaction):
        fake_ynab.api("GET", f"{B}/accounts/acc-001/transactions", {
            "transactions": [
                {**sample_transaction, "id": "t1", "date": "2024-01-01"},
                {**sample_transaction, "id": "t2", "date": "2024-01-20"},
                {**sample_transaction, "id": "t3", "date": "2024-01-10", "deleted": True},
                {**sample_transaction, "id": "t4", "date": "2024-01-15"},
            ],
            "server_knowledge": 9,
        })

        envelope = await dispatcher.call("list_transactions", {
            "email": EMAIL, "budget_id": BUDGET_ID, "account_id": "acc-001",
            "since_date": "2024-01-01", "type": "unapproved", "limit": 2,
        })

        result = envelope["result"]
        assert [t["id"] for t in result["transactions"]] == ["t2", "t4"]
        assert result["total"] == -100000
        assert result["total_formatted"] == "-$100.00"
        params = fake_ynab.requests[0].url.params
        assert params["since_date"] == "2024-01-01"
        assert params["type"] == "unapproved"

    async def test_subtransactions_are_nested(self, dispatcher, fake_ynab, sample_transaction):
        fake_ynab.api("GET", f"{B}/transactions/txn-001", {"transaction": {
            **sample_transaction,
            "subtransactions": [
                {"id": "s1", "amount": -30000, "category_id": "cat-001", "deleted": False},
                {"id": "s2", "amount": -20000, "category_id": "cat-002", "deleted": False},
                {"id": "s3", "amount": -1000, "deleted": True},
            ],
        }})

        envelope = await dispatcher.call("get_transaction", {
            "email": EMAIL, "budget_id": BUDGET_ID, "transaction_id": "txn-001",
        })

        subs = envelope["result"]["subtransactions"]
        assert [s["id"] for s in subs] == ["s1", "s2"]
        assert subs[0]["amount_formatted"] == "-$30.00"

    async def test_create_in_dollars(self, dispatcher, fake_ynab, sample_transaction):
        fake_ynab.api("POST", f"{B}/transactions", {"transaction": sample_transaction}, status=201)

        envelope = await dispatcher.call("create_transaction", {
            "email": EMAIL, "budget_id": BUDGET_ID,
            "transaction": {
                "account_id": "acc-001", "date": "2024-01-15", "amount": -50, "units": "dollars",
                "payee_name": "Test Store", "cleared": "cleared",
            },
        })

        assert envelope["status"] == "success"
        assert json_of(fake_ynab.calls("POST")[0]) == {"transaction": {
            "account_id": "acc-001", "date": "2024-01-15", "amount": -50000,
            "payee_name": "Test Store", "cleared": "cleared",
        }}

    async def test_create_split_uses_parent_units(self, dispatcher, fake_ynab, sample_transaction):
        fake_ynab.api("POST", f"{B}/transactions", {"transaction": sample_transaction}, status=201)

        await dispatcher.call("create_transaction", {
            "email": EMAIL, "budget_id": BUDGET_ID,
            "transaction": {
                "account_id": "acc-001", "date": "2024-01-15", "amount": -50, "units": "dollars",
                "subtransactions": [{"amount": -30, "category_id": "c1"}, {"amount": -20, "category_id": "c2"}],
            },
        })

        body = json_of(fake_ynab.calls("POST")[0])["transaction"]
        assert [s["amount"] for s in body["subtransactions"]] == [-30000, -20000]

    async def test_create_requires_amount(self, dispatcher, fake_ynab):
        envelope = await dispatcher.call("create_transaction", {
            "email": EMAIL, "budget_id": BUDGET_ID,
            "transaction": {"account_id": "acc-001", "date": "2024-01-15"},
        })

        assert envelope["error"] == {"message": "Transaction must include amount", "code": "VALIDATION_ERROR"}
        assert fake_ynab.requests == []

    @pytest.mark.parametrize("amount", ["NaN", "inf"])
    async def test_create_non_finite_amount(self, dispatcher, fake_ynab, amount):
        envelope = await dispatcher.call("create_transaction", {
            "email": EMAIL, "budget_id": BUDGET_ID,
            "transaction": {"account_id": "acc-001", "date": "2024-01-15", "amount": amount},
        })

        assert envelope["error"]["code"] == "VALIDATION_ERROR"
        assert fake_ynab.requests == []

    async def test_create_rejected_by_ynab(self, dispatcher, fake_ynab):
        fake_ynab.api("POST", f"{B}/transactions", status=400,
                      error={"id": "400", "name": "bad_request", "detail": "account_id is invalid"})

        envelope = await dispatcher.call("create_transaction", {
            "email": EMAIL, "budget_id": BUDGET_ID,
            "transaction": {"account_id": "x", "date": "2024-01-15", "amount": 12.5},
        })

        assert envelope["error"] == {
            "message": "Invalid transaction data: account_id is invalid",
            "code": "VALIDATION_ERROR",
        }

    async def test_update_sends_only_changed_fields(self, dispatcher, fake_ynab, sample_transaction):
        fake_ynab.api("PUT", f"{B}/transactions/txn-001", {"transaction": {**sample_transaction, "memo": "Lunch"}})

        envelope = await dispatcher.call("update_transaction", {
            "email": EMAIL, "budget_id": BUDGET_ID, "transaction_id": "txn-001",
            "transaction": {"memo": "Lunch", "approved": True},
        })

        assert envelope["result"]["memo"] == "Lunch"
        assert json_of(fake_ynab.calls("PUT")[0]) == {"transaction": {"memo": "Lunch", "approved": True}}

    async def test_bulk_create(self, dispatcher, fake_ynab, sample_transaction):
        fake_ynab.api("POST", f"{B}/transactions", {
            "transaction_ids": ["txn-001", "txn-002"],
            "transactions": [sample_transaction, {**sample_transaction, "id": "txn-002"}],
            "duplicate_import_ids": [],
        }, status=201)

        envelope = await dispatcher.call("bulk_create_transactions", {
            "email": EMAIL, "budget_id": BUDGET_ID,
            "transactions": [
                {"account_id": "acc-001", "date": "2024-01-15", "amount": -50000},
                {"account_id": "acc-001", "date": "2024-01-16", "amount": -7.25},
            ],
        })

        assert envelope["result"]["count"] == 2
        body = json_of(fake_ynab.calls("POST")[0])
        assert [t["amount"] for t in body["transactions"]] == [-50000, -7250]


@pytest.mark.asyncio
class TestPayeesAndMonths:

    async def test_list_payees_sorted(self, dispatcher, fake_ynab):
        fake_ynab.api("GET", f"{B}/payees", {"payees": [
            {"id": "p2", "name": "zoo", "deleted": False},
            {"id": "p1", "name": "Acme", "deleted": False},
            {"id": "p3", "name": "Gone", "deleted": True},
        ]})

        result = (await dispatcher.call("list_payees", {"email": EMAIL, "budget_id": BUDGET_ID}))["result"]

        assert [p["name"] for p in result["payees"]] == ["Acme", "zoo"]

    async def test_payee_transactions(self, dispatcher, fake_ynab, sample_transaction):
        fake_ynab.api("GET", f"{B}/payees/payee-001/transactions", {"transactions": [sample_transaction]})

        result = (await dispatcher.call("get_payee_transactions", {
            "email": EMAIL, "budget_id": BUDGET_ID, "payee_id": "payee-001",
        }))["result"]

        assert result["count"] == 1
        assert result["transactions"][0]["amount_formatted"] == "-$50.00"

    async def test_get_month_normalizes(self, dispatcher, fake_ynab, sample_category):
        fake_ynab.api("GET", f"{B}/months/2024-02-01", {"month": {
            "month": "2024-02-01", "income": 4000000, "budgeted": 3500000, "activity": -3000000,
            "to_be_budgeted": 500000, "age_of_money": 30,
            "categories": [sample_category, {**sample_category, "id": "gone", "deleted": True}],
        }})

        result = (await dispatcher.call("get_month", {
            "email": EMAIL, "budget_id": BUDGET_ID, "month": "2024-02",
        }))["result"]

        assert result["to_be_budgeted_formatted"] == "$500.00"
        assert [c["id"] for c in result["categories"]] == ["cat-001"]

    async def test_month_pattern_is_validated(self, dispatcher, fake_ynab):
        envelope = await dispatcher.call("get_month", {"email": EMAIL, "budget_id": BUDGET_ID, "month": "Feb"})

        assert envelope["error"]["code"] == "VALIDATION_ERROR"
        assert fake_ynab.requests == []

    async def test_list_months_since(self, dispatcher, fake_ynab):
        fake_ynab.api("GET", f"{B}/months", {"months": [
            {"month": "2024-01-01", "to_be_budgeted": 0, "deleted": False},
            {"month": "2024-02-01", "to_be_budgeted": 0, "deleted": False},
        ]})

        result = (await dispatcher.call("list_months", {
            "email": EMAIL, "budget_id": BUDGET_ID, "since_date": "2024-02-01",
        }))["result"]

        assert [m["month"] for m in result["months"]] == ["2024-02-01"]


@pytest.mark.asyncio
class TestScheduledTransactions:

    async def test_create_requires_frequency(self, dispatcher, fake_ynab):
        envelope = await dispatcher.call("create_scheduled_transaction", {
            "email": EMAIL, "budget_id": BUDGET_ID,
            "scheduled_transaction": {"account_id": "acc-001", "date_first": "2024-02-01", "amount": -1500000},
        })

        assert envelope["error"] == {
            "message": "Scheduled transaction must include frequency",
            "code": "VALIDATION_ERROR",
        }
        assert fake_ynab.requests == []

    async def test_create(self, dispatcher, fake_ynab):
        fake_ynab.api("POST", f"{B}/scheduled_transactions", {"scheduled_transaction": {
            "id": "st-1", "date_first": "2024-02-01", "date_next": "2024-02-01", "frequency": "monthly",
            "amount": -1500000, "account_id": "acc-001", "deleted": False,
        }}, status=201)

        envelope = await dispatcher.call("create_scheduled_transaction", {
            "email": EMAIL, "budget_id": BUDGET_ID,
            "scheduled_transaction": {
                "account_id": "acc-001", "date_first": "2024-02-01", "amount": -1500000,
                "frequency": "monthly", "payee_name": "Landlord",
            },
        })

        assert envelope["result"]["amount_formatted"] == "-$1,500.00"
        assert json_of(fake_ynab.calls("POST")[0]) == {"scheduled_transaction": {
            "account_id": "acc-001", "date": "2024-02-01", "amount": -1500000,
            "frequency": "monthly", "payee_name": "Landlord",
        }}

    async def test_delete(self, dispatcher, fake_ynab):
        fake_ynab.api("DELETE", f"{B}/scheduled_transactions/st-1", {"scheduled_transaction": {"id": "st-1"}})

        envelope = await dispatcher.call("delete_scheduled_transaction", {
            "email": EMAIL, "budget_id": BUDGET_ID, "scheduled_transaction_id": "st-1",
        })

        assert envelope["result"]["success"] is True

    async def test_missing_scheduled_transaction(self, dispatcher, fake_ynab):
        envelope = await dispatcher.call("get_scheduled_transaction", {
            "email": EMAIL, "budget_id": BUDGET_ID, "scheduled_transaction_id": "st-9",
        })

        assert envelope["error"]["code"] == "NOT_FOUND_ERROR"
        assert "st-9" in envelope["error"]["message"]
