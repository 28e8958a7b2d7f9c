"""Tests for assigning Ready to Assign money and recommending allocations."""

import pytest

from ynab_oauth_mcp.config import RecommendationRules
from ynab_oauth_mcp.resources.allocation import allocate_greedily, rank_categories

from .conftest import BUDGET_ID, EMAIL, json_of

B = f"/budgets/{BUDGET_ID}"
MONTH = "2024-03-01"


def category(id, name, balance=0, budgeted=0, activity=0, goal_under_funded=None, hidden=False):
    return {
        "id": id, "name": name, "balance": balance, "budgeted": budgeted, "activity": activity,
        "goal_under_funded": goal_under_funded, "hidden": hidden, "deleted": False,
    }


@pytest.mark.asyncio
class TestAssignToCategories:

    async def test_over_allocation_changes_nothing(self, dispatcher, fake_ynab):
        fake_ynab.api("GET", f"{B}/months/{MONTH}", {"month": {"month": MONTH, "to_be_budgeted": 5000}})

        envelope = await dispatcher.call("assign_to_categories", {
            "email": EMAIL, "budget_id": BUDGET_ID, "month": "2024-03",
            "allocations": [
                {"category_id": "c1", "amount": 3000},
                {"category_id": "c2", "amount": 3000},
            ],
        })

        result = envelope["result"]
        assert result["success"] is False
        assert result["message"] == "Requested allocation exceeds available funds"
        assert result["available"] == 5000
        assert result["requested"] == 6000
        assert fake_ynab.calls("PATCH") == []

    async def test_assigns_each_category(self, dispatcher, fake_ynab):
        fake_ynab.api("GET", f"{B}/months/{MONTH}", {"month": {"month": MONTH, "to_be_budgeted": 100000}})
        fake_ynab.api("GET", f"{B}/months/{MONTH}/categories/c1",
                      {"category": category("c1", "Groceries", budgeted=20000)})
        fake_ynab.api("GET", f"{B}/months/{MONTH}/categories/c2",
                      {"category": category("c2", "Rent", budgeted=0)})
        fake_ynab.api("PATCH", f"{B}/months/{MONTH}/categories/c1",
                      {"category": category("c1", "Groceries", budgeted=45000)})
        fake_ynab.api("PATCH", f"{B}/months/{MONTH}/categories/c2",
                      {"category": category("c2", "Rent", budgeted=50000)})

        envelope = await dispatcher.call("assign_to_categories", {
            "email": EMAIL, "budget_id": BUDGET_ID, "month": "2024-03",
            "allocations": [
                {"category_id": "c1", "amount": 25, "units": "dollars"},
                {"category_id": "c2", "amount": 50000},
            ],
        })

        result = envelope["result"]
        assert result["success"] is True
        assert result["remaining"] == 25000
        assert result["remaining_formatted"] == "$25.00"
        assert [(a["budgeted_before"], a["budgeted_after"]) for a in result["allocations"]] == [
            (20000, 45000), (0, 50000),
        ]
        assert [json_of(r) for r in fake_ynab.calls("PATCH")] == [
            {"category": {"budgeted": 45000}},
            {"category": {"budgeted": 50000}},
        ]

    async def test_ambiguous_amount_rejected(self, dispatcher, fake_ynab):
        envelope = await dispatcher.call("assign_to_categories", {
            "email": EMAIL, "budget_id": BUDGET_ID, "month": "2024-03",
            "allocations": [{"category_id": "c1", "amount": 25}],
        })

        assert envelope["error"]["code"] == "VALIDATION_ERROR"
        assert "ambiguous" in envelope["error"]["message"]
        assert fake_ynab.requests == []

    async def test_non_positive_amount_rejected(self, dispatcher, fake_ynab):
        envelope = await dispatcher.call("assign_to_categories", {
            "email": EMAIL, "budget_id": BUDGET_ID, "month": "2024-03",
            "allocations": [{"category_id": "c1", "amount": -5000}],
        })

        assert envelope["error"]["code"] == "VALIDATION_ERROR"
        assert fake_ynab.requests == []

    async def test_empty_allocations_rejected(self, dispatcher, fake_ynab):
        envelope = await dispatcher.call("assign_to_categories", {
            "email": EMAIL, "budget_id": BUDGET_ID, "month": "2024-03", "allocations": [],
        })

        assert envelope["error"]["code"] == "VALIDATION_ERROR"


class TestRanking:
    """Tier placement and greedy assignment."""

    rules = RecommendationRules()
    groups = {
        "goal": "Quality of Life Goals",
        "rent": "Immediate Obligations",
        "food": "Everyday Expenses",
        "fun": "Everyday Expenses",
        "save": "Savings Goals",
        "rainy": "Everyday Expenses",
        "card": "Credit Card Payments",
    }

    def test_each_category_lands_in_its_highest_tier(self):
        categories = [
            category("save", "Vacation", balance=0),
            category("food", "Groceries", balance=20000),
            category("rent", "Rent", balance=-50000),
            category("goal", "New Laptop", balance=0, goal_under_funded=100000),
            category("rainy", "Emergency Fund", balance=0),
            category("fun", "Fun Money", balance=5000),
            category("card", "Visa", balance=-90000),
        ]
        spending = {"food": 60000, "fun": 5000}

        ranked = rank_categories(categories, self.groups, spending, self.rules)

        assert [(c["category_id"], c["priority"], c["need"]) for c in ranked] == [
            ("goal", 1, 100000),
            ("rent", 2, 50000),
            ("food", 3, 40000),
            ("save", 4, None),
            ("rainy", 4, None),
        ]

    def test_hidden_categories_are_skipped(self):
        ranked = rank_categories(
            [category("goal", "New Laptop", goal_under_funded=1000, hidden=True)], self.groups, {}, self.rules
        )
        assert ranked == []

    def test_greedy_stops_when_money_runs_out(self):
        ranked = rank_categories(
            [
                category("goal", "New Laptop", goal_under_funded=100000),
                category("rent", "Rent", balance=-50000),
                category("save", "Vacation"),
            ],
            self.groups, {}, self.rules,
        )

        recommendations = allocate_greedily(ranked, 120000)

        assert [(r["category_id"], r["amount"]) for r in recommendations] == [("goal", 100000), ("rent", 20000)]

    def test_savings_split_the_remainder_evenly(self):
        ranked = rank_categories(
            [category("rent", "Rent", balance=-50000), category("save", "Vacation"), category("rainy", "Emergency Fund")],
            self.groups, {}, self.rules,
        )

        recommendations = allocate_greedily(ranked, 150001)

        assert [(r["category_id"], r["amount"]) for r in recommendations] == [
            ("rent", 50000), ("save", 50000), ("rainy", 50000),
        ]
        assert recommendations[1]["amount_formatted"] == "$50.00"
        assert "need" not in recommendations[0]

    def test_rules_are_configurable(self):
        rules = RecommendationRules(essential_groups=("Everyday Expenses",))
        ranked = rank_categories([category("food", "Groceries", balance=-7000)], self.groups, {}, rules)
        assert ranked[0]["priority"] == 2


@pytest.mark.asyncio
async def test_recommended_allocations(dispatcher, fake_ynab):
    fake_ynab.api("GET", f"{B}/months/{MONTH}", {"month": {
        "month": MONTH,
        "to_be_budgeted": 200000,
        "categories": [
            category("goal", "New Laptop", goal_under_funded=50000),
            category("rent", "Rent", balance=-30000),
            category("save", "Vacation"),
        ],
    }})
    fake_ynab.api("GET", f"{B}/categories", {"category_groups": [
        {"id": "g1", "name": "Quality of Life Goals", "categories": [{"id": "goal"}]},
        {"id": "g2", "name": "Immediate Obligations", "categories": [{"id": "rent"}]},
        {"id": "g3", "name": "Savings Goals", "categories": [{"id": "save"}]},
    ]})
    # 2024-02 is missing: no spending history

    envelope = await dispatcher.call("get_recommended_allocations", {
        "email": EMAIL, "budget_id": BUDGET_ID, "month": "2024-03",
    })

    result = envelope["result"]
    assert [(r["category_id"], r["amount"], r["priority"]) for r in result["recommendations"]] == [
        ("goal", 50000, 1), ("rent", 30000, 2), ("save", 120000, 4),
    ]
    assert result["total_recommended"] == 200000
    assert result["remaining"] == 0
    assert fake_ynab.calls("PATCH") == []
