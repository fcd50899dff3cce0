"""
Tests for AnalyticsSelector: dashboard totals, budget status, admin overview.
"""

from datetime import date
from decimal import Decimal

import pytest

from ledger_kernel.models import Budget, TransactionType
from ledger_kernel.selectors.analytics_selector import AnalyticsSelector
from ledger_kernel.selectors.scope_selector import ScopeSelector

JAN_START = date(2024, 1, 1)
JAN_END = date(2024, 1, 31)


@pytest.fixture
def analytics(session):
    return AnalyticsSelector(session, ScopeSelector(session))


@pytest.fixture
def household(tenants, make_account, make_category, make_transaction):
    """Expenses and income for both group members."""
    food = make_category(tenants.member_a, "Food")
    fun = make_category(tenants.member_a, "Fun")
    a_account = make_account(tenants.member_a)
    b_account = make_account(tenants.member_b)
    make_transaction(tenants.member_a, a_account, food, "30.00", transaction_date=date(2024, 1, 5))
    make_transaction(tenants.member_b, b_account, food, "20.00", transaction_date=date(2024, 1, 7))
    make_transaction(tenants.member_a, a_account, fun, "15.50", transaction_date=date(2024, 1, 9))
    make_transaction(
        tenants.member_a, a_account, food, "500.00",
        transaction_type=TransactionType.INCOME, transaction_date=date(2024, 1, 1),
    )
    make_transaction(
        tenants.member_a, a_account, food, "99.00", transaction_date=date(2023, 12, 20)
    )
    return {"food": food, "fun": fun}


class TestDashboard:
    def test_totals_cover_group_scope(self, analytics, tenants, household, actor_for):
        summary = analytics.dashboard(actor_for(tenants.member_b), JAN_START, JAN_END)
        assert summary.total_income == Decimal("500.00")
        assert summary.total_expenses == Decimal("65.50")
        assert summary.net_amount == Decimal("434.50")

    def test_outsider_totals_are_zero(self, analytics, tenants, household, actor_for):
        summary = analytics.dashboard(actor_for(tenants.standalone), JAN_START, JAN_END)
        assert summary.total_expenses == Decimal("0.00")
        assert summary.category_spending == ()

    def test_owner_dashboard_covers_only_own_records(
        self, analytics, tenants, household, actor_for
    ):
        assert analytics.total_expenses(actor_for(tenants.owner), JAN_START, JAN_END) == Decimal(
            "0.00"
        )

    def test_category_spending_largest_first(self, analytics, tenants, household, actor_for):
        spending = analytics.category_spending(actor_for(tenants.member_a), JAN_START, JAN_END)
        assert [(s.category_name, s.total) for s in spending] == [
            ("Food", Decimal("50.00")),
            ("Fun", Decimal("15.50")),
        ]

    def test_monthly_trend(self, analytics, tenants, household, actor_for):
        trend = analytics.monthly_trend(actor_for(tenants.member_a), date(2023, 12, 1), JAN_END)
        assert [(m.month, m.total) for m in trend] == [
            ("2023-12", Decimal("99.00")),
            ("2024-01", Decimal("65.50")),
        ]


class TestBudgetStatus:
    def test_spending_within_category_and_range(
        self, session, analytics, tenants, household, actor_for
    ):
        budget = Budget(
            name="Food budget",
            amount=Decimal("60.00"),
            start_date=JAN_START,
            end_date=JAN_END,
            alert_threshold=80,
            category_id=household["food"].id,
            user_id=tenants.member_a.id,
            is_active=True,
        )
        session.add(budget)
        session.flush()

        [status] = analytics.budget_status(actor_for(tenants.member_a), date(2024, 1, 15))
        assert status.spent == Decimal("50.00")
        assert status.is_near_limit
        assert not status.is_over_budget

    def test_budget_outside_today_excluded(self, session, analytics, tenants, actor_for):
        session.add(
            Budget(
                name="Last year",
                amount=Decimal("10.00"),
                start_date=date(2023, 1, 1),
                end_date=date(2023, 12, 31),
                user_id=tenants.standalone.id,
                is_active=True,
            )
        )
        session.flush()
        assert analytics.budget_status(actor_for(tenants.standalone), date(2024, 1, 15)) == []


class TestAdminViews:
    def test_managed_users_for_admin(self, analytics, tenants, actor_for):
        users = analytics.managed_users(actor_for(tenants.admin_user))
        assert {u.id for u in users} == {
            tenants.member_a.id,
            tenants.member_b.id,
            tenants.direct_report.id,
        }

    def test_managed_users_for_plain_user(self, analytics, tenants, actor_for):
        assert analytics.managed_users(actor_for(tenants.member_a)) == []

    def test_admin_overview_counts_visible_transactions(
        self, analytics, tenants, household, actor_for
    ):
        overview = analytics.admin_overview(actor_for(tenants.admin_user))
        assert overview.managed_user_count == 3
        assert overview.transaction_count == 5
        assert overview.pending_approvals == 5
        assert overview.total_income == Decimal("500.00")
        assert overview.total_expenses == Decimal("164.50")
