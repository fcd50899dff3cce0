"""
Tests for ScopeSelector.

Covers:
- Visible-user sets for every actor variant
- Ordering and deduplication of the visible-user sequence
- The GroupAdminRecords policy
- Orphaned transactions and the approval path
- Default categories, soft-deleted accounts and budgets
- Transaction filters and pagination
"""

from datetime import date
from decimal import Decimal

import pytest

from ledger_kernel.domain.actor import GroupAdminRecords
from ledger_kernel.domain.dtos import TransactionFilter
from ledger_kernel.models import Budget, TransactionType, UserRole
from ledger_kernel.selectors.scope_selector import ScopeSelector


@pytest.fixture
def scope(session):
    return ScopeSelector(session)


class TestVisibleUsers:
    def test_owner_sees_everyone(self, scope, tenants, actor_for):
        ids = scope.visible_user_ids(actor_for(tenants.owner))
        assert ids[0] == tenants.owner.id
        assert {
            tenants.admin_user.id,
            tenants.member_a.id,
            tenants.standalone.id,
            tenants.other_report.id,
        } <= set(ids)

    def test_admin_sees_own_reports_and_group(self, scope, tenants, actor_for):
        ids = scope.visible_user_ids(actor_for(tenants.admin_user))
        assert ids[0] == tenants.admin_user.id
        assert set(ids) == {
            tenants.admin_user.id,
            tenants.direct_report.id,
            tenants.member_a.id,
            tenants.member_b.id,
        }

    def test_admin_order_is_reports_then_group(self, scope, tenants, actor_for):
        ids = scope.visible_user_ids(actor_for(tenants.admin_user))
        assert ids.index(tenants.direct_report.id) < ids.index(tenants.member_a.id)

    def test_admin_scope_deduplicated(self, scope, tenants, make_user, actor_for):
        """A user who is both a direct report and a group member appears once."""
        both = make_user("both", admin=tenants.admin, group=tenants.group)
        ids = scope.visible_user_ids(actor_for(tenants.admin_user))
        assert ids.count(both.id) == 1
        assert len(ids) == len(set(ids))

    def test_unprovisioned_admin_sees_only_self(self, scope, make_user, actor_for):
        user = make_user("loner", role=UserRole.ADMIN)
        assert scope.visible_user_ids(actor_for(user)) == [user.id]

    def test_group_member_sees_group(self, scope, tenants, actor_for):
        ids = scope.visible_user_ids(actor_for(tenants.member_a))
        assert ids[0] == tenants.member_a.id
        assert set(ids) == {tenants.member_a.id, tenants.member_b.id}

    def test_group_member_includes_admin_when_configured(self, session, tenants, actor_for):
        scope = ScopeSelector(session, GroupAdminRecords.INCLUDE)
        ids = scope.visible_user_ids(actor_for(tenants.member_a, GroupAdminRecords.INCLUDE))
        assert tenants.admin_user.id in ids

    def test_standalone_sees_only_self(self, scope, tenants, actor_for):
        assert scope.visible_user_ids(actor_for(tenants.standalone)) == [tenants.standalone.id]

    def test_owner_aggregates_cover_only_own(self, scope, tenants, actor_for):
        assert scope.aggregate_user_ids(actor_for(tenants.owner)) == [tenants.owner.id]

    def test_visible_users_preserve_order(self, scope, tenants, actor_for):
        actor = actor_for(tenants.admin_user)
        users = scope.visible_users(actor)
        assert [u.id for u in users] == scope.visible_user_ids(actor)


class TestVisibleTransactions:
    def test_group_member_sees_peer_transactions(
        self, scope, tenants, make_account, make_category, make_transaction, actor_for
    ):
        account = make_account(tenants.member_b)
        category = make_category(tenants.member_b)
        txn = make_transaction(tenants.member_b, account, category)

        page = scope.visible_transactions(actor_for(tenants.member_a))
        assert txn in page.items

    def test_group_member_excludes_admin_records_by_default(
        self, scope, tenants, make_account, make_category, make_transaction, actor_for
    ):
        account = make_account(tenants.admin_user)
        category = make_category(tenants.admin_user)
        txn = make_transaction(tenants.admin_user, account, category)

        assert txn not in scope.visible_transactions(actor_for(tenants.member_a)).items

    def test_outsider_sees_nothing_of_other_tenant(
        self, scope, tenants, make_account, make_category, make_transaction, actor_for
    ):
        account = make_account(tenants.other_report)
        category = make_category(tenants.other_report)
        make_transaction(tenants.other_report, account, category)

        assert scope.visible_transactions(actor_for(tenants.admin_user)).total == 0

    def test_orphaned_transaction_visible_to_admin_owner(
        self, session, scope, make_user, make_admin_row, make_account, make_category,
        make_transaction, actor_for, tenants,
    ):
        carol = make_user("carol", role=UserRole.ADMIN)
        carol_admin = make_admin_row(carol)  # owned by carol herself
        author = make_user("author", admin=carol_admin)
        account = make_account(author)
        category = make_category(author)
        txn = make_transaction(author, account, category, admin=carol_admin)
        txn.user_id = None
        session.flush()

        assert txn in scope.visible_transactions(actor_for(carol)).items
        assert txn in scope.visible_transactions(actor_for(tenants.owner)).items
        assert txn not in scope.visible_transactions(actor_for(tenants.admin_user)).items

    def test_newest_first_and_pagination(
        self, scope, tenants, make_account, make_category, make_transaction, actor_for
    ):
        account = make_account(tenants.standalone)
        category = make_category(tenants.standalone)
        for day in (3, 9, 6):
            make_transaction(
                tenants.standalone, account, category, transaction_date=date(2024, 1, day)
            )
        actor = actor_for(tenants.standalone)

        page = scope.visible_transactions(actor, TransactionFilter(limit=2))
        assert [t.transaction_date.day for t in page.items] == [9, 6]
        assert page.total == 3
        assert page.has_more

        rest = scope.visible_transactions(actor, TransactionFilter(limit=2, offset=2))
        assert [t.transaction_date.day for t in rest.items] == [3]

    def test_filters(self, scope, tenants, make_account, make_category, make_transaction, actor_for):
        account = make_account(tenants.standalone)
        food = make_category(tenants.standalone, "Food")
        rent = make_category(tenants.standalone, "Rent")
        make_transaction(tenants.standalone, account, food, transaction_date=date(2024, 1, 2))
        income = make_transaction(
            tenants.standalone, account, rent,
            transaction_type=TransactionType.INCOME,
            transaction_date=date(2024, 1, 20),
        )
        actor = actor_for(tenants.standalone)

        by_type = scope.visible_transactions(
            actor, TransactionFilter(transaction_type=TransactionType.INCOME)
        )
        assert by_type.items == (income,)

        by_window = scope.visible_transactions(
            actor, TransactionFilter(start_date=date(2024, 1, 10), end_date=date(2024, 1, 31))
        )
        assert by_window.items == (income,)

        by_category = scope.visible_transactions(actor, TransactionFilter(category_id=food.id))
        assert by_category.total == 1


class TestVisibleRecords:
    def test_default_categories_visible_to_everyone(
        self, scope, tenants, make_category, actor_for
    ):
        default = make_category(None, "Salary", is_default=True)
        for user in (tenants.standalone, tenants.member_a, tenants.admin_user):
            assert default in scope.visible_categories(actor_for(user))

    def test_categories_sorted_by_name(self, scope, tenants, make_category, actor_for):
        make_category(tenants.standalone, "zoo")
        make_category(None, "Alpha", is_default=True)
        make_category(tenants.standalone, "beta")
        names = [c.name for c in scope.visible_categories(actor_for(tenants.standalone))]
        assert names == sorted(names, key=str.lower)

    def test_inactive_accounts_hidden(self, scope, tenants, make_account, actor_for):
        active = make_account(tenants.standalone, name="Open")
        closed = make_account(tenants.standalone, name="Closed", is_active=False)
        accounts = scope.visible_accounts(actor_for(tenants.standalone))
        assert active in accounts
        assert closed not in accounts

    def test_inactive_budgets_hidden(self, session, scope, tenants, actor_for):
        kept = Budget(
            name="Food", amount=Decimal("100.00"), start_date=date(2024, 1, 1),
            end_date=date(2024, 1, 31), user_id=tenants.standalone.id, is_active=True,
        )
        retired = Budget(
            name="Old", amount=Decimal("100.00"), start_date=date(2023, 1, 1),
            end_date=date(2023, 1, 31), user_id=tenants.standalone.id, is_active=False,
        )
        session.add_all([kept, retired])
        session.flush()

        assert scope.visible_budgets(actor_for(tenants.standalone)) == [kept]
