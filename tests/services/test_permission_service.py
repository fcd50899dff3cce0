"""
Tests for PermissionService.

Covers:
- View verdicts, including default categories and the approval path
- Mutate verdicts: owner of record, group admin, Owner, peers, outsiders
- Not-found indistinguishability for out-of-scope records
- The creation gate for group members
- End to end: an admin's group member edits versus a peer's edits
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from ledger_kernel.domain.dtos import TransactionChanges
from ledger_kernel.exceptions import (
    DefaultCategoryImmutableError,
    GroupMemberCreationDeniedError,
    MutationDeniedError,
    RecordNotFoundError,
)
from ledger_kernel.models import Account, Transaction, UserRole
from ledger_kernel.selectors.scope_selector import ScopeSelector
from ledger_kernel.services.admin_service import AdminService
from ledger_kernel.services.permission_service import PermissionService
from ledger_kernel.services.transaction_service import TransactionService


@pytest.fixture
def permissions(session):
    return PermissionService(session, ScopeSelector(session))


@pytest.fixture
def member_txn(tenants, make_account, make_category, make_transaction):
    account = make_account(tenants.member_a)
    category = make_category(tenants.member_a)
    return make_transaction(tenants.member_a, account, category, admin=tenants.admin)


class TestCanView:
    def test_record_owner_sees_it(self, permissions, tenants, member_txn, actor_for):
        assert permissions.can_view(actor_for(tenants.member_a), member_txn)

    def test_peer_sees_it(self, permissions, tenants, member_txn, actor_for):
        assert permissions.can_view(actor_for(tenants.member_b), member_txn)

    def test_outsider_does_not(self, permissions, tenants, member_txn, actor_for):
        assert not permissions.can_view(actor_for(tenants.standalone), member_txn)
        assert not permissions.can_view(actor_for(tenants.other_admin_user), member_txn)

    def test_default_category_visible(self, permissions, tenants, make_category, actor_for):
        default = make_category(None, "Other", is_default=True)
        assert permissions.can_view(actor_for(tenants.standalone), default)

    def test_missing_and_hidden_fail_identically(
        self, session, permissions, tenants, member_txn, actor_for
    ):
        actor = actor_for(tenants.standalone)
        missing_id = uuid4()
        with pytest.raises(RecordNotFoundError) as hidden:
            permissions.load_visible(actor, Transaction, member_txn.id)
        with pytest.raises(RecordNotFoundError) as missing:
            permissions.load_visible(actor, Transaction, missing_id)
        assert hidden.value.code == missing.value.code
        assert type(hidden.value) is type(missing.value)


class TestCanMutate:
    def test_record_owner_allowed(self, permissions, tenants, member_txn, actor_for):
        assert permissions.can_mutate(actor_for(tenants.member_a), member_txn)

    def test_group_admin_allowed(self, permissions, tenants, member_txn, actor_for):
        assert permissions.can_mutate(actor_for(tenants.admin_user), member_txn)

    def test_owner_allowed(self, permissions, tenants, member_txn, actor_for):
        assert permissions.can_mutate(actor_for(tenants.owner), member_txn)

    def test_peer_denied_despite_visibility(self, permissions, tenants, member_txn, actor_for):
        verdict = permissions.can_mutate(actor_for(tenants.member_b), member_txn)
        assert not verdict
        assert verdict.reason

    def test_admin_cannot_mutate_direct_report_records(
        self, permissions, tenants, make_account, actor_for
    ):
        """Mutate rights flow through group ownership only."""
        account = make_account(tenants.direct_report)
        assert not permissions.can_mutate(actor_for(tenants.admin_user), account)

    def test_peer_gets_mutation_denied(self, permissions, tenants, member_txn, actor_for):
        with pytest.raises(MutationDeniedError):
            permissions.require_mutable(actor_for(tenants.member_b), member_txn)

    def test_outsider_gets_not_found(self, permissions, tenants, member_txn, actor_for):
        with pytest.raises(RecordNotFoundError):
            permissions.require_mutable(actor_for(tenants.standalone), member_txn)

    def test_default_category_immutable_even_for_owner(
        self, permissions, tenants, make_category, actor_for
    ):
        default = make_category(None, "Travel", is_default=True)
        with pytest.raises(DefaultCategoryImmutableError):
            permissions.require_mutable(actor_for(tenants.owner), default)

    def test_orphan_mutable_only_by_owner(
        self, session, permissions, tenants, make_account, actor_for
    ):
        account = make_account(None)
        assert permissions.can_mutate(actor_for(tenants.owner), account)
        assert not permissions.can_mutate(actor_for(tenants.admin_user), account)

    def test_denial_logged(self, permissions, tenants, member_txn, actor_for, captured_logs):
        with pytest.raises(MutationDeniedError):
            permissions.require_mutable(actor_for(tenants.member_b), member_txn)
        denied = [r for r in captured_logs() if r["message"] == "mutation_denied"]
        assert denied and denied[0]["actor_kind"] == "group_member"


class TestCheckCanCreate:
    def test_group_member_denied(self, permissions, tenants):
        with pytest.raises(GroupMemberCreationDeniedError):
            permissions.check_can_create(tenants.member_a, "Account")

    @pytest.mark.parametrize("kind", ["Account", "Budget", "Category", "RecurringTransaction"])
    def test_gated_kinds(self, permissions, tenants, kind):
        with pytest.raises(GroupMemberCreationDeniedError):
            permissions.check_can_create(tenants.member_b, kind)

    def test_transactions_not_gated(self, permissions, tenants):
        permissions.check_can_create(tenants.member_a, "Transaction")

    def test_standalone_and_admin_allowed(self, permissions, tenants):
        permissions.check_can_create(tenants.standalone, "Account")
        permissions.check_can_create(tenants.direct_report, "Budget")
        permissions.check_can_create(tenants.admin_user, "Category")
        permissions.check_can_create(tenants.owner, "RecurringTransaction")

    def test_member_matching_group_admin_allowed(
        self, session, permissions, make_user, make_admin_row, make_group
    ):
        """A USER whose own Admin row owns its group is treated as the group's admin."""
        lead = make_user("lead")
        lead_admin = make_admin_row(lead)
        group = make_group(lead_admin, "Team")
        lead.user_group_id = group.id
        session.flush()

        permissions.check_can_create(lead, "Account")


class TestGroupEditWalkthrough:
    """Owner creates an admin, the admin builds a group, members try to edit."""

    def test_peer_denied_outsider_hidden_admin_allowed(
        self, session, clock, make_user, make_category, actor_for
    ):
        owner = make_user("boss", role=UserRole.OWNER)
        admin_service = AdminService(session, clock)

        x_user = admin_service.create_admin_user(
            actor_for(owner), username="xavier", email="x@example.com", password="pw-x"
        )
        x_actor = actor_for(x_user)
        group = admin_service.create_user_group(x_actor, name="G")
        u_user = admin_service.create_user_for_admin(
            x_actor, username="ursula", email="u@example.com", password="pw-u"
        )
        peer = admin_service.create_user_for_admin(
            x_actor, username="peter", email="p@example.com", password="pw-p"
        )
        admin_service.assign_user_to_group(x_actor, u_user.id, group.id)
        admin_service.assign_user_to_group(x_actor, peer.id, group.id)
        outsider = make_user("olga")

        account = Account(name="Wallet", balance=Decimal("100.00"), user_id=u_user.id)
        session.add(account)
        session.flush()
        category = make_category(None, "General", is_default=True)

        transactions = TransactionService(session, clock)
        txn = transactions.create(
            actor_for(u_user),
            amount="25.00",
            transaction_type="EXPENSE",
            account_id=account.id,
            category_id=category.id,
            description="Groceries",
        )
        edit = TransactionChanges(description="Edited")

        with pytest.raises(MutationDeniedError):
            transactions.update(actor_for(peer), txn.id, edit)
        with pytest.raises(RecordNotFoundError):
            transactions.update(actor_for(outsider), txn.id, edit)

        updated = transactions.update(x_actor, txn.id, edit)
        assert updated.description == "Edited"
