"""
Pytest fixtures for the ledger test suite.

Provides:
- An in-memory SQLite engine shared by the session; every test runs inside
  an outer transaction that is rolled back afterwards
- A DeterministicClock
- Factories for the identity graph (users, admins, groups) and for
  accounts, categories and raw transaction rows
- A prebuilt tenant graph covering every actor variant
- captured_logs for asserting on structured log events
"""

import json
import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from io import StringIO

import pytest
from sqlalchemy.orm import Session
from werkzeug.security import generate_password_hash

from ledger_kernel.db.engine import build_engine, create_tables
from ledger_kernel.domain.actor import GroupAdminRecords
from ledger_kernel.domain.clock import DeterministicClock
from ledger_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from ledger_kernel.models import (
    Account,
    AccountType,
    Admin,
    Category,
    Transaction,
    TransactionType,
    User,
    UserGroup,
    UserRole,
)
from ledger_kernel.selectors.scope_selector import ScopeSelector

TEST_PASSWORD = "correct-horse"

# Hashed once; a cheap method keeps user factories fast
_TEST_PASSWORD_HASH = generate_password_hash(TEST_PASSWORD, method="pbkdf2:sha256:1000")


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture ledger_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, ...):
            ...
            logs = captured_logs()
            assert any(r["message"] == "transaction_posted" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("ledger_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Database fixtures
# =============================================================================


@pytest.fixture(scope="session")
def engine():
    engine = build_engine("sqlite://")
    create_tables(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def connection(engine):
    """A connection holding an outer transaction that is always rolled back."""
    conn = engine.connect()
    outer = conn.begin()
    yield conn
    outer.rollback()
    conn.close()


@pytest.fixture
def session_factory(connection):
    """Sessions whose commit only releases a SAVEPOINT on the test connection."""

    def _factory() -> Session:
        return Session(
            bind=connection,
            join_transaction_mode="create_savepoint",
            expire_on_commit=False,
        )

    return _factory


@pytest.fixture
def session(session_factory) -> Session:
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def clock() -> DeterministicClock:
    return DeterministicClock()


# =============================================================================
# Factories
# =============================================================================


@pytest.fixture
def make_user(session):
    counter = {"n": 0}

    def _make(
        username: str | None = None,
        role: UserRole = UserRole.USER,
        admin: Admin | None = None,
        group: UserGroup | None = None,
        blocked: bool = False,
        email: str | None = None,
    ) -> User:
        counter["n"] += 1
        username = username or f"user{counter['n']}"
        user = User(
            username=username,
            email=email or f"{username}@example.com",
            password_hash=_TEST_PASSWORD_HASH,
            first_name=username.capitalize(),
            role=role,
            blocked=blocked,
            admin_id=admin.id if admin else None,
            user_group_id=group.id if group else None,
        )
        session.add(user)
        session.flush()
        return user

    return _make


@pytest.fixture
def make_admin_row(session):
    def _make(user: User, owner: User | None = None) -> Admin:
        admin = Admin(
            username=user.username,
            email=user.email,
            first_name=user.first_name,
            is_active=True,
            owner_id=owner.id if owner else user.id,
        )
        session.add(admin)
        session.flush()
        return admin

    return _make


@pytest.fixture
def make_group(session):
    def _make(admin: Admin, name: str = "Household") -> UserGroup:
        group = UserGroup(name=name, admin_id=admin.id)
        session.add(group)
        session.flush()
        return group

    return _make


@pytest.fixture
def make_account(session):
    def _make(
        user: User | None,
        balance: str | Decimal = "100.00",
        name: str = "Checking",
        is_active: bool = True,
    ) -> Account:
        account = Account(
            name=name,
            account_type=AccountType.CHECKING,
            balance=Decimal(balance),
            is_active=is_active,
            user_id=user.id if user else None,
        )
        session.add(account)
        session.flush()
        return account

    return _make


@pytest.fixture
def make_category(session):
    def _make(
        user: User | None = None,
        name: str = "Groceries",
        is_default: bool = False,
    ) -> Category:
        category = Category(
            name=name,
            is_default=is_default,
            user_id=user.id if user else None,
        )
        session.add(category)
        session.flush()
        return category

    return _make


@pytest.fixture
def make_transaction(session):
    """Insert a transaction row directly, without touching balances."""

    def _make(
        user: User,
        account: Account,
        category: Category,
        amount: str | Decimal = "10.00",
        transaction_type: TransactionType = TransactionType.EXPENSE,
        transaction_date: date = date(2024, 1, 10),
        admin: Admin | None = None,
        description: str = "Test transaction",
    ) -> Transaction:
        transaction = Transaction(
            amount=Decimal(amount),
            transaction_type=transaction_type,
            transaction_date=transaction_date,
            description=description,
            is_approved=False,
            user_id=user.id,
            account_id=account.id,
            category_id=category.id,
            admin_id=admin.id if admin else None,
        )
        session.add(transaction)
        session.flush()
        return transaction

    return _make


@pytest.fixture
def actor_for(session):
    """Resolve a User into its Actor variant."""

    def _resolve(user: User, policy: GroupAdminRecords = GroupAdminRecords.EXCLUDE):
        return ScopeSelector(session, policy).resolve_actor(user)

    return _resolve


@dataclass
class Tenants:
    owner: User
    admin_user: User
    admin: Admin
    group: UserGroup
    member_a: User
    member_b: User
    direct_report: User
    standalone: User
    other_admin_user: User
    other_admin: Admin
    other_report: User


@pytest.fixture
def tenants(make_user, make_admin_row, make_group) -> Tenants:
    """
    A small deployment:

        owner (OWNER)
        alice (ADMIN) -> Admin row, owned by owner
            group "Household": member_a, member_b
            direct report: dave
        bob (ADMIN)   -> Admin row, owned by owner
            direct report: erin
        sam (USER, no admin, no group)
    """
    owner = make_user("owner", role=UserRole.OWNER)
    admin_user = make_user("alice", role=UserRole.ADMIN)
    admin = make_admin_row(admin_user, owner=owner)
    group = make_group(admin, "Household")
    member_a = make_user("mia", group=group)
    member_b = make_user("max", group=group)
    direct_report = make_user("dave", admin=admin)
    standalone = make_user("sam")
    other_admin_user = make_user("bob", role=UserRole.ADMIN)
    other_admin = make_admin_row(other_admin_user, owner=owner)
    other_report = make_user("erin", admin=other_admin)
    return Tenants(
        owner=owner,
        admin_user=admin_user,
        admin=admin,
        group=group,
        member_a=member_a,
        member_b=member_b,
        direct_report=direct_report,
        standalone=standalone,
        other_admin_user=other_admin_user,
        other_admin=other_admin,
        other_report=other_report,
    )
