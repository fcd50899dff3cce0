"""
Lifecycle -- per-entity deletion policy.

Accounts, budgets and recurring schedules are retired by flipping a flag so
historical transactions keep their references.  Categories, transactions and
users are removed outright.  Services consult this table instead of each
deciding on its own.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any


class DeleteMode(str, Enum):
    SOFT = "soft"
    HARD = "hard"


@dataclass(frozen=True)
class LifecyclePolicy:
    kind: str
    mode: DeleteMode
    # Attribute flipped on soft delete, and the value it is set to
    flag: str | None = None
    retired_value: Any = None


LIFECYCLE_POLICIES: dict[str, LifecyclePolicy] = {
    "Account": LifecyclePolicy("Account", DeleteMode.SOFT, "is_active", False),
    "Budget": LifecyclePolicy("Budget", DeleteMode.SOFT, "is_active", False),
    "RecurringTransaction": LifecyclePolicy(
        "RecurringTransaction", DeleteMode.SOFT, "status", "INACTIVE"
    ),
    "Category": LifecyclePolicy("Category", DeleteMode.HARD),
    "Transaction": LifecyclePolicy("Transaction", DeleteMode.HARD),
    "User": LifecyclePolicy("User", DeleteMode.HARD),
}


def policy_for(kind: str) -> LifecyclePolicy:
    try:
        return LIFECYCLE_POLICIES[kind]
    except KeyError:
        raise ValueError(f"No lifecycle policy for {kind}") from None
