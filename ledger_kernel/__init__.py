"""
Ledger Kernel - multi-tenant personal-finance ledger core.

Covers the parts every feature depends on:
- Hierarchical data scoping (Owner -> Admin -> UserGroup -> User)
- Authorization verdicts for view and mutate
- Running account balances kept consistent under post/revert/repost
- Recurring schedules materialized into ledger transactions
"""

__version__ = "0.1.0"
