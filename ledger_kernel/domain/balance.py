"""
Balance -- signed effect of a transaction on its account.

INCOME adds its amount, EXPENSE subtracts it.  Reverting a transaction is
applying the opposite type with the same amount, so post followed by revert
is exact: no rounding happens here.
"""

from decimal import Decimal

INCOME = "INCOME"
EXPENSE = "EXPENSE"


def signed_delta(transaction_type, amount: Decimal) -> Decimal:
    if transaction_type == INCOME:
        return amount
    if transaction_type == EXPENSE:
        return -amount
    raise ValueError(f"Unknown transaction type: {transaction_type!r}")


def reversal_delta(transaction_type, amount: Decimal) -> Decimal:
    return -signed_delta(transaction_type, amount)


def is_expense(transaction_type) -> bool:
    return transaction_type == EXPENSE
