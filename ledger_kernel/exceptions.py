"""
Typed Exception Hierarchy for the Ledger Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers at the request boundary must turn kernel failures into stable,
user-visible responses without parsing message strings. Every error therefore:
  1. Has a TYPED exception class (catch by type, not message)
  2. Has a CODE attribute (machine-readable, API-safe)
  3. Carries structured DATA (not just a message string)
  4. Has a `user_message` that is safe to show to any tenant

Example:
    try:
        ledger.post(txn)
    except InsufficientFundsError as e:
        api_response(code=e.code, available=e.available)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    LedgerKernelError (base)
    |
    +-- NotFoundError
    |   +-- RecordNotFoundError
    |
    +-- AccessDeniedError
    |   +-- MutationDeniedError
    |   +-- GroupMemberCreationDeniedError
    |   +-- DefaultCategoryImmutableError
    |   +-- OwnerOnlyError
    |   +-- AdminOnlyError
    |   +-- RoleChangeDeniedError
    |   +-- BlockDeniedError
    |
    +-- ValidationError
    |   +-- InsufficientFundsError
    |   +-- InvalidAmountError
    |   +-- AccountInactiveError
    |   +-- DuplicateCategoryError
    |   +-- CategoryInUseError
    |   +-- InvalidBudgetError
    |   +-- DuplicateUserError
    |   +-- RoleAlreadySetError
    |   +-- AlreadyBlockedError
    |   +-- NotBlockedError
    |   +-- ScheduleInactiveError
    |   +-- ScheduleEndedError
    |   +-- InvalidResetTokenError
    |   +-- ResetTokenUsedError
    |   +-- ResetTokenExpiredError
    |
    +-- AuthenticationError
    |   +-- BadCredentialsError
    |   +-- AccountDisabledError
    |
    +-- ConfigurationError
        +-- UnknownRecurrenceTypeError

===============================================================================
PROPAGATION
===============================================================================

NotFoundError, AccessDeniedError, ValidationError and AuthenticationError are
recovered at the request boundary. ConfigurationError signals a programming
error and propagates. The recurring sweep recovers every LedgerKernelError per
schedule so one broken schedule never aborts the batch.

A record that exists but lies outside the actor's scope raises exactly the
same RecordNotFoundError as a missing row. Neither `str(e)` nor
`e.user_message` of a NotFoundError may reveal which case occurred.
"""

from decimal import Decimal


class LedgerKernelError(Exception):
    """
    Base exception for all ledger kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "LEDGER_KERNEL_ERROR"
    user_message: str = "The request could not be completed."


# Not found


class NotFoundError(LedgerKernelError):
    """Base exception for missing or out-of-scope records."""

    code: str = "NOT_FOUND"
    user_message: str = "The requested record was not found."


class RecordNotFoundError(NotFoundError):
    """Record is absent or not visible to the actor (indistinguishable)."""

    code: str = "RECORD_NOT_FOUND"

    def __init__(self, kind: str, record_id: object):
        self.kind = kind
        self.record_id = str(record_id)
        super().__init__(f"{kind} not found: {record_id}")

    @property
    def user_message(self) -> str:  # type: ignore[override]
        return f"{self.kind} not found."


# Access denied


class AccessDeniedError(LedgerKernelError):
    """Base exception for authorization failures on visible records."""

    code: str = "ACCESS_DENIED"
    user_message: str = "You are not allowed to perform this action."


class MutationDeniedError(AccessDeniedError):
    """Record is visible but the actor may not update or delete it."""

    code: str = "MUTATION_DENIED"

    def __init__(self, kind: str, record_id: object, reason: str):
        self.kind = kind
        self.record_id = str(record_id)
        self.reason = reason
        super().__init__(
            f"Mutation of {kind} {record_id} denied: {reason}"
        )


class GroupMemberCreationDeniedError(AccessDeniedError):
    """Plain group member attempted to create a group-scoped record."""

    code: str = "GROUP_MEMBER_CREATION_DENIED"
    user_message: str = (
        "Group members cannot create this record. Ask your group admin."
    )

    def __init__(self, user_id: object, kind: str):
        self.user_id = str(user_id)
        self.kind = kind
        super().__init__(
            f"User {user_id} is a group member and may not create {kind}"
        )


class DefaultCategoryImmutableError(AccessDeniedError):
    """Default categories are shared and read-only."""

    code: str = "DEFAULT_CATEGORY_IMMUTABLE"
    user_message: str = "Default categories cannot be modified."

    def __init__(self, category_id: object):
        self.category_id = str(category_id)
        super().__init__(f"Default category {category_id} is read-only")


class OwnerOnlyError(AccessDeniedError):
    """Operation is reserved for the Owner."""

    code: str = "OWNER_ONLY"
    user_message: str = "Only the owner can perform this action."

    def __init__(self, operation: str, actor_id: object):
        self.operation = operation
        self.actor_id = str(actor_id)
        super().__init__(
            f"Operation '{operation}' requires the owner role (actor {actor_id})"
        )


class AdminOnlyError(AccessDeniedError):
    """Operation requires the ADMIN or OWNER role."""

    code: str = "ADMIN_ONLY"
    user_message: str = "Only administrators can perform this action."

    def __init__(self, operation: str, actor_id: object):
        self.operation = operation
        self.actor_id = str(actor_id)
        super().__init__(
            f"Operation '{operation}' requires an admin role (actor {actor_id})"
        )


class RoleChangeDeniedError(AccessDeniedError):
    """Role change target is not allowed (e.g. the Owner)."""

    code: str = "ROLE_CHANGE_DENIED"
    user_message: str = "This role change is not allowed."

    def __init__(self, user_id: object, reason: str):
        self.user_id = str(user_id)
        self.reason = reason
        super().__init__(f"Role change for user {user_id} denied: {reason}")


class BlockDeniedError(AccessDeniedError):
    """Block/unblock target is not a blockable USER or not managed by actor."""

    code: str = "BLOCK_DENIED"
    user_message: str = "This user cannot be blocked or unblocked."

    def __init__(self, user_id: object, reason: str):
        self.user_id = str(user_id)
        self.reason = reason
        super().__init__(f"Block operation on user {user_id} denied: {reason}")


# Validation


class ValidationError(LedgerKernelError):
    """Base exception for rejected input or state transitions."""

    code: str = "VALIDATION_ERROR"
    user_message: str = "The request is invalid."


class InsufficientFundsError(ValidationError):
    """EXPENSE would take the account balance below zero."""

    code: str = "INSUFFICIENT_FUNDS"

    def __init__(self, account_id: object, available: Decimal, requested: Decimal):
        self.account_id = str(account_id)
        self.available = available
        self.requested = requested
        super().__init__(
            f"Insufficient funds in account {account_id}: "
            f"available {available}, requested {requested}"
        )

    @property
    def user_message(self) -> str:  # type: ignore[override]
        return f"Insufficient balance. Available balance: {self.available}"


class InvalidAmountError(ValidationError):
    """Amount is missing, non-positive or not a number."""

    code: str = "INVALID_AMOUNT"
    user_message: str = "Amount must be greater than zero."

    def __init__(self, amount: object):
        self.amount = str(amount)
        super().__init__(f"Invalid amount: {amount}")


class AccountInactiveError(ValidationError):
    """Account has been soft-deleted and no longer accepts postings."""

    code: str = "ACCOUNT_INACTIVE"
    user_message: str = "The account is inactive."

    def __init__(self, account_id: object):
        self.account_id = str(account_id)
        super().__init__(f"Account is inactive: {account_id}")


class DuplicateCategoryError(ValidationError):
    """Owner already has a category with this name."""

    code: str = "DUPLICATE_CATEGORY"
    user_message: str = "A category with this name already exists."

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Category already exists: {name}")


class CategoryInUseError(ValidationError):
    """Category is still referenced by transactions, budgets or schedules."""

    code: str = "CATEGORY_IN_USE"
    user_message: str = "This category is still in use and cannot be deleted."

    def __init__(self, category_id: object, reference_count: int):
        self.category_id = str(category_id)
        self.reference_count = reference_count
        super().__init__(
            f"Category {category_id} is referenced by {reference_count} record(s)"
        )


class InvalidBudgetError(ValidationError):
    """Budget dates or alert threshold are out of range."""

    code: str = "INVALID_BUDGET"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid budget {field}: {reason}")

    @property
    def user_message(self) -> str:  # type: ignore[override]
        return f"Invalid budget {self.field}: {self.reason}."


class DuplicateUserError(ValidationError):
    """Username or email is already taken."""

    code: str = "DUPLICATE_USER"

    def __init__(self, field: str, value: str):
        self.field = field
        self.value = value
        super().__init__(f"User with {field} '{value}' already exists")

    @property
    def user_message(self) -> str:  # type: ignore[override]
        return f"{self.field.capitalize()} is already taken."


class RoleAlreadySetError(ValidationError):
    """Requested role equals the current role."""

    code: str = "ROLE_ALREADY_SET"
    user_message: str = "The user already has this role."

    def __init__(self, user_id: object, role: str):
        self.user_id = str(user_id)
        self.role = role
        super().__init__(f"User {user_id} already has role {role}")


class AlreadyBlockedError(ValidationError):
    """Block requested on a user that is already blocked."""

    code: str = "ALREADY_BLOCKED"
    user_message: str = "The user is already blocked."

    def __init__(self, user_id: object):
        self.user_id = str(user_id)
        super().__init__(f"User {user_id} is already blocked")


class NotBlockedError(ValidationError):
    """Unblock requested on a user that is not blocked."""

    code: str = "NOT_BLOCKED"
    user_message: str = "The user is not blocked."

    def __init__(self, user_id: object):
        self.user_id = str(user_id)
        super().__init__(f"User {user_id} is not blocked")


class ScheduleInactiveError(ValidationError):
    """Recurring schedule is not ACTIVE."""

    code: str = "SCHEDULE_INACTIVE"
    user_message: str = "The recurring transaction is not active."

    def __init__(self, schedule_id: object, status: str):
        self.schedule_id = str(schedule_id)
        self.status = status
        super().__init__(f"Recurring schedule {schedule_id} is {status}")


class ScheduleEndedError(ValidationError):
    """Recurring schedule's end date has passed."""

    code: str = "SCHEDULE_ENDED"
    user_message: str = "The recurring transaction has ended."

    def __init__(self, schedule_id: object, end_date: object):
        self.schedule_id = str(schedule_id)
        self.end_date = str(end_date)
        super().__init__(
            f"Recurring schedule {schedule_id} ended on {end_date}"
        )


class InvalidResetTokenError(ValidationError):
    """Password reset token does not exist."""

    code: str = "INVALID_RESET_TOKEN"
    user_message: str = "Invalid or expired reset token."

    def __init__(self) -> None:
        super().__init__("Password reset token not found")


class ResetTokenUsedError(ValidationError):
    """Password reset token was already consumed."""

    code: str = "RESET_TOKEN_USED"
    user_message: str = "This reset token has already been used."

    def __init__(self, token_id: object):
        self.token_id = str(token_id)
        super().__init__(f"Password reset token {token_id} already used")


class ResetTokenExpiredError(ValidationError):
    """Password reset token is past its expiry."""

    code: str = "RESET_TOKEN_EXPIRED"
    user_message: str = "This reset token has expired."

    def __init__(self, token_id: object, expired_at: object):
        self.token_id = str(token_id)
        self.expired_at = str(expired_at)
        super().__init__(
            f"Password reset token {token_id} expired at {expired_at}"
        )


# Authentication


class AuthenticationError(LedgerKernelError):
    """Base exception for failed sign-in."""

    code: str = "AUTHENTICATION_ERROR"
    user_message: str = "Authentication failed."


class BadCredentialsError(AuthenticationError):
    """Unknown username or wrong password (indistinguishable)."""

    code: str = "BAD_CREDENTIALS"
    user_message: str = "Invalid username or password."

    def __init__(self) -> None:
        super().__init__("Bad credentials")


class AccountDisabledError(AuthenticationError):
    """Correct credentials for a blocked USER."""

    code: str = "ACCOUNT_DISABLED"
    user_message: str = "Your account has been disabled."

    def __init__(self, user_id: object):
        self.user_id = str(user_id)
        super().__init__(f"User {user_id} is blocked")


# Configuration (fatal)


class ConfigurationError(LedgerKernelError):
    """Unreachable state indicating a programming or deployment error."""

    code: str = "CONFIGURATION_ERROR"
    user_message: str = "Internal configuration error."


class UnknownRecurrenceTypeError(ConfigurationError):
    """Recurrence type is outside the closed enum."""

    code: str = "UNKNOWN_RECURRENCE_TYPE"

    def __init__(self, recurrence_type: object):
        self.recurrence_type = str(recurrence_type)
        super().__init__(f"Unknown recurrence type: {recurrence_type}")
