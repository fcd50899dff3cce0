"""
Write-side services.

Every service takes the caller's Session (and optionally a Clock and a
shared ScopeSelector), flushes, and never commits.
"""

from ledger_kernel.services.account_service import AccountService
from ledger_kernel.services.admin_service import AdminProvisioningService, AdminService
from ledger_kernel.services.auth_service import AuthService
from ledger_kernel.services.bootstrap_service import BootstrapService
from ledger_kernel.services.budget_service import BudgetService
from ledger_kernel.services.category_service import CategoryService
from ledger_kernel.services.ledger_service import LedgerService, normalize_amount
from ledger_kernel.services.notification_service import (
    LoggingMailSender,
    MailSender,
    NotificationService,
)
from ledger_kernel.services.password_reset_service import (
    RESET_REQUESTED_MESSAGE,
    PasswordResetService,
)
from ledger_kernel.services.permission_service import PermissionService
from ledger_kernel.services.recurring_service import RecurringTransactionService
from ledger_kernel.services.transaction_service import TransactionService

__all__ = [
    "AccountService",
    "AdminProvisioningService",
    "AdminService",
    "AuthService",
    "BootstrapService",
    "BudgetService",
    "CategoryService",
    "LedgerService",
    "LoggingMailSender",
    "MailSender",
    "NotificationService",
    "PasswordResetService",
    "PermissionService",
    "RESET_REQUESTED_MESSAGE",
    "RecurringTransactionService",
    "TransactionService",
    "normalize_amount",
]
