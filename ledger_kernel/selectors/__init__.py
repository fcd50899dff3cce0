"""Read side: scope resolution and analytics."""

from ledger_kernel.selectors.analytics_selector import AnalyticsSelector
from ledger_kernel.selectors.scope_selector import ScopeSelector

__all__ = ["AnalyticsSelector", "ScopeSelector"]
