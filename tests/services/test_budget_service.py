"""Tests for BudgetService."""

from datetime import date
from decimal import Decimal

import pytest

from ledger_kernel.exceptions import (
    InvalidAmountError,
    InvalidBudgetError,
    RecordNotFoundError,
)
from ledger_kernel.services.budget_service import BudgetService


@pytest.fixture
def service(session, clock):
    return BudgetService(session, clock)


def _create(service, actor, **overrides):
    fields = {
        "name": "Groceries",
        "amount": "300",
        "start_date": date(2024, 1, 1),
        "end_date": date(2024, 1, 31),
    }
    fields.update(overrides)
    return service.create(actor, **fields)


class TestBudgetService:
    def test_create_defaults(self, service, tenants, actor_for):
        budget = _create(service, actor_for(tenants.standalone))
        assert budget.amount == Decimal("300.00")
        assert budget.alert_threshold == 80
        assert budget.category_id is None
        assert budget.is_active

    def test_end_before_start(self, service, tenants, actor_for):
        with pytest.raises(InvalidBudgetError) as exc_info:
            _create(service, actor_for(tenants.standalone), end_date=date(2023, 12, 31))
        assert exc_info.value.field == "end_date"

    @pytest.mark.parametrize("threshold", [-1, 101])
    def test_threshold_range(self, service, tenants, actor_for, threshold):
        with pytest.raises(InvalidBudgetError):
            _create(service, actor_for(tenants.standalone), alert_threshold=threshold)

    def test_zero_amount(self, service, tenants, actor_for):
        with pytest.raises(InvalidAmountError):
            _create(service, actor_for(tenants.standalone), amount="0")

    def test_invisible_category(self, service, tenants, make_category, actor_for):
        foreign = make_category(tenants.other_report, "Theirs")
        with pytest.raises(RecordNotFoundError):
            _create(service, actor_for(tenants.standalone), category_id=foreign.id)

    def test_update_validates_merged_range(self, service, tenants, actor_for):
        actor = actor_for(tenants.standalone)
        budget = _create(service, actor)
        with pytest.raises(InvalidBudgetError):
            service.update(actor, budget.id, start_date=date(2024, 2, 1))
        service.update(actor, budget.id, amount="450", end_date=date(2024, 3, 31))
        assert budget.amount == Decimal("450.00")
        assert budget.end_date == date(2024, 3, 31)

    def test_delete_is_soft(self, service, tenants, actor_for):
        actor = actor_for(tenants.standalone)
        budget = _create(service, actor)
        service.delete(actor, budget.id)
        assert budget.is_active is False
        assert service.list(actor) == []
