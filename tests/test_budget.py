"""
Unit tests for the per-person budget check.
"""

from decimal import Decimal

import pytest

from modules.budget import BudgetOk, BudgetValidator, BudgetViolation
from modules.money import format_money, parse_money


@pytest.fixture
def validator():
    return BudgetValidator(ceiling=Decimal("25"))


class TestBudgetValidator:
    """Test violation detection and the excess formula."""

    def test_single_participant_over_ceiling(self, validator):
        result = validator.validate({"a": Decimal("30.00")})

        assert isinstance(result, BudgetViolation)
        assert result.excess_amount == Decimal("5.00")
        assert result.offending_participant == "a"
        assert result.offending_amount == Decimal("30.00")

    def test_at_ceiling_is_ok(self, validator):
        result = validator.validate({"a": Decimal("25.00"), "b": Decimal("10.00")})

        assert isinstance(result, BudgetOk)
        assert result
        assert result.total == Decimal("35.00")

    def test_excess_uses_total_over_everyone(self, validator):
        result = validator.validate({"a": Decimal("40.00"), "b": Decimal("10.00")})

        # 50 - 2 * 25
        assert result.excess_amount == Decimal("0.00")
        assert result.offending_participant == "a"
        assert not result

    def test_tie_names_first_in_entry_order(self, validator):
        result = validator.validate({"b": Decimal("30.00"), "a": Decimal("30.00")})

        assert result.offending_participant == "b"
        assert result.excess_amount == Decimal("10.00")

    def test_empty_allocations_are_ok(self, validator):
        assert isinstance(validator.validate({}), BudgetOk)

    def test_describe(self, validator):
        result = validator.validate({"a": Decimal("30")})

        assert result.describe("Alice Adams") == (
            "Order exceeded budget by $5.00. Alice Adams's order is the highest at $30.00."
        )
        assert "a's order" in result.describe()


class TestMoney:

    @pytest.mark.parametrize("text, expected", [
        ("$12.50", Decimal("12.50")),
        ("12.5", Decimal("12.50")),
        ("USD 1,024.00", Decimal("1024.00")),
    ])
    def test_parse_money(self, text, expected):
        assert parse_money(text) == expected

    def test_parse_money_without_amount(self):
        with pytest.raises(ValueError):
            parse_money("Free")

    def test_format_money(self):
        assert format_money(Decimal("5")) == "$5.00"
