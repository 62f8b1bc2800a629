"""
Per-person budget validation.

After the participants are entered in the cost-split UI, the ordering
website computes each participant's allocation. A batch is over budget
when any single allocation exceeds the per-person ceiling.

A violation reports:
    excess_amount        = sum(allocations) - participant_count * ceiling
    offending_participant = participant with the highest allocation
                            (first one encountered on ties)

Budget violations are not retried: the same menu choices would produce
the same allocations.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Mapping, Optional, Union

from .money import format_money, to_money


DEFAULT_CEILING = Decimal("25")


@dataclass(frozen=True)
class BudgetOk:
    """All allocations are at or below the ceiling."""

    total: Decimal

    def __bool__(self) -> bool:
        return True


@dataclass(frozen=True)
class BudgetViolation:
    """At least one allocation is above the ceiling."""

    excess_amount: Decimal
    offending_participant: str
    offending_amount: Decimal
    total: Decimal
    ceiling: Decimal

    def __bool__(self) -> bool:
        return False

    def describe(self, display_name: Optional[str] = None) -> str:
        """Human-readable failure reason for the notification."""
        who = display_name or self.offending_participant
        return (
            f"Order exceeded budget by {format_money(self.excess_amount)}. "
            f"{who}'s order is the highest at {format_money(self.offending_amount)}."
        )


BudgetCheck = Union[BudgetOk, BudgetViolation]


class BudgetValidator:
    """
    Checks surface-reported allocations against a fixed per-person ceiling.

    Example:
        >>> validator = BudgetValidator(ceiling=Decimal("25"))
        >>> result = validator.validate({"a": Decimal("30.00")})
        >>> result.excess_amount, result.offending_participant
        (Decimal('5.00'), 'a')
    """

    def __init__(self, ceiling: Union[Decimal, float, int, str] = DEFAULT_CEILING):
        self.ceiling = to_money(ceiling)

    def validate(self, allocations: Mapping[str, Decimal]) -> BudgetCheck:
        """
        Validate allocations keyed by participant identity.

        Args:
            allocations: Participant identity -> allocation amount, in entry order

        Returns:
            BudgetOk, or BudgetViolation naming the most expensive participant
        """
        amounts = {identity: to_money(amount) for identity, amount in allocations.items()}
        total = sum(amounts.values(), Decimal("0.00"))

        offender: Optional[str] = None
        highest = Decimal("0.00")
        for identity, amount in amounts.items():
            if offender is None or amount > highest:
                offender, highest = identity, amount

        if offender is None or highest <= self.ceiling:
            return BudgetOk(total=total)

        return BudgetViolation(
            excess_amount=total - len(amounts) * self.ceiling,
            offending_participant=offender,
            offending_amount=highest,
            total=total,
            ceiling=self.ceiling,
        )
