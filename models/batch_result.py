"""
Batch and run result models.

A BatchResult is created once per restaurant batch, when the batch either
succeeds or runs out of attempts, and is never modified afterwards.
A RunResult is the ordered list of BatchResults for one automation run;
it is handed to the notification sink and returned to the caller.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class BatchStatus(Enum):
    """
    Terminal status of a restaurant batch.
    """

    SUCCEEDED = "succeeded"
    """Order placed (or simulated in a dry run) and confirmation captured."""

    FAILED = "failed"
    """Order not placed; ``reasons`` says why."""


@dataclass(frozen=True)
class BatchResult:
    """
    Outcome of one restaurant batch.

    A successful result always names exactly one callee, drawn from the
    batch's non-donor participants.
    """

    restaurant: str
    """Restaurant name, as grouped by the order source."""

    status: BatchStatus

    participants: Tuple[str, ...] = ()
    """Non-donor identities of the batch (donors are never displayed)."""

    callee_identity: Optional[str] = None
    """Who receives the delivery call (success only)."""

    confirmation_ref: Optional[str] = None
    """Confirmation artifact reference (success only)."""

    order_amounts: Dict[str, Decimal] = field(default_factory=dict)
    """Subtotal per participant, used for stats recording (success only)."""

    reasons: Tuple[str, ...] = ()
    """Human-readable failure reasons, in the order they occurred."""

    warnings: Tuple[str, ...] = ()
    """Items or options that were skipped because they could not be found."""

    attempts: int = 0
    """Number of pipeline attempts spent on this batch."""

    completed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def successful(self) -> bool:
        return self.status is BatchStatus.SUCCEEDED

    @classmethod
    def create_success(
        cls,
        restaurant: str,
        participants: Tuple[str, ...],
        callee_identity: str,
        confirmation_ref: str,
        order_amounts: Optional[Dict[str, Decimal]] = None,
        warnings: Tuple[str, ...] = (),
        attempts: int = 1,
    ) -> "BatchResult":
        """
        Create the result for a batch that was placed.

        Raises:
            ValueError: If the callee is not one of the participants
        """
        if callee_identity not in participants:
            raise ValueError(f"Callee {callee_identity} is not a non-donor participant of {restaurant}")
        return cls(
            restaurant=restaurant,
            status=BatchStatus.SUCCEEDED,
            participants=tuple(participants),
            callee_identity=callee_identity,
            confirmation_ref=confirmation_ref,
            order_amounts=dict(order_amounts or {}),
            warnings=tuple(warnings),
            attempts=attempts,
        )

    @classmethod
    def create_failed(
        cls,
        restaurant: str,
        participants: Tuple[str, ...],
        reasons: Tuple[str, ...],
        attempts: int = 0,
    ) -> "BatchResult":
        """Create the result for a batch that could not be placed."""
        return cls(
            restaurant=restaurant,
            status=BatchStatus.FAILED,
            participants=tuple(participants),
            reasons=tuple(reasons) or ("Order failed for unknown reason.",),
            attempts=attempts,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-serializable dictionary (used by the run API)."""
        return {
            "restaurant": self.restaurant,
            "status": self.status.value,
            "successful": self.successful,
            "participants": list(self.participants),
            "callee": self.callee_identity,
            "confirmation_ref": self.confirmation_ref,
            "order_amounts": {k: f"{v:.2f}" for k, v in self.order_amounts.items()},
            "reasons": list(self.reasons),
            "warnings": list(self.warnings),
            "attempts": self.attempts,
            "completed_at": self.completed_at.isoformat(),
        }


@dataclass(frozen=True)
class RunResult:
    """
    Results of one automation run, one BatchResult per input batch, in input order.

    ``aborted_reason`` is set when the run crashed part-way; the batches it
    never reached still get a failed BatchResult.
    """

    run_id: str
    dry_run: bool
    results: Tuple[BatchResult, ...] = ()
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    finished_at: Optional[datetime] = None
    aborted_reason: Optional[str] = None

    @property
    def successes(self) -> List[BatchResult]:
        return [r for r in self.results if r.successful]

    @property
    def failures(self) -> List[BatchResult]:
        return [r for r in self.results if not r.successful]

    @property
    def all_successful(self) -> bool:
        return all(r.successful for r in self.results)

    def __len__(self) -> int:
        return len(self.results)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "run_id": self.run_id,
            "dry_run": self.dry_run,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "aborted_reason": self.aborted_reason,
            "results": [r.to_dict() for r in self.results],
        }
