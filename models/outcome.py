"""
Step outcome models.

Every pipeline step returns exactly one StepOutcome:

    Continue(value)            - step succeeded, ``value`` is its result slice
    RetryableFailure(reasons)  - transient failure, the batch may be re-attempted
    FatalFailure(reasons)      - structural failure, retrying cannot help

Successful step values accumulate in a PipelineResult, keyed by step name.
A step can only write its own slice; writing a slice twice is an error.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Iterator, Optional, Tuple, Union

from .order import User


class OutcomeKind(Enum):
    """Tag of a StepOutcome."""

    CONTINUE = "continue"
    RETRYABLE = "retryable"
    FATAL = "fatal"


@dataclass(frozen=True)
class Continue:
    """The step succeeded; ``value`` is written to the step's result slice."""

    value: Any = None
    kind: OutcomeKind = field(default=OutcomeKind.CONTINUE, init=False)


@dataclass(frozen=True)
class RetryableFailure:
    """Transient failure (timeout, navigation error, element not rendered yet)."""

    reasons: Tuple[str, ...] = ()
    kind: OutcomeKind = field(default=OutcomeKind.RETRYABLE, init=False)

    @classmethod
    def because(cls, *reasons: str) -> "RetryableFailure":
        return cls(reasons=tuple(reasons))


@dataclass(frozen=True)
class FatalFailure:
    """Structural failure: restaurant closed, minimum not met, over budget, ..."""

    reasons: Tuple[str, ...] = ()
    kind: OutcomeKind = field(default=OutcomeKind.FATAL, init=False)

    @classmethod
    def because(cls, *reasons: str) -> "FatalFailure":
        return cls(reasons=tuple(reasons))


StepOutcome = Union[Continue, RetryableFailure, FatalFailure]


# =============================================================================
# STEP RESULT SLICES
# =============================================================================

@dataclass(frozen=True)
class FilledItems:
    """Result slice of the fill-items step."""

    order_amounts: Dict[str, Decimal]
    """Subtotal added to the cart by each participant, keyed by identity."""

    warnings: Tuple[str, ...] = ()
    """Items or options that could not be found and were skipped."""


@dataclass(frozen=True)
class Submission:
    """Result slice of the final submission."""

    confirmation_ref: str
    """Reference to the captured confirmation (file name of the receipt PDF)."""

    dry_run: bool


class SliceAlreadyWrittenError(RuntimeError):
    """A step tried to overwrite a slice another step (or itself) already wrote."""


class PipelineResult:
    """
    Result record threaded through the steps of one pipeline attempt.

    Each step owns exactly one named slice. Steps may read any slice
    written before them, but the record refuses a second write to a slice.
    A fresh record is created for every attempt, so nothing carries over
    from a failed attempt.
    """

    CONFIGURE_RESTAURANT = "configure-restaurant"
    FILL_ITEMS = "fill-items"
    FILL_PARTICIPANTS = "fill-participants"
    SELECT_CALLEE = "select-callee"
    SUBMIT = "submit"

    def __init__(self) -> None:
        self._slices: Dict[str, Any] = {}

    def put(self, step_name: str, value: Any) -> None:
        if step_name in self._slices:
            raise SliceAlreadyWrittenError(f"Result slice '{step_name}' was already written")
        self._slices[step_name] = value

    def get(self, step_name: str, default: Any = None) -> Any:
        return self._slices.get(step_name, default)

    def __contains__(self, step_name: str) -> bool:
        return step_name in self._slices

    def __iter__(self) -> Iterator[str]:
        return iter(self._slices)

    @property
    def restaurant_label(self) -> Optional[str]:
        """Restaurant name as displayed by the ordering website."""
        return self._slices.get(self.CONFIGURE_RESTAURANT)

    @property
    def filled_items(self) -> FilledItems:
        return self._slices.get(self.FILL_ITEMS) or FilledItems(order_amounts={})

    @property
    def allocations(self) -> Dict[str, Decimal]:
        return self._slices.get(self.FILL_PARTICIPANTS) or {}

    @property
    def callee(self) -> Optional[User]:
        return self._slices.get(self.SELECT_CALLEE)

    @property
    def submission(self) -> Optional[Submission]:
        return self._slices.get(self.SUBMIT)
