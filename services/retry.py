"""
Retry controller.

Wraps the step pipeline with a bounded number of attempts per batch.
Every attempt starts from a clean browser state (fresh navigation, empty
cart); there is no resuming from the step that failed.

    RetryableFailure, attempts left  ->  reset and run the whole pipeline again
    RetryableFailure, none left      ->  failed BatchResult
    FatalFailure, any attempt        ->  failed BatchResult, no retry
    Continue                         ->  successful BatchResult

Failure reasons from all attempts are kept, in order, without duplicates.
"""

from __future__ import annotations

import logging
from typing import Callable, List, Optional

from models.batch_result import BatchResult
from models.order import OrderBatch
from models.outcome import OutcomeKind, PipelineResult, RetryableFailure, StepOutcome
from .steps import UNKNOWN_FAILURE


DEFAULT_MAX_ATTEMPTS = 3


class RetryController:
    """
    Runs a batch through the pipeline until it succeeds, fails fatally,
    or runs out of attempts.

    Args:
        pipeline: Anything with ``run(batch) -> StepOutcome``
        reset: Called before every attempt to restore a clean session;
            an exception from it counts as a retryable failure of that attempt
        logger: Batch logger
    """

    def __init__(
        self,
        pipeline,
        reset: Optional[Callable[[], None]] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.pipeline = pipeline
        self._reset = reset
        self.logger = logger or logging.getLogger(__name__)

    def run_with_retry(self, batch: OrderBatch, max_attempts: int = DEFAULT_MAX_ATTEMPTS) -> BatchResult:
        """
        Drive ``batch`` to a terminal BatchResult.

        The pipeline is invoked at most ``max_attempts`` times.
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

        participants = tuple(p.identity for p in batch.eligible_participants)
        reasons: List[str] = []
        attempt = 0

        while attempt < max_attempts:
            attempt += 1
            self.logger.info(f"Ordering from {batch.restaurant}: attempt {attempt}/{max_attempts}")

            outcome = self._attempt(batch)

            if outcome.kind is OutcomeKind.CONTINUE:
                return self._success(batch, outcome.value, participants, attempt)

            for reason in outcome.reasons:
                if reason not in reasons:
                    reasons.append(reason)

            if outcome.kind is OutcomeKind.FATAL:
                self.logger.warning(f"{batch.restaurant} failed and will not be retried: {'; '.join(outcome.reasons)}")
                break

            if attempt < max_attempts:
                self.logger.warning(f"{batch.restaurant} attempt {attempt} failed, retrying")

        else:
            self.logger.error(f"{batch.restaurant} failed after {attempt} attempts")

        return BatchResult.create_failed(
            restaurant=batch.restaurant,
            participants=participants,
            reasons=tuple(reasons),
            attempts=attempt,
        )

    def _attempt(self, batch: OrderBatch) -> StepOutcome:
        if self._reset is not None:
            try:
                self._reset()
            except Exception as e:
                self.logger.warning(f"Could not reset session before attempt: {e}")
                return RetryableFailure.because(f"Could not reset the ordering session: {getattr(e, 'message', e)}")
        return self.pipeline.run(batch)

    def _success(self, batch: OrderBatch, result: PipelineResult, participants, attempt: int) -> BatchResult:
        filled = result.filled_items
        if result.callee is None or result.submission is None:
            self.logger.error(f"{batch.restaurant} pipeline finished without a callee or confirmation")
            return BatchResult.create_failed(batch.restaurant, participants, (UNKNOWN_FAILURE,), attempts=attempt)
        return BatchResult.create_success(
            restaurant=batch.restaurant,
            participants=participants,
            callee_identity=result.callee.identity,
            confirmation_ref=result.submission.confirmation_ref,
            order_amounts=filled.order_amounts,
            warnings=filled.warnings,
            attempts=attempt,
        )
