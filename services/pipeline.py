"""
Step pipeline for one restaurant batch.

Runs the named steps strictly in order against the run's browser session,
threading a fresh PipelineResult through them:

    configure-restaurant -> fill-items -> fill-participants -> select-callee -> submit

The first step that does not continue halts the pipeline and its outcome
is returned unchanged. When every step continues, the pipeline returns
``Continue(result)`` with the submission slice filled in.

Any exception a step did not classify is caught here and turned into a
generic RetryableFailure, so callers always get a well-formed outcome.
"""

from __future__ import annotations

from typing import Callable, Dict, List, Optional, Sequence, Tuple

from core.site_profile import SiteProfile
from models.order import OrderBatch
from models.outcome import Continue, OutcomeKind, PipelineResult, RetryableFailure, StepOutcome
from . import seamless_steps
from .steps import (
    UNKNOWN_FAILURE,
    StepContext,
    configure_restaurant,
    fill_items,
    fill_participants,
    select_callee,
    submit_order,
)


Step = Callable[[StepContext, OrderBatch, PipelineResult], StepOutcome]

DEFAULT_STEPS: Tuple[Tuple[str, Step], ...] = (
    (PipelineResult.CONFIGURE_RESTAURANT, configure_restaurant),
    (PipelineResult.FILL_ITEMS, fill_items),
    (PipelineResult.FILL_PARTICIPANTS, fill_participants),
    (PipelineResult.SELECT_CALLEE, select_callee),
)

SEAMLESS_STEPS: Tuple[Tuple[str, Step], ...] = (
    (PipelineResult.CONFIGURE_RESTAURANT, seamless_steps.configure_restaurant),
    (PipelineResult.FILL_ITEMS, seamless_steps.fill_items),
    (PipelineResult.FILL_PARTICIPANTS, seamless_steps.fill_participants),
    (PipelineResult.SELECT_CALLEE, seamless_steps.select_callee),
)

# Checkout flow name (SiteProfile.flow) -> its steps
FLOW_STEPS: Dict[str, Tuple[Tuple[str, Step], ...]] = {
    "grubhub": DEFAULT_STEPS,
    "seamless": SEAMLESS_STEPS,
}


def steps_for(site: SiteProfile) -> Tuple[Tuple[str, Step], ...]:
    """Steps of the checkout flow that drives ``site``."""
    try:
        return FLOW_STEPS[site.flow]
    except KeyError:
        raise ValueError(f"No checkout flow '{site.flow}' for site '{site.name}'. Available: {', '.join(sorted(FLOW_STEPS))}")


class StepPipeline:
    """
    Ordered, named sequence of steps for one batch.

    Steps and the submitter are injectable so tests can run the control
    flow without a browser.

    Attributes:
        step_names: Names of the steps, in execution order
    """

    def __init__(
        self,
        context: StepContext,
        steps: Optional[Sequence[Tuple[str, Step]]] = None,
        submitter: Optional[Step] = None,
    ):
        self.context = context
        self._steps: List[Tuple[str, Step]] = list(steps if steps is not None else steps_for(context.site))
        self._submitter = submitter or submit_order

        names = [name for name, _ in self._steps]
        if len(set(names)) != len(names) or PipelineResult.SUBMIT in names:
            raise ValueError(f"Step names must be unique and must not be '{PipelineResult.SUBMIT}': {names}")

    @property
    def step_names(self) -> List[str]:
        return [name for name, _ in self._steps]

    def run(self, batch: OrderBatch) -> StepOutcome:
        """
        Run every step for ``batch``, then submit.

        Returns:
            Continue(PipelineResult) on success, otherwise the failing
            step's RetryableFailure or FatalFailure
        """
        logger = self.context.logger
        result = PipelineResult()

        try:
            for name, step in self._steps:
                logger.debug(f"Step {name} starting")
                outcome = step(self.context, batch, result)
                if outcome.kind is not OutcomeKind.CONTINUE:
                    logger.warning(f"Step {name} failed ({outcome.kind.value}): {'; '.join(outcome.reasons)}")
                    return outcome
                result.put(name, outcome.value)

            outcome = self._submitter(self.context, batch, result)
            if outcome.kind is not OutcomeKind.CONTINUE:
                logger.warning(f"Submission failed ({outcome.kind.value}): {'; '.join(outcome.reasons)}")
                return outcome
            result.put(PipelineResult.SUBMIT, outcome.value)

        except Exception as e:
            logger.error(f"Unexpected error while ordering from {batch.restaurant}: {e}", exc_info=True)
            return RetryableFailure.because(UNKNOWN_FAILURE)

        return Continue(result)
