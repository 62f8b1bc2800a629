"""
Automation runner.

Processes a day's restaurant batches, one at a time, against a single
browser session:

    1. Log the ordering account in (when credentials are given)
    2. For each batch: run the pipeline through the retry controller,
       collect the BatchResult, record stats for placed orders, pause
    3. Publish the RunResult to the notification sink
    4. Return the RunResult to the caller

Batches are never processed concurrently: they share one browser page,
and two carts in flight would corrupt each other.

A crash part-way through does not lose the run. The batches already
processed keep their results, the remaining ones are reported as failed,
and the partial RunResult is still published and returned.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import List, Optional, Sequence, Tuple

from config import AutomationConfig
from core.site_profile import GRUBHUB, SiteProfile
from core.surface import AutomationSurface
from logging_config import get_batch_logger, get_logger
from models.batch_result import BatchResult, RunResult
from models.order import OrderBatch
from modules.budget import BudgetValidator
from modules.callee import CalleeSelector
from .pipeline import Step, StepPipeline
from .retry import RetryController
from .steps import UNKNOWN_FAILURE, StepContext, log_in, reset_session


logger = get_logger(__name__)

RUN_ABORTED = "Run aborted before this order was placed."


class ResultAggregator:
    """
    Collects BatchResults for one run, in submission order.

    ``finish()`` guarantees one result per input batch: batches the run
    never reached get a failed result.
    """

    def __init__(self, run_id: str, dry_run: bool):
        self.run_id = run_id
        self.dry_run = dry_run
        self.started_at = datetime.now(timezone.utc)
        self._results: List[BatchResult] = []

    def add(self, result: BatchResult) -> None:
        self._results.append(result)

    @property
    def results(self) -> Tuple[BatchResult, ...]:
        return tuple(self._results)

    def finish(self, batches: Sequence[OrderBatch], aborted_reason: Optional[str] = None) -> RunResult:
        results = list(self._results)
        for batch in batches[len(results):]:
            results.append(BatchResult.create_failed(
                restaurant=batch.restaurant,
                participants=tuple(p.identity for p in batch.eligible_participants),
                reasons=(RUN_ABORTED,),
            ))
        return RunResult(
            run_id=self.run_id,
            dry_run=self.dry_run,
            results=tuple(results),
            started_at=self.started_at,
            finished_at=datetime.now(timezone.utc),
            aborted_reason=aborted_reason,
        )


class AutomationRunner:
    """
    Runs every batch of the day against one automation surface.

    Args:
        surface: The run's browser session (exclusively owned)
        config: Run settings
        users: User directory (``get_user``)
        stats: Stats recorder; skipped in dry runs
        notifier: Notification sink (``publish(run)``)
        order_source: Told who the callee is after a placed order
        site: Website URLs and selectors
        callee_selector: Injectable for deterministic tests
        credentials: (username, password) of the ordering account;
            login is skipped when None
        steps: Override the pipeline steps
    """

    def __init__(
        self,
        surface: AutomationSurface,
        config: AutomationConfig,
        users,
        stats=None,
        notifier=None,
        order_source=None,
        site: SiteProfile = GRUBHUB,
        callee_selector: Optional[CalleeSelector] = None,
        credentials: Optional[Tuple[str, str]] = None,
        steps: Optional[Sequence[Tuple[str, Step]]] = None,
    ):
        self.surface = surface
        self.config = config
        self.users = users
        self.stats = stats
        self.notifier = notifier
        self.order_source = order_source
        self.site = site
        self.callee_selector = callee_selector or CalleeSelector()
        self.credentials = credentials
        self.steps = steps
        self.budget = BudgetValidator(config.per_person_ceiling)

    def run(self, batches: Sequence[OrderBatch], run_id: Optional[str] = None) -> RunResult:
        """Process ``batches`` in order and return one BatchResult per batch."""
        batches = list(batches)
        aggregator = ResultAggregator(run_id or str(uuid.uuid4()), self.config.dry_run)
        aborted_reason = None

        logger.info(
            f"Run {aggregator.run_id[:8]} starting: {len(batches)} restaurant(s), "
            f"{'dry run' if self.config.dry_run else 'ACTUAL ORDER'}"
        )

        try:
            if self.credentials and batches:
                log_in(self.surface, self.site, *self.credentials)
                logger.info("Logged in")

            for batch in batches:
                result = self.run_batch(batch)
                aggregator.add(result)
                if result.successful and not self.config.dry_run:
                    self._record(batch, result)

                # Give the website a break between restaurants
                self.surface.pause(self.config.inter_batch_pause_ms)

        except Exception as e:
            logger.error(f"Run crashed: {e}", exc_info=True)
            aborted_reason = getattr(e, "message", None) or str(e) or type(e).__name__

        run = aggregator.finish(batches, aborted_reason)
        self._publish(run)

        logger.info(
            f"Run {run.run_id[:8]} finished: {len(run.successes)} placed, {len(run.failures)} failed"
        )
        return run

    def run_batch(self, batch: OrderBatch) -> BatchResult:
        """Drive one batch to a terminal result. Never raises."""
        batch_logger = get_batch_logger(batch.restaurant)
        context = StepContext(
            surface=self.surface,
            site=self.site,
            config=self.config,
            users=self.users,
            budget=self.budget,
            callee_selector=self.callee_selector,
            logger=batch_logger,
        )
        pipeline = StepPipeline(context, steps=self.steps)
        controller = RetryController(pipeline, reset=lambda: reset_session(context), logger=batch_logger)

        try:
            result = controller.run_with_retry(batch, self.config.max_attempts_per_batch)
        except Exception as e:
            batch_logger.error(f"Batch crashed: {e}", exc_info=True)
            result = BatchResult.create_failed(
                restaurant=batch.restaurant,
                participants=tuple(p.identity for p in batch.eligible_participants),
                reasons=(UNKNOWN_FAILURE,),
            )

        if result.successful:
            batch_logger.info(f"Placed with callee {result.callee_identity} after {result.attempts} attempt(s)")
        else:
            batch_logger.warning(f"Not placed: {'; '.join(result.reasons)}")
        return result

    def _record(self, batch: OrderBatch, result: BatchResult) -> None:
        # Recording problems never fail a placed order
        if self.stats is not None:
            for participant in batch.eligible_participants:
                try:
                    self.stats.record(
                        participant.identity,
                        batch.restaurant,
                        result.order_amounts.get(participant.identity, 0),
                        participant.items,
                        participant.identity == result.callee_identity,
                    )
                except Exception as e:
                    logger.error(f"Could not record stats for {participant.identity}: {e}")

        if self.order_source is not None:
            try:
                self.order_source.set_callee(result.callee_identity)
            except Exception as e:
                logger.error(f"Could not store callee for {batch.restaurant}: {e}")

    def _publish(self, run: RunResult) -> None:
        if self.notifier is None:
            return
        try:
            self.notifier.publish(run)
        except Exception as e:
            logger.error(f"Could not publish run summary: {e}")


def run_automation(
    order_batches: Sequence[OrderBatch],
    config: AutomationConfig,
    surface: AutomationSurface,
    users,
    **collaborators,
) -> RunResult:
    """
    Order every batch and return the run's results.

    Convenience wrapper around ``AutomationRunner(...).run(order_batches)``;
    extra keyword arguments are passed to the runner.
    """
    return AutomationRunner(surface, config, users, **collaborators).run(order_batches)
